"""
xUnit v2 XML results (assemblies or assembly root)
"""

import xml.etree.ElementTree as ET
from typing import Dict, List

from livingdoc.results.adapters.base import (
    XmlReportAdapter, apply_step_output, element_text, failed_line_from, stamp_missing,
)
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ReportFormat, ScenarioExecutionResult, TestExecutionReport,
)
from livingdoc.utils.helpers import parse_timestamp, split_parameters, to_float


def traits(test: ET.Element) -> List[tuple]:
    container = test.find('traits')
    if container is None:
        return []
    return [(t.get('name', ''), t.get('value', '')) for t in container.findall('trait')]


class XUnitAdapter(XmlReportAdapter):
    kind = ReportFormat.XUNIT
    status_map = {
        'pass': ExecutionStatus.PASSED,
        'fail': ExecutionStatus.FAILED,
        'skip': ExecutionStatus.SKIPPED,
        'notrun': ExecutionStatus.NOT_EXECUTED,
    }

    def matches_root(self, root_name: str, namespace: str, source: str = "") -> bool:
        return root_name in ('assemblies', 'assembly')

    def _parse(self, content: str, source: str) -> TestExecutionReport:
        root = self.load_root(content, source)
        assemblies = root.findall('assembly') if root.tag == 'assemblies' else [root]
        report = TestExecutionReport()

        for assembly in assemblies:
            if not report.environment:
                report.environment = self._environment(assembly)
            if report.generated_at is None and assembly.get('run-date'):
                report.generated_at = parse_timestamp(
                    f"{assembly.get('run-date')} {assembly.get('run-time') or '00:00:00'}")
            report.duration += to_float(assembly.get('time'))

            for collection in assembly.findall('collection'):
                feature = self._parse_feature(collection)
                if feature.scenarios:
                    report.features.append(feature)

        stamp_missing(report, report.generated_at)
        return report

    def _environment(self, assembly: ET.Element) -> Dict[str, str]:
        keys = {'name': 'AssemblyName', 'test-framework': 'Framework', 'environment': 'Environment'}
        return {label: assembly.get(attr) for attr, label in keys.items() if assembly.get(attr)}

    def _parse_feature(self, collection: ET.Element) -> FeatureExecutionResult:
        feature = FeatureExecutionResult(
            name=collection.get('name') or 'Unknown Feature',
            duration=to_float(collection.get('time')),
        )
        named_from_trait = False
        for test in collection.findall('test'):
            test_traits = traits(test)
            if not feature.file_path:
                feature.file_path = next((v for k, v in test_traits if k == 'FeatureFile' and v), '')
            if not named_from_trait:
                title = next((v for k, v in test_traits if k == 'FeatureTitle' or k == 'Feature'), '')
                if title:
                    feature.name = title
                    named_from_trait = True
            feature.scenarios.append(self._parse_scenario(test, test_traits))
        return feature

    def _parse_scenario(self, test: ET.Element, test_traits: List[tuple]) -> ScenarioExecutionResult:
        raw = (test.get('name') or 'Unknown Scenario').strip()
        description = next((v for k, v in test_traits if k == 'Description' and v), None)
        name = raw
        if description:
            base, _, _ = split_parameters(raw)
            name = f"{description}{raw[len(base):]}"

        scenario = ScenarioExecutionResult(
            name=name,
            status=self.map_status(test.get('result')),
            duration=to_float(test.get('time')),
            tags=[v for k, v in test_traits if k == 'Category' and v],
        )
        scenario.metadata['Method'] = test.get('method', '')
        scenario.metadata['Type'] = test.get('type', '')

        failure = test.find('failure')
        if failure is not None:
            scenario.error_message = element_text(failure.find('message'))
            scenario.stack_trace = element_text(failure.find('stack-trace'))
            scenario.failed_line = failed_line_from(scenario.error_message, scenario.stack_trace)

        reason = test.find('reason')
        if reason is not None and scenario.status == ExecutionStatus.SKIPPED:
            scenario.error_message = element_text(reason.find('message')) or element_text(reason)

        apply_step_output(scenario, element_text(test.find('output')))
        return scenario
