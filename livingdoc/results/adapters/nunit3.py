"""
NUnit 3 XML results (test-run root)
"""

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple

from livingdoc.results.adapters.base import (
    XmlReportAdapter, apply_step_output, element_text, failed_line_from, stamp_missing,
)
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ReportFormat, ScenarioExecutionResult, TestExecutionReport,
)
from livingdoc.utils.helpers import parse_timestamp, split_parameters, to_float


def own_properties(element: ET.Element) -> List[Tuple[str, str]]:
    properties = element.find('properties')
    if properties is None:
        return []
    return [(p.get('name', ''), p.get('value', '')) for p in properties.findall('property')]


def property_value(element: ET.Element, name: str) -> Optional[str]:
    for key, value in own_properties(element):
        if key == name and value:
            return value
    return None


class NUnit3Adapter(XmlReportAdapter):
    kind = ReportFormat.NUNIT3
    status_map = {
        'passed': ExecutionStatus.PASSED,
        'warning': ExecutionStatus.PASSED,
        'failed': ExecutionStatus.FAILED,
        'skipped': ExecutionStatus.SKIPPED,
        'ignored': ExecutionStatus.SKIPPED,
        'inconclusive': ExecutionStatus.SKIPPED,
    }

    def matches_root(self, root_name: str, namespace: str, source: str = "") -> bool:
        return root_name == 'test-run'

    def _parse(self, content: str, source: str) -> TestExecutionReport:
        root = self.load_root(content, source)
        report = TestExecutionReport(
            generated_at=parse_timestamp(root.get('start-time')),
            duration=to_float(root.get('duration')),
            environment=self._environment(root),
        )

        for suite in root.iter('test-suite'):
            if suite.get('type') != 'TestFixture':
                continue
            feature = self._parse_feature(suite)
            if feature.scenarios:
                report.features.append(feature)

        stamp_missing(report, report.generated_at)
        return report

    def _environment(self, root: ET.Element) -> Dict[str, str]:
        environment = root.find('.//environment')
        if environment is None:
            return {}
        keys = {'framework-version': 'Framework', 'clr-version': 'CLR',
                'os-version': 'OS', 'platform': 'Platform', 'machine-name': 'Machine'}
        return {label: environment.get(attr) for attr, label in keys.items() if environment.get(attr)}

    def _parse_feature(self, suite: ET.Element) -> FeatureExecutionResult:
        file_path = property_value(suite, 'FeatureFile') or ''
        if not file_path:
            for prop in suite.iter('property'):
                if prop.get('name') == 'FeatureFile' and prop.get('value'):
                    file_path = prop.get('value')
                    break

        feature = FeatureExecutionResult(
            name=property_value(suite, 'Description') or suite.get('name') or 'Unknown Feature',
            file_path=file_path,
            tags=[value for key, value in own_properties(suite) if key == 'Category'],
            duration=to_float(suite.get('duration')),
        )
        self._collect_cases(suite, None, feature.scenarios)
        return feature

    def _collect_cases(self, element: ET.Element, description: Optional[str],
                       scenarios: List[ScenarioExecutionResult]):
        """Test cases in document order; parameterized rows live in nested suites"""
        for child in element:
            if child.tag == 'test-case':
                scenarios.append(self._parse_scenario(child, description))
            elif child.tag == 'test-suite':
                self._collect_cases(child, property_value(child, 'Description') or description, scenarios)

    def _scenario_name(self, case: ET.Element, inherited: Optional[str]) -> str:
        raw = case.get('name') or 'Unknown Scenario'
        description = property_value(case, 'Description') or inherited
        if not description:
            return raw
        base, _, _ = split_parameters(raw)
        suffix = raw[len(base):].strip()
        return f"{description}{suffix}" if suffix else description

    def _parse_scenario(self, case: ET.Element, description: Optional[str]) -> ScenarioExecutionResult:
        raw_name = case.get('name') or ''
        _, parameters, named = split_parameters(raw_name)
        scenario = ScenarioExecutionResult(
            name=self._scenario_name(case, description),
            status=self.map_status(case.get('result')),
            duration=to_float(case.get('duration')),
            timestamp=parse_timestamp(case.get('start-time')),
            tags=[value for key, value in own_properties(case) if key == 'Category'],
            parameters=parameters,
            named_parameters=named,
        )
        if case.get('label') in ('Error', 'Cancelled') and scenario.status == ExecutionStatus.PASSED:
            scenario.status = ExecutionStatus.FAILED

        failure = case.find('failure')
        if failure is not None:
            scenario.error_message = element_text(failure.find('message'))
            scenario.stack_trace = element_text(failure.find('stack-trace'))
            scenario.failed_line = failed_line_from(scenario.error_message, scenario.stack_trace)
        reason = case.find('reason')
        if reason is not None and scenario.status == ExecutionStatus.SKIPPED:
            scenario.error_message = element_text(reason.find('message'))

        for attachment in case.iter('attachment'):
            path = element_text(attachment.find('filePath'))
            if path:
                scenario.attachments.append(path)

        scenario.metadata['FullName'] = case.get('fullname', '')
        apply_step_output(scenario, element_text(case.find('output')))
        return scenario
