"""
NUnit 2 XML results (test-results root)
"""

import xml.etree.ElementTree as ET
from typing import List, Optional

from livingdoc.results.adapters.base import (
    XmlReportAdapter, apply_step_output, element_text, failed_line_from, stamp_missing,
)
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ReportFormat, ScenarioExecutionResult, TestExecutionReport,
)
from livingdoc.utils.helpers import parse_timestamp, split_parameters, to_float


def _categories(element: ET.Element) -> List[str]:
    categories = element.find('categories')
    if categories is None:
        return []
    return [c.get('name', '') for c in categories.findall('category') if c.get('name')]


class NUnit2Adapter(XmlReportAdapter):
    kind = ReportFormat.NUNIT2
    status_map = {
        'success': ExecutionStatus.PASSED,
        'failure': ExecutionStatus.FAILED,
        'error': ExecutionStatus.FAILED,
        'cancelled': ExecutionStatus.FAILED,
        'ignored': ExecutionStatus.SKIPPED,
        'skipped': ExecutionStatus.SKIPPED,
        'notrunnable': ExecutionStatus.SKIPPED,
        'inconclusive': ExecutionStatus.SKIPPED,
    }

    def matches_root(self, root_name: str, namespace: str, source: str = "") -> bool:
        return root_name == 'test-results'

    def _parse(self, content: str, source: str) -> TestExecutionReport:
        root = self.load_root(content, source)
        started = None
        if root.get('date'):
            started = parse_timestamp(f"{root.get('date')} {root.get('time') or '00:00:00'}")
        report = TestExecutionReport(generated_at=started)

        environment = root.find('environment')
        if environment is not None:
            keys = {'nunit-version': 'Framework', 'clr-version': 'CLR', 'os-version': 'OS',
                    'platform': 'Platform', 'machine-name': 'Machine'}
            report.environment = {label: environment.get(attr)
                                  for attr, label in keys.items() if environment.get(attr)}

        for suite in root.iter('test-suite'):
            if suite.get('type') != 'TestFixture':
                continue
            feature = self._parse_feature(suite)
            if feature.scenarios:
                report.features.append(feature)
                report.duration += feature.duration

        stamp_missing(report, report.generated_at)
        return report

    def _parse_feature(self, suite: ET.Element) -> FeatureExecutionResult:
        file_path = ''
        for prop in suite.iter('property'):
            if prop.get('name') == 'FeatureFile' and prop.get('value'):
                file_path = prop.get('value')
                break
        feature = FeatureExecutionResult(
            name=suite.get('description') or suite.get('name') or 'Unknown Feature',
            file_path=file_path,
            tags=_categories(suite),
            duration=to_float(suite.get('time')),
        )
        for case in suite.iter('test-case'):
            feature.scenarios.append(self._parse_scenario(case))
        return feature

    def map_case_status(self, result: Optional[str], success: Optional[str],
                        executed: Optional[str]) -> ExecutionStatus:
        if result:
            return self.map_status(result)
        if executed == 'False':
            return ExecutionStatus.NOT_EXECUTED
        if success == 'True':
            return ExecutionStatus.PASSED
        if success == 'False':
            return ExecutionStatus.FAILED
        return ExecutionStatus.UNDEFINED

    def _parse_scenario(self, case: ET.Element) -> ScenarioExecutionResult:
        raw = case.get('name') or 'Unknown Scenario'
        base, _, _ = split_parameters(raw)
        suffix = raw[len(base):]
        # fully qualified Namespace.Class.Method
        method = base.rsplit('.', 1)[-1]
        name = case.get('description') or method
        scenario = ScenarioExecutionResult(
            name=f"{name}{suffix}",
            status=self.map_case_status(case.get('result'), case.get('success'), case.get('executed')),
            duration=to_float(case.get('time')),
            tags=_categories(case),
        )

        failure = case.find('failure')
        if failure is not None:
            scenario.error_message = element_text(failure.find('message'))
            scenario.stack_trace = element_text(failure.find('stack-trace'))
            scenario.failed_line = failed_line_from(scenario.error_message, scenario.stack_trace)
        reason = case.find('reason')
        if reason is not None and scenario.status == ExecutionStatus.SKIPPED:
            scenario.error_message = element_text(reason.find('message')) or 'Test skipped'

        apply_step_output(scenario, element_text(case.find('output')))
        return scenario
