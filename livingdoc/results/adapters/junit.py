"""
JUnit XML results (testsuites or testsuite root)
"""

import re
import xml.etree.ElementTree as ET
from typing import Dict

from livingdoc.results.adapters.base import (
    XmlReportAdapter, apply_step_output, element_text, failed_line_from, stamp_missing,
)
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ReportFormat, ScenarioExecutionResult, TestExecutionReport,
)
from livingdoc.utils.helpers import parse_timestamp, to_float

# Feature.Scenario[@tag1,@tag2]
CLASSNAME_TAGS = re.compile(r'\[@(.+?)\]')


def suite_properties(suite: ET.Element) -> Dict[str, str]:
    properties = suite.find('properties')
    if properties is None:
        return {}
    return {p.get('name', ''): p.get('value') or (p.text or '') for p in properties.findall('property')}


class JUnitAdapter(XmlReportAdapter):
    kind = ReportFormat.JUNIT

    def matches_root(self, root_name: str, namespace: str, source: str = "") -> bool:
        return root_name in ('testsuites', 'testsuite')

    def _parse(self, content: str, source: str) -> TestExecutionReport:
        root = self.load_root(content, source)
        suites = [root] if root.tag == 'testsuite' else list(root.iter('testsuite'))
        report = TestExecutionReport()

        for suite in suites:
            properties = suite_properties(suite)
            if not report.environment:
                report.environment = self._environment(suite, properties)
            report.duration += to_float(suite.get('time'))

            feature = self._parse_feature(suite, properties)
            if feature.scenarios:
                report.features.append(feature)
                started = parse_timestamp(suite.get('timestamp'))
                for scenario in feature.scenarios:
                    scenario.timestamp = scenario.timestamp or started
                if report.generated_at is None:
                    report.generated_at = started

        stamp_missing(report, report.generated_at)
        return report

    def _environment(self, suite: ET.Element, properties: Dict[str, str]) -> Dict[str, str]:
        environment = {}
        for attr, label in (('name', 'TestSuite'), ('hostname', 'Hostname'), ('timestamp', 'Timestamp')):
            if suite.get(attr):
                environment[label] = suite.get(attr)
        environment.update({k: v for k, v in properties.items() if k and v})
        return environment

    def _parse_feature(self, suite: ET.Element, properties: Dict[str, str]) -> FeatureExecutionResult:
        tags = properties.get('feature.tags', '')
        feature = FeatureExecutionResult(
            name=properties.get('feature.name') or suite.get('name') or 'Unknown Feature',
            file_path=properties.get('feature.file') or properties.get('featureFile') or '',
            tags=[t.strip() for t in re.split(r'[\s,]+', tags) if t.strip()],
            duration=to_float(suite.get('time')),
        )
        for case in suite.findall('testcase'):
            feature.scenarios.append(self._parse_scenario(case))
        return feature

    def _status(self, case: ET.Element) -> ExecutionStatus:
        if case.find('failure') is not None or case.find('error') is not None:
            return ExecutionStatus.FAILED
        if case.find('skipped') is not None:
            return ExecutionStatus.SKIPPED
        return ExecutionStatus.PASSED

    def _parse_scenario(self, case: ET.Element) -> ScenarioExecutionResult:
        scenario = ScenarioExecutionResult(
            name=case.get('name') or 'Unknown Scenario',
            status=self._status(case),
            duration=to_float(case.get('time')),
            timestamp=parse_timestamp(case.get('timestamp')),
        )

        class_name = case.get('classname')
        if class_name:
            scenario.metadata['ClassName'] = class_name
            match = CLASSNAME_TAGS.search(class_name)
            if match:
                scenario.tags = ['@' + t.strip().lstrip('@') for t in match.group(1).split(',') if t.strip()]

        problem = case.find('failure')
        if problem is None:
            problem = case.find('error')
        if problem is not None:
            scenario.error_message = problem.get('message') or element_text(problem)
            scenario.stack_trace = element_text(problem)
            scenario.failed_line = failed_line_from(scenario.stack_trace, scenario.error_message)

        skipped = case.find('skipped')
        if skipped is not None:
            scenario.error_message = skipped.get('message') or 'Test skipped'

        apply_step_output(scenario, element_text(case.find('system-out')))
        return scenario
