"""
Visual Studio TRX results (TestRun root in the VSTest namespace)
"""

import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from livingdoc.results.adapters.base import (
    XmlReportAdapter, apply_step_output, element_text, failed_line_from, namespace_of,
)
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ReportFormat, ScenarioExecutionResult, TestExecutionReport,
)
from livingdoc.utils.helpers import parse_timespan, parse_timestamp, split_camel_case

TRX_NAMESPACE = 'http://microsoft.com/schemas/VisualStudio/TeamTest/2010'


class _TestDefinition:
    def __init__(self, name: str, class_name: str, description: Optional[str],
                 feature_title: Optional[str], categories: List[str]):
        self.name = name
        self.class_name = class_name
        self.description = description
        self.feature_title = feature_title
        self.categories = categories


class TrxAdapter(XmlReportAdapter):
    kind = ReportFormat.TRX
    status_map = {
        'passed': ExecutionStatus.PASSED,
        'completed': ExecutionStatus.PASSED,
        'warning': ExecutionStatus.PASSED,
        'passedbutrunaborted': ExecutionStatus.PASSED,
        'failed': ExecutionStatus.FAILED,
        'error': ExecutionStatus.FAILED,
        'timeout': ExecutionStatus.FAILED,
        'aborted': ExecutionStatus.FAILED,
        'disconnected': ExecutionStatus.FAILED,
        'notexecuted': ExecutionStatus.SKIPPED,
        'notrunnable': ExecutionStatus.SKIPPED,
        'inconclusive': ExecutionStatus.SKIPPED,
        'pending': ExecutionStatus.PENDING,
    }

    def matches_root(self, root_name: str, namespace: str, source: str = "") -> bool:
        if root_name != 'TestRun':
            return False
        return namespace == TRX_NAMESPACE or source.lower().endswith('.trx')

    def _parse(self, content: str, source: str) -> TestExecutionReport:
        root = self.load_root(content, source)
        ns = namespace_of(root.tag)
        q = (lambda tag: f"{{{ns}}}{tag}") if ns else (lambda tag: tag)

        times = root.find(q('Times'))
        started = parse_timestamp(times.get('start')) if times is not None else None
        finished = parse_timestamp(times.get('finish')) if times is not None else None
        report = TestExecutionReport(generated_at=started)
        if started and finished:
            report.duration = (finished - started).total_seconds()

        settings = root.find(q('TestSettings'))
        if settings is not None and settings.get('name'):
            report.environment['TestSettings'] = settings.get('name')
        for attr, label in (('runUser', 'User'), ('name', 'Run')):
            if root.get(attr):
                report.environment[label] = root.get(attr)

        definitions = self._definitions(root, q)
        features: Dict[str, FeatureExecutionResult] = {}
        results = root.find(q('Results'))
        for result in (results if results is not None else []):
            if result.tag != q('UnitTestResult'):
                continue
            definition = definitions.get(result.get('testId', ''))
            class_name = definition.class_name if definition else 'Unknown'
            feature = features.get(class_name)
            if feature is None:
                feature = FeatureExecutionResult(name=self._feature_name(class_name, definition),
                                                 file_path=class_name)
                features[class_name] = feature
            for scenario in self._expand(result, definition, q):
                feature.scenarios.append(scenario)
                feature.duration += scenario.duration

        report.features = [f for f in features.values() if f.scenarios]
        return report

    def _definitions(self, root: ET.Element, q) -> Dict[str, _TestDefinition]:
        definitions = {}
        container = root.find(q('TestDefinitions'))
        if container is None:
            return definitions
        for unit in container.findall(q('UnitTest')):
            method = unit.find(q('TestMethod'))
            feature_title = None
            for prop in unit.iter(q('Property')):
                if element_text(prop.find(q('Key'))) == 'FeatureTitle':
                    feature_title = element_text(prop.find(q('Value')))
            categories = [item.get('TestCategory', '') for item in unit.iter(q('TestCategoryItem'))]
            definitions[unit.get('id', '')] = _TestDefinition(
                name=unit.get('name') or 'Unknown',
                class_name=method.get('className', 'Unknown') if method is not None else 'Unknown',
                description=element_text(unit.find(q('Description'))),
                feature_title=feature_title,
                categories=[c for c in categories if c],
            )
        return definitions

    @staticmethod
    def _feature_name(class_name: str, definition: Optional[_TestDefinition]) -> str:
        if definition and definition.feature_title:
            return definition.feature_title
        # Company.Tests.Features.UserLoginFeature -> User Login
        short = class_name.split(',')[0].split('.')[-1]
        if short.endswith('Feature') and len(short) > len('Feature'):
            short = short[:-len('Feature')]
        return split_camel_case(short)

    def _expand(self, result: ET.Element, definition: Optional[_TestDefinition],
                q) -> List[ScenarioExecutionResult]:
        """Data-driven results nest one UnitTestResult per row under InnerResults"""
        inner = result.find(q("InnerResults"))
        if inner is not None:
            rows = [r for r in inner if r.tag == q("UnitTestResult")]
            if rows:
                return [self._parse_scenario(row, definition, q) for row in rows]
        return [self._parse_scenario(result, definition, q)]

    def _parse_scenario(self, result: ET.Element, definition: Optional[_TestDefinition],
                        q) -> ScenarioExecutionResult:
        test_name = result.get('testName') or (definition.name if definition else 'Unknown Scenario')
        if definition and definition.description and test_name.startswith(definition.name):
            name = definition.description + test_name[len(definition.name):]
        else:
            name = split_camel_case(test_name)

        scenario = ScenarioExecutionResult(
            name=name,
            status=self.map_status(result.get('outcome')),
            duration=parse_timespan(result.get('duration')),
            timestamp=parse_timestamp(result.get('startTime')),
            tags=list(definition.categories) if definition else [],
        )
        if result.get('dataRowInfo'):
            scenario.metadata['DataRow'] = result.get('dataRowInfo')

        output = result.find(q('Output'))
        if output is not None:
            error_info = output.find(q('ErrorInfo'))
            if error_info is not None:
                scenario.error_message = element_text(error_info.find(q('Message')))
                scenario.stack_trace = element_text(error_info.find(q('StackTrace')))
                scenario.failed_line = failed_line_from(scenario.error_message, scenario.stack_trace)
            apply_step_output(scenario, element_text(output.find(q('StdOut'))))

        for result_file in result.iter(q('ResultFile')):
            if result_file.get('path'):
                scenario.attachments.append(result_file.get('path'))
        return scenario
