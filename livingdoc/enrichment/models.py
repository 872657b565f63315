"""
Enriched document model: parsed features annotated with execution outcomes
Built fresh on every correlation run; wraps AST nodes by reference and never changes them
"""

from dataclasses import dataclass, field
from datetime import datetime
from functools import reduce
from typing import Any, Dict, List, Optional, Tuple

from livingdoc.parser.models import Example, Feature, Rule, Scenario, Step
from livingdoc.results.models import ExecutionStatus, FeatureExecutionResult, ScenarioExecutionResult


@dataclass(frozen=True)
class StatusCounts:
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0
    undefined: int = 0
    not_executed: int = 0

    def add(self, status: ExecutionStatus) -> "StatusCounts":
        values = dict(self.__dict__)
        values[status.value] += 1
        return StatusCounts(**values)

    def __add__(self, other: "StatusCounts") -> "StatusCounts":
        return StatusCounts(**{k: v + other.__dict__[k] for k, v in self.__dict__.items()})

    @property
    def total(self) -> int:
        return sum(self.__dict__.values())

    @property
    def executed(self) -> int:
        return self.passed + self.failed + self.skipped


@dataclass(frozen=True)
class EnrichedStep:
    step: Step
    status: ExecutionStatus = ExecutionStatus.NOT_EXECUTED
    duration: float = 0.0
    error_message: Optional[str] = None
    text: str = ""
    matched: bool = False
    screenshots: Tuple[str, ...] = ()

    @property
    def keyword(self) -> str:
        return self.step.keyword


@dataclass(frozen=True)
class ExampleRowResult:
    """Outcome of one Examples row"""
    example: Example
    row: int
    status: ExecutionStatus = ExecutionStatus.NOT_EXECUTED
    duration: float = 0.0
    error_message: Optional[str] = None
    result: Optional[ScenarioExecutionResult] = None

    @property
    def values(self) -> Dict[str, str]:
        return self.example.row_values(self.row)


@dataclass(frozen=True)
class EnrichedScenario:
    scenario: Scenario
    rule: Optional[Rule] = None
    status: ExecutionStatus = ExecutionStatus.NOT_EXECUTED
    duration: float = 0.0
    error_message: Optional[str] = None
    failed_line: Optional[int] = None
    steps: Tuple[EnrichedStep, ...] = ()
    background_steps: Tuple[EnrichedStep, ...] = ()
    results: Tuple[ScenarioExecutionResult, ...] = ()
    example_results: Dict[int, ExampleRowResult] = field(default_factory=dict)
    tags: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.scenario.name

    @property
    def matched(self) -> bool:
        return bool(self.results)

    @property
    def row_statuses(self) -> Dict[int, ExecutionStatus]:
        """Example row index (across all Examples blocks) to outcome"""
        return {index: row.status for index, row in self.example_results.items()}


def feature_status(counts: StatusCounts) -> ExecutionStatus:
    if counts.failed:
        return ExecutionStatus.FAILED
    if counts.passed:
        return ExecutionStatus.PASSED
    if counts.skipped:
        return ExecutionStatus.SKIPPED
    return ExecutionStatus.NOT_EXECUTED


@dataclass(frozen=True)
class EnrichedFeature:
    feature: Feature
    scenarios: Tuple[EnrichedScenario, ...] = ()
    result: Optional[FeatureExecutionResult] = None

    @property
    def name(self) -> str:
        return self.feature.name

    @property
    def counts(self) -> StatusCounts:
        return reduce(lambda acc, s: acc.add(s.status), self.scenarios, StatusCounts())

    @property
    def passed_count(self) -> int:
        return self.counts.passed

    @property
    def failed_count(self) -> int:
        return self.counts.failed

    @property
    def skipped_count(self) -> int:
        return self.counts.skipped

    @property
    def status(self) -> ExecutionStatus:
        return feature_status(self.counts)

    @property
    def duration(self) -> float:
        return sum(s.duration for s in self.scenarios)

    def scenarios_for(self, rule: Optional[Rule]) -> List[EnrichedScenario]:
        """Scenarios of one rule, or the feature-level ones for None"""
        return [s for s in self.scenarios if s.rule is rule]


@dataclass(frozen=True)
class DocumentStatistics:
    total_features: int = 0
    total_scenarios: int = 0
    total_steps: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    pending: int = 0
    undefined: int = 0
    untested: int = 0
    unparsed_features: int = 0
    tag_distribution: Tuple[Tuple[str, int], ...] = ()

    @property
    def executed(self) -> int:
        return self.passed + self.failed + self.skipped

    def _rate(self, count: int) -> float:
        return round(count / self.executed * 100, 2) if self.executed else 0.0

    @property
    def pass_rate(self) -> float:
        return self._rate(self.passed)

    @property
    def fail_rate(self) -> float:
        return self._rate(self.failed)

    @property
    def skip_rate(self) -> float:
        return self._rate(self.skipped)

    @property
    def coverage(self) -> float:
        """Share of scenarios that have an execution result"""
        return round(self.executed / self.total_scenarios * 100, 2) if self.total_scenarios else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_features': self.total_features,
            'total_scenarios': self.total_scenarios,
            'total_steps': self.total_steps,
            'passed': self.passed,
            'failed': self.failed,
            'skipped': self.skipped,
            'pending': self.pending,
            'undefined': self.undefined,
            'untested': self.untested,
            'executed': self.executed,
            'unparsed_features': self.unparsed_features,
            'pass_rate': self.pass_rate,
            'fail_rate': self.fail_rate,
            'skip_rate': self.skip_rate,
            'coverage': self.coverage,
            'tag_distribution': dict(self.tag_distribution),
        }


def _step_dict(step: EnrichedStep) -> Dict[str, Any]:
    data = {
        'keyword': step.keyword,
        'text': step.text or step.step.text,
        'line': step.step.line,
        'status': step.status.value,
        'duration': step.duration,
        'error_message': step.error_message,
    }
    if step.step.doc_string is not None:
        data['doc_string'] = {'content': step.step.doc_string.content,
                              'media_type': step.step.doc_string.media_type}
    if step.step.data_table is not None:
        data['data_table'] = [list(row) for row in step.step.data_table.rows]
    if step.screenshots:
        data['screenshots'] = list(step.screenshots)
    return data


def _scenario_dict(scenario: EnrichedScenario) -> Dict[str, Any]:
    data = {
        'name': scenario.name,
        'type': scenario.scenario.type.value,
        'line': scenario.scenario.line,
        'rule': scenario.rule.name if scenario.rule else None,
        'description': scenario.scenario.description,
        'tags': list(scenario.scenario.tags),
        'status': scenario.status.value,
        'duration': scenario.duration,
        'error_message': scenario.error_message,
        'failed_line': scenario.failed_line,
        'steps': [_step_dict(s) for s in scenario.steps],
    }
    if scenario.scenario.is_outline:
        statuses = scenario.row_statuses
        examples = []
        index = 0
        for example in scenario.scenario.examples:
            rows = []
            for cells in example.rows:
                status = statuses.get(index, ExecutionStatus.NOT_EXECUTED)
                rows.append({'values': list(cells), 'status': status.value})
                index += 1
            examples.append({
                'name': example.name,
                'tags': list(example.tags),
                'header': list(example.header),
                'rows': rows,
            })
        data['examples'] = examples
    return data


def _feature_dict(feature: EnrichedFeature) -> Dict[str, Any]:
    counts = feature.counts
    background = feature.feature.background
    return {
        'name': feature.name,
        'description': feature.feature.description,
        'file_path': feature.feature.file_path,
        'language': feature.feature.language,
        'tags': list(feature.feature.tags),
        'status': feature.status.value,
        'duration': feature.duration,
        'counts': dict(counts.__dict__),
        'background': [s.keyword + ' ' + s.text for s in background.steps] if background else [],
        'rules': [{'name': r.name, 'description': r.description, 'tags': list(r.tags)}
                  for r in feature.feature.rules],
        'scenarios': [_scenario_dict(s) for s in feature.scenarios],
    }


@dataclass(frozen=True)
class EnrichedDocument:
    """Everything a renderer needs"""
    title: str = "Living Documentation"
    features: Tuple[EnrichedFeature, ...] = ()
    statistics: DocumentStatistics = field(default_factory=DocumentStatistics)
    parse_errors: Tuple[Exception, ...] = ()
    report_errors: Tuple[Exception, ...] = ()
    generated_at: Optional[datetime] = None
    sources: Tuple[str, ...] = ()

    @property
    def tag_distribution(self) -> Dict[str, int]:
        return dict(self.statistics.tag_distribution)

    def find_feature(self, name: str) -> Optional[EnrichedFeature]:
        return next((f for f in self.features if f.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready view of the document"""
        return {
            'title': self.title,
            'generated_at': self.generated_at.isoformat() if self.generated_at else None,
            'sources': list(self.sources),
            'statistics': self.statistics.to_dict(),
            'features': [_feature_dict(f) for f in self.features],
            'parse_errors': [str(e) for e in self.parse_errors],
            'report_errors': [str(e) for e in self.report_errors],
        }
