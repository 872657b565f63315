"""
Canonical execution report model shared by all report formats
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from livingdoc.utils.helpers import split_parameters


class ExecutionStatus(Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    PENDING = "pending"
    UNDEFINED = "undefined"
    NOT_EXECUTED = "not_executed"


class ReportFormat(Enum):
    NUNIT3 = "nunit3"
    NUNIT2 = "nunit2"
    XUNIT = "xunit"
    JUNIT = "junit"
    TRX = "trx"
    CUCUMBER_JSON = "cucumber_json"
    UNKNOWN = "unknown"


@dataclass
class StepExecutionResult:
    keyword: str
    text: str
    status: ExecutionStatus = ExecutionStatus.PASSED
    duration: float = 0.0
    error_message: Optional[str] = None
    line: Optional[int] = None
    stack_trace: Optional[str] = None
    screenshots: List[str] = field(default_factory=list)


@dataclass
class ScenarioExecutionResult:
    name: str
    status: ExecutionStatus = ExecutionStatus.NOT_EXECUTED
    duration: float = 0.0
    error_message: Optional[str] = None
    steps: List[StepExecutionResult] = field(default_factory=list)
    timestamp: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    stack_trace: Optional[str] = None
    attachments: List[str] = field(default_factory=list)
    screenshots: List[str] = field(default_factory=list)
    parameters: Tuple[str, ...] = ()
    named_parameters: Dict[str, str] = field(default_factory=dict)
    example_index: Optional[int] = None
    failed_line: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.parameters and not self.named_parameters:
            _, self.parameters, self.named_parameters = split_parameters(self.name)

    @property
    def base_name(self) -> str:
        """Name without an embedded '(...)' parameter suffix"""
        return split_parameters(self.name)[0]


@dataclass
class FeatureExecutionResult:
    name: str
    file_path: str = ""
    scenarios: List[ScenarioExecutionResult] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def status(self) -> ExecutionStatus:
        statuses = [s.status for s in self.scenarios]
        if ExecutionStatus.FAILED in statuses:
            return ExecutionStatus.FAILED
        if statuses and all(s == ExecutionStatus.SKIPPED for s in statuses):
            return ExecutionStatus.SKIPPED
        if ExecutionStatus.PASSED in statuses:
            return ExecutionStatus.PASSED
        return ExecutionStatus.NOT_EXECUTED


@dataclass
class ReportStatistics:
    total_scenarios: int = 0
    passed_scenarios: int = 0
    failed_scenarios: int = 0
    skipped_scenarios: int = 0
    pending_scenarios: int = 0
    undefined_scenarios: int = 0
    total_steps: int = 0
    passed_steps: int = 0
    failed_steps: int = 0
    skipped_steps: int = 0

    @property
    def pass_rate(self) -> float:
        return self.passed_scenarios / self.total_scenarios * 100 if self.total_scenarios else 0.0

    @property
    def fail_rate(self) -> float:
        return self.failed_scenarios / self.total_scenarios * 100 if self.total_scenarios else 0.0

    @classmethod
    def from_features(cls, features: List[FeatureExecutionResult]) -> "ReportStatistics":
        stats = cls()
        for feature in features:
            for scenario in feature.scenarios:
                stats.total_scenarios += 1
                if scenario.status == ExecutionStatus.PASSED:
                    stats.passed_scenarios += 1
                elif scenario.status == ExecutionStatus.FAILED:
                    stats.failed_scenarios += 1
                elif scenario.status == ExecutionStatus.SKIPPED:
                    stats.skipped_scenarios += 1
                elif scenario.status == ExecutionStatus.PENDING:
                    stats.pending_scenarios += 1
                elif scenario.status == ExecutionStatus.UNDEFINED:
                    stats.undefined_scenarios += 1

                stats.total_steps += len(scenario.steps)
                for step in scenario.steps:
                    if step.status == ExecutionStatus.PASSED:
                        stats.passed_steps += 1
                    elif step.status == ExecutionStatus.FAILED:
                        stats.failed_steps += 1
                    elif step.status == ExecutionStatus.SKIPPED:
                        stats.skipped_steps += 1
        return stats


@dataclass
class TestExecutionReport:
    """One execution report, or the merge of several"""
    __test__ = False

    features: List[FeatureExecutionResult] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    formats: List[ReportFormat] = field(default_factory=list)
    generated_at: Optional[datetime] = None
    duration: float = 0.0
    environment: Dict[str, str] = field(default_factory=dict)

    def all_scenarios(self) -> Iterator[Tuple[FeatureExecutionResult, ScenarioExecutionResult]]:
        for feature in self.features:
            for scenario in feature.scenarios:
                yield feature, scenario

    @property
    def statistics(self) -> ReportStatistics:
        return ReportStatistics.from_features(self.features)

    def summary(self) -> str:
        """Plain-text summary of the run"""
        stats = self.statistics
        sources = ', '.join(self.sources) or '<memory>'
        lines = [
            f"Report: {sources}",
            f"Formats: {', '.join(f.value for f in self.formats) or 'n/a'}",
            f"Features: {len(self.features)}",
            f"Scenarios: {stats.total_scenarios} (passed {stats.passed_scenarios}, "
            f"failed {stats.failed_scenarios}, skipped {stats.skipped_scenarios}, "
            f"pending {stats.pending_scenarios}, undefined {stats.undefined_scenarios})",
            f"Steps: {stats.total_steps} (passed {stats.passed_steps}, failed {stats.failed_steps}, "
            f"skipped {stats.skipped_steps})",
            f"Pass rate: {stats.pass_rate:.1f}%",
        ]
        if self.duration:
            lines.append(f"Duration: {self.duration:.2f}s")
        return '\n'.join(lines)
