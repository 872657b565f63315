"""
Base classes for execution report adapters
"""

import re
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Dict, List, Optional

from livingdoc.core.exceptions import AdapterParseError
from livingdoc.results.models import ExecutionStatus, ReportFormat, ScenarioExecutionResult, TestExecutionReport
from livingdoc.results.step_output import mark_failed_step, parse_step_output
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

FAILED_LINE = re.compile(r'\.feature:(\d+)|line (\d+)')


def local_name(tag: str) -> str:
    return tag.rsplit('}', 1)[-1] if tag.startswith('{') else tag


def namespace_of(tag: str) -> str:
    return tag[1:].split('}', 1)[0] if tag.startswith('{') else ''


def element_text(element: Optional[ET.Element]) -> Optional[str]:
    if element is None:
        return None
    text = ''.join(element.itertext()).strip()
    return text or None


class ReportAdapter:
    """One report format: root sniffing, status vocabulary and parsing"""

    kind: ReportFormat = ReportFormat.UNKNOWN
    status_map: Dict[str, ExecutionStatus] = {}

    def matches_root(self, root_name: str, namespace: str, source: str = "") -> bool:
        return False

    def matches_json(self, prefix: str) -> bool:
        return False

    def parse(self, content: str, source: str = "") -> TestExecutionReport:
        try:
            report = self._parse(content, source)
        except AdapterParseError:
            raise
        except (ET.ParseError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise AdapterParseError(source or "<content>", self.kind.value, str(e)) from e
        report.sources = [source] if source else []
        report.formats = [self.kind]
        for feature in report.features:
            feature.scenarios = order_outline_rows(feature.scenarios)
        logger.debug(f"Parsed {self.kind.value} report {source or '<content>'}: "
                     f"{len(report.features)} features")
        return report

    def _parse(self, content: str, source: str) -> TestExecutionReport:
        raise NotImplementedError

    def map_status(self, value: Optional[str]) -> ExecutionStatus:
        """Native status to canonical status; unknown values are undefined"""
        key = (value or '').strip().lower()
        status = self.status_map.get(key)
        if status is None:
            logger.debug(f"Unmapped {self.kind.value} status '{value}', using undefined")
            return ExecutionStatus.UNDEFINED
        return status


class XmlReportAdapter(ReportAdapter):

    def load_root(self, content: str, source: str) -> ET.Element:
        try:
            return ET.fromstring(content)
        except ET.ParseError as e:
            raise AdapterParseError(source or "<content>", self.kind.value, f"malformed XML: {e}") from e


def apply_step_output(scenario: ScenarioExecutionResult, output: Optional[str]) -> None:
    """Attach steps recovered from console output to a scenario"""
    steps = parse_step_output(output)
    if not steps:
        return
    mark_failed_step(steps, scenario.status, scenario.error_message)
    scenario.steps = steps


def failed_line_from(*texts: Optional[str]) -> Optional[int]:
    for text in texts:
        if not text:
            continue
        match = FAILED_LINE.search(text)
        if match:
            return int(match.group(1) or match.group(2))
    return None


def stamp_missing(report: TestExecutionReport, timestamp: Optional[datetime]) -> None:
    """Formats without per-test times use the run start for every scenario"""
    if timestamp is None:
        return
    for _, scenario in report.all_scenarios():
        if scenario.timestamp is None:
            scenario.timestamp = timestamp


def order_outline_rows(scenarios: List[ScenarioExecutionResult]) -> List[ScenarioExecutionResult]:
    """Reorder rows of one outline by their row index hint, keeping the slots they occupy"""
    groups: Dict[str, List[int]] = {}
    for position, scenario in enumerate(scenarios):
        groups.setdefault(scenario.base_name, []).append(position)

    ordered = list(scenarios)
    for positions in groups.values():
        members = [scenarios[p] for p in positions]
        if len(members) < 2 or any(m.example_index is None for m in members):
            continue
        for position, member in zip(positions, sorted(members, key=lambda m: m.example_index)):
            ordered[position] = member
    return ordered
