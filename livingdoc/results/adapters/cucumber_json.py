"""
Cucumber JSON results (array of features with 'elements')
"""

import json
from typing import Dict, List, Optional, Set, Tuple

from livingdoc.core.exceptions import AdapterParseError
from livingdoc.results.adapters.base import ReportAdapter, failed_line_from
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ReportFormat, ScenarioExecutionResult, StepExecutionResult,
    TestExecutionReport,
)
from livingdoc.utils.helpers import parse_timestamp

NANOSECONDS = 1_000_000_000


def _tags(node: dict) -> List[str]:
    return [t.get('name', '') for t in node.get('tags') or [] if t.get('name')]


def _row_hint(element_id: str) -> Optional[Tuple[str, str, int]]:
    """'feature;scenario;examples;3' -> ('scenario', 'examples', 1); row 1 is the header"""
    parts = (element_id or '').split(';')
    if len(parts) < 4 or not parts[-1].isdigit():
        return None
    return parts[1], parts[-2], max(int(parts[-1]) - 2, 0)


class CucumberJsonAdapter(ReportAdapter):
    kind = ReportFormat.CUCUMBER_JSON
    status_map = {
        'passed': ExecutionStatus.PASSED,
        'failed': ExecutionStatus.FAILED,
        'skipped': ExecutionStatus.SKIPPED,
        'pending': ExecutionStatus.PENDING,
        'undefined': ExecutionStatus.UNDEFINED,
        'ambiguous': ExecutionStatus.FAILED,
    }

    def matches_json(self, prefix: str) -> bool:
        text = prefix.lstrip('﻿ \t\r\n')
        if not text.startswith('['):
            return False
        if text[1:].strip().startswith(']'):
            return True
        # a long feature description can push 'elements' past the prefix
        return '"elements"' in text or ('"uri"' in text and '"keyword"' in text)

    def _parse(self, content: str, source: str) -> TestExecutionReport:
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise AdapterParseError(source or "<content>", self.kind.value, f"malformed JSON: {e}") from e
        if not isinstance(data, list):
            raise AdapterParseError(source or "<content>", self.kind.value, "top level must be an array")

        report = TestExecutionReport()
        for node in data:
            if not isinstance(node, dict):
                raise AdapterParseError(source or "<content>", self.kind.value, "feature entries must be objects")
            feature = self._parse_feature(node)
            report.features.append(feature)
            report.duration += feature.duration

        stamps = [s.timestamp for _, s in report.all_scenarios() if s.timestamp]
        report.generated_at = min(stamps) if stamps else None
        return report

    def _parse_feature(self, node: dict) -> FeatureExecutionResult:
        feature = FeatureExecutionResult(
            name=node.get('name') or 'Unknown Feature',
            file_path=node.get('uri') or '',
            tags=_tags(node),
        )

        background: List[StepExecutionResult] = []
        hints = []
        for element in node.get('elements') or []:
            steps = [self._parse_step(step) for step in element.get('steps') or []]
            if element.get('type') == 'background':
                background = steps
                continue
            scenario = self._parse_scenario(element, background + steps)
            background = []
            feature.scenarios.append(scenario)
            feature.duration += scenario.duration
            hints.append((scenario, _row_hint(element.get('id', ''))))

        self._assign_row_indexes(hints)
        return feature

    @staticmethod
    def _assign_row_indexes(hints):
        """Row hints restart per Examples block; turn them into one index per outline.

        Blocks are told apart by their slug and, for blocks sharing a slug (unnamed Examples),
        by a row number repeating. Offsets follow the order blocks first appear.
        """
        order: Dict[str, List[Tuple[str, str, int]]] = {}
        rows: Dict[Tuple[str, str, int], Set[int]] = {}
        occurrence: Dict[Tuple[str, str], int] = {}
        placed = []
        for scenario, hint in hints:
            if not hint:
                continue
            outline, slug, row = hint
            block = (outline, slug, occurrence.get((outline, slug), 0))
            if row in rows.get(block, ()):
                occurrence[(outline, slug)] = block[2] + 1
                block = (outline, slug, block[2] + 1)
            if block not in rows:
                rows[block] = set()
                order.setdefault(outline, []).append(block)
            rows[block].add(row)
            placed.append((scenario, block, row))

        sizes = {block: max(seen) + 1 for block, seen in rows.items()}
        for scenario, block, row in placed:
            blocks = order[block[0]]
            scenario.example_index = sum(sizes[b] for b in blocks[:blocks.index(block)]) + row

    def _parse_step(self, step: dict) -> StepExecutionResult:
        result = step.get('result') or {}
        status = self.map_status(result.get('status'))
        parsed = StepExecutionResult(
            keyword=(step.get('keyword') or '').strip(),
            text=step.get('name') or '',
            status=status,
            duration=(result.get('duration') or 0) / NANOSECONDS,
            line=step.get('line'),
        )
        if status == ExecutionStatus.FAILED and result.get('error_message'):
            message = result['error_message']
            parsed.error_message = message.split('\n', 1)[0]
            parsed.stack_trace = message.split('\n', 1)[1] if '\n' in message else None
        for embedding in step.get('embeddings') or []:
            mime = embedding.get('mime_type') or (embedding.get('media') or {}).get('type') or ''
            if mime.startswith('image/'):
                parsed.screenshots.append(f"data:{mime};base64,{embedding.get('data', '')}")
        return parsed

    def _hook_failure(self, element: dict) -> Optional[str]:
        for hook in (element.get('before') or []) + (element.get('after') or []):
            result = hook.get('result') or {}
            if self.map_status(result.get('status')) == ExecutionStatus.FAILED:
                return result.get('error_message') or 'Hook failed'
        return None

    def _parse_scenario(self, element: dict, steps: List[StepExecutionResult]) -> ScenarioExecutionResult:
        scenario = ScenarioExecutionResult(
            name=element.get('name') or 'Unknown Scenario',
            steps=steps,
            duration=sum(step.duration for step in steps),
            timestamp=parse_timestamp(element.get('start_timestamp')),
            tags=_tags(element),
        )
        scenario.metadata['Keyword'] = element.get('keyword', '')

        failed = next((s for s in steps if s.status == ExecutionStatus.FAILED), None)
        hook_error = self._hook_failure(element)
        if failed is not None:
            scenario.status = ExecutionStatus.FAILED
            scenario.error_message = failed.error_message
            scenario.stack_trace = failed.stack_trace
            scenario.failed_line = failed.line or failed_line_from(failed.stack_trace)
        elif hook_error:
            scenario.status = ExecutionStatus.FAILED
            scenario.error_message = hook_error.split('\n', 1)[0]
            scenario.stack_trace = hook_error
        else:
            scenario.status = self._aggregate(steps)

        for step in steps:
            scenario.screenshots.extend(step.screenshots)
        return scenario

    @staticmethod
    def _aggregate(steps: List[StepExecutionResult]) -> ExecutionStatus:
        statuses = [step.status for step in steps]
        if not statuses:
            return ExecutionStatus.NOT_EXECUTED
        if all(status == ExecutionStatus.PASSED for status in statuses):
            return ExecutionStatus.PASSED
        for status in (ExecutionStatus.UNDEFINED, ExecutionStatus.PENDING, ExecutionStatus.SKIPPED):
            if status in statuses:
                return status
        return ExecutionStatus.UNDEFINED
