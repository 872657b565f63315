"""
Recover step results from captured console output
Understands Reqnroll/SpecFlow trace lines, '<-- FAILED' markers and check-mark prefixes
"""

import re
from typing import List, Optional

from livingdoc.results.models import ExecutionStatus, StepExecutionResult

STEP_KEYWORDS = ('Given', 'When', 'Then', 'And', 'But', '*')
_MARK_PREFIXES = {
    '✓': ExecutionStatus.PASSED,
    '✗': ExecutionStatus.FAILED,
    '→': ExecutionStatus.NOT_EXECUTED,
}
_TRACE_DURATION = re.compile(r'\((\d+(?:\.\d+)?)s\)\s*$')
_LINE_NUMBER = re.compile(r'line (\d+)')
# Cucumber-JVM: "Given I have 5 cukes.............passed"
_DOTTED_STATUS = re.compile(r'^(.*?)\.{3,}\s*(passed|failed|skipped|pending|undefined)\s*$', re.IGNORECASE)


def _split_keyword(text: str):
    for keyword in STEP_KEYWORDS:
        if text.startswith(keyword + ' '):
            return keyword, text[len(keyword) + 1:].strip()
    return None, text


def _trace_status(line: str) -> Optional[ExecutionStatus]:
    body = line[2:].strip().lower()
    if body.startswith('done'):
        return ExecutionStatus.PASSED
    if body.startswith('error'):
        return ExecutionStatus.FAILED
    if body.startswith('skipped'):
        return ExecutionStatus.SKIPPED
    if body.startswith('pending'):
        return ExecutionStatus.PENDING
    if body.startswith('no matching step definition'):
        return ExecutionStatus.UNDEFINED
    return None


def parse_step_output(output: Optional[str]) -> List[StepExecutionResult]:
    """Build step results from console output, in output order"""
    steps: List[StepExecutionResult] = []
    if not output:
        return steps
    failure_seen = False

    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue

        if '<-- FAILED' in line or 'FAILED AT THIS STEP' in line:
            text = line.split('<--')[0].strip()
            keyword, rest = _split_keyword(text)
            if keyword:
                steps.append(StepExecutionResult(keyword, rest))
            if steps:
                steps[-1].status = ExecutionStatus.FAILED
                number = _LINE_NUMBER.search(line)
                if number:
                    steps[-1].line = int(number.group(1))
            failure_seen = True
            continue

        if line.startswith('->') and steps:
            status = _trace_status(line)
            if status is None:
                continue
            step = steps[-1]
            step.status = status
            duration = _TRACE_DURATION.search(line)
            if duration:
                step.duration = float(duration.group(1))
            if status == ExecutionStatus.FAILED:
                message = _TRACE_DURATION.sub('', line[2:].split(':', 1)[-1])
                step.error_message = message.strip() or None
                failure_seen = True
            continue

        mark = line[0]
        if mark in _MARK_PREFIXES:
            keyword, rest = _split_keyword(line[1:].strip())
            steps.append(StepExecutionResult(keyword or 'Given', rest, status=_MARK_PREFIXES[mark]))
            if mark == '✗':
                failure_seen = True
            continue

        keyword, rest = _split_keyword(line)
        if keyword:
            status = ExecutionStatus.SKIPPED if failure_seen else ExecutionStatus.PASSED
            dotted = _DOTTED_STATUS.match(rest)
            if dotted:
                rest, status = dotted.group(1).strip(), ExecutionStatus(dotted.group(2).lower())
                failure_seen = failure_seen or status == ExecutionStatus.FAILED
            steps.append(StepExecutionResult(keyword, rest, status=status))

    return steps


def mark_failed_step(steps: List[StepExecutionResult], status: ExecutionStatus,
                     error_message: Optional[str]) -> None:
    """A failed scenario whose output names no failed step gets its last step failed"""
    if status != ExecutionStatus.FAILED or not steps:
        return
    if any(step.status == ExecutionStatus.FAILED for step in steps):
        return
    steps[-1].status = ExecutionStatus.FAILED
    if error_message:
        steps[-1].error_message = error_message
