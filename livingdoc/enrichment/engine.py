"""
Correlation engine
Matches parsed features, scenarios and steps against a merged execution report
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from livingdoc.core.cache_manager import CacheManager
from livingdoc.enrichment.matcher import FeatureLookup, ScenarioIndex
from livingdoc.enrichment.models import (
    EnrichedDocument, EnrichedFeature, EnrichedScenario, EnrichedStep, ExampleRowResult,
)
from livingdoc.enrichment.normalize import NameNormalizer, normalize_text
from livingdoc.enrichment.statistics import compute_statistics
from livingdoc.parser.models import Example, Feature, Rule, Scenario, Step
from livingdoc.results.models import (
    ExecutionStatus, FeatureExecutionResult, ScenarioExecutionResult, StepExecutionResult, TestExecutionReport,
)
from livingdoc.utils.helpers import deep_get
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

_PLACEHOLDER = re.compile(r'<([^<>]+)>')


def aggregate_status(results: Sequence[ScenarioExecutionResult]) -> ExecutionStatus:
    """Failed if any failed, passed if all passed, otherwise the first result's status"""
    if not results:
        return ExecutionStatus.NOT_EXECUTED
    statuses = [r.status for r in results]
    if ExecutionStatus.FAILED in statuses:
        return ExecutionStatus.FAILED
    if all(s == ExecutionStatus.PASSED for s in statuses):
        return ExecutionStatus.PASSED
    return statuses[0]


def substitute(text: str, values: Dict[str, str]) -> str:
    """Replace <name> placeholders with example row values"""
    if not values:
        return text
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), text)


def _matches_row(result: ScenarioExecutionResult, example: Example, row: int) -> bool:
    cells = example.rows[row]
    if result.named_parameters:
        values = {k.lower(): v.strip() for k, v in example.row_values(row).items()}
        named = {k.lower(): v.strip() for k, v in result.named_parameters.items()}
        if all(k in values for k in named):
            return all(values[k] == v for k, v in named.items())
    if len(result.parameters) < len(cells):
        return False
    return tuple(p.strip() for p in result.parameters[:len(cells)]) == tuple(c.strip() for c in cells)


def assign_rows(scenario: Scenario,
                results: Sequence[ScenarioExecutionResult]) -> Dict[int, ScenarioExecutionResult]:
    """Example row index to result: row hint first, then parameter values, then position"""
    rows: List[Tuple[Example, int]] = scenario.example_rows()
    assigned: Dict[int, ScenarioExecutionResult] = {}
    pending = []

    for result in results:
        index = result.example_index
        if index is not None and 0 <= index < len(rows) and index not in assigned:
            assigned[index] = result
        else:
            pending.append(result)

    positional = []
    for result in pending:
        for index, (example, row) in enumerate(rows):
            if index not in assigned and _matches_row(result, example, row):
                assigned[index] = result
                break
        else:
            positional.append(result)

    free = (index for index in range(len(rows)) if index not in assigned)
    for result, index in zip(positional, free):
        assigned[index] = result
    return assigned


class CorrelationEngine:
    """Build an EnrichedDocument from parsed features and an execution report"""

    def __init__(self, config: Optional[Dict] = None):
        config = config or {}
        self.index_threshold = int(deep_get(config, 'correlation.index_threshold', 5))
        self.min_partial_length = int(deep_get(config, 'correlation.min_partial_length', 5))
        self.allow_partial_match = bool(deep_get(config, 'correlation.allow_partial_match', True))
        self.global_fallback = bool(deep_get(config, 'correlation.global_scenario_fallback', True))
        self.title = deep_get(config, 'project.title', None) or 'Living Documentation'
        self.normalizer = NameNormalizer(CacheManager(int(deep_get(config, 'correlation.cache_size', 4096))))

    def enrich(self, features: Sequence[Feature], report: Optional[TestExecutionReport] = None,
               parse_errors: Sequence[Exception] = (), report_errors: Sequence[Exception] = ()) -> EnrichedDocument:
        self.normalizer.clear()
        report = report or TestExecutionReport()

        lookup = FeatureLookup(report.features, self.normalizer, self.index_threshold,
                               self.min_partial_length, self.allow_partial_match)
        claimed = set()
        global_index = None

        pairs = []
        for feature in features:
            result = lookup.find(feature)
            if result is not None:
                logger.debug(f"Feature '{feature.name}' matched report feature '{result.name}'")
                index = self._index([result], claimed)
            elif report.features and self.global_fallback:
                logger.debug(f"Feature '{feature.name}' not in report, searching all scenarios")
                if global_index is None:
                    global_index = self._index(report.features, claimed)
                index = global_index
            else:
                logger.debug(f"Feature '{feature.name}' has no execution results")
                index = None
            pairs.append((feature, result, index))

        # exact names for every scenario first, then parameter-stripped names, then fuzzy tiers
        matches: Dict[int, List[ScenarioExecutionResult]] = {}
        for feature, result, index in pairs:
            if index is None:
                continue
            for scenario, _ in feature.all_scenarios():
                matches[id(scenario)] = index.match_exact(scenario)
        for feature, result, index in pairs:
            if index is None:
                continue
            for scenario, _ in feature.all_scenarios():
                matches[id(scenario)] = index.match_base(scenario, matches[id(scenario)])
        for feature, result, index in pairs:
            if index is None or result is None:
                continue
            for scenario, _ in feature.all_scenarios():
                if not matches[id(scenario)]:
                    matches[id(scenario)] = index.match_fallback(scenario)

        enriched = tuple(self._enrich_feature(feature, result, matches) for feature, result, _ in pairs)
        statistics = compute_statistics(enriched, len(parse_errors))
        logger.info(f"Enriched {statistics.total_features} features: {statistics.passed} passed, "
                    f"{statistics.failed} failed, {statistics.skipped} skipped, {statistics.untested} untested")
        return EnrichedDocument(
            title=self.title,
            features=enriched,
            statistics=statistics,
            parse_errors=tuple(parse_errors),
            report_errors=tuple(report_errors),
            generated_at=report.generated_at,
            sources=tuple(report.sources),
        )

    def _index(self, results: Sequence[FeatureExecutionResult], claimed: set) -> ScenarioIndex:
        scenarios = [s for feature in results for s in feature.scenarios]
        return ScenarioIndex(scenarios, self.normalizer, self.min_partial_length,
                             self.allow_partial_match, claimed)

    def _enrich_feature(self, feature: Feature, result: Optional[FeatureExecutionResult],
                        matches: Dict[int, List[ScenarioExecutionResult]]) -> EnrichedFeature:
        scenarios = []
        for scenario, rule in feature.all_scenarios():
            backgrounds = [b for b in (feature.background, rule.background if rule else None) if b]
            background_steps = [step for b in backgrounds for step in b.steps]
            scenarios.append(self._enrich_scenario(feature, scenario, rule, background_steps,
                                                   matches.get(id(scenario), [])))
        return EnrichedFeature(feature=feature, scenarios=tuple(scenarios), result=result)

    def _enrich_scenario(self, feature: Feature, scenario: Scenario, rule: Optional[Rule],
                         background_steps: List[Step],
                         results: List[ScenarioExecutionResult]) -> EnrichedScenario:
        tags = feature.effective_tags(scenario, rule)
        if not results:
            return EnrichedScenario(
                scenario=scenario,
                rule=rule,
                steps=tuple(EnrichedStep(step, text=step.text) for step in scenario.steps),
                background_steps=tuple(EnrichedStep(step, text=step.text) for step in background_steps),
                example_results=self._rows(scenario, {}),
                tags=tags,
            )

        status = aggregate_status(results)
        rows = assign_rows(scenario, results) if scenario.is_outline else {}
        representative = next((r for r in results if r.status == ExecutionStatus.FAILED), None)
        representative = representative or rows.get(0) or results[0]
        values = self._row_values(scenario, rows, representative)

        pool = list(representative.steps)
        background = tuple(self._enrich_step(step, pool, status, values) for step in background_steps)
        steps = tuple(self._enrich_step(step, pool, status, values) for step in scenario.steps)
        failed_step = next((s for s in background + steps
                            if s.matched and s.status == ExecutionStatus.FAILED), None)

        return EnrichedScenario(
            scenario=scenario,
            rule=rule,
            status=status,
            duration=sum(r.duration for r in results),
            error_message=representative.error_message,
            failed_line=representative.failed_line or (failed_step.step.line if failed_step else None),
            steps=steps,
            background_steps=background,
            results=tuple(results),
            example_results=self._rows(scenario, rows),
            tags=tags,
        )

    @staticmethod
    def _row_values(scenario: Scenario, rows: Dict[int, ScenarioExecutionResult],
                    representative: ScenarioExecutionResult) -> Dict[str, str]:
        example_rows = scenario.example_rows()
        for index, result in rows.items():
            if result is representative:
                example, row = example_rows[index]
                return example.row_values(row)
        return {}

    @staticmethod
    def _rows(scenario: Scenario, rows: Dict[int, ScenarioExecutionResult]) -> Dict[int, ExampleRowResult]:
        if not scenario.is_outline:
            return {}
        enriched = {}
        for index, (example, row) in enumerate(scenario.example_rows()):
            result = rows.get(index)
            if result is None:
                enriched[index] = ExampleRowResult(example, row)
            else:
                enriched[index] = ExampleRowResult(example, row, result.status, result.duration,
                                                   result.error_message, result)
        return enriched

    @staticmethod
    def _enrich_step(step: Step, pool: List[Optional[StepExecutionResult]], status: ExecutionStatus,
                     values: Dict[str, str]) -> EnrichedStep:
        """Match on keyword and normalized text; each step result is used once"""
        text = substitute(step.text, values)
        key = (step.keyword.strip(), normalize_text(text))
        for position, candidate in enumerate(pool):
            if candidate is None:
                continue
            if (candidate.keyword.strip(), normalize_text(candidate.text)) == key:
                pool[position] = None
                return EnrichedStep(step, candidate.status, candidate.duration, candidate.error_message,
                                    text, True, tuple(candidate.screenshots))
        return EnrichedStep(step, status, text=text)
