"""
Merge several execution reports (re-runs, parallel shards) into one
"""

from collections import OrderedDict
from dataclasses import replace
from typing import Dict, Iterable, List, Set, Tuple

from livingdoc.enrichment.normalize import normalize_name
from livingdoc.results.models import FeatureExecutionResult, ScenarioExecutionResult, TestExecutionReport
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

ScenarioKey = Tuple[str, str, int]


def is_newer(candidate: ScenarioExecutionResult, current: ScenarioExecutionResult) -> bool:
    """Latest timestamp wins; without two timestamps to compare, the later input wins"""
    if candidate.timestamp is not None and current.timestamp is not None:
        return candidate.timestamp >= current.timestamp
    return True


def scenario_keys(feature: FeatureExecutionResult) -> List[Tuple[ScenarioKey, ScenarioExecutionResult]]:
    """Key each scenario by normalized names plus its row (example index, else occurrence)"""
    feature_key = normalize_name(feature.name)
    seen: Dict[str, int] = {}
    used: Set[Tuple[str, int]] = set()
    keyed = []
    for scenario in feature.scenarios:
        name_key = normalize_name(scenario.name)
        ordinal = seen.get(name_key, 0)
        seen[name_key] = ordinal + 1
        row = scenario.example_index if scenario.example_index is not None else ordinal
        if (name_key, row) in used:
            # two entries of one report never replace each other
            row = ordinal
            while (name_key, row) in used:
                row += 1
        used.add((name_key, row))
        keyed.append(((feature_key, name_key, row), scenario))
    return keyed


def merge_reports(reports: Iterable[TestExecutionReport]) -> TestExecutionReport:
    """Single pass over all scenarios; first-seen order of features and scenarios is kept"""
    features: "OrderedDict[str, FeatureExecutionResult]" = OrderedDict()
    scenarios: Dict[str, "OrderedDict[ScenarioKey, ScenarioExecutionResult]"] = {}
    merged = TestExecutionReport()
    replaced = 0

    for report in reports:
        merged.sources.extend(s for s in report.sources if s not in merged.sources)
        merged.formats.extend(f for f in report.formats if f not in merged.formats)
        merged.environment.update(report.environment)
        merged.duration += report.duration
        if report.generated_at and (merged.generated_at is None or report.generated_at > merged.generated_at):
            merged.generated_at = report.generated_at

        for feature in report.features:
            feature_key = normalize_name(feature.name)
            target = features.get(feature_key)
            if target is None:
                target = replace(feature, scenarios=[], tags=list(feature.tags))
                features[feature_key] = target
                scenarios[feature_key] = OrderedDict()
            else:
                target.file_path = target.file_path or feature.file_path
                target.tags.extend(t for t in feature.tags if t not in target.tags)

            slots = scenarios[feature_key]
            for key, scenario in scenario_keys(feature):
                current = slots.get(key)
                if current is None:
                    slots[key] = scenario
                elif is_newer(scenario, current):
                    logger.debug(f"Merge: '{scenario.name}' replaced by newer result ({scenario.status.value})")
                    slots[key] = scenario
                    replaced += 1
                else:
                    logger.debug(f"Merge: kept newer result for '{current.name}'")

    for feature_key, feature in features.items():
        feature.scenarios = list(scenarios[feature_key].values())
        feature.duration = sum(s.duration for s in feature.scenarios)
        merged.features.append(feature)

    logger.debug(f"Merged {len(merged.sources)} sources into {len(merged.features)} features "
                 f"({replaced} results superseded)")
    return merged
