"""
Document-wide statistics for the enriched model
"""

from collections import Counter
from functools import reduce
from typing import Iterable, Sequence

from livingdoc.enrichment.models import DocumentStatistics, EnrichedFeature, StatusCounts


def tag_distribution(features: Iterable[EnrichedFeature]) -> tuple:
    """Feature tags and each scenario's own tags, most used first"""
    counter = Counter()
    for enriched in features:
        counter.update(enriched.feature.tags)
        for scenario, _ in enriched.feature.all_scenarios():
            counter.update(scenario.tags)
    return tuple(sorted(counter.items(), key=lambda item: (-item[1], item[0])))


def _step_count(enriched: EnrichedFeature) -> int:
    feature = enriched.feature
    backgrounds = [feature.background] + [rule.background for rule in feature.rules]
    return (sum(len(s.scenario.steps) for s in enriched.scenarios)
            + sum(len(b.steps) for b in backgrounds if b is not None))


def compute_statistics(features: Sequence[EnrichedFeature], unparsed_features: int = 0) -> DocumentStatistics:
    counts = reduce(lambda acc, f: acc + f.counts, features, StatusCounts())
    return DocumentStatistics(
        total_features=len(features),
        total_scenarios=counts.total,
        total_steps=sum(_step_count(f) for f in features),
        passed=counts.passed,
        failed=counts.failed,
        skipped=counts.skipped,
        pending=counts.pending,
        undefined=counts.undefined,
        untested=counts.not_executed,
        unparsed_features=unparsed_features,
        tag_distribution=tag_distribution(features),
    )
