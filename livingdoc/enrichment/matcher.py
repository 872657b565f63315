"""
Feature and scenario lookup against execution results
Exact normalized matches first, then suffix-stripped equality, then guarded containment
"""

import re
from typing import Dict, Iterable, List, Optional, Set

from livingdoc.enrichment.normalize import NameNormalizer, path_key, strip_class_suffixes
from livingdoc.parser.models import Feature, Scenario
from livingdoc.results.models import FeatureExecutionResult, ScenarioExecutionResult
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

_PLACEHOLDER = re.compile(r'<[^<>]+>')


def contains_either(a: str, b: str, min_length: int) -> bool:
    """Containment in either direction, only for names of at least min_length"""
    if len(a) < min_length or len(b) < min_length:
        return False
    return a in b or b in a


class FeatureLookup:
    """Find the report feature for a parsed feature by name or file basename"""

    def __init__(self, results: Iterable[FeatureExecutionResult], normalizer: NameNormalizer,
                 index_threshold: int = 5, min_partial_length: int = 5, allow_partial_match: bool = True):
        self.results = list(results)
        self.normalizer = normalizer
        self.min_partial_length = min_partial_length
        self.allow_partial_match = allow_partial_match
        self.indexed = len(self.results) > index_threshold
        self.by_name: Dict[str, FeatureExecutionResult] = {}
        self.by_path: Dict[str, FeatureExecutionResult] = {}
        self.claimed: Set[int] = set()
        if self.indexed:
            for result in self.results:
                self.by_name.setdefault(normalizer.name(result.name), result)
                key = path_key(result.file_path)
                if key:
                    self.by_path.setdefault(key, result)

    def find(self, feature: Feature) -> Optional[FeatureExecutionResult]:
        result = self._exact(feature) or self._fallback(feature)
        if result is not None:
            self.claimed.add(id(result))
        return result

    def _exact(self, feature: Feature) -> Optional[FeatureExecutionResult]:
        name = self.normalizer.name(feature.name)
        path = path_key(feature.file_path)
        if self.indexed:
            return self.by_name.get(name) or (self.by_path.get(path) if path else None)
        for result in self.results:
            if self.normalizer.name(result.name) == name:
                return result
        if path:
            for result in self.results:
                if path_key(result.file_path) == path:
                    return result
        return None

    def _fallback(self, feature: Feature) -> Optional[FeatureExecutionResult]:
        name = self.normalizer.name(feature.name)
        loose = strip_class_suffixes(name)
        candidates = [r for r in self.results if id(r) not in self.claimed]
        for result in candidates:
            if self.normalizer.loose(result.name) == loose:
                logger.debug(f"Feature '{feature.name}' matched '{result.name}' without class suffixes")
                return result
        if not self.allow_partial_match:
            return None
        for result in candidates:
            if contains_either(name, self.normalizer.name(result.name), self.min_partial_length):
                logger.debug(f"Feature '{feature.name}' matched '{result.name}' by containment")
                return result
        return None


class ScenarioIndex:
    """Results of one feature (or the whole report) indexed by normalized name and base name"""

    def __init__(self, results: Iterable[ScenarioExecutionResult], normalizer: NameNormalizer,
                 min_partial_length: int = 5, allow_partial_match: bool = True,
                 claimed: Optional[Set[int]] = None):
        self.results = list(results)
        self.normalizer = normalizer
        self.min_partial_length = min_partial_length
        self.allow_partial_match = allow_partial_match
        self.claimed = claimed if claimed is not None else set()
        self.by_name: Dict[str, List[ScenarioExecutionResult]] = {}
        self.by_base: Dict[str, List[ScenarioExecutionResult]] = {}
        self.position = {id(r): i for i, r in enumerate(self.results)}
        for result in self.results:
            self.by_name.setdefault(normalizer.name(result.name), []).append(result)
            self.by_base.setdefault(normalizer.base(result.name), []).append(result)

    def _unclaimed(self, results: Iterable[ScenarioExecutionResult]) -> List[ScenarioExecutionResult]:
        return [r for r in results if id(r) not in self.claimed]

    def claim(self, results: List[ScenarioExecutionResult]) -> List[ScenarioExecutionResult]:
        self.claimed.update(id(r) for r in results)
        return results

    def match_exact(self, scenario: Scenario) -> List[ScenarioExecutionResult]:
        """Normalized name equality"""
        key = self.normalizer.name(scenario.name)
        return self.claim(self._unclaimed(self.by_name.get(key, [])))

    def match_base(self, scenario: Scenario, found: List[ScenarioExecutionResult]) -> List[ScenarioExecutionResult]:
        """Results named like the scenario plus a parameter suffix.

        Outline rows always take them; a plain scenario only when nothing matched its exact name.
        """
        if found and not scenario.is_outline:
            return found
        key = self.normalizer.name(scenario.name)
        rows = self.claim(self._unclaimed(self.by_base.get(key, [])))
        if not rows:
            return found
        return sorted(found + rows, key=lambda r: self.position[id(r)])

    def match_fallback(self, scenario: Scenario) -> List[ScenarioExecutionResult]:
        candidates = self._unclaimed(self.results)
        if not candidates:
            return []

        loose = strip_class_suffixes(self.normalizer.name(scenario.name))
        found = [r for r in candidates if strip_class_suffixes(self.normalizer.base(r.name)) == loose]
        if found:
            return self.claim(found)

        if scenario.is_outline:
            # "Add <a> and <b>" matches "Add 1 and 2" on the text before the first placeholder
            prefix = self.normalizer.name(_PLACEHOLDER.split(scenario.name)[0])
            if len(prefix) >= self.min_partial_length:
                found = [r for r in candidates if self.normalizer.base(r.name).startswith(prefix)]
                if found:
                    return self.claim(found)

        if not self.allow_partial_match:
            return []
        key = self.normalizer.name(scenario.name)
        found = [r for r in candidates
                 if contains_either(key, self.normalizer.base(r.name), self.min_partial_length)]
        if found and not scenario.is_outline:
            found = found[:1]
        return self.claim(found)
