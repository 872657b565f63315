"""
Immutable Gherkin AST
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Tuple


class ScenarioType(Enum):
    SCENARIO = "Scenario"
    SCENARIO_OUTLINE = "ScenarioOutline"


@dataclass(frozen=True)
class Comment:
    text: str
    line: int = 0


@dataclass(frozen=True)
class DocString:
    content: str
    media_type: Optional[str] = None
    delimiter: str = '"""'
    line: int = 0


@dataclass(frozen=True)
class DataTable:
    rows: Tuple[Tuple[str, ...], ...]
    line: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.rows[0]) if self.rows else 0

    @property
    def header(self) -> Tuple[str, ...]:
        return self.rows[0] if self.rows else ()


@dataclass(frozen=True)
class Step:
    keyword: str
    text: str
    line: int = 0
    doc_string: Optional[DocString] = None
    data_table: Optional[DataTable] = None


@dataclass(frozen=True)
class Example:
    name: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()
    header: Tuple[str, ...] = ()
    rows: Tuple[Tuple[str, ...], ...] = ()
    line: int = 0

    def row_values(self, index: int) -> dict:
        """Header-to-cell mapping for one data row"""
        return dict(zip(self.header, self.rows[index]))


@dataclass(frozen=True)
class Background:
    name: str = ""
    description: str = ""
    steps: Tuple[Step, ...] = ()
    line: int = 0


@dataclass(frozen=True)
class Scenario:
    name: str
    type: ScenarioType = ScenarioType.SCENARIO
    description: str = ""
    tags: Tuple[str, ...] = ()
    comments: Tuple[Comment, ...] = ()
    steps: Tuple[Step, ...] = ()
    examples: Tuple[Example, ...] = ()
    line: int = 0

    @property
    def is_outline(self) -> bool:
        return self.type is ScenarioType.SCENARIO_OUTLINE

    def example_rows(self) -> List[Tuple[Example, int]]:
        """(example block, row index) pairs in document order"""
        return [(example, index) for example in self.examples for index in range(len(example.rows))]


@dataclass(frozen=True)
class Rule:
    name: str
    description: str = ""
    tags: Tuple[str, ...] = ()
    comments: Tuple[Comment, ...] = ()
    background: Optional[Background] = None
    scenarios: Tuple[Scenario, ...] = ()
    line: int = 0


@dataclass(frozen=True)
class Feature:
    name: str
    description: str = ""
    tags: Tuple[str, ...] = ()
    comments: Tuple[Comment, ...] = ()
    background: Optional[Background] = None
    rules: Tuple[Rule, ...] = ()
    scenarios: Tuple[Scenario, ...] = ()
    language: str = "en"
    file_path: str = ""
    line: int = 0

    def all_scenarios(self) -> Iterator[Tuple[Scenario, Optional[Rule]]]:
        """Feature-level scenarios followed by each rule's scenarios"""
        for scenario in self.scenarios:
            yield scenario, None
        for rule in self.rules:
            for scenario in rule.scenarios:
                yield scenario, rule

    def effective_tags(self, scenario: Scenario, rule: Optional[Rule] = None) -> Tuple[str, ...]:
        """Feature, rule and scenario tags in that order, without duplicates"""
        sources = [self.tags, rule.tags if rule else (), scenario.tags]
        seen = []
        for tags in sources:
            for tag in tags:
                if tag not in seen:
                    seen.append(tag)
        return tuple(seen)

    @property
    def scenario_count(self) -> int:
        return sum(1 for _ in self.all_scenarios())


def _tag_set(tags: Iterable[str]) -> set:
    return {tag.lstrip('@').lower() for tag in tags}


def _selected(tags: Tuple[str, ...], include: set, exclude: set) -> bool:
    own = _tag_set(tags)
    if exclude & own:
        return False
    return not include or bool(include & own)


def filter_by_tags(features: Iterable[Feature], include: Iterable[str] = (),
                   exclude: Iterable[str] = ()) -> List[Feature]:
    """New features holding only the scenarios whose inherited tags pass the filter"""
    include_set = _tag_set(include)
    exclude_set = _tag_set(exclude)
    result = []
    for feature in features:
        scenarios = tuple(s for s in feature.scenarios
                          if _selected(feature.effective_tags(s), include_set, exclude_set))
        rules = []
        for rule in feature.rules:
            kept = tuple(s for s in rule.scenarios
                         if _selected(feature.effective_tags(s, rule), include_set, exclude_set))
            if kept:
                rules.append(replace(rule, scenarios=kept))
        if scenarios or rules:
            result.append(replace(feature, scenarios=scenarios, rules=tuple(rules)))
    return result
