"""
Feature parser
Builds the Gherkin AST from lexer tokens and parses feature files in batches
"""

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from livingdoc.core.exceptions import ParseError
from livingdoc.parser.lexer import Lexer, Token, TokenType
from livingdoc.parser.models import (
    Background, Comment, DataTable, DocString, Example, Feature, Rule, Scenario, ScenarioType, Step,
    filter_by_tags,
)
from livingdoc.utils.helpers import deep_get
from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

TAGGABLE = (TokenType.FEATURE, TokenType.RULE, TokenType.SCENARIO,
            TokenType.SCENARIO_OUTLINE, TokenType.EXAMPLES)


class _StepDraft:
    def __init__(self, token: Token):
        self.keyword = token.keyword
        self.text = token.text
        self.line = token.line
        self.doc_string: Optional[DocString] = None
        self.table_rows: List[Tuple[int, Tuple[str, ...]]] = []

    def build(self, file_path: str) -> Step:
        table = None
        if self.table_rows:
            width = len(self.table_rows[0][1])
            for line, cells in self.table_rows[1:]:
                if len(cells) != width:
                    raise ParseError(f"Inconsistent cell count: row has {len(cells)} cells, "
                                     f"expected {width}", file_path, line)
            table = DataTable(rows=tuple(cells for _, cells in self.table_rows), line=self.table_rows[0][0])
        return Step(keyword=self.keyword, text=self.text, line=self.line,
                    doc_string=self.doc_string, data_table=table)


class _ExamplesDraft:
    def __init__(self, token: Token, tags: List[str]):
        self.name = token.text
        self.line = token.line
        self.tags = tags
        self.description: List[str] = []
        self.rows: List[Tuple[int, Tuple[str, ...]]] = []

    @property
    def has_data(self) -> bool:
        return len(self.rows) > 1

    def build(self, file_path: str) -> Example:
        if not self.rows:
            return Example(name=self.name, description='\n'.join(self.description),
                           tags=tuple(self.tags), line=self.line)
        header = self.rows[0][1]
        for line, cells in self.rows[1:]:
            if len(cells) != len(header):
                raise ParseError(f"Examples row has {len(cells)} cells but the header has {len(header)}: "
                                 f"| {' | '.join(cells)} |", file_path, line)
        return Example(name=self.name, description='\n'.join(self.description), tags=tuple(self.tags),
                       header=header, rows=tuple(cells for _, cells in self.rows[1:]), line=self.line)


class _StepContainerDraft:
    def __init__(self, token: Token):
        self.name = token.text
        self.line = token.line
        self.description: List[str] = []
        self.steps: List[_StepDraft] = []

    def build_steps(self, file_path: str) -> Tuple[Step, ...]:
        return tuple(step.build(file_path) for step in self.steps)


class _BackgroundDraft(_StepContainerDraft):
    def build(self, file_path: str) -> Background:
        return Background(name=self.name, description='\n'.join(self.description),
                          steps=self.build_steps(file_path), line=self.line)


class _ScenarioDraft(_StepContainerDraft):
    def __init__(self, token: Token, tags: List[str], comments: List[Comment]):
        super().__init__(token)
        self.type = (ScenarioType.SCENARIO_OUTLINE if token.type == TokenType.SCENARIO_OUTLINE
                     else ScenarioType.SCENARIO)
        self.tags = tags
        self.comments = comments
        self.examples: List[_ExamplesDraft] = []

    def build(self, file_path: str) -> Scenario:
        if self.type is ScenarioType.SCENARIO_OUTLINE and not any(e.has_data for e in self.examples):
            raise ParseError(f"Scenario Outline '{self.name}' has no Examples with data rows",
                             file_path, self.line)
        return Scenario(name=self.name, type=self.type, description='\n'.join(self.description),
                        tags=tuple(self.tags), comments=tuple(self.comments),
                        steps=self.build_steps(file_path),
                        examples=tuple(e.build(file_path) for e in self.examples), line=self.line)


class _RuleDraft:
    def __init__(self, token: Token, tags: List[str], comments: List[Comment]):
        self.name = token.text
        self.line = token.line
        self.tags = tags
        self.comments = comments
        self.description: List[str] = []
        self.background: Optional[_BackgroundDraft] = None
        self.scenarios: List[_ScenarioDraft] = []

    def build(self, file_path: str) -> Rule:
        return Rule(name=self.name, description='\n'.join(self.description), tags=tuple(self.tags),
                    comments=tuple(self.comments),
                    background=self.background.build(file_path) if self.background else None,
                    scenarios=tuple(s.build(file_path) for s in self.scenarios), line=self.line)


class _FeatureDraft(_RuleDraft):
    def __init__(self, token: Token, tags: List[str], comments: List[Comment]):
        super().__init__(token, tags, comments)
        self.rules: List[_RuleDraft] = []

    def build_feature(self, file_path: str, language: str) -> Feature:
        return Feature(name=self.name, description='\n'.join(self.description), tags=tuple(self.tags),
                       comments=tuple(self.comments),
                       background=self.background.build(file_path) if self.background else None,
                       rules=tuple(r.build(file_path) for r in self.rules),
                       scenarios=tuple(s.build(file_path) for s in self.scenarios),
                       language=language, file_path=file_path, line=self.line)


class GherkinBuilder:
    """Single forward pass over the token stream with an explicit container stack"""

    def __init__(self, file_path: str = ""):
        self.file_path = file_path
        self.language = "en"
        self.feature: Optional[_FeatureDraft] = None
        self.rule: Optional[_RuleDraft] = None
        self.container: Optional[_StepContainerDraft] = None
        self.examples: Optional[_ExamplesDraft] = None
        self.step: Optional[_StepDraft] = None
        self.description_target = None
        self.pending_tags: List[str] = []
        self.pending_tags_line: Optional[int] = None
        self.pending_comments: List[Comment] = []

    def error(self, reason: str, line: Optional[int]) -> ParseError:
        return ParseError(reason, self.file_path, line)

    def build(self, tokens: Sequence[Token], language: str = "en") -> Feature:
        self.language = language
        for token in tokens:
            self._shift(token)
        return self._finish()

    def _shift(self, token: Token):
        kind = token.type

        if kind == TokenType.LANGUAGE:
            self.language = token.text
            return
        if kind == TokenType.COMMENT:
            self.pending_comments.append(Comment(token.text, token.line))
            return
        if kind == TokenType.TAGS:
            if self.pending_tags_line is None:
                self.pending_tags_line = token.line
            self.pending_tags.extend(token.tags)
            self.description_target = None
            return

        if self.pending_tags_line is not None and kind not in TAGGABLE:
            raise self.error("Tags must be followed by Feature, Rule, Scenario, Scenario Outline or Examples",
                             self.pending_tags_line)

        if kind == TokenType.FEATURE:
            self._open_feature(token)
            return

        if self.feature is None:
            raise self.error(f"Expected 'Feature:' but found {self._describe(token)}", token.line)

        handler = {
            TokenType.BACKGROUND: self._open_background,
            TokenType.RULE: self._open_rule,
            TokenType.SCENARIO: self._open_scenario,
            TokenType.SCENARIO_OUTLINE: self._open_scenario,
            TokenType.EXAMPLES: self._open_examples,
            TokenType.STEP: self._add_step,
            TokenType.TABLE_ROW: self._add_table_row,
            TokenType.DOC_STRING: self._add_doc_string,
            TokenType.TEXT: self._add_text,
        }[kind]
        handler(token)

    @staticmethod
    def _describe(token: Token) -> str:
        if token.keyword:
            return f"'{token.keyword}'"
        if token.type == TokenType.TEXT:
            return f"text '{token.text}'"
        return token.type.value.replace('_', ' ')

    def _take_tags(self) -> List[str]:
        tags = self.pending_tags
        self.pending_tags = []
        self.pending_tags_line = None
        return tags

    def _take_comments(self) -> List[Comment]:
        comments = self.pending_comments
        self.pending_comments = []
        return comments

    def _flush_comments(self):
        """Comments not followed by a header belong to the enclosing container"""
        if not self.pending_comments:
            return
        if isinstance(self.container, _ScenarioDraft):
            owner = self.container
        else:
            owner = self.rule or self.feature
        if owner is not None:
            owner.comments.extend(self._take_comments())

    def _close_scenario(self):
        self.container = None
        self.examples = None
        self.step = None

    def _open_feature(self, token: Token):
        if self.feature is not None:
            raise self.error("Duplicate 'Feature:' keyword; only one Feature is allowed per file", token.line)
        self.feature = _FeatureDraft(token, self._take_tags(), self._take_comments())
        self.description_target = self.feature

    def _open_background(self, token: Token):
        self._flush_comments()
        level = self.rule or self.feature
        where = "Rule" if self.rule else "Feature"
        if level.background is not None:
            raise self.error(f"Duplicate Background in {where} '{level.name}'", token.line)
        if level.scenarios:
            raise self.error(f"Background must appear before any Scenario in {where} '{level.name}'",
                             token.line)
        self._close_scenario()
        level.background = _BackgroundDraft(token)
        self.container = level.background
        self.description_target = level.background

    def _open_rule(self, token: Token):
        self._close_scenario()
        self.rule = _RuleDraft(token, self._take_tags(), self._take_comments())
        self.feature.rules.append(self.rule)
        self.description_target = self.rule

    def _open_scenario(self, token: Token):
        self._close_scenario()
        scenario = _ScenarioDraft(token, self._take_tags(), self._take_comments())
        (self.rule or self.feature).scenarios.append(scenario)
        self.container = scenario
        self.description_target = scenario

    def _open_examples(self, token: Token):
        scenario = self.container
        if not isinstance(scenario, _ScenarioDraft) or scenario.type is not ScenarioType.SCENARIO_OUTLINE:
            raise self.error("Examples are only allowed inside a Scenario Outline", token.line)
        self._flush_comments()
        self.examples = _ExamplesDraft(token, self._take_tags())
        scenario.examples.append(self.examples)
        self.step = None
        self.description_target = self.examples

    def _add_step(self, token: Token):
        self._flush_comments()
        if self.container is None:
            raise self.error(f"Step '{token.keyword} {token.text}' is outside of a Scenario or Background",
                             token.line)
        if self.examples is not None:
            raise self.error("Steps cannot follow an Examples block", token.line)
        self.step = _StepDraft(token)
        self.container.steps.append(self.step)
        self.description_target = None

    def _add_table_row(self, token: Token):
        self._flush_comments()
        self.description_target = None
        if self.examples is not None:
            self.examples.rows.append((token.line, token.cells))
            return
        if self.step is None:
            raise self.error("Table row is not attached to a Step or Examples block", token.line)
        if self.step.doc_string is not None:
            raise self.error("A Step cannot have both a doc string and a data table", token.line)
        self.step.table_rows.append((token.line, token.cells))

    def _add_doc_string(self, token: Token):
        self._flush_comments()
        self.description_target = None
        if not token.closed:
            raise self.error("Unterminated doc string", token.line)
        if self.step is None or self.examples is not None:
            raise self.error("Doc string is not attached to a Step", token.line)
        if self.step.table_rows:
            raise self.error("A Step cannot have both a doc string and a data table", token.line)
        if self.step.doc_string is not None:
            raise self.error("A Step can have only one doc string", token.line)
        self.step.doc_string = DocString(content=token.text, media_type=token.media_type,
                                         delimiter=token.keyword, line=token.line)

    def _add_text(self, token: Token):
        if self.description_target is None:
            raise self.error(f"Unexpected text '{token.text}'", token.line)
        self.description_target.description.append(token.text)

    def _finish(self) -> Feature:
        if self.pending_tags_line is not None:
            raise self.error("Tags at end of file are not followed by any element", self.pending_tags_line)
        if self.feature is None:
            raise self.error("No 'Feature:' found", None)
        self._flush_comments()
        return self.feature.build_feature(self.file_path, self.language)


@dataclass
class ParseBatchResult:
    """Features parsed from a batch of files plus one error per failed file"""
    features: List[Feature] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def total_files(self) -> int:
        return len(self.features) + len(self.errors)


def parse_text(text: str, file_path: str = "", language: Optional[str] = None) -> Feature:
    """Parse feature text into a Feature; raises ParseError"""
    lexer = Lexer(language)
    tokens = lexer.tokenize(text)
    return GherkinBuilder(file_path).build(tokens, lexer.language)


def read_feature_file(path: Union[str, Path]) -> str:
    try:
        with open(path, 'r', encoding='utf-8-sig') as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot read feature file: {e}", str(path)) from e


def _parse_path(path: str, language: Optional[str]) -> Tuple[Optional[Feature], Optional[ParseError]]:
    """Worker entry point; returns the error instead of raising so pools never abort"""
    try:
        return parse_text(read_feature_file(path), path, language), None
    except ParseError as e:
        return None, e


class FeatureParser:
    """Parse Gherkin feature files"""

    def __init__(self, features_dir: str = ".", config: Optional[Dict] = None):
        self.features_dir = Path(features_dir)
        config = config or {}
        self.language = deep_get(config, 'parser.language', None) or 'en'
        self.parallel = int(deep_get(config, 'parser.parallel', 4) or 1)
        self.use_processes = bool(deep_get(config, 'parser.use_processes', False))
        self.fail_fast = bool(deep_get(config, 'parser.fail_fast', False))
        self.pattern = deep_get(config, 'parser.pattern', '**/*.feature') or '**/*.feature'

    def parse_text(self, text: str, file_path: str = "") -> Feature:
        return parse_text(text, file_path, self.language)

    def parse_file(self, file_path: Union[str, Path]) -> Feature:
        """Parse a single feature file; raises ParseError"""
        return parse_text(read_feature_file(file_path), str(file_path), self.language)

    def discover(self) -> List[Path]:
        return sorted(p for p in self.features_dir.glob(self.pattern) if p.is_file())

    def parse_features(self, tags: Optional[List[str]] = None,
                       exclude_tags: Optional[List[str]] = None) -> ParseBatchResult:
        """Parse all feature files in directory"""
        feature_files = self.discover()
        logger.info(f"Found {len(feature_files)} feature files in {self.features_dir}")

        result = self.parse_files(feature_files)
        if tags or exclude_tags:
            result.features = filter_by_tags(result.features, tags or (), exclude_tags or ())
        return result

    def parse_files(self, paths: Sequence[Union[str, Path]]) -> ParseBatchResult:
        """Parse many files; failures are collected, never raised"""
        paths = [str(p) for p in paths]
        if self.parallel <= 1 or len(paths) <= 1:
            outcomes = self._parse_sequential(paths)
        else:
            outcomes = self._parse_parallel(paths)

        result = ParseBatchResult()
        for path in paths:
            if path not in outcomes:
                continue
            feature, error = outcomes[path]
            if error is not None:
                logger.warning(f"Failed to parse {error}")
                result.errors.append(error)
            elif feature is not None:
                logger.debug(f"Parsed {path}: '{feature.name}' ({feature.scenario_count} scenarios)")
                result.features.append(feature)

        logger.info(f"Parsed {len(result.features)} features, {len(result.errors)} failed")
        return result

    def _parse_sequential(self, paths: List[str]) -> Dict[str, Tuple[Optional[Feature], Optional[ParseError]]]:
        outcomes = {}
        for path in paths:
            outcomes[path] = _parse_path(path, self.language)
            if self.fail_fast and outcomes[path][1] is not None:
                break
        return outcomes

    def _parse_parallel(self, paths: List[str]) -> Dict[str, Tuple[Optional[Feature], Optional[ParseError]]]:
        pool_class = ProcessPoolExecutor if self.use_processes else ThreadPoolExecutor
        outcomes = {}
        with pool_class(max_workers=min(self.parallel, len(paths))) as executor:
            futures = {executor.submit(_parse_path, path, self.language): path for path in paths}
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                path = futures[future]
                outcomes[path] = future.result()
                if self.fail_fast and outcomes[path][1] is not None:
                    for pending in futures:
                        pending.cancel()
                    break
        return outcomes
