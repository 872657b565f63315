"""
Localized Gherkin keyword tables
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from livingdoc.utils.logger import setup_logger

logger = setup_logger(__name__)

KEYWORDS_FILE = Path(__file__).parent / "keywords.yaml"
DEFAULT_LANGUAGE = "en"


class KeywordRole(Enum):
    FEATURE = "feature"
    BACKGROUND = "background"
    RULE = "rule"
    SCENARIO = "scenario"
    SCENARIO_OUTLINE = "scenarioOutline"
    EXAMPLES = "examples"
    GIVEN = "given"
    WHEN = "when"
    THEN = "then"
    AND = "and"
    BUT = "but"

    @property
    def is_step(self) -> bool:
        return self in STEP_ROLES


STEP_ROLES = frozenset({KeywordRole.GIVEN, KeywordRole.WHEN, KeywordRole.THEN,
                        KeywordRole.AND, KeywordRole.BUT})


class KeywordTable:
    """Keywords of one language, matched longest first"""

    def __init__(self, language: str, name: str, native: str, keywords: Dict[KeywordRole, Tuple[str, ...]]):
        self.language = language
        self.name = name
        self.native = native
        self.keywords = keywords
        pairs = [(keyword, role) for role, words in keywords.items() for keyword in words]
        self._ordered: List[Tuple[str, KeywordRole]] = sorted(pairs, key=lambda p: -len(p[0]))

    def match(self, line: str) -> Optional[Tuple[KeywordRole, str, str]]:
        """Classify a stripped line; returns (role, keyword, remainder) or None"""
        for keyword, role in self._ordered:
            if not line.startswith(keyword):
                continue
            rest = line[len(keyword):]
            if role.is_step:
                if keyword.endswith("'"):
                    return role, keyword, rest.strip()
                if rest == "" or rest[0] in " \t":
                    return role, keyword, rest.strip()
            elif rest.startswith(":"):
                return role, keyword, rest[1:].strip()
        return None

    def __repr__(self):
        return f"KeywordTable({self.language!r})"


@lru_cache(maxsize=1)
def _load_raw() -> Dict[str, dict]:
    with open(KEYWORDS_FILE, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def supported_languages() -> List[str]:
    return sorted(_load_raw().keys())


@lru_cache(maxsize=None)
def _build_table(language: str) -> KeywordTable:
    raw = _load_raw()[language]
    keywords = {}
    for role in KeywordRole:
        words = tuple(str(word) for word in raw.get(role.value, []))
        if role.is_step:
            words = words + ("*",)
        keywords[role] = words
    return KeywordTable(language, raw.get("name", language), raw.get("native", language), keywords)


def get_keywords(language: Optional[str] = None) -> KeywordTable:
    """Keyword table for a language; unknown languages fall back to English"""
    code = (language or DEFAULT_LANGUAGE).strip()
    if code not in _load_raw():
        logger.warning(f"Unknown language '{code}', falling back to '{DEFAULT_LANGUAGE}'")
        code = DEFAULT_LANGUAGE
    return _build_table(code)
