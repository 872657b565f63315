"""
Line-oriented lexer for Gherkin feature files
Every physical line becomes at most one token; lexing never fails
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from livingdoc.parser.keywords import KeywordRole, KeywordTable, get_keywords

LANGUAGE_PATTERN = re.compile(r'^\s*#\s*language\s*:\s*([A-Za-z0-9_-]+)\s*$')
DOC_STRING_DELIMITERS = ('"""', '```')


class TokenType(Enum):
    LANGUAGE = "language"
    FEATURE = "feature"
    BACKGROUND = "background"
    RULE = "rule"
    SCENARIO = "scenario"
    SCENARIO_OUTLINE = "scenario_outline"
    EXAMPLES = "examples"
    STEP = "step"
    TAGS = "tags"
    TABLE_ROW = "table_row"
    DOC_STRING = "doc_string"
    COMMENT = "comment"
    TEXT = "text"


_ROLE_TOKENS = {
    KeywordRole.FEATURE: TokenType.FEATURE,
    KeywordRole.BACKGROUND: TokenType.BACKGROUND,
    KeywordRole.RULE: TokenType.RULE,
    KeywordRole.SCENARIO: TokenType.SCENARIO,
    KeywordRole.SCENARIO_OUTLINE: TokenType.SCENARIO_OUTLINE,
    KeywordRole.EXAMPLES: TokenType.EXAMPLES,
}


@dataclass(frozen=True)
class Token:
    type: TokenType
    line: int
    keyword: str = ""
    text: str = ""
    role: Optional[KeywordRole] = None
    cells: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    media_type: Optional[str] = None
    closed: bool = True


def detect_language(lines: List[str]) -> Optional[Tuple[str, int]]:
    """Find a '# language: xx' header among the leading comment and blank lines"""
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith('#'):
            return None
        match = LANGUAGE_PATTERN.match(stripped)
        if match:
            return match.group(1), index
    return None


def split_table_row(line: str) -> Tuple[str, ...]:
    """Split a '| a | b |' row on unescaped pipes, handling \\|, \\\\ and \\n"""
    body = line.strip()
    if body.startswith('|'):
        body = body[1:]
    cells = []
    current = []
    i = 0
    while i < len(body):
        char = body[i]
        if char == '\\' and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt == '|':
                current.append('|')
            elif nxt == '\\':
                current.append('\\')
            elif nxt == 'n':
                current.append('\n')
            else:
                current.append(char + nxt)
            i += 2
            continue
        if char == '|':
            cells.append(''.join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1
    # a row without its closing pipe keeps the last cell
    trailing = ''.join(current).strip()
    if trailing:
        cells.append(trailing)
    return tuple(cells)


def split_tags(line: str) -> Tuple[str, ...]:
    tags = []
    for part in line.split():
        if part.startswith('#'):
            break
        tags.append(part)
    return tuple(tags)


def _unescape_doc_line(line: str, delimiter: str) -> str:
    escaped = '\\' + '\\'.join(delimiter)
    return line.replace(escaped, delimiter)


def _strip_indent(line: str, indent: int) -> str:
    removable = len(line) - len(line.lstrip(' \t'))
    return line[min(indent, removable):]


class Lexer:
    """Converts feature text into a flat token list"""

    def __init__(self, language: Optional[str] = None):
        self.default_language = language
        self.language = language or "en"

    def tokenize(self, text: str) -> List[Token]:
        lines = text.splitlines()
        tokens: List[Token] = []

        header = detect_language(lines)
        header_index = header[1] if header else -1
        table = get_keywords(header[0] if header else self.default_language)
        self.language = table.language
        if header:
            tokens.append(Token(TokenType.LANGUAGE, header_index + 1, text=table.language))

        i = 0
        while i < len(lines):
            raw = lines[i]
            stripped = raw.strip()
            line_no = i + 1

            if i == header_index or not stripped:
                i += 1
                continue

            delimiter = self._doc_string_delimiter(stripped)
            if delimiter:
                token, i = self._read_doc_string(lines, i, delimiter)
                tokens.append(token)
                continue

            tokens.append(self._classify(stripped, line_no, table))
            i += 1

        return tokens

    @staticmethod
    def _doc_string_delimiter(stripped: str) -> Optional[str]:
        for delimiter in DOC_STRING_DELIMITERS:
            if stripped.startswith(delimiter):
                return delimiter
        return None

    def _read_doc_string(self, lines: List[str], start: int, delimiter: str) -> Tuple[Token, int]:
        opening = lines[start]
        indent = len(opening) - len(opening.lstrip(' \t'))
        media_type = opening.strip()[len(delimiter):].strip() or None
        content = []
        i = start + 1
        while i < len(lines):
            if lines[i].strip() == delimiter:
                token = Token(TokenType.DOC_STRING, start + 1, keyword=delimiter,
                              text='\n'.join(content), media_type=media_type)
                return token, i + 1
            content.append(_unescape_doc_line(_strip_indent(lines[i], indent), delimiter))
            i += 1
        token = Token(TokenType.DOC_STRING, start + 1, keyword=delimiter,
                      text='\n'.join(content), media_type=media_type, closed=False)
        return token, i

    def _classify(self, stripped: str, line_no: int, table: KeywordTable) -> Token:
        if stripped.startswith('@'):
            return Token(TokenType.TAGS, line_no, tags=split_tags(stripped))
        if stripped.startswith('|'):
            return Token(TokenType.TABLE_ROW, line_no, cells=split_table_row(stripped))
        if stripped.startswith('#'):
            return Token(TokenType.COMMENT, line_no, text=stripped)

        matched = table.match(stripped)
        if matched:
            role, keyword, rest = matched
            if role.is_step:
                return Token(TokenType.STEP, line_no, keyword=keyword, text=rest, role=role)
            return Token(_ROLE_TOKENS[role], line_no, keyword=keyword, text=rest, role=role)

        return Token(TokenType.TEXT, line_no, text=stripped)


def tokenize(text: str, language: Optional[str] = None) -> List[Token]:
    return Lexer(language).tokenize(text)
