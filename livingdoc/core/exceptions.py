"""
Exception hierarchy for LivingDoc
Parsing, report loading and configuration errors all derive from LivingDocError
"""

from typing import Optional


class LivingDocError(Exception):
    """Base error for the living documentation pipeline"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)

    def __reduce__(self):
        return (self.__class__, (self.detail,))


class LexError(LivingDocError):
    """Lexing is total; declared so the taxonomy is complete, never raised"""


class ConfigurationError(LivingDocError):
    """Configuration file could not be read or is malformed"""


class ParseError(LivingDocError):
    """Structural violation in a feature file"""

    def __init__(self, reason: str, file_path: str = "", line: Optional[int] = None):
        self.reason = reason
        self.file_path = file_path
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.file_path or "<text>"
        if self.line is not None:
            location = f"{location}:{self.line}"
        return f"{location}: {self.reason}"

    def __reduce__(self):
        return (self.__class__, (self.reason, self.file_path, self.line))


class FormatDetectionError(LivingDocError):
    """An execution report matches none of the known formats"""

    def __init__(self, source: str, reason: str = "unrecognised report format"):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")

    def __reduce__(self):
        return (self.__class__, (self.source, self.reason))


class AdapterParseError(LivingDocError):
    """A report matched a format but its content is malformed for it"""

    def __init__(self, source: str, kind: str, reason: str):
        self.source = source
        self.kind = kind
        self.reason = reason
        super().__init__(f"{source}: invalid {kind} report: {reason}")

    def __reduce__(self):
        return (self.__class__, (self.source, self.kind, self.reason))
