"""
Name normalization shared by the merger and the correlation engine
The same functions are applied to feature-file names and report names
"""

import re
from typing import Optional

from livingdoc.core.cache_manager import CacheManager
from livingdoc.utils.helpers import split_parameters

_SEPARATORS = re.compile(r'[\s\-_]+')
_WHITESPACE = re.compile(r'\s+')
FEATURE_SUFFIX = 'feature'
CLASS_SUFFIXES = ('features', 'feature', 'tests', 'test')


def normalize_name(name: Optional[str]) -> str:
    """Lower-case, drop whitespace, '-' and '_', strip a trailing 'feature'"""
    text = _SEPARATORS.sub('', name or '').lower()
    while text.endswith(FEATURE_SUFFIX) and len(text) > len(FEATURE_SUFFIX):
        text = text[:-len(FEATURE_SUFFIX)]
    return text


def strip_class_suffixes(normalized: str) -> str:
    """'userlogintests' -> 'userlogin'; never strips down to nothing"""
    changed = True
    while changed:
        changed = False
        for suffix in CLASS_SUFFIXES:
            if normalized.endswith(suffix) and len(normalized) > len(suffix):
                normalized = normalized[:-len(suffix)]
                changed = True
    return normalized


def strip_parameters(name: Optional[str]) -> str:
    return split_parameters(name or '')[0]


def path_key(path: Optional[str]) -> str:
    """Separator-agnostic normalized basename without the .feature extension"""
    if not path:
        return ''
    basename = path.replace('\\', '/').rstrip('/').rsplit('/', 1)[-1]
    lowered = basename.lower()
    for extension in ('.feature.cs', '.feature'):
        if lowered.endswith(extension):
            basename = basename[:-len(extension)]
            break
    return normalize_name(basename)


def normalize_text(text: Optional[str]) -> str:
    """Step text comparison key: collapsed whitespace, case-insensitive"""
    return _WHITESPACE.sub(' ', text or '').strip().lower()


class NameNormalizer:
    """normalize_name with a bounded per-engine cache"""

    def __init__(self, cache: Optional[CacheManager] = None):
        self.cache = cache or CacheManager()

    def name(self, text: Optional[str]) -> str:
        return self.cache.get_or_compute(text or '', normalize_name)

    def base(self, text: Optional[str]) -> str:
        """Normalized name with any '(...)' parameter suffix removed"""
        return self.name(strip_parameters(text))

    def loose(self, text: Optional[str]) -> str:
        return strip_class_suffixes(self.name(text))

    def clear(self):
        self.cache.clear_cache()
