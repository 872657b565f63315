"""Helper utilities"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

# values that test generators append for the example tags argument
_IGNORED_PARAMETERS = {'null', 'none', '[]', 'system.string[]', 'string[]'}
_IGNORED_PARAMETER_NAMES = {'exampletags', '_exampletags'}
_NAMED_PARAMETER = re.compile(r'^([A-Za-z_][\w]*)\s*[:=]\s*(.*)$', re.DOTALL)
_TIMESPAN = re.compile(r'^(?:(\d+)\.)?(\d+):(\d+):(\d+(?:\.\d+)?)$')
_FRACTION = re.compile(r'(\.\d{6})\d+')


def deep_get(dictionary: Dict, keys: str, default: Any = None) -> Any:
    """Get nested dictionary value using dot notation"""
    keys_list = keys.split('.')
    value = dictionary

    for key in keys_list:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def to_float(value: Optional[str], default: float = 0.0) -> float:
    try:
        return float(value) if value not in (None, '') else default
    except (TypeError, ValueError):
        return default


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse ISO-like timestamps; naive values are taken as UTC"""
    if not value:
        return None
    text = value.strip().replace('Z', '+00:00')
    if ' ' in text and 'T' not in text:
        text = text.replace(' ', 'T', 1)
    text = _FRACTION.sub(r'\1', text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

def parse_timespan(value: Optional[str]) -> float:
    """Seconds from a 'd.hh:mm:ss.fffffff' timespan or a plain number"""
    if not value:
        return 0.0
    match = _TIMESPAN.match(value.strip())
    if not match:
        return to_float(value)
    days, hours, minutes, seconds = match.groups()
    return int(days or 0) * 86400 + int(hours) * 3600 + int(minutes) * 60 + float(seconds)

def _split_arguments(text: str) -> List[str]:
    """Split on commas outside quotes and brackets"""
    parts = []
    current = []
    quote = None
    depth = 0
    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
            continue
        if char in '"\'':
            quote = char
        elif char in '[{':
            depth += 1
        elif char in ']}':
            depth -= 1
        elif char == ',' and depth == 0:
            parts.append(''.join(current).strip())
            current = []
            continue
        current.append(char)
    if current or parts:
        parts.append(''.join(current).strip())
    return parts

def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in '"\'':
        return value[1:-1]
    return value

def split_parameters(name: str) -> Tuple[str, Tuple[str, ...], Dict[str, str]]:
    """Split 'Base name(a, b)' or 'Base name(x: "a", y: "b")' into base, positional and named values"""
    text = (name or '').strip()
    if not text.endswith(')'):
        return text, (), {}
    depth = 0
    start = -1
    for index in range(len(text) - 1, -1, -1):
        if text[index] == ')':
            depth += 1
        elif text[index] == '(':
            depth -= 1
            if depth == 0:
                start = index
                break
    if start <= 0:
        return text, (), {}

    base = text[:start].strip()
    positional = []
    named = {}
    for part in _split_arguments(text[start + 1:-1]):
        if not part:
            continue
        match = _NAMED_PARAMETER.match(part)
        if match and not part.startswith(('"', "'")):
            key, value = match.group(1), _unquote(match.group(2))
            if key.lower() in _IGNORED_PARAMETER_NAMES:
                continue
            named[key] = value
            positional.append(value)
            continue
        if part.lower() in _IGNORED_PARAMETERS:
            continue
        positional.append(_unquote(part))
    return base, tuple(positional), named

def split_camel_case(name: str) -> str:
    """'UserLoginFeature' -> 'User Login Feature'"""
    return re.sub(r'([a-z0-9])([A-Z])', r'\1 \2', name)
