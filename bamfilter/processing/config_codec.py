"""
Codec for filter configuration strings.

Configurations are ``;``-separated positional fields. Lists use a
bracketed ``[v1,v2,...]`` sub-syntax. Every decoder raises
ConfigurationError on malformed or out-of-range input.
"""

import math
import re
from typing import Iterable, List, Optional

from ..core.errors import ConfigurationError

FIELD_SEPARATOR = ";"

_INT_RE = re.compile(r"^[+-]?\d+$")


def split_fields(config: Optional[str]) -> List[str]:
    """Split a configuration string into its fields. ``None`` is invalid."""
    if config is None:
        raise ConfigurationError("Configuration is missing")
    config = config.strip()
    if not config:
        return []
    return config.split(FIELD_SEPARATOR)


def join_fields(values: Iterable[str]) -> str:
    return FIELD_SEPARATOR.join(values)


def decode_int(text: str, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    text = text.strip()
    if not _INT_RE.match(text):
        raise ConfigurationError(f"Not an integer: {text!r}")
    value = int(text)
    _check_range(value, min_val, max_val)
    return value


def decode_float(text: str, min_val: Optional[float] = None, max_val: Optional[float] = None) -> float:
    text = text.strip()
    try:
        value = float(text)
    except ValueError:
        raise ConfigurationError(f"Not a number: {text!r}")
    if not math.isfinite(value):
        raise ConfigurationError(f"Not a finite number: {text!r}")
    _check_range(value, min_val, max_val)
    return value


def decode_bool(text: str) -> bool:
    text = text.strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise ConfigurationError(f"Not a boolean: {text!r}")


def decode_int_list(text: str, min_val: Optional[int] = None,
                    max_val: Optional[int] = None) -> List[int]:
    """Decode ``[1,2,3]``; ``[]`` is an empty list."""
    text = text.strip()
    if len(text) < 2 or text[0] != "[" or text[-1] != "]":
        raise ConfigurationError(f"Not a bracketed list: {text!r}")
    body = text[1:-1].strip()
    if not body:
        return []
    return [decode_int(item, min_val, max_val) for item in body.split(",")]


def decode_color_list(text: str) -> List[int]:
    """Decode a list of ARGB values; negative (signed 32-bit) values are accepted."""
    values = decode_int_list(text, -(1 << 31), (1 << 32) - 1)
    return [v & 0xFFFFFFFF for v in values]


def encode_bool(value: bool) -> str:
    return "true" if value else "false"


def encode_float(value: float) -> str:
    return repr(float(value))


def encode_int_list(values: Iterable[int]) -> str:
    return "[" + ",".join(str(int(v)) for v in values) + "]"


def escape_path(path: str) -> str:
    """Escape the field separator inside free text."""
    return path.replace("%", "%25").replace(FIELD_SEPARATOR, "%3B")


def unescape_path(text: str) -> str:
    return text.replace("%3B", FIELD_SEPARATOR).replace("%3b", FIELD_SEPARATOR).replace("%25", "%")


def _check_range(value, min_val, max_val) -> None:
    if min_val is not None and value < min_val:
        raise ConfigurationError(f"Value {value} is below minimum {min_val}")
    if max_val is not None and value > max_val:
        raise ConfigurationError(f"Value {value} is above maximum {max_val}")
