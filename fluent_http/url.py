"""URL composition and query-string encoding.

Query parameters and form bodies share one encoding: keys sorted, keys and
values escaped with quote_plus ("a b" -> "a+b"), pairs joined by "&".
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

_STRUCTURED_TYPES = (dict, list, tuple, set, frozenset)


def to_query_string(value: Any) -> str:
    """Coerce a scalar-ish value to the string sent on the wire.

    Strings pass through, booleans become "true"/"false", numbers are written
    in positional notation without exponent, bytes are UTF-8 decoded, enum
    members use their value and None becomes "". Structured values (dicts,
    sequences, sets) and objects without their own __str__ have no sensible
    scalar form and become "" with a warning; this never raises.
    """
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return to_query_string(value.value)
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, _STRUCTURED_TYPES) or type(value).__str__ is object.__str__:
        logger.warning(
            "Cannot convert %s to a query string value, using empty string",
            type(value).__name__,
        )
        return ""
    return str(value)


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    # repr gives the shortest round-tripping digits; Decimal drops the exponent
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def encode_values(params: Mapping[str, Any]) -> str:
    """Encode a mapping as key=value pairs, sorted by key."""
    pairs = sorted((str(k), to_query_string(v)) for k, v in params.items())
    return urlencode(pairs)


def compose_url(base: str, params: Mapping[str, Any]) -> str:
    """Merge a base URL with encoded query parameters.

    Returns base unchanged when params is empty. When base already has a query
    string the parameters are appended after it with "&" rather than starting
    a second "?"; a "#fragment" stays at the end.
    """
    encoded = encode_values(params)
    if not encoded:
        return base

    head, sep, fragment = base.partition("#")
    if "?" not in head:
        head = f"{head}?{encoded}"
    elif head.endswith(("?", "&")):
        head = f"{head}{encoded}"
    else:
        head = f"{head}&{encoded}"
    return f"{head}{sep}{fragment}"
