"""
Structural checksums for change detection.

Values are first canonicalized to a string (sorted keys, fixed numeric
precision), then hashed with a two-accumulator rolling checksum. Equal
content always yields the same token regardless of key insertion order.

Numbers are rounded to PRECISION decimals before hashing, so the token is
quantized: two values closer than TOLERANCE still get different tokens when
they fall on either side of a rounding boundary (1.00004 and 1.00006 render
as "1" and "1.0001"). Use values_equal() when a tolerance comparison is
needed.

This is used to diff editor states, not for security.
"""

import json
import re
from dataclasses import fields, is_dataclass
from typing import Any, Mapping

from pydantic import BaseModel

# Numeric precision of the canonical form; values closer than this are
# considered equal by values_equal() as well
PRECISION = 4
TOLERANCE = 1e-4

_MODULUS = 65521
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _format_number(value: float) -> str:
    text = f"{value:.{PRECISION}f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def _as_mapping(value: Any) -> Mapping:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: getattr(value, f.name) for f in fields(value)}
    return value


def serialize(value: Any) -> str:
    """
    Convert any value to its canonical string representation.

    - None -> "nil"
    - bools -> "true" / "false"
    - numbers -> fixed precision, trailing zeros trimmed ("1.2500" -> "1.25")
    - strings -> JSON-quoted
    - sequences -> "{a,b,c}" in order
    - mappings, pydantic models, dataclasses -> "{k=v,...}" with sorted keys
    """
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _format_number(float(value))
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, BaseModel) or (is_dataclass(value) and not isinstance(value, type)):
        prefix = type(value).__name__
        return prefix + serialize(_as_mapping(value))
    if isinstance(value, Mapping):
        parts = []
        for key in sorted(value, key=str):
            if isinstance(key, str) and _IDENTIFIER.match(key):
                name = key
            else:
                name = f"[{serialize(key)}]"
            parts.append(f"{name}={serialize(value[key])}")
        return "{" + ",".join(parts) + "}"
    if isinstance(value, (list, tuple)):
        return "{" + ",".join(serialize(v) for v in value) + "}"
    return str(value)


def checksum(*values: Any) -> int:
    """
    Compute a 32-bit checksum over the canonical form of all values.

    Two running sums (mod 65521) over the serialized bytes, combined as
    (b << 16) | a.
    """
    a, b = 1, 0
    for value in values:
        for byte in serialize(value).encode("utf-8"):
            a = (a + byte) % _MODULUS
            b = (b + a) % _MODULUS
    return (b << 16) | a


def values_equal(a: Any, b: Any) -> bool:
    """
    Deep equality with numeric tolerance.

    Numbers compare within TOLERANCE, mappings/models/dataclasses compare
    key by key (missing keys count as None), sequences element-wise.
    """
    if a is b:
        return True
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return abs(float(a) - float(b)) < TOLERANCE
    if a is None or b is None:
        return False

    a_map = _as_mapping(a)
    b_map = _as_mapping(b)
    if isinstance(a_map, Mapping) and isinstance(b_map, Mapping):
        if type(a) is not type(b) and not (isinstance(a, Mapping) and isinstance(b, Mapping)):
            return False
        for key in set(a_map) | set(b_map):
            if not values_equal(a_map.get(key), b_map.get(key)):
                return False
        return True

    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(values_equal(x, y) for x, y in zip(a, b))

    return a == b
