#!/usr/bin/env python3
"""Display text for constant pool entries.

Numbers keep their integer/float distinction (a float always carries a decimal
point or exponent), and strings are rendered as double-quoted literals that
unescape back to the exact original bytes.
"""

from __future__ import annotations

import math
from typing import Dict

from .proto import Constant, ConstantTag

_ESCAPES: Dict[int, str] = {
    ord('"'): '\\"',
    ord("\\"): "\\\\",
    0x07: "\\a",
    0x08: "\\b",
    0x0C: "\\f",
    0x0A: "\\n",
    0x0D: "\\r",
    0x09: "\\t",
    0x0B: "\\v",
}
_PRINTABLE_LOW = 0x20
_PRINTABLE_HIGH = 0x7E
_INTEGER_CHARS = frozenset("-0123456789")


def render_string(data: bytes) -> str:
    out = ['"']
    for byte in data:
        escaped = _ESCAPES.get(byte)
        if escaped is not None:
            out.append(escaped)
        elif _PRINTABLE_LOW <= byte <= _PRINTABLE_HIGH:
            out.append(chr(byte))
        else:
            out.append(f"\\{byte:03d}")
    out.append('"')
    return "".join(out)


def render_number(value: float) -> str:
    """Shortest round-tripping text for a float, never mistakable for an integer."""

    if math.isnan(value):
        text = "-nan" if math.copysign(1.0, value) < 0 else "nan"
    else:
        text = repr(float(value))
    if all(ch in _INTEGER_CHARS for ch in text):
        text += ".0"
    return text


def render_constant(constant: Constant) -> str:
    tag = constant.tag
    if tag == ConstantTag.NIL:
        return "nil"
    if tag == ConstantTag.BOOLEAN:
        return "true" if constant.value else "false"
    if tag == ConstantTag.NUMFLT:
        return render_number(constant.value)
    if tag == ConstantTag.NUMINT:
        return str(int(constant.value))
    if constant.is_string:
        return render_string(constant.value)
    return f"unknown tag {int(tag)}"


__all__ = ["render_constant", "render_number", "render_string"]
