from __future__ import annotations

import re

import pytest

from pyluac.literals import render_constant, render_number, render_string
from pyluac.proto import MAX_SHORT_LEN, Constant, ConstantTag

_MNEMONICS = {"a": 7, "b": 8, "f": 12, "n": 10, "r": 13, "t": 9, "v": 11, '"': 34, "\\": 92}
_ESCAPE_RE = re.compile(r'\\(\d{3}|.)', re.DOTALL)


def unquote(text: str) -> bytes:
    """Invert render_string."""
    assert text[0] == '"' and text[-1] == '"'
    body = text[1:-1]
    out = bytearray()
    pos = 0
    for match in _ESCAPE_RE.finditer(body):
        out.extend(body[pos:match.start()].encode("latin-1"))
        token = match.group(1)
        out.append(int(token) if token.isdigit() else _MNEMONICS[token])
        pos = match.end()
    out.extend(body[pos:].encode("latin-1"))
    return bytes(out)


def test_simple_values():
    assert render_constant(Constant.nil()) == "nil"
    assert render_constant(Constant.boolean(True)) == "true"
    assert render_constant(Constant.boolean(False)) == "false"
    assert render_constant(Constant.integer(3)) == "3"
    assert render_constant(Constant.integer(-9007199254740993)) == "-9007199254740993"
    assert render_constant(Constant.number(3.0)) == "3.0"


@pytest.mark.parametrize(
    "value, expected",
    [
        (3.0, "3.0"),
        (-2.0, "-2.0"),
        (0.1, "0.1"),
        (-0.0, "-0.0"),
        (1e100, "1e+100"),
        (2.5e-08, "2.5e-08"),
        (float("inf"), "inf"),
        (float("-inf"), "-inf"),
        (float("nan"), "nan"),
    ],
)
def test_float_text(value, expected):
    assert render_number(value) == expected


@pytest.mark.parametrize("value", [3.0, 0.1, 1 / 3, 123456789.125, 1e16, 5e-324, 1.7976931348623157e308, -7.25])
def test_float_rendering_round_trips_and_never_reads_as_integer(value):
    text = render_number(value)
    assert float(text) == value
    assert render_number(float(text)) == text
    assert "." in text or "e" in text
    if value == int(value):
        assert text != render_constant(Constant.integer(int(value)))


def test_string_escapes():
    assert render_string(b'say "hi"\\') == '"say \\"hi\\"\\\\"'
    assert render_string(b"\a\b\f\n\r\t\v") == '"\\a\\b\\f\\n\\r\\t\\v"'
    assert render_string(b"\x00\x1b\x7f\xff") == '"\\000\\027\\127\\255"'
    assert render_string(b"plain text ~") == '"plain text ~"'
    assert render_constant(Constant.string("x")) == '"x"'


def test_every_byte_value_round_trips():
    data = bytes(range(256))
    text = render_string(data)
    assert unquote(text) == data
    for byte in range(256):
        single = bytes((byte,))
        assert unquote(render_string(single)) == single


def test_digits_after_numeric_escape_stay_separate():
    data = b"\x01" + b"23"
    assert render_string(data) == '"\\00123"'
    assert unquote(render_string(data)) == data


def test_unknown_tag_falls_back():
    assert render_constant(Constant(0x42, object())) == "unknown tag 66"


def test_long_strings_use_their_own_tag():
    short = Constant.string("a" * MAX_SHORT_LEN)
    long = Constant.string("a" * (MAX_SHORT_LEN + 1))
    assert short.tag == ConstantTag.SHRSTR
    assert long.tag == ConstantTag.LNGSTR
    assert render_constant(long) == '"' + "a" * (MAX_SHORT_LEN + 1) + '"'
    assert short.is_string and long.is_string
    assert not Constant.integer(1).is_string
