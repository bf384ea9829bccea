"""
Pytest configuration and fixtures for pyluac tests.
"""
from pathlib import Path

import pytest

from pyluac.chunk import dumps_chunk
from pyluac.disasm_util import as_k, encode_abc, encode_abx
from pyluac.proto import Constant, LocalVar, Prototype, Upvalue


def build_greet() -> Prototype:
    """``function greet(name) print("hello " .. name) end``"""
    return Prototype(
        source="@demo.lua",
        linedefined=2,
        lastlinedefined=2,
        numparams=1,
        maxstacksize=4,
        code=[
            encode_abc("GETTABUP", 1, 0, as_k(0)),
            encode_abx("LOADK", 2, 1),
            encode_abc("MOVE", 3, 0, 0),
            encode_abc("CONCAT", 2, 2, 3),
            encode_abc("CALL", 1, 2, 1),
            encode_abc("RETURN", 0, 1, 0),
        ],
        constants=[Constant.string("print"), Constant.string("hello ")],
        upvalues=[Upvalue(instack=False, idx=0, name="_ENV")],
        locvars=[LocalVar("name", 0, 6)],
        lineinfo=[2, 2, 2, 2, 2, 2],
    )


def build_demo() -> Prototype:
    """Main chunk of::

        local t = {1, 2, 3}
        function greet(name) print("hello " .. name) end
        greet("x")
    """
    return Prototype(
        source="@demo.lua",
        linedefined=0,
        lastlinedefined=0,
        numparams=0,
        is_vararg=True,
        maxstacksize=4,
        code=[
            encode_abc("NEWTABLE", 0, 3, 0),
            encode_abx("LOADK", 1, 0),
            encode_abx("LOADK", 2, 1),
            encode_abx("LOADK", 3, 2),
            encode_abc("SETLIST", 0, 3, 1),
            encode_abx("CLOSURE", 1, 0),
            encode_abc("SETTABUP", 0, as_k(3), 1),
            encode_abc("GETTABUP", 1, 0, as_k(3)),
            encode_abx("LOADK", 2, 4),
            encode_abc("CALL", 1, 2, 1),
            encode_abc("RETURN", 0, 1, 0),
        ],
        constants=[
            Constant.integer(1),
            Constant.integer(2),
            Constant.integer(3),
            Constant.string("greet"),
            Constant.string("x"),
        ],
        protos=[build_greet()],
        upvalues=[Upvalue(instack=True, idx=0, name="_ENV")],
        locvars=[LocalVar("t", 5, 11)],
        lineinfo=[1, 1, 1, 1, 1, 2, 2, 3, 3, 3, 3],
    )


@pytest.fixture
def demo_proto() -> Prototype:
    return build_demo()


@pytest.fixture
def write_chunk(tmp_path):
    """Write a prototype as a precompiled chunk and return its path."""

    def _write(proto: Prototype, name: str = "demo.luac", *, strip: bool = False) -> Path:
        path = tmp_path / name
        path.write_bytes(dumps_chunk(proto, strip=strip))
        return path

    return _write


@pytest.fixture
def make_demo():
    """Factory for fresh demo trees; combining rewrites upvalues of its inputs."""
    return build_demo
