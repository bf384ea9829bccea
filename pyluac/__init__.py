"""
pyluac: listing and combining of Lua 5.3 precompiled chunks.

Use ``python -m pyluac`` or the ``pyluac`` console script, or call
:func:`print_function` and :func:`combine` directly on prototype trees.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .combine import combine
from .disasm_util import decode
from .disassemble import print_function
from .literals import render_constant
from .proto import Constant, LocalVar, Prototype, Upvalue

__all__ = [
    "Constant",
    "LocalVar",
    "Prototype",
    "Upvalue",
    "combine",
    "decode",
    "print_function",
    "render_constant",
]
