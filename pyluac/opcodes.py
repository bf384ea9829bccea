#!/usr/bin/env python3
"""Shared opcode definitions for the pyluac toolchain.

Keeping the canonical table in a single module prevents drift between the
decoder, the listing printer and the chunk combiner.  Every opcode carries its
encoding mode, how its B and C operands are used and which annotation the
listing attaches to it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

# Encoding modes.
ABC = "ABC"
ABX = "ABx"
ASBX = "AsBx"
AX = "Ax"

MODES = (ABC, ABX, ASBX, AX)

# Operand usage.
ARG_N = "N"  # not used
ARG_U = "U"  # used, unsigned immediate
ARG_R = "R"  # register or jump offset
ARG_K = "K"  # register or constant (bias encoded)

# Annotation classes for the listing.
NOTE_NONE = ""
NOTE_CONSTANT = "constant"      # LOADK: constant at Bx
NOTE_UPVALUE = "upvalue"        # GETUPVAL/SETUPVAL: upvalue name at B
NOTE_GETTABUP = "gettabup"      # upvalue B, key C
NOTE_SETTABUP = "settabup"      # upvalue A, key B, value C
NOTE_TABLE_KEY = "table_key"    # GETTABLE/SELF: key C
NOTE_RK_PAIR = "rk_pair"        # B and C when either is a constant
NOTE_JUMP = "jump"              # absolute target
NOTE_CLOSURE = "closure"        # nested prototype at Bx
NOTE_SETLIST = "setlist"        # element count
NOTE_EXTRAARG = "extraarg"      # constant at Ax


@dataclass(frozen=True)
class OpInfo:
    name: str
    mode: str
    b_mode: str
    c_mode: str
    note: str = NOTE_NONE


# Ordered by opcode value, so docs and tooling can iterate in a stable order.
OPCODE_LIST: Tuple[OpInfo, ...] = (
    OpInfo("MOVE", ABC, ARG_R, ARG_N),
    OpInfo("LOADK", ABX, ARG_K, ARG_N, NOTE_CONSTANT),
    OpInfo("LOADKX", ABX, ARG_N, ARG_N),
    OpInfo("LOADBOOL", ABC, ARG_U, ARG_U),
    OpInfo("LOADNIL", ABC, ARG_U, ARG_N),
    OpInfo("GETUPVAL", ABC, ARG_U, ARG_N, NOTE_UPVALUE),
    OpInfo("GETTABUP", ABC, ARG_U, ARG_K, NOTE_GETTABUP),
    OpInfo("GETTABLE", ABC, ARG_R, ARG_K, NOTE_TABLE_KEY),
    OpInfo("SETTABUP", ABC, ARG_K, ARG_K, NOTE_SETTABUP),
    OpInfo("SETUPVAL", ABC, ARG_U, ARG_N, NOTE_UPVALUE),
    OpInfo("SETTABLE", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("NEWTABLE", ABC, ARG_U, ARG_U),
    OpInfo("SELF", ABC, ARG_R, ARG_K, NOTE_TABLE_KEY),
    OpInfo("ADD", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("SUB", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("MUL", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("MOD", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("POW", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("DIV", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("IDIV", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("BAND", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("BOR", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("BXOR", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("SHL", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("SHR", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("UNM", ABC, ARG_R, ARG_N),
    OpInfo("BNOT", ABC, ARG_R, ARG_N),
    OpInfo("NOT", ABC, ARG_R, ARG_N),
    OpInfo("LEN", ABC, ARG_R, ARG_N),
    OpInfo("CONCAT", ABC, ARG_R, ARG_R),
    OpInfo("JMP", ASBX, ARG_R, ARG_N, NOTE_JUMP),
    OpInfo("EQ", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("LT", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("LE", ABC, ARG_K, ARG_K, NOTE_RK_PAIR),
    OpInfo("TEST", ABC, ARG_N, ARG_U),
    OpInfo("TESTSET", ABC, ARG_R, ARG_U),
    OpInfo("CALL", ABC, ARG_U, ARG_U),
    OpInfo("TAILCALL", ABC, ARG_U, ARG_U),
    OpInfo("RETURN", ABC, ARG_U, ARG_N),
    OpInfo("FORLOOP", ASBX, ARG_R, ARG_N, NOTE_JUMP),
    OpInfo("FORPREP", ASBX, ARG_R, ARG_N, NOTE_JUMP),
    OpInfo("TFORCALL", ABC, ARG_N, ARG_U),
    OpInfo("TFORLOOP", ASBX, ARG_R, ARG_N, NOTE_JUMP),
    OpInfo("SETLIST", ABC, ARG_U, ARG_U, NOTE_SETLIST),
    OpInfo("CLOSURE", ABX, ARG_U, ARG_N, NOTE_CLOSURE),
    OpInfo("VARARG", ABC, ARG_U, ARG_N),
    OpInfo("EXTRAARG", AX, ARG_U, ARG_U, NOTE_EXTRAARG),
)

OPCODES: Dict[str, int] = {info.name: opcode for opcode, info in enumerate(OPCODE_LIST)}
OPCODE_NAMES: Dict[int, str] = {opcode: info.name for opcode, info in enumerate(OPCODE_LIST)}
NUM_OPCODES = len(OPCODE_LIST)

__all__ = [
    "ABC",
    "ABX",
    "ASBX",
    "AX",
    "ARG_N",
    "ARG_U",
    "ARG_R",
    "ARG_K",
    "OpInfo",
    "OPCODE_LIST",
    "OPCODES",
    "OPCODE_NAMES",
    "NUM_OPCODES",
    "op_info",
]


def op_info(opcode: int) -> OpInfo:
    """Return the table entry for ``opcode``.

    Values past the end of the table get a placeholder entry in ABC mode with
    no operand usage, so decoding stays total over every 32-bit word.
    """

    if 0 <= opcode < NUM_OPCODES:
        return OPCODE_LIST[opcode]
    return OpInfo(f"OP_{opcode}", ABC, ARG_N, ARG_N)


def opcode_values() -> Iterable[int]:
    """Return all opcode numeric values."""

    return OPCODE_NAMES.keys()
