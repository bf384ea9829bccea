#!/usr/bin/env python3
"""Instruction word decoding and operand formatting.

Instructions are unsigned 32-bit words::

    ABC   |  B:9  |  C:9  | A:8 | OP:6 |
    ABx   |     Bx:18     | A:8 | OP:6 |
    AsBx  |    sBx:18     | A:8 | OP:6 |
    Ax    |        Ax:26        | OP:6 |

``sBx`` is stored with an excess-``MAXARG_sBx`` bias.  B and C operands whose
usage is ``K`` address the constant pool when bit ``BITRK`` is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .opcodes import ABC, ABX, ARG_K, ARG_N, ARG_U, ASBX, OPCODES, OpInfo, op_info

SIZE_OP = 6
SIZE_A = 8
SIZE_B = 9
SIZE_C = 9
SIZE_BX = SIZE_B + SIZE_C
SIZE_AX = SIZE_A + SIZE_B + SIZE_C

POS_OP = 0
POS_A = POS_OP + SIZE_OP
POS_C = POS_A + SIZE_A
POS_B = POS_C + SIZE_C
POS_BX = POS_C
POS_AX = POS_A

MAXARG_A = (1 << SIZE_A) - 1
MAXARG_B = (1 << SIZE_B) - 1
MAXARG_C = (1 << SIZE_C) - 1
MAXARG_BX = (1 << SIZE_BX) - 1
MAXARG_SBX = MAXARG_BX >> 1
MAXARG_AX = (1 << SIZE_AX) - 1

BITRK = 1 << (SIZE_B - 1)


def _mask(size: int) -> int:
    return (1 << size) - 1


def is_k(value: int) -> bool:
    """True when a B/C operand value addresses the constant pool."""

    return bool(value & BITRK)


def index_k(value: int) -> int:
    """Strip the constant flag from a B/C operand."""

    return value & ~BITRK


def as_k(index: int) -> int:
    """Encode constant pool ``index`` as a B/C operand."""

    return index | BITRK


def pool_ref(index: int) -> int:
    """Display form of a constant reference, kept negative so it never reads as a register."""

    return -1 - index


def rk_display(value: int) -> int:
    return pool_ref(index_k(value)) if is_k(value) else value


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction word.  Fields the mode does not carry stay ``None``."""

    word: int
    opcode: int
    name: str
    mode: str
    a: Optional[int] = None
    b: Optional[int] = None
    c: Optional[int] = None
    bx: Optional[int] = None
    sbx: Optional[int] = None
    ax: Optional[int] = None

    @property
    def info(self) -> OpInfo:
        return op_info(self.opcode)

    def constant_index(self, field: str) -> Optional[int]:
        """Constant pool index addressed by operand ``field``, or ``None``.

        ``b`` and ``c`` are pool references only when the opcode declares them
        ``K`` and the flag bit is set.  ``bx`` of a ``K`` operand and ``ax``
        of EXTRAARG are plain pool indices.
        """

        info = self.info
        if field in ("b", "c"):
            usage = info.b_mode if field == "b" else info.c_mode
            value = getattr(self, field)
            if usage == ARG_K and value is not None and is_k(value):
                return index_k(value)
            return None
        if field == "bx":
            return self.bx if info.b_mode == ARG_K else None
        if field == "ax":
            return self.ax
        raise ValueError(f"unknown operand field '{field}'")


def decode(word: int) -> Instruction:
    """Split ``word`` into opcode and operand fields by the opcode's mode."""

    word &= 0xFFFFFFFF
    opcode = (word >> POS_OP) & _mask(SIZE_OP)
    info = op_info(opcode)
    mode = info.mode
    if mode == ABC:
        return Instruction(
            word,
            opcode,
            info.name,
            mode,
            a=(word >> POS_A) & _mask(SIZE_A),
            b=(word >> POS_B) & _mask(SIZE_B),
            c=(word >> POS_C) & _mask(SIZE_C),
        )
    if mode == ABX:
        return Instruction(
            word,
            opcode,
            info.name,
            mode,
            a=(word >> POS_A) & _mask(SIZE_A),
            bx=(word >> POS_BX) & _mask(SIZE_BX),
        )
    if mode == ASBX:
        return Instruction(
            word,
            opcode,
            info.name,
            mode,
            a=(word >> POS_A) & _mask(SIZE_A),
            sbx=((word >> POS_BX) & _mask(SIZE_BX)) - MAXARG_SBX,
        )
    return Instruction(word, opcode, info.name, mode, ax=(word >> POS_AX) & _mask(SIZE_AX))


OpcodeRef = Union[int, str]


def _opcode(op: OpcodeRef) -> int:
    if isinstance(op, str):
        return OPCODES[op.upper()]
    return int(op)


def encode_abc(op: OpcodeRef, a: int, b: int, c: int) -> int:
    return (
        (_opcode(op) << POS_OP)
        | ((a & MAXARG_A) << POS_A)
        | ((b & MAXARG_B) << POS_B)
        | ((c & MAXARG_C) << POS_C)
    )


def encode_abx(op: OpcodeRef, a: int, bx: int) -> int:
    return (_opcode(op) << POS_OP) | ((a & MAXARG_A) << POS_A) | ((bx & MAXARG_BX) << POS_BX)


def encode_asbx(op: OpcodeRef, a: int, sbx: int) -> int:
    return encode_abx(op, a, sbx + MAXARG_SBX)


def encode_ax(op: OpcodeRef, ax: int) -> int:
    return (_opcode(op) << POS_OP) | ((ax & MAXARG_AX) << POS_AX)


def format_operands(inst: Instruction) -> str:
    """Render the operand column for ``inst``.

    Constant operands appear as ``-1 - index`` so registers (never negative)
    and pool references are told apart without decoding the flag bit.
    """

    info = inst.info
    if inst.mode == ABC:
        parts = [str(inst.a)]
        if info.b_mode != ARG_N:
            parts.append(str(rk_display(inst.b) if info.b_mode == ARG_K else inst.b))
        if info.c_mode != ARG_N:
            parts.append(str(rk_display(inst.c) if info.c_mode == ARG_K else inst.c))
        return " ".join(parts)
    if inst.mode == ABX:
        if info.b_mode == ARG_K:
            return f"{inst.a} {pool_ref(inst.bx)}"
        if info.b_mode == ARG_U:
            return f"{inst.a} {inst.bx}"
        return str(inst.a)
    if inst.mode == ASBX:
        return f"{inst.a} {inst.sbx}"
    return str(pool_ref(inst.ax))


__all__ = [
    "BITRK",
    "MAXARG_SBX",
    "Instruction",
    "decode",
    "encode_abc",
    "encode_abx",
    "encode_asbx",
    "encode_ax",
    "format_operands",
    "is_k",
    "index_k",
    "as_k",
    "pool_ref",
    "rk_display",
]
