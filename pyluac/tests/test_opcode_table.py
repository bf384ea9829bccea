from __future__ import annotations

from pyluac import disasm_util
from pyluac import opcodes


def test_opcode_definitions_shared():
    """Decoder and encoders should reference the shared opcode table."""

    assert disasm_util.OPCODES is opcodes.OPCODES
    assert set(opcodes.OPCODE_NAMES) == set(opcodes.opcode_values())
    assert {name: code for code, name in opcodes.OPCODE_NAMES.items()} == opcodes.OPCODES


def test_table_order_matches_instruction_set():
    assert opcodes.NUM_OPCODES == 47
    assert opcodes.OPCODES["MOVE"] == 0
    assert opcodes.OPCODES["LOADK"] == 1
    assert opcodes.OPCODES["JMP"] == 30
    assert opcodes.OPCODES["CLOSURE"] == 44
    assert opcodes.OPCODES["EXTRAARG"] == 46


def test_modes_and_operand_usage():
    info = opcodes.op_info(opcodes.OPCODES["LOADK"])
    assert (info.mode, info.b_mode, info.c_mode) == (opcodes.ABX, opcodes.ARG_K, opcodes.ARG_N)
    for name in ("JMP", "FORLOOP", "FORPREP", "TFORLOOP"):
        info = opcodes.op_info(opcodes.OPCODES[name])
        assert info.mode == opcodes.ASBX
        assert info.note == opcodes.NOTE_JUMP
    assert opcodes.op_info(opcodes.OPCODES["EXTRAARG"]).mode == opcodes.AX
    for name in ("ADD", "SUB", "MUL", "MOD", "POW", "DIV", "IDIV", "BAND", "BOR", "BXOR", "SHL", "SHR", "EQ", "LT", "LE"):
        info = opcodes.op_info(opcodes.OPCODES[name])
        assert (info.b_mode, info.c_mode) == (opcodes.ARG_K, opcodes.ARG_K)
        assert info.note == opcodes.NOTE_RK_PAIR
    every_mode = {info.mode for info in opcodes.OPCODE_LIST}
    assert every_mode == set(opcodes.MODES)


def test_values_past_table_get_placeholder():
    info = opcodes.op_info(63)
    assert info.name == "OP_63"
    assert info.mode == opcodes.ABC
    assert info.note == opcodes.NOTE_NONE
