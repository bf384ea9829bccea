#!/usr/bin/env python3
"""Listing of prototype trees.

:func:`disassemble` turns one prototype's code into a list of dictionaries
(one per printed instruction); :func:`print_function` formats those entries,
together with a header and optionally the debug tables, for a whole tree.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, TextIO

from tabulate import tabulate

from . import opcodes
from .disasm_util import Instruction, decode, format_operands, is_k, index_k
from .literals import render_constant
from .proto import Prototype

LOGGER = logging.getLogger("pyluac.disassemble")


class OutputError(OSError):
    """The output sink refused a write."""


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def _counted(count: int, noun: str) -> str:
    return f"{count} {noun}{_plural(count)}"


def _constant_text(proto: Prototype, index: int) -> str:
    return render_constant(proto.constants[index])


def _rk_text(proto: Prototype, value: int) -> str:
    return _constant_text(proto, index_k(value)) if is_k(value) else "-"


def _annotate(proto: Prototype, inst: Instruction, pc: int, extra_word: Optional[int]) -> Optional[str]:
    note = inst.info.note
    if note == opcodes.NOTE_CONSTANT:
        return _constant_text(proto, inst.bx)
    if note == opcodes.NOTE_UPVALUE:
        return proto.upvalue_name(inst.b)
    if note == opcodes.NOTE_GETTABUP:
        text = proto.upvalue_name(inst.b)
        if is_k(inst.c):
            text += " " + _constant_text(proto, index_k(inst.c))
        return text
    if note == opcodes.NOTE_SETTABUP:
        text = proto.upvalue_name(inst.a)
        for operand in (inst.b, inst.c):
            if is_k(operand):
                text += " " + _constant_text(proto, index_k(operand))
        return text
    if note == opcodes.NOTE_TABLE_KEY:
        if is_k(inst.c):
            return _constant_text(proto, index_k(inst.c))
        return None
    if note == opcodes.NOTE_RK_PAIR:
        if is_k(inst.b) or is_k(inst.c):
            return f"{_rk_text(proto, inst.b)} {_rk_text(proto, inst.c)}"
        return None
    if note == opcodes.NOTE_JUMP:
        return f"to {pc + inst.sbx + 2}"
    if note == opcodes.NOTE_CLOSURE:
        return proto.protos[inst.bx].identity()
    if note == opcodes.NOTE_SETLIST:
        count = extra_word if inst.c == 0 and extra_word is not None else inst.c
        return str(count)
    if note == opcodes.NOTE_EXTRAARG:
        return _constant_text(proto, inst.ax)
    return None


def disassemble(proto: Prototype) -> List[Dict[str, Any]]:
    """Decode ``proto.code`` into listing entries.

    A SETLIST with C == 0 takes its count from the following word, which is
    consumed with it and does not get an entry of its own.
    """

    listing: List[Dict[str, Any]] = []
    code = proto.code
    pc = 0
    while pc < len(code):
        inst = decode(code[pc])
        extra_word = None
        if inst.info.note == opcodes.NOTE_SETLIST and inst.c == 0 and pc + 1 < len(code):
            extra_word = code[pc + 1]
        listing.append(
            {
                "index": pc + 1,
                "line": proto.line_for(pc),
                "word": inst.word,
                "mnemonic": inst.name,
                "mode": inst.mode,
                "operands": format_operands(inst),
                "annotation": _annotate(proto, inst, pc, extra_word),
                "extra_word": extra_word,
            }
        )
        pc += 2 if extra_word is not None else 1
    return listing


def describe_header(proto: Prototype) -> Dict[str, Any]:
    return {
        "kind": "main" if proto.is_main else "function",
        "source": proto.display_source(),
        "linedefined": proto.linedefined,
        "lastlinedefined": proto.lastlinedefined,
        "instructions": len(proto.code),
        "id": proto.identity(),
        "params": proto.numparams,
        "is_vararg": bool(proto.is_vararg),
        "slots": proto.maxstacksize,
        "upvalues": len(proto.upvalues),
        "locals": len(proto.locvars),
        "constants": len(proto.constants),
        "functions": len(proto.protos),
    }


def format_header(proto: Prototype) -> List[str]:
    info = describe_header(proto)
    first = (
        f"{info['kind']} <{info['source']}:{info['linedefined']},{info['lastlinedefined']}> "
        f"({_counted(info['instructions'], 'instruction')} at {info['id']})"
    )
    second = (
        f"{info['params']}{'+' if info['is_vararg'] else ''} param{_plural(info['params'])}, "
        f"{_counted(info['slots'], 'slot')}, {_counted(info['upvalues'], 'upvalue')}, "
        f"{_counted(info['locals'], 'local')}, {_counted(info['constants'], 'constant')}, "
        f"{_counted(info['functions'], 'function')}"
    )
    return ["", first, second]


def format_instruction(entry: Dict[str, Any]) -> str:
    line = f"[{entry['line']}]" if entry["line"] > 0 else "[-]"
    text = f"\t{entry['index']}\t{line}\t{entry['mnemonic']:<9}\t{entry['operands']}"
    if entry["annotation"] is not None:
        text += f"\t; {entry['annotation']}"
    return text


def debug_tables(proto: Prototype) -> Dict[str, List[List[Any]]]:
    """Constants, locals and upvalues of ``proto`` as table rows.

    Constant rows and local ranges are numbered from 1 to match the
    instruction numbering; local and upvalue indices stay 0-based.
    """

    return {
        "constants": [[i + 1, render_constant(k)] for i, k in enumerate(proto.constants)],
        "locals": [[i, var.name, var.startpc + 1, var.endpc + 1] for i, var in enumerate(proto.locvars)],
        "upvalues": [
            [i, proto.upvalue_name(i), int(bool(up.instack)), up.idx] for i, up in enumerate(proto.upvalues)
        ],
    }


_DEBUG_HEADERS = {
    "constants": ["index", "value"],
    "locals": ["index", "name", "startpc", "endpc"],
    "upvalues": ["index", "name", "instack", "idx"],
}


def format_debug(proto: Prototype) -> List[str]:
    lines: List[str] = []
    ident = proto.identity()
    for table, rows in debug_tables(proto).items():
        lines.append(f"{table} ({len(rows)}) for {ident}:")
        if rows:
            rendered = tabulate(rows, headers=_DEBUG_HEADERS[table], tablefmt="plain", disable_numparse=True)
            lines.extend("\t" + row for row in rendered.splitlines())
    return lines


def iter_prototypes(root: Prototype) -> Iterator[Prototype]:
    """Depth-first pre-order walk, children in nested-list order."""

    stack = [root]
    while stack:
        proto = stack.pop()
        yield proto
        stack.extend(reversed(proto.protos))


def _write(out: TextIO, line: str) -> None:
    try:
        out.write(line + "\n")
    except (OSError, UnicodeEncodeError) as exc:
        raise OutputError(f"cannot write listing: {exc}") from exc


def print_debug(proto: Prototype, out: TextIO) -> None:
    for line in format_debug(proto):
        _write(out, line)


def print_function(root: Prototype, out: TextIO, *, full: bool = False) -> int:
    """Write header and code (and with ``full`` the debug tables) for every
    prototype under ``root``.  Returns the number of prototypes listed."""

    count = 0
    for proto in iter_prototypes(root):
        for line in format_header(proto):
            _write(out, line)
        for entry in disassemble(proto):
            _write(out, format_instruction(entry))
        if full:
            print_debug(proto, out)
        count += 1
    LOGGER.debug("listed %d prototype(s)", count)
    return count


def listing_to_dict(root: Prototype, *, full: bool = False) -> Dict[str, Any]:
    """Whole tree as nested dictionaries, ready for ``json.dumps``."""

    result: Dict[str, Any] = {
        "header": describe_header(root),
        "instructions": disassemble(root),
    }
    if full:
        result["debug"] = debug_tables(root)
    result["functions"] = [listing_to_dict(child, full=full) for child in root.protos]
    return result


__all__ = [
    "OutputError",
    "disassemble",
    "describe_header",
    "format_header",
    "format_instruction",
    "format_debug",
    "debug_tables",
    "iter_prototypes",
    "print_function",
    "print_debug",
    "listing_to_dict",
]
