#!/usr/bin/env python3
"""Reader and writer for Lua 5.3 precompiled chunks.

Layout::

    header   "\\x1bLua" 0x53 0x00 "\\x19\\x93\\r\\n\\x1a\\n"
             sizeof(int) sizeof(size_t) sizeof(Instruction)
             sizeof(lua_Integer) sizeof(lua_Number)
             LUAC_INT (0x5678) LUAC_NUM (370.5)
    byte     number of upvalues of the main closure
    function main prototype

The reader takes its sizes and byte order from the header, so chunks written
on other platforms load too; the writer defaults to the common 64-bit
little-endian layout.
"""

from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass
from typing import BinaryIO, List, Optional

from .proto import Constant, ConstantTag, LocalVar, Prototype, Upvalue

LOGGER = logging.getLogger("pyluac.chunk")

LUA_SIGNATURE = b"\x1bLua"
LUAC_VERSION = 0x53
LUAC_FORMAT = 0
LUAC_DATA = b"\x19\x93\r\n\x1a\n"
LUAC_INT = 0x5678
LUAC_NUM = 370.5

_SIGNED = {4: "i", 8: "q"}
_UNSIGNED = {4: "I", 8: "Q"}
_FLOAT = {4: "f", 8: "d"}
_KNOWN_TAGS = frozenset(int(tag) for tag in ConstantTag)


class ChunkError(ValueError):
    """Malformed or unsupported precompiled chunk."""


@dataclass(frozen=True)
class ChunkLayout:
    byteorder: str = "<"
    int_size: int = 4
    size_t_size: int = 8
    instruction_size: int = 4
    integer_size: int = 8
    number_size: int = 8

    def fmt(self, code: str) -> struct.Struct:
        return struct.Struct(self.byteorder + code)


DEFAULT_LAYOUT = ChunkLayout()


def is_binary_chunk(data: bytes) -> bool:
    return data[:1] == LUA_SIGNATURE[:1]


def _decode_name(raw: Optional[bytes]) -> Optional[str]:
    if raw is None:
        return None
    return raw.decode("utf-8", "surrogateescape")


def _encode_name(text: Optional[str]) -> Optional[bytes]:
    if text is None:
        return None
    return text.encode("utf-8", "surrogateescape")


class _Reader:
    def __init__(self, data: bytes, name: str) -> None:
        self.data = data
        self.name = name
        self.pos = 0
        self._set_layout(DEFAULT_LAYOUT)

    def error(self, why: str) -> ChunkError:
        return ChunkError(f"{self.name}: {why}")

    def read(self, size: int) -> bytes:
        end = self.pos + size
        if size < 0 or end > len(self.data):
            raise self.error("truncated precompiled chunk")
        chunk = self.data[self.pos:end]
        self.pos = end
        return chunk

    def read_byte(self) -> int:
        return self.read(1)[0]

    def unpack(self, packer: struct.Struct):
        return packer.unpack(self.read(packer.size))[0]

    def read_int(self) -> int:
        return self.unpack(self._int)

    def read_size_t(self) -> int:
        return self.unpack(self._size_t)

    def read_integer(self) -> int:
        return self.unpack(self._integer)

    def read_number(self) -> float:
        return self.unpack(self._number)

    def read_string(self) -> Optional[bytes]:
        size = self.read_byte()
        if size == 0xFF:
            size = self.read_size_t()
        if size == 0:
            return None
        return self.read(size - 1)

    def _set_layout(self, layout: ChunkLayout) -> None:
        self.layout = layout
        self._int = layout.fmt(_SIGNED[layout.int_size])
        self._size_t = layout.fmt(_UNSIGNED[layout.size_t_size])
        self._integer = layout.fmt(_SIGNED[layout.integer_size])
        self._number = layout.fmt(_FLOAT[layout.number_size])
        self._instruction = layout.fmt("I")

    def header(self) -> None:
        if self.read(len(LUA_SIGNATURE)) != LUA_SIGNATURE:
            raise self.error("bad binary format (not a precompiled chunk)")
        if self.read_byte() != LUAC_VERSION:
            raise self.error("version mismatch in precompiled chunk")
        if self.read_byte() != LUAC_FORMAT:
            raise self.error("format mismatch in precompiled chunk")
        if self.read(len(LUAC_DATA)) != LUAC_DATA:
            raise self.error("corrupted precompiled chunk")
        sizes = {}
        for label, table in (
            ("int", _SIGNED),
            ("size_t", _UNSIGNED),
            ("Instruction", {4: "I"}),
            ("lua_Integer", _SIGNED),
            ("lua_Number", _FLOAT),
        ):
            size = self.read_byte()
            if size not in table:
                raise self.error(f"{label} size mismatch in precompiled chunk")
            sizes[label] = size
        raw_int = self.read(sizes["lua_Integer"])
        for order in ("<", ">"):
            if struct.unpack(order + _SIGNED[sizes["lua_Integer"]], raw_int)[0] == LUAC_INT:
                break
        else:
            raise self.error("endianness mismatch in precompiled chunk")
        self._set_layout(
            ChunkLayout(
                byteorder=order,
                int_size=sizes["int"],
                size_t_size=sizes["size_t"],
                instruction_size=sizes["Instruction"],
                integer_size=sizes["lua_Integer"],
                number_size=sizes["lua_Number"],
            )
        )
        if self.read_number() != LUAC_NUM:
            raise self.error("float format mismatch in precompiled chunk")

    def function(self, parent_source: Optional[str]) -> Prototype:
        source = _decode_name(self.read_string())
        if source is None:
            source = parent_source
        proto = Prototype(source=source)
        proto.linedefined = self.read_int()
        proto.lastlinedefined = self.read_int()
        proto.numparams = self.read_byte()
        proto.is_vararg = bool(self.read_byte())
        proto.maxstacksize = self.read_byte()
        proto.code = [self.unpack(self._instruction) for _ in range(self.read_int())]
        proto.constants = [self.constant() for _ in range(self.read_int())]
        proto.upvalues = [Upvalue(instack=bool(self.read_byte()), idx=self.read_byte()) for _ in range(self.read_int())]
        proto.protos = [self.function(proto.source) for _ in range(self.read_int())]
        proto.lineinfo = [self.read_int() for _ in range(self.read_int())]
        locvars: List[LocalVar] = []
        for _ in range(self.read_int()):
            name = _decode_name(self.read_string()) or ""
            locvars.append(LocalVar(name, self.read_int(), self.read_int()))
        proto.locvars = locvars
        for index in range(self.read_int()):
            name = _decode_name(self.read_string())
            if index < len(proto.upvalues):
                proto.upvalues[index].name = name
        return proto

    def constant(self) -> Constant:
        tag = self.read_byte()
        if tag == ConstantTag.NIL:
            return Constant.nil()
        if tag == ConstantTag.BOOLEAN:
            return Constant.boolean(self.read_byte())
        if tag == ConstantTag.NUMFLT:
            return Constant(ConstantTag.NUMFLT, self.read_number())
        if tag == ConstantTag.NUMINT:
            return Constant(ConstantTag.NUMINT, self.read_integer())
        if tag in (ConstantTag.SHRSTR, ConstantTag.LNGSTR):
            return Constant(ConstantTag(tag), self.read_string() or b"")
        raise self.error(f"bad constant tag {tag} in precompiled chunk")


def loads_chunk(data: bytes, name: str = "?") -> Prototype:
    """Parse a precompiled chunk held in memory."""

    reader = _Reader(bytes(data), name)
    reader.header()
    upvalue_count = reader.read_byte()
    proto = reader.function(None)
    if upvalue_count != len(proto.upvalues):
        LOGGER.debug("%s: header announces %d upvalues, main has %d", name, upvalue_count, len(proto.upvalues))
    LOGGER.debug("%s: loaded %d bytes (byteorder %r)", name, reader.pos, reader.layout.byteorder)
    return proto


def load_chunk(stream: BinaryIO, name: str = "?") -> Prototype:
    return loads_chunk(stream.read(), name)


class _Writer:
    def __init__(self, stream: BinaryIO, layout: ChunkLayout, strip: bool) -> None:
        self.stream = stream
        self.layout = layout
        self.strip = strip
        self._int = layout.fmt(_SIGNED[layout.int_size])
        self._size_t = layout.fmt(_UNSIGNED[layout.size_t_size])
        self._integer = layout.fmt(_SIGNED[layout.integer_size])
        self._number = layout.fmt(_FLOAT[layout.number_size])
        self._instruction = layout.fmt("I")

    def write(self, data: bytes) -> None:
        self.stream.write(data)

    def write_byte(self, value: int) -> None:
        self.write(bytes((value & 0xFF,)))

    def write_int(self, value: int) -> None:
        self.write(self._int.pack(value))

    def write_string(self, data: Optional[bytes]) -> None:
        if data is None:
            self.write_byte(0)
            return
        size = len(data) + 1
        if size < 0xFF:
            self.write_byte(size)
        else:
            self.write_byte(0xFF)
            self.write(self._size_t.pack(size))
        self.write(data)

    def header(self) -> None:
        layout = self.layout
        self.write(LUA_SIGNATURE)
        self.write_byte(LUAC_VERSION)
        self.write_byte(LUAC_FORMAT)
        self.write(LUAC_DATA)
        for size in (
            layout.int_size,
            layout.size_t_size,
            layout.instruction_size,
            layout.integer_size,
            layout.number_size,
        ):
            self.write_byte(size)
        self.write(self._integer.pack(LUAC_INT))
        self.write(self._number.pack(LUAC_NUM))

    def function(self, proto: Prototype, parent_source: Optional[str]) -> None:
        if self.strip or proto.source == parent_source:
            self.write_string(None)
        else:
            self.write_string(_encode_name(proto.source))
        self.write_int(proto.linedefined)
        self.write_int(proto.lastlinedefined)
        self.write_byte(proto.numparams)
        self.write_byte(1 if proto.is_vararg else 0)
        self.write_byte(proto.maxstacksize)
        self.write_int(len(proto.code))
        for word in proto.code:
            self.write(self._instruction.pack(word & 0xFFFFFFFF))
        self.write_int(len(proto.constants))
        for constant in proto.constants:
            self.constant(constant)
        self.write_int(len(proto.upvalues))
        for upvalue in proto.upvalues:
            self.write_byte(1 if upvalue.instack else 0)
            self.write_byte(upvalue.idx)
        self.write_int(len(proto.protos))
        for child in proto.protos:
            self.function(child, proto.source)
        self.debug(proto)

    def debug(self, proto: Prototype) -> None:
        lineinfo = [] if self.strip else proto.lineinfo
        self.write_int(len(lineinfo))
        for line in lineinfo:
            self.write_int(line)
        locvars = [] if self.strip else proto.locvars
        self.write_int(len(locvars))
        for var in locvars:
            self.write_string(_encode_name(var.name))
            self.write_int(var.startpc)
            self.write_int(var.endpc)
        names = [] if self.strip else [up.name for up in proto.upvalues]
        self.write_int(len(names))
        for name in names:
            self.write_string(_encode_name(name))

    def constant(self, constant: Constant) -> None:
        tag = constant.tag
        if tag not in _KNOWN_TAGS:
            raise ChunkError(f"cannot dump constant with unknown tag {int(tag)}")
        self.write_byte(tag)
        if tag == ConstantTag.BOOLEAN:
            self.write_byte(1 if constant.value else 0)
        elif tag == ConstantTag.NUMFLT:
            self.write(self._number.pack(constant.value))
        elif tag == ConstantTag.NUMINT:
            self.write(self._integer.pack(constant.value))
        elif constant.is_string:
            self.write_string(constant.value)


def dump_chunk(
    proto: Prototype,
    stream: BinaryIO,
    *,
    strip: bool = False,
    layout: ChunkLayout = DEFAULT_LAYOUT,
) -> None:
    """Write ``proto`` and everything below it to ``stream``.

    With ``strip`` the source name, line info, local variables and upvalue
    names are left out.  Errors from ``stream`` propagate unchanged.
    """

    writer = _Writer(stream, layout, strip)
    writer.header()
    writer.write_byte(len(proto.upvalues))
    writer.function(proto, None)


def dumps_chunk(proto: Prototype, *, strip: bool = False, layout: ChunkLayout = DEFAULT_LAYOUT) -> bytes:
    buffer = io.BytesIO()
    dump_chunk(proto, buffer, strip=strip, layout=layout)
    return buffer.getvalue()


__all__ = [
    "ChunkError",
    "ChunkLayout",
    "DEFAULT_LAYOUT",
    "LUA_SIGNATURE",
    "is_binary_chunk",
    "load_chunk",
    "loads_chunk",
    "dump_chunk",
    "dumps_chunk",
]
