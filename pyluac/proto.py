"""Function prototype data model.

A :class:`Prototype` is one compiled function: its code words, constant pool,
upvalue descriptors, nested prototypes and optional debug information.  Trees
of prototypes come from the chunk reader (or any other front end) and are
treated as read-only by the printers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, List, Optional, Union

# Strings longer than this are stored as long strings.
MAX_SHORT_LEN = 40

SIGNATURE_BYTE = "\x1b"


class ConstantTag(IntEnum):
    NIL = 0x00
    BOOLEAN = 0x01
    NUMFLT = 0x03
    SHRSTR = 0x04
    NUMINT = 0x13
    LNGSTR = 0x14


@dataclass(frozen=True)
class Constant:
    """A tagged constant pool entry.

    ``tag`` is kept as a plain int so entries with a tag outside
    :class:`ConstantTag` can still be carried and rendered.
    """

    tag: int
    value: Any = None

    @classmethod
    def nil(cls) -> "Constant":
        return cls(ConstantTag.NIL)

    @classmethod
    def boolean(cls, value: bool) -> "Constant":
        return cls(ConstantTag.BOOLEAN, bool(value))

    @classmethod
    def number(cls, value: float) -> "Constant":
        return cls(ConstantTag.NUMFLT, float(value))

    @classmethod
    def integer(cls, value: int) -> "Constant":
        return cls(ConstantTag.NUMINT, int(value))

    @classmethod
    def string(cls, value: Union[bytes, str]) -> "Constant":
        if isinstance(value, str):
            value = value.encode("utf-8")
        tag = ConstantTag.SHRSTR if len(value) <= MAX_SHORT_LEN else ConstantTag.LNGSTR
        return cls(tag, bytes(value))

    @property
    def is_string(self) -> bool:
        return self.tag in (ConstantTag.SHRSTR, ConstantTag.LNGSTR)


@dataclass
class Upvalue:
    """Upvalue descriptor.

    ``instack`` set: ``idx`` is a register of the enclosing function.
    ``instack`` clear: ``idx`` is an upvalue of the enclosing function.
    """

    instack: bool
    idx: int
    name: Optional[str] = None


@dataclass(frozen=True)
class LocalVar:
    name: str
    startpc: int
    endpc: int


@dataclass(eq=False)
class Prototype:
    source: Optional[str] = None
    linedefined: int = 0
    lastlinedefined: int = 0
    numparams: int = 0
    is_vararg: bool = False
    maxstacksize: int = 2
    code: List[int] = field(default_factory=list)
    constants: List[Constant] = field(default_factory=list)
    protos: List["Prototype"] = field(default_factory=list)
    upvalues: List[Upvalue] = field(default_factory=list)
    locvars: List[LocalVar] = field(default_factory=list)
    lineinfo: List[int] = field(default_factory=list)

    @property
    def is_main(self) -> bool:
        return self.linedefined == 0

    def line_for(self, pc: int) -> int:
        """Source line of instruction ``pc`` (0-based), or -1 when unknown."""
        if 0 <= pc < len(self.lineinfo):
            return self.lineinfo[pc]
        return -1

    def upvalue_name(self, index: int) -> str:
        if 0 <= index < len(self.upvalues):
            name = self.upvalues[index].name
            if name:
                return name
        return "-"

    def display_source(self) -> str:
        """Source name with its leading marker removed.

        ``@file`` and ``=name`` lose the marker, a source beginning with the
        binary signature byte shows as ``(bstring)`` and any other text as
        ``(string)``.
        """
        source = self.source if self.source is not None else "=?"
        if source[:1] in ("@", "="):
            return source[1:]
        if source[:1] == SIGNATURE_BYTE:
            return "(bstring)"
        return "(string)"

    def identity(self) -> str:
        """Token used to cross-reference closures with their prototype in listings."""
        return f"0x{id(self):08x}"


__all__ = [
    "ConstantTag",
    "Constant",
    "Upvalue",
    "LocalVar",
    "Prototype",
    "MAX_SHORT_LEN",
]
