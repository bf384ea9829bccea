"""Merge several main chunks into one prototype tree.

Each input becomes a nested function of a synthetic main chunk which calls
them in order, so the result can be written out as a single chunk.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from .disasm_util import encode_abc, encode_abx
from .proto import Prototype, Upvalue

LOGGER = logging.getLogger("pyluac.combine")

PROGNAME = "pyluac"
WRAPPER_SOURCE = f"=({PROGNAME})"
ENV_NAME = "_ENV"


def _wrapper_code(count: int) -> List[int]:
    code: List[int] = []
    for index in range(count):
        code.append(encode_abx("CLOSURE", 0, index))
        code.append(encode_abc("CALL", 0, 1, 1))
    code.append(encode_abc("RETURN", 0, 1, 0))
    return code


def combine(prototypes: Sequence[Prototype]) -> Prototype:
    """Return the single input unchanged, or a wrapper calling every input.

    The wrapper owns one upvalue, ``_ENV``, captured from the loader's stack.
    A main chunk expects its first upvalue to be captured from the stack of
    whoever loads it; inside the wrapper that slot has to come from the
    wrapper's own upvalue list instead, so each input's first upvalue is
    switched over.  This is the only change made to the inputs.
    """

    if not prototypes:
        raise ValueError("combine needs at least one prototype")
    if len(prototypes) == 1:
        return prototypes[0]

    protos = list(prototypes)
    for index, proto in enumerate(protos):
        if proto.upvalues and proto.upvalues[0].instack:
            proto.upvalues[0].instack = False
            LOGGER.debug("chunk %d: first upvalue now taken from wrapper upvalue %d", index, proto.upvalues[0].idx)

    wrapper = Prototype(
        source=WRAPPER_SOURCE,
        linedefined=0,
        lastlinedefined=0,
        numparams=0,
        is_vararg=True,
        maxstacksize=2,
        code=_wrapper_code(len(protos)),
        protos=protos,
        upvalues=[Upvalue(instack=True, idx=0, name=ENV_NAME)],
    )
    LOGGER.debug("combined %d chunks", len(protos))
    return wrapper


__all__ = ["combine", "WRAPPER_SOURCE"]
