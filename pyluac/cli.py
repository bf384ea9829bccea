"""pyluac command line entry point."""

from __future__ import annotations

import argparse
import io
import json
import logging
import os
import sys
from pathlib import Path
from typing import BinaryIO, List, Optional, TextIO

from . import __version__
from .chunk import ChunkError, dump_chunk, is_binary_chunk, loads_chunk
from .combine import PROGNAME, combine
from .disassemble import OutputError, listing_to_dict, print_function
from .proto import Prototype

LOG = logging.getLogger("pyluac.cli")

DEFAULT_OUTPUT = "luac.out"
VERSION_TEXT = f"{PROGNAME} {__version__} (Lua 5.3 bytecode)"


class CommandError(Exception):
    """Fatal problem reported as ``pyluac: <message>``."""


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROGNAME,
        description="List and combine Lua 5.3 precompiled chunks",
    )
    parser.add_argument("files", nargs="*", help="precompiled chunks ('-' reads stdin)")
    parser.add_argument(
        "-l",
        dest="listing",
        action="count",
        default=0,
        help="list (use -l -l for full listing)",
    )
    parser.add_argument(
        "-o",
        dest="output",
        metavar="NAME",
        help=f"output to file NAME (default is \"{DEFAULT_OUTPUT}\", '-' for stdout)",
    )
    parser.add_argument("-p", dest="parse_only", action="store_true", help="parse only")
    parser.add_argument("-s", dest="strip", action="store_true", help="strip debug information")
    parser.add_argument("-v", dest="version", action="store_true", help="show version information")
    parser.add_argument("--json", action="store_true", help="Emit the listing as JSON")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PYLUAC_LOG", "WARNING"),
        help="Logging level (default WARNING)",
    )
    return parser


def _read_input(name: str) -> Prototype:
    if name == "-":
        data = sys.stdin.buffer.read()
        label = "stdin"
    else:
        try:
            data = Path(name).read_bytes()
        except OSError as exc:
            raise CommandError(f"cannot open {name}: {exc.strerror or exc}") from exc
        label = name
    if not is_binary_chunk(data):
        raise CommandError(f"{label}: source chunks need a compiler front end")
    try:
        proto = loads_chunk(data, label)
    except ChunkError as exc:
        raise CommandError(str(exc)) from exc
    LOG.debug("loaded %s (%d instructions)", label, len(proto.code))
    return proto


def _dump(proto: Prototype, output: str, strip: bool) -> None:
    if output == "-":
        _dump_to(proto, sys.stdout.buffer, output, strip)
        sys.stdout.buffer.flush()
        return
    try:
        stream = open(output, "wb")
    except OSError as exc:
        raise CommandError(f"cannot open {output}: {exc.strerror or exc}") from exc
    with stream:
        _dump_to(proto, stream, output, strip)
    LOG.debug("wrote %s (strip=%s)", output, strip)


def _dump_to(proto: Prototype, stream: BinaryIO, output: str, strip: bool) -> None:
    try:
        dump_chunk(proto, stream, strip=strip)
    except OSError as exc:
        raise CommandError(f"cannot write {output}: {exc.strerror or exc}") from exc


def _listing_stream() -> TextIO:
    stream = sys.stdout
    # Source names carry undecodable bytes as surrogates; write them back raw.
    if isinstance(stream, io.TextIOWrapper):
        stream.reconfigure(errors="surrogateescape")
    return stream


def _list(proto: Prototype, full: bool, as_json: bool) -> None:
    if as_json:
        print(json.dumps(listing_to_dict(proto, full=full), indent=2))
        return
    print_function(proto, _listing_stream(), full=full)


def _only_version(args: argparse.Namespace) -> bool:
    return not (
        args.files
        or args.listing
        or args.parse_only
        or args.strip
        or args.json
        or args.output is not None
    )


def run(args: argparse.Namespace) -> int:
    files: List[str] = list(args.files)
    dumping = not args.parse_only
    if args.version:
        print(VERSION_TEXT)
        if _only_version(args):
            return 0
    if not files and (args.listing or not dumping):
        dumping = False
        files = [DEFAULT_OUTPUT]
    if not files:
        raise CommandError("no input files given")

    protos = [_read_input(name) for name in files]
    root = combine(protos)
    if args.listing:
        _list(root, args.listing > 1, args.json)
    if dumping:
        _dump(root, args.output or DEFAULT_OUTPUT, args.strip)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    try:
        return run(args)
    except CommandError as exc:
        print(f"{PROGNAME}: {exc}", file=sys.stderr)
        return 1
    except OutputError as exc:
        print(f"{PROGNAME}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
