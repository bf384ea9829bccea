#!/usr/bin/env python3
"""Entry point for ``python -m pyluac``."""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
