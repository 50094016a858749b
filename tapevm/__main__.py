#!/usr/bin/env python3
"""
tapevm/__main__.py
==================

``python -m tapevm`` entry point.  See :mod:`tapevm.main` for the commands.
"""

from __future__ import annotations

import sys
from typing import Optional, Sequence

from tapevm.main import main as _main


def main(argv: Optional[Sequence[str]] = None) -> int:
    return _main(argv)


if __name__ == "__main__":
    sys.exit(main())
