"""
rescan/__main__.py
==================

Entry point for ``python -m rescan``; see :mod:`rescan.main` for options.
"""

from __future__ import annotations

import sys

from rescan.main import main

if __name__ == "__main__":
    try:
        sys.exit(main())
    except BrokenPipeError:
        # Output piped into e.g. `head`; stop quietly.
        sys.stderr.close()
        sys.exit(0)
