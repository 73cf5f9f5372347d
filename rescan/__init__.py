"""rescan — reverse formatting.

Read typed values back out of text laid out like a format string::

    >>> from rescan import scan
    >>> scan("{} is {} years old", "Ferris is 7 years old", str, "u8")
    ('Ferris', 7)

Submodules
----------
template
    Template text → literal and capture segments.

rules
    Rule lists (pattern + type), from Python values or from text via a
    Parsimonious grammar.

types
    Output types, their parsers and default patterns.

binding
    Resolves captures against rules and reports every problem at once.

plan
    The immutable ``ScanPlan`` with lazily compiled ``regex`` patterns.

engine
    Executes a plan over a buffered byte stream, UTF-8 aware.

readers
    ``ByteReader``, ``LineReader`` and the ``LineIter`` / ``ScanIter``
    iterators.

scanner
    ``Scanner`` façade, ``ScanConfig``, shared plan cache and the
    ``scan`` / ``scanln`` helpers.

errors
    Error codes (``RESCAN-XXXX``) and the exception hierarchy.

main
    CLI entry-point (``rescan`` / ``python -m rescan``).
"""

from __future__ import annotations

__version__: str = "0.1.0"

from rescan.errors import (  # noqa: E402
    BindErrors,
    RescanError,
    ScanError,
)
from rescan.plan import ScanPlan  # noqa: E402
from rescan.readers import ByteReader, LineReader  # noqa: E402
from rescan.rules import Arg, Rule, parse_args  # noqa: E402
from rescan.scanner import (  # noqa: E402
    ScanConfig,
    Scanner,
    clear_plan_cache,
    plan_cache_stats,
    scan,
    scanln,
    scanner,
)
from rescan.types import ScanType, register_type  # noqa: E402

__all__: list[str] = [
    "__version__",
    "Arg",
    "BindErrors",
    "ByteReader",
    "LineReader",
    "RescanError",
    "Rule",
    "ScanConfig",
    "ScanError",
    "ScanPlan",
    "ScanType",
    "Scanner",
    "clear_plan_cache",
    "parse_args",
    "plan_cache_stats",
    "register_type",
    "scan",
    "scanln",
    "scanner",
]
