"""rescan/scanner.py – the user-facing Scanner and module-level helpers.

Usage::

    from rescan import Scanner, scan

    s = Scanner("{} is {} years old", str, "u8")
    s.scan("Ferris is 7 years old")          # ('Ferris', 7)

    for name, age in s.scan_lines(open("ages.txt", "rb")):
        ...

    scan("{}-{}", "12-34", int, int)          # (12, 34)

Plans are shared: a process-wide cache keyed by template text and rule list
means building the same :class:`Scanner` twice parses and binds the
template once.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Hashable, List, Optional, Tuple

from rescan.binding import bind
from rescan.engine import execute
from rescan.plan import ScanPlan
from rescan.readers import (
    DEFAULT_BUFFER_SIZE,
    LineIter,
    LineReader,
    ScanIter,
    ensure_reader,
)
from rescan.rules import RuleList, collect_args, parse_args
from rescan.template import parse_template

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Configuration
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class ScanConfig:
    """Tuning knobs for a :class:`Scanner`."""
    buffer_size: int = DEFAULT_BUFFER_SIZE
    eager_compile: bool = False
    plan_cache_capacity: int = 256      # 0 disables the shared plan cache
    line_errors: str = "raise"          # or "skip"

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.buffer_size <= 0:
            warnings.append("buffer_size must be positive")
        if self.plan_cache_capacity < 0:
            warnings.append("plan_cache_capacity must be non-negative")
        if self.line_errors not in ("raise", "skip"):
            warnings.append("line_errors must be 'raise' or 'skip'")
        return warnings


# ═══════════════════════════════════════════════════════════════════════
#  Plan cache
# ═══════════════════════════════════════════════════════════════════════

class _PlanCache:
    """Bounded plan cache keyed by ``(template, rule_list)``.

    Plans are immutable, so a cached plan can be handed to any number of
    scanners and threads.  The oldest entry is evicted first.
    """

    def __init__(self, capacity: int = 256):
        self._store: Dict[Hashable, ScanPlan] = {}
        self._capacity = capacity
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: Hashable) -> Optional[ScanPlan]:
        with self._lock:
            plan = self._store.get(key)
            if plan is not None:
                self._hits += 1
                return plan
            self._misses += 1
            return None

    def put(self, key: Hashable, plan: ScanPlan) -> None:
        with self._lock:
            if key in self._store:
                self._store[key] = plan
                return
            self._store[key] = plan
            self._evict()

    def resize(self, capacity: int) -> None:
        with self._lock:
            self._capacity = capacity
            self._evict()

    def _evict(self) -> None:
        while len(self._store) > self._capacity:
            oldest = next(iter(self._store))
            del self._store[oldest]
            self._evictions += 1

    def invalidate(self) -> None:
        with self._lock:
            self._store.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "size": len(self._store),
                "capacity": self._capacity,
            }


_PLAN_CACHE = _PlanCache()


def build_plan(template: str, rules: RuleList, use_cache: bool = True) -> ScanPlan:
    """Parse *template* and bind it to *rules*, going through the plan cache.

    Raises
    ------
    rescan.errors.TemplateError
    rescan.errors.BindErrors
    """
    key: Tuple[str, RuleList] = (template, rules)
    if use_cache:
        plan = _PLAN_CACHE.get(key)
        if plan is not None:
            logger.debug("plan cache hit for %r", template)
            return plan

    t0 = time.monotonic()
    plan = bind(parse_template(template), rules, template)
    logger.debug("built plan for %r in %.3fms", template, (time.monotonic() - t0) * 1000)

    if use_cache:
        _PLAN_CACHE.put(key, plan)
    return plan


def plan_cache_stats() -> Dict[str, int]:
    """Hit/miss/eviction counters of the shared plan cache."""
    return _PLAN_CACHE.stats()


def clear_plan_cache() -> None:
    _PLAN_CACHE.invalidate()


# ═══════════════════════════════════════════════════════════════════════
#  Scanner
# ═══════════════════════════════════════════════════════════════════════

class Scanner:
    """A template bound to its rules, ready to scan any number of streams.

    Parameters
    ----------
    template : str
        Literal text with ``{}`` captures.
    *rules
        Positional rules: type names or classes (``"u8"``, ``int``),
        ``(pattern, type)`` tuples, :class:`~rescan.rules.Rule` objects.
    config : ScanConfig, optional
        Buffer size, eager compilation, caching and line-error policy.
    **named_rules
        Named rules, referenced as ``{:name}``.

    Raises
    ------
    rescan.errors.TemplateError, rescan.errors.ArgumentError, rescan.errors.BindErrors
        The template and rules do not form a valid plan.
    rescan.errors.PatternCompileError
        Only with ``eager_compile``; otherwise on the first scan.
    """

    def __init__(self, template: str, *rules: Any, config: Optional[ScanConfig] = None, **named_rules: Any):
        self._setup(template, collect_args(rules, named_rules), config)

    @classmethod
    def from_rule_text(cls, template: str, rule_text: str = "", config: Optional[ScanConfig] = None) -> "Scanner":
        """Build a scanner from a textual rule list such as ``'r"[0-9]+" as u8, name = String'``."""
        self = cls.__new__(cls)
        self._setup(template, parse_args(rule_text), config)
        return self

    def _setup(self, template: str, rules: RuleList, config: Optional[ScanConfig]) -> None:
        self._config = config or ScanConfig()
        for w in self._config.validate():
            logger.warning("ScanConfig: %s", w)

        capacity = self._config.plan_cache_capacity
        if capacity > 0 and capacity != _PLAN_CACHE.stats()["capacity"]:
            _PLAN_CACHE.resize(capacity)
        self._plan = build_plan(template, rules, use_cache=capacity > 0)

        if self._config.eager_compile:
            self._plan.compiled()

    # -- Introspection ---------------------------------------------------
    @property
    def plan(self) -> ScanPlan:
        return self._plan

    @property
    def arity(self) -> int:
        return self._plan.arity

    @property
    def config(self) -> ScanConfig:
        return self._config

    def __repr__(self) -> str:
        return f"Scanner({self._plan.template!r}, arity={self._plan.arity})"

    # -- Scanning --------------------------------------------------------
    def scan(self, source: Any) -> Tuple[Any, ...]:
        """Scan one occurrence of the template from *source*.

        *source* may be a :class:`~rescan.readers.BufferedSource` (it is
        advanced by what matched) or anything :class:`ByteReader` accepts.
        """
        return execute(self._plan, ensure_reader(source, self._config.buffer_size))

    __call__ = scan

    def scan_lines(self, source: Any, on_error: Optional[str] = None) -> LineIter:
        """Iterate over the output tuples of each line of *source*."""
        return LineIter(
            self._plan,
            source,
            on_error=on_error or self._config.line_errors,
            buffer_size=self._config.buffer_size,
        )

    def scan_multiple(self, source: Any, separator: Optional[str] = None) -> ScanIter:
        """Scan repeatedly until the stream ends or a scan fails."""
        return ScanIter(self._plan, source, separator, buffer_size=self._config.buffer_size)


# ═══════════════════════════════════════════════════════════════════════
#  Module-level helpers
# ═══════════════════════════════════════════════════════════════════════

def scanner(template: str, *rules: Any, **named_rules: Any) -> Scanner:
    return Scanner(template, *rules, **named_rules)


def scan(template: str, source: Any, *rules: Any, **named_rules: Any) -> Tuple[Any, ...]:
    """One-shot ``Scanner(template, *rules, **named_rules).scan(source)``."""
    return Scanner(template, *rules, **named_rules).scan(source)


def scanln(template: str, *rules: Any, file: Any = None, **named_rules: Any) -> Tuple[Any, ...]:
    """Read one line from *file* (default ``sys.stdin``) and scan it.

    Raises ``EOFError`` when the input is already exhausted.
    """
    line = (file or sys.stdin).readline()
    if not line:
        raise EOFError("end of input")
    return Scanner(template, *rules, **named_rules).scan(LineReader(line))
