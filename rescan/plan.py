"""rescan/plan.py – the validated, reusable scan plan.

A :class:`ScanPlan` is produced by :func:`rescan.binding.bind` and never
changes afterwards.  Its patterns are compiled with the ``regex`` package
the first time they are needed and the result (or the compile failure)
is memoised on the plan, so a plan can be shared freely between threads,
each scanning its own stream.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

import regex

from rescan.errors import PatternCompileError
from rescan.rules import Rule
from rescan.template import escape_literal

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ResolvedLiteral:
    text: str


@dataclass(frozen=True, slots=True)
class ResolvedCapture:
    slot: Optional[int]   # None: match and discard
    rule_index: int       # index into ScanPlan.rules


ResolvedSegment = Union[ResolvedLiteral, ResolvedCapture]


@dataclass(frozen=True)
class ScanPlan:
    """Resolved segments plus the flattened rule list.

    ``rules`` holds the positional rules followed by the named rules;
    ``ResolvedCapture.rule_index`` indexes into it.  ``arity`` is the
    length of the output tuple.
    """

    segments: Tuple[ResolvedSegment, ...]
    rules: Tuple[Rule, ...]
    arity: int
    template: str = ""
    _lock: Any = field(init=False, repr=False, compare=False)
    _compiled: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_lock", threading.Lock())
        object.__setattr__(self, "_compiled", None)

    # ------------------------------------------------------------------
    #  Pattern compilation
    # ------------------------------------------------------------------

    def _compile_all(self) -> Union[Tuple[Any, ...], PatternCompileError]:
        patterns = []
        for index, rule in enumerate(self.rules):
            source = rule.effective_pattern
            try:
                patterns.append(regex.compile(source))
            except regex.error as exc:
                error = PatternCompileError(source, index, str(exc))
                error.__cause__ = exc
                logger.debug("pattern %d of %r failed to compile: %s", index, self.template, exc)
                return error
        logger.debug("compiled %d pattern(s) for %r", len(patterns), self.template)
        return tuple(patterns)

    def compiled(self) -> Tuple[Any, ...]:
        """Compiled patterns, one per rule, computed at most once.

        Raises
        ------
        rescan.errors.PatternCompileError
            On this and every later call if a pattern is malformed.
        """
        state = self._compiled
        if state is None:
            with self._lock:
                state = self._compiled
                if state is None:
                    state = self._compile_all()
                    object.__setattr__(self, "_compiled", state)
        if isinstance(state, PatternCompileError):
            raise state
        return state

    @property
    def is_compiled(self) -> bool:
        return self._compiled is not None

    # ------------------------------------------------------------------
    #  Introspection
    # ------------------------------------------------------------------

    def captures(self) -> List[ResolvedCapture]:
        return [s for s in self.segments if isinstance(s, ResolvedCapture)]

    def output_types(self) -> List[str]:
        """Type name of each output slot, in slot order."""
        by_slot = {
            cap.slot: self.rules[cap.rule_index].type_name
            for cap in self.captures()
            if cap.slot is not None
        }
        return [by_slot[slot] for slot in range(self.arity)]

    def canonical_template(self) -> str:
        """Template text with every capture spelled out as ``{slot:rule}``."""
        parts = []
        for seg in self.segments:
            if isinstance(seg, ResolvedLiteral):
                parts.append(escape_literal(seg.text))
            else:
                slot = "_" if seg.slot is None else str(seg.slot)
                parts.append("{" + f"{slot}:{seg.rule_index}" + "}")
        return "".join(parts)

    def describe(self) -> str:
        lines = [f"plan for {self.template!r} (arity {self.arity})"]
        for seg in self.segments:
            if isinstance(seg, ResolvedLiteral):
                lines.append(f"  literal  {seg.text!r}")
            else:
                rule = self.rules[seg.rule_index]
                slot = "_" if seg.slot is None else str(seg.slot)
                lines.append(
                    f"  capture  slot={slot} rule={seg.rule_index} "
                    f"pattern={rule.effective_pattern!r} type={rule.type_name}"
                )
        return "\n".join(lines)
