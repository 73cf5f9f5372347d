"""rescan/binding.py – reconcile template captures with declared rules.

:func:`bind` resolves every capture's output position and rule reference
to concrete indices and validates the combination:

* every real output slot is used exactly once and the slots are ``0..n``;
* every named rule has a unique name;
* every declared rule is referenced by some capture;
* rules without a type only back non-capturing (``{_:...}``) captures;
* bare-type rules name a type that has a default pattern.

Unlike the two parsers, binding reports exhaustively: all problems are
collected in an :class:`~rescan.errors.ErrorReporter` and raised together
as one :class:`~rescan.errors.BindErrors`.
"""

from __future__ import annotations

import logging
from itertools import groupby
from typing import Dict, List, Optional, Sequence, Tuple

from rescan.errors import (
    DuplicateOutputError,
    DuplicateRuleNameError,
    ErrorReporter,
    InvalidPositionalReferenceError,
    MissingDefaultPatternError,
    MissingOutputError,
    UnknownNamedReferenceError,
    UntypedCaptureError,
    UnusedRuleError,
)
from rescan.plan import ResolvedCapture, ResolvedLiteral, ResolvedSegment, ScanPlan
from rescan.rules import RuleKind, RuleList
from rescan.template import (
    ExplicitPosition,
    ImplicitRule,
    Literal,
    NullPosition,
    PositionalRule,
    Segment,
)

logger = logging.getLogger(__name__)


def _resolve(
    segments: Sequence[Segment],
    rules: RuleList,
    reporter: ErrorReporter,
) -> List[Tuple[int, ResolvedSegment]]:
    """Step 1: resolve positions and rule references.

    Returns ``(segment_index, resolved)`` pairs.  Captures with an
    unknown name are dropped; there is no rule to check them against.
    """
    num_positional = len(rules.positional)
    name_index: Dict[str, int] = {}
    for idx, name in enumerate(rules.names()):
        name_index.setdefault(name, idx)

    next_slot = 0
    next_rule = 0
    bad_positions: List[int] = []
    resolved: List[Tuple[int, ResolvedSegment]] = []

    for seg_idx, seg in enumerate(segments):
        if isinstance(seg, Literal):
            resolved.append((seg_idx, ResolvedLiteral(seg.text)))
            continue

        pos = seg.position
        if isinstance(pos, NullPosition):
            slot: Optional[int] = None
        elif isinstance(pos, ExplicitPosition):
            slot = pos.index
        else:
            slot = next_slot
            next_slot += 1

        ref = seg.rule
        if isinstance(ref, ImplicitRule):
            rule_index = next_rule
            next_rule += 1
            if rule_index >= num_positional:
                bad_positions.append(rule_index)
        elif isinstance(ref, PositionalRule):
            rule_index = ref.index
            if rule_index >= num_positional:
                bad_positions.append(rule_index)
        else:
            found = name_index.get(ref.name)
            if found is None:
                reporter.report(UnknownNamedReferenceError(ref.name))
                continue
            rule_index = num_positional + found

        resolved.append((seg_idx, ResolvedCapture(slot, rule_index)))

    if bad_positions:
        reporter.report(InvalidPositionalReferenceError(bad_positions, num_positional))
    return resolved


def _check_outputs(captures: List[Tuple[int, ResolvedCapture]], reporter: ErrorReporter) -> int:
    """Step 3: slots must be exactly ``0..n``.  Returns the arity."""
    outputs = sorted(
        ((cap.slot, seg_idx) for seg_idx, cap in captures if cap.slot is not None),
    )
    for slot, group in groupby(outputs, key=lambda item: item[0]):
        (_, first_seg), *rest = list(group)
        for _, seg_idx in rest:
            reporter.report(DuplicateOutputError(slot, seg_idx, first_seg))

    present = {slot for slot, _ in outputs}
    total = len(present)
    missing = [slot for slot in range(total) if slot not in present]
    if missing:
        reporter.report(MissingOutputError(missing, total))
    return len(present)


def _check_names(rules: RuleList, reporter: ErrorReporter) -> None:
    """Step 4: named rules must be unique."""
    num_positional = len(rules.positional)
    names = sorted((name, num_positional + idx) for idx, name in enumerate(rules.names()))
    for name, group in groupby(names, key=lambda item: item[0]):
        (_, first_idx), *rest = list(group)
        for _, idx in rest:
            reporter.report(DuplicateRuleNameError(name, idx, first_idx))


def _check_rules(
    captures: List[Tuple[int, ResolvedCapture]],
    rules: RuleList,
    reporter: ErrorReporter,
) -> None:
    """Steps 5 and 6: every rule used; null rules only in null captures."""
    flat = rules.flattened()
    used = {cap.rule_index for _, cap in captures}
    for idx in range(len(flat)):
        if idx not in used:
            reporter.report(UnusedRuleError(idx))

    for seg_idx, cap in captures:
        if cap.slot is None or cap.rule_index >= len(flat):
            continue
        if flat[cap.rule_index].is_null:
            reporter.report(UntypedCaptureError(seg_idx, cap.rule_index))

    for idx, rule in enumerate(flat):
        if rule.kind is RuleKind.DEFAULT and not rule.type.has_default:
            reporter.report(MissingDefaultPatternError(rule.type.name, idx))


def bind(segments: Sequence[Segment], rules: RuleList, template: str = "") -> ScanPlan:
    """Resolve and validate *segments* against *rules*.

    Returns
    -------
    rescan.plan.ScanPlan
        The immutable plan.

    Raises
    ------
    rescan.errors.BindErrors
        Carrying every binding error found.
    """
    reporter = ErrorReporter()
    resolved = _resolve(segments, rules, reporter)
    captures = [(i, s) for i, s in resolved if isinstance(s, ResolvedCapture)]
    arity = _check_outputs(captures, reporter)
    _check_names(rules, reporter)
    _check_rules(captures, rules, reporter)

    if reporter.has_errors():
        logger.debug("binding %r failed with %d error(s)", template, len(reporter))
    reporter.raise_if_errors()

    plan = ScanPlan(
        segments=tuple(seg for _, seg in resolved),
        rules=rules.flattened(),
        arity=arity,
        template=template,
    )
    logger.debug("bound %r: %d segment(s), %d rule(s), arity %d",
                 template, len(plan.segments), len(plan.rules), arity)
    return plan
