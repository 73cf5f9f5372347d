"""
rules.py — rule lists: the typed arguments that follow a template
=================================================================

Every capture in a template refers to a *rule*: a pattern to match and a
type to convert the match into.  Rules are declared positionally or by
name, positional ones first::

    "[[:alpha:]]+" as String, r"[0-9]+" as u8, age = u32, skip = "\\s*" as _

Three kinds of rule exist:

* ``Default`` — a bare type; the pattern comes from the type registry.
* ``Custom``  — an explicit pattern followed by ``as <type>``.
* ``Null``    — an explicit pattern with no type (``as _`` or no ``as``
  clause).  It may only be used by non-capturing (``{_:...}``) captures.

Two front ends build the same :class:`RuleList`:

* :func:`parse_args` parses the textual form above with a Parsimonious PEG
  grammar.
* :func:`collect_args` accepts Python values (``Rule``/``Arg`` objects,
  type names, classes, ``(pattern, type)`` tuples).

Depends on:
    - parsimonious (PEG parser)
"""

from __future__ import annotations

import ast
import enum
import logging
import warnings
from dataclasses import dataclass
from typing import (
    Any,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

from parsimonious.exceptions import IncompleteParseError, ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from rescan.errors import (
    ArgumentError,
    ArgumentSyntaxError,
    PositionalAfterNamedError,
    RescanError,
)
from rescan.types import ScanType, is_infer_marker, lookup_type

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════
#  Rule model
# ═══════════════════════════════════════════════════════════════════

class RuleKind(enum.Enum):
    DEFAULT = "default"
    CUSTOM = "custom"
    NULL = "null"


@dataclass(frozen=True)
class Rule:
    """A declared (pattern, type) pair."""

    kind: RuleKind
    pattern: Optional[str] = None
    type: Optional[ScanType] = None

    @classmethod
    def default(cls, type_: Any) -> "Rule":
        """Rule whose pattern is the registry default for *type_*."""
        return cls(RuleKind.DEFAULT, None, lookup_type(type_))

    @classmethod
    def custom(cls, pattern: str, type_: Any) -> "Rule":
        """Rule with an explicit pattern; ``_``/``None`` as type gives a null rule."""
        if not isinstance(pattern, str):
            raise ArgumentError(f"pattern must be a string, got {type(pattern).__name__}")
        if is_infer_marker(type_):
            return cls.null(pattern)
        return cls(RuleKind.CUSTOM, pattern, lookup_type(type_))

    @classmethod
    def null(cls, pattern: str) -> "Rule":
        """Rule that matches *pattern* but produces no value."""
        if not isinstance(pattern, str):
            raise ArgumentError(f"pattern must be a string, got {type(pattern).__name__}")
        return cls(RuleKind.NULL, pattern, None)

    @classmethod
    def from_spec(cls, spec: Any) -> "Rule":
        """Build a rule from a Python value.

        ``Rule`` → itself; ``(pattern, type)`` → custom or null;
        ``(pattern,)`` → null; anything else is looked up as a type.
        """
        if isinstance(spec, Rule):
            return spec
        if isinstance(spec, tuple):
            if len(spec) == 2:
                return cls.custom(spec[0], spec[1])
            if len(spec) == 1:
                return cls.null(spec[0])
            raise ArgumentError(f"expected (pattern, type), got a {len(spec)}-tuple")
        return cls.default(spec)

    @property
    def is_null(self) -> bool:
        return self.kind is RuleKind.NULL

    @property
    def effective_pattern(self) -> Optional[str]:
        """The pattern this rule matches with (``None`` if the type has none)."""
        if self.kind is RuleKind.DEFAULT:
            return self.type.default_pattern
        return self.pattern

    @property
    def type_name(self) -> str:
        return self.type.name if self.type is not None else "_"

    def describe(self) -> str:
        if self.kind is RuleKind.DEFAULT:
            return self.type_name
        return f"{self.pattern!r} as {self.type_name}"

    def __repr__(self) -> str:
        return f"Rule({self.describe()})"


@dataclass(frozen=True)
class Arg:
    """One declared argument: an optional name and its rule."""

    name: Optional[str]
    rule: Rule

    def describe(self) -> str:
        if self.name is None:
            return self.rule.describe()
        return f"{self.name} = {self.rule.describe()}"


@dataclass(frozen=True)
class RuleList:
    """Positional rules followed by named rules, in declaration order."""

    positional: Tuple[Rule, ...] = ()
    named: Tuple[Tuple[str, Rule], ...] = ()

    def flattened(self) -> Tuple[Rule, ...]:
        return self.positional + tuple(rule for _, rule in self.named)

    def names(self) -> List[str]:
        return [name for name, _ in self.named]

    def __len__(self) -> int:
        return len(self.positional) + len(self.named)

    def describe(self) -> str:
        parts = [r.describe() for r in self.positional]
        parts += [f"{name} = {rule.describe()}" for name, rule in self.named]
        return ", ".join(parts)


def _build_rule_list(args: Iterable[Arg]) -> RuleList:
    positional: List[Rule] = []
    named: List[Tuple[str, Rule]] = []
    for index, arg in enumerate(args):
        if arg.name is None:
            if named:
                raise PositionalAfterNamedError(index)
            positional.append(arg.rule)
        else:
            named.append((arg.name, arg.rule))
    return RuleList(tuple(positional), tuple(named))


def collect_args(args: Sequence[Any] = (), named: Optional[Mapping[str, Any]] = None) -> RuleList:
    """Build a :class:`RuleList` from Python values.

    *args* may mix :class:`Arg` objects (named or not) with rule specs
    accepted by :meth:`Rule.from_spec`; *named* rules are appended after
    them in mapping order.
    """
    items: List[Arg] = []
    for spec in args:
        if isinstance(spec, Arg):
            items.append(spec)
        else:
            items.append(Arg(None, Rule.from_spec(spec)))
    for name, spec in (named or {}).items():
        items.append(Arg(name, Rule.from_spec(spec)))
    return _build_rule_list(items)


# ═══════════════════════════════════════════════════════════════════
#  Rule-list grammar (Parsimonious PEG)
# ═══════════════════════════════════════════════════════════════════

RULE_LIST_GRAMMAR = Grammar(r'''
    rule_list       = _ entries? _

    entries         = entry more_entry* trailing_comma?
    more_entry      = _ "," _ entry
    trailing_comma  = _ ","

    entry           = name_prefix? body
    name_prefix     = identifier _ "=" _

    body            = pattern_body / type_name
    pattern_body    = pattern as_clause?
    as_clause       = _ "as" __ type_name

    pattern         = raw_string / quoted_string
    raw_string      = ~r'[rR]"[^"]*"' / ~r"[rR]'[^']*'"
    quoted_string   = ~r'"(?:[^"\\]|\\.)*"' / ~r"'(?:[^'\\]|\\.)*'"

    type_name       = ~r"[A-Za-z_][A-Za-z0-9_]*(?:::[A-Za-z_][A-Za-z0-9_]*)*"
    identifier      = ~r"[A-Za-z_][A-Za-z0-9_]*"

    _               = ~r"\s*"
    __              = ~r"\s+"
''')


class _RuleListBuilder(NodeVisitor):
    """Transforms the Parsimonious parse tree into :class:`Arg` objects."""

    unwrapped_exceptions = (RescanError,)

    def __init__(self) -> None:
        self._count = 0
        self._seen_named = False

    def generic_visit(self, node, visited_children):
        return visited_children

    def visit_rule_list(self, node, visited_children):
        _, entries, _ = visited_children
        return entries[0] if entries else []

    def visit_entries(self, node, visited_children):
        first, more, _ = visited_children
        return [first, *more]

    def visit_more_entry(self, node, visited_children):
        return visited_children[-1]

    def visit_entry(self, node, visited_children):
        prefix, rule = visited_children
        name = prefix[0] if prefix else None
        index = self._count
        self._count += 1
        # Stop at the first misplaced positional argument; later
        # diagnostics would refer to shifted indices.
        if name is None and self._seen_named:
            raise PositionalAfterNamedError(index)
        if name is not None:
            self._seen_named = True
        return Arg(name, rule)

    def visit_name_prefix(self, node, visited_children):
        return visited_children[0]

    def visit_body(self, node, visited_children):
        child = visited_children[0]
        if isinstance(child, Rule):
            return child
        if is_infer_marker(child):
            raise ArgumentError("the `_` type needs a pattern: write `\"<pattern>\" as _`")
        return Rule.default(child)

    def visit_pattern_body(self, node, visited_children):
        pattern, as_clause = visited_children
        if not as_clause:
            return Rule.null(pattern)
        return Rule.custom(pattern, as_clause[0])

    def visit_as_clause(self, node, visited_children):
        return visited_children[-1]

    def visit_pattern(self, node, visited_children):
        return visited_children[0]

    def visit_raw_string(self, node, visited_children):
        return node.text[2:-1]

    def visit_quoted_string(self, node, visited_children):
        # Non-raw literals keep Python escape semantics; unknown escapes
        # such as "\d" are passed through as-is.
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            return ast.literal_eval(node.text)

    def visit_type_name(self, node, visited_children):
        # std::net::Ipv4Addr → Ipv4Addr
        return node.text.rsplit("::", 1)[-1]

    def visit_identifier(self, node, visited_children):
        return node.text


def _syntax_error(text: str, pos: int) -> ArgumentSyntaxError:
    if pos >= len(text):
        return ArgumentSyntaxError("unexpected end of argument list", text, len(text))
    return ArgumentSyntaxError(f"unexpected {text[pos]!r} in argument list", text, pos)


def parse_arg_list(text: str) -> List[Arg]:
    """Parse the textual rule list into :class:`Arg` objects."""
    try:
        tree = RULE_LIST_GRAMMAR.parse(text)
    except IncompleteParseError as exc:
        raise _syntax_error(text, exc.pos) from None
    except ParseError as exc:
        raise _syntax_error(text, exc.pos) from None
    return _RuleListBuilder().visit(tree)


def parse_args(text: str) -> RuleList:
    """Parse a textual rule list such as ``'r"[0-9]+" as u8, name = String'``.

    Raises
    ------
    rescan.errors.ArgumentSyntaxError
        The text does not follow the grammar.
    rescan.errors.PositionalAfterNamedError
        A positional argument follows a named one.
    rescan.errors.UnknownTypeError
        A type name is not registered.
    """
    args = parse_arg_list(text)
    rules = _build_rule_list(args)
    logger.debug("parsed %d argument(s): %s", len(rules), rules.describe())
    return rules
