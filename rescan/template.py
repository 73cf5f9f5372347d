"""rescan/template.py – template text → segment list.

A template is literal text interleaved with captures::

    "One might expect {} to have at least {}."
    "{0:name} is {1:} years old{_:rest}"

Grammar
-------
::

    template  → (literal | capture)*
    literal   → (char | '{{' | '}}')+           ; '{{' → '{', '}}' → '}'
    capture   → '{}'
              | '{' position? (':' rule?)? '}'
    position  → '_' | DIGITS                    ; empty → implicit
    rule      → DIGITS | IDENT                  ; empty → implicit
    IDENT     → [A-Za-z_][A-Za-z0-9_]*

A lone ``}`` in literal text is an error.  Capture bodies never nest
braces; the fields are limited to digits, letters and ``_``.

Parsing is fail-fast: the first problem raises a
:class:`~rescan.errors.TemplateError` subclass that points at the
offending character.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from rescan.errors import (
    InvalidPositionError,
    InvalidRuleReferenceError,
    UnexpectedCharacterError,
    UnmatchedCloseDelimiterError,
    UnmatchedOpenDelimiterError,
)


# ═══════════════════════════════════════════════════════════════════════
#  Segment model
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class NullPosition:
    """Match, but discard the value."""

    def __str__(self) -> str:
        return "_"


@dataclass(frozen=True, slots=True)
class ImplicitPosition:
    """Take the next sequential output slot."""

    def __str__(self) -> str:
        return ""


@dataclass(frozen=True, slots=True)
class ExplicitPosition:
    index: int

    def __str__(self) -> str:
        return str(self.index)


CapturePosition = Union[NullPosition, ImplicitPosition, ExplicitPosition]


@dataclass(frozen=True, slots=True)
class ImplicitRule:
    """Use the next unused rule in declaration order."""

    def __str__(self) -> str:
        return ""


@dataclass(frozen=True, slots=True)
class PositionalRule:
    index: int

    def __str__(self) -> str:
        return str(self.index)


@dataclass(frozen=True, slots=True)
class NamedRule:
    name: str

    def __str__(self) -> str:
        return self.name


RuleRef = Union[ImplicitRule, PositionalRule, NamedRule]


@dataclass(frozen=True, slots=True)
class Literal:
    text: str


@dataclass(frozen=True, slots=True)
class Capture:
    position: CapturePosition
    rule: RuleRef
    # offset of the opening brace; diagnostic context only
    offset: int = field(default=-1, compare=False)


Segment = Union[Literal, Capture]


# ═══════════════════════════════════════════════════════════════════════
#  Parser
# ═══════════════════════════════════════════════════════════════════════

def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def _is_ident_char(ch: str) -> bool:
    return _is_ident_start(ch) or ch.isascii() and ch.isdigit()


def _is_position_char(ch: str) -> bool:
    return ch == "_" or ch.isascii() and ch.isdigit()


class _TemplateParser:
    """Single-pass scanner alternating between literal runs and captures."""

    def __init__(self, template: str):
        self._src = template
        self._pos = 0
        self._out: List[Segment] = []

    def _peek(self) -> Optional[str]:
        if self._pos < len(self._src):
            return self._src[self._pos]
        return None

    def _take_while(self, pred) -> str:
        start = self._pos
        n = len(self._src)
        while self._pos < n and pred(self._src[self._pos]):
            self._pos += 1
        return self._src[start:self._pos]

    def parse(self) -> List[Segment]:
        n = len(self._src)
        while self._pos < n:
            self._parse_literal()
            if self._pos >= n:
                break
            self._parse_capture()
        return self._out

    def _parse_literal(self) -> None:
        src = self._src
        n = len(src)
        chars: List[str] = []
        while self._pos < n:
            ch = src[self._pos]
            if ch in "{}":
                if self._pos + 1 < n and src[self._pos + 1] == ch:
                    chars.append(ch)
                    self._pos += 2
                    continue
                if ch == "{":
                    break
                raise UnmatchedCloseDelimiterError(src, self._pos)
            chars.append(ch)
            self._pos += 1
        if chars:
            self._out.append(Literal("".join(chars)))

    def _parse_capture(self) -> None:
        src = self._src
        start = self._pos
        if src.startswith("{}", start):
            self._pos += 2
            self._out.append(Capture(ImplicitPosition(), ImplicitRule(), start))
            return

        self._pos += 1  # '{'

        # Position field: '_' → null, '' → implicit, digits → explicit.
        field_start = self._pos
        text = self._take_while(_is_position_char)
        if text == "_":
            position: CapturePosition = NullPosition()
        elif text == "":
            position = ImplicitPosition()
        elif text.isdigit():
            position = ExplicitPosition(int(text))
        else:
            raise InvalidPositionError(text, src, field_start)

        ch = self._peek()
        if ch == "}":
            self._pos += 1
            self._out.append(Capture(position, ImplicitRule(), start))
            return
        if ch is None:
            raise UnmatchedOpenDelimiterError(src, start)
        if ch != ":":
            raise UnexpectedCharacterError(ch, src, self._pos)
        self._pos += 1

        # Rule field: '' → implicit, digits → positional, identifier → named.
        field_start = self._pos
        text = self._take_while(_is_ident_char)
        if text == "":
            rule: RuleRef = ImplicitRule()
        elif _is_ident_start(text[0]):
            rule = NamedRule(text)
        elif text.isdigit():
            rule = PositionalRule(int(text))
        else:
            raise InvalidRuleReferenceError(text, src, field_start)

        ch = self._peek()
        if ch is None:
            raise UnmatchedOpenDelimiterError(src, start)
        if ch != "}":
            raise UnexpectedCharacterError(ch, src, self._pos)
        self._pos += 1
        self._out.append(Capture(position, rule, start))


def parse_template(template: str) -> List[Segment]:
    """Parse *template* into an ordered list of :class:`Literal` and
    :class:`Capture` segments.

    Raises
    ------
    rescan.errors.TemplateError
        On the first syntax error.
    """
    return _TemplateParser(template).parse()


def escape_literal(text: str) -> str:
    return text.replace("{", "{{").replace("}", "}}")


def format_capture(capture: Capture) -> str:
    position = str(capture.position)
    if isinstance(capture.rule, ImplicitRule):
        if not position:
            return "{}"
        return "{" + position + "}"
    return "{" + position + ":" + str(capture.rule) + "}"


def format_segments(segments: Sequence[Segment]) -> str:
    """Render *segments* back into canonical template text."""
    parts = []
    for seg in segments:
        if isinstance(seg, Literal):
            parts.append(escape_literal(seg.text))
        else:
            parts.append(format_capture(seg))
    return "".join(parts)


def iter_captures(segments: Sequence[Segment]) -> List[Capture]:
    return [s for s in segments if isinstance(s, Capture)]
