# rescan/errors.py
"""
rescan Error Types and Reporting Module

This module provides the error handling infrastructure for every phase of
the rescan pipeline: template parsing, rule-list parsing, binding, pattern
compilation and stream scanning.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                     │
├─────────────────────────────────────────────────────────────────────────────┤
│  RescanError (base)                                                         │
│  ├── TemplateError        - Template syntax violations                      │
│  ├── ArgumentError        - Rule-list syntax / ordering / unknown types     │
│  ├── BindingError         - Capture ↔ rule reconciliation failures          │
│  ├── BindErrors           - Aggregate of every BindingError for a plan      │
│  ├── PatternCompileError  - A declared pattern is not a valid regex         │
│  └── ScanError            - Data errors while executing a plan              │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error has a unique code following the pattern RESCAN-XXXX where XXXX
is a 4-digit number in ranges:
  - 1000-1099: Template errors
  - 1100-1199: Argument (rule list) errors
  - 3000-3099: Binding errors
  - 4000-4099: Pattern compilation errors
  - 5000-5099: Scan errors

Template, argument, binding and compilation errors are configuration
errors: they are raised while a plan is being built and are never retried.
Scan errors are data errors, raised per call. I/O failures of the
underlying stream are plain ``OSError`` and are never wrapped.

Example Usage:
──────────────
    from rescan.errors import ErrorReporter, UnusedRuleError

    reporter = ErrorReporter()
    reporter.report(UnusedRuleError(2))
    reporter.raise_if_errors()      # raises BindErrors
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
)


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorPhase(Enum):
    """Pipeline phase in which an error was raised."""

    TEMPLATE = "template"
    ARGUMENTS = "arguments"
    BINDING = "binding"
    COMPILE = "compile"
    SCAN = "scan"

    def is_configuration(self) -> bool:
        """Configuration errors are raised while building a plan."""
        return self is not ErrorPhase.SCAN


class ErrorCode:
    """
    Structured error code.

    Error codes follow the pattern RESCAN-NNNN; the phase is carried along
    so that callers can tell configuration errors from data errors without
    inspecting the exception class.
    """

    __slots__ = ("prefix", "number", "phase", "title")

    def __init__(self, number: int, phase: ErrorPhase, title: str, prefix: str = "RESCAN") -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase
        self.title = title

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.title!r})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class RescanErrorCodes:
    """Predefined error codes."""

    # ═══════════════════════════════════════════════════════════════════════════
    # TEMPLATE ERRORS (1000-1099)
    # ═══════════════════════════════════════════════════════════════════════════

    UNMATCHED_OPEN_DELIMITER = ErrorCode(1001, ErrorPhase.TEMPLATE, "unmatched '{'")
    UNMATCHED_CLOSE_DELIMITER = ErrorCode(1002, ErrorPhase.TEMPLATE, "unmatched '}'")
    INVALID_POSITION = ErrorCode(1003, ErrorPhase.TEMPLATE, "invalid capture position")
    INVALID_RULE_REFERENCE = ErrorCode(1004, ErrorPhase.TEMPLATE, "invalid rule reference")
    UNEXPECTED_CHARACTER = ErrorCode(1005, ErrorPhase.TEMPLATE, "unexpected character")
    UNEXPECTED_END = ErrorCode(1006, ErrorPhase.TEMPLATE, "unexpected end of input")

    # ═══════════════════════════════════════════════════════════════════════════
    # ARGUMENT ERRORS (1100-1199)
    # ═══════════════════════════════════════════════════════════════════════════

    ARGUMENT_SYNTAX = ErrorCode(1101, ErrorPhase.ARGUMENTS, "malformed argument list")
    POSITIONAL_AFTER_NAMED = ErrorCode(1102, ErrorPhase.ARGUMENTS, "positional argument after named argument")
    UNKNOWN_TYPE = ErrorCode(1103, ErrorPhase.ARGUMENTS, "unknown type")
    INVALID_ARGUMENT = ErrorCode(1104, ErrorPhase.ARGUMENTS, "invalid argument")

    # ═══════════════════════════════════════════════════════════════════════════
    # BINDING ERRORS (3000-3099)
    # ═══════════════════════════════════════════════════════════════════════════

    INVALID_POSITIONAL_REFERENCE = ErrorCode(3001, ErrorPhase.BINDING, "invalid positional reference")
    UNKNOWN_NAMED_REFERENCE = ErrorCode(3002, ErrorPhase.BINDING, "unknown named reference")
    DUPLICATE_OUTPUT = ErrorCode(3003, ErrorPhase.BINDING, "duplicate output slot")
    MISSING_OUTPUT = ErrorCode(3004, ErrorPhase.BINDING, "missing output slot")
    DUPLICATE_RULE_NAME = ErrorCode(3005, ErrorPhase.BINDING, "duplicate argument name")
    UNUSED_RULE = ErrorCode(3006, ErrorPhase.BINDING, "unused argument")
    UNTYPED_CAPTURE = ErrorCode(3007, ErrorPhase.BINDING, "untyped argument used in capture")
    MISSING_DEFAULT_PATTERN = ErrorCode(3008, ErrorPhase.BINDING, "type has no default pattern")
    BINDING_FAILED = ErrorCode(3099, ErrorPhase.BINDING, "binding failed")

    # ═══════════════════════════════════════════════════════════════════════════
    # COMPILE ERRORS (4000-4099)
    # ═══════════════════════════════════════════════════════════════════════════

    PATTERN_COMPILE = ErrorCode(4001, ErrorPhase.COMPILE, "invalid pattern")

    # ═══════════════════════════════════════════════════════════════════════════
    # SCAN ERRORS (5000-5099)
    # ═══════════════════════════════════════════════════════════════════════════

    LITERAL_MISMATCH = ErrorCode(5001, ErrorPhase.SCAN, "literal mismatch")
    PATTERN_MISMATCH = ErrorCode(5002, ErrorPhase.SCAN, "pattern mismatch")
    DECODE = ErrorCode(5003, ErrorPhase.SCAN, "invalid UTF-8 sequence")
    VALUE_PARSE = ErrorCode(5004, ErrorPhase.SCAN, "value parse failure")


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR NOTES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ErrorNote:
    """
    Additional note attached to an error.

    Notes provide extra context, such as where a duplicated slot or name
    was first defined.
    """

    message: str
    label: str = "note"

    def __str__(self) -> str:
        prefix = f"{self.label}: " if self.label else ""
        return f"{prefix}{self.message}"


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class RescanError(Exception):
    """
    Base exception for all rescan errors.

    Carries a structured :class:`ErrorCode`, optional notes and a hint.
    """

    default_code: ErrorCode = RescanErrorCodes.BINDING_FAILED

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        notes: Optional[List[ErrorNote]] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.notes: List[ErrorNote] = list(notes or [])
        self.hint = hint

    @property
    def phase(self) -> ErrorPhase:
        return self.code.phase

    def note(self, message: str, label: str = "note") -> "RescanError":
        """Add a note to this error."""
        self.notes.append(ErrorNote(message=message, label=label))
        return self

    def with_hint(self, hint: str) -> "RescanError":
        """Add a hint to this error."""
        self.hint = hint
        return self

    def to_json(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        result: Dict[str, Any] = {
            "code": self.code.code,
            "phase": self.code.phase.value,
            "message": self.message,
        }
        if self.notes:
            result["notes"] = [str(n) for n in self.notes]
        if self.hint:
            result["hint"] = self.hint
        return result

    def __str__(self) -> str:
        lines = [self.message]
        lines.extend(f"  {note}" for note in self.notes)
        if self.hint:
            lines.append(f"  help: {self.hint}")
        return "\n".join(lines)


def _pointer(text: str, position: int) -> str:
    """Render *text* with a caret under *position*."""
    return f"  {text}\n  {' ' * position}^"


def _join_numbers(numbers: Sequence[int]) -> str:
    """Format ``[1]`` → ``1``; ``[1, 2]`` → ``1 and 2``; ``[1, 2, 3]`` → ``1, 2, and 3``."""
    items = [str(n) for n in numbers]
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return ", ".join(items[:-1]) + f", and {items[-1]}"


# ───────────────────────────────────────────────────────────────────────────────
# TEMPLATE ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class TemplateError(RescanError):
    """Raised when a template string is malformed."""

    default_code = RescanErrorCodes.UNEXPECTED_CHARACTER

    def __init__(
        self,
        message: str,
        template: str = "",
        position: int = -1,
        code: Optional[ErrorCode] = None,
        **kwargs: Any,
    ) -> None:
        self.template = template
        self.position = position
        self.reason = message
        if position >= 0 and template:
            message = f"{message}\n{_pointer(template, position)}"
        super().__init__(message, code=code, **kwargs)

    def to_json(self) -> Dict[str, Any]:
        result = super().to_json()
        result["message"] = self.reason
        result["position"] = self.position
        return result


class UnexpectedEndError(TemplateError):
    """The template ended in the middle of a capture."""

    default_code = RescanErrorCodes.UNEXPECTED_END

    def __init__(self, template: str = "", position: int = -1, message: str = "", **kwargs: Any) -> None:
        super().__init__(message or "unexpected end of input", template, position, **kwargs)


class UnmatchedOpenDelimiterError(UnexpectedEndError):
    """A ``{`` was never closed."""

    default_code = RescanErrorCodes.UNMATCHED_OPEN_DELIMITER

    def __init__(self, template: str = "", position: int = -1, **kwargs: Any) -> None:
        super().__init__(
            template,
            position,
            message="unmatched '{' in template (unexpected end of input)",
            **kwargs,
        )


class UnmatchedCloseDelimiterError(TemplateError):
    """A lone ``}`` outside of a capture."""

    default_code = RescanErrorCodes.UNMATCHED_CLOSE_DELIMITER

    def __init__(self, template: str = "", position: int = -1, **kwargs: Any) -> None:
        super().__init__("unmatched '}' in template", template, position, **kwargs)
        self.with_hint("write '}}' for a literal '}'")


class InvalidPositionError(TemplateError):
    """The position field of a capture is neither empty, ``_`` nor digits."""

    default_code = RescanErrorCodes.INVALID_POSITION

    def __init__(self, field_text: str, template: str = "", position: int = -1, **kwargs: Any) -> None:
        super().__init__(f"invalid position: '{field_text}'", template, position, **kwargs)
        self.field_text = field_text


class InvalidRuleReferenceError(TemplateError):
    """The rule field of a capture is neither empty, digits nor an identifier."""

    default_code = RescanErrorCodes.INVALID_RULE_REFERENCE

    def __init__(self, field_text: str, template: str = "", position: int = -1, **kwargs: Any) -> None:
        super().__init__(f"invalid rule: '{field_text}'", template, position, **kwargs)
        self.field_text = field_text


class UnexpectedCharacterError(TemplateError):
    """A character that cannot appear at this point of a capture."""

    default_code = RescanErrorCodes.UNEXPECTED_CHARACTER

    def __init__(self, character: str, template: str = "", position: int = -1, **kwargs: Any) -> None:
        super().__init__(
            f"unexpected character {character!r} in template", template, position, **kwargs
        )
        self.character = character


# ───────────────────────────────────────────────────────────────────────────────
# ARGUMENT ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class ArgumentError(RescanError):
    """Raised when a rule list cannot be parsed."""

    default_code = RescanErrorCodes.INVALID_ARGUMENT


class ArgumentSyntaxError(ArgumentError):
    """The textual rule list does not follow the grammar."""

    default_code = RescanErrorCodes.ARGUMENT_SYNTAX

    def __init__(self, message: str, text: str = "", position: int = -1, **kwargs: Any) -> None:
        self.text = text
        self.position = position
        if position >= 0 and text:
            message = f"{message}\n{_pointer(text, position)}"
        super().__init__(message, **kwargs)


class PositionalAfterNamedError(ArgumentError):
    """A positional argument follows a named one."""

    default_code = RescanErrorCodes.POSITIONAL_AFTER_NAMED

    def __init__(self, index: int, **kwargs: Any) -> None:
        super().__init__(
            f"positional arguments must be before named arguments (argument {index})",
            **kwargs,
        )
        self.index = index


class UnknownTypeError(ArgumentError):
    """A type designator that is not in the type registry."""

    default_code = RescanErrorCodes.UNKNOWN_TYPE

    def __init__(self, type_name: str, **kwargs: Any) -> None:
        super().__init__(f"unknown type `{type_name}`", **kwargs)
        self.type_name = type_name


# ───────────────────────────────────────────────────────────────────────────────
# BINDING ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class BindingError(RescanError):
    """A single problem found while binding captures to rules."""

    default_code = RescanErrorCodes.BINDING_FAILED


class InvalidPositionalReferenceError(BindingError):
    """One or more captures refer to positional rules that do not exist."""

    default_code = RescanErrorCodes.INVALID_POSITIONAL_REFERENCE

    def __init__(self, indices: Sequence[int], available: int, **kwargs: Any) -> None:
        noun = "argument" if len(indices) == 1 else "arguments"
        if available == 1:
            provided = "only 1 argument was provided"
        else:
            provided = f"only {available} arguments were provided"
        super().__init__(
            f"invalid reference to positional {noun} {_join_numbers(indices)} ({provided})",
            **kwargs,
        )
        self.indices = list(indices)
        self.available = available


class UnknownNamedReferenceError(BindingError):
    """A capture refers to a named rule that was not declared."""

    default_code = RescanErrorCodes.UNKNOWN_NAMED_REFERENCE

    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__(f"there is no argument named `{name}`", **kwargs)
        self.name = name


class DuplicateOutputError(BindingError):
    """Two captures write the same output slot."""

    default_code = RescanErrorCodes.DUPLICATE_OUTPUT

    def __init__(self, slot: int, segment: int, first_segment: int, **kwargs: Any) -> None:
        super().__init__(f"duplicate reference to capture position {slot}", **kwargs)
        self.slot = slot
        self.segment = segment
        self.first_segment = first_segment
        self.note(f"first defined here: capture at segment {first_segment}")


class MissingOutputError(BindingError):
    """Output slots do not cover ``0..n``."""

    default_code = RescanErrorCodes.MISSING_OUTPUT

    def __init__(self, slots: Sequence[int], total: int, **kwargs: Any) -> None:
        noun = "capture" if len(slots) == 1 else "captures"
        if total == 1:
            specified = "there was 1 capture spec"
        else:
            specified = f"there were {total} capture specs"
        super().__init__(f"missing {noun} {_join_numbers(slots)} ({specified})", **kwargs)
        self.slots = list(slots)
        self.total = total


class DuplicateRuleNameError(BindingError):
    """Two named rules share a name."""

    default_code = RescanErrorCodes.DUPLICATE_RULE_NAME

    def __init__(self, name: str, index: int, first_index: int, **kwargs: Any) -> None:
        super().__init__(f"duplicate argument name `{name}`", **kwargs)
        self.name = name
        self.index = index
        self.first_index = first_index
        self.note(f"first defined here: argument {first_index}")


class UnusedRuleError(BindingError):
    """A declared rule is never referenced by a capture."""

    default_code = RescanErrorCodes.UNUSED_RULE

    def __init__(self, index: int, **kwargs: Any) -> None:
        super().__init__(f"unused argument: {index}", **kwargs)
        self.index = index


class UntypedCaptureError(BindingError):
    """A capture producing output refers to a rule without a type."""

    default_code = RescanErrorCodes.UNTYPED_CAPTURE

    def __init__(self, segment: int, rule_index: int, **kwargs: Any) -> None:
        super().__init__(
            f"untyped argument {rule_index} cannot be used in a capture (segment {segment})",
            **kwargs,
        )
        self.segment = segment
        self.rule_index = rule_index
        self.with_hint(
            "try specifying an output type for the argument or using a non-capturing specifier"
        )


class MissingDefaultPatternError(BindingError):
    """A bare-type rule whose type has no default pattern."""

    default_code = RescanErrorCodes.MISSING_DEFAULT_PATTERN

    def __init__(self, type_name: str, rule_index: int, **kwargs: Any) -> None:
        super().__init__(
            f"type `{type_name}` has no default pattern (argument {rule_index})",
            **kwargs,
        )
        self.type_name = type_name
        self.rule_index = rule_index
        self.with_hint(f"write the argument as `\"<pattern>\" as {type_name}`")


class BindErrors(RescanError):
    """Every binding error found for one template/rule-list pair."""

    default_code = RescanErrorCodes.BINDING_FAILED

    def __init__(self, errors: Sequence[BindingError]) -> None:
        self.errors: List[BindingError] = list(errors)
        count = len(self.errors)
        header = f"{count} binding error{'s' if count != 1 else ''}"
        body = "\n".join(f"  [{e.code}] {e}" for e in self.errors)
        super().__init__(f"{header}:\n{body}" if body else header)

    def __iter__(self) -> Iterator[BindingError]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def kinds(self) -> List[type]:
        return [type(e) for e in self.errors]

    def to_json(self) -> Dict[str, Any]:
        result = super().to_json()
        result["message"] = f"{len(self.errors)} binding error(s)"
        result["errors"] = [e.to_json() for e in self.errors]
        return result


# ───────────────────────────────────────────────────────────────────────────────
# COMPILE ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class PatternCompileError(RescanError):
    """A declared pattern failed to compile."""

    default_code = RescanErrorCodes.PATTERN_COMPILE

    def __init__(self, pattern: str, rule_index: int, reason: str = "", **kwargs: Any) -> None:
        msg = f"invalid pattern {pattern!r} for argument {rule_index}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, **kwargs)
        self.pattern = pattern
        self.rule_index = rule_index


# ───────────────────────────────────────────────────────────────────────────────
# SCAN ERRORS
# ───────────────────────────────────────────────────────────────────────────────

class ScanError(RescanError):
    """The input did not match the plan."""

    default_code = RescanErrorCodes.LITERAL_MISMATCH


class LiteralMismatchError(ScanError):
    """Input text does not match a literal segment."""

    default_code = RescanErrorCodes.LITERAL_MISMATCH

    def __init__(self, literal: str, **kwargs: Any) -> None:
        super().__init__(f"input text does not match literal {literal!r}", **kwargs)
        self.literal = literal


class PatternMismatchError(ScanError):
    """Input text does not match a capture's pattern at the current position."""

    default_code = RescanErrorCodes.PATTERN_MISMATCH

    def __init__(self, pattern: str, **kwargs: Any) -> None:
        super().__init__(f"input text does not match pattern {pattern!r}", **kwargs)
        self.pattern = pattern


class DecodeError(ScanError):
    """Invalid UTF-8 at the current position.

    ``data`` holds only the offending bytes (at most four); ``offset`` is
    the number of input bytes consumed before them, when known.
    """

    default_code = RescanErrorCodes.DECODE

    def __init__(self, data: bytes, offset: Optional[int] = None, **kwargs: Any) -> None:
        self.data = bytes(data[:4])
        self.offset: Optional[int] = None
        shown = " ".join(f"{b:02x}" for b in self.data)
        super().__init__(f"invalid UTF-8 sequence: [{shown}]", **kwargs)
        if offset is not None:
            self.at_offset(offset)

    def at_offset(self, offset: int) -> "DecodeError":
        """Record the stream position of the offending bytes."""
        self.offset = offset
        self.note(f"at byte {offset} of the input")
        return self


class ValueParseError(ScanError):
    """A matched substring could not be converted to the rule's type."""

    default_code = RescanErrorCodes.VALUE_PARSE

    def __init__(self, text: str, type_name: str, reason: str = "", **kwargs: Any) -> None:
        msg = f"cannot parse {text!r} as {type_name}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, **kwargs)
        self.text = text
        self.type_name = type_name


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR REPORTER
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ErrorReporter:
    """
    Collects errors so that a phase can report all of them at once.

    The binding phase reports exhaustively, like compiler diagnostics;
    :meth:`raise_if_errors` turns the collection into one
    :class:`BindErrors` exception.
    """

    errors: List[BindingError] = field(default_factory=list)

    def report(self, error: BindingError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def as_exception(self) -> BindErrors:
        return BindErrors(self.errors)

    def raise_if_errors(self) -> None:
        if self.errors:
            raise self.as_exception()
