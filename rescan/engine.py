"""rescan/engine.py – execute a :class:`~rescan.plan.ScanPlan` over a byte stream.

The engine walks the plan's segments in order against a
:class:`~rescan.readers.BufferedSource`:

* literal segments are compared with the decoded buffer, pulling more data
  whenever the buffered text is a strict prefix of what remains;
* capture segments run their compiled pattern anchored at the current
  position, then convert the matched text with the rule's type.

Input arrives as bytes and may split a multi-byte UTF-8 sequence across two
reads.  Only the longest valid prefix of the buffer is ever matched; an
incomplete trailing sequence waits for the next read, while a genuinely
invalid sequence at the front of the buffer is a :class:`DecodeError`.

On failure the stream is left advanced past whatever already matched.
"""

from __future__ import annotations

import codecs
import logging
from operator import itemgetter
from typing import Any, List, Tuple

from rescan.errors import (
    DecodeError,
    LiteralMismatchError,
    PatternMismatchError,
    ValueParseError,
)
from rescan.plan import ResolvedLiteral, ScanPlan
from rescan.rules import Rule

logger = logging.getLogger(__name__)

_utf8_decoder = codecs.getincrementaldecoder("utf-8")


def longest_utf8_prefix(data: bytes) -> str:
    """Decode the longest prefix of *data* that is complete, valid UTF-8.

    A trailing incomplete sequence is left out.  An invalid sequence later
    in the buffer ends the prefix; one at the very start raises
    :class:`DecodeError`.

    >>> longest_utf8_prefix("ăѣ".encode()[:3])
    'ă'
    """
    try:
        return _utf8_decoder().decode(data, final=False)
    except UnicodeDecodeError as exc:
        if exc.start == 0:
            raise DecodeError(data[exc.start:exc.end]) from exc
        return data[:exc.start].decode("utf-8")


def _decode(reader, data: bytes) -> str:
    try:
        return longest_utf8_prefix(data)
    except DecodeError as exc:
        exc.at_offset(getattr(reader, "bytes_consumed", 0))
        raise


def _buffered_text(reader) -> str:
    """Decoded buffer contents, reading on while only a partial code point is buffered."""
    data = reader.peek()
    text = _decode(reader, data)
    while not text and data and reader.fill_more():
        data = reader.peek()
        text = _decode(reader, data)
    return text


def match_literal(reader, literal: str) -> None:
    """Consume *literal* from *reader*.

    Raises
    ------
    rescan.errors.LiteralMismatchError
        The input differs from the literal or ends before it is complete.
    """
    remaining = literal
    while remaining:
        text = _buffered_text(reader)
        if text.startswith(remaining):
            reader.consume(len(remaining.encode("utf-8")))
            return
        if text and remaining.startswith(text):
            reader.consume(len(text.encode("utf-8")))
            remaining = remaining[len(text):]
            continue
        raise LiteralMismatchError(literal)


def match_pattern(reader, compiled, pattern: str) -> str:
    """Match *compiled* at the current position and consume the match.

    While the match runs up to the end of the buffered text (or is only a
    partial match) and the reader can supply more, the buffer is extended
    and the match retried, so a token split over two reads is seen whole.

    Raises
    ------
    rescan.errors.PatternMismatchError
        The pattern does not match at the current position.
    """
    text = _buffered_text(reader)
    data = reader.peek()
    while True:
        found = compiled.match(text, partial=True)
        if found is None or not (found.partial or found.end() == len(text)):
            break
        # More than 3 undecoded bytes means an invalid sequence, not a split one.
        if len(data) - len(text.encode("utf-8")) > 3:
            break
        if not reader.fill_more():
            break
        data = reader.peek()
        text = _decode(reader, data)

    if found is not None and found.partial:
        # End of input: only a complete match counts.
        found = compiled.match(text)
    if found is None:
        raise PatternMismatchError(pattern)

    matched = found.group()
    reader.consume(len(matched.encode("utf-8")))
    return matched


def _convert(text: str, rule: Rule) -> Any:
    try:
        return rule.type.parse(text)
    except Exception as exc:
        logger.debug("cannot parse %r as %s: %s", text, rule.type.name, exc)
        raise ValueParseError(text, rule.type.name, str(exc)) from exc


def execute(plan: ScanPlan, reader) -> Tuple[Any, ...]:
    """Run *plan* against *reader* and return the output tuple.

    Parameters
    ----------
    plan : ScanPlan
        A bound plan; its patterns are compiled on first use.
    reader : BufferedSource
        Exclusively owned by this call.

    Returns
    -------
    tuple
        One value per output slot, in slot order.

    Raises
    ------
    rescan.errors.PatternCompileError
        A pattern of the plan is malformed; nothing has been consumed.
    rescan.errors.ScanError
        The input does not match.  No partial output is returned.
    OSError
        Reading the underlying stream failed.
    """
    patterns = plan.compiled()
    outputs: List[Tuple[int, Any]] = []

    for seg in plan.segments:
        if isinstance(seg, ResolvedLiteral):
            match_literal(reader, seg.text)
            continue

        rule = plan.rules[seg.rule_index]
        text = match_pattern(reader, patterns[seg.rule_index], rule.effective_pattern)
        if rule.type is None:
            continue
        # Discarded captures still have to hold a valid value.
        value = _convert(text, rule)
        if seg.slot is not None:
            outputs.append((seg.slot, value))

    outputs.sort(key=itemgetter(0))
    return tuple(value for _, value in outputs)
