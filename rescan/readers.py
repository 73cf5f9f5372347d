"""
readers.py — buffered byte sources and scan iterators
=====================================================

The engine reads through a small buffered-read interface,
:class:`BufferedSource`:

    peek()       → the buffered bytes, reading from the stream only if
                   the buffer is empty; never consumes
    consume(n)   → drop the first *n* buffered bytes
    fill_more()  → append another chunk; ``False`` at end of stream

:class:`ByteReader` implements it over ``bytes``/``str`` values, binary or
text file objects and iterables of chunks.  :class:`LineReader` wraps any
source so that a scan never sees past the end of the current line.

:class:`LineIter` and :class:`ScanIter` run a plan repeatedly, once per
line or back to back with an optional separator.
"""

from __future__ import annotations

import io
import logging
from typing import (
    Any,
    Callable,
    Iterator,
    List,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

from rescan.engine import execute, match_literal
from rescan.errors import ScanError
from rescan.plan import ScanPlan

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 8192


@runtime_checkable
class BufferedSource(Protocol):
    """What the engine needs from a stream."""

    def peek(self) -> bytes:
        ...

    def consume(self, n: int) -> None:
        ...

    def fill_more(self) -> bool:
        ...


# ═══════════════════════════════════════════════════════════════════════════
#  ByteReader
# ═══════════════════════════════════════════════════════════════════════════

def _chunk_reader(source: Any, buffer_size: int) -> Callable[[], bytes]:
    """Return a zero-argument callable producing the next chunk (``b""`` at EOF)."""
    if isinstance(source, str):
        source = source.encode("utf-8")
    if isinstance(source, (bytes, bytearray, memoryview)):
        source = io.BytesIO(bytes(source))

    if hasattr(source, "read"):
        read = getattr(source, "read1", None) or source.read

        def next_chunk() -> bytes:
            chunk = read(buffer_size)
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            return chunk or b""

        return next_chunk

    try:
        chunks: Iterator[Any] = iter(source)
    except TypeError:
        raise TypeError(f"cannot read from {type(source).__name__}") from None

    def next_chunk() -> bytes:
        for chunk in chunks:
            if isinstance(chunk, str):
                chunk = chunk.encode("utf-8")
            if chunk:
                return bytes(chunk)
        return b""

    return next_chunk


class ByteReader:
    """Buffered reader over a byte stream.

    Parameters
    ----------
    source
        ``bytes`` or ``str`` (encoded as UTF-8), a binary or text file
        object, or an iterable of ``bytes``/``str`` chunks (each chunk is
        one read, whatever *buffer_size* says).
    buffer_size : int
        Bytes requested per read from a file object.
    """

    def __init__(self, source: Any, buffer_size: int = DEFAULT_BUFFER_SIZE):
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")
        self._next_chunk = _chunk_reader(source, buffer_size)
        self._buf = bytearray()
        self._eof = False
        self.bytes_consumed = 0

    def peek(self) -> bytes:
        if not self._buf:
            self.fill_more()
        return bytes(self._buf)

    def consume(self, n: int) -> None:
        if n < 0 or n > len(self._buf):
            raise ValueError(f"cannot consume {n} of {len(self._buf)} buffered bytes")
        del self._buf[:n]
        self.bytes_consumed += n

    def fill_more(self) -> bool:
        if self._eof:
            return False
        chunk = self._next_chunk()
        if not chunk:
            self._eof = True
            return False
        self._buf += chunk
        return True

    def at_eof(self) -> bool:
        return not self.peek()


def ensure_reader(source: Any, buffer_size: int = DEFAULT_BUFFER_SIZE) -> BufferedSource:
    """Wrap *source* in a :class:`ByteReader` unless it already is a reader."""
    if isinstance(source, BufferedSource):
        return source
    return ByteReader(source, buffer_size)


# ═══════════════════════════════════════════════════════════════════════════
#  LineReader
# ═══════════════════════════════════════════════════════════════════════════

class LineReader:
    """Restrict an inner source to one line at a time.

    ``peek()`` ends at (and includes) the next ``\\n``.  A ``consume()``
    that stops right before the line terminator (``\\n`` or ``\\r\\n``) also
    consumes the terminator.  Once the terminator is consumed the reader
    looks empty until :meth:`discard_line` moves on to the next line.
    """

    def __init__(self, inner: Any, buffer_size: int = DEFAULT_BUFFER_SIZE):
        self._inner = ensure_reader(inner, buffer_size)
        self._line_done = False

    @property
    def bytes_consumed(self) -> int:
        return getattr(self._inner, "bytes_consumed", 0)

    def peek(self) -> bytes:
        if self._line_done:
            return b""
        data = self._inner.peek()
        newline = data.find(b"\n")
        if newline >= 0:
            return data[:newline + 1]
        return data

    def consume(self, n: int) -> None:
        if self._line_done:
            if n:
                raise ValueError("cannot consume past the end of the line")
            return
        data = self._inner.peek()
        newline = data.find(b"\n")
        if newline >= 0:
            if n == newline:
                n += 1
            elif n == newline - 1 and data[n:newline] == b"\r":
                n += 2
            if n > newline:
                self._line_done = True
        self._inner.consume(n)

    def fill_more(self) -> bool:
        if self._line_done or b"\n" in self._inner.peek():
            return False
        return self._inner.fill_more()

    def at_eof(self) -> bool:
        """True when nothing is left of the stream (not just of the line)."""
        return not self._line_done and not self._inner.peek()

    def discard_line(self) -> None:
        """Skip whatever is left of the current line, terminator included."""
        if self._line_done:
            self._line_done = False
            return
        while True:
            data = self._inner.peek()
            if not data:
                return
            newline = data.find(b"\n")
            if newline >= 0:
                self._inner.consume(newline + 1)
                return
            self._inner.consume(len(data))


# ═══════════════════════════════════════════════════════════════════════════
#  Iterators
# ═══════════════════════════════════════════════════════════════════════════

class LineIter:
    """Run *plan* once per line of *source*.

    With ``on_error="raise"`` a malformed line raises its
    :class:`~rescan.errors.ScanError` from ``next()``; the iterator can
    still be resumed and continues with the following line.  With
    ``on_error="skip"`` failures are logged, kept in :attr:`failures` as
    ``(line_number, error)`` and skipped.
    """

    def __init__(
        self,
        plan: ScanPlan,
        source: Any,
        on_error: str = "raise",
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        if on_error not in ("raise", "skip"):
            raise ValueError(f"on_error must be 'raise' or 'skip', got {on_error!r}")
        self._plan = plan
        self._lines = LineReader(source, buffer_size)
        self._on_error = on_error
        self.line_number = 0
        self.failures: List[Tuple[int, ScanError]] = []

    def __iter__(self) -> "LineIter":
        return self

    def __next__(self) -> Tuple[Any, ...]:
        while True:
            if self._lines.at_eof():
                raise StopIteration
            self.line_number += 1
            try:
                return execute(self._plan, self._lines)
            except ScanError as exc:
                exc.note(f"on line {self.line_number}")
                if self._on_error == "raise":
                    raise
                logger.debug("skipping line %d: %s", self.line_number, exc.message)
                self.failures.append((self.line_number, exc))
            finally:
                self._lines.discard_line()


class ScanIter:
    """Run *plan* back to back over *source*.

    Between two scans the literal *separator* must follow, if one is given.
    Iteration ends at the end of the stream or at the first failure, which
    is kept in :attr:`error`.
    """

    def __init__(
        self,
        plan: ScanPlan,
        source: Any,
        separator: Optional[str] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self._plan = plan
        self._reader = ensure_reader(source, buffer_size)
        self._separator = separator
        self._count = 0
        self._done = False
        self.error: Optional[ScanError] = None

    def __iter__(self) -> "ScanIter":
        return self

    def _exhausted(self) -> bool:
        return not self._reader.peek()

    def __next__(self) -> Tuple[Any, ...]:
        if self._done or self._exhausted():
            self._done = True
            raise StopIteration
        try:
            if self._count and self._separator:
                match_literal(self._reader, self._separator)
            values = execute(self._plan, self._reader)
        except ScanError as exc:
            logger.debug("scan %d stopped: %s", self._count + 1, exc.message)
            self.error = exc
            self._done = True
            raise StopIteration from None
        self._count += 1
        return values
