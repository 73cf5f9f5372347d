# tests/test_readers.py
"""
Tests for the buffered readers and the LineIter / ScanIter iterators.
"""

import io

import pytest

from rescan.errors import LiteralMismatchError, PatternMismatchError, ScanError
from rescan.readers import (
    BufferedSource,
    ByteReader,
    LineIter,
    LineReader,
    ScanIter,
    ensure_reader,
)

from tests.conftest import make_plan


class TestByteReader:

    def test_bytes_source(self):
        reader = ByteReader(b"abc")
        assert reader.peek() == b"abc"
        reader.consume(1)
        assert reader.peek() == b"bc"
        assert reader.bytes_consumed == 1

    def test_str_source_is_utf8(self):
        assert ByteReader("ѣ").peek() == "ѣ".encode("utf-8")

    def test_binary_file_reads_in_chunks(self):
        reader = ByteReader(io.BytesIO(b"abcdefgh"), buffer_size=4)
        assert reader.peek() == b"abcd"
        assert reader.fill_more()
        assert reader.peek() == b"abcdefgh"
        assert not reader.fill_more()

    def test_text_file_is_encoded(self):
        reader = ByteReader(io.StringIO("héllo"), buffer_size=2)
        assert reader.peek() == "hé".encode("utf-8")

    def test_chunk_iterable(self):
        reader = ByteReader([b"", b"ab", "", "c"])
        assert reader.peek() == b"ab"
        assert reader.fill_more()
        assert reader.peek() == b"abc"
        assert not reader.fill_more()

    def test_peek_does_not_refill_nonempty_buffer(self):
        reader = ByteReader([b"ab", b"cd"])
        assert reader.peek() == b"ab"
        assert reader.peek() == b"ab"

    def test_peek_refills_empty_buffer(self):
        reader = ByteReader([b"ab", b"cd"])
        reader.peek()
        reader.consume(2)
        assert reader.peek() == b"cd"

    def test_at_eof(self):
        reader = ByteReader(b"x")
        assert not reader.at_eof()
        reader.consume(1)
        assert reader.at_eof()

    def test_consume_more_than_buffered(self):
        reader = ByteReader(b"ab")
        reader.peek()
        with pytest.raises(ValueError):
            reader.consume(3)

    def test_bad_buffer_size(self):
        with pytest.raises(ValueError):
            ByteReader(b"", buffer_size=0)

    def test_unreadable_source(self):
        with pytest.raises(TypeError):
            ByteReader(42)

    def test_io_errors_propagate(self):
        class Broken(io.RawIOBase):
            def readinto(self, b):
                raise OSError("disk on fire")

        reader = ByteReader(Broken())
        with pytest.raises(OSError, match="disk on fire"):
            reader.peek()


class TestEnsureReader:

    def test_wraps_plain_sources(self):
        assert isinstance(ensure_reader(b"abc"), ByteReader)

    def test_readers_pass_through(self):
        reader = ByteReader(b"abc")
        assert ensure_reader(reader) is reader
        lines = LineReader(reader)
        assert ensure_reader(lines) is lines

    def test_protocol(self):
        assert isinstance(ByteReader(b""), BufferedSource)
        assert isinstance(LineReader(b""), BufferedSource)
        assert not isinstance(io.BytesIO(b""), BufferedSource)


class TestLineReader:

    def test_three_lines(self):
        lines = LineReader(ByteReader(b"A\nBC\nD"))
        seen = []
        while not lines.at_eof():
            line = lines.peek()
            seen.append(line.rstrip(b"\n"))
            lines.consume(len(line.rstrip(b"\n")))
            lines.discard_line()
        assert seen == [b"A", b"BC", b"D"]

    def test_peek_clipped_to_newline(self):
        lines = LineReader(b"ab\ncd")
        assert lines.peek() == b"ab\n"

    def test_consume_to_newline_takes_terminator(self):
        lines = LineReader(b"ab\ncd")
        lines.consume(2)
        assert lines.peek() == b""
        lines.discard_line()
        assert lines.peek() == b"cd"

    def test_crlf_terminator(self):
        lines = LineReader(b"ab\r\ncd")
        assert lines.peek() == b"ab\r\n"
        lines.consume(2)
        assert lines.peek() == b""
        lines.discard_line()
        assert lines.peek() == b"cd"

    def test_fill_more_stops_at_newline(self):
        lines = LineReader(ByteReader([b"a\nb", b"c"]))
        assert not lines.fill_more()
        assert lines.peek() == b"a\n"

    def test_fill_more_within_line(self):
        lines = LineReader(ByteReader([b"ab", b"c\nd"]))
        assert lines.peek() == b"ab"
        assert lines.fill_more()
        assert lines.peek() == b"abc\n"

    def test_discard_rest_of_line(self):
        lines = LineReader(ByteReader([b"ab", b"c", b"\ndef"]))
        lines.consume(1)
        lines.discard_line()
        assert lines.peek() == b"def"

    def test_empty_line(self):
        lines = LineReader(b"\nx")
        assert lines.peek() == b"\n"
        lines.consume(0)
        lines.discard_line()
        assert lines.peek() == b"x"


class TestLineIter:

    def test_one_tuple_per_line(self):
        plan = make_plan("{}", 'r"[A-Z]+" as String')
        assert list(LineIter(plan, b"A\nBC\nD")) == [("A",), ("BC",), ("D",)]

    def test_trailing_newline_adds_no_line(self):
        plan = make_plan("{}", "u8")
        assert list(LineIter(plan, b"1\n2\n")) == [(1,), (2,)]

    def test_crlf_lines(self):
        plan = make_plan("{}", "u8")
        assert list(LineIter(plan, b"1\r\n2\r\n")) == [(1,), (2,)]

    def test_rest_of_line_is_skipped(self):
        plan = make_plan("{}", "u8")
        assert list(LineIter(plan, b"12 extra\n34")) == [(12,), (34,)]

    def test_lines_split_across_reads(self):
        plan = make_plan("{} {}", "String, u8")
        source = ByteReader([b"ab 1", b"2\ncd", b" 3\n"])
        assert list(LineIter(plan, source)) == [("ab", 12), ("cd", 3)]

    def test_scan_never_reads_into_next_line(self):
        plan = make_plan("{}{}", r'u8, r"\s*[0-9]+" as String')
        it = LineIter(plan, b"1\n2\n")
        with pytest.raises(PatternMismatchError):
            next(it)

    def test_raise_mode_resumes(self):
        plan = make_plan("{}", "u8")
        it = LineIter(plan, b"1\nx\n3")
        assert next(it) == (1,)
        with pytest.raises(ScanError) as exc_info:
            next(it)
        assert "on line 2" in str(exc_info.value)
        assert next(it) == (3,)
        with pytest.raises(StopIteration):
            next(it)
        assert it.line_number == 3

    def test_skip_mode(self):
        plan = make_plan("{}", "u8")
        it = LineIter(plan, b"1\nx\n\n4", on_error="skip")
        assert list(it) == [(1,), (4,)]
        assert [n for n, _ in it.failures] == [2, 3]
        assert all(isinstance(e, PatternMismatchError) for _, e in it.failures)

    def test_bad_error_policy(self):
        with pytest.raises(ValueError):
            LineIter(make_plan("{}", "u8"), b"", on_error="ignore")

    def test_empty_source(self):
        assert list(LineIter(make_plan("{}", "u8"), b"")) == []


class TestScanIter:

    def test_with_separator(self):
        plan = make_plan("{}", "i32")
        it = ScanIter(plan, b"1,2,3", separator=",")
        assert list(it) == [(1,), (2,), (3,)]
        assert it.error is None

    def test_without_separator(self):
        plan = make_plan("{} ", "i32")
        assert list(ScanIter(plan, b"1 2 3 ")) == [(1,), (2,), (3,)]

    def test_stops_at_first_failure(self):
        plan = make_plan("{}", "i32")
        it = ScanIter(plan, b"1,2;3", separator=",")
        assert list(it) == [(1,), (2,)]
        assert isinstance(it.error, LiteralMismatchError)
        with pytest.raises(StopIteration):
            next(it)

    def test_values_straddling_reads(self):
        plan = make_plan("{}", "i32")
        it = ScanIter(plan, ByteReader([b"1,2", b"3,4"]), separator=",")
        assert list(it) == [(1,), (23,), (4,)]

    def test_empty_source(self):
        it = ScanIter(make_plan("{}", "i32"), b"")
        assert list(it) == []
        assert it.error is None
