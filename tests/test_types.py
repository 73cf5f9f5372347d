# tests/test_types.py
"""
Tests for the type registry, the built-in value parsers and the default
pattern bodies.
"""

import ipaddress
import math
from pathlib import Path

import pytest
import regex

from rescan.errors import UnknownTypeError
from rescan.types import (
    BOOL_PATTERN,
    FLOAT_PATTERN,
    INT_PATTERN,
    IP_PATTERN,
    IPV4_PATTERN,
    IPV6_PATTERN,
    UINT_PATTERN,
    ScanType,
    default_pattern,
    is_infer_marker,
    lookup_type,
    register_type,
    registered_names,
)


def _parse(type_name, text):
    return lookup_type(type_name).parse(text)


class TestRegistry:

    def test_rust_style_names(self):
        for name in ("u8", "i128", "usize", "NonZeroU32", "String", "char", "f64", "IpAddr"):
            assert lookup_type(name).name == name

    def test_python_aliases(self):
        assert lookup_type(int).name == "int"
        assert lookup_type(str).name == "String"
        assert lookup_type("str").name == "String"
        assert lookup_type(float).name == "f64"
        assert lookup_type("f32").name == "f64"
        assert lookup_type(bool).name == "bool"
        assert lookup_type(ipaddress.IPv4Address).name == "Ipv4Addr"
        assert lookup_type("ip").name == "IpAddr"
        assert lookup_type(Path).name == "PathBuf"

    def test_scan_type_passes_through(self):
        custom = ScanType("hex", lambda s: int(s, 16), "[0-9a-f]+")
        assert lookup_type(custom) is custom

    def test_unknown_name(self):
        with pytest.raises(UnknownTypeError) as exc_info:
            lookup_type("u7")
        assert "u7" in str(exc_info.value)

    def test_unhashable_designator(self):
        with pytest.raises(UnknownTypeError):
            lookup_type(["u8"])

    def test_parse_only_types(self):
        for name in ("PathBuf", "OsString", "SocketAddr", "SocketAddrV4", "SocketAddrV6"):
            assert not lookup_type(name).has_default
            assert default_pattern(name) is None

    def test_register_custom_type(self):
        hex_type = ScanType("hex_test_u32", lambda s: int(s, 16), "[0-9a-fA-F]+")
        register_type(hex_type, "hex_test")
        assert lookup_type("hex_test") is hex_type
        assert "hex_test_u32" in registered_names()

    def test_register_taken_name(self):
        with pytest.raises(ValueError):
            register_type(ScanType("u8", int, UINT_PATTERN))

    def test_infer_marker(self):
        assert is_infer_marker("_")
        assert is_infer_marker(None)
        assert not is_infer_marker("u8")


class TestIntegerParsers:

    def test_unsigned_range(self):
        assert _parse("u8", "255") == 255
        assert _parse("u8", "+7") == 7
        with pytest.raises(ValueError):
            _parse("u8", "256")
        with pytest.raises(ValueError):
            _parse("u8", "-1")

    def test_signed_range(self):
        assert _parse("i8", "-128") == -128
        assert _parse("i8", "127") == 127
        with pytest.raises(ValueError):
            _parse("i8", "128")

    def test_wide_types(self):
        assert _parse("u128", str(2 ** 128 - 1)) == 2 ** 128 - 1
        assert _parse("i64", "-9223372036854775808") == -(2 ** 63)

    def test_nonzero(self):
        assert _parse("NonZeroU8", "1") == 1
        with pytest.raises(ValueError):
            _parse("NonZeroU8", "0")
        with pytest.raises(ValueError):
            _parse("NonZeroI16", "-0")

    def test_unbounded_int(self):
        big = "123456789012345678901234567890"
        assert _parse("int", big) == int(big)
        assert _parse("uint", big) == int(big)

    def test_rejects_non_digits(self):
        for text in ("", "1.0", " 1", "1_000", "0x10", "٣"):
            with pytest.raises(ValueError):
                _parse("i32", text)


class TestOtherParsers:

    def test_bool(self):
        assert _parse("bool", "true") is True
        assert _parse("bool", "false") is False
        with pytest.raises(ValueError):
            _parse("bool", "True")

    def test_char(self):
        assert _parse("char", "ѣ") == "ѣ"
        with pytest.raises(ValueError):
            _parse("char", "ab")

    def test_float(self):
        assert _parse("f64", "1.5") == 1.5
        assert _parse("f64", "-.5e1") == -5.0
        assert math.isinf(_parse("f64", "inf"))
        assert math.isnan(_parse("f64", "NaN"))

    def test_float_rejects_python_extensions(self):
        for text in (" 1.0", "1_0.5"):
            with pytest.raises(ValueError):
                _parse("f64", text)

    def test_ip_addresses(self):
        assert _parse("IpAddr", "::1") == ipaddress.IPv6Address("::1")
        assert _parse("IpAddr", "10.0.0.1") == ipaddress.IPv4Address("10.0.0.1")
        with pytest.raises(ValueError):
            _parse("Ipv4Addr", "999.0.0.1")

    def test_socket_addresses(self):
        assert _parse("SocketAddr", "127.0.0.1:80") == (ipaddress.IPv4Address("127.0.0.1"), 80)
        assert _parse("SocketAddr", "[::1]:8080") == (ipaddress.IPv6Address("::1"), 8080)
        with pytest.raises(ValueError):
            _parse("SocketAddrV4", "127.0.0.1")
        with pytest.raises(ValueError):
            _parse("SocketAddrV6", "[::1]:70000")

    def test_path(self):
        assert _parse("PathBuf", "/tmp/x") == Path("/tmp/x")


class TestDefaultPatterns:

    @staticmethod
    def _full(pattern, text):
        return regex.fullmatch(pattern, text) is not None

    def test_bool(self):
        assert self._full(BOOL_PATTERN, "true")
        assert not self._full(BOOL_PATTERN, "yes")

    def test_integers(self):
        assert self._full(UINT_PATTERN, "+12")
        assert not self._full(UINT_PATTERN, "-12")
        assert self._full(INT_PATTERN, "-12")

    @pytest.mark.parametrize("text", ["1.5", "-.5", "3.", "1e10", "2.5e-3", "INF", "nan", "+inf", "NaN"])
    def test_float_accepts(self, text):
        assert self._full(FLOAT_PATTERN, text)

    @pytest.mark.parametrize("text", ["e5", ".", "1e", "infinity", "2.5E-3", "1E10"])
    def test_float_rejects(self, text):
        assert not self._full(FLOAT_PATTERN, text)

    def test_ipv4(self):
        assert self._full(IPV4_PATTERN, "192.168.0.1")
        assert not self._full(IPV4_PATTERN, "192.168.0")

    @pytest.mark.parametrize("text", [
        "::1",
        "::",
        "fe80::1",
        "2001:db8:0:0:0:0:2:1",
        "2001:db8::2:1",
        "::ffff:192.0.2.128",
        "1:2:3:4:5:6:7:8",
        "1:2:3:4:5:6:1.2.3.4",
    ])
    def test_ipv6(self, text):
        assert self._full(IPV6_PATTERN, text)

    def test_ip_accepts_both_families(self):
        assert self._full(IP_PATTERN, "10.1.2.3")
        assert self._full(IP_PATTERN, "fe80::1")
