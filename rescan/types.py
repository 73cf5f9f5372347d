"""rescan/types.py – output types and their default patterns.

Each capture converts the text its pattern matched into a value of the
rule's type.  A :class:`ScanType` bundles the conversion (``parse``) with
the default pattern used when a rule names only the type.

The registry is keyed by every name a type is known under: Rust-style
names (``u32``, ``String``, ``Ipv4Addr``) as they appear in rule lists,
short Python-style names (``int``, ``str``, ``ip``) and the Python classes
themselves (``int``, ``str``, ``float``, ``ipaddress.IPv4Address``, …).

Pattern bodies
--------------
IPv6 and IP patterns follow the text forms of RFC 4291 §2.2 with two
approximations: octets of an embedded IPv4 suffix accept any 1-3 digits,
and the number of hextets around ``::`` is not bounded.  Values outside the
real grammar are still rejected by the parse step.
"""

from __future__ import annotations

import ipaddress
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Final, List, Optional, Tuple, Union

from rescan.errors import UnknownTypeError

# ---------------------------------------------------------------------------
# Default pattern bodies
# ---------------------------------------------------------------------------

BOOL_PATTERN: Final[str] = r"true|false"
CHAR_PATTERN: Final[str] = r"."
STRING_PATTERN: Final[str] = r"\w+"
UINT_PATTERN: Final[str] = r"\+?[0-9]+"
INT_PATTERN: Final[str] = r"[+-]?[0-9]+"
FLOAT_PATTERN: Final[str] = r"[+-]?(?:(?i:inf|nan)|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:e[+-]?[0-9]+)?)"
IPV4_PATTERN: Final[str] = r"(?:[0-9]{1,3}\.){3}[0-9]{1,3}"

_HEX: Final[str] = r"[0-9a-fA-F]{1,4}"
IPV6_PATTERN: Final[str] = (
    # six hextets and a dotted IPv4 tail
    rf"(?:{_HEX}:){{6}}{IPV4_PATTERN}"
    # compressed, dotted IPv4 tail
    rf"|(?:(?:{_HEX}:)*{_HEX})?::(?:{_HEX}:)*{IPV4_PATTERN}"
    # eight hextets
    rf"|(?:{_HEX}:){{7}}{_HEX}"
    # compressed
    rf"|(?:(?:{_HEX}:)*{_HEX})?::(?:{_HEX}(?::{_HEX})*)?"
)
IP_PATTERN: Final[str] = rf"{IPV6_PATTERN}|{IPV4_PATTERN}"

# The marker used in rule lists for "no output type".
INFER_MARKER: Final[str] = "_"

_INT_TEXT = re.compile(r"[+-]?[0-9]+\Z")
_UINT_TEXT = re.compile(r"\+?[0-9]+\Z")


# ---------------------------------------------------------------------------
# ScanType
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanType:
    """A named output type: text → value conversion plus default pattern.

    ``parse`` raises on bad input (``ValueError`` for the built-ins); the
    engine wraps whatever it raises in a :class:`~rescan.errors.ValueParseError`.
    """

    name: str
    parse: Callable[[str], Any]
    default_pattern: Optional[str] = None

    def __repr__(self) -> str:
        return f"ScanType({self.name})"

    @property
    def has_default(self) -> bool:
        return self.default_pattern is not None


def _parse_bool(text: str) -> bool:
    if text == "true":
        return True
    if text == "false":
        return False
    raise ValueError(f"provided string was not `true` or `false`: {text!r}")


def _parse_char(text: str) -> str:
    if len(text) != 1:
        raise ValueError(f"expected exactly one character, got {len(text)}")
    return text


def _parse_str(text: str) -> str:
    return text


def _int_parser(bits: Optional[int], signed: bool, nonzero: bool = False) -> Callable[[str], int]:
    """Build a strict integer parser with an optional range check."""
    if signed:
        shape = _INT_TEXT
        low, high = (-(1 << (bits - 1)), (1 << (bits - 1)) - 1) if bits else (None, None)
    else:
        shape = _UINT_TEXT
        low, high = (0, (1 << bits) - 1) if bits else (0, None)

    def parse(text: str) -> int:
        if not shape.match(text):
            raise ValueError(f"invalid digit found in string: {text!r}")
        value = int(text)
        if low is not None and value < low:
            raise ValueError(f"number too small to fit in target type: {text}")
        if high is not None and value > high:
            raise ValueError(f"number too large to fit in target type: {text}")
        if nonzero and value == 0:
            raise ValueError("number would be zero for non-zero type")
        return value

    return parse


def _parse_float(text: str) -> float:
    # float() also accepts surrounding whitespace and digit separators.
    if text != text.strip() or "_" in text:
        raise ValueError(f"invalid float literal: {text!r}")
    return float(text)


def _parse_socket_v4(text: str) -> Tuple[ipaddress.IPv4Address, int]:
    host, sep, port = text.rpartition(":")
    if not sep:
        raise ValueError(f"invalid socket address syntax: {text!r}")
    return ipaddress.IPv4Address(host), _int_parser(16, signed=False)(port)


def _parse_socket_v6(text: str) -> Tuple[ipaddress.IPv6Address, int]:
    if not text.startswith("[") or "]:" not in text:
        raise ValueError(f"invalid socket address syntax: {text!r}")
    host, _, port = text[1:].partition("]:")
    return ipaddress.IPv6Address(host), _int_parser(16, signed=False)(port)


def _parse_socket(text: str) -> Tuple[Union[ipaddress.IPv4Address, ipaddress.IPv6Address], int]:
    if text.startswith("["):
        return _parse_socket_v6(text)
    return _parse_socket_v4(text)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

TypeDesignator = Union[str, type, ScanType]

_REGISTRY: Dict[Any, ScanType] = {}
_REGISTRY_LOCK = threading.Lock()


def register_type(scan_type: ScanType, *aliases: Any, replace: bool = False) -> ScanType:
    """Register *scan_type* under its name and every alias.

    Aliases may be strings or Python classes.  Re-registering a taken name
    raises ``ValueError`` unless *replace* is set.
    """
    keys = (scan_type.name,) + aliases
    with _REGISTRY_LOCK:
        if not replace:
            taken = [k for k in keys if k in _REGISTRY]
            if taken:
                raise ValueError(f"type name(s) already registered: {taken!r}")
        for key in keys:
            _REGISTRY[key] = scan_type
    return scan_type


def lookup_type(designator: TypeDesignator) -> ScanType:
    """Resolve a type name, class or :class:`ScanType` to a registered type."""
    if isinstance(designator, ScanType):
        return designator
    try:
        scan_type = _REGISTRY.get(designator)
    except TypeError:
        scan_type = None
    if scan_type is None:
        name = designator if isinstance(designator, str) else getattr(designator, "__name__", repr(designator))
        raise UnknownTypeError(name)
    return scan_type


def is_infer_marker(designator: Any) -> bool:
    """``_`` and ``None`` both mean "match, but produce no value"."""
    return designator is None or designator == INFER_MARKER


def registered_names() -> List[str]:
    return sorted(k for k in _REGISTRY if isinstance(k, str))


def default_pattern(designator: TypeDesignator) -> Optional[str]:
    return lookup_type(designator).default_pattern


def _register_builtins() -> None:
    register_type(ScanType("bool", _parse_bool, BOOL_PATTERN), bool)
    register_type(ScanType("char", _parse_char, CHAR_PATTERN))
    register_type(ScanType("String", _parse_str, STRING_PATTERN), "str", str)

    for bits in (8, 16, 32, 64, 128):
        register_type(ScanType(f"i{bits}", _int_parser(bits, signed=True), INT_PATTERN))
        register_type(ScanType(f"u{bits}", _int_parser(bits, signed=False), UINT_PATTERN))
        register_type(ScanType(f"NonZeroI{bits}", _int_parser(bits, signed=True, nonzero=True), INT_PATTERN))
        register_type(ScanType(f"NonZeroU{bits}", _int_parser(bits, signed=False, nonzero=True), UINT_PATTERN))
    register_type(ScanType("isize", _int_parser(64, signed=True), INT_PATTERN))
    register_type(ScanType("usize", _int_parser(64, signed=False), UINT_PATTERN))
    register_type(ScanType("NonZeroIsize", _int_parser(64, signed=True, nonzero=True), INT_PATTERN))
    register_type(ScanType("NonZeroUsize", _int_parser(64, signed=False, nonzero=True), UINT_PATTERN))
    # Unbounded Python integers.
    register_type(ScanType("int", _int_parser(None, signed=True), INT_PATTERN), int)
    register_type(ScanType("uint", _int_parser(None, signed=False), UINT_PATTERN))

    register_type(ScanType("f64", _parse_float, FLOAT_PATTERN), "f32", "float", float)

    register_type(ScanType("Ipv4Addr", ipaddress.IPv4Address, IPV4_PATTERN), "ipv4", ipaddress.IPv4Address)
    register_type(ScanType("Ipv6Addr", ipaddress.IPv6Address, IPV6_PATTERN), "ipv6", ipaddress.IPv6Address)
    register_type(ScanType("IpAddr", ipaddress.ip_address, IP_PATTERN), "ip")

    # Parse-only types: a rule must supply its own pattern.
    register_type(ScanType("PathBuf", Path), "path", Path)
    register_type(ScanType("OsString", _parse_str))
    register_type(ScanType("SocketAddr", _parse_socket), "socket")
    register_type(ScanType("SocketAddrV4", _parse_socket_v4))
    register_type(ScanType("SocketAddrV6", _parse_socket_v6))


_register_builtins()
