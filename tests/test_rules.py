# tests/test_rules.py
"""
Tests for rule lists: the textual grammar, the Python-value front end and
the Rule model.
"""

import pytest
from parsimonious.exceptions import ParseError

from rescan.errors import (
    ArgumentError,
    ArgumentSyntaxError,
    PositionalAfterNamedError,
    UnknownTypeError,
)
from rescan.rules import (
    RULE_LIST_GRAMMAR,
    Arg,
    Rule,
    RuleKind,
    RuleList,
    collect_args,
    parse_args,
)
from rescan.types import UINT_PATTERN, lookup_type


class TestGrammar:
    """The grammar itself, before visitor transformation."""

    def test_empty_input(self):
        assert RULE_LIST_GRAMMAR.parse("") is not None

    def test_raw_strings(self):
        for lit in ('r"[0-9]+"', "r'\\s*'", 'R"x"'):
            tree = RULE_LIST_GRAMMAR["raw_string"].parse(lit)
            assert tree.text == lit

    def test_quoted_strings(self):
        for lit in ('"abc"', "'abc'", r'"with \"quote\""'):
            RULE_LIST_GRAMMAR["quoted_string"].parse(lit)

    def test_path_type_names(self):
        tree = RULE_LIST_GRAMMAR["type_name"].parse("std::net::Ipv4Addr")
        assert tree.text == "std::net::Ipv4Addr"

    def test_identifier_rejects_digits_first(self):
        with pytest.raises(ParseError):
            RULE_LIST_GRAMMAR["identifier"].parse("1abc")


class TestParseArgs:

    def test_empty(self):
        rules = parse_args("")
        assert rules == RuleList()
        assert len(rules) == 0

    def test_whitespace_only(self):
        assert len(parse_args("   ")) == 0

    def test_bare_type(self):
        rules = parse_args("u8")
        (rule,) = rules.positional
        assert rule.kind is RuleKind.DEFAULT
        assert rule.type is lookup_type("u8")
        assert rule.effective_pattern == UINT_PATTERN

    def test_raw_pattern_with_type(self):
        (rule,) = parse_args('r"[0-9]+" as u8').positional
        assert rule.kind is RuleKind.CUSTOM
        assert rule.pattern == "[0-9]+"
        assert rule.type_name == "u8"

    def test_quoted_pattern_keeps_unknown_escapes(self):
        (rule,) = parse_args(r'"\d+" as i32').positional
        assert rule.pattern == r"\d+"

    def test_quoted_pattern_decodes_escapes(self):
        (rule,) = parse_args(r'"a\tb" as String').positional
        assert rule.pattern == "a\tb"

    def test_pattern_as_infer_marker_is_null(self):
        (rule,) = parse_args(r'r"\s*" as _').positional
        assert rule.kind is RuleKind.NULL
        assert rule.is_null
        assert rule.type is None

    def test_pattern_without_type_is_null(self):
        (rule,) = parse_args(r'r"\s*"').positional
        assert rule.is_null

    def test_named_rules(self):
        rules = parse_args("u8, x = i32, y = bool")
        assert len(rules.positional) == 1
        assert rules.names() == ["x", "y"]
        assert [r.type_name for r in rules.flattened()] == ["u8", "i32", "bool"]

    def test_named_pattern(self):
        rules = parse_args('ws = r"\\s+" as _')
        assert rules.names() == ["ws"]
        assert rules.named[0][1].is_null

    def test_trailing_comma(self):
        assert len(parse_args("u8, i32,")) == 2

    def test_path_type_uses_last_segment(self):
        (rule,) = parse_args("std::net::Ipv4Addr").positional
        assert rule.type_name == "Ipv4Addr"

    def test_spacing_is_free(self):
        rules = parse_args('  r"a"   as   String ,n=u8  ')
        assert rules.flattened()[0].pattern == "a"
        assert rules.names() == ["n"]

    def test_describe(self):
        rules = parse_args('u8, n = r"[0-9]+" as i32')
        assert rules.describe() == "u8, n = '[0-9]+' as i32"


class TestParseArgsErrors:

    def test_positional_after_named(self):
        with pytest.raises(PositionalAfterNamedError) as exc_info:
            parse_args("x = u8, u16")
        assert exc_info.value.index == 1
        assert "positional arguments must be before named arguments" in str(exc_info.value)

    def test_first_misplaced_argument_is_reported(self):
        with pytest.raises(PositionalAfterNamedError) as exc_info:
            parse_args("u8, x = u8, u16, u32")
        assert exc_info.value.index == 2

    def test_missing_comma(self):
        with pytest.raises(ArgumentSyntaxError):
            parse_args("u8 u16")

    def test_missing_value(self):
        with pytest.raises(ArgumentSyntaxError):
            parse_args("x = ")

    def test_unterminated_string(self):
        with pytest.raises(ArgumentSyntaxError) as exc_info:
            parse_args('r"abc')
        assert "^" in str(exc_info.value)

    def test_unknown_type(self):
        with pytest.raises(UnknownTypeError) as exc_info:
            parse_args("u7")
        assert exc_info.value.type_name == "u7"

    def test_unknown_type_after_pattern(self):
        with pytest.raises(UnknownTypeError):
            parse_args('r"x" as nosuch')

    def test_bare_infer_marker(self):
        with pytest.raises(ArgumentError):
            parse_args("_")

    def test_error_codes(self):
        with pytest.raises(ArgumentError) as exc_info:
            parse_args("x = u8, u16")
        assert exc_info.value.code == "RESCAN-1102"


class TestCollectArgs:

    def test_python_types(self):
        rules = collect_args([int, str, float, bool])
        assert [r.type_name for r in rules.positional] == ["int", "String", "f64", "bool"]

    def test_type_names(self):
        rules = collect_args(["u8", "Ipv4Addr"])
        assert [r.kind for r in rules.positional] == [RuleKind.DEFAULT, RuleKind.DEFAULT]

    def test_pattern_tuples(self):
        rules = collect_args([("[0-9]+", int), (r"\s+", "_"), (r"\s+", None), ("x",)])
        kinds = [r.kind for r in rules.positional]
        assert kinds == [RuleKind.CUSTOM, RuleKind.NULL, RuleKind.NULL, RuleKind.NULL]

    def test_named_mapping(self):
        rules = collect_args(["u8"], {"n": "u16", "m": ("[a-z]+", str)})
        assert rules.names() == ["n", "m"]
        assert len(rules) == 3

    def test_rule_objects_pass_through(self):
        rule = Rule.custom("[a-z]+", str)
        assert collect_args([rule]).positional == (rule,)

    def test_named_arg_then_positional(self):
        with pytest.raises(PositionalAfterNamedError):
            collect_args([Arg("a", Rule.default("u8")), "u16"])

    def test_bad_tuple(self):
        with pytest.raises(ArgumentError):
            collect_args([("a", "u8", "extra")])

    def test_non_string_pattern(self):
        with pytest.raises(ArgumentError):
            Rule.custom(5, "u8")

    def test_unknown_class(self):
        with pytest.raises(UnknownTypeError):
            collect_args([complex])

    def test_same_rules_compare_equal(self):
        assert collect_args(["u8", ("x", str)]) == parse_args('u8, "x" as String')
