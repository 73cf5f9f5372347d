# tests/conftest.py
"""
Shared fixtures and sample texts for the rescan test-suite.
"""

import pytest

from rescan.binding import bind
from rescan.rules import parse_args
from rescan.scanner import _PLAN_CACHE, clear_plan_cache
from rescan.template import parse_template

FINGERS_TEMPLATE = "One might expect {} to have at least {}."
FINGERS_INPUT = "One might expect most people to have at least 4 fingers."
FINGERS_INPUT_2 = "One might expect few pirates to have at least 2 eyes."

ALPHA_PAIR = r"[[:alpha:]]+\s[[:alpha:]]+"
DIGIT_PAIR = r"[[:digit:]]+\s[[:alpha:]]+"
FINGERS_RULES = f'r"{ALPHA_PAIR}" as String, r"{DIGIT_PAIR}" as String'

# Every prefix length of "ăѣ𝔠" (2 + 2 + 4 bytes) and its longest valid prefix.
UTF8_SAMPLE = "ăѣ𝔠"
UTF8_PREFIXES = ["", "ă", "ă", "ăѣ", "ăѣ", "ăѣ", "ăѣ", "ăѣ𝔠"]


def make_plan(template, rule_text=""):
    """Parse and bind *template* against a textual rule list."""
    return bind(parse_template(template), parse_args(rule_text), template)


@pytest.fixture(autouse=True)
def fresh_plan_cache():
    """Every test starts with an empty, default-sized plan cache."""
    clear_plan_cache()
    _PLAN_CACHE.resize(256)
    yield
    clear_plan_cache()
    _PLAN_CACHE.resize(256)
