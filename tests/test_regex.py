import itertools
import re

import pytest

from regroute.regex import (
    RegexSyntaxError,
    build_nfa,
    compile_regex,
    infix_to_postfix,
    insert_concatenation,
    minimize,
    subset_construction,
    translate_labels,
)

PATTERNS = ["(a|b)*abb", "a*b*", "ab|c", "(ab)*", "a(b|c)*d", "b*p*b*", "a"]


def _words(alphabet, max_len=5):
    for length in range(max_len + 1):
        for letters in itertools.product(alphabet, repeat=length):
            yield "".join(letters)


def test_translate_default_expression():
    assert translate_labels("A2*D1*A2*") == "b*p*b*"


def test_translate_keeps_lower_case_and_drops_spaces():
    assert translate_labels("(a | b) *") == "(a|b)*"


def test_translate_caps_level():
    assert translate_labels("B9") == translate_labels("B5")


def test_insert_concatenation():
    assert insert_concatenation("ab") == "a&b"


def test_postfix_precedence():
    assert infix_to_postfix("a|bc") == "abc&|"


@pytest.mark.parametrize("pattern", PATTERNS)
def test_compiled_matches_python_re(pattern):
    dfa = compile_regex(pattern)
    alphabet = sorted(set(c for c in pattern if c.isalpha()))
    for word in _words(alphabet):
        assert dfa.accepts(word) == bool(re.fullmatch(pattern, word)), word


@pytest.mark.parametrize("pattern", PATTERNS)
def test_minimize_preserves_language_and_shrinks(pattern):
    postfix = infix_to_postfix(pattern)
    full = subset_construction(build_nfa(postfix), postfix)
    small = minimize(full)
    assert len(small.transitions) <= len(full.transitions)
    for word in _words(full.alphabet, 4):
        assert small.accepts(word) == full.accepts(word)


@pytest.mark.parametrize("pattern", PATTERNS)
def test_minimize_is_idempotent(pattern):
    dfa = compile_regex(pattern)
    again = minimize(dfa)
    assert len(again.transitions) == len(dfa.transitions)


def test_source_example_word():
    dfa = compile_regex("A2*D1*A2*")
    assert dfa.accepts("bbbpppppp") is True
    assert dfa.accepts("pbp") is False


def test_letter_outside_alphabet_rejected():
    dfa = compile_regex("(a|b)*")
    assert dfa.accepts("abz") is False


def test_run_composes():
    dfa = compile_regex("(a|b)*abb")
    middle = dfa.run("ab", dfa.start)
    assert dfa.run("ba", middle) == dfa.run("abba", dfa.start)


def test_run_returns_none_when_stuck():
    dfa = compile_regex("ab")
    assert dfa.run("b", dfa.start) is None


@pytest.mark.parametrize("pattern", PATTERNS)
def test_reverse_transitions_are_consistent(pattern):
    dfa = compile_regex(pattern)
    reverse = dfa.reverse_transitions()
    assert len(reverse) == len(dfa.transitions)
    for state, edges in enumerate(reverse):
        for letter, predecessor in edges.items():
            assert dfa.transitions[predecessor][letter] == state


def test_describe_mentions_state_count_and_alphabet():
    dfa = compile_regex("(a|b)*abb")
    text = dfa.describe()
    assert text.startswith(f"minDFA StateNum: {len(dfa.transitions)}")
    assert "Alphabet:{a b }" in text


@pytest.mark.parametrize("expression", ["a|", "(a", "a)", "", "a+", "A", "A0", "*"])
def test_syntax_errors(expression):
    with pytest.raises(RegexSyntaxError):
        compile_regex(expression)


def test_syntax_error_is_value_error():
    with pytest.raises(ValueError):
        infix_to_postfix("a)b")