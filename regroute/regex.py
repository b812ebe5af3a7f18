"""Regular expressions over edge labels, compiled to minimal DFAs.

The syntax has lower-case letters as symbols, ``|`` for alternation,
``*`` for the Kleene star, parentheses for grouping and juxtaposition
(or an explicit ``&``) for concatenation.  Road categories written as an
upper-case class ``A``-``D`` followed by a level digit are turned into
single letters by :func:`translate_labels`.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

__all__ = [
    "RegexSyntaxError",
    "NFA",
    "DFA",
    "translate_labels",
    "insert_concatenation",
    "infix_to_postfix",
    "build_nfa",
    "subset_construction",
    "minimize",
    "compile_regex",
]

_PRIORITY = {"*": 3, "&": 2, "|": 1, "(": 0}
_CATEGORIES = "ABCD"
_DIGITS = "0123456789"
_MAX_LEVEL = 5


class RegexSyntaxError(ValueError):
    """Raised when an expression cannot be parsed."""


def _is_letter(ch: str) -> bool:
    return len(ch) == 1 and "a" <= ch <= "z"


def translate_labels(expression: str) -> str:
    """Replace category labels such as ``A2`` by letters and drop spaces.

    A label ``<class><level>`` becomes the letter number
    ``class_index * 5 + min(level, 5) - 1``; other characters are kept.
    """
    out = []
    chars = iter(expression)
    for ch in chars:
        if ch == " ":
            continue
        if ch in _CATEGORIES:
            level_char = next(chars, None)
            if level_char is None or level_char not in _DIGITS:
                raise RegexSyntaxError(f"category {ch!r} must be followed by a level digit")
            level = min(int(level_char), _MAX_LEVEL)
            if level < 1:
                raise RegexSyntaxError(f"invalid level {level_char!r} for category {ch!r}")
            offset = _CATEGORIES.index(ch) * _MAX_LEVEL + level - 1
            out.append(chr(ord("a") + offset))
        else:
            out.append(ch)
    return "".join(out)


def insert_concatenation(expression: str) -> str:
    """Make concatenation explicit by inserting ``&`` between adjacent operands."""
    out = []
    for position, ch in enumerate(expression):
        out.append(ch)
        following = expression[position + 1 : position + 2]
        if (_is_letter(ch) or ch in "*)") and following and (
            _is_letter(following) or following == "("
        ):
            out.append("&")
    return "".join(out)


def infix_to_postfix(expression: str) -> str:
    """Convert an infix expression to postfix form with explicit ``&``."""
    out: list[str] = []
    operators: list[str] = []
    for ch in insert_concatenation(expression):
        if _is_letter(ch):
            out.append(ch)
        elif ch == "(":
            operators.append(ch)
        elif ch == ")":
            while operators and operators[-1] != "(":
                out.append(operators.pop())
            if not operators:
                raise RegexSyntaxError("unbalanced ')'")
            operators.pop()
        elif ch in "*&|":
            while operators and _PRIORITY[operators[-1]] >= _PRIORITY[ch]:
                out.append(operators.pop())
            operators.append(ch)
        else:
            raise RegexSyntaxError(f"unexpected character {ch!r}")
    while operators:
        op = operators.pop()
        if op == "(":
            raise RegexSyntaxError("unbalanced '('")
        out.append(op)
    return "".join(out)


@dataclass
class _NFAState:
    symbol: Optional[str] = None
    target: Optional[int] = None
    epsilon: set[int] = field(default_factory=set)


@dataclass
class NFA:
    """A Thompson NFA with one start and one accepting state."""

    states: list[_NFAState]
    start: int
    accept: int

    def _closure(self, seeds: Iterable[int]) -> frozenset[int]:
        reached = set(seeds)
        pending = list(reached)
        while pending:
            state = pending.pop()
            for nxt in self.states[state].epsilon:
                if nxt not in reached:
                    reached.add(nxt)
                    pending.append(nxt)
        return frozenset(reached)

    def _step(self, states: Iterable[int], letter: str) -> frozenset[int]:
        return frozenset(
            self.states[s].target for s in states if self.states[s].symbol == letter
        )


def build_nfa(postfix: str) -> NFA:
    """Build a Thompson NFA from a postfix expression."""
    states: list[_NFAState] = []
    stack: list[tuple[int, int]] = []

    def new_fragment() -> tuple[int, int]:
        states.append(_NFAState())
        states.append(_NFAState())
        return len(states) - 2, len(states) - 1

    def pop_operand(op: str) -> tuple[int, int]:
        if not stack:
            raise RegexSyntaxError(f"operator {op!r} is missing an operand")
        return stack.pop()

    for ch in postfix:
        if _is_letter(ch):
            head, tail = new_fragment()
            states[head].symbol = ch
            states[head].target = tail
            stack.append((head, tail))
        elif ch == "*":
            inner_head, inner_tail = pop_operand(ch)
            head, tail = new_fragment()
            states[inner_tail].epsilon.update((head, tail))
            states[head].epsilon.update((inner_head, tail))
            stack.append((head, tail))
        elif ch == "|":
            right = pop_operand(ch)
            left = pop_operand(ch)
            head, tail = new_fragment()
            states[head].epsilon.update((left[0], right[0]))
            states[left[1]].epsilon.add(tail)
            states[right[1]].epsilon.add(tail)
            stack.append((head, tail))
        elif ch == "&":
            right = pop_operand(ch)
            left = pop_operand(ch)
            states[left[1]].epsilon.add(right[0])
            stack.append((left[0], right[1]))
        else:
            raise RegexSyntaxError(f"unexpected character {ch!r} in postfix expression")
    if len(stack) != 1:
        raise RegexSyntaxError("expression does not form a single pattern")
    start, accept = stack[0]
    return NFA(states=states, start=start, accept=accept)


@dataclass
class DFA:
    """A deterministic automaton; missing transitions reject."""

    start: int
    accepting: frozenset[int]
    alphabet: tuple[str, ...]
    transitions: list[dict[str, int]]

    def run(self, word: str, state: int) -> Optional[int]:
        """Follow ``word`` from ``state``; return the state reached or None."""
        current: Optional[int] = state
        for letter in word:
            current = self.transitions[current].get(letter)
            if current is None:
                return None
        return current

    def accepts(self, word: str) -> bool:
        """Whether the automaton accepts ``word``."""
        end = self.run(word, self.start)
        return end is not None and end in self.accepting

    def reverse_transitions(self) -> list[dict[str, int]]:
        """Map each state and letter to a predecessor (the highest-numbered one)."""
        reverse: list[dict[str, int]] = [{} for _ in self.transitions]
        for state, edges in enumerate(self.transitions):
            for letter, target in edges.items():
                reverse[target][letter] = state
        return reverse

    def describe(self) -> str:
        """A human-readable listing of states, transitions and the matrix."""

        def mark(state: int) -> str:
            return f"<{state}>" if state in self.accepting else str(state)

        lines = [
            f"minDFA StateNum: {len(self.transitions)}",
            f"Initial State:{self.start}",
            "Alphabet:{" + "".join(f"{c} " for c in self.alphabet) + "}",
            "Final States:{" + "".join(f"{s} " for s in sorted(self.accepting)) + "}",
            "Transition Function:",
        ]
        for state, edges in enumerate(self.transitions):
            lines.append(
                "".join(f"{state}-->'{c}'-->{mark(t)}\t" for c, t in edges.items())
            )
        lines.append("")
        lines.append("TransMatrix:")
        lines.append("     " + "".join(f"{c}   " for c in self.alphabet))
        for state, edges in enumerate(self.transitions):
            head = f"<{state}>  " if state in self.accepting else f" {state}   "
            cells = "".join(
                f"{edges[c]}   " if c in edges else "    " for c in self.alphabet
            )
            lines.append(head + cells)
        return "\n".join(lines)


def subset_construction(nfa: NFA, postfix: str) -> DFA:
    """Determinise ``nfa``; the alphabet is the letters of ``postfix``."""
    alphabet = tuple(sorted({c for c in postfix if _is_letter(c)}))
    start = nfa._closure({nfa.start})
    closures = [start]
    index = {start: 0}
    transitions: list[dict[str, int]] = [{}]
    pending = deque([0])
    while pending:
        current = pending.popleft()
        for letter in alphabet:
            target = nfa._closure(nfa._step(closures[current], letter))
            if not target:
                continue
            if target not in index:
                index[target] = len(closures)
                closures.append(target)
                transitions.append({})
                pending.append(index[target])
            transitions[current][letter] = index[target]
    accepting = frozenset(i for i, closure in enumerate(closures) if nfa.accept in closure)
    return DFA(start=0, accepting=accepting, alphabet=alphabet, transitions=transitions)


def minimize(dfa: DFA) -> DFA:
    """Merge equivalent states by partition refinement.

    Block 0 holds the accepting states; split-off groups are appended in
    the order they are found.
    """
    states = range(len(dfa.transitions))
    finals = {s for s in states if s in dfa.accepting}
    others = {s for s in states if s not in dfa.accepting}
    blocks = [block for block in (finals, others) if block]
    owner = {s: i for i, block in enumerate(blocks) for s in block}

    changed = True
    while changed:
        changed = False
        i = 0
        # New blocks appended during a pass are refined in the same pass.
        while i < len(blocks):
            for letter in dfa.alphabet:
                groups: dict[Optional[int], set[int]] = {}
                for state in sorted(blocks[i]):
                    target = dfa.transitions[state].get(letter)
                    key = None if target is None else owner[target]
                    groups.setdefault(key, set()).add(state)
                if len(groups) > 1:
                    changed = True
                    first, *rest = groups.values()
                    blocks[i] = first
                    for group in rest:
                        for state in group:
                            owner[state] = len(blocks)
                        blocks.append(group)
            i += 1

    transitions: list[dict[str, int]] = [{} for _ in blocks]
    for i, block in enumerate(blocks):
        for state in sorted(block):
            for letter, target in dfa.transitions[state].items():
                transitions[i].setdefault(letter, owner[target])
    return DFA(
        start=owner[dfa.start],
        accepting=frozenset(owner[s] for s in dfa.accepting),
        alphabet=dfa.alphabet,
        transitions=transitions,
    )


def compile_regex(expression: str) -> DFA:
    """Compile a label expression into its minimal DFA."""
    postfix = infix_to_postfix(translate_labels(expression))
    nfa = build_nfa(postfix)
    return minimize(subset_construction(nfa, postfix))