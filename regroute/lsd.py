"""Label-set distance index over a tree decomposition.

For every vertex and each higher-ranked member of its bag the index keeps
the Pareto-minimal pairs of (label set, distance).  Label sets are bit
masks where bit ``k`` stands for the letter ``chr(ord('a') + k)``.
"""

from __future__ import annotations

import math
import struct
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from .graph import RoadGraph, label_letter
from .ordering import EliminationTree, contraction_order

__all__ = [
    "LSDIndex",
    "allowed_label_mask",
    "format_label_set",
    "join_label_sets",
    "prune_label_sets",
]

ROOT_PARENT = 6262106

LabelSets = dict[int, float]


def _bit(letter: str) -> int:
    return 1 << (ord(letter) - ord("a"))


def allowed_label_mask(expression: str) -> int:
    """The set of labels named in an expression such as ``A2*D1*A2*``.

    The expression is scanned as three-character tokens of a class, a level
    and an operator; opening parentheses and spaces are skipped.
    """
    mask = 0
    position = 0
    while position < len(expression) - 1:
        ch = expression[position]
        if ch in "( ":
            position += 1
            continue
        level_char = expression[position + 1]
        if level_char not in "0123456789":
            raise ValueError(f"label {ch!r} must be followed by a level digit")
        mask |= _bit(label_letter(ch, int(level_char)))
        position += 3
    return mask


def format_label_set(mask: int) -> str:
    """The letters of a label set, separated by spaces."""
    letters = []
    offset = 0
    while mask > 0:
        if mask & 1:
            letters.append(chr(ord("a") + offset))
        mask >>= 1
        offset += 1
    return " ".join(letters)


def join_label_sets(first: LabelSets, second: LabelSets, result: LabelSets) -> LabelSets:
    """Concatenate every path of ``first`` with every path of ``second`` into ``result``."""
    for set1, dist1 in first.items():
        for set2, dist2 in second.items():
            union = set1 | set2
            total = dist1 + dist2
            if total < result.get(union, math.inf):
                result[union] = total
    return result


def prune_label_sets(label_sets: LabelSets) -> LabelSets:
    """Drop every entry dominated by a subset that is no longer."""
    dominated = {
        s2
        for s1, d1 in label_sets.items()
        for s2, d2 in label_sets.items()
        if s1 != s2 and s1 & s2 == s1 and d1 <= d2
    }
    for key in dominated:
        del label_sets[key]
    return label_sets


class LSDIndex:
    """Distance labels answering shortest-path queries restricted to a label set."""

    def __init__(self, graph: RoadGraph, ranks: Optional[Sequence[int]] = None) -> None:
        n = graph.num_vertices
        if ranks is None:
            ranks = contraction_order(n, ((e.source, e.target) for e in graph.edges))
        ranks = list(ranks)
        if len(ranks) != n:
            raise ValueError(f"expected {n} ranks, got {len(ranks)}")
        self.graph = graph
        self.ranks = ranks

        adj: dict[tuple[int, int], LabelSets] = {}
        higher: list[dict[int, None]] = [{} for _ in range(n)]
        for edge in graph.edges:
            low, high = edge.source, edge.target
            if low == high:
                continue
            if ranks[low] > ranks[high]:
                low, high = high, low
            higher[low][high] = None
            adj.setdefault((low, high), {})[_bit(edge.label)] = edge.weight

        order = sorted(range(n), key=ranks.__getitem__)
        for v in order:
            members = list(higher[v])
            for position, u in enumerate(members):
                for w in members[position + 1 :]:
                    low, high = (u, w) if ranks[u] < ranks[w] else (w, u)
                    higher[low][high] = None
                    result = adj.setdefault((low, high), {})
                    join_label_sets(adj.get((v, u), {}), adj.get((v, w), {}), result)
                    prune_label_sets(result)

        self.tree = EliminationTree.from_bags(ranks, [list(h) for h in higher])
        self.labels: dict[tuple[int, int], list[tuple[int, float]]] = {}
        self.max_label_size = 0
        total_labels = 0
        total_width = 0
        for v in reversed(order[:-1]):
            bag = self.tree.bags[v]
            for u in bag:
                if u == v:
                    continue
                target = adj.setdefault((v, u), {})
                for w in bag:
                    if w in (v, u):
                        continue
                    key = (u, w) if ranks[u] < ranks[w] else (w, u)
                    join_label_sets(adj.get((v, w), {}), adj.get(key, {}), target)
                    prune_label_sets(target)
                entries = sorted(target.items(), key=lambda item: item[1])
                self.labels[(v, u)] = entries
                self.max_label_size = max(self.max_label_size, len(entries))
                total_labels += len(entries)
            total_width += len(bag)
        self.width = self.tree.width
        self.average_label_size = total_labels / total_width if total_width else 0.0

    def distance(self, u: int, v: int, allowed: int) -> float:
        """Shortest distance between bag-mates using only ``allowed`` labels."""
        if self.ranks[u] > self.ranks[v]:
            u, v = v, u
        for mask, dist in self.labels.get((u, v), ()):
            if mask & allowed == mask:
                return dist
        return math.inf

    def _climb(self, start: int, stop: int, allowed: int) -> dict[int, float]:
        bags = self.tree.bags
        dist: dict[int, float] = {start: 0.0}
        for w in bags[start][:-1]:
            dist[w] = self.distance(start, w, allowed)
        current = start
        while current != stop:
            parent = self.tree.parent[current]
            inside = set(bags[current])
            shared = [x for x in bags[parent] if x in inside]
            fresh = [x for x in bags[parent] if x not in inside]
            for u in fresh:
                for v in shared:
                    candidate = dist.get(v, math.inf) + self.distance(v, u, allowed)
                    if candidate < dist.get(u, math.inf):
                        dist[u] = candidate
            current = parent
        return dist

    def query(self, source: int, target: int, allowed: int) -> float:
        """Shortest distance between 1-based vertices using ``allowed`` labels, or -1."""
        if source == target:
            return 0.0
        s, t = source - 1, target - 1
        for vertex in (s, t):
            if not 0 <= vertex < self.graph.num_vertices:
                raise ValueError(f"vertex {vertex + 1} is out of range")
        meeting, _, _ = self.tree.meeting_point(s, t)
        from_source = self._climb(s, meeting, allowed)
        from_target = self._climb(t, meeting, allowed)
        best = min(
            (
                from_source.get(w, math.inf) + from_target.get(w, math.inf)
                for w in self.tree.bags[meeting]
            ),
            default=math.inf,
        )
        return -1.0 if best == math.inf else best

    def save(self, path: Union[str, Path]) -> int:
        """Write the index in breadth-first order; return its size in 4-byte words."""
        size = 0
        with open(path, "wb") as handle:
            handle.write(struct.pack("<i", self.graph.num_vertices))
            for v in self.tree.bfs_order:
                bag = self.tree.bags[v]
                parent = self.tree.parent[v]
                handle.write(
                    struct.pack(
                        "<3i", v, ROOT_PARENT if parent is None else parent, len(bag)
                    )
                )
                size += 3 + len(bag)
                for u in bag:
                    handle.write(struct.pack("<i", u))
                    if u == v:
                        continue
                    for mask, dist in self.labels.get((v, u), ()):
                        size += 3
                        handle.write(struct.pack("<id", mask, dist))
        return size


def _masks(letters: Iterable[str]) -> int:
    mask = 0
    for letter in letters:
        mask |= _bit(letter)
    return mask