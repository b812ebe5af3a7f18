"""Separator pruning for hub-label queries.

Queries whose endpoints lie in different subtrees meet at a separator
bag.  For the separators hit most often by random queries, each
descendant vertex records which hop links are redundant: every distance
they offer is also reached through another hop link of the same bag.
Such hop links can be skipped at query time without changing answers.
"""

from __future__ import annotations

import random
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Optional

from .pcsp import PCSPIndex, StateMatrix, join_matrices

__all__ = [
    "SeparatorPruning",
    "separator_for",
    "sample_separator_frequencies",
    "build_separator_pruning",
]

DEFAULT_SAMPLES = 1_000_000
MAX_SEPARATORS = 20


@dataclass
class SeparatorPruning:
    """Redundant hop links per separator and descendant vertex.

    ``flags[separator][vertex][position]`` is True when the hop link at
    ``position`` of the separator's bag may be skipped for queries from
    ``vertex``.
    """

    separators: list[int] = field(default_factory=list)
    flags: dict[int, dict[int, list[bool]]] = field(default_factory=dict)

    def is_pruned(self, separator: int, vertex: int, position: int) -> bool:
        """Whether the hop link at ``position`` can be skipped for ``vertex``."""
        vertex_flags = self.flags.get(separator, {}).get(vertex)
        if not vertex_flags or not 0 <= position < len(vertex_flags):
            return False
        return vertex_flags[position]


def separator_for(index: PCSPIndex, source: int, target: int) -> Optional[int]:
    """The separator a query between 0-based vertices meets at.

    Returns None when the vertices coincide or one is an ancestor of the
    other, since such queries use no separator.
    """
    if source == target:
        return None
    _, source_child, target_child = index.tree.meeting_point(source, target)
    if source_child is None or target_child is None:
        return None
    return index._separator(source_child, target_child)


def sample_separator_frequencies(
    index: PCSPIndex, samples: int, rng: Optional[random.Random] = None
) -> Counter:
    """Count how often random vertex pairs meet at each separator."""
    if samples < 0:
        raise ValueError("the number of samples cannot be negative")
    if rng is None:
        rng = random.Random()
    n = index.graph.num_vertices
    hits: Counter = Counter()
    for _ in range(samples):
        source = rng.randint(0, n - 1)
        target = rng.randint(0, n - 1)
        separator = separator_for(index, source, target)
        if separator is not None:
            hits[separator] += 1
    return hits


def _is_covered(
    index: PCSPIndex,
    vertex: int,
    flags: list[bool],
    hubs: list[int],
    positions: list[int],
    i: int,
    state: int,
    distance: int,
) -> bool:
    start = index.start_state
    hub = hubs[i]
    depth = positions[i]
    for j, other_depth in enumerate(positions):
        if j == i or flags[j]:
            continue
        other_hub = hubs[j]
        if index.ranks[other_hub] < index.ranks[hub]:
            link = index.up_labels[other_hub][depth][1]
        else:
            link = index.down_labels[hub][other_depth][1]
        via = join_matrices(
            index.up_labels[vertex][other_depth][1],
            link,
            StateMatrix(index.num_states),
        )
        if via.cells.get((start, state)) == distance:
            return True
    return False


def _separator_flags(index: PCSPIndex, top: int) -> dict[int, list[bool]]:
    positions = index.hub_depths[top][:-1]
    hubs = [index.up_labels[top][depth][0] for depth in positions]
    start = index.start_state
    result: dict[int, list[bool]] = {}
    pending = deque(index.tree.children[top])
    while pending:
        vertex = pending.popleft()
        pending.extend(index.tree.children[vertex])
        flags = [False] * len(positions)
        for i, depth in enumerate(positions):
            up = index.up_labels[vertex][depth][1].cells
            reachable = False
            pruned = True
            for state in range(index.num_states):
                distance = up.get((start, state))
                if distance is None:
                    continue
                reachable = True
                if not _is_covered(
                    index, vertex, flags, hubs, positions, i, state, distance
                ):
                    pruned = False
                    break
            flags[i] = pruned and reachable
        result[vertex] = flags
    return result


def build_separator_pruning(
    index: PCSPIndex,
    alpha: float,
    samples: int = DEFAULT_SAMPLES,
    rng: Optional[random.Random] = None,
) -> SeparatorPruning:
    """Prune the most frequent separators covering more than ``alpha`` of queries.

    Separators are taken by decreasing frequency until their share exceeds
    ``alpha``, and at most twenty are kept.
    """
    hits = sample_separator_frequencies(index, samples, rng)
    total = sum(hits.values())
    ranked = sorted((count / total, vertex) for vertex, count in hits.items())
    chosen: list[int] = []
    share = 0.0
    for fraction, vertex in reversed(ranked):
        share += fraction
        chosen.append(vertex)
        if share > alpha:
            break
    chosen = chosen[:MAX_SEPARATORS]
    return SeparatorPruning(
        separators=chosen,
        flags={separator: _separator_flags(index, separator) for separator in chosen},
    )