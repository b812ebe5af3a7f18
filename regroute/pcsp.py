"""Path-constrained shortest paths answered from hub labels.

Every edge carries a matrix over automaton states: entry ``(q, q')``
holds the length of a path that drives the DFA from ``q`` to ``q'``.
Contracting vertices in rank order builds shortcut matrices, and each
vertex then stores, for every ancestor in the elimination tree, the
matrices of the best paths up to the ancestor and down from it.
Distances are integers: edge weights are scaled by 100 and truncated.
"""

from __future__ import annotations

import struct
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

from .graph import RoadGraph
from .lsd import ROOT_PARENT
from .ordering import EliminationTree, contraction_order
from .regex import DFA

__all__ = ["StateMatrix", "PCSPIndex", "join_matrices", "edge_matrix"]

WEIGHT_SCALE = 100

Cell = tuple[int, int]


@dataclass
class StateMatrix:
    """A sparse matrix of path lengths between automaton states.

    A missing cell means no such path exists.
    """

    size: int
    cells: dict[Cell, int] = field(default_factory=dict)


def _copy(matrix: StateMatrix) -> StateMatrix:
    return StateMatrix(matrix.size, dict(matrix.cells))


def join_matrices(
    first: StateMatrix, second: StateMatrix, result: StateMatrix
) -> StateMatrix:
    """Concatenate the paths of ``first`` and ``second``, keeping minima in ``result``."""
    if not first.size == second.size == result.size:
        raise ValueError("state matrices of different sizes cannot be joined")
    rows: dict[int, list[tuple[int, int]]] = {}
    for (middle, end), length in second.cells.items():
        rows.setdefault(middle, []).append((end, length))
    cells = result.cells
    for (begin, middle), first_length in list(first.cells.items()):
        for end, second_length in rows.get(middle, ()):
            total = first_length + second_length
            current = cells.get((begin, end))
            if current is None or total < current:
                cells[(begin, end)] = total
    return result


def edge_matrix(
    dfa: DFA, letter: str, weight: int, size: Optional[int] = None
) -> StateMatrix:
    """The matrix of a single edge labelled ``letter`` with the given weight."""
    if size is None:
        size = len(dfa.transitions)
    if size < len(dfa.transitions):
        raise ValueError("matrix size is smaller than the number of DFA states")
    matrix = StateMatrix(size)
    for state, edges in enumerate(dfa.transitions):
        target = edges.get(letter)
        if target is not None:
            matrix.cells[(state, target)] = weight
    return matrix


class _Pruning(Protocol):
    separators: Sequence[int]

    def is_pruned(self, separator: int, vertex: int, position: int) -> bool: ...


Label = tuple[int, StateMatrix]


class PCSPIndex:
    """Hub labels answering shortest-path queries constrained by a DFA."""

    def __init__(
        self, graph: RoadGraph, dfa: DFA, ranks: Optional[Sequence[int]] = None
    ) -> None:
        n = graph.num_vertices
        if ranks is None:
            ranks = contraction_order(n, ((e.source, e.target) for e in graph.edges))
        ranks = list(ranks)
        if len(ranks) != n:
            raise ValueError(f"expected {n} ranks, got {len(ranks)}")
        self.graph = graph
        self.dfa = dfa
        self.ranks = ranks
        self.num_states = len(dfa.transitions)
        self.start_state = dfa.start
        self.final_states = sorted(dfa.accepting)
        self.counters: Counter[str] = Counter()

        size = self.num_states
        adj: dict[tuple[int, int], StateMatrix] = {}
        higher: list[dict[int, None]] = [{} for _ in range(n)]
        for edge in graph.edges:
            low, high = edge.source, edge.target
            if low == high:
                continue
            if ranks[low] > ranks[high]:
                low, high = high, low
            higher[low][high] = None
            weight = int(edge.weight * WEIGHT_SCALE)
            matrix = adj.setdefault((low, high), StateMatrix(size))
            matrix.cells.update(edge_matrix(dfa, edge.label, weight, size).cells)
            adj[(high, low)] = _copy(matrix)

        def matrix_of(a: int, b: int) -> StateMatrix:
            return adj.setdefault((a, b), StateMatrix(size))

        for v in sorted(range(n), key=ranks.__getitem__):
            members = list(higher[v])
            for position, u in enumerate(members):
                for w in members[position + 1 :]:
                    low, high = (u, w) if ranks[u] < ranks[w] else (w, u)
                    higher[low][high] = None
                    join_matrices(matrix_of(u, v), matrix_of(v, w), matrix_of(u, w))
                    join_matrices(matrix_of(w, v), matrix_of(v, u), matrix_of(w, u))

        self.tree = EliminationTree.from_bags(ranks, [list(h) for h in higher])
        self.up_labels: list[list[Label]] = [[] for _ in range(n)]
        self.down_labels: list[list[Label]] = [[] for _ in range(n)]
        self.hub_depths: list[list[int]] = [[] for _ in range(n)]
        self.height = 0
        total_depth = 0
        for v in self.tree.bfs_order:
            ancestors = self.tree.ancestors(v)[1:]
            total_depth += len(ancestors)
            self.height = max(self.height, len(ancestors) + 1)
            self._label_vertex(v, ancestors[::-1], matrix_of)
        self.average_height = total_depth / n

        self.up_best = [[self._best(m) for _, m in labels] for labels in self.up_labels]
        self.down_best = [
            [self._best(m) for _, m in labels] for labels in self.down_labels
        ]
        self.max_label_size = 0
        half_sizes = 0.0
        for labels in (*self.up_labels, *self.down_labels):
            for _, matrix in labels:
                count = sum(
                    1 for q in self.final_states
                    if (self.start_state, q) in matrix.cells
                )
                self.max_label_size = max(self.max_label_size, count)
                half_sizes += count / 2
        self.average_label_size = half_sizes / total_depth if total_depth else 0.0
        self.width = self.tree.width

    def _label_vertex(self, v: int, path_from_root: list[int], matrix_of) -> None:
        bag = self.tree.bags[v]
        depths = self.hub_depths[v]
        for depth, u in enumerate(path_from_root):
            up = _copy(matrix_of(v, u))
            down = _copy(matrix_of(u, v))
            for j, w in enumerate(bag):
                if w == u:
                    depths.append(depth)
                    continue
                if w == v:
                    continue
                if self.ranks[w] <= self.ranks[u]:
                    join_matrices(matrix_of(v, w), self.up_labels[w][depth][1], up)
                    join_matrices(self.down_labels[w][depth][1], matrix_of(w, v), down)
                else:
                    hub_depth = depths[j]
                    join_matrices(matrix_of(v, w), self.down_labels[u][hub_depth][1], up)
                    join_matrices(self.up_labels[u][hub_depth][1], matrix_of(w, v), down)
            self.up_labels[v].append((u, up))
            self.down_labels[v].append((u, down))
        self.up_labels[v].append((v, StateMatrix(self.num_states)))
        self.down_labels[v].append((v, StateMatrix(self.num_states)))
        depths.append(len(path_from_root))

    def _best(self, matrix: StateMatrix) -> Optional[int]:
        values = [
            matrix.cells[(self.start_state, q)]
            for q in self.final_states
            if (self.start_state, q) in matrix.cells
        ]
        return min(values, default=None)

    def _separator(self, source_child: int, target_child: int) -> int:
        source_size = len(self.hub_depths[source_child])
        target_size = len(self.hub_depths[target_child])
        if source_size == target_size:
            return min(source_child, target_child)
        return source_child if source_size < target_size else target_child

    def query(
        self, source: int, target: int, pruning: Optional[_Pruning] = None
    ) -> int:
        """Scaled length of the shortest accepted path between 1-based vertices, or -1."""
        if source == target:
            return 0
        s, t = source - 1, target - 1
        for vertex in (s, t):
            if not 0 <= vertex < self.graph.num_vertices:
                raise ValueError(f"vertex {vertex + 1} is out of range")
        meeting, source_child, target_child = self.tree.meeting_point(s, t)
        if source_child is None or target_child is None:
            if meeting == s:
                best = self.down_best[t][len(self.tree.ancestors(s)) - 1]
            else:
                best = self.up_best[s][len(self.tree.ancestors(t)) - 1]
            return -1 if best is None else best

        hub = self._separator(source_child, target_child)
        depths = self.hub_depths[hub]
        self.counters["hop_links"] += len(depths) - 1
        self.counters["lca_queries"] += 1
        best = None
        for position, depth in enumerate(depths[:-1]):
            if pruning is not None and pruning.is_pruned(hub, s, position):
                self.counters["pruned_hop_links"] += 1
                self.counters["pruned_concatenations"] += self.num_states
                continue
            up = self.up_labels[s][depth][1].cells
            down = self.down_labels[t][depth][1].cells
            for q in range(self.num_states):
                first = up.get((self.start_state, q))
                if first is None:
                    continue
                for final in self.final_states:
                    second = down.get((q, final))
                    if second is None:
                        continue
                    self.counters["concatenations"] += 1
                    if best is None or first + second < best:
                        best = first + second
        return -1 if best is None else best

    def save(
        self, path: Union[str, Path], pruning: Optional[_Pruning] = None
    ) -> tuple[int, int]:
        """Write the index breadth-first, then any pruning flags.

        Returns the sizes of the index and of the pruning flags in 4-byte words.
        """
        size = self.num_states
        all_states = ((1 << size) - 1) & 0xFFFFFFFF
        index_words = 0
        pruning_words = 0
        with open(path, "wb") as handle:
            handle.write(struct.pack("<i", self.graph.num_vertices))
            for v in self.tree.bfs_order:
                bag = self.tree.bags[v]
                parent = self.tree.parent[v]
                up, down = self.up_labels[v], self.down_labels[v]
                handle.write(
                    struct.pack(
                        "<5i",
                        v,
                        ROOT_PARENT if parent is None else parent,
                        len(bag),
                        len(up),
                        len(down),
                    )
                )
                handle.write(struct.pack(f"<{len(bag)}i", *bag))
                index_words += 5 + len(bag)
                for labels, bests in ((up, self.up_best[v]), (down, self.down_best[v])):
                    for (_, matrix), best in zip(labels, bests):
                        row = [
                            matrix.cells.get((self.start_state, q), -1)
                            for q in range(size)
                        ]
                        handle.write(struct.pack("<2i", -1 if best is None else best, size))
                        handle.write(struct.pack(f"<{size}i", *row))
                        handle.write(struct.pack("<I", all_states))
                        index_words += 3 + size
            if pruning is not None:
                for separator in pruning.separators:
                    positions = len(self.hub_depths[separator]) - 1
                    for vertex in sorted(self._descendants(separator)):
                        flags = [
                            int(bool(pruning.is_pruned(separator, vertex, p)))
                            for p in range(positions)
                        ]
                        handle.write(struct.pack(f"<{positions}i", *flags))
                        pruning_words += positions
        return index_words, pruning_words

    def _descendants(self, vertex: int) -> set[int]:
        found: set[int] = set()
        pending = list(self.tree.children[vertex])
        while pending:
            current = pending.pop()
            found.add(current)
            pending.extend(self.tree.children[current])
        return found