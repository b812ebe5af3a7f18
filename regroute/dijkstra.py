"""Bidirectional Dijkstra search over the product of a road graph and a DFA."""

from __future__ import annotations

import heapq
import math
from dataclasses import dataclass, field

from .graph import RoadGraph
from .regex import DFA

__all__ = ["ConstrainedSearch"]

_State = tuple[int, int]
_Heap = list[tuple[float, int, int]]


def _drop_stale(heap: _Heap, dist: dict[_State, float]) -> None:
    while heap and dist.get((heap[0][1], heap[0][2]), math.inf) < heap[0][0]:
        heapq.heappop(heap)


@dataclass
class ConstrainedSearch:
    """Shortest paths whose label sequence is accepted by a DFA.

    The forward search runs on the automaton's transitions from its start
    state, the backward search on reversed transitions from every
    accepting state at the target.
    """

    graph: RoadGraph
    dfa: DFA
    _reverse: list[dict[str, int]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._reverse = self.dfa.reverse_transitions()

    def _expand(
        self,
        vertex: int,
        state: int,
        table: list[dict[str, int]],
        dist: dict[_State, float],
        heap: _Heap,
        other_dist: dict[_State, float],
        other_done: set[_State],
        best: float,
    ) -> float:
        base = dist[(vertex, state)]
        for neighbour, edge in self.graph.neighbours(vertex).items():
            next_state = table[state].get(edge.label)
            if next_state is None:
                continue
            key = (neighbour, next_state)
            candidate = base + edge.weight
            if candidate < dist.get(key, math.inf):
                dist[key] = candidate
                heapq.heappush(heap, (candidate, neighbour, next_state))
            if key in other_done:
                total = dist.get(key, math.inf) + other_dist[key]
                if total < best:
                    best = total
        return best

    def query(self, source: int, target: int) -> float:
        """Length of the shortest accepted path between 1-based vertices, or -1."""
        if source == target:
            return 0.0
        s, t = source - 1, target - 1
        for vertex in (s, t):
            if not 0 <= vertex < self.graph.num_vertices:
                raise ValueError(f"vertex {vertex + 1} is out of range")

        start = self.dfa.start
        forward_dist: dict[_State, float] = {(s, start): 0.0}
        forward_heap: _Heap = [(0.0, s, start)]
        forward_done: set[_State] = {(s, start)}
        backward_dist: dict[_State, float] = {}
        backward_heap: _Heap = []
        backward_done: set[_State] = set()
        for state in sorted(self.dfa.accepting):
            backward_dist[(t, state)] = 0.0
            backward_done.add((t, state))
            heapq.heappush(backward_heap, (0.0, t, state))

        best = math.inf
        while forward_heap and backward_heap:
            _drop_stale(forward_heap, forward_dist)
            _drop_stale(backward_heap, backward_dist)
            if not forward_heap or not backward_heap:
                break
            _, u, qu = heapq.heappop(forward_heap)
            _, v, qv = heapq.heappop(backward_heap)
            forward_done.add((u, qu))
            backward_done.add((v, qv))
            best = self._expand(
                u, qu, self.dfa.transitions, forward_dist, forward_heap,
                backward_dist, backward_done, best,
            )
            best = self._expand(
                v, qv, self._reverse, backward_dist, backward_heap,
                forward_dist, forward_done, best,
            )
            if forward_dist[(u, qu)] + backward_dist[(v, qv)] > best:
                break
        return -1.0 if best == math.inf else best