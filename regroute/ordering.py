"""Vertex contraction orders and the elimination tree built from them."""

from __future__ import annotations

import heapq
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

__all__ = ["EliminationTree", "contraction_order"]


def contraction_order(num_vertices: int, edges: Iterable[tuple[int, int]]) -> list[int]:
    """Rank vertices by minimum-degree elimination.

    A vertex's priority is ``1000 * degree + eliminated_neighbours``;
    eliminating a vertex connects its remaining neighbours.  Returns the
    rank of every vertex.
    """
    neighbours: list[set[int]] = [set() for _ in range(num_vertices)]
    for u, v in edges:
        if not (0 <= u < num_vertices and 0 <= v < num_vertices):
            raise ValueError(f"edge ({u}, {v}) has an endpoint out of range")
        neighbours[u].add(v)
        neighbours[v].add(u)
    eliminated_neighbours = [0] * num_vertices
    done = [False] * num_vertices
    ranks = [-1] * num_vertices

    def priority(vertex: int) -> int:
        return 1000 * len(neighbours[vertex]) + eliminated_neighbours[vertex]

    heap = [(priority(v), v) for v in range(num_vertices)]
    heapq.heapify(heap)
    rank = 0
    while heap:
        _, vertex = heapq.heappop(heap)
        if done[vertex]:
            continue
        current = priority(vertex)
        if heap and current > heap[0][0]:
            heapq.heappush(heap, (current, vertex))
            continue
        done[vertex] = True
        ranks[vertex] = rank
        rank += 1
        remaining = [u for u in neighbours[vertex] if not done[u]]
        for position, u in enumerate(remaining):
            for w in remaining[position + 1 :]:
                neighbours[u].add(w)
                neighbours[w].add(u)
            eliminated_neighbours[u] += 1
    return ranks


@dataclass
class EliminationTree:
    """Tree decomposition induced by a contraction order.

    ``bags[v]`` lists the higher-ranked neighbours of ``v`` by decreasing
    rank followed by ``v`` itself; the parent of ``v`` is the lowest
    ranked of those neighbours.
    """

    ranks: list[int]
    order: list[int]
    parent: list[Optional[int]]
    children: list[list[int]]
    bags: list[list[int]]
    root: int
    width: int
    bfs_order: list[int]

    @classmethod
    def from_bags(cls, ranks: Sequence[int], bags) -> "EliminationTree":
        """Build the tree from vertex ranks and each vertex's higher neighbours."""
        ranks = list(ranks)
        count = len(ranks)
        if count == 0:
            raise ValueError("cannot build a tree without vertices")
        if sorted(ranks) != list(range(count)):
            raise ValueError("ranks do not form a permutation of the vertices")
        order = [0] * count
        for vertex, rank in enumerate(ranks):
            order[rank] = vertex

        parent: list[Optional[int]] = [None] * count
        children: list[list[int]] = [[] for _ in range(count)]
        sorted_bags: list[list[int]] = [[] for _ in range(count)]
        width = 0
        root = order[-1]
        for position, vertex in enumerate(order):
            members = list(bags[vertex])
            for member in members:
                if ranks[member] <= ranks[vertex]:
                    raise ValueError(
                        f"bag of vertex {vertex} holds lower-ranked vertex {member}"
                    )
            members.sort(key=ranks.__getitem__, reverse=True)
            width = max(width, len(members) + 1)
            sorted_bags[vertex] = members + [vertex]
            if not members:
                if position != count - 1:
                    raise ValueError("elimination graph is disconnected")
                root = vertex
                break
            parent[vertex] = members[-1]
            children[members[-1]].append(vertex)

        bfs_order = []
        pending = deque([root])
        while pending:
            vertex = pending.popleft()
            bfs_order.append(vertex)
            pending.extend(children[vertex])

        return cls(
            ranks=ranks,
            order=order,
            parent=parent,
            children=children,
            bags=sorted_bags,
            root=root,
            width=width,
            bfs_order=bfs_order,
        )

    def ancestors(self, vertex: int) -> list[int]:
        """The path from ``vertex`` up to the root, both included."""
        path = []
        current: Optional[int] = vertex
        while current is not None:
            path.append(current)
            current = self.parent[current]
        return path

    def meeting_point(
        self, source: int, target: int
    ) -> tuple[int, Optional[int], Optional[int]]:
        """Lowest common ancestor and the children of it on each side.

        The children are None when the ancestor is ``source`` or ``target``.
        """
        up_source = self.ancestors(source)
        up_target = self.ancestors(target)
        i, j = len(up_source) - 1, len(up_target) - 1
        while i >= 0 and j >= 0 and up_source[i] == up_target[j]:
            i -= 1
            j -= 1
        if i == -1:
            return up_source[0], None, None
        if j == -1:
            return up_target[0], None, None
        return up_source[i + 1], up_source[i], up_target[j]