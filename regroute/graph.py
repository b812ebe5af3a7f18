"""Road networks with labelled edges, query sets and vertex orders.

Graph files follow the shortest-path challenge layout: comment lines
starting with ``c``, one problem line ``p sp <vertices> <arcs>`` and arc
lines ``a <from> <to> <weight> <label>``, where the label is a road
class ``A``-``D`` followed by a level number.  Every road is listed once
in each direction, so only every other arc line is kept.  Vertices are
numbered from 1 in files and from 0 in memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence, Union

__all__ = [
    "Edge",
    "RoadGraph",
    "label_letter",
    "read_graph",
    "read_queries",
    "read_order",
    "write_order",
]

PathLike = Union[str, Path]

_CATEGORIES = "ABCD"
_MAX_LEVEL = 5


def label_letter(category: str, level: int) -> str:
    """Map a road class and level to its single-letter label.

    Levels above 5 count as 5; the letter is number
    ``class_index * 5 + level - 1`` of the alphabet.
    """
    if len(category) != 1 or category not in _CATEGORIES:
        raise ValueError(f"unknown road category {category!r}")
    if level < 1:
        raise ValueError(f"invalid road level {level!r}")
    offset = _CATEGORIES.index(category) * _MAX_LEVEL + min(level, _MAX_LEVEL) - 1
    return chr(ord("a") + offset)


@dataclass(frozen=True)
class Edge:
    """An undirected road between two vertices."""

    source: int
    target: int
    weight: float
    label: str


@dataclass
class RoadGraph:
    """An undirected labelled graph with vertices ``0 .. num_vertices - 1``."""

    num_vertices: int
    edges: list[Edge]
    adjacency: list[dict[int, Edge]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.num_vertices < 0:
            raise ValueError("the number of vertices cannot be negative")
        self.adjacency = [{} for _ in range(self.num_vertices)]
        for edge in self.edges:
            for end in (edge.source, edge.target):
                if not 0 <= end < self.num_vertices:
                    raise ValueError(f"edge endpoint {end} is out of range")
            self.adjacency[edge.source][edge.target] = edge
            self.adjacency[edge.target][edge.source] = edge

    def neighbours(self, vertex: int) -> Mapping[int, Edge]:
        """The vertices adjacent to ``vertex`` with the edge reaching each."""
        return self.adjacency[vertex]


def _parse_label(token: str) -> str:
    if len(token) < 2:
        raise ValueError(f"malformed edge label {token!r}")
    try:
        level = int(token[1:])
    except ValueError:
        raise ValueError(f"malformed edge label {token!r}") from None
    return label_letter(token[0], level)


def read_graph(path: PathLike) -> RoadGraph:
    """Read a labelled road network, keeping one arc of each direction pair."""
    num_vertices = None
    num_arcs = 0
    edges: list[Edge] = []
    arcs_read = 0
    with open(path, encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            parts = line.split()
            if not parts or parts[0] == "c":
                continue
            if num_vertices is None:
                if parts[0] != "p" or len(parts) < 4:
                    raise ValueError(f"line {line_number}: expected a problem line")
                num_vertices, num_arcs = int(parts[2]), int(parts[3])
                if num_arcs == 0:
                    break
                continue
            if parts[0] != "a" or len(parts) < 5:
                raise ValueError(f"line {line_number}: expected an arc line")
            if arcs_read % 2 == 0:
                edges.append(
                    Edge(
                        source=int(parts[1]) - 1,
                        target=int(parts[2]) - 1,
                        weight=float(parts[3]),
                        label=_parse_label(parts[4]),
                    )
                )
            arcs_read += 1
            if arcs_read == num_arcs:
                break
    if num_vertices is None:
        raise ValueError("graph file has no problem line")
    if arcs_read < num_arcs:
        raise ValueError(f"graph file declares {num_arcs} arcs but holds {arcs_read}")
    return RoadGraph(num_vertices=num_vertices, edges=edges)


def read_queries(path: PathLike) -> list[tuple[int, int]]:
    """Read whitespace-separated source/target pairs; a trailing odd number is ignored."""
    with open(path, encoding="utf-8") as handle:
        numbers = [int(token) for token in handle.read().split()]
    return list(zip(numbers[0::2], numbers[1::2]))


def read_order(path: PathLike, num_vertices: int) -> list[int]:
    """Read the contraction rank of each vertex, one per line."""
    with open(path, encoding="utf-8") as handle:
        tokens = handle.read().split()
    if len(tokens) < num_vertices:
        raise ValueError(
            f"order file holds {len(tokens)} ranks but {num_vertices} are needed"
        )
    ranks = [int(token) for token in tokens[:num_vertices]]
    if sorted(ranks) != list(range(num_vertices)):
        raise ValueError("ranks do not form a permutation of the vertices")
    return ranks


def write_order(path: PathLike, ranks: Iterable[int]) -> None:
    """Write the contraction rank of each vertex, one per line."""
    with open(path, "w", encoding="utf-8") as handle:
        handle.writelines(f"{rank}\n" for rank in ranks)


def _ranks_sequence(ranks: Sequence[int]) -> list[int]:
    return list(ranks)