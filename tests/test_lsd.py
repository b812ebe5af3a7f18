import math
import struct

import pytest

from regroute.dijkstra import ConstrainedSearch
from regroute.graph import Edge, RoadGraph, label_letter
from regroute.lsd import (
    LSDIndex,
    allowed_label_mask,
    format_label_set,
    join_label_sets,
    prune_label_sets,
)
from regroute.regex import compile_regex

A1 = label_letter("A", 1)
A2 = label_letter("A", 2)
B1 = label_letter("B", 1)


def bit(letter):
    return 1 << (ord(letter) - ord("a"))


@pytest.fixture
def graph():
    edges = [
        Edge(0, 1, 1.0, A1),
        Edge(1, 2, 1.0, A1),
        Edge(0, 2, 5.0, A2),
        Edge(2, 3, 2.0, A2),
        Edge(3, 4, 1.0, A1),
        Edge(1, 4, 10.0, B1),
        Edge(4, 5, 3.0, A2),
    ]
    return RoadGraph(num_vertices=6, edges=edges)


def test_allowed_label_mask_of_default_expression():
    mask = allowed_label_mask("A2*D1*A2*")
    assert mask == bit(label_letter("A", 2)) | bit(label_letter("D", 1))
    assert format_label_set(mask) == "b p"


def test_allowed_label_mask_with_parentheses():
    assert allowed_label_mask("(A1|A2|B1)*") == bit(A1) | bit(A2) | bit(B1)


def test_allowed_label_mask_rejects_unknown_class():
    with pytest.raises(ValueError):
        allowed_label_mask("X1*")


def test_format_label_set():
    assert format_label_set(0b101) == "a c"
    assert format_label_set(0) == ""


def test_join_label_sets_keeps_minimum():
    result = {}
    join_label_sets({1: 2.0}, {2: 3.0}, result)
    assert result == {3: 5.0}
    join_label_sets({1: 1.0}, {2: 1.5}, result)
    assert result[3] == pytest.approx(2.5)


def test_prune_label_sets_removes_dominated_supersets():
    sets = {1: 1.0, 3: 2.0, 2: 0.5}
    prune_label_sets(sets)
    assert sets == {1: 1.0, 2: 0.5}


def test_prune_keeps_cheaper_superset():
    sets = {1: 4.0, 3: 2.0}
    prune_label_sets(sets)
    assert sets == {1: 4.0, 3: 2.0}


@pytest.mark.parametrize("expression", ["A1*", "(A1|A2)*", "(A1|A2|B1)*"])
def test_queries_match_dijkstra(graph, expression):
    index = LSDIndex(graph)
    engine = ConstrainedSearch(graph, compile_regex(expression))
    mask = allowed_label_mask(expression)
    for s in range(1, 7):
        for t in range(1, 7):
            assert index.query(s, t, mask) == pytest.approx(engine.query(s, t))


def test_unreachable_and_same_vertex(graph):
    index = LSDIndex(graph)
    mask = bit(A1)
    assert index.query(1, 4, mask) == -1.0
    assert index.query(2, 2, mask) == 0.0


def test_order_does_not_change_answers(graph):
    default = LSDIndex(graph)
    identity = LSDIndex(graph, ranks=list(range(6)))
    mask = bit(A1) | bit(A2) | bit(B1)
    for s in range(1, 7):
        for t in range(1, 7):
            assert identity.query(s, t, mask) == pytest.approx(default.query(s, t, mask))


def test_distance_between_adjacent_vertices(graph):
    index = LSDIndex(graph)
    assert index.distance(4, 5, bit(A2)) == pytest.approx(3.0)
    assert index.distance(5, 4, bit(A2)) == pytest.approx(3.0)
    assert math.isinf(index.distance(4, 5, 0))


def test_wrong_number_of_ranks(graph):
    with pytest.raises(ValueError):
        LSDIndex(graph, ranks=[0, 1, 2])


def test_save_layout(graph, tmp_path):
    index = LSDIndex(graph)
    path = tmp_path / "LSDindex"
    size = index.save(path)
    data = path.read_bytes()
    assert len(data) == 4 + 4 * size
    count, root, parent, bag_size = struct.unpack_from("<4i", data, 0)
    assert count == 6
    assert root == index.tree.root
    assert parent == 6262106
    assert bag_size == len(index.tree.bags[root])


def test_save_round_trip_of_labels(graph, tmp_path):
    index = LSDIndex(graph)
    path = tmp_path / "LSDindex"
    index.save(path)
    data = path.read_bytes()
    offset = 4
    read_labels = {}
    while offset < len(data):
        v, _, nx = struct.unpack_from("<3i", data, offset)
        offset += 12
        for _ in range(nx):
            (u,) = struct.unpack_from("<i", data, offset)
            offset += 4
            if u == v:
                continue
            entries = []
            for _ in range(len(index.labels[(v, u)])):
                entries.append(struct.unpack_from("<id", data, offset))
                offset += 12
            read_labels[(v, u)] = entries
    assert offset == len(data)
    assert read_labels == index.labels