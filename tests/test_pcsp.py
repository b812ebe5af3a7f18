import struct

import pytest

from regroute.graph import Edge, RoadGraph
from regroute.lsd import ROOT_PARENT
from regroute.pcsp import (
    PCSPIndex,
    StateMatrix,
    edge_matrix,
    join_matrices,
)
from regroute.regex import compile_regex

W_A = 1.0
W_B = 2.0
W_C = 10.0


def scaled(*weights):
    return int(sum(weights) * 100)


def triangle():
    return RoadGraph(
        num_vertices=3,
        edges=[Edge(0, 1, W_A, "a"), Edge(1, 2, W_B, "b"), Edge(0, 2, W_C, "c")],
    )


def path_graph():
    return RoadGraph(num_vertices=3, edges=[Edge(0, 1, W_A, "a"), Edge(1, 2, W_B, "b")])


class AlwaysPrune:
    def __init__(self, separators):
        self.separators = separators
        self.calls = []

    def is_pruned(self, separator, vertex, position):
        self.calls.append((separator, vertex, position))
        return True


def test_join_matrices_keeps_minimum():
    first = StateMatrix(2, {(0, 0): 5, (0, 1): 1})
    second = StateMatrix(2, {(0, 1): 2, (1, 1): 3})
    result = StateMatrix(2, {(0, 1): 100})
    joined = join_matrices(first, second, result)
    assert joined is result
    assert result.cells == {(0, 1): 4}


def test_join_matrices_without_connection_leaves_result():
    first = StateMatrix(2, {(0, 0): 5})
    second = StateMatrix(2, {(1, 1): 3})
    result = join_matrices(first, second, StateMatrix(2))
    assert result.cells == {}


def test_join_matrices_size_mismatch():
    with pytest.raises(ValueError):
        join_matrices(StateMatrix(2), StateMatrix(3), StateMatrix(2))


def test_edge_matrix_follows_transitions():
    dfa = compile_regex("A1*A2*")
    matrix = edge_matrix(dfa, "b", 7)
    expected = {
        (state, edges["b"]): 7
        for state, edges in enumerate(dfa.transitions)
        if "b" in edges
    }
    assert matrix.cells == expected
    assert matrix.size == len(dfa.transitions)
    assert edge_matrix(dfa, "c", 7).cells == {}


def test_edge_matrix_size_too_small():
    dfa = compile_regex("A1*A2*")
    with pytest.raises(ValueError):
        edge_matrix(dfa, "a", 1, size=0)


@pytest.mark.parametrize("ranks", [[1, 0, 2], None])
def test_triangle_respects_label_order(ranks):
    index = PCSPIndex(triangle(), compile_regex("A1*A2*"), ranks)
    assert index.query(1, 3) == scaled(W_A, W_B)
    assert index.query(3, 1) == -1
    assert index.query(2, 3) == scaled(W_B)
    assert index.query(1, 2) == scaled(W_A)


def test_triangle_single_label():
    index = PCSPIndex(triangle(), compile_regex("A3"), [1, 0, 2])
    assert index.query(1, 3) == scaled(W_C)
    assert index.query(3, 1) == scaled(W_C)
    assert index.query(1, 2) == -1


def test_same_vertex_is_zero():
    index = PCSPIndex(triangle(), compile_regex("A3"), [1, 0, 2])
    assert index.query(2, 2) == 0


def test_query_out_of_range():
    index = PCSPIndex(triangle(), compile_regex("A3"), [1, 0, 2])
    with pytest.raises(ValueError):
        index.query(1, 9)


def test_wrong_rank_count():
    with pytest.raises(ValueError):
        PCSPIndex(triangle(), compile_regex("A3"), [0, 1])


def test_separator_query_through_common_ancestor():
    index = PCSPIndex(path_graph(), compile_regex("A1*A2*"), [0, 2, 1])
    assert index.tree.root == 1
    assert index.query(1, 3) == scaled(W_A, W_B)
    assert index.query(3, 1) == -1
    assert index.counters["lca_queries"] == 2
    assert index.counters["hop_links"] == 2


def test_pruning_skips_hub_links():
    index = PCSPIndex(path_graph(), compile_regex("A1*A2*"), [0, 2, 1])
    pruning = AlwaysPrune([0])
    assert index.query(1, 3, pruning) == -1
    assert pruning.calls == [(0, 0, 0)]
    assert index.counters["pruned_hop_links"] == 1
    assert index.counters["concatenations"] == 0


def test_save_header_and_root_record(tmp_path):
    index = PCSPIndex(triangle(), compile_regex("A1*A2*"), [1, 0, 2])
    target = tmp_path / "PCSPindex"
    index_words, pruning_words = index.save(target)
    data = target.read_bytes()
    n, v, parent, nx, len_up, len_down = struct.unpack_from("<6i", data)
    assert n == 3
    assert v == index.tree.root
    assert parent == ROOT_PARENT
    assert list(struct.unpack_from(f"<{nx}i", data, 24)) == index.tree.bags[v]
    assert len_up == len(index.up_labels[v])
    assert len_down == len(index.down_labels[v])
    assert pruning_words == 0
    assert index_words > 0


def test_save_appends_pruning_flags(tmp_path):
    index = PCSPIndex(triangle(), compile_regex("A1*A2*"), [1, 0, 2])
    plain = tmp_path / "plain"
    pruned = tmp_path / "pruned"
    base_words, _ = index.save(plain)
    words, pruning_words = index.save(pruned, AlwaysPrune([0]))
    assert words == base_words
    assert pruning_words == len(index.hub_depths[0]) - 1
    plain_bytes = plain.read_bytes()
    pruned_bytes = pruned.read_bytes()
    assert pruned_bytes.startswith(plain_bytes)
    tail = pruned_bytes[len(plain_bytes):]
    assert len(tail) == 4 * pruning_words
    assert all(flag == 1 for (flag,) in struct.iter_unpack("<i", tail))


def test_label_structure_matches_tree():
    index = PCSPIndex(triangle(), compile_regex("A1*A2*"), [1, 0, 2])
    for vertex in range(3):
        depth = len(index.tree.ancestors(vertex))
        assert len(index.up_labels[vertex]) == depth
        assert len(index.down_labels[vertex]) == depth
        assert index.hub_depths[vertex][-1] == depth - 1
        assert index.up_labels[vertex][-1][0] == vertex
    assert index.height == max(len(index.tree.ancestors(v)) for v in range(3))