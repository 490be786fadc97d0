import networkx as nx
import numpy as np

from trajflow import Lineage, get_lineages
from trajflow.topology.lineages import get_lineages_from_forest, lineage_membership, select_root


def _path_graph(labels):
    G = nx.Graph()
    G.add_nodes_from(labels)
    nx.add_path(G, labels)
    return G


def test_single_cluster_has_no_lineage():
    G = nx.Graph()
    G.add_node('1')
    assert get_lineages_from_forest(G) == []


def test_star_with_given_root():
    G = nx.Graph([('A', 'B'), ('A', 'C')])
    lineages = get_lineages_from_forest(G, start_clus='A')
    assert [list(lin) for lin in lineages] == [['A', 'B'], ['A', 'C']]
    assert [lin.name for lin in lineages] == ['Lineage1', 'Lineage2']
    assert all(lin.start_given for lin in lineages)
    assert not any(lin.end_given for lin in lineages)


def test_lineages_sorted_by_length():
    G = nx.Graph([('r', 'a'), ('r', 'b'), ('b', 'c')])
    lineages = get_lineages_from_forest(G, start_clus='r')
    assert [list(lin) for lin in lineages] == [['r', 'b', 'c'], ['r', 'a']]


def test_automatic_root_is_deterministic():
    G = _path_graph(['3', '1', '2'])
    first = get_lineages_from_forest(G)
    second = get_lineages_from_forest(G.copy())
    assert first == second
    # both leaves tie, the first in sorted order wins
    assert select_root(G) == '2'
    assert list(first[0]) == ['2', '1', '3']


def test_automatic_root_prefers_long_paths():
    # root 'x' reaches the other leaves through the long arm
    G = nx.Graph([('x', 'm'), ('m', 'n'), ('n', 'y'), ('n', 'z')])
    assert select_root(G) == 'x'


def test_forced_leaf_is_not_a_root():
    G = _path_graph(['a', 'b', 'c'])
    assert select_root(G, end_clus=['a']) == 'c'


def test_each_tree_contributes_lineages():
    G = nx.Graph([('a', 'b'), ('c', 'd'), ('d', 'e')])
    G.add_node('f')
    lineages = get_lineages_from_forest(G, start_clus=['a', 'c'])
    assert sorted(tuple(lin) for lin in lineages) == [('a', 'b'), ('c', 'd', 'e')]


def test_every_lineage_is_a_forest_path(v_data):
    X, labels = v_data
    traj = get_lineages(X, labels, start_clus='A')
    for lin in traj.lineages:
        assert lin.root == 'A'
        for a, b in zip(lin.clusters[:-1], lin.clusters[1:]):
            assert traj.forest.has_edge(a, b)


def test_membership():
    lineages = [Lineage(['a', 'b'], 'Lineage1'), Lineage(['a', 'c'], 'Lineage2')]
    C = lineage_membership(lineages, ['a', 'b', 'c'])
    np.testing.assert_array_equal(C.values, [[1, 1], [1, 0], [0, 1]])
    assert list(C.columns) == ['Lineage1', 'Lineage2']
