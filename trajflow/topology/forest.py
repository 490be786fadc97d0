"""
forest
======

**Description**

Constrained minimum spanning forest over clusters.

A minimum spanning tree is built over the clusters that are not forced
leaves, together with the artificial background cluster ``OMEGA``. Forced
leaves are then attached to their closest remaining cluster and finally
``OMEGA`` is removed, splitting the tree into a forest. A cluster whose
closest neighbor is ``OMEGA`` ends up isolated.
"""

import networkx as nx
import pandas as pd

from ..checks import ConfigurationError, check_forest, check_constraints
from ..utils import as_labels
from .._logging import _gen_logger
from .geometry import OMEGA

logger = _gen_logger(__name__)


def minimum_spanning_forest(D, end_clus=None):
    """ Minimum spanning forest of clusters with forced leaves.

    Parameters
    ----------
    D : `pandas.DataFrame`, (n_clusters + 1, n_clusters + 1)
        Cluster-pairwise distances including the background cluster ``OMEGA``,
        as returned by `ClusterGeometry.distances`.
    end_clus : {`None`, `str`, `list` [`str`]}
        Clusters forced to be leaves (degree at most 1).

    Returns
    -------
    forest : `networkx.Graph`
        Undirected forest with every real cluster as a node and the cluster
        distance stored as the edge attribute ``'weight'``.
    """
    if OMEGA not in D.index:
        raise ConfigurationError(f"Distance matrix must include the background cluster {OMEGA!r}.")
    clusters = [k for k in D.index if k != OMEGA]
    end_clus = as_labels(end_clus)
    check_constraints(clusters, [], end_clus)

    inner = [k for k in D.index if k not in set(end_clus)]
    G = nx.Graph()
    G.add_nodes_from(inner)
    for i, a in enumerate(inner):
        for b in inner[i+1:]:
            G.add_edge(a, b, weight=float(D.loc[a, b]))
    mst = nx.minimum_spanning_tree(G, weight='weight', algorithm='kruskal')

    for e in end_clus:
        nearest = D.loc[e, inner].astype(float).idxmin()
        if nearest == OMEGA:
            logger.debug(f"Forced leaf {e!r} is closest to the background cluster and is left isolated.")
        mst.add_edge(e, nearest, weight=float(D.loc[e, nearest]))

    mst.remove_node(OMEGA)

    forest = nx.Graph()
    forest.add_nodes_from(sorted(clusters))
    forest.add_edges_from(sorted((tuple(sorted((a, b))) + (d,) for a, b, d in mst.edges(data=True)),
                                 key=lambda x: x[:2]))

    try:
        check_forest(forest)
    except AssertionError as err:
        raise ConfigurationError(f"Unable to construct a spanning forest: {err}") from err

    logger.info(f"Spanning forest has {forest.number_of_edges()} edge(s) and "
                f"{nx.number_connected_components(forest)} tree(s).")
    return forest


def connectivity_matrix(forest, clusters=None):
    """ Symmetric 0/1 adjacency matrix of the forest.

    Parameters
    ----------
    forest : `networkx.Graph`
        The spanning forest.
    clusters : `list` [`str`], optional
        Row and column order, the sorted nodes of ``forest`` if not provided.

    Returns
    -------
    A : `pandas.DataFrame`, (n_clusters, n_clusters)
        Adjacency matrix with integer entries.
    """
    clusters = sorted(forest.nodes()) if clusters is None else list(clusters)
    A = nx.to_numpy_array(forest, nodelist=clusters, weight=None, dtype=int)
    return pd.DataFrame(A.astype(int), index=clusters, columns=clusters)


def tree_components(forest):
    """ Node sets of the trees of the forest in a deterministic order (by smallest label). """
    return sorted((sorted(c) for c in nx.connected_components(forest)), key=lambda c: c[0])
