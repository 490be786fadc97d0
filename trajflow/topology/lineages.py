"""
lineages
========

**Description**

Lineages are the root-to-leaf paths of the trees in the spanning forest.

Trees that contain a starting cluster provide one lineage per path from each
starting cluster to every leaf that is not itself a starting cluster. For the
remaining trees the root is chosen among the leaves as the one with the
largest average number of clusters on its paths to the other leaves, which
favors roots with long, parsimonious lineages.
"""

import networkx as nx
import numpy as np
import pandas as pd

from ..checks import check_constraints, check_forest
from ..classes import Lineage
from ..utils import as_labels
from .._logging import _gen_logger
from .forest import tree_components

logger = _gen_logger(__name__)


def _leaves(tree):
    return sorted(n for n in tree.nodes() if tree.degree(n) == 1)


def _paths_from(tree, root, leaves):
    return [nx.shortest_path(tree, source=root, target=leaf) for leaf in leaves if leaf != root]


def select_root(tree, end_clus=None):
    """ Choose the root of a tree without a starting cluster.

    Every leaf that is not a forced ending cluster is a candidate, in sorted
    order (all leaves are candidates if every leaf is forced). The candidate
    whose paths to the other leaves contain the most clusters on average is
    selected, the first candidate wins ties.

    Parameters
    ----------
    tree : `networkx.Graph`
        A connected tree with at least two nodes.
    end_clus : `list` [`str`], optional
        Forced ending clusters.

    Returns
    -------
    root : `str`
        The selected root.
    """
    leaves = _leaves(tree)
    end_clus = set(as_labels(end_clus))
    candidates = [leaf for leaf in leaves if leaf not in end_clus]
    if len(candidates) == 0:
        candidates = leaves

    root, best = None, -np.inf
    for candidate in candidates:
        paths = _paths_from(tree, candidate, leaves)
        score = np.mean([len(p) for p in paths])
        if score > best:
            root, best = candidate, score
    return root


def get_lineages_from_forest(forest, start_clus=None, end_clus=None):
    """ Extract lineages from the spanning forest.

    Parameters
    ----------
    forest : `networkx.Graph`
        The spanning forest over the clusters.
    start_clus : {`None`, `str`, `list` [`str`]}
        Starting clusters.
    end_clus : {`None`, `str`, `list` [`str`]}
        Forced ending clusters.

    Returns
    -------
    lineages : `list` [`Lineage`]
        The lineages, sorted by decreasing number of clusters and named
        ``'Lineage1'``, ``'Lineage2'``, ...
    """
    check_forest(forest)
    start_clus = as_labels(start_clus)
    end_clus = as_labels(end_clus)
    check_constraints(list(forest.nodes()), start_clus, end_clus)

    if len(start_clus) == 0:
        logger.msg("No root specified, selecting automatically.")

    paths = []
    for component in tree_components(forest):
        starts = [k for k in component if k in set(start_clus)]
        if len(component) == 1:
            if len(starts) > 0:
                logger.warning(f"Starting cluster {starts[0]!r} is not connected to any other cluster and has no lineage.")
            continue

        tree = forest.subgraph(component)
        leaves = _leaves(tree)
        if len(starts) > 0:
            for root in starts:
                paths.extend(_paths_from(tree, root, [leaf for leaf in leaves if leaf not in set(starts)]))
        else:
            root = select_root(tree, end_clus)
            logger.debug(f"Selected cluster {root!r} as the root of the tree containing {component}.")
            paths.extend(_paths_from(tree, root, leaves))

    # stable sort keeps the component and leaf order among equal lengths
    paths = sorted(paths, key=len, reverse=True)
    lineages = [Lineage(p, name=f"Lineage{i+1}", start_given=p[0] in set(start_clus),
                        end_given=p[-1] in set(end_clus)) for i, p in enumerate(paths)]
    logger.info(f"Found {len(lineages)} lineage(s).")
    return lineages


def lineage_membership(lineages, clusters):
    """ Cluster-by-lineage 0/1 matrix.

    Parameters
    ----------
    lineages : `list` [`Lineage`]
        The lineages.
    clusters : `list` [`str`]
        All cluster labels, the row order.

    Returns
    -------
    C : `pandas.DataFrame`, (n_clusters, n_lineages)
        ``C.loc[k, l] = 1`` if cluster ``k`` is on lineage ``l``.
    """
    C = pd.DataFrame(0, index=list(clusters), columns=[lin.name for lin in lineages], dtype=int)
    for lin in lineages:
        C.loc[list(lin.clusters), lin.name] = 1
    return C
