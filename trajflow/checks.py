import numbers

import networkx as nx
import numpy as np


class ConfigurationError(ValueError):
    """ Raised for invalid or contradictory options and inputs, before any fitting is done. """


class InsufficientDataError(ValueError):
    """ Raised when a cluster or lineage has too few points for the requested computation. """


EXTEND_OPTIONS = ('y', 'n', 'pc1')


def check_symmetric(A):
    """ Raises AssertionError if the matrix is not symmetric. """
    np.testing.assert_allclose(A, A.T, err_msg='Matrix is not symmetric.')


def check_distance_matrix(A):
    """ Raises AssertionError if the distance matrix is not non-negative and symmetric"""
    assert A.ndim == 2, "Distance matrix must be 2-dimensional."
    assert A.shape[0] == A.shape[1], "Distance matrix must have the same number of rows as columns."
    check_symmetric(A)
    assert np.min(A) >= 0., "Distance matrix must be non-negative."


def check_forest(G):
    """ Raises AssertionError if the graph has cycles or self-loops. """
    assert len(list(nx.selfloop_edges(G))) == 0, "No self-loops are allowed in the graph."
    assert nx.is_forest(G), "The graph must be a forest."


def check_embedding(X):
    """ Raises ConfigurationError if the embedding is not a finite 2-dimensional matrix with rows. """
    if X is None:
        raise ConfigurationError("No dimensionality reduction found, an embedding must be provided.")
    if X.ndim != 2:
        raise ConfigurationError(f"Embedding must be 2-dimensional, got {X.ndim} dimension(s).")
    if X.shape[0] == 0 or X.shape[1] == 0:
        raise ConfigurationError("Embedding must have at least one row and one column.")
    if not np.all(np.isfinite(X)):
        raise ConfigurationError("Embedding must only contain finite values.")


def check_num_rows(n_labels, n_obs):
    """ Raises ConfigurationError if the number of cluster labels does not match the embedding. """
    if n_labels != n_obs:
        raise ConfigurationError(f"Cluster labels must have length or number of rows equal to the number of rows in the embedding ({n_labels} != {n_obs}).")


def check_constraints(clusters, start_clus, end_clus):
    """ Raises ConfigurationError if forced roots/leaves are unknown or contradictory.

    Parameters
    ----------
    clusters : `list` [`str`]
        All cluster labels.
    start_clus, end_clus : `list` [`str`]
        Forced root and forced leaf cluster labels.
    """
    unknown = [k for k in list(start_clus) + list(end_clus) if k not in set(clusters)]
    if len(unknown) > 0:
        raise ConfigurationError(f"Unrecognized cluster label(s) {unknown}, must be one of {list(clusters)}.")
    both = sorted(set(start_clus) & set(end_clus))
    if len(both) > 0:
        raise ConfigurationError(f"Cluster(s) {both} cannot be both a starting and an ending cluster.")


def check_curve_params(shrink, extend, thresh, maxit, stretch, approx_points):
    """ Raises ConfigurationError for out-of-range curve fitting options.

    Returns
    -------
    shrink : `float`
        The shrinkage amount as a number in [0, 1].
    """
    if isinstance(shrink, (bool, np.bool_)):
        shrink = float(shrink)
    elif not isinstance(shrink, numbers.Real) or not (0. <= shrink <= 1.):
        raise ConfigurationError("`shrink` must be logical or numeric between 0 and 1.")
    if extend not in EXTEND_OPTIONS:
        raise ConfigurationError(f"Unrecognized value {extend!r} for `extend`, must be one of {list(EXTEND_OPTIONS)}.")
    if not thresh > 0:
        raise ConfigurationError("`thresh` must be positive.")
    if int(maxit) != maxit or maxit < 1:
        raise ConfigurationError("`maxit` must be a positive integer.")
    if stretch < 0:
        raise ConfigurationError("`stretch` must be non-negative.")
    if approx_points is not None and (int(approx_points) != approx_points or approx_points < 2):
        raise ConfigurationError("`approx_points` must be `None` or an integer greater than 1.")
    return float(shrink)
