"""
geometry
========

**Description**

Cluster-level summaries of an embedding: weighted centers, weighted
covariances and the symmetric cluster-pairwise distance matrix used to
build the spanning forest.

Hard cluster labels and soft cluster weights are handled as a single
representation, an observation-by-cluster weight matrix where hard labels
become one-hot rows. The reserved label ``-1`` marks unclustered
observations, which get an all-zero row.

The distance matrix is augmented with an artificial background cluster,
``OMEGA``, that is ``omega / 2`` away from every real cluster.
"""

import itertools

import numpy as np
import pandas as pd

from ..checks import ConfigurationError, InsufficientDataError, \
    check_embedding, check_num_rows, check_distance_matrix
from ..utils import as_labels
from .._logging import _gen_logger

logger = _gen_logger(__name__)

OMEGA = 'OMEGA'
UNCLUSTERED = '-1'


def normalize_embedding(data):
    """ Return the embedding as a float matrix and the observation labels.

    Parameters
    ----------
    data : {`numpy.ndarray`, `pandas.DataFrame`}
        The embedding of size (n_observations, n_dimensions).

    Returns
    -------
    X : `numpy.ndarray`, (n_observations, n_dimensions)
        The embedding.
    index : `pandas.Index`
        Observation labels, the index of ``data`` if it is a `pandas.DataFrame`.
    """
    if data is None:
        check_embedding(None)
    if isinstance(data, pd.DataFrame):
        index = data.index.copy()
        X = data.values.astype(float)
    else:
        X = np.asarray(data, dtype=float)
        index = pd.RangeIndex(X.shape[0]) if X.ndim > 0 else None
    check_embedding(X)
    return X, index


def normalize_cluster_labels(cluster_labels, n_observations, index=None):
    """ Unify hard and soft cluster assignments as an observation-by-cluster weight matrix.

    Parameters
    ----------
    cluster_labels : {`None`, `list`, `numpy.ndarray`, `pandas.Series`, `pandas.DataFrame`}
        Either a vector of length ``n_observations`` with a cluster label for each observation
        (``-1`` for unclustered) or a matrix of soft cluster weights of size
        (n_observations, n_clusters). Columns of a `pandas.DataFrame` give the cluster labels,
        a column labeled ``-1`` is treated as the unclustered weight and dropped.
        If `None`, all observations are placed in a single cluster ``'1'``.
    n_observations : `int`
        Number of observations in the embedding.
    index : `pandas.Index`, optional
        Observation labels.

    Returns
    -------
    W : `pandas.DataFrame`, (n_observations, n_clusters)
        Cluster weights in [0, 1], columns are the cluster labels in sorted order.
    """
    if cluster_labels is None:
        logger.msg("No cluster labels provided. Continuing with one cluster.")
        cluster_labels = np.repeat('1', n_observations)

    if isinstance(cluster_labels, pd.DataFrame) or (isinstance(cluster_labels, np.ndarray) and cluster_labels.ndim == 2):
        W = pd.DataFrame(cluster_labels).copy()
        check_num_rows(W.shape[0], n_observations)
        W.columns = as_labels(W.columns)
        if W.columns.duplicated().any():
            raise ConfigurationError("Cluster labels (columns of the weight matrix) must be unique.")
        if UNCLUSTERED in W.columns:
            W = W.drop(columns=UNCLUSTERED)
        W = W.astype(float)
        if not np.all(np.isfinite(W.values)) or (W.values < 0).any():
            raise ConfigurationError("Soft cluster weights must be finite and non-negative.")
        W = W[sorted(W.columns)]
    else:
        labels = cluster_labels.values if isinstance(cluster_labels, pd.Series) else np.asarray(cluster_labels)
        if labels.ndim != 1:
            raise ConfigurationError("Cluster labels must be a vector or a 2-dimensional weight matrix.")
        check_num_rows(labels.shape[0], n_observations)
        labels = np.asarray(as_labels(labels))
        clusters = sorted(set(labels) - {UNCLUSTERED})
        W = pd.DataFrame((labels[:, None] == np.asarray(clusters)[None, :]).astype(float),
                         columns=clusters)

    W.index = index if index is not None else pd.RangeIndex(n_observations)

    empty = [k for k in W.columns if W[k].sum() <= 0]
    if len(empty) > 0:
        logger.warning(f"Dropping cluster(s) {empty} without any assigned observations.")
        W = W.drop(columns=empty)
    if W.shape[1] == 0:
        raise ConfigurationError("At least one cluster with assigned observations is required.")
    return W


def weighted_covariance(X, w=None, diagonal=False):
    """ Unbiased weighted covariance matrix.

    Computed as :math:`\\sum_i w_i (x_i - c)(x_i - c)^T / (1 - \\sum_i w_i^2)` with weights
    normalized to sum to 1, where :math:`c` is the weighted mean.

    Parameters
    ----------
    X : `numpy.ndarray`, (n, p)
        Coordinates.
    w : `numpy.ndarray`, (n, ), optional
        Non-negative weights, uniform if `None`.
    diagonal : `bool`
        If `True`, only keep the variances.

    Returns
    -------
    S : `numpy.ndarray`, (p, p)
        The covariance matrix, all zeros if fewer than two points have positive weight.
    """
    X = np.asarray(X, dtype=float)
    w = np.ones(X.shape[0]) if w is None else np.asarray(w, dtype=float)
    keep = w > 0
    p = X.shape[1]
    if keep.sum() < 2:
        return np.zeros((p, p))
    X, w = X[keep], w[keep] / w[keep].sum()
    Xc = X - w @ X
    S = (Xc * w[:, None]).T @ Xc / (1. - np.sum(w ** 2))
    if diagonal:
        S = np.diag(np.diag(S))
    return S


def _pooled_mahalanobis(X1, X2, w1, w2, diagonal):
    w1 = np.ones(X1.shape[0]) if w1 is None else np.asarray(w1, dtype=float)
    w2 = np.ones(X2.shape[0]) if w2 is None else np.asarray(w2, dtype=float)
    diff = np.average(X1, axis=0, weights=w1) - np.average(X2, axis=0, weights=w2)
    S = weighted_covariance(X1, w1, diagonal=diagonal) + weighted_covariance(X2, w2, diagonal=diagonal)
    try:
        d = float(diff @ np.linalg.solve(S, diff))
    except np.linalg.LinAlgError as e:
        raise InsufficientDataError("The pooled covariance matrix is singular.") from e
    if not np.isfinite(d):
        raise InsufficientDataError("The pooled covariance matrix is singular.")
    return d


def mahalanobis_full(X1, X2, w1=None, w2=None):
    """ Squared distance between weighted cluster centers using the pooled covariance ``S1 + S2``.

    Parameters
    ----------
    X1, X2 : `numpy.ndarray`, (n1, p) and (n2, p)
        Coordinates of the points in each cluster.
    w1, w2 : `numpy.ndarray`, optional
        Weights of the points in each cluster.

    Returns
    -------
    d : `float`
        The distance.
    """
    return _pooled_mahalanobis(X1, X2, w1, w2, diagonal=False)


def mahalanobis_diag(X1, X2, w1=None, w2=None):
    """ Same as `mahalanobis_full`, but only the diagonal of the pooled covariance is used. """
    return _pooled_mahalanobis(X1, X2, w1, w2, diagonal=True)


class ClusterGeometry:
    """ Centers, dispersions and pairwise distances of clusters in an embedding.

    Parameters
    ----------
    X : `numpy.ndarray`, (n_observations, n_dimensions)
        The embedding.
    W : `pandas.DataFrame`, (n_observations, n_clusters)
        Cluster weights, as returned by `normalize_cluster_labels`.
    """
    def __init__(self, X, W):
        X = np.asarray(X, dtype=float)
        check_embedding(X)
        check_num_rows(W.shape[0], X.shape[0])
        if W.shape[1] < 1:
            raise ConfigurationError("At least one cluster is required.")
        self.X = X
        self.W = W
        self._centers = None


    @property
    def clusters(self):
        """ Cluster labels. """
        return list(self.W.columns)


    @property
    def sizes(self):
        """ Number of observations with positive weight in each cluster. """
        return pd.Series((self.W.values > 0).sum(axis=0), index=self.clusters)


    @property
    def centers(self):
        """ Weighted cluster centers, indexed by cluster label. """
        if self._centers is None:
            Wv = self.W.values
            self._centers = pd.DataFrame((Wv.T @ self.X) / Wv.sum(axis=0)[:, None], index=self.clusters)
        return self._centers


    def covariance(self, cluster, diagonal=False):
        """ Weighted covariance of the observations in ``cluster``. """
        return weighted_covariance(self.X, self.W[cluster].values, diagonal=diagonal)


    def distances(self, dist_fun=None, omega=None):
        """ Symmetric cluster-pairwise distance matrix, augmented with the background cluster.

        Parameters
        ----------
        dist_fun : callable, optional
            Distance with signature ``dist_fun(X1, X2, w1, w2) -> float``. If `None`, each
            pair uses `mahalanobis_full` when the smaller cluster has at least as many points
            as dimensions and `mahalanobis_diag` otherwise.
        omega : {`None`, `float`}
            Every cluster is ``omega / 2`` away from the background cluster, ``inf`` if `None`.

        Returns
        -------
        D : `pandas.DataFrame`, (n_clusters + 1, n_clusters + 1)
            The distances, the last row and column correspond to the background cluster ``OMEGA``.
        """
        omega = np.inf if omega is None else float(omega)
        if not omega > 0:
            raise ConfigurationError("`omega` must be positive.")

        clusters = self.clusters
        K = len(clusters)
        Wv = self.W.values
        sizes = self.sizes.values
        p = self.X.shape[1]
        if dist_fun is None and K > 1 and sizes.min() < p:
            logger.msg("Using diagonal covariance matrix for clusters with fewer points than dimensions.")

        D = np.zeros((K + 1, K + 1))
        for i, j in itertools.combinations(range(K), 2):
            m_i, m_j = Wv[:, i] > 0, Wv[:, j] > 0
            fun = dist_fun
            if fun is None:
                fun = mahalanobis_full if min(sizes[i], sizes[j]) >= p else mahalanobis_diag
            try:
                d = fun(self.X[m_i], self.X[m_j], Wv[m_i, i], Wv[m_j, j])
            except InsufficientDataError as e:
                raise InsufficientDataError(f"Unable to compute the distance between clusters {clusters[i]!r} and {clusters[j]!r}: {e}") from e
            D[i, j] = D[j, i] = d

        D[K, :K] = D[:K, K] = omega / 2
        try:
            check_distance_matrix(D)
        except AssertionError as e:
            raise ConfigurationError(f"Invalid cluster distances: {e}") from e
        logger.debug(f"Computed distances between {K} clusters.")
        return pd.DataFrame(D, index=clusters + [OMEGA], columns=clusters + [OMEGA])


def one_hot_weights(labels, index=None):
    """ Hard cluster labels as an observation-by-cluster one-hot weight matrix. """
    labels = pd.Series(labels).values
    return normalize_cluster_labels(labels, len(labels), index=index)


def cluster_centers(X, W):
    """ Weighted center of each cluster as a `pandas.DataFrame` indexed by cluster label. """
    return ClusterGeometry(X, W).centers


def cluster_distances(X, W, dist_fun=None, omega=None):
    """ Cluster-pairwise distances, see `ClusterGeometry.distances`. """
    return ClusterGeometry(X, W).distances(dist_fun=dist_fun, omega=omega)
