import copy

import numpy as np
import pandas as pd

from ._logging import logger


class Lineage:
    """ An ordered path of clusters from a root to a leaf of the spanning forest.

    Parameters
    ----------
    clusters : `list` [`str`]
        Cluster labels, from root to leaf.
    name : `str`
        Lineage name, e.g., ``'Lineage1'``.
    start_given : `bool`
        `True` if the root was a user-provided starting cluster.
    end_given : `bool`
        `True` if the leaf was a user-provided ending cluster.
    """
    def __init__(self, clusters, name=None, start_given=False, end_given=False):
        self.clusters = tuple(clusters)
        self.name = name
        self.start_given = bool(start_given)
        self.end_given = bool(end_given)

    def __len__(self):
        return len(self.clusters)

    def __iter__(self):
        return iter(self.clusters)

    def __getitem__(self, i):
        return self.clusters[i]

    def __eq__(self, other):
        if isinstance(other, Lineage):
            return self.clusters == other.clusters and self.name == other.name
        if isinstance(other, (list, tuple)):
            return self.clusters == tuple(other)
        return NotImplemented

    def __hash__(self):
        return hash((self.clusters, self.name))

    def __repr__(self):
        return f"Lineage(name={self.name!r}, clusters={list(self.clusters)})"

    @property
    def root(self):
        return self.clusters[0]

    @property
    def leaf(self):
        return self.clusters[-1]


class Trajectory:
    """ Inferred lineage structure of an embedding and, once fitted, the lineage curves.

    Returned by `trajflow.get_lineages`, `trajflow.get_curves` and `trajflow.slingshot`.

    Parameters
    ----------
    embedding : `numpy.ndarray`, (n_observations, n_dimensions)
        The embedding.
    cluster_weights : `pandas.DataFrame`, (n_observations, n_clusters)
        Cluster weights, with the observation labels as the index.
    cluster_distances : `pandas.DataFrame`, (n_clusters + 1, n_clusters + 1)
        Cluster-pairwise distances including the background cluster.
    forest : `networkx.Graph`
        Spanning forest over the clusters.
    lineages : `list` [`Lineage`]
        The lineages.
    params : `dict`
        Options used to infer the lineages (and curves).

    Attributes
    ----------
    curves : {`None`, `list` [`trajflow.curves.principal.PrincipalCurve`]}
        One curve per lineage, `None` until curves are fitted.
    history : `list` [`float`]
        Total squared projection distance after each iteration of the curve fitting.
    converged : {`None`, `bool`}
        Whether the curve fitting converged before the maximum number of iterations.
    """
    def __init__(self, embedding, cluster_weights, cluster_distances, forest, lineages, params=None):
        self.embedding = embedding
        self.cluster_weights = cluster_weights
        self.cluster_distances = cluster_distances
        self.forest = forest
        self.lineages = list(lineages)
        self.params = {} if params is None else dict(params)

        self.curves = None
        self.history = []
        self.converged = None

    def __repr__(self):
        n_curves = 0 if self.curves is None else len(self.curves)
        return (f"Trajectory(n_observations={self.n_observations}, n_clusters={len(self.clusters)}, "
                f"n_lineages={len(self.lineages)}, n_curves={n_curves})")

    @property
    def index(self):
        """ Observation labels. """
        return self.cluster_weights.index

    @property
    def n_observations(self):
        return self.embedding.shape[0]

    @property
    def clusters(self):
        """ Cluster labels, in sorted order. """
        return list(self.cluster_weights.columns)

    @property
    def clustered(self):
        """ Boolean mask of observations with positive weight in at least one cluster. """
        return self.cluster_weights.values.sum(axis=1) > 0

    @property
    def lineage_names(self):
        return [lin.name for lin in self.lineages]

    @property
    def connectivity(self):
        """ Symmetric 0/1 adjacency matrix of the spanning forest. """
        from .topology.forest import connectivity_matrix
        return connectivity_matrix(self.forest, self.clusters)

    @property
    def membership(self):
        """ Cluster-by-lineage 0/1 matrix, 1 if the cluster is on the lineage. """
        from .topology.lineages import lineage_membership
        return lineage_membership(self.lineages, self.clusters)

    def _check_curves(self):
        if self.curves is None:
            msg = "Curves have not been fitted, call `trajflow.get_curves` first."
            raise ValueError(msg)

    def curve_weights(self):
        """ Observation-by-lineage weights of the fitted curves.

        Returns
        -------
        weights : `pandas.DataFrame`, (n_observations, n_lineages)
            Weights in [0, 1].
        """
        self._check_curves()
        W = np.column_stack([c.weights for c in self.curves]) if len(self.curves) > 0 \
            else np.zeros((self.n_observations, 0))
        return pd.DataFrame(W, index=self.index, columns=self.lineage_names)

    def pseudotime(self, na=True):
        """ Observation-by-lineage pseudotime.

        Parameters
        ----------
        na : `bool`
            If `True`, entries where the observation has zero weight on the lineage
            (including unclustered observations) are `NaN`. Otherwise the arc length of
            the projection is reported for every observation.

        Returns
        -------
        pseudotime : `pandas.DataFrame`, (n_observations, n_lineages)
            The pseudotime.
        """
        self._check_curves()
        if len(self.curves) == 0:
            return pd.DataFrame(np.zeros((self.n_observations, 0)), index=self.index)
        pst = np.column_stack([c.pseudotime for c in self.curves]).astype(float)
        if na:
            W = self.curve_weights().values
            pst[W <= 0] = np.nan
        return pd.DataFrame(pst, index=self.index, columns=self.lineage_names)

    def with_curves(self, curves, history=None, converged=None, params=None):
        """ Return a copy of the trajectory holding ``curves``.

        Parameters
        ----------
        curves : `list` [`trajflow.curves.principal.PrincipalCurve`]
            One curve per lineage, in lineage order.
        history : `list` [`float`], optional
            Convergence history of the curve fitting.
        converged : `bool`, optional
            Whether the fitting converged.
        params : `dict`, optional
            Curve fitting options, added to ``params``.

        Returns
        -------
        trajectory : `Trajectory`
            The new trajectory, ``self`` is left unchanged.
        """
        if len(curves) != len(self.lineages):
            msg = f"Expected one curve per lineage ({len(self.lineages)}), got {len(curves)}."
            raise ValueError(msg)
        new = copy.copy(self)
        new.params = dict(self.params)
        if params is not None:
            new.params.update(params)
        new.curves = list(curves)
        new.history = [] if history is None else list(history)
        new.converged = converged
        logger.debug(f"Attached {len(curves)} curve(s) to the trajectory.")
        return new
