"""
simultaneous
============

**Description**

Simultaneous principal curves, one per lineage.

Curves are initialized as piece-wise linear paths through the centers of the
clusters of each lineage and refined jointly. Every iteration:

1. fits each lineage curve with one principal curve step,
2. reweights observations shared between lineages by how close they are to
   each curve relative to all other projection distances,
3. reassigns observations that are close to (or far from) a lineage,
4. shrinks branching lineages toward their average before the branching point,
5. checks the relative change of the total squared projection distance.
"""

from multiprocessing.pool import ThreadPool
from typing import List, NamedTuple

import numpy as np
from sklearn.decomposition import PCA
from tqdm import tqdm

from ..checks import InsufficientDataError, check_curve_params
from ..utils import interpolate_columns, weighted_quantile
from .._logging import _gen_logger, set_verbose, progress_disabled
from ..topology.geometry import cluster_centers
from ..topology.lineages import lineage_membership
from .principal import PrincipalCurve, project_to_path
from .shrinkage import check_shrink_method, shrinkage_curve
from .smoothers import get_smoother, smoother_min_points

logger = _gen_logger(__name__)

# stretch used to locate projections beyond the endpoint centers
_EXTEND_STRETCH = 1e4


class _FitState(NamedTuple):
    curves: List[PrincipalCurve]
    weights: np.ndarray
    distances: np.ndarray


def reweight_shared(W, D):
    """ Reweight observations by the global quantile of their projection distances.

    Every distance ``D[i, l]`` with ``W[i, l] > 0`` is assigned its quantile ``q`` among
    all such distances, where each observation contributes a total probability
    proportional to its number of lineages through its row-normalized weights. Tied
    distances get the same quantile. The new weight is ``1 - q**2`` divided by its
    maximum over the observation's lineages.

    Parameters
    ----------
    W : `numpy.ndarray`, (n, L)
        Current weights.
    D : `numpy.ndarray`, (n, L)
        Squared projection distances.

    Returns
    -------
    W : `numpy.ndarray`, (n, L)
        New weights in [0, 1]. Zero weights stay zero and an observation on a single
        lineage keeps weight 1.
    """
    pos = W > 0
    if not np.any(pos):
        return W.copy()
    rs = W.sum(axis=1, keepdims=True)
    probs = np.divide(W, rs, out=np.zeros_like(W, dtype=float), where=rs > 0)

    d, p = D[pos], probs[pos]
    order = np.argsort(d, kind='mergesort')
    ds = d[order]
    cs = np.cumsum(p[order]) / p.sum()
    # ties share the cumulative probability of the last tied entry
    z_sorted = cs[np.searchsorted(ds, ds, side='right') - 1]
    z = np.empty_like(z_sorted)
    z[order] = z_sorted

    Zp = np.zeros_like(W, dtype=float)
    Zp[pos] = 1. - z ** 2
    rmax = Zp.max(axis=1, keepdims=True)
    with np.errstate(divide='ignore', invalid='ignore'):
        new = np.where(rmax > 0, Zp / rmax, 1.)
    new = np.clip(new, 0., 1.)
    new[~pos] = 0.
    return new


def reassign_points(W, D, clustered=None):
    """ Add observations close to a lineage and remove shared observations far from it.

    For each lineage in turn, observations whose distance is below the weighted median
    distance of the lineage's members get weight 1. Observations that are shared with
    another lineage, have a distance above the weighted 90th percentile of the members
    and a weight below 0.1 are removed from the lineage.

    Parameters
    ----------
    W : `numpy.ndarray`, (n, L)
        Current weights.
    D : `numpy.ndarray`, (n, L)
        Squared projection distances.
    clustered : `numpy.ndarray`, (n, ), optional
        Boolean mask of observations that may be added to a lineage.

    Returns
    -------
    W : `numpy.ndarray`, (n, L)
        The new weights.
    """
    W = W.copy()
    clustered = np.ones(W.shape[0], dtype=bool) if clustered is None else np.asarray(clustered, dtype=bool)
    for l in range(W.shape[1]):
        mem = W[:, l] > 0
        if not np.any(mem):
            continue
        med = weighted_quantile(D[mem, l], W[mem, l], 0.5)
        q90 = weighted_quantile(D[mem, l], W[mem, l], 0.9)

        W[clustered & (D[:, l] < med), l] = 1.

        shared = (W > 0).sum(axis=1) > 1
        remove = shared & (D[:, l] > q90) & (W[:, l] > 0) & (W[:, l] < 0.1)
        W[remove, l] = 0.
    return W


def branch_groups(C):
    """ Hierarchy of lineages that share clusters.

    Groups are the distinct sets of lineages sharing a cluster, from the fewest to the
    most lineages. A lineage already part of a smaller group is represented by that
    group's average in the larger group.

    Parameters
    ----------
    C : `numpy.ndarray`, (n_clusters, n_lineages)
        Cluster-by-lineage membership.

    Returns
    -------
    groups : `list` [`list` [`tuple`]]
        Members of each group, either ``('lineage', l)`` or ``('average', g)`` where ``g``
        indexes an earlier group.
    """
    C = np.asarray(C) > 0
    rows = C[C.sum(axis=1) > 1]
    sets = []
    for r in rows:
        s = tuple(int(i) for i in np.flatnonzero(r))
        if s not in sets:
            sets.append(s)
    sets = sorted(sets, key=len)

    owner = {l: ('lineage', l) for l in range(C.shape[1])}
    groups = []
    for s in sets:
        members = []
        for l in s:
            if owner[l] not in members:
                members.append(owner[l])
        if len(members) < 2:
            continue
        g = len(groups)
        groups.append(members)
        for l in s:
            owner[l] = ('average', g)
    return groups


def average_curves(curves, X, stretch=2., approx_points=None):
    """ Average of curves over their common pseudotime range.

    Parameters
    ----------
    curves : `list` [`PrincipalCurve`]
        The curves.
    X : `numpy.ndarray`, (n, p)
        Observations.
    stretch : `float`
        Extrapolation factor used when projecting onto the average.
    approx_points : {`None`, `int`}
        Number of points of the approximated path.

    Returns
    -------
    curve : `PrincipalCurve`
        Average curve, observation weights are the maximum over the curves.
    """
    m = int(approx_points) if approx_points else max(c.path.shape[0] for c in curves)
    grid = np.linspace(0., min(c.length for c in curves), m)
    avg = np.mean([interpolate_columns(c.path_pseudotime, c.path, grid) for c in curves], axis=0)
    weights = np.max(np.column_stack([c.weights for c in curves]), axis=1)
    return PrincipalCurve.project(X, avg, stretch=stretch, weights=weights, approx_points=approx_points)


def shrink_to_average(curve, avg, pct, X, shrink=1., stretch=2., approx_points=None):
    """ Move ``curve`` toward ``avg`` by ``shrink * pct`` at each path point and re-project. """
    avg_at = interpolate_columns(avg.path_pseudotime, avg.path, curve.path_pseudotime)
    lam = shrink * np.asarray(pct, dtype=float)[:, None]
    path = lam * avg_at + (1. - lam) * curve.path
    return PrincipalCurve.project(X, path, stretch=stretch, weights=curve.weights, approx_points=approx_points)


class SimultaneousPrincipalCurves:
    """ Jointly fitted principal curves of the lineages.

    Parameters
    ----------
    X : `numpy.ndarray`, (n_observations, n_dimensions)
        The embedding.
    cluster_weights : `pandas.DataFrame`, (n_observations, n_clusters)
        Cluster weights.
    lineages : `list` [`trajflow.Lineage`]
        The lineages.
    shrink, extend, reweight, reassign, thresh, maxit, stretch, approx_points, smoother, shrink_method, allow_breaks, n_jobs :
        See `trajflow.get_curves`.
    verbose : {`None`, `str`}
        Logging verbosity.
    **smoother_kwargs : `dict`
        Options of the built-in smoother.

    Attributes
    ----------
    curves : `list` [`PrincipalCurve`]
        Fitted curves, in lineage order (after `fit`).
    weights : `numpy.ndarray`, (n_observations, n_lineages)
        Final observation weights.
    distances : `numpy.ndarray`, (n_observations, n_lineages)
        Final squared projection distances.
    history : `list` [`float`]
        Total squared distance of the initial curves and after each iteration.
    n_iter : `int`
        Number of iterations performed.
    converged : `bool`
        Whether the relative change fell below ``thresh`` before ``maxit``.
    """
    def __init__(self, X, cluster_weights, lineages, shrink=True, extend='y', reweight=True, reassign=True,
                 thresh=0.001, maxit=15, stretch=2, approx_points=None, smoother='smooth.spline',
                 shrink_method='cosine', allow_breaks=True, n_jobs=1, verbose=None, **smoother_kwargs):
        if verbose is not None:
            set_verbose(logger, verbose)

        approx_points = approx_points if approx_points else None
        self.shrink = check_curve_params(shrink, extend, thresh, maxit, stretch, approx_points)
        check_shrink_method(shrink_method)
        self.extend = extend
        self.reweight = reweight
        self.reassign = reassign
        self.thresh = float(thresh)
        self.maxit = int(maxit)
        self.stretch = float(stretch)
        self.approx_points = approx_points
        self.smoother = get_smoother(smoother, **smoother_kwargs)
        self.shrink_method = shrink_method
        self.allow_breaks = allow_breaks
        self.n_jobs = max(1, int(n_jobs))

        self.X = np.asarray(X, dtype=float)
        self.cluster_weights = cluster_weights
        self.lineages = list(lineages)
        self.membership = lineage_membership(self.lineages, cluster_weights.columns)
        self.centers = cluster_centers(self.X, cluster_weights)
        self.clustered = cluster_weights.values.sum(axis=1) > 0

        self.curves = None
        self.weights = None
        self.distances = None
        self.history = []
        self.n_iter = 0
        self.converged = False
        self._released = set()

    @property
    def n_lineages(self):
        return len(self.lineages)

    def initial_weights(self):
        """ Sum of the cluster weights over the clusters of each lineage. """
        W = self.cluster_weights.values @ self.membership.values
        W = np.clip(W, 0., 1.)
        min_points = smoother_min_points(self.smoother)
        for l, lin in enumerate(self.lineages):
            n_pos = int((W[:, l] > 0).sum())
            if n_pos < min_points:
                raise InsufficientDataError(f"{lin.name} has {n_pos} observation(s) with positive weight, at least {min_points} are required by the smoother.")
        return W

    def _cluster_points(self, cluster):
        return self.X[self.cluster_weights[cluster].values > 0]

    def _extend_y(self, lin, path):
        proj0, arc0, _ = project_to_path(self._cluster_points(lin.root), path, stretch=_EXTEND_STRETCH)
        proj1, arc1, _ = project_to_path(self._cluster_points(lin.leaf), path, stretch=_EXTEND_STRETCH)

        seg_lengths = np.sqrt((np.diff(path, axis=0) ** 2).sum(axis=1))
        start_arc = _EXTEND_STRETCH * seg_lengths[0]
        new_path = path
        if arc0.min() < start_arc:
            new_path = np.vstack([proj0[[np.argmin(arc0)]], new_path])
        if arc1.max() > start_arc + seg_lengths.sum():
            new_path = np.vstack([new_path, proj1[[np.argmax(arc1)]]])
        return new_path

    def _extend_pc1(self, lin, path):
        new_path = path
        X0 = self._cluster_points(lin.root)
        if X0.shape[0] >= 2:
            pca = PCA(n_components=1).fit(X0)
            v = pca.components_[0] * pca.explained_variance_[0]
            if v @ (path[1] - path[0]) > 0:
                v = -v
            new_path = np.vstack([path[0] + v, new_path])
        X1 = self._cluster_points(lin.leaf)
        if X1.shape[0] >= 2:
            pca = PCA(n_components=1).fit(X1)
            v = pca.components_[0] * pca.explained_variance_[0]
            if v @ (path[-1] - path[-2]) < 0:
                v = -v
            new_path = np.vstack([new_path, path[-1] + v])
        return new_path

    def initial_curves(self, W):
        """ Piece-wise linear curves through the cluster centers of each lineage. """
        curves = []
        for l, lin in enumerate(self.lineages):
            path = self.centers.loc[list(lin.clusters)].values
            if path.shape[0] > 1 and self.extend == 'y':
                path = self._extend_y(lin, path)
            elif path.shape[0] > 1 and self.extend == 'pc1':
                path = self._extend_pc1(lin, path)
            curves.append(PrincipalCurve.project(self.X, path, stretch=0., weights=W[:, l],
                                                 approx_points=self.approx_points))
        return curves

    def _fit_lineage(self, l, curve):
        try:
            return curve.smooth(self.X, self.smoother, stretch=self.stretch, approx_points=self.approx_points)
        except InsufficientDataError as err:
            raise InsufficientDataError(f"Unable to fit the curve of {self.lineages[l].name}: {err}") from err

    def _fit_all(self, curves, W):
        args = [(l, c.reweighted(W[:, l])) for l, c in enumerate(curves)]
        if self.n_jobs > 1 and len(args) > 1:
            with ThreadPool(processes=min(self.n_jobs, len(args))) as pool:
                return pool.starmap(self._fit_lineage, args)
        return [self._fit_lineage(l, c) for l, c in args]

    def _shrink(self, curves, groups):
        curves = list(curves)
        averages = []
        for members in groups:
            member_curves = [curves[i] if kind == 'lineage' else averages[i] for kind, i in members]
            averages.append(average_curves(member_curves, self.X, stretch=self.stretch,
                                           approx_points=self.approx_points))

        pcts = {}
        for g, members in enumerate(groups):
            if g in self._released:
                continue
            member_curves = [curves[i] if kind == 'lineage' else averages[i] for kind, i in members]
            common = np.all(np.column_stack([c.weights > 0 for c in member_curves]), axis=1)
            pct = [shrinkage_curve(c.pseudotime, common, c.path_pseudotime, method=self.shrink_method,
                                   weights=c.weights) for c in member_curves]
            if any(not np.any(p > 0) for p in pct):
                if self.allow_breaks:
                    names = [self.lineages[i].name if kind == 'lineage' else f"average {i + 1}" for kind, i in members]
                    logger.msg(f"Curves for {names} appear to be going in opposite directions. No longer forcing them to share an initial point. To manually override this, set allow_breaks = False.")
                    self._released.add(g)
                # not shrunk this iteration, retried on the next one unless released
                continue
            pcts[g] = pct

        # root-most group first, so shrunk averages propagate to the groups they contain
        for g in reversed(range(len(groups))):
            if g not in pcts:
                continue
            avg = averages[g]
            for (kind, i), pct in zip(groups[g], pcts[g]):
                target = curves[i] if kind == 'lineage' else averages[i]
                shrunk = shrink_to_average(target, avg, pct, self.X, shrink=self.shrink, stretch=self.stretch,
                                           approx_points=self.approx_points)
                if kind == 'lineage':
                    curves[i] = shrunk
                else:
                    averages[i] = shrunk
        return curves

    def _step(self, state, groups):
        curves = self._fit_all(state.curves, state.weights)
        D = np.column_stack([c.distances for c in curves])
        W = state.weights
        if self.n_lineages > 1 and self.reweight:
            W = reweight_shared(W, D)
        if self.n_lineages > 1 and self.reassign:
            W = reassign_points(W, D, clustered=self.clustered)
        curves = [c.reweighted(W[:, l]) for l, c in enumerate(curves)]
        if self.n_lineages > 1 and self.shrink > 0 and len(groups) > 0:
            curves = self._shrink(curves, groups)
            D = np.column_stack([c.distances for c in curves])
        return _FitState(curves, W, D)

    @staticmethod
    def _total_distance(state):
        return float(state.distances[state.weights > 0].sum())

    def fit(self):
        """ Fit the curves.

        Returns
        -------
        self : `SimultaneousPrincipalCurves`
            The fitted object.
        """
        W = self.initial_weights()
        curves = self.initial_curves(W)
        state = _FitState(curves, W, np.column_stack([c.distances for c in curves]))
        groups = branch_groups(self.membership.values)
        self._released = set()

        history = [self._total_distance(state)]
        converged = False
        n_iter = 0
        for n_iter in tqdm(range(1, self.maxit + 1), desc="Fitting curves", disable=progress_disabled(logger)):
            state = self._step(state, groups)
            history.append(self._total_distance(state))
            logger.trace(f"Iteration {n_iter}: total squared distance {history[-1]:.6g}.")
            old, new = history[-2], history[-1]
            if old == 0 or abs(old - new) / old <= self.thresh:
                converged = True
                break

        if not converged:
            logger.msg(f"Curves did not converge in {self.maxit} iterations.")
        else:
            logger.info(f"Curves converged after {n_iter} iteration(s).")

        self.curves = state.curves
        self.weights = state.weights
        self.distances = state.distances
        self.history = history
        self.n_iter = n_iter
        self.converged = converged
        return self
