"""
principal
=========

**Description**

Principal curves: smooth one-dimensional curves passing through the middle of
a cloud of points [Hastie89]_.

A curve is represented by an ordered path of points. Every observation is
projected orthogonally onto the closest segment of the path; the arc length of
the projection along the curve is its pseudotime and the squared distance to
the projection its residual. One smoothing step fits every coordinate against
pseudotime with a scatterplot smoother and re-projects the observations onto
the smoothed path.

.. [Hastie89] Hastie, T. and Stuetzle, W. (1989). "Principal Curves."
   *Journal of the American Statistical Association*, 84(406), 502-516.
"""

import copy

import numpy as np
from sklearn.decomposition import PCA
from tqdm import tqdm

from ..checks import ConfigurationError, InsufficientDataError
from ..utils import interpolate_columns
from .._logging import _gen_logger, progress_disabled
from .smoothers import get_smoother, smoother_min_points

logger = _gen_logger(__name__)


def _stretch_path(s, stretch):
    s = np.asarray(s, dtype=float)
    out = s.copy()
    if stretch > 0 and s.shape[0] > 1:
        out[0] = s[0] + stretch * (s[0] - s[1])
        out[-1] = s[-1] + stretch * (s[-1] - s[-2])
    return out


def project_to_path(X, s, stretch=2.):
    """ Project observations onto a piece-wise linear path.

    Parameters
    ----------
    X : `numpy.ndarray`, (n, p)
        Observations.
    s : `numpy.ndarray`, (m, p)
        Ordered path points.
    stretch : `float`
        The first and last segments are extended by ``stretch`` times their length.

    Returns
    -------
    projections : `numpy.ndarray`, (n, p)
        Closest point on the path of each observation.
    arc : `numpy.ndarray`, (n, )
        Arc length from the (stretched) start of the path to each projection.
    distances : `numpy.ndarray`, (n, )
        Squared distance from each observation to its projection.
    """
    X = np.asarray(X, dtype=float)
    s = _stretch_path(s, stretch)
    n, p = X.shape
    if s.shape[0] == 1:
        projections = np.repeat(s, n, axis=0)
        return projections, np.zeros(n), ((X - projections) ** 2).sum(axis=1)

    a, d = s[:-1], np.diff(s, axis=0)
    len2 = (d ** 2).sum(axis=1)
    seg_start = np.r_[0., np.cumsum(np.sqrt(len2))[:-1]]
    safe_len2 = np.where(len2 > 0, len2, 1.)

    projections = np.empty_like(X)
    arc = np.empty(n)
    distances = np.empty(n)
    # bound the size of the (chunk, segments, dimensions) intermediates
    chunk = max(1, int(2e6 // (a.shape[0] * p)))
    for i in range(0, n, chunk):
        Xc = X[i:i+chunk]
        diff = Xc[:, None, :] - a[None, :, :]
        tt = np.clip((diff * d[None, :, :]).sum(axis=2) / safe_len2[None, :], 0., 1.)
        tt[:, len2 == 0] = 0.
        proj = a[None, :, :] + tt[:, :, None] * d[None, :, :]
        dist = ((Xc[:, None, :] - proj) ** 2).sum(axis=2)
        j = np.argmin(dist, axis=1)
        rows = np.arange(Xc.shape[0])
        projections[i:i+chunk] = proj[rows, j]
        distances[i:i+chunk] = dist[rows, j]
        arc[i:i+chunk] = seg_start[j] + tt[rows, j] * np.sqrt(len2[j])
    return projections, arc, distances


class PrincipalCurve:
    """ A curve fitted to a set of observations.

    Use `PrincipalCurve.project` to construct a curve from a path.

    Attributes
    ----------
    path : `numpy.ndarray`, (m, p)
        Ordered points of the curve.
    path_pseudotime : `numpy.ndarray`, (m, )
        Arc length of each path point.
    projections : `numpy.ndarray`, (n, p)
        Projection of each observation onto the curve.
    pseudotime : `numpy.ndarray`, (n, )
        Arc length of each projection, starting at 0.
    order : `numpy.ndarray`, (n, )
        Observation indices sorted by pseudotime.
    distances : `numpy.ndarray`, (n, )
        Squared distance from each observation to its projection.
    weights : `numpy.ndarray`, (n, )
        Weight of each observation on the curve.
    """
    def __init__(self, path, path_pseudotime, projections, pseudotime, order, distances, weights):
        self.path = path
        self.path_pseudotime = path_pseudotime
        self.projections = projections
        self.pseudotime = pseudotime
        self.order = order
        self.distances = distances
        self.weights = weights

        # set by `principal_curve`
        self.history = None
        self.n_iter = None
        self.converged = None

    def __repr__(self):
        return (f"PrincipalCurve(n_observations={len(self.pseudotime)}, n_path_points={self.path.shape[0]}, "
                f"length={self.length:.4g})")

    @property
    def length(self):
        return float(self.path_pseudotime[-1]) if len(self.path_pseudotime) > 0 else 0.

    @property
    def total_distance(self):
        """ Sum of squared distances of the observations with positive weight. """
        return float(self.distances[self.weights > 0].sum())

    @classmethod
    def project(cls, X, path, stretch=2., weights=None, approx_points=None):
        """ Project observations onto ``path`` and build the curve from their projections.

        Parameters
        ----------
        X : `numpy.ndarray`, (n, p)
            Observations.
        path : `numpy.ndarray`, (m, p)
            Ordered path points.
        stretch : `float`
            Extrapolation factor of the first and last segments.
        weights : `numpy.ndarray`, (n, ), optional
            Observation weights, all 1 if not provided.
        approx_points : {`None`, `int`}
            If an `int`, the new path is approximated by this many points evenly
            spaced in pseudotime.

        Returns
        -------
        curve : `PrincipalCurve`
            The curve through the sorted projections.
        """
        X = np.asarray(X, dtype=float)
        weights = np.ones(X.shape[0]) if weights is None else np.asarray(weights, dtype=float)
        projections, arc, distances = project_to_path(X, path, stretch=stretch)
        order = np.argsort(arc, kind='mergesort')

        sorted_proj = projections[order]
        steps = np.sqrt((np.diff(sorted_proj, axis=0) ** 2).sum(axis=1))
        lam = np.r_[0., np.cumsum(steps)]
        pseudotime = np.empty(X.shape[0])
        pseudotime[order] = lam

        if approx_points:
            path_pseudotime = np.linspace(0., lam[-1], int(approx_points))
            new_path = interpolate_columns(lam, sorted_proj, path_pseudotime)
        else:
            path_pseudotime = lam
            new_path = sorted_proj
        return cls(new_path, path_pseudotime, projections, pseudotime, order, distances, weights)

    def reweighted(self, weights):
        """ Return a copy of the curve with new observation weights. """
        curve = copy.copy(self)
        curve.weights = np.asarray(weights, dtype=float)
        return curve

    def smooth(self, X, smoother, stretch=2., approx_points=None):
        """ One principal curve step: smooth each coordinate against pseudotime and re-project.

        Parameters
        ----------
        X : `numpy.ndarray`, (n, p)
            Observations.
        smoother : callable
            Smoother ``smoother(t, y, w) -> fitted``.
        stretch : `float`
            Extrapolation factor of the first and last segments.
        approx_points : {`None`, `int`}
            Number of points of the approximated path.

        Returns
        -------
        curve : `PrincipalCurve`
            The updated curve, with the same weights.
        """
        n_pos = int((self.weights > 0).sum())
        if n_pos < smoother_min_points(smoother):
            raise InsufficientDataError(f"Only {n_pos} observation(s) with positive weight, the smoother needs at least {smoother_min_points(smoother)}.")
        fitted = np.column_stack([smoother(self.pseudotime, X[:, j], self.weights) for j in range(X.shape[1])])
        return PrincipalCurve.project(X, fitted[self.order], stretch=stretch, weights=self.weights,
                                      approx_points=approx_points)


def first_pc_line(X, weights=None):
    """ Path along the first principal component spanning the projections of the observations. """
    keep = np.ones(X.shape[0], dtype=bool) if weights is None else weights > 0
    pca = PCA(n_components=1).fit(X[keep])
    scores = np.sort(pca.transform(X[keep])[:, 0])
    return pca.mean_[None, :] + scores[:, None] * pca.components_[0][None, :]


def principal_curve(X, start=None, weights=None, smoother='smooth.spline', thresh=0.001, maxit=10,
                    stretch=2., approx_points=None, verbose=None, **smoother_kwargs):
    """ Fit a principal curve to a set of observations.

    Parameters
    ----------
    X : `numpy.ndarray`, (n, p)
        Observations.
    start : `numpy.ndarray`, (m, p), optional
        Initial path, the first principal component line if not provided.
    weights : `numpy.ndarray`, (n, ), optional
        Observation weights.
    smoother : {'smooth.spline', 'loess', callable}
        Scatterplot smoother.
    thresh : `float`
        Convergence threshold on the relative change of the total squared distance.
    maxit : `int`
        Maximum number of smoothing steps.
    stretch : `float`
        Extrapolation factor of the first and last segments.
    approx_points : {`None`, `int`}
        Number of points of the approximated path.
    verbose : {`None`, `str`}
        Logging verbosity, see `trajflow.set_verbose`.
    **smoother_kwargs : `dict`
        Options of the built-in smoother.

    Returns
    -------
    curve : `PrincipalCurve`
        The fitted curve, with ``history`` (total squared distance of the initial curve
        and after each step), ``n_iter`` and ``converged`` set.
    """
    if verbose is not None:
        from .._logging import set_verbose
        set_verbose(logger, verbose)

    X = np.asarray(X, dtype=float)
    if not thresh > 0 or int(maxit) != maxit or maxit < 1:
        raise ConfigurationError("`thresh` must be positive and `maxit` a positive integer.")
    smoother = get_smoother(smoother, **smoother_kwargs)
    weights = np.ones(X.shape[0]) if weights is None else np.asarray(weights, dtype=float)
    if start is None:
        start = first_pc_line(X, weights)

    curve = PrincipalCurve.project(X, start, stretch=stretch, weights=weights, approx_points=approx_points)
    history = [curve.total_distance]
    converged = False
    n_iter = 0
    for n_iter in tqdm(range(1, int(maxit) + 1), desc="Principal curve", disable=progress_disabled(logger)):
        curve = curve.smooth(X, smoother, stretch=stretch, approx_points=approx_points)
        history.append(curve.total_distance)
        logger.trace(f"Iteration {n_iter}: total squared distance {history[-1]:.6g}.")
        old, new = history[-2], history[-1]
        if old == 0 or abs(old - new) / old <= thresh:
            converged = True
            break

    if not converged:
        logger.msg(f"Principal curve did not converge in {maxit} iterations.")
    curve.history = history
    curve.n_iter = n_iter
    curve.converged = converged
    return curve
