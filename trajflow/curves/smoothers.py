"""
smoothers
=========

**Description**

Weighted scatterplot smoothers used to fit each coordinate of the embedding
as a function of pseudotime.

A smoother is any callable ``smoother(t, y, w) -> fitted`` returning the
fitted values at every ``t`` (including observations with zero weight, which
are ignored by the fit). The built-in smoothers also expose ``min_points``,
the smallest number of distinct positive-weight abscissas they need.
"""

import numpy as np
import scipy.interpolate as si
import statsmodels.api as sm

from ..checks import ConfigurationError, InsufficientDataError
from ..utils import EPS


def _weighted_unique(t, y, w):
    """ Drop zero weights and collapse tied abscissas into their weighted mean with summed weights. """
    keep = w > 0
    t, y, w = t[keep], y[keep], w[keep]
    ut, inverse = np.unique(t, return_inverse=True)
    sw = np.bincount(inverse, weights=w)
    sy = np.bincount(inverse, weights=w * y) / sw
    return ut, sy, sw


def _as_arrays(t, y, w):
    t = np.asarray(t, dtype=float)
    y = np.asarray(y, dtype=float)
    w = np.ones_like(t) if w is None else np.asarray(w, dtype=float)
    if not (t.shape == y.shape == w.shape):
        msg = f"Pseudotime, values and weights must have the same shape, got {t.shape}, {y.shape} and {w.shape}."
        raise ValueError(msg)
    return t, y, w


class SplineSmoother:
    """ Weighted cubic regression spline with a fixed number of degrees of freedom.

    Interior knots are placed at quantiles of the distinct abscissas. Outside the
    range of the positive-weight abscissas the spline is extended linearly.

    Parameters
    ----------
    df : `int`
        Degrees of freedom, i.e., the number of B-spline coefficients (``df >= k + 1``).
    k : `int`
        Spline degree.
    """
    def __init__(self, df=5, k=3):
        if int(df) != df or int(k) != k or k < 1 or df < k + 1:
            raise ConfigurationError(f"Spline smoother requires integers `k >= 1` and `df >= k + 1`, got df={df}, k={k}.")
        self.df = int(df)
        self.k = int(k)

    def __repr__(self):
        return f"SplineSmoother(df={self.df}, k={self.k})"

    @property
    def min_points(self):
        return self.df

    def fit(self, t, y, w=None):
        """ Fit the spline and return it as a `scipy.interpolate.BSpline`. """
        t, y, w = _as_arrays(t, y, w)
        ut, sy, sw = _weighted_unique(t, y, w)
        if len(ut) < self.min_points:
            raise InsufficientDataError(f"Spline smoother needs at least {self.min_points} distinct points with positive weight, got {len(ut)}.")

        n_interior = self.df - self.k - 1
        interior = np.quantile(ut, np.linspace(0., 1., n_interior + 2)[1:-1]) if n_interior > 0 else np.array([])
        knots = np.r_[np.repeat(ut[0], self.k + 1), interior, np.repeat(ut[-1], self.k + 1)]
        try:
            spl = si.make_lsq_spline(ut, sy, knots, k=self.k, w=np.sqrt(sw))
        except (np.linalg.LinAlgError, ValueError) as err:
            raise InsufficientDataError(f"Unable to fit the spline smoother: {err}") from err
        return spl

    def __call__(self, t, y, w=None):
        t = np.asarray(t, dtype=float)
        spl = self.fit(t, y, w)
        lo, hi = spl.t[0], spl.t[-1]
        fitted = spl(np.clip(t, lo, hi))
        deriv = spl.derivative()
        below, above = t < lo, t > hi
        fitted[below] = spl(lo) + deriv(lo) * (t[below] - lo)
        fitted[above] = spl(hi) + deriv(hi) * (t[above] - hi)
        return fitted


class LoessSmoother:
    """ Local weighted polynomial regression with a tricube kernel.

    The local fits are computed on an evenly spaced grid over the range of the
    positive-weight abscissas and linearly interpolated at every abscissa, values
    outside the range are held constant.

    Parameters
    ----------
    span : `float`
        Fraction of the points used in each local fit.
    degree : `int`
        Degree of the local polynomial.
    n_eval : `int`
        Number of grid points where local fits are computed.
    """
    def __init__(self, span=0.75, degree=2, n_eval=100):
        if not span > 0:
            raise ConfigurationError("Loess `span` must be positive.")
        if int(degree) != degree or degree < 0:
            raise ConfigurationError("Loess `degree` must be a non-negative integer.")
        if int(n_eval) != n_eval or n_eval < 2:
            raise ConfigurationError("Loess `n_eval` must be an integer greater than 1.")
        self.span = float(span)
        self.degree = int(degree)
        self.n_eval = int(n_eval)

    def __repr__(self):
        return f"LoessSmoother(span={self.span}, degree={self.degree})"

    @property
    def min_points(self):
        return self.degree + 1

    def _local_fit(self, x0, t, y, w, q):
        dist = np.abs(t - x0)
        h = np.partition(dist, q - 1)[q - 1]
        if self.span > 1:
            h = h * self.span
        # slightly widened so that the q-th nearest point keeps a positive weight
        h = max(h, EPS) * (1. + 1e-6)
        kernel = np.clip(1. - (dist / h) ** 3, 0., None) ** 3
        design = np.vander(t - x0, self.degree + 1, increasing=True)
        res = sm.WLS(y, design, weights=kernel * w).fit()
        return res.params[0]

    def __call__(self, t, y, w=None):
        t, y, w = _as_arrays(t, y, w)
        ut, sy, sw = _weighted_unique(t, y, w)
        if len(ut) < self.min_points or len(ut) < 2:
            raise InsufficientDataError(f"Loess smoother needs at least {max(self.min_points, 2)} distinct points with positive weight, got {len(ut)}.")
        q = int(min(len(ut), max(self.degree + 1, np.ceil(self.span * len(ut)))))
        grid = np.linspace(ut[0], ut[-1], self.n_eval)
        fitted = np.array([self._local_fit(x0, ut, sy, sw, q) for x0 in grid])
        return np.interp(t, grid, fitted)


SMOOTHERS = {'smooth.spline': SplineSmoother,
             'loess': LoessSmoother}


def get_smoother(smoother='smooth.spline', **kwargs):
    """ Return a smoother instance.

    Parameters
    ----------
    smoother : {'smooth.spline', 'loess', callable}
        Name of a built-in smoother or a callable ``smoother(t, y, w) -> fitted``.
    **kwargs : `dict`
        Options passed to the built-in smoother (e.g., ``df`` or ``span``).

    Returns
    -------
    smoother : callable
        The smoother.
    """
    if callable(smoother):
        if len(kwargs) > 0:
            raise ConfigurationError("Smoother options can only be provided for built-in smoothers.")
        return smoother
    if smoother not in SMOOTHERS:
        raise ConfigurationError(f"Unrecognized smoother {smoother!r}, must be one of {list(SMOOTHERS)} or a callable.")
    try:
        return SMOOTHERS[smoother](**kwargs)
    except TypeError as err:
        raise ConfigurationError(f"Invalid option for smoother {smoother!r}: {err}") from err


def smoother_min_points(smoother):
    """ Minimum number of positive-weight points the smoother needs (1 if unknown). """
    return int(getattr(smoother, 'min_points', 1))
