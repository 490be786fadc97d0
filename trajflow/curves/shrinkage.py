"""
shrinkage
=========

**Description**

Shrinkage curves of branching lineages.

A shrinkage curve ``w(t)`` gives, at every pseudotime ``t`` of a lineage, the
fraction of the lineage's curve that is replaced by the average curve of the
lineages it shares clusters with. It equals 1 at the origin and decreases to 0
over the range of pseudotimes of the shared observations, where the range is
taken as the whiskers of a boxplot (1.5 times the interquartile range).

The decrease follows the survival function of a kernel rescaled to the
whisker range, or, for ``'density'``, the ratio between the density of the
shared observations and the density of all observations of the lineage.
"""

import numpy as np
import scipy.stats as sc_stats

from ..checks import ConfigurationError
from ..utils import boxplot_whiskers, cumulative_min, scale_to_range
from .._logging import _gen_logger

logger = _gen_logger(__name__)

# kernel support is scaled to unit standard deviation, as for `density` in R
_KERNEL_GRID = np.linspace(-3., 3., 512)


def _gaussian(x):
    return sc_stats.norm.pdf(x)


def _rectangular(x):
    a = np.sqrt(3.)
    return np.where(np.abs(x) < a, 0.5 / a, 0.)


def _triangular(x):
    a = np.sqrt(6.)
    ax = np.abs(x)
    return np.where(ax < a, (1. - ax / a) / a, 0.)


def _epanechnikov(x):
    a = np.sqrt(5.)
    ax = np.abs(x)
    return np.where(ax < a, 3. / 4. * (1. - (ax / a) ** 2) / a, 0.)


def _biweight(x):
    a = np.sqrt(7.)
    ax = np.abs(x)
    return np.where(ax < a, 15. / 16. * (1. - (ax / a) ** 2) ** 2 / a, 0.)


def _cosine(x):
    a = 1. / np.sqrt(1. / 3. - 2. / np.pi ** 2)
    return np.where(np.abs(x) < a, (1. + np.cos(np.pi * x / a)) / (2. * a), 0.)


def _optcosine(x):
    a = 1. / np.sqrt(1. - 8. / np.pi ** 2)
    return np.where(np.abs(x) < a, np.pi / 4. * np.cos(np.pi * x / (2. * a)) / a, 0.)


def _tricube(x):
    ax = np.abs(x)
    return np.where(ax <= 1., 70. / 81. * (1. - ax ** 3) ** 3, 0.)


KERNELS = {'gaussian': _gaussian,
           'rectangular': _rectangular,
           'triangular': _triangular,
           'epanechnikov': _epanechnikov,
           'biweight': _biweight,
           'cosine': _cosine,
           'optcosine': _optcosine,
           'tricube': _tricube,
           }

SHRINK_METHODS = tuple(KERNELS) + ('density',)


def check_shrink_method(method):
    """ Raises ConfigurationError if ``method`` is not a known shrinkage method. """
    if method not in SHRINK_METHODS:
        raise ConfigurationError(f"Unrecognized shrinkage method {method!r}, must be one of {list(SHRINK_METHODS)}.")


def kernel_survival(method):
    """ Survival function of a kernel on its evaluation grid.

    Parameters
    ----------
    method : `str`
        Kernel name, a key of ``KERNELS``.

    Returns
    -------
    x : `numpy.ndarray`, (512, )
        The grid on ``[-3, 3]``.
    surv : `numpy.ndarray`, (512, )
        Survival function, exactly 1 at the first and 0 at the last grid point.
    """
    y = KERNELS[method](_KERNEL_GRID)
    cs = np.cumsum(y)
    surv = 1. - (cs - cs[0]) / (cs[-1] - cs[0])
    return _KERNEL_GRID, surv


def bw_nrd0(x):
    """ Silverman's rule of thumb bandwidth, ``0.9 min(sd, IQR / 1.34) n^(-1/5)``. """
    x = np.asarray(x, dtype=float)
    if len(x) < 2:
        return 1.
    hi = np.std(x, ddof=1)
    q1, q3 = np.percentile(x, [25, 75])
    lo = min(hi, (q3 - q1) / 1.34)
    if not lo > 0:
        lo = hi if hi > 0 else (abs(x[0]) if x[0] != 0 else 1.)
    return 0.9 * lo * len(x) ** (-0.2)


def _weighted_density(x, weights, bw, grid):
    weights = weights / weights.sum()
    return (sc_stats.norm.pdf((grid[:, None] - x[None, :]) / bw) * weights[None, :]).sum(axis=1) / bw


def _density_shrinkage(pseudotime, shared, weights, at):
    member = weights > 0
    x_all, w_all = pseudotime[member], weights[member]
    x_shared, w_shared = pseudotime[shared], weights[shared]
    bw = np.mean([bw_nrd0(x_all), bw_nrd0(x_shared)])
    grid = np.linspace(min(x_all.min(), 0.) - 3 * bw, x_all.max() + 3 * bw, 512)
    d_all = _weighted_density(x_all, w_all, bw, grid)
    d_shared = _weighted_density(x_shared, w_shared, bw, grid)
    scale = w_shared.sum() / w_all.sum()
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = np.where(d_all > 0, d_shared * scale / d_all, 0.)
    ratio = cumulative_min(np.clip(ratio, 0., 1.), grid)
    pct = np.interp(at, grid, ratio)
    start = np.interp(0., grid, ratio)
    if start > 0:
        pct = pct / start
    return np.clip(pct, 0., 1.)


def shrinkage_curve(pseudotime, shared, at, method='cosine', weights=None):
    """ Shrinkage curve of one lineage.

    Parameters
    ----------
    pseudotime : `numpy.ndarray`, (n, )
        Pseudotime of every observation on the lineage.
    shared : `numpy.ndarray`, (n, )
        Boolean mask of the observations shared with the other lineages of the group.
    at : `numpy.ndarray`, (m, )
        Pseudotimes where the curve is evaluated (usually those of the curve path).
    method : `str`
        Kernel name or ``'density'``.
    weights : `numpy.ndarray`, (n, ), optional
        Lineage weights of the observations, used by ``'density'``.

    Returns
    -------
    pct : `numpy.ndarray`, (m, )
        Shrinkage weights in [0, 1]. All zero if no observation is shared or the
        shared pseudotimes have a degenerate whisker range.
    """
    check_shrink_method(method)
    pseudotime = np.asarray(pseudotime, dtype=float)
    shared = np.asarray(shared, dtype=bool)
    at = np.asarray(at, dtype=float)
    if not np.any(shared):
        return np.zeros(len(at))

    lo, hi = boxplot_whiskers(pseudotime[shared])
    if lo == hi:
        logger.debug("Shared observations have a degenerate pseudotime range, no shrinkage.")
        return np.zeros(len(at))

    if method == 'density':
        weights = np.ones(len(pseudotime)) if weights is None else np.asarray(weights, dtype=float)
        shared = shared & (weights > 0)
        if not np.any(shared):
            return np.zeros(len(at))
        return _density_shrinkage(pseudotime, shared, weights, at)

    x, surv = kernel_survival(method)
    x = scale_to_range(x, lo, hi)
    return np.interp(at, x, surv)
