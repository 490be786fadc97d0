import numpy as np

from ._logging import logger

EPS = 1e-7


def _as_label(v):
    if isinstance(v, (float, np.floating)) and float(v).is_integer():
        return str(int(v))
    return str(v)


def as_labels(values):
    """ Convert cluster labels to strings.

    ``1``, ``1.0`` and ``'1'`` refer to the same cluster, so a float label vector
    with ``-1.0`` marks unclustered observations like ``-1`` does.
    """
    if values is None:
        return []
    if isinstance(values, (str, int, float, np.integer, np.floating)):
        values = [values]
    return [_as_label(v) for v in values]


def scale_to_range(x, a=0., b=1.):
    """ Linearly rescale ``x`` so that its minimum is ``a`` and its maximum is ``b``. """
    x = np.asarray(x, dtype=float)
    return ((x - x.min()) / (x.max() - x.min())) * (b - a) + a


def weighted_quantile(values, weights, q):
    """ Weighted quantile(s) of ``values``.

    Uses the inverse of the weighted empirical distribution function, so with equal
    weights this agrees with ``numpy.quantile(values, q, method='inverted_cdf')``.

    Parameters
    ----------
    values : `numpy.ndarray`, (n, )
        The values.
    weights : `numpy.ndarray`, (n, )
        Non-negative weights, entries with zero weight are ignored.
    q : {`float`, array-like}
        Quantile(s) in [0, 1].

    Returns
    -------
    quantile : {`float`, `numpy.ndarray`}
        The weighted quantile(s).
    """
    values = np.asarray(values, dtype=float)
    weights = np.asarray(weights, dtype=float)
    keep = weights > 0
    if not np.any(keep):
        raise ValueError("At least one positive weight is required to compute a weighted quantile.")
    values, weights = values[keep], weights[keep]
    order = np.argsort(values, kind='mergesort')
    values, weights = values[order], weights[order]
    cdf = np.cumsum(weights) / np.sum(weights)
    idx = np.searchsorted(cdf, np.asarray(q, dtype=float) - EPS, side='left')
    idx = np.clip(idx, 0, len(values) - 1)
    return values[idx]


def boxplot_whiskers(x, coef=1.5):
    """ Lower and upper whiskers of a boxplot of ``x``.

    The whiskers are the most extreme data points within ``coef`` times the interquartile
    range from the quartiles, i.e., the range of the non-outlying values.

    Returns
    -------
    lower, upper : `float`
        The whiskers.
    """
    x = np.asarray(x, dtype=float)
    q1, q3 = np.percentile(x, [25, 75])
    iqr = q3 - q1
    inside = x[(x >= q1 - coef * iqr) & (x <= q3 + coef * iqr)]
    return float(inside.min()), float(inside.max())


def cumulative_min(y, x):
    """ Running minimum of ``y`` taken in increasing order of ``x``, returned in the original order. """
    order = np.argsort(x, kind='mergesort')
    out = np.empty_like(np.asarray(y, dtype=float))
    out[order] = np.minimum.accumulate(np.asarray(y, dtype=float)[order])
    return out


def interpolate_columns(x, Y, xout):
    """ Linearly interpolate every column of ``Y`` (as a function of ``x``) at ``xout``.

    Values outside the range of ``x`` are set to the nearest end value and tied ``x``
    values are averaged.

    Parameters
    ----------
    x : `numpy.ndarray`, (m, )
        Abscissas.
    Y : `numpy.ndarray`, (m, p)
        Ordinates.
    xout : `numpy.ndarray`, (k, )
        Where to evaluate.

    Returns
    -------
    out : `numpy.ndarray`, (k, p)
    """
    x = np.asarray(x, dtype=float)
    Y = np.asarray(Y, dtype=float)
    ux, inverse = np.unique(x, return_inverse=True)
    if len(ux) < len(x):
        counts = np.bincount(inverse)
        Y = np.stack([np.bincount(inverse, weights=Y[:, j]) / counts for j in range(Y.shape[1])], axis=1)
    if len(ux) == 1:
        logger.debug("Interpolating from a single abscissa, returning a constant.")
        return np.repeat(Y[:1], len(xout), axis=0)
    return np.stack([np.interp(xout, ux, Y[:, j]) for j in range(Y.shape[1])], axis=1)
