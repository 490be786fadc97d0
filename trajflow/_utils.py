from textwrap import dedent


def _docstring_parameter(**kwds):
    """\
    Docstrings should start with "\" in the first line for proper formatting.
    """
    def dec(obj):
        obj.__orig_doc__ = obj.__doc__
        obj.__doc__ = dedent(obj.__doc__).format_map(kwds)
        return obj
    return dec


_desc_lineage_params = """\
start_clus : {`None`, `str`, `list` [`str`]}
    Cluster(s) of origin. Lineages are represented by paths coming out of these clusters.
    If `None`, the root of each tree is selected automatically.
end_clus : {`None`, `str`, `list` [`str`]}
    Cluster(s) forced to be leaf nodes. This introduces a constraint on the spanning forest.
dist_fun : callable, optional
    Distance between two clusters with signature ``dist_fun(X1, X2, w1, w2) -> float``
    where ``X1`` and ``X2`` are the coordinates of the points with positive weight in each
    cluster and ``w1``, ``w2`` their weights. If `None`, a squared Mahalanobis distance
    with the pooled (full or diagonal) covariance is used.
omega : {`None`, `float`}
    Granularity parameter, every real cluster is ``omega / 2`` away from the artificial
    background cluster. If `None`, ``omega = inf`` and a single tree is built.
"""

_desc_curve_params = """\
shrink : {`bool`, `float`}
    Whether (or how much, if a number between 0 and 1) to shrink branching lineages
    toward their average prior to the split.
extend : {'y', 'n', 'pc1'}
    How to handle root and leaf clusters when constructing the initial piece-wise
    linear curve.

    Options:

    - 'y' : extend the first and last segments to the orthogonal projection of the
      furthest member point.
    - 'n' : stop at the center of the endpoint clusters.
    - 'pc1' : extend along the first principal component of the endpoint clusters.
reweight : `bool`
    If `True`, points shared between lineages are iteratively reweighted based on the
    quantiles of their projection distances to each curve.
reassign : `bool`
    If `True`, points are added to a lineage when their projection distance is below the
    weighted median distance of the lineage's members, and shared points are removed when
    their distance is above the weighted 90th percentile and their weight is below 0.1.
thresh : `float`
    Convergence criterion on the relative change of the total squared distance from
    points to their projections.
maxit : `int`
    Maximum number of iterations.
stretch : `float`
    Factor by which curves can be extrapolated beyond their endpoints.
approx_points : {`None`, `int`}
    If an `int`, curves are approximated by this many points evenly spaced in pseudotime.
    Otherwise curves contain as many points as the input data.
smoother : {'smooth.spline', 'loess', callable}
    Scatterplot smoother used to fit each coordinate against pseudotime.
shrink_method : {'cosine', 'gaussian', 'epanechnikov', 'rectangular', 'triangular', 'biweight', 'optcosine', 'tricube', 'density'}
    Shape of the shrinkage curve of each lineage.
allow_breaks : `bool`
    If `True`, curves that branch very close to the origin are allowed to have
    different starting points. Otherwise such curves are left unshrunk for the
    iteration and shrinkage is tried again on the next one.
n_jobs : `int`
    Number of threads used to fit lineage curves within an iteration.
"""
