import numpy as np

from .checks import ConfigurationError, check_constraints, check_curve_params
from .classes import Trajectory
from .curves.shrinkage import check_shrink_method
from .curves.simultaneous import SimultaneousPrincipalCurves
from .topology.forest import minimum_spanning_forest
from .topology.geometry import ClusterGeometry, normalize_cluster_labels, normalize_embedding
from .topology.lineages import get_lineages_from_forest
from .utils import as_labels
from ._logging import _gen_logger, set_package_verbose
from ._utils import _docstring_parameter, _desc_lineage_params, _desc_curve_params

logger = _gen_logger(__name__)


@_docstring_parameter(desc_lineage=_desc_lineage_params)
def get_lineages(data, cluster_labels=None, start_clus=None, end_clus=None, dist_fun=None, omega=None,
                 verbose=None):
    """\
    Infer the global lineage structure from clusters in a reduced-dimensional embedding.

    A minimum spanning forest is built over the clusters, using distances between
    clusters and an artificial background cluster that controls how many trees are
    built. Lineages are the paths from the root to the leaves of each tree.

    Parameters
    ----------
    data : {{`numpy.ndarray`, `pandas.DataFrame`}}
        The embedding of size (n_observations, n_dimensions).
    cluster_labels : {{`None`, `list`, `numpy.ndarray`, `pandas.Series`, `pandas.DataFrame`}}
        Cluster label of each observation (``-1`` for unclustered) or a matrix of soft
        cluster weights of size (n_observations, n_clusters). If `None`, all observations
        are placed in one cluster.
    {desc_lineage}verbose : {{`None`, `str`}}
        Logging verbosity, see `trajflow.set_verbose`.

    Returns
    -------
    trajectory : `trajflow.Trajectory`
        The lineage structure, without curves.
    """
    if verbose is not None:
        set_package_verbose(verbose)

    X, index = normalize_embedding(data)
    W = normalize_cluster_labels(cluster_labels, X.shape[0], index=index)
    clusters = list(W.columns)

    start_clus = as_labels(start_clus)
    end_clus = as_labels(end_clus)
    check_constraints(clusters, start_clus, end_clus)

    geometry = ClusterGeometry(X, W)
    D = geometry.distances(dist_fun=dist_fun, omega=omega)
    forest = minimum_spanning_forest(D, end_clus=end_clus)
    lineages = get_lineages_from_forest(forest, start_clus=start_clus, end_clus=end_clus)

    params = {'start_clus': start_clus,
              'end_clus': end_clus,
              'start_given': [k in set(start_clus) for k in clusters],
              'end_given': [k in set(end_clus) for k in clusters],
              'omega': np.inf if omega is None else float(omega),
              'dist': D,
              }
    return Trajectory(X, W, D, forest, lineages, params=params)


@_docstring_parameter(desc_curve=_desc_curve_params)
def get_curves(trajectory, shrink=True, extend='y', reweight=True, reassign=True, thresh=0.001, maxit=15,
               stretch=2, approx_points=None, smoother='smooth.spline', shrink_method='cosine',
               allow_breaks=True, n_jobs=1, verbose=None, **smoother_kwargs):
    """\
    Fit simultaneous principal curves to the lineages of a trajectory.

    Each lineage is described by a smooth curve and each observation gets a
    pseudotime (arc length of its projection) and a weight on every lineage.

    Parameters
    ----------
    trajectory : `trajflow.Trajectory`
        The lineage structure, as returned by `trajflow.get_lineages`.
    {desc_curve}verbose : {{`None`, `str`}}
        Logging verbosity, see `trajflow.set_verbose`.
    **smoother_kwargs : `dict`
        Options of the built-in smoother (e.g., ``df`` for 'smooth.spline', ``span`` for 'loess').

    Returns
    -------
    trajectory : `trajflow.Trajectory`
        A new trajectory holding the curves.
    """
    if verbose is not None:
        set_package_verbose(verbose)

    if not isinstance(trajectory, Trajectory):
        raise ConfigurationError("`trajectory` must be a `trajflow.Trajectory`, see `trajflow.get_lineages`.")
    approx_points = approx_points if approx_points else None
    shrink = check_curve_params(shrink, extend, thresh, maxit, stretch, approx_points)
    check_shrink_method(shrink_method)

    params = {'shrink': shrink,
              'extend': extend,
              'reweight': reweight,
              'reassign': reassign,
              'thresh': thresh,
              'maxit': maxit,
              'stretch': stretch,
              'approx_points': approx_points,
              'smoother': smoother,
              'shrink_method': shrink_method,
              'allow_breaks': allow_breaks,
              }
    if smoother_kwargs:
        params['smoother_kwargs'] = dict(smoother_kwargs)

    if len(trajectory.lineages) == 0:
        logger.warning("No lineages to fit curves to.")
        return trajectory.with_curves([], history=[], converged=True, params=params)

    spc = SimultaneousPrincipalCurves(trajectory.embedding, trajectory.cluster_weights, trajectory.lineages,
                                      shrink=shrink, extend=extend, reweight=reweight, reassign=reassign,
                                      thresh=thresh, maxit=maxit, stretch=stretch, approx_points=approx_points,
                                      smoother=smoother, shrink_method=shrink_method, allow_breaks=allow_breaks,
                                      n_jobs=n_jobs, **smoother_kwargs).fit()
    return trajectory.with_curves(spc.curves, history=spc.history, converged=spc.converged, params=params)


@_docstring_parameter(desc_lineage=_desc_lineage_params, desc_curve=_desc_curve_params)
def slingshot(data, cluster_labels=None, start_clus=None, end_clus=None, dist_fun=None, omega=None,
              shrink=True, extend='y', reweight=True, reassign=True, thresh=0.001, maxit=15, stretch=2,
              approx_points=None, smoother='smooth.spline', shrink_method='cosine', allow_breaks=True,
              n_jobs=1, verbose=None, **smoother_kwargs):
    """\
    Infer lineages and fit their curves, i.e., `trajflow.get_lineages` followed by `trajflow.get_curves`.

    Parameters
    ----------
    data : {{`numpy.ndarray`, `pandas.DataFrame`}}
        The embedding of size (n_observations, n_dimensions).
    cluster_labels : {{`None`, `list`, `numpy.ndarray`, `pandas.Series`, `pandas.DataFrame`}}
        Cluster label of each observation (``-1`` for unclustered) or a matrix of soft
        cluster weights of size (n_observations, n_clusters).
    {desc_lineage}{desc_curve}verbose : {{`None`, `str`}}
        Logging verbosity, see `trajflow.set_verbose`.
    **smoother_kwargs : `dict`
        Options of the built-in smoother.

    Returns
    -------
    trajectory : `trajflow.Trajectory`
        The lineage structure and curves.
    """
    trajectory = get_lineages(data, cluster_labels=cluster_labels, start_clus=start_clus, end_clus=end_clus,
                              dist_fun=dist_fun, omega=omega, verbose=verbose)
    return get_curves(trajectory, shrink=shrink, extend=extend, reweight=reweight, reassign=reassign,
                      thresh=thresh, maxit=maxit, stretch=stretch, approx_points=approx_points,
                      smoother=smoother, shrink_method=shrink_method, allow_breaks=allow_breaks,
                      n_jobs=n_jobs, verbose=verbose, **smoother_kwargs)
