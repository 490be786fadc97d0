import numpy as np
import pytest

from trajflow import InsufficientDataError, Lineage, get_lineages
from trajflow.curves.principal import PrincipalCurve
from trajflow.curves.simultaneous import SimultaneousPrincipalCurves, average_curves, branch_groups, \
    reassign_points, reweight_shared
from trajflow.curves.smoothers import SplineSmoother
from trajflow.topology.geometry import normalize_cluster_labels


def test_reweight_single_lineage_points_keep_weight_one():
    W = np.array([[1., 0.], [0., 1.], [1., 1.], [1., 1.]])
    D = np.array([[5., 0.], [0., 7.], [1., 3.], [2., 2.]])
    new = reweight_shared(W, D)
    np.testing.assert_array_equal(new[:2], [[1., 0.], [0., 1.]])
    # equal distances give equal weights
    assert new[3, 0] == new[3, 1]
    # the closer lineage keeps weight 1
    assert new[2, 0] == 1.
    assert 0. <= new[2, 1] < 1.


def test_reweight_keeps_zeros():
    rng = np.random.default_rng(40)
    W = (rng.uniform(size=(30, 3)) > 0.4).astype(float)
    D = rng.uniform(size=(30, 3))
    new = reweight_shared(W, D)
    assert np.all(new[W == 0] == 0)
    assert np.all((new >= 0) & (new <= 1))


def test_reassign_adds_close_points_and_keeps_last_lineage():
    W = np.array([[1., 0.], [1., 0.], [1., 0.], [0., 1.], [0., 1.], [0., 1.]])
    D = np.array([[1., 0.1], [2., 5.], [3., 5.], [9., 1.], [9., 2.], [9., 3.]])
    new = reassign_points(W, D)
    assert new[0, 1] == 1.
    assert np.all(new.sum(axis=1) > 0)


def test_reassign_respects_unclustered():
    W = np.array([[1., 0.], [1., 0.], [0., 0.]])
    D = np.array([[1., 1.], [3., 1.], [0., 0.]])
    new = reassign_points(W, D, clustered=np.array([True, True, False]))
    assert np.all(new[2] == 0)


def test_branch_groups_nested():
    # lineages 0 and 1 share a cluster, all three share the root
    C = np.array([[1, 1, 1],
                  [1, 1, 0],
                  [1, 0, 0],
                  [0, 1, 0],
                  [0, 0, 1]])
    groups = branch_groups(C)
    assert groups == [[('lineage', 0), ('lineage', 1)], [('average', 0), ('lineage', 2)]]


def test_branch_groups_without_sharing():
    assert branch_groups(np.eye(3)) == []


def test_average_of_identical_curves():
    X = np.column_stack([np.linspace(0., 4., 20), np.zeros(20)])
    curve = PrincipalCurve.project(X, X[[0, -1]], stretch=0)
    avg = average_curves([curve, curve], X, stretch=0)
    np.testing.assert_allclose(avg.path, curve.path)


def test_no_shrinkage_equals_independent_steps(v_data):
    X, labels = v_data
    traj = get_lineages(X, labels, start_clus='A')
    spc = SimultaneousPrincipalCurves(X, traj.cluster_weights, traj.lineages, shrink=False, reweight=False,
                                      reassign=False, maxit=1)
    W = spc.initial_weights()
    expected = [c.smooth(X, SplineSmoother(), stretch=2) for c in spc.initial_curves(W)]
    spc.fit()
    for got, exp in zip(spc.curves, expected):
        np.testing.assert_allclose(got.path, exp.path)
        np.testing.assert_allclose(got.pseudotime, exp.pseudotime)


def test_points_on_one_lineage_have_weight_one(v_data):
    X, labels = v_data
    traj = get_lineages(X, labels, start_clus='A')
    spc = SimultaneousPrincipalCurves(X, traj.cluster_weights, traj.lineages, maxit=5).fit()
    only_b = labels == 'B'
    assert np.all(spc.weights[only_b, traj.lineage_names.index(_lineage_with(traj, 'B'))] == 1.)
    assert np.all((spc.weights >= 0) & (spc.weights <= 1))
    assert len(spc.history) == spc.n_iter + 1


def _lineage_with(traj, cluster):
    return [lin.name for lin in traj.lineages if cluster in lin.clusters][0]


def test_too_few_points_names_lineage():
    rng = np.random.default_rng(41)
    X = np.vstack([rng.standard_normal((20, 2)), rng.standard_normal((2, 2)) * 0.1 + 5.])
    labels = np.array(['a'] * 20 + ['b'] * 2)
    traj = get_lineages(X, labels, dist_fun=lambda X1, X2, w1, w2: 1.)
    # the only lineage has fewer observations than the degrees of freedom of the spline
    spc = SimultaneousPrincipalCurves(X, traj.cluster_weights, traj.lineages, df=30)
    with pytest.raises(InsufficientDataError, match='Lineage1'):
        spc.fit()


@pytest.mark.parametrize('extend', ['y', 'n', 'pc1'])
def test_initial_curves_pass_through_centers(v_data, extend):
    X, labels = v_data
    traj = get_lineages(X, labels, start_clus='A')
    spc = SimultaneousPrincipalCurves(X, traj.cluster_weights, traj.lineages, extend=extend)
    curves = spc.initial_curves(spc.initial_weights())
    for lin, curve in zip(traj.lineages, curves):
        assert curve.path.shape[1] == 2
        assert np.all(np.isfinite(curve.pseudotime))
        if extend == 'n':
            # projections are clipped to the segment between the centers
            start = spc.centers.loc[lin.root].values
            assert np.min(np.linalg.norm(curve.path - start, axis=1)) < 1e-8


def test_single_lineage_history_does_not_increase(chain_data):
    X, labels = chain_data
    traj = get_lineages(X, labels, start_clus='1')
    assert len(traj.lineages) == 1
    thresh = 0.001
    spc = SimultaneousPrincipalCurves(X, traj.cluster_weights, traj.lineages, thresh=thresh, maxit=20).fit()
    assert len(spc.history) >= 2
    for old, new in zip(spc.history[:-1], spc.history[1:]):
        assert new <= old * (1 + 10 * thresh)


def _parallel_branches(allow_breaks):
    # two horizontal branches at y=0 and y=3 that share a single observation
    x = np.linspace(0., 10., 30)
    X = np.vstack([np.column_stack([x, np.zeros(30)]), np.column_stack([x, np.full(30, 3.)]), [[0., 1.5]]])
    labels = ['a'] * 30 + ['b'] * 30 + ['s']
    W = normalize_cluster_labels(labels, len(labels))
    lineages = [Lineage(['s', 'a'], 'Lineage1'), Lineage(['s', 'b'], 'Lineage2')]
    spc = SimultaneousPrincipalCurves(X, W, lineages, allow_breaks=allow_breaks)

    w0 = np.r_[np.ones(30), np.zeros(30), 1.]
    w1 = np.r_[np.zeros(30), np.ones(30), 1.]
    curves = [PrincipalCurve.project(X, np.array([[0., 0.], [10., 0.]]), stretch=0, weights=w0),
              PrincipalCurve.project(X, np.array([[0., 3.], [10., 3.]]), stretch=0, weights=w1)]
    groups = branch_groups(spc.membership.values)
    assert groups == [[('lineage', 0), ('lineage', 1)]]
    return spc, curves, groups


@pytest.mark.parametrize('allow_breaks', [True, False])
def test_degenerate_shared_range_is_not_shrunk(allow_breaks):
    spc, curves, groups = _parallel_branches(allow_breaks)
    shrunk = spc._shrink(curves, groups)
    for got, orig in zip(shrunk, curves):
        np.testing.assert_array_equal(got.path, orig.path)
        np.testing.assert_array_equal(got.pseudotime, orig.pseudotime)
    if allow_breaks:
        assert spc._released == {0}
    else:
        # the group stays in the hierarchy and is tried again next time
        assert spc._released == set()
        spc._shrink(curves, groups)
        assert spc._released == set()


def test_released_group_is_skipped(v_data):
    X, labels = v_data
    traj = get_lineages(X, labels, start_clus='A')
    spc = SimultaneousPrincipalCurves(X, traj.cluster_weights, traj.lineages)
    W = spc.initial_weights()
    curves = spc.initial_curves(W)
    groups = branch_groups(spc.membership.values)
    spc._released = {0}
    shrunk = spc._shrink(curves, groups)
    for got, orig in zip(shrunk, curves):
        np.testing.assert_array_equal(got.path, orig.path)
