import numpy as np
import pandas as pd
import pytest

import trajflow as tf
from trajflow import ConfigurationError, Trajectory, get_curves, get_lineages, slingshot


def test_v_end_to_end(v_data):
    X, labels = v_data
    traj = slingshot(X, labels, start_clus='A')
    assert isinstance(traj, Trajectory)
    assert sorted(tuple(lin) for lin in traj.lineages) == [('A', 'B'), ('A', 'C')]
    assert len(traj.curves) == 2
    assert traj.membership.loc['A'].tolist() == [1, 1]

    pst = traj.pseudotime()
    assert list(pst.columns) == ['Lineage1', 'Lineage2']
    assert pst.shape == (X.shape[0], 2)
    # A is at the start of both lineages
    for name in pst.columns:
        col = pst[name]
        assert col[labels == 'A'].mean() < col[labels != 'A'].mean()

    W = traj.curve_weights()
    assert np.all((W.values >= 0) & (W.values <= 1))
    assert len(traj.history) >= 2

    # shrunk curves meet at the origin and end near B and C
    a, b = traj.curves
    assert np.linalg.norm(a.path[0] - b.path[0]) < 0.5
    assert np.linalg.norm(a.path[-1] - b.path[-1]) > 3.


def test_shrinkage_pulls_curves_together_near_origin(v_branch_data):
    X, labels = v_branch_data
    traj = get_lineages(X, labels, start_clus='T')
    assert len(traj.lineages) == 2

    def start_gap(trajectory):
        a, b = trajectory.curves
        return np.linalg.norm(a.path[0] - b.path[0])

    shrunk = get_curves(traj, shrink=True)
    assert start_gap(shrunk) < 0.5
    # the arms still end far apart
    a, b = shrunk.curves
    assert np.linalg.norm(a.path[-1] - b.path[-1]) > 3.


def test_hard_and_one_hot_labels_agree(v_data):
    X, labels = v_data
    one_hot = pd.get_dummies(pd.Series(labels)).astype(float)
    hard = slingshot(X, labels, start_clus='A', maxit=3)
    soft = slingshot(X, one_hot, start_clus='A', maxit=3)
    pd.testing.assert_frame_equal(hard.connectivity, soft.connectivity)
    np.testing.assert_allclose(hard.pseudotime(na=False).values, soft.pseudotime(na=False).values)


def test_unclustered_points_have_missing_pseudotime(v_data):
    X, labels = v_data
    labels = labels.astype(object)
    labels[:3] = -1
    traj = slingshot(X, labels, start_clus='A', maxit=3)
    pst = traj.pseudotime()
    assert pst.iloc[:3].isna().all().all()
    assert np.all(traj.curve_weights().values[:3] == 0)
    assert not traj.clustered[:3].any()


def test_dataframe_index_is_kept(v_frame):
    X, labels = v_frame
    traj = slingshot(X, labels, start_clus='A', maxit=2)
    assert list(traj.pseudotime().index) == list(X.index)


def test_lineages_without_curves(v_data):
    X, labels = v_data
    traj = get_lineages(X, labels)
    assert traj.curves is None
    with pytest.raises(ValueError):
        traj.pseudotime()
    assert traj.params['omega'] == np.inf
    assert list(traj.params['dist'].index)[-1] == 'OMEGA'


def test_get_curves_returns_new_trajectory(v_data):
    X, labels = v_data
    traj = get_lineages(X, labels, start_clus='A')
    fitted = get_curves(traj, maxit=2)
    assert traj.curves is None
    assert fitted.params['maxit'] == 2
    assert fitted.params['start_clus'] == ['A']


def test_single_cluster_gives_no_curves():
    X = np.random.default_rng(50).standard_normal((20, 2))
    traj = slingshot(X)
    assert traj.lineages == []
    assert traj.curves == []
    assert traj.pseudotime().shape == (20, 0)


@pytest.mark.parametrize('option', [{'extend': 'x'}, {'shrink': 2.}, {'thresh': 0.}, {'maxit': 0},
                                    {'stretch': -1}, {'shrink_method': 'box'}, {'smoother': 'lowess'}])
def test_invalid_curve_options(v_data, option):
    X, labels = v_data
    traj = get_lineages(X, labels)
    with pytest.raises(ConfigurationError):
        get_curves(traj, **option)


def test_loess_and_approx_points(v_data):
    X, labels = v_data
    traj = slingshot(X, labels, start_clus='A', smoother='loess', approx_points=50, maxit=3)
    assert all(c.path.shape == (50, 2) for c in traj.curves)


def test_package_exports():
    assert tf.__version__
    assert callable(tf.principal_curve)
    assert callable(tf.set_verbose)
