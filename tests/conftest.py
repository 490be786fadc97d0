import numpy as np
import pandas as pd
import pytest


def _blob(rng, center, n, scale):
    return np.asarray(center, dtype=float)[None, :] + scale * rng.standard_normal((n, len(center)))


@pytest.fixture
def v_data():
    """ Three clusters forming a "V": A at the origin, B up-left and C up-right. """
    rng = np.random.default_rng(0)
    n = 30
    X = np.vstack([_blob(rng, [0., 0.], n, 0.3),
                   _blob(rng, [-3., 4.], n, 0.3),
                   _blob(rng, [3., 4.], n, 0.3)])
    labels = np.repeat(['A', 'B', 'C'], n)
    return X, labels


@pytest.fixture
def v_branch_data():
    """ A "V" sampled along its two arms, with a shared trunk cluster at the bottom. """
    rng = np.random.default_rng(1)
    t = np.linspace(0., 1., 40)
    trunk = np.column_stack([np.zeros(30), np.linspace(-2., 0., 30)])
    left = np.column_stack([-3. * t, 4. * t])
    right = np.column_stack([3. * t, 4. * t])
    X = np.vstack([trunk, left, right]) + 0.1 * rng.standard_normal((110, 2))
    labels = np.array(['T'] * 30 + ['L1'] * 20 + ['L2'] * 20 + ['R1'] * 20 + ['R2'] * 20)
    return X, labels


@pytest.fixture
def chain_data():
    """ Four clusters along a straight line. """
    rng = np.random.default_rng(2)
    n = 25
    X = np.vstack([_blob(rng, [4. * i, 0.], n, 0.4) for i in range(4)])
    labels = np.repeat(['1', '2', '3', '4'], n)
    return X, labels


@pytest.fixture
def arc_data():
    """ Points along a quarter circle of radius 5, split into three clusters. """
    rng = np.random.default_rng(3)
    theta = np.linspace(0., np.pi / 2, 90)
    X = 5. * np.column_stack([np.cos(theta), np.sin(theta)]) + 0.1 * rng.standard_normal((90, 2))
    labels = np.repeat(['a', 'b', 'c'], 30)
    return X, labels


@pytest.fixture
def v_frame(v_data):
    X, labels = v_data
    index = [f"obs{i}" for i in range(X.shape[0])]
    return pd.DataFrame(X, index=index, columns=['x', 'y']), pd.Series(labels, index=index)
