import numpy as np
import pytest

from trajflow import ConfigurationError
from trajflow.curves.shrinkage import KERNELS, SHRINK_METHODS, kernel_survival, shrinkage_curve


@pytest.fixture
def lineage_pseudotime():
    rng = np.random.default_rng(20)
    pst = np.sort(rng.uniform(0., 10., 200))
    return pst, pst < 4.


@pytest.mark.parametrize('method', sorted(KERNELS))
def test_kernel_survival_bounds(method):
    x, surv = kernel_survival(method)
    assert surv[0] == 1.
    assert surv[-1] == 0.
    assert np.all(np.diff(surv) <= 1e-12)


@pytest.mark.parametrize('method', SHRINK_METHODS)
def test_starts_at_one_and_decreases(method, lineage_pseudotime):
    pst, shared = lineage_pseudotime
    at = np.linspace(0., 10., 101)
    pct = shrinkage_curve(pst, shared, at, method=method)
    assert pct[0] == pytest.approx(1.)
    assert np.all((pct >= 0) & (pct <= 1))
    assert np.all(np.diff(pct) <= 1e-12)
    assert pct[-1] == pytest.approx(0., abs=1e-6)


def test_no_shared_points(lineage_pseudotime):
    pst, _ = lineage_pseudotime
    pct = shrinkage_curve(pst, np.zeros_like(pst, dtype=bool), np.linspace(0., 10., 5))
    np.testing.assert_array_equal(pct, 0.)


def test_degenerate_range():
    pst = np.r_[np.zeros(10), np.linspace(1., 5., 10)]
    shared = np.r_[np.ones(10, dtype=bool), np.zeros(10, dtype=bool)]
    np.testing.assert_array_equal(shrinkage_curve(pst, shared, np.linspace(0., 5., 5)), 0.)


def test_unknown_method(lineage_pseudotime):
    pst, shared = lineage_pseudotime
    with pytest.raises(ConfigurationError):
        shrinkage_curve(pst, shared, pst, method='uniform')
