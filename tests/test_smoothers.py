import numpy as np
import pytest

from trajflow import ConfigurationError, InsufficientDataError
from trajflow.curves.smoothers import LoessSmoother, SplineSmoother, get_smoother


@pytest.fixture
def noisy_sine():
    rng = np.random.default_rng(10)
    t = np.sort(rng.uniform(0., 2 * np.pi, 200))
    return t, np.sin(t) + 0.05 * rng.standard_normal(200)


def test_spline_recovers_smooth_signal(noisy_sine):
    t, y = noisy_sine
    fitted = SplineSmoother()(t, y, np.ones_like(t))
    assert fitted.shape == t.shape
    assert np.max(np.abs(fitted - np.sin(t))) < 0.15


def test_spline_reproduces_lines_exactly():
    t = np.linspace(0., 1., 30)
    y = 2. * t - 1.
    np.testing.assert_allclose(SplineSmoother()(t, y), y, atol=1e-8)


def test_spline_extrapolates_linearly():
    t = np.linspace(0., 1., 30)
    w = np.where(t <= 0.5, 1., 0.)
    fitted = SplineSmoother()(t, 3. * t, w)
    np.testing.assert_allclose(fitted, 3. * t, atol=1e-8)


def test_zero_weights_are_ignored(noisy_sine):
    t, y = noisy_sine
    w = np.ones_like(t)
    y_out = y.copy()
    y_out[::10] = 100.
    w[::10] = 0.
    np.testing.assert_allclose(SplineSmoother()(t, y_out, w)[1::10], SplineSmoother()(t[w > 0], y[w > 0])[::9],
                               atol=1e-8)


def test_spline_needs_enough_points():
    with pytest.raises(InsufficientDataError):
        SplineSmoother(df=5)(np.arange(4.), np.arange(4.))


def test_tied_abscissas():
    t = np.repeat(np.linspace(0., 1., 10), 3)
    y = np.tile([0., 1., 2.], 10)
    np.testing.assert_allclose(SplineSmoother()(t, y), 1., atol=1e-8)


def test_loess_follows_signal(noisy_sine):
    t, y = noisy_sine
    fitted = LoessSmoother(span=0.3)(t, y, np.ones_like(t))
    assert np.max(np.abs(fitted - np.sin(t))) < 0.2


def test_loess_reproduces_quadratics():
    t = np.linspace(-1., 1., 50)
    y = t ** 2
    np.testing.assert_allclose(LoessSmoother(n_eval=200)(t, y), y, atol=1e-3)


def test_get_smoother():
    assert isinstance(get_smoother('smooth.spline', df=6), SplineSmoother)
    assert isinstance(get_smoother('loess'), LoessSmoother)

    def custom(t, y, w):
        return y

    assert get_smoother(custom) is custom
    with pytest.raises(ConfigurationError):
        get_smoother('lowess')
    with pytest.raises(ConfigurationError):
        get_smoother('loess', df=5)
