import numpy as np
import pandas as pd
import pytest
from scipy.signal import lfilter

from lmp_pipeline.helpers.exceptions import (
    ConfigurationError,
    FitDivergence,
    InsufficientData,
    MalformedInput,
    OutlierPipelineError,
)
from lmp_pipeline.timeSeriesProcessing.autoregression.arimaFitter import ArimaFitter
from lmp_pipeline.timeSeriesProcessing.smoothing.multiScaleSmoother import (
    centered_moving_average,
)
from test_pytest.conftest import hourly_sine, simulate_arima


def _ar1_levels(n: int, phi: float, seed: int = 11) -> pd.Series:
    rng = np.random.default_rng(seed)
    differenced = lfilter([1.0], [1.0, -phi], rng.normal(size=n))
    index = pd.date_range("2016-01-01", periods=n, freq="h", name="timestamp")
    return pd.Series(50 + np.cumsum(differenced), index=index)


def test_smoothed_sine_fits_almost_exactly():
    smoothed = centered_moving_average(hourly_sine(days=60), 12)

    result = ArimaFitter().fit(smoothed)

    assert result.order == (6, 1, 1)
    assert result.diagnostics["converged"] is True
    # skip the start-up transient of the error recursion
    interior = result.residuals.dropna().iloc[50:]
    assert interior.abs().max() < 0.05


def test_fitted_series_alignment():
    smoothed = centered_moving_average(hourly_sine(days=20), 12)

    result = ArimaFitter({"order": (2, 1, 0)}).fit(smoothed)

    defined = smoothed.dropna()
    assert result.fitted.index.equals(defined.index)
    assert np.isnan(result.fitted.iloc[0])
    assert result.fitted.iloc[1:].notna().all()
    np.testing.assert_allclose(
        (result.fitted + result.residuals).iloc[1:].to_numpy(),
        defined.iloc[1:].to_numpy(),
    )


def test_second_difference_leaves_two_undefined_points():
    smoothed = centered_moving_average(hourly_sine(days=20), 12)

    result = ArimaFitter({"order": (1, 2, 0)}).fit(smoothed)

    assert result.fitted.iloc[:2].isna().all()
    assert result.fitted.iloc[2:].notna().all()


def test_random_walk_order_predicts_previous_level_plus_drift():
    levels = _ar1_levels(300, 0.0)

    result = ArimaFitter({"order": (0, 1, 0)}).fit(levels)

    drift = result.coefficients["const"]
    assert drift == pytest.approx(np.diff(levels.to_numpy()).mean())
    np.testing.assert_allclose(
        result.fitted.iloc[1:].to_numpy(), levels.iloc[:-1].to_numpy() + drift
    )
    assert result.diagnostics["nfev"] == 0


def test_coefficient_names():
    smoothed = centered_moving_average(hourly_sine(days=30), 12)

    result = ArimaFitter().fit(smoothed)

    assert set(result.coefficients) == {
        "const", "ar.L1", "ar.L2", "ar.L3", "ar.L4", "ar.L5", "ar.L6", "ma.L1", "sigma2",
    }
    assert len(result.ar_params) == 6
    assert len(result.ma_params) == 1
    assert abs(result.ma_params[0]) <= ArimaFitter.MA_BOUND
    for key in ("llf", "aic", "bic", "nobs", "nfev", "status"):
        assert key in result.diagnostics


def test_recovers_ar1_coefficient():
    levels = _ar1_levels(5000, 0.7)

    result = ArimaFitter({"order": (1, 1, 0)}).fit(levels)

    assert result.coefficients["ar.L1"] == pytest.approx(0.7, abs=0.05)
    assert result.coefficients["sigma2"] == pytest.approx(1.0, abs=0.1)


def test_recovers_arma_coefficients():
    levels = simulate_arima(5000, phi=0.5, theta=0.4)

    result = ArimaFitter({"order": (1, 1, 1)}).fit(levels)

    assert result.coefficients["ar.L1"] == pytest.approx(0.5, abs=0.1)
    assert result.coefficients["ma.L1"] == pytest.approx(0.4, abs=0.1)


def test_input_is_not_modified(sine_series):
    smoothed = centered_moving_average(sine_series, 12)
    snapshot = smoothed.copy()

    ArimaFitter({"order": (2, 1, 1)}).fit(smoothed)

    pd.testing.assert_series_equal(smoothed, snapshot)


def test_insufficient_data_carries_order():
    index = pd.date_range("2016-01-01", periods=8, freq="h")
    series = pd.Series(np.arange(8, dtype=float), index=index)

    with pytest.raises(InsufficientData) as excinfo:
        ArimaFitter({"order": (6, 1, 1)}).fit(series)

    assert excinfo.value.order == (6, 1, 1)
    assert isinstance(excinfo.value, OutlierPipelineError)


def test_all_nan_series_is_insufficient():
    smoothed = centered_moving_average(hourly_sine(days=1), 168)

    with pytest.raises(InsufficientData):
        ArimaFitter().fit(smoothed)


def test_budget_exhaustion_raises_fit_divergence():
    levels = simulate_arima(2000, phi=0.5, theta=0.4)

    with pytest.raises(FitDivergence) as excinfo:
        ArimaFitter({"order": (1, 1, 1), "max_iterations": 1}).fit(levels)

    assert excinfo.value.order == (1, 1, 1)


def test_internal_nan_raises():
    smoothed = centered_moving_average(hourly_sine(days=10), 12)
    smoothed.iloc[100] = np.nan

    with pytest.raises(MalformedInput):
        ArimaFitter().fit(smoothed)


@pytest.mark.parametrize(
    "config",
    [
        {"order": (-1, 1, 1)},
        {"order": (6, 1)},
        {"order": (6, 1.5, 1)},
        {"order": None},
        {"max_iterations": 0},
    ],
)
def test_invalid_configuration_raises(config):
    with pytest.raises(ConfigurationError):
        ArimaFitter(config)
