import numpy as np
import pandas as pd
import pytest

from lmp_pipeline.timeSeriesProcessing.autoregression.stationarityMethod import (
    StationarityMethod,
    check_stationarity,
)


def _hourly(values):
    index = pd.date_range("2016-01-01", periods=len(values), freq="h")
    return pd.Series(np.asarray(values, dtype=float), index=index)


@pytest.fixture
def quadratic_trend():
    rng = np.random.default_rng(3)
    t = np.arange(1000)
    return _hourly(0.01 * t**2 + rng.normal(size=1000))


def test_trend_needs_differencing(quadratic_trend):
    raw = StationarityMethod({"d": 0}).process(quadratic_trend)
    differenced = StationarityMethod({"d": 2}).process(quadratic_trend)

    assert raw["status"] == "success"
    assert raw["result"]["is_stationary"] is False
    assert differenced["result"]["is_stationary"] is True
    assert differenced["metadata"]["differencing_order"] == 2
    assert differenced["result"]["adf_status"] == "completed"


def test_white_noise_is_stationary():
    rng = np.random.default_rng(5)
    response = check_stationarity(_hourly(rng.normal(size=500)), d=0)

    assert response["result"]["is_stationary"] is True
    assert response["result"]["adf_pvalue"] < 0.05
    assert "5%" in response["result"]["adf_critical_values"]


def test_nan_edges_are_trimmed(quadratic_trend):
    series = quadratic_trend.copy()
    series.iloc[:12] = np.nan
    series.iloc[-12:] = np.nan

    response = check_stationarity(series, d=2)

    assert response["status"] == "success"
    assert response["result"]["is_stationary"] is True


def test_short_series_is_inconclusive():
    response = check_stationarity(_hourly(np.arange(10) ** 1.5), d=1)

    assert response["status"] == "success"
    assert response["result"]["is_stationary"] is None
    assert response["result"]["adf_status"] == "insufficient_data"


def test_linear_trend_is_constant_after_differencing():
    response = check_stationarity(_hourly(2.0 + 0.25 * np.arange(200)), d=1)

    assert response["result"]["is_stationary"] is True
    assert response["result"]["series_type"] == "constant"


def test_wrong_input_is_reported_not_raised():
    response = StationarityMethod().process(pd.Series([1.0, 2.0, 3.0]))

    assert response["status"] == "error"
    assert response["metadata"]["error_type"] == "MalformedInput"


def test_alpha_is_clamped():
    method = StationarityMethod({"adf_alpha": 0.9})

    assert method.config["adf_alpha"] == 0.499
