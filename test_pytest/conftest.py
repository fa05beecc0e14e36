import datetime

import numpy as np
import pandas as pd
import pytest

from lmp_pipeline.helpers.configs import PipelineSettings

HOUR_COLUMNS = PipelineSettings.get_hour_columns()
LMP_ENV_VARS = [
    "LMP_DATE_COLUMN",
    "LMP_HOUR_COLUMN_PREFIX",
    "LMP_DST_REPLACEMENTS_JSON",
    "LMP_SMOOTHING_WINDOWS",
    "LMP_ANALYSIS_WINDOW",
    "LMP_ARIMA_ORDER",
    "LMP_MAX_ITERATIONS",
    "LMP_OUTLIER_CUTOFF",
    "LMP_IQR_MULTIPLIER",
    "LMP_SYMMETRIC_FLAGS",
]


def make_wide_table(start: str, days: int, values=None, dst_column: bool = True) -> pd.DataFrame:
    """
    Wide daily table with Date (MM-DD-YYYY) and HE1..HE24 columns.

    values: (days, 24) array, defaults to 100 * day + hour label
    """
    first = datetime.datetime.strptime(start, "%m-%d-%Y").date()
    dates = [first + datetime.timedelta(days=i) for i in range(days)]
    if values is None:
        values = np.array(
            [[100.0 * day + hour for hour in range(1, 25)] for day in range(days)]
        )

    table = pd.DataFrame(values, columns=HOUR_COLUMNS)
    table.insert(0, "Date", [d.strftime("%m-%d-%Y") for d in dates])
    if dst_column:
        table["HE25"] = np.nan
    return table


def hourly_sine(days: int, mean: float = 10.0, amplitude: float = 9.0, period: int = 24,
                start: str = "2016-01-01") -> pd.Series:
    """Perfectly periodic hourly series."""
    t = np.arange(days * 24)
    index = pd.date_range(start, periods=len(t), freq="h", name="timestamp")
    return pd.Series(
        mean + amplitude * np.sin(2 * np.pi * t / period), index=index, name="price"
    )


def simulate_arima(n: int, phi: float, theta: float, seed: int = 7) -> pd.Series:
    """Levels of an ARIMA(1, 1, 1) process with unit innovations."""
    from scipy.signal import lfilter

    rng = np.random.default_rng(seed)
    shocks = rng.normal(size=n)
    differenced = lfilter([1.0, theta], [1.0, -phi], shocks)
    index = pd.date_range("2016-01-01", periods=n, freq="h", name="timestamp")
    return pd.Series(100 + np.cumsum(differenced), index=index, name="price")


@pytest.fixture
def wide_table():
    return make_wide_table("01-05-2016", days=5)


@pytest.fixture
def sine_series():
    return hourly_sine(days=60)


@pytest.fixture
def clean_env(monkeypatch):
    for name in LMP_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
