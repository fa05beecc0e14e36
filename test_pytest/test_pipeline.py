import logging

import numpy as np
import pandas as pd
import pytest

from lmp_pipeline.helpers.exceptions import InsufficientData, MalformedInput
from lmp_pipeline.timeSeriesProcessing import (
    ArimaFitter,
    MultiScaleSmoother,
    OutlierDetectionPipeline,
    ResidualFlagger,
)
from test_pytest.conftest import hourly_sine, make_wide_table

SPIKE_POSITION = 30 * 24 + 15


@pytest.fixture
def spiked_series():
    series = hourly_sine(days=60)
    local_mean = series.iloc[SPIKE_POSITION - 12 : SPIKE_POSITION + 12].mean()
    series.iloc[SPIKE_POSITION] = 10 * local_mean
    return series


def test_single_spike_is_the_only_outlier(spiked_series):
    result = OutlierDetectionPipeline().detect(spiked_series)

    assert len(result.outliers) == 1
    flag = result.outliers[0]
    assert flag.timestamp == spiked_series.index[SPIKE_POSITION]
    assert flag.value == pytest.approx(spiked_series.iloc[SPIKE_POSITION])
    assert flag.residual > result.cutoff.upper
    assert result.cutoff.source == "derived"


def test_run_from_wide_table_matches_detect(spiked_series):
    table = make_wide_table(
        "01-01-2016", days=60, values=spiked_series.to_numpy().reshape(60, 24)
    )
    pipeline = OutlierDetectionPipeline()

    from_table = pipeline.run(table)
    from_series = pipeline.detect(spiked_series)

    assert from_table.outliers == from_series.outliers
    np.testing.assert_allclose(
        from_table.observed.to_numpy(), spiked_series.to_numpy()
    )


def test_stages_log_in_order(spiked_series, caplog):
    table = make_wide_table(
        "01-01-2016", days=60, values=spiked_series.to_numpy().reshape(60, 24)
    )
    caplog.set_level(logging.INFO)

    OutlierDetectionPipeline().run(table)

    positions = [caplog.text.index(f"Stage {n}:") for n in range(1, 5)]
    assert positions == sorted(positions)


def test_result_exposes_every_stage(spiked_series):
    snapshot = spiked_series.copy()

    result = OutlierDetectionPipeline().detect(spiked_series)

    assert set(result.smoothed) == {3, 12, 24, 72, 168}
    assert result.analysis_window == 12
    assert result.fit.order == (6, 1, 1)
    assert result.residuals.index.equals(spiked_series.index)
    assert result.residuals.iloc[:6].isna().all()
    pd.testing.assert_series_equal(spiked_series, snapshot)

    summary = result.summary()
    assert summary["outliers"] == 1
    assert summary["points"] == 60 * 24
    assert summary["order"] == (6, 1, 1)

    frame = result.outliers_frame()
    assert len(frame) == 1


def test_analysis_window_is_added_when_not_configured(spiked_series):
    pipeline = OutlierDetectionPipeline(
        smoother=MultiScaleSmoother({"windows": [3, 24]}), analysis_window=12
    )

    result = pipeline.detect(spiked_series)

    assert list(result.smoothed) == [3, 24, 12]
    assert len(result.outliers) == 1


def test_fixed_cutoff_is_used(spiked_series):
    pipeline = OutlierDetectionPipeline(flagger=ResidualFlagger({"cutoff": 1000.0}))

    result = pipeline.detect(spiked_series)

    assert result.cutoff.source == "fixed"
    assert result.outliers == ()


def test_insufficient_data_propagates():
    pipeline = OutlierDetectionPipeline(analysis_window=168)

    with pytest.raises(InsufficientData) as excinfo:
        pipeline.detect(hourly_sine(days=3))

    assert excinfo.value.order == (6, 1, 1)


def test_malformed_input_propagates():
    table = make_wide_table("01-01-2016", days=3).drop(columns=["HE5"])

    with pytest.raises(MalformedInput):
        OutlierDetectionPipeline().run(table)


def test_from_env(clean_env):
    clean_env.setenv("LMP_ARIMA_ORDER", "2,1,0")
    clean_env.setenv("LMP_OUTLIER_CUTOFF", "25")
    clean_env.setenv("LMP_SMOOTHING_WINDOWS", "3,24")
    clean_env.setenv("LMP_ANALYSIS_WINDOW", "24")

    pipeline = OutlierDetectionPipeline.from_env()

    assert isinstance(pipeline.fitter, ArimaFitter)
    assert pipeline.fitter.order == (2, 1, 0)
    assert pipeline.flagger.config["cutoff"] == 25.0
    assert pipeline.smoother.windows == [3, 24]
    assert pipeline.analysis_window == 24
