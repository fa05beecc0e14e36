"""
Stationarity precondition check for the ARIMA fitter.

Runs the Augmented Dickey-Fuller (ADF) unit root test on the d-times
differenced series. Fitting a non-stationary series with d chosen too low
degrades fit quality silently, so the check reports instead of raising.

Mathematical references:
- Said & Dickey (1984): "Testing for Unit Roots in AR-MA Models"
- Hamilton (1994): "Time Series Analysis", Chapter 17
"""

import logging
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.stattools import adfuller

from lmp_pipeline.helpers.configs import PipelineSettings
from lmp_pipeline.helpers.utils import (
    difference,
    valid_range,
    validate_positive_int,
    validate_required_locals,
)
from lmp_pipeline.timeSeriesProcessing.baseModule.baseMethod import BaseTimeSeriesMethod

__version__ = "1.0.0"


class StationarityMethod(BaseTimeSeriesMethod):
    """
    ADF stationarity check of the differenced series.

    - ADF: Tests H0=unit root (non-stationary). p < alpha → stationary

    Minimum observations: 20 (Said & Dickey, 1984)
    """

    DEFAULT_CONFIG = {
        **BaseTimeSeriesMethod.DEFAULT_CONFIG,
        "d": PipelineSettings.ARIMA_ORDER[1],
        "adf_alpha": PipelineSettings.ADF_ALPHA,
        "min_adf_observations": 20,
        "autolag": "AIC",
        "maxlag": None,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize stationarity check.

        Args:
            config: Configuration with parameters:
                - d: int (differencing order applied before the test)
                - adf_alpha: float (significance level, typically 0.05)
                - min_adf_observations: int (minimum 20)
                - autolag: str (lag selection criterion of adfuller)
                - maxlag: int or None (adfuller default when None)
        """
        merged_config = {**self.DEFAULT_CONFIG, **(config or {})}
        super().__init__(merged_config)

        validate_required_locals(["d", "adf_alpha", "min_adf_observations"], self.config)
        self.config["d"] = validate_positive_int("d", self.config["d"], allow_zero=True)

        # Validate alpha parameter (0 < alpha < 0.5 for statistical tests)
        alpha = self.config["adf_alpha"]
        if not (0 < alpha < 0.5):
            logging.warning(
                f"{self} - adf_alpha={alpha} outside typical range (0, 0.5). "
                f"Clamping to [0.001, 0.499]"
            )
            self.config["adf_alpha"] = max(0.001, min(0.499, alpha))

    def __str__(self) -> str:
        """String representation for logging."""
        return (
            f"StationarityMethod(d={self.config['d']}, "
            f"adf_alpha={self.config['adf_alpha']})"
        )

    def process(
        self, data: pd.Series, context: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Execute stationarity check on the differenced series.

        Workflow:
        1. Trim NaN edges, difference d times
        2. Constant series check (early exit if std < 1e-10)
        3. ADF test

        Args:
            data: Time series (typically the smoothed analysis window)
            context: Unused

        Returns:
            Dict with standard format:
            {
                'status': 'success' | 'error',
                'result': {
                    'is_stationary': bool or None,
                    'adf_pvalue': float,
                    'adf_statistic': float,
                    ...
                },
                'metadata': {...}
            }
        """
        try:
            self.validate_input(data, allow_nan=True)
            self.log_analysis_start(data)

            differenced = pd.Series(
                difference(valid_range(data).to_numpy(dtype=float), self.config["d"])
            )

            if len(differenced) > 1 and differenced.std() < 1e-10:
                logging.warning(f"{self} - Constant differenced series detected (std < 1e-10)")
                result = {
                    "is_stationary": True,
                    "series_type": "constant",
                    "adf_pvalue": np.nan,
                    "adf_statistic": np.nan,
                    "adf_observations_used": len(differenced),
                    "adf_status": "constant_series",
                }
            else:
                result = self._adf_test(differenced)

            response = self.create_success_response(
                result, data, {"differencing_order": self.config["d"]}
            )
            self.log_analysis_complete(f"is_stationary={result['is_stationary']}")
            return response

        except Exception as e:
            return self.handle_error(
                e, "stationarity analysis", {"data_length": len(data)}
            )

    def _adf_test(self, data: pd.Series) -> Dict[str, Any]:
        """
        Augmented Dickey-Fuller test for unit root.

        Mathematical formula:
        Δy_t = α + γy_{t-1} + δ_1Δy_{t-1} + ... + δ_pΔy_{t-p} + ε_t

        H0: γ = 0 (unit root exists, non-stationary)
        H1: γ < 0 (no unit root, stationary)

        Decision: p-value < alpha → reject H0 → stationary
        """
        min_obs = self.config["min_adf_observations"]

        if len(data) < min_obs:
            logging.warning(
                f"{self} - Insufficient data for ADF: {len(data)} < {min_obs}. Test skipped"
            )
            return {
                "is_stationary": None,  # Unknown, not False
                "adf_pvalue": np.nan,
                "adf_statistic": np.nan,
                "adf_observations_used": len(data),
                "adf_status": "insufficient_data",
            }

        adf_result = adfuller(
            data, maxlag=self.config["maxlag"], autolag=self.config["autolag"]
        )
        adf_pvalue = float(adf_result[1])

        return {
            "is_stationary": bool(adf_pvalue < self.config["adf_alpha"]),
            "adf_pvalue": adf_pvalue,
            "adf_statistic": float(adf_result[0]),
            "adf_observations_used": int(adf_result[3]),
            "adf_lags_used": int(adf_result[2]),
            "adf_critical_values": {k: float(v) for k, v in adf_result[4].items()},
            "adf_status": "completed",
        }


def check_stationarity(
    series: pd.Series, d: int = 1, alpha: float = PipelineSettings.ADF_ALPHA
) -> Dict[str, Any]:
    """Shortcut for StationarityMethod({'d': d, 'adf_alpha': alpha}).process(series)."""
    return StationarityMethod({"d": d, "adf_alpha": alpha}).process(series)
