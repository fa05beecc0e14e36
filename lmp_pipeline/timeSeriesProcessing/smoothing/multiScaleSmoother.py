"""
Multi-scale centered moving average smoother.

Numeric definition, for window w and half = w // 2:
- odd w: s_t = (x_{t-half} + ... + x_{t+half}) / w
- even w: 2xw centered average over w + 1 points,
  s_t = (0.5 * x_{t-half} + x_{t-half+1} + ... + x_{t+half-1} + 0.5 * x_{t+half}) / w

The first and last `half` positions are NaN: no partial windows and no zero
padding, so every defined value is time-aligned with the original series.
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from lmp_pipeline.helpers.configs import PipelineSettings
from lmp_pipeline.helpers.exceptions import ConfigurationError
from lmp_pipeline.helpers.utils import validate_positive_int, validate_required_locals
from lmp_pipeline.timeSeriesProcessing.baseModule.baseMethod import BaseTimeSeriesMethod

__version__ = "1.0.0"


def centered_weights(window: int) -> np.ndarray:
    """
    Weights of the centered moving average.

    Returns:
        np.ndarray: length w for odd w, length w + 1 for even w, sums to 1
    """
    window = validate_positive_int("window", window)
    if window % 2:
        return np.full(window, 1.0 / window)

    weights = np.full(window + 1, 1.0 / window)
    weights[0] = weights[-1] = 0.5 / window
    return weights


def centered_moving_average(series: pd.Series, window: int) -> pd.Series:
    """
    Centered moving average of a series.

    Args:
        series: Input series (not modified)
        window: Window size in observations

    Returns:
        pd.Series: same index and length, NaN on the first and last window // 2 positions

    Raises:
        ConfigurationError: If window is not a positive int
    """
    weights = centered_weights(window)
    half = len(weights) // 2

    values = series.to_numpy(dtype=float)
    smoothed = np.full(len(values), np.nan)
    if len(values) > 2 * half:
        # Kernel is symmetric, convolution equals correlation
        smoothed[half : len(values) - half] = np.convolve(values, weights, mode="valid")

    return pd.Series(smoothed, index=series.index.copy(), name=f"ma_{window}")


class MultiScaleSmoother(BaseTimeSeriesMethod):
    """
    Computes centered moving averages at several window sizes.

    Windows are independent; with n_jobs != 1 they are computed in parallel
    and collected in a final join.
    """

    DEFAULT_CONFIG = {
        **BaseTimeSeriesMethod.DEFAULT_CONFIG,
        "windows": PipelineSettings.SMOOTHING_WINDOWS,
        "n_jobs": 1,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize smoother.

        Args:
            config: Configuration with parameters:
                - windows: list[int] (window sizes, each > 0)
                - n_jobs: int (joblib workers, 1 = sequential)
        """
        merged_config = {**self.DEFAULT_CONFIG, **(config or {})}
        super().__init__(merged_config)

        validate_required_locals(["windows", "n_jobs"], self.config)
        self.windows = self._validate_windows(self.config["windows"])

    def __str__(self) -> str:
        return f"MultiScaleSmoother(windows={self.windows}, n_jobs={self.config['n_jobs']})"

    @staticmethod
    def _validate_windows(windows: Any) -> List[int]:
        if isinstance(windows, (int, np.integer)) and not isinstance(windows, bool):
            windows = [windows]
        try:
            windows = list(windows)
        except TypeError as e:
            raise ConfigurationError(f"windows must be a list of ints, got: {windows!r}") from e
        if not windows:
            raise ConfigurationError("At least one smoothing window is required")

        unique = []
        for window in windows:
            window = validate_positive_int("window", window)
            if window not in unique:
                unique.append(window)
        return unique

    def process(
        self, data: pd.Series, context: Optional[Dict[str, Any]] = None
    ) -> Dict[int, pd.Series]:
        """
        Smooth the observed series at every configured window.

        Args:
            data: Hourly observed series
            context: Unused

        Returns:
            Dict[int, pd.Series]: window -> smoothed series, in configured order
        """
        self.validate_input(data)
        self.log_analysis_start(data)

        results = Parallel(n_jobs=self.config["n_jobs"])(
            delayed(centered_moving_average)(data, window) for window in self.windows
        )
        smoothed = dict(zip(self.windows, results))

        for window, series in smoothed.items():
            defined = int(series.notna().sum())
            if defined == 0:
                logging.warning(
                    f"{self} - window {window} leaves no defined values "
                    f"for a series of length {len(data)}"
                )

        self.log_analysis_complete(f"{len(smoothed)} window(s)")
        return smoothed

    def smooth(self, data: pd.Series, window: int) -> pd.Series:
        """Single window shortcut, the window does not need to be configured."""
        self.validate_input(data)
        return centered_moving_average(data, window)
