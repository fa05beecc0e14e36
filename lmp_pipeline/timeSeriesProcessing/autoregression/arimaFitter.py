"""
ARIMA(p, d, q) fitter by conditional least squares.

Model, on z_t = (Δ^d x)_t - c where c is the sample mean of the differenced
series:

    z_t = φ_1 z_{t-1} + ... + φ_p z_{t-p} + e_t + θ_1 e_{t-1} + ... + θ_q e_{t-q}

Estimation:
1. Difference the smoothed series d times and demean it.
2. Start values: φ from an ordinary least squares regression of z_t on its
   p lags, θ = 0.
3. Minimize Σ e_t² with scipy.optimize.least_squares (trust region
   reflective). Pre-sample values and errors are 0. θ is bounded to
   (-MA_BOUND, MA_BOUND) so the error recursion stays invertible.
4. Innovations come from one IIR filter pass:
   e = lfilter([1, -φ_1, ..., -φ_p], [1, θ_1, ..., θ_q], z)

One-step-ahead fitted levels are x̂_t = x_t - e_t, defined for every index of
the valid range except the first d ones.

Stationarity of the differenced series is a caller precondition, see
stationarityMethod.StationarityMethod.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import least_squares
from scipy.signal import lfilter

from lmp_pipeline.helpers.configs import PipelineSettings, parse_order
from lmp_pipeline.helpers.exceptions import (
    FitDivergence,
    InsufficientData,
    MalformedInput,
)
from lmp_pipeline.helpers.utils import (
    difference,
    valid_range,
    validate_positive_int,
    validate_required_locals,
)
from lmp_pipeline.timeSeriesProcessing.baseModule.baseMethod import BaseTimeSeriesMethod

__version__ = "1.0.0"


@dataclass(frozen=True)
class ArimaFitResult:
    """
    Output of ArimaFitter.fit.

    fitted and residuals share the index of the smoothed series' valid range;
    residuals are on the smoothed scale (model innovations), not raw residuals.
    """

    order: Tuple[int, int, int]
    fitted: pd.Series
    residuals: pd.Series
    coefficients: Dict[str, float] = field(default_factory=dict)
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def ar_params(self) -> np.ndarray:
        p = self.order[0]
        return np.array([self.coefficients[f"ar.L{i}"] for i in range(1, p + 1)])

    @property
    def ma_params(self) -> np.ndarray:
        q = self.order[2]
        return np.array([self.coefficients[f"ma.L{i}"] for i in range(1, q + 1)])


class ArimaFitter(BaseTimeSeriesMethod):
    """
    Fits one ARIMA(p, d, q) model on the defined part of a smoothed series.

    Errors:
    - InsufficientData: usable length < p + d + q + 1
    - FitDivergence: evaluation budget exhausted or non-finite estimates
    - MalformedInput: NaN inside the valid range
    - ConfigurationError: negative orders, non-positive max_iterations
    """

    MA_BOUND = 0.99

    DEFAULT_CONFIG = {
        **BaseTimeSeriesMethod.DEFAULT_CONFIG,
        "order": PipelineSettings.ARIMA_ORDER,
        "max_iterations": PipelineSettings.MAX_ITERATIONS,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize fitter.

        Args:
            config: Configuration with parameters:
                - order: (p, d, q) non-negative ints, default (6, 1, 1)
                - max_iterations: int (least_squares max_nfev)
        """
        merged_config = {**self.DEFAULT_CONFIG, **(config or {})}
        super().__init__(merged_config)

        validate_required_locals(["order", "max_iterations"], self.config)

        p, d, q = parse_order(self.config["order"])
        self.order = (
            validate_positive_int("p", p, allow_zero=True),
            validate_positive_int("d", d, allow_zero=True),
            validate_positive_int("q", q, allow_zero=True),
        )
        self.max_iterations = validate_positive_int(
            "max_iterations", self.config["max_iterations"]
        )

    def __str__(self) -> str:
        return f"ArimaFitter(order={self.order})"

    def process(
        self, data: pd.Series, context: Optional[Dict[str, Any]] = None
    ) -> ArimaFitResult:
        return self.fit(data)

    def fit(self, smoothed: pd.Series) -> ArimaFitResult:
        """
        Fit the model and produce one-step-ahead in-sample fitted values.

        Args:
            smoothed: Smoothed series, NaN allowed only at the edges

        Returns:
            ArimaFitResult
        """
        self.validate_input(smoothed, allow_nan=True)

        usable = valid_range(smoothed)
        if usable.isnull().any():
            raise MalformedInput(
                f"{self} - {int(usable.isnull().sum())} NaN value(s) inside the valid range"
            )

        p, d, q = self.order
        min_length = p + d + q + 1
        if len(usable) < min_length:
            raise InsufficientData(
                f"{self} - Usable length {len(usable)} < p + d + q + 1 = {min_length}",
                order=self.order,
            )

        logging.info(f"{self} - Fitting on {len(usable)} points")

        levels = usable.to_numpy(dtype=float)
        differenced = difference(levels, d)
        const = float(differenced.mean())
        z = differenced - const

        start = self._initial_params(z)
        params, solution_info = self._optimize(z, start)
        errors = self._innovations(z, params)

        fitted_values = np.full(len(levels), np.nan)
        fitted_values[d:] = levels[d:] - errors
        residual_values = np.full(len(levels), np.nan)
        residual_values[d:] = errors

        coefficients = self._name_coefficients(const, params, errors)
        diagnostics = {
            **solution_info,
            **self._information_criteria(errors, len(params) + 1),
            "nobs": int(len(errors)),
        }

        logging.info(
            f"{self} - Fit completed: sigma2={coefficients['sigma2']:.6g}, "
            f"aic={diagnostics['aic']:.6g}, nfev={diagnostics['nfev']}"
        )

        return ArimaFitResult(
            order=self.order,
            fitted=pd.Series(fitted_values, index=usable.index.copy(), name="fitted"),
            residuals=pd.Series(
                residual_values, index=usable.index.copy(), name="model_residual"
            ),
            coefficients=coefficients,
            diagnostics=diagnostics,
        )

    def _innovations(self, z: np.ndarray, params: np.ndarray) -> np.ndarray:
        p = self.order[0]
        phi, theta = params[:p], params[p:]
        return lfilter(np.r_[1.0, -phi], np.r_[1.0, theta], z)

    def _initial_params(self, z: np.ndarray) -> np.ndarray:
        """OLS estimate of the AR part, MA part starts at zero."""
        p, _, q = self.order
        phi = np.zeros(p)

        if p > 0 and len(z) > p:
            lags = np.column_stack([z[p - i - 1 : len(z) - i - 1] for i in range(p)])
            phi, *_ = np.linalg.lstsq(lags, z[p:], rcond=None)
            if not np.all(np.isfinite(phi)):
                logging.warning(f"{self} - OLS start values not finite, using zeros")
                phi = np.zeros(p)

        return np.r_[phi, np.zeros(q)]

    def _optimize(self, z: np.ndarray, start: np.ndarray):
        """
        Conditional least squares refinement.

        Returns:
            tuple: (params, info dict)

        Raises:
            FitDivergence: Budget exhausted or non-finite solution
        """
        p, _, q = self.order
        if p + q == 0:
            return start, {
                "converged": True,
                "nfev": 0,
                "status": 1,
                "message": "no parameters to estimate",
            }

        lower = np.r_[np.full(p, -np.inf), np.full(q, -self.MA_BOUND)]
        upper = np.r_[np.full(p, np.inf), np.full(q, self.MA_BOUND)]

        solution = least_squares(
            lambda params: self._innovations(z, params),
            start,
            bounds=(lower, upper),
            method="trf",
            max_nfev=self.max_iterations,
        )

        if solution.status == 0:
            raise FitDivergence(
                f"{self} - Optimizer did not converge within "
                f"{self.max_iterations} evaluations",
                order=self.order,
            )
        if solution.status < 0 or not np.all(np.isfinite(solution.x)) or not np.isfinite(solution.cost):
            raise FitDivergence(
                f"{self} - Optimizer failed: {solution.message}", order=self.order
            )

        return solution.x, {
            "converged": True,
            "nfev": int(solution.nfev),
            "status": int(solution.status),
            "message": str(solution.message),
        }

    def _name_coefficients(
        self, const: float, params: np.ndarray, errors: np.ndarray
    ) -> Dict[str, float]:
        p, _, q = self.order
        coefficients = {"const": const}
        coefficients.update({f"ar.L{i + 1}": float(params[i]) for i in range(p)})
        coefficients.update({f"ma.L{i + 1}": float(params[p + i]) for i in range(q)})
        coefficients["sigma2"] = float(np.mean(errors**2)) if len(errors) else float("nan")
        return coefficients

    @staticmethod
    def _information_criteria(errors: np.ndarray, n_params: int) -> Dict[str, float]:
        """Gaussian conditional log-likelihood, AIC and BIC (sigma2 counted as a parameter)."""
        n = len(errors)
        sigma2 = float(np.mean(errors**2)) if n else 0.0
        if n == 0 or sigma2 <= 0:
            return {"llf": float("nan"), "aic": float("nan"), "bic": float("nan")}

        k = n_params + 1
        llf = -0.5 * n * (np.log(2 * np.pi * sigma2) + 1)
        return {
            "llf": float(llf),
            "aic": float(-2 * llf + 2 * k),
            "bic": float(-2 * llf + k * np.log(n)),
        }
