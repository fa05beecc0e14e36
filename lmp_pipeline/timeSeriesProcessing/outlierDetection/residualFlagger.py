"""
Residual computation and threshold-based outlier flagging.

Residuals are raw observed values minus the fitted values of a model that was
fit on the smoothed series. Short-lived spikes are absorbed by the smoothing,
not by the fit, so they show up as large positive residuals.

Cutoff:
- fixed: a configured literal c (> 0), lower fence -c when symmetric
- derived (default): Q3 + k * IQR of the residual distribution, lower fence
  Q1 - k * IQR, optionally restricted to a reference period

Only residuals above the upper cutoff are flagged unless symmetric=True.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from lmp_pipeline.helpers.configs import PipelineSettings
from lmp_pipeline.helpers.exceptions import ConfigurationError, InsufficientData
from lmp_pipeline.helpers.utils import validate_required_locals
from lmp_pipeline.timeSeriesProcessing.baseModule.baseMethod import BaseTimeSeriesMethod

__version__ = "1.0.0"


@dataclass(frozen=True)
class OutlierFlag:
    """One flagged observation."""

    timestamp: pd.Timestamp
    value: float
    residual: float


@dataclass(frozen=True)
class Cutoff:
    """Flagging fences and how they were obtained."""

    upper: float
    lower: float
    source: str
    q1: Optional[float] = None
    q3: Optional[float] = None
    iqr: Optional[float] = None
    sample_size: Optional[int] = None


def compute_residuals(observed: pd.Series, fitted: pd.Series) -> pd.Series:
    """
    Residual = observed - fitted, aligned on the observed index.

    NaN where the fitted value is undefined.
    """
    aligned = fitted.reindex(observed.index)
    return (observed.astype(float) - aligned).rename("residual")


def derive_cutoff(
    residuals: pd.Series,
    iqr_multiplier: float = PipelineSettings.IQR_MULTIPLIER,
    reference_period: Optional[Tuple[Any, Any]] = None,
) -> Cutoff:
    """
    Derive fences from the residual distribution.

    Args:
        residuals: Residual series (NaN ignored)
        iqr_multiplier: k in Q3 + k * IQR
        reference_period: Optional (start, end) label slice of the representative period

    Returns:
        Cutoff with upper = Q3 + k * IQR and lower = Q1 - k * IQR

    Raises:
        InsufficientData: If no defined residual falls in the sample
    """
    sample = residuals.dropna()
    if reference_period is not None:
        start, end = reference_period
        sample = sample.loc[start:end]

    if sample.empty:
        raise InsufficientData(
            f"No defined residuals to derive a cutoff from (reference_period={reference_period})"
        )

    q1, q3 = (float(v) for v in sample.quantile([0.25, 0.75]))
    iqr = q3 - q1
    return Cutoff(
        upper=q3 + iqr_multiplier * iqr,
        lower=q1 - iqr_multiplier * iqr,
        source="derived",
        q1=q1,
        q3=q3,
        iqr=iqr,
        sample_size=int(len(sample)),
    )


def flags_to_frame(flags) -> pd.DataFrame:
    """Tabular view of flags for reporting collaborators."""
    return pd.DataFrame(
        [asdict(flag) for flag in flags], columns=["timestamp", "value", "residual"]
    )


class ResidualFlagger(BaseTimeSeriesMethod):
    """
    Flags observations whose residual exceeds the cutoff.

    Output is a tuple of OutlierFlag in timestamp order. An empty tuple is a
    normal result.
    """

    DEFAULT_CONFIG = {
        **BaseTimeSeriesMethod.DEFAULT_CONFIG,
        "cutoff": None,
        "iqr_multiplier": PipelineSettings.IQR_MULTIPLIER,
        "symmetric": False,
        "reference_period": None,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize flagger.

        Args:
            config: Configuration with parameters:
                - cutoff: float or None (fixed cutoff > 0, derived per run when None)
                - iqr_multiplier: float (k in Q3 + k * IQR, > 0)
                - symmetric: bool (also flag residuals below the lower fence)
                - reference_period: (start, end) or None (sample used for derivation)
        """
        merged_config = {**self.DEFAULT_CONFIG, **(config or {})}
        super().__init__(merged_config)

        validate_required_locals(["iqr_multiplier"], self.config)

        cutoff = self.config["cutoff"]
        if cutoff is not None and (
            isinstance(cutoff, bool) or not isinstance(cutoff, (int, float)) or not cutoff > 0
        ):
            raise ConfigurationError(f"cutoff must be a positive number, got: {cutoff!r}")

        multiplier = self.config["iqr_multiplier"]
        if isinstance(multiplier, bool) or not isinstance(multiplier, (int, float)) or not multiplier > 0:
            raise ConfigurationError(
                f"iqr_multiplier must be a positive number, got: {multiplier!r}"
            )

    def __str__(self) -> str:
        cutoff = self.config["cutoff"]
        mode = f"cutoff={cutoff}" if cutoff is not None else f"k={self.config['iqr_multiplier']}"
        return f"ResidualFlagger({mode}, symmetric={self.config['symmetric']})"

    def process(
        self, data: pd.Series, context: Optional[Dict[str, Any]] = None
    ) -> Tuple[OutlierFlag, ...]:
        """
        Compute residuals against context['fitted'] and flag them.

        Args:
            data: Observed hourly series
            context: {'fitted': pd.Series}
        """
        validate_required_locals(["fitted"], context or {})
        residuals = compute_residuals(data, context["fitted"])
        return self.flag(data, residuals)

    def resolve_cutoff(self, residuals: pd.Series) -> Cutoff:
        """Fixed cutoff when configured, otherwise derived from the residuals."""
        cutoff = self.config["cutoff"]
        if cutoff is not None:
            return Cutoff(upper=float(cutoff), lower=-float(cutoff), source="fixed")

        derived = derive_cutoff(
            residuals,
            iqr_multiplier=self.config["iqr_multiplier"],
            reference_period=self.config["reference_period"],
        )
        logging.info(
            f"{self} - Derived cutoff {derived.upper:.6g} "
            f"(Q3={derived.q3:.6g}, IQR={derived.iqr:.6g}, n={derived.sample_size})"
        )
        return derived

    def flag(
        self,
        observed: pd.Series,
        residuals: pd.Series,
        cutoff: Optional[Cutoff] = None,
    ) -> Tuple[OutlierFlag, ...]:
        """
        Flag points whose residual exceeds the cutoff.

        Args:
            observed: Observed series, supplies the flagged values
            residuals: Residuals aligned with observed
            cutoff: Precomputed cutoff, resolved from config when None

        Returns:
            tuple of OutlierFlag in timestamp order
        """
        defined = residuals.dropna()
        if defined.empty:
            logging.info(f"{self} - No defined residuals, nothing to flag")
            return ()

        cutoff = cutoff or self.resolve_cutoff(residuals)

        mask = defined > cutoff.upper
        if self.config["symmetric"]:
            mask |= defined < cutoff.lower

        flagged = defined[mask].sort_index()
        values = observed.reindex(flagged.index)

        flags = tuple(
            OutlierFlag(
                timestamp=timestamp,
                value=float(value),
                residual=float(residual),
            )
            for timestamp, value, residual in zip(
                flagged.index, values.to_numpy(dtype=float), flagged.to_numpy(dtype=float)
            )
        )

        share = len(flags) / len(defined)
        logging.info(
            f"{self} - Flagged {len(flags)} of {len(defined)} point(s) ({share:.4%})"
        )
        if np.isnan(values.to_numpy(dtype=float)).any():
            logging.warning(f"{self} - Some flagged residuals have no observed value")

        return flags
