import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import pandas as pd

from lmp_pipeline.helpers.configs import PipelineSettings
from lmp_pipeline.helpers.exceptions import OutlierPipelineError
from lmp_pipeline.helpers.utils import validate_positive_int
from lmp_pipeline.timeSeriesProcessing.autoregression.arimaFitter import (
    ArimaFitResult,
    ArimaFitter,
)
from lmp_pipeline.timeSeriesProcessing.autoregression.stationarityMethod import (
    StationarityMethod,
)
from lmp_pipeline.timeSeriesProcessing.normalization.timeNormalizer import TimeNormalizer
from lmp_pipeline.timeSeriesProcessing.outlierDetection.residualFlagger import (
    Cutoff,
    OutlierFlag,
    ResidualFlagger,
    compute_residuals,
    flags_to_frame,
)
from lmp_pipeline.timeSeriesProcessing.smoothing.multiScaleSmoother import (
    MultiScaleSmoother,
)


@dataclass(frozen=True)
class PipelineResult:
    """Artifacts of one pipeline run, each stage output is an independent object."""

    observed: pd.Series
    smoothed: Dict[int, pd.Series]
    analysis_window: int
    fit: ArimaFitResult
    residuals: pd.Series
    cutoff: Cutoff
    outliers: Tuple[OutlierFlag, ...]
    stationarity: Dict[str, Any] = field(default_factory=dict)

    def outliers_frame(self) -> pd.DataFrame:
        return flags_to_frame(self.outliers)

    def summary(self) -> Dict[str, Any]:
        """Small JSON-friendly overview of the run."""
        return {
            "points": len(self.observed),
            "start": self.observed.index[0] if len(self.observed) else None,
            "end": self.observed.index[-1] if len(self.observed) else None,
            "windows": list(self.smoothed.keys()),
            "analysis_window": self.analysis_window,
            "order": self.fit.order,
            "aic": self.fit.diagnostics.get("aic"),
            "cutoff": self.cutoff.upper,
            "cutoff_source": self.cutoff.source,
            "is_stationary": self.stationarity.get("result", {}).get("is_stationary"),
            "outliers": len(self.outliers),
        }


class OutlierDetectionPipeline:
    """
    Outlier detection pipeline

    raw table -> observed series -> smoothed series -> fitted series
    -> residuals -> outlier flags

    Stages are composed explicitly, no stage mutates the output of another.
    """

    def __init__(
        self,
        normalizer: Optional[TimeNormalizer] = None,
        smoother: Optional[MultiScaleSmoother] = None,
        fitter: Optional[ArimaFitter] = None,
        flagger: Optional[ResidualFlagger] = None,
        analysis_window: int = PipelineSettings.ANALYSIS_WINDOW,
        check_stationarity: bool = True,
    ):
        """Initialize pipeline with stages, defaults are built for missing ones"""
        self.normalizer = normalizer or TimeNormalizer()
        self.smoother = smoother or MultiScaleSmoother()
        self.fitter = fitter or ArimaFitter()
        self.flagger = flagger or ResidualFlagger()
        self.analysis_window = validate_positive_int("analysis_window", analysis_window)
        self.check_stationarity = check_stationarity

    @classmethod
    def from_env(cls) -> "OutlierDetectionPipeline":
        """Build a pipeline from PipelineSettings.from_env()."""
        settings = PipelineSettings.from_env()
        return cls(
            normalizer=TimeNormalizer(settings["normalizer"]),
            smoother=MultiScaleSmoother(settings["smoother"]),
            fitter=ArimaFitter(settings["fitter"]),
            flagger=ResidualFlagger(settings["flagger"]),
            analysis_window=settings["analysis_window"],
        )

    def run(self, raw: pd.DataFrame) -> PipelineResult:
        """Process a wide daily table through all pipeline stages"""
        observed = self._run_stage(1, str(self.normalizer), self.normalizer.process, raw)
        return self.detect(observed, first_stage=2)

    def detect(self, observed: pd.Series, first_stage: int = 1) -> PipelineResult:
        """Process an already normalized hourly series"""
        stage = first_stage

        smoothed = self._run_stage(stage, str(self.smoother), self.smoother.process, observed)
        if self.analysis_window not in smoothed:
            smoothed = {
                **smoothed,
                self.analysis_window: self.smoother.smooth(observed, self.analysis_window),
            }
        analysis_series = smoothed[self.analysis_window]

        stationarity = {}
        if self.check_stationarity:
            stationarity = self._check_precondition(analysis_series)

        stage += 1
        fit = self._run_stage(stage, str(self.fitter), self.fitter.fit, analysis_series)

        stage += 1
        residuals, cutoff, outliers = self._run_stage(
            stage, str(self.flagger), self._flag, observed, fit.fitted
        )

        return PipelineResult(
            observed=observed,
            smoothed=smoothed,
            analysis_window=self.analysis_window,
            fit=fit,
            residuals=residuals,
            cutoff=cutoff,
            outliers=outliers,
            stationarity=stationarity,
        )

    def _flag(self, observed: pd.Series, fitted: pd.Series):
        residuals = compute_residuals(observed, fitted)
        if residuals.dropna().empty:
            return residuals, Cutoff(upper=float("nan"), lower=float("nan"), source="none"), ()
        cutoff = self.flagger.resolve_cutoff(residuals)
        return residuals, cutoff, self.flagger.flag(observed, residuals, cutoff)

    def _check_precondition(self, series: pd.Series) -> Dict[str, Any]:
        check = StationarityMethod({"d": self.fitter.order[1]})
        response = check.process(series)
        if response["status"] == "error":
            logging.warning(f"Stationarity check failed: {response['message']}")
        elif response["result"]["is_stationary"] is False:
            logging.warning(
                f"Differenced series (d={self.fitter.order[1]}) is not stationary "
                f"(ADF p-value={response['result']['adf_pvalue']:.4f}), "
                f"fit quality may degrade"
            )
        return response

    @staticmethod
    def _run_stage(number: int, name: str, func: Callable, *args):
        try:
            logging.info(f"Stage {number}: {name}")
            result = func(*args)
            logging.info(f"Stage {number}: {name} - completed")
            return result
        except Exception as e:
            logging.error(f"Error in stage {number} {name}: {e}")
            if not isinstance(e, OutlierPipelineError):
                logging.debug("Error details:", exc_info=True)
            raise
