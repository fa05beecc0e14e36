"""
Time series processing stages of the outlier detection pipeline.

Architecture:
- Level 1: OutlierDetectionPipeline (explicit stage composition)
- Level 2: Stages (TimeNormalizer, MultiScaleSmoother, ArimaFitter, ResidualFlagger)
- Level 3: BaseTimeSeriesMethod (config merge, validation, logging)
"""

__version__ = "1.0.0"

from lmp_pipeline.timeSeriesProcessing.autoregression.arimaFitter import (
    ArimaFitResult,
    ArimaFitter,
)
from lmp_pipeline.timeSeriesProcessing.autoregression.stationarityMethod import (
    StationarityMethod,
    check_stationarity,
)
from lmp_pipeline.timeSeriesProcessing.normalization.timeNormalizer import (
    TimeNormalizer,
    load_raw_table,
)
from lmp_pipeline.timeSeriesProcessing.outlierDetection.residualFlagger import (
    Cutoff,
    OutlierFlag,
    ResidualFlagger,
    compute_residuals,
    derive_cutoff,
    flags_to_frame,
)
from lmp_pipeline.timeSeriesProcessing.pipeline import (
    OutlierDetectionPipeline,
    PipelineResult,
)
from lmp_pipeline.timeSeriesProcessing.smoothing.multiScaleSmoother import (
    MultiScaleSmoother,
    centered_moving_average,
)

__all__ = [
    "TimeNormalizer",
    "load_raw_table",
    "MultiScaleSmoother",
    "centered_moving_average",
    "ArimaFitter",
    "ArimaFitResult",
    "StationarityMethod",
    "check_stationarity",
    "ResidualFlagger",
    "OutlierFlag",
    "Cutoff",
    "compute_residuals",
    "derive_cutoff",
    "flags_to_frame",
    "OutlierDetectionPipeline",
    "PipelineResult",
]
