"""
Error taxonomy of the outlier detection pipeline.

MalformedInput: unparseable date, wrong column set, unexpected non-numeric value.
InsufficientData: series too short for the configured model order.
FitDivergence: optimizer stopped without converging.
ConfigurationError: invalid window, model order, cutoff or missing parameter.

All errors are ValueError subclasses so callers that only guard against
ValueError (the convention across the helpers) keep working.
"""

from typing import Optional, Tuple


class OutlierPipelineError(ValueError):
    """Base class for all pipeline errors."""


class MalformedInput(OutlierPipelineError):
    """Raw input cannot be normalized into a strictly hourly series."""


class ConfigurationError(OutlierPipelineError):
    """Invalid or missing configuration parameter."""


class _OrderError(OutlierPipelineError):
    """Error raised by the fitter, carries the offending (p, d, q) order."""

    def __init__(self, message: str, order: Optional[Tuple[int, int, int]] = None):
        self.order = tuple(order) if order is not None else None
        if self.order is not None:
            message = f"{message} [order={self.order}]"
        super().__init__(message)


class InsufficientData(_OrderError):
    """Usable series length is shorter than p + d + q + 1."""


class FitDivergence(_OrderError):
    """Parameter estimation did not converge within the iteration budget."""
