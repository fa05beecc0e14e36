import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import pandas as pd

from lmp_pipeline.helpers.exceptions import InsufficientData, MalformedInput

"""
Common base class for time series processing methods.

Contains base class BaseTimeSeriesMethod, which eliminates code duplication
between the pipeline stages (normalizer, smoother, fitter, flagger) and the
stationarity check.
"""


class BaseTimeSeriesMethod(ABC):
    """
    Common base class for all time series processing methods.

    Contains only common logic:
    - Configuration merge with class defaults
    - Input series validation
    - Standard metadata and response creation
    - Error handling and logging

    Stages never modify their input: every process() call returns a new object.
    """

    # Default base configurations (can be overridden in child classes)
    DEFAULT_CONFIG = {
        "return_detailed_metadata": False,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize base method.

        Args:
            config: Method configuration
        """
        # Merge configuration with defaults
        self.config = {**self.DEFAULT_CONFIG, **(config or {})}
        self.name = self.__class__.__name__

    def __str__(self) -> str:
        """Standard string representation for logging."""
        return f"{self.name}(config_keys={list(self.config.keys())})"

    @abstractmethod
    def process(self, data: Any, context: Optional[Dict[str, Any]] = None) -> Any:
        """
        Execute the processing step.

        Args:
            data: Input of the stage
            context: Additional context

        Returns:
            A new object, the input is left untouched
        """
        pass

    def validate_input(
        self,
        data: pd.Series,
        min_length: Optional[int] = None,
        allow_nan: bool = False,
    ) -> None:
        """
        Common input series validation.

        Args:
            data: Time series for validation
            min_length: Minimum data length
            allow_nan: Whether NaN values are acceptable

        Raises:
            MalformedInput: Wrong type, non-datetime index or unexpected NaN
            InsufficientData: Series shorter than min_length
        """
        if not isinstance(data, pd.Series):
            raise MalformedInput(f"{self} - Expected pd.Series, got {type(data)}")

        if not isinstance(data.index, pd.DatetimeIndex):
            raise MalformedInput(
                f"{self} - Expected DatetimeIndex, got {type(data.index).__name__}"
            )

        if not allow_nan and len(data) > 0 and data.isnull().any():
            raise MalformedInput(
                f"{self} - Time series has {int(data.isnull().sum())} missing values"
            )

        # Check minimum length (if specified)
        if min_length is not None and len(data) < min_length:
            raise InsufficientData(
                f"{self} - Series too short: {len(data)} < {min_length}"
            )

    def create_standard_metadata(
        self,
        data: pd.Series,
        additional_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create standard metadata.

        Args:
            data: Time series
            additional_metadata: Additional metadata

        Returns:
            Dict with standard metadata
        """
        metadata = {
            "method": self.name,
            "data_length": len(data),
            "missing_values": int(data.isnull().sum()),
        }

        # Add detailed metadata if enabled
        if self.config.get("return_detailed_metadata", False):
            metadata["parameters_used"] = self.config.copy()

        if additional_metadata:
            metadata.update(additional_metadata)

        return metadata

    def handle_error(
        self,
        error: Exception,
        operation: str,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Standardized error handling for methods that report instead of raising.

        Args:
            error: Exception
            operation: Operation name where error occurred
            additional_context: Additional error context

        Returns:
            Dict with standard error format
        """
        error_msg = f"Error in {operation}: {str(error)}"
        logging.error(f"{self} - {error_msg}")

        error_response = {
            "status": "error",
            "message": error_msg,
            "metadata": {
                "method": self.name,
                "operation": operation,
                "error_type": type(error).__name__,
            },
        }

        if additional_context:
            error_response["metadata"].update(additional_context)

        return error_response

    def create_success_response(
        self,
        result: Dict[str, Any],
        data: pd.Series,
        additional_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create standard success response.

        Returns:
            Dict with standard success response format
        """
        return {
            "status": "success",
            "result": result,
            "metadata": self.create_standard_metadata(data, additional_metadata),
        }

    def log_analysis_start(self, data: pd.Series) -> None:
        """Standard logging of processing start."""
        logging.debug(f"{self} - Starting processing: length={len(data)}")

    def log_analysis_complete(self, summary: str) -> None:
        """Standard logging of processing completion."""
        logging.debug(f"{self} - Processing completed: {summary}")
