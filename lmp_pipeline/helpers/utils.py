import logging
from typing import Any

import numpy as np
import pandas as pd

from lmp_pipeline.helpers.exceptions import ConfigurationError


def to_json_safe(data):
    """
    Convert data to JSON-compatible format

    Args:
        data: Data to convert

    Returns:
        dict or list with JSON-compatible data
    """
    if isinstance(data, (str, int, float, bool, type(None))):
        return data
    elif isinstance(data, (np.integer,)):
        return int(data)
    elif isinstance(data, (np.floating,)):
        return float(data)
    elif isinstance(data, pd.Timestamp):
        return data.isoformat()
    elif isinstance(data, (list, tuple)):
        return [to_json_safe(item) for item in data]
    elif isinstance(data, dict):
        return {str(k): to_json_safe(v) for k, v in data.items()}
    else:
        # For objects that cannot be directly serialized
        return str(data)


def validate_required_locals(required_params: list, input_params: dict):
    """
    Validation through locals() - the most efficient way

    Usage:
        validate_required_locals(['window', 'order'], locals())
    """
    missing_params = [
        param
        for param in required_params
        if param not in input_params or input_params[param] is None
    ]
    if missing_params:
        raise ConfigurationError(f"Required parameters missing: {missing_params}")


def validate_positive_int(name: str, value: Any, allow_zero: bool = False) -> int:
    """
    Check that a configuration value is an integer above zero (or zero).

    Booleans are rejected even though they are ints.

    Raises:
        ConfigurationError: If the value is not a suitable integer
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"{name} must be int, got: {value!r}")

    lower = 0 if allow_zero else 1
    if value < lower:
        raise ConfigurationError(
            f"{name} must be {'non-negative' if allow_zero else 'positive'}, got: {value}"
        )
    return int(value)


def difference(values: np.ndarray, d: int) -> np.ndarray:
    """Apply ordinary differencing d times, each pass shortens the array by one."""
    result = np.asarray(values, dtype=float)
    for _ in range(d):
        result = np.diff(result)
    return result


def valid_range(series: pd.Series) -> pd.Series:
    """
    Trim leading and trailing NaN values.

    Returns the contiguous slice between the first and last defined value, or
    an empty series when nothing is defined.
    """
    first = series.first_valid_index()
    last = series.last_valid_index()
    if first is None or last is None:
        logging.debug("valid_range: series has no defined values")
        return series.iloc[0:0]
    return series.loc[first:last]
