"""
Configuration classes for the outlier detection pipeline:

PipelineSettings: Class containing the default settings of every pipeline stage
(column layout, smoothing windows, ARIMA order, cutoff derivation) and the
builder of per-stage config dicts from environment variables.
SPRING_FORWARD_REPLACEMENTS: Reference literal corrections for the hour that is
missing from the raw feed on spring daylight-saving dates.
"""

import datetime
import json
import logging
import os
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from lmp_pipeline.helpers.exceptions import ConfigurationError

load_dotenv()


# Only the 2015 value is documented by the reference analysis. Replacements for
# the other spring-forward dates are supplied by the caller or through
# LMP_DST_REPLACEMENTS_JSON.
SPRING_FORWARD_REPLACEMENTS = {
    datetime.date(2015, 3, 8): 10.41,
}

DATE_FORMAT = "%m-%d-%Y"


def parse_replacement_table(raw: Dict[str, Any]) -> Dict[datetime.date, float]:
    """
    Convert a {"MM-DD-YYYY": value} mapping into {date: float}.

    Raises:
        ConfigurationError: If a key is not a valid date or a value is not numeric
    """
    table = {}
    for key, value in raw.items():
        try:
            day = datetime.datetime.strptime(str(key), DATE_FORMAT).date()
        except ValueError as e:
            raise ConfigurationError(
                f"Replacement table key {key!r} is not a {DATE_FORMAT} date"
            ) from e
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(
                f"Replacement value for {key} must be numeric, got: {value!r}"
            )
        table[day] = float(value)
    return table


class PipelineSettings:
    """
    Centralized configuration for the LMP outlier detection pipeline
    """

    # Layout of the wide daily table
    DATE_COLUMN = "Date"
    HOUR_COLUMN_PREFIX = "HE"
    HOURS_PER_DAY = 24
    SPRING_FORWARD_HOUR_LABEL = 3

    # Smoothing windows in hours: 3h, half day, day, 3 days, week
    SMOOTHING_WINDOWS = [3, 12, 24, 72, 168]
    ANALYSIS_WINDOW = 12

    # ARIMA(p, d, q)
    ARIMA_ORDER = (6, 1, 1)
    MAX_ITERATIONS = 500

    # Cutoff = Q3 + IQR_MULTIPLIER * IQR of the residuals
    IQR_MULTIPLIER = 3.0

    # Significance level of the ADF precondition check
    ADF_ALPHA = 0.05

    @classmethod
    def get_hour_columns(cls, prefix: Optional[str] = None):
        """
        Get the 24 primary hour column labels, hour ending 1 to 24.

        Args:
            prefix (str): Column prefix, defaults to HOUR_COLUMN_PREFIX

        Returns:
            list: ['HE1', ..., 'HE24']
        """
        prefix = cls.HOUR_COLUMN_PREFIX if prefix is None else prefix
        return [f"{prefix}{hour}" for hour in range(1, cls.HOURS_PER_DAY + 1)]

    @classmethod
    def get_windows(cls):
        return list(cls.SMOOTHING_WINDOWS)

    @classmethod
    def load_replacement_table(cls, path: Optional[str]) -> Dict[datetime.date, float]:
        """
        Load spring-forward replacements from a JSON file.

        The reference table is used as the base and entries from the file
        override it. A missing path returns the reference table.
        """
        table = dict(SPRING_FORWARD_REPLACEMENTS)
        if not path:
            return table

        with open(path) as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ConfigurationError(
                f"DST replacement file {path} must contain a JSON object"
            )

        table.update(parse_replacement_table(raw))
        logging.info(f"Loaded {len(raw)} DST replacement(s) from {path}")
        return table

    @classmethod
    def from_env(cls) -> Dict[str, Dict[str, Any]]:
        """
        Build per-stage configuration dicts from environment variables.

        Environment:
            LMP_DATE_COLUMN, LMP_HOUR_COLUMN_PREFIX: wide table layout
            LMP_DST_REPLACEMENTS_JSON: path to {"MM-DD-YYYY": value} file
            LMP_SMOOTHING_WINDOWS: comma separated windows, e.g. "3,12,24"
            LMP_ANALYSIS_WINDOW: window the model is fit on
            LMP_ARIMA_ORDER: "p,d,q"
            LMP_MAX_ITERATIONS: optimizer evaluation budget
            LMP_OUTLIER_CUTOFF: fixed cutoff, derived per run when unset
            LMP_IQR_MULTIPLIER: k in Q3 + k * IQR
            LMP_SYMMETRIC_FLAGS: also flag large negative residuals

        Returns:
            dict: {'normalizer': {...}, 'smoother': {...}, 'fitter': {...},
                   'flagger': {...}, 'analysis_window': int}
        """
        windows = _parse_int_list(
            os.getenv("LMP_SMOOTHING_WINDOWS"), cls.get_windows(), "LMP_SMOOTHING_WINDOWS"
        )
        order = tuple(
            _parse_int_list(
                os.getenv("LMP_ARIMA_ORDER"), list(cls.ARIMA_ORDER), "LMP_ARIMA_ORDER"
            )
        )
        if len(order) != 3:
            raise ConfigurationError(f"LMP_ARIMA_ORDER must have 3 values, got: {order}")

        cutoff_env = os.getenv("LMP_OUTLIER_CUTOFF")

        return {
            "normalizer": {
                "date_column": os.getenv("LMP_DATE_COLUMN", cls.DATE_COLUMN),
                "hour_column_prefix": os.getenv(
                    "LMP_HOUR_COLUMN_PREFIX", cls.HOUR_COLUMN_PREFIX
                ),
                "replacements": cls.load_replacement_table(
                    os.getenv("LMP_DST_REPLACEMENTS_JSON")
                ),
            },
            "smoother": {"windows": windows},
            "fitter": {
                "order": order,
                "max_iterations": _parse_number(
                    os.getenv("LMP_MAX_ITERATIONS"), cls.MAX_ITERATIONS, int
                ),
            },
            "flagger": {
                "cutoff": _parse_number(cutoff_env, None, float) if cutoff_env else None,
                "iqr_multiplier": _parse_number(
                    os.getenv("LMP_IQR_MULTIPLIER"), cls.IQR_MULTIPLIER, float
                ),
                "symmetric": os.getenv("LMP_SYMMETRIC_FLAGS", "false").lower()
                in ("1", "true", "yes"),
            },
            "analysis_window": _parse_number(
                os.getenv("LMP_ANALYSIS_WINDOW"), cls.ANALYSIS_WINDOW, int
            ),
        }


def _parse_int_list(raw: Optional[str], default: list, name: str) -> list:
    if not raw:
        return default
    try:
        return [int(item) for item in raw.split(",") if item.strip()]
    except ValueError as e:
        raise ConfigurationError(f"{name} must be comma separated ints, got: {raw!r}") from e


def _parse_number(raw: Optional[str], default, cast):
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"Cannot parse {raw!r} as {cast.__name__}") from e


def parse_order(order: Any) -> Tuple[int, int, int]:
    """Normalize an ARIMA order given as tuple/list of three ints."""
    try:
        p, d, q = order
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"order must be (p, d, q), got: {order!r}") from e
    return p, d, q
