"""
Time normalizer for wide daily LMP tables.

Converts one-row-per-day / one-column-per-hour exports into a strictly hourly
pd.Series:
- hour ending label h (1..24) maps to clock hour h-1
- spring-forward gap: the hour 3 value (02:00) of listed dates is replaced by
  a literal correction from the replacement table
- fall-back extra hour: the additional DST column is ignored, every day emits
  exactly 24 points
"""

import datetime
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from lmp_pipeline.helpers.configs import (
    DATE_FORMAT,
    SPRING_FORWARD_REPLACEMENTS,
    PipelineSettings,
    parse_replacement_table,
)
from lmp_pipeline.helpers.exceptions import ConfigurationError, MalformedInput
from lmp_pipeline.helpers.utils import validate_required_locals
from lmp_pipeline.timeSeriesProcessing.baseModule.baseMethod import BaseTimeSeriesMethod

__version__ = "1.0.0"


def load_raw_table(path: str, date_column: Optional[str] = None) -> pd.DataFrame:
    """
    Read a wide daily CSV export.

    The date column is kept as text so that the normalizer applies the strict
    MM-DD-YYYY parsing itself.
    """
    date_column = date_column or PipelineSettings.DATE_COLUMN
    raw = pd.read_csv(path, dtype={date_column: str})
    logging.info(f"Loaded raw table {path}: {len(raw)} rows, {len(raw.columns)} columns")
    return raw


class TimeNormalizer(BaseTimeSeriesMethod):
    """
    Wide table to hourly series transform.

    Output: pd.Series named 'price', float values, indexed by a naive hourly
    DatetimeIndex (freq='h') named 'timestamp'. Timestamps are local clock
    time without UTC offset.
    """

    DEFAULT_CONFIG = {
        **BaseTimeSeriesMethod.DEFAULT_CONFIG,
        "date_column": PipelineSettings.DATE_COLUMN,
        "hour_column_prefix": PipelineSettings.HOUR_COLUMN_PREFIX,
        "date_format": DATE_FORMAT,
        "replacements": SPRING_FORWARD_REPLACEMENTS,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize normalizer.

        Args:
            config: Configuration with parameters:
                - date_column: str (name of the publish date column)
                - hour_column_prefix: str (hour columns are prefix + 1..24)
                - date_format: str (strptime format of text dates)
                - replacements: {date or 'MM-DD-YYYY': float} spring-forward corrections
        """
        merged_config = {**self.DEFAULT_CONFIG, **(config or {})}
        super().__init__(merged_config)

        validate_required_locals(
            ["date_column", "hour_column_prefix", "date_format"], self.config
        )

        self.date_column = self.config["date_column"]
        self.hour_columns = PipelineSettings.get_hour_columns(
            self.config["hour_column_prefix"]
        )
        self.replacements = self._build_replacements(self.config["replacements"])

    def __str__(self) -> str:
        return (
            f"TimeNormalizer(date_column={self.date_column!r}, "
            f"replacements={len(self.replacements)})"
        )

    @staticmethod
    def _build_replacements(raw: Optional[Dict[Any, Any]]) -> Dict[datetime.date, float]:
        table = {}
        for key, value in (raw or {}).items():
            if isinstance(key, str):
                table.update(parse_replacement_table({key: value}))
                continue
            if isinstance(key, datetime.datetime):
                key = key.date()
            if not isinstance(key, datetime.date):
                raise ConfigurationError(
                    f"Replacement key must be a date, got: {key!r}"
                )
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(
                    f"Replacement value for {key} must be numeric, got: {value!r}"
                )
            table[key] = float(value)
        return table

    def process(
        self, data: pd.DataFrame, context: Optional[Dict[str, Any]] = None
    ) -> pd.Series:
        """
        Normalize a wide daily table.

        Args:
            data: DataFrame with the date column and HE1..HE24 (extra columns ignored)
            context: Unused

        Returns:
            pd.Series: strictly increasing hourly series, 24 points per day

        Raises:
            MalformedInput: Empty table, missing columns, unparseable date,
                non-numeric hour value, duplicate or missing days
        """
        if not isinstance(data, pd.DataFrame):
            raise MalformedInput(f"{self} - Expected pd.DataFrame, got {type(data)}")
        if data.empty:
            raise MalformedInput(f"{self} - Empty table provided")

        missing_columns = [
            column
            for column in [self.date_column] + self.hour_columns
            if column not in data.columns
        ]
        if missing_columns:
            raise MalformedInput(f"{self} - Missing columns: {missing_columns}")

        logging.debug(f"{self} - Starting normalization: {len(data)} rows")

        dates = self._parse_dates(data[self.date_column])
        values, substitutions = self._parse_values(data[self.hour_columns], dates)

        # Rows may arrive unsorted, the output must be strictly increasing
        order = np.argsort(dates.to_numpy(), kind="stable")
        days = pd.DatetimeIndex(dates.to_numpy()[order])
        values = values[order]

        self._check_calendar(days)

        index = pd.date_range(
            days[0], periods=len(days) * PipelineSettings.HOURS_PER_DAY,
            freq="h", name="timestamp",
        )
        series = pd.Series(values.reshape(-1), index=index, name="price")

        logging.info(
            f"{self} - Normalized {len(days)} day(s) into {len(series)} hourly points, "
            f"{substitutions} DST substitution(s)"
        )
        return series

    def _parse_dates(self, column: pd.Series) -> pd.Series:
        """Parse the date column, MM-DD-YYYY text or datetime-like values."""
        if pd.api.types.is_datetime64_any_dtype(column):
            parsed = pd.to_datetime(column)
        elif column.map(lambda v: isinstance(v, (datetime.date, pd.Timestamp))).all():
            parsed = pd.to_datetime(column, errors="coerce")
        else:
            parsed = pd.to_datetime(
                column.astype(str).str.strip(),
                format=self.config["date_format"],
                errors="coerce",
            )

        bad_rows = parsed.isna()
        if bad_rows.any():
            examples = list(column[bad_rows].head(5))
            raise MalformedInput(
                f"{self} - {int(bad_rows.sum())} unparseable date(s), e.g. {examples}"
            )

        if getattr(parsed.dt, "tz", None) is not None:
            parsed = parsed.dt.tz_localize(None)
        return parsed.dt.normalize().reset_index(drop=True)

    def _parse_values(self, block: pd.DataFrame, dates: pd.Series):
        """
        Convert the 24 hour columns to a (days, 24) float matrix.

        Returns:
            tuple: (values, number of DST substitutions)
        """
        numeric = block.apply(pd.to_numeric, errors="coerce")
        values = numeric.to_numpy(dtype=float, copy=True)

        gap_position = PipelineSettings.SPRING_FORWARD_HOUR_LABEL - 1
        substitutions = 0
        for row, day in enumerate(dates.dt.date):
            if day not in self.replacements:
                continue
            original = values[row, gap_position]
            if np.isfinite(original):
                logging.info(
                    f"{self} - {day}: hour {gap_position + 1} value {original} "
                    f"replaced by {self.replacements[day]}"
                )
            values[row, gap_position] = self.replacements[day]
            substitutions += 1

        bad = np.argwhere(~np.isfinite(values))
        if bad.size:
            details = self._describe_bad_cells(block, dates, bad[:5])
            raise MalformedInput(
                f"{self} - {len(bad)} non-numeric hour value(s) outside documented "
                f"DST dates: {details}"
            )

        return values, substitutions

    def _describe_bad_cells(
        self, block: pd.DataFrame, dates: pd.Series, cells: np.ndarray
    ) -> List[str]:
        return [
            f"{dates.iloc[row].strftime(self.config['date_format'])} "
            f"{self.hour_columns[col]}={block.iloc[row, col]!r}"
            for row, col in cells
        ]

    def _check_calendar(self, days: pd.DatetimeIndex) -> None:
        """Exactly one row per calendar day, no duplicates and no missing days."""
        duplicated = days[days.duplicated()]
        if len(duplicated):
            raise MalformedInput(
                f"{self} - Duplicate dates: {[d.strftime('%Y-%m-%d') for d in duplicated.unique()[:5]]}"
            )

        expected = pd.date_range(days[0], days[-1], freq="D")
        if len(expected) != len(days):
            missing = expected.difference(days)
            raise MalformedInput(
                f"{self} - {len(missing)} missing day(s), e.g. "
                f"{[d.strftime('%Y-%m-%d') for d in missing[:5]]}"
            )
