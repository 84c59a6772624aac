from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

import pandas as pd

from bikeshare.data import DATE_COLUMN, RESPONSE_COLUMN, Dataset
from bikeshare.errors import SelectionError


class PlotType(str, Enum):
    DISTRIBUTION = "Distribution"
    BAR = "Bar"
    SCATTERPLOT = "Scatterplot"
    LINE = "Line"

    @classmethod
    def parse(cls, value: object, default: Optional["PlotType"] = None) -> "PlotType":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        if default is not None:
            return default
        raise SelectionError(f"unknown plot type: {value!r}")


PLOT_TYPES = [p.value for p in PlotType]

DEFAULT_X = "temp"
DEFAULT_Y = RESPONSE_COLUMN


@dataclass(frozen=True)
class DateRange:
    start: dt.date
    end: dt.date

    @property
    def is_inverted(self) -> bool:
        return self.start > self.end


@dataclass(frozen=True)
class Selection:
    x_variable: str
    y_variable: str
    date_range: DateRange
    plot_type: PlotType = PlotType.SCATTERPLOT

    def with_changes(self, **changes) -> "Selection":
        return replace(self, **changes)

    def as_dict(self) -> dict:
        return {
            "x_variable": self.x_variable,
            "y_variable": self.y_variable,
            "date_range": {"start": self.date_range.start.isoformat(), "end": self.date_range.end.isoformat()},
            "plot_type": self.plot_type.value,
        }


def as_date(value: object) -> dt.date:
    """Coerce a date, datetime, Timestamp or ISO string to a calendar date."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    try:
        stamp = pd.Timestamp(str(value))
    except (TypeError, ValueError) as exc:
        raise SelectionError(f"not a date: {value!r}") from exc
    if pd.isna(stamp):
        raise SelectionError(f"not a date: {value!r}")
    return stamp.date()


def clamp_date_range(start: object, end: object, span: Tuple[dt.date, dt.date]) -> DateRange:
    first, last = span
    start_d, end_d = as_date(start), as_date(end)
    # Endpoints are pulled into the observed span but never swapped.
    return DateRange(start=max(start_d, first), end=min(end_d, last))


def validate_column(name: object, columns: Sequence[str]) -> str:
    if not isinstance(name, str) or name not in columns:
        raise SelectionError(f"unknown column: {name!r}")
    return name


def _default_axes(columns: Sequence[str]) -> Tuple[str, str]:
    x = DEFAULT_X if DEFAULT_X in columns else columns[0]
    y = DEFAULT_Y if DEFAULT_Y in columns else columns[min(1, len(columns) - 1)]
    return x, y


def default_selection(dataset: Dataset) -> Selection:
    x, y = _default_axes(dataset.columns)
    first, last = dataset.date_span
    return Selection(x_variable=x, y_variable=y, date_range=DateRange(first, last))


def normalize_selection(raw: Optional[dict], dataset: Dataset) -> Selection:
    raw = raw or {}
    columns = dataset.columns
    default_x, default_y = _default_axes(columns)

    x = raw.get("x_variable")
    if x is None:
        x = default_x
    y = raw.get("y_variable")
    if y is None:
        y = default_y
    validate_column(x, columns)
    validate_column(y, columns)

    first, last = dataset.date_span
    dates = raw.get("date_range") or {}
    if isinstance(dates, (list, tuple)):
        start, end = (list(dates) + [None, None])[:2]
    else:
        start, end = dates.get("start"), dates.get("end")
    date_range = clamp_date_range(start or first, end or last, (first, last))

    plot_type = PlotType.parse(raw.get("plot_type"), default=PlotType.SCATTERPLOT)
    return Selection(x_variable=x, y_variable=y, date_range=date_range, plot_type=plot_type)


def filter_by_date(frame: pd.DataFrame, start: dt.date, end: dt.date) -> pd.DataFrame:
    """Rows with start <= date <= end. An inverted range gives zero rows."""
    if start > end or frame.empty:
        return frame.iloc[0:0].copy()
    dates = frame[DATE_COLUMN]
    return frame[(dates >= start) & (dates <= end)].copy()

