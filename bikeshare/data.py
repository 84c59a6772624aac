from __future__ import annotations

import datetime as dt
import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from bikeshare.errors import DatasetError


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1]
DEFAULT_DATA_PATH = DATA_DIR / "inputs" / "day.csv"
DATA_PATH_ENV = "BIKESHARE_DATA_PATH"

DATE_COLUMN = "date"
RESPONSE_COLUMN = "cnt"

COLUMN_RENAMES = {
    "dteday": DATE_COLUMN,
    "Date": DATE_COLUMN,
}

CONTINUOUS_COLUMNS = ["temp", "atemp", "hum", "windspeed", "casual", "registered", "cnt"]
CATEGORICAL_COLUMNS = ["season", "yr", "mnth", "holiday", "weekday", "workingday", "weathersit"]

COLUMN_LABELS = {
    "date": "Date",
    "instant": "Record index",
    "season": "Season",
    "yr": "Year",
    "mnth": "Month",
    "holiday": "Holiday",
    "weekday": "Weekday",
    "workingday": "Working day",
    "weathersit": "Weather situation",
    "temp": "Temperature (normalized)",
    "atemp": "Feels-like temperature (normalized)",
    "hum": "Humidity (normalized)",
    "windspeed": "Wind speed (normalized)",
    "casual": "Casual rentals",
    "registered": "Registered rentals",
    "cnt": "Total rentals",
}

CATEGORY_LABELS: Dict[str, Dict[int, str]] = {
    "season": {1: "Spring", 2: "Summer", 3: "Fall", 4: "Winter"},
    "yr": {0: "2011", 1: "2012"},
    "holiday": {0: "No", 1: "Yes"},
    "workingday": {0: "No", 1: "Yes"},
    "weekday": {0: "Sun", 1: "Mon", 2: "Tue", 3: "Wed", 4: "Thu", 5: "Fri", 6: "Sat"},
    "weathersit": {
        1: "Clear / partly cloudy",
        2: "Mist / cloudy",
        3: "Light snow / light rain",
        4: "Heavy precipitation",
    },
}


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    kind: str  # "continuous" | "categorical" | "temporal"
    label: str


class Dataset:
    """Read-only daily rentals table, loaded once and shared by every session."""

    def __init__(self, frame: pd.DataFrame, *, source: Optional[str] = None):
        self._frame = frame.copy()
        self.source = source
        self._columns = tuple(describe_columns(frame))

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame

    @property
    def columns(self) -> List[str]:
        return [c.name for c in self._columns]

    @property
    def column_info(self) -> List[ColumnInfo]:
        return list(self._columns)

    def kind_of(self, column: str) -> Optional[str]:
        for info in self._columns:
            if info.name == column:
                return info.kind
        return None

    @property
    def date_span(self) -> Tuple[dt.date, dt.date]:
        dates = self._frame[DATE_COLUMN]
        return dates.iloc[0], dates.iloc[-1]

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        first, last = self.date_span
        return f"Dataset(rows={len(self)}, span={first}..{last}, source={self.source!r})"


def classify_column(name: str, series: pd.Series) -> str:
    if name == DATE_COLUMN:
        return "temporal"
    if name in CATEGORICAL_COLUMNS:
        return "categorical"
    if name in CONTINUOUS_COLUMNS:
        return "continuous"
    if pd.api.types.is_bool_dtype(series):
        return "categorical"
    if pd.api.types.is_float_dtype(series):
        return "continuous"
    if pd.api.types.is_integer_dtype(series):
        # Small integer code sets (flags, levels) read as categories.
        return "categorical" if series.nunique(dropna=True) <= 12 else "continuous"
    return "categorical"


def describe_columns(frame: pd.DataFrame) -> List[ColumnInfo]:
    return [
        ColumnInfo(name=str(col), kind=classify_column(str(col), frame[col]), label=COLUMN_LABELS.get(str(col), str(col)))
        for col in frame.columns
    ]


def category_label(column: str, value: object) -> str:
    labels = CATEGORY_LABELS.get(column)
    if labels is None or value is None or pd.isna(value):
        return str(value)
    try:
        return labels.get(int(value), str(value))
    except (TypeError, ValueError):
        return str(value)


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.rename(columns={c: str(c).strip() for c in df.columns})
    return df.rename(columns={k: v for k, v in COLUMN_RENAMES.items() if k in df.columns and v not in df.columns})


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def prepare_frame(raw: pd.DataFrame) -> pd.DataFrame:
    """Validate and tidy a freshly read table; raise DatasetError if unusable."""
    df = normalize_columns(raw)
    if df.empty:
        raise DatasetError("dataset has no rows")
    if DATE_COLUMN not in df.columns:
        raise DatasetError(f"dataset has no '{DATE_COLUMN}' (or 'dteday') column")
    if RESPONSE_COLUMN not in df.columns:
        raise DatasetError(f"dataset has no '{RESPONSE_COLUMN}' column")

    parsed = pd.to_datetime(df[DATE_COLUMN], errors="coerce")
    bad = int(parsed.isna().sum())
    if bad:
        raise DatasetError(f"{bad} row(s) have an unparseable date")
    df[DATE_COLUMN] = parsed.dt.date
    if df[DATE_COLUMN].duplicated().any():
        dupes = sorted(df.loc[df[DATE_COLUMN].duplicated(), DATE_COLUMN].unique())[:5]
        raise DatasetError(f"duplicate dates in dataset: {dupes}")

    df = numericize(df, [c for c in CONTINUOUS_COLUMNS + CATEGORICAL_COLUMNS if c in df.columns])
    if df[RESPONSE_COLUMN].isna().all():
        raise DatasetError(f"'{RESPONSE_COLUMN}' column has no numeric values")

    return df.sort_values(DATE_COLUMN, kind="mergesort").reset_index(drop=True)


def load_dataset(path: Path | str) -> Dataset:
    path = Path(path)
    if not path.is_file():
        raise DatasetError(f"dataset file not found: {path}")
    try:
        raw = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise DatasetError(f"could not parse {path}: {exc}") from exc
    df = prepare_frame(raw)
    dataset = Dataset(df, source=str(path))
    logger.info("Loaded %d daily rows from %s (%s..%s)", len(dataset), path, *dataset.date_span)
    return dataset


def get_data_path() -> Path:
    override = os.environ.get(DATA_PATH_ENV)
    return Path(override) if override else DEFAULT_DATA_PATH


def file_signature(path: Path) -> Tuple[str, float]:
    return str(path), path.stat().st_mtime


@lru_cache(maxsize=4)
def _load_dataset_cached(file_sig: Tuple[str, float]) -> Dataset:
    return load_dataset(file_sig[0])


def load_default_dataset() -> Dataset:
    path = get_data_path()
    if not path.is_file():
        raise DatasetError(f"dataset file not found: {path} (set {DATA_PATH_ENV} to override)")
    return _load_dataset_cached(file_signature(path))
