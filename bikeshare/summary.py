"""Summary statistics of the response column over a filtered view.

Degenerate views never produce NaN: an empty view reports NO_DATA for every
statistic, and a single-row view reports UNDEFINED for the (n - 1) standard
deviation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union

import pandas as pd

from bikeshare.data import RESPONSE_COLUMN


class Marker:
    def __init__(self, name: str, label: str):
        self.name = name
        self.label = label

    def __repr__(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.label

    def __bool__(self) -> bool:
        return False


NO_DATA = Marker("NO_DATA", "No data")
UNDEFINED = Marker("UNDEFINED", "Undefined")

Stat = Union[float, Marker]

STAT_FIELDS = ("min", "max", "mean", "median", "sd")


@dataclass(frozen=True)
class SummaryStats:
    n: int
    min: Stat
    max: Stat
    mean: Stat
    median: Stat
    sd: Stat
    column: str = RESPONSE_COLUMN

    @property
    def status(self) -> str:
        if self.n == 0:
            return "no_data"
        if self.n == 1:
            return "insufficient"
        return "ok"

    @property
    def has_data(self) -> bool:
        return self.n > 0

    def values(self) -> Dict[str, Stat]:
        return {name: getattr(self, name) for name in STAT_FIELDS}

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            name: (None if isinstance(value, Marker) else value) for name, value in self.values().items()
        }
        record.update({"n": self.n, "column": self.column, "status": self.status})
        return record

    def to_table(self) -> pd.DataFrame:
        """One display row with columns min_cnt, max_cnt, mean_cnt, median_cnt, sd_cnt."""
        row = {}
        for name, value in self.values().items():
            row[f"{name}_{self.column}"] = str(value) if isinstance(value, Marker) else value
        return pd.DataFrame([row])


def compute_summary(view: pd.DataFrame, column: str = RESPONSE_COLUMN) -> SummaryStats:
    if column in view.columns:
        values = pd.to_numeric(view[column], errors="coerce").dropna()
    else:
        values = pd.Series(dtype=float)
    n = int(len(values))

    if n == 0:
        return SummaryStats(n=0, min=NO_DATA, max=NO_DATA, mean=NO_DATA, median=NO_DATA, sd=NO_DATA, column=column)

    sd: Stat = float(values.std(ddof=1)) if n > 1 else UNDEFINED
    return SummaryStats(
        n=n,
        min=float(values.min()),
        max=float(values.max()),
        mean=float(values.mean()),
        median=float(values.median()),
        sd=sd,
        column=column,
    )
