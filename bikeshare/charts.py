from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

import altair as alt
import pandas as pd

from bikeshare.data import COLUMN_LABELS, DATE_COLUMN
from bikeshare.filters import PlotType

alt.data_transformers.disable_max_rows()

SCATTER_TITLE = "BikeShare Data Scatterplot"

VEGA_TYPES = {
    "continuous": "quantitative",
    "categorical": "ordinal",
    "temporal": "temporal",
}


@dataclass(frozen=True)
class ChartSpec:
    """Library-neutral chart description: mark, axis bindings and title."""

    mark: str
    x: str
    y: Optional[str]
    title: str
    aggregate: Optional[str] = None
    x_kind: str = "continuous"
    y_kind: Optional[str] = None
    binned: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _kind(columns: Optional[Mapping[str, str]], name: Optional[str]) -> Optional[str]:
    if name is None:
        return None
    if columns and name in columns:
        return columns[name]
    return "temporal" if name == DATE_COLUMN else "continuous"


def build_chart_spec(
    x: str,
    y: str,
    plot_type: Optional[PlotType | str] = None,
    *,
    columns: Optional[Mapping[str, str]] = None,
) -> ChartSpec:
    """Map axis choices (and an optional plot type) to a ChartSpec.

    Without a plot type the result is the plain scatterplot of the first
    dashboard. ``columns`` maps column names to their kind so encodings can
    pick a matching scale.
    """
    x_kind = _kind(columns, x)
    y_kind = _kind(columns, y)
    if plot_type is None:
        return ChartSpec(mark="point", x=x, y=y, title=SCATTER_TITLE, x_kind=x_kind, y_kind=y_kind)

    plot_type = PlotType.parse(plot_type)
    if plot_type is PlotType.DISTRIBUTION:
        return ChartSpec(
            mark="bar",
            x=x,
            y=None,
            title=f"Distribution of {x}",
            aggregate="count",
            x_kind=x_kind,
            binned=x_kind == "continuous",
        )
    if plot_type is PlotType.BAR:
        return ChartSpec(mark="bar", x=x, y=None, title=f"Bar of {x}", aggregate="count", x_kind="categorical")
    if plot_type is PlotType.LINE:
        return ChartSpec(mark="line", x=x, y=y, title=f"Line of {y} vs {x}", aggregate="mean", x_kind=x_kind, y_kind=y_kind)
    return ChartSpec(mark="point", x=x, y=y, title=f"Scatterplot of {y} vs {x}", x_kind=x_kind, y_kind=y_kind)


def _axis_title(name: str) -> str:
    return COLUMN_LABELS.get(name, name)


def _chart_data(spec: ChartSpec, view: pd.DataFrame) -> pd.DataFrame:
    cols = [c for c in dict.fromkeys([spec.x, spec.y]) if c is not None and c in view.columns]
    data = view[cols].copy()
    # Altair serializes datetime64 columns to ISO strings; plain date objects it does not.
    if DATE_COLUMN in data.columns:
        data[DATE_COLUMN] = pd.to_datetime(data[DATE_COLUMN])
    if spec.aggregate == "mean" and spec.y is not None and spec.x != spec.y:
        data = data.groupby(spec.x, as_index=False)[spec.y].mean().sort_values(spec.x)
    return data


def to_altair(spec: ChartSpec, view: pd.DataFrame) -> alt.Chart:
    data = _chart_data(spec, view)
    x_type = VEGA_TYPES.get(spec.x_kind, "quantitative")
    base = alt.Chart(data).properties(title=spec.title, width="container")

    if spec.aggregate == "count":
        if spec.binned:
            x_enc = alt.X(spec.x, type=x_type, bin=alt.Bin(maxbins=30), title=_axis_title(spec.x))
        elif x_type == "temporal":
            x_enc = alt.X(spec.x, type=x_type, timeUnit="yearmonth", title=_axis_title(spec.x))
        else:
            x_enc = alt.X(spec.x, type=x_type, title=_axis_title(spec.x))
        return base.mark_bar().encode(
            x=x_enc,
            y=alt.Y("count()", title="Days"),
            tooltip=[alt.Tooltip("count()", title="Days")],
        )

    y_type = VEGA_TYPES.get(spec.y_kind or "continuous", "quantitative")
    x_enc = alt.X(spec.x, type=x_type, title=_axis_title(spec.x), scale=alt.Scale(zero=False))
    y_title = _axis_title(spec.y) if spec.aggregate != "mean" else f"Mean {_axis_title(spec.y)}"
    y_enc = alt.Y(spec.y, type=y_type, title=y_title, scale=alt.Scale(zero=False))
    tooltip = [alt.Tooltip(spec.x, type=x_type), alt.Tooltip(spec.y, type=y_type)]

    if spec.mark == "line":
        return base.mark_line(point=True).encode(x=x_enc, y=y_enc, tooltip=tooltip)
    return base.mark_point(filled=True, opacity=0.7).encode(x=x_enc, y=y_enc, tooltip=tooltip)


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()
