from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from bikeshare.charts import build_chart_spec, to_altair, to_vega_spec
from bikeshare.data import CATEGORY_LABELS, Dataset
from bikeshare.filters import PLOT_TYPES, Selection, filter_by_date
from bikeshare.session import ExplorerSession, RenderResult
from bikeshare.summary import compute_summary


def _view_for(selection: Selection, dataset: Dataset) -> pd.DataFrame:
    return filter_by_date(dataset.frame, selection.date_range.start, selection.date_range.end)


def _payload(selection: Selection, dataset: Dataset, *, with_plot_type: bool) -> Dict[str, Any]:
    view = _view_for(selection, dataset)
    kinds = {info.name: info.kind for info in dataset.column_info}
    plot_type = selection.plot_type if with_plot_type else None
    spec = build_chart_spec(selection.x_variable, selection.y_variable, plot_type, columns=kinds)
    return {
        "selection": selection.as_dict(),
        "row_count": int(len(view)),
        "chart": spec.as_dict(),
        "vega": to_vega_spec(to_altair(spec, view)),
        "summary": compute_summary(view).to_record(),
    }


def compute_scatter_page(selection: Selection, dataset: Dataset) -> Dict[str, Any]:
    return _payload(selection, dataset, with_plot_type=False)


def compute_plot_builder_page(selection: Selection, dataset: Dataset) -> Dict[str, Any]:
    return _payload(selection, dataset, with_plot_type=True)


def compute_meta(dataset: Dataset) -> Dict[str, Any]:
    first, last = dataset.date_span
    return {
        "columns": [
            {
                "name": info.name,
                "kind": info.kind,
                "label": info.label,
                "categories": {str(k): v for k, v in CATEGORY_LABELS.get(info.name, {}).items()},
            }
            for info in dataset.column_info
        ],
        "plot_types": list(PLOT_TYPES),
        "date_span": {"start": first.isoformat(), "end": last.isoformat()},
        "rows": len(dataset),
    }


def render_payload(session: ExplorerSession, result: Optional[RenderResult] = None) -> Dict[str, Any]:
    result = result or session.render()
    view = _view_for(result.selection, session.dataset)
    return {
        "session_id": session.id,
        "variant": result.variant,
        "generation": result.generation,
        "selection": result.selection.as_dict(),
        "row_count": result.row_count,
        "chart": result.chart.as_dict(),
        "vega": to_vega_spec(to_altair(result.chart, view)),
        "summary": result.summary.to_record(),
    }


def export_view_csv(selection: Selection, dataset: Dataset) -> bytes:
    return _view_for(selection, dataset).to_csv(index=False).encode("utf-8")
