"""Per-user reactive state for the explorer dashboards.

An ``ExplorerSession`` holds one user's selection (axes, date range, plot
type) against the shared read-only dataset. Every effective input change bumps
``generation``. Cached pieces are keyed by the inputs they were computed
from, so rendering recomputes only what the change touched. Results are
published to subscribers on a last-writer-wins basis: a result computed for an
older generation is discarded.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from bikeshare.charts import ChartSpec, build_chart_spec
from bikeshare.data import Dataset
from bikeshare.errors import SelectionError, SessionNotFound
from bikeshare.filters import (
    DateRange,
    PlotType,
    Selection,
    clamp_date_range,
    default_selection,
    filter_by_date,
    normalize_selection,
    validate_column,
)
from bikeshare.summary import SummaryStats, compute_summary


logger = logging.getLogger(__name__)

SCATTER = "scatter"
PLOT_BUILDER = "plot_builder"
VARIANTS = (SCATTER, PLOT_BUILDER)


@dataclass(frozen=True)
class RenderResult:
    generation: int
    variant: str
    selection: Selection
    row_count: int
    chart: ChartSpec
    summary: SummaryStats


Subscriber = Callable[[RenderResult], None]


class ExplorerSession:
    def __init__(self, dataset: Dataset, selection: Optional[Selection] = None, *, variant: str = SCATTER):
        if variant not in VARIANTS:
            raise SelectionError(f"unknown dashboard variant: {variant!r}")
        self.id = uuid.uuid4().hex
        self.dataset = dataset
        self.variant = variant
        self._kinds = {info.name: info.kind for info in dataset.column_info}
        self._selection = selection or default_selection(dataset)
        self._generation = 0
        # Each cache entry carries the inputs it was computed from.
        self._view: Optional[Tuple[DateRange, pd.DataFrame]] = None
        self._chart: Optional[Tuple[Tuple[str, str, Optional[PlotType]], ChartSpec]] = None
        self._summary: Optional[Tuple[DateRange, SummaryStats]] = None
        self._lock = threading.RLock()
        self._latest: Optional[RenderResult] = None
        self._subscribers: List[Subscriber] = []

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> Optional[RenderResult]:
        return self._latest

    # ---------- inputs ----------
    def _apply(self, selection: Selection) -> bool:
        with self._lock:
            if selection == self._selection:
                return False
            self._selection = selection
            self._generation += 1
            return True

    def _snapshot(self) -> Tuple[int, Selection]:
        with self._lock:
            return self._generation, self._selection

    def _change(self, **changes) -> bool:
        with self._lock:
            return self._apply(self._selection.with_changes(**changes))

    def set_x_variable(self, name: str) -> bool:
        return self._change(x_variable=validate_column(name, self.dataset.columns))

    def set_y_variable(self, name: str) -> bool:
        return self._change(y_variable=validate_column(name, self.dataset.columns))

    def set_date_range(self, start: object, end: object) -> bool:
        return self._change(date_range=clamp_date_range(start, end, self.dataset.date_span))

    def set_plot_type(self, plot_type: PlotType | str) -> bool:
        return self._change(plot_type=PlotType.parse(plot_type))

    def update(
        self,
        *,
        x_variable: Optional[str] = None,
        y_variable: Optional[str] = None,
        date_range: Optional[DateRange | tuple] = None,
        plot_type: Optional[PlotType | str] = None,
    ) -> bool:
        """Apply several inputs as a single change. Nothing is applied if any input is invalid."""
        changes: Dict[str, object] = {}
        if x_variable is not None:
            changes["x_variable"] = validate_column(x_variable, self.dataset.columns)
        if y_variable is not None:
            changes["y_variable"] = validate_column(y_variable, self.dataset.columns)
        if date_range is not None:
            start, end = (date_range.start, date_range.end) if isinstance(date_range, DateRange) else date_range
            changes["date_range"] = clamp_date_range(start, end, self.dataset.date_span)
        if plot_type is not None:
            changes["plot_type"] = PlotType.parse(plot_type)
        if not changes:
            return False
        return self._change(**changes)

    def update_from_dict(self, raw: dict) -> bool:
        with self._lock:
            merged = self._selection.as_dict()
            for key, value in (raw or {}).items():
                if value is None:
                    continue
                if key == "date_range" and isinstance(value, dict):
                    merged["date_range"].update({k: v for k, v in value.items() if v is not None})
                else:
                    merged[key] = value
            return self._apply(normalize_selection(merged, self.dataset))

    # ---------- derived views ----------
    def _view_for(self, date_range: DateRange) -> pd.DataFrame:
        cached = self._view
        if cached is not None and cached[0] == date_range:
            return cached[1]
        view = filter_by_date(self.dataset.frame, date_range.start, date_range.end)
        self._view = (date_range, view)
        return view

    def _chart_for(self, selection: Selection) -> ChartSpec:
        plot_type = selection.plot_type if self.variant == PLOT_BUILDER else None
        key = (selection.x_variable, selection.y_variable, plot_type)
        cached = self._chart
        if cached is not None and cached[0] == key:
            return cached[1]
        chart = build_chart_spec(selection.x_variable, selection.y_variable, plot_type, columns=self._kinds)
        self._chart = (key, chart)
        return chart

    def _summary_for(self, date_range: DateRange) -> SummaryStats:
        cached = self._summary
        if cached is not None and cached[0] == date_range:
            return cached[1]
        summary = compute_summary(self._view_for(date_range))
        self._summary = (date_range, summary)
        return summary

    def compute_filtered_view(self) -> pd.DataFrame:
        return self._view_for(self._snapshot()[1].date_range)

    def compute_chart(self) -> ChartSpec:
        return self._chart_for(self._snapshot()[1])

    def compute_summary(self) -> SummaryStats:
        return self._summary_for(self._snapshot()[1].date_range)

    # ---------- rendering ----------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def begin_render(self) -> RenderResult:
        """Compute a result for the current generation without publishing it.

        Everything in the result derives from one snapshot of the selection, so
        an input change that lands mid-computation only makes the result stale.
        """
        generation, selection = self._snapshot()
        view = self._view_for(selection.date_range)
        return RenderResult(
            generation=generation,
            variant=self.variant,
            selection=selection,
            row_count=int(len(view)),
            chart=self._chart_for(selection),
            summary=self._summary_for(selection.date_range),
        )

    def publish(self, result: RenderResult) -> bool:
        with self._lock:
            if result.generation < self._generation:
                logger.debug(
                    "session %s: dropping stale render (generation %d < %d)", self.id, result.generation, self._generation
                )
                return False
            if self._latest is not None and result.generation < self._latest.generation:
                return False
            self._latest = result
        for callback in list(self._subscribers):
            callback(result)
        return True

    def render(self) -> RenderResult:
        while True:
            generation, _ = self._snapshot()
            latest = self._latest
            if latest is not None and latest.generation == generation:
                return latest
            result = self.begin_render()
            if self.publish(result):
                return result


class SessionRegistry:
    """Live sessions keyed by id. Sessions share only the read-only dataset."""

    def __init__(self, dataset: Dataset):
        self.dataset = dataset
        self._sessions: Dict[str, ExplorerSession] = {}
        self._lock = threading.Lock()

    def create(self, raw: Optional[dict] = None, *, variant: str = SCATTER) -> ExplorerSession:
        selection = normalize_selection(raw, self.dataset)
        session = ExplorerSession(self.dataset, selection, variant=variant)
        with self._lock:
            self._sessions[session.id] = session
        logger.debug("created %s session %s", variant, session.id)
        return session

    def get(self, session_id: str) -> ExplorerSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def drop(self, session_id: str) -> None:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is None:
            raise SessionNotFound(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
