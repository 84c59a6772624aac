from __future__ import annotations

import datetime as dt

import pytest

from bikeshare import session as session_module
from bikeshare.errors import BikeshareError, SelectionError, SessionNotFound
from bikeshare.filters import DateRange, PlotType
from bikeshare.session import PLOT_BUILDER, SCATTER, ExplorerSession, SessionRegistry
from bikeshare.summary import NO_DATA


def test_first_month_scenario(dataset):
    session = ExplorerSession(dataset)
    first, _ = dataset.date_span
    session.set_date_range(first, first + dt.timedelta(days=30))
    session.set_x_variable("temp")
    session.set_y_variable("cnt")

    view = session.compute_filtered_view()
    assert 0 < len(view) <= 31
    assert all(d.year == 2011 and d.month == 1 for d in view["date"])

    result = session.render()
    assert result.row_count == len(view)
    assert result.chart.mark == "point"
    assert (result.chart.x, result.chart.y) == ("temp", "cnt")


def test_reselecting_same_axes_is_idempotent(dataset):
    session = ExplorerSession(dataset)
    session.set_x_variable("atemp")
    session.set_y_variable("registered")
    once = session.compute_chart()
    generation = session.generation

    assert session.set_x_variable("atemp") is False
    assert session.set_y_variable("registered") is False
    assert session.generation == generation
    assert session.compute_chart() == once


def test_generation_counts_effective_changes(dataset):
    session = ExplorerSession(dataset)
    assert session.generation == 0
    session.set_x_variable("hum")
    session.set_plot_type("Bar")
    session.set_date_range("2011-03-01", "2011-03-31")
    assert session.generation == 3
    session.update(x_variable="windspeed", y_variable="casual", plot_type=PlotType.LINE)
    assert session.generation == 4


def test_invalid_column_leaves_state_untouched(dataset):
    session = ExplorerSession(dataset)
    before = session.selection
    with pytest.raises(SelectionError):
        session.set_x_variable("rainfall")
    with pytest.raises(SelectionError):
        session.update(x_variable="hum", y_variable="rainfall")
    assert session.selection == before
    assert session.generation == 0


def test_inverted_range_yields_empty_view_and_no_data(dataset):
    session = ExplorerSession(dataset)
    session.set_date_range(dt.date(2012, 5, 1), dt.date(2012, 4, 1))
    assert session.compute_filtered_view().empty
    result = session.render()
    assert result.row_count == 0
    assert result.summary.mean is NO_DATA


def test_date_change_recomputes_summary_but_axis_change_does_not(dataset):
    session = ExplorerSession(dataset)
    summary = session.compute_summary()
    session.set_x_variable("hum")
    assert session.compute_summary() is summary
    session.set_date_range("2011-06-01", "2011-06-30")
    assert session.compute_summary() is not summary
    assert session.compute_summary().n == 30


def test_stale_render_is_discarded(dataset):
    session = ExplorerSession(dataset)
    seen = []
    session.subscribe(seen.append)

    stale = session.begin_render()
    session.set_x_variable("atemp")
    assert session.publish(stale) is False
    assert session.latest is None
    assert seen == []

    fresh = session.render()
    assert fresh.chart.x == "atemp"
    assert session.latest is fresh
    assert seen == [fresh]


def test_render_reuses_latest_until_inputs_change(dataset):
    session = ExplorerSession(dataset)
    seen = []
    unsubscribe = session.subscribe(seen.append)
    first = session.render()
    assert session.render() is first
    assert len(seen) == 1

    unsubscribe()
    session.set_y_variable("casual")
    second = session.render()
    assert second.generation == first.generation + 1
    assert len(seen) == 1


def test_scatter_variant_ignores_plot_type(dataset):
    scatter = ExplorerSession(dataset, variant=SCATTER)
    builder = ExplorerSession(dataset, variant=PLOT_BUILDER)
    for session in (scatter, builder):
        session.set_plot_type(PlotType.DISTRIBUTION)
    assert scatter.compute_chart().mark == "point"
    assert builder.compute_chart().aggregate == "count"


def test_unknown_variant_rejected(dataset):
    with pytest.raises(SelectionError):
        ExplorerSession(dataset, variant="pie-chart")


def test_sessions_are_isolated(dataset):
    a = ExplorerSession(dataset)
    b = ExplorerSession(dataset)
    a.set_x_variable("windspeed")
    a.set_date_range("2012-01-01", "2012-01-07")
    assert b.selection.x_variable == "temp"
    assert b.selection.date_range == DateRange(*dataset.date_span)
    assert len(b.compute_filtered_view()) == len(dataset)
    assert a.dataset is b.dataset


def test_update_from_dict_merges_partial_date_range(dataset):
    session = ExplorerSession(dataset)
    session.set_date_range("2011-05-01", "2011-05-31")
    session.update_from_dict({"date_range": {"end": "2011-05-10"}, "plot_type": "Bar"})
    assert session.selection.date_range == DateRange(dt.date(2011, 5, 1), dt.date(2011, 5, 10))
    assert session.selection.plot_type is PlotType.BAR


def test_registry_lifecycle(dataset):
    registry = SessionRegistry(dataset)
    session = registry.create({"x_variable": "hum"}, variant=PLOT_BUILDER)
    assert registry.get(session.id) is session
    assert session.selection.x_variable == "hum"
    assert len(registry) == 1
    registry.drop(session.id)
    assert len(registry) == 0
    with pytest.raises(SessionNotFound):
        registry.get(session.id)
    with pytest.raises(SessionNotFound):
        registry.drop(session.id)


def test_range_change_during_filtering_does_not_poison_the_view(dataset, monkeypatch):
    session = ExplorerSession(dataset)
    real_filter = session_module.filter_by_date
    calls = []

    def filter_then_change_range(frame, start, end):
        calls.append((start, end))
        if len(calls) == 1:
            session.set_date_range("2011-01-01", "2011-01-31")
        return real_filter(frame, start, end)

    monkeypatch.setattr(session_module, "filter_by_date", filter_then_change_range)
    result = session.render()

    assert result.generation == 1
    assert result.selection.date_range == DateRange(dt.date(2011, 1, 1), dt.date(2011, 1, 31))
    assert result.row_count == 31
    assert result.summary.n == 31
    assert len(session.compute_filtered_view()) == 31
    assert session.compute_summary().n == 31


def test_result_computed_across_a_change_matches_its_own_selection(dataset, monkeypatch):
    session = ExplorerSession(dataset)
    real_filter = session_module.filter_by_date
    fired = []

    def filter_then_change_range(frame, start, end):
        if not fired:
            fired.append(True)
            session.set_date_range("2012-02-01", "2012-02-29")
        return real_filter(frame, start, end)

    monkeypatch.setattr(session_module, "filter_by_date", filter_then_change_range)
    stale = session.begin_render()

    assert stale.generation == 0
    assert stale.row_count == len(dataset)
    assert stale.summary.n == len(dataset)
    assert session.publish(stale) is False
    assert session.render().row_count == 29


def test_session_not_found_is_a_key_error(dataset):
    registry = SessionRegistry(dataset)
    with pytest.raises(KeyError):
        registry.get("missing")
    assert issubclass(SessionNotFound, BikeshareError)
    assert SessionNotFound.__doc__


def test_blank_axis_in_partial_update_is_rejected(dataset):
    session = ExplorerSession(dataset)
    session.set_x_variable("hum")
    generation = session.generation
    with pytest.raises(SelectionError):
        session.update_from_dict({"x_variable": ""})
    assert session.selection.x_variable == "hum"
    assert session.generation == generation
