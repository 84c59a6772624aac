from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field

from bikeshare.filters import PlotType


class DateRangeModel(BaseModel):
    start: Optional[date] = None
    end: Optional[date] = None


class SelectionModel(BaseModel):
    x_variable: Optional[str] = None
    y_variable: Optional[str] = None
    date_range: DateRangeModel = Field(default_factory=DateRangeModel)
    plot_type: Optional[PlotType] = None


class SessionCreateModel(SelectionModel):
    variant: Literal["scatter", "plot_builder"] = "scatter"


class SelectionPatchModel(BaseModel):
    x_variable: Optional[str] = None
    y_variable: Optional[str] = None
    date_range: Optional[DateRangeModel] = None
    plot_type: Optional[PlotType] = None
