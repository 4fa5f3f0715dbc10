from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import numpy as np

from small_multiples.formatting import DisplayUnit


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            if not np.isfinite(getattr(self, name)):
                raise ValueError(f"Rect.{name} must be finite")
        if self.width < 0 or self.height < 0:
            raise ValueError("Rect width/height must be >= 0")

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class MeasureMetadata:
    """Display metadata for one plotted series, keyed by its query name."""

    index: int
    display_name: str
    query_name: str
    format_string: str | None
    stroke: str
    stroke_width: int
    show_area: bool
    background_transparency: int
    line_shape: str
    line_style: str


@dataclass(frozen=True)
class ValueAxisDomain:
    start: float
    end: float
    number_format: str | None
    display_unit: DisplayUnit | None
    precision: int | None
    ticks: tuple[float, ...] = ()
    tick_labels: tuple[str, ...] = ()
    explicit: bool = False

    def __post_init__(self) -> None:
        if not (np.isfinite(self.start) and np.isfinite(self.end)):
            raise ValueError("ValueAxisDomain bounds must be finite")
        if self.start >= self.end:
            raise ValueError("ValueAxisDomain.start must be < end")


@dataclass(frozen=True)
class CategoryAxisDomain:
    keys: tuple[Any, ...]
    display_name: str = ""


@dataclass(frozen=True)
class MultipleSeries:
    """One measure's values within a multiple, aligned to the category keys.

    Missing combinations are NaN so every panel shares one x-domain.
    """

    query_name: str
    values: np.ndarray

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultipleSeries):
            return NotImplemented
        return self.query_name == other.query_name and np.array_equal(self.values, other.values, equal_nan=True)


@dataclass(frozen=True)
class Multiple:
    """One panel of the grid.

    Layout fields stay `None` until the layout resolver returns a placed
    copy; the builder never fills them.
    """

    index: int
    key: Any
    label: str
    rows: tuple[tuple[Any, ...], ...]
    series: tuple[MultipleSeries, ...]
    rect: Rect | None = None
    heading_rect: Rect | None = None
    plot_rect: Rect | None = None
    row: int | None = None
    column: int | None = None
    show_value_labels: bool = False
    show_category_labels: bool = False
    show_value_gridlines: bool = False
    show_category_gridlines: bool = False
    alternate: bool = False

    @property
    def is_placed(self) -> bool:
        return self.rect is not None

    def series_for(self, query_name: str) -> MultipleSeries:
        for series in self.series:
            if series.query_name == query_name:
                return series
        raise KeyError(f"series not found: {query_name}")


@dataclass(frozen=True)
class LegendEntry:
    label: str
    color: str
    line_style: str
    query_name: str


@dataclass(frozen=True)
class LegendModel:
    title: str | None
    entries: tuple[LegendEntry, ...]


@dataclass(frozen=True)
class ViewModel:
    measures: tuple[MeasureMetadata, ...]
    value_axis: ValueAxisDomain
    category_axis: CategoryAxisDomain
    multiples: tuple[Multiple, ...]
    legend: LegendModel
    multiple_display_name: str = ""
    is_valid: Literal[True] = True

    def measure(self, query_name: str) -> MeasureMetadata:
        for measure in self.measures:
            if measure.query_name == query_name:
                return measure
        raise KeyError(f"measure not found: {query_name}")


@dataclass(frozen=True)
class InvalidViewModel:
    """Returned instead of a view model when the data view cannot be charted.

    Consumers treat it as the landing/empty state, not as an error.
    """

    reason: str
    is_valid: Literal[False] = False
    measures: tuple[MeasureMetadata, ...] = ()
    multiples: tuple[Multiple, ...] = ()
    legend: LegendModel = LegendModel(title=None, entries=())


AnyViewModel = ViewModel | InvalidViewModel
