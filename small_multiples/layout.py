from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import math
from typing import Callable

from small_multiples.builder import format_key
from small_multiples.constants import DEFAULT_CONSTANTS, VisualConstants
from small_multiples.errors import LayoutError
from small_multiples.formatting import DefaultNumberFormatter, NumberFormatter
from small_multiples.settings import AxisSettings, VisualSettings
from small_multiples.text import TextMeasurer, TextStyle
from small_multiples.view_model import Multiple, Rect, ViewModel


LOGGER = logging.getLogger(__name__)

_SAMPLE_GLYPHS = "Hg"
_SWATCH_TEXT_GAP_PX = 4


@dataclass(frozen=True)
class Viewport:
    width: float
    height: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.width) and math.isfinite(self.height)):
            raise ValueError("Viewport dimensions must be finite")
        if self.width < 0 or self.height < 0:
            raise ValueError("Viewport dimensions must be >= 0")


@dataclass(frozen=True)
class GridGeometry:
    rows: int
    columns: int
    panel_width: float
    panel_height: float
    origin_x: float
    origin_y: float
    spacing_x: float
    spacing_y: float
    overflow_x: bool = False
    overflow_y: bool = False

    @property
    def total_width(self) -> float:
        return self.columns * self.panel_width + (self.columns - 1) * self.spacing_x

    @property
    def total_height(self) -> float:
        return self.rows * self.panel_height + (self.rows - 1) * self.spacing_y

    def cell_origin(self, row: int, column: int) -> tuple[float, float]:
        return (
            self.origin_x + column * (self.panel_width + self.spacing_x),
            self.origin_y + row * (self.panel_height + self.spacing_y),
        )


@dataclass(frozen=True)
class LayoutState:
    """Accumulator threaded through the layout stages.

    Every stage returns a new state; `remaining` is the space not yet
    claimed by the legend, titles or axis gutters.
    """

    viewport: Rect
    remaining: Rect
    minimised: bool = False
    minimised_reason: str | None = None
    legend_box: Rect | None = None
    legend_lines: tuple[tuple[int, ...], ...] = ()
    value_title: str | None = None
    value_title_box: Rect | None = None
    category_title: str | None = None
    category_title_box: Rect | None = None
    chart_area: Rect | None = None
    master_gutters: tuple[float, float] = (0.0, 0.0)
    panel_gutters: tuple[float, float] = (0.0, 0.0)
    grid_area: Rect | None = None
    value_axis_box: Rect | None = None
    category_axis_box: Rect | None = None
    grid: GridGeometry | None = None
    notes: tuple[str, ...] = ()

    def with_note(self, note: str) -> "LayoutState":
        return replace(self, notes=self.notes + (note,))


@dataclass(frozen=True)
class LayoutContext:
    settings: VisualSettings
    view_model: ViewModel
    measurer: TextMeasurer
    formatter: NumberFormatter = field(default_factory=DefaultNumberFormatter)
    constants: VisualConstants = DEFAULT_CONSTANTS

    def measure(self, text: str, family: str, size_pt: float, *, rotate_deg: int = 0) -> tuple[int, int]:
        return self.measurer.measure(text, TextStyle(family, size_pt), rotate_deg=rotate_deg)


@dataclass(frozen=True)
class LayoutResult:
    state: LayoutState
    multiples: tuple[Multiple, ...] = ()

    @property
    def minimised(self) -> bool:
        return self.state.minimised

    @property
    def grid(self) -> GridGeometry | None:
        return self.state.grid

    @property
    def legend_box(self) -> Rect | None:
        return self.state.legend_box


LayoutStage = Callable[[LayoutState, LayoutContext], LayoutState]


def seed_viewport(viewport: Viewport) -> LayoutState:
    rect = Rect(0.0, 0.0, float(viewport.width), float(viewport.height))
    return LayoutState(viewport=rect, remaining=rect)


def below_minimum_reason(width: float, height: float, min_px: int) -> str | None:
    if width < min_px or height < min_px:
        return f"viewport {width:g}x{height:g} is below the {min_px}px minimum"
    return None


def check_minimum(state: LayoutState, ctx: LayoutContext) -> LayoutState:
    reason = below_minimum_reason(state.viewport.width, state.viewport.height, ctx.constants.min_px)
    if reason is not None:
        return _minimise(state, ctx, reason)
    return state


def carve_legend(state: LayoutState, ctx: LayoutContext) -> LayoutState:
    legend = ctx.settings.legend
    model = ctx.view_model.legend
    if not legend.show or not model.entries:
        return state

    remaining = state.remaining
    font = (legend.font_family, legend.font_size)
    pad = ctx.constants.legend_pad_px
    gap = ctx.constants.legend_item_gap_px
    font_px = TextStyle(*font).font_size_px
    swatch_w = int(max(10, font_px * 1.6))
    swatch_h = int(max(6, font_px * 0.9))

    entry_sizes = [ctx.measure(entry.label, *font) for entry in model.entries]
    entry_widths = [swatch_w + _SWATCH_TEXT_GAP_PX + w for w, _ in entry_sizes]
    title_w, title_h = ctx.measure(model.title, *font) if model.title else (0, 0)
    item_h = max([swatch_h, title_h] + [h for _, h in entry_sizes])

    if legend.position in ("top", "bottom"):
        lines = _wrap_entries(entry_widths, available=remaining.width - 2 * pad, lead=title_w + gap if title_w else 0, gap=gap)
        height = 2 * pad + len(lines) * item_h + (len(lines) - 1) * pad
        if height >= remaining.height:
            raise LayoutError("legend does not fit in the remaining height")
        y = remaining.y if legend.position == "top" else remaining.bottom - height
        box = Rect(remaining.x, y, remaining.width, height)
        rest = Rect(
            remaining.x,
            remaining.y + height if legend.position == "top" else remaining.y,
            remaining.width,
            remaining.height - height,
        )
    else:
        lines = tuple((i,) for i in range(len(entry_widths)))
        width = min(2 * pad + max([title_w] + entry_widths), remaining.width / 2.0)
        if width >= remaining.width:
            raise LayoutError("legend does not fit in the remaining width")
        x = remaining.x if legend.position == "left" else remaining.right - width
        box = Rect(x, remaining.y, width, remaining.height)
        rest = Rect(
            remaining.x + width if legend.position == "left" else remaining.x,
            remaining.y,
            remaining.width - width,
            remaining.height,
        )
    return replace(state, legend_box=box, legend_lines=lines, remaining=rest)


def carve_axis_titles(state: LayoutState, ctx: LayoutContext) -> LayoutState:
    value_axis = ctx.settings.value_axis
    category_axis = ctx.settings.category_axis
    pad = ctx.constants.axis_title_pad_px
    remaining = state.remaining

    category_title = category_title_text(category_axis, ctx.view_model) if category_axis.show_title else ""
    if category_title:
        text_w, text_h = ctx.measure(category_title, category_axis.title_font_family, category_axis.title_font_size)
        height = text_h + pad
        if text_w <= remaining.width and height < remaining.height:
            box = Rect(remaining.x, remaining.bottom - height, remaining.width, height)
            remaining = Rect(remaining.x, remaining.y, remaining.width, remaining.height - height)
            state = replace(state, category_title=category_title, category_title_box=box)
        else:
            state = state.with_note("category axis title omitted: no room")

    value_title = value_title_text(value_axis, ctx.view_model) if value_axis.show_title else ""
    if value_title:
        # Drawn rotated, so the text length runs along the remaining height.
        text_w, text_h = ctx.measure(value_title, value_axis.title_font_family, value_axis.title_font_size)
        width = text_h + pad
        if text_w <= remaining.height and width < remaining.width:
            box = Rect(remaining.x, remaining.y, width, remaining.height)
            remaining = Rect(remaining.x + width, remaining.y, remaining.width - width, remaining.height)
            state = replace(state, value_title=value_title, value_title_box=box)
        else:
            state = state.with_note("value axis title omitted: no room")

    return replace(state, remaining=remaining)


def resolve_chart_area(state: LayoutState, ctx: LayoutContext) -> LayoutState:
    chart = state.remaining
    value_w = value_label_gutter(ctx)
    category_h = category_label_gutter(ctx)
    master = (
        value_w if effective_label_placement(ctx.settings, ctx.settings.value_axis) == "edge" else 0.0,
        category_h if effective_label_placement(ctx.settings, ctx.settings.category_axis) == "edge" else 0.0,
    )
    panel = (value_w - master[0], category_h - master[1])
    grid_w = chart.width - master[0]
    grid_h = chart.height - master[1]
    _require_positive("grid area width", grid_w)
    _require_positive("grid area height", grid_h)
    return replace(
        state,
        chart_area=chart,
        master_gutters=master,
        panel_gutters=panel,
        grid_area=Rect(chart.x + master[0], chart.y, grid_w, grid_h),
    )


def resolve_grid(state: LayoutState, ctx: LayoutContext) -> LayoutState:
    area = state.grid_area or state.chart_area
    if area is None:
        raise LayoutError("grid resolution needs a chart area")
    count = len(ctx.view_model.multiples)
    if count == 0:
        raise LayoutError("no multiples to lay out")

    layout = ctx.settings.layout
    spacing_x = layout.spacing_between_columns
    spacing_y = layout.spacing_between_rows

    if layout.horizontal_grid == "column":
        columns = layout.number_of_columns
        panel_w = (area.width - (columns - 1) * spacing_x) / columns
    else:
        panel_w = layout.multiple_width
        columns = max(1, int(math.floor((area.width + spacing_x) / (panel_w + spacing_x) + 1e-9)))
    rows = int(math.ceil(count / columns))

    if layout.vertical_grid == "fit":
        panel_h = (area.height - (rows - 1) * spacing_y) / rows
    else:
        panel_h = layout.multiple_height

    _require_positive("panel width", panel_w)
    _require_positive("panel height", panel_h)

    grid = GridGeometry(
        rows=rows,
        columns=columns,
        panel_width=panel_w,
        panel_height=panel_h,
        origin_x=area.x,
        origin_y=area.y,
        spacing_x=spacing_x,
        spacing_y=spacing_y,
    )
    grid = replace(
        grid,
        overflow_x=grid.total_width > area.width + 1e-6,
        overflow_y=grid.total_height > area.height + 1e-6,
    )
    LOGGER.debug(
        "Grid resolved: %d rows x %d columns, panel %.1fx%.1f (overflow x=%s y=%s)",
        rows,
        columns,
        panel_w,
        panel_h,
        grid.overflow_x,
        grid.overflow_y,
    )

    value_w, category_h = state.master_gutters
    value_box = Rect(area.x - value_w, grid.origin_y, value_w, grid.total_height) if value_w > 0 else None
    category_box = (
        Rect(grid.origin_x, grid.origin_y + grid.total_height, grid.total_width, category_h) if category_h > 0 else None
    )
    return replace(state, grid=grid, value_axis_box=value_box, category_axis_box=category_box)


STAGES: tuple[LayoutStage, ...] = (
    check_minimum,
    carve_legend,
    carve_axis_titles,
    resolve_chart_area,
    resolve_grid,
)


def run_stages(state: LayoutState, ctx: LayoutContext, stages: tuple[LayoutStage, ...] = STAGES) -> LayoutState:
    for stage in stages:
        if state.minimised:
            break
        try:
            state = stage(state, ctx)
        except LayoutError as exc:
            state = _minimise(state, ctx, str(exc))
    return state


def place_multiples(state: LayoutState, ctx: LayoutContext) -> tuple[Multiple, ...]:
    """Assign each multiple its rectangles, row-major in view-model order."""

    grid = state.grid
    if grid is None:
        raise LayoutError("multiples cannot be placed before the grid is resolved")

    settings = ctx.settings
    heading = settings.heading
    heading_h = 0.0
    if heading.show:
        heading_h = max(
            ctx.measure(m.label or _SAMPLE_GLYPHS, heading.font_family, heading.font_size)[1]
            for m in ctx.view_model.multiples
        ) + 2 * ctx.constants.heading_pad_px
    gutter_w, gutter_h = state.panel_gutters
    plot_w = grid.panel_width - gutter_w
    plot_h = grid.panel_height - heading_h - gutter_h
    _require_positive("plot width", plot_w)
    _require_positive("plot height", plot_h)

    value_axis = settings.value_axis
    category_axis = settings.category_axis
    value_edge = effective_label_placement(settings, value_axis) == "edge"
    category_edge = effective_label_placement(settings, category_axis) == "edge"
    stripe = settings.small_multiple
    count = len(ctx.view_model.multiples)

    placed: list[Multiple] = []
    for i, multiple in enumerate(ctx.view_model.multiples):
        if multiple.is_placed:
            raise ValueError(f"multiple {multiple.label!r} has already been placed")
        row, column = divmod(i, grid.columns)
        x, y = grid.cell_origin(row, column)
        rect = Rect(x, y, grid.panel_width, grid.panel_height)
        heading_rect = None
        plot_y = y
        if heading_h > 0:
            if heading.label_position == "top":
                heading_rect = Rect(x, y, grid.panel_width, heading_h)
                plot_y = y + heading_h
            else:
                heading_rect = Rect(x, rect.bottom - heading_h, grid.panel_width, heading_h)
        alternate = False
        if stripe.zebra_stripe:
            alternate = (row if stripe.zebra_stripe_apply == "rows" else column) % 2 == 1
        placed.append(
            replace(
                multiple,
                rect=rect,
                heading_rect=heading_rect,
                plot_rect=Rect(x + gutter_w, plot_y, plot_w, plot_h),
                row=row,
                column=column,
                show_value_labels=value_axis.show_labels and (column == 0 or not value_edge),
                # Bottom-most panel of each column, which may sit above an empty slot.
                show_category_labels=category_axis.show_labels and (i + grid.columns >= count or not category_edge),
                show_value_gridlines=value_axis.gridlines,
                show_category_gridlines=category_axis.gridlines,
                alternate=alternate,
            )
        )
    return tuple(placed)


def resolve_layout(
    view_model: ViewModel,
    settings: VisualSettings,
    viewport: Viewport,
    *,
    measurer: TextMeasurer,
    formatter: NumberFormatter | None = None,
    constants: VisualConstants = DEFAULT_CONSTANTS,
) -> LayoutResult:
    """Carve the viewport and place every multiple.

    Never raises for lack of space: an unusable layout ends in the
    minimised state instead.
    """

    if not view_model.is_valid:
        raise ValueError("cannot lay out an invalid view model")
    ctx = LayoutContext(
        settings=settings,
        view_model=view_model,
        measurer=measurer,
        formatter=formatter or DefaultNumberFormatter(),
        constants=constants,
    )
    state = run_stages(seed_viewport(viewport), ctx)
    if state.minimised:
        return LayoutResult(state=state)
    try:
        multiples = place_multiples(state, ctx)
    except LayoutError as exc:
        return LayoutResult(state=_minimise(state, ctx, str(exc)))
    return LayoutResult(state=state, multiples=multiples)


def minimised_layout(viewport: Viewport, reason: str) -> LayoutResult:
    """Minimised layout for an update with nothing chartable to measure."""

    LOGGER.debug("Layout minimised: %s", reason)
    state = seed_viewport(viewport)
    return LayoutResult(state=replace(state, minimised=True, minimised_reason=reason))


def effective_label_placement(settings: VisualSettings, axis: AxisSettings) -> str:
    if not settings.features.axis_label_placement:
        return "edge"
    return axis.label_placement


def value_label_gutter(ctx: LayoutContext) -> float:
    axis = ctx.settings.value_axis
    if not axis.show_labels:
        return 0.0
    domain = ctx.view_model.value_axis
    labels = list(domain.tick_labels) or [
        ctx.formatter.format(
            tick,
            format_string=domain.number_format,
            display_unit=domain.display_unit,
            precision=domain.precision,
        )
        for tick in (domain.ticks or (domain.start, domain.end))
    ]
    widest = max(ctx.measure(label, axis.font_family, axis.font_size)[0] for label in labels)
    return float(widest + ctx.constants.axis_label_pad_px)


def category_label_gutter(ctx: LayoutContext) -> float:
    axis = ctx.settings.category_axis
    if not axis.show_labels:
        return 0.0
    keys = ctx.view_model.category_axis.keys or (_SAMPLE_GLYPHS,)
    tallest = max(ctx.measure(format_key(key), axis.font_family, axis.font_size)[1] for key in keys)
    return float(tallest + ctx.constants.axis_label_pad_px)


def value_title_text(axis: AxisSettings, view_model: ViewModel) -> str:
    text = axis.title_text.strip() or ", ".join(m.display_name for m in view_model.measures)
    unit = view_model.value_axis.display_unit
    style = axis.number_format.title_style if axis.number_format else "title"
    if unit is None or style == "title":
        return text
    if style == "unit":
        return unit.label
    return f"{text} ({unit.label})" if text else unit.label


def category_title_text(axis: AxisSettings, view_model: ViewModel) -> str:
    return axis.title_text.strip() or view_model.category_axis.display_name


def _wrap_entries(
    widths: list[int],
    *,
    available: float,
    lead: float,
    gap: float,
) -> tuple[tuple[int, ...], ...]:
    lines: list[tuple[int, ...]] = []
    current: list[int] = []
    used = lead
    for i, w in enumerate(widths):
        needed = w if not current else gap + w
        if current and used + needed > available:
            lines.append(tuple(current))
            current = []
            used = 0.0
            needed = w
        current.append(i)
        used += needed
    if current:
        lines.append(tuple(current))
    return tuple(lines)


def _require_positive(label: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0:
        raise LayoutError(f"{label} resolved to {value!r}")


def _minimise(state: LayoutState, ctx: LayoutContext, reason: str) -> LayoutState:
    LOGGER.debug("Layout minimised: %s", reason)
    compact = replace(
        state,
        minimised=True,
        minimised_reason=reason,
        remaining=state.viewport,
        legend_box=None,
        legend_lines=(),
        value_title=None,
        value_title_box=None,
        category_title=None,
        category_title_box=None,
        chart_area=None,
        grid_area=None,
        value_axis_box=None,
        category_axis_box=None,
        grid=None,
    )
    try:
        with_legend = carve_legend(replace(compact, minimised=False), ctx)
    except LayoutError:
        return compact
    return replace(with_legend, minimised=True)
