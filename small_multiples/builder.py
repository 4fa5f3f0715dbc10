from __future__ import annotations

from dataclasses import replace
import logging
from typing import Any

import numpy as np

from small_multiples.adapters.normalize import coerce_measure_values
from small_multiples.constants import DEFAULT_CONSTANTS, VisualConstants
from small_multiples.data_view import ROLE_CATEGORY, ROLE_MULTIPLE, ROLE_VALUES, DataColumn, DataView
from small_multiples.errors import DataViewError
from small_multiples.formatting import DefaultNumberFormatter, NumberFormatter, resolve_display_unit
from small_multiples.scales import generate_nice_ticks, ticks_within_domain
from small_multiples.settings import AxisRange, LineSettings, VisualSettings, parse_group
from small_multiples.view_model import (
    AnyViewModel,
    CategoryAxisDomain,
    InvalidViewModel,
    LegendEntry,
    LegendModel,
    MeasureMetadata,
    Multiple,
    MultipleSeries,
    ValueAxisDomain,
    ViewModel,
)


LOGGER = logging.getLogger(__name__)

BLANK_LABEL = "(Blank)"

# Flat data is padded by this share of its magnitude, and by at least 1.
FLAT_DOMAIN_PAD_RATIO = 0.05


def validate_data_view(data_view: DataView | None) -> str | None:
    """Return why `data_view` cannot be charted, or None when it can."""

    if data_view is None:
        return "no data view supplied"
    if not data_view.columns_for_role(ROLE_MULTIPLE):
        return "a field is required for the small multiple role"
    if not data_view.columns_for_role(ROLE_CATEGORY):
        return "a field is required for the category role"
    if not data_view.columns_for_role(ROLE_VALUES):
        return "at least one measure is required"
    if not data_view.rows:
        return "data view has no rows"
    return None


def build_view_model(
    data_view: DataView | None,
    settings: VisualSettings,
    *,
    formatter: NumberFormatter | None = None,
    constants: VisualConstants = DEFAULT_CONSTANTS,
) -> AnyViewModel:
    reason = validate_data_view(data_view)
    if reason is not None:
        LOGGER.debug("Data view is not valid: %s", reason)
        return InvalidViewModel(reason=reason)
    assert data_view is not None

    multiple_column = data_view.columns_for_role(ROLE_MULTIPLE)[0]
    category_column = data_view.columns_for_role(ROLE_CATEGORY)[0]
    measure_columns = data_view.columns_for_role(ROLE_VALUES)

    try:
        measure_values = [
            coerce_measure_values(data_view.column_values(c.query_name), label=c.display_name) for c in measure_columns
        ]
    except DataViewError as exc:
        LOGGER.debug("Measure values could not be coerced: %s", exc)
        return InvalidViewModel(reason=str(exc))

    multiple_keys = _blank_nan_keys(data_view.column_values(multiple_column.query_name))
    category_keys = _blank_nan_keys(data_view.column_values(category_column.query_name))
    categories = _first_seen(category_keys)
    multiples = _build_multiples(
        data_view,
        multiple_keys=multiple_keys,
        category_keys=category_keys,
        categories=categories,
        measure_columns=measure_columns,
        measure_values=measure_values,
    )

    measures = tuple(
        _measure_metadata(i, column, settings.lines, constants=constants) for i, column in enumerate(measure_columns)
    )
    value_axis = resolve_value_axis(
        multiples,
        settings.value_axis.range or AxisRange(),
        label_display_units=settings.value_axis.number_format.label_display_units if settings.value_axis.number_format else 0.0,
        precision=settings.value_axis.number_format.precision if settings.value_axis.number_format else None,
        number_format=measures[0].format_string,
        tick_count=constants.value_axis_tick_count,
    )
    formatter = formatter or DefaultNumberFormatter()
    value_axis = replace(
        value_axis,
        tick_labels=tuple(
            formatter.format(
                tick,
                format_string=value_axis.number_format,
                display_unit=value_axis.display_unit,
                precision=value_axis.precision,
            )
            for tick in value_axis.ticks
        ),
    )
    LOGGER.debug(
        "Mapped %d multiples, %d categories, %d measures; value axis [%s, %s]",
        len(multiples),
        len(categories),
        len(measures),
        value_axis.start,
        value_axis.end,
    )
    return ViewModel(
        measures=measures,
        value_axis=value_axis,
        category_axis=CategoryAxisDomain(keys=categories, display_name=category_column.display_name),
        multiples=multiples,
        legend=build_legend(measures, settings),
        multiple_display_name=multiple_column.display_name,
    )


def resolve_value_axis(
    multiples: tuple[Multiple, ...],
    axis_range: AxisRange,
    *,
    label_display_units: float = 0.0,
    precision: int | None = None,
    number_format: str | None = None,
    tick_count: int = 5,
) -> ValueAxisDomain:
    """Compute the master value-axis domain shared by every multiple."""

    auto_min, auto_max = global_value_extent(multiples)
    start, end, explicit = resolve_domain_bounds(auto_min, auto_max, axis_range)
    magnitude = max(abs(auto_min), abs(auto_max)) if np.isfinite(auto_min) else float("nan")
    display_unit = resolve_display_unit(label_display_units, magnitude)
    ticks = ticks_within_domain(generate_nice_ticks(start, end, tick_count), vmin=start, vmax=end)
    return ValueAxisDomain(
        start=start,
        end=end,
        number_format=number_format,
        display_unit=display_unit,
        precision=precision,
        ticks=tuple(float(t) for t in ticks),
        explicit=explicit,
    )


def global_value_extent(multiples: tuple[Multiple, ...]) -> tuple[float, float]:
    """Min/max over all measures of all multiples; NaN pair when empty."""

    arrays = [series.values for multiple in multiples for series in multiple.series]
    if not arrays:
        return (float("nan"), float("nan"))
    values = np.concatenate(arrays)
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return (float("nan"), float("nan"))
    return (float(np.min(finite)), float(np.max(finite)))


def resolve_domain_bounds(auto_min: float, auto_max: float, axis_range: AxisRange) -> tuple[float, float, bool]:
    if not np.isfinite(auto_min) or not np.isfinite(auto_max):
        auto_min, auto_max = 0.0, 1.0
    elif auto_min == auto_max:
        auto_min, auto_max = widen_flat_domain(auto_min)

    if not axis_range.is_explicit:
        return (auto_min, auto_max, False)

    start = auto_min if axis_range.start is None else float(axis_range.start)
    end = auto_max if axis_range.end is None else float(axis_range.end)
    if start >= end:
        LOGGER.debug(
            "Value axis range start=%s end=%s is not increasing; using data extent [%s, %s]",
            axis_range.start,
            axis_range.end,
            auto_min,
            auto_max,
        )
        return (auto_min, auto_max, False)
    return (start, end, True)


def widen_flat_domain(value: float) -> tuple[float, float]:
    pad = max(1.0, abs(value) * FLAT_DOMAIN_PAD_RATIO)
    low, high = value - pad, value + pad
    # The pad is never below 5% of the magnitude, so at most one side overflows.
    if not np.isfinite(low):
        low = value
    if not np.isfinite(high):
        high = value
    return (float(low), float(high))


def build_legend(measures: tuple[MeasureMetadata, ...], settings: VisualSettings) -> LegendModel:
    entries = tuple(
        LegendEntry(label=m.display_name, color=m.stroke, line_style=m.line_style, query_name=m.query_name)
        for m in measures
    )
    title = settings.legend.title_text.strip() if settings.legend.show_title else ""
    return LegendModel(title=title or None, entries=entries)


def format_key(key: Any) -> str:
    if key is None:
        return BLANK_LABEL
    text = str(key)
    return text if text.strip() else BLANK_LABEL


def _blank_nan_keys(keys: tuple[Any, ...]) -> tuple[Any, ...]:
    # NaN != NaN; blank float cells must share one key.
    return tuple(None if isinstance(key, float) and np.isnan(key) else key for key in keys)


def _first_seen(keys: tuple[Any, ...]) -> tuple[Any, ...]:
    return tuple(dict.fromkeys(keys))


def _build_multiples(
    data_view: DataView,
    *,
    multiple_keys: tuple[Any, ...],
    category_keys: tuple[Any, ...],
    categories: tuple[Any, ...],
    measure_columns: tuple[DataColumn, ...],
    measure_values: list[np.ndarray],
) -> tuple[Multiple, ...]:
    category_index = {key: i for i, key in enumerate(categories)}
    row_indices: dict[Any, list[int]] = {}
    for i, key in enumerate(multiple_keys):
        row_indices.setdefault(key, []).append(i)

    multiples: list[Multiple] = []
    for index, (key, indices) in enumerate(row_indices.items()):
        series: list[MultipleSeries] = []
        for column, values in zip(measure_columns, measure_values):
            aligned = np.full(len(categories), np.nan, dtype=np.float64)
            for i in indices:
                value = values[i]
                if np.isnan(value):
                    continue
                slot = category_index[category_keys[i]]
                # Repeated category rows within one multiple are summed.
                aligned[slot] = value if np.isnan(aligned[slot]) else aligned[slot] + value
            series.append(MultipleSeries(query_name=column.query_name, values=aligned))
        multiples.append(
            Multiple(
                index=index,
                key=key,
                label=format_key(key),
                rows=tuple(data_view.rows[i] for i in indices),
                series=tuple(series),
            )
        )
    return tuple(multiples)


def _measure_metadata(
    index: int,
    column: DataColumn,
    defaults: LineSettings,
    *,
    constants: VisualConstants,
) -> MeasureMetadata:
    style = defaults
    overrides = column.objects.get("lines")
    if overrides:
        style = parse_group(defaults, overrides, constants=constants, object_name=f"lines[{column.query_name}]")
    return MeasureMetadata(
        index=index,
        display_name=column.display_name,
        query_name=column.query_name,
        format_string=column.format_string,
        stroke=style.stroke or constants.palette_color(index),
        stroke_width=style.stroke_width,
        show_area=style.show_area,
        background_transparency=style.background_transparency,
        line_shape=style.line_shape,
        line_style=style.line_style,
    )
