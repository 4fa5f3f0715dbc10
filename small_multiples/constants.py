from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
import math
from typing import Any, Mapping


@dataclass(frozen=True)
class NumberRange:
    min: float
    max: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.min) or not math.isfinite(self.max):
            raise ValueError("NumberRange bounds must be finite")
        if self.min > self.max:
            raise ValueError("NumberRange.min must be <= max")

    def clamp(self, value: float) -> float:
        return max(self.min, min(self.max, value))

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def to_valid_values(self) -> dict[str, dict[str, float]]:
        return {"numberRange": {"min": self.min, "max": self.max}}


@dataclass(frozen=True)
class NumericRanges:
    precision: NumberRange = NumberRange(0, 10)
    gridline_stroke_width: NumberRange = NumberRange(1, 5)
    axis_line_stroke_width: NumberRange = NumberRange(1, 5)
    shape_stroke_width: NumberRange = NumberRange(1, 10)
    spacing: NumberRange = NumberRange(0, 50)
    number_of_columns: NumberRange = NumberRange(1, 25)
    multiple_size: NumberRange = NumberRange(50, 1000)
    border_stroke_width: NumberRange = NumberRange(1, 5)
    background_transparency: NumberRange = NumberRange(0, 100)
    font_size: NumberRange = NumberRange(6, 40)


DEFAULT_PALETTE: tuple[str, ...] = (
    "#01B8AA",
    "#374649",
    "#FD625E",
    "#F2C80F",
    "#5F6B6D",
    "#8AD4EB",
    "#FE9666",
    "#A66999",
)


@dataclass(frozen=True)
class VisualConstants:
    """Read-only configuration shared by every component of one visual.

    Built once and passed to builders/resolvers explicitly; use
    `with_overrides` to derive a variant for tests or hosts with different
    limits.
    """

    min_px: int = 100
    schema_version: int = 2
    debug: bool = False
    palette: tuple[str, ...] = DEFAULT_PALETTE
    ranges: NumericRanges = field(default_factory=NumericRanges)
    value_axis_tick_count: int = 5
    axis_label_pad_px: int = 4
    axis_title_pad_px: int = 4
    heading_pad_px: int = 4
    legend_pad_px: int = 4
    legend_item_gap_px: int = 8

    def __post_init__(self) -> None:
        if self.min_px < 0:
            raise ValueError("min_px must be >= 0")
        if self.schema_version < 1:
            raise ValueError("schema_version must be >= 1")
        if not self.palette:
            raise ValueError("palette must not be empty")
        if self.value_axis_tick_count < 2:
            raise ValueError("value_axis_tick_count must be >= 2")

    def palette_color(self, index: int) -> str:
        return self.palette[index % len(self.palette)]

    def with_overrides(self, overrides: Mapping[str, Any] | None = None) -> "VisualConstants":
        """Validate and merge overrides, rejecting keys that are not constants."""

        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                raise ValueError(f"Unknown visual constant: {key}")
            if key == "ranges" and isinstance(value, Mapping):
                value = _merge_ranges(self.ranges, value)
            elif key == "palette":
                value = tuple(str(v) for v in value)
            changes[key] = value
        return replace(self, **changes)


def _merge_ranges(base: NumericRanges, overrides: Mapping[str, Any]) -> NumericRanges:
    known = {f.name for f in fields(base)}
    changes: dict[str, NumberRange] = {}
    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Unknown numeric range: {key}")
        if isinstance(value, NumberRange):
            changes[key] = value
        else:
            low, high = value
            changes[key] = NumberRange(float(low), float(high))
    return replace(base, **changes)


DEFAULT_CONSTANTS = VisualConstants()
