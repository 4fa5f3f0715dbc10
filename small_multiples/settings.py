from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
import logging
import math
import re
from typing import Any, Literal, Mapping

from small_multiples.constants import DEFAULT_CONSTANTS, NumberRange, VisualConstants


LOGGER = logging.getLogger(__name__)

AxisKind = Literal["value", "category"]

DEFAULT_FONT_FAMILY = "Segoe UI"
DISPLAY_UNIT_CHOICES: tuple[float, ...] = (0.0, 1.0, 1e3, 1e6, 1e9, 1e12)
LINE_STYLES: tuple[str, ...] = ("solid", "dashed", "dotted")

_CAMEL_BOUNDARY = re.compile(r"_([a-z])")


def _prop(
    default: Any,
    kind: str,
    *,
    choices: tuple[Any, ...] | None = None,
    range_name: str | None = None,
) -> Any:
    return field(default=default, metadata={"kind": kind, "choices": choices, "range": range_name})


def property_name(attr: str) -> str:
    """Map a snake_case settings attribute to the host's camelCase property name."""

    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), attr)


@dataclass(frozen=True)
class FeatureSettings:
    object_version: int | None = _prop(None, "optional_int")
    axis_label_placement: bool = _prop(False, "bool")


@dataclass(frozen=True)
class AxisRange:
    start: float | None = _prop(None, "optional_float")
    end: float | None = _prop(None, "optional_float")

    @property
    def is_explicit(self) -> bool:
        return self.start is not None or self.end is not None

    @property
    def is_valid(self) -> bool:
        if self.start is None or self.end is None:
            return True
        return self.start < self.end


@dataclass(frozen=True)
class AxisNumberFormat:
    label_display_units: float = _prop(0.0, "choice", choices=DISPLAY_UNIT_CHOICES)
    precision: int | None = _prop(None, "optional_int", range_name="precision")
    title_style: str = _prop("title", "choice", choices=("title", "unit", "both"))


@dataclass(frozen=True)
class AxisLineSettings:
    show_axis_line: bool = _prop(True, "bool")
    axis_line_color: str = _prop("#C8C8C8", "color")
    axis_line_stroke_width: int = _prop(1, "int", range_name="axis_line_stroke_width")


@dataclass(frozen=True)
class AxisSettings:
    """Settings for either master axis.

    `kind` tags the variant; value-only fields live in `range` and
    `number_format`, category-only fields in `axis_line`.
    """

    kind: AxisKind
    show_labels: bool = _prop(True, "bool")
    label_placement: str = _prop("edge", "choice", choices=("edge", "all"))
    font_color: str = _prop("#777777", "color")
    font_size: float = _prop(9.0, "float", range_name="font_size")
    font_family: str = _prop(DEFAULT_FONT_FAMILY, "str")
    gridlines: bool = _prop(True, "bool")
    gridline_color: str = _prop("#EAEAEA", "color")
    gridline_stroke_width: int = _prop(1, "int", range_name="gridline_stroke_width")
    gridline_stroke_line_style: str = _prop("solid", "choice", choices=LINE_STYLES)
    show_title: bool = _prop(True, "bool")
    title_text: str = _prop("", "str")
    title_color: str = _prop("#777777", "color")
    title_font_size: float = _prop(11.0, "float", range_name="font_size")
    title_font_family: str = _prop(DEFAULT_FONT_FAMILY, "str")
    range: AxisRange | None = None
    number_format: AxisNumberFormat | None = None
    axis_line: AxisLineSettings | None = None

    def __post_init__(self) -> None:
        if self.kind not in ("value", "category"):
            raise ValueError(f"Unsupported axis kind: {self.kind}")
        if self.kind == "value" and (self.range is None or self.number_format is None):
            raise ValueError("value axis settings require range and number_format")
        if self.kind == "category" and self.axis_line is None:
            raise ValueError("category axis settings require axis_line")


def value_axis_defaults() -> AxisSettings:
    return AxisSettings(kind="value", range=AxisRange(), number_format=AxisNumberFormat())


def category_axis_defaults() -> AxisSettings:
    return AxisSettings(kind="category", gridlines=False, axis_line=AxisLineSettings())


@dataclass(frozen=True)
class LegendSettings:
    show: bool = _prop(True, "bool")
    position: str = _prop("top", "choice", choices=("top", "bottom", "left", "right"))
    show_title: bool = _prop(True, "bool")
    title_text: str = _prop("", "str")
    include_ranges: bool = _prop(False, "bool")
    font_size: float = _prop(8.0, "float", range_name="font_size")
    font_family: str = _prop(DEFAULT_FONT_FAMILY, "str")
    font_color: str = _prop("#666666", "color")


@dataclass(frozen=True)
class LayoutSettings:
    horizontal_grid: str = _prop("column", "choice", choices=("column", "width"))
    vertical_grid: str = _prop("fit", "choice", choices=("fit", "height"))
    number_of_columns: int = _prop(3, "int", range_name="number_of_columns")
    multiple_width: float = _prop(200.0, "float", range_name="multiple_size")
    multiple_height: float = _prop(150.0, "float", range_name="multiple_size")
    spacing_between_columns: float = _prop(10.0, "float", range_name="spacing")
    spacing_between_rows: float = _prop(10.0, "float", range_name="spacing")

    def __post_init__(self) -> None:
        if self.number_of_columns < 1:
            raise ValueError("LayoutSettings.number_of_columns must be >= 1")
        if self.spacing_between_columns < 0 or self.spacing_between_rows < 0:
            raise ValueError("LayoutSettings spacing must be >= 0")
        if self.multiple_width <= 0 or self.multiple_height <= 0:
            raise ValueError("LayoutSettings multiple size must be > 0")


@dataclass(frozen=True)
class HeadingSettings:
    show: bool = _prop(True, "bool")
    label_position: str = _prop("top", "choice", choices=("top", "bottom"))
    label_alignment: str = _prop("left", "choice", choices=("left", "center", "right"))
    font_size: float = _prop(10.0, "float", range_name="font_size")
    font_family: str = _prop(DEFAULT_FONT_FAMILY, "str")
    font_color: str = _prop("#666666", "color")
    font_color_alternate: str = _prop("#666666", "color")


@dataclass(frozen=True)
class SmallMultipleSettings:
    border: bool = _prop(False, "bool")
    border_color: str = _prop("#CCCCCC", "color")
    border_stroke_width: int = _prop(1, "int", range_name="border_stroke_width")
    border_style: str = _prop("solid", "choice", choices=LINE_STYLES)
    background_color: str = _prop("#FFFFFF", "color")
    background_transparency: int = _prop(100, "int", range_name="background_transparency")
    zebra_stripe: bool = _prop(False, "bool")
    zebra_stripe_apply: str = _prop("rows", "choice", choices=("rows", "columns"))
    background_color_alternate: str = _prop("#F6F6F6", "color")


@dataclass(frozen=True)
class LineSettings:
    """Per-measure line defaults; `stroke=None` means the palette colour."""

    stroke: str | None = _prop(None, "optional_color")
    stroke_width: int = _prop(2, "int", range_name="shape_stroke_width")
    show_area: bool = _prop(False, "bool")
    background_transparency: int = _prop(80, "int", range_name="background_transparency")
    line_shape: str = _prop("linear", "choice", choices=("linear", "step", "curve"))
    line_style: str = _prop("solid", "choice", choices=LINE_STYLES)


# host object name -> VisualSettings attribute
SETTINGS_GROUPS: dict[str, str] = {
    "features": "features",
    "valueAxis": "value_axis",
    "categoryAxis": "category_axis",
    "legend": "legend",
    "layout": "layout",
    "heading": "heading",
    "smallMultiple": "small_multiple",
    "lines": "lines",
}


@dataclass(frozen=True)
class VisualSettings:
    features: FeatureSettings = field(default_factory=FeatureSettings)
    value_axis: AxisSettings = field(default_factory=value_axis_defaults)
    category_axis: AxisSettings = field(default_factory=category_axis_defaults)
    legend: LegendSettings = field(default_factory=LegendSettings)
    layout: LayoutSettings = field(default_factory=LayoutSettings)
    heading: HeadingSettings = field(default_factory=HeadingSettings)
    small_multiple: SmallMultipleSettings = field(default_factory=SmallMultipleSettings)
    lines: LineSettings = field(default_factory=LineSettings)

    @classmethod
    def default(cls) -> "VisualSettings":
        return cls()

    def group(self, object_name: str) -> Any:
        attr = SETTINGS_GROUPS.get(object_name)
        if attr is None:
            raise KeyError(f"Unknown settings group: {object_name}")
        return getattr(self, attr)


def parse_settings_objects(
    objects: Mapping[str, Mapping[str, Any]] | None,
    *,
    constants: VisualConstants = DEFAULT_CONSTANTS,
) -> VisualSettings:
    """Merge persisted host objects over the defaults.

    Persisted values are never trusted to be well-formed: unknown
    properties are ignored, wrong types fall back to the default and
    numbers are clamped into the advertised ranges.
    """

    defaults = VisualSettings.default()
    if not objects:
        return defaults
    changes: dict[str, Any] = {}
    for object_name, attr in SETTINGS_GROUPS.items():
        raw = objects.get(object_name)
        if raw is None:
            continue
        if not isinstance(raw, Mapping):
            LOGGER.warning("Ignoring settings object `%s`: expected a mapping, got %r", object_name, type(raw))
            continue
        changes[attr] = parse_group(getattr(defaults, attr), raw, constants=constants, object_name=object_name)
    return replace(defaults, **changes)


def parse_group(
    default: Any,
    raw: Mapping[str, Any],
    *,
    constants: VisualConstants = DEFAULT_CONSTANTS,
    object_name: str = "",
) -> Any:
    parsed = _parse_record(default, raw, constants=constants, object_name=object_name)
    unknown = sorted(set(raw) - set(_known_properties(default)))
    if unknown:
        LOGGER.debug("Settings object `%s` carries unrecognised properties: %s", object_name, ", ".join(unknown))
    return parsed


def settings_group_properties(record: Any) -> dict[str, Any]:
    """Return the host-facing (camelCase) property values of a settings group."""

    out: dict[str, Any] = {}
    for f in fields(record):
        value = getattr(record, f.name)
        kind = f.metadata.get("kind")
        if kind is None:
            if value is not None and hasattr(value, "__dataclass_fields__"):
                out.update(settings_group_properties(value))
            continue
        if kind in ("color", "optional_color") and value is not None:
            out[property_name(f.name)] = {"solid": {"color": value}}
        else:
            out[property_name(f.name)] = value
    return out


def _known_properties(record: Any) -> list[str]:
    names: list[str] = []
    for f in fields(record):
        if f.metadata.get("kind") is not None:
            names.append(property_name(f.name))
            continue
        nested = getattr(record, f.name)
        if nested is not None and hasattr(nested, "__dataclass_fields__"):
            names.extend(_known_properties(nested))
    return names


def _parse_record(default: Any, raw: Mapping[str, Any], *, constants: VisualConstants, object_name: str) -> Any:
    changes: dict[str, Any] = {}
    for f in fields(default):
        kind = f.metadata.get("kind")
        current = getattr(default, f.name)
        if kind is None:
            if current is not None and hasattr(current, "__dataclass_fields__"):
                changes[f.name] = _parse_record(current, raw, constants=constants, object_name=object_name)
            continue
        name = property_name(f.name)
        if name not in raw:
            continue
        ranges = constants.ranges
        number_range: NumberRange | None = getattr(ranges, f.metadata["range"]) if f.metadata.get("range") else None
        changes[f.name] = _coerce_property(
            raw[name],
            current,
            kind=kind,
            choices=f.metadata.get("choices"),
            number_range=number_range,
            label=f"{object_name}.{name}",
        )
    if not changes:
        return default
    return replace(default, **changes)


def _coerce_property(
    value: Any,
    default: Any,
    *,
    kind: str,
    choices: tuple[Any, ...] | None,
    number_range: NumberRange | None,
    label: str,
) -> Any:
    if kind == "bool":
        if isinstance(value, bool):
            return value
        return _fallback(label, value, default)
    if kind == "str":
        if isinstance(value, str):
            return value
        return _fallback(label, value, default)
    if kind in ("color", "optional_color"):
        if value is None and kind == "optional_color":
            return None
        color = _coerce_color(value)
        if color is None:
            return _fallback(label, value, default)
        return color
    if kind == "choice":
        assert choices is not None
        for choice in choices:
            if isinstance(choice, float):
                if _is_number(value) and float(value) == choice:
                    return choice
            elif value == choice:
                return choice
        LOGGER.warning("Unsupported value %r for `%s`; using default %r", value, label, default)
        return default
    if kind in ("int", "float", "optional_int", "optional_float"):
        if value is None and kind.startswith("optional_"):
            return None
        if not _is_number(value) or not math.isfinite(float(value)):
            return _fallback(label, value, default)
        number = float(value)
        if number_range is not None and not number_range.contains(number):
            LOGGER.debug("Clamping `%s`=%r into [%s, %s]", label, value, number_range.min, number_range.max)
            number = number_range.clamp(number)
        if kind.endswith("int"):
            return int(round(number))
        return number
    raise ValueError(f"Unknown settings property kind: {kind}")


def _coerce_color(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, Mapping):
        solid = value.get("solid")
        if isinstance(solid, Mapping) and isinstance(solid.get("color"), str):
            return str(solid["color"])
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fallback(label: str, value: Any, default: Any) -> Any:
    LOGGER.warning("Invalid value %r for `%s`; using default %r", value, label, default)
    return default
