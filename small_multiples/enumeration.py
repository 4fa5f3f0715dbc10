from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable

from small_multiples.constants import DEFAULT_CONSTANTS, VisualConstants
from small_multiples.formatting import NO_DISPLAY_UNITS
from small_multiples.settings import SETTINGS_GROUPS, VisualSettings, settings_group_properties
from small_multiples.view_model import AnyViewModel, MeasureMetadata


LOGGER = logging.getLogger(__name__)

Predicate = Callable[[VisualSettings, AnyViewModel], bool]
MeasurePredicate = Callable[[MeasureMetadata], bool]


@dataclass(frozen=True)
class PropertyRule:
    """How one settings-pane control behaves for the current state.

    `number_range` names an entry of `VisualConstants.ranges`; when
    `fixed_when` holds, the control is pinned to `fixed_value`.
    """

    name: str
    visible_when: Predicate | None = None
    number_range: str | None = None
    fixed_when: Predicate | None = None
    fixed_value: Any = None


@dataclass(frozen=True)
class MeasureRule:
    name: str
    visible_when: MeasurePredicate | None = None
    number_range: str | None = None


@dataclass(frozen=True)
class PropertyContainer:
    display_name: str


@dataclass(frozen=True)
class PropertyInstance:
    object_name: str
    properties: dict[str, Any]
    selector: dict[str, Any] | None = None
    valid_values: dict[str, Any] = field(default_factory=dict)
    display_name: str | None = None
    container_idx: int | None = None


@dataclass(frozen=True)
class EnumerationResult:
    instances: tuple[PropertyInstance, ...] = ()
    containers: tuple[PropertyContainer, ...] = ()


def _value_labels(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.value_axis.show_labels


def _value_label_placement(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.value_axis.show_labels and s.features.axis_label_placement


def _value_gridlines(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.value_axis.gridlines


def _value_title(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.value_axis.show_title


def _no_display_unit(s: VisualSettings, vm: AnyViewModel) -> bool:
    number_format = s.value_axis.number_format
    if number_format is not None and number_format.label_display_units == NO_DISPLAY_UNITS:
        return True
    return not vm.is_valid or vm.value_axis.display_unit is None


def _category_labels(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.category_axis.show_labels


def _category_label_placement(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.category_axis.show_labels and s.features.axis_label_placement


def _category_gridlines(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.category_axis.gridlines


def _category_title(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.category_axis.show_title


def _category_axis_line(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.category_axis.axis_line is not None and s.category_axis.axis_line.show_axis_line


def _legend_title(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.legend.show_title


def _column_grid(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.layout.horizontal_grid == "column"


def _width_grid(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.layout.horizontal_grid == "width"


def _height_grid(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.layout.vertical_grid == "height"


def _heading_shown(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.heading.show


def _heading_alternate(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.heading.show and s.small_multiple.zebra_stripe


def _zebra(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.small_multiple.zebra_stripe


def _border(s: VisualSettings, vm: AnyViewModel) -> bool:
    return s.small_multiple.border


def _gridline_rules(visible: Predicate) -> tuple[PropertyRule, ...]:
    return (
        PropertyRule("gridlineColor", visible),
        PropertyRule("gridlineStrokeWidth", visible, number_range="gridline_stroke_width"),
        PropertyRule("gridlineStrokeLineStyle", visible),
    )


def _title_rules(visible: Predicate) -> tuple[PropertyRule, ...]:
    return (
        PropertyRule("titleColor", visible),
        PropertyRule("titleText", visible),
        PropertyRule("titleFontSize", visible),
        PropertyRule("titleFontFamily", visible),
    )


PROPERTY_RULES: dict[str, tuple[PropertyRule, ...]] = {
    "valueAxis": (
        PropertyRule("labelPlacement", _value_label_placement),
        PropertyRule("fontColor", _value_labels),
        PropertyRule("fontSize", _value_labels),
        PropertyRule("fontFamily", _value_labels),
        PropertyRule("labelDisplayUnits", _value_labels),
        PropertyRule("precision", _value_labels, number_range="precision"),
        *_gridline_rules(_value_gridlines),
        PropertyRule("titleStyle", _value_title, fixed_when=_no_display_unit, fixed_value="title"),
        *_title_rules(_value_title),
    ),
    "categoryAxis": (
        PropertyRule("labelPlacement", _category_label_placement),
        PropertyRule("fontColor", _category_labels),
        PropertyRule("fontSize", _category_labels),
        PropertyRule("fontFamily", _category_labels),
        *_gridline_rules(_category_gridlines),
        *_title_rules(_category_title),
        PropertyRule("axisLineColor", _category_axis_line),
        PropertyRule("axisLineStrokeWidth", _category_axis_line, number_range="axis_line_stroke_width"),
    ),
    "legend": (
        PropertyRule("titleText", _legend_title),
        PropertyRule("includeRanges", _legend_title),
    ),
    "layout": (
        PropertyRule("numberOfColumns", _column_grid, number_range="number_of_columns"),
        PropertyRule("multipleWidth", _width_grid, number_range="multiple_size"),
        PropertyRule("multipleHeight", _height_grid, number_range="multiple_size"),
        PropertyRule("spacingBetweenColumns", number_range="spacing"),
        PropertyRule("spacingBetweenRows", number_range="spacing"),
    ),
    "heading": (
        PropertyRule("labelPosition", _heading_shown),
        PropertyRule("labelAlignment", _heading_shown),
        PropertyRule("fontSize", _heading_shown),
        PropertyRule("fontFamily", _heading_shown),
        PropertyRule("fontColor", _heading_shown),
        PropertyRule("fontColorAlternate", _heading_alternate),
    ),
    "smallMultiple": (
        PropertyRule("borderColor", _border),
        PropertyRule("borderStrokeWidth", _border, number_range="border_stroke_width"),
        PropertyRule("borderStyle", _border),
        PropertyRule("backgroundTransparency", number_range="background_transparency"),
        PropertyRule("zebraStripeApply", _zebra),
        PropertyRule("backgroundColorAlternate", _zebra),
    ),
}

MEASURE_RULES: tuple[MeasureRule, ...] = (
    MeasureRule("strokeWidth", number_range="shape_stroke_width"),
    MeasureRule("backgroundTransparency", lambda m: m.show_area, number_range="background_transparency"),
)

# Groups kept only so persisted v1 values stay readable; never editable.
RETIRED_GROUPS: frozenset[str] = frozenset({"colorSelector"})


def enumerate_properties(
    object_name: str,
    settings: VisualSettings,
    view_model: AnyViewModel,
    *,
    constants: VisualConstants = DEFAULT_CONSTANTS,
) -> EnumerationResult:
    """Describe the editable properties of one settings group.

    Pure: the result depends only on the arguments, so the host may call
    it as often as it likes between updates.
    """

    if object_name == "lines":
        return _enumerate_measures(view_model, constants=constants)
    if object_name in RETIRED_GROUPS:
        return EnumerationResult()
    if object_name == "features" and not constants.debug:
        return EnumerationResult()
    if object_name not in SETTINGS_GROUPS:
        LOGGER.debug("No settings group named `%s`", object_name)
        return EnumerationResult()

    properties = settings_group_properties(settings.group(object_name))
    valid_values: dict[str, Any] = {}
    for rule in PROPERTY_RULES.get(object_name, ()):
        if rule.name not in properties:
            continue
        if rule.visible_when is not None and not rule.visible_when(settings, view_model):
            del properties[rule.name]
            continue
        if rule.number_range is not None:
            valid_values[rule.name] = getattr(constants.ranges, rule.number_range).to_valid_values()
        if rule.fixed_when is not None and rule.fixed_when(settings, view_model):
            properties[rule.name] = rule.fixed_value
            valid_values[rule.name] = [rule.fixed_value]
    return EnumerationResult(
        instances=(PropertyInstance(object_name=object_name, properties=properties, valid_values=valid_values),)
    )


def measure_properties(measure: MeasureMetadata) -> dict[str, Any]:
    return {
        "stroke": {"solid": {"color": measure.stroke}},
        "strokeWidth": measure.stroke_width,
        "showArea": measure.show_area,
        "backgroundTransparency": measure.background_transparency,
        "lineShape": measure.line_shape,
        "lineStyle": measure.line_style,
    }


def _enumerate_measures(view_model: AnyViewModel, *, constants: VisualConstants) -> EnumerationResult:
    # The group's default instance is replaced by one instance per measure,
    # addressed by query name so overrides follow the series.
    containers: list[PropertyContainer] = []
    instances: list[PropertyInstance] = []
    for measure in view_model.measures:
        properties = measure_properties(measure)
        valid_values: dict[str, Any] = {}
        for rule in MEASURE_RULES:
            if rule.visible_when is not None and not rule.visible_when(measure):
                properties.pop(rule.name, None)
                continue
            if rule.number_range is not None:
                valid_values[rule.name] = getattr(constants.ranges, rule.number_range).to_valid_values()
        containers.append(PropertyContainer(display_name=measure.display_name))
        instances.append(
            PropertyInstance(
                object_name="lines",
                properties=properties,
                selector={"metadata": measure.query_name},
                valid_values=valid_values,
                display_name=measure.display_name,
                container_idx=len(containers) - 1,
            )
        )
    return EnumerationResult(instances=tuple(instances), containers=tuple(containers))
