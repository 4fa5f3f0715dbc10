from small_multiples.builder import build_view_model, validate_data_view
from small_multiples.constants import DEFAULT_CONSTANTS, NumberRange, VisualConstants
from small_multiples.data_view import DataColumn, DataView, build_data_view
from small_multiples.enumeration import EnumerationResult, PropertyInstance, enumerate_properties
from small_multiples.errors import DataViewError, LayoutError, SmallMultiplesError
from small_multiples.host import UpdateType, VisualHost, VisualUpdateOptions
from small_multiples.layout import LayoutResult, Viewport, resolve_layout
from small_multiples.migration import OBJECT_MIGRATION_V1_TO_V2, MigrationRule, PropertyChanges, parse_settings
from small_multiples.settings import VisualSettings, parse_settings_objects
from small_multiples.view_model import InvalidViewModel, ViewModel
from small_multiples.visual import SmallMultiplesVisual

__all__ = [
    "DEFAULT_CONSTANTS",
    "DataColumn",
    "DataView",
    "DataViewError",
    "EnumerationResult",
    "InvalidViewModel",
    "LayoutError",
    "LayoutResult",
    "MigrationRule",
    "NumberRange",
    "OBJECT_MIGRATION_V1_TO_V2",
    "PropertyChanges",
    "PropertyInstance",
    "SmallMultiplesError",
    "SmallMultiplesVisual",
    "UpdateType",
    "ViewModel",
    "Viewport",
    "VisualConstants",
    "VisualHost",
    "VisualSettings",
    "VisualUpdateOptions",
    "build_data_view",
    "build_view_model",
    "enumerate_properties",
    "parse_settings",
    "parse_settings_objects",
    "resolve_layout",
    "validate_data_view",
]
