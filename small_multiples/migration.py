from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Any, Mapping

from small_multiples.constants import DEFAULT_CONSTANTS, VisualConstants
from small_multiples.data_view import ROLE_VALUES, DataView, ObjectMap
from small_multiples.settings import VisualSettings, parse_settings_objects

if TYPE_CHECKING:
    from small_multiples.host import PropertyPersister


LOGGER = logging.getLogger(__name__)

VERSION_OBJECT = "features"
VERSION_PROPERTY = "objectVersion"


@dataclass(frozen=True)
class MigrationRule:
    """Move one persisted property to its current location.

    `per_measure` rules read and write the objects persisted against each
    measure column rather than the visual-wide objects.
    """

    source_object: str
    source_property: str
    target_object: str
    target_property: str
    per_measure: bool = False


@dataclass(frozen=True)
class ObjectInstance:
    object_name: str
    properties: dict[str, Any]
    selector: dict[str, Any] | None = None


@dataclass(frozen=True)
class PropertyChanges:
    replace: tuple[ObjectInstance, ...] = ()
    remove: tuple[ObjectInstance, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.replace and not self.remove


# Version 1 kept every small-multiple option under one object.
OBJECT_MIGRATION_V1_TO_V2: tuple[MigrationRule, ...] = (
    MigrationRule("smallMultiple", "showMultipleLabel", "heading", "show"),
    MigrationRule("smallMultiple", "maximumMultiplesPerRow", "layout", "numberOfColumns"),
    MigrationRule("smallMultiple", "spacingBetweenColumns", "layout", "spacingBetweenColumns"),
    MigrationRule("smallMultiple", "spacingBetweenRows", "layout", "spacingBetweenRows"),
    MigrationRule("smallMultiple", "labelPosition", "heading", "labelPosition"),
    MigrationRule("smallMultiple", "labelAlignment", "heading", "labelAlignment"),
    MigrationRule("smallMultiple", "fontSize", "heading", "fontSize"),
    MigrationRule("smallMultiple", "fontFamily", "heading", "fontFamily"),
    MigrationRule("smallMultiple", "fontColor", "heading", "fontColor"),
    MigrationRule("smallMultiple", "fontColorAlternate", "heading", "fontColorAlternate"),
    MigrationRule("colorSelector", "fill", "lines", "stroke", per_measure=True),
)


def object_version(objects: ObjectMap | None) -> int | None:
    if not objects:
        return None
    features = objects.get(VERSION_OBJECT)
    if not isinstance(features, Mapping):
        return None
    version = features.get(VERSION_PROPERTY)
    if isinstance(version, bool) or not isinstance(version, (int, float)):
        return None
    return int(version)


def needs_migration(objects: ObjectMap | None, target_version: int) -> bool:
    version = object_version(objects)
    return version is None or version < target_version


def migrate_object_properties(
    data_view: DataView,
    table: tuple[MigrationRule, ...] = OBJECT_MIGRATION_V1_TO_V2,
    target_version: int = DEFAULT_CONSTANTS.schema_version,
) -> tuple[DataView, PropertyChanges]:
    """Rewrite legacy properties into their current locations.

    Returns the data view as it reads after migration, plus the changes the
    host must persist for it to stay that way. Legacy keys are removed so
    that resetting a group to defaults cannot resurrect them. A value
    already present at the target location is kept.
    """

    if not needs_migration(data_view.objects, target_version):
        return data_view, PropertyChanges()

    objects = _copy_objects(data_view.objects)
    replaced: dict[tuple[str, str | None], dict[str, Any]] = {}
    removed: dict[tuple[str, str | None], dict[str, Any]] = {}

    for rule in table:
        if rule.per_measure:
            continue
        if _move(objects, rule):
            removed.setdefault((rule.source_object, None), {})[rule.source_property] = None
            target = objects[rule.target_object]
            replaced.setdefault((rule.target_object, None), {})[rule.target_property] = target[rule.target_property]

    column_objects: dict[str, dict[str, dict[str, Any]]] = {}
    for column in data_view.columns_for_role(ROLE_VALUES):
        measure_objects = _copy_objects(column.objects)
        moved = False
        for rule in table:
            if not rule.per_measure or not _move(measure_objects, rule):
                continue
            moved = True
            removed.setdefault((rule.source_object, column.query_name), {})[rule.source_property] = None
            value = measure_objects[rule.target_object][rule.target_property]
            replaced.setdefault((rule.target_object, column.query_name), {})[rule.target_property] = value
        if moved:
            column_objects[column.query_name] = measure_objects

    objects.setdefault(VERSION_OBJECT, {})[VERSION_PROPERTY] = target_version
    replaced.setdefault((VERSION_OBJECT, None), {})[VERSION_PROPERTY] = target_version

    changes = PropertyChanges(
        replace=_instances(replaced),
        remove=_instances(removed),
    )
    LOGGER.debug(
        "Migrated settings to version %d: %d replacements, %d removals",
        target_version,
        len(changes.replace),
        len(changes.remove),
    )
    return data_view.with_objects(objects, column_objects), changes


def parse_settings(
    data_view: DataView | None,
    persister: "PropertyPersister | None" = None,
    *,
    constants: VisualConstants = DEFAULT_CONSTANTS,
    table: tuple[MigrationRule, ...] = OBJECT_MIGRATION_V1_TO_V2,
) -> tuple[VisualSettings, DataView | None]:
    """Read settings from the data view, migrating older schemas first.

    Migration changes are persisted once through `persister`; the settings
    returned already reflect them, so callers do not wait for the host to
    echo the change back.
    """

    if data_view is None:
        return VisualSettings.default(), None
    if not needs_migration(data_view.objects, constants.schema_version):
        LOGGER.debug("Settings schema is current (version %s)", object_version(data_view.objects))
        return parse_settings_objects(data_view.objects, constants=constants), data_view

    LOGGER.info(
        "Settings schema version %s is older than %d; migrating",
        object_version(data_view.objects),
        constants.schema_version,
    )
    migrated, changes = migrate_object_properties(data_view, table, constants.schema_version)
    if persister is not None and not changes.is_empty:
        persister.persist_properties(changes)
    return parse_settings_objects(migrated.objects, constants=constants), migrated


def _copy_objects(objects: ObjectMap) -> dict[str, dict[str, Any]]:
    return {name: dict(props) for name, props in objects.items() if isinstance(props, Mapping)}


def _move(objects: dict[str, dict[str, Any]], rule: MigrationRule) -> bool:
    source = objects.get(rule.source_object)
    if source is None or rule.source_property not in source:
        return False
    value = source.pop(rule.source_property)
    if not source:
        del objects[rule.source_object]
    target = objects.setdefault(rule.target_object, {})
    if rule.target_property in target:
        LOGGER.debug(
            "Keeping existing %s.%s; dropping legacy %s.%s",
            rule.target_object,
            rule.target_property,
            rule.source_object,
            rule.source_property,
        )
    else:
        target[rule.target_property] = value
    return True


def _instances(grouped: dict[tuple[str, str | None], dict[str, Any]]) -> tuple[ObjectInstance, ...]:
    return tuple(
        ObjectInstance(
            object_name=object_name,
            properties=properties,
            selector=None if query_name is None else {"metadata": query_name},
        )
        for (object_name, query_name), properties in grouped.items()
    )
