from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Sequence


ROLE_MULTIPLE = "multiple"
ROLE_CATEGORY = "category"
ROLE_VALUES = "values"

DATA_ROLES: tuple[str, ...] = (ROLE_MULTIPLE, ROLE_CATEGORY, ROLE_VALUES)

ObjectMap = Mapping[str, Mapping[str, Any]]


@dataclass(frozen=True)
class DataColumn:
    """Column metadata as supplied by the host's data-binding layer.

    `query_name` is the stable identity used as the selector for
    per-series settings; `objects` holds the properties persisted against
    that selector.
    """

    display_name: str
    query_name: str
    roles: tuple[str, ...]
    format_string: str | None = None
    objects: ObjectMap = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.query_name.strip():
            raise ValueError("DataColumn.query_name must be non-empty")
        unknown = [role for role in self.roles if role not in DATA_ROLES]
        if unknown:
            raise ValueError(f"Unsupported data roles: {', '.join(unknown)}")

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class DataView:
    columns: tuple[DataColumn, ...] = ()
    rows: tuple[tuple[Any, ...], ...] = ()
    objects: ObjectMap = field(default_factory=dict)

    def __post_init__(self) -> None:
        width = len(self.columns)
        for i, row in enumerate(self.rows):
            if len(row) != width:
                raise ValueError(f"row {i} has {len(row)} values, expected {width}")
        names = [c.query_name for c in self.columns]
        if len(set(names)) != len(names):
            raise ValueError("DataView column query names must be unique")

    def columns_for_role(self, role: str) -> tuple[DataColumn, ...]:
        return tuple(c for c in self.columns if c.has_role(role))

    def column_index(self, query_name: str) -> int:
        for i, column in enumerate(self.columns):
            if column.query_name == query_name:
                return i
        raise KeyError(f"column not found: {query_name}")

    def column_values(self, query_name: str) -> tuple[Any, ...]:
        idx = self.column_index(query_name)
        return tuple(row[idx] for row in self.rows)

    def with_objects(
        self,
        objects: ObjectMap,
        column_objects: Mapping[str, ObjectMap] | None = None,
    ) -> "DataView":
        columns = self.columns
        if column_objects:
            columns = tuple(
                replace(c, objects=column_objects[c.query_name]) if c.query_name in column_objects else c
                for c in self.columns
            )
        return replace(self, columns=columns, objects=objects)


def build_data_view(
    columns: Sequence[DataColumn],
    rows: Sequence[Sequence[Any]],
    *,
    objects: ObjectMap | None = None,
) -> DataView:
    return DataView(
        columns=tuple(columns),
        rows=tuple(tuple(row) for row in rows),
        objects=dict(objects or {}),
    )
