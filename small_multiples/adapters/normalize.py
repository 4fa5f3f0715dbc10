from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Mapping

import numpy as np

from small_multiples.data_view import (
    ROLE_CATEGORY,
    ROLE_MULTIPLE,
    ROLE_VALUES,
    DataColumn,
    DataView,
    ObjectMap,
)
from small_multiples.errors import DataViewError


try:
    import pandas as pd
except Exception:  # pragma: no cover - optional dependency
    pd = None  # type: ignore[assignment]


def coerce_measure_values(values: Sequence[Any], *, label: str = "values") -> np.ndarray:
    """Coerce raw measure cells into float64, mapping blanks to NaN."""

    if isinstance(values, np.ndarray):
        if values.ndim != 1:
            raise DataViewError(f"{label} must be 1-D")
        if values.dtype.kind in {"i", "u", "f", "b"}:
            out = values.astype(np.float64, copy=True)
            out[~np.isfinite(out)] = np.nan
            return out
        values = values.tolist()

    out = np.empty(len(values), dtype=np.float64)
    for i, raw in enumerate(values):
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            out[i] = np.nan
            continue
        if isinstance(raw, bool):
            raise DataViewError(f"{label} contains a boolean at index {i}")
        if isinstance(raw, Decimal):
            out[i] = float(raw)
            continue
        try:
            out[i] = float(raw)
        except (TypeError, ValueError) as exc:
            raise DataViewError(f"{label} contains non-numeric value at index {i}: {raw!r}") from exc
    out[~np.isfinite(out)] = np.nan
    return out


def data_view_from_frame(
    frame: Any,
    *,
    multiple: str,
    category: str,
    values: Sequence[str],
    objects: ObjectMap | None = None,
    column_objects: Mapping[str, ObjectMap] | None = None,
    format_strings: Mapping[str, str] | None = None,
) -> DataView:
    """Build a data view from a long-format pandas DataFrame."""

    if pd is None:
        raise DataViewError("pandas is required to build a data view from a DataFrame")
    if not isinstance(frame, pd.DataFrame):
        raise DataViewError("`frame` must be a pandas DataFrame")
    if not values:
        raise DataViewError("at least one measure column is required")

    wanted = [multiple, category, *values]
    missing = [name for name in wanted if name not in frame.columns]
    if missing:
        raise DataViewError(f"column not found: {', '.join(missing)}")

    column_objects = column_objects or {}
    format_strings = format_strings or {}
    columns = [
        DataColumn(display_name=str(multiple), query_name=str(multiple), roles=(ROLE_MULTIPLE,)),
        DataColumn(display_name=str(category), query_name=str(category), roles=(ROLE_CATEGORY,)),
    ]
    for name in values:
        if not _is_numeric_dtype(frame[name]):
            raise DataViewError(f"measure column must be numeric: {name}")
        columns.append(
            DataColumn(
                display_name=str(name),
                query_name=str(name),
                roles=(ROLE_VALUES,),
                format_string=format_strings.get(name),
                objects=dict(column_objects.get(name, {})),
            )
        )

    subset = frame[wanted]
    measure_arrays = [coerce_measure_values(subset[name].to_numpy(), label=str(name)) for name in values]
    rows: list[tuple[Any, ...]] = []
    multiple_keys = [_key_or_none(k) for k in subset[multiple].tolist()]
    category_keys = [_key_or_none(k) for k in subset[category].tolist()]
    for i, (multiple_key, category_key) in enumerate(zip(multiple_keys, category_keys)):
        cells = tuple(None if np.isnan(arr[i]) else float(arr[i]) for arr in measure_arrays)
        rows.append((multiple_key, category_key, *cells))
    return DataView(columns=tuple(columns), rows=tuple(rows), objects=dict(objects or {}))


def _key_or_none(key: Any) -> Any:
    """Blank dimension cells (NaN, NaT, pd.NA) read as a missing key."""

    try:
        return None if pd.isna(key) else key
    except (TypeError, ValueError):
        return key


def _is_numeric_dtype(series: Any) -> bool:
    if pd is None:
        return False
    try:
        return bool(pd.api.types.is_numeric_dtype(series))
    except Exception:
        return False
