from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import math
import re
from typing import Protocol


@dataclass(frozen=True)
class DisplayUnit:
    value: float
    suffix: str
    label: str

    def __post_init__(self) -> None:
        if self.value <= 1:
            raise ValueError("DisplayUnit.value must be > 1")


THOUSANDS = DisplayUnit(1e3, "K", "Thousands")
MILLIONS = DisplayUnit(1e6, "M", "Millions")
BILLIONS = DisplayUnit(1e9, "bn", "Billions")
TRILLIONS = DisplayUnit(1e12, "T", "Trillions")

DISPLAY_UNITS: tuple[DisplayUnit, ...] = (THOUSANDS, MILLIONS, BILLIONS, TRILLIONS)

AUTO_DISPLAY_UNITS = 0.0
NO_DISPLAY_UNITS = 1.0

_DECIMALS_PATTERN = re.compile(r"[0#]\.([0#]+)")


def resolve_display_unit(setting: float, magnitude: float) -> DisplayUnit | None:
    """Pick the display unit for a value axis.

    `setting` follows the persisted convention: 0 = auto, 1 = none,
    otherwise the unit's scale. Auto inspects `magnitude`, which callers
    compute across every multiple so all panels share one unit.
    """

    if setting == NO_DISPLAY_UNITS:
        return None
    if setting == AUTO_DISPLAY_UNITS:
        if not math.isfinite(magnitude):
            return None
        chosen: DisplayUnit | None = None
        for unit in DISPLAY_UNITS:
            if abs(magnitude) >= unit.value:
                chosen = unit
        return chosen
    for unit in DISPLAY_UNITS:
        if unit.value == setting:
            return unit
    return None


class NumberFormatter(Protocol):
    def format(
        self,
        value: float,
        *,
        format_string: str | None = None,
        display_unit: DisplayUnit | None = None,
        precision: int | None = None,
    ) -> str:
        ...


@dataclass(frozen=True)
class FormatPattern:
    decimals: int | None = None
    grouping: bool = False
    percent: bool = False


def parse_format_string(format_string: str | None) -> FormatPattern:
    if not format_string:
        return FormatPattern()
    match = _DECIMALS_PATTERN.search(format_string)
    decimals = len(match.group(1)) if match else (0 if "0" in format_string else None)
    return FormatPattern(
        decimals=decimals,
        grouping="," in format_string,
        percent="%" in format_string,
    )


class DefaultNumberFormatter:
    """Formats axis values with a subset of host format strings.

    Understands decimal placeholders (`0.00`), thousands grouping (`#,0`)
    and percentages (`0.0%`). An explicit precision wins over the format
    string's decimals; with neither, trailing zeros are trimmed.
    """

    def format(
        self,
        value: float,
        *,
        format_string: str | None = None,
        display_unit: DisplayUnit | None = None,
        precision: int | None = None,
    ) -> str:
        if value is None or not math.isfinite(value):
            return ""
        pattern = parse_format_string(format_string)
        suffix = ""
        if pattern.percent:
            value = value * 100.0
            suffix = "%"
        elif display_unit is not None:
            value = value / display_unit.value
            suffix = display_unit.suffix

        decimals = precision if precision is not None else pattern.decimals
        out = _format_decimal(value, decimals=decimals, grouping=pattern.grouping)
        return f"{out}{suffix}"


def _format_decimal(value: float, *, decimals: int | None, grouping: bool) -> str:
    d = Decimal(str(value))
    places = decimals if decimals is not None else 6
    quant = Decimal("1").scaleb(-places)
    try:
        q = d.quantize(quant)
    except InvalidOperation:
        q = d
    out = format(q, ",f" if grouping else "f")
    # Only trim when no precision was asked for; "2.50" must stay "2.50".
    if decimals is None and "." in out:
        out = out.rstrip("0").rstrip(".")
    if out.lstrip("-").strip("0.,") == "":
        out = out.lstrip("-")
    return out
