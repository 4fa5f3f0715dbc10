from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from PIL import ImageFont


PT_TO_PX = 4.0 / 3.0
FALLBACK_FONT_PATTERNS = (
    "segoeui",
    "segoe ui",
    "helvetica",
    "arial",
    "dejavusans",
    "dejavu sans",
    "liberationsans",
)


@dataclass(frozen=True)
class TextStyle:
    font_family: str
    font_size_pt: float

    def __post_init__(self) -> None:
        if self.font_size_pt <= 0:
            raise ValueError("TextStyle.font_size_pt must be > 0")

    @property
    def font_size_px(self) -> float:
        return self.font_size_pt * PT_TO_PX


class TextMeasurer(Protocol):
    def measure(self, text: str, style: TextStyle, *, rotate_deg: int = 0) -> tuple[int, int]:
        ...


class PillowTextMeasurer:
    """Measures text with Pillow, using system fonts when they can be found."""

    def measure(self, text: str, style: TextStyle, *, rotate_deg: int = 0) -> tuple[int, int]:
        return text_size(text, font_family=style.font_family, font_size_px=style.font_size_px, rotate_deg=rotate_deg)


def text_size(
    text: str,
    *,
    font_family: str,
    font_size_px: float,
    rotate_deg: int = 0,
) -> tuple[int, int]:
    font = _load_font(font_family=font_family, font_size_px=font_size_px)
    if not text:
        _, top, _, bottom = font.getbbox("Hg")
        return (0, max(1, int(bottom - top)))
    left, top, right, bottom = font.getbbox(text)
    w = max(0, int(right - left))
    h = max(1, int(bottom - top))
    turns = _normalize_quarter_turns(rotate_deg)
    if turns % 2 == 1:
        return (h, w)
    return (w, h)


@lru_cache(maxsize=64)
def _load_font(font_family: str, font_size_px: float) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    size = max(1, int(round(font_size_px)))
    font_path = _resolve_font_path(font_family)
    if font_path is None:
        return _default_font(size)
    try:
        return ImageFont.truetype(str(font_path), size=size)
    except OSError:
        return _default_font(size)


def _default_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow < 10.1 has no sized default font.
        return ImageFont.load_default()


@lru_cache(maxsize=32)
def _resolve_font_path(font_family: str) -> Path | None:
    wanted = font_family.strip().lower()
    patterns = ((wanted,) if wanted else ()) + FALLBACK_FONT_PATTERNS

    font_dirs = [
        Path.home() / "Library" / "Fonts",
        Path("/Library/Fonts"),
        Path("/System/Library/Fonts"),
        Path("/System/Library/Fonts/Supplemental"),
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    candidates: list[Path] = []
    for base in font_dirs:
        if not base.exists():
            continue
        for ext in ("*.ttf", "*.otf", "*.ttc"):
            candidates.extend(base.rglob(ext))

    for pattern in patterns:
        p = pattern.replace(" ", "")
        for path in candidates:
            stem = path.stem.lower().replace(" ", "")
            name = path.name.lower().replace(" ", "")
            if p in stem or p in name:
                return path
    return None


def _normalize_quarter_turns(rotate_deg: int) -> int:
    if rotate_deg % 90 != 0:
        raise ValueError("rotate_deg must be a multiple of 90")
    return (rotate_deg // 90) % 4
