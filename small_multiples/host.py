from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from small_multiples.data_view import DataView
from small_multiples.formatting import DefaultNumberFormatter, NumberFormatter
from small_multiples.layout import LayoutResult, Viewport
from small_multiples.migration import PropertyChanges
from small_multiples.settings import VisualSettings
from small_multiples.text import PillowTextMeasurer, TextMeasurer
from small_multiples.view_model import AnyViewModel, ViewModel


class UpdateType(str, Enum):
    DATA = "data"
    RESIZE = "resize"
    VIEW_MODE = "view_mode"
    STYLE = "style"
    ALL = "all"

    @property
    def rebuilds_view_model(self) -> bool:
        return self in (UpdateType.DATA, UpdateType.ALL)


@dataclass(frozen=True)
class VisualUpdateOptions:
    viewport: Viewport
    data_views: tuple[DataView, ...] = ()
    type: UpdateType = UpdateType.ALL
    edit_mode: bool = False

    @property
    def data_view(self) -> DataView | None:
        return self.data_views[0] if self.data_views else None


class PropertyPersister(Protocol):
    def persist_properties(self, changes: PropertyChanges) -> None:
        ...


class RenderingEvents(Protocol):
    def rendering_started(self, options: VisualUpdateOptions) -> None:
        ...

    def rendering_finished(self, options: VisualUpdateOptions) -> None:
        ...

    def rendering_failed(self, options: VisualUpdateOptions, reason: str) -> None:
        ...


class DrawingSurface(Protocol):
    """Paints what the engine resolved. Exactly one method is called per update."""

    def render(self, view_model: ViewModel, layout: LayoutResult, settings: VisualSettings) -> None:
        ...

    def render_minimised(self, view_model: AnyViewModel, layout: LayoutResult, settings: VisualSettings) -> None:
        ...

    def show_landing(self, reason: str, settings: VisualSettings) -> None:
        ...


class NullRenderingEvents:
    def rendering_started(self, options: VisualUpdateOptions) -> None:
        return None

    def rendering_finished(self, options: VisualUpdateOptions) -> None:
        return None

    def rendering_failed(self, options: VisualUpdateOptions, reason: str) -> None:
        return None


@dataclass
class VisualHost:
    """The collaborators a visual needs from its host."""

    surface: DrawingSurface
    persister: PropertyPersister | None = None
    events: RenderingEvents = field(default_factory=NullRenderingEvents)
    measurer: TextMeasurer = field(default_factory=PillowTextMeasurer)
    formatter: NumberFormatter = field(default_factory=DefaultNumberFormatter)
