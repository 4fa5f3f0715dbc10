from __future__ import annotations

import logging

from small_multiples.builder import build_view_model
from small_multiples.constants import DEFAULT_CONSTANTS, VisualConstants
from small_multiples.enumeration import EnumerationResult, enumerate_properties
from small_multiples.host import VisualHost, VisualUpdateOptions
from small_multiples.layout import LayoutResult, below_minimum_reason, minimised_layout, resolve_layout
from small_multiples.migration import parse_settings
from small_multiples.settings import VisualSettings
from small_multiples.view_model import AnyViewModel, InvalidViewModel


LOGGER = logging.getLogger(__name__)

NO_DATA_REASON = "no data view supplied"


class SmallMultiplesVisual:
    """Entry point the host drives with `update` and property-pane queries.

    Each update resolves settings, the view model and the layout before
    touching the drawing surface, so a failure part-way leaves the last
    successful render on screen.
    """

    def __init__(self, host: VisualHost, *, constants: VisualConstants = DEFAULT_CONSTANTS) -> None:
        self.host = host
        self.constants = constants
        self.settings: VisualSettings | None = None
        self.view_model: AnyViewModel = InvalidViewModel(reason=NO_DATA_REASON)
        self.layout: LayoutResult | None = None

    def update(self, options: VisualUpdateOptions) -> None:
        events = self.host.events
        events.rendering_started(options)
        LOGGER.debug(
            "Update %s viewport=%gx%g edit_mode=%s",
            options.type.value,
            options.viewport.width,
            options.viewport.height,
            options.edit_mode,
        )
        try:
            self._update(options)
        except Exception as exc:
            LOGGER.exception("Rendering failed for %s update", options.type.value)
            events.rendering_failed(options, str(exc))
            return
        events.rendering_finished(options)

    def _update(self, options: VisualUpdateOptions) -> None:
        settings, data_view = parse_settings(
            options.data_view,
            self.host.persister,
            constants=self.constants,
        )
        if options.type.rebuilds_view_model or self.settings is None:
            view_model = build_view_model(
                data_view,
                settings,
                formatter=self.host.formatter,
                constants=self.constants,
            )
        else:
            view_model = self.view_model

        if not view_model.is_valid:
            assert isinstance(view_model, InvalidViewModel)
            self.settings, self.view_model, self.layout = settings, view_model, None
            too_small = below_minimum_reason(options.viewport.width, options.viewport.height, self.constants.min_px)
            if too_small is not None:
                self.layout = minimised_layout(options.viewport, too_small)
                self.host.surface.render_minimised(view_model, self.layout, settings)
                return
            self.host.surface.show_landing(view_model.reason, settings)
            return

        layout = resolve_layout(
            view_model,
            settings,
            options.viewport,
            measurer=self.host.measurer,
            formatter=self.host.formatter,
            constants=self.constants,
        )
        self.settings, self.view_model, self.layout = settings, view_model, layout
        if layout.minimised:
            LOGGER.debug("Rendering minimised placeholder: %s", layout.state.minimised_reason)
            self.host.surface.render_minimised(view_model, layout, settings)
            return
        self.host.surface.render(view_model, layout, settings)

    def enumerate_object_instances(self, object_name: str) -> EnumerationResult:
        return enumerate_properties(
            object_name,
            self.settings or VisualSettings.default(),
            self.view_model,
            constants=self.constants,
        )
