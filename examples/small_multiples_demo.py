from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw

from small_multiples import SmallMultiplesVisual, UpdateType, Viewport, VisualHost, VisualUpdateOptions
from small_multiples.data_view import DataColumn, build_data_view


class WireframeSurface:
    """Draws the resolved boxes so layout changes can be eyeballed."""

    def __init__(self, out_path: Path, size: tuple[int, int]) -> None:
        self.out_path = out_path
        self.size = size

    def render(self, view_model, layout, settings) -> None:
        image = Image.new("RGB", self.size, "white")
        draw = ImageDraw.Draw(image)
        state = layout.state
        for box, color in (
            (state.legend_box, "#8AD4EB"),
            (state.value_title_box, "#F2C80F"),
            (state.category_title_box, "#F2C80F"),
            (state.value_axis_box, "#FE9666"),
            (state.category_axis_box, "#FE9666"),
        ):
            if box is not None:
                draw.rectangle((box.x, box.y, box.right, box.bottom), outline=color)
        for multiple in layout.multiples:
            rect = multiple.rect
            draw.rectangle((rect.x, rect.y, rect.right, rect.bottom), outline="#999999")
            if multiple.heading_rect is not None:
                draw.text((multiple.heading_rect.x + 2, multiple.heading_rect.y + 2), multiple.label, fill="#666666")
            self._draw_series(draw, view_model, multiple)
        image.save(self.out_path)
        print(f"wrote {self.out_path}")

    def render_minimised(self, view_model, layout, settings) -> None:
        print(f"minimised: {layout.state.minimised_reason}")

    def show_landing(self, reason, settings) -> None:
        print(f"landing page: {reason}")

    @staticmethod
    def _draw_series(draw: ImageDraw.ImageDraw, view_model, multiple) -> None:
        plot = multiple.plot_rect
        domain = view_model.value_axis
        count = len(view_model.category_axis.keys)
        xs = plot.x + (np.arange(count) + 0.5) * plot.width / max(count, 1)
        for series in multiple.series:
            ys = plot.bottom - (series.values - domain.start) / (domain.end - domain.start) * plot.height
            points = [(float(x), float(y)) for x, y in zip(xs, ys) if np.isfinite(y)]
            if len(points) > 1:
                draw.line(points, fill=view_model.measure(series.query_name).stroke, width=2)


def main() -> None:
    rng = np.random.default_rng(7)
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun"]
    regions = ["North", "South", "East", "West", "Central"]
    rows = []
    for region in regions:
        base = rng.uniform(2_000, 8_000)
        for i, month in enumerate(months):
            rows.append((region, month, base + 400 * i + rng.normal(0, 300), base * 0.6 + rng.normal(0, 200)))

    data_view = build_data_view(
        [
            DataColumn("Region", "Sales.Region", ("multiple",)),
            DataColumn("Month", "Sales.Month", ("category",)),
            DataColumn("Revenue", "Sum(Sales.Revenue)", ("values",), format_string="#,0"),
            DataColumn("Cost", "Sum(Sales.Cost)", ("values",), format_string="#,0"),
        ],
        rows,
        objects={"features": {"objectVersion": 2}, "layout": {"numberOfColumns": 3}, "legend": {"titleText": "Measure"}},
    )

    out_dir = Path(__file__).resolve().parent / "out"
    out_dir.mkdir(exist_ok=True)
    size = (960, 540)
    visual = SmallMultiplesVisual(VisualHost(surface=WireframeSurface(out_dir / "small_multiples.png", size)))
    visual.update(VisualUpdateOptions(viewport=Viewport(*size), data_views=(data_view,), type=UpdateType.ALL))


if __name__ == "__main__":
    main()
