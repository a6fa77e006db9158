from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

try:
    import plotly.graph_objects as go
    _PLOTLY = True
except Exception:  # pragma: no cover
    _PLOTLY = False

from .lattice import DrawMode, Lattice
from .render import FrameRenderer, ImageSurface, OverlayLayer


@dataclass(slots=True)
class PlotlyFrameConfig:
    pixels_per_node: int = 4
    frames: int = 0
    show_vectors: bool = True
    show_tracers: bool = True
    barrier_color: tuple[int, int, int, int] = (255, 255, 0, 255)
    vector_color: str = "red"
    tracer_color: str = "black"


def _segment_trace_xy(layer: OverlayLayer) -> tuple[list[float | None], list[float | None]]:
    """Return x, y for a Plotly multi-segment line trace (None separates segments)."""
    xs: list[float | None] = []
    ys: list[float | None] = []
    for (x0, y0), (x1, y1) in layer.segments:
        xs.extend([x0, x1, None])
        ys.extend([y0, y1, None])
    return xs, ys


def _composite_barriers(raster: np.ndarray, layer: OverlayLayer, rgba: tuple[int, int, int, int]) -> np.ndarray:
    out = raster.copy()
    for x, y, s in layer.squares:
        x0, y0, s0 = int(x), int(y), int(s)
        out[y0:y0 + s0, x0:x0 + s0] = rgba
    return out


def plot_frame_interactive(
    lattice: Lattice,
    *,
    config: PlotlyFrameConfig | None = None,
    save_html: str | None = None,
) -> Any:
    """Interactive view of one rendered frame with Plotly (pan/zoom, hover). Returns the Figure."""
    if not _PLOTLY:
        raise RuntimeError("plotly is not installed. `pip install plotly`")

    cfg = config or PlotlyFrameConfig()
    surface = ImageSurface()
    renderer = FrameRenderer(lattice, surface, pixels_per_node=cfg.pixels_per_node)
    renderer.flow_vectors = cfg.show_vectors
    if cfg.show_tracers and lattice.tracer_count() == 0:
        lattice.init_tracers()
    for _ in range(cfg.frames):
        lattice.update()
    renderer.render_frame()

    image = _composite_barriers(renderer.raster, renderer.barrier_layer, cfg.barrier_color)
    h, w = image.shape[:2]

    fig = go.Figure(data=[go.Image(z=image, colormodel="rgba", name="field")])

    # Vector overlay
    if cfg.show_vectors and not renderer.vector_layer.is_empty:
        qx, qy = _segment_trace_xy(renderer.vector_layer)
        fig.add_trace(go.Scatter(x=qx, y=qy, mode="lines", line=dict(width=1, color=cfg.vector_color),
                                 name="velocity"))
        dots = np.asarray([(x, y) for x, y, _ in renderer.vector_layer.dots], dtype=np.float64)
        fig.add_trace(go.Scattergl(x=dots[:, 0], y=dots[:, 1], mode="markers",
                                   marker=dict(size=3, color=cfg.vector_color), showlegend=False))

    # Tracers
    if cfg.show_tracers and renderer.particle_layer.dots:
        pts = np.asarray([(x, y) for x, y, _ in renderer.particle_layer.dots], dtype=np.float64)
        fig.add_trace(go.Scattergl(x=pts[:, 0], y=pts[:, 1], mode="markers",
                                   marker=dict(size=3, color=cfg.tracer_color),
                                   name="tracers"))

    fig.update_layout(
        title=f"{DrawMode(lattice.draw_mode).name.lower()}, {lattice.width}x{lattice.height}, "
              f"ν = {lattice.viscosity:.3f}, u₀ = {lattice.flow_speed:.3f}",
        xaxis=dict(range=[0, w], showgrid=False, zeroline=False, visible=False),
        yaxis=dict(range=[h, 0], scaleanchor="x", scaleratio=1, showgrid=False, zeroline=False,
                   visible=False),
        template="plotly_white",
        legend=dict(x=0.01, y=0.99),
    )

    if save_html:
        fig.write_html(save_html, include_plotlyjs="cdn")
    return fig
