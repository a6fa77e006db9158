from __future__ import annotations

from collections.abc import Callable
from typing import Any

import logging
import numpy as np
from numpy.typing import NDArray
import matplotlib.pyplot as plt
from matplotlib import animation
from matplotlib.axes import Axes
from matplotlib.backend_bases import FigureCanvasBase, MouseEvent
from matplotlib.cm import ScalarMappable
from matplotlib.collections import LineCollection
from matplotlib.colors import Normalize
from matplotlib.figure import Figure
from matplotlib.image import AxesImage
from matplotlib.widgets import Button, CheckButtons, RadioButtons, Slider

from .api import ViewConfig
from .commands import (
    FLOW_SPEED_SCALE,
    VISCOSITY_SCALE,
    ClearBarriers,
    Command,
    PointerDown,
    PointerMove,
    PointerUp,
    ResetFlow,
    SelectDrawMode,
    SetFlowSpeed,
    SetStepsPerFrame,
    SetViscosity,
    SimulationController,
    ToggleFlowVectors,
    TogglePlay,
    ToggleTracers,
)
from .interaction import InteractionController
from .lattice import DrawMode, Lattice
from .loop import RenderLoop
from .render import FrameRenderer, ImageSurface, OverlayLayer


logger = logging.getLogger(__name__)

MODE_LABELS = ("Speed", "X velocity", "Y velocity", "Density", "Curl", "None")
OVERLAY_LABELS = ("Flow vectors", "Tracers")
MAX_STEPS_PER_FRAME = 20
BARRIER_RGBA = (255, 255, 0, 255)


# ---------------------------
# Platform adapters
# ---------------------------
class ImageArtistSurface:
    """Raster surface backed by an ``imshow`` artist."""

    def __init__(self, image: AxesImage) -> None:
        self._image = image

    def blit(self, buffer: NDArray[np.uint8]) -> None:
        self._image.set_data(buffer)


class MatplotlibFrameClock:
    """Frame clock made of single-shot canvas timers, one per requested frame."""

    def __init__(self, canvas: FigureCanvasBase, interval_ms: int) -> None:
        self._canvas = canvas
        self._interval = int(interval_ms)

    def request_frame(self, callback: Callable[[], None]) -> Any:
        timer = self._canvas.new_timer(interval=self._interval)
        timer.single_shot = True
        timer.add_callback(self._fire, callback)
        timer.start()
        return timer

    def _fire(self, callback: Callable[[], None]) -> None:
        callback()
        self._canvas.draw_idle()


class LayerArtists:
    """Mirror the renderer's overlay layers onto matplotlib artists."""

    def __init__(self, ax: Axes, renderer: FrameRenderer) -> None:
        self._renderer = renderer
        h, w = renderer.raster.shape[:2]
        self._barrier_rgba = np.zeros((h, w, 4), dtype=np.uint8)
        self.barrier_image = ax.imshow(
            self._barrier_rgba, extent=(0, w, h, 0), interpolation="nearest", zorder=2
        )
        self.vector_lines = LineCollection([], colors="red", linewidths=1.0, zorder=3)
        ax.add_collection(self.vector_lines)
        self.vector_dots = ax.scatter([], [], s=4.0, c="red", marker="o", zorder=3)
        self.particles = ax.scatter([], [], s=4.0, c="black", marker="o", zorder=4)
        self._seen: dict[str, int] = {}

    def _changed(self, layer: OverlayLayer) -> bool:
        if self._seen.get(layer.name) == layer.revision:
            return False
        self._seen[layer.name] = layer.revision
        return True

    @staticmethod
    def _offsets(layer: OverlayLayer) -> np.ndarray:
        if not layer.dots:
            return np.empty((0, 2), dtype=np.float64)
        return np.asarray([(x, y) for x, y, _ in layer.dots], dtype=np.float64)

    def sync(self) -> None:
        r = self._renderer
        if self._changed(r.vector_layer):
            self.vector_lines.set_segments(list(r.vector_layer.segments))
            self.vector_dots.set_offsets(self._offsets(r.vector_layer))
        if self._changed(r.particle_layer):
            self.particles.set_offsets(self._offsets(r.particle_layer))
        if self._changed(r.barrier_layer):
            self._barrier_rgba[:] = 0
            for x, y, s in r.barrier_layer.squares:
                x0, y0, s0 = int(x), int(y), int(s)
                self._barrier_rgba[y0:y0 + s0, x0:x0 + s0] = BARRIER_RGBA
            self.barrier_image.set_data(self._barrier_rgba)


def _raster_axes(ax: Axes, raster: NDArray[np.uint8]) -> AxesImage:
    h, w = raster.shape[:2]
    image = ax.imshow(raster, extent=(0, w, h, 0), interpolation="nearest", zorder=1)
    ax.set_xlim(0, w)
    ax.set_ylim(h, 0)
    ax.set_aspect("equal")
    ax.set_xticks([])
    ax.set_yticks([])
    return image


# ---------------------------
# Interactive viewer
# ---------------------------
class LatticeViewer:
    """Interactive window: raster, overlays, controls and pointer-driven pushes."""

    def __init__(self, lattice: Lattice, view: ViewConfig | None = None) -> None:
        if lattice is None:
            raise ValueError("a lattice is required.")
        self.lattice = lattice
        self.view = view or ViewConfig()
        ppn = self.view.pixels_per_node

        self.fig: Figure = plt.figure(figsize=self.view.figsize)
        self.ax: Axes = self.fig.add_axes([0.03, 0.32, 0.94, 0.64])
        self.ax.set_navigate(False)
        blank = np.zeros((lattice.height * ppn, lattice.width * ppn, 4), dtype=np.uint8)
        self.image = _raster_axes(self.ax, blank)

        self.renderer = FrameRenderer(lattice, ImageArtistSurface(self.image), pixels_per_node=ppn)
        self.artists = LayerArtists(self.ax, self.renderer)
        self.clock = MatplotlibFrameClock(self.fig.canvas, self.view.frame_interval_ms)
        self.loop = RenderLoop(lattice, self._render, self.clock)
        self.interaction = InteractionController(lattice, pixels_per_node=ppn)
        self.controller = SimulationController(lattice, self.renderer, self.loop, self.interaction)

        self._build_widgets()
        self._connect_events()
        if self.view.flow_vectors:
            self.controller.dispatch(ToggleFlowVectors(True))
        if self.view.tracers:
            self.controller.dispatch(ToggleTracers(True))
        self._render()

    # -------- rendering --------
    def _render(self) -> None:
        self.renderer.render_frame()
        self.artists.sync()
        self._update_title()

    def _update_title(self) -> None:
        state = "running" if self.loop.running else "stopped"
        self.ax.set_title(
            f"{DrawMode(self.lattice.draw_mode).name.lower()} | {state} | frame {self.loop.frames}",
            fontsize=9,
        )

    def dispatch(self, command: Command) -> None:
        self.controller.dispatch(command)
        # a paused window still shows the newly chosen field
        if isinstance(command, SelectDrawMode) and not self.loop.running:
            self.renderer.render_frame()
        self.artists.sync()
        self._update_title()
        self.fig.canvas.draw_idle()

    # -------- widgets --------
    def _build_widgets(self) -> None:
        lat = self.lattice
        fig = self.fig

        mode_ax = fig.add_axes([0.03, 0.03, 0.16, 0.24])
        self.mode_radio = RadioButtons(mode_ax, MODE_LABELS, active=int(lat.draw_mode))
        self.mode_radio.on_clicked(
            lambda label: self.dispatch(SelectDrawMode(MODE_LABELS.index(label)))
        )

        visc_ax = fig.add_axes([0.32, 0.21, 0.40, 0.04])
        self.viscosity_slider = Slider(
            visc_ax, "Viscosity", 0.0, 100.0, valinit=lat.viscosity * VISCOSITY_SCALE
        )
        self.viscosity_slider.on_changed(lambda v: self.dispatch(SetViscosity(v)))

        flow_ax = fig.add_axes([0.32, 0.15, 0.40, 0.04])
        self.flow_slider = Slider(
            flow_ax, "Flow speed", 0.0, 100.0, valinit=lat.flow_speed * FLOW_SPEED_SCALE
        )
        self.flow_slider.on_changed(lambda v: self.dispatch(SetFlowSpeed(v)))

        steps_ax = fig.add_axes([0.32, 0.09, 0.40, 0.04])
        self.steps_slider = Slider(
            steps_ax, "Speed", 1, MAX_STEPS_PER_FRAME, valinit=lat.steps_per_frame, valstep=1
        )
        self.steps_slider.on_changed(lambda v: self.dispatch(SetStepsPerFrame(int(v))))

        check_ax = fig.add_axes([0.78, 0.15, 0.19, 0.12])
        self.overlay_checks = CheckButtons(
            check_ax, OVERLAY_LABELS, [self.view.flow_vectors, self.view.tracers]
        )
        self.overlay_checks.on_clicked(self._on_overlay)

        play_ax = fig.add_axes([0.78, 0.08, 0.09, 0.05])
        self.play_button = Button(play_ax, "Play/Stop")
        self.play_button.on_clicked(lambda _: self.dispatch(TogglePlay()))

        clear_ax = fig.add_axes([0.88, 0.08, 0.09, 0.05])
        self.clear_button = Button(clear_ax, "Clear walls")
        self.clear_button.on_clicked(lambda _: self.dispatch(ClearBarriers()))

        reset_ax = fig.add_axes([0.78, 0.02, 0.19, 0.05])
        self.reset_button = Button(reset_ax, "Reset flow")
        self.reset_button.on_clicked(lambda _: self.dispatch(ResetFlow()))

    def _on_overlay(self, label: str) -> None:
        status = dict(zip(OVERLAY_LABELS, self.overlay_checks.get_status()))
        if label == "Flow vectors":
            self.dispatch(ToggleFlowVectors(status[label]))
        elif label == "Tracers":
            self.dispatch(ToggleTracers(status[label]))

    # -------- pointer --------
    def _connect_events(self) -> None:
        canvas = self.fig.canvas
        canvas.mpl_connect("button_press_event", self._on_press)
        canvas.mpl_connect("motion_notify_event", self._on_motion)
        canvas.mpl_connect("button_release_event", self._on_release)

    def _on_press(self, event: MouseEvent) -> None:
        if event.inaxes is not self.ax or event.xdata is None or event.ydata is None:
            return
        self.dispatch(PointerDown(float(event.xdata), float(event.ydata), int(event.button)))

    def _on_motion(self, event: MouseEvent) -> None:
        if not self.controller.dragging:
            return
        if event.inaxes is not self.ax or event.xdata is None or event.ydata is None:
            return
        self.controller.dispatch(PointerMove(float(event.xdata), float(event.ydata)))

    def _on_release(self, _event: MouseEvent) -> None:
        self.controller.dispatch(PointerUp())

    def show(self) -> None:
        logger.info("viewer open: %dx%d lattice, %d px/node", self.lattice.width,
                    self.lattice.height, self.view.pixels_per_node)
        plt.show()


# ------------------------------
# Offline output
# ------------------------------
def _palette_colorbar(fig: Figure, ax: Axes, renderer: FrameRenderer) -> None:
    n = len(renderer.palette)
    sm = ScalarMappable(norm=Normalize(0, n - 1), cmap=renderer.palette.as_colormap())
    fig.colorbar(sm, ax=ax, fraction=0.025, pad=0.02).set_label("color bucket")


def plot_snapshot(
    lattice: Lattice,
    *,
    frames: int = 0,
    view: ViewConfig | None = None,
    save_path: str | None = None,
    show: bool = True,
) -> Figure:
    """Advance ``frames`` frames headless, then draw the raster and overlays once."""
    view = view or ViewConfig()
    surface = ImageSurface()
    renderer = FrameRenderer(lattice, surface, pixels_per_node=view.pixels_per_node)
    renderer.flow_vectors = view.flow_vectors
    if view.tracers and lattice.tracer_count() == 0:
        lattice.init_tracers()
    for _ in range(frames):
        lattice.update()
    renderer.render_frame()

    fig, ax = plt.subplots(figsize=view.figsize)
    _raster_axes(ax, renderer.raster)
    LayerArtists(ax, renderer).sync()
    _palette_colorbar(fig, ax, renderer)
    ax.set_title(f"{DrawMode(lattice.draw_mode).name.lower()} after {frames} frames")
    if save_path:
        fig.savefig(save_path, dpi=150)
        logger.info("snapshot written to %s", save_path)
    if show:
        plt.show()
    return fig


def record_animation(
    lattice: Lattice,
    *,
    frames: int,
    save_path: str,
    view: ViewConfig | None = None,
    fps: int = 30,
) -> None:
    """Run ``frames`` frames and encode them to .mp4 (ffmpeg) or .gif (pillow)."""
    ext = save_path.lower().rsplit(".", 1)[-1]
    if ext not in ("mp4", "gif"):
        raise ValueError("Unsupported extension. Use .mp4 or .gif")
    view = view or ViewConfig()
    fig, ax = plt.subplots(figsize=view.figsize)
    blank = np.zeros((lattice.height * view.pixels_per_node, lattice.width * view.pixels_per_node, 4),
                     dtype=np.uint8)
    image = _raster_axes(ax, blank)
    renderer = FrameRenderer(lattice, ImageArtistSurface(image), pixels_per_node=view.pixels_per_node)
    renderer.flow_vectors = view.flow_vectors
    if view.tracers and lattice.tracer_count() == 0:
        lattice.init_tracers()
    artists = LayerArtists(ax, renderer)
    ttl = ax.set_title("frame 0")

    def _update(i: int) -> list[Any]:
        lattice.update()
        renderer.render_frame()
        artists.sync()
        ttl.set_text(f"frame {i + 1}")
        return [image, ttl]

    anim = animation.FuncAnimation(fig, _update, frames=frames, interval=1000 / fps, blit=False)

    if ext == "mp4":
        Writer = animation.FFMpegWriter
        writer = Writer(fps=fps, metadata={"artist": "lattice2d"}, bitrate=1800)
        anim.save(save_path, writer=writer, dpi=150)
    else:
        anim.save(save_path, writer="pillow", fps=fps, dpi=100)
    plt.close(fig)
    logger.info("recorded %d frames to %s", frames, save_path)
