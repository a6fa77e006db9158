from __future__ import annotations

from typing import Protocol

import math
import numpy as np
from numpy.typing import NDArray

from .lattice import DrawMode, SimulationEngine
from .palette import NUM_COLORS, Palette


# Offsets chosen by eye so typical flows land mid-palette.
SPEED_OFFSET = 0.21
VELOCITY_OFFSET = 0.21052631578
DENSITY_OFFSET = -0.75
CURL_OFFSET = 0.25196850393

VECTOR_STRIDE = 10
VECTOR_SCALE = 200.0
MARKER_RADIUS = 1.0

Point = tuple[float, float]


# ---------------------------
# Drawing targets
# ---------------------------
class RasterSurface(Protocol):
    def blit(self, buffer: NDArray[np.uint8]) -> None: ...


class ImageSurface:
    """In-memory raster surface; keeps a copy of the last blitted frame."""

    def __init__(self) -> None:
        self.image: NDArray[np.uint8] | None = None
        self.blits = 0

    def blit(self, buffer: NDArray[np.uint8]) -> None:
        self.image = buffer.copy()
        self.blits += 1


class OverlayLayer:
    """Retained vector layer in pixel space (segments, dots, filled squares).

    ``revision`` bumps on every change so a front end can tell when to resync.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.segments: list[tuple[Point, Point]] = []
        self.dots: list[tuple[float, float, float]] = []
        self.squares: list[tuple[float, float, float]] = []
        self.revision = 0

    @property
    def is_empty(self) -> bool:
        return not (self.segments or self.dots or self.squares)

    def clear(self) -> None:
        self.segments.clear()
        self.dots.clear()
        self.squares.clear()
        self.revision += 1

    def line(self, x0: float, y0: float, x1: float, y1: float) -> None:
        self.segments.append(((x0, y0), (x1, y1)))
        self.revision += 1

    def dot(self, x: float, y: float, radius: float = MARKER_RADIUS) -> None:
        self.dots.append((x, y, radius))
        self.revision += 1

    def square(self, x: float, y: float, size: float) -> None:
        self.squares.append((x, y, size))
        self.revision += 1


def _round_half_up(v: float) -> float:
    return float(math.floor(v + 0.5))


def color_index(
    mode: DrawMode,
    ux: NDArray[np.float64],
    uy: NDArray[np.float64],
    *,
    density: NDArray[np.float64] | None = None,
    curl: NDArray[np.float64] | None = None,
    n: int = NUM_COLORS,
) -> NDArray[np.float64] | None:
    """Unclamped palette bucket per cell for the given draw mode; None for DrawMode.NONE."""
    with np.errstate(invalid="ignore", over="ignore"):
        if mode == DrawMode.SPEED:
            return np.floor((np.sqrt(ux * ux + uy * uy) + SPEED_OFFSET) * n)
        if mode == DrawMode.X_VELOCITY:
            return np.floor((ux + VELOCITY_OFFSET) * n)
        if mode == DrawMode.Y_VELOCITY:
            return np.floor((uy + VELOCITY_OFFSET) * n)
        if mode == DrawMode.DENSITY:
            if density is None:
                raise ValueError("density field required for DrawMode.DENSITY.")
            return np.floor((density + DENSITY_OFFSET) * n)
        if mode == DrawMode.CURL:
            if curl is None:
                raise ValueError("curl field required for DrawMode.CURL.")
            return np.floor((curl + CURL_OFFSET) * n)
    return None


# ---------------------------
# Overlays
# ---------------------------
class VectorOverlayRenderer:
    """Sparse velocity arrows: one segment plus an origin dot per sampled cell."""

    def __init__(self, layer: OverlayLayer, pixels_per_node: int) -> None:
        self.layer = layer
        self.ppn = int(pixels_per_node)

    def clear(self) -> None:
        self.layer.clear()

    def draw_vector(self, x: int, y: int, ux: float, uy: float) -> None:
        xpx = float(x * self.ppn)
        ypx = float(y * self.ppn)
        reach = self.ppn * VECTOR_SCALE
        self.layer.line(xpx, ypx, _round_half_up(xpx + ux * reach), ypx + uy * reach)
        self.layer.dot(xpx, ypx, MARKER_RADIUS)


class ParticleRenderer:
    """Tracer markers. An empty tracer set leaves the layer as it was."""

    def __init__(self, engine: SimulationEngine, layer: OverlayLayer, pixels_per_node: int) -> None:
        self._engine = engine
        self.layer = layer
        self.ppn = int(pixels_per_node)

    def render_frame(self) -> int:
        count = self._engine.tracer_count()
        if count <= 0:
            return 0
        with self._engine.borrow("tracer_x", "tracer_y") as views:
            xs = views["tracer_x"] * self.ppn
            ys = views["tracer_y"] * self.ppn
            self.layer.clear()
            for x, y in zip(xs.tolist(), ys.tolist()):
                self.layer.dot(x, y, MARKER_RADIUS)
        return count


class BarrierRenderer:
    """Filled squares for barrier cells, redrawn only when the mask changes."""

    def __init__(self, engine: SimulationEngine, layer: OverlayLayer, pixels_per_node: int) -> None:
        self._engine = engine
        self.layer = layer
        self.ppn = int(pixels_per_node)
        self._last: NDArray[np.bool_] | None = None

    def render_frame(self) -> bool:
        with self._engine.borrow("barrier") as views:
            mask = np.asarray(views["barrier"], dtype=bool)
            if self._last is not None and np.array_equal(mask, self._last):
                return False
            self._last = mask.copy()
        self.layer.clear()
        ys, xs = np.divmod(np.flatnonzero(self._last), self._engine.width)
        for x, y in zip(xs.tolist(), ys.tolist()):
            self.layer.square(float(x * self.ppn), float(y * self.ppn), float(self.ppn))
        return True


# ---------------------------
# Scalar field
# ---------------------------
class FieldRenderer:
    """Colors every non-barrier cell from the active scalar field into an RGBA raster."""

    def __init__(
        self,
        engine: SimulationEngine,
        palette: Palette,
        surface: RasterSurface,
        *,
        pixels_per_node: int,
        vectors: VectorOverlayRenderer | None = None,
    ) -> None:
        if int(pixels_per_node) < 1:
            raise ValueError("pixels_per_node must be >= 1.")
        self._engine = engine
        self._palette = palette
        self._surface = surface
        self._vectors = vectors
        self.ppn = int(pixels_per_node)
        self.flow_vectors = False
        self.raster: NDArray[np.uint8] = np.zeros(
            (engine.height * self.ppn, engine.width * self.ppn, 4), dtype=np.uint8
        )

    def render_frame(self) -> int:
        """Render one frame and blit it; returns the number of cells colored."""
        if self.flow_vectors and self._vectors is not None:
            self._vectors.clear()

        mode = self._engine.draw_mode
        names = ["ux", "uy", "barrier"]
        if mode == DrawMode.DENSITY:
            names.append("density")
        elif mode == DrawMode.CURL:
            names.append("curl")

        shape = (self._engine.height, self._engine.width)
        painted = 0
        with self._engine.borrow(*names) as views:
            ux = views["ux"].reshape(shape)
            uy = views["uy"].reshape(shape)
            fluid = ~np.asarray(views["barrier"], dtype=bool).reshape(shape)

            if self.flow_vectors and self._vectors is not None:
                sub = fluid[::VECTOR_STRIDE, ::VECTOR_STRIDE]
                for j, i in zip(*np.nonzero(sub)):
                    y, x = int(j) * VECTOR_STRIDE, int(i) * VECTOR_STRIDE
                    self._vectors.draw_vector(x, y, float(ux[y, x]), float(uy[y, x]))

            index = color_index(
                mode, ux, uy,
                density=views["density"].reshape(shape) if mode == DrawMode.DENSITY else None,
                curl=views["curl"].reshape(shape) if mode == DrawMode.CURL else None,
                n=len(self._palette),
            )
            if index is not None:
                painted = self._paint(self._palette.lookup(index), fluid)

        self._surface.blit(self.raster)
        return painted

    def _paint(self, colors: NDArray[np.uint8], fluid: NDArray[np.bool_]) -> int:
        p = self.ppn
        block = np.repeat(np.repeat(colors, p, axis=0), p, axis=1)
        mask = np.repeat(np.repeat(fluid, p, axis=0), p, axis=1)
        self.raster[mask] = block[mask]
        return int(fluid.sum())


# ---------------------------
# Composite
# ---------------------------
class FrameRenderer:
    """Owns the palette and the layers, and renders particles, barriers and field once per frame."""

    def __init__(
        self,
        engine: SimulationEngine,
        surface: RasterSurface,
        *,
        pixels_per_node: int,
        palette: Palette | None = None,
    ) -> None:
        if engine is None:
            raise ValueError("an engine is required.")
        if surface is None:
            raise ValueError("a raster surface is required.")
        self.palette = palette or Palette.build(NUM_COLORS)
        self.vector_layer = OverlayLayer("vectors")
        self.particle_layer = OverlayLayer("particles")
        self.barrier_layer = OverlayLayer("barriers")
        self.vectors = VectorOverlayRenderer(self.vector_layer, pixels_per_node)
        self.particles = ParticleRenderer(engine, self.particle_layer, pixels_per_node)
        self.barriers = BarrierRenderer(engine, self.barrier_layer, pixels_per_node)
        self.field = FieldRenderer(
            engine, self.palette, surface, pixels_per_node=pixels_per_node, vectors=self.vectors
        )

    @property
    def flow_vectors(self) -> bool:
        return self.field.flow_vectors

    @flow_vectors.setter
    def flow_vectors(self, enabled: bool) -> None:
        self.field.flow_vectors = bool(enabled)

    @property
    def raster(self) -> NDArray[np.uint8]:
        return self.field.raster

    def render_frame(self) -> None:
        self.particles.render_frame()
        self.barriers.render_frame()
        self.field.render_frame()
