from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from enum import IntEnum
from typing import NamedTuple, Protocol

import logging
import math
import numpy as np
from numpy.typing import NDArray


logger = logging.getLogger(__name__)


# ---------------------------
# Optional Numba (JIT) support
# ---------------------------
try:
    from numba import njit  # type: ignore
    _NUMBA = True
except Exception:  # pragma: no cover
    _NUMBA = False


def _maybe_njit(func):
    # Decorate with njit if available; else return original
    if _NUMBA:  # pragma: no cover
        return njit(cache=True, nogil=True)(func)  # type: ignore[misc]
    return func


@_maybe_njit
def _advect_tracers_jit(
    px: np.ndarray, py: np.ndarray, ux: np.ndarray, uy: np.ndarray, wrap: bool
) -> None:
    ny, nx = ux.shape
    for k in range(px.shape[0]):
        x0 = px[k]
        lx = int(math.floor(x0))
        ly = int(math.floor(py[k]))
        if 0 <= lx < nx and 0 <= ly < ny:
            px[k] += ux[ly, lx]
            py[k] += uy[ly, lx]
        if wrap and x0 > nx - 2:
            px[k] = 1.0


FloatArray = NDArray[np.float64]

# ---------------------------
# D2Q9 lattice
# ---------------------------
#     6   2   5
#       \ | /
#     3 - 0 - 1
#       / | \
#     7   4   8
# Directions are in math orientation (+y up); screen rows grow downward.
EX = np.array([0, 1, 0, -1, 0, 1, -1, -1, 1], dtype=np.int64)
EY = np.array([0, 0, 1, 0, -1, 1, 1, -1, -1], dtype=np.int64)
W = np.array([4/9, 1/9, 1/9, 1/9, 1/9, 1/36, 1/36, 1/36, 1/36], dtype=np.float64)
OPPOSITE = np.array([0, 3, 4, 1, 2, 7, 8, 5, 6], dtype=np.int64)
Q = 9

FOUR9THS = 4.0 / 9.0
ONE9TH = 1.0 / 9.0
ONE36TH = 1.0 / 36.0


class Cell(NamedTuple):
    """Particle distribution of one node, in D2Q9 direction order."""
    rest: float
    east: float
    north: float
    west: float
    south: float
    north_east: float
    north_west: float
    south_west: float
    south_east: float

    @property
    def rho(self) -> float:
        return float(sum(self))

    @property
    def ux(self) -> float:
        rho = self.rho
        if rho == 0.0:
            return 0.0
        return (self.east + self.north_east + self.south_east
                - self.west - self.north_west - self.south_west) / rho

    @property
    def uy(self) -> float:
        """Screen-oriented y velocity (positive downward)."""
        rho = self.rho
        if rho == 0.0:
            return 0.0
        return (self.south + self.south_west + self.south_east
                - self.north - self.north_east - self.north_west) / rho


def equilibrium(rho: float, ux: float, uy: float) -> Cell:
    """Second-order D2Q9 equilibrium for density rho and math-oriented velocity (ux, uy).

    f_i = w_i * rho * (1 + 3 e.u + 4.5 (e.u)^2 - 1.5 |u|^2); the nine terms sum to rho.
    """
    ux3 = 3.0 * ux
    uy3 = 3.0 * uy
    ux2 = ux * ux
    uy2 = uy * uy
    uxuy2 = 2.0 * ux * uy
    u2 = ux2 + uy2
    u215 = 1.5 * u2
    return Cell(
        FOUR9THS * rho * (1.0 - u215),
        ONE9TH * rho * (1.0 + ux3 + 4.5 * ux2 - u215),
        ONE9TH * rho * (1.0 + uy3 + 4.5 * uy2 - u215),
        ONE9TH * rho * (1.0 - ux3 + 4.5 * ux2 - u215),
        ONE9TH * rho * (1.0 - uy3 + 4.5 * uy2 - u215),
        ONE36TH * rho * (1.0 + ux3 + uy3 + 4.5 * (u2 + uxuy2) - u215),
        ONE36TH * rho * (1.0 - ux3 + uy3 + 4.5 * (u2 - uxuy2) - u215),
        ONE36TH * rho * (1.0 - ux3 - uy3 + 4.5 * (u2 + uxuy2) - u215),
        ONE36TH * rho * (1.0 + ux3 - uy3 + 4.5 * (u2 - uxuy2) - u215),
    )


def _equilibrium_field(rho: FloatArray, ux: FloatArray, uy: FloatArray) -> FloatArray:
    # Vectorized equilibrium, math orientation; returns (9, *rho.shape).
    eu = EX.reshape(-1, *([1] * rho.ndim)) * ux + EY.reshape(-1, *([1] * rho.ndim)) * uy
    u215 = 1.5 * (ux * ux + uy * uy)
    w = W.reshape(-1, *([1] * rho.ndim))
    return np.asarray(w * rho * (1.0 + 3.0 * eu + 4.5 * eu * eu - u215), dtype=np.float64)


class DrawMode(IntEnum):
    SPEED = 0
    X_VELOCITY = 1
    Y_VELOCITY = 2
    DENSITY = 3
    CURL = 4
    NONE = 5


# ---------------------------
# Configuration
# ---------------------------
@dataclass(slots=True)
class LatticeConfig:
    """Grid geometry and run controls supplied at engine construction."""
    width: int = 200
    height: int = 80
    steps_per_frame: int = 5
    flow_speed: float = 0.0
    draw_mode: DrawMode = DrawMode.SPEED
    viscosity: float = 0.27

    def __post_init__(self) -> None:
        if self.width < 3 or self.height < 3:
            raise ValueError("width and height must be at least 3.")
        if int(self.steps_per_frame) < 1:
            raise ValueError("steps_per_frame must be >= 1.")
        if not (np.isfinite(self.viscosity) and self.viscosity >= 0.0):
            raise ValueError("viscosity must be finite and non-negative.")
        if not np.isfinite(self.flow_speed):
            raise ValueError("flow_speed must be finite.")
        self.steps_per_frame = int(self.steps_per_frame)
        self.draw_mode = DrawMode(self.draw_mode)

    @property
    def omega(self) -> float:
        return 1.0 / (3.0 * self.viscosity + 0.5)

    @property
    def size(self) -> int:
        return self.width * self.height


# ---------------------------
# Borrowed views
# ---------------------------
FIELD_NAMES = ("ux", "uy", "barrier", "density", "curl", "tracer_x", "tracer_y")


class FrameViews(Mapping[str, np.ndarray]):
    """Read-only, length-bounded arrays valid only inside one ``borrow`` block."""

    __slots__ = ("_arrays", "_live")

    def __init__(self, arrays: dict[str, np.ndarray]) -> None:
        self._arrays = arrays
        self._live = True

    def __getitem__(self, name: str) -> np.ndarray:
        if not self._live:
            raise RuntimeError("engine views used after their borrow ended; borrow again.")
        return self._arrays[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._arrays)

    def __len__(self) -> int:
        return len(self._arrays)

    def release(self) -> None:
        self._live = False
        self._arrays = {}


def _read_only(arr: np.ndarray) -> np.ndarray:
    v = arr.reshape(-1).view()
    v.setflags(write=False)
    return v


class SimulationEngine(Protocol):
    """Capability contract the visualization layer consumes."""

    @property
    def width(self) -> int: ...
    @property
    def height(self) -> int: ...
    @property
    def steps_per_frame(self) -> int: ...
    @property
    def draw_mode(self) -> DrawMode: ...

    def update(self) -> None: ...
    def set_draw_mode(self, mode: DrawMode | int) -> None: ...
    def set_viscosity(self, viscosity: float) -> None: ...
    def set_flow_speed(self, flow_speed: float) -> None: ...
    def set_steps_per_frame(self, steps: int) -> None: ...
    def init_tracers(self) -> None: ...
    def clear_tracers(self) -> None: ...
    def tracer_count(self) -> int: ...
    def borrow(self, *names: str) -> AbstractContextManager[FrameViews]: ...
    def write_cell(self, cell: Cell | tuple[float, ...], index: int) -> None: ...


# ---------------------------
# Reference engine
# ---------------------------
class Lattice:
    """D2Q9 BGK lattice Boltzmann engine with bounce-back barriers and tracers."""

    def __init__(self, config: LatticeConfig | None = None) -> None:
        self._cfg = config or LatticeConfig()
        ny, nx = self._cfg.height, self._cfg.width
        self._f: FloatArray = np.zeros((Q, ny, nx), dtype=np.float64)
        self._density: FloatArray = np.zeros((ny, nx), dtype=np.float64)
        self._ux: FloatArray = np.zeros((ny, nx), dtype=np.float64)
        self._uy: FloatArray = np.zeros((ny, nx), dtype=np.float64)
        self._curl: FloatArray = np.zeros((ny, nx), dtype=np.float64)
        self._barrier: NDArray[np.bool_] = np.zeros((ny, nx), dtype=bool)
        self._barrier_revision = 0
        self._tracer_x: FloatArray = np.zeros(0, dtype=np.float64)
        self._tracer_y: FloatArray = np.zeros(0, dtype=np.float64)
        self.reset()

    @classmethod
    def create(
        cls,
        width: int,
        height: int,
        steps_per_frame: int,
        flow_speed: float,
        draw_mode: DrawMode | int,
        viscosity: float,
    ) -> Lattice:
        return cls(LatticeConfig(width, height, steps_per_frame, flow_speed, DrawMode(draw_mode), viscosity))

    # -------- properties --------
    @property
    def config(self) -> LatticeConfig: return self._cfg

    @property
    def width(self) -> int: return self._cfg.width

    @property
    def height(self) -> int: return self._cfg.height

    @property
    def size(self) -> int: return self._cfg.size

    @property
    def steps_per_frame(self) -> int: return self._cfg.steps_per_frame

    @property
    def flow_speed(self) -> float: return self._cfg.flow_speed

    @property
    def viscosity(self) -> float: return self._cfg.viscosity

    @property
    def draw_mode(self) -> DrawMode: return self._cfg.draw_mode

    @property
    def barrier_revision(self) -> int: return self._barrier_revision

    @property
    def distributions(self) -> FloatArray:
        """Copy of the (9, height, width) distribution array."""
        return np.asarray(self._f.copy(), dtype=np.float64)

    # -------- configuration --------
    def set_draw_mode(self, mode: DrawMode | int) -> None:
        self._cfg.draw_mode = DrawMode(mode)
        logger.info("draw mode -> %s", self._cfg.draw_mode.name)

    def set_viscosity(self, viscosity: float) -> None:
        if not (np.isfinite(viscosity) and viscosity >= 0.0):
            raise ValueError("viscosity must be finite and non-negative.")
        self._cfg.viscosity = float(viscosity)
        logger.info("viscosity -> %.4f (omega %.4f)", self._cfg.viscosity, self._cfg.omega)

    def set_flow_speed(self, flow_speed: float) -> None:
        if not np.isfinite(flow_speed):
            raise ValueError("flow_speed must be finite.")
        self._cfg.flow_speed = float(flow_speed)
        logger.info("flow speed -> %.4f", self._cfg.flow_speed)

    def set_steps_per_frame(self, steps: int) -> None:
        if int(steps) < 1:
            raise ValueError("steps_per_frame must be >= 1.")
        self._cfg.steps_per_frame = int(steps)
        logger.info("steps per frame -> %d", self._cfg.steps_per_frame)

    # -------- state --------
    def reset(self) -> None:
        """Put every non-barrier node at rest equilibrium with unit density."""
        free = ~self._barrier
        rest = np.asarray(equilibrium(1.0, 0.0, 0.0), dtype=np.float64)
        self._f[:, free] = rest[:, None]
        self._density[free] = 1.0
        self._ux[free] = 0.0
        self._uy[free] = 0.0
        self._curl[:] = 0.0

    def load_state(
        self,
        distributions: np.ndarray,
        barrier: np.ndarray,
        tracers: tuple[np.ndarray, np.ndarray] | None = None,
    ) -> None:
        """Replace the full lattice state (e.g. from a checkpoint) and refresh derived fields."""
        f = np.asarray(distributions, dtype=np.float64)
        b = np.asarray(barrier, dtype=bool)
        shape = (self.height, self.width)
        if f.shape != (Q, *shape):
            raise ValueError(f"distributions must have shape {(Q, *shape)}, got {f.shape}.")
        if b.shape != shape:
            raise ValueError(f"barrier must have shape {shape}, got {b.shape}.")
        self._f = f.copy()
        self._barrier = b.copy()
        self._barrier_revision += 1
        rho = self._f.sum(axis=0)
        safe = np.where(rho != 0.0, rho, 1.0)
        fluid = ~self._barrier
        self._density[:] = np.where(fluid, rho, self._density)
        self._ux[:] = np.where(fluid, (self._f * EX[:, None, None]).sum(axis=0) / safe, 0.0)
        self._uy[:] = np.where(fluid, -(self._f * EY[:, None, None]).sum(axis=0) / safe, 0.0)
        self._curl[:] = 0.0
        if tracers is None:
            self.clear_tracers()
        else:
            tx, ty = (np.asarray(t, dtype=np.float64).ravel() for t in tracers)
            if tx.shape != ty.shape:
                raise ValueError("tracer x and y must have the same length.")
            self._tracer_x = tx.copy()
            self._tracer_y = ty.copy()

    def write_cell(self, cell: Cell | tuple[float, ...], index: int) -> None:
        values = np.asarray(cell, dtype=np.float64)
        if values.shape != (Q,):
            raise ValueError("cell must have exactly 9 components.")
        if not 0 <= index < self.size:
            raise ValueError(f"cell index {index} out of range.")
        y, x = divmod(int(index), self.width)
        self._f[:, y, x] = values

    def set_barrier(self, x: int, y: int, value: bool = True) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise ValueError(f"barrier ({x}, {y}) outside the grid.")
        if self._barrier[y, x] == value:
            return
        self._barrier[y, x] = value
        if value:
            self._ux[y, x] = 0.0
            self._uy[y, x] = 0.0
            self._curl[y, x] = 0.0
        else:
            self._f[:, y, x] = np.asarray(equilibrium(1.0, 0.0, 0.0), dtype=np.float64)
            self._density[y, x] = 1.0
        self._barrier_revision += 1

    def clear_barriers(self) -> None:
        if not self._barrier.any():
            return
        ys, xs = np.nonzero(self._barrier)
        self._barrier[:] = False
        self._f[:, ys, xs] = np.asarray(equilibrium(1.0, 0.0, 0.0), dtype=np.float64)[:, None]
        self._density[ys, xs] = 1.0
        self._barrier_revision += 1
        logger.info("cleared %d barrier cells", ys.size)

    # -------- tracers --------
    def init_tracers(self) -> None:
        """Seed one tracer every 10 nodes, skipping barriers; replaces any existing set.

        Seeds sit at multiples of 10 strictly below ``10 * (dim // 10)``, so a
        45x35 lattice gets x in {10, 20, 30} and y in {10, 20}.
        """
        ys, xs = np.meshgrid(
            np.arange(1, self.height // 10) * 10,
            np.arange(1, self.width // 10) * 10,
            indexing="ij",
        )
        ys = ys.ravel()
        xs = xs.ravel()
        keep = ~self._barrier[ys, xs]
        self._tracer_x = xs[keep].astype(np.float64)
        self._tracer_y = ys[keep].astype(np.float64)
        logger.info("seeded %d tracers", self._tracer_x.size)

    def clear_tracers(self) -> None:
        self._tracer_x = np.zeros(0, dtype=np.float64)
        self._tracer_y = np.zeros(0, dtype=np.float64)

    def tracer_count(self) -> int:
        return int(self._tracer_x.size)

    # -------- views --------
    @contextmanager
    def borrow(self, *names: str) -> Iterator[FrameViews]:
        """Lend read-only 1-D views of the named fields for the duration of a ``with`` block."""
        sources = {
            "ux": self._ux,
            "uy": self._uy,
            "barrier": self._barrier,
            "density": self._density,
            "curl": self._curl,
            "tracer_x": self._tracer_x,
            "tracer_y": self._tracer_y,
        }
        arrays = {}
        for name in names:
            if name not in sources:
                raise KeyError(f"unknown field {name!r}; expected one of {FIELD_NAMES}.")
            arrays[name] = _read_only(sources[name])
        views = FrameViews(arrays)
        try:
            yield views
        finally:
            views.release()

    # -------- time stepping --------
    def update(self) -> None:
        self._set_boundaries()
        for _ in range(self._cfg.steps_per_frame):
            self._stream()
            self._collide()
            if self._tracer_x.size > 0:
                _advect_tracers_jit(
                    self._tracer_x, self._tracer_y, self._ux, self._uy, self._cfg.flow_speed > 0.0
                )

    def _set_boundaries(self) -> None:
        edge = np.asarray(equilibrium(1.0, self._cfg.flow_speed, 0.0), dtype=np.float64)[:, None]
        self._f[:, 0, :] = edge
        self._f[:, -1, :] = edge
        self._f[:, :, 0] = edge
        self._f[:, :, -1] = edge

    def _stream(self) -> None:
        f = self._f
        out = f.copy()
        for i in range(1, Q):
            # +y (math) is one row up on screen
            out[i, 1:-1, 1:-1] = f[i, 1 + EY[i]:f.shape[1] - 1 + EY[i], 1 - EX[i]:f.shape[2] - 1 - EX[i]]
        # Full-way bounce-back: what lands in a barrier is sent back the way it came.
        out[:, self._barrier] = out[OPPOSITE][:, self._barrier]
        self._f = out

    def _collide(self) -> None:
        f = self._f
        interior = np.zeros(self._barrier.shape, dtype=bool)
        interior[1:-1, 1:-1] = True
        fluid = interior & ~self._barrier

        rho = f.sum(axis=0)
        safe = np.where(rho != 0.0, rho, 1.0)
        ux = (f * EX[:, None, None]).sum(axis=0) / safe
        uy_math = (f * EY[:, None, None]).sum(axis=0) / safe
        ux = np.where(rho != 0.0, ux, 0.0)
        uy_math = np.where(rho != 0.0, uy_math, 0.0)

        self._density[fluid] = rho[fluid]
        self._ux[fluid] = ux[fluid]
        self._uy[fluid] = -uy_math[fluid]

        curl = np.zeros_like(self._curl)
        curl[1:-1, 1:-1] = (
            self._uy[1:-1, 2:] - self._uy[1:-1, :-2] - self._ux[2:, 1:-1] + self._ux[:-2, 1:-1]
        )
        self._curl[fluid] = curl[fluid]

        feq = _equilibrium_field(rho, ux, uy_math)
        omega = self._cfg.omega
        f[:, fluid] += omega * (feq[:, fluid] - f[:, fluid])
