from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Any

import logging
import numpy as np

from .lattice import DrawMode, Lattice, LatticeConfig


logger = logging.getLogger(__name__)


# ----------------------
# Configuration objects
# ----------------------

@dataclass(slots=True)
class ViewConfig:
    """Display options for the interactive viewer and offline output."""
    pixels_per_node: int = 4
    fps: int = 60
    flow_vectors: bool = False
    tracers: bool = False
    figsize: tuple[float, float] = (10.0, 6.5)

    def __post_init__(self) -> None:
        if int(self.pixels_per_node) < 1:
            raise ValueError("pixels_per_node must be >= 1.")
        if int(self.fps) < 1:
            raise ValueError("fps must be >= 1.")
        self.pixels_per_node = int(self.pixels_per_node)
        self.fps = int(self.fps)

    @property
    def frame_interval_ms(self) -> int:
        return max(1, int(round(1000 / self.fps)))


# ----------------------
# Checkpoint I/O (.npz)
# ----------------------

_SCHEMA_VERSION = 1


def save_npz(lattice: Lattice, path: str, metadata: Mapping[str, Any] | None = None) -> None:
    """Save lattice state to .npz with schema versioning and basic metadata.

    Arrays stored:
      - distributions: float64 [9,H,W]
      - barrier:       bool    [H,W]
      - tracer_x, tracer_y: float64 [K]
    Scalars:
      - width, height, steps_per_frame, flow_speed, draw_mode, viscosity
      - schema_version
    """
    cfg = lattice.config
    with lattice.borrow("barrier", "tracer_x", "tracer_y") as views:
        barrier = np.array(views["barrier"], dtype=bool).reshape(cfg.height, cfg.width)
        tracer_x = np.array(views["tracer_x"], dtype=np.float64)
        tracer_y = np.array(views["tracer_y"], dtype=np.float64)
    data: dict[str, Any] = {
        "distributions": lattice.distributions,
        "barrier": barrier,
        "tracer_x": tracer_x,
        "tracer_y": tracer_y,
        "width": int(cfg.width),
        "height": int(cfg.height),
        "steps_per_frame": int(cfg.steps_per_frame),
        "flow_speed": float(cfg.flow_speed),
        "draw_mode": int(cfg.draw_mode),
        "viscosity": float(cfg.viscosity),
        "schema_version": int(_SCHEMA_VERSION),
    }
    if metadata:
        data["metadata"] = np.array(dict(metadata), dtype=object)

    np.savez(path, **data)
    logger.info("saved checkpoint %s (%dx%d)", path, cfg.width, cfg.height)


def load_npz(path: str) -> Lattice:
    """Load state from .npz and rebuild the Lattice with matching configuration.

    Unknown/extra fields are ignored. Requires a compatible schema_version.
    """
    with np.load(path, allow_pickle=True) as npz:
        schema = int(npz["schema_version"]) if "schema_version" in npz else 0
        if schema != _SCHEMA_VERSION:
            raise ValueError(f"Incompatible schema_version {schema}; expected {_SCHEMA_VERSION}.")

        cfg = LatticeConfig(
            width=int(npz["width"]),
            height=int(npz["height"]),
            steps_per_frame=int(npz["steps_per_frame"]),
            flow_speed=float(npz["flow_speed"]),
            draw_mode=DrawMode(int(npz["draw_mode"])),
            viscosity=float(npz["viscosity"]),
        )
        lattice = Lattice(cfg)
        tracers = None
        if "tracer_x" in npz and "tracer_y" in npz:
            tracers = (np.asarray(npz["tracer_x"]), np.asarray(npz["tracer_y"]))
        lattice.load_state(np.asarray(npz["distributions"]), np.asarray(npz["barrier"]), tracers)
    logger.info("loaded checkpoint %s (%dx%d)", path, cfg.width, cfg.height)
    return lattice


# ----------------------
# Scene helpers
# ----------------------

def add_barrier_disk(lattice: Lattice, center: tuple[int, int], radius: float) -> int:
    """Mark every cell within ``radius`` of ``center`` as barrier; returns the number of cells set."""
    cx, cy = center
    ys, xs = np.mgrid[0:lattice.height, 0:lattice.width]
    inside = (xs - cx) ** 2 + (ys - cy) ** 2 <= radius * radius
    for y, x in zip(*np.nonzero(inside)):
        lattice.set_barrier(int(x), int(y))
    return int(inside.sum())
