from __future__ import annotations

from functools import lru_cache

import logging
import math

from .lattice import SimulationEngine, equilibrium


logger = logging.getLogger(__name__)

PUSH_RADIUS = 5
MAX_PUSH = 0.1


def clamp_push(v: float, limit: float = MAX_PUSH) -> float:
    """Limit |v| to ``limit`` keeping its sign."""
    if abs(v) > limit:
        return math.copysign(limit, v)
    return v


@lru_cache(maxsize=8)
def disk_offsets(radius: int = PUSH_RADIUS) -> tuple[tuple[int, int], ...]:
    """Offsets (ox, oy) in [-radius, radius]^2 with ox^2 + oy^2 < radius^2 (boundary excluded)."""
    r2 = radius * radius
    return tuple(
        (ox, oy)
        for ox in range(-radius, radius + 1)
        for oy in range(-radius, radius + 1)
        if ox * ox + oy * oy < r2
    )


class InteractionController:
    """Turns a pointer drag into a local velocity push on the lattice.

    Each call rebuilds the distribution of every fluid cell inside a disk around
    the pointer from its current density and the drag velocity.
    """

    def __init__(self, engine: SimulationEngine, *, pixels_per_node: int, radius: int = PUSH_RADIUS) -> None:
        if engine is None:
            raise ValueError("an engine is required.")
        if int(pixels_per_node) < 1:
            raise ValueError("pixels_per_node must be >= 1.")
        self._engine = engine
        self.ppn = int(pixels_per_node)
        self.radius = int(radius)

    def push_velocity(self, new_x: float, new_y: float, old_x: float, old_y: float) -> tuple[float, float]:
        """Pixel drag -> lattice velocity per substep, clamped per axis."""
        steps = self._engine.steps_per_frame
        dx = (new_x - old_x) / self.ppn / steps
        dy = (new_y - old_y) / self.ppn / steps
        return clamp_push(dx), clamp_push(dy)

    def apply_perturbation(self, new_x: float, new_y: float, old_x: float, old_y: float) -> int:
        """Write equilibrium cells around (new_x, new_y); returns how many cells changed."""
        dx, dy = self.push_velocity(new_x, new_y, old_x, old_y)
        cx = math.floor(new_x / self.ppn)
        cy = math.floor(new_y / self.ppn)
        width = self._engine.width
        height = self._engine.height

        targets: list[tuple[int, float]] = []
        with self._engine.borrow("barrier", "density") as views:
            barrier = views["barrier"]
            density = views["density"]
            for ox, oy in disk_offsets(self.radius):
                x = cx + ox
                y = cy + oy
                if not (0 <= x < width and 0 <= y < height):
                    continue
                idx = y * width + x
                if barrier[idx]:
                    continue
                targets.append((idx, float(density[idx])))

        # screen y grows downward, the distribution's +y points up
        for idx, rho in targets:
            self._engine.write_cell(equilibrium(rho, dx, -dy), idx)

        logger.debug("push (%.4f, %.4f) at cell (%d, %d): %d cells", dx, dy, cx, cy, len(targets))
        return len(targets)
