from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from lattice2d import DrawMode, FrameViews


class FakeEngine:
    """Duck-typed engine: plain arrays, recorded borrows, writes and control calls."""

    def __init__(self, width: int, height: int, *, mode: DrawMode = DrawMode.SPEED, steps: int = 1) -> None:
        self.width = int(width)
        self.height = int(height)
        self.steps_per_frame = int(steps)
        self.draw_mode = DrawMode(mode)
        n = self.width * self.height
        self.fields: dict[str, np.ndarray] = {
            "ux": np.zeros(n),
            "uy": np.zeros(n),
            "density": np.ones(n),
            "curl": np.zeros(n),
            "barrier": np.zeros(n, dtype=bool),
            "tracer_x": np.zeros(0),
            "tracer_y": np.zeros(0),
        }
        self.borrows: list[tuple[str, ...]] = []
        self.writes: list[tuple[tuple[float, ...], int]] = []
        self.calls: list[str] = []
        self.updates = 0

    # -------- helpers for tests --------
    def set_barrier_cell(self, x: int, y: int) -> None:
        self.fields["barrier"][y * self.width + x] = True

    def set_tracers(self, xs, ys) -> None:
        self.fields["tracer_x"] = np.asarray(xs, dtype=float)
        self.fields["tracer_y"] = np.asarray(ys, dtype=float)

    # -------- engine contract --------
    def update(self) -> None:
        self.updates += 1

    def set_draw_mode(self, mode) -> None:
        self.draw_mode = DrawMode(mode)
        self.calls.append(f"set_draw_mode:{int(mode)}")

    def set_viscosity(self, v: float) -> None:
        self.calls.append(f"set_viscosity:{v}")

    def set_flow_speed(self, v: float) -> None:
        self.calls.append(f"set_flow_speed:{v}")

    def set_steps_per_frame(self, n: int) -> None:
        self.steps_per_frame = int(n)
        self.calls.append(f"set_steps_per_frame:{n}")

    def init_tracers(self) -> None:
        self.calls.append("init_tracers")

    def clear_tracers(self) -> None:
        self.set_tracers([], [])
        self.calls.append("clear_tracers")

    def tracer_count(self) -> int:
        return int(self.fields["tracer_x"].size)

    @contextmanager
    def borrow(self, *names: str) -> Iterator[FrameViews]:
        self.borrows.append(names)
        views = FrameViews({name: self.fields[name] for name in names})
        try:
            yield views
        finally:
            views.release()

    def write_cell(self, cell, index: int) -> None:
        self.writes.append((tuple(float(c) for c in cell), int(index)))


class FakeClock:
    """Frame clock that queues callbacks until the test runs them."""

    def __init__(self) -> None:
        self.queue: list = []
        self.requests = 0

    def request_frame(self, callback):
        self.requests += 1
        self.queue.append(callback)
        return self.requests

    def run_next(self) -> None:
        self.queue.pop(0)()


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
