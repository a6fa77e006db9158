from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

import logging

from .lattice import SimulationEngine


logger = logging.getLogger(__name__)


class LoopState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class FrameClock(Protocol):
    """Platform frame scheduler: runs ``callback`` once, on the next display frame."""

    def request_frame(self, callback: Callable[[], None]) -> Any: ...


class RenderLoop:
    """Advance the engine and render once per frame while running.

    The running flag is read exactly once per tick, right before deciding
    whether to ask the clock for another frame.
    """

    def __init__(
        self,
        engine: SimulationEngine,
        render: Callable[[], None],
        clock: FrameClock,
    ) -> None:
        if engine is None or clock is None:
            raise ValueError("an engine and a frame clock are required.")
        self._engine = engine
        self._render = render
        self._clock = clock
        self._running = False
        self._handle: Any | None = None
        self.frames = 0

    @property
    def state(self) -> LoopState:
        return LoopState.RUNNING if self._running else LoopState.STOPPED

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info("render loop started")
        # A frame still in flight carries the chain on; don't start a second one.
        if self._handle is None:
            self.tick()

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        logger.info("render loop stopped after %d frames", self.frames)

    def toggle(self) -> LoopState:
        if self._running:
            self.stop()
        else:
            self.start()
        return self.state

    def tick(self) -> None:
        self._handle = None
        self._engine.update()
        self._render()
        self.frames += 1
        if self._running:
            self._handle = self._clock.request_frame(self.tick)
        else:
            self._handle = None
