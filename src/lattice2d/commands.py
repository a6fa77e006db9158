from __future__ import annotations

from dataclasses import dataclass

import logging
import math

from .interaction import InteractionController
from .lattice import DrawMode, SimulationEngine
from .loop import LoopState, RenderLoop
from .render import FrameRenderer


logger = logging.getLogger(__name__)

PRIMARY_BUTTON = 1
SECONDARY_BUTTON = 3

VISCOSITY_SCALE = 100.0
FLOW_SPEED_SCALE = 833.0


# ----------------------
# Commands
# ----------------------
@dataclass(frozen=True, slots=True)
class PointerDown:
    x: float
    y: float
    button: int = PRIMARY_BUTTON


@dataclass(frozen=True, slots=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class PointerUp:
    pass


@dataclass(frozen=True, slots=True)
class SelectDrawMode:
    ordinal: int


@dataclass(frozen=True, slots=True)
class SetViscosity:
    raw: float  # slider units, 0..100


@dataclass(frozen=True, slots=True)
class SetFlowSpeed:
    raw: float  # slider units


@dataclass(frozen=True, slots=True)
class SetStepsPerFrame:
    raw: int


@dataclass(frozen=True, slots=True)
class ToggleFlowVectors:
    enabled: bool


@dataclass(frozen=True, slots=True)
class ToggleTracers:
    enabled: bool


@dataclass(frozen=True, slots=True)
class TogglePlay:
    pass


@dataclass(frozen=True, slots=True)
class PlaceBarrier:
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class ClearBarriers:
    pass


@dataclass(frozen=True, slots=True)
class ResetFlow:
    pass


Command = (
    PointerDown | PointerMove | PointerUp
    | SelectDrawMode | SetViscosity | SetFlowSpeed | SetStepsPerFrame
    | ToggleFlowVectors | ToggleTracers | TogglePlay
    | PlaceBarrier | ClearBarriers | ResetFlow
)


# ----------------------
# Controller
# ----------------------
class SimulationController:
    """Single owner of UI-driven mutable state; consumes commands synchronously."""

    def __init__(
        self,
        engine: SimulationEngine,
        renderer: FrameRenderer,
        loop: RenderLoop,
        interaction: InteractionController,
    ) -> None:
        if engine is None or renderer is None or loop is None or interaction is None:
            raise ValueError("engine, renderer, loop and interaction are all required.")
        self.engine = engine
        self.renderer = renderer
        self.loop = loop
        self.interaction = interaction
        self._drag_from: tuple[float, float] | None = None

    @property
    def dragging(self) -> bool:
        return self._drag_from is not None

    def dispatch(self, command: Command) -> None:
        if isinstance(command, PointerDown):
            self._pointer_down(command)
        elif isinstance(command, PointerMove):
            self._pointer_move(command)
        elif isinstance(command, PointerUp):
            self._drag_from = None
        elif isinstance(command, SelectDrawMode):
            self.engine.set_draw_mode(DrawMode(int(command.ordinal)))
        elif isinstance(command, SetViscosity):
            self.engine.set_viscosity(float(command.raw) / VISCOSITY_SCALE)
        elif isinstance(command, SetFlowSpeed):
            self.engine.set_flow_speed(float(command.raw) / FLOW_SPEED_SCALE)
        elif isinstance(command, SetStepsPerFrame):
            self.engine.set_steps_per_frame(int(command.raw))
        elif isinstance(command, ToggleFlowVectors):
            self._toggle_vectors(command.enabled)
        elif isinstance(command, ToggleTracers):
            self._toggle_tracers(command.enabled)
        elif isinstance(command, TogglePlay):
            state = self.loop.toggle()
            if state is LoopState.STOPPED:
                self._drag_from = None
        elif isinstance(command, PlaceBarrier):
            self._place_barrier(command)
        elif isinstance(command, ClearBarriers):
            self._require_barriers().clear_barriers()
            self.renderer.render_frame()
        elif isinstance(command, ResetFlow):
            reset = getattr(self.engine, "reset", None)
            if reset is None:
                raise ValueError("engine does not support reset().")
            reset()
            self.renderer.render_frame()
        else:
            raise ValueError(f"Unknown command: {command!r}")

    # -------- handlers --------
    def _pointer_down(self, cmd: PointerDown) -> None:
        if cmd.button == SECONDARY_BUTTON:
            self._place_barrier(PlaceBarrier(cmd.x, cmd.y))
            return
        if cmd.button != PRIMARY_BUTTON:
            return
        if not self.loop.running:
            return
        self._drag_from = (cmd.x, cmd.y)

    def _pointer_move(self, cmd: PointerMove) -> None:
        if self._drag_from is None:
            return
        old_x, old_y = self._drag_from
        self.interaction.apply_perturbation(cmd.x, cmd.y, old_x, old_y)
        self._drag_from = (cmd.x, cmd.y)

    def _toggle_vectors(self, enabled: bool) -> None:
        self.renderer.flow_vectors = enabled
        if not enabled:
            self.renderer.vector_layer.clear()
        self.renderer.render_frame()

    def _toggle_tracers(self, enabled: bool) -> None:
        if enabled:
            self.engine.init_tracers()
        else:
            self.engine.clear_tracers()
            self.renderer.particle_layer.clear()

    def _require_barriers(self):
        if not hasattr(self.engine, "set_barrier"):
            raise ValueError("engine does not support barrier editing.")
        return self.engine

    def _place_barrier(self, cmd: PlaceBarrier) -> None:
        engine = self._require_barriers()
        ppn = self.interaction.ppn
        x = math.floor(cmd.x / ppn)
        y = math.floor(cmd.y / ppn)
        if not (0 <= x < engine.width and 0 <= y < engine.height):
            return
        engine.set_barrier(x, y)
        logger.debug("barrier at (%d, %d)", x, y)
        self.renderer.render_frame()
