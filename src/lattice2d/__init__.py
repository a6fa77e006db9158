from .lattice import (
    Cell,
    DrawMode,
    FrameViews,
    Lattice,
    LatticeConfig,
    SimulationEngine,
    equilibrium,
)
from .palette import NUM_COLORS, Palette, hsl_to_rgba
from .render import (
    BarrierRenderer,
    FieldRenderer,
    FrameRenderer,
    ImageSurface,
    OverlayLayer,
    ParticleRenderer,
    RasterSurface,
    VectorOverlayRenderer,
    color_index,
)
from .interaction import InteractionController, clamp_push, disk_offsets
from .loop import FrameClock, LoopState, RenderLoop
from .commands import (
    ClearBarriers,
    Command,
    PlaceBarrier,
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
from .api import (
    ViewConfig,
    save_npz, load_npz,
    add_barrier_disk,
)
from .viewer import (
    LatticeViewer,
    MatplotlibFrameClock,
    plot_snapshot,
    record_animation,
)
from .plotly_viz import (
    plot_frame_interactive,
    PlotlyFrameConfig,
)
from .logging_config import setup_logging

__all__ = [
    "plot_frame_interactive", "PlotlyFrameConfig",
    "save_npz", "load_npz", "ViewConfig", "add_barrier_disk",
    "setup_logging",
    "Cell",
    "DrawMode",
    "FrameViews",
    "Lattice",
    "LatticeConfig",
    "SimulationEngine",
    "equilibrium",
    "NUM_COLORS",
    "Palette",
    "hsl_to_rgba",
    "BarrierRenderer",
    "FieldRenderer",
    "FrameRenderer",
    "ImageSurface",
    "OverlayLayer",
    "ParticleRenderer",
    "RasterSurface",
    "VectorOverlayRenderer",
    "color_index",
    "InteractionController",
    "clamp_push",
    "disk_offsets",
    "FrameClock",
    "LoopState",
    "RenderLoop",
    "Command",
    "PointerDown", "PointerMove", "PointerUp",
    "SelectDrawMode", "SetViscosity", "SetFlowSpeed", "SetStepsPerFrame",
    "ToggleFlowVectors", "ToggleTracers", "TogglePlay",
    "PlaceBarrier", "ClearBarriers", "ResetFlow",
    "SimulationController",
    "LatticeViewer",
    "MatplotlibFrameClock",
    "plot_snapshot",
    "record_animation",
]
