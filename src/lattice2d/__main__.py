from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence

from .api import ViewConfig, add_barrier_disk
from .lattice import DrawMode, Lattice, LatticeConfig
from .logging_config import setup_logging


logger = logging.getLogger("lattice2d")

MODE_CHOICES = {m.name.lower().replace("_", "-"): m for m in DrawMode}


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="lattice2d", description="Interactive 2D lattice Boltzmann fluid.")
    ap.add_argument("--width", type=int, default=200)
    ap.add_argument("--height", type=int, default=80)
    ap.add_argument("--steps-per-frame", type=int, default=5)
    ap.add_argument("--px-per-node", type=int, default=4)
    ap.add_argument("--flow-speed", type=float, default=0.0)
    ap.add_argument("--viscosity", type=float, default=0.27)
    ap.add_argument("--mode", choices=sorted(MODE_CHOICES), default="speed")
    ap.add_argument("--vectors", action="store_true", help="draw the flow vector overlay")
    ap.add_argument("--tracers", action="store_true", help="seed tracer particles")
    ap.add_argument("--barrier-disk", type=float, nargs=3, metavar=("X", "Y", "R"),
                    help="place a disk of barrier cells")
    ap.add_argument("--record", metavar="PATH", help="write an .mp4 or .gif instead of opening a window")
    ap.add_argument("--frames", type=int, default=300, help="frames for --record / --snapshot / --html")
    ap.add_argument("--snapshot", metavar="PATH", help="write a PNG after --frames frames")
    ap.add_argument("--html", metavar="PATH", help="write an interactive plotly page after --frames frames")
    ap.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return ap


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    lattice = Lattice(LatticeConfig(
        width=args.width,
        height=args.height,
        steps_per_frame=args.steps_per_frame,
        flow_speed=args.flow_speed,
        draw_mode=MODE_CHOICES[args.mode],
        viscosity=args.viscosity,
    ))
    if args.barrier_disk:
        x, y, r = args.barrier_disk
        n = add_barrier_disk(lattice, (int(x), int(y)), r)
        logger.info("barrier disk at (%d, %d), r=%.1f: %d cells", int(x), int(y), r, n)

    view = ViewConfig(pixels_per_node=args.px_per_node, flow_vectors=args.vectors, tracers=args.tracers)

    # Headless outputs; each one runs its own frames from the current state.
    if args.record or args.snapshot or args.html:
        if args.record:
            from .viewer import record_animation
            record_animation(lattice, frames=args.frames, save_path=args.record, view=view)
        if args.snapshot:
            from .viewer import plot_snapshot
            plot_snapshot(lattice, frames=args.frames, view=view, save_path=args.snapshot, show=False)
        if args.html:
            from .plotly_viz import PlotlyFrameConfig, plot_frame_interactive
            plot_frame_interactive(
                lattice,
                config=PlotlyFrameConfig(pixels_per_node=args.px_per_node, frames=args.frames,
                                         show_vectors=args.vectors, show_tracers=args.tracers),
                save_html=args.html,
            )
            logger.info("interactive page written to %s", args.html)
        return 0

    from .viewer import LatticeViewer
    LatticeViewer(lattice, view).show()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
