from __future__ import annotations

import argparse
import tracemalloc

from lattice2d import DrawMode, FrameRenderer, ImageSurface, Lattice, LatticeConfig


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--width", type=int, default=400)
    ap.add_argument("--height", type=int, default=160)
    ap.add_argument("--px-per-node", type=int, default=4)
    ap.add_argument("--mode", type=int, default=int(DrawMode.SPEED))
    ap.add_argument("--vectors", action="store_true")
    args = ap.parse_args()

    lat = Lattice(LatticeConfig(width=args.width, height=args.height, flow_speed=0.1,
                                draw_mode=DrawMode(args.mode)))
    lat.update()
    fr = FrameRenderer(lat, ImageSurface(), pixels_per_node=args.px_per_node)
    fr.flow_vectors = bool(args.vectors)

    tracemalloc.start()
    lat.update()
    _, update_peak = tracemalloc.get_traced_memory()
    tracemalloc.reset_peak()
    fr.render_frame()
    _, render_peak = tracemalloc.get_traced_memory()
    tracemalloc.stop()
    print(f"{args.width}x{args.height} @ {args.px_per_node}px "
          f"update peak={update_peak/1e6:.1f} MB, render peak={render_peak/1e6:.1f} MB")

if __name__ == "__main__":
    main()
