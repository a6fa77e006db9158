from __future__ import annotations

from lattice2d import (
    DrawMode,
    Lattice,
    LatticeConfig,
    ViewConfig,
    add_barrier_disk,
    plot_snapshot,
    record_animation,
    save_npz,
)


def main() -> None:
    lat = Lattice(LatticeConfig(
        width=160,
        height=64,
        steps_per_frame=8,
        flow_speed=0.1,
        draw_mode=DrawMode.SPEED,
        viscosity=0.02,
    ))
    for y in range(24, 40):
        lat.set_barrier(32, y)
    add_barrier_disk(lat, (90, 32), 4.0)

    view = ViewConfig(pixels_per_node=3, tracers=True, figsize=(8.0, 3.6))
    record_animation(lat, frames=240, save_path="wake.gif", view=view, fps=24)
    save_npz(lat, "wake.npz", metadata={"example": "wake_recording"})

    lat.set_draw_mode(DrawMode.CURL)
    plot_snapshot(lat, frames=0, view=view, save_path="wake_curl.png")

if __name__ == "__main__":
    main()
