from __future__ import annotations

from lattice2d import DrawMode, Lattice, LatticeConfig, LatticeViewer, ViewConfig, add_barrier_disk, setup_logging


def main() -> None:
    setup_logging()
    lat = Lattice(LatticeConfig(
        width=200,
        height=80,
        steps_per_frame=5,
        flow_speed=0.1,
        draw_mode=DrawMode.CURL,
        viscosity=0.02,
    ))
    add_barrier_disk(lat, (40, 40), 6.0)

    viewer = LatticeViewer(lat, ViewConfig(pixels_per_node=4, flow_vectors=True, tracers=True))
    viewer.show()

if __name__ == "__main__":
    main()
