from __future__ import annotations

from lattice2d import FrameRenderer, ImageSurface, InteractionController, Lattice, LatticeConfig


def test_frame_benchmark(benchmark) -> None:
    lat = Lattice(LatticeConfig(width=120, height=50, steps_per_frame=2, flow_speed=0.08))
    fr = FrameRenderer(lat, ImageSurface(), pixels_per_node=2)
    ctl = InteractionController(lat, pixels_per_node=2)

    def run():
        lat.update()
        ctl.apply_perturbation(60.0, 50.0, 58.0, 50.0)
        fr.render_frame()

    benchmark(run)
