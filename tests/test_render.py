from __future__ import annotations

import numpy as np
import pytest

from lattice2d import (
    BarrierRenderer,
    DrawMode,
    FrameRenderer,
    ImageSurface,
    OverlayLayer,
    Palette,
    ParticleRenderer,
    color_index,
)
from lattice2d.render import CURL_OFFSET, DENSITY_OFFSET, SPEED_OFFSET, VELOCITY_OFFSET


def _renderer(engine, ppn: int = 2):
    surface = ImageSurface()
    return FrameRenderer(engine, surface, pixels_per_node=ppn), surface


def test_all_barrier_grid_paints_nothing(make_engine) -> None:
    eng = make_engine(6, 4)
    eng.fields["barrier"][:] = True
    eng.fields["ux"][:] = 0.3
    fr, surface = _renderer(eng)
    fr.flow_vectors = True
    assert fr.field.render_frame() == 0
    assert surface.blits == 1
    assert not surface.image.any()
    assert fr.vector_layer.is_empty


@pytest.mark.parametrize("vectors", [False, True])
def test_none_mode_writes_no_scalar_pixels(make_engine, vectors: bool) -> None:
    eng = make_engine(21, 11, mode=DrawMode.SPEED)
    eng.fields["ux"][:] = 0.02
    fr, surface = _renderer(eng)
    fr.render_frame()
    before = fr.raster.copy()

    eng.set_draw_mode(DrawMode.NONE)
    eng.fields["ux"][:] = -0.2
    fr.flow_vectors = vectors
    assert fr.field.render_frame() == 0
    assert np.array_equal(fr.raster, before)
    # the overlay still renders in None mode
    assert fr.vector_layer.is_empty is (not vectors)


def test_blocks_are_uniform_and_barriers_untouched(make_engine) -> None:
    eng = make_engine(3, 2)
    eng.fields["ux"][:] = [0.0, 0.05, 0.1, 0.15, 0.2, 0.25]
    eng.set_barrier_cell(1, 1)
    fr, _ = _renderer(eng, ppn=3)
    assert fr.field.render_frame() == 5

    pal = fr.palette
    for y in range(2):
        for x in range(3):
            block = fr.raster[y * 3:(y + 1) * 3, x * 3:(x + 1) * 3]
            if (x, y) == (1, 1):
                assert not block.any()
                continue
            speed = eng.fields["ux"][y * 3 + x]
            expected = pal.lookup(np.floor((np.sqrt(speed * speed) + SPEED_OFFSET) * len(pal)))
            assert np.all(block == expected)


def test_out_of_range_values_are_clamped(make_engine) -> None:
    eng = make_engine(4, 1, mode=DrawMode.X_VELOCITY)
    eng.fields["ux"][:] = [10.0, -10.0, np.nan, np.inf]
    fr, _ = _renderer(eng, ppn=1)
    fr.field.render_frame()
    pal = fr.palette
    assert tuple(fr.raster[0, 0]) == pal[399]
    assert tuple(fr.raster[0, 1]) == pal[0]
    assert tuple(fr.raster[0, 2]) == pal[0]
    assert tuple(fr.raster[0, 3]) == pal[399]


@pytest.mark.parametrize(
    "mode,needs",
    [
        (DrawMode.SPEED, None),
        (DrawMode.X_VELOCITY, None),
        (DrawMode.Y_VELOCITY, None),
        (DrawMode.DENSITY, "density"),
        (DrawMode.CURL, "curl"),
        (DrawMode.NONE, None),
    ],
)
def test_conditional_fields_are_borrowed(make_engine, mode: DrawMode, needs: str | None) -> None:
    eng = make_engine(4, 3, mode=mode)
    fr, _ = _renderer(eng)
    fr.field.render_frame()
    names = eng.borrows[-1]
    assert {"ux", "uy", "barrier"} <= set(names)
    assert ("density" in names) == (needs == "density")
    assert ("curl" in names) == (needs == "curl")


def test_color_index_per_mode() -> None:
    ux = np.array([0.03])
    uy = np.array([-0.04])
    n = 400
    speed = np.sqrt(ux * ux + uy * uy)
    assert color_index(DrawMode.SPEED, ux, uy, n=n)[0] == np.floor((speed[0] + SPEED_OFFSET) * n)
    assert color_index(DrawMode.X_VELOCITY, ux, uy, n=n)[0] == np.floor((0.03 + VELOCITY_OFFSET) * n)
    assert color_index(DrawMode.Y_VELOCITY, ux, uy, n=n)[0] == np.floor((-0.04 + VELOCITY_OFFSET) * n)
    assert color_index(DrawMode.NONE, ux, uy, n=n) is None
    with pytest.raises(ValueError):
        color_index(DrawMode.DENSITY, ux, uy)
    with pytest.raises(ValueError):
        color_index(DrawMode.CURL, ux, uy)


def test_density_and_curl_color_indices() -> None:
    ux = np.zeros(3)
    uy = np.zeros(3)
    density = np.array([1.0, 0.8, 0.5])
    idx = color_index(DrawMode.DENSITY, ux, uy, density=density, n=400)
    assert idx[0] == 100
    assert idx[1] == np.floor((0.8 + DENSITY_OFFSET) * 400)
    # below the 0.75 offset the bucket goes negative; clamping happens later
    assert idx[2] == -100

    curl = np.array([0.0, -0.1, 0.5])
    idx = color_index(DrawMode.CURL, ux, uy, curl=curl, n=400)
    assert idx[0] == 100
    assert idx[1] == 60
    assert idx[2] == np.floor((0.5 + CURL_OFFSET) * 400)


@pytest.mark.parametrize(
    "mode,field,values,expected",
    [
        (DrawMode.DENSITY, "density", [1.0, 0.5], [100, 0]),
        (DrawMode.CURL, "curl", [0.0, -0.1], [100, 60]),
    ],
)
def test_density_and_curl_frames_paint_palette_entries(
    make_engine, mode: DrawMode, field: str, values: list[float], expected: list[int]
) -> None:
    eng = make_engine(2, 1, mode=mode)
    eng.fields[field][:] = values
    fr, _ = _renderer(eng, ppn=1)
    assert fr.field.render_frame() == 2
    pal = fr.palette
    assert tuple(fr.raster[0, 0]) == pal[expected[0]]
    assert tuple(fr.raster[0, 1]) == pal[expected[1]]


def test_vector_overlay_samples_every_tenth_fluid_cell(make_engine) -> None:
    eng = make_engine(25, 12)
    eng.fields["ux"][:] = 0.01
    eng.fields["uy"][:] = 0.005
    eng.set_barrier_cell(10, 0)
    fr, _ = _renderer(eng, ppn=2)
    fr.flow_vectors = True

    fr.render_frame()
    fr.render_frame()  # cleared before each pass, never accumulated
    layer = fr.vector_layer
    assert len(layer.segments) == 5
    assert len(layer.dots) == 5
    origins = sorted(start for start, _ in layer.segments)
    assert origins == [(0.0, 0.0), (0.0, 20.0), (20.0, 20.0), (40.0, 0.0), (40.0, 20.0)]
    (x0, y0), (x1, y1) = layer.segments[0]
    assert x1 - x0 == pytest.approx(0.01 * 2 * 200)
    assert y1 - y0 == pytest.approx(0.005 * 2 * 200)


def test_vectors_off_leaves_layer_empty(make_engine) -> None:
    eng = make_engine(25, 12)
    fr, _ = _renderer(eng)
    fr.render_frame()
    assert fr.vector_layer.is_empty


def test_particles_drawn_in_pixel_space(make_engine) -> None:
    eng = make_engine(8, 8)
    eng.set_tracers([1.5, 3.0], [2.0, 0.5])
    layer = OverlayLayer("particles")
    pr = ParticleRenderer(eng, layer, pixels_per_node=4)
    assert pr.render_frame() == 2
    assert [(x, y) for x, y, _ in layer.dots] == [(6.0, 8.0), (12.0, 2.0)]
    assert all(r == pytest.approx(1.0) for _, _, r in layer.dots)


def test_empty_tracer_set_keeps_last_overlay(make_engine) -> None:
    eng = make_engine(8, 8)
    eng.set_tracers([1.0], [1.0])
    layer = OverlayLayer("particles")
    pr = ParticleRenderer(eng, layer, pixels_per_node=2)
    pr.render_frame()
    rev = layer.revision

    eng.set_tracers([], [])
    assert pr.render_frame() == 0
    assert layer.revision == rev
    assert layer.dots == [(2.0, 2.0, 1.0)]


def test_barrier_layer_redraws_only_on_change(make_engine) -> None:
    eng = make_engine(5, 4)
    eng.set_barrier_cell(2, 1)
    eng.set_barrier_cell(4, 3)
    layer = OverlayLayer("barriers")
    br = BarrierRenderer(eng, layer, pixels_per_node=3)
    assert br.render_frame() is True
    assert sorted(layer.squares) == [(6.0, 3.0, 3.0), (12.0, 9.0, 3.0)]
    assert br.render_frame() is False

    eng.set_barrier_cell(0, 0)
    assert br.render_frame() is True
    assert len(layer.squares) == 3


def test_frame_renderer_requires_engine_and_surface(make_engine) -> None:
    with pytest.raises(ValueError):
        FrameRenderer(None, ImageSurface(), pixels_per_node=2)
    with pytest.raises(ValueError):
        FrameRenderer(make_engine(3, 3), None, pixels_per_node=2)
    with pytest.raises(ValueError):
        FrameRenderer(make_engine(3, 3), ImageSurface(), pixels_per_node=0)


def test_custom_palette_is_used(make_engine) -> None:
    eng = make_engine(3, 3)
    pal = Palette.build(1)
    fr = FrameRenderer(eng, ImageSurface(), pixels_per_node=1, palette=pal)
    fr.render_frame()
    assert np.all(fr.raster == np.array(pal[0], dtype=np.uint8))
