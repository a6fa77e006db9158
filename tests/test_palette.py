from __future__ import annotations

import numpy as np
import pytest

from lattice2d import NUM_COLORS, Palette, hsl_to_rgba


@pytest.mark.parametrize("n", [1, 2, 7, 64, NUM_COLORS])
def test_build_size_range_and_alpha(n: int) -> None:
    pal = Palette.build(n)
    assert len(pal) == n
    assert pal.colors.shape == (n, 4)
    assert pal.colors.dtype == np.uint8
    assert np.all(pal.colors[:, 3] == 255)


def test_build_is_deterministic() -> None:
    a = Palette.build(400)
    b = Palette.build(400)
    assert np.array_equal(a.colors, b.colors)
    assert a.colors.tobytes() == b.colors.tobytes()


def test_build_rejects_empty() -> None:
    with pytest.raises(ValueError):
        Palette.build(0)


def test_gradient_endpoints_follow_literal_formula() -> None:
    # entry 0: scaled = 1 -> h = 0, l = 0.5 -> pure red
    # last entry: scaled = n -> lightness far above 1, saturates to white
    pal = Palette.build(400)
    assert pal[0] == (255, 0, 0, 255)
    assert pal[399] == (255, 255, 255, 255)
    assert pal[200] == (255, 255, 255, 255)


def test_colors_are_read_only() -> None:
    pal = Palette.build(8)
    with pytest.raises(ValueError):
        pal.colors[0, 0] = 1


@pytest.mark.parametrize(
    "hsl,rgba",
    [
        ((0.0, 1.0, 0.5), (255, 0, 0, 255)),
        ((1.0 / 3.0, 1.0, 0.5), (0, 255, 0, 255)),
        ((2.0 / 3.0, 1.0, 0.5), (0, 0, 255, 255)),
        ((0.0, 0.0, 0.5), (128, 128, 128, 255)),
        ((0.0, 0.0, 2.0), (255, 255, 255, 255)),
        ((0.0, 0.0, -1.0), (0, 0, 0, 255)),
    ],
)
def test_hsl_to_rgba(hsl, rgba) -> None:
    assert hsl_to_rgba(*hsl) == rgba


def test_clamp_maps_any_index_into_range() -> None:
    pal = Palette.build(400)
    idx = np.array([-5.0, 0.0, 399.0, 400.0, 1e12, np.nan, np.inf, -np.inf])
    out = pal.clamp(idx)
    assert out.tolist() == [0, 0, 399, 399, 399, 0, 399, 0]
    rng = np.random.default_rng(3)
    wild = rng.normal(0.0, 1e6, size=1000)
    out = pal.clamp(np.floor(wild))
    assert out.min() >= 0 and out.max() <= 399


def test_as_colormap_matches_table() -> None:
    pal = Palette.build(16)
    cmap = pal.as_colormap()
    assert cmap.N == 16
    r, g, b, a = cmap(0)
    assert (round(r * 255), round(g * 255), round(b * 255), a) == (255, 0, 0, 1.0)
