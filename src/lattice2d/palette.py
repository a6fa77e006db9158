from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np
from numpy.typing import NDArray
from matplotlib.colors import ListedColormap


NUM_COLORS = 400

RGBA = tuple[int, int, int, int]
ColorTable = NDArray[np.uint8]


# ---------------------------
# HSL -> RGB
# ---------------------------
def _hue_to_rgb(p: float, q: float, t: float) -> float:
    if t < 0.0:
        t += 1.0
    if t > 1.0:
        t -= 1.0
    if t < 1.0 / 6.0:
        return p + (q - p) * 6.0 * t
    if t < 1.0 / 2.0:
        return q
    if t < 2.0 / 3.0:
        return p + (q - p) * (2.0 / 3.0 - t) * 6.0
    return p


def _to_byte(c: float) -> int:
    # round half up, then saturate like a clamped byte buffer
    v = math.floor(c * 255.0 + 0.5)
    return 0 if v < 0 else 255 if v > 255 else int(v)


def hsl_to_rgba(h: float, s: float, l: float) -> RGBA:
    """Convert HSL (all in [0,1] nominally) to an opaque RGBA byte tuple.

    Inputs outside [0,1] are accepted; each channel saturates into [0,255].
    """
    if s == 0.0:
        r = g = b = l
    else:
        q = l * (1.0 + s) if l < 0.5 else l + s - l * s
        p = 2.0 * l - q
        r = _hue_to_rgb(p, q, h + 1.0 / 3.0)
        g = _hue_to_rgb(p, q, h)
        b = _hue_to_rgb(p, q, h - 1.0 / 3.0)
    return (_to_byte(r), _to_byte(g), _to_byte(b), 255)


def _gradient_color(lo: float, hi: float, val: float) -> RGBA:
    span = hi - lo
    # division binds before the subtraction: val - (lo / span)
    scaled = val - lo / span
    return hsl_to_rgba(1.0 - scaled, 1.0, scaled / 2.0)


# ---------------------------
# Palette
# ---------------------------
@dataclass(frozen=True, slots=True, eq=False)
class Palette:
    """Immutable RGBA lookup table indexed by a clamped color bucket.

    colors: (N,4) uint8, read-only, alpha channel always 255.
    """
    colors: ColorTable

    @classmethod
    def build(cls, n: int = NUM_COLORS) -> Palette:
        if n < 1:
            raise ValueError("palette size must be positive.")
        table = np.empty((n, 4), dtype=np.uint8)
        for i in range(n):
            table[i] = _gradient_color(n, i, 0.0)
        table.setflags(write=False)
        return cls(table)

    def __len__(self) -> int:
        return int(self.colors.shape[0])

    def __getitem__(self, i: int) -> RGBA:
        r, g, b, a = (int(c) for c in self.colors[i])
        return (r, g, b, a)

    def clamp(self, index: NDArray[np.float64] | float) -> NDArray[np.intp]:
        """Clamp (already floored) color indices into [0, N-1].

        NaN maps to 0, +inf to N-1, -inf to 0.
        """
        top = len(self) - 1
        idx = np.nan_to_num(np.asarray(index, dtype=np.float64), nan=0.0, posinf=top, neginf=0.0)
        return np.clip(idx, 0, top).astype(np.intp)

    def lookup(self, index: NDArray[np.float64] | float) -> ColorTable:
        return self.colors[self.clamp(index)]

    def as_colormap(self, name: str = "lattice2d") -> ListedColormap:
        return ListedColormap(self.colors.astype(np.float64) / 255.0, name=name)
