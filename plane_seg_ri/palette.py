#!/usr/bin/env python3
from typing import NamedTuple


class RGB(NamedTuple):
    r: float
    g: float
    b: float

    def to_bytes(self):
        """Channels as 0-255 ints, for packed point cloud colors."""
        return (int(round(self.r * 255.0)),
                int(round(self.g * 255.0)),
                int(round(self.b * 255.0)))


class ColorPalette:
    """
    Fixed ordered set of colors, indexed cyclically by hull position:
    color(i) = colors[i mod len(colors)].
    """

    def __init__(self, colors):
        self._colors = tuple(RGB(*c) for c in colors)
        if not self._colors:
            raise ValueError("palette needs at least one color")

    def __len__(self):
        return len(self._colors)

    def __iter__(self):
        return iter(self._colors)

    def __getitem__(self, idx):
        return self._colors[idx]

    def color(self, index):
        return self._colors[index % len(self._colors)]


DEFAULT_PALETTE = ColorPalette([
    (51 / 255.0, 160 / 255.0, 44 / 255.0),
    (166 / 255.0, 206 / 255.0, 227 / 255.0),
    (178 / 255.0, 223 / 255.0, 138 / 255.0),
    (31 / 255.0, 120 / 255.0, 180 / 255.0),
    (251 / 255.0, 154 / 255.0, 153 / 255.0),
    (227 / 255.0, 26 / 255.0, 28 / 255.0),
    (253 / 255.0, 191 / 255.0, 111 / 255.0),
    (106 / 255.0, 61 / 255.0, 154 / 255.0),
    (255 / 255.0, 127 / 255.0, 0 / 255.0),
    (202 / 255.0, 178 / 255.0, 214 / 255.0),
    (1.0, 0.0, 0.0),  # red
    (0.0, 1.0, 0.0),  # green
    (0.0, 0.0, 1.0),  # blue
    (1.0, 1.0, 0.0),
    (1.0, 0.0, 1.0),
    (0.0, 1.0, 1.0),
    (0.5, 1.0, 0.0),
    (1.0, 0.5, 0.0),
    (0.5, 0.0, 1.0),
    (1.0, 0.0, 0.5),
    (0.0, 0.5, 1.0),
    (0.0, 1.0, 0.5),
    (1.0, 0.5, 0.5),
    (0.5, 1.0, 0.5),
    (0.5, 0.5, 1.0),
    (0.5, 0.5, 1.0),
    (0.5, 1.0, 0.5),
    (0.5, 0.5, 1.0),
])
