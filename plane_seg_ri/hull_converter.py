#!/usr/bin/env python3
from typing import NamedTuple

from plane_seg_ri.palette import DEFAULT_PALETTE, RGB


class ColoredPoint(NamedTuple):
    position: tuple
    color: RGB


class LineSegment(NamedTuple):
    start: tuple
    end: tuple
    color: RGB


class VisualPrimitiveSet(NamedTuple):
    points: tuple
    segments: tuple


def _as_point(p):
    return (float(p[0]), float(p[1]), float(p[2]))


class HullConverter:
    """
    Turns the block hulls of a Result into one combined colored point
    set and one list of closed line loops.

    Hull i gets palette color i mod len(palette). Points keep the hull
    order, hulls keep the result order.
    """

    def __init__(self, palette=DEFAULT_PALETTE):
        self.palette = palette

    def convert(self, result):
        points = []
        segments = []

        for i, block in enumerate(result.blocks):
            color = self.palette.color(i)
            hull = [_as_point(p) for p in block.hull]

            for p in hull:
                points.append(ColoredPoint(p, color))

            # a single point has no edge
            if len(hull) < 2:
                continue

            for j in range(1, len(hull)):
                segments.append(LineSegment(hull[j - 1], hull[j], color))
            # start to end line
            segments.append(LineSegment(hull[0], hull[-1], color))

        return VisualPrimitiveSet(points=tuple(points), segments=tuple(segments))


def convert(result, palette=DEFAULT_PALETTE):
    return HullConverter(palette).convert(result)
