#!/usr/bin/env python3
from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation

from plane_seg_ri.errors import DegenerateFrame

WORLD_UP = np.array([0.0, 0.0, 1.0])
EPS = 1e-6


@dataclass(frozen=True)
class LookFrame:
    """
    Sensor viewing frame: origin plus a right handed orthonormal basis
    whose z axis is the look direction.
    """
    origin: np.ndarray
    x_axis: np.ndarray
    y_axis: np.ndarray
    z_axis: np.ndarray

    @property
    def rotation(self):
        return np.column_stack((self.x_axis, self.y_axis, self.z_axis))

    @property
    def quaternion(self):
        # scipy gives (x, y, z, w)
        x, y, z, w = Rotation.from_matrix(self.rotation).as_quat()
        return float(w), float(x), float(y), float(z)


def build_look_frame(origin, look_direction):
    """
    z = normalize(look_direction)
    x = normalize(z x up)
    y = z x x

    Raises DegenerateFrame when the look direction is zero or parallel
    to the up axis, since x is undefined there.
    """
    origin = np.asarray(origin, dtype=float).reshape(3)
    look = np.asarray(look_direction, dtype=float).reshape(3)

    norm = np.linalg.norm(look)
    if not np.isfinite(norm) or norm < EPS:
        raise DegenerateFrame(f"look direction {look.tolist()} has no length")
    z = look / norm

    x = np.cross(z, WORLD_UP)
    x_norm = np.linalg.norm(x)
    if x_norm < EPS:
        raise DegenerateFrame(f"look direction {look.tolist()} is parallel to the up axis")
    x = x / x_norm

    y = np.cross(z, x)

    return LookFrame(origin=origin, x_axis=x, y_axis=y, z_axis=z)
