from dataclasses import dataclass, field
import math

import numpy as np

from plane_seg_ri.errors import InvalidInput


def _frozen_array(values, dtype=float, shape=None):
    arr = np.array(values, dtype=dtype)
    if shape is not None:
        arr = arr.reshape(shape)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class Pose:
    """
    Rigid transform: translation + unit quaternion stored as (w, x, y, z).
    """
    position: tuple = (0.0, 0.0, 0.0)
    orientation: tuple = (1.0, 0.0, 0.0, 0.0)

    @classmethod
    def identity(cls):
        return cls()

    @classmethod
    def from_components(cls, position, orientation):
        """
        Build a pose from any 3-sequence and (w, x, y, z) quaternion.
        The quaternion is normalized; a non finite or zero one is rejected.
        """
        pos = tuple(float(v) for v in position)
        quat = tuple(float(v) for v in orientation)
        if len(pos) != 3 or len(quat) != 4:
            raise InvalidInput(f"pose needs 3 + 4 components, got {len(pos)} + {len(quat)}")
        if not all(math.isfinite(v) for v in pos + quat):
            raise InvalidInput("pose contains non finite values")

        norm = math.sqrt(sum(v * v for v in quat))
        if norm < 1e-9:
            raise InvalidInput("pose orientation is a zero quaternion")
        quat = tuple(v / norm for v in quat)
        return cls(position=pos, orientation=quat)

    @property
    def translation(self):
        return np.array(self.position, dtype=float)


@dataclass(frozen=True, eq=False)
class LabeledCloud:
    """N x 3 points with one integer label per point."""
    points: np.ndarray
    labels: np.ndarray = None

    def __post_init__(self):
        pts = np.asarray(self.points, dtype=float)
        if pts.size == 0:
            pts = pts.reshape(0, 3)
        if pts.ndim != 2 or pts.shape[1] != 3:
            raise InvalidInput(f"cloud must be N x 3, got shape {pts.shape}")

        if self.labels is None:
            labels = np.zeros(len(pts), dtype=np.int32)
        else:
            labels = np.asarray(self.labels, dtype=np.int32).reshape(-1)
            if len(labels) != len(pts):
                raise InvalidInput(f"{len(labels)} labels for {len(pts)} points")

        object.__setattr__(self, 'points', _frozen_array(pts))
        object.__setattr__(self, 'labels', _frozen_array(labels, dtype=np.int32))

    def __eq__(self, other):
        if not isinstance(other, LabeledCloud):
            return NotImplemented
        return np.array_equal(self.points, other.points) and np.array_equal(self.labels, other.labels)

    def __len__(self):
        return len(self.points)


@dataclass(frozen=True, eq=False)
class Block:
    """
    One planar block returned by the segmentation engine.

    size: extent along the block axes
    pose: block center and orientation
    hull: ordered boundary polygon, (n, 3)
    """
    size: tuple
    pose: Pose
    hull: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, 'size', tuple(float(v) for v in self.size))
        hull = np.asarray(self.hull, dtype=float)
        if hull.size == 0:
            hull = hull.reshape(0, 3)
        object.__setattr__(self, 'hull', _frozen_array(hull, shape=(-1, 3)))

    def __eq__(self, other):
        if not isinstance(other, Block):
            return NotImplemented
        return (self.size == other.size and self.pose == other.pose
                and np.array_equal(self.hull, other.hull))


@dataclass(frozen=True)
class Result:
    """Blocks of one processing cycle, in engine order."""
    blocks: tuple = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'blocks', tuple(self.blocks))

    def __len__(self):
        return len(self.blocks)

    def __iter__(self):
        return iter(self.blocks)

    def __getitem__(self, idx):
        return self.blocks[idx]
