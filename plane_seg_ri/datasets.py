#!/usr/bin/env python3
"""
Pre-recorded datasets for offline runs.

Each test case is a cloud file relative to the data directory plus the
sensor origin and look direction it was captured with.
"""
from dataclasses import dataclass
import os

import numpy as np

from plane_seg_ri.errors import InvalidInput, UnsupportedFileFormat
from plane_seg_ri.types import LabeledCloud

SUPPORTED_EXTENSIONS = ('.pcd', '.ply')


@dataclass(frozen=True)
class DatasetCase:
    path: str
    origin: tuple
    look_direction: tuple
    description: str = ""


TEST_CASES = {
    0: DatasetCase('terrain/tilted-steps.pcd',
                   (0.248091, 0.012443, 1.806473), (0.837001, 0.019831, -0.546842),
                   'LIDAR example from Atlas during DRC'),
    1: DatasetCase('terrain/terrain_med.pcd',
                   (-0.028862, -0.007466, 0.087855), (0.999890, -0.005120, -0.013947),
                   'LIDAR example from Atlas during DRC'),
    2: DatasetCase('terrain/terrain_close_rect.pcd',
                   (-0.028775, -0.005776, 0.087898), (0.999956, -0.005003, 0.007958),
                   'LIDAR example from Atlas during DRC'),
    3: DatasetCase('terrain/anymal/ori_entrance_stair_climb/06.pcd',
                   (-0.028775, -0.005776, 0.987898), (0.999956, -0.005003, 0.007958),
                   'RGBD (Realsense D435) example from ANYmal'),
    4: DatasetCase('leica/race_arenas/RACE_crossplaneramps_sub1cm_cropped_meshlab_icp.ply',
                   (-0.028775, -0.005776, 0.987898), (0.999956, -0.005003, 0.007958),
                   'Leica map'),
    5: DatasetCase('leica/race_arenas/RACE_stepfield_sub1cm_cropped_meshlab_icp.ply',
                   (-0.028775, -0.005776, 0.987898), (0.999956, -0.005003, 0.007958),
                   'Leica map'),
}


def get_test_case(test_example):
    try:
        return TEST_CASES[int(test_example)]
    except (KeyError, TypeError, ValueError):
        raise InvalidInput(
            f"unknown test example {test_example!r}, expected one of {sorted(TEST_CASES)}") from None


def check_extension(path):
    ext = os.path.splitext(path)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileFormat(f"extension not understood: {path}")
    return ext


def load_labeled_cloud(path):
    """Read a .pcd or .ply file. Files carry no labels, so all are 0."""
    check_extension(path)
    if not os.path.isfile(path):
        raise InvalidInput(f"dataset file not found: {path}")

    import open3d as o3d
    pcd = o3d.io.read_point_cloud(path)
    points = np.asarray(pcd.points, dtype=float)
    if len(points) == 0:
        raise InvalidInput(f"no points read from {path}")
    return LabeledCloud(points=points)


def load_test_case(test_example, data_dir):
    """Returns (cloud, origin, look_direction, case) for a test example."""
    case = get_test_case(test_example)
    path = os.path.join(data_dir, case.path)
    cloud = load_labeled_cloud(path)
    return cloud, np.array(case.origin), np.array(case.look_direction), case
