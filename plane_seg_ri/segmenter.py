#!/usr/bin/env python3
"""
Segmentation engine boundary.

The orchestrator only knows SegmentationEngine.segment(request) -> Result.
Open3DBlockFitter is the engine used by the node: Open3D planar patch
detection, with each patch turned into a Block whose hull is the convex
hull of its inliers on the patch plane.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

import numpy as np
from scipy.spatial import ConvexHull, QhullError
from scipy.spatial.transform import Rotation

from plane_seg_ri.types import Block, Pose, Result


@dataclass(frozen=True)
class SegmenterConfig:
    """Tuning values handed to the engine on every cycle."""
    remove_ground: bool = False
    # this was 5 for LIDAR, 10 works better on elevation maps from RGB-D
    max_angle_of_plane_segmenter: float = 10.0
    debug: bool = True
    downsample_resolution: float = 0.0
    min_points_per_block: int = 20
    coplanarity_deg: float = 75.0
    outlier_ratio: float = 0.75
    normal_search_radius: float = 0.1
    normal_max_nn: int = 30
    plane_distance_threshold: float = 0.02
    ground_normal_angle: float = 15.0
    ground_distance_threshold: float = 0.03


@dataclass(frozen=True)
class SegmentationRequest:
    cloud: object            # LabeledCloud
    origin: np.ndarray       # sensor origin
    look_direction: np.ndarray
    config: SegmenterConfig


class SegmentationEngine(ABC):

    @abstractmethod
    def segment(self, request):
        """Return a Result for the request, or raise on failure."""


class Open3DBlockFitter(SegmentationEngine):
    """
    Plane segmentation with Open3D.

    Pipeline:
      1. optional voxel downsampling
      2. optional ground removal (dominant RANSAC plane facing up)
      3. normals, oriented toward the sensor origin
      4. detect_planar_patches
      5. one Block per patch with enough inliers, biggest first
    """

    def __init__(self, logger=None):
        self.logger = logger or logging.getLogger(__name__)

    def segment(self, request):
        import open3d as o3d

        cfg = request.config
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(np.asarray(request.cloud.points, dtype=float))

        if cfg.downsample_resolution > 0.0:
            pcd = pcd.voxel_down_sample(cfg.downsample_resolution)

        if cfg.remove_ground:
            pcd = self.remove_ground(pcd, cfg)

        if len(pcd.points) < 3:
            return Result()

        pcd.estimate_normals(
            search_param=o3d.geometry.KDTreeSearchParamHybrid(
                radius=cfg.normal_search_radius, max_nn=cfg.normal_max_nn))
        pcd.orient_normals_towards_camera_location(
            camera_location=np.asarray(request.origin, dtype=float))

        patches = pcd.detect_planar_patches(
            normal_variance_threshold_deg=cfg.max_angle_of_plane_segmenter,
            coplanarity_deg=cfg.coplanarity_deg,
            outlier_ratio=cfg.outlier_ratio,
            min_plane_edge_length=0.0,
            min_num_points=0,
            search_param=o3d.geometry.KDTreeSearchParamKNN(knn=cfg.normal_max_nn))

        points = np.asarray(pcd.points)
        candidates = []
        for patch in patches:
            block, count = self.patch_to_block(
                np.asarray(patch.center), np.asarray(patch.R), np.asarray(patch.extent),
                points, cfg.plane_distance_threshold)
            if count < cfg.min_points_per_block:
                continue
            candidates.append((count, block))

        # stable: equal counts keep detection order
        candidates.sort(key=lambda c: -c[0])
        blocks = [b for _, b in candidates]

        if cfg.debug:
            self.trace_blocks(len(patches), blocks)

        return Result(blocks)

    def trace_blocks(self, patch_count, blocks):
        # gated by cfg.debug, not by the logger level
        self.logger.info(f"{patch_count} patches, {len(blocks)} blocks kept")
        for i, block in enumerate(blocks):
            self.logger.info(
                f"block {i}: size={np.round(block.size, 3).tolist()} "
                f"center={np.round(block.pose.position, 3).tolist()} hull={len(block.hull)} pts")

    def remove_ground(self, pcd, cfg):
        if len(pcd.points) < 3:
            return pcd
        plane, inliers = pcd.segment_plane(
            distance_threshold=cfg.ground_distance_threshold, ransac_n=3, num_iterations=200)
        normal = np.asarray(plane[:3], dtype=float)
        normal /= max(np.linalg.norm(normal), 1e-12)
        angle = np.degrees(np.arccos(min(1.0, abs(normal[2]))))
        if angle > cfg.ground_normal_angle:
            return pcd
        if cfg.debug:
            self.logger.info(f"ground plane removed: {len(inliers)} pts, tilt {angle:.1f} deg")
        return pcd.select_by_index(inliers, invert=True)

    @staticmethod
    def patch_to_block(center, rotation, extent, points, distance_threshold):
        """
        Build a Block from an oriented patch box.
        Returns (block, inlier_count).
        """
        # the thinnest axis of the patch is the plane normal
        n_axis = int(np.argmin(extent))
        u_axis, v_axis = [a for a in range(3) if a != n_axis]

        R = np.array(rotation, dtype=float)
        if np.linalg.det(R) < 0.0:
            R[:, n_axis] = -R[:, n_axis]

        local = (points - center) @ R
        tol = max(distance_threshold, extent[n_axis] / 2.0)
        mask = ((np.abs(local[:, n_axis]) <= tol)
                & (np.abs(local[:, u_axis]) <= extent[u_axis] / 2.0 + distance_threshold)
                & (np.abs(local[:, v_axis]) <= extent[v_axis] / 2.0 + distance_threshold))
        plane_uv = local[mask][:, [u_axis, v_axis]]

        hull_uv = None
        if len(plane_uv) >= 3:
            try:
                hull = ConvexHull(plane_uv)
                hull_uv = plane_uv[hull.vertices]
            except QhullError:
                hull_uv = None
        if hull_uv is None:
            # collinear or too few inliers: fall back to the patch rectangle
            hu, hv = extent[u_axis] / 2.0, extent[v_axis] / 2.0
            hull_uv = np.array([[-hu, -hv], [hu, -hv], [hu, hv], [-hu, hv]])

        hull_3d = (center
                   + np.outer(hull_uv[:, 0], R[:, u_axis])
                   + np.outer(hull_uv[:, 1], R[:, v_axis]))

        x, y, z, w = Rotation.from_matrix(R).as_quat()
        pose = Pose(position=tuple(float(c) for c in center),
                    orientation=(float(w), float(x), float(y), float(z)))
        return Block(size=tuple(extent), pose=pose, hull=hull_3d), int(mask.sum())
