#!/usr/bin/env python3
import logging
import threading

import numpy as np

from plane_seg_ri.errors import InvalidInput, SegmentationFailed
from plane_seg_ri.orientation import convert_robot_pose_to_sensor_look_dir
from plane_seg_ri.segmenter import SegmentationRequest, SegmenterConfig
from plane_seg_ri.types import LabeledCloud, Pose, Result


class SegmentationOrchestrator:
    """
    Owns the robot pose and the last segmentation result.

    - update_pose() replaces the pose as a whole value
    - process_cloud() runs one engine call and replaces the result
    - cycles are serialized; readers only ever see complete values
    """

    def __init__(self, engine, config=None, logger=None):
        self.engine = engine
        self.config = config or SegmenterConfig()
        self.logger = logger or logging.getLogger(__name__)

        self._pose = Pose.identity()
        self._last_result = Result()
        self._cycle_count = 0

        self._pose_lock = threading.Lock()
        self._result_lock = threading.Lock()
        self._cycle_lock = threading.Lock()

    ### ===== Pose ===== ###
    def update_pose(self, pose):
        """
        Replace the cached pose. A malformed pose raises InvalidInput and
        the previous one stays in effect.
        """
        if not isinstance(pose, Pose):
            raise InvalidInput(f"expected a Pose, got {type(pose).__name__}")
        pose = Pose.from_components(pose.position, pose.orientation)
        with self._pose_lock:
            self._pose = pose

    @property
    def current_pose(self):
        with self._pose_lock:
            return self._pose

    def sensor_origin_and_direction(self):
        """Origin and look direction, both from a single pose snapshot."""
        pose = self.current_pose
        return pose.translation, convert_robot_pose_to_sensor_look_dir(pose)

    ### ===== Result ===== ###
    @property
    def last_result(self):
        with self._result_lock:
            return self._last_result

    @property
    def cycle_count(self):
        with self._result_lock:
            return self._cycle_count

    ### ===== Processing ===== ###
    def process_cloud(self, cloud, origin, look_direction):
        """
        Segment one cloud seen from origin along look_direction.

        Raises InvalidInput for an empty or malformed cloud (the engine is
        not called) and SegmentationFailed if the engine fails. In both
        cases last_result keeps its previous value.
        """
        cloud = self._validate_cloud(cloud)
        origin = self._validate_vector(origin, 'origin')
        look_direction = self._validate_vector(look_direction, 'look direction')

        request = SegmentationRequest(
            cloud=cloud,
            origin=origin,
            look_direction=look_direction,
            config=self.config)

        with self._cycle_lock:
            try:
                result = self.engine.segment(request)
            except SegmentationFailed:
                raise
            except Exception as e:
                raise SegmentationFailed(f"segmentation engine failed: {e}") from e

            if not isinstance(result, Result):
                raise SegmentationFailed(
                    f"segmentation engine returned {type(result).__name__}, not a Result")

            with self._result_lock:
                self._last_result = result
                self._cycle_count += 1

        self.logger.info(f"Processed cloud of {len(cloud)} pts: {len(result)} blocks")
        return result

    def process_cloud_at_current_pose(self, cloud):
        """
        Snapshot the pose, derive origin and look direction from it and
        process the cloud. Returns (result, origin, look_direction).
        """
        origin, look_direction = self.sensor_origin_and_direction()
        result = self.process_cloud(cloud, origin, look_direction)
        return result, origin, look_direction

    ### ===== Validation ===== ###
    @staticmethod
    def _validate_cloud(cloud):
        if cloud is None:
            raise InvalidInput("no cloud given")
        if not isinstance(cloud, LabeledCloud):
            try:
                cloud = LabeledCloud(points=cloud)
            except (TypeError, ValueError) as e:
                raise InvalidInput(f"malformed cloud: {e}") from e
        if len(cloud) == 0:
            raise InvalidInput("empty cloud")
        if not np.all(np.isfinite(cloud.points)):
            raise InvalidInput("cloud contains non finite points")
        return cloud

    @staticmethod
    def _validate_vector(vec, name):
        try:
            arr = np.asarray(vec, dtype=float).reshape(3)
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"malformed {name}: {e}") from e
        if not np.all(np.isfinite(arr)):
            raise InvalidInput(f"{name} is not finite")
        return arr
