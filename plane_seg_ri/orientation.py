#!/usr/bin/env python3
import math

import numpy as np


def quat_to_euler(q):
    """
    Convert a (w, x, y, z) quaternion to (roll, pitch, yaw), aerospace
    convention. The asin argument is clamped so that numerical noise at
    the poles does not produce NaN.
    """
    w, x, y, z = q
    roll = math.atan2(2.0 * (w * x + y * z), 1.0 - 2.0 * (x * x + y * y))
    sinp = 2.0 * (w * y - z * x)
    pitch = math.asin(max(-1.0, min(1.0, sinp)))
    yaw = math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))
    return roll, pitch, yaw


def quaternion_from_euler(roll, pitch, yaw):
    """Inverse of quat_to_euler, returns (w, x, y, z)."""
    cy = math.cos(yaw * 0.5)
    sy = math.sin(yaw * 0.5)
    cp = math.cos(pitch * 0.5)
    sp = math.sin(pitch * 0.5)
    cr = math.cos(roll * 0.5)
    sr = math.sin(roll * 0.5)

    w = cy * cp * cr + sy * sp * sr
    x = cy * cp * sr - sy * sp * cr
    y = sy * cp * sr + cy * sp * cr
    z = sy * cp * cr - cy * sp * sr
    return w, x, y, z


def look_direction_from_euler(pitch, yaw):
    # sensor convention: pitch is negated, positive robot pitch looks down
    pitch = -pitch
    x_dir = math.cos(yaw) * math.cos(pitch)
    y_dir = math.sin(yaw) * math.cos(pitch)
    z_dir = math.sin(pitch)
    return np.array([x_dir, y_dir, z_dir], dtype=float)


def convert_robot_pose_to_sensor_look_dir(pose):
    """
    Sensor looking direction for the segmenter, from the robot pose
    orientation. Roll is ignored. The result is not renormalized.
    """
    _, pitch, yaw = quat_to_euler(pose.orientation)
    return look_direction_from_euler(pitch, yaw)
