#!/usr/bin/env python3
import os
import struct
import time

import numpy as np
import rclpy
from rclpy.node import Node
from rclpy.qos import QoSProfile, QoSReliabilityPolicy, QoSHistoryPolicy
from sensor_msgs.msg import PointCloud2, PointField
from sensor_msgs_py import point_cloud2
from geometry_msgs.msg import Point, PoseStamped, PoseWithCovarianceStamped
from std_msgs.msg import ColorRGBA, Header
from visualization_msgs.msg import Marker

from plane_seg_ri.datasets import load_test_case
from plane_seg_ri.errors import (DegenerateFrame, InvalidInput, SegmentationFailed,
                                 UnsupportedFileFormat)
from plane_seg_ri.frame import build_look_frame
from plane_seg_ri.hull_converter import HullConverter
from plane_seg_ri.orchestrator import SegmentationOrchestrator
from plane_seg_ri.report import format_result_report
from plane_seg_ri.segmenter import Open3DBlockFitter, SegmenterConfig
from plane_seg_ri.types import LabeledCloud, Pose

HULL_CLOUD_FIELDS = [
    PointField(name='x', offset=0, datatype=PointField.FLOAT32, count=1),
    PointField(name='y', offset=4, datatype=PointField.FLOAT32, count=1),
    PointField(name='z', offset=8, datatype=PointField.FLOAT32, count=1),
    PointField(name='rgb', offset=12, datatype=PointField.FLOAT32, count=1),
]


### ===== Message conversion ===== ###
def pack_rgb(color):
    """RGB in [0, 1] to the float packed layout used by PCL/RViz."""
    r, g, b = color.to_bytes()
    rgb_int = (r << 16) | (g << 8) | b
    return struct.unpack('f', struct.pack('I', rgb_int))[0]


def cloud_from_msg(msg):
    """sensor_msgs/PointCloud2 -> LabeledCloud (label field optional)."""
    names = [f.name for f in msg.fields]
    wanted = ['x', 'y', 'z'] + (['label'] if 'label' in names else [])
    data = point_cloud2.read_points(msg, field_names=wanted, skip_nans=True)

    points = np.column_stack((data['x'], data['y'], data['z'])).astype(float)
    labels = np.asarray(data['label'], dtype=np.int32) if 'label' in wanted else None
    return LabeledCloud(points=points.reshape(-1, 3), labels=labels)


def pose_from_msg(msg):
    """geometry_msgs/Pose -> Pose. Raises InvalidInput if malformed."""
    p = msg.position
    q = msg.orientation
    return Pose.from_components((p.x, p.y, p.z), (q.w, q.x, q.y, q.z))


def hull_cloud_to_msg(primitives, header):
    """All hull points in one colored cloud."""
    points = [(float(p.position[0]), float(p.position[1]), float(p.position[2]), pack_rgb(p.color))
              for p in primitives.points]
    return point_cloud2.create_cloud(header, HULL_CLOUD_FIELDS, points)


def hull_markers_to_msg(primitives, header, line_width=0.03):
    """All hull edges in one LINE_LIST marker, colored per hull."""
    marker = Marker()
    marker.header = header
    marker.ns = "hull lines"
    marker.id = 0
    marker.type = Marker.LINE_LIST
    marker.action = Marker.ADD

    marker.pose.orientation.w = 1.0
    marker.scale.x = line_width
    marker.scale.y = line_width
    marker.scale.z = line_width
    marker.color.a = 1.0

    for seg in primitives.segments:
        color = ColorRGBA(r=float(seg.color.r), g=float(seg.color.g), b=float(seg.color.b), a=1.0)
        for p in (seg.start, seg.end):
            marker.points.append(Point(x=float(p[0]), y=float(p[1]), z=float(p[2])))
            marker.colors.append(color)

    # fixed in the world frame
    marker.frame_locked = True
    return marker


def look_frame_to_msg(frame, header):
    msg = PoseStamped()
    msg.header = header
    msg.pose.position.x = float(frame.origin[0])
    msg.pose.position.y = float(frame.origin[1])
    msg.pose.position.z = float(frame.origin[2])
    w, x, y, z = frame.quaternion
    msg.pose.orientation.w = w
    msg.pose.orientation.x = x
    msg.pose.orientation.y = y
    msg.pose.orientation.z = z
    return msg


class PlaneSegNode(Node):
    """
    Plane segmentation robot interface.
    Subscribes:
      - point cloud (sensor_msgs/PointCloud2)
      - elevation map as a cloud (sensor_msgs/PointCloud2)
      - robot pose (geometry_msgs/PoseWithCovarianceStamped)
    Publishes:
      - /plane_seg/received_cloud (sensor_msgs/PointCloud2)
      - /plane_seg/hull_cloud (sensor_msgs/PointCloud2)
      - /plane_seg/hull_markers (visualization_msgs/Marker)
      - /plane_seg/look_pose (geometry_msgs/PoseStamped)
    """

    def __init__(self):
        super().__init__('plane_seg_node')

        # ---- Parameters ----
        self.declare_parameter('frame_id', 'odom')
        self.declare_parameter('topics.point_cloud_in', '/plane_seg/point_cloud_in')
        self.declare_parameter('topics.elevation_cloud_in', '/elevation_mapping/elevation_cloud')
        self.declare_parameter('topics.pose_in', '/state_estimator/pose_in_odom')

        defaults = SegmenterConfig()
        self.declare_parameter('segmenter.remove_ground', defaults.remove_ground)
        self.declare_parameter('segmenter.max_angle_of_plane_segmenter', defaults.max_angle_of_plane_segmenter)
        self.declare_parameter('segmenter.debug', defaults.debug)
        self.declare_parameter('segmenter.downsample_resolution', defaults.downsample_resolution)
        self.declare_parameter('segmenter.min_points_per_block', defaults.min_points_per_block)
        self.declare_parameter('segmenter.coplanarity_deg', defaults.coplanarity_deg)
        self.declare_parameter('segmenter.outlier_ratio', defaults.outlier_ratio)
        self.declare_parameter('segmenter.normal_search_radius', defaults.normal_search_radius)
        self.declare_parameter('segmenter.ground_normal_angle', defaults.ground_normal_angle)

        self.declare_parameter('marker.line_width', 0.03)
        self.declare_parameter('print_json', False)
        self.declare_parameter('run_test_program', False)
        self.declare_parameter('test_examples', [4, 5])
        self.declare_parameter('data_dir', '')
        self.declare_parameter('startup_delay', 2.0)

        self.frame_id = self.get_parameter('frame_id').value
        self.line_width = float(self.get_parameter('marker.line_width').value)
        self.print_json = bool(self.get_parameter('print_json').value)
        self.run_test_program = bool(self.get_parameter('run_test_program').value)
        self.test_examples = list(self.get_parameter('test_examples').value)
        self.data_dir = self.get_parameter('data_dir').value
        self.startup_delay = float(self.get_parameter('startup_delay').value)

        config = SegmenterConfig(
            remove_ground=bool(self.get_parameter('segmenter.remove_ground').value),
            max_angle_of_plane_segmenter=float(self.get_parameter('segmenter.max_angle_of_plane_segmenter').value),
            debug=bool(self.get_parameter('segmenter.debug').value),
            downsample_resolution=float(self.get_parameter('segmenter.downsample_resolution').value),
            min_points_per_block=int(self.get_parameter('segmenter.min_points_per_block').value),
            coplanarity_deg=float(self.get_parameter('segmenter.coplanarity_deg').value),
            outlier_ratio=float(self.get_parameter('segmenter.outlier_ratio').value),
            normal_search_radius=float(self.get_parameter('segmenter.normal_search_radius').value),
            ground_normal_angle=float(self.get_parameter('segmenter.ground_normal_angle').value),
        )

        self.orchestrator = SegmentationOrchestrator(
            Open3DBlockFitter(logger=self.get_logger()), config=config, logger=self.get_logger())
        self.converter = HullConverter()

        qos_reliable = QoSProfile(depth=10)
        qos_in = QoSProfile(reliability=QoSReliabilityPolicy.RELIABLE, history=QoSHistoryPolicy.KEEP_LAST, depth=100)

        # Subscriptions
        self.point_cloud_sub = self.create_subscription(
            PointCloud2, self.get_parameter('topics.point_cloud_in').value, self.point_cloud_callback, qos_in)
        self.elevation_cloud_sub = self.create_subscription(
            PointCloud2, self.get_parameter('topics.elevation_cloud_in').value, self.point_cloud_callback, qos_in)
        self.pose_sub = self.create_subscription(
            PoseWithCovarianceStamped, self.get_parameter('topics.pose_in').value, self.pose_callback, qos_in)

        # Publishers
        self.received_cloud_pub = self.create_publisher(PointCloud2, '/plane_seg/received_cloud', qos_reliable)
        self.hull_cloud_pub = self.create_publisher(PointCloud2, '/plane_seg/hull_cloud', qos_reliable)
        self.hull_markers_pub = self.create_publisher(Marker, '/plane_seg/hull_markers', qos_reliable)
        self.look_pose_pub = self.create_publisher(PoseStamped, '/plane_seg/look_pose', qos_reliable)

        self.get_logger().info("plane_seg ready")
        self.get_logger().info(
            f"Parameters: remove_ground={config.remove_ground}, "
            f"max_angle={config.max_angle_of_plane_segmenter:.1f}, debug={config.debug}, "
            f"frame_id={self.frame_id}, run_test_program={self.run_test_program}")

    ### ===== Callbacks ===== ###
    def pose_callback(self, msg):
        try:
            self.orchestrator.update_pose(pose_from_msg(msg.pose.pose))
        except InvalidInput as e:
            self.get_logger().warn(f"Ignoring pose update: {e}", throttle_duration_sec=1.0)

    def point_cloud_callback(self, msg):
        """
        Point clouds and elevation maps (already in cloud form) both end
        up here. To send a static cloud:
        ros2 run pcl_ros pcd_to_pointcloud --ros-args -p file_name:=06.pcd -r cloud_pcd:=/plane_seg/point_cloud_in
        """
        try:
            cloud = cloud_from_msg(msg)
        except (InvalidInput, KeyError, ValueError) as e:
            self.get_logger().warn(f"Dropping malformed cloud: {e}")
            return

        self.process_cloud(cloud, msg.header.stamp)

    ### ===== Processing ===== ###
    def process_from_file(self, test_example):
        data_dir = self.data_dir or self.default_data_dir()
        try:
            cloud, origin, look_dir, case = load_test_case(test_example, data_dir)
        except (UnsupportedFileFormat, InvalidInput) as e:
            self.get_logger().warn(f"Skipping test example {test_example}: {e}")
            return None

        self.get_logger().info(f"Processing test example {test_example}: {case.description} ({case.path})")
        return self.process_cloud(cloud, self.get_clock().now().to_msg(), origin, look_dir)

    def process_cloud(self, cloud, stamp, origin=None, look_dir=None):
        """
        One cycle: segment, then publish the look pose, the received cloud
        and the hulls. Returns the Result, or None if the cycle failed.

        Without origin and look_dir they come from one snapshot of the
        current robot pose.
        """
        try:
            if origin is None or look_dir is None:
                result, origin, look_dir = self.orchestrator.process_cloud_at_current_pose(cloud)
            else:
                result = self.orchestrator.process_cloud(cloud, origin, look_dir)
        except InvalidInput as e:
            self.get_logger().warn(f"Invalid input, cycle skipped: {e}")
            return None
        except SegmentationFailed as e:
            self.get_logger().error(f"Segmentation failed, keeping previous result: {e}")
            return None

        header = Header(frame_id=self.frame_id, stamp=stamp)

        try:
            frame = build_look_frame(origin, look_dir)
            self.look_pose_pub.publish(look_frame_to_msg(frame, header))
        except DegenerateFrame as e:
            self.get_logger().warn(f"No look pose this cycle: {e}")

        self.received_cloud_pub.publish(
            point_cloud2.create_cloud_xyz32(header, cloud.points.astype(np.float32)))

        if self.print_json:
            report = format_result_report(result, self.orchestrator.cycle_count - 1)
            self.get_logger().info(f"\n{report}")

        self.publish_result(result, header)
        return result

    def publish_result(self, result, header):
        primitives = self.converter.convert(result)
        self.hull_cloud_pub.publish(hull_cloud_to_msg(primitives, header))
        self.hull_markers_pub.publish(hull_markers_to_msg(primitives, header, self.line_width))

    @staticmethod
    def default_data_dir():
        from ament_index_python.packages import get_package_share_directory
        return os.path.join(get_package_share_directory('plane_seg_ri'), 'data')


def main(args=None):
    rclpy.init(args=args)
    node = PlaneSegNode()
    try:
        if node.run_test_program:
            node.get_logger().info("Running test examples")
            # let the publishers register before the first cycle
            time.sleep(node.startup_delay)
            for test_example in node.test_examples:
                node.process_from_file(test_example)
            node.get_logger().info("Finished!")
        else:
            node.get_logger().info("Waiting for ROS messages")
            rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()


if __name__ == '__main__':
    main()
