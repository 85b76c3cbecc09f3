import os
from ament_index_python.packages import get_package_share_directory
from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description():

    # 1. Parameter file installed with the package
    package_name = 'plane_seg_ri'
    config_file_path = os.path.join(
        get_package_share_directory(package_name),
        'config',
        'plane_seg_params.yaml'
    )

    use_sim_time = LaunchConfiguration('use_sim_time')
    run_test_program = LaunchConfiguration('run_test_program')

    # 2. Segmentation node
    plane_seg_node = Node(
        package=package_name,
        executable='plane_seg_node',  # entry point in setup.py
        name='plane_seg_node',        # must match the root key of the YAML
        output='screen',
        parameters=[
            config_file_path,
            {'use_sim_time': use_sim_time,
             'run_test_program': run_test_program},
        ]
    )

    return LaunchDescription([
        DeclareLaunchArgument(
            'use_sim_time',
            default_value='false',
            description='Use simulation clock if true',
        ),
        DeclareLaunchArgument(
            'run_test_program',
            default_value='false',
            description='Process the offline test examples and exit',
        ),
        plane_seg_node,
    ])
