#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary
"""
program_runner.launch.py

Starts the block-program runner for one robot:
  - program_runner_node

The block editor UI talks to it over /<robot>/program/{edit,run}; runs are
published to /<robot>/cmd_vel and /<robot>/speak.
"""

import os

from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description() -> LaunchDescription:
    default_robot_name = os.environ.get("USER", "robot")

    robot_name_arg = DeclareLaunchArgument(
        "robot_name",
        default_value=default_robot_name,
        description="Robot identity name. Default: Linux username.",
    )

    profiles_path_arg = DeclareLaunchArgument(
        "profiles_path",
        default_value="",
        description="Optional path to robot_profiles.yaml; empty uses installed config.",
    )

    program_runner = Node(
        package="robot_block_program",
        executable="program_runner_node",
        name="program_runner",
        output="screen",
        parameters=[
            {"robot_name": LaunchConfiguration("robot_name")},
            {"profiles_path": LaunchConfiguration("profiles_path")},
        ],
    )

    return LaunchDescription(
        [
            robot_name_arg,
            profiles_path_arg,
            program_runner,
        ]
    )
