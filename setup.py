#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
setup.py (robot_block_program)

Installs the package for ROS 2 / colcon, and for plain `pip install -e .`
when only the pure-Python core is needed (tests, laptops without ROS).

`ros2 launch robot_block_program program_runner.launch.py` looks for launch
files in <install_prefix>/share/robot_block_program/launch/, so the data_files
below copy ./launch and ./config there.
"""

import os
from glob import glob

from setuptools import find_packages, setup

package_name = "robot_block_program"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages(exclude=["test"]),
    data_files=[
        # ament index + package manifest
        ("share/ament_index/resource_index/packages", ["resource/" + package_name]),
        ("share/" + package_name, ["package.xml"]),
        (os.path.join("share", package_name, "config"), glob("config/*.yaml")),
        (os.path.join("share", package_name, "launch"), glob("launch/*.launch.py")),
    ],
    # rclpy, geometry_msgs, std_msgs and launch_ros come from the ROS 2
    # distribution (see package.xml), not from PyPI.
    install_requires=["setuptools", "PyYAML"],
    extras_require={"test": ["pytest"]},
    zip_safe=True,
    maintainer="Vitruvian Systems",
    maintainer_email="devnull@example.com",
    description="Block programs for robots: program tree editor and timed command interpreter.",
    license="LicenseRef-Proprietary",
    tests_require=["pytest"],
    entry_points={
        "console_scripts": [
            "program_runner_node = robot_block_program.program_runner_node:main",
        ],
    },
)
