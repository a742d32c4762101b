#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
ros_actuator.py

ActuatorInterface that publishes on ROS 2 topics:
  /<robot>/cmd_vel   geometry_msgs/Twist   (linear.x, angular.z)
  /<robot>/speak     std_msgs/String       (clip name)

Topic names come from the motion profile templates. Publishing is
fire-and-forget; whatever consumes cmd_vel on the robot owns motion control.
"""

from geometry_msgs.msg import Twist
from std_msgs.msg import String

from .actuator import ActuatorInterface


def make_twist(linear: float, angular: float) -> Twist:
    tw = Twist()
    tw.linear.x = float(linear)
    tw.angular.z = float(angular)
    return tw


class RosActuator(ActuatorInterface):
    def __init__(self, node, cmd_vel_topic: str, speak_topic: str, qos_depth: int = 10):
        self.node = node
        self.cmd_vel_topic = cmd_vel_topic
        self.speak_topic = speak_topic
        self.cmd_pub = node.create_publisher(Twist, cmd_vel_topic, qos_depth)
        self.speak_pub = node.create_publisher(String, speak_topic, qos_depth)

    def send_velocity(self, linear: float, angular: float) -> None:
        self.cmd_pub.publish(make_twist(linear, angular))

    def send_speech(self, clip: str) -> None:
        msg = String()
        msg.data = str(clip)
        self.speak_pub.publish(msg)
