#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
program_runner_node.py

ROLE
----
Robot-side node that owns one block-programming session:

Subscribes (std_msgs/String JSON, see edit_protocol.py):
  /<robot>/program/edit      tree edits from the block editor UI
  /<robot>/program/run       {"action": "run"|"cancel"}

Publishes:
  /<robot>/program/edit_response   result of each edit
  /<robot>/program/state           the current program tree
  /<robot>/program/status          run state changes
  /<robot>/cmd_vel                 geometry_msgs/Twist while a program runs
  /<robot>/speak                   std_msgs/String for sound blocks

The UI only sends gestures as edits and presses "run". Everything that has
invariants (tree consistency, one run at a time, timing, the final stop) lives
in the pure-Python modules this node wires together.
"""

from __future__ import annotations

import getpass
import json
import os

import rclpy
from rclpy.node import Node
from std_msgs.msg import String

from .audit_logger import AuditLogger
from .interpreter import Interpreter
from .motion_profiles import (
    load_profile_registry,
    resolve_robot_profile,
    speeds_from_profile,
    topic_for,
)
from .ros_actuator import RosActuator
from .session import ProgramSession
from .step_helpers import MotionSpeeds


class ProgramRunner(Node):
    def __init__(self):
        super().__init__("program_runner")

        self.declare_parameter("robot_name", getpass.getuser())
        self.declare_parameter("profiles_path", "")

        self.robot = str(self.get_parameter("robot_name").value).strip() or getpass.getuser()
        profiles_path = str(self.get_parameter("profiles_path").value).strip() or None

        try:
            reg = load_profile_registry(profiles_path)
            prof = resolve_robot_profile(reg, self.robot)
        except (FileNotFoundError, ValueError) as e:
            self.get_logger().warning(f"[{self.robot}] motion profile unavailable ({e}); using built-in speeds")
            prof = None

        if prof is None:
            self.profile_name = None
            speeds = MotionSpeeds()
            cmd_vel_topic = f"/{self.robot}/cmd_vel"
            speak_topic = f"/{self.robot}/speak"
        else:
            self.profile_name = prof["profile_name"]
            speeds = speeds_from_profile(prof)
            cmd_vel_topic = topic_for(prof["cmd_vel_topic_template"], self.robot)
            speak_topic = topic_for(prof["speak_topic_template"], self.robot)

        self.actuator = RosActuator(self, cmd_vel_topic, speak_topic)

        audit_log_path = os.environ.get("ROBOT_AUDIT_LOG_PATH") or f"/tmp/robot_{self.robot}_audit.jsonl"
        self.audit = AuditLogger(self, "program_runner", audit_log_path)

        self.interpreter = Interpreter(self.actuator, speeds=speeds, audit=self.audit, robot=self.robot)
        self.session = ProgramSession(self.interpreter, audit=self.audit, robot=self.robot)

        base = f"/{self.robot}/program"
        self.edit_response_pub = self.create_publisher(String, f"{base}/edit_response", 10)
        self.state_pub = self.create_publisher(String, f"{base}/state", 10)
        self.status_pub = self.create_publisher(String, f"{base}/status", 10)
        self.create_subscription(String, f"{base}/edit", self._on_edit, 50)
        self.create_subscription(String, f"{base}/run", self._on_run, 10)

        self.get_logger().info(f"[{self.robot}] ProgramRunner ready on {base}/{{edit,run}}")
        self.get_logger().info(
            f"[{self.robot}] profile={self.profile_name} cmd_vel={cmd_vel_topic} speak={speak_topic} "
            f"speeds=fwd {speeds.forward_mps} back {speeds.backward_mps} turn {speeds.turn_rate}"
        )
        self.get_logger().info(f"[{self.robot}] Audit log: {audit_log_path}")

        self._publish_state()

    # ---------------- publishing ----------------
    def _publish_json(self, pub, payload) -> None:
        msg = String()
        msg.data = json.dumps(payload, separators=(",", ":"))
        pub.publish(msg)

    def _publish_state(self) -> None:
        self._publish_json(self.state_pub, self.session.state_payload())

    def _on_run_done(self, handle) -> None:
        self._publish_json(
            self.status_pub,
            {
                "ok": True,
                "state": self.interpreter.state,
                "run_id": handle.run_id,
                "status": handle.status,
                "steps_completed": handle.steps_completed,
            },
        )

    # ---------------- callbacks ----------------
    def _on_edit(self, msg: String) -> None:
        resp = self.session.handle_edit_json(msg.data)
        self._publish_json(self.edit_response_pub, resp)
        if resp.get("changed"):
            self._publish_state()

    def _on_run(self, msg: String) -> None:
        payload = self.session.handle_run_json(msg.data, on_done=self._on_run_done)
        if not payload["ok"]:
            self.get_logger().warning(f"[{self.robot}] run request refused: {payload.get('reason')}")
        self._publish_json(self.status_pub, payload)

    def destroy_node(self) -> None:
        """Stop any active run, then close the audit log."""
        active = self.interpreter.active_run
        if active is not None:
            self.interpreter.cancel(active)
            active.wait(timeout=2.0)
        if hasattr(self, "audit") and self.audit:
            self.audit.close()
        super().destroy_node()


def main(args=None):
    rclpy.init(args=args)
    node = ProgramRunner()
    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.shutdown()


if __name__ == "__main__":
    main()
