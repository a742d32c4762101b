#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
actuator.py

Thin abstraction over the robot's actuators.

The interpreter only ever needs two outbound commands:
  send_velocity(linear, angular)   motion (zero/zero means stop)
  send_speech(clip)                play a sound clip / speak

Both are fire-and-forget. Delivery and retries belong to the transport.

Usage:
  from robot_block_program.actuator import DryRunActuator
  act = DryRunActuator()
  act.send_velocity(0.5, 0.0)
  act.stop()

DryRunActuator keeps the package runnable on a laptop without ROS: it logs
what it *would* send and keeps the commands in order for inspection.
"""

from dataclasses import dataclass
import logging
import threading
from typing import List, Union

LOG = logging.getLogger("actuator")


@dataclass(frozen=True)
class VelocityCommand:
    linear: float
    angular: float

    @property
    def is_stop(self) -> bool:
        return self.linear == 0.0 and self.angular == 0.0


@dataclass(frozen=True)
class SpeechCommand:
    clip: str


ActuatorCommand = Union[VelocityCommand, SpeechCommand]


class ActuatorInterface:
    """
    Interface the interpreter drives.

    Subclasses implement send_velocity and send_speech; stop() is shared.
    """

    def send_velocity(self, linear: float, angular: float) -> None:
        raise NotImplementedError

    def send_speech(self, clip: str) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        self.send_velocity(0.0, 0.0)


class DryRunActuator(ActuatorInterface):
    """Logs commands instead of sending them, and records them in order."""

    def __init__(self, logger=None):
        self._log = logger or LOG
        self._lock = threading.Lock()
        self.sent: List[ActuatorCommand] = []

    def send_velocity(self, linear: float, angular: float) -> None:
        cmd = VelocityCommand(float(linear), float(angular))
        with self._lock:
            self.sent.append(cmd)
        self._log.info(f"[DRYRUN] velocity linear={cmd.linear:+.2f} angular={cmd.angular:+.2f}")

    def send_speech(self, clip: str) -> None:
        with self._lock:
            self.sent.append(SpeechCommand(str(clip)))
        self._log.info(f"[DRYRUN] speech clip={clip}")

    def commands(self) -> List[ActuatorCommand]:
        with self._lock:
            return list(self.sent)

    def clear(self) -> None:
        with self._lock:
            self.sent.clear()
