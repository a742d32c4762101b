#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

import threading

import pytest

from robot_block_program.actuator import ActuatorInterface
from robot_block_program.interpreter import Interpreter


class TimelineActuator(ActuatorInterface):
    """Records commands into a timeline shared with the fake clock."""

    def __init__(self, timeline):
        self.timeline = timeline

    def send_velocity(self, linear, angular):
        self.timeline.append(("velocity", float(linear), float(angular)))

    def send_speech(self, clip):
        self.timeline.append(("speech", clip))


class FakeClock:
    """
    hold_fn that never sleeps. Records each hold in the timeline and advances
    a virtual clock. on_hold(n, stop_event) runs before the n-th hold resolves
    so a test can cancel mid-hold deterministically.
    """

    def __init__(self, timeline):
        self.timeline = timeline
        self.now = 0.0
        self.on_hold = None
        self._count = 0

    def hold(self, duration_s, stop_event):
        self._count += 1
        self.timeline.append(("hold", duration_s))
        if self.on_hold is not None:
            self.on_hold(self._count, stop_event)
        if stop_event.is_set():
            return True
        self.now += duration_s
        return False

    @property
    def holds(self):
        return [e[1] for e in self.timeline if e[0] == "hold"]


class GatedClock:
    """hold_fn that blocks until the test opens the gate (or the run is cancelled)."""

    def __init__(self):
        self.gate = threading.Event()
        self.entered = threading.Event()

    def hold(self, duration_s, stop_event):
        self.entered.set()
        while not self.gate.is_set():
            if stop_event.wait(0.01):
                return True
        return stop_event.is_set()


@pytest.fixture
def timeline():
    return []


@pytest.fixture
def actuator(timeline):
    return TimelineActuator(timeline)


@pytest.fixture
def clock(timeline):
    return FakeClock(timeline)


@pytest.fixture
def interpreter(actuator, clock):
    return Interpreter(actuator, hold_fn=clock.hold, robot="test_bot")