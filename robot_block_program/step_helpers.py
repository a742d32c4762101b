#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
step_helpers.py

This module holds the timed-step logic used by interpreter.py.

We keep this separate from the Interpreter because:
- It keeps the run state machine easy to read.
- It keeps "what one block does to the actuator" in one place.

One block = one TimedStep:
  emit its command, hold for its duration, then (for motion) emit a stop.

TIME UNITS
----------
Move and Wait count whole seconds per step. Turn counts 100 ms per degree
step, because degrees accumulate much faster than distance steps. Sound holds
a fixed 1 s settle regardless of clip length; we have no idea how long the
robot actually takes to play it. These constants are observable timing and
are not configurable.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .actuator import ActuatorCommand, ActuatorInterface, SpeechCommand, VelocityCommand
from .instruction import KIND_MOVE, KIND_SOUND, KIND_TURN, KIND_WAIT, Instruction


MOVE_STEP_S = 1.0
WAIT_STEP_S = 1.0
TURN_STEP_S = 0.1
SOUND_SETTLE_S = 1.0

# Called as hold_fn(duration_s, stop_event); returns True if interrupted.
HoldFn = Callable[[float, threading.Event], bool]


@dataclass(frozen=True)
class MotionSpeeds:
    """
    Speeds used for motion blocks.

    forward_mps / backward_mps:
      magnitudes; the sign comes from the block direction.
    turn_rate:
      angular magnitude; left is positive, right negative.
    """
    forward_mps: float = 0.5
    backward_mps: float = 0.35
    turn_rate: float = 45.0


@dataclass(frozen=True)
class TimedStep:
    """
    command:
      What to emit first (None for wait).
    duration_s:
      How long to hold after emitting.
    stop_at_end:
      If True, emit a zero velocity once the hold completes.
    status_text:
      Human readable, for logs.
    """
    command: Optional[ActuatorCommand]
    duration_s: float
    stop_at_end: bool
    status_text: str


class StepInterrupted(Exception):
    """Raised when the run's stop event fires before or during a step."""


def event_hold(duration_s: float, stop_event: threading.Event) -> bool:
    return stop_event.wait(duration_s)


def compile_step(ins: Instruction, speeds: MotionSpeeds) -> TimedStep:
    """Turn one leaf instruction into a TimedStep. Repeat is handled by the caller."""
    if ins.kind == KIND_MOVE:
        v = abs(speeds.forward_mps) if ins.direction == "forward" else -abs(speeds.backward_mps)
        return TimedStep(
            command=VelocityCommand(v, 0.0),
            duration_s=ins.magnitude * MOVE_STEP_S,
            stop_at_end=True,
            status_text=f"move {ins.direction} {ins.magnitude}",
        )

    if ins.kind == KIND_TURN:
        w = abs(speeds.turn_rate) if ins.direction == "left" else -abs(speeds.turn_rate)
        return TimedStep(
            command=VelocityCommand(0.0, w),
            duration_s=ins.magnitude * TURN_STEP_S,
            stop_at_end=True,
            status_text=f"turn {ins.direction} {ins.magnitude}",
        )

    if ins.kind == KIND_SOUND:
        return TimedStep(
            command=SpeechCommand(ins.clip),
            duration_s=SOUND_SETTLE_S,
            stop_at_end=False,
            status_text=f"sound {ins.clip}",
        )

    if ins.kind == KIND_WAIT:
        return TimedStep(
            command=None,
            duration_s=ins.magnitude * WAIT_STEP_S,
            stop_at_end=False,
            status_text=f"wait {ins.magnitude}",
        )

    raise ValueError(f"compile_step cannot handle kind '{ins.kind}'")


def emit(actuator: ActuatorInterface, command: ActuatorCommand) -> None:
    if isinstance(command, VelocityCommand):
        actuator.send_velocity(command.linear, command.angular)
    else:
        actuator.send_speech(command.clip)


def run_timed_step(
    actuator: ActuatorInterface,
    step: TimedStep,
    stop_event: threading.Event,
    hold_fn: HoldFn = event_hold,
) -> None:
    """
    Emit step.command, hold for step.duration_s, then stop if requested.

    Raises StepInterrupted if stop_event is set before the emit or fires
    during the hold. In that case the step's own trailing stop is NOT sent;
    the caller owns the single final stop of a cancelled run.

    A zero duration emits without suspending.
    """
    if stop_event.is_set():
        raise StepInterrupted(step.status_text)

    if step.command is not None:
        emit(actuator, step.command)

    if step.duration_s > 0.0:
        if hold_fn(step.duration_s, stop_event):
            raise StepInterrupted(step.status_text)

    if step.stop_at_end:
        actuator.stop()
