#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
interpreter.py

ROLE
----
Runs a block program as a strictly ordered, timed stream of actuator commands.

  Interpreter.run(tree)   -> RunHandle     (idle -> running)
  Interpreter.cancel()    -> bool          (running -> idle, after a final stop)
  RunHandle.add_done_callback(fn)          (completion notification)

STATE MACHINE
-------------
  idle --run()--> running --(last step done)----> idle   status=succeeded
                          --(cancel requested)--> idle   status=cancelled
                          --(actuator raised)---> idle   status=failed

Exactly one run is active at a time. run() while running raises
RunAlreadyActive; the active run is not touched.

SNAPSHOT ISOLATION
------------------
run() copies the tree into an immutable nested snapshot before it starts. The
editor may keep producing new trees; they only affect the next run.

THREADING
---------
Each run executes on its own worker thread, so the host (ROS executor, UI
loop) keeps spinning while a step holds. Within one run, steps are strictly
sequential: emit, hold, stop, next. Holds wait on the run's stop event, so a
cancel wakes a hold immediately instead of letting it run out.

CANCELLATION
------------
A cancelled run abandons the remaining steps and always emits exactly one
trailing zero velocity before it reports idle. The actuator is never left
moving. The handle's steps_completed tells the caller how far the run got.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from typing import Callable, Iterator, List, Optional, Sequence, Tuple, Union

from .actuator import ActuatorInterface
from .audit_logger import AuditLogger
from .instruction import Instruction
from .program_tree import ProgramStep, ProgramTree
from .step_helpers import (
    HoldFn,
    MotionSpeeds,
    StepInterrupted,
    compile_step,
    event_hold,
    run_timed_step,
)

LOG = logging.getLogger("interpreter")

STATE_IDLE = "idle"
STATE_RUNNING = "running"

RUN_RUNNING = "running"
RUN_SUCCEEDED = "succeeded"
RUN_CANCELLED = "cancelled"
RUN_FAILED = "failed"


class RunAlreadyActive(RuntimeError):
    def __init__(self, active_run_id: str):
        super().__init__(f"Run '{active_run_id}' is already active")
        self.active_run_id = active_run_id


def prune(steps: Sequence[ProgramStep]) -> Tuple[ProgramStep, ...]:
    """Drop repeat blocks that (recursively) contain no leaf steps."""
    out: List[ProgramStep] = []
    for step in steps:
        if step.instruction.is_container:
            kids = prune(step.children)
            if kids:
                out.append(ProgramStep(step.instruction, kids))
        else:
            out.append(step)
    return tuple(out)


def expand(steps: Sequence[ProgramStep], repeat_count: int = 1) -> Iterator[Instruction]:
    """Depth-first, left-to-right, repeat-expanded leaf instructions. Lazy."""
    for _ in range(repeat_count):
        for step in steps:
            if step.instruction.is_container:
                yield from expand(step.children, step.instruction.magnitude)
            else:
                yield step.instruction


def count_leaves(steps: Sequence[ProgramStep], repeat_count: int = 1) -> int:
    total = 0
    for step in steps:
        if step.instruction.is_container:
            total += count_leaves(step.children, step.instruction.magnitude)
        else:
            total += 1
    return total * repeat_count


def summarize(steps: Sequence[ProgramStep], repeat_count: int = 1) -> dict:
    return {
        "top_level": [s.instruction.label() for s in steps],
        "repeat_count": repeat_count,
        "total_steps": count_leaves(steps, repeat_count),
    }


class RunHandle:
    """Observable handle for one run."""

    def __init__(self, interpreter: "Interpreter", run_id: str, program: Tuple[ProgramStep, ...], repeat_count: int):
        self._interpreter = interpreter
        self.run_id = run_id
        self.program = program
        self.repeat_count = repeat_count
        self.stop_event = threading.Event()
        self.steps_completed = 0
        self.started_at = time.monotonic()
        self.finished_at: Optional[float] = None
        # Set by the worker under the interpreter lock once the outcome is fixed.
        self._settled = False

        self._status = RUN_RUNNING
        self._error: Optional[BaseException] = None
        self._done = threading.Event()
        self._callbacks: List[Callable[["RunHandle"], None]] = []
        self._cb_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"RunHandle({self.run_id}, status={self._status}, steps_completed={self.steps_completed})"

    @property
    def status(self) -> str:
        return self._status

    @property
    def duration_s(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def done(self) -> bool:
        return self._done.is_set()

    def cancel(self) -> bool:
        return self._interpreter.cancel(self)

    def wait(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block until the run is idle again; returns the final status, or None on timeout."""
        if self._done.wait(timeout):
            return self._status
        return None

    def exception(self) -> Optional[BaseException]:
        return self._error

    def result(self, timeout: Optional[float] = None) -> str:
        """Final status; re-raises the actuator error of a failed run."""
        if not self._done.wait(timeout):
            raise TimeoutError(f"Run '{self.run_id}' still active")
        if self._error is not None:
            raise self._error
        return self._status

    def add_done_callback(self, fn: Callable[["RunHandle"], None]) -> None:
        """fn(handle) is called once the run is back to idle (immediately if it already is)."""
        with self._cb_lock:
            if not self._done.is_set():
                self._callbacks.append(fn)
                return
        self._call(fn)

    def _call(self, fn) -> None:
        try:
            fn(self)
        except Exception:
            LOG.exception("done callback for run %s raised", self.run_id)

    def _finish(self, status: str, error: Optional[BaseException]) -> None:
        self.finished_at = time.monotonic()
        with self._cb_lock:
            self._status = status
            self._error = error
            self._done.set()
            callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            self._call(fn)


class Interpreter:
    """
    The single authority over "is a program running".

    actuator:
      Where commands go (ActuatorInterface).
    speeds:
      MotionSpeeds for move/turn blocks.
    hold_fn:
      hold_fn(duration_s, stop_event) -> interrupted. Defaults to waiting on
      the stop event; tests inject a fake clock here.
    audit:
      Optional AuditLogger for run lifecycle events.
    """

    def __init__(
        self,
        actuator: ActuatorInterface,
        speeds: Optional[MotionSpeeds] = None,
        hold_fn: Optional[HoldFn] = None,
        audit: Optional[AuditLogger] = None,
        robot: str = "robot",
    ):
        self.actuator = actuator
        self.speeds = speeds or MotionSpeeds()
        self._hold = hold_fn or event_hold
        self.audit = audit
        self.robot = robot

        self._lock = threading.Lock()
        self._active: Optional[RunHandle] = None
        self._run_seq = itertools.count(1)

    @property
    def state(self) -> str:
        with self._lock:
            return STATE_IDLE if self._active is None else STATE_RUNNING

    @property
    def active_run(self) -> Optional[RunHandle]:
        with self._lock:
            return self._active

    def run(
        self,
        program: Union[ProgramTree, Sequence[ProgramStep]],
        repeat_count: int = 1,
        source: str = "ui",
        source_id: Optional[str] = None,
    ) -> RunHandle:
        """Start a run over a private snapshot of program. Raises RunAlreadyActive."""
        snapshot = program.snapshot() if isinstance(program, ProgramTree) else tuple(program)
        repeat_count = max(0, int(repeat_count))

        with self._lock:
            active = self._active
            if active is None:
                handle = RunHandle(self, f"run-{next(self._run_seq)}", snapshot, repeat_count)
                self._active = handle

        if active is not None:
            LOG.warning("[%s] run refused: %s still active", self.robot, active.run_id)
            if self.audit:
                self.audit.log_run(
                    robot=self.robot,
                    source=source,
                    run_id=active.run_id,
                    program=summarize(snapshot, repeat_count),
                    status="rejected",
                    source_id=source_id,
                    details="run already active",
                )
            raise RunAlreadyActive(active.run_id)

        if self.audit:
            self.audit.log_run(
                robot=self.robot,
                source=source,
                run_id=handle.run_id,
                program=summarize(snapshot, repeat_count),
                status="started",
                source_id=source_id,
            )

        worker = threading.Thread(
            target=self._execute,
            args=(handle, source, source_id),
            name=f"program-{handle.run_id}",
            daemon=True,
        )
        worker.start()
        return handle

    def cancel(self, handle: Optional[RunHandle] = None) -> bool:
        """
        Request cancellation of the active run (or of handle, if it is the
        active run). Returns False when there is nothing to cancel.
        """
        with self._lock:
            active = self._active
            if active is None or active._settled or (handle is not None and handle is not active):
                return False
            active.stop_event.set()
        LOG.info("[%s] cancel requested for %s", self.robot, active.run_id)
        return True

    # ---------------- worker ----------------
    def _execute(self, handle: RunHandle, source: str, source_id: Optional[str]) -> None:
        status = RUN_SUCCEEDED
        error: Optional[BaseException] = None
        details = None

        try:
            for ins in expand(prune(handle.program), handle.repeat_count):
                step = compile_step(ins, self.speeds)
                LOG.debug("[%s] %s step %d: %s", self.robot, handle.run_id, handle.steps_completed + 1, step.status_text)
                run_timed_step(self.actuator, step, handle.stop_event, self._hold)
                handle.steps_completed += 1
        except StepInterrupted as e:
            status = RUN_CANCELLED
            details = f"interrupted at '{e}'"
        except Exception as e:
            LOG.exception("[%s] %s actuator failure", self.robot, handle.run_id)
            status = RUN_FAILED
            error = e
            details = str(e)

        # A cancel accepted after the last step still ends as a cancel.
        with self._lock:
            handle._settled = True
            if status == RUN_SUCCEEDED and handle.stop_event.is_set():
                status = RUN_CANCELLED
                details = "cancelled after the last step"

        if status != RUN_SUCCEEDED:
            # Never leave the actuator moving.
            try:
                self.actuator.stop()
            except Exception as e:
                LOG.error("[%s] %s final stop failed: %s", self.robot, handle.run_id, e)
                status = RUN_FAILED
                error = error or e
                details = str(error)

        with self._lock:
            self._active = None

        LOG.info(
            "[%s] %s %s after %d steps",
            self.robot,
            handle.run_id,
            status,
            handle.steps_completed,
        )
        if self.audit:
            self.audit.log_run(
                robot=self.robot,
                source=source,
                run_id=handle.run_id,
                program=summarize(handle.program, handle.repeat_count),
                status=status,
                source_id=source_id,
                details=details,
                duration_s=time.monotonic() - handle.started_at,
                steps_completed=handle.steps_completed,
            )
        handle._finish(status, error)
