#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

import threading
import time

import pytest

from robot_block_program import tree_editor as ed
from robot_block_program.actuator import DryRunActuator, VelocityCommand
from robot_block_program.instruction import make_instruction
from robot_block_program.interpreter import (
    RUN_CANCELLED,
    RUN_FAILED,
    RUN_SUCCEEDED,
    STATE_IDLE,
    STATE_RUNNING,
    Interpreter,
    RunAlreadyActive,
    count_leaves,
)
from robot_block_program.program_tree import ROOT, ProgramTree
from robot_block_program.step_helpers import MotionSpeeds

from conftest import GatedClock


STOP = ("velocity", 0.0, 0.0)


def build(*entries, container=ROOT, tree=None):
    """entries: (id, kind, kwargs) tuples; returns tree with them appended to container."""
    t = tree or ProgramTree.empty()
    for iid, kind, kw in entries:
        t = ed.insert(t, container, make_instruction(kind, instruction_id=iid, **kw))
    return t


def run_to_idle(interpreter, tree, **kw):
    handle = interpreter.run(tree, **kw)
    assert handle.wait(timeout=5.0) is not None
    return handle


def commands(timeline):
    return [e for e in timeline if e[0] != "hold"]


def test_move_then_turn_emits_in_order_with_distinct_units(interpreter, timeline):
    tree = build(
        ("m", "move", {"direction": "forward", "magnitude": 2}),
        ("t", "turn", {"direction": "left", "magnitude": 5}),
    )
    handle = run_to_idle(interpreter, tree)

    assert handle.status == RUN_SUCCEEDED
    assert timeline[0] == ("velocity", 0.5, 0.0)
    assert timeline[1] == ("hold", pytest.approx(2.0))
    assert timeline[2] == STOP
    assert timeline[3] == ("velocity", 0.0, 45.0)
    assert timeline[4] == ("hold", pytest.approx(0.5))
    assert timeline[5] == STOP
    assert len(timeline) == 6
    assert handle.steps_completed == 2


def test_backward_and_right_are_negative(interpreter, timeline):
    tree = build(
        ("m", "move", {"direction": "backward", "magnitude": 1}),
        ("t", "turn", {"direction": "right", "magnitude": 10}),
    )
    run_to_idle(interpreter, tree)
    assert commands(timeline) == [("velocity", -0.35, 0.0), STOP, ("velocity", 0.0, -45.0), STOP]


def test_speeds_come_from_profile(actuator, clock, timeline):
    interp = Interpreter(actuator, speeds=MotionSpeeds(1.0, 0.5, 30.0), hold_fn=clock.hold)
    tree = build(("m", "move", {"direction": "backward"}), ("t", "turn", {"direction": "left"}))
    run_to_idle(interp, tree)
    assert commands(timeline) == [("velocity", -0.5, 0.0), STOP, ("velocity", 0.0, 30.0), STOP]


def test_repeat_of_wait_holds_without_emitting(interpreter, clock, timeline):
    tree = build(("r", "repeat", {"magnitude": 3}))
    tree = build(("w", "wait", {"magnitude": 1}), container="r", tree=tree)
    handle = run_to_idle(interpreter, tree)

    assert handle.status == RUN_SUCCEEDED
    assert commands(timeline) == []
    assert clock.holds == [1.0, 1.0, 1.0]
    assert clock.now >= 3.0


def test_empty_repeat_completes_immediately(interpreter, clock, timeline):
    tree = build(("r", "repeat", {"magnitude": 1}))
    handle = run_to_idle(interpreter, tree)
    assert handle.status == RUN_SUCCEEDED
    assert timeline == []
    assert handle.steps_completed == 0


def test_nested_empty_repeats_do_not_spin(interpreter, timeline):
    tree = build(("r1", "repeat", {"magnitude": 100}))
    tree = build(("r2", "repeat", {"magnitude": 100}), container="r1", tree=tree)
    tree = build(("r3", "repeat", {"magnitude": 100}), container="r2", tree=tree)
    handle = run_to_idle(interpreter, tree)
    assert handle.status == RUN_SUCCEEDED
    assert timeline == []


def test_zero_step_move_does_not_suspend(interpreter, clock, timeline):
    tree = build(("m", "move", {"direction": "forward", "magnitude": 0}))
    run_to_idle(interpreter, tree)
    assert timeline == [("velocity", 0.5, 0.0), STOP]
    assert clock.holds == []


def test_each_sound_gets_its_own_settle(interpreter, clock, timeline):
    tree = build(("s1", "sound", {"clip": "meow"}), ("r", "repeat", {"magnitude": 1}))
    tree = build(("s2", "sound", {"clip": "bruh"}), container="r", tree=tree)
    run_to_idle(interpreter, tree)
    assert timeline == [("speech", "meow"), ("hold", 1.0), ("speech", "bruh"), ("hold", 1.0)]


def test_nested_repeat_multiplicities(interpreter, timeline):
    # repeat 2 [ sound, repeat 3 [ turn ] ]
    tree = build(("r", "repeat", {"magnitude": 2}))
    tree = build(("s", "sound", {}), ("r2", "repeat", {"magnitude": 3}), container="r", tree=tree)
    tree = build(("t", "turn", {"magnitude": 1}), container="r2", tree=tree)

    handle = run_to_idle(interpreter, tree)

    speech = [e for e in timeline if e[0] == "speech"]
    turns = [e for e in timeline if e == ("velocity", 0.0, 45.0)]
    assert len(speech) == 2
    assert len(turns) == 6
    assert handle.steps_completed == 8 == count_leaves(tree.snapshot())
    # sound, then three turn/stop pairs, twice over
    kinds = [e[0] if e[0] == "speech" else ("turn" if e[2] else "stop") for e in commands(timeline)]
    assert kinds == (["speech"] + ["turn", "stop"] * 3) * 2


def test_outer_repeat_count_argument(interpreter, clock):
    tree = build(("w", "wait", {"magnitude": 2}))
    run_to_idle(interpreter, tree, repeat_count=3)
    assert clock.holds == [2.0, 2.0, 2.0]


def test_cancel_mid_hold_emits_exactly_one_trailing_stop(interpreter, clock, timeline):
    tree = build(
        ("m", "move", {"direction": "forward", "magnitude": 5}),
        ("t", "turn", {"direction": "left", "magnitude": 5}),
    )
    clock.on_hold = lambda n, stop_event: stop_event.set()

    handle = run_to_idle(interpreter, tree)

    assert handle.status == RUN_CANCELLED
    assert commands(timeline) == [("velocity", 0.5, 0.0), STOP]
    assert handle.steps_completed == 0
    assert interpreter.state == STATE_IDLE


def test_cancel_during_wait_still_stops(interpreter, clock, timeline):
    tree = build(("w", "wait", {"magnitude": 10}), ("s", "sound", {}))
    clock.on_hold = lambda n, stop_event: stop_event.set()
    handle = run_to_idle(interpreter, tree)
    assert handle.status == RUN_CANCELLED
    assert commands(timeline) == [STOP]


def test_cancel_during_sound_settle_abandons_the_rest(interpreter, clock, timeline):
    tree = build(
        ("m", "move", {"direction": "forward", "magnitude": 1}),
        ("s", "sound", {}),
        ("t", "turn", {}),
    )

    def cancel_on_second_hold(n, stop_event):
        if n == 2:
            stop_event.set()

    clock.on_hold = cancel_on_second_hold
    handle = run_to_idle(interpreter, tree)

    assert handle.status == RUN_CANCELLED
    assert handle.steps_completed == 1
    assert commands(timeline) == [("velocity", 0.5, 0.0), STOP, ("speech", "meow"), STOP]


def test_real_time_cancel_wakes_the_hold():
    act = DryRunActuator()
    interp = Interpreter(act)
    tree = build(("m", "move", {"direction": "forward", "magnitude": 100}))

    handle = interp.run(tree)
    assert interp.state == STATE_RUNNING
    deadline = time.monotonic() + 2.0
    while not act.commands() and time.monotonic() < deadline:
        time.sleep(0.01)
    assert interp.cancel(handle) is True

    assert handle.wait(timeout=2.0) == RUN_CANCELLED
    assert act.commands() == [VelocityCommand(0.5, 0.0), VelocityCommand(0.0, 0.0)]
    assert interp.state == STATE_IDLE
    assert handle.duration_s < 2.0


def test_second_run_is_rejected_while_running(actuator, timeline):
    gate = GatedClock()
    interp = Interpreter(actuator, hold_fn=gate.hold)
    tree = build(("w", "wait", {"magnitude": 1}))

    first = interp.run(tree)
    assert gate.entered.wait(2.0)
    with pytest.raises(RunAlreadyActive) as exc:
        interp.run(tree)
    assert exc.value.active_run_id == first.run_id
    assert interp.active_run is first

    gate.gate.set()
    assert first.wait(2.0) == RUN_SUCCEEDED
    assert interp.state == STATE_IDLE

    second = interp.run(tree)
    assert second.wait(2.0) == RUN_SUCCEEDED
    assert second.run_id != first.run_id


def test_edits_during_run_do_not_affect_it(actuator, timeline):
    gate = GatedClock()
    interp = Interpreter(actuator, hold_fn=gate.hold)
    tree = build(("w", "wait", {"magnitude": 1}), ("s", "sound", {"clip": "bruh"}))

    handle = interp.run(tree)
    assert gate.entered.wait(2.0)
    tree = ed.delete(tree, "s")
    tree = ed.insert(tree, ROOT, make_instruction("move", instruction_id="m"))
    gate.gate.set()

    assert handle.wait(2.0) == RUN_SUCCEEDED
    assert timeline == [("speech", "bruh")]


def test_done_callback_fires_after_idle(interpreter):
    seen = []
    done = threading.Event()

    def on_done(handle):
        seen.append((handle.status, interpreter.state))
        done.set()

    handle = interpreter.run(build(("w", "wait", {})))
    handle.add_done_callback(on_done)
    assert done.wait(2.0)
    assert seen == [(RUN_SUCCEEDED, STATE_IDLE)]

    late = []
    handle.add_done_callback(lambda h: late.append(h.run_id))
    assert late == [handle.run_id]


def test_actuator_failure_fails_run_and_still_stops(clock):
    class FlakySpeaker(DryRunActuator):
        def send_speech(self, clip):
            raise IOError("speaker unplugged")

    act = FlakySpeaker()
    interp = Interpreter(act, hold_fn=clock.hold)
    tree = build(("m", "move", {"magnitude": 1}), ("s", "sound", {}), ("t", "turn", {}))

    handle = interp.run(tree)
    assert handle.wait(2.0) == RUN_FAILED
    with pytest.raises(IOError):
        handle.result()
    assert act.commands() == [VelocityCommand(0.5, 0.0), VelocityCommand(0.0, 0.0), VelocityCommand(0.0, 0.0)]
    assert interp.state == STATE_IDLE


def test_cancel_accepted_after_last_step_still_cancels(clock):
    class CancelOnStop(DryRunActuator):
        """Cancels the run from inside the last step's own stop."""

        def send_velocity(self, linear, angular):
            super().send_velocity(linear, angular)
            if linear == 0.0 and angular == 0.0 and not self.cancel_results:
                self.cancel_results.append(interp.cancel())

    act = CancelOnStop()
    act.cancel_results = []
    interp = Interpreter(act, hold_fn=clock.hold)
    handle = interp.run(build(("m", "move", {"magnitude": 1})))

    assert handle.wait(2.0) == RUN_CANCELLED
    assert act.cancel_results == [True]
    assert handle.steps_completed == 1
    assert act.commands() == [VelocityCommand(0.5, 0.0), VelocityCommand(0.0, 0.0), VelocityCommand(0.0, 0.0)]
    assert interp.state == STATE_IDLE


def test_cancel_when_idle_or_stale_handle(interpreter):
    assert interpreter.cancel() is False
    handle = run_to_idle(interpreter, build(("w", "wait", {})))
    assert handle.cancel() is False
    assert handle.result() == RUN_SUCCEEDED


def test_run_accepts_a_snapshot(interpreter, timeline):
    tree = build(("s", "sound", {"clip": "anotherone"}))
    run_to_idle(interpreter, tree.snapshot())
    assert commands(timeline) == [("speech", "anotherone")]
