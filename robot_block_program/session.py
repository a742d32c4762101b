#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
session.py

One editing session: the live ProgramTree plus the Interpreter that runs it.

The session is the only writer of the live tree. Edits replace self.tree with
the editor's new value; a run gets its own snapshot, so edits that arrive while
a program is running only affect the next run.

program_runner_node.py feeds raw JSON from ROS topics into handle_edit_json /
handle_run_json and publishes whatever they return. Nothing here imports ROS.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from .audit_logger import AuditLogger
from .edit_protocol import (
    REASON_INVALID_REQUEST,
    REASON_NOT_RUNNING,
    REASON_RUN_ALREADY_ACTIVE,
    RUN_ACTIONS,
    apply_edit,
    run_status_payload,
    safe_json,
    tree_state_payload,
)
from .interpreter import STATE_IDLE, Interpreter, RunAlreadyActive, RunHandle
from .program_tree import ProgramTree

LOG = logging.getLogger("session")


class ProgramSession:
    def __init__(
        self,
        interpreter: Interpreter,
        audit: Optional[AuditLogger] = None,
        robot: str = "robot",
    ):
        self.interpreter = interpreter
        self.audit = audit
        self.robot = robot
        self.tree = ProgramTree.empty()
        self._lock = threading.Lock()

    # ---------------- edits ----------------
    def apply(self, data: Dict[str, Any], source: str = "ui") -> Dict[str, Any]:
        with self._lock:
            self.tree, resp = apply_edit(self.tree, data)

        if self.audit:
            self.audit.log_edit(
                robot=self.robot,
                source=source,
                op=resp["op"] or "unknown",
                request=data,
                status="applied" if resp["ok"] else "rejected",
                source_id=str(data.get("client_id") or "") or None,
                details=resp.get("details"),
            )
        elif not resp["ok"]:
            LOG.warning("[%s] edit %s rejected: %s", self.robot, resp["op"], resp.get("details"))
        return resp

    def handle_edit_json(self, raw: Optional[str], source: str = "ui") -> Dict[str, Any]:
        data = safe_json(raw)
        if data is None:
            return {
                "ok": False,
                "op": "",
                "id": "",
                "changed": False,
                "reason": REASON_INVALID_REQUEST,
                "details": "request is not a JSON object",
            }
        return self.apply(data, source=source)

    def state_payload(self) -> Dict[str, Any]:
        with self._lock:
            tree = self.tree
        return tree_state_payload(tree)

    # ---------------- runs ----------------
    def start_run(
        self,
        source: str = "ui",
        source_id: Optional[str] = None,
        on_done: Optional[Callable[[RunHandle], None]] = None,
    ) -> Dict[str, Any]:
        with self._lock:
            tree = self.tree
        try:
            handle = self.interpreter.run(tree, source=source, source_id=source_id)
        except RunAlreadyActive:
            return run_status_payload(
                self.interpreter.state,
                self.interpreter.active_run,
                reason=REASON_RUN_ALREADY_ACTIVE,
                ok=False,
            )
        if on_done is not None:
            handle.add_done_callback(on_done)
        return run_status_payload(self.interpreter.state, handle)

    def cancel_run(self) -> Dict[str, Any]:
        active = self.interpreter.active_run
        if active is None or not self.interpreter.cancel(active):
            return run_status_payload(STATE_IDLE, reason=REASON_NOT_RUNNING, ok=False)
        return run_status_payload(self.interpreter.state, active)

    def handle_run_json(
        self,
        raw: Optional[str],
        source: str = "ui",
        on_done: Optional[Callable[[RunHandle], None]] = None,
    ) -> Dict[str, Any]:
        data = safe_json(raw)
        action = str((data or {}).get("action") or "").strip().lower()
        if action not in RUN_ACTIONS:
            return run_status_payload(self.interpreter.state, reason=REASON_INVALID_REQUEST, ok=False)

        if action == "run":
            client_id = str(data.get("client_id") or "").strip() or None
            return self.start_run(source=source, source_id=client_id, on_done=on_done)
        return self.cancel_run()
