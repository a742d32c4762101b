#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
audit_logger.py

Structured audit logging for block-program runs and edits.

This module records:
- Which robot ran a program, and who asked (source, source_id)
- What was run (run_id and a compact program summary)
- When it started and how it ended (started/succeeded/cancelled/failed)
- How far it got (steps_completed) and how long it took

Usage:
  from robot_block_program.audit_logger import AuditLogger

  audit = AuditLogger(node, "program_runner", "/tmp/robot_r1_audit.jsonl")
  audit.log_run(
    robot="r1",
    source="ui",
    run_id="run-3",
    program={"instructions": 4, "top_level": ["move forward 2", "sound meow"]},
    status="started",
  )

The logger writes to the ROS logger (or stdlib logging without a node) and to
an optional JSON-lines file sink.
"""

import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

try:
    from rclpy.node import Node
except ImportError:
    Node = None


@dataclass
class AuditEvent:
    """Structured audit event for serialization and traceability."""
    timestamp: float  # Unix timestamp
    robot: str  # Target robot name
    source: str  # Request source (ui, api, test, ...)
    source_id: Optional[str]  # Client id or user
    event: str  # run | edit
    subject: str  # run_id for runs, edit op for edits
    parameters: Dict[str, Any]  # Program summary or edit request
    status: str  # started, succeeded, cancelled, failed, rejected, applied
    details: Optional[str] = None  # Error message or context
    duration_s: Optional[float] = None  # Execution time in seconds
    steps_completed: Optional[int] = None  # Leaf steps finished before the run ended


class AuditLogger:
    """
    Audit trail for one component.

    Logs to the ROS logger when a node is given, stdlib logging otherwise, and
    optionally appends JSON lines to a file.
    """

    def __init__(
        self,
        node: Optional[Node] = None,
        component_name: str = "component",
        log_file_path: Optional[str] = None,
    ):
        """
        Args:
            node: ROS node (used for ros logs; optional if you just want file logging)
            component_name: Name of component (program_runner, interpreter, ...)
            log_file_path: Path to append JSON audit events; if None, no file logging
        """
        self.node = node
        self.component_name = component_name
        self.log_file_path = log_file_path
        self.logger = logging.getLogger(f"audit.{component_name}")

        self.log_file = None
        if log_file_path:
            try:
                self.log_file = open(log_file_path, "a")
            except OSError as e:
                self._warn(f"Could not open audit log file {log_file_path}: {e}")

    def _info(self, msg: str) -> None:
        if self.node:
            self.node.get_logger().info(msg)
        else:
            self.logger.info(msg)

    def _warn(self, msg: str) -> None:
        if self.node:
            self.node.get_logger().warning(msg)
        else:
            self.logger.warning(msg)

    def _write(self, event: AuditEvent) -> None:
        msg = (
            f"[AUDIT] {self.component_name} | robot={event.robot} source={event.source} "
            f"{event.event}={event.subject} status={event.status}"
        )
        if event.source_id:
            msg += f" client={event.source_id}"
        if event.steps_completed is not None:
            msg += f" steps={event.steps_completed}"
        if event.duration_s is not None:
            msg += f" duration_s={event.duration_s:.2f}"
        if event.details:
            msg += f" | {event.details}"
        self._info(msg)

        if self.log_file:
            try:
                self.log_file.write(json.dumps(asdict(event), separators=(",", ":")) + "\n")
                self.log_file.flush()
            except (OSError, ValueError) as e:
                self._warn(f"Failed to write audit log: {e}")

    def log_run(
        self,
        robot: str,
        source: str,
        run_id: str,
        program: Optional[Dict[str, Any]] = None,
        status: str = "started",
        source_id: Optional[str] = None,
        details: Optional[str] = None,
        duration_s: Optional[float] = None,
        steps_completed: Optional[int] = None,
    ) -> AuditEvent:
        """Log a run lifecycle event (started, succeeded, cancelled, failed, rejected)."""
        event = AuditEvent(
            timestamp=time.time(),
            robot=robot,
            source=source,
            source_id=source_id,
            event="run",
            subject=run_id,
            parameters=program or {},
            status=status,
            details=details,
            duration_s=duration_s,
            steps_completed=steps_completed,
        )
        self._write(event)
        return event

    def log_edit(
        self,
        robot: str,
        source: str,
        op: str,
        request: Optional[Dict[str, Any]] = None,
        status: str = "applied",
        source_id: Optional[str] = None,
        details: Optional[str] = None,
    ) -> AuditEvent:
        """Log a tree edit (applied or rejected)."""
        event = AuditEvent(
            timestamp=time.time(),
            robot=robot,
            source=source,
            source_id=source_id,
            event="edit",
            subject=op,
            parameters=request or {},
            status=status,
            details=details,
        )
        self._write(event)
        return event

    def close(self):
        """Close file handle if open."""
        if self.log_file:
            try:
                self.log_file.close()
            except OSError:
                pass
            self.log_file = None
