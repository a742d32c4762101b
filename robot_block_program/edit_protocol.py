#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary
"""
edit_protocol.py

JSON protocol between the block-editor UI and the program runner.
All messages travel as std_msgs/String JSON.

Edit request topic:
  /<robot>/program/edit

Edit request JSON (one of):
  {"op": "insert", "container_id": "<repeat id>"|null, "kind": "move",
   "parameters": {"direction": "forward", "steps": 2}, "index": 0, "id": "<optional>"}
  {"op": "delete", "id": "<id>"}
  {"op": "move", "id": "<id>", "container_id": "<repeat id>"|null, "index": 1}
  {"op": "set_magnitude", "id": "<id>", "value": 3}
  {"op": "set_clip", "id": "<id>", "clip": "bruh"}
  {"op": "clear"}
Any request may carry "request_id"; it is echoed back.
container_id null, "" or "root" means the top-level sequence.

Edit response topic:
  /<robot>/program/edit_response
Edit response JSON:
  {"ok": true|false, "op": "...", "id": "<id or empty>", "changed": bool,
   "reason": "<optional>", "details": "<optional>"}

Run control topic:
  /<robot>/program/run
Run control JSON:
  {"action": "run" | "cancel", "client_id": "<optional>"}

Run status topic:
  /<robot>/program/status
Run status JSON:
  {"state": "idle"|"running", "run_id": "...", "status": "...",
   "steps_completed": n, "reason": "<optional>"}
"""

import json
from typing import Any, Dict, Optional, Tuple

from . import tree_editor
from .program_contract import validate_and_normalize
from .program_tree import ROOT, ProgramTree
from .tree_editor import ContainerNotFound, CycleRejected


EDIT_OPS = {"insert", "delete", "move", "set_magnitude", "set_clip", "clear"}
RUN_ACTIONS = {"run", "cancel"}

REASON_CONTAINER_NOT_FOUND = "container_not_found"
REASON_CYCLE_REJECTED = "cycle_rejected"
REASON_INVALID_REQUEST = "invalid_request"
REASON_RUN_ALREADY_ACTIVE = "run_already_active"
REASON_NOT_RUNNING = "not_running"


def safe_json(s: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a JSON object; None for anything else."""
    try:
        data = json.loads(s or "")
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _container(data: Dict[str, Any]) -> Optional[str]:
    raw = data.get("container_id")
    if raw is None:
        return ROOT
    s = str(raw).strip()
    if not s or s == "root":
        return ROOT
    return s


def _required_id(data: Dict[str, Any]) -> str:
    raw = data.get("id")
    s = str(raw).strip() if raw is not None else ""
    if not s:
        raise ValueError("missing 'id'")
    return s


def _optional_index(data: Dict[str, Any], key: str = "index") -> Optional[int]:
    raw = data.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except OverflowError:
        # JSON 1e999 / Infinity: past either end of the sequence
        return None if raw > 0 else 0
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be an integer")


def apply_edit(tree: ProgramTree, data: Dict[str, Any]) -> Tuple[ProgramTree, Dict[str, Any]]:
    """
    Apply one decoded edit request.

    Returns (new_tree, response). Rejected requests return the input tree.
    Never raises for bad input; the reason is in the response.
    """
    op = str(data.get("op") or "").strip().lower()
    resp: Dict[str, Any] = {"ok": False, "op": op, "id": "", "changed": False}
    if "request_id" in data:
        resp["request_id"] = data["request_id"]

    if op not in EDIT_OPS:
        resp["reason"] = REASON_INVALID_REQUEST
        resp["details"] = f"unknown op '{op}'"
        return tree, resp

    try:
        if op == "insert":
            ok, err, ins = validate_and_normalize(data.get("kind"), data.get("parameters"), data.get("id"))
            if not ok or ins is None:
                raise ValueError(err)
            resp["id"] = ins.id
            new_tree = tree_editor.insert(tree, _container(data), ins, _optional_index(data))

        elif op == "delete":
            resp["id"] = _required_id(data)
            new_tree = tree_editor.delete(tree, resp["id"])

        elif op == "move":
            resp["id"] = _required_id(data)
            new_tree = tree_editor.move(tree, resp["id"], _container(data), _optional_index(data))

        elif op == "set_magnitude":
            resp["id"] = _required_id(data)
            if "value" not in data:
                raise ValueError("missing 'value'")
            new_tree = tree_editor.set_magnitude(tree, resp["id"], data["value"])

        elif op == "set_clip":
            resp["id"] = _required_id(data)
            new_tree = tree_editor.set_clip(tree, resp["id"], str(data.get("clip") or ""))

        else:
            new_tree = tree_editor.clear(tree)

    except ContainerNotFound as e:
        resp["reason"] = REASON_CONTAINER_NOT_FOUND
        resp["details"] = str(e)
        return tree, resp
    except CycleRejected as e:
        resp["reason"] = REASON_CYCLE_REJECTED
        resp["details"] = str(e)
        return tree, resp
    except ValueError as e:
        resp["reason"] = REASON_INVALID_REQUEST
        resp["details"] = str(e)
        return tree, resp

    resp["ok"] = True
    resp["changed"] = new_tree is not tree
    return new_tree, resp


def tree_state_payload(tree: ProgramTree) -> Dict[str, Any]:
    return {"instructions": len(tree), "program": tree.to_list()}


def run_status_payload(state: str, handle=None, reason: Optional[str] = None, ok: bool = True) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"ok": ok, "state": state, "run_id": "", "status": "", "steps_completed": 0}
    if handle is not None:
        payload["run_id"] = handle.run_id
        payload["status"] = handle.status
        payload["steps_completed"] = handle.steps_completed
    if reason:
        payload["reason"] = reason
    return payload
