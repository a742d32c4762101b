#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
program_contract.py

WHY THIS FILE EXISTS
--------------------
Blocks arrive from the UI as a kind name plus a small JSON parameter object.
The UI is an external input, so we need ONE place that decides:
  - which block kinds exist
  - which JSON keys each kind reads
  - what defaults apply when keys are missing
  - what is clamped vs rejected

Examples:
  kind="move",   parameters_json='{"direction":"backward","steps":3}'
  kind="turn",   parameters_json='{"direction":"right","degrees":90}'
  kind="sound",  parameters_json='{"clip":"bruh"}'
  kind="wait",   parameters_json='{"seconds":2}'
  kind="repeat", parameters_json='{"times":4}'

Every kind also accepts the generic key "magnitude" (and "steps", which is what
the block palette sends for all numeric blocks).
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple

from .instruction import (
    KIND_MOVE,
    KIND_REPEAT,
    KIND_TURN,
    KIND_WAIT,
    Instruction,
    make_instruction,
)


# Kind-specific aliases for the magnitude, checked before the generic keys.
MAGNITUDE_KEYS: Dict[str, Tuple[str, ...]] = {
    KIND_MOVE: ("steps", "magnitude"),
    KIND_TURN: ("degrees", "steps", "magnitude"),
    KIND_WAIT: ("seconds", "steps", "magnitude"),
    KIND_REPEAT: ("times", "steps", "magnitude"),
}


def _safe_json_dict(s: Optional[str]) -> Dict[str, Any]:
    """
    Parse JSON and guarantee we return a dict (or empty dict on error).

    Never raises: UI inputs are external inputs.
    """
    try:
        data = json.loads(s or "{}")
    except (TypeError, ValueError):
        return {}
    if isinstance(data, dict):
        return data
    return {}


def _pick_magnitude(kind: str, params: Dict[str, Any]) -> Optional[Any]:
    for key in MAGNITUDE_KEYS.get(kind, ()):
        if key in params:
            return params[key]
    return None


def validate_and_normalize(
    kind: str,
    parameters: Optional[Any] = None,
    instruction_id: Optional[str] = None,
) -> Tuple[bool, str, Optional[Instruction]]:
    """
    Validate a block request and normalize it into an Instruction.

    parameters may be a JSON string or an already-decoded dict.

    Returns:
      (ok, error_text, instruction_or_none)
    """
    if isinstance(parameters, dict):
        params = parameters
    else:
        params = _safe_json_dict(parameters)

    kid = str(kind or "").strip().lower()
    direction = params.get("direction")
    clip = params.get("clip", params.get("sound"))

    try:
        instruction = make_instruction(
            kid,
            direction=str(direction) if direction is not None else None,
            magnitude=_pick_magnitude(kid, params),
            clip=str(clip) if clip is not None else None,
            instruction_id=str(instruction_id).strip() if instruction_id else None,
        )
    except ValueError as e:
        return False, str(e), None

    return True, "", instruction
