#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
instruction.py

One typed step of a block program.

KINDS
-----
  move    direction forward|backward, magnitude = steps
  turn    direction left|right,       magnitude = degrees
  sound   clip from SOUND_CLIPS,      no magnitude
  wait                                magnitude = seconds
  repeat  container,                  magnitude = iteration count

An Instruction never holds its children. The ordered child sequence of a
repeat block lives in ProgramTree's children index, keyed by the repeat's id.
That keeps Instruction a small frozen value that can be shared between tree
versions without copying.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Dict, Optional, Set, Tuple


KIND_MOVE = "move"
KIND_TURN = "turn"
KIND_SOUND = "sound"
KIND_WAIT = "wait"
KIND_REPEAT = "repeat"

ALLOWED_KINDS: Set[str] = {KIND_MOVE, KIND_TURN, KIND_SOUND, KIND_WAIT, KIND_REPEAT}

MOVE_DIRECTIONS: Tuple[str, ...] = ("forward", "backward")
TURN_DIRECTIONS: Tuple[str, ...] = ("left", "right")

SOUND_CLIPS: Tuple[str, ...] = ("meow", "bruh", "anotherone", "rockLMFAO")
DEFAULT_CLIP = "meow"

# (min, max) per kind. Sound carries no magnitude.
MAGNITUDE_BOUNDS: Dict[str, Tuple[int, int]] = {
    KIND_MOVE: (0, 100),
    KIND_TURN: (1, 360),
    KIND_WAIT: (1, 60),
    KIND_REPEAT: (1, 100),
}

DEFAULT_MAGNITUDE: Dict[str, int] = {
    KIND_MOVE: 1,
    KIND_TURN: 15,
    KIND_WAIT: 1,
    KIND_REPEAT: 2,
}

DEFAULT_DIRECTION: Dict[str, str] = {
    KIND_MOVE: "forward",
    KIND_TURN: "left",
}


@dataclass(frozen=True)
class Instruction:
    """A single program step. Children of a repeat live in the tree, not here."""
    id: str
    kind: str
    magnitude: int = 0
    direction: str = ""
    clip: str = ""

    @property
    def is_container(self) -> bool:
        return self.kind == KIND_REPEAT

    def with_magnitude(self, value: int) -> "Instruction":
        return replace(self, magnitude=clamp_magnitude(self.kind, value))

    def with_clip(self, clip: str) -> "Instruction":
        return replace(self, clip=clip)

    def label(self) -> str:
        if self.kind == KIND_SOUND:
            return f"sound {self.clip}"
        if self.direction:
            return f"{self.kind} {self.direction} {self.magnitude}"
        return f"{self.kind} {self.magnitude}"


def mint_id(kind: str) -> str:
    """Fresh opaque id. Never derived from position, never reused."""
    return f"{kind}-{uuid.uuid4().hex}"


def clamp_magnitude(kind: str, value) -> int:
    """
    Bound value to MAGNITUDE_BOUNDS[kind]. Never raises: +/-inf go to the
    matching bound, NaN and non-numbers to the kind's default.
    """
    if kind not in MAGNITUDE_BOUNDS:
        return 0
    lo, hi = MAGNITUDE_BOUNDS[kind]
    try:
        v = int(value)
    except OverflowError:
        v = hi if value > 0 else lo
    except (TypeError, ValueError):
        v = DEFAULT_MAGNITUDE[kind]
    return max(lo, min(hi, v))


def make_instruction(
    kind: str,
    direction: Optional[str] = None,
    magnitude: Optional[int] = None,
    clip: Optional[str] = None,
    instruction_id: Optional[str] = None,
) -> Instruction:
    """
    Build a normalized Instruction.

    Raises ValueError for an unknown kind, a direction that does not belong to
    the kind, or an unknown clip. Magnitude is clamped, never rejected.
    """
    k = (kind or "").strip().lower()
    if k not in ALLOWED_KINDS:
        raise ValueError(f"Unknown instruction kind '{kind}'")

    d = ""
    if k == KIND_MOVE or k == KIND_TURN:
        d = (direction or DEFAULT_DIRECTION[k]).strip().lower()
        allowed = MOVE_DIRECTIONS if k == KIND_MOVE else TURN_DIRECTIONS
        if d not in allowed:
            raise ValueError(f"Invalid direction '{direction}' for kind '{k}'")

    c = ""
    if k == KIND_SOUND:
        c = validate_clip(clip if clip else DEFAULT_CLIP)

    m = 0
    if k in MAGNITUDE_BOUNDS:
        m = clamp_magnitude(k, DEFAULT_MAGNITUDE[k] if magnitude is None else magnitude)

    return Instruction(
        id=instruction_id or mint_id(k),
        kind=k,
        magnitude=m,
        direction=d,
        clip=c,
    )


def validate_clip(clip: str) -> str:
    c = str(clip or "").strip()
    if c not in SOUND_CLIPS:
        raise ValueError(f"Unknown sound clip '{clip}'")
    return c
