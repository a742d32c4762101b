#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
program_tree.py

The Program Tree: an ordered, nested collection of Instructions.

LAYOUT
------
The tree is an arena keyed by instruction id:

  _nodes     id -> Instruction
  _children  container key -> tuple of child ids   (ROOT or a repeat's id)
  _parents   id -> container key

Lookup by id, ancestor walks and cycle checks are O(depth); nothing has to
recurse through nested lists to find an instruction.

A ProgramTree is a value. The editor never mutates one; it builds a new tree
from copies of the three dicts. Instructions and child tuples are immutable,
so the copies share them safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .instruction import Instruction


# Container key for the root sequence.
ROOT = None


@dataclass(frozen=True)
class PathEntry:
    """Where an instruction lives: its container, that container's children, and its index."""
    instruction: Instruction
    container_id: Optional[str]
    siblings: Tuple[Instruction, ...]
    index: int


@dataclass(frozen=True)
class ProgramStep:
    """Nested, immutable view of one instruction and its children (repeat only)."""
    instruction: Instruction
    children: Tuple["ProgramStep", ...] = ()


class ProgramTree:
    __slots__ = ("_nodes", "_children", "_parents")

    def __init__(
        self,
        nodes: Optional[Mapping[str, Instruction]] = None,
        children: Optional[Mapping[Optional[str], Tuple[str, ...]]] = None,
        parents: Optional[Mapping[str, Optional[str]]] = None,
    ):
        self._nodes: Dict[str, Instruction] = dict(nodes or {})
        self._children: Dict[Optional[str], Tuple[str, ...]] = dict(children or {})
        self._parents: Dict[str, Optional[str]] = dict(parents or {})
        self._children.setdefault(ROOT, ())

    @classmethod
    def empty(cls) -> "ProgramTree":
        return cls()

    # ---------------- queries ----------------
    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, instruction_id) -> bool:
        return instruction_id in self._nodes

    def __iter__(self) -> Iterator[Instruction]:
        for _depth, ins in self.walk():
            yield ins

    def __eq__(self, other) -> bool:
        if not isinstance(other, ProgramTree):
            return NotImplemented
        return self._nodes == other._nodes and self._live_children() == other._live_children()

    __hash__ = None

    def __repr__(self) -> str:
        return f"ProgramTree({len(self._nodes)} instructions, root={list(self.root_ids)})"

    def _live_children(self) -> Dict[Optional[str], Tuple[str, ...]]:
        return {k: v for k, v in self._children.items() if v}

    @property
    def root_ids(self) -> Tuple[str, ...]:
        return self._children.get(ROOT, ())

    def get(self, instruction_id: str) -> Optional[Instruction]:
        return self._nodes.get(instruction_id)

    def children_ids(self, container_id: Optional[str]) -> Tuple[str, ...]:
        return self._children.get(container_id, ())

    def children_of(self, container_id: Optional[str]) -> Tuple[Instruction, ...]:
        return tuple(self._nodes[cid] for cid in self.children_ids(container_id))

    def parent_of(self, instruction_id: str) -> Optional[str]:
        return self._parents.get(instruction_id, ROOT)

    def is_container(self, container_id: Optional[str]) -> bool:
        """True for ROOT or the id of a repeat instruction currently in the tree."""
        if container_id is ROOT:
            return True
        ins = self._nodes.get(container_id)
        return ins is not None and ins.is_container

    def ancestors(self, instruction_id: str) -> List[str]:
        """Container ids from the direct parent up to (not including) ROOT."""
        out: List[str] = []
        cur = self._parents.get(instruction_id, ROOT)
        while cur is not ROOT:
            out.append(cur)
            cur = self._parents.get(cur, ROOT)
        return out

    def is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        if candidate_id not in self._nodes:
            return False
        return ancestor_id in self.ancestors(candidate_id)

    def find_path(self, instruction_id: str) -> Optional[PathEntry]:
        ins = self._nodes.get(instruction_id)
        if ins is None:
            return None
        container = self._parents.get(instruction_id, ROOT)
        sibling_ids = self._children.get(container, ())
        return PathEntry(
            instruction=ins,
            container_id=container,
            siblings=tuple(self._nodes[s] for s in sibling_ids),
            index=sibling_ids.index(instruction_id),
        )

    def subtree_ids(self, instruction_id: str) -> List[str]:
        """The instruction and all of its descendants, depth-first."""
        out: List[str] = []
        stack = [instruction_id]
        while stack:
            cur = stack.pop()
            out.append(cur)
            stack.extend(reversed(self._children.get(cur, ())))
        return out

    def walk(self) -> Iterator[Tuple[int, Instruction]]:
        """Depth-first, left-to-right (depth, instruction) pairs."""
        stack: List[Tuple[int, str]] = [(0, cid) for cid in reversed(self.root_ids)]
        while stack:
            depth, cur = stack.pop()
            yield depth, self._nodes[cur]
            stack.extend((depth + 1, cid) for cid in reversed(self._children.get(cur, ())))

    def snapshot(self) -> Tuple[ProgramStep, ...]:
        """Immutable nested copy of the whole program."""
        def build(container: Optional[str]) -> Tuple[ProgramStep, ...]:
            return tuple(
                ProgramStep(instruction=self._nodes[cid], children=build(cid))
                for cid in self._children.get(container, ())
            )
        return build(ROOT)

    def to_list(self) -> List[Dict[str, Any]]:
        """Nested dicts for state publishing and logs."""
        def encode(container: Optional[str]) -> List[Dict[str, Any]]:
            out = []
            for cid in self._children.get(container, ()):
                ins = self._nodes[cid]
                d: Dict[str, Any] = {"id": ins.id, "kind": ins.kind, "magnitude": ins.magnitude}
                if ins.direction:
                    d["direction"] = ins.direction
                if ins.clip:
                    d["clip"] = ins.clip
                if ins.is_container:
                    d["children"] = encode(cid)
                out.append(d)
            return out
        return encode(ROOT)

    # ---------------- copy-on-write ----------------
    def _mutable_parts(self):
        return dict(self._nodes), dict(self._children), dict(self._parents)
