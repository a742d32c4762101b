#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

"""
tree_editor.py

Pure edit operations on a ProgramTree.

Every operation takes a tree and returns a tree. The input is never mutated:
the UI may still hold it (or be rendering it) when the next drag event lands.

Every operation is addressed by instruction id, never by a position in one
level. Drag-and-drop can target any depth, and the UI's idea of "where" can be
stale by the time the edit is applied; ids stay valid, positions do not.

IDEMPOTENT CASES (not errors)
-----------------------------
- insert of an id that already exists anywhere in the tree
- delete of an absent id
- move / set_magnitude / set_clip of an absent id
Fast dragging delivers duplicate and stale events; each of these returns the
input tree unchanged.
"""

from __future__ import annotations

import logging
from typing import Optional

from .instruction import (
    ALLOWED_KINDS,
    KIND_MOVE,
    KIND_SOUND,
    KIND_TURN,
    MOVE_DIRECTIONS,
    TURN_DIRECTIONS,
    Instruction,
    validate_clip,
)
from .program_tree import ROOT, PathEntry, ProgramTree

LOG = logging.getLogger("tree_editor")


class TreeEditError(Exception):
    """Base class for rejected edits. The tree is left unchanged."""


class ContainerNotFound(TreeEditError):
    def __init__(self, container_id):
        super().__init__(f"Container '{container_id}' is not a repeat block in the program")
        self.container_id = container_id


class CycleRejected(TreeEditError):
    def __init__(self, instruction_id, container_id):
        super().__init__(
            f"Cannot move '{instruction_id}' into '{container_id}': target is inside its own subtree"
        )
        self.instruction_id = instruction_id
        self.container_id = container_id


def _clamp_index(index: Optional[int], length: int) -> int:
    if index is None:
        return length
    try:
        i = int(index)
    except OverflowError:
        return length if index > 0 else 0
    except (TypeError, ValueError):
        return length
    return max(0, min(length, i))


def _checked(ins: Instruction) -> Instruction:
    """
    Instructions normally come from make_instruction; this catches hand-built
    ones the interpreter could not run. Raises ValueError.
    """
    if ins.kind not in ALLOWED_KINDS:
        raise ValueError(f"Unknown instruction kind '{ins.kind}'")
    if ins.kind == KIND_MOVE and ins.direction not in MOVE_DIRECTIONS:
        raise ValueError(f"Invalid direction '{ins.direction}' for kind 'move'")
    if ins.kind == KIND_TURN and ins.direction not in TURN_DIRECTIONS:
        raise ValueError(f"Invalid direction '{ins.direction}' for kind 'turn'")
    if ins.kind == KIND_SOUND:
        validate_clip(ins.clip)
        return ins
    return ins.with_magnitude(ins.magnitude)


def find_path(tree: ProgramTree, instruction_id: str) -> Optional[PathEntry]:
    """(instruction, containing sequence) lookup that every mutation is built on."""
    return tree.find_path(instruction_id)


def insert(
    tree: ProgramTree,
    container_id: Optional[str],
    instruction: Instruction,
    at_index: Optional[int] = None,
) -> ProgramTree:
    """Raises ContainerNotFound, or ValueError for a malformed instruction."""
    if instruction.id in tree:
        LOG.debug("insert %s ignored: id already present", instruction.id)
        return tree
    if not tree.is_container(container_id):
        raise ContainerNotFound(container_id)

    ins = _checked(instruction)

    nodes, children, parents = tree._mutable_parts()
    siblings = list(children.get(container_id, ()))
    siblings.insert(_clamp_index(at_index, len(siblings)), ins.id)

    nodes[ins.id] = ins
    children[container_id] = tuple(siblings)
    parents[ins.id] = container_id
    if ins.is_container:
        children[ins.id] = ()
    return ProgramTree(nodes, children, parents)


def delete(tree: ProgramTree, instruction_id: str) -> ProgramTree:
    """Remove the instruction (and everything nested in it) wherever it occurs."""
    if instruction_id not in tree:
        LOG.debug("delete %s ignored: id absent", instruction_id)
        return tree

    nodes, children, parents = tree._mutable_parts()
    container = parents.get(instruction_id, ROOT)
    children[container] = tuple(c for c in children.get(container, ()) if c != instruction_id)

    for gone in tree.subtree_ids(instruction_id):
        nodes.pop(gone, None)
        parents.pop(gone, None)
        children.pop(gone, None)
    return ProgramTree(nodes, children, parents)


def move(
    tree: ProgramTree,
    instruction_id: str,
    new_container_id: Optional[str],
    new_index: Optional[int] = None,
) -> ProgramTree:
    """
    Detach the instruction and reattach it at new_index of new_container_id.

    new_index is a position in the target sequence after the instruction has
    been detached, so reordering inside one container reads naturally.
    """
    if instruction_id not in tree:
        LOG.debug("move %s ignored: id absent", instruction_id)
        return tree
    if new_container_id is not ROOT and (
        new_container_id == instruction_id or tree.is_descendant(new_container_id, instruction_id)
    ):
        raise CycleRejected(instruction_id, new_container_id)
    if not tree.is_container(new_container_id):
        raise ContainerNotFound(new_container_id)

    nodes, children, parents = tree._mutable_parts()
    old_container = parents.get(instruction_id, ROOT)
    children[old_container] = tuple(c for c in children.get(old_container, ()) if c != instruction_id)

    siblings = list(children.get(new_container_id, ()))
    siblings.insert(_clamp_index(new_index, len(siblings)), instruction_id)
    children[new_container_id] = tuple(siblings)
    parents[instruction_id] = new_container_id
    return ProgramTree(nodes, children, parents)


def _replace(tree: ProgramTree, updated: Instruction) -> ProgramTree:
    nodes, children, parents = tree._mutable_parts()
    nodes[updated.id] = updated
    return ProgramTree(nodes, children, parents)


def set_magnitude(tree: ProgramTree, instruction_id: str, value) -> ProgramTree:
    ins = tree.get(instruction_id)
    if ins is None or ins.kind == KIND_SOUND:
        return tree
    updated = ins.with_magnitude(value)
    if updated == ins:
        return tree
    return _replace(tree, updated)


def set_clip(tree: ProgramTree, instruction_id: str, clip: str) -> ProgramTree:
    """Raises ValueError for a clip name outside SOUND_CLIPS."""
    clip = validate_clip(clip)
    ins = tree.get(instruction_id)
    if ins is None or ins.kind != KIND_SOUND or ins.clip == clip:
        return tree
    return _replace(tree, ins.with_clip(clip))


def clear(tree: ProgramTree) -> ProgramTree:
    if len(tree):
        LOG.info("clearing program (%d instructions)", len(tree))
    return ProgramTree.empty()


__all__ = [
    "ROOT",
    "TreeEditError",
    "ContainerNotFound",
    "CycleRejected",
    "find_path",
    "insert",
    "delete",
    "move",
    "set_magnitude",
    "set_clip",
    "clear",
]
