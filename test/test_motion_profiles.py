#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary

import pathlib

import pytest
import yaml

from robot_block_program.motion_profiles import (
    load_profile_registry,
    resolve_robot_profile,
    speeds_from_profile,
    topic_for,
)
from robot_block_program.step_helpers import MotionSpeeds

REPO_PROFILES = pathlib.Path(__file__).resolve().parents[1] / "config" / "robot_profiles.yaml"


def write_registry(tmp_path, data):
    p = tmp_path / "robot_profiles.yaml"
    p.write_text(yaml.safe_dump(data))
    return str(p)


def test_shipped_registry_resolves_to_original_speeds():
    reg = load_profile_registry(str(REPO_PROFILES))
    prof = resolve_robot_profile(reg, "anybot")
    assert prof["profile_name"] == "default"
    assert speeds_from_profile(prof) == MotionSpeeds(0.5, 0.35, 45.0)
    assert topic_for(prof["cmd_vel_topic_template"], "anybot") == "/anybot/cmd_vel"
    assert topic_for(prof["speak_topic_template"], "anybot") == "/anybot/speak"


def test_selection_priority(tmp_path):
    data = {
        "defaults": {"profile": "a"},
        "profiles": {"a": {"forward_speed_mps": 1.0}, "b": {"forward_speed_mps": 2.0}, "c": {}},
        "robots": {"bob": "b"},
    }
    reg = load_profile_registry(write_registry(tmp_path, data))
    assert resolve_robot_profile(reg, "alice")["profile_name"] == "a"
    assert resolve_robot_profile(reg, "bob")["profile_name"] == "b"

    reg["motion_profile"] = "c"
    prof = resolve_robot_profile(reg, "bob")
    assert prof["profile_name"] == "c"
    assert prof["forward_speed_mps"] == 0.5


def test_bad_speed_values_fall_back(tmp_path):
    data = {"profiles": {"default": {"forward_speed_mps": "fast", "backward_speed_mps": -0.2, "turn_rate": 0}}}
    prof = resolve_robot_profile(load_profile_registry(write_registry(tmp_path, data)), "x")
    assert prof["forward_speed_mps"] == 0.5
    assert prof["backward_speed_mps"] == 0.2
    assert prof["turn_rate"] == 45.0


def test_missing_profile_and_file(tmp_path):
    with pytest.raises(ValueError):
        resolve_robot_profile({"profiles": {}}, "x")
    with pytest.raises(FileNotFoundError):
        load_profile_registry(str(tmp_path / "nope.yaml"))
    p = tmp_path / "list.yaml"
    p.write_text("- 1\n- 2\n")
    with pytest.raises(ValueError):
        load_profile_registry(str(p))
