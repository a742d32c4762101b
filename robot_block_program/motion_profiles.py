#!/usr/bin/env python3
# SPDX-License-Identifier: LicenseRef-Proprietary
"""
motion_profiles.py

Loads/resolves the per-robot motion profile used by program_runner_node.py:
    * forward / backward speed for move blocks
    * turn rate for turn blocks
    * cmd_vel and speak topic templates

Block timing (seconds per step, 100 ms per turn step, 1 s sound settle) is NOT
part of the profile; see step_helpers.py.
"""

import pathlib
from typing import Any, Dict, Optional

import yaml

from .step_helpers import MotionSpeeds

try:
    from ament_index_python.packages import get_package_share_directory
    AMENT_AVAILABLE = True
except ImportError:
    AMENT_AVAILABLE = False


PACKAGE_NAME = "robot_block_program"
FALLBACK_PROFILE = "default"

_DEFAULT_SPEEDS = MotionSpeeds()


def _default_profiles_path() -> pathlib.Path:
    """
    Locate config/robot_profiles.yaml in both of these scenarios:

    1) Installed ROS2 usage (preferred):
       <install>/share/robot_block_program/config/robot_profiles.yaml

    2) Running directly from the source tree:
       <repo>/config/robot_profiles.yaml
    """
    if AMENT_AVAILABLE:
        try:
            share_dir = pathlib.Path(get_package_share_directory(PACKAGE_NAME))
            p = share_dir / "config" / "robot_profiles.yaml"
            if p.exists():
                return p
        except (LookupError, ValueError):
            pass

    # <repo>/robot_block_program/motion_profiles.py -> <repo>/config/robot_profiles.yaml
    here = pathlib.Path(__file__).resolve()
    return here.parents[1] / "config" / "robot_profiles.yaml"


def load_profile_registry(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load robot_profiles.yaml into a dict with keys like:
      - motion_profile (per-robot selection knob)
      - defaults
      - profiles
      - robots (optional central mapping table)
    """
    p = pathlib.Path(path) if path else _default_profiles_path()
    if not p.exists():
        raise FileNotFoundError(f"robot_profiles.yaml not found at: {str(p)}")

    data = yaml.safe_load(p.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError("robot_profiles.yaml must be a YAML mapping at top-level")
    return data


def _as_dict(value) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _positive_float(value, default: float) -> float:
    try:
        f = abs(float(value))
    except (TypeError, ValueError):
        return default
    return f if f > 0.0 else default


def resolve_robot_profile(registry: Dict[str, Any], robot_name: str) -> Dict[str, Any]:
    """
    Resolve which profile to use, and return a normalized dict describing it.

    Priority order:
      0) registry['motion_profile']        per-robot knob
      1) registry['robots'][robot_name]    optional central mapping table
      2) registry['defaults']['profile']   fallback
      3) hard fallback to 'default'
    """
    defaults = _as_dict(registry.get("defaults"))
    profiles = _as_dict(registry.get("profiles"))
    robots = _as_dict(registry.get("robots"))

    local_profile = registry.get("motion_profile", None)
    if isinstance(local_profile, str) and local_profile.strip():
        profile_name = local_profile.strip()
    else:
        profile_name = robots.get(robot_name, defaults.get("profile", None))

    if not profile_name:
        profile_name = FALLBACK_PROFILE

    profile = profiles.get(profile_name, None)
    if not isinstance(profile, dict):
        raise ValueError(f"Profile '{profile_name}' not found in registry")

    return {
        "profile_name": profile_name,
        "forward_speed_mps": _positive_float(profile.get("forward_speed_mps"), _DEFAULT_SPEEDS.forward_mps),
        "backward_speed_mps": _positive_float(profile.get("backward_speed_mps"), _DEFAULT_SPEEDS.backward_mps),
        "turn_rate": _positive_float(profile.get("turn_rate"), _DEFAULT_SPEEDS.turn_rate),
        "cmd_vel_topic_template": str(profile.get("cmd_vel_topic_template", "/{robot}/cmd_vel")).strip(),
        "speak_topic_template": str(profile.get("speak_topic_template", "/{robot}/speak")).strip(),
    }


def speeds_from_profile(profile: Dict[str, Any]) -> MotionSpeeds:
    return MotionSpeeds(
        forward_mps=float(profile.get("forward_speed_mps", _DEFAULT_SPEEDS.forward_mps)),
        backward_mps=float(profile.get("backward_speed_mps", _DEFAULT_SPEEDS.backward_mps)),
        turn_rate=float(profile.get("turn_rate", _DEFAULT_SPEEDS.turn_rate)),
    )


def topic_for(template: str, robot: str) -> str:
    return template.format(robot=robot)
