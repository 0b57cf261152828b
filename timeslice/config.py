"""
Engine configuration and YAML profile loading.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, field_validator

LOG = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent / "configs"
PROFILES_PATH = CONFIG_DIR / "profiles.yaml"

ENV_PROFILE_VAR = "TIMESLICE_PROFILE"
ENV_BUDGET_VAR = "TIMESLICE_BUDGET_MS"

DEFAULT_BUDGET_MS = 10


class EngineConfig(BaseModel):
    """Top level engine configuration."""

    profile: str = "default"
    budget_ms: float = DEFAULT_BUDGET_MS
    tick_hz: float = 60.0
    log_level: str = "INFO"

    @field_validator("budget_ms", mode="before")
    @classmethod
    def _clamp_budget(cls, value: Any) -> float:
        return max(1.0, float(value))

    @field_validator("tick_hz", mode="before")
    @classmethod
    def _clamp_tick_hz(cls, value: Any) -> float:
        return max(1.0, float(value))

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_level(cls, value: Any) -> str:
        result = str(value or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(result), int):
            raise ValueError(f"unknown log level '{value}'")
        return result

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.tick_hz


def load_profiles(path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    profiles_path = Path(path) if path is not None else PROFILES_PATH
    if not profiles_path.exists():
        LOG.debug("No profile file at %s", profiles_path)
        return {}
    with profiles_path.open("r", encoding="utf-8") as handle:
        profiles = yaml.safe_load(handle) or {}
    if not isinstance(profiles, dict):
        raise ValueError(f"{profiles_path} must contain a mapping of profiles")
    return profiles


def load_config(profile: Optional[str] = None, path: Optional[Path] = None) -> EngineConfig:
    """
    Resolve an :class:`EngineConfig` from the profile file.

    The profile name comes from ``profile``, then ``$TIMESLICE_PROFILE``, then
    ``"default"``. ``$TIMESLICE_BUDGET_MS`` overrides the profile's budget.
    """

    name = profile or os.environ.get(ENV_PROFILE_VAR) or "default"
    profiles = load_profiles(path)
    if name not in profiles:
        if name == "default":
            values: Dict[str, Any] = {}
        else:
            raise KeyError(f"Profile '{name}' not defined")
    else:
        values = dict(profiles[name] or {})

    budget_override = os.environ.get(ENV_BUDGET_VAR)
    if budget_override:
        values["budget_ms"] = budget_override

    return EngineConfig(profile=name, **values)
