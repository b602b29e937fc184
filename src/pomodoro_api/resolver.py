"""Effective timer configuration: pure logic, no I/O.

Layers in precedence order, highest first:

    custom override  -> the three durations only, session scoped
    selected preset  -> the three durations only
    stored preference -> every preference field
    defaults         -> fills whatever no higher layer supplied

A layer is either present in full or absent. The default layer is the only
one that fills gaps field by field.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .validation import PREFERENCE_DEFAULTS

DURATION_FIELDS = ("work_duration", "short_break", "long_break")


class ConfigSource(str, Enum):
    DEFAULTS = "defaults"
    PREFERENCES = "preferences"
    PRESET = "preset"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Durations:
    """Work/short/long durations in minutes. Custom overrides may be fractional."""

    work_duration: float
    short_break: float
    long_break: float

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in DURATION_FIELDS}


@dataclass(frozen=True)
class TimerConfig:
    work_duration: float = PREFERENCE_DEFAULTS["work_duration"]
    short_break: float = PREFERENCE_DEFAULTS["short_break"]
    long_break: float = PREFERENCE_DEFAULTS["long_break"]
    auto_start_breaks: bool = PREFERENCE_DEFAULTS["auto_start_breaks"]
    auto_start_pomodoros: bool = PREFERENCE_DEFAULTS["auto_start_pomodoros"]
    long_break_interval: int = PREFERENCE_DEFAULTS["long_break_interval"]
    sound_enabled: bool = PREFERENCE_DEFAULTS["sound_enabled"]
    source: ConfigSource = ConfigSource.DEFAULTS

    @property
    def durations(self) -> Durations:
        return Durations(self.work_duration, self.short_break, self.long_break)


DEFAULT_CONFIG = TimerConfig()

Layer = Union[Mapping[str, Any], Any, None]


def _layer_fields(layer: Layer) -> dict[str, Any]:
    """Read a layer given as a pydantic model, a dataclass or a mapping."""
    if layer is None:
        return {}
    if hasattr(layer, "model_dump"):
        data = layer.model_dump()
    elif isinstance(layer, Durations):
        data = layer.as_dict()
    elif isinstance(layer, Mapping):
        data = dict(layer)
    else:
        data = {name: getattr(layer, name) for name in PREFERENCE_DEFAULTS if hasattr(layer, name)}
    return {k: v for k, v in data.items() if k in PREFERENCE_DEFAULTS and v is not None}


def resolve_config(
    preference: Layer = None,
    preset: Layer = None,
    override: Optional[Durations] = None,
    is_authenticated: bool = True,
) -> TimerConfig:
    """Compute the configuration that drives the timer. Never raises for absent input."""
    config = DEFAULT_CONFIG
    known = {f.name for f in fields(TimerConfig)}

    if is_authenticated and preference is not None:
        stored = _layer_fields(preference)
        config = replace(config, source=ConfigSource.PREFERENCES,
                         **{k: v for k, v in stored.items() if k in known})

    if override is not None:
        config = replace(config, source=ConfigSource.CUSTOM, **override.as_dict())
    elif is_authenticated and preset is not None:
        durations = {k: v for k, v in _layer_fields(preset).items() if k in DURATION_FIELDS}
        if len(durations) == len(DURATION_FIELDS):
            config = replace(config, source=ConfigSource.PRESET, **durations)

    return config


class DurationSelection:
    """Which durations apply: a selected preset or a custom override.

    Both write to the same slot, so activating one deactivates the other.
    Clearing one channel leaves the other alone.
    """

    def __init__(self):
        self._preset: Layer = None
        self._override: Optional[Durations] = None
        self._active: Optional[ConfigSource] = None

    @property
    def preset(self) -> Layer:
        return self._preset if self._active == ConfigSource.PRESET else None

    @property
    def override(self) -> Optional[Durations]:
        return self._override if self._active == ConfigSource.CUSTOM else None

    @property
    def active(self) -> Optional[ConfigSource]:
        return self._active

    def select_preset(self, preset: Layer) -> None:
        if preset is None:
            self.clear_preset()
            return
        self._preset = preset
        self._active = ConfigSource.PRESET

    def clear_preset(self) -> None:
        self._preset = None
        if self._active == ConfigSource.PRESET:
            self._active = None

    def set_override(self, durations: Optional[Durations]) -> None:
        if durations is None:
            self.clear_override()
            return
        self._override = durations
        self._active = ConfigSource.CUSTOM

    def clear_override(self) -> None:
        self._override = None
        if self._active == ConfigSource.CUSTOM:
            self._active = None

    def resolve(self, preference: Layer = None, is_authenticated: bool = True) -> TimerConfig:
        return resolve_config(preference, self.preset, self.override, is_authenticated)
