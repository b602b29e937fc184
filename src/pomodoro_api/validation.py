"""Field ranges and request validation for preferences and presets.

Every supplied field is checked and all failures are collected before
raising, so one response lists everything the caller has to fix. Nothing
here touches the record store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from pydantic.alias_generators import to_camel

from .errors import FieldError, ValidationError

MIN_PASSWORD_LENGTH = 6

PREFERENCE_DEFAULTS: dict[str, Any] = {
    "work_duration": 25,
    "short_break": 5,
    "long_break": 15,
    "auto_start_breaks": True,
    "auto_start_pomodoros": False,
    "long_break_interval": 4,
    "sound_enabled": True,
}


@dataclass(frozen=True)
class IntRange:
    minimum: int
    maximum: Optional[int] = None

    def check(self, value: Any) -> Optional[str]:
        if isinstance(value, bool) or not isinstance(value, int):
            return "must be an integer"
        if value < self.minimum:
            return f"must be at least {self.minimum}"
        if self.maximum is not None and value > self.maximum:
            return f"must be at most {self.maximum}"
        return None


@dataclass(frozen=True)
class Boolean:
    def check(self, value: Any) -> Optional[str]:
        if not isinstance(value, bool):
            return "must be a boolean"
        return None


@dataclass(frozen=True)
class Text:
    min_length: int
    max_length: int

    def check(self, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return "must be a string"
        if not self.min_length <= len(value) <= self.max_length:
            return f"must be between {self.min_length} and {self.max_length} characters"
        return None


PREFERENCE_RULES = {
    "work_duration": IntRange(1, 60),
    "short_break": IntRange(1, 30),
    "long_break": IntRange(1, 60),
    "auto_start_breaks": Boolean(),
    "auto_start_pomodoros": Boolean(),
    "long_break_interval": IntRange(1),
    "sound_enabled": Boolean(),
}

PRESET_RULES = {
    "name": Text(1, 50),
    "work_duration": IntRange(1, 120),
    "short_break": IntRange(1, 60),
    "long_break": IntRange(1, 120),
}


def validate_fields(fields: Mapping[str, Any], rules: Mapping[str, Any],
                    required: bool = False) -> dict[str, Any]:
    """Check ``fields`` against ``rules`` and return only the known fields.

    With ``required`` every rule must be present (create); otherwise any
    subset is accepted (partial update).
    """
    errors: list[FieldError] = []
    cleaned: dict[str, Any] = {}
    for name, rule in rules.items():
        if name not in fields:
            if required:
                errors.append(FieldError(to_camel(name), "is required"))
            continue
        problem = rule.check(fields[name])
        if problem:
            errors.append(FieldError(to_camel(name), problem))
        else:
            cleaned[name] = fields[name]
    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_preferences(fields: Mapping[str, Any]) -> dict[str, Any]:
    return validate_fields(fields, PREFERENCE_RULES)


def normalize_preset_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Trim the preset name before it is validated or stored."""
    normalized = dict(fields)
    if isinstance(normalized.get("name"), str):
        normalized["name"] = normalized["name"].strip()
    return normalized


def validate_preset(fields: Mapping[str, Any], partial: bool = False) -> dict[str, Any]:
    return validate_fields(normalize_preset_fields(fields), PRESET_RULES, required=not partial)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_registration(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError([FieldError("password", f"must be at least {MIN_PASSWORD_LENGTH} characters")])
