import pytest

from pomodoro_api.errors import ValidationError
from pomodoro_api.validation import (
    normalize_email,
    validate_preferences,
    validate_preset,
    validate_registration,
)


def failing_fields(exc: ValidationError) -> set[str]:
    return {e.field for e in exc.errors}


class TestPreferences:
    def test_empty_update_is_valid(self):
        assert validate_preferences({}) == {}

    @pytest.mark.parametrize("field,value", [
        ("work_duration", 1), ("work_duration", 60),
        ("short_break", 30), ("long_break", 60),
        ("long_break_interval", 1), ("long_break_interval", 12),
        ("auto_start_breaks", False), ("sound_enabled", True),
    ])
    def test_in_range(self, field, value):
        assert validate_preferences({field: value}) == {field: value}

    @pytest.mark.parametrize("field,value", [
        ("work_duration", 0), ("work_duration", 61),
        ("short_break", 31), ("long_break", 0),
        ("long_break_interval", 0),
        ("work_duration", None), ("work_duration", "25"), ("work_duration", True),
        ("sound_enabled", 1),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            validate_preferences({field: value})

    def test_all_failures_reported(self):
        with pytest.raises(ValidationError) as info:
            validate_preferences({"work_duration": 0, "short_break": 99, "long_break": 10})
        assert failing_fields(info.value) == {"workDuration", "shortBreak"}

    def test_unknown_fields_dropped(self):
        assert validate_preferences({"theme": "dark", "work_duration": 30}) == {"work_duration": 30}


class TestPresets:
    def test_valid_create(self):
        values = validate_preset({"name": " Focus ", "work_duration": 120, "short_break": 60, "long_break": 120})
        assert values["name"] == "Focus"

    def test_create_requires_every_field(self):
        with pytest.raises(ValidationError) as info:
            validate_preset({"name": "", "work_duration": 45})
        assert failing_fields(info.value) == {"name", "shortBreak", "longBreak"}

    def test_blank_name_rejected_after_trim(self):
        with pytest.raises(ValidationError):
            validate_preset({"name": "   "}, partial=True)

    def test_name_length_limit(self):
        validate_preset({"name": "x" * 50}, partial=True)
        with pytest.raises(ValidationError):
            validate_preset({"name": "x" * 51}, partial=True)

    def test_preset_ranges_wider_than_preferences(self):
        values = validate_preset({"work_duration": 90, "short_break": 45}, partial=True)
        assert values == {"work_duration": 90, "short_break": 45}

    @pytest.mark.parametrize("field,value", [("work_duration", 121), ("short_break", 61), ("long_break", 0)])
    def test_preset_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            validate_preset({field: value}, partial=True)


class TestAccounts:
    def test_email_normalized(self):
        assert normalize_email("  A@X.Com ") == "a@x.com"

    def test_short_password_rejected(self):
        with pytest.raises(ValidationError) as info:
            validate_registration("12345")
        assert failing_fields(info.value) == {"password"}

    def test_six_char_password_ok(self):
        validate_registration("secret")
