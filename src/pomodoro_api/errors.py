"""Domain errors raised by the services and mapped to HTTP responses in main.py."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from .config import MAX_PRESETS


@dataclass
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


class PomodoroError(Exception):
    status_code = 400
    default_message = "Bad request"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationError(PomodoroError):
    default_message = "Validation failed"

    def __init__(self, errors: list[FieldError], message: str | None = None):
        super().__init__(message)
        self.errors = errors

    def to_dict(self) -> dict:
        return {"message": self.message, "errors": [e.to_dict() for e in self.errors]}


class AlreadyExists(PomodoroError):
    default_message = "User already exists"


class DuplicateName(PomodoroError):
    default_message = "Preset name already exists"


class QuotaExceeded(PomodoroError):
    default_message = f"Maximum of {MAX_PRESETS} custom presets allowed"


class NotFound(PomodoroError):
    status_code = 404
    default_message = "Not found"


class InvalidCredentials(PomodoroError):
    default_message = "Invalid credentials"

    def __init__(self):
        # Same message for unknown email and wrong password.
        super().__init__(self.default_message)


class Unauthorized(PomodoroError):
    status_code = 401
    default_message = "No token, authorization denied"


class InternalError(PomodoroError):
    status_code = 500
    default_message = "Server error"

    def __init__(self):
        super().__init__(self.default_message)
