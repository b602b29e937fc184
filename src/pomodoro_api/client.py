"""HTTP client for the Pomodoro API, used by the terminal commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import requests
from pydantic.alias_generators import to_camel

from . import config
from .models import CustomPreset, Preference, User

logger = logging.getLogger("pomodoro_api.client")

DEFAULT_TIMEOUT = 5


class ApiError(Exception):
    """Non-2xx response, or the server could not be reached (status 0)."""

    def __init__(self, status: int, message: str, errors: Optional[list] = None):
        self.status = status
        self.message = message
        self.errors = errors or []
        super().__init__(self.describe())

    def describe(self) -> str:
        details = "; ".join(f"{e.get('field')}: {e.get('message')}" for e in self.errors)
        return f"{self.message} ({details})" if details else self.message


def _camel(fields: dict) -> dict:
    return {to_camel(k): v for k, v in fields.items() if v is not None}


def load_token(path: Path = config.TOKEN_PATH) -> Optional[str]:
    try:
        token = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    return token or None


def save_token(token: str, path: Path = config.TOKEN_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(token, encoding="utf-8")
    path.chmod(0o600)


def clear_token(path: Path = config.TOKEN_PATH) -> None:
    path.unlink(missing_ok=True)


class ApiClient:
    def __init__(self, base_url: str = config.API_URL, token: Optional[str] = None,
                 timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def _request(self, method: str, path: str, json: Any = None) -> dict:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = self.session.request(
                method, f"{self.base_url}{path}", json=json, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise ApiError(0, f"Cannot reach {self.base_url}: {e}")
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.ok:
            raise ApiError(response.status_code, body.get("message", response.reason or "Request failed"),
                           body.get("errors"))
        return body

    # ---- Auth ----

    def register(self, email: str, password: str, name: Optional[str] = None) -> tuple[User, str]:
        body = self._request("POST", "/auth/register", {"email": email, "password": password, "name": name})
        self.token = body["token"]
        return User.model_validate(body["user"]), self.token

    def login(self, email: str, password: str) -> tuple[User, str]:
        body = self._request("POST", "/auth/login", {"email": email, "password": password})
        self.token = body["token"]
        return User.model_validate(body["user"]), self.token

    def me(self) -> User:
        return User.model_validate(self._request("GET", "/auth/me")["user"])

    # ---- Preferences ----

    def get_preferences(self) -> Preference:
        return Preference.model_validate(self._request("GET", "/preferences")["preferences"])

    def update_preferences(self, **fields) -> Preference:
        payload = _camel(fields)
        return Preference.model_validate(self._request("PUT", "/preferences", payload)["preferences"])

    # ---- Presets ----

    def list_presets(self) -> list[CustomPreset]:
        return [CustomPreset.model_validate(p) for p in self._request("GET", "/presets")["presets"]]

    def create_preset(self, name: str, work_duration: int, short_break: int, long_break: int) -> CustomPreset:
        payload = {"name": name, "workDuration": work_duration, "shortBreak": short_break, "longBreak": long_break}
        return CustomPreset.model_validate(self._request("POST", "/presets", payload)["preset"])

    def update_preset(self, preset_id: str, **fields) -> CustomPreset:
        payload = _camel(fields)
        return CustomPreset.model_validate(self._request("PUT", f"/presets/{preset_id}", payload)["preset"])

    def delete_preset(self, preset_id: str) -> None:
        self._request("DELETE", f"/presets/{preset_id}")

    def find_preset(self, name: str) -> Optional[CustomPreset]:
        return next((p for p in self.list_presets() if p.name == name), None)

    def health(self) -> dict:
        return self._request("GET", "/health")
