"""Pydantic models for records and request/response bodies.

Python attributes are snake_case; JSON on the wire is camelCase.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, StrictBool, StrictInt, StrictStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Records ----

class User(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    created_at: datetime


class Preference(CamelModel):
    id: str
    user_id: str
    work_duration: int = 25
    short_break: int = 5
    long_break: int = 15
    auto_start_breaks: bool = True
    auto_start_pomodoros: bool = False
    long_break_interval: int = 4
    sound_enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CustomPreset(CamelModel):
    id: str
    user_id: str
    name: str
    work_duration: int
    short_break: int
    long_break: int
    created_at: datetime
    updated_at: Optional[datetime] = None


# ---- Request bodies ----

class RegisterBody(CamelModel):
    email: EmailStr
    password: str
    name: Optional[str] = None


class LoginBody(CamelModel):
    email: EmailStr
    password: str


class PreferenceUpdate(CamelModel):
    """Any subset of preference fields. Ranges are checked in validation.py.

    Strict types: JSON `true` is not a duration and `1` is not a flag.
    """

    work_duration: Optional[StrictInt] = None
    short_break: Optional[StrictInt] = None
    long_break: Optional[StrictInt] = None
    auto_start_breaks: Optional[StrictBool] = None
    auto_start_pomodoros: Optional[StrictBool] = None
    long_break_interval: Optional[StrictInt] = None
    sound_enabled: Optional[StrictBool] = None


class PresetCreate(CamelModel):
    name: StrictStr
    work_duration: StrictInt
    short_break: StrictInt
    long_break: StrictInt


class PresetUpdate(CamelModel):
    name: Optional[StrictStr] = None
    work_duration: Optional[StrictInt] = None
    short_break: Optional[StrictInt] = None
    long_break: Optional[StrictInt] = None


# ---- Responses ----

class AuthResponse(CamelModel):
    message: str
    token: str
    user: User


class UserResponse(CamelModel):
    user: User


class PreferencesResponse(CamelModel):
    message: Optional[str] = None
    preferences: Preference


class PresetListResponse(CamelModel):
    presets: List[CustomPreset]


class PresetResponse(CamelModel):
    message: Optional[str] = None
    preset: CustomPreset


class MessageResponse(CamelModel):
    message: str


class HealthResponse(CamelModel):
    status: str
    message: str
    timestamp: datetime
