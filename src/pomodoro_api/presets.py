"""Custom presets: at most MAX_PRESETS per user, names unique per user.

Quota and name checks run in the same IMMEDIATE transaction as the write,
so two concurrent creates cannot both pass the count check.
"""

import logging
import sqlite3
from typing import Any, Mapping

from .errors import DuplicateName, NotFound, QuotaExceeded
from .models import CustomPreset
from .store import RecordStore
from .config import MAX_PRESETS
from .validation import validate_preset

logger = logging.getLogger("pomodoro_api.presets")


async def list_presets(store: RecordStore, user_id: str) -> list[CustomPreset]:
    async with store.session() as session:
        return await session.list_presets(user_id)


async def create_preset(store: RecordStore, user_id: str, fields: Mapping[str, Any]) -> CustomPreset:
    values = validate_preset(fields)
    try:
        async with store.session(write=True) as session:
            if await session.count_presets(user_id) >= MAX_PRESETS:
                logger.info(f"Preset quota reached for {user_id}")
                raise QuotaExceeded()
            if await session.find_preset_by_name(user_id, values["name"]) is not None:
                logger.info(f"Duplicate preset name for {user_id}: {values['name']!r}")
                raise DuplicateName()
            preset = await session.insert_preset(user_id, values)
    except sqlite3.IntegrityError:
        raise DuplicateName()
    logger.info(f"Preset created for {user_id}: {preset.id} ({preset.name})")
    return preset


async def update_preset(store: RecordStore, user_id: str, preset_id: str,
                        fields: Mapping[str, Any]) -> CustomPreset:
    values = validate_preset(fields, partial=True)
    try:
        async with store.session(write=True) as session:
            existing = await session.get_preset(user_id, preset_id)
            if existing is None:
                raise NotFound("Preset not found")
            name = values.get("name")
            if name is not None and name != existing.name:
                if await session.find_preset_by_name(user_id, name, exclude_id=preset_id) is not None:
                    raise DuplicateName()
            preset = await session.update_preset(user_id, preset_id, values)
    except sqlite3.IntegrityError:
        raise DuplicateName()
    logger.info(f"Preset updated for {user_id}: {preset_id} {sorted(values)}")
    return preset


async def delete_preset(store: RecordStore, user_id: str, preset_id: str) -> None:
    async with store.session(write=True) as session:
        if not await session.delete_preset(user_id, preset_id):
            raise NotFound("Preset not found")
    logger.info(f"Preset deleted for {user_id}: {preset_id}")
