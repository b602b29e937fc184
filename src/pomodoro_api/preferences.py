"""Per-user timer preferences."""

import logging
from typing import Any, Mapping

from .models import Preference
from .store import RecordStore
from .validation import validate_preferences

logger = logging.getLogger("pomodoro_api.preferences")


async def get_preferences(store: RecordStore, user_id: str) -> Preference:
    """Return the user's preferences, creating them with defaults on first read."""
    async with store.session(write=True) as session:
        return await session.ensure_preferences(user_id)


async def update_preferences(store: RecordStore, user_id: str, fields: Mapping[str, Any]) -> Preference:
    """Partial update. Validation runs first, so a failure writes nothing.

    Unsupplied fields keep their stored values; a missing record is created
    with defaults before the supplied fields are applied.
    """
    updates = validate_preferences(fields)
    async with store.session(write=True) as session:
        preferences = await session.update_preferences(user_id, updates)
    logger.info(f"Preferences updated for {user_id}: {sorted(updates)}")
    return preferences
