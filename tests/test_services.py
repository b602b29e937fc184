"""
Tests for the record store and the preference/preset services.

Each test gets a fresh SQLite database under tmp_path.
"""

import asyncio
import sqlite3

import pytest
import pytest_asyncio

from pomodoro_api import auth, preferences, presets
from pomodoro_api.config import MAX_PRESETS
from pomodoro_api.errors import (
    AlreadyExists,
    DuplicateName,
    InvalidCredentials,
    NotFound,
    QuotaExceeded,
    ValidationError,
)
from pomodoro_api.store import RecordStore


# ── Helpers ───────────────────────────────────────────────────


def run(coro):
    """Run an async function in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def store(tmp_path):
    s = RecordStore(tmp_path / "test_pomodoro.db")
    run(s.init_tables())
    return s


def make_user(store, email="a@x.com", password="secret1"):
    user, _ = run(auth.register_user(store, email, password, None, secret="test-secret"))
    return user


def preset_fields(name="Focus", work=50, short=10, long_=20):
    return {"name": name, "work_duration": work, "short_break": short, "long_break": long_}


# ── Accounts ──────────────────────────────────────────────────


class TestAccounts:
    def test_register_creates_default_preferences(self, store):
        user = make_user(store)
        async def _check():
            async with store.session() as session:
                return await session.get_preferences(user.id)
        prefs = run(_check())
        assert prefs is not None
        assert prefs.work_duration == 25

    def test_register_normalizes_email(self, store):
        user = make_user(store, email="  Mixed@Example.COM ")
        assert user.email == "mixed@example.com"

    def test_duplicate_email_rejected(self, store):
        make_user(store)
        with pytest.raises(AlreadyExists):
            make_user(store, email="A@X.com")

    def test_login_roundtrip(self, store):
        user = make_user(store)
        logged_in, token = run(auth.login_user(store, "a@x.com", "secret1", secret="test-secret"))
        assert logged_in.id == user.id
        assert auth.decode_token(token, "test-secret") == user.id

    def test_wrong_password_and_unknown_email_match(self, store):
        make_user(store)
        with pytest.raises(InvalidCredentials) as wrong_password:
            run(auth.login_user(store, "a@x.com", "nope123"))
        with pytest.raises(InvalidCredentials) as unknown_email:
            run(auth.login_user(store, "ghost@x.com", "secret1"))
        assert wrong_password.value.to_dict() == unknown_email.value.to_dict()
        assert wrong_password.value.status_code == unknown_email.value.status_code


# ── Preferences ───────────────────────────────────────────────


class TestPreferences:
    def test_get_or_create_is_idempotent(self, store):
        user = make_user(store)
        first = run(preferences.get_preferences(store, user.id))
        second = run(preferences.get_preferences(store, user.id))
        assert first.id == second.id

    def test_created_lazily_when_missing(self, store):
        user = make_user(store)
        async def _drop():
            async with store.session(write=True) as session:
                await session.db.execute("DELETE FROM preferences WHERE user_id = ?", (user.id,))
        run(_drop())
        prefs = run(preferences.get_preferences(store, user.id))
        assert (prefs.work_duration, prefs.short_break, prefs.long_break) == (25, 5, 15)

    def test_partial_update_keeps_other_fields(self, store):
        user = make_user(store)
        run(preferences.update_preferences(store, user.id, {"short_break": 7}))
        updated = run(preferences.update_preferences(store, user.id, {"work_duration": 45}))
        assert updated.work_duration == 45
        assert updated.short_break == 7
        assert updated.long_break == 15

    def test_first_write_applies_defaults(self, store):
        user = make_user(store)
        async def _drop():
            async with store.session(write=True) as session:
                await session.db.execute("DELETE FROM preferences WHERE user_id = ?", (user.id,))
        run(_drop())
        created = run(preferences.update_preferences(store, user.id, {"sound_enabled": False}))
        assert created.sound_enabled is False
        assert created.work_duration == 25
        assert created.long_break_interval == 4

    def test_invalid_update_writes_nothing(self, store):
        user = make_user(store)
        with pytest.raises(ValidationError):
            run(preferences.update_preferences(store, user.id, {"work_duration": 50, "short_break": 0}))
        prefs = run(preferences.get_preferences(store, user.id))
        assert prefs.work_duration == 25


# ── Presets ───────────────────────────────────────────────────


class TestPresets:
    def test_list_in_creation_order(self, store):
        user = make_user(store)
        for name in ("B", "A", "C"):
            run(presets.create_preset(store, user.id, preset_fields(name)))
        names = [p.name for p in run(presets.list_presets(store, user.id))]
        assert names == ["B", "A", "C"]

    def test_quota_of_three(self, store):
        user = make_user(store)
        for name in ("A", "B", "C"):
            run(presets.create_preset(store, user.id, preset_fields(name)))
        with pytest.raises(QuotaExceeded):
            run(presets.create_preset(store, user.id, preset_fields("D")))
        assert len(run(presets.list_presets(store, user.id))) == 3

    def test_quota_message_names_the_limit(self, store):
        user = make_user(store)
        for i in range(MAX_PRESETS):
            run(presets.create_preset(store, user.id, preset_fields(f"P{i}")))
        with pytest.raises(QuotaExceeded) as info:
            run(presets.create_preset(store, user.id, preset_fields("Extra")))
        assert info.value.message == f"Maximum of {MAX_PRESETS} custom presets allowed"

    def test_delete_frees_a_slot(self, store):
        user = make_user(store)
        created = [run(presets.create_preset(store, user.id, preset_fields(n))) for n in ("A", "B", "C")]
        run(presets.delete_preset(store, user.id, created[0].id))
        run(presets.create_preset(store, user.id, preset_fields("D")))
        assert [p.name for p in run(presets.list_presets(store, user.id))] == ["B", "C", "D"]

    def test_duplicate_name_per_user(self, store):
        alice = make_user(store, "alice@x.com")
        bob = make_user(store, "bob@x.com")
        run(presets.create_preset(store, alice.id, preset_fields("Focus")))
        with pytest.raises(DuplicateName):
            run(presets.create_preset(store, alice.id, preset_fields("Focus")))
        run(presets.create_preset(store, bob.id, preset_fields("Focus")))

    def test_names_are_case_sensitive(self, store):
        user = make_user(store)
        run(presets.create_preset(store, user.id, preset_fields("Focus")))
        run(presets.create_preset(store, user.id, preset_fields("focus")))

    def test_name_trimmed_before_duplicate_check(self, store):
        user = make_user(store)
        run(presets.create_preset(store, user.id, preset_fields("Focus")))
        with pytest.raises(DuplicateName):
            run(presets.create_preset(store, user.id, preset_fields("  Focus ")))

    def test_update_partial(self, store):
        user = make_user(store)
        created = run(presets.create_preset(store, user.id, preset_fields("Focus")))
        updated = run(presets.update_preset(store, user.id, created.id, {"work_duration": 90}))
        assert updated.work_duration == 90
        assert updated.name == "Focus"
        assert updated.short_break == 10

    def test_update_same_name_allowed(self, store):
        user = make_user(store)
        created = run(presets.create_preset(store, user.id, preset_fields("Focus")))
        updated = run(presets.update_preset(store, user.id, created.id, {"name": "Focus", "long_break": 25}))
        assert updated.long_break == 25

    def test_rename_collision(self, store):
        user = make_user(store)
        run(presets.create_preset(store, user.id, preset_fields("Focus")))
        other = run(presets.create_preset(store, user.id, preset_fields("Light")))
        with pytest.raises(DuplicateName):
            run(presets.update_preset(store, user.id, other.id, {"name": "Focus"}))

    def test_other_users_preset_is_not_found(self, store):
        alice = make_user(store, "alice@x.com")
        bob = make_user(store, "bob@x.com")
        created = run(presets.create_preset(store, alice.id, preset_fields("Focus")))
        with pytest.raises(NotFound):
            run(presets.update_preset(store, bob.id, created.id, {"work_duration": 30}))
        with pytest.raises(NotFound):
            run(presets.delete_preset(store, bob.id, created.id))
        assert run(presets.list_presets(store, alice.id))[0].work_duration == 50

    def test_missing_preset_is_not_found(self, store):
        user = make_user(store)
        with pytest.raises(NotFound):
            run(presets.delete_preset(store, user.id, "does-not-exist"))

    def test_concurrent_creates_respect_quota(self, store):
        user = make_user(store)
        async def _race():
            return await asyncio.gather(
                *(presets.create_preset(store, user.id, preset_fields(f"P{i}")) for i in range(6)),
                return_exceptions=True,
            )
        results = run(_race())
        assert sum(1 for r in results if isinstance(r, QuotaExceeded)) == 3
        assert len(run(presets.list_presets(store, user.id))) == 3


# ── Transactions ──────────────────────────────────────────────


@pytest_asyncio.fixture
async def async_store(tmp_path):
    s = RecordStore(tmp_path / "test_async.db")
    await s.init_tables()
    return s


@pytest.mark.asyncio
async def test_write_session_rolls_back_on_error(async_store):
    with pytest.raises(RuntimeError):
        async with async_store.session(write=True) as session:
            await session.insert_user("x@x.com", "hash", None)
            raise RuntimeError("abort")
    async with async_store.session() as session:
        assert await session.get_user_credentials("x@x.com") is None


@pytest.mark.asyncio
async def test_unique_index_backstops_duplicate_names(async_store):
    user, _ = await auth.register_user(async_store, "a@x.com", "secret1", None, secret="test-secret")
    async with async_store.session(write=True) as session:
        await session.insert_preset(user.id, preset_fields("Focus"))
    with pytest.raises(sqlite3.IntegrityError):
        async with async_store.session(write=True) as session:
            await session.insert_preset(user.id, preset_fields("Focus"))
