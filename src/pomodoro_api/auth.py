"""Credential service: password hashing, bearer tokens and registration/login."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from . import config
from .errors import AlreadyExists, InvalidCredentials, Unauthorized
from .models import User
from .store import RecordStore
from .validation import normalize_email, validate_registration

logger = logging.getLogger("pomodoro_api.auth")

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
auth_scheme = HTTPBearer(auto_error=False)

# Verified against when the email is unknown, so both login failures cost the same.
_DUMMY_HASH = pwd_context.hash("not-a-real-password")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(user_id: str, secret: str = config.JWT_SECRET,
                        expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.JWT_EXPIRE_DAYS))
    return jwt.encode({"sub": user_id, "exp": expire}, secret, algorithm=config.JWT_ALG)


def decode_token(token: str, secret: str = config.JWT_SECRET) -> str:
    """Return the user id carried by ``token``."""
    try:
        payload = jwt.decode(token, secret, algorithms=[config.JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Token is not valid")
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized("Token is not valid")
    return user_id


async def register_user(store: RecordStore, email: str, password: str, name: Optional[str],
                        secret: str = config.JWT_SECRET) -> tuple[User, str]:
    """Create the user and its default preferences in one transaction."""
    validate_registration(password)
    email = normalize_email(email)
    name = (name or "").strip() or None
    password_hash = hash_password(password)
    try:
        async with store.session(write=True) as session:
            if await session.get_user_credentials(email) is not None:
                raise AlreadyExists()
            user = await session.insert_user(email, password_hash, name)
            await session.ensure_preferences(user.id)
    except sqlite3.IntegrityError:
        raise AlreadyExists()
    logger.info(f"User registered: {user.id} ({user.email})")
    return user, create_access_token(user.id, secret)


async def login_user(store: RecordStore, email: str, password: str,
                     secret: str = config.JWT_SECRET) -> tuple[User, str]:
    email = normalize_email(email)
    async with store.session() as session:
        found = await session.get_user_credentials(email)
    if found is None:
        verify_password(password, _DUMMY_HASH)
        logger.info("Login failed")
        raise InvalidCredentials()
    user, password_hash = found
    if not verify_password(password, password_hash):
        logger.info("Login failed")
        raise InvalidCredentials()
    logger.info(f"User logged in: {user.id} ({user.email})")
    return user, create_access_token(user.id, secret)


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme),
    store: RecordStore = Depends(get_store),
) -> User:
    if credentials is None or not credentials.credentials:
        raise Unauthorized()
    user_id = decode_token(credentials.credentials, request.app.state.settings.jwt_secret)
    async with store.session() as session:
        user = await session.get_user(user_id)
    if user is None:
        raise Unauthorized("Token is not valid")
    return user
