"""
Pomodoro API: FastAPI server for timer preferences and custom presets

This server provides:
- Email/password registration and login with bearer tokens
- Per-user timer preferences (created with defaults on first use)
- Up to three named custom presets per user
- Health and recent-log endpoints for operators
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import auth, preferences, presets
from .config import Settings, get_settings
from .errors import FieldError, InternalError, NotFound, PomodoroError, ValidationError
from .logging_setup import configure_logging, recent_logs
from .models import (
    AuthResponse,
    HealthResponse,
    LoginBody,
    MessageResponse,
    PreferencesResponse,
    PreferenceUpdate,
    PresetCreate,
    PresetListResponse,
    PresetResponse,
    PresetUpdate,
    RegisterBody,
    User,
    UserResponse,
)
from .store import RecordStore

logger = logging.getLogger("pomodoro_api")

get_store = auth.get_store
get_current_user = auth.get_current_user


def _secret(request: Request) -> str:
    return request.app.state.settings.jwt_secret


# ============ Auth ============

auth_router = APIRouter()


@auth_router.post("/register", response_model=AuthResponse, status_code=201)
async def register(body: RegisterBody, request: Request, store: RecordStore = Depends(get_store)):
    user, token = await auth.register_user(store, body.email, body.password, body.name, _secret(request))
    return AuthResponse(message="User created successfully", token=token, user=user)


@auth_router.post("/login", response_model=AuthResponse)
async def login(body: LoginBody, request: Request, store: RecordStore = Depends(get_store)):
    user, token = await auth.login_user(store, body.email, body.password, _secret(request))
    return AuthResponse(message="Login successful", token=token, user=user)


@auth_router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return UserResponse(user=user)


# ============ Preferences ============

preferences_router = APIRouter()


@preferences_router.get("", response_model=PreferencesResponse, response_model_exclude_none=True)
async def read_preferences(user: User = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    return PreferencesResponse(preferences=await preferences.get_preferences(store, user.id))


@preferences_router.put("", response_model=PreferencesResponse)
async def write_preferences(body: PreferenceUpdate, user: User = Depends(get_current_user),
                            store: RecordStore = Depends(get_store)):
    updated = await preferences.update_preferences(store, user.id, body.model_dump(exclude_unset=True))
    return PreferencesResponse(message="Preferences updated successfully", preferences=updated)


# ============ Presets ============

presets_router = APIRouter()


@presets_router.get("", response_model=PresetListResponse)
async def read_presets(user: User = Depends(get_current_user), store: RecordStore = Depends(get_store)):
    return PresetListResponse(presets=await presets.list_presets(store, user.id))


@presets_router.post("", response_model=PresetResponse, status_code=201)
async def add_preset(body: PresetCreate, user: User = Depends(get_current_user),
                     store: RecordStore = Depends(get_store)):
    preset = await presets.create_preset(store, user.id, body.model_dump())
    return PresetResponse(message="Preset created successfully", preset=preset)


@presets_router.put("/{preset_id}", response_model=PresetResponse)
async def edit_preset(preset_id: str, body: PresetUpdate, user: User = Depends(get_current_user),
                      store: RecordStore = Depends(get_store)):
    preset = await presets.update_preset(store, user.id, preset_id, body.model_dump(exclude_unset=True))
    return PresetResponse(message="Preset updated successfully", preset=preset)


@presets_router.delete("/{preset_id}", response_model=MessageResponse)
async def remove_preset(preset_id: str, user: User = Depends(get_current_user),
                        store: RecordStore = Depends(get_store)):
    await presets.delete_preset(store, user.id, preset_id)
    return MessageResponse(message="Preset deleted successfully")


# ============ Operations ============

ops_router = APIRouter()


@ops_router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", message="Pomodoro Timer API is running",
                          timestamp=datetime.now(timezone.utc))


@ops_router.get("/logs")
async def logs(request: Request, limit: int = 50):
    """Recent server log lines. Development only."""
    if not request.app.state.settings.is_development:
        raise NotFound()
    return {"logs": recent_logs(limit)}


# ============ Error handlers ============

async def _domain_error(request: Request, exc: PomodoroError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_error(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append(FieldError(".".join(loc) or "body", err.get("msg", "is invalid")))
    return await _domain_error(request, ValidationError(errors))


async def _unexpected_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return await _domain_error(request, InternalError())


# ============ App factory ============

def create_app(store: Optional[RecordStore] = None, settings: Optional[Settings] = None,
               db_path: Optional[Path] = None, jwt_secret: Optional[str] = None) -> FastAPI:
    settings = settings or get_settings(db_path=db_path, jwt_secret=jwt_secret)
    store = store or RecordStore(settings.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.init_tables()
        logger.info(f"Record store ready at {store.db_path} ({settings.deployment_env})")
        yield
        logger.info("Server stopping")

    app = FastAPI(
        title="Pomodoro API",
        description="Timer preferences and custom presets",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PomodoroError, _domain_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(Exception, _unexpected_error)

    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(preferences_router, prefix="/preferences", tags=["preferences"])
    app.include_router(presets_router, prefix="/presets", tags=["presets"])
    app.include_router(ops_router, tags=["ops"])
    return app


def build_server_app() -> FastAPI:
    """Entry point for uvicorn: configures logging, then builds the app."""
    configure_logging()
    return create_app()
