"""Runtime configuration, read from the environment at import time."""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the working directory (JWT_SECRET, PORT, etc.)
load_dotenv(Path.cwd() / ".env")

BASE_DIR = Path(os.environ.get("POMODORO_HOME", str(Path.home() / ".pomodoro")))

DB_PATH = Path(os.environ.get("POMODORO_DB", str(BASE_DIR / "pomodoro.db")))
LOGS_DIR = Path(os.environ.get("LOGS_DIR", str(BASE_DIR / "logs")))
TOKEN_PATH = BASE_DIR / "token"

JWT_SECRET = os.environ.get("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
JWT_EXPIRE_DAYS = int(os.environ.get("JWT_EXPIRE_DAYS", "7"))

SERVER_PORT = int(os.environ.get("PORT", "5000"))
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
DEPLOYMENT_ENV = os.environ.get("DEPLOYMENT_ENV", os.environ.get("NODE_ENV", "development"))
CORS_ORIGINS = [o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o.strip()]
API_URL = os.environ.get("POMODORO_API_URL", f"http://localhost:{SERVER_PORT}")

MAX_PRESETS = 3


@dataclass
class Settings:
    """Snapshot of the settings the app factory needs."""

    db_path: Path
    jwt_secret: str
    jwt_expire_days: int
    deployment_env: str
    cors_origins: list

    @property
    def is_development(self) -> bool:
        return self.deployment_env == "development"


def get_settings(**overrides) -> Settings:
    settings = Settings(
        db_path=DB_PATH,
        jwt_secret=JWT_SECRET,
        jwt_expire_days=JWT_EXPIRE_DAYS,
        deployment_env=DEPLOYMENT_ENV,
        cors_origins=CORS_ORIGINS,
    )
    for key, value in overrides.items():
        if value is not None:
            setattr(settings, key, value)
    return settings
