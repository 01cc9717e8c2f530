"""
Runtime configuration for the Happy Thoughts backend.
All settings come from environment variables so the same build runs locally and on Railway.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "your-secret-key"
DEFAULT_CORS_ORIGINS = "http://localhost:5173,https://creative-hotteok-2e5655.netlify.app"
RAILWAY_DATA_DIR = "/app/data"


def is_railway_environment() -> bool:
    """Check if running on Railway - determines storage paths"""
    return bool(os.getenv("RAILWAY_ENVIRONMENT") or os.getenv("RAILWAY_PROJECT_ID") or os.getenv("RAILWAY_DEPLOYMENT_ID"))


def get_database_path() -> str:
    """Get appropriate database path for environment"""
    explicit = os.getenv("DATABASE_PATH")
    if explicit:
        return explicit
    if is_railway_environment():
        return f"{RAILWAY_DATA_DIR}/happy_thoughts.db"
    return "happy_thoughts.db"


def ensure_parent_directory(path: str) -> None:
    """Create the directory holding a data file if it is missing"""
    parent = Path(path).expanduser().parent
    if str(parent) not in ("", "."):
        parent.mkdir(parents=True, exist_ok=True)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"⚠️ Ignoring non-integer {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    use_database: bool = False
    database_path: str = "happy_thoughts.db"
    thoughts_file: str = "data/thoughts.json"
    users_file: str = "data/users.json"
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_days: int = 7
    message_min_length: int = 5
    message_max_length: int = 140
    cors_origins: tuple = tuple(DEFAULT_CORS_ORIGINS.split(","))
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def storage_backend(self) -> str:
        return "sqlite" if self.use_database else "json-file"

    def storage_info(self) -> Dict[str, Any]:
        """Describe where data lives, for health and welcome endpoints"""
        return {
            "platform": "Railway" if is_railway_environment() else "Local",
            "backend": self.storage_backend,
            "path": self.database_path if self.use_database else self.thoughts_file,
        }


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Build Settings from the environment, with optional explicit overrides"""
    origins: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    ]

    values: Dict[str, Any] = {
        "use_database": _env_bool("USE_DATABASE"),
        "database_path": get_database_path(),
        "thoughts_file": os.getenv("THOUGHTS_FILE", "data/thoughts.json"),
        "users_file": os.getenv("USERS_FILE", "data/users.json"),
        "jwt_secret": os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET),
        "jwt_expires_days": _env_int("JWT_EXPIRES_DAYS", 7),
        "message_min_length": _env_int("MESSAGE_MIN_LENGTH", 5),
        "message_max_length": _env_int("MESSAGE_MAX_LENGTH", 140),
        "cors_origins": tuple(origins),
        "environment": os.getenv("ENVIRONMENT", "development"),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": _env_int("PORT", 8080),
    }
    if overrides:
        values.update(overrides)

    settings = Settings(**values)

    if settings.message_min_length < 1 or settings.message_max_length < settings.message_min_length:
        raise ValueError(
            f"Invalid message bounds: {settings.message_min_length}-{settings.message_max_length}"
        )
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("⚠️ JWT_SECRET not set - using the development default")

    return settings
