"""Configuration singleton for rent-tracker."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to default."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


class Config:
    """Singleton configuration class."""

    _instance: Optional["Config"] = None

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._initialized = True
        load_dotenv()
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from environment variables."""
        # Database path
        default_db = Path.home() / ".rent-tracker" / "rent.db"
        db_path_str = os.getenv("DATABASE_PATH", str(default_db))
        self.database_path = Path(db_path_str).expanduser()

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_dir = os.getenv("LOG_DIR")
        self.log_dir = Path(log_dir).expanduser() if log_dir else self.database_dir / "logs"

        # Status and reminder windows
        self.due_soon_days = _env_int("DUE_SOON_DAYS", 3)
        self.expiring_soon_days = _env_int("EXPIRING_SOON_DAYS", 30)
        self.upcoming_window_days = _env_int("UPCOMING_WINDOW_DAYS", 7)
        self.snooze_seconds = _env_int("SNOOZE_SECONDS", 3600)

    @property
    def database_dir(self) -> Path:
        """Get the directory containing the database."""
        return self.database_path.parent

    def ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        self.database_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded instance so the environment is read again."""
        cls._instance = None


def get_config() -> Config:
    """Get the singleton config instance."""
    return Config()
