from __future__ import annotations

from dataclasses import dataclass
from os import environ
from typing import Mapping

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    database_url: str
    environment: str = "development"
    identity_url: str | None = None
    identity_timeout: float = 20.0
    dev_user_subject: str = "dev-user"
    db_pool_size: int = 20
    db_max_overflow: int = 40
    log_level: str = "INFO"

    @property
    def is_dev_mode(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "Settings":
        return cls(
            database_url=environ["DATABASE_URL"],
            environment=environ.get("ENVIRONMENT", "development").lower(),
            identity_url=environ.get("IDENTITY_URL"),
            identity_timeout=float(environ.get("IDENTITY_TIMEOUT", "20.0")),
            dev_user_subject=environ.get("DEV_USER_SUBJECT", "dev-user"),
            db_pool_size=int(environ.get("DB_POOL_SIZE", "20")),
            db_max_overflow=int(environ.get("DB_MAX_OVERFLOW", "40")),
            log_level=environ.get("LOG_LEVEL", "INFO"),
        )


def load_settings() -> Settings:
    """Read settings from the process environment, after loading ``.env``."""
    load_dotenv()
    return Settings.from_environ(environ)
