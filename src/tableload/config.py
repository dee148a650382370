"""Runtime settings read from the environment (and an optional .env file)."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from dotenv import load_dotenv

from tableload.service import (
    DEFAULT_ACQUIRE_TIMEOUT,
    DEFAULT_POOL_SIZE,
    DEFAULT_STATEMENT_TIMEOUT,
)

DEFAULT_TARGET_TABLE = "invMasterAux"
DEFAULT_DB_HOST = "localhost"
DEFAULT_DB_PORT = 5432

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    """Raised when required settings are missing or malformed."""


@dataclass(frozen=True)
class Settings:
    database_url: str | None = None
    pool_size: int = DEFAULT_POOL_SIZE
    acquire_timeout: float = DEFAULT_ACQUIRE_TIMEOUT
    statement_timeout: float = DEFAULT_STATEMENT_TIMEOUT
    target_table: str = DEFAULT_TARGET_TABLE
    snapshot_dir: Path | None = None
    expose_errors: bool = False

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        require_database: bool = True,
    ) -> "Settings":
        """Build settings from ``environ`` (defaults to os.environ after loading .env).

        With ``require_database`` off, missing database settings leave
        ``database_url`` as None instead of raising ConfigError.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        snapshot_dir = environ.get("SNAPSHOT_DIR")
        return cls(
            database_url=_database_url(environ, require_database),
            pool_size=_positive_int(environ, "DB_POOL_SIZE", DEFAULT_POOL_SIZE),
            acquire_timeout=_positive_float(
                environ, "DB_ACQUIRE_TIMEOUT", DEFAULT_ACQUIRE_TIMEOUT
            ),
            statement_timeout=_positive_float(
                environ, "DB_STATEMENT_TIMEOUT", DEFAULT_STATEMENT_TIMEOUT
            ),
            target_table=environ.get("TARGET_TABLE") or DEFAULT_TARGET_TABLE,
            snapshot_dir=Path(snapshot_dir) if snapshot_dir else None,
            expose_errors=environ.get("EXPOSE_ERRORS", "").strip().lower() in _TRUE_VALUES,
        )


def _database_url(environ: Mapping[str, str], required: bool = True) -> str | None:
    url = environ.get("DATABASE_URL")
    if url:
        return url

    missing = [key for key in ("DB_USER", "DB_PASSWORD", "DB_NAME") if not environ.get(key)]
    if missing and not required:
        return None
    if missing:
        raise ConfigError(
            "Database not configured: set DATABASE_URL or " + ", ".join(missing)
        )
    host = environ.get("DB_HOST") or DEFAULT_DB_HOST
    port = _positive_int(environ, "DB_PORT", DEFAULT_DB_PORT)
    user = quote(environ["DB_USER"], safe="")
    password = quote(environ["DB_PASSWORD"], safe="")
    return f"postgresql://{user}:{password}@{host}:{port}/{environ['DB_NAME']}"


def _positive_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


def _positive_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value:g}")
    return value
