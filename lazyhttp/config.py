"""Configuration helpers and .env loading for lazyhttp."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Callable, Iterable, TypeVar

from dotenv import load_dotenv

from . import __version__
from .exceptions import ConfigurationError

T = TypeVar("T")

DEFAULT_ENV_FILES: tuple[Path, ...] = (
    Path(".env"),
    Path("config/.env"),
)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECTS = 30
DEFAULT_UPLOAD_CHUNK_SIZE = 4096


@lru_cache(maxsize=1)
def load_environment(*, extra_files: Iterable[Path] | None = None) -> dict[str, str]:
    """Load environment variables from .env files once per process."""

    candidates = list(DEFAULT_ENV_FILES)
    if extra_files:
        candidates = [*candidates, *extra_files]

    for path in candidates:
        try:
            if path.exists():
                load_dotenv(path, override=False)
        except OSError:
            continue

    return dict(os.environ)


@dataclass(frozen=True)
class Settings:
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = f"lazyhttp/{__version__}"
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    upload_chunk_size: int = DEFAULT_UPLOAD_CHUNK_SIZE


def _env(name: str, default: T, convert: Callable[[str], T]) -> T:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return convert(value)
    except ValueError as exc:
        raise ConfigurationError(f"Environment variable '{name}' has an invalid value: {value!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return process-wide settings built from the environment."""

    settings = Settings(
        timeout=_env("LAZYHTTP_TIMEOUT", DEFAULT_TIMEOUT, float),
        user_agent=_env("LAZYHTTP_USER_AGENT", Settings.user_agent, str),
        max_redirects=_env("LAZYHTTP_MAX_REDIRECTS", DEFAULT_MAX_REDIRECTS, int),
        upload_chunk_size=_env("LAZYHTTP_CHUNK_SIZE", DEFAULT_UPLOAD_CHUNK_SIZE, int),
    )
    if settings.timeout <= 0:
        raise ConfigurationError("LAZYHTTP_TIMEOUT must be positive")
    if settings.max_redirects < 0:
        raise ConfigurationError("LAZYHTTP_MAX_REDIRECTS must not be negative")
    if settings.upload_chunk_size <= 0:
        raise ConfigurationError("LAZYHTTP_CHUNK_SIZE must be positive")
    return settings


__all__ = ["DEFAULT_ENV_FILES", "Settings", "get_settings", "load_environment"]
