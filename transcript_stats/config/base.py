"""
Settings plumbing for transcript-stats.

Every setting is an upper-case environment variable (PROJECTS_DIR,
MISSING_TIMESTAMP_POLICY, ...). A .env in the working directory is read when
present; LOAD_ENV_FILE or an explicit path points at another one. The CLI's
--projects-dir flag is applied on top of the loaded settings.
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic_settings

T = TypeVar('T', bound='BaseTranscriptSettings')


class BaseTranscriptSettings(pydantic_settings.BaseSettings):
    """Environment-backed settings; unknown or mis-cased .env entries are errors."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='forbid',
    )


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Build settings from the environment plus an optional .env file.

    Args:
        settings_class: EngineSettings or another BaseTranscriptSettings subclass
        env_file: .env path; falls back to $LOAD_ENV_FILE

    Raises:
        FileNotFoundError: If the named .env file is missing
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')
    if not env_file_path:
        return settings_class()

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')
    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """Proxy that reads the environment on first attribute access, not at import."""
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))
