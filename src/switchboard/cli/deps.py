"""Container lookup for CLI commands."""

from __future__ import annotations

from functools import lru_cache

from dotenv import load_dotenv

from switchboard.config import AppSettings
from switchboard.container import ServiceContainer, build_container


@lru_cache(maxsize=1)
def get_container() -> ServiceContainer:
    """Build the container once per process from ``SWITCHBOARD_*`` settings.

    A ``.env`` file fills in variables the environment does not already set.
    Invalid settings raise ``ConfigError`` and nothing is cached.
    """

    load_dotenv(override=False)
    return build_container(AppSettings.from_env())


def reset_container() -> None:
    get_container.cache_clear()
