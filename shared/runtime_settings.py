"""Runtime env parsing for the director API and CLI.

Security (token, CORS) and bind settings are read once per process from
``NARRATIVE_DIRECTOR_*`` variables. Every loader takes an optional ``environ``
mapping so tests never touch ``os.environ``.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "NARRATIVE_DIRECTOR_"

DEFAULT_DEV_CORS_ALLOW_ORIGINS: tuple[str, ...] = (
    "http://localhost",
    "http://127.0.0.1",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@dataclass(frozen=True)
class SecuritySettings:
    """Token auth and CORS allowlist for the session API."""

    dev_mode: bool
    api_token: str
    cors_allow_origins: list[str]

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_token)

    def startup_problems(self) -> list[str]:
        """Settings that are only acceptable in dev mode."""
        if self.dev_mode:
            return []
        problems = []
        if "*" in self.cors_allow_origins:
            problems.append(
                f"Unsafe CORS config: '*' is only allowed in dev mode. "
                f"Set {ENV_PREFIX}CORS_ALLOW_ORIGINS to explicit origins."
            )
        if not self.api_token:
            problems.append(f"{ENV_PREFIX}API_TOKEN is required when {ENV_PREFIX}DEV_MODE=0.")
        return problems


@dataclass(frozen=True)
class ServerSettings:
    host: str
    port: int


def _env(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def env_flag(name: str, default: bool = False, environ: Mapping[str, str] | None = None) -> bool:
    """Read boolean env values from common truthy/falsey forms."""
    val = _env(environ).get(name, "").strip().lower()
    if not val:
        return default
    return val in ("1", "true", "yes", "on")


def env_int(name: str, default: int, environ: Mapping[str, str] | None = None) -> int:
    """Read an integer env value; unparseable values fall back to ``default`` with a warning."""
    raw = _env(environ).get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r (using %d)", name, raw, default)
        return default


def parse_cors_allowlist(raw: str, fallback: tuple[str, ...] = DEFAULT_DEV_CORS_ALLOW_ORIGINS) -> list[str]:
    origins = [o.strip() for o in raw.split(",") if o and o.strip()]
    if origins:
        return origins
    return list(fallback)


def load_security_settings(environ: Mapping[str, str] | None = None) -> SecuritySettings:
    env = _env(environ)
    return SecuritySettings(
        dev_mode=env_flag(f"{ENV_PREFIX}DEV_MODE", default=True, environ=env),
        api_token=env.get(f"{ENV_PREFIX}API_TOKEN", "").strip(),
        cors_allow_origins=parse_cors_allowlist(env.get(f"{ENV_PREFIX}CORS_ALLOW_ORIGINS", "")),
    )


def load_server_settings(environ: Mapping[str, str] | None = None) -> ServerSettings:
    env = _env(environ)
    return ServerSettings(
        host=env.get(f"{ENV_PREFIX}HOST", "").strip() or DEFAULT_HOST,
        port=env_int(f"{ENV_PREFIX}PORT", DEFAULT_PORT, environ=env),
    )
