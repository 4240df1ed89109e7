"""Configuration for the LGTM reporter."""

import os
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, SecretStr

ENV_FALLBACKS: Mapping[str, str] = {
    "api_url": "LGTM_API_URL",
    "api_token": "LGTM_API_TOKEN",
    "project_key": "LGTM_PROJECT_KEY",
}


class ConfigError(Exception):
    """Raised when a required setting is missing."""


def default_run_name() -> str:
    """Name used when no run name is configured."""
    return f"pytest run {datetime.now(timezone.utc).isoformat(timespec='seconds')}"


class ReporterConfig(BaseModel):
    """Configuration for the LGTM reporter."""

    api_url: str
    api_token: SecretStr
    project_key: str
    environment: str | None = None
    cycle: str | None = None
    run_name: str = Field(default_factory=default_run_name)
    auto_create_test_cases: bool = True
    auto_create_defects: bool = False
    upload_logs: bool = True
    debug: bool = False
    batch_size: int = Field(default=50, gt=0)
    log_chunk_size: int = Field(default=60_000, gt=0)

    @classmethod
    def resolve(
        cls,
        options: Mapping[str, Any] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "ReporterConfig":
        """Build a config from explicit options with environment fallbacks.

        Options set to ``None`` count as missing. ``api_url``, ``api_token``
        and ``project_key`` fall back to ``LGTM_API_URL``, ``LGTM_API_TOKEN``
        and ``LGTM_PROJECT_KEY``; ``debug`` is also enabled by
        ``LGTM_DEBUG=true``.

        Raises:
            ConfigError: If a required setting is missing everywhere
            pydantic.ValidationError: If a provided value is invalid

        """
        env = os.environ if env is None else env
        values = {k: v for k, v in (options or {}).items() if v is not None}

        for name, env_var in ENV_FALLBACKS.items():
            if not values.get(name):
                if not (fallback := env.get(env_var, "")):
                    raise ConfigError(
                        f"Missing required config: {name} (or {env_var} env var)"
                    )
                values[name] = fallback

        if env.get("LGTM_DEBUG", "").lower() == "true":
            values["debug"] = True

        return cls(**values)
