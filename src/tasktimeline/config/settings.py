"""Central settings: ~/.tasktimeline/config.json, .env files, and environment variables."""

from __future__ import annotations

import json
import logging
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tasktimeline.config.constants import CONFIG_FILE, DEFAULT_STORAGE_URI, TIMELINE_HOME
from tasktimeline.config.env_utils import lookup, read_env_file
from tasktimeline.config.models import ClientConfig, ServerConfig

logger = logging.getLogger("tasktimeline.config")

# Unprefixed deployment variables -> (section, field). A section of None
# means a top-level field.
_PLAIN_ENV: dict[str, tuple[str | None, str]] = {
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "CORS_ORIGIN": ("server", "cors_origin"),
    "STORAGE_URI": (None, "storage_uri"),
}


def _read_config_file() -> dict:
    if not CONFIG_FILE.exists():
        return {}
    try:
        data = json.loads(CONFIG_FILE.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable %s: %s", CONFIG_FILE, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _as_dict(section) -> dict:
    if isinstance(section, (ServerConfig, ClientConfig)):
        return section.model_dump()
    return dict(section) if isinstance(section, dict) else {}


class Settings(BaseSettings):
    """All tasktimeline configuration in one place.

    Priority (highest first):
      1. Plain PORT / HOST / CORS_ORIGIN / STORAGE_URI (environment, then ~/.tasktimeline/.env)
      2. Constructor arguments and TIMELINE_-prefixed variables / .env entries
      3. ~/.tasktimeline/config.json
      4. Defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="TIMELINE_",
        env_file=(".env", str(TIMELINE_HOME / ".env")),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    storage_uri: str = DEFAULT_STORAGE_URI
    log_level: str = "INFO"

    @model_validator(mode="before")
    @classmethod
    def layer_sources(cls, values: dict) -> dict:
        merged = _read_config_file()
        for key, value in values.items():
            if value is None:
                continue
            if key in ("server", "client") and key in merged:
                merged[key] = {**_as_dict(merged[key]), **_as_dict(value)}
            else:
                merged[key] = value

        env_file = read_env_file()
        for env_key, (section, field) in _PLAIN_ENV.items():
            raw = lookup(env_key, env_file)
            if raw is None:
                continue
            value = int(raw) if field == "port" else raw
            if section is None:
                merged[field] = value
            else:
                merged[section] = {**_as_dict(merged.get(section)), field: value}
        return merged

    def save(self) -> None:
        """Write the current settings to config.json."""
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        CONFIG_FILE.write_text(json.dumps(self.model_dump(mode="json"), indent=2), encoding="utf-8")

    @classmethod
    def config_exists(cls) -> bool:
        return CONFIG_FILE.exists()


@lru_cache
def get_settings() -> Settings:
    return Settings()
