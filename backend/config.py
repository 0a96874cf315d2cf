from __future__ import annotations

import os
import urllib.parse
from typing import Optional

from pydantic import BaseModel, Field

from errors import ConfigurationError


DEFAULT_PORT = 8000
DEFAULT_ENV_FILE = os.path.join(os.path.dirname(__file__), ".env")


def load_env_file(path: str) -> None:
    """
    Minimal dotenv loader (no extra dependency).
    Loads KEY=VALUE lines into os.environ without overriding already-set vars.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                if key.startswith("export "):
                    key = key[len("export "):].strip()
                if not key:
                    continue
                os.environ.setdefault(key, value.strip().strip("'").strip('"'))
    except FileNotFoundError:
        return


class Settings(BaseModel):
    ticketmaster_api_key: str = ""
    ipinfo_token: str = ""
    mongodb_uri: str
    mongodb_password: str = ""
    mongodb_db: str = "event_gateway"
    # Accepted for parity with the frontend's deployment env; no code path uses it yet.
    google_maps_key: str = ""
    port: int = DEFAULT_PORT
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def resolved_mongodb_uri(self) -> str:
        """
        Atlas connection strings are often shipped with a `<password>` placeholder;
        substitute the separately-configured credential (URL-quoted) when present.
        """
        if self.mongodb_password and "<password>" in self.mongodb_uri:
            quoted = urllib.parse.quote_plus(self.mongodb_password)
            return self.mongodb_uri.replace("<password>", quoted)
        return self.mongodb_uri


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _parse_port(raw: str) -> int:
    if not raw:
        return DEFAULT_PORT
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"PORT must be an integer, got {raw!r}.")


def cors_origins_from_env() -> list[str]:
    origins = [o.strip() for o in _env("CORS_ORIGINS", "*").split(",") if o.strip()]
    return origins or ["*"]


def load_settings(env_file: Optional[str] = DEFAULT_ENV_FILE) -> Settings:
    """
    Read configuration from the environment (optionally seeded from a .env file).

    Raises ConfigurationError when MONGODB_URI is absent; the caller is expected
    to abort startup rather than retry.
    """
    if env_file:
        load_env_file(env_file)

    mongodb_uri = _env("MONGODB_URI")
    if not mongodb_uri:
        raise ConfigurationError("MONGODB_URI is not set.")

    return Settings(
        ticketmaster_api_key=_env("TICKETMASTER_API_KEY"),
        ipinfo_token=_env("IPINFO_TOKEN"),
        mongodb_uri=mongodb_uri,
        mongodb_password=_env("MONGODB_PASSWORD"),
        mongodb_db=_env("MONGODB_DB", "event_gateway"),
        google_maps_key=_env("GOOGLE_MAP_KEY"),
        port=_parse_port(_env("PORT")),
        cors_origins=cors_origins_from_env(),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )
