"""
Proxy configuration.

Read once at startup from a TOML file:

    Ip = "127.0.0.1:8080"        # listen address, also the caller identity
    Address = "example.com"      # origin host to proxy
    CacheSize = 1024             # eviction budget in KB
    RefererIp = "10.0.0.5"       # optional, defaults to Ip
    Timeout = 30                 # optional, outbound timeout in seconds
    LogLevel = "INFO"            # optional

The path defaults to ``config.toml`` and can be overridden with the
``PAGE_PROXY_CONFIG`` environment variable.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigLoadError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.toml"
CONFIG_PATH_ENV = "PAGE_PROXY_CONFIG"

# uvicorn's log_level names (upper-cased); NOTSET is not one of them
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


class ProxySettings(BaseModel):
    """Immutable proxy settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    listen_address: str = Field(..., alias="Ip", min_length=1)
    origin_host: str = Field(..., alias="Address", min_length=1)
    cache_size_kb: int = Field(..., alias="CacheSize", ge=0)
    referer_ip: Optional[str] = Field(None, alias="RefererIp")
    fetch_timeout: float = Field(30.0, alias="Timeout", gt=0)
    log_level: str = Field("INFO", alias="LogLevel")

    @field_validator("origin_host")
    @classmethod
    def strip_scheme(cls, v: str) -> str:
        """Accept 'https://host/' and keep only the host."""
        for prefix in ("https://", "http://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Accept the levels uvicorn understands, mapping the stdlib aliases."""
        level = v.upper()
        level = LOG_LEVEL_ALIASES.get(level, level)
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level: {v}")
        return level

    @model_validator(mode="before")
    @classmethod
    def default_referer(cls, data: Any) -> Any:
        """The caller identity falls back to the listen address."""
        if isinstance(data, dict) and not (data.get("RefererIp") or data.get("referer_ip")):
            data = dict(data)
            data["RefererIp"] = data.get("Ip", data.get("listen_address"))
        return data

    @property
    def origin_url(self) -> str:
        return f"https://{self.origin_host}/"

    def bind(self) -> Tuple[str, int]:
        """
        Split listen_address into (host, port).

        An empty host (":8080") binds all interfaces.
        """
        host, sep, port = self.listen_address.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"listen address needs a port: {self.listen_address!r}")
        return host.strip("[]") or "0.0.0.0", int(port)


def resolve_config_path(path: Union[str, Path, None] = None) -> Path:
    """Explicit path, else $PAGE_PROXY_CONFIG, else ./config.toml."""
    if path is not None:
        return Path(path)
    return Path(os.getenv(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))


def load_settings(path: Union[str, Path, None] = None) -> ProxySettings:
    """
    Load and validate settings from a TOML file.

    Raises:
        ConfigLoadError: missing file, invalid TOML or invalid values
    """
    config_path = resolve_config_path(path)

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigLoadError(str(config_path), "file not found")
    except OSError as e:
        raise ConfigLoadError(str(config_path), str(e))
    except tomllib.TOMLDecodeError as e:
        raise ConfigLoadError(str(config_path), f"invalid TOML: {e}")

    try:
        settings = ProxySettings.model_validate(data)
    except ValidationError as e:
        raise ConfigLoadError(str(config_path), str(e))

    logger.info(
        f"[PageProxy] Loaded config {config_path}: origin={settings.origin_host} "
        f"budget={settings.cache_size_kb} KB"
    )
    return settings
