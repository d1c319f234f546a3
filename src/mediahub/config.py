import json
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from mediahub.adapters import get_adapter
from mediahub.models import AppConfig, ResourceFilters, SiteDescriptor


class ConfigError(ValueError):
    """Site configuration is missing or malformed. Fatal at startup."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MEDIAHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_dir: Path = Path.home() / ".mediahub"
    config_path: Path | None = None

    # Network behaviour
    probe_timeout: float = 5.0
    search_timeout: float = 10.0
    max_concurrency: int = 16
    check_interval: float = 300.0
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )

    log_level: str = "INFO"

    @property
    def resolved_config_path(self) -> Path:
        return self.config_path or (self.base_dir / "sites.json")


def _read_raw(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        if path.suffix == ".toml":
            with path.open("rb") as f:
                return tomllib.load(f)
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Could not parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be an object, got {type(data).__name__}")
    return data


def parse_config(data: dict[str, Any]) -> AppConfig:
    """Build an AppConfig from the raw ``{"api_site": ..., "resource_filters": ...}`` mapping."""
    sites_raw = data.get("api_site")
    if not isinstance(sites_raw, dict) or not sites_raw:
        raise ConfigError("Config must define a non-empty 'api_site' mapping")

    try:
        sites = {
            key: SiteDescriptor.model_validate({**value, "key": key})
            for key, value in sites_raw.items()
        }
        filters = ResourceFilters.model_validate(data.get("resource_filters") or {})
    except (TypeError, ValidationError) as e:
        raise ConfigError(f"Invalid site configuration: {e}") from e

    for site in sites.values():
        try:
            get_adapter(site.adapter)
        except ValueError as e:
            raise ConfigError(f"Site '{site.key}': {e}") from e

    return AppConfig(api_sites=sites, resource_filters=filters)


def load_config(path: Path) -> AppConfig:
    return parse_config(_read_raw(path))


class ConfigSource:
    """Read-only access to the site list. Loads once, then serves the cached copy."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._config: AppConfig | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get_config(self) -> AppConfig:
        if self._config is None:
            self._config = load_config(self._path)
        return self._config
