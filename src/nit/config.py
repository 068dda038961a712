from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

UrlScheme = Literal["ssh", "https"]

URL_SCHEMES: tuple[UrlScheme, ...] = ("ssh", "https")
DEFAULT_WORKERS = 8
DEFAULT_GIT = "git"

_URL_REWRITES: dict[UrlScheme, tuple[str, ...]] = {
    "ssh": ("-c", "url.git@github.com:.insteadOf=https://github.com/"),
    "https": ("-c", "url.https://github.com/.insteadOf=git@github.com:"),
}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    workers: int = DEFAULT_WORKERS
    dry_run: bool = False
    url_scheme: UrlScheme | None = None
    git: str = DEFAULT_GIT
    oneline: bool = False

    def __post_init__(self) -> None:
        if self.workers < 0:
            raise ConfigError(f"workers must be >= 0 (0 = unlimited), got {self.workers}")
        if self.url_scheme is not None and self.url_scheme not in URL_SCHEMES:
            raise ConfigError(
                f"url_scheme must be one of {list(URL_SCHEMES)}, got {self.url_scheme!r}"
            )
        if not self.git.strip():
            raise ConfigError("git executable must be non-empty")

    def url_rewrite_args(self) -> tuple[str, ...]:
        if self.url_scheme is None:
            return ()
        return _URL_REWRITES[self.url_scheme]


@dataclass(frozen=True, slots=True)
class Settings:
    workers: int | None = None
    url_scheme: UrlScheme | None = None
    git: str | None = None
    oneline: bool | None = None


def default_config_path() -> Path:
    override = os.environ.get("NIT_CONFIG")
    if override:
        return Path(override).expanduser()

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home).expanduser() / "nit" / "config.toml"

    return Path.home() / ".config" / "nit" / "config.toml"


def _toml_load(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse TOML in {path}: {e}") from e
    return data


def _as_workers(value: Any, *, errors: list[str]) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(f"defaults.workers: expected integer, got {type(value).__name__}")
        return None
    if value < 0:
        errors.append(f"defaults.workers: must be >= 0 (0 = unlimited), got {value}")
        return None
    return value


def _as_url_scheme(value: Any, *, errors: list[str]) -> UrlScheme | None:
    if value is None:
        return None
    if value not in URL_SCHEMES:
        errors.append(f"defaults.url_scheme: expected one of {list(URL_SCHEMES)}, got {value!r}")
        return None
    return value


def _as_git(value: Any, *, errors: list[str]) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        errors.append(f"defaults.git: expected string, got {type(value).__name__}")
        return None
    if not value.strip():
        errors.append("defaults.git: must be non-empty")
        return None
    return value


def _as_bool(value: Any, *, field: str, errors: list[str]) -> bool | None:
    if value is None:
        return None
    if not isinstance(value, bool):
        errors.append(f"{field}: expected boolean, got {type(value).__name__}")
        return None
    return value


def load_settings(config_path: Path) -> Settings:
    logger.debug("Loading config from %s", config_path)
    data = _toml_load(config_path)
    errors: list[str] = []

    allowed_top_level = {"defaults"}
    unknown_top_level = set(data) - allowed_top_level
    if unknown_top_level:
        errors.append(
            f"Top-level: unknown keys {sorted(unknown_top_level)} "
            f"(allowed: {sorted(allowed_top_level)})"
        )

    defaults = data.get("defaults", {})
    if not isinstance(defaults, dict):
        errors.append(f"defaults: expected table ([defaults]), got {type(defaults).__name__}")
        raise ConfigError("Invalid config:\n- " + "\n- ".join(errors))

    allowed_keys = {"workers", "url_scheme", "git", "oneline"}
    unknown_keys = set(defaults) - allowed_keys
    if unknown_keys:
        errors.append(
            f"defaults: unknown keys {sorted(unknown_keys)} (allowed: {sorted(allowed_keys)})"
        )

    settings = Settings(
        workers=_as_workers(defaults.get("workers"), errors=errors),
        url_scheme=_as_url_scheme(defaults.get("url_scheme"), errors=errors),
        git=_as_git(defaults.get("git"), errors=errors),
        oneline=_as_bool(defaults.get("oneline"), field="defaults.oneline", errors=errors),
    )
    if errors:
        raise ConfigError("Invalid config:\n- " + "\n- ".join(errors))
    return settings


def resolve_settings(config_path: Path | None) -> Settings:
    if config_path is not None:
        return load_settings(config_path)

    default_path = default_config_path()
    if os.environ.get("NIT_CONFIG"):
        return load_settings(default_path)
    if not default_path.exists():
        logger.debug("No config at %s; using built-in defaults", default_path)
        return Settings()
    return load_settings(default_path)


def build_context(
    settings: Settings,
    *,
    workers: int | None = None,
    dry_run: bool = False,
    url_scheme: UrlScheme | None = None,
    oneline: bool | None = None,
) -> ExecutionContext:
    def pick(cli_value: Any, file_value: Any, default: Any) -> Any:
        if cli_value is not None:
            return cli_value
        if file_value is not None:
            return file_value
        return default

    return ExecutionContext(
        workers=pick(workers, settings.workers, DEFAULT_WORKERS),
        dry_run=dry_run,
        url_scheme=pick(url_scheme, settings.url_scheme, None),
        git=pick(None, settings.git, DEFAULT_GIT),
        oneline=pick(oneline, settings.oneline, False),
    )
