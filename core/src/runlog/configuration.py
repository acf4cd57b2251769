from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from runlog.exceptions import ConfigError
from runlog.settings import LoggingSettings

ENV_PREFIX = "RUNLOG_LOGGING"
ENV_SETTINGS_PATH = "RUNLOG_LOGGING_SETTINGS_PATH"
ENV_HOME = "RUNLOG_HOME"
_HOME_DIRNAME = ".runlog"
_SETTINGS_FILENAME = "logging.yml"

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_ENV_KEY_PATTERN = re.compile(r"[^A-Za-z0-9]+")

logger = logging.getLogger("runlog.configuration")


@dataclass(frozen=True, slots=True)
class SettingsResolver:
    """
    Merge built-in defaults, an optional YAML file and environment overrides.

    Precedence, lowest to highest: defaults, file, ``RUNLOG_LOGGING_*``
    environment variables, programmatic ``overrides`` (dot-paths).
    """

    settings_path: Path | None = None
    environ: Mapping[str, str] | None = None
    home: Path | None = None
    overrides: Mapping[str, Any] = field(default_factory=dict)

    def resolve(self) -> LoggingSettings:
        environ = self._environ()
        payload = LoggingSettings().model_dump(mode="json")

        file_payload = load_settings_file(self.config_path())
        if file_payload:
            payload = deep_merge(payload, resolve_env_vars(file_payload, environ=environ))

        payload = apply_dotpath_overrides(payload, collect_env_overrides(payload, environ))
        payload = apply_dotpath_overrides(payload, self.overrides)
        return validate_settings(payload)

    def config_path(self) -> Path:
        if self.settings_path is not None:
            return Path(self.settings_path).expanduser()
        environ = self._environ()
        env_path = environ.get(ENV_SETTINGS_PATH)
        if env_path:
            return Path(env_path).expanduser()
        home = self.home
        if home is None:
            env_home = environ.get(ENV_HOME)
            home = Path(env_home).expanduser() if env_home else Path.home() / _HOME_DIRNAME
        return Path(home) / _SETTINGS_FILENAME

    def _environ(self) -> Mapping[str, str]:
        return os.environ if self.environ is None else self.environ


def resolve_settings(**kwargs: Any) -> LoggingSettings:
    return SettingsResolver(**kwargs).resolve()


def validate_settings(payload: Mapping[str, Any]) -> LoggingSettings:
    try:
        return LoggingSettings.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(_format_validation_error("logging", exc)) from exc


def load_settings_file(path: Path | None) -> dict[str, Any]:
    """
    Read a YAML settings file; any problem reading it yields an empty payload.
    """
    if path is None:
        return {}
    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
    except FileNotFoundError:
        logger.debug("No logging settings file at %s; using defaults", path)
        return {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        logger.debug("Ignoring unreadable logging settings file %s: %s", path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.debug("Ignoring logging settings file %s: root is not a mapping", path)
        return {}
    return payload


def collect_env_overrides(
    payload: Mapping[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """
    Map ``RUNLOG_LOGGING_<PATH>`` variables onto existing setting addresses.

    Only addresses present in ``payload`` are recognised, which keeps names with
    underscores (``extra_loggers``, ``runlog.flow_runs``) unambiguous.
    """
    overrides: dict[str, Any] = {}
    for path in iter_leaf_paths(payload):
        value = environ.get(env_key_for(path))
        if value is not None:
            overrides[_join_dotpath(path)] = value
    return overrides


def env_key_for(path: tuple[str, ...]) -> str:
    segments = [_ENV_KEY_PATTERN.sub("_", part).strip("_").upper() for part in path]
    return "_".join([ENV_PREFIX, *segments])


def iter_leaf_paths(payload: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> Iterator[tuple[str, ...]]:
    for key, value in payload.items():
        path = (*prefix, str(key))
        if isinstance(value, Mapping) and value:
            yield from iter_leaf_paths(value, path)
        else:
            yield path


def resolve_env_vars(payload: Any, *, environ: Mapping[str, str] | None = None) -> Any:
    return _resolve_env_vars(payload, path="$", environ=os.environ if environ is None else environ)


def _resolve_env_vars(payload: Any, *, path: str, environ: Mapping[str, str]) -> Any:
    if isinstance(payload, Mapping):
        return {
            str(key): _resolve_env_vars(value, path=f"{path}.{key}", environ=environ)
            for key, value in payload.items()
        }
    if isinstance(payload, list):
        return [
            _resolve_env_vars(value, path=f"{path}[{index}]", environ=environ)
            for index, value in enumerate(payload)
        ]
    if isinstance(payload, str):
        return _substitute_env(payload, path=path, environ=environ)
    return payload


def _substitute_env(value: str, *, path: str, environ: Mapping[str, str]) -> str:
    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        env_value = environ.get(key)
        if env_value is None:
            raise ConfigError(f"Missing environment variable '{key}' at {path}")
        return env_value

    return _ENV_VAR_PATTERN.sub(replace, value)


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in override.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def apply_dotpath_overrides(
    base: Mapping[str, Any],
    overrides: Mapping[str, Any],
) -> dict[str, Any]:
    target = deepcopy(dict(base))
    for path, value in overrides.items():
        _set_dotpath(target, _split_dotpath(path), value)
    return target


def _split_dotpath(path: str | tuple[str, ...]) -> tuple[str, ...]:
    if isinstance(path, tuple):
        return path
    return tuple(path.split("/")) if "/" in path else tuple(path.split("."))


def _join_dotpath(path: tuple[str, ...]) -> str:
    # Logger names contain dots, so env-derived paths use '/' as separator.
    return "/".join(path)


def _set_dotpath(target: dict[str, Any], parts: tuple[str, ...], value: Any) -> None:
    label = ".".join(parts)
    if not parts or any(not part for part in parts):
        raise ConfigError(f"Invalid override path '{label}'")

    cursor: dict[str, Any] = target
    for part in parts[:-1]:
        next_value = cursor.get(part)
        if next_value is None:
            next_value = {}
            cursor[part] = next_value
        if not isinstance(next_value, dict):
            raise ConfigError(f"Override path '{label}' collides with non-mapping key '{part}'")
        cursor = next_value
    cursor[parts[-1]] = value


def _format_validation_error(prefix: str, exc: ValidationError) -> str:
    details: list[str] = []
    for error in exc.errors(include_url=False):
        loc = ".".join(str(part) for part in error["loc"])
        details.append(f"{prefix}.{loc}: {error['msg']}" if loc else f"{prefix}: {error['msg']}")
    return "; ".join(details)
