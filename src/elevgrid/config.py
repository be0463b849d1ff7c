"""Request configuration loading, validation, and credential resolution."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from elevgrid.dem.mosaic import RESAMPLING_CHOICES
from elevgrid.errors import ConfigurationError
from elevgrid.providers import registry
from elevgrid.providers.base import ProviderSpec

ENV_CONFIG_PATH = "ELEVGRID_CONFIG"


@dataclass(frozen=True)
class ElevationConfig:
    """Normalized options for a single raster or point request."""

    provider: str = "aws"
    zoom: int | None = None
    api_key: str | None = None
    resampling: str = "nearest"
    max_workers: int = 8
    timeout: float | None = None
    request_timeout: float | None = 30.0
    retries: int = 3
    max_tiles: int = 1000
    target_crs: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


RECOGNIZED_OPTIONS = frozenset(ElevationConfig.__dataclass_fields__)


def _check_unknown(options: Mapping[str, Any]) -> None:
    unknown = sorted(set(options) - RECOGNIZED_OPTIONS)
    if unknown:
        raise ConfigurationError(f"Unknown configuration option(s): {', '.join(unknown)}")


def _optional_float(name: str, value: Any) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value!r}")
    return number


def _int(name: str, value: Any, *, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc
    if number < minimum or number != float(value):
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return number


def normalize_config(payload: Mapping[str, Any]) -> ElevationConfig:
    """Validate raw options and coerce them into an ElevationConfig."""
    _check_unknown(payload)
    values = dict(payload)
    if "provider" in values:
        values["provider"] = str(values["provider"]).strip().lower()
    if values.get("zoom") is not None:
        values["zoom"] = _int("zoom", values["zoom"])
    if "resampling" in values:
        values["resampling"] = str(values["resampling"]).lower()
        if values["resampling"] not in RESAMPLING_CHOICES:
            raise ConfigurationError(
                f"resampling must be one of {', '.join(RESAMPLING_CHOICES)}, "
                f"got {payload['resampling']!r}"
            )
    for key in ("max_workers", "retries", "max_tiles"):
        if key in values:
            values[key] = _int(key, values[key])
    for key in ("timeout", "request_timeout"):
        if key in values:
            values[key] = _optional_float(key, values[key])
    if values.get("api_key") is not None:
        values["api_key"] = str(values["api_key"])
    if values.get("target_crs") is not None:
        values["target_crs"] = str(values["target_crs"])
    return ElevationConfig(**values)


def load_config(path: Path) -> ElevationConfig:
    """Load and validate a JSON configuration file."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Unable to read config file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError("Config file must contain a JSON object.")
    return normalize_config(payload)


def default_config() -> ElevationConfig:
    """Return the config named by ELEVGRID_CONFIG, or built-in defaults."""
    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        return load_config(Path(env_path))
    return ElevationConfig()


def resolve_api_key(explicit: str | None, env_var: str | None) -> str | None:
    """Return the explicit credential, else the named environment variable."""
    if explicit:
        return explicit
    if env_var:
        value = os.environ.get(env_var, "").strip()
        if value:
            return value
    return None


def provider_spec(name: str, kind: str) -> ProviderSpec:
    """Look up provider capabilities for a tile or point request."""
    if kind == "tile":
        return registry.get_tile_provider(name).spec()
    if kind == "point":
        return registry.get_point_provider(name).spec()
    raise ConfigurationError(f"Unknown request kind: {kind}")


def resolve_config(
    kind: str = "tile",
    *,
    base: ElevationConfig | None = None,
    **overrides: Any,
) -> ElevationConfig:
    """Merge overrides onto a base config and resolve credentials once."""
    _check_unknown(overrides)
    values = (base or ElevationConfig()).as_dict()
    values.update({key: value for key, value in overrides.items() if value is not None})
    config = normalize_config(values)

    spec = provider_spec(config.provider, kind)
    api_key = resolve_api_key(config.api_key, spec.api_key_env)
    if spec.requires_api_key and not api_key:
        raise ConfigurationError(
            f"Provider '{spec.name}' requires an API key; pass api_key or set {spec.api_key_env}."
        )
    return replace(config, api_key=api_key)
