"""Configuration loading & validation.

Precedence (last wins): base.yaml → overrides.local.yaml → ENV (ORTMODEL__*).

- `schema_version` missing → assume 1, notice on stdout.
- Each known section is validated by its own pydantic schema
  (`ortmodel.config.schemas.*`); unknown keys are rejected.
"""
from __future__ import annotations

import os
import pathlib
import threading
from functools import lru_cache
from typing import Any, Dict, Type

import yaml
from pydantic import BaseModel, ConfigDict

from ortmodel import metrics
from ortmodel.errors import validate_error_type

from .schemas.model import ModelDefaultsConfig
from .schemas.registry import RegistryConfig
from .schemas.observability import LoggingConfig


class AggregatedConfig(BaseModel):
    schema_version: int = 1
    model: ModelDefaultsConfig = ModelDefaultsConfig()
    registry: RegistryConfig = RegistryConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = ConfigDict(extra="forbid")


DEFAULT_CONFIG_DIR = "configs"
ENV_PREFIX = "ORTMODEL__"

SUB_SCHEMA_CLASSES: Dict[str, Type[BaseModel]] = {
    "model": ModelDefaultsConfig,
    "registry": RegistryConfig,
    "logging": LoggingConfig,
}


class ConfigError(Exception):
    pass


def _load_yaml_if_exists(path: pathlib.Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _merge_dict(
    base: Dict[str, Any], override: Dict[str, Any]
) -> Dict[str, Any]:
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            base[k] = _merge_dict(base[k], v)
        else:
            base[k] = v
    return base


def _cast_env_value(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        return value


def _apply_env(cfg: Dict[str, Any]) -> None:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in os.environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = env_key[prefix_len:].lower().split("__")
        target = cfg
        for part in path_parts[:-1]:
            if part not in target or not isinstance(target[part], dict):
                target[part] = {}
            target = target[part]
        target[path_parts[-1]] = _cast_env_value(value)
        dotted_path = ".".join(path_parts)
        metrics.inc("env_override_total", {"path": dotted_path})
        print(
            f"[config-env-override] path={dotted_path} value=*** source=env"
        )  # noqa: T201


_lock = threading.Lock()


def _resolve_config_dir() -> pathlib.Path:
    """Resolve config directory each call honoring env var changes."""
    return pathlib.Path(os.getenv("ORTMODEL_CONFIG_DIR", DEFAULT_CONFIG_DIR))


def _migrate_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    if "schema_version" not in data:
        print(
            "[config-migration] schema_version missing → assuming 1"
        )  # noqa: T201
        data["schema_version"] = 1
    return data


def _normalize_and_validate(raw: Dict[str, Any]) -> None:
    """Cross-field bounds validation.

    Validations (error → raise):
      - model.ir_version >= 1
    """
    errors: list[tuple[str, str, str]] = []  # (path, code, msg)
    model = raw.get("model")
    if isinstance(model, dict):
        ir_version = model.get("ir_version")
        if isinstance(ir_version, int) and ir_version < 1:
            errors.append(
                ("model.ir_version", "config-out-of-range", ">=1 required")
            )
    if errors:
        for path, code, _ in errors:
            metrics.inc(
                "config_validation_errors_total",
                {"path": path, "code": validate_error_type(code)},
            )
        details = ", ".join(f"{p}:{c}:{m}" for p, c, m in errors)
        raise ConfigError(f"config validation failed: {details}")


def _validate_sub_schemas(raw: Dict[str, Any]) -> Dict[str, Any]:
    validated: Dict[str, Any] = {}
    for name, cls in SUB_SCHEMA_CLASSES.items():
        if name in raw:
            try:
                validated[name] = cls.model_validate(raw[name] or {})
            except Exception as e:  # noqa: BLE001
                metrics.inc(
                    "config_validation_errors_total",
                    {"path": name, "code": validate_error_type("config-invalid")},
                )
                raise ConfigError(
                    f"Validation failed for section '{name}': {e}"
                ) from e
    return validated


@lru_cache(maxsize=1)
def get_config() -> AggregatedConfig:  # noqa: D401
    with _lock:
        cfg_dir = _resolve_config_dir()
        base_cfg = _load_yaml_if_exists(cfg_dir / "base.yaml")
        overrides_cfg = _load_yaml_if_exists(cfg_dir / "overrides.local.yaml")
        merged = _merge_dict(base_cfg, overrides_cfg)
        _apply_env(merged)
        migrated = _migrate_legacy(merged)
        _normalize_and_validate(migrated)
        validated_sub = _validate_sub_schemas(migrated)
        try:
            return AggregatedConfig.model_validate({**migrated, **validated_sub})
        except Exception as e:  # noqa: BLE001
            raise ConfigError(str(e)) from e


def clear_config_cache() -> None:
    """Clear cached config (primarily for tests)."""
    get_config.cache_clear()


def as_dict() -> Dict[str, Any]:
    return get_config().model_dump()
