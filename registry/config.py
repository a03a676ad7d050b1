"""
Registry Configuration System

Configuration management with YAML files, environment variables and
validation.

Configuration Sources (in order of precedence):
    1. Environment variables (REGISTRY_*)
    2. Runtime overrides / loaded files
    3. User config file (~/.registry/config.yaml)
    4. Project config file (./registry.yaml, ./config/registry.yaml)
    5. Default values

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

from registry.hardening import Validators

T = TypeVar("T")


class ConfigError(Exception):
    """Configuration error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding and validation.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)

    def get(self) -> T:
        """Get the current value; environment values are validated on read."""
        if self.env_var and self.env_var in os.environ:
            value = self._coerce(os.environ[self.env_var])
            if self.validator and not self.validator(value):
                raise ConfigError(f"Invalid value for {self.env_var}: {value!r}")
            return value
        return self._value if self._value is not None else self.default

    def set(self, value: Any) -> None:
        """Set the value with validation."""
        if isinstance(value, str) and not isinstance(self.default, str):
            value = self._coerce(value)
        if self.validator and not self.validator(value):
            raise ConfigError(f"Invalid value for config: {value!r}")
        self._value = value

    def reset(self) -> None:
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        try:
            if target_type == bool:
                return value.strip().lower() in ("true", "1", "yes", "on")  # type: ignore
            elif target_type == int:
                return int(value)  # type: ignore
            return value  # type: ignore
        except ValueError as e:
            raise ConfigError(f"Cannot convert {value!r} to {target_type.__name__}") from e


@dataclass
class RegistrySection:
    """Identity and storage settings."""
    admin: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="",
        env_var="REGISTRY_ADMIN",
        description="Administrator identity fixed at registry construction",
    ))
    state_file: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="registry-state.json",
        env_var="REGISTRY_STATE_FILE",
        description="Path of the persisted ledger",
        validator=lambda x: bool(x),
    ))


@dataclass
class LimitsSection:
    """Bounds applied to registry inputs."""
    max_batch_size: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=100,
        env_var="REGISTRY_MAX_BATCH",
        description="Maximum number of amounts in one bulk mint",
        validator=lambda x: 1 <= x <= Validators.MAX_BATCH_SIZE,
    ))
    max_range_count: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=100,
        env_var="REGISTRY_MAX_RANGE",
        description="Maximum number of records in one range scan",
        validator=lambda x: 1 <= x <= Validators.MAX_RANGE_COUNT,
    ))
    max_note_length: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=256,
        env_var="REGISTRY_MAX_NOTE",
        description="Maximum note length in characters",
        validator=lambda x: 1 <= x <= Validators.MAX_NOTE_LENGTH,
    ))
    dormant_sentinel: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="DORMANT",
        env_var="REGISTRY_DORMANT_SENTINEL",
        description="Note value marking an asset dormant",
        validator=lambda x: 0 < len(x) <= Validators.MAX_NOTE_LENGTH,
    ))


@dataclass
class ObservabilitySection:
    """Logging and audit settings."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="REGISTRY_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    audit_enabled: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="REGISTRY_AUDIT_ENABLED",
        description="Record a hash-chained audit trail",
    ))


@dataclass
class RegistryConfig:
    """
    Root configuration for the registry.

    Aggregates all sections and provides dict/YAML export.
    """
    registry: RegistrySection = field(default_factory=RegistrySection)
    limits: LimitsSection = field(default_factory=LimitsSection)
    observability: ObservabilitySection = field(default_factory=ObservabilitySection)

    def to_dict(self) -> Dict[str, Any]:
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Each manager owns an independent RegistryConfig.
    """

    DEFAULT_PATHS = (
        Path("registry.yaml"),
        Path("config/registry.yaml"),
        Path.home() / ".registry" / "config.yaml",
    )

    def __init__(self, config: Optional[RegistryConfig] = None):
        self._config = config or RegistryConfig()

    @property
    def config(self) -> RegistryConfig:
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration root must be a mapping: {path}")
            self._apply_dict(data)

    def load_defaults(self) -> Optional[Path]:
        """Load the first default configuration file that exists."""
        for path in self.DEFAULT_PATHS:
            if path.exists():
                self.load_from_file(path)
                return path
        return None

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {prefix}{key}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, f"{prefix}{key}.")
                else:
                    raise ConfigError(f"Invalid config section: {prefix}{key}")

        apply_to_config(self._config, data, "")

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: manager.set("limits.max_batch_size", 50)
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: manager.get("registry.admin")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        if hasattr(obj, "__dataclass_fields__"):
            return {k: getattr(obj, k).get() for k in obj.__dataclass_fields__}
        return obj

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value!r}")
                except ConfigError as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration schema for documentation."""
        schema: Dict[str, Any] = {"properties": {}}

        def extract_schema(obj: Any, properties: Dict[str, Any]) -> None:
            if isinstance(obj, ConfigValue):
                properties["type"] = type(obj.default).__name__
                properties["default"] = str(obj.default)
                properties["description"] = obj.description
                if obj.env_var:
                    properties["env_var"] = obj.env_var
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    properties[field_name] = {}
                    extract_schema(getattr(obj, field_name), properties[field_name])

        extract_schema(self._config, schema["properties"])
        return schema


_default_manager: Optional[ConfigManager] = None
_default_lock = threading.Lock()


def get_config_manager() -> ConfigManager:
    """Get the shared configuration manager."""
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            _default_manager = ConfigManager()
        return _default_manager
