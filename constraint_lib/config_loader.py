"""Configuration loading: bundled defaults, optional override file, schema validation."""

import copy
import logging
import os
import urllib.parse
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import jsonschema
import yaml

from .exceptions import ConfigurationError
from .resource_fetcher import ResourceFetcher

logger = logging.getLogger(__name__)

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "parser": {
            "type": "object",
            "additionalProperties": False,
            "properties": {"strict_mode": {"type": "boolean"}},
        },
        "validation": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "single_failure_mode": {"type": "boolean"},
                "strict_dispatch": {"type": "boolean"},
            },
        },
        "messages": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "default_locale": {"type": ["string", "null"]},
                "warning_log": {"type": "boolean"},
                "key_prefix": {"type": "string", "minLength": 1},
                "bundles": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "additionalProperties": False,
                        "required": ["base_name"],
                        "properties": {
                            "base_name": {"type": "string", "minLength": 1},
                            "preload": {"type": "array", "items": {"type": "string"}},
                        },
                    },
                },
            },
        },
        "handlers": {
            "type": "array",
            "items": {"type": "string", "pattern": "^[\\w.]+:[\\w.]+$"},
        },
        "rule_tables": {"type": "array", "items": {"type": "string"}},
        "cache_dir": {"type": ["string", "null"]},
    },
}


@dataclass(frozen=True)
class BundleConfig:
    """An external message bundle and the locales to load eagerly."""

    base_name: str
    preload: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidatorConfig:
    """Resolved runtime settings."""

    strict_mode: bool = True
    single_failure_mode: bool = False
    strict_dispatch: bool = False
    default_locale: Optional[str] = None
    warning_log: bool = True
    key_prefix: str = "validator.handler"
    bundles: Tuple[BundleConfig, ...] = ()
    handlers: Tuple[str, ...] = ()
    rule_tables: Tuple[str, ...] = ()
    cache_dir: Optional[str] = None
    base_dir: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[str] = None) -> "ValidatorConfig":
        """Build a config from a schema-valid configuration document."""
        parser = data.get("parser") or {}
        validation = data.get("validation") or {}
        messages = data.get("messages") or {}
        return cls(
            strict_mode=parser.get("strict_mode", True),
            single_failure_mode=validation.get("single_failure_mode", False),
            strict_dispatch=validation.get("strict_dispatch", False),
            default_locale=messages.get("default_locale"),
            warning_log=messages.get("warning_log", True),
            key_prefix=messages.get("key_prefix", "validator.handler"),
            bundles=tuple(
                BundleConfig(b["base_name"], tuple(b.get("preload") or ()))
                for b in messages.get("bundles") or ()
            ),
            handlers=tuple(data.get("handlers") or ()),
            rule_tables=tuple(data.get("rule_tables") or ()),
            cache_dir=data.get("cache_dir"),
            base_dir=base_dir,
        )

    def fetcher(self) -> ResourceFetcher:
        """ResourceFetcher resolving relative paths against the config file's directory."""
        return ResourceFetcher(cache_dir=self.cache_dir, base_dir=self.base_dir)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Loads the bundled local-config.yaml and an optional override on top of it."""

    def __init__(self, config_uri: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_uri: Optional override file (path, file:// or http(s):// URI)

        Raises:
            ConfigurationError: If the override is missing or the merged
                configuration does not match CONFIG_SCHEMA
        """
        config_file = files('constraint_lib').joinpath('local-config.yaml')
        self.local_config_path = str(config_file)
        with config_file.open('r', encoding='utf-8') as f:
            self.local_config = yaml.safe_load(f) or {}

        self.config_uri = config_uri
        self.base_dir = self._base_dir(config_uri)
        self.override_config: Dict[str, Any] = {}
        if config_uri:
            self.override_config = self._load_config_from_uri(config_uri)

        self.merged_config = _merge(self.local_config, self.override_config)
        try:
            jsonschema.validate(self.merged_config, CONFIG_SCHEMA)
        except jsonschema.ValidationError as e:
            location = "/".join(str(p) for p in e.absolute_path) or "<root>"
            raise ConfigurationError(f"Invalid configuration at {location}: {e.message}") from e

        self.config = ValidatorConfig.from_dict(self.merged_config, base_dir=self.base_dir)
        logger.info(
            "Configuration loaded",
            extra={'config_uri': config_uri or self.local_config_path}
        )

    @staticmethod
    def _base_dir(config_uri: Optional[str]) -> str:
        if config_uri:
            parsed = urllib.parse.urlparse(config_uri)
            if not parsed.scheme or len(parsed.scheme) == 1:
                return str(Path(config_uri).resolve().parent)
            if parsed.scheme == "file":
                return str(Path(urllib.parse.unquote(parsed.path)).parent)
        return os.getcwd()

    def _load_config_from_uri(self, uri: str) -> Dict[str, Any]:
        """Load an override config via ResourceFetcher (relative paths from cwd)."""
        fetcher = ResourceFetcher(cache_dir=self.local_config.get("cache_dir"), base_dir=os.getcwd())
        try:
            data = fetcher.load_yaml(uri)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config {uri}: {e}") from e
        if data is None:
            raise ConfigurationError(f"Config not found: {uri}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config {uri} must be a mapping")
        return data

    def get_config(self) -> ValidatorConfig:
        return self.config

    def get_local_config(self) -> Dict[str, Any]:
        """Get the bundled default configuration."""
        return self.local_config

    def get_merged_config(self) -> Dict[str, Any]:
        """Get the bundled defaults with the override applied."""
        return self.merged_config
