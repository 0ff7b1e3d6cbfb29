# config_utils.py - YAML Configuration System for Marvin
"""
Marvin configuration utilities with YAML file support.

Configuration Resolution Order (highest to lowest priority):
1. Environment variables (MARVIN_DATA_DIR, MARVIN_MEDIA_HOST, etc.)
2. marvin.yaml (or marvin.yml) in the working directory
3. ~/.marvin/config.yaml (global defaults)

Usage:
    from marvin.config_utils import get_config

    config = get_config()
    print(config.data_dir)
    print(config.summary_batch_size)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from marvin.errors import ConfigurationError, invalid_number_setting_error


logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}
FEATURE_STATES = {"off", "allowed", "on"}


@dataclass
class SisSettings:
    """Default stickiness behavior for SIS imports"""
    add_sis_stickiness: bool = False
    override_sis_stickiness: bool = False
    clear_sis_stickiness: bool = False


@dataclass
class MarvinConfig:
    """Complete Marvin configuration"""
    # Where CLI state (accounts, custom data) is kept
    data_dir: Path = field(default_factory=lambda: Path.cwd() / ".marvin")
    root_account_name: str = "Default Account"

    # Media URLs are relative when no host is set
    media_host: str = ""

    # Delayed message summaries
    summary_batch_size: int = 500

    # Plugins
    respondus_enabled: bool = False

    sis: SisSettings = field(default_factory=SisSettings)

    # Feature name -> "off" | "allowed" | "on"
    features: Dict[str, str] = field(default_factory=dict)

    # Extra settings from config file
    extra: Dict[str, Any] = field(default_factory=dict)

    # Track where values came from (for debugging)
    _sources: Dict[str, str] = field(default_factory=dict)

    @property
    def accounts_path(self) -> Path:
        return self.data_dir / "accounts.json"

    @property
    def custom_data_path(self) -> Path:
        return self.data_dir / "custom_data.json"


class ConfigLoader:
    """Load configuration from multiple sources"""

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.config = MarvinConfig(data_dir=self.base_dir / ".marvin")

    def load(self) -> MarvinConfig:
        """Load configuration from all sources in priority order"""
        # Load in reverse priority (lowest first, higher overwrites)
        self._load_global_config()
        self._load_yaml_config()
        self._load_env_vars()
        return self.config

    def _load_global_config(self):
        """Load ~/.marvin/config.yaml if it exists"""
        global_config = Path.home() / ".marvin" / "config.yaml"
        if global_config.exists():
            self._load_yaml_file(global_config, "global")

    def _load_yaml_config(self):
        """Load marvin.yaml (or marvin.yml) from the working directory"""
        for name in ("marvin.yaml", "marvin.yml"):
            yaml_path = self.base_dir / name
            if yaml_path.exists():
                self._load_yaml_file(yaml_path, name)
                return

    def _load_yaml_file(self, path: Path, source_name: str):
        """Load settings from a YAML file"""
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            logger.warning("[config:warn] Failed to parse %s: %s", path, e)
            return

        if not isinstance(data, dict):
            logger.warning("[config:warn] %s must be a mapping at top level", path)
            return

        if "data_dir" in data:
            data_dir = Path(str(data["data_dir"])).expanduser()
            if not data_dir.is_absolute():
                data_dir = path.parent / data_dir
            self.config.data_dir = data_dir
            self.config._sources["data_dir"] = source_name

        if "root_account_name" in data:
            self.config.root_account_name = str(data["root_account_name"])
            self.config._sources["root_account_name"] = source_name

        if "media_host" in data:
            self.config.media_host = str(data["media_host"] or "").rstrip("/")
            self.config._sources["media_host"] = source_name

        if "summary_batch_size" in data:
            self.config.summary_batch_size = _parse_int(
                "summary_batch_size", data["summary_batch_size"], source_name
            )
            self.config._sources["summary_batch_size"] = source_name

        if "respondus_enabled" in data:
            self.config.respondus_enabled = bool(data["respondus_enabled"])
            self.config._sources["respondus_enabled"] = source_name

        # Handle nested SIS settings
        if "sis" in data and isinstance(data["sis"], dict):
            sis = data["sis"]
            for key in ("add_sis_stickiness", "override_sis_stickiness", "clear_sis_stickiness"):
                if key in sis:
                    setattr(self.config.sis, key, bool(sis[key]))
                    self.config._sources[f"sis.{key}"] = source_name

        # Handle feature flags
        if "features" in data and isinstance(data["features"], dict):
            for name, state in data["features"].items():
                self.config.features[str(name)] = _feature_state(state)
            self.config._sources["features"] = source_name

        # Store any extra settings
        known_keys = {"data_dir", "root_account_name", "media_host", "summary_batch_size",
                      "respondus_enabled", "sis", "features"}
        for key, value in data.items():
            if key not in known_keys:
                self.config.extra[key] = value

    def _load_env_vars(self):
        """Load from environment variables (highest priority)"""
        if os.environ.get("MARVIN_DATA_DIR"):
            self.config.data_dir = Path(os.environ["MARVIN_DATA_DIR"]).expanduser()
            self.config._sources["data_dir"] = "env:MARVIN_DATA_DIR"

        if os.environ.get("MARVIN_ROOT_ACCOUNT_NAME"):
            self.config.root_account_name = os.environ["MARVIN_ROOT_ACCOUNT_NAME"]
            self.config._sources["root_account_name"] = "env:MARVIN_ROOT_ACCOUNT_NAME"

        if os.environ.get("MARVIN_MEDIA_HOST"):
            self.config.media_host = os.environ["MARVIN_MEDIA_HOST"].rstrip("/")
            self.config._sources["media_host"] = "env:MARVIN_MEDIA_HOST"

        batch_size = os.environ.get("MARVIN_SUMMARY_BATCH_SIZE")
        if batch_size:
            self.config.summary_batch_size = _parse_int(
                "summary_batch_size", batch_size, "env:MARVIN_SUMMARY_BATCH_SIZE"
            )
            self.config._sources["summary_batch_size"] = "env:MARVIN_SUMMARY_BATCH_SIZE"

        respondus = os.environ.get("MARVIN_RESPONDUS_ENABLED")
        if respondus is not None:
            self.config.respondus_enabled = respondus.lower() in TRUTHY
            self.config._sources["respondus_enabled"] = "env:MARVIN_RESPONDUS_ENABLED"


def _parse_int(key: str, value: Any, source: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise invalid_number_setting_error(key, value, source)
    if number < 1:
        raise invalid_number_setting_error(key, value, source)
    return number


def _feature_state(value: Any) -> str:
    if value is True:
        return "on"
    if value is False or value is None:
        return "off"
    state = str(value).lower()
    if state not in FEATURE_STATES:
        raise ConfigurationError(
            message=f"Unknown feature state {value!r}",
            suggestion="Use one of: off, allowed, on",
        )
    return state


# ============================================================================
# Public API
# ============================================================================

def get_config(base_dir: Optional[Path] = None) -> MarvinConfig:
    """
    Get complete Marvin configuration.

    Args:
        base_dir: Directory holding marvin.yaml (defaults to cwd)

    Returns:
        MarvinConfig with all settings resolved
    """
    loader = ConfigLoader(base_dir)
    return loader.load()


def create_config_template(include_comments: bool = True) -> str:
    """
    Generate a marvin.yaml template.

    Args:
        include_comments: Whether to include explanatory comments

    Returns:
        YAML string ready to write to file
    """
    if include_comments:
        return '''# Marvin Configuration File

# Where imported accounts and custom data are stored
data_dir: .marvin

# Name of the root account SIS imports hang accounts under
root_account_name: Default Account

# Host used to build media URLs (leave empty for relative URLs)
media_host: https://canvas.yourinstitution.edu

# Maximum number of summary jobs per serial batch
summary_batch_size: 500

# SIS import stickiness defaults
sis:
  add_sis_stickiness: false      # Fields written by imports become sticky
  override_sis_stickiness: false # Imports may overwrite sticky fields
  clear_sis_stickiness: false    # Imports release sticky fields they write

# Feature flags: off | allowed | on
features:
  quizzes_next: off
'''
    else:
        return '''data_dir: .marvin
root_account_name: Default Account
media_host: ""
summary_batch_size: 500
sis:
  add_sis_stickiness: false
  override_sis_stickiness: false
  clear_sis_stickiness: false
features: {}
'''
