"""Layered settings lookup for the relay.

A value is taken from the first source that has it:
environment variable, then a dotted path in config.json, then the built-in
default. Environment strings are coerced to the type of the default.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "RELAY_CONFIG"
_TRUE_STRINGS = ("true", "1", "yes", "on")


def _coerce(env_var: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the default's type, keeping the default when it does not parse."""
    # bool first: it is an int subclass
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE_STRINGS
    for kind in (int, float):
        if isinstance(default, kind):
            try:
                return kind(raw)
            except ValueError:
                logger.warning(f"Ignoring {env_var}={raw!r}: expected {kind.__name__}")
                return default
    return raw


class ConfigLoader:
    """Resolves settings from env, config.json and defaults"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or os.getenv(CONFIG_PATH_ENV, "config.json"))
        self.config_data = self._read_config_file()

    def _read_config_file(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load {self.config_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {self.config_path}: top level must be an object")
            return {}
        logger.debug(f"Loaded relay config from {self.config_path}")
        return data

    def lookup(self, config_path: str) -> Any:
        """Value at a dotted path such as "thinking.min_signature_length", or None."""
        node: Any = self.config_data
        for key in config_path.split('.'):
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        return node

    def get(self, env_var: str, config_path: str, default: Any) -> Any:
        """Get a configuration value with priority: env > config.json > default

        Args:
            env_var: Environment variable name to check
            config_path: Dot-separated path in config.json (e.g., "server.port")
            default: Default value if not found elsewhere
        """
        raw = os.getenv(env_var)
        if raw is not None:
            return _coerce(env_var, raw, default)

        value = self.lookup(config_path)
        return default if value is None else value

    def get_all_config(self) -> Dict[str, Any]:
        return dict(self.config_data)


_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    """Get or create the process-wide ConfigLoader used by settings.py"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def reset_config_loader() -> None:
    """Forget the cached loader so the next call re-reads config.json"""
    global _config_loader
    _config_loader = None
