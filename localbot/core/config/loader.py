"""Configuration loader with multi-level hierarchy."""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from ..errors import ConfigurationError
from ..models.base import validate_identifier

# Load environment variables from .env file
load_dotenv()

ENV_PREFIX = "LOCALBOT_"

# Environment variables read directly by the loader, never merged into config
_RESERVED_ENV = {"LOCALBOT_ENV", "LOCALBOT_CONFIG_DIR"}


class ConfigLoader:
    """Load and merge configuration from multiple sources.

    Hierarchy (later overrides earlier):
    1. Default config (config/default.yaml)
    2. Environment config (config/environments/{env}.yaml)
    3. Chatbot config (config/tenants/{chatbot_id}.yaml) [optional]
    4. Programmatic overrides [optional]
    5. Environment variables (LOCALBOT_*)
    """

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize config loader.

        Args:
            config_dir: Configuration directory (defaults to LOCALBOT_CONFIG_DIR or ./config)
        """
        if config_dir is None:
            # Default to config directory in project root
            env_dir = os.getenv("LOCALBOT_CONFIG_DIR")
            config_dir = env_dir or Path(__file__).parent.parent.parent.parent / "config"
        self.config_dir = Path(config_dir)

    def load(
        self,
        chatbot_id: str | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Load configuration with full hierarchy.

        Args:
            chatbot_id: Chatbot (tenant) identifier for per-tenant tuning
            overrides: Configuration dict provided programmatically

        Returns:
            Merged configuration dictionary
        """
        # 1. Load default config
        config = self._load_yaml(self.config_dir / "default.yaml")

        # 2. Merge environment-specific config
        env = os.getenv("LOCALBOT_ENV", "development")
        env_config_path = self.config_dir / f"environments/{env}.yaml"
        if env_config_path.exists():
            config = self._deep_merge(config, self._load_yaml(env_config_path))

        # 3. Merge chatbot config (if applicable)
        if chatbot_id:
            validate_identifier(chatbot_id, "chatbot_id")
            tenant_config_path = self.config_dir / f"tenants/{chatbot_id}.yaml"
            if tenant_config_path.exists():
                config = self._deep_merge(config, self._load_yaml(tenant_config_path))

        # 4. Merge programmatic overrides
        if overrides:
            config = self._deep_merge(config, overrides)

        # 5. Override with environment variables
        return self._apply_env_overrides(config)

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}

        with open(path) as f:
            content = yaml.safe_load(f)
            return content if content else {}

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            Merged dictionary (base is not modified)
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                # Recursively merge nested dicts
                result[key] = self._deep_merge(result[key], value)
            else:
                # Override value
                result[key] = value
        return result

    def _apply_env_overrides(self, config: dict[str, Any]) -> dict[str, Any]:
        """Override config with environment variables.

        Variables starting with LOCALBOT_ override config values. Segments are
        matched against existing keys first, so LOCALBOT_RETRIEVAL_TOP_K
        overrides config["retrieval"]["top_k"].

        Args:
            config: Configuration dictionary

        Returns:
            Config with environment variable overrides
        """
        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
                continue
            # Drop the prefix and split by underscore
            parts = key[len(ENV_PREFIX):].lower().split("_")
            path = self._resolve_path(config, parts)
            if path:
                self._set_nested(config, path, value)

        return config

    def _resolve_path(self, config: dict[str, Any], parts: list[str]) -> list[str]:
        """Group underscore-separated segments into existing config keys."""
        path: list[str] = []
        current: Any = config
        i = 0
        while i < len(parts):
            match = None
            if isinstance(current, dict):
                # Longest existing key wins
                for j in range(len(parts), i, -1):
                    candidate = "_".join(parts[i:j])
                    if candidate in current:
                        match = (candidate, j)
                        break
            if match is None:
                # Unknown remainder becomes a single new leaf key
                path.append("_".join(parts[i:]))
                return path
            key, i = match
            path.append(key)
            current = current[key]
        return path

    def _set_nested(self, config: dict[str, Any], path: list[str], value: str) -> None:
        current = config
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            elif not isinstance(current[key], dict):
                # Can't traverse non-dict
                return
            current = current[key]

        # Set final value, attempting type conversion
        current[path[-1]] = self._convert_value(value)

    def _convert_value(self, value: str) -> Any:
        """Convert string value to bool, int, float, or leave as str."""
        # Boolean
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        # Number
        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        # String
        return value


# Global config loader instance
_config_loader: ConfigLoader | None = None


def get_config_loader() -> ConfigLoader:
    """Get global configuration loader instance."""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def load_config(
    chatbot_id: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Load configuration (convenience function).

    Args:
        chatbot_id: Chatbot identifier
        overrides: Programmatic configuration overrides

    Returns:
        Merged configuration dictionary
    """
    loader = get_config_loader()
    return loader.load(chatbot_id=chatbot_id, overrides=overrides)


def require_env(name: str) -> str:
    """Return a required secret from the environment.

    Raises:
        ConfigurationError: If the variable is unset or blank
    """
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} is not set in environment variables.")
    return value
