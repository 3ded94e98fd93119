"""
Loads config/config.yaml into a validated AppConfig.

Resolution order, last wins:
1. Model defaults in settings.py
2. config/config.yaml, with ${VAR} / ${VAR:default} placeholders resolved
   against the environment (a .env file is loaded first)
3. Direct environment overrides (GRPC_ENDPOINT, REDIS_HOST, ...)
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv
from pydantic import ValidationError
import logging

from .settings import AppConfig
from pumpswap_stream.core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)

# src/pumpswap_stream/config -> repository root
PROJECT_ROOT = Path(__file__).resolve().parents[3]

_TRUE_VALUES = {"1", "true", "yes", "on"}

# Sections that environment overrides write into
_OVERRIDE_SECTIONS = ("system", "geyser", "registry", "redis", "storage")


# ============================================================================
# ConfigLoader
# ============================================================================

class ConfigLoader:
    """
    YAML + environment configuration for the stream service.

    Usage:
        loader = ConfigLoader()
        config = loader.load_app_config()
        config.geyser.endpoint
    """

    def __init__(self, config_dir: Optional[Path] = None, env_file: Optional[Path] = None):
        """
        Args:
            config_dir: Directory holding config.yaml (default: <repo>/config)
            env_file: dotenv file to load (default: <repo>/.env); missing is fine
        """
        self.config_dir = Path(config_dir) if config_dir else (PROJECT_ROOT / "config")
        self._cache: Dict[str, Any] = {}

        load_dotenv(env_file or (PROJECT_ROOT / ".env"))
        logger.debug(f"Config directory: {self.config_dir}")

    def load_yaml(self, config_name: str) -> Dict[str, Any]:
        """
        Read <config_dir>/<config_name>.yaml and resolve its placeholders.

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigurationError: If the file is not valid YAML
        """
        config_path = self.config_dir / f"{config_name}.yaml"

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, 'r') as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        return self._replace_env_vars(raw)

    def _replace_env_vars(self, node: Any) -> Any:
        """
        Resolve ${VAR} and ${VAR:default} string values, recursively.

        A placeholder that resolves to "" becomes None so Optional fields
        (x_token, password, log_file) validate as unset.
        """
        if isinstance(node, dict):
            return {k: self._replace_env_vars(v) for k, v in node.items()}
        if isinstance(node, list):
            return [self._replace_env_vars(item) for item in node]
        if not (isinstance(node, str) and node.startswith("${") and node.endswith("}")):
            return node

        expr = node[2:-1]
        if ":" in expr:
            name, default = expr.split(":", 1)
            value = os.getenv(name.strip(), default.strip())
        else:
            name = expr.strip()
            value = os.getenv(name)
            if value is None:
                logger.warning(f"{name} is not set; {node} resolves to empty")
                return None

        return value if value != "" else None

    def load_app_config(self, use_cache: bool = True) -> AppConfig:
        """
        Build the AppConfig.

        Raises:
            ConfigurationError: On invalid YAML, a bad override or failed validation
        """
        if use_cache and "app_config" in self._cache:
            return self._cache["app_config"]

        try:
            data: Dict[str, Any] = self.load_yaml("config")
        except FileNotFoundError:
            logger.warning(f"No config.yaml in {self.config_dir}; using defaults")
            data = {}

        data = self._apply_env_overrides(data)

        try:
            config = AppConfig(**data)
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        logger.info(
            f"Configuration loaded ({config.system.environment}, "
            f"endpoint {config.geyser.endpoint}, commitment {config.geyser.commitment})"
        )

        if use_cache:
            self._cache["app_config"] = config
        return config

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        for section in _OVERRIDE_SECTIONS:
            if not isinstance(config.get(section), dict):
                config[section] = {}

        if env_val := os.getenv("ENVIRONMENT"):
            config["system"]["environment"] = env_val

        if env_val := os.getenv("LOG_LEVEL"):
            config["system"]["log_level"] = env_val.upper()

        if env_val := os.getenv("GRPC_ENDPOINT"):
            config["geyser"]["endpoint"] = env_val

        if env_val := os.getenv("GRPC_X_TOKEN"):
            config["geyser"]["x_token"] = env_val

        if env_val := os.getenv("REDIS_HOST"):
            config["redis"]["host"] = env_val

        if env_val := os.getenv("REDIS_PORT"):
            try:
                config["redis"]["port"] = int(env_val)
            except ValueError as e:
                raise ConfigurationError(f"REDIS_PORT must be an integer, got {env_val!r}") from e

        if env_val := os.getenv("DATABASE_PATH"):
            config["storage"]["database_path"] = env_val

        if env_val := os.getenv("TRACK_POOL_CREATION"):
            config["registry"]["track_pool_creation"] = env_val.strip().lower() in _TRUE_VALUES

        return config

    def reload(self) -> AppConfig:
        """Drop the cache and load again from disk and environment."""
        self._cache.clear()
        return self.load_app_config(use_cache=False)

    def clear_cache(self):
        self._cache.clear()


# ============================================================================
# Shared loader
# ============================================================================

_config_loader: Optional[ConfigLoader] = None


def get_config_loader() -> ConfigLoader:
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def get_app_config() -> AppConfig:
    """Cached AppConfig from the shared loader."""
    return get_config_loader().load_app_config()
