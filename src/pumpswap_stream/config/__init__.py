"""
Configuration management module.

Loads config/config.yaml plus environment overrides into validated models.
"""

from .loader import ConfigLoader, get_config_loader, get_app_config
from .settings import AppConfig

__all__ = ['ConfigLoader', 'get_config_loader', 'get_app_config', 'AppConfig']
