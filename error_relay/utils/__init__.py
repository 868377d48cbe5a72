"""Utility modules"""

from .config import load_config, AppConfig
from .logger import setup_logger, setup_from_config
from .retry import retry_async

__all__ = ["load_config", "AppConfig", "setup_logger", "setup_from_config", "retry_async"]
