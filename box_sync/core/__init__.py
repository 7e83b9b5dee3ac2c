"""Configuration, logging, and error primitives."""

from .config import BoxSettings, get_settings
from .logging import configure_logging

__all__ = ["BoxSettings", "configure_logging", "get_settings"]
