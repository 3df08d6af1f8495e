"""Configuration module for the money market engine."""

from .settings import EngineSettings, get_settings

__all__ = ["EngineSettings", "get_settings"]
