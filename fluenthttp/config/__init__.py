"""Configuration module for fluenthttp."""

from .http import HTTPSettings, RedirectConfig
from .logging import LoggingSettings
from .settings import Settings


__all__ = ["HTTPSettings", "LoggingSettings", "RedirectConfig", "Settings"]
