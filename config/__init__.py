"""Configuration management for repopress."""

from .loader import SettingsLoader, load_settings
from .schema import EditorSettings

__all__ = ["EditorSettings", "SettingsLoader", "load_settings"]
