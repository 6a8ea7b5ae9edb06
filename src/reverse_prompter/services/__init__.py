"""Service layer helpers."""

from .settings import SecretVault, Settings, SettingsStore, validate_settings

__all__ = ["SecretVault", "Settings", "SettingsStore", "validate_settings"]
