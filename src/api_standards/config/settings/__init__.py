"""Config settings – 12-factor env-based configuration."""
from api_standards.config.settings.api import (
    ApiStandardsSettings,
    CorsSettings,
    FileUploadSettings,
    JwtSettings,
)
from api_standards.config.settings.base import Settings
from api_standards.config.settings.loaders import DotenvSettingsLoader, EnvSettingsLoader, SettingsLoader

__all__ = [
    "ApiStandardsSettings",
    "CorsSettings",
    "DotenvSettingsLoader",
    "EnvSettingsLoader",
    "FileUploadSettings",
    "JwtSettings",
    "Settings",
    "SettingsLoader",
]
