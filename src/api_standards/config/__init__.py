"""Config – 12-factor settings and loaders."""

from api_standards.config.settings import (
    ApiStandardsSettings,
    CorsSettings,
    DotenvSettingsLoader,
    EnvSettingsLoader,
    FileUploadSettings,
    JwtSettings,
    Settings,
    SettingsLoader,
)
from api_standards.config.validation import (
    InvalidSettingValueError,
    MissingRequiredSettingError,
    SettingsError,
)

__all__ = [
    "ApiStandardsSettings",
    "CorsSettings",
    "DotenvSettingsLoader",
    "EnvSettingsLoader",
    "FileUploadSettings",
    "InvalidSettingValueError",
    "JwtSettings",
    "MissingRequiredSettingError",
    "Settings",
    "SettingsError",
    "SettingsLoader",
]
