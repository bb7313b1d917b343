"""Config validation errors."""
from api_standards.config.validation.errors import (
    InvalidSettingValueError,
    MissingRequiredSettingError,
    SettingsError,
)

__all__ = ["InvalidSettingValueError", "MissingRequiredSettingError", "SettingsError"]
