"""Config validation errors."""
from api_standards.kernel.errors import ConfigurationError


class SettingsError(ConfigurationError):
    """Raised when configuration is invalid or loading failed."""
    default_code = "settings_error"


class MissingRequiredSettingError(SettingsError):
    """A required environment variable / setting is absent."""
    default_code = "missing_required_setting"

    def __init__(self, setting_name: str) -> None:
        super().__init__(f"Required setting '{setting_name}' is missing")
        self.setting_name = setting_name


class InvalidSettingValueError(SettingsError):
    """A setting's value is present but semantically invalid."""
    default_code = "invalid_setting_value"

    def __init__(self, setting_name: str, value: object, reason: str) -> None:
        super().__init__(
            f"Setting '{setting_name}' has invalid value {value!r}: {reason}"
        )
        self.setting_name = setting_name
        self.value = value
        self.reason = reason


__all__ = ["InvalidSettingValueError", "MissingRequiredSettingError", "SettingsError"]
