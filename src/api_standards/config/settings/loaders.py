"""Config settings – EnvSettingsLoader, DotenvSettingsLoader."""
from __future__ import annotations

import abc
import dataclasses
import os
import types
import typing
from collections.abc import Mapping
from typing import Any, TypeVar

from dotenv import dotenv_values

from api_standards.config.settings.base import Settings
from api_standards.config.validation import (
    InvalidSettingValueError,
    MissingRequiredSettingError,
    SettingsError,
)

T = TypeVar("T", bound=Settings)

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


class SettingsLoader(abc.ABC):
    """Port: load settings from an external source."""

    @abc.abstractmethod
    def load(self, settings_class: type[T]) -> T: ...


class EnvSettingsLoader(SettingsLoader):
    """Load settings from OS environment variables (or an explicit mapping).

    Nested ``Settings`` fields are loaded with the nested class's own prefix.
    List and set fields are comma separated.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def load(self, settings_class: type[T]) -> T:
        prefix = getattr(settings_class, "_prefix", "").upper()
        hints = typing.get_type_hints(settings_class)
        kwargs: dict[str, Any] = {}

        for field in dataclasses.fields(settings_class):  # type: ignore[arg-type]
            hint = hints.get(field.name, str)
            if isinstance(hint, type) and issubclass(hint, Settings):
                kwargs[field.name] = self.load(hint)
                continue

            env_key = f"{prefix}_{field.name}".upper().lstrip("_")
            raw = self.environ.get(env_key)

            if raw is None:
                if (
                    field.default is dataclasses.MISSING
                    and field.default_factory is dataclasses.MISSING  # type: ignore[misc]
                ):
                    raise MissingRequiredSettingError(env_key)
                continue

            kwargs[field.name] = self._coerce(env_key, raw, hint)

        try:
            return settings_class(**kwargs)
        except SettingsError:
            raise
        except Exception as exc:
            raise SettingsError(f"Failed to load settings: {exc}", cause=exc) from exc

    def _coerce(self, key: str, value: str, type_hint: Any) -> Any:  # noqa: PLR0911
        origin = typing.get_origin(type_hint)
        if origin in (typing.Union, types.UnionType):
            args = [a for a in typing.get_args(type_hint) if a is not type(None)]
            if not value.strip():
                return None
            return self._coerce(key, value, args[0] if len(args) == 1 else str)
        if type_hint is bool:
            lowered = value.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise InvalidSettingValueError(key, value, "expected a boolean")
        if type_hint in (int, float):
            try:
                return type_hint(value)
            except ValueError as exc:
                raise InvalidSettingValueError(key, value, f"expected {type_hint.__name__}") from exc
        items = [v.strip() for v in value.split(",") if v.strip()]
        if origin is list:
            return items
        if origin in (set, frozenset):
            return origin(items)
        if origin is tuple:
            return tuple(items)
        return value


class DotenvSettingsLoader(SettingsLoader):
    """Load settings from a ``.env`` file layered under the OS environment.

    With ``override=True`` the file wins over variables already present in
    the process environment.  The process environment is never mutated.
    """

    def __init__(self, env_file: str = ".env", override: bool = False) -> None:
        self._env_file = env_file
        self._override = override

    def load(self, settings_class: type[T]) -> T:
        file_values = {k: v for k, v in dotenv_values(self._env_file).items() if v is not None}
        if self._override:
            merged = {**os.environ, **file_values}
        else:
            merged = {**file_values, **os.environ}
        return EnvSettingsLoader(merged).load(settings_class)


__all__ = ["DotenvSettingsLoader", "EnvSettingsLoader", "SettingsLoader"]
