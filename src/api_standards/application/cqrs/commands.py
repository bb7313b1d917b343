"""Application CQRS – Command, CommandHandler, Unit."""
from __future__ import annotations

import abc
from typing import Any, Generic, TypeVar, final

from api_standards.application.cqrs.cancellation import CancellationToken

R = TypeVar("R")
C = TypeVar("C", bound="Command[Any]")


@final
class Unit:
    """No-value marker returned by commands that only perform side effects."""

    _instance: "Unit | None" = None

    def __new__(cls) -> "Unit":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "()"

    def __reduce__(self) -> str:
        return "UNIT"


UNIT = Unit()


class Command(Generic[R]):
    """Marker base for commands (intent to change state) producing ``R``.

    Commands are plain immutable values; their concrete class is the
    dispatch key::

        @dataclasses.dataclass(frozen=True)
        class CreateUser(Command[int]):
            name: str
    """


class CommandHandler(abc.ABC, Generic[C, R]):
    """Handle exactly one command type.

    Each concrete command type has exactly one handler; registering a
    second one is a configuration error.
    """

    @abc.abstractmethod
    async def handle(self, command: C, cancellation: CancellationToken) -> R: ...


class VoidCommandHandler(CommandHandler[C, Unit]):
    """Handler for a ``Command[Unit]``; ``handle`` must return :data:`UNIT`."""


__all__ = ["UNIT", "Command", "CommandHandler", "Unit", "VoidCommandHandler"]
