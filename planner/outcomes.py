"""Outcome types for operations that can fail without raising."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Loaded(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class LoadFailed:
    reason: str

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class Parsed(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ParseFailed:
    reason: str

    @property
    def ok(self) -> bool:
        return False


LoadOutcome = Union[Loaded, LoadFailed]
ParseOutcome = Union[Parsed, ParseFailed]


def value_or(outcome: Union[LoadOutcome, ParseOutcome], default: Any) -> Any:
    """Return the carried value, or ``default`` for a failed outcome."""
    if outcome.ok:
        return outcome.value
    return default
