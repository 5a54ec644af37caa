"""Tagged result variants returned by every external service adapter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class AdapterSuccess(Generic[T]):
    payload: T


@dataclass(frozen=True)
class AdapterFailure:
    """Provider call did not produce a usable payload."""

    reason: str
    status_code: int | None = None


AdapterResult = Union[AdapterSuccess[T], AdapterFailure]
