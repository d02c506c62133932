"""
Single-slot caches owned by a service.

A service keeps its last connection and its last authentication in a
Slot each, shared by every action the service handles.

Concurrency:
    Reads and writes are not atomic across an await. Two actions that both
    find the slot empty will both connect (or authenticate) and the last
    one to finish wins the slot. This is accepted; reuse is best-effort.
"""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")


class Slot(Generic[T]):
    """Mutable cell holding at most one value."""

    def __init__(self) -> None:
        self._value: T | None = None

    def get(self) -> T | None:
        return self._value

    def set(self, value: T | None) -> None:
        self._value = value

    def clear(self) -> None:
        self._value = None

    def __bool__(self) -> bool:
        return self._value is not None

    def __repr__(self) -> str:
        return f"Slot({self._value!r})"
