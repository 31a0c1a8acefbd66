from abc import ABC
from typing import Iterable

from enkidu.errors import StaleViewError


class Invalidable(ABC):
    """An object that refuses to be used once the data it mirrors has changed."""

    def __init__(self):
        self._valid = True
        self._repr = None

    def __getattribute__(self, name: str):
        if name in ("_valid", "_repr", "is_valid", "invalidate") or self._valid:
            return super().__getattribute__(name)
        else:
            raise StaleViewError(f"{self._repr} was read after the graph changed.")

    @property
    def is_valid(self) -> bool:
        return self._valid

    def invalidate(self) -> None:
        if self._valid:
            self._repr = repr(self)
            self._valid = False


def bulk_invalidate(iterable: Iterable[Invalidable]) -> None:
    for obj in iterable:
        obj.invalidate()
