"""Ports for persisting catalog files."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shipdb.domain.ships import MotionClass, Ship


@runtime_checkable
class CatalogStore(Protocol):
    """One ordered ship list per (rule family, motion class)."""

    def read(self, family: str, motion: MotionClass) -> list[Ship]: ...

    def write(self, family: str, motion: MotionClass, ships: Sequence[Ship]) -> None:
        """Replace the file's content in a single step."""
        ...


__all__ = ["CatalogStore"]
