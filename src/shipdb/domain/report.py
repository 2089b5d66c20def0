"""Structured outcome of a catalog merge."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .ships import Ship

if TYPE_CHECKING:
    from collections.abc import Iterator


class MergeOutcome(StrEnum):
    INVALID = "invalid"
    NEW = "new"
    IMPROVED = "improved"
    UNCHANGED = "unchanged"


@dataclass(slots=True)
class MergeReport:
    """Ships per outcome plus the time the update took.

    Invalid entries are the raw candidates as submitted; all other entries are
    canonical records.
    """

    invalid: list[Ship] = field(default_factory=list[Ship])
    new: list[Ship] = field(default_factory=list[Ship])
    improved: list[Ship] = field(default_factory=list[Ship])
    unchanged: list[Ship] = field(default_factory=list[Ship])
    elapsed: float = 0.0

    def by_outcome(self) -> Iterator[tuple[MergeOutcome, list[Ship]]]:
        yield MergeOutcome.INVALID, self.invalid
        yield MergeOutcome.NEW, self.new
        yield MergeOutcome.IMPROVED, self.improved
        yield MergeOutcome.UNCHANGED, self.unchanged

    @property
    def changed(self) -> bool:
        return bool(self.new or self.improved)

    def render(self) -> str:
        lines: list[str] = []
        for outcome, ships in self.by_outcome():
            moving = [ship.describe_speed() for ship in ships if not ship.is_oscillator]
            periods = [ship.describe_speed() for ship in ships if ship.is_oscillator]
            if moving:
                lines.append(f"{len(moving)} {outcome} ships: {', '.join(moving)}")
            if periods:
                lines.append(f"{len(periods)} {outcome} periods: {', '.join(periods)}")
        if not lines:
            lines.append("No changes made")
        lines.append(f"Update took {self.elapsed:.3f} seconds")
        return "\n".join(lines) + "\n"
