"""Ports for the external cellular-automaton pattern engine.

The catalog never simulates patterns itself. Everything it needs to know about
a rule or a pattern comes through these protocols, so an in-process library, a
subprocess wrapper or an RPC client can all back the same catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """What the engine knows about a rule string.

    ``kind`` is the engine's model name (``"map"``, ``"map_b0"``,
    ``"map_b0_gen"``, ...) and ``symmetry`` the rule's symmetry group
    (``"D8"`` for isotropic rules).
    """

    kind: str
    symmetry: str


@runtime_checkable
class Pattern(Protocol):
    """Mutable pattern handle. Geometric transforms act in place."""

    @property
    def population(self) -> int: ...

    @property
    def rule(self) -> str: ...

    @property
    def rule_period(self) -> int:
        """Generations after which the background returns to its original state."""
        ...

    @property
    def alternating_background(self) -> bool: ...

    def copy(self) -> Self: ...

    def run(self, generations: int) -> None: ...

    def rotate_right(self) -> None: ...

    def rotate_left(self) -> None: ...

    def flip_horizontal(self) -> None: ...

    def flip_vertical(self) -> None: ...


@dataclass(slots=True)
class Classification:
    """Result of simulating a pattern until it repeats (or the limit is hit).

    ``displacement`` is ``None`` when no repetition was found within the limit.
    ``phases`` holds one pattern per generation of the period, starting at the
    stabilization point.
    """

    period: int
    displacement: tuple[int, int] | None
    phases: Sequence[Pattern] = field(default_factory=tuple)
    stabilized_at: int = 0
    died_out: bool = False


@runtime_checkable
class PatternEngine(Protocol):
    def parse(self, rule: str, cells: str) -> Pattern: ...

    def describe_rule(self, rule: str) -> RuleInfo: ...

    def classify(self, pattern: Pattern, limit: int) -> Classification: ...

    def minimize_rule(self, pattern: Pattern, limit: int) -> str:
        """Smallest rule (fewest transitions) that evolves ``pattern`` identically."""
        ...

    def odd_phase_rule(self, rule: str) -> str:
        """Effective rule on odd generations of an alternating-background rule."""
        ...

    def encode(self, pattern: Pattern) -> str:
        """Compact single-line cell encoding (RLE body without header)."""
        ...

    def parse_rle(self, text: str) -> Pattern:
        """Parse a complete RLE document including its header line."""
        ...


@runtime_checkable
class ParametricConstructor(Protocol):
    """Builds ships for whole speed families without a catalog lookup."""

    def __call__(
        self, family: str, dx: int, dy: int, period: int
    ) -> tuple[Pattern, int] | None: ...


__all__ = ["Classification", "ParametricConstructor", "Pattern", "PatternEngine", "RuleInfo"]
