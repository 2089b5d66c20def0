"""Reduce raw ship candidates to one canonical catalog representative.

A canonical ship moves into the ``dx >= dy >= 0`` octant, carries the smallest
rule that still evolves it identically, and is stored in its minimum-population
phase. Candidates that fail any consistency check are rejected: collected by
the caller in tolerant mode, raised as ``InvalidCandidateError`` in strict mode.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import InvalidCandidateError, PatternEngineBugError
from .ships import Ship, SpeedKey, speed_to_string

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .ports.pattern_engine import Classification, Pattern, PatternEngine

log = getLogger(__name__)

DEFAULT_PATTERN_LIMIT = 32768


class _Rejected(Exception):  # noqa: N818
    """Internal signal: the candidate is invalid for the given reason."""


@dataclass(slots=True)
class CanonicalizationResult:
    ships: list[Ship] = field(default_factory=list[Ship])
    invalid: list[Ship] = field(default_factory=list[Ship])


def generation_limit(period: int, rule_period: int, global_limit: int | None = None) -> int:
    """Generations the engine may simulate while checking a claimed period."""

    limit = math.ceil(period / rule_period) * rule_period + 1
    if global_limit is not None:
        limit = min(global_limit, limit)
    return limit


def canonicalize(
    family: str,
    raw: Ship,
    engine: PatternEngine,
    *,
    throw_on_invalid: bool = False,
    global_limit: int | None = None,
) -> Ship | None:
    """Return the canonical form of ``raw`` or ``None`` if it is invalid.

    ``raw`` itself is left untouched so the same input always canonicalizes to
    the same output.
    """

    try:
        return _canonicalize(raw.copy(), engine, global_limit)
    except _Rejected as exc:
        message = f"Invalid ship detected: {raw.to_line()} ({exc})"
        if throw_on_invalid:
            raise InvalidCandidateError(message, line=raw.to_line()) from None
        log.info("[%s] %s", family, message)
        return None


def canonicalize_ships(
    family: str,
    ships: Iterable[Ship],
    engine: PatternEngine,
    *,
    throw_on_invalid: bool = False,
    global_limit: int | None = None,
) -> CanonicalizationResult:
    result = CanonicalizationResult()
    for raw in ships:
        ship = canonicalize(
            family,
            raw,
            engine,
            throw_on_invalid=throw_on_invalid,
            global_limit=global_limit,
        )
        if ship is None:
            result.invalid.append(raw)
        else:
            result.ships.append(ship)
    return result


def pattern_to_ship(
    family: str,
    pattern: Pattern,
    engine: PatternEngine,
    *,
    limit: int = DEFAULT_PATTERN_LIMIT,
) -> Ship:
    """Canonicalize an arbitrary engine pattern, raising if it is not a ship."""

    classification = engine.classify(pattern, limit)
    if classification.displacement is None or classification.died_out:
        raise InvalidCandidateError(
            f"Pattern is not a ship or its period is greater than {limit} generations"
        )
    dx, dy = classification.displacement
    if dx == 0 and dy == 0:
        raise InvalidCandidateError("Pattern does not move")
    raw = Ship(
        population=pattern.population,
        rule=pattern.rule,
        dx=dx,
        dy=dy,
        period=classification.period,
        cells=engine.encode(pattern),
    )
    ship = canonicalize(family, raw, engine, throw_on_invalid=True, global_limit=limit)
    if ship is None:  # pragma: no cover - strict mode raises instead
        raise InvalidCandidateError(f"Invalid ship detected: {raw.to_line()}")
    return ship


def _canonicalize(ship: Ship, engine: PatternEngine, global_limit: int | None) -> Ship:
    try:
        pattern = engine.parse(ship.rule, ship.cells)
        limit = generation_limit(ship.period, pattern.rule_period, global_limit)
        classification = engine.classify(pattern, limit)
    except Exception as exc:  # noqa: BLE001
        raise _Rejected(f"engine rejected the pattern: {exc}") from exc
    if classification.died_out:
        raise _Rejected("pattern dies out")
    if classification.displacement is None:
        raise _Rejected(f"no repetition within {limit} generations")

    dx, dy = classification.displacement
    period = classification.period
    claimed = SpeedKey.canonical(ship.dx, ship.dy, ship.period)
    detected = SpeedKey.canonical(dx, dy, period)
    if claimed != detected:
        log.warning("Replacing %s with %s", claimed, detected)

    if classification.stabilized_at > 0:
        pattern.run(classification.stabilized_at)

    if dx == 0 and dy != 0:
        pattern.rotate_right()
        dx, dy = -dy, 0
        classification = _reclassify(engine, pattern, limit, period, (dx, dy))

    if dx < 0 or dy < 0 or dx < dy:
        if dx < 0:
            pattern.flip_horizontal()
            dx = -dx
        if dy < 0:
            pattern.flip_vertical()
            dy = -dy
        if dx < dy:
            pattern.rotate_left()
            pattern.flip_vertical()
            dx, dy = dy, dx
        classification = _reclassify(engine, pattern, limit, period, (dx, dy))

    if dx == 0 and dy != 0:
        raise _Rejected("displacement could not be resolved")

    phase, rule = _minimum_phase(engine, pattern, classification, limit)
    if phase.population == 0:
        raise _Rejected("minimum phase is empty")
    cells = engine.encode(phase)
    _verify(engine, rule, cells, limit, period, (dx, dy))

    ship.population = phase.population
    ship.rule = rule
    ship.dx = dx
    ship.dy = dy
    ship.period = period
    ship.cells = cells
    return ship


def _reclassify(
    engine: PatternEngine,
    pattern: Pattern,
    limit: int,
    period: int,
    displacement: tuple[int, int],
) -> Classification:
    classification = engine.classify(pattern, limit)
    if (
        classification.died_out
        or classification.period != period
        or classification.displacement != displacement
    ):
        found = classification.displacement
        raise _Rejected(
            f"expected {speed_to_string(*displacement, period)} after reorientation, "
            f"engine reports period {classification.period} displacement {found}"
        )
    return classification


def _minimum_phase(
    engine: PatternEngine,
    pattern: Pattern,
    classification: Classification,
    limit: int,
) -> tuple[Pattern, str]:
    rule = engine.minimize_rule(pattern, limit)
    phases = list(classification.phases) or [pattern]
    index = min(range(len(phases)), key=lambda i: phases[i].population)
    phase = phases[index]
    if pattern.alternating_background and index % 2 == 1:
        # Off cells on odd generations follow the complementary rule.
        odd_rule = engine.odd_phase_rule(rule)
        rule = engine.minimize_rule(engine.parse(odd_rule, engine.encode(phase)), limit)
    return phase, rule


def _verify(
    engine: PatternEngine,
    rule: str,
    cells: str,
    limit: int,
    period: int,
    displacement: tuple[int, int],
) -> None:
    check = engine.classify(engine.parse(rule, cells), limit)
    if check.period != period or check.displacement != displacement:
        raise PatternEngineBugError(
            f"{rule}, {cells}: expected {speed_to_string(*displacement, period)}, "
            f"engine reports period {check.period} displacement {check.displacement}"
        )
