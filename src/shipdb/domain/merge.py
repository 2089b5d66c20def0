"""Append-only merge of canonical ships into the catalog files."""

from __future__ import annotations

import time
from itertools import groupby
from logging import getLogger
from typing import TYPE_CHECKING

from .canonicalization import canonicalize_ships
from .errors import InvalidCandidateError
from .report import MergeReport
from .rule_families import get_rule_family, validate_rules
from .ships import MotionClass, Ship, SpeedKey, sort_ships

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .ports.catalog import CatalogStore
    from .ports.pattern_engine import PatternEngine

log = getLogger(__name__)


def add_ships(
    family: str,
    ships: Iterable[Ship],
    *,
    engine: PatternEngine,
    store: CatalogStore,
    limit: int | None = None,
    strict: bool = False,
) -> MergeReport:
    """Canonicalize raw candidates and merge the valid ones into the catalog."""

    start = time.perf_counter()
    get_rule_family(family)
    canonical = canonicalize_ships(
        family, ships, engine, throw_on_invalid=strict, global_limit=limit
    )
    report = merge_into_catalog(family, canonical.ships, engine=engine, store=store)
    report.invalid.extend(canonical.invalid)
    report.elapsed = time.perf_counter() - start
    return report


def merge_into_catalog(
    family: str,
    ships: Sequence[Ship],
    *,
    engine: PatternEngine,
    store: CatalogStore,
) -> MergeReport:
    """Merge already canonical ships, keeping the smallest population per speed.

    Every rule is checked against the family before any file is touched, so a
    mismatching record aborts the whole submission.
    """

    start = time.perf_counter()
    validate_rules(family, (ship.rule for ship in ships), engine)
    for ship in ships:
        if not ship.speed.is_canonical:
            raise InvalidCandidateError(
                f"Refusing to store non-canonical speed: {ship.to_line()}", line=ship.to_line()
            )
    report = MergeReport()
    for motion, part in partition_by_motion(ships).items():
        log.info("Adding %d %s records to %s", len(part), motion, family)
        stored = store.read(family, motion)
        store.write(family, motion, merge_partition(stored, part, report))
    report.elapsed = time.perf_counter() - start
    return report


def partition_by_motion(ships: Iterable[Ship]) -> dict[MotionClass, list[Ship]]:
    parts: dict[MotionClass, list[Ship]] = {}
    for ship in ships:
        parts.setdefault(ship.motion_class, []).append(ship)
    return parts


def merge_partition(
    stored: list[Ship], incoming: Sequence[Ship], report: MergeReport
) -> list[Ship]:
    """Fold ``incoming`` into ``stored`` and return the sorted, unique result.

    ``stored`` is modified in place; outcomes are appended to ``report``.
    """

    pending = collapse_batch(incoming)
    consumed: set[int] = set()
    for ship in stored:
        if len(consumed) == len(pending):
            break
        for index, candidate in enumerate(pending):
            if index in consumed or candidate.speed != ship.speed:
                continue
            consumed.add(index)
            if candidate.population < ship.population:
                ship.population = candidate.population
                ship.rule = candidate.rule
                ship.cells = candidate.cells
                ship.comment = candidate.comment
                report.improved.append(ship.copy())
            else:
                report.unchanged.append(ship.copy())
            break

    for index, candidate in enumerate(pending):
        if index not in consumed:
            stored.append(candidate.copy())
            report.new.append(candidate.copy())

    return collapse_sorted(sort_ships(stored))


def collapse_batch(ships: Iterable[Ship]) -> list[Ship]:
    """Keep the smallest ship per speed, in first-seen order (first wins ties)."""

    best: dict[SpeedKey, Ship] = {}
    for ship in ships:
        current = best.get(ship.speed)
        if current is None or ship.population < current.population:
            best[ship.speed] = ship
    return list(best.values())


def collapse_sorted(ships: list[Ship]) -> list[Ship]:
    """Collapse runs of equal speed in a sorted list to their smallest member."""

    collapsed: list[Ship] = []
    for _, run in groupby(ships, key=lambda ship: ship.speed):
        collapsed.append(min(run, key=lambda ship: ship.population))
    return collapsed
