"""Read-side catalog operations: speed lookups and per-file counts."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Final

from .canonicalization import canonicalize
from .errors import InvalidCandidateError
from .rule_families import get_rule_family
from .ships import MotionClass, Ship, SpeedKey, parse_speed

if TYPE_CHECKING:
    from .ports.catalog import CatalogStore
    from .ports.pattern_engine import ParametricConstructor, Pattern, PatternEngine

NOT_FOUND_MESSAGE: Final[str] = "No such ship found in database!\n"
ADJUSTABLE_COMMENT: Final[str] = "adjustable"


class Adjustables(StrEnum):
    """Whether lookups consult the parametric constructors."""

    YES = "yes"
    NO = "no"
    ONLY = "only"


def find_ship(family: str, dx: int, dy: int, period: int, *, store: CatalogStore) -> Ship | None:
    """Linear scan of the matching catalog file; any orientation is accepted."""

    get_rule_family(family)
    key = SpeedKey.canonical(dx, dy, period)
    for ship in store.read(family, key.motion_class):
        if ship.speed == key:
            return ship
    return None


def build_adjustable_ship(
    family: str,
    key: SpeedKey,
    pattern: Pattern,
    *,
    engine: PatternEngine,
) -> Ship:
    raw = Ship(
        population=pattern.population,
        rule=pattern.rule,
        dx=key.dx,
        dy=key.dy,
        period=key.period,
        cells=engine.encode(pattern),
        comment=ADJUSTABLE_COMMENT,
    )
    ship = canonicalize(family, raw, engine, throw_on_invalid=True)
    if ship is None:  # pragma: no cover - strict mode raises instead
        raise InvalidCandidateError(f"Invalid adjustable ship: {raw.to_line()}")
    return ship


def lookup_ship(
    family: str,
    speed: SpeedKey,
    *,
    store: CatalogStore,
    engine: PatternEngine | None = None,
    parametric: ParametricConstructor | None = None,
    adjustables: Adjustables = Adjustables.YES,
) -> Ship | None:
    """Return the best known ship for ``speed``.

    A parametric construction wins over the stored record only when its
    population hint is strictly smaller.
    """

    key = SpeedKey.canonical(speed.dx, speed.dy, speed.period)
    stored = None
    if adjustables is not Adjustables.ONLY:
        stored = find_ship(family, key.dx, key.dy, key.period, store=store)
    if adjustables is Adjustables.NO or engine is None or parametric is None:
        return stored

    built = parametric(family, key.dx, key.dy, key.period)
    if built is None:
        return stored
    pattern, population_hint = built
    if stored is not None and population_hint >= stored.population:
        return stored
    return build_adjustable_ship(family, key, pattern, engine=engine)


def render_ship(ship: Ship) -> str:
    header = f"#C ({ship.dx}, {ship.dy})/{ship.period}, population {ship.population}\n"
    if ship.cells_are_link:
        return (
            header + f"#C rule = {ship.rule}, pattern is too large to display inline, "
            f"see {ship.cells}\n"
        )
    return header + f"x = 0, y = 0, rule = {ship.rule}\n{ship.cells}\n"


def find_speed_rle(
    family: str,
    speed: str,
    *,
    store: CatalogStore,
    engine: PatternEngine | None = None,
    parametric: ParametricConstructor | None = None,
    adjustables: Adjustables = Adjustables.YES,
) -> str:
    ship = lookup_ship(
        family,
        parse_speed(speed),
        store=store,
        engine=engine,
        parametric=parametric,
        adjustables=adjustables,
    )
    if ship is None:
        return NOT_FOUND_MESSAGE
    return render_ship(ship)


def count_ships(family: str, *, store: CatalogStore) -> dict[MotionClass, int]:
    get_rule_family(family)
    return {motion: len(store.read(family, motion)) for motion in MotionClass}


def render_counts(family: str, counts: dict[MotionClass, int]) -> str:
    lines = [f"{family}:"]
    lines.extend(f"{count} {motion}" for motion, count in counts.items())
    lines.append(f"{sum(counts.values())} total")
    return "\n".join(lines) + "\n"
