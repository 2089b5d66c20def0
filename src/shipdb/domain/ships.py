"""Ship records, speed keys and the flat catalog text format."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from .errors import CatalogFormatError

if TYPE_CHECKING:
    from collections.abc import Iterable

FIELD_SEPARATOR: Final[str] = ", "
COMMENT_MARKER: Final[str] = "#"
URL_SCHEMES: Final[tuple[str, ...]] = ("http://", "https://")

type RuleString = str
type EncodedCells = str


class MotionClass(StrEnum):
    """Catalog file a speed belongs to."""

    OSCILLATOR = "oscillator"
    ORTHOGONAL = "orthogonal"
    DIAGONAL = "diagonal"
    OBLIQUE = "oblique"

    @classmethod
    def of(cls, dx: int, dy: int) -> MotionClass:
        if dx == 0 and dy == 0:
            return cls.OSCILLATOR
        if dy == 0:
            return cls.ORTHOGONAL
        if dx == dy:
            return cls.DIAGONAL
        return cls.OBLIQUE


@dataclass(frozen=True, slots=True)
class SpeedKey:
    dx: int
    dy: int
    period: int

    @classmethod
    def canonical(cls, dx: int, dy: int, period: int) -> SpeedKey:
        """Fold any displacement into the ``dx >= dy >= 0`` octant."""

        dx, dy = abs(dx), abs(dy)
        if dx < dy:
            dx, dy = dy, dx
        return cls(dx=dx, dy=dy, period=period)

    @property
    def is_canonical(self) -> bool:
        return self.dx >= self.dy >= 0

    @property
    def motion_class(self) -> MotionClass:
        return MotionClass.of(self.dx, self.dy)

    def __str__(self) -> str:
        return speed_to_string(self.dx, self.dy, self.period)


@dataclass(slots=True, eq=True)
class Ship:
    """One known example of the smallest pattern reaching a given speed."""

    population: int
    rule: RuleString
    dx: int
    dy: int
    period: int
    cells: EncodedCells
    comment: str | None = None

    @property
    def speed(self) -> SpeedKey:
        return SpeedKey(self.dx, self.dy, self.period)

    @property
    def motion_class(self) -> MotionClass:
        return MotionClass.of(self.dx, self.dy)

    @property
    def is_oscillator(self) -> bool:
        return self.dx == 0 and self.dy == 0

    @property
    def cells_are_link(self) -> bool:
        return self.cells.startswith(URL_SCHEMES)

    def copy(self) -> Ship:
        return Ship(
            population=self.population,
            rule=self.rule,
            dx=self.dx,
            dy=self.dy,
            period=self.period,
            cells=self.cells,
            comment=self.comment,
        )

    def to_line(self) -> str:
        fields = [
            str(self.population),
            self.rule,
            str(self.dx),
            str(self.dy),
            str(self.period),
            self.cells,
        ]
        if self.comment:
            fields.append(self.comment)
        return FIELD_SEPARATOR.join(fields)

    def describe_speed(self) -> str:
        return speed_to_string(self.dx, self.dy, self.period)


def parse_ship_line(line: str, *, line_number: int | None = None) -> Ship:
    """Parse one catalog line; the optional comment may itself contain separators."""

    fields = line.strip().split(FIELD_SEPARATOR, 6)
    if len(fields) < 6:
        raise CatalogFormatError(
            f"expected at least 6 fields, got {len(fields)}", line=line, line_number=line_number
        )
    try:
        population = int(fields[0])
        dx = int(fields[2])
        dy = int(fields[3])
        period = int(fields[4])
    except ValueError as exc:
        raise CatalogFormatError(
            "population, dx, dy and period must be integers", line=line, line_number=line_number
        ) from exc
    if population < 0:
        raise CatalogFormatError("population must be >= 0", line=line, line_number=line_number)
    if period < 1:
        raise CatalogFormatError("period must be >= 1", line=line, line_number=line_number)
    rule = fields[1].strip()
    cells = fields[5].strip()
    if not rule or not cells:
        raise CatalogFormatError(
            "rule and cells must not be empty", line=line, line_number=line_number
        )
    comment = fields[6].strip() if len(fields) == 7 else None
    return Ship(
        population=population,
        rule=rule,
        dx=dx,
        dy=dy,
        period=period,
        cells=cells,
        comment=comment or None,
    )


def parse_ships(data: str) -> list[Ship]:
    """Parse catalog text, skipping blank lines and ``#`` comments."""

    ships: list[Ship] = []
    for number, raw_line in enumerate(data.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue
        ships.append(parse_ship_line(line, line_number=number))
    return ships


def ships_to_string(ships: Iterable[Ship]) -> str:
    return "".join(f"{ship.to_line()}\n" for ship in ships)


def catalog_sort_key(ship: Ship) -> tuple[int, int, int]:
    return (ship.period, -ship.dx, -ship.dy)


def sort_ships(ships: list[Ship]) -> list[Ship]:
    """Sort in place by period ascending, then dx and dy descending."""

    ships.sort(key=catalog_sort_key)
    return ships


def speed_to_string(dx: int, dy: int, period: int) -> str:
    if dx == 0 and dy == 0:
        return f"p{period}"
    if dy == 0:
        return f"c/{period}o" if dx == 1 else f"{dx}c/{period}o"
    if dx == dy:
        return f"c/{period}d" if dx == 1 else f"{dx}c/{period}d"
    return f"({dx}, {dy})c/{period}"


def parse_speed(speed: str) -> SpeedKey:
    """Parse ``c/4``, ``2c/5o``, ``c/4d``, ``(2, 1)c/6`` and friends.

    The result is not folded into canonical orientation; callers that look up
    the catalog do that themselves.
    """

    text = speed.strip()
    if "c" not in text:
        raise ValueError("Invalid speed!")
    displacement, _, period_text = text.partition("c")
    period_text = period_text.removeprefix("/")
    diagonal = period_text.endswith("d")
    period_digits = period_text.rstrip("od")
    if not period_digits.isdigit():
        raise ValueError("Invalid speed!")
    period = int(period_digits)
    if period < 1:
        raise ValueError("Invalid speed!")

    if displacement == "":
        dx = 1
        dy = 1 if diagonal else 0
    elif displacement.lstrip("-").isdigit():
        dx = int(displacement)
        dy = dx if diagonal else 0
    elif displacement.startswith("(") and displacement.endswith(")"):
        parts = displacement[1:-1].split(",")
        if len(parts) != 2:
            raise ValueError("Invalid speed!")
        try:
            dx, dy = int(parts[0]), int(parts[1])
        except ValueError as exc:
            raise ValueError("Invalid speed!") from exc
    else:
        raise ValueError("Invalid speed!")
    return SpeedKey(dx=dx, dy=dy, period=period)
