from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shipdb.domain.errors import (
    InvalidCandidateError,
    RuleFamilyMismatchError,
    UnknownRuleFamilyError,
)
from shipdb.domain.merge import (
    add_ships,
    collapse_batch,
    collapse_sorted,
    merge_into_catalog,
    partition_by_motion,
)
from shipdb.domain.report import MergeReport
from shipdb.domain.ships import MotionClass, Ship, SpeedKey
from tests.helpers.fake_engine import (
    B0_RULE,
    B0_SHIP,
    BLINKER,
    DIAGONAL,
    HEX_RULE,
    OBLIQUE,
    ORTHOGONAL_LARGE,
    ORTHOGONAL_SMALL,
    ROTATE_RIGHT,
    TRANSPOSE,
    junk_ship,
    make_ship,
)

if TYPE_CHECKING:
    from shipdb.adapters.catalog_files import CatalogFiles
    from tests.helpers.fake_engine import FakeEngine


def _record(population: int, dx: int = 1, dy: int = 0, period: int = 4, cells: str = "3o!") -> Ship:
    return Ship(population, "B3/S23", dx, dy, period, cells)


def _populations(store: CatalogFiles, motion: MotionClass = MotionClass.ORTHOGONAL) -> list[int]:
    return [ship.population for ship in store.read("int", motion)]


def test_duplicate_speed_in_one_batch_keeps_smallest(
    store: CatalogFiles, engine: FakeEngine
) -> None:
    report = merge_into_catalog("int", [_record(40), _record(35)], engine=engine, store=store)

    assert _populations(store) == [35]
    assert [ship.population for ship in report.new] == [35]
    assert report.improved == []


def test_larger_record_leaves_catalog_unchanged(store: CatalogFiles, engine: FakeEngine) -> None:
    merge_into_catalog("int", [_record(30)], engine=engine, store=store)
    path = store.path_for("int", MotionClass.ORTHOGONAL)
    before = path.read_text()

    report = merge_into_catalog("int", [_record(50, cells="9o!")], engine=engine, store=store)

    assert [ship.population for ship in report.unchanged] == [30]
    assert report.new == []
    assert report.improved == []
    assert path.read_text() == before


def test_smaller_record_improves_catalog(store: CatalogFiles, engine: FakeEngine) -> None:
    merge_into_catalog("int", [_record(30)], engine=engine, store=store)

    report = merge_into_catalog("int", [_record(20, cells="2o!")], engine=engine, store=store)

    assert [ship.population for ship in report.improved] == [20]
    stored = store.read("int", MotionClass.ORTHOGONAL)
    assert [(ship.population, ship.cells) for ship in stored] == [(20, "2o!")]


def test_merging_the_same_batch_twice_changes_nothing(
    store: CatalogFiles, engine: FakeEngine
) -> None:
    batch = [_record(10), _record(12, 1, 1, 4), _record(7, 2, 1, 6), _record(5, 0, 0, 3)]
    merge_into_catalog("int", batch, engine=engine, store=store)
    snapshot = {motion: store.read("int", motion) for motion in MotionClass}

    report = merge_into_catalog("int", batch, engine=engine, store=store)

    assert not report.changed
    assert len(report.unchanged) == 4
    assert {motion: store.read("int", motion) for motion in MotionClass} == snapshot


def test_catalog_stays_sorted_and_unique(store: CatalogFiles, engine: FakeEngine) -> None:
    merge_into_catalog(
        "int",
        [_record(9, 1, 0, 4), _record(8, 2, 0, 4), _record(6, 1, 0, 2)],
        engine=engine,
        store=store,
    )
    merge_into_catalog(
        "int",
        [_record(5, 1, 0, 4), _record(7, 1, 0, 3), _record(10, 2, 0, 4)],
        engine=engine,
        store=store,
    )

    stored = store.read("int", MotionClass.ORTHOGONAL)
    assert [(s.dx, s.period, s.population) for s in stored] == [
        (1, 2, 6),
        (1, 3, 7),
        (2, 4, 8),
        (1, 4, 5),
    ]


def test_rule_outside_family_aborts_without_writing(
    store: CatalogFiles, engine: FakeEngine
) -> None:
    hex_record = Ship(10, HEX_RULE, 1, 0, 4, "3o!")

    with pytest.raises(RuleFamilyMismatchError):
        merge_into_catalog("int", [_record(12), hex_record], engine=engine, store=store)

    assert not store.path_for("int", MotionClass.ORTHOGONAL).exists()


def test_non_canonical_speed_is_refused(store: CatalogFiles, engine: FakeEngine) -> None:
    with pytest.raises(InvalidCandidateError):
        merge_into_catalog("int", [_record(12, 0, 1, 4)], engine=engine, store=store)


def test_partition_by_motion() -> None:
    parts = partition_by_motion([_record(1), _record(2, 1, 1), _record(3, 0, 0), _record(4, 2, 1)])

    assert {motion: [s.population for s in ships] for motion, ships in parts.items()} == {
        MotionClass.ORTHOGONAL: [1],
        MotionClass.DIAGONAL: [2],
        MotionClass.OSCILLATOR: [3],
        MotionClass.OBLIQUE: [4],
    }


def test_collapse_batch_prefers_first_on_ties() -> None:
    first = _record(10, cells="a!")
    second = _record(10, cells="b!")

    assert collapse_batch([first, second]) == [first]


def test_collapse_sorted_keeps_smallest_of_each_run() -> None:
    ships = [_record(9), _record(4), _record(6, 1, 1)]

    assert [s.population for s in collapse_sorted(ships)] == [4, 6]


def test_add_ships_canonicalizes_and_reports_invalid(
    store: CatalogFiles, engine: FakeEngine
) -> None:
    junk = junk_ship()
    candidates = [
        make_ship(ORTHOGONAL_LARGE, matrix=ROTATE_RIGHT),
        make_ship(DIAGONAL, phase=3),
        make_ship(OBLIQUE, matrix=TRANSPOSE),
        make_ship(BLINKER),
        junk,
    ]

    report = add_ships("int", candidates, engine=engine, store=store)

    assert report.invalid == [junk]
    assert sorted(str(ship.speed) for ship in report.new) == ["(5, 2)c/8", "c/2o", "c/4d", "p2"]
    assert _populations(store) == [11]
    assert _populations(store, MotionClass.OSCILLATOR) == [6]
    assert report.elapsed > 0


def test_add_ships_improves_with_a_smaller_species(
    store: CatalogFiles, engine: FakeEngine
) -> None:
    add_ships("int", [make_ship(ORTHOGONAL_LARGE)], engine=engine, store=store)

    report = add_ships("int", [make_ship(ORTHOGONAL_SMALL, phase=1)], engine=engine, store=store)

    assert [ship.population for ship in report.improved] == [4]
    assert _populations(store) == [4]


def test_add_ships_writes_b0_family_separately(store: CatalogFiles, engine: FakeEngine) -> None:
    report = add_ships("intb0", [make_ship(B0_SHIP, rule=B0_RULE)], engine=engine, store=store)

    assert [ship.speed for ship in report.new] == [SpeedKey(1, 0, 2)]
    assert store.read("int", MotionClass.ORTHOGONAL) == []
    assert len(store.read("intb0", MotionClass.ORTHOGONAL)) == 1


def test_add_ships_rejects_unknown_family(store: CatalogFiles, engine: FakeEngine) -> None:
    with pytest.raises(UnknownRuleFamilyError, match="Invalid ship type: 'hex'"):
        add_ships("hex", [make_ship(DIAGONAL)], engine=engine, store=store)


def test_add_ships_strict_mode_raises(store: CatalogFiles, engine: FakeEngine) -> None:
    with pytest.raises(InvalidCandidateError):
        add_ships("int", [junk_ship()], engine=engine, store=store, strict=True)


def test_report_render() -> None:
    report = MergeReport(
        invalid=[_record(3, 1, 0, 2)],
        new=[_record(5, 1, 1, 4), _record(6, 0, 0, 3)],
        improved=[_record(7, 2, 1, 6)],
        elapsed=0.25,
    )

    assert report.render() == (
        "1 invalid ships: c/2o\n"
        "1 new ships: c/4d\n"
        "1 new periods: p3\n"
        "1 improved ships: (2, 1)c/6\n"
        "Update took 0.250 seconds\n"
    )


def test_empty_report_render() -> None:
    assert MergeReport(elapsed=0.001).render() == "No changes made\nUpdate took 0.001 seconds\n"
