from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from shipdb.domain.queries import Adjustables
from shipdb.domain.report import MergeReport
from shipdb.service.schema import ChangeEntryModel
from shipdb.ui import cli as cli_module

if TYPE_CHECKING:
    from pathlib import Path


def test_get_joins_speed_words(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_get_speed(family: str, speed: str, *, adjustables: Adjustables) -> str:
        captured.update(family=family, speed=speed, adjustables=adjustables)
        return "#C found\n"

    monkeypatch.setattr(cli_module, "get_speed", fake_get_speed)

    cli_module.main(["get", "int", "(2,", "1)c/6", "--adjustables", "no"])

    assert captured == {"family": "int", "speed": "(2, 1)c/6", "adjustables": Adjustables.NO}
    assert capsys.readouterr().out == "#C found\n"


def test_get_rejects_invalid_speed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli_module, "get_speed", lambda *_, **__: pytest.fail("not called"))

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["get", "int", "warp"])

    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    ("command", "target"),
    [
        ("add", "add_catalog_lines"),
        ("add-rle", "add_rle_patterns"),
        ("merge", "merge_catalog_lines"),
    ],
)
def test_file_commands_print_the_report(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    tmp_path: Path,
    command: str,
    target: str,
) -> None:
    source = tmp_path / "ships.txt"
    source.write_text("9, B3/S23, 1, 0, 4, 3o!\n", encoding="utf-8")
    captured: dict[str, str] = {}

    def fake(family: str, text: str) -> MergeReport:
        captured.update(family=family, text=text)
        return MergeReport(elapsed=0.002)

    monkeypatch.setattr(cli_module, target, fake)

    cli_module.main([command, "intb0", str(source)])

    assert captured == {"family": "intb0", "text": "9, B3/S23, 1, 0, 4, 3o!\n"}
    assert capsys.readouterr().out == "No changes made\nUpdate took 0.002 seconds\n"


def test_missing_input_file_is_a_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["add", "int", str(tmp_path / "missing.txt")])

    assert excinfo.value.code == 2


def test_failures_exit_with_status_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_counts(family: str) -> str:
        raise RuntimeError(f"cannot count {family}")

    monkeypatch.setattr(cli_module, "count_catalog", fake_counts)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["counts", "int"])

    assert excinfo.value.code == 1


@pytest.mark.usefixtures("engine_env")
def test_counts_against_real_catalog(capsys: pytest.CaptureFixture[str]) -> None:
    cli_module.main(["counts", "int"])

    assert capsys.readouterr().out.endswith("0 total\n")


def test_drain_prints_json(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    entry = ChangeEntryModel(type="int", status="new", speed="c/4o", line="9, B3/S23, 1, 0, 4, 3o!")
    monkeypatch.setattr(cli_module, "drain_changes", lambda: [entry])

    cli_module.main(["drain"])

    assert json.loads(capsys.readouterr().out) == [entry.model_dump()]


def test_push_prints_server_reply(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    source = tmp_path / "ships.txt"
    source.write_text("9, B3/S23, 1, 0, 4, 3o!\n", encoding="utf-8")
    monkeypatch.setattr(
        cli_module, "push_catalog_lines", lambda family, text: f"{family}:{len(text)}\n"
    )

    cli_module.main(["push", "int", str(source)])

    assert capsys.readouterr().out == "int:24\n"


def test_unknown_family_is_rejected_by_the_parser() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["counts", "hex"])

    assert excinfo.value.code == 2


def test_remote_flag_queries_the_service(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    calls: list[tuple[str, ...]] = []

    def fake_get_remote(family: str, speed: str, *, adjustables: Adjustables) -> str:
        calls.append(("get", family, speed, adjustables.value))
        return "#C remote\n"

    def fake_count_remote(family: str) -> str:
        calls.append(("counts", family))
        return "int:\n0 total\n"

    monkeypatch.setattr(cli_module, "get_remote_speed", fake_get_remote)
    monkeypatch.setattr(cli_module, "count_remote", fake_count_remote)
    monkeypatch.setattr(cli_module, "get_speed", lambda *_, **__: pytest.fail("not called"))
    monkeypatch.setattr(cli_module, "count_catalog", lambda *_: pytest.fail("not called"))

    cli_module.main(["get", "int", "c/4d", "--remote"])
    cli_module.main(["counts", "int", "--remote"])

    assert calls == [("get", "int", "c/4d", "yes"), ("counts", "int")]
    assert capsys.readouterr().out == "#C remote\nint:\n0 total\n"
