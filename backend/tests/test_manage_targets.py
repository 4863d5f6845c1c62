from __future__ import annotations

import json
from pathlib import Path

import pytest
from dotenv import dotenv_values

import manage_targets
from tests.conftest import APP_A, APP_B


def _urls(env_file: Path) -> list[str]:
    return [t["url"] for t in json.loads(dotenv_values(env_file)["TESTFLIGHT_URLS"])]


def test_list(env_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert manage_targets.main(["--env-file", str(env_file), "list"]) == 0

    out = capsys.readouterr().out
    assert f"1. AppA - {APP_A['url']}" in out
    assert f"2. AppB - {APP_B['url']}" in out


def test_add_invitation_code(env_file: Path) -> None:
    code = manage_targets.main(["--env-file", str(env_file), "add", "AppC", "CCCCCCCC", "--no-check"])

    assert code == 0
    assert _urls(env_file)[-1] == "https://testflight.apple.com/join/CCCCCCCC"


def test_add_duplicate_fails(env_file: Path) -> None:
    code = manage_targets.main(["--env-file", str(env_file), "add", "Again", APP_A["url"], "--no-check"])

    assert code == 1
    assert _urls(env_file) == [APP_A["url"], APP_B["url"]]


def test_remove_is_idempotent(env_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert manage_targets.main(["--env-file", str(env_file), "remove", APP_A["url"]]) == 0
    assert manage_targets.main(["--env-file", str(env_file), "remove", APP_A["url"]]) == 0

    assert "not in the watch list" in capsys.readouterr().out
    assert _urls(env_file) == [APP_B["url"]]


def test_malformed_watch_list_exits_with_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("TESTFLIGHT_URLS=[{broken\n")

    assert manage_targets.main(["--env-file", str(env_file), "list"]) == 2
    assert "Could not read the watch list" in capsys.readouterr().err
