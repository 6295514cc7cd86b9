"""
Tests for the consent command-line client.
"""

import json

import pytest
from httpx import ASGITransport

from cli.consent import build_parser, main, run_command
from consent.api_client import PreferenceApiClient
from consent.manager import ConsentManager
from consent.storage import CONSENT_KEY, SETTINGS_KEY, JsonFileStorage


def run(tmp_path, *args):
    return main(["--storage", str(tmp_path / "storage.json"), "--offline", *args])


def test_offline_session(tmp_path, capsys):
    assert run(tmp_path, "banner") == 0
    assert capsys.readouterr().out.strip().endswith("hide")

    assert run(tmp_path, "onboard", "learner-1", "--name", "Ada") == 0
    assert run(tmp_path, "banner") == 0
    assert capsys.readouterr().out.strip().endswith("show")

    assert run(tmp_path, "customize", "--analytics") == 0
    captured = capsys.readouterr()
    assert json.loads(captured.out.strip().splitlines()[-1]) == {
        "essential": True,
        "analytics": True,
        "preferences": False,
    }
    assert "saved locally only" in captured.err

    storage = JsonFileStorage(tmp_path / "storage.json")
    assert storage.get_item(CONSENT_KEY) == "custom"

    assert run(tmp_path, "status") == 0
    out = capsys.readouterr().out
    assert "consent: custom" in out
    assert "analytics    allowed" in out
    assert "preferences  blocked" in out

    assert run(tmp_path, "reset") == 0
    assert storage.get_item(CONSENT_KEY) is None
    assert storage.get_item(SETTINGS_KEY) is None


def test_onboard_rejects_empty_user_id(tmp_path, capsys):
    assert run(tmp_path, "onboard", "") == 1
    assert "user_id" in capsys.readouterr().err


def test_unwritable_storage_is_reported(tmp_path, capsys):
    (tmp_path / "blocker").write_text("not a directory")
    storage_path = str(tmp_path / "blocker" / "storage.json")

    assert main(["--storage", storage_path, "--offline", "onboard", "learner-1"]) == 1
    assert "error:" in capsys.readouterr().err


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_run_command_syncs_with_service(tmp_path, app, store, capsys):
    storage = JsonFileStorage(tmp_path / "storage.json")
    async with PreferenceApiClient("http://test", transport=ASGITransport(app=app)) as api:
        manager = ConsentManager(storage, api_client=api)
        parser = build_parser()

        await run_command(parser.parse_args(["onboard", "learner-7"]), manager)
        await run_command(parser.parse_args(["accept-all"]), manager)

    assert store.get("learner-7").analytics is True
    assert "saved locally only" not in capsys.readouterr().err
