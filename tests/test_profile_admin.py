"""
Tests for the staff profile CLI.
"""

import json
from types import SimpleNamespace

import pytest

from tests.factories import VALID_VRCHAT_ID, FakeProfileStore, make_profile
from tools.profile_admin import EXIT_FAILED, EXIT_OK, build_parser, main, run

WORLD = "wrld_11111111-2222-3333-4444-555555555555"


def test_code_command(capsys):
    assert main(["code", f"https://vrchat.com/home/user/{VALID_VRCHAT_ID}"]) == EXIT_OK
    assert capsys.readouterr().out.strip() == "C16469"


def test_code_command_rejects_bad_id(capsys):
    assert main(["code", "usr_nope"]) == EXIT_FAILED
    assert "Invalid VRChat ID" in capsys.readouterr().out


def test_instance_command(capsys):
    assert main(["instance", f"{WORLD}:12345~region(eu)"]) == EXIT_OK
    data = json.loads(capsys.readouterr().out)
    assert data["region"] == "Europe"
    assert data["launch_url"].startswith("https://vrchat.com/home/launch?worldId=")


def test_instance_command_with_owner(capsys):
    assert main(["instance", f"{WORLD}:12345~friends({VALID_VRCHAT_ID})~region(eu)"]) == EXIT_OK
    data = json.loads(capsys.readouterr().out)
    assert data["instance_type"] == "Friends"
    assert data["owner_id"] == VALID_VRCHAT_ID


def test_instance_command_rejects_text(capsys):
    assert main(["instance", "hello there"]) == EXIT_FAILED


def _services(machine, cache):
    return SimpleNamespace(verification=machine, cache=cache)


@pytest.mark.asyncio
async def test_verify_then_get(machine, cache, capsys):
    args = build_parser().parse_args(["verify", "d1", VALID_VRCHAT_ID, "--name", "Name", "--by", "mod"])
    assert await run(args, _services(machine, cache)) == EXIT_OK
    assert "d1: verified" in capsys.readouterr().out

    args = build_parser().parse_args(["get", "d1"])
    assert await run(args, _services(machine, cache)) == EXIT_OK
    data = json.loads(capsys.readouterr().out)
    assert data["state"] == "verified"
    assert data["verified_by"] == "mod"


@pytest.mark.asyncio
async def test_refused_transition_exit_code(machine, cache, capsys):
    args = build_parser().parse_args(["unverify", "d1"])
    assert await run(args, _services(machine, cache)) == EXIT_FAILED
    assert "Not verified" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_store_outage_exit_code(machine, cache, store, capsys):
    store.fail_reads = True
    args = build_parser().parse_args(["ban", "d1", "--reason", "spam"])
    assert await run(args, _services(machine, cache)) == EXIT_FAILED
    assert "Temporary issue" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_get_unknown_user(machine, cache):
    args = build_parser().parse_args(["get", "nobody"])
    assert await run(args, _services(machine, cache)) == EXIT_FAILED


@pytest.fixture
def store():
    return FakeProfileStore(
        [make_profile("d2", vrchat_id=None, is_banned=True, banned_reason="spam")]
    )


@pytest.mark.asyncio
async def test_unban(machine, cache, capsys):
    args = build_parser().parse_args(["unban", "d2"])
    assert await run(args, _services(machine, cache)) == EXIT_OK
    assert "d2: unverified" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_delete_requires_confirmation(machine, cache, store, capsys):
    args = build_parser().parse_args(["delete", "d2"])
    assert await run(args, _services(machine, cache)) == EXIT_FAILED
    assert "--yes" in capsys.readouterr().out
    assert "d2" in store.rows


@pytest.mark.asyncio
async def test_delete(machine, cache, store, capsys):
    args = build_parser().parse_args(["delete", "d2", "--yes", "--by", "mod"])
    assert await run(args, _services(machine, cache)) == EXIT_OK
    assert "d2: deleted" in capsys.readouterr().out
    assert "d2" not in store.rows

    assert await run(args, _services(machine, cache)) == EXIT_FAILED
    assert "No profile" in capsys.readouterr().out
