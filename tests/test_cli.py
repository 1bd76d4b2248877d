"""
Tests for the click command line interface.
"""
import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cursor_chat_manager.cli import main

HASH = "e" * 32
PROMPTS_VALUE = [{"text": "Add pagination to the orders endpoint", "createdAt": 1700000000000}]


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep log records out of captured command output."""
    with patch("cursor_chat_manager.cli.setup_logging"):
        yield


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def snapshot_db(tmp_path):
    return str(tmp_path / "snapshots.db")


@pytest.fixture
def workspace_db(add_workspace):
    return str(add_workspace(HASH, {
        "aiService.prompts": PROMPTS_VALUE,
        "chat:compressed": "[]",
        "workspace.name": "Orders",
    }))


def test_scan_json(runner, storage_root, workspace_db, snapshot_db):
    result = runner.invoke(
        main,
        ["--snapshot-db", snapshot_db, "scan", "--storage-path", str(storage_root), "--json"],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert [p["id"] for p in payload["projects"]] == ["original-orders"]
    assert payload["stats"]["chats"] == 1
    assert payload["projects"][0]["chats"][0]["dialogues"][0]["isUser"] is True


def test_scan_then_show(runner, storage_root, workspace_db, snapshot_db):
    scan = runner.invoke(main, ["--snapshot-db", snapshot_db, "scan", "--storage-path", str(storage_root)])
    assert scan.exit_code == 0, scan.output
    assert "Found 1 chats in 1 projects" in scan.output
    assert "Orders (original-orders): 1 chats" in scan.output

    show = runner.invoke(main, ["--snapshot-db", snapshot_db, "show"])
    assert show.exit_code == 0, show.output
    assert "Saved snapshot: 1 chats in 1 projects" in show.output


def test_scan_no_save(runner, storage_root, workspace_db, snapshot_db):
    runner.invoke(main, ["--snapshot-db", snapshot_db, "scan", "--storage-path", str(storage_root), "--no-save"])
    show = runner.invoke(main, ["--snapshot-db", snapshot_db, "show"])
    assert "No saved snapshot" in show.output


def test_scan_empty_storage(runner, storage_root, snapshot_db):
    result = runner.invoke(main, ["--snapshot-db", snapshot_db, "scan", "--storage-path", str(storage_root)])
    assert result.exit_code == 0
    assert "No chats found." in result.output


def test_keys_lists_all_keys(runner, workspace_db, snapshot_db):
    result = runner.invoke(main, ["--snapshot-db", snapshot_db, "keys", workspace_db])

    assert result.exit_code == 0, result.output
    assert "aiService.prompts" in result.output
    assert "chat:compressed (compressed)" in result.output
    assert "workspace.name" in result.output


def test_keys_with_pattern_lists_candidates(runner, workspace_db, snapshot_db):
    result = runner.invoke(main, ["--snapshot-db", snapshot_db, "keys", workspace_db, "--pattern", "chat:"])

    assert result.exit_code == 0, result.output
    assert "chat:compressed (compressed)" in result.output
    assert "workspace.name" not in result.output


def test_keys_on_non_database(runner, tmp_path, snapshot_db):
    bogus = tmp_path / "state.vscdb"
    bogus.write_bytes(b"not sqlite " * 100)

    result = runner.invoke(main, ["--snapshot-db", snapshot_db, "keys", str(bogus)])

    assert result.exit_code == 1
    assert "Cannot open database" in result.output


def test_validate_reports_classification(runner, workspace_db, snapshot_db):
    result = runner.invoke(main, ["--snapshot-db", snapshot_db, "validate", workspace_db, "aiService.prompts"])

    assert result.exit_code == 0, result.output
    details = json.loads(result.output)
    assert details["valid"] is True
    assert details["classification"] == "prompts_only"
    assert details["key"] == "aiService.prompts"


def test_validate_missing_key(runner, workspace_db, snapshot_db):
    result = runner.invoke(main, ["--snapshot-db", snapshot_db, "validate", workspace_db, "nope"])

    assert result.exit_code == 1
    assert "Key not found: nope" in result.output


def test_info(runner, storage_root, workspace_db, snapshot_db):
    with patch(
        "cursor_chat_manager.cli.commands.database.get_cursor_workspace_storage_candidates",
        return_value=[storage_root],
    ), patch(
        "cursor_chat_manager.cli.commands.database.get_cursor_workspace_storage_path",
        return_value=storage_root,
    ):
        result = runner.invoke(main, ["--snapshot-db", snapshot_db, "info"])

    assert result.exit_code == 0, result.output
    assert f"[found] {storage_root}" in result.output
    assert "Workspace databases: 1" in result.output
    assert f"Snapshot database: {snapshot_db}" in result.output
    assert "Saved keys: none" in result.output
