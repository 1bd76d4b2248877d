"""
Tests for project resolution, duplicate suppression and aggregate building.
"""
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from cursor_chat_manager.core.models import CandidateRecord
from cursor_chat_manager.transformers.builder import (
    AggregateBuilder,
    ProjectRegistry,
    better_folder_name,
    companion_keys,
    select_records,
    workspace_tag,
)
from cursor_chat_manager.transformers.classifier import RecordClassifier

HASH = "0123456789abcdef0123456789abcdef"
STORAGE = "/home/me/.config/Cursor/User/workspaceStorage"
RICH_KEY = "workbench.panel.aichat.view.aichat.chatdata"

RICH_VALUE = {
    "messages": [],
    "chatData": {
        "messages": [
            {"authorKind": 1, "parts": ["How do I add a column?"], "createTime": 1700000000},
            {"authorKind": 2, "parts": ["Use ALTER TABLE."], "createTime": 1700000005},
        ]
    },
}


def _record(key, value, folder=f"{STORAGE}/{HASH}", real_name=None):
    return CandidateRecord(
        key=key,
        value=value,
        workspace=workspace_tag(folder, value),
        workspace_real_name=real_name,
        database_path=f"{folder}/state.vscdb",
        folder_path=folder,
    )


def _build(record, registry=None, builder=None):
    builder = builder or AggregateBuilder()
    registry = registry if registry is not None else ProjectRegistry()
    chats = []
    variant = RecordClassifier().classify(record.key, record.value)
    produced = builder.build(variant, record, registry, chats)
    return produced, registry, chats


@pytest.mark.parametrize("folder,expected", [
    (f"{STORAGE}/{HASH}", "Workspace 01234567"),
    (f"/work/my-project/{HASH}", "my-project"),
    (f"/work/{'f' * 32}/{HASH}", "Workspace 01234567"),
    ("/work/plain-folder", "plain-folder"),
    ("", ""),
])
def test_better_folder_name(folder, expected):
    assert better_folder_name(folder) == expected


def test_workspace_tag_prefers_value_fields():
    assert workspace_tag(f"{STORAGE}/{HASH}", {"workspaceName": "api"}) == "api"
    assert workspace_tag(f"{STORAGE}/{HASH}", {"name": "x"}) == "Project 01234567"
    assert workspace_tag("/work/readable", [1, 2]) == "readable"


def test_companion_keys():
    assert companion_keys(RICH_KEY) == (
        "workbench.panel.aichat.view.aichat.prompts",
        "aiService.prompts",
    )


@pytest.mark.parametrize("rich_first", [True, False])
def test_select_records_drops_prompts_duplicates(rich_first):
    """Prompts-only rows are skipped regardless of row order."""
    rich = _record(RICH_KEY, RICH_VALUE)
    prompts = _record("aiService.prompts", [{"text": "How do I add a column?"}])
    other = _record("composer.sessions", [{"text": "unrelated"}])
    records = [rich, prompts, other] if rich_first else [prompts, other, rich]

    selected = select_records(records)

    assert [r.key for r in selected] == [r.key for r in records if r is not prompts]
    assert rich.is_rich is True


def test_select_records_keeps_prompts_without_rich_record():
    prompts = _record("aiService.prompts", [{"text": "alone"}])
    assert select_records([prompts]) == [prompts]


def test_rich_record_builds_one_chat():
    produced, registry, chats = _build(_record(RICH_KEY, RICH_VALUE))

    assert produced == 1
    chat = chats[0]
    assert [d.content for d in chat.dialogues] == ["How do I add a column?", "Use ALTER TABLE."]
    assert [d.is_user for d in chat.dialogues] == [True, False]
    assert chat.dialogues[0].timestamp == datetime.fromtimestamp(1700000000)
    assert all(d.chat_id == chat.id for d in chat.dialogues)
    assert chat.metadata["source_key"] == RICH_KEY
    assert chat.metadata["classification"] == "rich_chat"

    project = registry.get("original-workspace-01234567")
    assert project.name == "Workspace 01234567"
    assert project.description == "Original project from Cursor: Workspace 01234567"
    assert project.chats == [chat]
    assert chat.project_id == project.id


def test_dialogue_ids_are_unique():
    _, _, chats = _build(_record(RICH_KEY, RICH_VALUE))
    ids = [d.id for d in chats[0].dialogues]
    assert len(set(ids)) == len(ids)


def test_project_name_priority():
    builder = AggregateBuilder()
    source = _record("k", {}, folder=f"/work/shop/{HASH}", real_name="Storefront App")

    assert builder.resolve_project_name({"workspaceName": "Explicit"}, source) == "Explicit"
    assert builder.resolve_project_name({}, source, "ui-name") == "Storefront App"

    source.workspace_real_name = None
    assert builder.resolve_project_name({}, source, "ui-name") == "shop"

    source.folder_path = ""
    assert builder.resolve_project_name({}, source, "ui-name") == "ui-name"
    assert builder.resolve_project_name([], source) == source.workspace

    source.workspace = ""
    assert builder.resolve_project_name(None, source) == "Unknown Project"


def test_numeric_prompts_build_user_dialogues_in_order():
    value = {"1": {"text": "second", "createdAt": 2000}, "0": {"text": "first", "createdAt": 1000}}
    produced, registry, chats = _build(_record("aiService.prompts", value))

    assert produced == 1
    assert [d.content for d in chats[0].dialogues] == ["first", "second"]
    assert all(d.is_user for d in chats[0].dialogues)


def test_chat_fields_from_payload():
    value = {
        "id": "chat-42",
        "title": "Schema migration",
        "createdAt": 1700000000000,
        "messages": [{"role": "user", "content": "Write a migration adding an index on users.email please"}],
        "workspaceName": "db-tools",
    }
    produced, registry, chats = _build(_record("cursorChat.conversations", value))

    assert produced == 1
    chat = chats[0]
    assert chat.id == "chat-42"
    assert chat.title == "Schema migration"
    assert chat.timestamp == datetime.fromtimestamp(1700000000)
    assert "original-db-tools" in registry


def test_default_title_uses_chat_time():
    value = [{"text": "hello", "createdAt": 1}]
    _, _, chats = _build(_record("aiService.prompts", value))
    assert chats[0].title.startswith("Chat from ")


def test_workbench_messages_default_to_chat_timestamp():
    value = {
        "entries": [
            {
                "id": "tab-1",
                "title": "Debugging",
                "timestamp": 1700000000000,
                "conversation": [
                    {"sender": "user", "message": "Why does this crash?"},
                    {"sender": "assistant", "message": "Null pointer."},
                ],
            }
        ]
    }
    produced, registry, chats = _build(_record("workbench.panel.aichat", value))

    assert produced == 1
    chat = chats[0]
    assert chat.id == "tab-1"
    assert chat.title == "Debugging"
    assert chat.metadata["classification"] == "workbench_entries"
    assert all(d.timestamp == datetime.fromtimestamp(1700000000) for d in chat.dialogues)


def test_empty_chats_create_no_project():
    """A conversation whose messages are all blank produces nothing."""
    value = [{"text": "   "}, {"role": "user", "content": " "}]
    produced, registry, chats = _build(_record("aiService.prompts", [{"text": "ok"}] + value))
    assert produced == 1

    blank = {"chatData": {"messages": [{"authorKind": 1, "parts": ["  "]}]}, "messages": []}
    produced, registry, chats = _build(_record(RICH_KEY, blank))
    assert produced == 0
    assert chats == []
    assert len(registry) == 0


def test_project_ids_are_stable_across_builds():
    first = _build(_record(RICH_KEY, RICH_VALUE))[1]
    second = _build(_record(RICH_KEY, RICH_VALUE))[1]
    assert [p.id for p in first] == [p.id for p in second]


def test_existing_project_is_reused():
    registry = ProjectRegistry()
    _build(_record(RICH_KEY, RICH_VALUE), registry)
    _build(_record("aiService.prompts", [{"text": "another"}]), registry)

    assert len(registry) == 1
    assert len(registry.values()[0].chats) == 2


def test_unit_failure_does_not_stop_other_units():
    normalizer = MagicMock()
    normalizer.conversation_units.return_value = [{"a": 1}, {"b": 2}]
    normalizer.resolve_payload.side_effect = [RuntimeError("boom"), (None, None)]
    builder = AggregateBuilder(normalizer)

    produced, registry, chats = _build(_record("k", [{"text": "x"}]), builder=builder)

    assert produced == 0
    assert normalizer.resolve_payload.call_count == 2


def test_colliding_chat_ids_get_fresh_ids():
    question = "Explain how the retry middleware backs off between attempts"
    value = {
        "conversations": [
            {"id": "same", "messages": [{"role": "user", "content": question, "timestamp": 1}]},
            {"id": "same", "messages": [{"role": "user", "content": question + "?", "timestamp": 2}]},
        ]
    }
    produced, registry, chats = _build(_record("cursorChat.conversations", value))

    assert produced == 2
    project = registry.values()[0]
    assert [c.id for c in project.chats] == [c.id for c in chats]
    assert chats[0].id == "same"
    assert chats[1].id != "same"
    assert all(d.chat_id == chats[1].id for d in chats[1].dialogues)


def test_workbench_entry_failing_validation_uses_raw_fields():
    value = {
        "entries": [
            {
                "id": 7,
                "title": "Flaky test",
                "timestamp": 1700000000000,
                "conversation": [{"sender": "user", "message": "Why is this test flaky?"}],
            }
        ]
    }
    produced, registry, chats = _build(_record("workbench.panel.aichat", value))

    assert produced == 1
    assert chats[0].id == "7"
    assert chats[0].title == "Flaky test"
    assert chats[0].timestamp == datetime.fromtimestamp(1700000000)
