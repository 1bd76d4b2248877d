"""
Tests for domain models and shared utilities.
"""
from datetime import datetime
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from cursor_chat_manager.core.models import (
    CanonicalMessage,
    Chat,
    Dialogue,
    MessageRole,
    Project,
)
from cursor_chat_manager.core.utils import (
    as_number,
    format_chat_timestamp,
    is_hash_like,
    is_hash_name,
    millis_to_datetime,
    name_from_file_uri,
    project_id_for_name,
)

MOMENT = datetime(2024, 1, 31, 14, 5, 9)


def _chat(chat_id="c1"):
    chat = Chat(id=chat_id, title="Debugging", timestamp=MOMENT)
    chat.add_dialogue(Dialogue(id="d1", content="Why?", is_user=True, timestamp=MOMENT))
    chat.add_dialogue(Dialogue(id="d2", content="Because.", is_user=False, timestamp=MOMENT))
    return chat


def test_canonical_message_rejects_blank_content():
    with pytest.raises(ValidationError):
        CanonicalMessage(role=MessageRole.USER, content="  \n", timestamp_millis=0)


def test_canonical_message_timestamp():
    message = CanonicalMessage(role="assistant", content="ok", timestamp_millis=1700000000000)
    assert message.role == MessageRole.ASSISTANT
    assert message.timestamp == datetime.fromtimestamp(1700000000)


def test_add_dialogue_sets_chat_id():
    chat = _chat()
    assert [d.chat_id for d in chat.dialogues] == ["c1", "c1"]


def test_add_chat_sets_project_and_rejects_duplicates():
    project = Project(id="original-api", name="api")
    chat = _chat()
    duplicate = _chat()
    assert project.add_chat(chat) is True
    assert project.add_chat(duplicate) is False

    assert len(project.chats) == 1
    assert chat.project_id == "original-api"
    assert duplicate.project_id == ""
    assert project.remove_chat("c1") is True
    assert project.remove_chat("c1") is False


def test_tags_are_unique():
    chat = _chat()
    chat.add_tag("sql")
    chat.add_tag("sql")
    assert chat.tags == ["sql"]
    assert chat.remove_tag("sql") is True
    assert chat.remove_tag("sql") is False


def test_project_serialize_uses_camel_case():
    project = Project(id="original-api", name="api", description="d", created=MOMENT)
    project.add_chat(_chat())

    data = project.serialize()

    assert data["isCustom"] is False
    assert data["created"] == "2024-01-31T14:05:09"
    chat = data["chats"][0]
    assert chat["projectId"] == "original-api"
    assert chat["dialogues"][1] == {
        "id": "d2",
        "chatId": "c1",
        "content": "Because.",
        "isUser": False,
        "timestamp": "2024-01-31T14:05:09",
        "tags": [],
        "metadata": None,
    }


def test_project_deserialize_restores_hierarchy():
    project = Project(id="original-api", name="api", created=MOMENT)
    project.add_chat(_chat())

    restored = Project.deserialize(project.serialize())

    assert restored.id == "original-api"
    assert restored.created == MOMENT
    assert restored.chats[0].dialogues[0].content == "Why?"
    assert restored.chats[0].dialogues[0].is_user is True


def test_deserialize_tolerates_missing_fields():
    chat = Chat.deserialize({"id": "c9", "timestamp": "2024-01-31T14:05:09Z", "tags": "bad"})
    assert chat.title == ""
    assert chat.dialogues == []
    assert chat.tags == []


def test_update_metadata_merges():
    project = Project(id="p", name="p")
    project.update_metadata({"a": 1})
    project.update_metadata({"b": 2})
    assert project.metadata == {"a": 1, "b": 2}


@pytest.mark.parametrize("name,expected", [
    ("My App", "original-my-app"),
    ("Two  Spaces\tTab", "original-two-spaces-tab"),
    ("Workspace 0123abcd", "original-workspace-0123abcd"),
])
def test_project_id_for_name(name, expected):
    assert project_id_for_name(name) == expected


@pytest.mark.parametrize("uri,expected", [
    ("file:///Users/me/code/app", "app"),
    ("file:///c%3A/Users/me/My%20App", "My App"),
    ("file:///C:/work/tool", "tool"),
    ("file:///Users/me/code/", None),
    ("file:///storage/" + "a" * 32, None),
])
def test_name_from_file_uri(uri, expected):
    assert name_from_file_uri(uri) == expected


def test_hash_checks():
    assert is_hash_name("0123456789abcdef0123456789abcdef")
    assert not is_hash_name("0123abcd")
    assert is_hash_like("0123abcd")
    assert not is_hash_like("project-x")
    assert not is_hash_name("")


@pytest.mark.parametrize("value,expected", [
    (5, 5.0),
    (2.5, 2.5),
    ("17", 17.0),
    ("abc", None),
    (True, None),
    (None, None),
    ([1], None),
])
def test_as_number(value, expected):
    assert as_number(value) == expected


def test_millis_to_datetime_falls_back_to_now():
    fixed = datetime(2030, 1, 1)
    with patch("cursor_chat_manager.core.utils.datetime") as mock_datetime:
        mock_datetime.fromtimestamp.side_effect = OverflowError("too big")
        mock_datetime.now.return_value = fixed
        assert millis_to_datetime(1e30) == fixed
    assert millis_to_datetime(0) == datetime.fromtimestamp(0)


def test_format_chat_timestamp():
    assert format_chat_timestamp(MOMENT) == "01/31/2024, 02:05:09 PM"
