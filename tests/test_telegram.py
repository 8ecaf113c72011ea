"""Tests for Telegram update parsing, message splitting and sending."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import httpx
import pytest

from linear_agent.services.telegram import (
    MAX_MESSAGE_LENGTH,
    InboundMessage,
    TelegramClient,
    parse_update,
    split_message,
)


class TestSplitMessage:
    def test_short_message_untouched(self):
        assert split_message("hello") == ["hello"]

    def test_exact_limit_is_one_chunk(self):
        text = "a" * MAX_MESSAGE_LENGTH
        assert split_message(text) == [text]

    def test_prefers_late_newline(self):
        text = "a" * 80 + "\n" + "b" * 50
        assert split_message(text, max_len=100) == ["a" * 80, "b" * 50]

    def test_early_newline_ignored_for_hard_cut(self):
        text = "a" * 10 + "\n" + "b" * 150
        chunks = split_message(text, max_len=100)
        assert chunks[0] == text[:100]
        assert "".join(chunks) == text

    def test_every_chunk_within_limit(self):
        text = "\n".join(f"- YAK-{n}: something to do" for n in range(500))
        chunks = split_message(text)
        assert len(chunks) > 1
        assert all(len(c) <= MAX_MESSAGE_LENGTH for c in chunks)

    def test_leading_whitespace_dropped(self):
        text = "a" * 90 + "\n   " + "b" * 20
        assert split_message(text, max_len=100)[1] == "b" * 20


class TestParseUpdate:
    def test_text_message(self):
        body = {
            "update_id": 1,
            "message": {
                "message_id": 7,
                "chat": {"id": 12345},
                "from": {"first_name": "Zach"},
                "text": "YAK-1 is done",
            },
        }
        assert parse_update(body) == InboundMessage(
            chat_id="12345", text="YAK-1 is done", message_id=7, first_name="Zach",
        )

    def test_edited_message(self):
        body = {"edited_message": {"chat": {"id": 1}, "text": "fixed typo"}}
        message = parse_update(body)
        assert message.text == "fixed typo"
        assert message.first_name == "Unknown"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"message": {"chat": {"id": 1}, "sticker": {}}},
            {"callback_query": {"id": "x"}},
        ],
    )
    def test_non_text_updates_ignored(self, body):
        assert parse_update(body) is None


class TestTelegramClient:
    @pytest.fixture
    def client(self):
        c = TelegramClient(token="123:abc")
        yield c
        c.close()

    def test_long_message_sent_in_chunks(self, client):
        response = MagicMock()
        with patch.object(client._client, "post", return_value=response) as post:
            assert client.send_message("12345", "x" * (MAX_MESSAGE_LENGTH + 10)) is True

        assert post.call_count == 2
        assert post.call_args_list[0].args[0] == "/sendMessage"
        assert post.call_args_list[1].kwargs["json"] == {"chat_id": "12345", "text": "x" * 10}

    def test_send_failure_is_swallowed(self, client):
        with patch.object(client._client, "post", side_effect=httpx.ConnectError("down")):
            assert client.send_message("12345", "hi") is False

    def test_typing_indicator(self, client):
        with patch.object(client._client, "post", return_value=MagicMock()) as post:
            client.send_typing("12345")
        post.assert_called_once_with("/sendChatAction", json={"chat_id": "12345", "action": "typing"})

    def test_base_url_includes_token(self, client):
        assert str(client._client.base_url).startswith("https://api.telegram.org/bot123:abc")
