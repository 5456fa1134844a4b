from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
import requests

from repobot.errors import TelegramError
from repobot.telegram import TelegramClient, split_message


def mock_response(status_code: int, data: dict) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.json.return_value = data
    response.text = str(data)
    return response


def test_split_message_prefers_line_breaks():
    text = "a" * 6 + "\n" + "b" * 6
    assert split_message(text, limit=10) == ["aaaaaa", "bbbbbb"]
    assert split_message("c" * 25, limit=10) == ["c" * 10, "c" * 10, "c" * 5]
    assert split_message("short") == ["short"]


def test_send_message_posts_each_chunk():
    client = TelegramClient(bot_token="token", chat_id="42")

    with patch.object(client.session, "post", return_value=mock_response(200, {"ok": True})) as post:
        count = client.send_message("x" * 5000)

    assert count == 2
    url = post.call_args_list[0].args[0]
    assert url == "https://api.telegram.org/bottoken/sendMessage"
    payload = post.call_args_list[0].kwargs["json"]
    assert payload["chat_id"] == "42"
    assert payload["parse_mode"] == "Markdown"
    assert len(payload["text"]) == 4096


def test_send_message_raises_on_api_error():
    client = TelegramClient(bot_token="token", chat_id="42")
    error = mock_response(400, {"ok": False, "description": "Bad Request: chat not found"})

    with patch.object(client.session, "post", return_value=error):
        with pytest.raises(TelegramError) as exc:
            client.send_message("hello")

    assert exc.value.status_code == 400
    assert "chat not found" in str(exc.value)


def test_send_message_wraps_network_errors():
    client = TelegramClient(bot_token="token", chat_id="42")
    with patch.object(client.session, "post", side_effect=requests.ConnectionError("down")):
        with pytest.raises(TelegramError):
            client.send_message("hello")


def test_client_requires_credentials():
    with pytest.raises(TelegramError):
        TelegramClient(bot_token="", chat_id="42")
