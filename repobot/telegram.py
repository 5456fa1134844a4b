"""
Telegram Bot API client for delivering Repobot reports.

Uses TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID when the config leaves them out.
"""

from __future__ import annotations

import logging

import requests

from . import __version__
from .errors import TelegramError

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096
REQUEST_TIMEOUT = 30


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split text into chunks under `limit`, preferring line breaks."""
    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining:
        chunks.append(remaining)
    return chunks


class TelegramClient:
    """Sends messages to one chat."""

    def __init__(self, bot_token: str, chat_id: str):
        if not bot_token or not chat_id:
            raise TelegramError("Telegram bot token and chat id are required")
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.session = requests.Session()
        self.session.headers["User-Agent"] = f"repobot/{__version__}"

    def _post(self, method: str, payload: dict) -> dict:
        url = f"{TELEGRAM_API_BASE}/bot{self.bot_token}/{method}"
        try:
            response = self.session.post(url, json=payload, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise TelegramError(f"Request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400 or not data.get("ok", False):
            description = data.get("description") or response.text
            raise TelegramError(
                f"Telegram API error: {response.status_code} - {description}",
                response.status_code,
            )
        return data

    def send_message(self, text: str, parse_mode: str | None = "Markdown") -> int:
        """Send `text`, split into several messages if needed. Returns the message count."""
        chunks = split_message(text)
        for chunk in chunks:
            payload = {"chat_id": self.chat_id, "text": chunk}
            if parse_mode:
                payload["parse_mode"] = parse_mode
            self._post("sendMessage", payload)
        logger.info("Sent %d message(s) to Telegram chat %s", len(chunks), self.chat_id)
        return len(chunks)
