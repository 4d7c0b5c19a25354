"""
Trade notifications via Telegram.

Set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID; without them messages are
only written to the log.
"""

from __future__ import annotations

import logging

import requests

log = logging.getLogger("alertbot.notify")

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"
# Telegram rejects messages longer than this
MAX_MESSAGE_LEN = 4096


class TelegramNotifier:
    def __init__(self, token: str = "", chat_id: str = "", timeout: float = 10.0):
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout

        if self.enabled:
            log.info("Telegram notifications enabled")
        else:
            log.info("Telegram not configured, notifications go to the log only")

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.chat_id)

    def send(self, text: str) -> bool:
        """Returns True if Telegram accepted the message. Never raises."""
        log.info("[notify] %s", text)
        if not self.enabled:
            return False

        try:
            r = requests.post(
                TELEGRAM_API.format(token=self.token),
                json={
                    "chat_id": self.chat_id,
                    "text": text[:MAX_MESSAGE_LEN],
                    "disable_web_page_preview": True,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning("Telegram send failed: %s", e)
            return False

        if r.status_code != 200:
            log.warning("Telegram send failed: HTTP %s %s", r.status_code, r.text[:200])
            return False
        return True

    __call__ = send
