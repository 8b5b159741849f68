import logging
import os
from typing import List, Optional

import requests
from dotenv import load_dotenv

# ---------------------------------------
# ENV / Константи
# ---------------------------------------
load_dotenv()
TOKEN = os.getenv("TELEGRAM_DEVELOP")

TELEGRAM_API = f"https://api.telegram.org/bot{TOKEN}/sendMessage"

logger = logging.getLogger(__name__)


def _chat_ids() -> List[int]:
    raw = os.getenv("TELEGRAM_CHAT_IDS") or ""
    return [int(x) for x in raw.replace(" ", "").split(",") if x.lstrip("-").isdigit()]


def _build_text(message: str, source: Optional[str]) -> str:
    """
    - Без source → лише message.
    - З source → додаємо рядок з назвою постачальника / процесу.
    """
    if not source:
        return message
    return "\n".join([message, "", f"Постачальник: {source}"])


def send_notification(message: str, source: Optional[str] = None) -> None:
    """
    Синхронна відправка повідомлення у Telegram.
    Помилки відправки лише логуються: сповіщення не повинні ламати імпорт.
    """
    if not TOKEN:
        # Немає токена: пропускаємо відправку
        return

    text = _build_text(message, source)
    for chat_id in _chat_ids():
        payload = {"chat_id": chat_id, "text": text}
        try:
            requests.post(TELEGRAM_API, data=payload, timeout=15)
        except requests.RequestException as e:
            logger.warning("Не вдалося надіслати сповіщення в Telegram: %s", e)
