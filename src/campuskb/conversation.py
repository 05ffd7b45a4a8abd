"""
Per-user conversation transcripts.
Each user's messages are kept under their own key and rewritten in full after every change.
"""
from __future__ import annotations

import json
import threading

from .models import QueryMessage
from .observability import get_logger
from .storage_provider import KeyValueStore, conversation_key

logger = get_logger(__name__)


class ConversationStore:
    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = threading.RLock()

    def history(self, email: str) -> list[QueryMessage]:
        raw = self.store.get(conversation_key(email))
        if not raw:
            return []
        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise TypeError(f"expected a list, got {type(payload).__name__}")
            return [QueryMessage.from_dict(item) for item in payload]
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            logger.error("conversation_load_failed", email=email, error=str(exc))
            return []

    def _save(self, email: str, messages: list[QueryMessage]):
        payload = json.dumps([message.to_dict() for message in messages], ensure_ascii=True)
        self.store.set(conversation_key(email), payload)

    def append(self, email: str, message: QueryMessage) -> QueryMessage:
        with self._lock:
            messages = self.history(email)
            messages.append(message)
            self._save(email, messages)
        return message

    def find(self, email: str, message_id: str) -> QueryMessage | None:
        for message in self.history(email):
            if message.id == message_id:
                return message
        return None

    def clear(self, email: str):
        with self._lock:
            self.store.remove(conversation_key(email))
        logger.info("conversation_cleared", email=email)
