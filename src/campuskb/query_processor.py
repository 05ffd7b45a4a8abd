"""Query submission against the knowledge base, recorded into the user's conversation."""
from __future__ import annotations

import threading
from typing import Callable

from .config import DEFAULT_SESSION_ID
from .conversation import ConversationStore
from .errors import NotFound, QueryInFlight, ValidationFailed
from .kb_client import KnowledgeBaseClient
from .models import MessageRole, QueryMessage, User, new_id, utcnow
from .observability import get_logger
from .response_parser import ExtractedAnswer, extract_answer

logger = get_logger(__name__)

EMPTY_ANSWER_FALLBACK = "I found some information, but couldn't format a proper response."
NO_ANSWER_FALLBACK = "I couldn't find relevant information for your query."


class QueryProcessor:
    """
    Owns per-conversation query execution.
    Only one query per user may be pending; a second submit is refused until the first resolves.
    """

    def __init__(
        self,
        *,
        client: KnowledgeBaseClient,
        conversations: ConversationStore,
        extractor: Callable[[str | None], ExtractedAnswer] = extract_answer,
    ):
        self.client = client
        self.conversations = conversations
        self.extractor = extractor
        self._pending: set[str] = set()
        self._pending_lock = threading.Lock()

    def is_pending(self, user: User) -> bool:
        with self._pending_lock:
            return user.email in self._pending

    def _claim(self, email: str):
        with self._pending_lock:
            if email in self._pending:
                raise QueryInFlight("A query is already in progress")
            self._pending.add(email)

    def _release(self, email: str):
        with self._pending_lock:
            self._pending.discard(email)

    def submit(self, user: User, text: str) -> QueryMessage:
        """Records the question, asks the backend and records the reply; returns the reply message."""
        query = str(text or "").strip()
        if not query:
            raise ValidationFailed("Please enter a question")

        self._claim(user.email)
        try:
            self.conversations.append(
                user.email,
                QueryMessage(
                    id=new_id("msg"),
                    role=MessageRole.USER,
                    content=query,
                    timestamp=utcnow(),
                    query=query,
                ),
            )
            result = self.client.query(user.email, user.session_id or DEFAULT_SESSION_ID, query)
            if result.success:
                extracted = self.extractor(result.body)
                reply = QueryMessage(
                    id=new_id("msg"),
                    role=MessageRole.ASSISTANT,
                    content=extracted.answer or EMPTY_ANSWER_FALLBACK,
                    timestamp=utcnow(),
                    query=query,
                    sources=tuple(extracted.sources),
                )
            else:
                reply = QueryMessage(
                    id=new_id("msg"),
                    role=MessageRole.ERROR,
                    content=result.message or NO_ANSWER_FALLBACK,
                    timestamp=utcnow(),
                    query=query,
                )
            self.conversations.append(user.email, reply)
        finally:
            self._release(user.email)

        logger.info(
            "query_answered" if reply.role is MessageRole.ASSISTANT else "query_failed",
            email=user.email,
            sources=len(reply.sources),
        )
        return reply

    def retry(self, user: User, message_id: str) -> QueryMessage:
        """Resubmits the original question behind an error message."""
        message = self.conversations.find(user.email, message_id)
        if message is None or message.role is not MessageRole.ERROR or not message.query:
            raise NotFound("No failed query to retry")
        return self.submit(user, message.query)

    def history(self, user: User) -> list[QueryMessage]:
        return self.conversations.history(user.email)

    def clear(self, user: User):
        self.conversations.clear(user.email)
