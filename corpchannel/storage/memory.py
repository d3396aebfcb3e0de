"""
In-memory message store. State lives for the lifetime of the process.
"""
import threading
import uuid
from typing import Dict, List, Optional

from corpchannel.core.logging import get_logger
from corpchannel.schemas.message import Message, MessageCreate
from corpchannel.storage.base import (
    Clock,
    MessageStore,
    count_reactions,
    matches_query,
    resolve_reaction_args,
    sort_by_created,
    toggle_user_reaction,
)

logger = get_logger(__name__)


class InMemoryMessageStore(MessageStore):
    """Dict-backed store guarded by a single lock."""

    backend_name = "memory"

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._messages: Dict[str, Message] = {}
        self._users: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def create_message(self, data: MessageCreate) -> Message:
        message = Message(
            id=str(uuid.uuid4()),
            content=data.content,
            message_type=data.message_type,
            media_url=data.media_url or None,
            media_filename=data.media_filename or None,
            created_at=self.clock(),
        )
        with self._lock:
            self._messages[message.id] = message
        logger.info("Message created", extra={"extra_data": {"message_id": message.id}})
        return message.model_copy(deep=True)

    def get_message(self, message_id: str) -> Optional[Message]:
        with self._lock:
            message = self._messages.get(message_id)
            return message.model_copy(deep=True) if message else None

    def get_all_messages(self) -> List[Message]:
        with self._lock:
            snapshot = [m.model_copy(deep=True) for m in self._messages.values()]
        return sort_by_created(snapshot)

    def increment_view_count(self, message_id: str) -> None:
        with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                logger.debug(f"View for unknown message ignored: {message_id}")
                return
            message.view_count += 1

    def toggle_pin(self, message_id: str) -> None:
        with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                logger.debug(f"Pin for unknown message ignored: {message_id}")
                return
            message.is_pinned = 0 if message.is_pinned else 1
        logger.info(
            "Message pin toggled",
            extra={"extra_data": {"message_id": message_id, "is_pinned": message.is_pinned}}
        )

    def toggle_reaction(self, message_id: str, user_id: Optional[str] = None, emoji: Optional[str] = None) -> None:
        user_id, emoji = resolve_reaction_args(user_id, emoji)
        with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                logger.debug(f"Reaction for unknown message ignored: {message_id}")
                return
            message.reactions = toggle_user_reaction(message.reactions, user_id, emoji)
            message.reaction_count = count_reactions(message.reactions)

    def delete_message(self, message_id: str) -> None:
        with self._lock:
            removed = self._messages.pop(message_id, None)
        if removed is not None:
            logger.info("Message deleted", extra={"extra_data": {"message_id": message_id}})

    def search_messages(self, query: str) -> List[Message]:
        with self._lock:
            found = [m.model_copy(deep=True) for m in self._messages.values() if matches_query(m, query)]
        return sort_by_created(found, newest_first=True)

    def get_user(self, user_id: str) -> Optional[dict]:
        with self._lock:
            user = self._users.get(user_id)
            return dict(user) if user else None

    def get_user_by_username(self, username: str) -> Optional[dict]:
        with self._lock:
            for user in self._users.values():
                if user.get("username") == username:
                    return dict(user)
        return None

    def create_user(self, data: dict) -> dict:
        user = {**data, "id": str(uuid.uuid4())}
        with self._lock:
            self._users[user["id"]] = user
        return dict(user)

    def count_messages(self) -> int:
        with self._lock:
            return len(self._messages)
