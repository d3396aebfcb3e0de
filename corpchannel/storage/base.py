"""
Message store interface and the mutation rules shared by every backend.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from corpchannel.schemas.message import (
    ANONYMOUS_USER_ID,
    DEFAULT_REACTION_EMOJI,
    Message,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StorageError(Exception):
    """Raised when the backing medium cannot be read or written."""


def toggle_user_reaction(
    reactions: Dict[str, List[str]],
    user_id: str,
    emoji: str,
) -> Dict[str, List[str]]:
    """
    Return a new reaction map with ``user_id`` toggled under ``emoji``.

    An emoji key is dropped as soon as its user list becomes empty.
    """
    updated = {key: list(users) for key, users in reactions.items()}
    users = updated.setdefault(emoji, [])
    if user_id in users:
        users.remove(user_id)
        if not users:
            del updated[emoji]
    else:
        users.append(user_id)
    return updated


def count_reactions(reactions: Dict[str, List[str]]) -> int:
    """Total number of reactions across all emoji."""
    return sum(len(users) for users in reactions.values())


def resolve_reaction_args(user_id: Optional[str], emoji: Optional[str]) -> tuple:
    """Apply the anonymous-user and heart defaults to empty arguments."""
    return user_id or ANONYMOUS_USER_ID, emoji or DEFAULT_REACTION_EMOJI


def matches_query(message: Message, query: str) -> bool:
    """Case-insensitive substring match on content or media filename."""
    needle = query.lower()
    if needle in (message.content or "").lower():
        return True
    return bool(message.media_filename) and needle in message.media_filename.lower()


def sort_by_created(messages: Iterable[Message], newest_first: bool = False) -> List[Message]:
    """Order by creation time; equal timestamps keep insertion order (reversed when newest first)."""
    ordered = sorted(messages, key=lambda m: m.created_at)
    return ordered[::-1] if newest_first else ordered


class MessageStore(ABC):
    """
    Canonical set of channel messages.

    Operations on an unknown message id are silent no-ops. Returned messages
    are detached copies; changing them never changes stored state.
    """

    backend_name = "abstract"

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utc_now

    # Messages

    @abstractmethod
    def create_message(self, data) -> Message:
        """Store a new message with a generated id, zeroed counters and the current time."""

    @abstractmethod
    def get_message(self, message_id: str) -> Optional[Message]:
        ...

    @abstractmethod
    def get_all_messages(self) -> List[Message]:
        """All messages, oldest first."""

    @abstractmethod
    def increment_view_count(self, message_id: str) -> None:
        ...

    @abstractmethod
    def toggle_pin(self, message_id: str) -> None:
        ...

    @abstractmethod
    def toggle_reaction(
        self,
        message_id: str,
        user_id: Optional[str] = ANONYMOUS_USER_ID,
        emoji: Optional[str] = DEFAULT_REACTION_EMOJI,
    ) -> None:
        ...

    @abstractmethod
    def delete_message(self, message_id: str) -> None:
        ...

    @abstractmethod
    def search_messages(self, query: str) -> List[Message]:
        """Messages matching ``query``, newest first."""

    # Users

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[dict]:
        ...

    @abstractmethod
    def create_user(self, data: dict) -> dict:
        ...

    # Lifecycle

    def is_healthy(self) -> bool:
        return True

    def count_messages(self) -> int:
        return len(self.get_all_messages())

    def close(self) -> None:
        """Release any resources held by the store."""
