"""
JSON-file message store.

Two flat JSON documents live under the data directory: ``messages.json`` maps
message id to message record and ``users.json`` maps user id to user record.
Every call re-reads the whole document and every mutation rewrites it.
"""
import json
import os
import tempfile
import threading
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from corpchannel.core.logging import get_logger
from corpchannel.schemas.message import Message, MessageCreate
from corpchannel.storage.base import (
    Clock,
    MessageStore,
    StorageError,
    count_reactions,
    matches_query,
    resolve_reaction_args,
    sort_by_created,
    toggle_user_reaction,
)

logger = get_logger(__name__)

MESSAGES_FILENAME = "messages.json"
USERS_FILENAME = "users.json"


class JsonFileMessageStore(MessageStore):
    """Store persisted as whole-file JSON documents."""

    backend_name = "file"

    def __init__(self, data_dir: Union[str, Path], clock: Optional[Clock] = None):
        super().__init__(clock)
        self.data_dir = Path(data_dir)
        self.messages_file = self.data_dir / MESSAGES_FILENAME
        self.users_file = self.data_dir / USERS_FILENAME
        # Serializes read-modify-write cycles within this process
        self._lock = threading.RLock()

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.messages_file, self.users_file):
                if not path.exists():
                    self._write_json(path, {})
                    logger.info(f"Initialized data file: {path}")
        except OSError as e:
            raise StorageError(f"Cannot initialize data directory {self.data_dir}: {e}") from e

    # Raw document I/O

    def _read_json(self, path: Path) -> dict:
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"{path.name} does not contain a JSON object")
        return data

    def _write_json(self, path: Path, data: dict) -> None:
        # Write to a sibling temp file and rename over the target
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Cannot write {path.name}: {e}") from e

    def _read_messages(self) -> Dict[str, Message]:
        raw = self._read_json(self.messages_file)
        try:
            return {key: Message.model_validate(value) for key, value in raw.items()}
        except (ValidationError, ValueError) as e:
            raise StorageError(f"Invalid message record in {self.messages_file.name}: {e}") from e

    def _write_messages(self, messages: Dict[str, Message]) -> None:
        payload = {
            key: message.model_dump(mode="json", by_alias=True)
            for key, message in messages.items()
        }
        self._write_json(self.messages_file, payload)

    def _mutate(self, message_id: str, action: str, change: Callable[[Message], None]) -> None:
        with self._lock:
            messages = self._read_messages()
            message = messages.get(message_id)
            if message is None:
                logger.debug(f"{action} for unknown message ignored: {message_id}")
                return
            change(message)
            self._write_messages(messages)

    # Messages

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
            messages = self._read_messages()
            messages[message.id] = message
            self._write_messages(messages)
        logger.info("Message created", extra={"extra_data": {"message_id": message.id}})
        return message

    def get_message(self, message_id: str) -> Optional[Message]:
        with self._lock:
            return self._read_messages().get(message_id)

    def get_all_messages(self) -> List[Message]:
        with self._lock:
            messages = self._read_messages()
        return sort_by_created(messages.values())

    def increment_view_count(self, message_id: str) -> None:
        def change(message: Message) -> None:
            message.view_count += 1

        self._mutate(message_id, "View", change)

    def toggle_pin(self, message_id: str) -> None:
        def change(message: Message) -> None:
            message.is_pinned = 0 if message.is_pinned else 1
            logger.info(
                "Message pin toggled",
                extra={"extra_data": {"message_id": message_id, "is_pinned": message.is_pinned}}
            )

        self._mutate(message_id, "Pin", change)

    def toggle_reaction(self, message_id: str, user_id: Optional[str] = None, emoji: Optional[str] = None) -> None:
        user_id, emoji = resolve_reaction_args(user_id, emoji)

        def change(message: Message) -> None:
            message.reactions = toggle_user_reaction(message.reactions, user_id, emoji)
            message.reaction_count = count_reactions(message.reactions)

        self._mutate(message_id, "Reaction", change)

    def delete_message(self, message_id: str) -> None:
        with self._lock:
            messages = self._read_messages()
            if messages.pop(message_id, None) is None:
                return
            self._write_messages(messages)
        logger.info("Message deleted", extra={"extra_data": {"message_id": message_id}})

    def search_messages(self, query: str) -> List[Message]:
        with self._lock:
            messages = self._read_messages()
        found = [m for m in messages.values() if matches_query(m, query)]
        return sort_by_created(found, newest_first=True)

    def count_messages(self) -> int:
        with self._lock:
            return len(self._read_json(self.messages_file))

    # Users

    def get_user(self, user_id: str) -> Optional[dict]:
        with self._lock:
            return self._read_json(self.users_file).get(user_id)

    def get_user_by_username(self, username: str) -> Optional[dict]:
        with self._lock:
            users = self._read_json(self.users_file)
        for user in users.values():
            if user.get("username") == username:
                return user
        return None

    def create_user(self, data: dict) -> dict:
        user = {**data, "id": str(uuid.uuid4())}
        with self._lock:
            users = self._read_json(self.users_file)
            users[user["id"]] = user
            self._write_json(self.users_file, users)
        return user

    def is_healthy(self) -> bool:
        try:
            with self._lock:
                self._read_json(self.messages_file)
            return os.access(self.data_dir, os.W_OK)
        except StorageError as e:
            logger.error(f"File store health check failed: {e}")
            return False
