"""
SQLAlchemy-backed message store.
"""
import uuid
from datetime import timezone
from contextlib import contextmanager
from typing import Generator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from corpchannel.core.database import check_db_connection, create_db_engine, init_db
from corpchannel.core.logging import get_logger
from corpchannel.models.message import MessageRecord, UserRecord
from corpchannel.schemas.message import Message, MessageCreate
from corpchannel.storage.base import (
    Clock,
    MessageStore,
    StorageError,
    count_reactions,
    matches_query,
    resolve_reaction_args,
    toggle_user_reaction,
)

logger = get_logger(__name__)


class SqlMessageStore(MessageStore):
    """Store backed by the ``messages`` and ``users`` tables."""

    backend_name = "database"

    def __init__(self, database_url: str, clock: Optional[Clock] = None, echo: bool = False):
        super().__init__(clock)
        try:
            self.engine = create_db_engine(database_url, echo=echo)
            init_db(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Cannot initialize database: {e}") from e
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session scope that commits on success and wraps database errors."""
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(str(e)) from e
        finally:
            db.close()

    @staticmethod
    def _to_message(record: MessageRecord) -> Message:
        return Message.model_validate(record)

    # Messages

    def create_message(self, data: MessageCreate) -> Message:
        record = MessageRecord(
            id=str(uuid.uuid4()),
            content=data.content,
            message_type=data.message_type.value,
            media_url=data.media_url or None,
            media_filename=data.media_filename or None,
            view_count=0,
            is_pinned=0,
            reaction_count=0,
            reactions={},
            # SQLite drops the offset on write; store UTC so reads stay correct
            created_at=self.clock().astimezone(timezone.utc),
        )
        with self.session() as db:
            db.add(record)
            db.flush()
            message = self._to_message(record)
        logger.info("Message created", extra={"extra_data": {"message_id": message.id}})
        return message

    def get_message(self, message_id: str) -> Optional[Message]:
        with self.session() as db:
            record = db.get(MessageRecord, message_id)
            return self._to_message(record) if record else None

    def get_all_messages(self) -> List[Message]:
        with self.session() as db:
            records = (
                db.query(MessageRecord)
                .order_by(MessageRecord.created_at.asc(), MessageRecord.id.asc())
                .all()
            )
            return [self._to_message(r) for r in records]

    def increment_view_count(self, message_id: str) -> None:
        with self.session() as db:
            updated = (
                db.query(MessageRecord)
                .filter(MessageRecord.id == message_id)
                .update({MessageRecord.view_count: MessageRecord.view_count + 1})
            )
        if not updated:
            logger.debug(f"View for unknown message ignored: {message_id}")

    def toggle_pin(self, message_id: str) -> None:
        with self.session() as db:
            record = db.get(MessageRecord, message_id)
            if record is None:
                logger.debug(f"Pin for unknown message ignored: {message_id}")
                return
            record.is_pinned = 0 if record.is_pinned else 1
            logger.info(
                "Message pin toggled",
                extra={"extra_data": {"message_id": message_id, "is_pinned": record.is_pinned}}
            )

    def toggle_reaction(self, message_id: str, user_id: Optional[str] = None, emoji: Optional[str] = None) -> None:
        user_id, emoji = resolve_reaction_args(user_id, emoji)
        with self.session() as db:
            record = db.get(MessageRecord, message_id)
            if record is None:
                logger.debug(f"Reaction for unknown message ignored: {message_id}")
                return
            # Assign a fresh dict so the JSON column is flagged as changed
            reactions = toggle_user_reaction(record.reactions or {}, user_id, emoji)
            record.reactions = reactions
            record.reaction_count = count_reactions(reactions)

    def delete_message(self, message_id: str) -> None:
        with self.session() as db:
            deleted = db.query(MessageRecord).filter(MessageRecord.id == message_id).delete()
        if deleted:
            logger.info("Message deleted", extra={"extra_data": {"message_id": message_id}})

    def search_messages(self, query: str) -> List[Message]:
        # SQLite lower() only folds ASCII, so matching happens on the Python side
        with self.session() as db:
            records = (
                db.query(MessageRecord)
                .order_by(MessageRecord.created_at.desc(), MessageRecord.id.desc())
                .all()
            )
            messages = [self._to_message(r) for r in records]
        return [m for m in messages if matches_query(m, query)]

    def count_messages(self) -> int:
        with self.session() as db:
            return db.query(func.count(MessageRecord.id)).scalar() or 0

    # Users

    def get_user(self, user_id: str) -> Optional[dict]:
        with self.session() as db:
            record = db.get(UserRecord, user_id)
            return record.to_dict() if record else None

    def get_user_by_username(self, username: str) -> Optional[dict]:
        with self.session() as db:
            record = db.query(UserRecord).filter(UserRecord.username == username).first()
            return record.to_dict() if record else None

    def create_user(self, data: dict) -> dict:
        fields = {key: value for key, value in data.items() if key != "id"}
        record = UserRecord(id=str(uuid.uuid4()), username=fields.get("username"), data=fields)
        with self.session() as db:
            db.add(record)
            db.flush()
            return record.to_dict()

    # Lifecycle

    def is_healthy(self) -> bool:
        return check_db_connection(self.engine)

    def close(self) -> None:
        self.engine.dispose()
