"""
Store construction from settings.
"""
from corpchannel.core.config import Settings
from corpchannel.core.logging import get_logger
from corpchannel.storage.base import MessageStore
from corpchannel.storage.file import JsonFileMessageStore
from corpchannel.storage.memory import InMemoryMessageStore
from corpchannel.storage.sql import SqlMessageStore

logger = get_logger(__name__)


def create_store(settings: Settings) -> MessageStore:
    """Build the message store selected by ``settings.storage_backend``."""
    backend = settings.storage_backend
    if backend == "memory":
        store = InMemoryMessageStore()
    elif backend == "file":
        store = JsonFileMessageStore(settings.data_dir)
    elif backend == "database":
        store = SqlMessageStore(settings.database_url, echo=settings.debug)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")
    
    logger.info("Message store ready", extra={"extra_data": {"backend": store.backend_name}})
    return store

