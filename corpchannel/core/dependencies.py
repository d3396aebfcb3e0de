"""
FastAPI dependencies resolved from application state.
"""
from fastapi import Request

from corpchannel.core.config import Settings
from corpchannel.storage.base import MessageStore


def get_store(request: Request) -> MessageStore:
    """The message store created at application startup."""
    return request.app.state.store


def get_app_settings(request: Request) -> Settings:
    """The settings the running application was created with."""
    return request.app.state.settings
