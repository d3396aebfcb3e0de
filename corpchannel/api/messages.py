"""
Channel message endpoints.
"""
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from corpchannel.core.config import Settings
from corpchannel.core.dependencies import get_app_settings, get_store
from corpchannel.core.logging import get_logger
from corpchannel.schemas.message import (
    ErrorResponse,
    Message,
    MessageCreate,
    MessageType,
    ReactionRequest,
    SuccessResponse,
)
from corpchannel.services.uploads import infer_message_type, save_upload
from corpchannel.storage.base import MessageStore

logger = get_logger(__name__)

router = APIRouter(prefix="/api/messages", tags=["Messages"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


def _fail(action: str, error: Exception) -> HTTPException:
    logger.error(f"Failed to {action}: {error}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Failed to {action}")


@router.get(
    "",
    response_model=List[Message],
    summary="List messages",
    description="Return every message in the channel, oldest first."
)
async def list_messages(
    store: Annotated[MessageStore, Depends(get_store)],
) -> List[Message]:
    try:
        messages = store.get_all_messages()
    except Exception as e:
        raise _fail("fetch messages", e)

    logger.debug("Listed messages", extra={"extra_data": {"returned": len(messages)}})
    return messages


@router.get(
    "/search",
    response_model=List[Message],
    responses=ERROR_RESPONSES,
    summary="Search messages",
    description="Case-insensitive search over message text and attachment names, newest first."
)
async def search_messages(
    store: Annotated[MessageStore, Depends(get_store)],
    q: Annotated[Optional[str], Query(description="Search text")] = None,
) -> List[Message]:
    if not q:
        raise HTTPException(status_code=400, detail="Search query is required")

    try:
        results = store.search_messages(q)
    except Exception as e:
        raise _fail("search messages", e)

    logger.debug("Searched messages", extra={"extra_data": {"query": q, "returned": len(results)}})
    return results


@router.post(
    "",
    response_model=Message,
    responses=ERROR_RESPONSES,
    summary="Post a message",
)
async def create_message(
    message_data: MessageCreate,
    store: Annotated[MessageStore, Depends(get_store)],
) -> Message:
    """
    Post a text message to the channel.

    - **content**: message text
    - **messageType**: one of text, image, video, file (default text)
    """
    try:
        return store.create_message(message_data)
    except Exception as e:
        raise _fail("create message", e)


@router.post(
    "/upload",
    response_model=Message,
    responses=ERROR_RESPONSES,
    summary="Post a message with an attachment",
)
async def upload_message(
    store: Annotated[MessageStore, Depends(get_store)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    file: Annotated[Optional[UploadFile], File(description="Attachment")] = None,
    content: Annotated[str, Form()] = "",
    message_type: Annotated[Optional[MessageType], Form(alias="messageType")] = None,
) -> Message:
    """
    Store one uploaded file and post a message referencing it.

    When **messageType** is omitted it is inferred from the file's MIME type.
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    try:
        stored = await save_upload(file, settings.upload_dir, settings.uploads_url_path)
    except Exception as e:
        raise _fail("store upload", e)

    message_data = MessageCreate(
        content=content or "",
        message_type=message_type or infer_message_type(file.content_type),
        media_url=stored.media_url,
        media_filename=stored.media_filename,
    )
    try:
        return store.create_message(message_data)
    except Exception as e:
        # No message references the file, so drop it
        stored.path.unlink(missing_ok=True)
        raise _fail("store upload", e)


@router.post(
    "/{message_id}/view",
    response_model=SuccessResponse,
    responses=ERROR_RESPONSES,
    summary="Count a view",
)
async def increment_view(
    message_id: str,
    store: Annotated[MessageStore, Depends(get_store)],
) -> SuccessResponse:
    try:
        store.increment_view_count(message_id)
    except Exception as e:
        raise _fail("increment view count", e)
    return SuccessResponse()


@router.post(
    "/{message_id}/pin",
    response_model=SuccessResponse,
    responses=ERROR_RESPONSES,
    summary="Toggle pin",
)
async def toggle_pin(
    message_id: str,
    store: Annotated[MessageStore, Depends(get_store)],
) -> SuccessResponse:
    try:
        store.toggle_pin(message_id)
    except Exception as e:
        raise _fail("toggle pin status", e)
    return SuccessResponse()


@router.post(
    "/{message_id}/reaction",
    response_model=SuccessResponse,
    responses=ERROR_RESPONSES,
    summary="Toggle reaction",
)
async def toggle_reaction(
    message_id: str,
    store: Annotated[MessageStore, Depends(get_store)],
    reaction: Optional[ReactionRequest] = None,
) -> SuccessResponse:
    """
    Add or remove the caller's reaction.

    - **userId**: opaque caller identity (default "anonymous")
    - **emoji**: reaction emoji (default a red heart)
    """
    reaction = reaction or ReactionRequest()
    try:
        store.toggle_reaction(message_id, reaction.user_id, reaction.emoji)
    except Exception as e:
        raise _fail("toggle reaction", e)
    return SuccessResponse()


@router.delete(
    "/{message_id}",
    response_model=SuccessResponse,
    responses=ERROR_RESPONSES,
    summary="Delete a message",
)
async def delete_message(
    message_id: str,
    store: Annotated[MessageStore, Depends(get_store)],
) -> SuccessResponse:
    try:
        store.delete_message(message_id)
    except Exception as e:
        raise _fail("delete message", e)
    return SuccessResponse()
