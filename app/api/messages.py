"""
Nestmate — Messages API

Inbox, per-correspondent threads (fetching a thread marks incoming messages
read), and sending.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status

from app.api.deps import get_storage, require_viewer_id
from app.schemas.message import Conversation, Message, MessageCreate
from app.storage.base import Storage

logger = structlog.get_logger("nestmate.api.messages")

router = APIRouter()


@router.get(
    "/conversations",
    response_model=list[Conversation],
    summary="The viewer's inbox",
)
async def list_conversations(
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> list[Conversation]:
    return await storage.conversations_for(viewer_id)


@router.get(
    "/conversation/{user_id}",
    response_model=list[Message],
    summary="Thread with another user",
)
async def get_thread(
    user_id: int,
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> list[Message]:
    return await storage.messages_between(viewer_id, user_id)


@router.post(
    "/",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    payload: MessageCreate,
    viewer_id: int = Depends(require_viewer_id),
    storage: Storage = Depends(get_storage),
) -> Message:
    message = await storage.create_message(
        viewer_id, payload.receiver_id, payload.content
    )
    logger.info(
        "message_sent",
        message_id=message.id,
        sender_id=viewer_id,
        receiver_id=payload.receiver_id,
    )
    return message
