"""
Nestmate — Conversation Aggregator

Derives a viewer's inbox from the flat message log:

  1. keep messages the viewer sent or received
  2. group them by correspondent
  3. pick the latest message per correspondent (timestamp, then id)
  4. label the entry with the correspondent's display name
  5. mark it read when the viewer wrote the latest message or it was read
  6. newest conversation first

The log is the only input.  Per-pair pointers kept by the storage backends
are never consulted here, so a stale pointer cannot reorder the inbox.
"""

from __future__ import annotations

from typing import Iterable, Mapping

import structlog

from app.schemas.message import Conversation, Message
from app.schemas.user import User

logger = structlog.get_logger("nestmate.conversation_service")


def _order_key(message: Message) -> tuple:
    return (message.timestamp, message.id)


def correspondents_of(user_id: int, messages: Iterable[Message]) -> set[int]:
    """Return the ids of everyone ``user_id`` has exchanged messages with."""
    partners: set[int] = set()
    for message in messages:
        if message.sender_id == user_id:
            partners.add(message.receiver_id)
        elif message.receiver_id == user_id:
            partners.add(message.sender_id)
    return partners


def build_conversations(
    user_id: int,
    messages: Iterable[Message],
    users: Mapping[int, User],
) -> list[Conversation]:
    """Build one inbox entry per correspondent of ``user_id``.

    Parameters
    ----------
    user_id:
        The viewer.
    messages:
        Any superset of the viewer's messages; unrelated messages are ignored.
    users:
        Lookup of correspondent records.  Correspondents missing from it are
        skipped rather than reported.
    """
    latest: dict[int, Message] = {}
    for message in messages:
        if message.sender_id == user_id:
            partner_id = message.receiver_id
        elif message.receiver_id == user_id:
            partner_id = message.sender_id
        else:
            continue

        current = latest.get(partner_id)
        if current is None or _order_key(message) > _order_key(current):
            latest[partner_id] = message

    entries: list[tuple[Conversation, Message]] = []
    for partner_id, message in latest.items():
        partner = users.get(partner_id)
        if partner is None:
            logger.warning(
                "conversation_partner_missing",
                user_id=user_id,
                partner_id=partner_id,
            )
            continue

        entries.append((
            Conversation(
                user_id=partner_id,
                name=partner.display_name,
                profile_image=partner.profile_image,
                last_message=message.content,
                last_message_time=message.timestamp,
                read=message.sender_id == user_id or message.read,
            ),
            message,
        ))

    entries.sort(key=lambda entry: _order_key(entry[1]), reverse=True)
    return [conversation for conversation, _ in entries]
