"""Conversation export snapshots.

A snapshot is the cleaned, exportable content of a conversation, frozen on
the conversation record. Repeated exports of an unchanged conversation reuse
it; any new message clears it so the next export rebuilds.
"""

import logging
from typing import Callable, Literal

from app.core.export_content import build_transcript, clean_export_content
from app.core.logging import get_logger, log_with_context
from app.db import conversations as conversations_db

logger = get_logger(__name__)

SnapshotBuilder = Callable[[str], str]


def build_conversation_snapshot(conversation_id: str) -> str:
    """Default builder: the whole conversation as a cleaned markdown transcript."""
    messages = conversations_db.get_messages(conversation_id, order="asc")
    return clean_export_content(build_transcript(messages))


def get_or_create_export_snapshot(
    conversation_id: str,
    builder: SnapshotBuilder | None = None,
) -> str:
    """
    Return the stored snapshot, building and storing one if missing.

    Args:
        conversation_id: Conversation UUID
        builder: Produces snapshot text for a conversation id

    Returns:
        Snapshot text (may be '' for an empty conversation)
    """
    existing = conversations_db.get_export_snapshot(conversation_id)
    if existing:
        log_with_context(
            logger, logging.DEBUG, "Reusing export snapshot", conversation_id=conversation_id
        )
        return existing

    snapshot = (builder or build_conversation_snapshot)(conversation_id)
    if snapshot:
        conversations_db.set_export_snapshot(conversation_id, snapshot)
    log_with_context(
        logger,
        logging.INFO,
        f"Built export snapshot ({len(snapshot)} chars)",
        conversation_id=conversation_id,
    )
    return snapshot


def clear_export_snapshot(conversation_id: str) -> None:
    conversations_db.clear_export_snapshot(conversation_id)


def record_message(conversation_id: str, sender: Literal["user", "bot"], message: str) -> dict:
    """Append a message and invalidate the conversation's snapshot."""
    row = conversations_db.append_message(conversation_id, sender, message)
    clear_export_snapshot(conversation_id)
    return row
