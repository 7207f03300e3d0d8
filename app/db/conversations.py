"""Database operations for conversations, their messages and export snapshots.

Tables:
    messages: id, conversation_id, sender ('user' | 'bot'), message, created_at
    conversations: id, export_snapshot (text, nullable)
"""

from typing import Literal

from app.core.logging import get_logger
from app.core.schemas_export import SessionMessage
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)


def append_message(conversation_id: str, sender: Literal["user", "bot"], message: str) -> dict:
    """Insert a message. Callers must clear the export snapshot afterwards."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table("messages")
            .insert({
                "conversation_id": conversation_id,
                "sender": sender,
                "message": message,
            })
            .execute()
        )
        return response.data[0] if response.data else {}
    except Exception as e:
        logger.error(f"Failed to append message to {conversation_id}: {e}")
        raise


def get_messages(
    conversation_id: str,
    limit: int | None = None,
    order: Literal["asc", "desc"] = "asc",
) -> list[SessionMessage]:
    """List messages of a conversation, oldest first by default."""
    supabase = get_supabase()

    query = (
        supabase.table("messages")
        .select("sender, message")
        .eq("conversation_id", conversation_id)
        .order("created_at", desc=(order == "desc"))
    )
    if limit:
        query = query.limit(limit)

    try:
        response = query.execute()
    except Exception as e:
        logger.error(f"Failed to list messages for {conversation_id}: {e}")
        raise

    return [
        SessionMessage(sender=row["sender"], message=row.get("message") or "")
        for row in response.data or []
        if row.get("sender") in ("user", "bot")
    ]


def get_export_snapshot(conversation_id: str) -> str | None:
    supabase = get_supabase()

    try:
        response = (
            supabase.table("conversations")
            .select("export_snapshot")
            .eq("id", conversation_id)
            .maybe_single()
            .execute()
        )
    except Exception as e:
        logger.warning(f"Failed to read export snapshot for {conversation_id}: {e}")
        return None

    if not response or not response.data:
        return None
    return response.data.get("export_snapshot")


def set_export_snapshot(conversation_id: str, snapshot: str) -> None:
    """Store the snapshot. Concurrent writers: last write wins."""
    supabase = get_supabase()

    try:
        supabase.table("conversations").update({"export_snapshot": snapshot}).eq(
            "id", conversation_id
        ).execute()
    except Exception as e:
        # A missing snapshot is rebuilt on the next export
        logger.warning(f"Failed to store export snapshot for {conversation_id}: {e}")


def clear_export_snapshot(conversation_id: str) -> None:
    supabase = get_supabase()

    try:
        supabase.table("conversations").update({"export_snapshot": None}).eq(
            "id", conversation_id
        ).execute()
    except Exception as e:
        logger.error(f"Failed to clear export snapshot for {conversation_id}: {e}")
        raise
