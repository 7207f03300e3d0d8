"""Fake in-memory conversation store for pipeline testing."""

from typing import Any, Dict, List

from app.core.schemas_export import SessionMessage


class FakeConversationStore:
    """In-memory implementation of app.db.conversations."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all stores to initial state."""
        self.messages: Dict[str, List[Dict[str, Any]]] = {}
        self.snapshots: Dict[str, str | None] = {}
        self.snapshot_writes = 0

    def seed(self, conversation_id: str, *pairs: tuple[str, str]) -> None:
        """Add (sender, message) pairs without touching the snapshot."""
        for sender, message in pairs:
            self.messages.setdefault(conversation_id, []).append({"sender": sender, "message": message})

    # Message operations
    def append_message(self, conversation_id: str, sender: str, message: str) -> Dict[str, Any]:
        row = {"sender": sender, "message": message}
        self.messages.setdefault(conversation_id, []).append(row)
        return row

    def get_messages(self, conversation_id: str, limit: int | None = None, order: str = "asc") -> List[SessionMessage]:
        rows = list(self.messages.get(conversation_id, []))
        if order == "desc":
            rows.reverse()
        if limit:
            rows = rows[:limit]
        return [SessionMessage(**row) for row in rows]

    # Snapshot operations
    def get_export_snapshot(self, conversation_id: str) -> str | None:
        return self.snapshots.get(conversation_id)

    def set_export_snapshot(self, conversation_id: str, snapshot: str) -> None:
        self.snapshot_writes += 1
        self.snapshots[conversation_id] = snapshot

    def clear_export_snapshot(self, conversation_id: str) -> None:
        self.snapshots[conversation_id] = None
