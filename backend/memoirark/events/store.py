"""Append-only event log backed by SQLite.

Every person, artifact and life event an import creates is recorded here
before it is projected. Rows are never updated or deleted.
"""

import json
import logging

from memoirark.db.connection import Database
from memoirark.models import EventEnvelope

logger = logging.getLogger(__name__)


class EventStore:
    """The write side of the domain store."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def append(self, envelope: EventEnvelope) -> int:
        """Append an event and return the assigned sequence_num.

        Raises IntegrityError if event_id is not unique.
        """
        cursor = await self._db.execute(
            """
            INSERT INTO event_log
                (event_id, aggregate_id, timestamp, device_id, user_id, event_type, payload)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                envelope.event_id,
                envelope.aggregate_id,
                envelope.timestamp.isoformat(),
                envelope.device_id,
                envelope.user_id,
                envelope.event_type,
                json.dumps(envelope.payload),
            ),
        )
        assert cursor.lastrowid is not None
        logger.debug(
            "Appended %s for %s at seq %d",
            envelope.event_type, envelope.aggregate_id, cursor.lastrowid,
        )
        return cursor.lastrowid

    async def get_events(self, aggregate_id: str) -> list[EventEnvelope]:
        """All events for one person, artifact or life event, oldest first."""
        return await self._select("WHERE aggregate_id = ?", (aggregate_id,))

    async def get_events_since(
        self, sequence_num: int, event_types: list[str] | None = None,
    ) -> list[EventEnvelope]:
        """Events after sequence_num, optionally restricted to some event types."""
        if not event_types:
            return await self._select("WHERE sequence_num > ?", (sequence_num,))
        placeholders = ", ".join("?" for _ in event_types)
        return await self._select(
            f"WHERE sequence_num > ? AND event_type IN ({placeholders})",
            (sequence_num, *event_types),
        )

    async def get_events_for_import(self, import_id: str) -> list[EventEnvelope]:
        """Artifact and life-event records written by one import run.

        People carry no import_id, a person may be shared by many imports.
        """
        return await self._select(
            "WHERE json_extract(payload, '$.import_id') = ?", (import_id,)
        )

    async def _select(self, where: str, params: tuple) -> list[EventEnvelope]:
        rows = await self._db.fetchall(
            f"SELECT * FROM event_log {where} ORDER BY sequence_num", params
        )
        return [_row_to_envelope(row) for row in rows]


def _row_to_envelope(row) -> EventEnvelope:
    return EventEnvelope(
        event_id=row["event_id"],
        aggregate_id=row["aggregate_id"],
        timestamp=row["timestamp"],
        device_id=row["device_id"],
        user_id=row["user_id"],
        event_type=row["event_type"],
        payload=json.loads(row["payload"]),
        sequence_num=row["sequence_num"],
    )
