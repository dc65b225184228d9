"""State projector: projects events into materialized tables.

The read side of the domain store. Handles PersonCreated, ArtifactCreated
and LifeEventCreated, plus the link rows those payloads carry.
"""

import json
import logging
from collections.abc import Awaitable, Callable

from memoirark.db.connection import Database
from memoirark.models import (
    ArtifactCreatedPayload,
    EventEnvelope,
    LifeEventCreatedPayload,
    PersonCreatedPayload,
)
from memoirark.utils.json import load_metadata

logger = logging.getLogger(__name__)


def _timestamp(event: EventEnvelope) -> str:
    return (
        event.timestamp.isoformat()
        if hasattr(event.timestamp, "isoformat")
        else str(event.timestamp)
    )


class StateProjector:
    """Projects events into materialized SQL tables (people, artifacts, life_events)."""

    def __init__(self, db: Database) -> None:
        self._db = db
        self._handlers: dict[str, Callable[[EventEnvelope], Awaitable[None]]] = {
            "PersonCreated": self._handle_person_created,
            "ArtifactCreated": self._handle_artifact_created,
            "LifeEventCreated": self._handle_life_event_created,
        }

    async def project(self, events: list[EventEnvelope]) -> None:
        """Project a batch of events into materialized tables."""
        for event in events:
            handler = self._handlers.get(event.event_type)
            if handler:
                await handler(event)
            else:
                logger.warning("No projection for event type %r", event.event_type)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    async def get_person(self, person_id: str) -> dict | None:
        row = await self._db.fetchone(
            "SELECT * FROM people WHERE person_id = ?", (person_id,)
        )
        return dict(row) if row else None

    async def find_person_by_identity_key(self, identity_key: str) -> dict | None:
        """Look up the person that owns an identity key. None if unknown."""
        row = await self._db.fetchone(
            "SELECT * FROM people WHERE identity_key = ?", (identity_key,)
        )
        return dict(row) if row else None

    async def list_people(self) -> list[dict]:
        rows = await self._db.fetchall("SELECT * FROM people ORDER BY created_at, name")
        return [dict(row) for row in rows]

    async def get_artifact(self, artifact_id: str) -> dict | None:
        """Read one artifact with its parsed metadata and linked person ids."""
        row = await self._db.fetchone(
            "SELECT * FROM artifacts WHERE artifact_id = ?", (artifact_id,)
        )
        if row is None:
            return None
        artifact = dict(row)
        artifact["metadata"] = load_metadata(artifact["metadata"])
        links = await self._db.fetchall(
            "SELECT person_id FROM artifact_people WHERE artifact_id = ?",
            (artifact_id,),
        )
        artifact["person_ids"] = [link["person_id"] for link in links]
        return artifact

    async def list_artifacts(self, import_id: str | None = None) -> list[dict]:
        if import_id is None:
            rows = await self._db.fetchall("SELECT * FROM artifacts ORDER BY created_at")
        else:
            rows = await self._db.fetchall(
                "SELECT * FROM artifacts WHERE import_id = ? ORDER BY created_at",
                (import_id,),
            )
        return [dict(row) for row in rows]

    async def get_life_event(self, event_id: str) -> dict | None:
        """Read one life event with linked person and artifact ids."""
        row = await self._db.fetchone(
            "SELECT * FROM life_events WHERE event_id = ?", (event_id,)
        )
        if row is None:
            return None
        life_event = dict(row)
        people = await self._db.fetchall(
            "SELECT person_id FROM event_people WHERE event_id = ?", (event_id,)
        )
        artifacts = await self._db.fetchall(
            "SELECT artifact_id FROM event_artifacts WHERE event_id = ?", (event_id,)
        )
        life_event["person_ids"] = [p["person_id"] for p in people]
        life_event["artifact_ids"] = [a["artifact_id"] for a in artifacts]
        return life_event

    async def list_life_events(self, import_id: str | None = None) -> list[dict]:
        if import_id is None:
            rows = await self._db.fetchall(
                "SELECT * FROM life_events ORDER BY date, created_at"
            )
        else:
            rows = await self._db.fetchall(
                "SELECT * FROM life_events WHERE import_id = ? ORDER BY date, created_at",
                (import_id,),
            )
        return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_person_created(self, event: EventEnvelope) -> None:
        """Project a PersonCreated event into the people table.

        identity_key is UNIQUE. When another writer already owns the key the
        insert is a no-op and the existing row wins.
        """
        payload = PersonCreatedPayload.model_validate(event.payload)
        await self._db.execute(
            """
            INSERT INTO people
                (person_id, name, identity_key, role, relationship_type,
                 notes, source_system, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(identity_key) DO NOTHING
            """,
            (
                payload.person_id,
                payload.name,
                payload.identity_key,
                payload.role,
                payload.relationship_type,
                payload.notes,
                payload.source_system,
                _timestamp(event),
            ),
        )

    async def _handle_artifact_created(self, event: EventEnvelope) -> None:
        """Project an ArtifactCreated event into artifacts + artifact_people.

        The row and its links commit together; a bad person link leaves no
        artifact behind.
        """
        payload = ArtifactCreatedPayload.model_validate(event.payload)
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT OR REPLACE INTO artifacts
                    (artifact_id, type, source_system, short_description,
                     transcribed_text, source_path_or_url, imported_from,
                     import_id, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payload.artifact_id,
                    payload.type,
                    payload.source_system,
                    payload.short_description,
                    payload.transcribed_text,
                    payload.source_path_or_url,
                    payload.imported_from,
                    payload.import_id,
                    json.dumps(payload.metadata),
                    _timestamp(event),
                ),
            )
            await conn.executemany(
                "INSERT OR IGNORE INTO artifact_people (artifact_id, person_id) VALUES (?, ?)",
                [(payload.artifact_id, person_id) for person_id in payload.person_ids],
            )

    async def _handle_life_event_created(self, event: EventEnvelope) -> None:
        """Project a LifeEventCreated event into life_events + link tables."""
        payload = LifeEventCreatedPayload.model_validate(event.payload)
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT OR REPLACE INTO life_events
                    (event_id, title, date, summary, notes, imported_from,
                     import_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    payload.event_id,
                    payload.title,
                    payload.date,
                    payload.summary,
                    payload.notes,
                    payload.imported_from,
                    payload.import_id,
                    _timestamp(event),
                ),
            )
            await conn.executemany(
                "INSERT OR IGNORE INTO event_people (event_id, person_id) VALUES (?, ?)",
                [(payload.event_id, person_id) for person_id in payload.person_ids],
            )
            await conn.executemany(
                "INSERT OR IGNORE INTO event_artifacts (event_id, artifact_id) VALUES (?, ?)",
                [(payload.event_id, artifact_id) for artifact_id in payload.artifact_ids],
            )
