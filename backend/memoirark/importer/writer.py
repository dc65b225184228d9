"""DomainWriter: the only path from the import pipeline into the store.

Every write is an event appended to the log and then projected, and every
id returned here has been read back from the materialized tables.
"""

import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path

from memoirark.events.projector import StateProjector
from memoirark.events.store import EventStore
from memoirark.models import (
    ArtifactCreatedPayload,
    EventEnvelope,
    LifeEventCreatedPayload,
    PersonCreatedPayload,
)

logger = logging.getLogger(__name__)

# Bulk files land in per-type folders under the upload directory
_TYPE_DIRS = {"photo": "images", "audio": "audio", "video": "video", "document": "documents"}


class StorageError(Exception):
    """A write to the domain store (or the upload directory) failed."""


class DomainWriter:
    def __init__(
        self,
        store: EventStore,
        projector: StateProjector,
        upload_dir: str | Path = "uploads",
    ) -> None:
        self._store = store
        self._projector = projector
        self._upload_dir = Path(upload_dir)

    async def _emit(self, aggregate_id: str, event_type: str, payload) -> None:
        event = EventEnvelope(
            event_id=str(uuid.uuid4()),
            aggregate_id=aggregate_id,
            timestamp=datetime.now(UTC),
            device_id="import",
            event_type=event_type,
            payload=payload.model_dump(),
        )
        try:
            await self._store.append(event)
            await self._projector.project([event])
        except sqlite3.Error as e:
            # aiosqlite re-raises sqlite3 errors unchanged
            raise StorageError(f"{event_type} for {aggregate_id} failed: {e}") from e

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    async def find_person(self, identity_key: str) -> dict | None:
        try:
            return await self._projector.find_person_by_identity_key(identity_key)
        except sqlite3.Error as e:
            raise StorageError(f"Person lookup failed: {e}") from e

    async def create_person(
        self,
        *,
        person_id: str,
        name: str,
        identity_key: str,
        role: str | None = None,
        source_system: str | None = None,
    ) -> str:
        """Create a Person and return the id now stored for its identity key.

        That id differs from person_id when another writer won the key.
        """
        await self._emit(person_id, "PersonCreated", PersonCreatedPayload(
            person_id=person_id,
            name=name,
            identity_key=identity_key,
            role=role,
            relationship_type="contact",
            source_system=source_system,
            notes=f"Imported from {source_system}" if source_system else None,
        ))
        stored = await self.find_person(identity_key)
        if stored is None:
            raise StorageError(f"Person {identity_key} missing after write")
        return stored["person_id"]

    # ------------------------------------------------------------------
    # Artifacts and events
    # ------------------------------------------------------------------

    async def create_artifact(self, payload: ArtifactCreatedPayload) -> str:
        await self._emit(payload.artifact_id, "ArtifactCreated", payload)
        try:
            stored = await self._projector.get_artifact(payload.artifact_id)
        except sqlite3.Error as e:
            raise StorageError(f"Artifact read-back failed: {e}") from e
        if stored is None:
            raise StorageError(f"Artifact {payload.artifact_id} missing after write")
        return payload.artifact_id

    async def create_life_event(self, payload: LifeEventCreatedPayload) -> str:
        await self._emit(payload.event_id, "LifeEventCreated", payload)
        try:
            stored = await self._projector.get_life_event(payload.event_id)
        except sqlite3.Error as e:
            raise StorageError(f"Event read-back failed: {e}") from e
        if stored is None:
            raise StorageError(f"Event {payload.event_id} missing after write")
        return payload.event_id

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def store_file(self, content: bytes, filename: str, artifact_type: str) -> str:
        """Write an uploaded file under the upload directory.

        Returns the `/uploads/...` path recorded on the Artifact. Blocking,
        so callers run it in a worker thread.
        """
        subdir = _TYPE_DIRS.get(artifact_type, "processed")
        suffix = Path(filename).suffix.lower()
        stored_name = f"bulk-{uuid.uuid4().hex}{suffix}"
        target_dir = self._upload_dir / subdir
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / stored_name).write_bytes(content)
        except OSError as e:
            raise StorageError(f"Could not store {filename}: {e}") from e
        return f"/uploads/{subdir}/{stored_name}"

    def discard_file(self, path: str) -> None:
        """Remove a file stored by `store_file` whose Artifact never got written."""
        local = self._upload_dir / path.removeprefix("/uploads/")
        try:
            local.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove orphaned upload %s: %s", local, e)
