"""Participant resolution: source identities to Person ids.

A ResolverContext lives for exactly one import call. It caches identity key
to person id and serializes resolution with an asyncio.Lock, so concurrent
items of the same import never create the same Person twice. Across calls
the store's UNIQUE identity_key is what keeps People unique.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from memoirark.importer.identity import identity_key
from memoirark.importer.models import ParticipantRef, SourceFormat
from memoirark.importer.writer import DomainWriter

logger = logging.getLogger(__name__)


@dataclass
class ResolverContext:
    create_people: bool = True
    people_created: int = 0
    index: dict[str, str] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ParticipantResolver:
    """Finds or creates the Person for a ParticipantRef."""

    def __init__(self, writer: DomainWriter) -> None:
        self._writer = writer

    async def resolve(
        self,
        ref: ParticipantRef,
        context: ResolverContext,
        source_format: SourceFormat | None = None,
    ) -> str | None:
        """Return the person id for a contact, or None.

        Self and assistant refs never resolve. With create_people off, only
        People that already exist are linked.
        """
        if ref.kind != "contact":
            return None
        key = identity_key(ref)
        if key is None:
            return None

        async with context.lock:
            if key in context.index:
                return context.index[key]

            existing = await self._writer.find_person(key)
            if existing is not None:
                context.index[key] = existing["person_id"]
                return existing["person_id"]

            if not context.create_people:
                return None

            person_id = str(uuid.uuid4())
            stored_id = await self._writer.create_person(
                person_id=person_id,
                name=ref.name,
                identity_key=key,
                role=f"{source_format.label} Contact" if source_format else None,
                source_system=source_format.source_system if source_format else None,
            )
            if stored_id == person_id:
                context.people_created += 1
            else:
                logger.info("Identity %s was created concurrently; reusing %s", key, stored_id)
            context.index[key] = stored_id
            return stored_id

    async def resolve_all(
        self,
        refs: list[ParticipantRef],
        context: ResolverContext,
        source_format: SourceFormat | None = None,
    ) -> dict[ParticipantRef, str]:
        """Resolve many refs; refs that don't map to a Person are left out."""
        resolved: dict[ParticipantRef, str] = {}
        for ref in refs:
            person_id = await self.resolve(ref, context, source_format)
            if person_id is not None:
                resolved[ref] = person_id
        return resolved
