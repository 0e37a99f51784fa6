"""Knowledge entry indexing and syllabus import.

Entries are embedded from ``"{title}\\n\\n{content}"`` when written. Embedding
failures never block a write: the entry is stored without an embedding and is
picked up later by ``backfill_missing_embeddings``.
"""

import logging
import re

from campus_ai.core.ai_constants import SYLLABUS_MIN_CHUNK_LENGTH, SYLLABUS_TITLE_MAX_LENGTH
from campus_ai.core.errors import CourseNotFound, MissingSyllabus, ProviderError, ProviderUnavailable
from campus_ai.knowledge.embeddings import EmbeddingProvider, EmbeddingTask
from campus_ai.knowledge.models import KnowledgeCategory, KnowledgeEntry, KnowledgeSource
from campus_ai.stores.base import CourseStore, KnowledgeStore
from campus_ai.students.models import CourseRecord

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\n+")


def split_syllabus(syllabus: str) -> list[str]:
    """Split a syllabus on blank lines, dropping chunks too short to be useful."""
    return [
        chunk.strip()
        for chunk in _PARAGRAPH_BREAK.split(syllabus)
        if len(chunk.strip()) > SYLLABUS_MIN_CHUNK_LENGTH
    ]


def chunk_title(chunk: str) -> str:
    return chunk.split("\n", 1)[0].strip()[:SYLLABUS_TITLE_MAX_LENGTH]


class KnowledgeIndexer:
    """Creates knowledge entries and keeps their embeddings current."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedding_provider: EmbeddingProvider,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider

    async def _embed_or_none(self, entry: KnowledgeEntry) -> list[float] | None:
        try:
            return await self.embedding_provider.embed(entry.embedding_text, EmbeddingTask.DOCUMENT)
        except (ProviderUnavailable, ProviderError) as exc:
            logger.warning("Embedding failed for knowledge entry '%s': %s", entry.title[:50], exc)
            return None

    async def index_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Embed and persist a new knowledge entry.

        Returns:
            The stored entry; ``embedding`` is None if embedding failed.
        """
        embedding = await self._embed_or_none(entry)
        return await self.store.create(entry.model_copy(update={"embedding": embedding}))

    async def import_syllabus(self, course: CourseRecord) -> list[KnowledgeEntry]:
        """Create course material entries from a course syllabus.

        Raises:
            MissingSyllabus: The course has no syllabus text.
        """
        if not course.syllabus or not course.syllabus.strip():
            raise MissingSyllabus(f"course {course.id} has no syllabus")

        tags = [tag for tag in (course.subject, course.name) if tag]
        created: list[KnowledgeEntry] = []

        for chunk in split_syllabus(course.syllabus):
            entry = KnowledgeEntry(
                title=chunk_title(chunk),
                content=chunk,
                category=KnowledgeCategory.COURSE_MATERIAL,
                course_id=course.id,
                tags=tags,
                source=KnowledgeSource.COURSE_SYLLABUS,
            )
            created.append(await self.index_entry(entry))

        embedded = sum(1 for entry in created if entry.has_embedding)
        logger.info(
            "Imported %d syllabus chunks for course %s (%d embedded)",
            len(created),
            course.id,
            embedded,
        )
        return created

    async def import_course_syllabus(
        self,
        course_store: CourseStore,
        course_id: int,
    ) -> list[KnowledgeEntry]:
        """Look up a course and import its syllabus.

        Raises:
            CourseNotFound: Unknown course id.
            MissingSyllabus: The course has no syllabus text.
        """
        course = await course_store.get_course(course_id)
        if course is None:
            raise CourseNotFound(course_id)
        return await self.import_syllabus(course)

    async def backfill_missing_embeddings(self, limit: int = 100) -> int:
        """Embed active entries stored without an embedding.

        Returns:
            Number of entries that now have an embedding.
        """
        entries = await self.store.find_missing_embeddings(limit)
        updated = 0
        for entry in entries:
            embedding = await self._embed_or_none(entry)
            if embedding is None:
                continue
            await self.store.set_embedding(entry.id, embedding)
            updated += 1

        logger.info("Backfilled embeddings for %d of %d entries", updated, len(entries))
        return updated
