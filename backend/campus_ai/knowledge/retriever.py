"""Semantic search over the knowledge base.

Scores active, in-scope entries by cosine similarity to the query embedding,
boosted by each entry's admin relevance score. When the embedding provider is
unavailable the most used entries are returned instead, tagged as a fallback.
"""

import logging
from datetime import datetime, timezone

from campus_ai.core.ai_constants import EMBEDDING_CANDIDATE_LIMIT, FALLBACK_SCORE
from campus_ai.core.errors import InvalidQuery, ProviderError, ProviderUnavailable
from campus_ai.core.outcome import Outcome
from campus_ai.knowledge.embeddings import EmbeddingProvider, EmbeddingTask
from campus_ai.knowledge.models import (
    KnowledgeEntry,
    KnowledgeOrder,
    KnowledgeQuery,
    RetrievalScope,
    RetrievedKnowledge,
)
from campus_ai.knowledge.similarity import cosine_similarity
from campus_ai.observability import MetricsBackend, get_metrics_backend
from campus_ai.stores.base import KnowledgeStore

logger = logging.getLogger(__name__)


def _to_retrieved(entry: KnowledgeEntry, score: float) -> RetrievedKnowledge:
    return RetrievedKnowledge(
        knowledge_id=entry.id,
        title=entry.title,
        content=entry.content,
        category=entry.category,
        score=score,
    )


class KnowledgeRetriever:
    """Ranks knowledge entries for a free-text query."""

    def __init__(
        self,
        store: KnowledgeStore,
        embedding_provider: EmbeddingProvider,
        metrics: MetricsBackend | None = None,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self.metrics = metrics or get_metrics_backend()

    async def retrieve(
        self,
        query: str,
        scope: RetrievalScope | None = None,
        limit: int = 5,
    ) -> Outcome[list[RetrievedKnowledge]]:
        """Find the entries most relevant to a query.

        Args:
            query: Free-text search query.
            scope: Optional course and category filter. Course-scoped searches
                also include global entries.
            limit: Maximum number of results.

        Returns:
            ``ok`` with results sorted by descending score, or ``fallback``
            with usage-ranked results when semantic scoring was not possible.

        Raises:
            InvalidQuery: Empty query or non-positive limit.
        """
        if not query or not query.strip():
            raise InvalidQuery("query must not be empty")
        if limit < 1:
            raise InvalidQuery(f"limit must be at least 1, got {limit}")

        scope = scope or RetrievalScope()

        try:
            query_embedding = await self.embedding_provider.embed(query, EmbeddingTask.QUERY)
        except (ProviderUnavailable, ProviderError) as exc:
            logger.warning("Query embedding failed, using fallback ranking: %s", exc)
            return await self._fallback(scope, limit, error=exc)

        candidates = await self.store.find(
            KnowledgeQuery(
                course_id=scope.course_id,
                category=scope.category,
                limit=EMBEDDING_CANDIDATE_LIMIT,
            )
        )
        if not candidates:
            self.metrics.observe_retrieval("ok", 0)
            return Outcome.ok([])

        scored = [
            (cosine_similarity(query_embedding, entry.embedding) * entry.relevance_score, entry)
            for entry in candidates
            if entry.has_embedding
        ]
        if not scored:
            logger.info("No embedded knowledge in scope, using fallback ranking")
            return await self._fallback(scope, limit)

        # sorted() is stable, so equal scores keep store order
        scored = sorted(scored, key=lambda pair: pair[0], reverse=True)[:limit]
        results = [_to_retrieved(entry, score) for score, entry in scored]

        logger.debug("Retrieved %d knowledge entries for query: %s", len(results), query[:50])
        self.metrics.observe_retrieval("ok", len(results))
        return Outcome.ok(results)

    async def _fallback(
        self,
        scope: RetrievalScope,
        limit: int,
        error: Exception | None = None,
    ) -> Outcome[list[RetrievedKnowledge]]:
        entries = await self.store.find(
            KnowledgeQuery(
                course_id=scope.course_id,
                category=scope.category,
                limit=limit,
                order=KnowledgeOrder.USAGE_RECENCY,
            )
        )
        results = [_to_retrieved(entry, FALLBACK_SCORE) for entry in entries]
        self.metrics.observe_retrieval("fallback", len(results))
        return Outcome.fallback(results, error)

    async def record_usage(self, knowledge_ids: list[int]) -> None:
        """Bump usage statistics for entries used in a generated response.

        Concurrent increments may race; the counter is approximate.
        """
        used_at = datetime.now(timezone.utc)
        for knowledge_id in knowledge_ids:
            await self.store.increment_usage(knowledge_id, used_at)
