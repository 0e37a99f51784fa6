"""Knowledge base search for the tutor bot.

Embeds knowledge entries and queries, ranks entries by cosine similarity and
falls back to usage ranking when embeddings are unavailable. The retriever and
indexer live in ``campus_ai.knowledge.retriever`` and
``campus_ai.knowledge.indexer``.
"""

from campus_ai.knowledge.embeddings import EmbeddingProvider, get_embedding_provider
from campus_ai.knowledge.models import KnowledgeEntry, RetrievalScope, RetrievedKnowledge
from campus_ai.knowledge.similarity import cosine_similarity

__all__ = [
    "EmbeddingProvider",
    "KnowledgeEntry",
    "RetrievalScope",
    "RetrievedKnowledge",
    "cosine_similarity",
    "get_embedding_provider",
]
