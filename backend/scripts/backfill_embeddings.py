#!/usr/bin/env python3
"""Embed knowledge entries that were saved without an embedding.

Entries lose their embedding when the provider was unavailable at write time.
Until backfilled they only show up through the usage-ranked fallback.

Usage:
    python scripts/backfill_embeddings.py [--limit 500] [--batch-size 100]

Environment variables:
    DATABASE_URL: Database to update
    OPENAI_API_KEY: Required for OpenAI embeddings (default)
    GOOGLE_AI_API_KEY: Required if EMBEDDING_PROVIDER=google
    EMBEDDING_PROVIDER: "openai" (default) or "google"
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are cached on first import, so load .env before that
env_path = backend_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"Loaded environment from: {env_path}")

logger = logging.getLogger("backfill_embeddings")


async def main(limit: int, batch_size: int) -> int:
    """Backfill embeddings in batches until nothing is left or limit is hit."""
    from campus_ai.core.database import async_session_maker, engine
    from campus_ai.knowledge.embeddings import get_embedding_provider
    from campus_ai.knowledge.indexer import KnowledgeIndexer
    from campus_ai.stores.sql import SQLKnowledgeStore

    provider = get_embedding_provider()
    print(f"Using embedding provider: {provider.provider_name} ({provider.model})")

    total = 0
    try:
        while total < limit:
            async with async_session_maker() as session:
                indexer = KnowledgeIndexer(SQLKnowledgeStore(session), provider)
                updated = await indexer.backfill_missing_embeddings(min(batch_size, limit - total))
            if updated == 0:
                break
            total += updated
            print(f"  Embedded {total} entries so far")
    finally:
        await engine.dispose()

    print(f"Done. {total} knowledge entries embedded.")
    return total


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--limit", type=int, default=1000, help="Maximum entries to embed")
    parser.add_argument("--batch-size", type=int, default=100, help="Entries per batch")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(main(args.limit, args.batch_size))
