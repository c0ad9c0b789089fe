"""
Semantic search for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .config import DEFAULT_SEARCH_LIMIT
from .exceptions import ValidationError
from .models import MemoryEntry, SearchResult
from .repository import MemoryRepository, validate_context_type, validate_importance
from .storage.embeddings import EmbeddingProvider

logger = logging.getLogger("agent-memory.search")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| |b|); 0.0 when either vector has zero magnitude"""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"Vector shapes differ: {va.shape} != {vb.shape}")
    denominator = np.linalg.norm(va) * np.linalg.norm(vb)
    if denominator == 0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


def rank_memories(
    query_embedding: Sequence[float],
    memories: List[MemoryEntry],
    limit: int,
    min_importance: Optional[int] = None,
) -> List[SearchResult]:
    """Score, order and truncate.

    Memories without an embedding of the query's dimensionality are skipped.
    Ties on similarity go to higher importance, then to the newer memory.
    """
    dimension = len(query_embedding)
    results = []
    for memory in memories:
        if min_importance is not None and memory.importance < min_importance:
            continue
        if not memory.embedding or len(memory.embedding) != dimension:
            continue
        results.append(SearchResult(memory=memory, similarity=cosine_similarity(query_embedding, memory.embedding)))

    results.sort(key=lambda r: (r.similarity, r.memory.importance, r.memory.timestamp), reverse=True)
    return results[:limit]


class SearchEngine:
    """Cosine-similarity ranking over the visible memories"""

    def __init__(self, repository: MemoryRepository, embedding_provider: Optional[EmbeddingProvider], config: Dict[str, Any]):
        self.repository = repository
        self.embedding_provider = embedding_provider
        self.config = config

    async def search_memories(
        self,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        min_importance: Optional[int] = None,
        context_types: Optional[List[str]] = None,
        category: Optional[str] = None,
    ) -> List[SearchResult]:
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("query must be a non-empty string", field="query", value=query)
        limit = self.repository.clamp_limit(limit)
        if min_importance is not None:
            validate_importance(min_importance)
        if context_types:
            context_types = [validate_context_type(ct) for ct in context_types]

        if self.embedding_provider is None:
            logger.warning("Search requested but embeddings are disabled")
            return []

        start = time.perf_counter()
        query_embedding = self.repository.check_dimensions(
            await self.embedding_provider.generate_embedding(query), label="query"
        )
        if query_embedding is None:
            return []

        ids = await self.repository.candidate_ids(context_types, cap=self.config["search_candidate_cap"])
        candidates = await self.repository.get_memories(ids)
        if category is not None:
            candidates = [m for m in candidates if m.category == category]

        results = rank_memories(query_embedding, candidates, limit, min_importance)
        logger.info(
            f"[TIMING] Search over {len(candidates)} candidates returned {len(results)} "
            f"in {(time.perf_counter() - start)*1000:.2f}ms"
        )
        return results
