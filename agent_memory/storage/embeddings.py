"""
Embedding providers for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import asyncio
import hashlib
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..cache import LRUCache
from ..exceptions import AgentMemoryError, ValidationError

logger = logging.getLogger("agent-memory.embeddings")

# Check availability without importing the heavy library
try:
    import importlib.util
    EMBEDDINGS_AVAILABLE = importlib.util.find_spec("sentence_transformers") is not None
except Exception:
    EMBEDDINGS_AVAILABLE = False


class EmbeddingProvider(ABC):
    """Turns text into fixed-length vectors"""

    name = "abstract"

    @property
    @abstractmethod
    def dimensions(self) -> int: ...

    @abstractmethod
    async def generate_embedding(self, text: str) -> List[float]: ...

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        return [await self.generate_embedding(text) for text in texts]


def _cache_key(text: str) -> str:
    return hashlib.md5(text.encode()).hexdigest()


class SentenceTransformerProvider(EmbeddingProvider):
    """Local sentence-transformers encoder with caching and lazy loading"""

    name = "sentence-transformers"

    def __init__(self, config: Dict[str, Any], cache: LRUCache, lazy_load: bool = True):
        """
        Args:
            config: Configuration dict with 'embedding_model' and 'vector_size'
            cache: LRUCache shared for embedding results
            lazy_load: If True, delay encoder initialization until first use
        """
        self.config = config
        self.cache = cache
        self.lazy_load = lazy_load
        self.encoder = None

        if not lazy_load:
            self._init_encoder()

    @property
    def dimensions(self) -> int:
        return self.config["vector_size"]

    def _ensure_encoder(self):
        """Ensure encoder is initialized (lazy loading support)"""
        if self.encoder is not None:
            return

        start = time.perf_counter()
        self._init_encoder()
        logger.info(f"[LAZY] Encoder loaded on-demand in {(time.perf_counter() - start)*1000:.2f}ms")

    def _init_encoder(self):
        """Initialize sentence encoder"""
        # Import only when actually needed (lazy loading)
        from sentence_transformers import SentenceTransformer

        model_name = self.config["embedding_model"]
        self.encoder = SentenceTransformer(model_name, device="cpu")
        actual_size = self.encoder.get_sentence_embedding_dimension()
        if actual_size and actual_size != self.config["vector_size"]:
            logger.warning(f"Encoder size {actual_size} != config {self.config['vector_size']}, updating config")
            self.config["vector_size"] = actual_size
        logger.info(f"Encoder {model_name} initialized with dimension {self.config['vector_size']}")

    def _encode(self, text: str) -> List[float]:
        self._ensure_encoder()
        return self.encoder.encode(text).tolist()

    async def generate_embedding(self, text: str) -> List[float]:
        key = _cache_key(text)
        cached = self.cache.lookup(key)
        if cached is not None:
            return cached

        embedding = await asyncio.to_thread(self._encode, text)
        self.cache[key] = embedding
        return embedding

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        found = {}
        missing = []
        for text in texts:
            if text in found or text in missing:
                continue
            cached = self.cache.lookup(_cache_key(text))
            if cached is not None:
                found[text] = cached
            else:
                missing.append(text)

        if missing:
            def _encode_batch():
                self._ensure_encoder()
                return self.encoder.encode(missing).tolist()

            vectors = await asyncio.to_thread(_encode_batch)
            for text, vector in zip(missing, vectors):
                found[text] = vector
                # batches larger than the cache evict their own early entries
                self.cache[_cache_key(text)] = vector
        return [found[t] for t in texts]


class HashEmbeddingProvider(EmbeddingProvider):
    """Deterministic vectors from repeated SHA-256 digests.

    Carries no semantic meaning; identical texts map to identical vectors,
    which is enough for offline use and exact-duplicate detection.
    """

    name = "hash"

    def __init__(self, config: Dict[str, Any], cache: LRUCache):
        self.config = config
        self.cache = cache

    @property
    def dimensions(self) -> int:
        return self.config["vector_size"]

    async def generate_embedding(self, text: str) -> List[float]:
        key = _cache_key(text)
        cached = self.cache.lookup(key)
        if cached is not None:
            return cached

        embedding = []
        hash_input = text.encode()
        while len(embedding) < self.dimensions:
            hash_bytes = hashlib.sha256(hash_input).digest()
            embedding.extend([float(b) / 255.0 for b in hash_bytes])
            hash_input = hash_bytes
        embedding = embedding[:self.dimensions]

        self.cache[key] = embedding
        return embedding


def create_embedding_provider(config: Dict[str, Any], cache: Optional[LRUCache] = None) -> Optional[EmbeddingProvider]:
    """Build the configured provider; 'none' disables embeddings entirely"""
    if cache is None:
        cache = LRUCache(maxsize=config["cache_maxsize"])

    name = config.get("embedding_provider", "sentence-transformers")
    if name == "none":
        logger.info("Embeddings disabled, semantic search will return no results")
        return None
    if name == "hash":
        return HashEmbeddingProvider(config, cache)
    if name == "sentence-transformers":
        if not EMBEDDINGS_AVAILABLE:
            raise AgentMemoryError(
                "sentence-transformers is not installed; install the 'embeddings' extra "
                "or set EMBEDDING_PROVIDER=hash",
                context={"embedding_provider": name},
            )
        return SentenceTransformerProvider(config, cache, lazy_load=True)
    raise ValidationError(f"Unknown embedding provider '{name}'", field="embedding_provider", value=name)
