"""
Storage backends for Agent Memory System
Copyright 2025 Jurden Bruce
"""

from .base import KeyValueStore, Pipeline
from .embeddings import EmbeddingProvider, HashEmbeddingProvider, SentenceTransformerProvider, create_embedding_provider
from .factory import build_storage_client, create_storage_client
from .redis_store import RedisStore

__all__ = [
    'KeyValueStore',
    'Pipeline',
    'EmbeddingProvider',
    'HashEmbeddingProvider',
    'SentenceTransformerProvider',
    'create_embedding_provider',
    'build_storage_client',
    'create_storage_client',
    'RedisStore',
]
