"""
Configuration for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import os
import logging
from typing import Any, Dict

logger = logging.getLogger("agent-memory.config")

DEFAULT_LIMIT = 50
DEFAULT_SEARCH_LIMIT = 10
MIN_TTL_SECONDS = 60
IMPORTANT_THRESHOLD = 8
MAX_TRAVERSAL_DEPTH = 5


def load_config() -> Dict[str, Any]:
    """Build the runtime configuration from environment variables"""
    config = {
        "backend_type": os.getenv("BACKEND_TYPE", "redis").lower(),
        "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        "valkey_url": os.getenv("VALKEY_URL", "valkey://localhost:6379/0"),
        "workspace_mode": os.getenv("WORKSPACE_MODE", "isolated").lower(),
        "embedding_provider": os.getenv("EMBEDDING_PROVIDER", "sentence-transformers").lower(),
        "embedding_model": os.getenv("EMBEDDING_MODEL", "all-mpnet-base-v2"),
        "vector_size": int(os.getenv("VECTOR_SIZE", 768)),
        "cache_maxsize": int(os.getenv("CACHE_MAXSIZE", 1000)),
        "max_scan": int(os.getenv("MAX_SCAN", 1000)),
        "search_candidate_cap": int(os.getenv("SEARCH_CANDIDATE_CAP", 1000)),
        "version_retention": int(os.getenv("VERSION_RETENTION", 0)),
        "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
    }

    if config["max_scan"] < 1:
        logger.warning(f"MAX_SCAN={config['max_scan']} is invalid, using 1000")
        config["max_scan"] = 1000
    if config["search_candidate_cap"] < 1:
        logger.warning(f"SEARCH_CANDIDATE_CAP={config['search_candidate_cap']} is invalid, using 1000")
        config["search_candidate_cap"] = 1000

    return config
