"""
Utility functions for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import time
import secrets
import logging
import threading
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger("agent-memory.utils")

SUMMARY_LENGTH = 100
ERROR_LOG_LIMIT = 100

# Crockford base32, the ULID alphabet
_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_RANDOM_BITS = 80


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def ms_to_iso(timestamp_ms: int) -> str:
    """Convert epoch milliseconds to an ISO-8601 UTC string"""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        value, remainder = divmod(value, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))


class _IdGenerator:
    """Time-prefixed ids that sort lexicographically in generation order.

    48 bits of milliseconds followed by 80 random bits, encoded as 26
    Crockford base32 characters. Within the same millisecond (or when the
    supplied clock goes backwards) the random part is incremented instead of
    redrawn, so ids from one process never sort out of order.
    """

    def __init__(self):
        self._last_ms = -1
        self._last_random = 0
        self._lock = threading.Lock()

    def new_id(self, timestamp_ms: Optional[int] = None) -> str:
        ms = now_ms() if timestamp_ms is None else int(timestamp_ms)
        with self._lock:
            if ms <= self._last_ms:
                ms = self._last_ms
                random_part = self._last_random + 1
                if random_part >> _RANDOM_BITS:
                    ms += 1
                    random_part = secrets.randbits(_RANDOM_BITS - 1)
            else:
                # leave headroom for increments within the same millisecond
                random_part = secrets.randbits(_RANDOM_BITS - 1)
            self._last_ms = ms
            self._last_random = random_part
        return _encode((ms << _RANDOM_BITS) | random_part, 26)


_generator = _IdGenerator()


def new_id(timestamp_ms: Optional[int] = None) -> str:
    """Generate a sortable unique identifier"""
    return _generator.new_id(timestamp_ms)


def generate_summary(content: str) -> str:
    """First 100 characters of the content, ellipsised when truncated"""
    if len(content) > SUMMARY_LENGTH:
        return content[:SUMMARY_LENGTH] + "..."
    return content


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop empties and de-duplicate while keeping first-seen order"""
    if not tags:
        return []
    seen = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def log_error(error_log: List[Dict[str, Any]], operation: str, error: Exception):
    """Record a non-fatal failure in the shared error log"""
    error_log.append({
        "timestamp": datetime.now().isoformat(),
        "operation": operation,
        "error_type": type(error).__name__,
        "error_msg": str(error),
        "traceback": traceback.format_exc(),
    })
    if len(error_log) > ERROR_LOG_LIMIT:
        del error_log[:-ERROR_LOG_LIMIT]
