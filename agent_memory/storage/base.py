"""
Key-value store interface for Agent Memory System
Copyright 2025 Jurden Bruce

Every backend implements the full capability set below. Values are strings;
adapters are expected to decode responses before returning them.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence


class Pipeline(ABC):
    """Queues several writes and sends them in one round trip.

    Execution is batched, not atomic: another client may interleave its own
    commands between the queued ones.
    """

    @abstractmethod
    def set(self, key: str, value: str) -> "Pipeline": ...

    @abstractmethod
    def delete(self, *keys: str) -> "Pipeline": ...

    @abstractmethod
    def hset(self, key: str, mapping: Dict[str, str]) -> "Pipeline": ...

    @abstractmethod
    def hincrby(self, key: str, field: str, amount: int = 1) -> "Pipeline": ...

    @abstractmethod
    def sadd(self, key: str, *members: str) -> "Pipeline": ...

    @abstractmethod
    def srem(self, key: str, *members: str) -> "Pipeline": ...

    @abstractmethod
    def zadd(self, key: str, score: float, member: str) -> "Pipeline": ...

    @abstractmethod
    def zrem(self, key: str, *members: str) -> "Pipeline": ...

    @abstractmethod
    def zremrangebyrank(self, key: str, start: int, stop: int) -> "Pipeline": ...

    @abstractmethod
    def expire(self, key: str, seconds: int) -> "Pipeline": ...

    @abstractmethod
    async def execute(self) -> List[Any]: ...


class KeyValueStore(ABC):
    """Capability set required from a backend"""

    backend_name = "abstract"

    # scalars
    @abstractmethod
    async def get(self, key: str) -> Optional[str]: ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def setnx(self, key: str, value: str) -> bool: ...

    @abstractmethod
    async def delete(self, *keys: str) -> int: ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    # hashes
    @abstractmethod
    async def hset(self, key: str, mapping: Dict[str, str]) -> None: ...

    @abstractmethod
    async def hgetall(self, key: str) -> Dict[str, str]: ...

    @abstractmethod
    async def hdel(self, key: str, *fields: str) -> int: ...

    @abstractmethod
    async def hincrby(self, key: str, field: str, amount: int = 1) -> int: ...

    # sets
    @abstractmethod
    async def sadd(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def srem(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def smembers(self, key: str) -> List[str]: ...

    @abstractmethod
    async def sismember(self, key: str, member: str) -> bool: ...

    @abstractmethod
    async def sunion(self, keys: Sequence[str]) -> List[str]: ...

    @abstractmethod
    async def scard(self, key: str) -> int: ...

    # sorted sets
    @abstractmethod
    async def zadd(self, key: str, score: float, member: str) -> int: ...

    @abstractmethod
    async def zrem(self, key: str, *members: str) -> int: ...

    @abstractmethod
    async def zrange(self, key: str, start: int, stop: int) -> List[str]: ...

    @abstractmethod
    async def zrevrange(self, key: str, start: int, stop: int) -> List[str]: ...

    @abstractmethod
    async def zrangebyscore(
        self,
        key: str,
        min_score: float,
        max_score: float,
        offset: Optional[int] = None,
        count: Optional[int] = None,
    ) -> List[str]: ...

    @abstractmethod
    async def zrevrangebyscore(
        self,
        key: str,
        max_score: float,
        min_score: float,
        offset: Optional[int] = None,
        count: Optional[int] = None,
    ) -> List[str]: ...

    @abstractmethod
    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int: ...

    @abstractmethod
    async def zcard(self, key: str) -> int: ...

    @abstractmethod
    async def zscore(self, key: str, member: str) -> Optional[float]: ...

    @abstractmethod
    async def zcount(self, key: str, min_score: float, max_score: float) -> int: ...

    # expiry
    @abstractmethod
    async def expire(self, key: str, seconds: int) -> bool: ...

    # batching and lifecycle
    @abstractmethod
    def pipeline(self) -> Pipeline: ...

    @abstractmethod
    async def ping(self) -> bool: ...

    @abstractmethod
    async def close(self) -> None: ...
