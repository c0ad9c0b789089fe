"""
Redis storage backend for Agent Memory System
Copyright 2025 Jurden Bruce
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..exceptions import StorageError
from .base import KeyValueStore, Pipeline

logger = logging.getLogger("agent-memory.storage")


def _limit_args(offset: Optional[int], count: Optional[int]) -> Dict[str, int]:
    if offset is None and count is None:
        return {}
    return {"start": offset or 0, "num": count if count is not None else -1}


class RedisProtocolPipeline(Pipeline):
    """Non-transactional pipeline over a redis-py compatible client"""

    def __init__(self, pipe, client_errors: Tuple[Type[Exception], ...]):
        self._pipe = pipe
        self._client_errors = client_errors
        self._queued = 0

    def _queue(self, method: str, *args, **kwargs) -> "RedisProtocolPipeline":
        getattr(self._pipe, method)(*args, **kwargs)
        self._queued += 1
        return self

    def set(self, key: str, value: str) -> "RedisProtocolPipeline":
        return self._queue("set", key, value)

    def delete(self, *keys: str) -> "RedisProtocolPipeline":
        if not keys:
            return self
        return self._queue("delete", *keys)

    def hset(self, key: str, mapping: Dict[str, str]) -> "RedisProtocolPipeline":
        if not mapping:
            return self
        return self._queue("hset", key, mapping=mapping)

    def hincrby(self, key: str, field: str, amount: int = 1) -> "RedisProtocolPipeline":
        return self._queue("hincrby", key, field, amount)

    def sadd(self, key: str, *members: str) -> "RedisProtocolPipeline":
        if not members:
            return self
        return self._queue("sadd", key, *members)

    def srem(self, key: str, *members: str) -> "RedisProtocolPipeline":
        if not members:
            return self
        return self._queue("srem", key, *members)

    def zadd(self, key: str, score: float, member: str) -> "RedisProtocolPipeline":
        return self._queue("zadd", key, {member: score})

    def zrem(self, key: str, *members: str) -> "RedisProtocolPipeline":
        if not members:
            return self
        return self._queue("zrem", key, *members)

    def zremrangebyrank(self, key: str, start: int, stop: int) -> "RedisProtocolPipeline":
        return self._queue("zremrangebyrank", key, start, stop)

    def expire(self, key: str, seconds: int) -> "RedisProtocolPipeline":
        return self._queue("expire", key, seconds)

    async def execute(self) -> List[Any]:
        if not self._queued:
            return []
        try:
            results = await self._pipe.execute()
        except self._client_errors as e:
            raise StorageError("pipeline", str(e)) from e
        logger.debug(f"Pipeline executed {self._queued} commands")
        self._queued = 0
        return results


class RedisProtocolStore(KeyValueStore):
    """KeyValueStore over any client speaking the redis-py asyncio API.

    Client exceptions are re-raised as StorageError. No retries are attempted.
    """

    backend_name = "redis-protocol"
    client_errors: Tuple[Type[Exception], ...] = ()

    def __init__(self, client):
        self._client = client

    @property
    def client(self):
        return self._client

    async def _run(self, operation: str, awaitable):
        try:
            return await awaitable
        except self.client_errors as e:
            raise StorageError(operation, str(e)) from e

    # scalars
    async def get(self, key: str) -> Optional[str]:
        return await self._run("get", self._client.get(key))

    async def set(self, key: str, value: str) -> None:
        await self._run("set", self._client.set(key, value))

    async def setnx(self, key: str, value: str) -> bool:
        return bool(await self._run("setnx", self._client.set(key, value, nx=True)))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._run("delete", self._client.delete(*keys))

    async def exists(self, key: str) -> bool:
        return bool(await self._run("exists", self._client.exists(key)))

    # hashes
    async def hset(self, key: str, mapping: Dict[str, str]) -> None:
        if mapping:
            await self._run("hset", self._client.hset(key, mapping=mapping))

    async def hgetall(self, key: str) -> Dict[str, str]:
        return await self._run("hgetall", self._client.hgetall(key)) or {}

    async def hdel(self, key: str, *fields: str) -> int:
        if not fields:
            return 0
        return await self._run("hdel", self._client.hdel(key, *fields))

    async def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        return await self._run("hincrby", self._client.hincrby(key, field, amount))

    # sets
    async def sadd(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._run("sadd", self._client.sadd(key, *members))

    async def srem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._run("srem", self._client.srem(key, *members))

    async def smembers(self, key: str) -> List[str]:
        return list(await self._run("smembers", self._client.smembers(key)))

    async def sismember(self, key: str, member: str) -> bool:
        return bool(await self._run("sismember", self._client.sismember(key, member)))

    async def sunion(self, keys: Sequence[str]) -> List[str]:
        if not keys:
            return []
        return list(await self._run("sunion", self._client.sunion(list(keys))))

    async def scard(self, key: str) -> int:
        return await self._run("scard", self._client.scard(key))

    # sorted sets
    async def zadd(self, key: str, score: float, member: str) -> int:
        return await self._run("zadd", self._client.zadd(key, {member: score}))

    async def zrem(self, key: str, *members: str) -> int:
        if not members:
            return 0
        return await self._run("zrem", self._client.zrem(key, *members))

    async def zrange(self, key: str, start: int, stop: int) -> List[str]:
        return await self._run("zrange", self._client.zrange(key, start, stop))

    async def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        return await self._run("zrevrange", self._client.zrevrange(key, start, stop))

    async def zrangebyscore(self, key, min_score, max_score, offset=None, count=None) -> List[str]:
        return await self._run(
            "zrangebyscore",
            self._client.zrangebyscore(key, min_score, max_score, **_limit_args(offset, count)),
        )

    async def zrevrangebyscore(self, key, max_score, min_score, offset=None, count=None) -> List[str]:
        return await self._run(
            "zrevrangebyscore",
            self._client.zrevrangebyscore(key, max_score, min_score, **_limit_args(offset, count)),
        )

    async def zremrangebyrank(self, key: str, start: int, stop: int) -> int:
        return await self._run("zremrangebyrank", self._client.zremrangebyrank(key, start, stop))

    async def zcard(self, key: str) -> int:
        return await self._run("zcard", self._client.zcard(key))

    async def zscore(self, key: str, member: str) -> Optional[float]:
        return await self._run("zscore", self._client.zscore(key, member))

    async def zcount(self, key: str, min_score: float, max_score: float) -> int:
        return await self._run("zcount", self._client.zcount(key, min_score, max_score))

    # expiry
    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._run("expire", self._client.expire(key, seconds)))

    # batching and lifecycle
    def pipeline(self) -> RedisProtocolPipeline:
        return RedisProtocolPipeline(self._client.pipeline(transaction=False), self.client_errors)

    async def ping(self) -> bool:
        return bool(await self._run("ping", self._client.ping()))

    async def close(self) -> None:
        await self._run("close", self._client.aclose())
        logger.info(f"{self.backend_name} connection closed")


class RedisStore(RedisProtocolStore):
    """Redis backend (redis-py asyncio client)"""

    backend_name = "redis"
    client_errors = (RedisError,)

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        client = redis.from_url(url, encoding="utf-8", decode_responses=True)
        logger.info(f"Redis client created for {url}")
        return cls(client)
