"""Chain state store kept in a Redis server."""

from __future__ import annotations

from typing import Any, Optional

import redis

from flowemu.errors import EntityNotFoundError
from flowemu.store import DefaultKeyGenerator, DefaultStore


def _store_key(store: str, key: bytes) -> str:
    return f"{store}_{bytes(key).hex()}"


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode()
    return value


class RedisStore(DefaultStore):
    """Chain state in Redis: plain values as strings, versioned values in sorted sets."""

    def __init__(self, url: str, client: Optional[Any] = None) -> None:
        super().__init__(DefaultKeyGenerator())
        self.url = url
        if client is None:
            client = redis.Redis.from_url(url, decode_responses=True)
        self._client = client

    def get_bytes(self, store: str, key: bytes) -> bytes:
        value = self._client.get(_store_key(store, key))
        if value is None:
            raise EntityNotFoundError()
        return bytes.fromhex(_text(value))

    def set_bytes(self, store: str, key: bytes, value: bytes) -> None:
        self._client.set(_store_key(store, key), bytes(value or b"").hex())

    def set_bytes_with_version(
        self, store: str, key: bytes, value: bytes, version: int
    ) -> None:
        self._client.zadd(
            _store_key(store, key), {bytes(value or b"").hex(): float(version)}
        )

    def get_bytes_at_version(self, store: str, key: bytes, version: int) -> bytes:
        values = self._client.zrevrangebyscore(
            _store_key(store, key), max=version, min="-inf", start=0, num=1
        )
        if not values:
            raise EntityNotFoundError()
        return bytes.fromhex(_text(values[0]))