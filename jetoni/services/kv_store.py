"""
Service: kv_store.py
Rôle:
- Abstraction minimale du stockage clé/valeur exigée par le cœur :
  get / put avec TTL / delete + un index trié par score (zadd/zrem/zrange/expire).
- Deux implémentations :
  - `RedisStore` (production, redis-py),
  - `MemoryStore` (dev/tests, horloge injectable, expiration paresseuse).

Notes:
- Aucune garantie transactionnelle entre l'écriture d'un blob et celle de l'index :
  l'appelant doit tolérer un index qui référence un blob déjà expiré.
- Les erreurs d'I/O Redis sont encapsulées en `StoreError` et remontent telles quelles.
"""
from __future__ import annotations

import time
from abc import ABC, abstractmethod
from threading import RLock
from typing import Callable, Dict, List, Optional, Tuple

import redis
from redis.exceptions import RedisError

from jetoni.services.errors import StoreError


class KeyValueStore(ABC):
    @abstractmethod
    def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        """Écrit la valeur; `ttl_seconds=None` → pas d'expiration."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def add_to_index(self, index_key: str, member: str, score: float) -> None:
        ...

    @abstractmethod
    def remove_from_index(self, index_key: str, member: str) -> None:
        ...

    @abstractmethod
    def range_index(self, index_key: str) -> List[str]:
        """Membres par score croissant."""

    @abstractmethod
    def set_index_ttl(self, index_key: str, ttl_seconds: int) -> None:
        ...


# -----------------------------
# Implémentation mémoire
# -----------------------------
class MemoryStore(KeyValueStore):
    """Stockage en mémoire du process, thread-safe. Rien ne survit au redémarrage."""

    def __init__(self, clock: Callable[[], float] = time.time, purge_interval: float = 60.0) -> None:
        self._clock = clock
        self._purge_interval = purge_interval
        self._next_purge = clock() + purge_interval
        self._lock = RLock()
        self._values: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._indexes: Dict[str, Dict[str, float]] = {}
        self._index_expiry: Dict[str, float] = {}

    def _expires_at(self, ttl_seconds: Optional[int]) -> Optional[float]:
        if ttl_seconds is None:
            return None
        return self._clock() + ttl_seconds

    def _evict_index_if_expired(self, index_key: str) -> None:
        expiry = self._index_expiry.get(index_key)
        if expiry is not None and expiry <= self._clock():
            self._indexes.pop(index_key, None)
            self._index_expiry.pop(index_key, None)

    def purge_expired(self) -> int:
        """Supprime les clés expirées jamais relues. Renvoie le nombre de clés retirées."""
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, expiry) in self._values.items() if expiry is not None and expiry <= now]
            for key in expired:
                del self._values[key]
            for index_key in list(self._index_expiry):
                self._evict_index_if_expired(index_key)
            self._next_purge = now + self._purge_interval
            return len(expired)

    def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            if self._clock() >= self._next_purge:
                self.purge_expired()
            self._values[key] = (value, self._expires_at(ttl_seconds))

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            entry = self._values.get(key)
            if entry is None:
                return None
            value, expiry = entry
            if expiry is not None and expiry <= self._clock():
                del self._values[key]
                return None
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def add_to_index(self, index_key: str, member: str, score: float) -> None:
        with self._lock:
            self._evict_index_if_expired(index_key)
            self._indexes.setdefault(index_key, {})[member] = score

    def remove_from_index(self, index_key: str, member: str) -> None:
        with self._lock:
            bucket = self._indexes.get(index_key)
            if bucket is not None:
                bucket.pop(member, None)

    def range_index(self, index_key: str) -> List[str]:
        with self._lock:
            self._evict_index_if_expired(index_key)
            bucket = self._indexes.get(index_key, {})
            return [member for member, _ in sorted(bucket.items(), key=lambda item: (item[1], item[0]))]

    def set_index_ttl(self, index_key: str, ttl_seconds: int) -> None:
        with self._lock:
            if index_key in self._indexes:
                self._index_expiry[index_key] = self._clock() + ttl_seconds


# -----------------------------
# Implémentation Redis
# -----------------------------
class RedisStore(KeyValueStore):
    """Adaptateur redis-py (client synchrone)."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url))

    def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        try:
            self._client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            raise StoreError(f"redis set failed for {key}") from exc

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self._client.get(key)
        except RedisError as exc:
            raise StoreError(f"redis get failed for {key}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except RedisError as exc:
            raise StoreError(f"redis delete failed for {key}") from exc

    def add_to_index(self, index_key: str, member: str, score: float) -> None:
        try:
            self._client.zadd(index_key, {member: score})
        except RedisError as exc:
            raise StoreError(f"redis zadd failed for {index_key}") from exc

    def remove_from_index(self, index_key: str, member: str) -> None:
        try:
            self._client.zrem(index_key, member)
        except RedisError as exc:
            raise StoreError(f"redis zrem failed for {index_key}") from exc

    def range_index(self, index_key: str) -> List[str]:
        try:
            members = self._client.zrange(index_key, 0, -1)
        except RedisError as exc:
            raise StoreError(f"redis zrange failed for {index_key}") from exc
        return [m.decode("utf-8") if isinstance(m, bytes) else str(m) for m in members]

    def set_index_ttl(self, index_key: str, ttl_seconds: int) -> None:
        try:
            self._client.expire(index_key, ttl_seconds)
        except RedisError as exc:
            raise StoreError(f"redis expire failed for {index_key}") from exc


def build_store(redis_url: str) -> KeyValueStore:
    """Redis si une URL est configurée, sinon stockage mémoire."""
    if redis_url:
        return RedisStore.from_url(redis_url)
    return MemoryStore()
