"""Verrous d'exclusion mutuelle par (modèle, empreinte).

Deux générations simultanées pour la même empreinte passeraient toutes deux la recherche du
contrat actif avant qu'aucune ne persiste. Le verrou sérialise la séquence
recherche -> version -> rendu -> persistance pour une même clé.

- `RedisLockFactory`: verrou distribué (`redis` lock) quand `REDIS_URL` est défini.
- `LocalLockFactory`: un `threading.Lock` par clé, limité au processus courant.
- `NullLockFactory`: aucun verrou (la course reste observable).
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import redis
import structlog

from backend.domain.errors import StorageFailure

log = structlog.get_logger(__name__)


def lock_key(model_id: str, fingerprint: str) -> str:
    """Clé de verrou pour une empreinte de contrat."""
    return f"lock:contract:{model_id}:{fingerprint}"


class NullLockFactory:
    """Ne verrouille rien."""

    @contextmanager
    def acquire(self, key: str) -> Iterator[None]:
        yield


class LocalLockFactory:
    """Un verrou par clé, partagé par les threads du processus.

    Chaque entrée compte ses détenteurs et ses attentes; la table ne contient que les
    clés en cours d'utilisation.
    """

    def __init__(self, timeout_s: float = 120) -> None:
        self.timeout_s = timeout_s
        self._locks: dict[str, tuple[threading.Lock, int]] = {}
        self._guard = threading.Lock()

    def _checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
            return lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    @contextmanager
    def acquire(self, key: str) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=self.timeout_s):
                raise StorageFailure("generation lock timeout", {"key": key})
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


class RedisLockFactory:
    """Verrou distribué via Redis (plusieurs processus)."""

    def __init__(self, url: str, timeout_s: float = 120) -> None:
        """Crée un client Redis à partir de l'URL fournie."""
        self.client = redis.Redis.from_url(url)
        self.timeout_s = timeout_s

    @contextmanager
    def acquire(self, key: str) -> Iterator[None]:
        lock = self.client.lock(key, timeout=self.timeout_s, blocking_timeout=self.timeout_s)
        try:
            acquired = lock.acquire()
        except redis.RedisError as err:
            log.error("generation_lock_error", key=key, error=str(err))
            raise StorageFailure("generation lock unavailable", {"key": key}) from err
        if not acquired:
            raise StorageFailure("generation lock timeout", {"key": key})
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError:
                log.warning("generation_lock_expired", key=key)


def build_lock_factory(enabled: bool, redis_url: str | None, timeout_s: float):
    """Choisit l'implémentation selon la configuration."""
    if not enabled:
        return NullLockFactory()
    if redis_url:
        return RedisLockFactory(redis_url, timeout_s=timeout_s)
    return LocalLockFactory(timeout_s=timeout_s)
