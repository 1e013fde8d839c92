"""Tests pour les verrous de génération (local, Redis simulé, sans verrou)."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest
import redis

from backend.domain.errors import StorageFailure
from backend.infra.locks import (
    LocalLockFactory,
    NullLockFactory,
    RedisLockFactory,
    build_lock_factory,
    lock_key,
)

KEY = lock_key("m1", "fp")


def test_lock_key() -> None:
    assert KEY == "lock:contract:m1:fp"


def test_null_lock_never_blocks() -> None:
    locks = NullLockFactory()
    with locks.acquire(KEY):
        with locks.acquire(KEY):
            pass


def test_local_lock_times_out_when_held() -> None:
    locks = LocalLockFactory(timeout_s=0.05)
    acquired, release = threading.Event(), threading.Event()

    def holder() -> None:
        with locks.acquire(KEY):
            acquired.set()
            release.wait(5)

    t = threading.Thread(target=holder)
    t.start()
    acquired.wait(5)
    try:
        with pytest.raises(StorageFailure):
            with locks.acquire(KEY):
                pass
        with locks.acquire(lock_key("m1", "other")):
            pass
    finally:
        release.set()
        t.join(5)
    with locks.acquire(KEY):
        pass


def _redis_factory(lock: MagicMock) -> RedisLockFactory:
    client = MagicMock()
    client.lock.return_value = lock
    with patch("backend.infra.locks.redis.Redis.from_url", return_value=client):
        return RedisLockFactory("redis://localhost:6379/0", timeout_s=3)


def test_redis_lock_acquire_and_release() -> None:
    lock = MagicMock()
    lock.acquire.return_value = True
    factory = _redis_factory(lock)
    with factory.acquire(KEY):
        lock.release.assert_not_called()
    factory.client.lock.assert_called_once_with(KEY, timeout=3, blocking_timeout=3)
    lock.release.assert_called_once()


def test_redis_lock_timeout_and_errors() -> None:
    lock = MagicMock()
    lock.acquire.return_value = False
    with pytest.raises(StorageFailure):
        with _redis_factory(lock).acquire(KEY):
            pass
    lock.acquire.side_effect = redis.ConnectionError("down")
    with pytest.raises(StorageFailure):
        with _redis_factory(lock).acquire(KEY):
            pass


def test_redis_expired_lock_release_is_tolerated() -> None:
    lock = MagicMock()
    lock.acquire.return_value = True
    lock.release.side_effect = redis.exceptions.LockError("expired")
    with _redis_factory(lock).acquire(KEY):
        pass


def test_build_lock_factory() -> None:
    assert isinstance(build_lock_factory(False, "redis://x", 1), NullLockFactory)
    assert isinstance(build_lock_factory(True, None, 1), LocalLockFactory)
    with patch("backend.infra.locks.redis.Redis.from_url"):
        assert isinstance(build_lock_factory(True, "redis://x", 1), RedisLockFactory)


def test_local_lock_table_only_holds_keys_in_use() -> None:
    locks = LocalLockFactory(timeout_s=1)
    for i in range(100):
        with locks.acquire(f"k{i}"):
            assert f"k{i}" in locks._locks
    assert locks._locks == {}


def test_local_lock_entry_released_after_timeout() -> None:
    locks = LocalLockFactory(timeout_s=0.05)
    with locks.acquire(KEY):
        with pytest.raises(StorageFailure):
            with locks.acquire(KEY):
                pass
        assert locks._locks[KEY][1] == 1
    assert locks._locks == {}
