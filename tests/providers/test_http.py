"""
Tests for the shared HTTP plumbing: session defaults and the per-thread pool.
"""
import threading
from unittest.mock import MagicMock

import requests

from apps.providers.base.http import SessionPool, build_session, mask_headers


def make_pool():
    created = []

    def factory():
        session = MagicMock(spec=requests.Session)
        created.append(session)
        return session

    return SessionPool(factory), created


def test_same_thread_reuses_its_session():
    pool, created = make_pool()

    assert pool.get() is pool.get()
    assert len(created) == 1


def test_each_thread_gets_its_own_session():
    pool, _ = make_pool()
    seen = []
    barrier = threading.Barrier(3)

    def worker():
        seen.append(pool.get())
        barrier.wait()

    threads = [threading.Thread(target=worker) for _ in range(3)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len({id(session) for session in seen}) == 3


def test_sessions_of_finished_threads_are_closed():
    pool, created = make_pool()

    for _ in range(50):
        thread = threading.Thread(target=pool.get)
        thread.start()
        thread.join()
    main_session = pool.get()

    assert len(pool) == 1
    assert len(created) == 51
    assert all(session.close.called for session in created if session is not main_session)
    assert not main_session.close.called


def test_close_releases_every_session():
    pool, created = make_pool()
    pool.get()

    pool.close()

    assert len(pool) == 0
    created[0].close.assert_called_once_with()


def test_only_get_is_retried():
    session = build_session({"Authorization": "Bearer token"})

    retry = session.get_adapter("https://api.example.com").max_retries
    assert "GET" in retry.allowed_methods
    assert "POST" not in retry.allowed_methods
    assert session.headers["Authorization"] == "Bearer token"
    session.close()


def test_mask_headers_hides_credentials():
    masked = mask_headers({"Authorization": "Bearer secret", "X-Signature": "abc", "Accept": "json"})

    assert masked["Authorization"] == "***MASKED***"
    assert masked["X-Signature"] == "***MASKED***"
    assert masked["Accept"] == "json"
