"""
HTTP plumbing shared by provider integrations.

Each provider owns its own session, authentication and error mapping; this
module only holds the session defaults and the debug logging helpers they
all use.
"""
import logging
import pprint
import threading
from typing import Dict, Iterable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

SENSITIVE_HEADERS = ("Authorization", "Cookie", "X-API-Key", "X-Signature")


def build_session(headers: Optional[Dict[str, str]] = None, retries: int = 3) -> requests.Session:
    """Create a session with JSON headers and a retry strategy for transient failures."""
    session = requests.Session()
    session.headers.update({
        "Content-Type": "application/json",
        "Accept": "application/json",
    })
    if headers:
        session.headers.update(headers)

    # POST is left out on purpose: a retried transfer could be executed twice
    retry_strategy = Retry(
        total=retries,
        backoff_factor=0.5,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def mask_headers(headers: Dict[str, str], sensitive: Iterable[str] = SENSITIVE_HEADERS) -> Dict[str, str]:
    masked = dict(headers)
    for key in sensitive:
        if key in masked:
            masked[key] = "***MASKED***"
    return masked


def log_request_details(logger: logging.Logger, method: str, url: str, headers: Dict,
                        params: Optional[Dict] = None, data=None) -> None:
    """Log details of outgoing API requests."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("Outgoing request: %s %s", method, url)
    logger.debug("Headers: %s", pprint.pformat(mask_headers(headers)))
    if params:
        logger.debug("Query params: %s", pprint.pformat(params))
    if data:
        logger.debug("Request body: %s", pprint.pformat(data))


def log_response_details(logger: logging.Logger, response: requests.Response) -> None:
    """Log details of API responses."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("Response: %s %s", response.status_code, response.reason)
    body = response.text or ""
    logger.debug("Response body: %s", body[:1000] + "..." if len(body) > 1000 else body)


class SessionPool:
    """
    One requests.Session per live thread.

    The hub calls a provider from several threads at once and a Session is
    not safe to share between them, so each thread gets its own. Sessions
    owned by threads that have exited are closed the next time a session
    is created.
    """

    def __init__(self, factory):
        self._factory = factory
        self._lock = threading.Lock()
        self._sessions: Dict[threading.Thread, requests.Session] = {}

    def get(self) -> requests.Session:
        thread = threading.current_thread()
        with self._lock:
            session = self._sessions.get(thread)
            if session is None:
                self._close_orphans()
                session = self._factory()
                self._sessions[thread] = session
        return session

    def _close_orphans(self) -> None:
        for thread in [t for t in self._sessions if not t.is_alive()]:
            self._sessions.pop(thread).close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close(self) -> None:
        with self._lock:
            sessions, self._sessions = list(self._sessions.values()), {}
        for session in sessions:
            session.close()
