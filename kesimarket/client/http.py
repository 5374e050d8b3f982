"""HTTP client for the remote KesiMarket REST API.

Routes come in two flavours:

* ``/opened/...`` public routes, sent to ``/api/v1/opened/...`` with the
  anonymous cart session id in ``x-session-id``;
* ``/secured/...`` authenticated routes, sent to ``/api/v1/secured/...``
  with a bearer token. Without a token the request is never sent.

Public GETs are cached for a short time; mutations invalidate by prefix.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from cachetools import TLRUCache

from kesimarket.app.common.errors import ApiError
from kesimarket.app.common.request_id import REQUEST_ID_HEADER, current_request_id

logger = logging.getLogger(__name__)

OPENED_PREFIX = "/opened"
SECURED_PREFIX = "/secured"
API_PREFIX = "/api/v1"
SESSION_ID_HEADER = "x-session-id"

# 4xx statuses worth retrying; every other client error is final
RETRYABLE_CLIENT_STATUSES = {408, 429}

Credentials = Tuple[Optional[str], Optional[str]]


def no_credentials() -> Credentials:
    return None, None


@dataclass
class _CacheEntry:
    data: Dict[str, Any]
    ttl: float


@dataclass
class _InFlight:
    event: threading.Event = field(default_factory=threading.Event)
    result: Optional[Dict[str, Any]] = None
    error: Optional[BaseException] = None
    # set when an invalidation covers the key while the request runs
    stale: bool = False


def _entry_expiry(_key: str, entry: _CacheEntry, now: float) -> float:
    return now + entry.ttl


class ApiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 30.0,
        retry_attempts: int = 0,
        retry_delay: float = 1.0,
        cache_ttl: float = 300,
        cache_maxsize: int = 512,
        credentials: Callable[[], Credentials] = no_credentials,
        session: Optional[requests.Session] = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.cache_ttl = cache_ttl
        self.credentials = credentials
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        self.sleep = time.sleep

        self._lock = threading.Lock()
        self._cache: TLRUCache = TLRUCache(maxsize=cache_maxsize, ttu=_entry_expiry, timer=timer)
        self._inflight: Dict[str, _InFlight] = {}

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs: Any) -> "ApiClient":
        return cls(
            base_url=config.get("API_BASE_URL", "http://localhost:3001"),
            timeout=config.get("API_TIMEOUT", 30.0),
            retry_attempts=config.get("API_RETRY_ATTEMPTS", 0),
            retry_delay=config.get("API_RETRY_DELAY", 1.0),
            cache_ttl=config.get("API_CACHE_TTL", 300),
            cache_maxsize=config.get("API_CACHE_MAXSIZE", 512),
            **kwargs,
        )

    # --- request building -------------------------------------------------

    def _prepare(self, path: str) -> Tuple[str, Dict[str, str]]:
        headers: Dict[str, str] = {}
        token, session_id = self.credentials()

        if path.startswith(SECURED_PREFIX):
            if not token:
                logger.warning("No auth token for secured route %s", path)
                raise ApiError(401, "no_auth_token", "Authentication required")
            headers["Authorization"] = f"Bearer {token}"
            path = API_PREFIX + path
        elif path.startswith(OPENED_PREFIX):
            if session_id:
                headers[SESSION_ID_HEADER] = session_id
            path = API_PREFIX + path

        request_id = current_request_id()
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id
        return self.base_url + path, headers

    def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Any = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        url, headers = self._prepare(path)
        started = time.monotonic()
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=headers,
                timeout=timeout or self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            logger.error("API network error: %s %s (%s)", method, url, exc)
            raise ApiError(0, "NETWORK_ERROR", "Network connection error", {"reason": str(exc)}) from exc
        except requests.RequestException as exc:
            logger.error("API request error: %s %s (%s)", method, url, exc)
            raise ApiError(500, "REQUEST_ERROR", str(exc)) from exc

        elapsed_ms = int((time.monotonic() - started) * 1000)
        if resp.status_code >= 400:
            logger.warning("API error: %s %s %s (%dms)", resp.status_code, method, url, elapsed_ms)
            raise self._transform_error(resp)

        logger.debug("API response: %s %s %s (%dms)", resp.status_code, method, url, elapsed_ms)
        return self._normalize(resp)

    @staticmethod
    def _body(resp: requests.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    def _transform_error(self, resp: requests.Response) -> ApiError:
        body = self._body(resp)
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            body = body["error"]
        if not isinstance(body, dict):
            body = {}

        details = body.get("details")
        if details is None and body.get("errors"):
            details = {"errors": body["errors"]}
        return ApiError(
            status_code=resp.status_code,
            code=body.get("code") or "SERVER_ERROR",
            message=body.get("message") or resp.reason or "Unexpected error",
            details=details if isinstance(details, dict) else ({"items": details} if details else None),
        )

    def _normalize(self, resp: requests.Response) -> Dict[str, Any]:
        body = self._body(resp)
        if isinstance(body, dict) and "data" in body:
            return body
        return {
            "data": body,
            "status": resp.status_code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # --- retry / cache ----------------------------------------------------

    def _with_retry(self, operation: Callable[[], Dict[str, Any]], attempts: int) -> Dict[str, Any]:
        attempts = max(1, attempts)
        for attempt in range(1, attempts + 1):
            try:
                return operation()
            except ApiError as exc:
                retryable = exc.status_code == 0 or exc.status_code >= 500 or exc.status_code in RETRYABLE_CLIENT_STATUSES
                if attempt == attempts or not retryable:
                    raise
                delay = self.retry_delay * (2 ** (attempt - 1))
                logger.warning("Retry %d/%d after %.2fs: %s", attempt, attempts, delay, exc)
                self.sleep(delay)
        raise AssertionError("unreachable")

    @staticmethod
    def cache_key(path: str, params: Optional[Dict[str, Any]] = None) -> str:
        suffix = json.dumps(params, sort_keys=True, default=str) if params else ""
        return f"{path}:{suffix}"

    def _with_cache(self, key: str, fetch: Callable[[], Dict[str, Any]], ttl: float) -> Dict[str, Any]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                logger.debug("Cache hit: %s", key)
                return entry.data
            waiter = self._inflight.get(key)
            owner = waiter is None
            if owner:
                waiter = self._inflight[key] = _InFlight()

        if not owner:
            logger.debug("Joining in-flight request: %s", key)
            waiter.event.wait(self.timeout)
            if waiter.error is not None:
                raise waiter.error
            if waiter.result is not None:
                return waiter.result
            return fetch()

        try:
            data = fetch()
            waiter.result = data
            with self._lock:
                if waiter.stale:
                    logger.debug("Not caching %s, invalidated in flight", key)
                else:
                    self._cache[key] = _CacheEntry(data=data, ttl=ttl)
            return data
        except BaseException as exc:
            waiter.error = exc
            raise
        finally:
            with self._lock:
                self._inflight.pop(key, None)
            waiter.event.set()

    # --- public API -------------------------------------------------------

    def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        cache: bool = True,
        cache_time: Optional[float] = None,
        retries: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        attempts = self.retry_attempts if retries is None else retries

        def operation() -> Dict[str, Any]:
            return self._with_retry(lambda: self._send("GET", path, params=params, timeout=timeout), attempts)

        # per-user data must never be shared through the cache
        if cache and not path.startswith(SECURED_PREFIX):
            ttl = self.cache_ttl if cache_time is None else cache_time
            return self._with_cache(self.cache_key(path, params), operation, ttl)
        return operation()

    def post(self, path: str, payload: Any = None, retries: int = 0, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._with_retry(lambda: self._send("POST", path, payload=payload, timeout=timeout), retries)

    def put(self, path: str, payload: Any = None, retries: int = 0, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._with_retry(lambda: self._send("PUT", path, payload=payload, timeout=timeout), retries)

    def patch(self, path: str, payload: Any = None, retries: int = 0, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._with_retry(lambda: self._send("PATCH", path, payload=payload, timeout=timeout), retries)

    def delete(self, path: str, payload: Any = None, retries: int = 0, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._with_retry(lambda: self._send("DELETE", path, payload=payload, timeout=timeout), retries)

    def invalidate(self, prefix: str) -> int:
        """Drop cached responses whose path starts with ``prefix``."""
        with self._lock:
            stale = [k for k in list(self._cache.keys()) if k.startswith(prefix)]
            for key in stale:
                self._cache.pop(key, None)
            for key, waiter in self._inflight.items():
                if key.startswith(prefix):
                    waiter.stale = True
        if stale:
            logger.debug("Invalidated %d cached responses under %s", len(stale), prefix)
        return len(stale)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            for waiter in self._inflight.values():
                waiter.stale = True
        logger.debug("Cache cleared")

    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def health_check(self) -> bool:
        try:
            self.get("/health", cache=False, retries=1, timeout=5)
            return True
        except ApiError:
            return False
