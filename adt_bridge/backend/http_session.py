import logging
import threading
from typing import Callable, Optional

import requests
from requests.structures import CaseInsensitiveDict

from adt_bridge.backend.base import (
    BackendSession,
    Destination,
    HeaderField,
    MessageBody,
    ResourceError,
    ResponseContext,
    SessionFactory,
)
from adt_bridge.utils import mask_secret
from adt_bridge.utils.exception_logging import log_exception_with_details
from adt_bridge.vars import ADT_REQUEST_TIMEOUT

logger = logging.getLogger("uvicorn.error")

SESSION_TYPE_HEADER = "X-sap-adt-sessiontype"
CSRF_HEADER = "x-csrf-token"
CSRF_FETCH_PATH = "/sap/bc/adt/discovery"


class HttpBackendSession(BackendSession):
    """
    ADT REST session on top of a ``requests.Session``.

    Stateful sessions keep the SAP session cookies and CSRF token between calls,
    which is what keeps an enqueue lock valid from LOCK to UNLOCK. Calls on one
    session are serialized.
    """

    def __init__(
        self,
        destination: Destination,
        *,
        stateful: bool,
        http: Optional[requests.Session] = None,
        timeout: float = ADT_REQUEST_TIMEOUT,
    ):
        super().__init__(destination)
        self.stateful = stateful
        self.timeout = timeout
        self.http = http if http is not None else requests.Session()
        self.http.verify = destination.verify_tls
        if destination.user:
            self.http.auth = (destination.user, destination.password)
        self.http.headers[SESSION_TYPE_HEADER] = "stateful" if stateful else "stateless"
        if destination.client:
            self.http.params = {"sap-client": destination.client}
        if destination.language:
            self.http.headers["sap-language"] = destination.language
        self.csrf_token: Optional[str] = None
        self.closed = False
        self._lock = threading.Lock()

    def url_for(self, locator: str) -> str:
        if not locator.startswith("/"):
            locator = "/" + locator
        return self.destination.url.rstrip("/") + locator

    def fetch_csrf_token(self) -> str:
        """Run the CSRF handshake; raises ResourceError or a requests exception."""
        response = self.http.get(
            self.url_for(CSRF_FETCH_PATH),
            headers={CSRF_HEADER: "Fetch", "Accept": "*/*"},
            timeout=self.timeout,
        )
        token = response.headers.get(CSRF_HEADER)
        if response.status_code >= 400 or not token or token.lower() == "required":
            raise ResourceError(
                response.status_code,
                f"CSRF token fetch failed: {response.status_code} {response.reason or ''}".strip(),
            )
        self.csrf_token = token
        logger.debug(
            mask_secret(
                f"[Backend] CSRF token fetched for {self.destination.id}: {token}",
                token,
            )
        )
        return token

    def send(
        self,
        method: str,
        locator: str,
        headers: Optional[list[HeaderField]],
        body: Optional[MessageBody],
    ) -> ResponseContext:
        with self._lock:
            if method != "GET" and self.csrf_token is None:
                try:
                    self.fetch_csrf_token()
                except (requests.RequestException, ResourceError):
                    # A closed enqueue session is replaced by the factory on next lookup
                    if self.stateful:
                        self.close()
                    raise

            outbound = CaseInsensitiveDict()
            if self.csrf_token:
                outbound[CSRF_HEADER] = self.csrf_token
            for f in headers or []:
                outbound[f.name] = f.value
            data = None
            if body is not None:
                if "Content-Type" not in outbound:
                    outbound["Content-Type"] = body.content_type
                data = body.content

            response = self.http.request(
                method,
                self.url_for(locator),
                headers=outbound,
                data=data,
                timeout=self.timeout,
            )

            token = response.headers.get(CSRF_HEADER)
            if (token and token.lower() == "required") or (
                method != "GET" and response.status_code == 403
            ):
                logger.info(
                    f"[Backend] CSRF token rejected for {self.destination.id}, fetching a new one on the next change"
                )
                self.csrf_token = None
            elif token:
                self.csrf_token = token

            return ResponseContext(
                status=response.status_code,
                reason=response.reason or "",
                headers=[HeaderField(k, v) for k, v in response.headers.items()],
                content=response.content,
            )

    def release(self) -> None:
        if not self.stateful:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.http.close()


class HttpSessionFactory(SessionFactory):
    """Creates per-call stateless sessions and caches one enqueue session per destination."""

    def __init__(
        self,
        timeout: float = ADT_REQUEST_TIMEOUT,
        http_factory: Callable[[], requests.Session] = requests.Session,
    ):
        self.timeout = timeout
        self.http_factory = http_factory
        self._enqueue_sessions: dict[str, HttpBackendSession] = {}
        # Guards the two dicts only; handshakes run under the destination's own lock
        self._lock = threading.Lock()
        self._destination_locks: dict[str, threading.Lock] = {}

    def create_stateless_session(
        self, locator: str, destination: Destination
    ) -> HttpBackendSession:
        logger.debug(f"[Backend] Stateless session for {destination.id}: {locator}")
        return HttpBackendSession(
            destination,
            stateful=False,
            http=self.http_factory(),
            timeout=self.timeout,
        )

    def _destination_lock(self, key: str) -> threading.Lock:
        with self._lock:
            return self._destination_locks.setdefault(key, threading.Lock())

    def _cached(self, key: str) -> Optional[HttpBackendSession]:
        with self._lock:
            existing = self._enqueue_sessions.get(key)
            if existing is not None and existing.closed:
                del self._enqueue_sessions[key]
                logger.info(f"[Backend] Dropped closed enqueue session {key}")
                return None
            return existing

    def create_affine_session(
        self, destination: Destination
    ) -> Optional[HttpBackendSession]:
        key = destination.key
        with self._destination_lock(key):
            existing = self._cached(key)
            if existing is not None:
                return existing

            session = HttpBackendSession(
                destination,
                stateful=True,
                http=self.http_factory(),
                timeout=self.timeout,
            )
            try:
                session.fetch_csrf_token()
            except (requests.RequestException, ResourceError) as e:
                log_exception_with_details(
                    logger,
                    f"[Backend] Enqueue session for {destination.id} unavailable:",
                    e,
                    level=logging.WARNING,
                )
                session.close()
                return None

            with self._lock:
                self._enqueue_sessions[key] = session
            logger.info(f"[Backend] Enqueue session opened for {destination.id}")
            return session

    def close(self) -> None:
        with self._lock:
            sessions = list(self._enqueue_sessions.values())
            self._enqueue_sessions.clear()
        for session in sessions:
            session.close()
        logger.info(f"[Backend] Closed {len(sessions)} enqueue session(s)")


__all__ = [
    "HttpBackendSession",
    "HttpSessionFactory",
    "SESSION_TYPE_HEADER",
    "CSRF_HEADER",
]
