import threading
from typing import Callable, Optional, Union

import requests
from requests.structures import CaseInsensitiveDict

from adt_bridge.backend.base import (
    BackendSession,
    Destination,
    HeaderField,
    MessageBody,
    ResponseContext,
    SessionFactory,
)
from adt_bridge.workspace.discovery import AdtProject, ProjectDiscovery

DESTINATION = Destination(id="DEV_100", url="https://dev.example:44300", user="dev")


def make_response(
    status_code: int = 200,
    content: bytes = b"",
    headers: Optional[dict] = None,
    reason: str = "OK",
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = content
    response.headers = CaseInsensitiveDict(headers or {})
    response.reason = reason
    return response


class FakeHttp:
    """Stands in for ``requests.Session``; replays queued responses and records calls."""

    def __init__(self, *responses: Union[requests.Response, Exception]):
        self.responses = list(responses)
        self.calls: list[dict] = []
        self.headers: dict = {}
        self.params: dict = {}
        self.auth = None
        self.verify = True
        self.closed = False

    def _next(self):
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"method": "GET", "url": url, "headers": dict(headers or {})})
        return self._next()

    def request(self, method, url, headers=None, data=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "headers": dict(headers or {}), "data": data}
        )
        return self._next()

    def close(self):
        self.closed = True


Handler = Callable[[str, str, Optional[list[HeaderField]], Optional[MessageBody]], ResponseContext]


class FakeSession(BackendSession):
    def __init__(self, destination: Destination, handler: Handler, stateful: bool = False):
        super().__init__(destination)
        self.handler = handler
        self.stateful = stateful
        self.sent: list[tuple] = []
        self.released = False

    def send(self, method, locator, headers, body):
        self.sent.append((method, locator, headers, body))
        return self.handler(method, locator, headers, body)

    def release(self):
        self.released = True


class FakeSessionFactory(SessionFactory):
    def __init__(self, handler: Handler, affine_available: bool = True):
        self.handler = handler
        self.affine_available = affine_available
        self.stateless_created: list[FakeSession] = []
        self.affine_requests = 0
        self.affine_session: Optional[FakeSession] = None
        self._lock = threading.Lock()

    def create_stateless_session(self, locator, destination):
        session = FakeSession(destination, self.handler, stateful=False)
        self.stateless_created.append(session)
        return session

    def create_affine_session(self, destination):
        with self._lock:
            self.affine_requests += 1
            if not self.affine_available:
                return None
            if self.affine_session is None:
                self.affine_session = FakeSession(destination, self.handler, stateful=True)
            return self.affine_session


class FakeDiscovery(ProjectDiscovery):
    def __init__(self, project: Optional[AdtProject] = None, error: Optional[Exception] = None):
        self.project = project
        self.error = error
        self.calls = 0

    def find_project(self) -> Optional[AdtProject]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.project


def ok(content: bytes = b"", status: int = 200, headers: Optional[dict] = None) -> Handler:
    def handler(method, locator, req_headers, body):
        return ResponseContext(
            status=status,
            reason="OK",
            headers=[HeaderField(k, v) for k, v in (headers or {}).items()],
            content=content,
        )

    return handler


def raising(exc: Exception) -> Handler:
    def handler(method, locator, req_headers, body):
        raise exc

    return handler
