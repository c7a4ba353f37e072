"""
Backend call surface: sessions, REST resources and the response observer hook.

A ``RestResource`` binds one locator to one ``BackendSession``. Observers
registered on the resource see every response synchronously, before a
status >= 400 is turned into a ``ResourceError``.
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Optional
from xml.etree import ElementTree


@dataclass(frozen=True)
class Destination:
    """Connection settings of the single ABAP system the bridge talks to."""

    id: str
    url: str
    user: str = ""
    password: str = ""
    client: str = ""
    language: str = ""
    verify_tls: bool = True

    @property
    def key(self) -> str:
        return f"{self.id}@{self.url}"


@dataclass(frozen=True)
class HeaderField:
    name: str
    value: str


@dataclass(frozen=True)
class MessageBody:
    content_type: str
    content: bytes = b""


@dataclass
class ResponseContext:
    """What an observer receives once the backend has answered."""

    status: int
    reason: str = ""
    headers: Optional[list[HeaderField]] = None
    content: Optional[bytes] = None

    def open_body(self) -> Optional[BinaryIO]:
        """Return a fresh stream over the body, or None if there is no body."""
        if self.content is None:
            return None
        return io.BytesIO(self.content)

    def header(self, name: str) -> Optional[str]:
        for f in self.headers or []:
            if f.name.lower() == name.lower():
                return f.value
        return None


ResponseObserver = Callable[[ResponseContext], None]


class ResourceError(Exception):
    """The backend answered with an HTTP error status."""

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


class BackendSession(ABC):
    """A connection context on one destination."""

    stateful: bool = False

    def __init__(self, destination: Destination):
        self.destination = destination

    @abstractmethod
    def send(
        self,
        method: str,
        locator: str,
        headers: Optional[list[HeaderField]],
        body: Optional[MessageBody],
    ) -> ResponseContext:
        """Issue one request and return the raw response."""

    def release(self) -> None:
        """Called by the executor after each call. Stateless sessions close here."""

    def close(self) -> None:
        pass


class SessionFactory(ABC):
    @abstractmethod
    def create_stateless_session(
        self, locator: str, destination: Destination
    ) -> BackendSession:
        pass

    @abstractmethod
    def create_affine_session(
        self, destination: Destination
    ) -> Optional[BackendSession]:
        """Return the destination's enqueue session, or None if unavailable."""

    def close(self) -> None:
        pass


@dataclass
class RestResource:
    locator: str
    session: BackendSession
    observers: list[ResponseObserver] = field(default_factory=list)

    def add_response_observer(self, observer: ResponseObserver) -> None:
        self.observers.append(observer)

    def get(self, headers: Optional[list[HeaderField]] = None) -> None:
        self._call("GET", headers, None)

    def post(
        self, headers: Optional[list[HeaderField]], body: Optional[MessageBody]
    ) -> None:
        self._call("POST", headers, body)

    def put(
        self, headers: Optional[list[HeaderField]], body: Optional[MessageBody]
    ) -> None:
        self._call("PUT", headers, body)

    def delete(self, headers: Optional[list[HeaderField]] = None) -> None:
        self._call("DELETE", headers, None)

    def _call(
        self,
        method: str,
        headers: Optional[list[HeaderField]],
        body: Optional[MessageBody],
    ) -> None:
        response = self.session.send(method, self.locator, headers, body)
        for observer in self.observers:
            observer(response)
        if response.status >= 400:
            raise ResourceError(response.status, error_message(response))


def error_message(response: ResponseContext) -> str:
    """
    Extract the message of an ADT exception document, falling back to
    "<status> <reason>".
    """
    fallback = f"{response.status} {response.reason}".strip()
    if not response.content:
        return fallback
    try:
        root = ElementTree.fromstring(response.content)
    except ElementTree.ParseError:
        return fallback
    if not root.tag.endswith("exception"):
        return fallback
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] == "message" and element.text:
            return element.text.strip()
    return fallback
