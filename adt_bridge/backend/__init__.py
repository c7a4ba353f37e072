from .base import (
    BackendSession,
    Destination,
    HeaderField,
    MessageBody,
    ResourceError,
    ResponseContext,
    RestResource,
    SessionFactory,
)
from .http_session import HttpBackendSession, HttpSessionFactory

__all__ = [
    "BackendSession",
    "Destination",
    "HeaderField",
    "MessageBody",
    "ResourceError",
    "ResponseContext",
    "RestResource",
    "SessionFactory",
    "HttpBackendSession",
    "HttpSessionFactory",
]
