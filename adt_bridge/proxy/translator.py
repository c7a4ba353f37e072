from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import quote_plus

from adt_bridge.backend.base import HeaderField, MessageBody

DEFAULT_CONTENT_TYPE = "application/xml"
# Form encoding leaves these unescaped alongside letters, digits, "." "-" and "_"
FORM_SAFE = "*"


@dataclass(frozen=True)
class OutboundRequest:
    locator: str
    headers: Optional[list[HeaderField]]
    body: MessageBody


def build_locator(path: str, params: Optional[Mapping[str, str]] = None) -> str:
    """Append form-encoded query parameters to the path, keeping insertion order."""
    if not params:
        return path
    separator = "&" if "?" in path else "?"
    query = "&".join(
        f"{quote_plus(str(key), safe=FORM_SAFE)}={quote_plus(str(value), safe=FORM_SAFE)}"
        for key, value in params.items()
    )
    return f"{path}{separator}{query}"


def resolve_content_type(headers: Optional[Mapping[str, str]]) -> str:
    if not headers:
        return DEFAULT_CONTENT_TYPE
    return headers.get("Content-Type", headers.get("content-type", DEFAULT_CONTENT_TYPE))


def build_body(body: Optional[str], content_type: str) -> MessageBody:
    if not body:
        return MessageBody(content_type, b"")
    return MessageBody(content_type, body.encode("utf-8"))


def build_headers(headers: Optional[Mapping[str, str]]) -> Optional[list[HeaderField]]:
    if not headers:
        return None
    return [HeaderField(name, value) for name, value in headers.items()]


def translate(
    path: str,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, str]] = None,
    body: Optional[str] = None,
) -> OutboundRequest:
    return OutboundRequest(
        locator=build_locator(path, params),
        headers=build_headers(headers),
        body=build_body(body, resolve_content_type(headers)),
    )
