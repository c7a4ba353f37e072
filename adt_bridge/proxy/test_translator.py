from adt_bridge.backend.base import HeaderField
from adt_bridge.proxy.translator import (
    build_body,
    build_headers,
    build_locator,
    resolve_content_type,
    translate,
)


class TestBuildLocator:
    def test_no_params_returns_path(self):
        assert build_locator("/sap/bc/adt/discovery", {}) == "/sap/bc/adt/discovery"
        assert build_locator("/sap/bc/adt/discovery", None) == "/sap/bc/adt/discovery"

    def test_params_appended_with_single_question_mark(self):
        locator = build_locator(
            "/sap/bc/adt/repository/informationsystem/search",
            {"operation": "quickSearch", "query": "Z*", "maxResults": "20"},
        )
        assert locator == (
            "/sap/bc/adt/repository/informationsystem/search"
            "?operation=quickSearch&query=Z*&maxResults=20"
        )
        assert locator.count("?") == 1

    def test_existing_query_extended_with_ampersand(self):
        locator = build_locator("/obj?_action=LOCK", {"accessMode": "MODIFY"})
        assert locator == "/obj?_action=LOCK&accessMode=MODIFY"
        assert locator.count("?") == 1

    def test_keys_and_values_are_form_encoded(self):
        locator = build_locator("/p", {"a b": "x&y=z", "path": "/sap/bc"})
        assert locator == "/p?a+b=x%26y%3Dz&path=%2Fsap%2Fbc"

    def test_insertion_order_is_kept(self):
        locator = build_locator("/p", {"z": "1", "a": "2", "m": "3"})
        assert locator == "/p?z=1&a=2&m=3"


class TestContentType:
    def test_default_without_headers(self):
        assert resolve_content_type(None) == "application/xml"
        assert resolve_content_type({}) == "application/xml"
        assert resolve_content_type({"Accept": "text/plain"}) == "application/xml"

    def test_canonical_and_lower_case_names(self):
        assert resolve_content_type({"Content-Type": "text/plain"}) == "text/plain"
        assert resolve_content_type({"content-type": "application/json"}) == "application/json"

    def test_canonical_name_wins(self):
        headers = {"content-type": "b/b", "Content-Type": "a/a"}
        assert resolve_content_type(headers) == "a/a"


def test_build_body_empty_and_none_are_zero_length():
    assert build_body(None, "application/xml").content == b""
    assert build_body("", "text/plain").content == b""
    assert build_body("", "text/plain").content_type == "text/plain"


def test_build_body_encodes_utf8():
    body = build_body("DATA(größe) = 1.", "text/plain")
    assert body.content == "DATA(größe) = 1.".encode("utf-8")


def test_build_headers_absent_when_empty():
    assert build_headers(None) is None
    assert build_headers({}) is None


def test_build_headers_preserves_casing():
    fields = build_headers({"Accept": "text/plain", "x-sap-adt-profiling": "x"})
    assert fields == [
        HeaderField("Accept", "text/plain"),
        HeaderField("x-sap-adt-profiling", "x"),
    ]


def test_translate_empty_body_without_content_type():
    outbound = translate("/sap/bc/adt/activation", None, None, "")
    assert outbound.locator == "/sap/bc/adt/activation"
    assert outbound.headers is None
    assert outbound.body.content_type == "application/xml"
    assert len(outbound.body.content) == 0
