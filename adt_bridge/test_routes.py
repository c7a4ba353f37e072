import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from adt_bridge.backend.base import ResourceError
from adt_bridge.proxy import ProxyExecutor
from adt_bridge.server import create_app
from adt_bridge.utils_tests.fake_backend import (
    DESTINATION,
    FakeDiscovery,
    FakeSessionFactory,
    ok,
    raising,
)
from adt_bridge.workspace.discovery import AdtProject

PROJECT = AdtProject(name="DEV", destination=DESTINATION)


def make_client(handler=None, project=PROJECT, discovery=None):
    factory = FakeSessionFactory(handler or ok(b"<ok/>", headers={"Content-Type": "application/xml"}))
    discovery = discovery or FakeDiscovery(project)
    app = create_app(executor=ProxyExecutor(discovery, factory))
    return TestClient(app), factory, discovery


def test_health_without_project():
    client, _, _ = make_client(project=None)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.json() == {
        "status": "ok",
        "plugin": "io.github.adtbridge",
        "version": "1.0.0",
        "project": "no_adt_project",
    }


def test_health_with_project_and_with_failing_discovery():
    client, _, _ = make_client()
    assert client.get("/health").json()["project"] == "connected:DEV_100"

    client, _, _ = make_client(discovery=FakeDiscovery(error=RuntimeError("workspace closed")))
    response = client.get("/health")
    assert response.json()["status"] == "ok"
    assert response.json()["project"] == "error:workspace closed"


@pytest.mark.parametrize("path", ["/health", "/proxy"])
def test_preflight_answers_204_without_body(path):
    client, _, _ = make_client()

    response = client.options(path)

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"


def test_proxy_preflight_allows_content_type():
    client, _, _ = make_client()

    response = client.options("/proxy")

    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"


def test_wrong_methods_get_405():
    client, _, discovery = make_client()

    health = client.post("/health")
    assert health.status_code == 405
    assert health.json() == {"error": "Method not allowed"}

    proxy = client.get("/proxy")
    assert proxy.status_code == 405
    assert proxy.json() == {"error": "Method not allowed. Use POST."}
    assert discovery.calls == 0


@pytest.mark.parametrize("payload", [{"method": "GET"}, {"method": "GET", "path": ""}])
def test_missing_path_is_rejected_before_discovery(payload):
    client, _, discovery = make_client()

    response = client.post("/proxy", json=payload)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required field: path"}
    assert discovery.calls == 0


def test_proxy_success_envelope():
    client, factory, _ = make_client()

    response = client.post(
        "/proxy",
        json={
            "method": "GET",
            "path": "/sap/bc/adt/repository/informationsystem/search",
            "params": {"operation": "quickSearch", "query": "Z*", "maxResults": 20},
            "headers": {"Accept": "application/xml"},
        },
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {
        "status": 200,
        "headers": {"content-type": "application/xml"},
        "body": "<ok/>",
    }
    locator = factory.stateless_created[0].sent[0][1]
    assert locator.endswith("?operation=quickSearch&query=Z*&maxResults=20")


def test_backend_status_is_reported_inside_envelope():
    def not_found(method, locator, headers, body):
        raise ResourceError(404, "not found")

    client, _, _ = make_client(not_found)

    response = client.post("/proxy", json={"path": "/sap/bc/adt/oo/classes/zmissing"})

    assert response.status_code == 200
    assert response.json() == {"status": 404, "headers": {}, "body": "not found"}


def test_failures_use_500_envelope():
    client, _, _ = make_client(raising(ConnectionError("socket closed")))

    response = client.post("/proxy", json={"method": "GET", "path": "/sap/bc/adt/discovery"})

    assert response.status_code == 200
    assert response.json() == {
        "status": 500,
        "error": "socket closed",
        "headers": {},
        "body": "",
    }


def test_no_project_uses_500_envelope():
    client, factory, _ = make_client(project=None)

    response = client.post("/proxy", json={"path": "/sap/bc/adt/discovery"})

    body = response.json()
    assert body["status"] == 500
    assert body["error"] == "No ADT project found in workspace. Open an ABAP project first."
    assert factory.stateless_created == []


def test_unsupported_method_uses_500_envelope():
    client, _, _ = make_client()

    response = client.post("/proxy", json={"method": "PATCH", "path": "/sap/bc/adt/x"})

    assert response.json()["status"] == 500
    assert response.json()["error"] == "Unsupported method: PATCH"


def test_invalid_json_uses_500_envelope():
    client, _, discovery = make_client()

    response = client.post(
        "/proxy", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 200
    assert response.json()["status"] == 500
    assert response.json()["error"]
    assert discovery.calls == 0


def test_shutdown_closes_session_factory(dev_project):
    factory = FakeSessionFactory(ok())
    closed = []
    factory.close = lambda: closed.append(True)
    app = create_app(executor=ProxyExecutor(FakeDiscovery(dev_project), factory))

    with TestClient(app) as client:
        client.get("/health")

    assert closed == [True]


@pytest.mark.asyncio
async def test_concurrent_mutations_share_the_enqueue_session():
    factory = FakeSessionFactory(ok(b"saved"))
    app = create_app(executor=ProxyExecutor(FakeDiscovery(PROJECT), factory))

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://bridge") as http:
        responses = await asyncio.gather(
            *[
                http.post(
                    "/proxy",
                    json={"method": "PUT", "path": f"/sap/bc/adt/x/{i}", "body": "data"},
                )
                for i in range(5)
            ]
        )

    assert [r.json()["body"] for r in responses] == ["saved"] * 5
    assert factory.affine_requests == 5
    assert len(factory.affine_session.sent) == 5
    assert factory.stateless_created == []


def test_boolean_params_are_forwarded_as_text():
    client, factory, _ = make_client()

    response = client.post(
        "/proxy",
        json={
            "method": "POST",
            "path": "/sap/bc/adt/activation",
            "params": {"method": "activate", "preauditRequested": True},
            "body": "<adtcore:objectReferences/>",
        },
    )

    assert response.json()["status"] == 200
    locator = factory.affine_session.sent[0][1]
    assert locator == "/sap/bc/adt/activation?method=activate&preauditRequested=true"
