"""
Client side of the bridge, for tools that reach the backend through a running
bridge instead of talking ADT directly.

The bridge is located once per client: ``BRIDGE_URL`` when set, otherwise the
loopback names and, under WSL2, the Windows host found in ``/etc/resolv.conf``.
"""

import logging
import re
from typing import Mapping, Optional

import httpx

from adt_bridge.client import adt_xml
from adt_bridge.vars import BRIDGE_PORT, BRIDGE_URL, SAP_ADT_URL

logger = logging.getLogger("uvicorn.error")

HEALTH_TIMEOUT = 2.0
PROXY_TIMEOUT = 30.0
ACTIVATION_PATH = "/sap/bc/adt/activation"
SOURCE_PATHS = {
    "class": "/sap/bc/adt/oo/classes/{name}/source/main",
    "interface": "/sap/bc/adt/oo/interfaces/{name}/source/main",
    "program": "/sap/bc/adt/programs/programs/{name}/source/main",
    "report": "/sap/bc/adt/programs/programs/{name}/source/main",
    "function": "/sap/bc/adt/functions/groups/{name}/source/main",
}
RESOLV_CONF = "/etc/resolv.conf"
NOT_AVAILABLE = (
    "Eclipse ADT bridge not available. Start Eclipse with the ADT bridge plugin."
)

_NAMESERVER = re.compile(r"nameserver\s+(\d+\.\d+\.\d+\.\d+)")


class BridgeUnavailableError(RuntimeError):
    def __init__(self, message: str = NOT_AVAILABLE):
        super().__init__(message)
        self.message = message


class BridgeRequestError(RuntimeError):
    """The bridge answered, but the backend status was 400 or above."""

    def __init__(self, status: int, body: str = "", headers: Optional[dict] = None):
        super().__init__(f"Bridge request failed: {status} {body or 'Unknown error'}")
        self.status = status
        self.body = body
        self.headers = headers or {}


class AdtObjectNotFoundError(LookupError):
    pass


def wsl_host_ip(resolv_path: str = RESOLV_CONF) -> Optional[str]:
    try:
        with open(resolv_path, encoding="utf-8") as handle:
            content = handle.read()
    except OSError:
        return None
    match = _NAMESERVER.search(content)
    if match and match.group(1) != "127.0.0.1":
        return match.group(1)
    return None


def candidate_urls(
    bridge_url: str = BRIDGE_URL,
    port: int = BRIDGE_PORT,
    resolv_path: str = RESOLV_CONF,
) -> list[str]:
    urls = []
    if bridge_url:
        urls.append(bridge_url.rstrip("/"))
    hosts = ["localhost", "127.0.0.1"]
    wsl_host = wsl_host_ip(resolv_path)
    if wsl_host:
        hosts.append(wsl_host)
    for host in hosts:
        url = f"http://{host}:{port}"
        if url not in urls:
            urls.append(url)
    return urls


class BridgeClient:
    def __init__(
        self,
        candidates: Optional[list[str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
        backend_url: str = SAP_ADT_URL,
    ):
        self.candidates = candidates if candidates is not None else candidate_urls()
        self.backend_url = backend_url
        self.http = httpx.Client(transport=transport)
        self.bridge_url: Optional[str] = None
        self._checked = False

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _is_healthy(self, url: str) -> bool:
        try:
            response = self.http.get(f"{url}/health", timeout=HEALTH_TIMEOUT)
            return response.json().get("status") == "ok"
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug(f"[BridgeClient] No bridge at {url}: {e}")
            return False

    def ensure_bridge(self) -> bool:
        if self._checked:
            return self.bridge_url is not None

        self._checked = True
        for url in self.candidates:
            if self._is_healthy(url):
                self.bridge_url = url
                logger.info(f"[BridgeClient] Eclipse ADT bridge detected at {url}")
                return True

        logger.warning(
            "[BridgeClient] Eclipse ADT bridge not available, it is required for all SAP operations"
        )
        return False

    def proxy(
        self,
        method: str,
        path: str,
        body: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> dict:
        if not self.ensure_bridge():
            raise BridgeUnavailableError()

        response = self.http.post(
            f"{self.bridge_url}/proxy",
            json={
                "method": method,
                "path": path,
                "headers": dict(headers or {}),
                "body": body,
                "params": dict(params or {}),
            },
            timeout=PROXY_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
        if data.get("status", 500) >= 400:
            raise BridgeRequestError(
                data.get("status", 500),
                data.get("body") or data.get("error", ""),
                data.get("headers"),
            )
        return data

    def get(self, endpoint: str, accept: str = "*/*") -> str:
        return self.proxy("GET", endpoint, headers={"Accept": accept})["body"]

    def _send(self, method, endpoint, body, content_type, accept, params) -> dict:
        result = self.proxy(
            method,
            endpoint,
            body,
            {"Content-Type": content_type, "Accept": accept},
            params,
        )
        return {
            "data": result.get("body", ""),
            "headers": result.get("headers", {}),
            "status": result["status"],
        }

    def post(self, endpoint, body, content_type, accept="*/*", params=None) -> dict:
        return self._send("POST", endpoint, body, content_type, accept, params)

    def put(self, endpoint, body, content_type, accept="*/*", params=None) -> dict:
        return self._send("PUT", endpoint, body, content_type, accept, params)

    def check_connection(self) -> dict:
        result = {"mode": "eclipse-bridge", "url": self.backend_url}
        try:
            if not self.ensure_bridge():
                return {**result, "status": "error", "message": NOT_AVAILABLE}
            data = self.get("/sap/bc/adt/discovery", "application/atomsvc+xml")
        except Exception as e:
            logger.warning(f"[BridgeClient] Connection check failed: {e}")
            return {**result, "status": "error", "message": str(e)}
        return {
            **result,
            "status": "connected",
            "message": "Connected via Eclipse ADT bridge (full read/write access)",
            "discovery_size": len(data),
        }

    # ADT operations

    def search(self, query: str, max_results: int = 20, object_type: str = "") -> dict:
        params = {"operation": "quickSearch", "query": query, "maxResults": str(max_results)}
        if object_type:
            params["objectType"] = object_type
        result = self.proxy(
            "GET",
            "/sap/bc/adt/repository/informationsystem/search",
            headers={"Accept": "application/xml"},
            params=params,
        )
        results = adt_xml.object_references(result["body"])
        return {"results": results, "count": len(results), "query": query}

    def read_source(self, object_type: str, object_name: str) -> str:
        kind = object_type.lower()
        name = object_name.lower()
        if kind == "table":
            return self.get_table_definition(name)
        if kind not in SOURCE_PATHS:
            raise ValueError(
                f"Unsupported object type: {object_type}. Use: class, interface, program, function, table"
            )
        try:
            return self.get(SOURCE_PATHS[kind].format(name=name), "text/plain")
        except BridgeRequestError as e:
            if e.status == 404:
                raise AdtObjectNotFoundError(
                    f"Object not found: {object_type} {object_name}"
                ) from e
            raise

    def get_table_definition(self, table_name: str) -> str:
        return self.get(f"/sap/bc/adt/ddic/tables/{table_name.lower()}")

    def get_package(self, package_name: str) -> dict:
        name = package_name.lower()
        metadata = adt_xml.package_metadata(self.get(f"/sap/bc/adt/packages/{name}"))
        contents = self.proxy(
            "GET",
            "/sap/bc/adt/repository/informationsystem/search",
            headers={"Accept": "application/xml"},
            params={
                "operation": "quickSearch",
                "query": "*",
                "maxResults": "100",
                "packageName": package_name,
            },
        )
        objects = [
            {k: ref[k] for k in ("name", "type", "uri", "description")}
            for ref in adt_xml.object_references(contents["body"])
        ]
        return {
            **metadata,
            "name": metadata["name"] or package_name,
            "objects": objects,
            "object_count": len(objects),
        }

    def get_object_info(self, uri: str) -> dict:
        if not uri.startswith("/"):
            uri = "/" + uri
        return adt_xml.object_info(self.get(uri))

    def activate(self, uri: str, name: str) -> dict:
        return self.post(
            ACTIVATION_PATH,
            adt_xml.activation_request(uri, name),
            "application/xml",
            "application/xml",
            {"method": "activate", "preauditRequested": "true"},
        )

    def _write_locked_source(
        self, object_path: str, source_code: str, transport: Optional[str], lock_accept: str
    ):
        """LOCK, PUT the main source with the lock handle, and always UNLOCK."""
        lock_params = {"_action": "LOCK", "accessMode": "MODIFY"}
        if transport:
            lock_params["corrNr"] = transport
        lock = self.post(object_path, "", "application/xml", lock_accept, lock_params)
        handle = adt_xml.lock_handle(lock["data"])

        try:
            self.put(
                f"{object_path}/source/main",
                source_code,
                "text/plain",
                "text/plain",
                {"lockHandle": handle} if handle else {},
            )
        finally:
            unlock_params = {"_action": "UNLOCK"}
            if handle:
                unlock_params["lockHandle"] = handle
            self.post(object_path, "", "application/xml", "*/*", unlock_params)

    def write_class_source(self, name: str, source_code: str, transport: Optional[str] = None):
        class_path = f"/sap/bc/adt/oo/classes/{name.lower()}"
        self._write_locked_source(
            class_path, source_code, transport, "application/vnd.sap.as+xml"
        )
        # Activation fails while the object is still locked
        self.activate(class_path, name.upper())

    def create_program(
        self,
        name: str,
        description: str,
        package: Optional[str] = None,
        transport: Optional[str] = None,
        source_code: Optional[str] = None,
        language: Optional[str] = None,
    ) -> dict:
        name = _customer_name(name)
        package = (package if transport else None) or "$TMP"
        package = package.upper()
        language = (language or "EN").upper()

        self.post(
            "/sap/bc/adt/programs/programs",
            adt_xml.program_document(name, description, package, language),
            "application/vnd.sap.adt.programs.programs.v2+xml",
            "application/vnd.sap.adt.programs.programs.v2+xml",
            {"corrNr": transport} if transport else {},
        )
        if source_code:
            self._write_locked_source(
                f"/sap/bc/adt/programs/programs/{name.lower()}",
                source_code,
                transport,
                "application/vnd.sap.as.adt.lock.result.v1+xml",
            )
        return {
            "success": True,
            "name": name,
            "package": package,
            "transport": transport or None,
            "description": description,
            "source_code_written": bool(source_code),
        }

    def create_class(
        self,
        name: str,
        description: Optional[str] = None,
        package: Optional[str] = None,
        transport: Optional[str] = None,
        source_code: Optional[str] = None,
        language: Optional[str] = None,
        final: bool = True,
        visibility: str = "public",
    ) -> dict:
        name = _customer_name(name)
        package = (package or "Z_AI_TRIAL").upper()
        language = (language or "EN").upper()
        description = description or "Created by MCP"
        class_path = f"/sap/bc/adt/oo/classes/{name.lower()}"

        # No existence check: any access through the enqueue session locks the object
        action = "created"
        try:
            self.post(
                "/sap/bc/adt/oo/classes",
                adt_xml.class_document(name, description, package, language, final, visibility),
                "application/vnd.sap.adt.oo.classes.v4+xml",
                "application/vnd.sap.adt.oo.classes.v4+xml",
                {"corrNr": transport} if transport else {},
            )
            self.activate(class_path, name)
        except BridgeRequestError as e:
            if e.status != 400 or "AlreadyExists" not in (e.body or ""):
                raise
            logger.info(f"[BridgeClient] Class {name} already exists, updating it")
            action = "updated"

        if source_code:
            self.write_class_source(name, source_code, transport)

        return {
            "success": True,
            "action": action,
            "name": name,
            "package": package,
            "transport": transport or None,
            "description": description,
            "source_code_written": bool(source_code),
        }


def _customer_name(name: str) -> str:
    """Upper-case an object name and put it in the customer namespace (Z/Y)."""
    name = name.upper()
    if not name.startswith(("Z", "Y")):
        name = "Z" + name
    return name
