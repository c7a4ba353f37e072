"""
Session-aware execution of one proxied ADT call.

``ProxyExecutor.execute_request`` resolves the destination, picks a session
strategy from the HTTP method, issues the call through a ``RestResource`` and
folds the outcome into a ``ProxyResponse``:

* ``GET`` always runs on a stateless session so reads never take enqueue locks.
* ``POST``/``PUT``/``DELETE`` run on the destination's enqueue session so that
  LOCK, the change and UNLOCK share one backend session. When that session
  cannot be obtained the call still runs, statelessly.
* A status reported by the backend is data, not a failure.
* A generic failure is swallowed when the observer already captured a body or
  headers. This can also hide a genuinely truncated response.

Nothing is retried.
"""

import logging
from typing import Mapping, Optional

from opentelemetry import trace
from prometheus_client import Counter

from adt_bridge.backend.base import (
    BackendSession,
    Destination,
    ResourceError,
    RestResource,
    SessionFactory,
)
from adt_bridge.proxy.capture import ResponseCapture
from adt_bridge.proxy.errors import (
    BackendCallError,
    NoDestinationError,
    UnsupportedMethodError,
)
from adt_bridge.proxy.outcome import (
    BackendStatusError,
    BackendTransportError,
    CallOutcome,
    CallState,
    ProxyResponse,
    SessionStrategy,
    Success,
)
from adt_bridge.proxy.translator import OutboundRequest, translate
from adt_bridge.utils import request_label
from adt_bridge.utils.exception_logging import (
    exception_message,
    log_exception_with_details,
)
from adt_bridge.utils.traced_requests import traced_request
from adt_bridge.vars import BRIDGE_PLUGIN_ID, BRIDGE_VERSION
from adt_bridge.workspace.discovery import ProjectDiscovery

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")

SESSION_FALLBACKS = Counter(
    "adt_bridge_session_fallbacks_total",
    "Mutating calls that ran stateless because no enqueue session was available",
    ["destination"],
)


def select_strategy(method: str) -> SessionStrategy:
    if method.upper() == "GET":
        return SessionStrategy.STATELESS
    return SessionStrategy.ENQUEUE_AFFINE


class ProxyExecutor:
    def __init__(self, discovery: ProjectDiscovery, session_factory: SessionFactory):
        self.discovery = discovery
        self.session_factory = session_factory

    def project_status(self) -> str:
        return self.discovery.project_status()

    def health(self) -> dict:
        return {
            "status": "ok",
            "plugin": BRIDGE_PLUGIN_ID,
            "version": BRIDGE_VERSION,
            "project": self.project_status(),
        }

    def resolve_destination(self) -> Destination:
        project = self.discovery.find_project()
        if project is None:
            raise NoDestinationError()
        return project.destination

    def execute_request(
        self,
        method: Optional[str],
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        body: Optional[str] = None,
    ) -> ProxyResponse:
        label = request_label(method, path)
        try:
            destination = self.resolve_destination()
        except Exception as e:
            log_exception_with_details(logger, f"[Executor] {label}: destination lookup failed", e)
            raise

        upper_method = (method or "GET").upper()
        with traced_request(
            tracer,
            operation="adt_proxy_request",
            method=upper_method,
            path=path,
            destination=destination.id,
            start_message=f"[Executor] Request: {upper_method} {path} -> {destination.id}",
        ) as span:
            span.set_attribute("proxy.state", CallState.DESTINATION_RESOLVED.value)
            if upper_method not in SUPPORTED_METHODS:
                logger.warning(f"[Executor] {label}: unsupported method")
                span.set_attribute("proxy.state", CallState.FAILED.value)
                raise UnsupportedMethodError(upper_method)

            outbound = translate(path, headers, params, body)
            strategy = select_strategy(upper_method)
            session = self._acquire_session(strategy, outbound.locator, destination)
            span.set_attribute("proxy.strategy", "stateful" if session.stateful else "stateless")
            span.set_attribute("proxy.state", CallState.SESSION_SELECTED.value)

            capture = ResponseCapture(label)
            resource = RestResource(outbound.locator, session)
            resource.add_response_observer(capture)

            try:
                span.set_attribute("proxy.state", CallState.DISPATCHED.value)
                outcome = self._dispatch(resource, upper_method, outbound)
            finally:
                session.release()

            state, response = self._resolve(outcome, capture, label)
            span.set_attribute("proxy.state", state.value)
            if response is None:
                raise BackendCallError(outcome.message, outcome.exception) from outcome.exception
            span.set_attribute("proxy.status_code", response.status)
            return response

    def try_affine_session(self, destination: Destination) -> Optional[BackendSession]:
        try:
            return self.session_factory.create_affine_session(destination)
        except Exception as e:
            log_exception_with_details(
                logger,
                f"[Executor] Enqueue session for {destination.id} failed:",
                e,
                level=logging.WARNING,
            )
            return None

    def _acquire_session(
        self, strategy: SessionStrategy, locator: str, destination: Destination
    ) -> BackendSession:
        if strategy is SessionStrategy.ENQUEUE_AFFINE:
            session = self.try_affine_session(destination)
            if session is not None:
                return session
            logger.warning(
                f"[Executor] Enqueue session unavailable for {destination.id}, falling back to stateless"
            )
            SESSION_FALLBACKS.labels(destination=destination.id).inc()
        return self.session_factory.create_stateless_session(locator, destination)

    def _dispatch(
        self, resource: RestResource, method: str, outbound: OutboundRequest
    ) -> CallOutcome:
        try:
            if method == "GET":
                resource.get(outbound.headers)
            elif method == "POST":
                resource.post(outbound.headers, outbound.body)
            elif method == "PUT":
                resource.put(outbound.headers, outbound.body)
            elif method == "DELETE":
                resource.delete(outbound.headers)
        except ResourceError as e:
            return BackendStatusError(code=e.status, message=e.message)
        except Exception as e:
            return BackendTransportError(message=exception_message(e), exception=e)
        return Success()

    def _resolve(
        self, outcome: CallOutcome, capture: ResponseCapture, label: str
    ) -> tuple[CallState, Optional[ProxyResponse]]:
        captured = capture.result()

        if isinstance(outcome, BackendStatusError):
            logger.info(f"[Executor] {label}: backend answered {outcome.code}")
            return CallState.CAPTURED_VIA_ERROR_CODE, ProxyResponse(
                status=outcome.code,
                headers=captured.headers,
                body=captured.body or outcome.message,
            )

        if isinstance(outcome, BackendTransportError):
            if not captured.has_data:
                log_exception_with_details(
                    logger, f"[Executor] {label}: backend call failed", outcome.exception
                )
                return CallState.FAILED, None
            logger.warning(
                f"[Executor] {label}: ignoring error after response was captured: {outcome.message}"
            )

        return CallState.CAPTURED_VIA_OBSERVER, ProxyResponse(
            status=captured.status,
            headers=captured.headers,
            body=captured.body,
        )
