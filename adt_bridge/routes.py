import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from adt_bridge.models import HealthResponse, ProxyEnvelope, ProxyRequest
from adt_bridge.proxy import ProxyExecutor
from adt_bridge.utils import request_label
from adt_bridge.utils.exception_logging import (
    exception_message,
    log_exception_with_details,
)

router = APIRouter()

logger = logging.getLogger("uvicorn.error")

# Every method is routed so that non-matching ones get a JSON 405 instead of
# the framework's default body.
ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def get_executor(request: Request) -> ProxyExecutor:
    return request.app.state.executor


def _cors_headers(allow_methods: str, allow_headers: Optional[str] = None) -> dict[str, str]:
    headers = {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": allow_methods,
    }
    if allow_headers:
        headers["Access-Control-Allow-Headers"] = allow_headers
    return headers


@router.api_route("/health", methods=ALL_METHODS)
async def health(request: Request, executor: ProxyExecutor = Depends(get_executor)):
    cors = _cors_headers("GET, OPTIONS")
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=cors)
    if request.method != "GET":
        return JSONResponse(
            status_code=405, content={"error": "Method not allowed"}, headers=cors
        )

    result = await run_in_threadpool(executor.health)
    return JSONResponse(content=HealthResponse(**result).model_dump(), headers=cors)


@router.api_route("/proxy", methods=ALL_METHODS)
async def proxy(request: Request, executor: ProxyExecutor = Depends(get_executor)):
    cors = _cors_headers("POST, OPTIONS", allow_headers="Content-Type")
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=cors)
    if request.method != "POST":
        return JSONResponse(
            status_code=405,
            content={"error": "Method not allowed. Use POST."},
            headers=cors,
        )

    method: Optional[str] = None
    path: Optional[str] = None
    try:
        payload = ProxyRequest.model_validate_json(await request.body())
        method, path = payload.method, payload.path
        if not path:
            logger.warning("[Proxy] Rejecting request without path")
            return JSONResponse(
                status_code=400,
                content={"error": "Missing required field: path"},
                headers=cors,
            )

        logger.info(f"[Proxy] Proxy request: {request_label(method, path)}")
        result = await run_in_threadpool(
            executor.execute_request,
            payload.method,
            path,
            payload.headers,
            payload.params,
            payload.body,
        )
        envelope = ProxyEnvelope(**result.to_dict())
    except Exception as e:
        log_exception_with_details(
            logger, f"[Proxy] {request_label(method, path)} failed:", e
        )
        envelope = ProxyEnvelope(status=500, error=exception_message(e))

    # Backend failures travel inside the envelope; the bridge itself answered fine
    return JSONResponse(content=envelope.to_content(), headers=cors)
