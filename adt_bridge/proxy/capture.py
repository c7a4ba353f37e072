import logging
from concurrent.futures import Future

from adt_bridge.backend.base import ResponseContext
from adt_bridge.proxy.outcome import CapturedResponse
from adt_bridge.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")


class ResponseCapture:
    """
    Response observer for exactly one backend call.

    The first notification resolves an internal future; later notifications
    are ignored. ``result()`` returns the default capture (200, no headers,
    empty body) when the backend never reported a response.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self._future: Future[CapturedResponse] = Future()

    def __call__(self, context: ResponseContext) -> None:
        if self._future.done():
            logger.debug(f"[Capture] {self.label}: response already captured, ignoring")
            return

        headers: dict[str, str] = {}
        for f in context.headers or []:
            headers[f.name.lower()] = f.value

        self._future.set_result(
            CapturedResponse(
                status=context.status,
                headers=headers,
                body=self._read_body(context),
            )
        )

    def _read_body(self, context: ResponseContext) -> str:
        try:
            stream = context.open_body()
            if stream is None:
                return ""
            with stream:
                return stream.read().decode("utf-8", errors="replace")
        except OSError as e:
            log_exception_with_details(
                logger, f"[Capture] {self.label}: failed to read response body", e
            )
            return ""

    @property
    def captured(self) -> bool:
        return self._future.done()

    def result(self) -> CapturedResponse:
        if not self._future.done():
            return CapturedResponse()
        return self._future.result()
