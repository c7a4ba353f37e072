class ProxyError(Exception):
    """Raised by the executor when a call cannot be turned into a ProxyResponse."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NoDestinationError(ProxyError):
    def __init__(
        self,
        message: str = "No ADT project found in workspace. Open an ABAP project first.",
    ):
        super().__init__(message)


class UnsupportedMethodError(ProxyError):
    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported method: {method}")


class BackendCallError(ProxyError):
    """The backend failed without producing a status code or any response data."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)
