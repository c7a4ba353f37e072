from .errors import (
    BackendCallError,
    NoDestinationError,
    ProxyError,
    UnsupportedMethodError,
)
from .executor import ProxyExecutor, select_strategy
from .outcome import ProxyResponse, SessionStrategy

__all__ = [
    "BackendCallError",
    "NoDestinationError",
    "ProxyError",
    "UnsupportedMethodError",
    "ProxyExecutor",
    "select_strategy",
    "ProxyResponse",
    "SessionStrategy",
]
