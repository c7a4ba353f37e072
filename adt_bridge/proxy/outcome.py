from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class SessionStrategy(str, Enum):
    STATELESS = "stateless"
    ENQUEUE_AFFINE = "enqueue_affine"


class CallState(str, Enum):
    IDLE = "idle"
    DESTINATION_RESOLVED = "destination_resolved"
    SESSION_SELECTED = "session_selected"
    DISPATCHED = "dispatched"
    CAPTURED_VIA_OBSERVER = "captured_via_observer"
    CAPTURED_VIA_ERROR_CODE = "captured_via_error_code"
    FAILED = "failed"


@dataclass(frozen=True)
class ProxyResponse:
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    def to_dict(self) -> dict:
        return {"status": self.status, "headers": dict(self.headers), "body": self.body}


@dataclass(frozen=True)
class CapturedResponse:
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def has_data(self) -> bool:
        return bool(self.body) or bool(self.headers)


@dataclass(frozen=True)
class Success:
    pass


@dataclass(frozen=True)
class BackendStatusError:
    code: int
    message: str


@dataclass(frozen=True)
class BackendTransportError:
    message: str
    exception: Optional[Exception] = None


CallOutcome = Union[Success, BackendStatusError, BackendTransportError]
