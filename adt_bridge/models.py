from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, Dict


def scalar_to_str(value: Any) -> Any:
    """Render JSON booleans and numbers the way they appear in the payload."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class ProxyRequest(BaseModel):
    """Body of ``POST /proxy``."""

    method: Optional[str] = "GET"
    path: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    params: Optional[Dict[str, str]] = None
    body: Optional[str] = None

    @field_validator("method", "path", "body", mode="before")
    @classmethod
    def stringify_scalar(cls, v):
        return scalar_to_str(v)

    @field_validator("headers", "params", mode="before")
    @classmethod
    def stringify_values(cls, v):
        if isinstance(v, dict):
            return {key: scalar_to_str(value) for key, value in v.items()}
        return v


class ProxyEnvelope(BaseModel):
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""
    error: Optional[str] = None

    def to_content(self) -> dict:
        return self.model_dump(exclude_none=True)


class HealthResponse(BaseModel):
    status: str
    plugin: str
    version: str
    project: str
