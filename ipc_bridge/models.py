"""Data models exchanged with the peer and returned to HTTP callers."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class RequestEvent(BaseModel):
    """Request event sent over the channel to the peer."""

    model_config = ConfigDict(frozen=True)

    method: Annotated[str, Field(description="HTTP method")]
    path: Annotated[str, Field(description="Request path including the raw query string")]
    headers: Annotated[dict[str, str], Field(description="Lower-cased headers, first value only")] = {}
    body: Annotated[str, Field(description="Request body as text")] = ""
    request_id: Annotated[int, Field(ge=1, description="Unique request identifier")]


class ResponseEvent(BaseModel):
    """Response event returned over the channel by the peer."""

    model_config = ConfigDict(frozen=True)

    request_id: Annotated[int, Field(ge=1, description="Matching request identifier")]
    status: Annotated[int, Field(ge=100, le=599, description="HTTP status code")]
    body: Annotated[str, Field(description="Response body returned verbatim")] = ""


class ErrorResponse(BaseModel):
    """JSON body for responses synthesized by the bridge itself."""

    error: str
    request_id: int | None = None
