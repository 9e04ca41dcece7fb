"""Standard response envelope of the HTTP API."""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    timestamp: datetime = Field(..., description="When the response was produced")
    request_id: str = Field(..., description="Request correlation id")
    api_version: str = Field("v1", description="API version that served the request")


class ApiResponse(BaseModel):
    status: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Human-readable outcome")
    data: Dict[str, Any] = Field(default_factory=dict)
    meta: ResponseMeta
