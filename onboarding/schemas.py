"""
schemas.py — cross-cutting Pydantic v2 contracts.

Defines:
  - ApiModel         base for every wire model: camelCase on the wire, snake_case in Python
  - ErrorDetail, ErrorBody
  - Envelope         the {status, message, data?, error?} wrapper around every response

The client reads `status` and `message` from the body as well as the HTTP status
line, so both always agree.
"""
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """
    populate_by_name lets requests use either sessionId or session_id.
    Responses are always dumped by alias (camelCase).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------

class ErrorDetail(ApiModel):
    field: Optional[str] = None
    issue: str


class ErrorBody(ApiModel):
    code: str = Field(..., description="Semantic error code, e.g. RATE_LIMITED")
    details: List[ErrorDetail] = Field(default_factory=list)


class Envelope(ApiModel, Generic[T]):
    status: int
    message: str
    data: Optional[T] = None
    error: Optional[ErrorBody] = None


def envelope(status: int, message: str, data: Any = None) -> dict:
    """Success body. `data` may be a model, a list of models, or None."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    elif isinstance(data, list):
        data = [
            d.model_dump(mode="json", by_alias=True) if isinstance(d, BaseModel) else d
            for d in data
        ]
    return {"status": status, "message": message, "data": data}
