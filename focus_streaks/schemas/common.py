"""
Error envelope shared by every router.

ErrorResponse   {code, message, details}  body of every 4xx/5xx response and
                                          of failed items in POST /sessions/batch
ErrorDetail     one entry of details.errors in a VALIDATION_ERROR response
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    field: str = Field(description="Dotted path of the offending input, e.g. `items.0.start_time`.")
    message: str
    type: str = Field(description="Pydantic error type, e.g. `timezone_aware`.")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str = Field(examples=["INVALID_TIMEZONE"])
    message: str
    details: Optional[dict[str, Any]] = None
