import uuid
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ResponseSubmission(BaseModel):
    """Public submission body.

    ``fields`` is kept loose on purpose: entries without a string ``fieldId``
    are dropped by the ingestion service instead of failing the request.
    """

    fields: Any = None
    metadata: dict[str, Any] | None = None


class SubmissionCreated(BaseModel):
    id: uuid.UUID


class ResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    form_id: uuid.UUID
    data: list[dict[str, Any]]
    ip: str | None
    metadata: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("meta", "metadata")
    )
    created_at: datetime


class ResponseListResponse(BaseModel):
    items: list[ResponseOut]
    total: int
    page: int
    limit: int
