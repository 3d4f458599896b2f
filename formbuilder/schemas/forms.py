import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

FieldType = Literal[
    "TEXT",
    "EMAIL",
    "NUMBER",
    "SELECT",
    "CHECKBOX",
    "RADIO",
    "DATE",
    "TIME",
    "FILE",
    "RATING",
    "NPS",
]

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"
EMAIL = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Form CRUD schemas
# ---------------------------------------------------------------------------


class FormCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    enable_notifications: bool = False
    notification_email: str | None = Field(None, pattern=EMAIL)
    primary_color: str | None = Field(None, pattern=HEX_COLOR)
    accent_color: str | None = Field(None, pattern=HEX_COLOR)


class FormUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    enable_notifications: bool | None = None
    notification_email: str | None = Field(None, pattern=EMAIL)
    primary_color: str | None = Field(None, pattern=HEX_COLOR)
    accent_color: str | None = Field(None, pattern=HEX_COLOR)


class FormOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    enable_notifications: bool
    notification_email: str | None
    primary_color: str | None
    accent_color: str | None
    created_at: datetime
    updated_at: datetime


class FormSummary(FormOut):
    response_count: int = 0


class FormListResponse(BaseModel):
    items: list[FormSummary]
    total: int
    page: int
    limit: int
    has_more: bool


# ---------------------------------------------------------------------------
# Field schemas
# ---------------------------------------------------------------------------


class FieldCreate(BaseModel):
    type: FieldType
    label: str = Field(..., min_length=1, max_length=200)
    required: bool = False
    order: int = Field(..., ge=0)
    settings: dict[str, Any] | None = None


class FieldUpdate(BaseModel):
    label: str | None = Field(None, min_length=1, max_length=200)
    required: bool | None = None
    order: int | None = Field(None, ge=0)
    settings: dict[str, Any] | None = None


class FieldReorder(BaseModel):
    field_ids: list[uuid.UUID]


class FieldOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    form_id: uuid.UUID
    type: FieldType
    label: str
    required: bool
    order: int
    settings: dict[str, Any]
    created_at: datetime


class FormStats(BaseModel):
    responses: int = 0


class FormDetail(FormOut):
    fields: list[FieldOut]
    stats: FormStats


class PublicForm(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    primary_color: str | None
    accent_color: str | None
    fields: list[FieldOut]
    created_at: datetime
