import uuid
from datetime import datetime

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formbuilder.core.database import Base

FIELD_TYPES = (
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
)


class FormField(Base):
    """One typed input of a form.

    ``order`` is dense within a form (0..n-1). ``settings`` holds the
    per-type options, already validated and normalised:
        {
            "placeholder": "...",
            "helpText": "...",
            "options": ["A", "B"],   # SELECT / RADIO / CHECKBOX
            "min": 1, "max": 5,      # NUMBER / RATING / NPS
            "validation": {...}
        }
    """

    __tablename__ = "form_fields"
    __table_args__ = (
        Index("ix_form_fields_form_id", "form_id"),
        Index("ix_form_fields_form_order", "form_id", "order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("forms.id"), nullable=False)
    type: Mapped[str] = mapped_column(Enum(*FIELD_TYPES, name="form_field_type"), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    settings: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    form: Mapped["Form"] = relationship(back_populates="fields")

    def __repr__(self) -> str:
        return f"<FormField {self.type} {self.label!r} #{self.order}>"
