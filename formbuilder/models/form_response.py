import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formbuilder.core.database import Base


class FormResponse(Base):
    """One public submission to a form.

    ``data`` is an ordered list of field values keyed by field id:
        [
            {"fieldId": "<uuid>", "value": "Free text"},
            {"fieldId": "<uuid>", "value": 4},
            {"fieldId": "<uuid>", "value": ["A", "C"]}
        ]
    ``metadata`` is optional client-supplied context such as
    ``{"durationMs": 5300, "completed": true}``.
    """

    __tablename__ = "form_responses"
    __table_args__ = (
        Index("ix_form_responses_form_id", "form_id"),
        Index("ix_form_responses_form_created", "form_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    form_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("forms.id"), nullable=False
    )
    data: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    ip: Mapped[str | None] = mapped_column(String(64))
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict | None] = mapped_column("metadata", JSONB)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column()

    form: Mapped["Form"] = relationship(back_populates="responses")

    def __repr__(self) -> str:
        return f"<FormResponse form={self.form_id} ({len(self.data or [])} values)>"
