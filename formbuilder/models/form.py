import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formbuilder.core.database import Base


class Form(Base):
    """A user-owned form definition.

    Forms are never removed from the table; deleting one sets ``deleted_at``
    and every owner-facing or public query filters on ``deleted_at IS NULL``.
    """

    __tablename__ = "forms"
    __table_args__ = (
        Index("ix_forms_user_id", "user_id"),
        Index("ix_forms_user_deleted", "user_id", "deleted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    enable_notifications: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    notification_email: Mapped[str | None] = mapped_column(String(255))
    primary_color: Mapped[str | None] = mapped_column(String(7))
    accent_color: Mapped[str | None] = mapped_column(String(7))
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[datetime | None] = mapped_column()

    user: Mapped["User"] = relationship(back_populates="forms")
    fields: Mapped[list["FormField"]] = relationship(
        back_populates="form",
        cascade="all, delete-orphan",
        order_by="FormField.order",
    )
    responses: Mapped[list["FormResponse"]] = relationship(back_populates="form")

    def __repr__(self) -> str:
        state = "deleted" if self.deleted_at else "live"
        return f"<Form {self.name} ({state})>"
