"""Response ingestion and the owner-side query/filter engine."""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from formbuilder.models.form import Form
from formbuilder.models.form_response import FormResponse
from formbuilder.services.sanitize import sanitize_value

logger = logging.getLogger(__name__)

_LIKE_ESCAPE_RE = re.compile(r"[\\%_]")


class SubmissionError(Exception):
    """Raised when a public submission body is unusable."""


# ---------------------------------------------------------------------------
# Response data helpers
# ---------------------------------------------------------------------------


def parse_response_data(data: Any) -> list[dict[str, Any]]:
    """Entries of a stored or submitted ``data`` array that carry a string fieldId."""
    if not isinstance(data, list):
        return []
    return [
        entry
        for entry in data
        if isinstance(entry, dict) and isinstance(entry.get("fieldId"), str)
    ]


def value_as_text(value: Any) -> str:
    """Stringify a field value for matching. None becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ", ".join(value_as_text(item) for item in value)
    return str(value)


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


def submit_response(
    db: Session,
    form: Form,
    fields: Any,
    *,
    ip: str | None,
    metadata: dict[str, Any] | None = None,
) -> FormResponse:
    """Store a public submission.

    ``fields`` must be a non-empty list; entries without a string ``fieldId``
    are dropped and string values are sanitised. Field ids that do not belong
    to the form are kept as submitted.
    """
    if not isinstance(fields, list) or not fields:
        raise SubmissionError("fields is required")

    entries = [
        {"fieldId": entry["fieldId"], "value": sanitize_value(entry.get("value"))}
        for entry in parse_response_data(fields)
    ]
    if not entries:
        raise SubmissionError("fields is required")

    known = {str(field.id) for field in form.fields}
    unknown = [e["fieldId"] for e in entries if e["fieldId"] not in known]
    if unknown:
        logger.debug("Submission to form %s references unknown fields: %s", form.id, unknown)

    response = FormResponse(
        form_id=form.id,
        data=entries,
        ip=ip,
        meta=metadata,
        created_at=datetime.now(timezone.utc),
    )
    db.add(response)
    db.commit()
    db.refresh(response)
    logger.info("response_submitted form=%s response=%s", form.id, response.id)
    return response


# ---------------------------------------------------------------------------
# Query / filter engine
# ---------------------------------------------------------------------------


@dataclass
class ResponseFilters:
    start_date: date | None = None
    end_date: date | None = None
    ip: str | None = None
    field_id: str | None = None
    field_value: str | None = None
    search: str | None = None

    @property
    def in_memory(self) -> bool:
        """Whether any filter has to be evaluated against the JSON data."""
        return bool((self.field_id and self.field_value) or self.search)


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _store_query(form_id: uuid.UUID, filters: ResponseFilters) -> Select:
    query = select(FormResponse).where(
        FormResponse.form_id == form_id,
        FormResponse.deleted_at.is_(None),
    )
    if filters.start_date is not None:
        query = query.where(FormResponse.created_at >= _day_start(filters.start_date))
    if filters.end_date is not None:
        # Inclusive of the whole end day
        query = query.where(
            FormResponse.created_at < _day_start(filters.end_date + timedelta(days=1))
        )
    if filters.ip:
        pattern = _LIKE_ESCAPE_RE.sub(r"\\\g<0>", filters.ip)
        query = query.where(FormResponse.ip.ilike(f"%{pattern}%", escape="\\"))
    return query


def matches(response: FormResponse, filters: ResponseFilters) -> bool:
    """Evaluate the field-value and free-text filters against one response."""
    entries = parse_response_data(response.data)

    if filters.field_id and filters.field_value:
        needle = filters.field_value.lower()
        entry = next((e for e in entries if e["fieldId"] == filters.field_id), None)
        if entry is None or needle not in value_as_text(entry.get("value")).lower():
            return False

    if filters.search:
        needle = filters.search.lower()
        in_values = any(needle in value_as_text(e.get("value")).lower() for e in entries)
        in_ip = needle in (response.ip or "").lower()
        if not (in_values or in_ip):
            return False

    return True


def query_responses(
    db: Session,
    form_id: uuid.UUID,
    filters: ResponseFilters,
    *,
    page: int,
    limit: int,
) -> tuple[list[FormResponse], int]:
    """One page of a form's live responses, newest first, plus the total.

    Date and IP filters run in the database. Field-value and free-text
    filters need the JSON data, so every date/IP-matching row is loaded and
    filtered here before the page is sliced; ``total`` is the filtered count.
    """
    query = _store_query(form_id, filters)
    ordered = query.order_by(FormResponse.created_at.desc(), FormResponse.id.desc())
    offset = (page - 1) * limit

    if filters.in_memory:
        rows = db.execute(ordered).scalars().all()
        matching = [r for r in rows if matches(r, filters)]
        return matching[offset : offset + limit], len(matching)

    total = db.execute(
        select(func.count()).select_from(query.subquery())
    ).scalar_one()
    items = db.execute(ordered.offset(offset).limit(limit)).scalars().all()
    return list(items), total


def get_live_response(
    db: Session, form_id: uuid.UUID, response_id: uuid.UUID
) -> FormResponse | None:
    return db.execute(
        select(FormResponse).where(
            FormResponse.id == response_id,
            FormResponse.form_id == form_id,
            FormResponse.deleted_at.is_(None),
        )
    ).scalar_one_or_none()


def list_all_responses(db: Session, form_id: uuid.UUID) -> list[FormResponse]:
    """Every live response of a form, newest first."""
    return list(
        db.execute(
            select(FormResponse)
            .where(FormResponse.form_id == form_id, FormResponse.deleted_at.is_(None))
            .order_by(FormResponse.created_at.desc(), FormResponse.id.desc())
        )
        .scalars()
        .all()
    )


def soft_delete_response(db: Session, response: FormResponse) -> None:
    response.deleted_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("response_deleted form=%s response=%s", response.form_id, response.id)
