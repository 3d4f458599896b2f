"""Form definition store: owner-scoped form CRUD and ordered field management."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from formbuilder.models.form import Form
from formbuilder.models.form_field import FormField
from formbuilder.models.form_response import FormResponse
from formbuilder.services.sanitize import sanitize_optional, sanitize_string

logger = logging.getLogger(__name__)

OPTION_FIELD_TYPES = {"SELECT", "RADIO", "CHECKBOX"}
RANGE_DEFAULTS = {"RATING": (1, 5), "NPS": (0, 10)}


class FieldError(Exception):
    """Raised when a field definition or ordering request is invalid."""


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------


def get_owned_form(db: Session, form_id: uuid.UUID, user_id: uuid.UUID) -> Form | None:
    """Live form owned by ``user_id``; None when missing, deleted or foreign."""
    return db.execute(
        select(Form).where(
            Form.id == form_id,
            Form.user_id == user_id,
            Form.deleted_at.is_(None),
        )
    ).scalar_one_or_none()


def get_public_form(db: Session, form_id: uuid.UUID) -> Form | None:
    return db.execute(
        select(Form).where(Form.id == form_id, Form.deleted_at.is_(None))
    ).scalar_one_or_none()


def count_live_responses(db: Session, form_id: uuid.UUID) -> int:
    return db.execute(
        select(func.count())
        .select_from(FormResponse)
        .where(FormResponse.form_id == form_id, FormResponse.deleted_at.is_(None))
    ).scalar_one()


def create_form(db: Session, user_id: uuid.UUID, **values: Any) -> Form:
    values["name"] = sanitize_string(values["name"])
    values["description"] = sanitize_optional(values.get("description"))
    form = Form(user_id=user_id, created_at=datetime.now(timezone.utc), **values)
    db.add(form)
    db.commit()
    db.refresh(form)
    logger.info("form_created user=%s form=%s name=%s", user_id, form.id, form.name)
    return form


def list_forms(
    db: Session, user_id: uuid.UUID, *, page: int, limit: int
) -> tuple[list[tuple[Form, int]], int]:
    """One page of the user's live forms, newest first, with response counts."""
    live = (Form.user_id == user_id, Form.deleted_at.is_(None))
    total = db.execute(select(func.count()).select_from(Form).where(*live)).scalar_one()

    response_count = (
        select(func.count())
        .select_from(FormResponse)
        .where(FormResponse.form_id == Form.id, FormResponse.deleted_at.is_(None))
        .correlate(Form)
        .scalar_subquery()
    )
    rows = db.execute(
        select(Form, response_count)
        .where(*live)
        .order_by(Form.created_at.desc(), Form.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return [(row[0], row[1]) for row in rows], total


def update_form(db: Session, form: Form, changes: dict[str, Any]) -> Form:
    # Non-nullable columns cannot be cleared
    for key in ("name", "enable_notifications"):
        if key in changes and changes[key] is None:
            del changes[key]
    if "name" in changes:
        changes["name"] = sanitize_string(changes["name"])
    if "description" in changes:
        changes["description"] = sanitize_optional(changes["description"])

    for key, value in changes.items():
        setattr(form, key, value)
    db.commit()
    db.refresh(form)
    logger.info("form_updated user=%s form=%s", form.user_id, form.id)
    return form


def soft_delete_form(db: Session, form: Form) -> None:
    form.deleted_at = datetime.now(timezone.utc)
    db.commit()
    logger.info("form_deleted user=%s form=%s", form.user_id, form.id)


# ---------------------------------------------------------------------------
# Field settings
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_field_settings(raw: Any) -> dict[str, Any]:
    """Keep only the known, correctly typed settings keys.

    Anything else (unknown keys, wrong types) is dropped silently.
    """
    if not isinstance(raw, dict):
        return {}
    parsed: dict[str, Any] = {}
    for key in ("placeholder", "helpText"):
        if isinstance(raw.get(key), str):
            parsed[key] = sanitize_string(raw[key])
    options = raw.get("options")
    if isinstance(options, list) and all(isinstance(o, str) for o in options):
        parsed["options"] = [sanitize_string(o) for o in options]
    for key in ("min", "max"):
        if _is_number(raw.get(key)):
            parsed[key] = raw[key]
    if isinstance(raw.get("validation"), dict):
        parsed["validation"] = raw["validation"]
    return parsed


def build_field_settings(field_type: str, raw: Any) -> dict[str, Any]:
    """Parse settings and enforce the per-type rules.

    Raises FieldError listing every violation.
    """
    settings = parse_field_settings(raw)
    errors: list[str] = []

    if field_type in OPTION_FIELD_TYPES:
        options = [o for o in settings.get("options", []) if o]
        if not options:
            errors.append(f"{field_type} fields require at least one option")
        settings["options"] = options
    else:
        settings.pop("options", None)

    if field_type in RANGE_DEFAULTS:
        default_min, default_max = RANGE_DEFAULTS[field_type]
        settings.setdefault("min", default_min)
        settings.setdefault("max", default_max)

    if "min" in settings and "max" in settings and settings["min"] > settings["max"]:
        errors.append("min must be less than or equal to max")

    if errors:
        raise FieldError(", ".join(errors))
    return settings


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------


def list_fields(db: Session, form_id: uuid.UUID) -> list[FormField]:
    return list(
        db.execute(
            select(FormField)
            .where(FormField.form_id == form_id)
            .order_by(FormField.order.asc(), FormField.created_at.asc())
        )
        .scalars()
        .all()
    )


def get_field(db: Session, form_id: uuid.UUID, field_id: uuid.UUID) -> FormField | None:
    return db.execute(
        select(FormField).where(FormField.id == field_id, FormField.form_id == form_id)
    ).scalar_one_or_none()


def _renumber(fields: list[FormField]) -> None:
    for position, field in enumerate(fields):
        if field.order != position:
            field.order = position


def create_field(
    db: Session,
    form: Form,
    *,
    type: str,
    label: str,
    required: bool,
    order: int,
    settings: dict[str, Any] | None,
) -> FormField:
    """Insert a field at ``order`` (clamped to the end) and shift the rest."""
    label = sanitize_string(label)
    if not label:
        raise FieldError("label must not be empty")
    field_settings = build_field_settings(type, settings)

    fields = list_fields(db, form.id)
    position = min(order, len(fields))
    field = FormField(
        form_id=form.id,
        type=type,
        label=label,
        required=required,
        settings=field_settings,
        created_at=datetime.now(timezone.utc),
    )
    fields.insert(position, field)
    _renumber(fields)
    db.add(field)
    db.commit()
    db.refresh(field)
    logger.info("field_created form=%s field=%s type=%s", form.id, field.id, type)
    return field


def update_field(db: Session, form: Form, field: FormField, changes: dict[str, Any]) -> FormField:
    if changes.get("label") is not None:
        label = sanitize_string(changes["label"])
        if not label:
            raise FieldError("label must not be empty")
        field.label = label
    if changes.get("required") is not None:
        field.required = changes["required"]
    if "settings" in changes:
        field.settings = build_field_settings(field.type, changes["settings"])

    if changes.get("order") is not None:
        fields = [f for f in list_fields(db, form.id) if f.id != field.id]
        fields.insert(min(changes["order"], len(fields)), field)
        _renumber(fields)

    db.commit()
    db.refresh(field)
    logger.info("field_updated form=%s field=%s", form.id, field.id)
    return field


def reorder_fields(db: Session, form: Form, field_ids: list[uuid.UUID]) -> list[FormField]:
    """Apply a full ordering. ``field_ids`` must be a permutation of the form's fields."""
    fields = list_fields(db, form.id)
    by_id = {f.id: f for f in fields}
    if len(field_ids) != len(fields) or set(field_ids) != set(by_id):
        raise FieldError("field_ids must list every field of the form exactly once")

    _renumber([by_id[fid] for fid in field_ids])
    db.commit()
    logger.info("fields_reordered form=%s count=%d", form.id, len(fields))
    return list_fields(db, form.id)


def delete_field(db: Session, form: Form, field: FormField) -> None:
    field_id = field.id
    db.delete(field)
    db.flush()
    _renumber(list_fields(db, form.id))
    db.commit()
    logger.info("field_deleted form=%s field=%s", form.id, field_id)
