"""Owner form API: form CRUD, field management, response queries and export."""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from formbuilder.core.auth import get_current_user
from formbuilder.core.database import get_db
from formbuilder.models.form import Form
from formbuilder.models.user import User
from formbuilder.schemas.forms import (
    FieldCreate,
    FieldOut,
    FieldReorder,
    FieldUpdate,
    FormCreate,
    FormDetail,
    FormListResponse,
    FormOut,
    FormStats,
    FormSummary,
    FormUpdate,
)
from formbuilder.schemas.responses import ResponseListResponse, ResponseOut
from formbuilder.services import forms as form_service
from formbuilder.services import responses as response_service
from formbuilder.services.export import ExportError, export_responses

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_form_or_404(form_id: uuid.UUID, user: User, db: Session) -> Form:
    form = form_service.get_owned_form(db, form_id, user.id)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


# ---------------------------------------------------------------------------
# Form CRUD
# ---------------------------------------------------------------------------


@router.post("/", response_model=FormOut, status_code=201)
def create_form(
    payload: FormCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return form_service.create_form(db, current_user.id, **payload.model_dump())


@router.get("/", response_model=FormListResponse)
def list_forms(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows, total = form_service.list_forms(db, current_user.id, page=page, limit=limit)
    items = [
        FormSummary.model_validate(form).model_copy(update={"response_count": count})
        for form, count in rows
    ]
    return FormListResponse(
        items=items,
        total=total,
        page=page,
        limit=limit,
        has_more=page * limit < total,
    )


@router.get("/{form_id}", response_model=FormDetail)
def get_form(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    fields = form_service.list_fields(db, form.id)
    return FormDetail(
        **FormOut.model_validate(form).model_dump(),
        fields=[FieldOut.model_validate(f) for f in fields],
        stats=FormStats(responses=form_service.count_live_responses(db, form.id)),
    )


@router.put("/{form_id}", response_model=FormOut)
def update_form(
    form_id: uuid.UUID,
    payload: FormUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    return form_service.update_form(db, form, payload.model_dump(exclude_unset=True))


@router.delete("/{form_id}", status_code=204)
def delete_form(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    form_service.soft_delete_form(db, form)


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------


@router.post("/{form_id}/fields", response_model=FieldOut, status_code=201)
def create_field(
    form_id: uuid.UUID,
    payload: FieldCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        return form_service.create_field(db, form, **payload.model_dump())
    except form_service.FieldError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/{form_id}/fields", response_model=list[FieldOut])
def list_fields(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    return form_service.list_fields(db, form.id)


# Declared before /{field_id} so "reorder" is not parsed as a field id
@router.put("/{form_id}/fields/reorder", response_model=list[FieldOut])
def reorder_fields(
    form_id: uuid.UUID,
    payload: FieldReorder,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        return form_service.reorder_fields(db, form, payload.field_ids)
    except form_service.FieldError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.put("/{form_id}/fields/{field_id}", response_model=FieldOut)
def update_field(
    form_id: uuid.UUID,
    field_id: uuid.UUID,
    payload: FieldUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    field = form_service.get_field(db, form.id, field_id)
    if field is None:
        raise HTTPException(status_code=404, detail="Field not found")
    try:
        return form_service.update_field(db, form, field, payload.model_dump(exclude_unset=True))
    except form_service.FieldError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/{form_id}/fields/{field_id}", status_code=204)
def delete_field(
    form_id: uuid.UUID,
    field_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    field = form_service.get_field(db, form.id, field_id)
    if field is None:
        raise HTTPException(status_code=404, detail="Field not found")
    form_service.delete_field(db, form, field)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@router.get("/{form_id}/responses", response_model=ResponseListResponse)
def list_form_responses(
    form_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    ip: str | None = Query(None),
    field_id: str | None = Query(None, alias="fieldId"),
    field_value: str | None = Query(None, alias="fieldValue"),
    search: str | None = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    filters = response_service.ResponseFilters(
        start_date=start_date,
        end_date=end_date,
        ip=ip,
        field_id=field_id,
        field_value=field_value,
        search=search,
    )
    items, total = response_service.query_responses(db, form.id, filters, page=page, limit=limit)
    return ResponseListResponse(
        items=[ResponseOut.model_validate(r) for r in items],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{form_id}/responses/{response_id}", response_model=ResponseOut)
def get_form_response(
    form_id: uuid.UUID,
    response_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    response = response_service.get_live_response(db, form.id, response_id)
    if response is None:
        raise HTTPException(status_code=404, detail="Response not found")
    return ResponseOut.model_validate(response)


@router.delete("/{form_id}/responses/{response_id}", status_code=204)
def delete_form_response(
    form_id: uuid.UUID,
    response_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    response = response_service.get_live_response(db, form.id, response_id)
    if response is None:
        raise HTTPException(status_code=404, detail="Response not found")
    response_service.soft_delete_response(db, response)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


@router.get("/{form_id}/export")
def export_form_responses(
    form_id: uuid.UUID,
    format: str = Query("csv"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Download every live response of the form as CSV, JSON or PDF."""
    form = _get_form_or_404(form_id, current_user, db)
    fields = form_service.list_fields(db, form.id)
    responses = response_service.list_all_responses(db, form.id)
    try:
        export = export_responses(form, fields, responses, format)
    except ExportError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": export.content_disposition},
    )
