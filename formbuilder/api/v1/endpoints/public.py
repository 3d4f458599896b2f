"""Public form API: unauthenticated form rendering and response submission."""

import logging
import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from formbuilder.core.database import get_db
from formbuilder.core.security import get_client_ip
from formbuilder.models.form import Form
from formbuilder.models.form_response import FormResponse
from formbuilder.schemas.forms import FieldOut, PublicForm
from formbuilder.schemas.responses import ResponseSubmission, SubmissionCreated
from formbuilder.services.email import NotificationField, send_response_notification
from formbuilder.services.forms import get_public_form, list_fields
from formbuilder.services.responses import SubmissionError, submit_response

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_form_or_404(form_id: uuid.UUID, db: Session) -> Form:
    form = get_public_form(db, form_id)
    if form is None:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


@router.get("/forms/{form_id}", response_model=PublicForm)
def get_form(form_id: uuid.UUID, db: Session = Depends(get_db)):
    form = _get_form_or_404(form_id, db)
    return PublicForm(
        id=form.id,
        name=form.name,
        description=form.description,
        primary_color=form.primary_color,
        accent_color=form.accent_color,
        fields=[FieldOut.model_validate(f) for f in list_fields(db, form.id)],
        created_at=form.created_at,
    )


def _schedule_notification(
    background_tasks: BackgroundTasks, form: Form, response: FormResponse, db: Session
) -> None:
    recipient = form.notification_email or form.user.email
    fields = [NotificationField(id=str(f.id), label=f.label) for f in list_fields(db, form.id)]
    background_tasks.add_task(
        send_response_notification,
        recipient,
        form.name,
        fields,
        response.data,
        response.created_at,
        response.ip,
    )


@router.post("/forms/{form_id}/responses", response_model=SubmissionCreated, status_code=201)
def submit_form_response(
    form_id: uuid.UUID,
    payload: ResponseSubmission,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    client_ip = get_client_ip(request)
    limiter = request.app.state.submission_rate_limiter
    if not limiter.hit(client_ip or "unknown"):
        logger.warning("Submission rate limit exceeded for %s", client_ip)
        raise HTTPException(status_code=429, detail="Too many requests")

    form = _get_form_or_404(form_id, db)
    try:
        response = submit_response(db, form, payload.fields, ip=client_ip, metadata=payload.metadata)
    except SubmissionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if form.enable_notifications:
        _schedule_notification(background_tasks, form, response, db)

    return SubmissionCreated(id=response.id)
