"""Dashboard aggregation: per-user summary statistics and activity feed."""

import logging
import uuid
from collections import defaultdict

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from formbuilder.models.form import Form
from formbuilder.models.form_response import FormResponse
from formbuilder.schemas.dashboard import (
    Activity,
    DashboardResponse,
    DashboardStats,
    TopForm,
)

logger = logging.getLogger(__name__)

RECENT_RESPONSES_PER_FORM = 10
RECENT_FORMS_IN_FEED = 3
RECENT_RESPONSES_IN_FEED = 5
FEED_SIZE = 10
TOP_FORMS = 5


def is_completed(metadata: dict | None) -> bool:
    """A response counts as completed unless its metadata says ``completed: false``."""
    if not isinstance(metadata, dict):
        return True
    return metadata.get("completed") is not False


def completion_rate(metadatas: list[dict | None]) -> float:
    """Completed share (in percent) of the responses that carry metadata.

    Responses without metadata are left out of the denominator, so the rate
    is 100 when none carry metadata.
    """
    with_metadata = [m for m in metadatas if isinstance(m, dict)]
    if not with_metadata:
        return 100.0
    completed = sum(1 for m in with_metadata if is_completed(m))
    return completed / len(with_metadata) * 100


def get_dashboard(db: Session, user_id: uuid.UUID) -> DashboardResponse:
    forms = (
        db.execute(
            select(Form).where(Form.user_id == user_id, Form.deleted_at.is_(None))
        )
        .scalars()
        .all()
    )
    form_ids = [form.id for form in forms]

    counts: dict[uuid.UUID, int] = {}
    recent: dict[uuid.UUID, list[FormResponse]] = defaultdict(list)
    if form_ids:
        live = (FormResponse.form_id.in_(form_ids), FormResponse.deleted_at.is_(None))
        counts = dict(
            db.execute(
                select(FormResponse.form_id, func.count())
                .where(*live)
                .group_by(FormResponse.form_id)
            ).all()
        )

        # Up to N newest responses per form
        ranked = (
            select(
                FormResponse.id,
                func.row_number()
                .over(
                    partition_by=FormResponse.form_id,
                    order_by=FormResponse.created_at.desc(),
                )
                .label("rank"),
            )
            .where(*live)
            .subquery()
        )
        rows = (
            db.execute(
                select(FormResponse)
                .join(ranked, ranked.c.id == FormResponse.id)
                .where(ranked.c.rank <= RECENT_RESPONSES_PER_FORM)
            )
            .scalars()
            .all()
        )
        for response in rows:
            recent[response.form_id].append(response)

    total_forms = len(forms)
    total_responses = sum(counts.get(fid, 0) for fid in form_ids)
    stats = DashboardStats(
        total_forms=total_forms,
        total_responses=total_responses,
        average_responses_per_form=total_responses / total_forms if total_forms else 0.0,
        completion_rate=completion_rate(
            [r.meta for responses in recent.values() for r in responses]
        ),
    )

    activities: list[Activity] = []
    newest_forms = sorted(forms, key=lambda f: f.created_at, reverse=True)[:RECENT_FORMS_IN_FEED]
    for form in newest_forms:
        activities.append(
            Activity(
                id=f"form-{form.id}",
                type="form_created",
                form_name=form.name,
                timestamp=form.created_at,
            )
        )

    names = {form.id: form.name for form in forms}
    all_recent = sorted(
        (r for responses in recent.values() for r in responses),
        key=lambda r: r.created_at,
        reverse=True,
    )[:RECENT_RESPONSES_IN_FEED]
    for response in all_recent:
        activities.append(
            Activity(
                id=f"response-{response.id}",
                type="response_received",
                form_name=names[response.form_id],
                timestamp=response.created_at,
                response_count=counts.get(response.form_id, 0),
            )
        )
    activities.sort(key=lambda a: a.timestamp, reverse=True)

    top_forms = [
        TopForm(id=form.id, name=form.name, response_count=counts.get(form.id, 0))
        for form in sorted(forms, key=lambda f: counts.get(f.id, 0), reverse=True)[:TOP_FORMS]
    ]

    logger.debug("Dashboard computed for user %s: %d forms, %d responses", user_id, total_forms, total_responses)
    return DashboardResponse(
        stats=stats,
        activities=activities[:FEED_SIZE],
        top_forms=top_forms,
    )
