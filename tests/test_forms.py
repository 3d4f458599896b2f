"""Tests for the owner form API: CRUD, ownership and soft delete."""

from datetime import datetime, timedelta, timezone

from formbuilder.models.form import Form
from formbuilder.models.form_response import FormResponse
from tests.helpers import auth_header, create_test_field, create_test_form

FORMS_URL = "/api/v1/forms/"


def _add_response(db, form, deleted=False):
    response = FormResponse(
        form_id=form.id,
        data=[],
        created_at=datetime.now(timezone.utc),
        deleted_at=datetime.now(timezone.utc) if deleted else None,
    )
    db.add(response)
    db.commit()
    return response


# ---------------------------------------------------------------------------
# POST /forms: Create Form
# ---------------------------------------------------------------------------


class TestCreateForm:
    def test_create_form_success(self, client, headers, user):
        payload = {
            "name": "Event Feedback",
            "description": "Post-event survey",
            "enable_notifications": True,
            "notification_email": "alerts@example.com",
            "primary_color": "#1D4ED8",
        }
        resp = client.post(FORMS_URL, json=payload, headers=headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["name"] == "Event Feedback"
        assert data["description"] == "Post-event survey"
        assert data["enable_notifications"] is True
        assert data["primary_color"] == "#1D4ED8"
        assert "id" in data

    def test_create_form_strips_html(self, client, headers):
        resp = client.post(
            FORMS_URL,
            json={"name": "<b>Survey</b><script>alert(1)</script>", "description": "<i>hi</i>"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert "<" not in resp.json()["name"]
        assert resp.json()["description"] == "hi"

    def test_create_form_requires_name(self, client, headers):
        resp = client.post(FORMS_URL, json={"description": "no name"}, headers=headers)
        assert resp.status_code == 400

    def test_create_form_name_too_long(self, client, headers):
        resp = client.post(FORMS_URL, json={"name": "x" * 101}, headers=headers)
        assert resp.status_code == 400

    def test_create_form_invalid_color(self, client, headers):
        resp = client.post(FORMS_URL, json={"name": "Survey", "accent_color": "blue"}, headers=headers)
        assert resp.status_code == 400

    def test_create_form_unauthenticated(self, client):
        resp = client.post(FORMS_URL, json={"name": "Survey"})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# GET /forms: List Forms
# ---------------------------------------------------------------------------


class TestListForms:
    def test_list_empty(self, client, headers):
        resp = client.get(FORMS_URL, headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["items"] == []
        assert data["total"] == 0
        assert data["has_more"] is False

    def test_list_newest_first_with_counts(self, client, db, headers, user):
        older = create_test_form(
            db, user, name="Older", created_at=datetime.now(timezone.utc) - timedelta(days=1)
        )
        newer = create_test_form(db, user, name="Newer", created_at=datetime.now(timezone.utc))
        _add_response(db, older)
        _add_response(db, older)
        _add_response(db, older, deleted=True)

        data = client.get(FORMS_URL, headers=headers).json()
        assert [item["name"] for item in data["items"]] == ["Newer", "Older"]
        counts = {item["id"]: item["response_count"] for item in data["items"]}
        assert counts[str(older.id)] == 2
        assert counts[str(newer.id)] == 0

    def test_list_pagination(self, client, db, headers, user):
        now = datetime.now(timezone.utc)
        for i in range(12):
            create_test_form(db, user, name=f"Form {i}", created_at=now - timedelta(minutes=i))

        first = client.get(FORMS_URL, params={"page": 1, "limit": 10}, headers=headers).json()
        second = client.get(FORMS_URL, params={"page": 2, "limit": 10}, headers=headers).json()
        assert len(first["items"]) == 10
        assert first["has_more"] is True
        assert len(second["items"]) == 2
        assert second["has_more"] is False
        assert first["total"] == second["total"] == 12

    def test_pages_with_shared_timestamp_do_not_overlap(self, client, db, headers, user):
        same_instant = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        created = {
            str(create_test_form(db, user, name=f"Twin {i}", created_at=same_instant).id)
            for i in range(5)
        }

        seen = []
        for page in (1, 2, 3):
            data = client.get(FORMS_URL, params={"page": page, "limit": 2}, headers=headers).json()
            seen.extend(item["id"] for item in data["items"])
        assert len(seen) == 5
        assert set(seen) == created

    def test_list_excludes_other_users_and_deleted(self, client, db, headers, user, other_user):
        create_test_form(db, user, name="Mine")
        create_test_form(db, user, name="Gone", deleted_at=datetime.now(timezone.utc))
        create_test_form(db, other_user, name="Theirs")

        data = client.get(FORMS_URL, headers=headers).json()
        assert [item["name"] for item in data["items"]] == ["Mine"]
        assert data["total"] == 1


# ---------------------------------------------------------------------------
# GET /forms/{id}: Form detail
# ---------------------------------------------------------------------------


class TestGetForm:
    def test_get_form_with_fields_and_stats(self, client, db, headers, form):
        create_test_field(db, form, label="Second", order=1)
        create_test_field(db, form, label="First", order=0)
        _add_response(db, form)
        _add_response(db, form, deleted=True)

        resp = client.get(f"{FORMS_URL}{form.id}", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Customer Survey"
        assert [f["label"] for f in data["fields"]] == ["First", "Second"]
        assert data["stats"]["responses"] == 1

    def test_get_form_not_found(self, client, headers, nonexistent_id):
        resp = client.get(f"{FORMS_URL}{nonexistent_id}", headers=headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Form not found"

    def test_get_foreign_form_is_404(self, client, db, other_user, form):
        resp = client.get(f"{FORMS_URL}{form.id}", headers=auth_header(other_user))
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# PUT /forms/{id}: Update Form
# ---------------------------------------------------------------------------


class TestUpdateForm:
    def test_partial_update(self, client, headers, form):
        resp = client.put(
            f"{FORMS_URL}{form.id}",
            json={"name": "Renamed", "accent_color": "#FF0000"},
            headers=headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Renamed"
        assert data["accent_color"] == "#FF0000"
        assert data["description"] == "Tell us about your visit"

    def test_clear_description(self, client, headers, form):
        resp = client.put(f"{FORMS_URL}{form.id}", json={"description": None}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["description"] is None

    def test_null_name_is_ignored(self, client, headers, form):
        resp = client.put(f"{FORMS_URL}{form.id}", json={"name": None}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Customer Survey"

    def test_update_foreign_form(self, client, other_user, form):
        resp = client.put(f"{FORMS_URL}{form.id}", json={"name": "Hijack"}, headers=auth_header(other_user))
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# DELETE /forms/{id}: Soft delete
# ---------------------------------------------------------------------------


class TestDeleteForm:
    def test_soft_delete(self, client, db, headers, form):
        resp = client.delete(f"{FORMS_URL}{form.id}", headers=headers)
        assert resp.status_code == 204

        stored = db.get(Form, form.id)
        assert stored is not None
        assert stored.deleted_at is not None

    def test_deleted_form_is_hidden_everywhere(self, client, headers, form):
        client.delete(f"{FORMS_URL}{form.id}", headers=headers)

        assert client.get(f"{FORMS_URL}{form.id}", headers=headers).status_code == 404
        assert client.get(FORMS_URL, headers=headers).json()["total"] == 0
        assert client.get(f"/api/v1/public/forms/{form.id}").status_code == 404
        resp = client.post(
            f"/api/v1/public/forms/{form.id}/responses",
            json={"fields": [{"fieldId": "x", "value": "y"}]},
        )
        assert resp.status_code == 404

    def test_delete_twice(self, client, headers, form):
        client.delete(f"{FORMS_URL}{form.id}", headers=headers)
        resp = client.delete(f"{FORMS_URL}{form.id}", headers=headers)
        assert resp.status_code == 404
