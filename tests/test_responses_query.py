"""Tests for the owner response API: filters, pagination and soft delete."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from formbuilder.models.form_response import FormResponse
from formbuilder.services.responses import ResponseFilters, matches, value_as_text
from tests.helpers import auth_header, create_test_field, create_test_form

BASE_TIME = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _responses_url(form_id):
    return f"/api/v1/forms/{form_id}/responses"


def _add_response(db, form, data, ip=None, created_at=None, deleted=False, metadata=None):
    response = FormResponse(
        form_id=form.id,
        data=data,
        ip=ip,
        meta=metadata,
        created_at=created_at or BASE_TIME,
        deleted_at=BASE_TIME if deleted else None,
    )
    db.add(response)
    db.commit()
    db.refresh(response)
    return response


@pytest.fixture
def city_field(db, form):
    return create_test_field(db, form, label="City")


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------


class TestMatching:
    def test_value_as_text(self):
        assert value_as_text(None) == ""
        assert value_as_text(True) == "true"
        assert value_as_text(["A", 2]) == "A, 2"
        assert value_as_text(4.5) == "4.5"

    def test_field_filter_needs_both_parts(self):
        response = FormResponse(data=[{"fieldId": "f", "value": "Lisbon"}], ip=None)
        assert matches(response, ResponseFilters(field_id="f"))
        assert not ResponseFilters(field_id="f").in_memory

    def test_search_matches_ip(self):
        response = FormResponse(data=[], ip="10.1.2.3")
        assert matches(response, ResponseFilters(search="10.1"))
        assert not matches(response, ResponseFilters(search="nowhere"))


# ---------------------------------------------------------------------------
# GET /forms/{id}/responses
# ---------------------------------------------------------------------------


class TestListResponses:
    def test_newest_first(self, client, db, headers, form):
        old = _add_response(db, form, [], created_at=BASE_TIME - timedelta(days=2))
        new = _add_response(db, form, [], created_at=BASE_TIME)

        data = client.get(_responses_url(form.id), headers=headers).json()
        assert [item["id"] for item in data["items"]] == [str(new.id), str(old.id)]
        assert data["total"] == 2
        assert data["page"] == 1
        assert data["limit"] == 25

    def test_metadata_is_returned(self, client, db, headers, form):
        _add_response(db, form, [], metadata={"completed": False})
        item = client.get(_responses_url(form.id), headers=headers).json()["items"][0]
        assert item["metadata"] == {"completed": False}

    def test_soft_deleted_hidden(self, client, db, headers, form):
        _add_response(db, form, [], deleted=True)
        data = client.get(_responses_url(form.id), headers=headers).json()
        assert data["items"] == []
        assert data["total"] == 0

    def test_limit_capped(self, client, headers, form):
        resp = client.get(_responses_url(form.id), params={"limit": 101}, headers=headers)
        assert resp.status_code == 400

    def test_foreign_form(self, client, other_user, form):
        resp = client.get(_responses_url(form.id), headers=auth_header(other_user))
        assert resp.status_code == 404

    def test_pagination_covers_every_response_once(self, client, db, headers, form):
        ids = {
            str(_add_response(db, form, [], created_at=BASE_TIME - timedelta(minutes=i)).id)
            for i in range(7)
        }
        seen = []
        for page in (1, 2, 3):
            data = client.get(
                _responses_url(form.id), params={"page": page, "limit": 3}, headers=headers
            ).json()
            assert data["total"] == 7
            seen.extend(item["id"] for item in data["items"])
        assert len(seen) == 7
        assert set(seen) == ids

    def test_date_range_is_inclusive_of_end_day(self, client, db, headers, form):
        _add_response(db, form, [], created_at=datetime(2024, 3, 9, 23, 0, tzinfo=timezone.utc))
        inside_start = _add_response(db, form, [], created_at=datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc))
        inside_end = _add_response(db, form, [], created_at=datetime(2024, 3, 12, 23, 59, tzinfo=timezone.utc))
        _add_response(db, form, [], created_at=datetime(2024, 3, 13, 0, 0, tzinfo=timezone.utc))

        data = client.get(
            _responses_url(form.id),
            params={"startDate": "2024-03-10", "endDate": "2024-03-12"},
            headers=headers,
        ).json()
        assert {item["id"] for item in data["items"]} == {str(inside_start.id), str(inside_end.id)}
        assert data["total"] == 2

    def test_ip_filter_is_substring(self, client, db, headers, form):
        match = _add_response(db, form, [], ip="203.0.113.9")
        _add_response(db, form, [], ip="198.51.100.7")
        _add_response(db, form, [], ip=None)

        data = client.get(_responses_url(form.id), params={"ip": "113"}, headers=headers).json()
        assert [item["id"] for item in data["items"]] == [str(match.id)]

    def test_ip_filter_escapes_wildcards(self, client, db, headers, form):
        _add_response(db, form, [], ip="10.0.0.1")
        data = client.get(_responses_url(form.id), params={"ip": "%"}, headers=headers).json()
        assert data["total"] == 0

    def test_field_filter(self, client, db, headers, form, city_field):
        fid = str(city_field.id)
        lisbon = _add_response(db, form, [{"fieldId": fid, "value": "Lisbon"}])
        _add_response(db, form, [{"fieldId": fid, "value": "Porto"}])
        _add_response(db, form, [{"fieldId": str(uuid.uuid4()), "value": "Lisbon"}])

        data = client.get(
            _responses_url(form.id),
            params={"fieldId": fid, "fieldValue": "LIS"},
            headers=headers,
        ).json()
        assert [item["id"] for item in data["items"]] == [str(lisbon.id)]
        assert data["total"] == 1

    def test_field_filter_matches_list_values(self, client, db, headers, form, city_field):
        fid = str(city_field.id)
        both = _add_response(db, form, [{"fieldId": fid, "value": ["Rome", "Paris"]}])
        data = client.get(
            _responses_url(form.id),
            params={"fieldId": fid, "fieldValue": "paris"},
            headers=headers,
        ).json()
        assert [item["id"] for item in data["items"]] == [str(both.id)]

    def test_search_filter_with_pagination(self, client, db, headers, form, city_field):
        fid = str(city_field.id)
        hits = [
            _add_response(
                db, form, [{"fieldId": fid, "value": f"Berlin {i}"}],
                created_at=BASE_TIME - timedelta(minutes=i),
            )
            for i in range(5)
        ]
        for i in range(5):
            _add_response(db, form, [{"fieldId": fid, "value": "Madrid"}], created_at=BASE_TIME - timedelta(minutes=30 + i))

        page_two = client.get(
            _responses_url(form.id),
            params={"search": "berlin", "page": 2, "limit": 2},
            headers=headers,
        ).json()
        assert page_two["total"] == 5
        assert [item["id"] for item in page_two["items"]] == [str(hits[2].id), str(hits[3].id)]

    def test_search_and_date_combined(self, client, db, headers, form, city_field):
        fid = str(city_field.id)
        _add_response(db, form, [{"fieldId": fid, "value": "Oslo"}], created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        recent = _add_response(db, form, [{"fieldId": fid, "value": "Oslo"}], created_at=datetime(2024, 2, 1, tzinfo=timezone.utc))

        data = client.get(
            _responses_url(form.id),
            params={"search": "oslo", "startDate": "2024-01-15"},
            headers=headers,
        ).json()
        assert [item["id"] for item in data["items"]] == [str(recent.id)]


# ---------------------------------------------------------------------------
# GET / DELETE /forms/{id}/responses/{response_id}
# ---------------------------------------------------------------------------


class TestSingleResponse:
    def test_get_response(self, client, db, headers, form):
        response = _add_response(db, form, [{"fieldId": "f", "value": "x"}], ip="1.2.3.4")
        resp = client.get(f"{_responses_url(form.id)}/{response.id}", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["data"] == [{"fieldId": "f", "value": "x"}]
        assert data["ip"] == "1.2.3.4"

    def test_get_missing_response(self, client, headers, form, nonexistent_id):
        resp = client.get(f"{_responses_url(form.id)}/{nonexistent_id}", headers=headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Response not found"

    def test_delete_response(self, client, db, headers, form):
        response = _add_response(db, form, [])
        resp = client.delete(f"{_responses_url(form.id)}/{response.id}", headers=headers)
        assert resp.status_code == 204

        db.refresh(response)
        assert response.deleted_at is not None
        assert client.get(f"{_responses_url(form.id)}/{response.id}", headers=headers).status_code == 404
        assert client.get(_responses_url(form.id), headers=headers).json()["total"] == 0

    def test_delete_already_deleted(self, client, db, headers, form):
        response = _add_response(db, form, [], deleted=True)
        resp = client.delete(f"{_responses_url(form.id)}/{response.id}", headers=headers)
        assert resp.status_code == 404

    def test_response_of_another_form(self, client, db, headers, user, form):
        other_form = create_test_form(db, user, name="Other")
        response = _add_response(db, other_form, [])
        resp = client.delete(f"{_responses_url(form.id)}/{response.id}", headers=headers)
        assert resp.status_code == 404
