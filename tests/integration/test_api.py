"""Integration tests for the HTTP API.

Tests respondent and admin endpoints end to end through FastAPI's test
client, including authentication and error responses.
"""

import pytest

from tracer_survey.middleware.auth import RESPONDENT_HEADER
from tracer_survey.models.survey import SurveyStatus


@pytest.fixture
def employment_survey(make_survey, employment_builder) -> str:
    return make_survey("s1", employment_builder)


@pytest.fixture
def alumni_headers(alumni) -> dict:
    return {RESPONDENT_HEADER: alumni.id}


class TestServiceEndpoints:
    """Tests for root and health endpoints."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "operational"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "published_surveys": 0,
            "definitions": ["tracer_study_alumni"],
        }

    def test_health_counts_published_surveys(self, client, make_survey):
        make_survey("s1")
        make_survey("s2", status=SurveyStatus.DRAFT)

        assert client.get("/health").json()["published_surveys"] == 1

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-Id": "abc123"})
        assert response.headers["X-Request-Id"] == "abc123"

    def test_request_id_generated(self, client):
        assert client.get("/").headers["X-Request-Id"]


class TestRespondentAuth:
    """Tests for respondent identification."""

    def test_missing_respondent(self, client, employment_survey):
        response = client.get("/api/surveys/s1/questions")
        assert response.status_code == 401

    def test_unknown_respondent(self, client, employment_survey):
        response = client.get("/api/surveys/s1/questions", headers={RESPONDENT_HEADER: "nobody"})
        assert response.status_code == 401


class TestRespondentEndpoints:
    """Tests for the respondent survey flow."""

    def test_greeting(self, client, employment_survey, alumni_headers):
        response = client.get("/api/surveys/s1/greeting", headers=alumni_headers)

        assert response.status_code == 200
        assert response.json()["opening"]["greeting"] == "Dear Jane Doe,"

    def test_questions(self, client, employment_survey, alumni_headers):
        response = client.get("/api/surveys/s1/questions", headers=alumni_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["survey_id"] == "s1"
        assert [q["id"] for q in data["codes"][0]["questions"]] == ["q1", "q2"]
        assert data["rules"] == [{"trigger_id": "q1", "option_id": "yes", "target_id": "q2"}]

    def test_draft_and_submit(self, client, employment_survey, alumni_headers):
        draft = client.put(
            "/api/surveys/s1/response/draft",
            json={"answers": [{"questionId": "q1", "answerOptionIds": ["yes"]}]},
            headers=alumni_headers,
        )
        assert draft.status_code == 200
        assert draft.json()["completion"]["percentage"] == 50
        assert draft.json()["visible_question_ids"] == ["q1", "q2"]

        rejected = client.post("/api/surveys/s1/response/submit", headers=alumni_headers)
        assert rejected.status_code == 422
        assert rejected.json() == {
            "error": "validation_error",
            "message": "1 required question(s) unanswered",
            "details": {"question_ids": ["q2"]},
        }

        submitted = client.post(
            "/api/surveys/s1/response/submit",
            json={"answers": [{"questionId": "q2", "answerText": "Acme"}]},
            headers=alumni_headers,
        )
        assert submitted.status_code == 200
        assert submitted.json()["is_draft"] is False
        assert submitted.json()["completion"]["percentage"] == 100

        again = client.post("/api/surveys/s1/response/submit", headers=alumni_headers)
        assert again.status_code == 409
        assert again.json()["error"] == "conflict"

    def test_progress(self, client, employment_survey, alumni_headers):
        assert client.get("/api/surveys/s1/response", headers=alumni_headers).status_code == 404

        client.put(
            "/api/surveys/s1/response/draft",
            json={"answers": [{"questionId": "q1", "answerOptionIds": ["no"]}]},
            headers=alumni_headers,
        )
        response = client.get("/api/surveys/s1/response", headers=alumni_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["is_draft"] is True
        assert data["completion"]["percentage"] == 100
        assert data["answers"]["questions"][0]["answer"] == "No"

    def test_invalid_answer(self, client, employment_survey, alumni_headers):
        response = client.put(
            "/api/surveys/s1/response/draft",
            json={"answers": [{"questionId": "q1", "answerOptionIds": ["bogus"]}]},
            headers=alumni_headers,
        )

        assert response.status_code == 422
        assert response.json()["details"]["question_id"] == "q1"

    def test_malformed_body(self, client, employment_survey, alumni_headers):
        response = client.put(
            "/api/surveys/s1/response/draft",
            json={"answers": [{"answerText": "no question id"}]},
            headers=alumni_headers,
        )
        assert response.status_code == 422

    def test_unknown_survey(self, client, alumni_headers):
        response = client.get("/api/surveys/missing/questions", headers=alumni_headers)

        assert response.status_code == 404
        assert response.json()["details"] == {"survey_id": "missing"}

    def test_ineligible_respondent(self, client, employment_survey, manager):
        response = client.get("/api/surveys/s1/questions", headers={RESPONDENT_HEADER: manager.id})
        assert response.status_code == 403


class TestAdminAuth:
    """Tests for admin token verification."""

    def test_missing_token(self, client, employment_survey):
        assert client.get("/api/admin/surveys/s1/responses").status_code == 401

    def test_invalid_token(self, client, employment_survey):
        response = client.get(
            "/api/admin/surveys/s1/responses", headers={"X-Admin-Token": "wrong-token-value"}
        )
        assert response.status_code == 403


class TestAdminEndpoints:
    """Tests for authoring and response review endpoints."""

    def test_list_responses(self, client, employment_survey, alumni_headers, admin_headers):
        client.put(
            "/api/surveys/s1/response/draft",
            json={"answers": [{"questionId": "q1", "answerOptionIds": ["yes"]}]},
            headers=alumni_headers,
        )

        response = client.get("/api/admin/surveys/s1/responses", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["stats"] == {"total": 1, "submitted": 0, "drafts": 1, "average_completion": 50}
        assert data["meta"]["limit"] == 10
        assert data["responses"][0]["full_name"] == "Jane Doe"

        response_id = data["responses"][0]["id"]
        detail = client.get(f"/api/admin/responses/{response_id}", headers=admin_headers)
        assert detail.status_code == 200
        assert detail.json()["answers"]["questions"][0]["answer"] == "Yes"

        complete = client.get("/api/admin/surveys/s1/responses/complete", headers=admin_headers)
        assert complete.json() == []

    def test_builder_and_question_edits(self, client, make_survey, admin_headers):
        make_survey("s2")

        saved = client.put(
            "/api/admin/surveys/s2/builder",
            json={"questions": [
                {"id": "x1", "code": "A", "question_text": "Name", "question_type": "ESSAY"},
                {"id": "x2", "code": "A", "question_text": "City", "question_type": "ESSAY",
                 "page_number": 2},
            ]},
            headers=admin_headers,
        )
        assert saved.status_code == 200
        assert saved.json() == {"survey_id": "s2", "total_questions": 2, "total_pages": 2}

        updated = client.patch(
            "/api/admin/questions/x1", json={"is_required": True}, headers=admin_headers
        )
        assert updated.status_code == 200
        assert updated.json()["is_required"] is True

        reordered = client.patch(
            "/api/admin/surveys/s2/questions/order",
            json={"orders": [{"question_id": "x2", "sort_order": 0}]},
            headers=admin_headers,
        )
        assert reordered.json() == {"updated": 1}

        deleted = client.delete("/api/admin/questions/x2", headers=admin_headers)
        assert deleted.json() == {"id": "x2", "deleted_questions": 1}

        missing = client.delete("/api/admin/questions/x2", headers=admin_headers)
        assert missing.status_code == 404

    def test_null_question_text_rejected(self, client, employment_survey, admin_headers):
        response = client.patch(
            "/api/admin/questions/q2", json={"question_text": None}, headers=admin_headers
        )
        assert response.status_code == 422

        listing = client.get("/api/admin/surveys/s1/responses", headers=admin_headers)
        assert listing.status_code == 200

    def test_invalid_builder(self, client, make_survey, admin_headers):
        make_survey("s2")

        response = client.put(
            "/api/admin/surveys/s2/builder",
            json={"questions": [
                {"id": "c", "code": "A", "parent_id": "c", "question_text": "x", "question_type": "ESSAY"},
            ]},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_codes(self, client, employment_survey, admin_headers):
        created = client.post(
            "/api/admin/surveys/s1/codes",
            json={"code": "E", "questions": [
                {"code": "E", "question_text": "Feedback", "question_type": "LONG_TEXT"},
            ]},
            headers=admin_headers,
        )
        assert created.status_code == 201
        assert created.json()["code"] == "E"

        duplicate = client.post(
            "/api/admin/surveys/s1/codes", json={"code": "E"}, headers=admin_headers
        )
        assert duplicate.status_code == 409

        deleted = client.delete("/api/admin/surveys/s1/codes/E", headers=admin_headers)
        assert deleted.json() == {"code": "E", "deleted_questions": 1}

    def test_import_definition(self, client, admin_headers):
        response = client.post("/api/admin/surveys/import/tracer_study_alumni", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["survey_id"] == "tracer-study-alumni"
        assert response.json()["total_questions"] == 15

    def test_import_unknown_definition(self, client, admin_headers):
        response = client.post("/api/admin/surveys/import/nope", headers=admin_headers)
        assert response.status_code == 404
