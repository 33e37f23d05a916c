"""Tests for the HTTP API."""

import jwt
import pytest

from vibe.core.errors import ProviderError
from vibe.llm import MissingAPIKeyError
from vibe.llm.conftest import MOCK_ITERATED_HTML, MOCK_VARIANT_HTML, split_chunks
from vibe.records import SessionStatus, VariantStatus

from .conftest import JWT_SECRET, parse_sse


def generate_body(session, plan, **overrides) -> dict:
    body = {
        "sessionId": session.id,
        "planId": plan.id,
        "variantIndex": plan.variant_index,
        "plan": {
            "title": plan.title,
            "description": plan.description,
            "keyChanges": plan.key_changes,
            "styleNotes": plan.style_notes,
        },
        "sourceHtml": session.source_html,
    }
    body.update(overrides)
    return body


def generate(client, headers, session, plan, **overrides):
    response = client.post(
        "/generate", json=generate_body(session, plan, **overrides), headers=headers
    )
    return response, parse_sse(response.text)


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    """Tests for GET /health."""

    @pytest.mark.unit
    def test_no_auth_required(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] in ("healthy", "degraded")
        assert data["services"]["recordStore"]["available"] is True


# =============================================================================
# Streaming Generation
# =============================================================================


class TestGenerate:
    """Tests for POST /generate."""

    @pytest.mark.unit
    def test_streams_chunks_then_complete(
        self, client, auth_headers, planned_session, record_store, artifact_store
    ):
        session, plans = planned_session

        response, events = generate(client, auth_headers, session, plans[0])

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert [e["type"] for e in events[:-1]] == ["chunk"] * (len(events) - 1)
        assert "".join(e["content"] for e in events[:-1]) == MOCK_VARIANT_HTML

        complete = events[-1]
        assert complete["type"] == "complete"
        assert complete["htmlLength"] == len(MOCK_VARIANT_HTML)
        assert complete["model"] == "mock-model-v1"
        assert complete["htmlPath"].endswith("/variant_1.html")

        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.status == VariantStatus.COMPLETE
        assert variant.html_url == complete["htmlUrl"]
        stored = (artifact_store.root / complete["htmlPath"]).read_text("utf-8")
        assert stored == MOCK_VARIANT_HTML

    @pytest.mark.unit
    def test_all_four_complete_the_session(
        self, client, auth_headers, planned_session, record_store
    ):
        session, plans = planned_session
        for plan in plans:
            _, events = generate(client, auth_headers, session, plan)
            assert events[-1]["type"] == "complete"
        assert record_store.get_session(session.id).status == SessionStatus.COMPLETE

    @pytest.mark.unit
    def test_transient_plan(
        self, client, auth_headers, planned_session, backend_factory
    ):
        session, plans = planned_session
        body = generate_body(session, plans[1], planId="client-plan")
        body["plan"]["title"] = "Client Supplied Direction"

        response = client.post("/generate", json=body, headers=auth_headers)

        assert parse_sse(response.text)[-1]["type"] == "complete"
        assert backend_factory.requests == [("user-1", None, None)]

    @pytest.mark.unit
    def test_provider_and_model_forwarded(
        self, client, auth_headers, planned_session, backend_factory
    ):
        session, plans = planned_session
        generate(
            client, auth_headers, session, plans[0], provider="openai", model="gpt-4o"
        )
        assert backend_factory.requests == [("user-1", "openai", "gpt-4o")]

    @pytest.mark.unit
    def test_too_short_is_error_event(
        self, client, auth_headers, planned_session, record_store, backend_factory
    ):
        backend_factory.backend_kwargs = {"chunks": ["<p>", "hi", "</p>"]}
        session, plans = planned_session

        response, events = generate(client, auth_headers, session, plans[2])

        assert response.status_code == 200
        assert events[-1] == {
            "type": "error",
            "error": "Generated HTML is too short or empty",
            "errorType": "validation_error",
        }
        variant = record_store.get_variant_by_index(session.id, 3)
        assert variant.status == VariantStatus.FAILED

    @pytest.mark.unit
    def test_provider_error_mid_stream(
        self, client, auth_headers, planned_session, record_store, backend_factory
    ):
        backend_factory.backend_kwargs = {
            "chunks": split_chunks(MOCK_VARIANT_HTML),
            "error": ProviderError("upstream reset"),
            "fail_after": 2,
        }
        session, plans = planned_session

        _, events = generate(client, auth_headers, session, plans[0])

        assert [e["type"] for e in events] == ["chunk", "chunk", "error"]
        assert events[-1]["error"] == "upstream reset"
        variant = record_store.get_variant_by_index(session.id, 1)
        assert variant.error_message == "upstream reset"

    @pytest.mark.unit
    def test_missing_token_touches_nothing(
        self, client, planned_session, record_store
    ):
        session, plans = planned_session
        response = client.post("/generate", json=generate_body(session, plans[0]))
        assert response.status_code == 401
        assert response.json()["errorType"] == "authentication_error"
        assert record_store.list_variants(session.id) == []

    @pytest.mark.unit
    def test_bad_token(self, client, auth_headers, planned_session):
        session, plans = planned_session
        token = jwt.encode(
            {"sub": "user-1"}, "wrong-secret-with-at-least-32-bytes!", "HS256"
        )
        response = client.post(
            "/generate",
            json=generate_body(session, plans[0]),
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 401

    @pytest.mark.unit
    def test_missing_api_key_touches_nothing(
        self, client, auth_headers, planned_session, record_store, services
    ):
        def no_key(user_id, provider, model):
            raise MissingAPIKeyError("anthropic")

        services.backend_factory = no_key
        session, plans = planned_session

        response = client.post(
            "/generate", json=generate_body(session, plans[0]), headers=auth_headers
        )

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["errorCode"] == "API_KEY_MISSING"
        assert record_store.list_variants(session.id) == []

    @pytest.mark.unit
    def test_unknown_session(self, client, auth_headers, planned_session):
        session, plans = planned_session
        response = client.post(
            "/generate",
            json=generate_body(session, plans[0], sessionId="missing"),
            headers=auth_headers,
        )
        assert response.status_code == 404

    @pytest.mark.unit
    def test_other_users_session_is_hidden(self, client, planned_session, monkeypatch):
        monkeypatch.setenv("VIBE_JWT_SECRET", JWT_SECRET)
        token = jwt.encode({"sub": "intruder"}, JWT_SECRET, algorithm="HS256")
        session, plans = planned_session
        response = client.post(
            "/generate",
            json=generate_body(session, plans[0]),
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 404

    @pytest.mark.unit
    def test_index_out_of_range(self, client, auth_headers, planned_session):
        session, plans = planned_session
        response = client.post(
            "/generate",
            json=generate_body(session, plans[0], variantIndex=9, planId=None),
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["errorType"] == "validation_error"

    @pytest.mark.unit
    def test_malformed_body(self, client, auth_headers):
        response = client.post(
            "/generate", json={"variantIndex": 0}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request")


# =============================================================================
# Sessions
# =============================================================================


class TestSessions:
    """Tests for session routes."""

    @pytest.mark.unit
    def test_create_plan_and_read(self, client, auth_headers, source_html):
        response = client.post(
            "/sessions",
            json={"sourceHtml": source_html, "variantCount": 2},
            headers=auth_headers,
        )
        assert response.status_code == 201
        session_id = response.json()["id"]

        response = client.post(
            f"/sessions/{session_id}/plans",
            json={
                "plans": [
                    {"variantIndex": 1, "title": "Calm", "keyChanges": ["spacing"]},
                    {"variantIndex": 2, "title": "Loud"},
                ]
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "plan_ready"
        assert [p["title"] for p in data["plans"]] == ["Calm", "Loud"]

        read = client.get(f"/sessions/{session_id}", headers=auth_headers).json()
        assert read["plans"][0]["keyChanges"] == ["spacing"]

    @pytest.mark.unit
    def test_advance_backwards_conflicts(self, client, auth_headers, planned_session):
        session, _ = planned_session
        response = client.post(
            f"/sessions/{session.id}/advance",
            json={"status": "understanding_ready"},
            headers=auth_headers,
        )
        assert response.status_code == 409

    @pytest.mark.unit
    def test_generate_all_then_select(
        self, client, auth_headers, planned_session, record_store
    ):
        session, _ = planned_session

        response = client.post(
            f"/sessions/{session.id}/generate", json={}, headers=auth_headers
        )

        data = response.json()
        assert data["status"] == "complete"
        assert sorted(data["variants"]) == ["1", "2", "3", "4"]
        assert all(v["type"] == "complete" for v in data["variants"].values())

        response = client.post(
            f"/sessions/{session.id}/select",
            json={"variantIndex": 3},
            headers=auth_headers,
        )
        assert response.json()["selectedVariantIndex"] == 3

    @pytest.mark.unit
    def test_retry_failed_variant(
        self, client, auth_headers, planned_session, record_store, backend_factory
    ):
        session, plans = planned_session
        backend_factory.backend_kwargs = {"chunks": ["<p>x</p>"]}
        generate(client, auth_headers, session, plans[2])
        assert (
            record_store.get_variant_by_index(session.id, 3).status
            == VariantStatus.FAILED
        )

        backend_factory.backend_kwargs = {}
        response = client.post(
            f"/sessions/{session.id}/variants/3/retry", headers=auth_headers
        )

        assert response.json()["type"] == "complete"
        assert (
            record_store.get_variant_by_index(session.id, 3).status
            == VariantStatus.COMPLETE
        )


# =============================================================================
# Iteration
# =============================================================================


@pytest.fixture
def generated(client, auth_headers, planned_session, record_store):
    """Variant 1 generated to complete through the API."""
    session, plans = planned_session
    generate(client, auth_headers, session, plans[0])
    return record_store.get_variant_by_index(session.id, 1)


class TestIterate:
    """Tests for POST /iterate and POST /revert."""

    @pytest.mark.unit
    def test_iterate(self, client, auth_headers, generated, record_store):
        response = client.post(
            "/iterate",
            json={
                "sessionId": generated.session_id,
                "variantId": generated.id,
                "variantIndex": 1,
                "currentHtml": MOCK_VARIANT_HTML,
                "iterationPrompt": "make the button blue",
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["iterationNumber"] == 1
        assert data["htmlPath"].endswith("/variant_1_iter_1.html")
        variant = record_store.get_variant(generated.id)
        assert variant.iteration_count == 1
        assert variant.html_url == data["htmlUrl"]

    @pytest.mark.unit
    def test_iterate_failure_shape(
        self, client, auth_headers, generated, backend_factory
    ):
        backend_factory.backend_kwargs = {"response": "<p>tiny</p>"}
        response = client.post(
            "/iterate",
            json={"variantId": generated.id, "iterationPrompt": "shrink"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert "too short" in data["error"]

    @pytest.mark.unit
    def test_iterate_index_mismatch(self, client, auth_headers, generated):
        response = client.post(
            "/iterate",
            json={
                "variantId": generated.id,
                "variantIndex": 2,
                "iterationPrompt": "x",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400

    @pytest.mark.unit
    def test_revert_and_history(self, client, auth_headers, generated, artifact_store):
        first = client.post(
            "/iterate",
            json={"variantId": generated.id, "iterationPrompt": "blue"},
            headers=auth_headers,
        ).json()

        response = client.post(
            "/revert",
            json={
                "variantId": generated.id,
                "iterationId": first["iteration"]["id"],
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["iterationCount"] == 1
        assert "_reverted_" in data["htmlPath"]
        restored = (artifact_store.root / data["htmlPath"]).read_text("utf-8")
        assert restored == MOCK_VARIANT_HTML

        history = client.get(
            f"/variants/{generated.id}/iterations", headers=auth_headers
        ).json()
        assert [it["iterationNumber"] for it in history["iterations"]] == [1]
        stored_after = (artifact_store.root / first["htmlPath"]).read_text("utf-8")
        assert stored_after == MOCK_ITERATED_HTML

        session_history = client.get(
            f"/sessions/{generated.session_id}/iterations", headers=auth_headers
        ).json()
        assert len(session_history["iterations"]) == 1

    @pytest.mark.unit
    def test_revert_unknown_iteration(self, client, auth_headers, generated):
        response = client.post(
            "/revert",
            json={"variantId": generated.id, "iterationId": "missing"},
            headers=auth_headers,
        )
        assert response.status_code == 404
