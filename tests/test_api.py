"""Tests for the doclink HTTP API.

Tests cover:
- Health check, request ID propagation and API key authentication
- Token-gated fetch, submit and upload with lifecycle status codes
- Tenant request issuance, listing and manual status actions
- Document catalog and newsfeed
- Scheduler introspection and manual sweeper runs
"""

import json
from datetime import UTC, datetime, timedelta

import pytest

from doclink.db.models import RequestStatus
from doclink.worker.sweeper import SWEEPER_TASK_NAME
from tests.factories import OTHER_TENANT_ID, make_request

PAST = datetime.now(UTC) - timedelta(days=1)


class TestPlumbing:
    async def test_health(self, api_client):
        response = await api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    async def test_generates_request_id(self, api_client):
        response = await api_client.get("/health")
        assert response.headers["X-Request-ID"]

    async def test_echoes_request_id(self, api_client):
        response = await api_client.get("/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    async def test_error_body_carries_request_id(self, api_client):
        response = await api_client.get(
            "/api/intake", params={"token": "missing"}, headers={"X-Request-ID": "req-7"}
        )
        assert response.status_code == 404
        assert response.json()["request_id"] == "req-7"

    async def test_openapi_is_served(self, api_client):
        response = await api_client.get("/api/openapi.json")
        assert response.status_code == 200
        assert "/api/intake/submit" in response.json()["paths"]


class TestAuthentication:
    async def test_missing_key(self, api_client):
        response = await api_client.get("/api/documents")
        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "unauthorized"
        assert body["message"] == "Authentication required"

    async def test_invalid_key(self, api_client):
        response = await api_client.get("/api/documents", headers={"X-API-Key": "nope"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid API key"

    async def test_intake_needs_no_key(self, api_client, repository):
        request = repository.put(make_request())
        response = await api_client.get("/api/intake", params={"token": request.token})
        assert response.status_code == 200


class TestIntakeFetch:
    async def test_returns_labelled_documents(self, api_client, repository):
        request = repository.put(make_request(language="pt"))

        response = await api_client.get("/api/intake", params={"token": request.token})

        assert response.status_code == 200
        body = response.json()
        assert body["token"] == request.token
        assert body["status"] == "active"
        assert body["kind"] == "document_request"
        assert body["documents"] == [
            {"key": "passport", "value": "Passaporte", "quantity": 1},
            {"key": "payslip", "value": "Recibo de vencimento", "quantity": 3},
        ]
        assert "tenant_id" not in body
        assert "customer_email" not in body

    async def test_missing_token(self, api_client):
        response = await api_client.get("/api/intake")
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_input"
        assert body["detail"] == {"field": "token"}

    async def test_unknown_token(self, api_client):
        response = await api_client.get("/api/intake", params={"token": "0" * 40})
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    async def test_expired_request(self, api_client, repository):
        request = repository.put(make_request(expiry_date=PAST))

        response = await api_client.get("/api/intake", params={"token": request.token})

        assert response.status_code == 410
        assert response.json()["error"] == "expired"
        assert repository.status_of(request.token) == RequestStatus.EXPIRED

    async def test_completed_request(self, api_client, repository):
        request = repository.put(make_request(status=RequestStatus.DONE))
        response = await api_client.get("/api/intake", params={"token": request.token})
        assert response.status_code == 409
        assert response.json()["error"] == "not_available"


class TestIntakeSubmit:
    async def test_submit_then_resubmit(self, api_client, repository, container, events):
        request = repository.put(make_request())
        body = {
            "token": request.token,
            "payload": {"answers": {"q1": "yes"}},
            "consent": {"given": True, "version": "v3", "timezone": "Europe/Lisbon"},
        }

        first = await api_client.post("/api/intake/submit", json=body)
        second = await api_client.post("/api/intake/submit", json=body)
        await container.dispatcher.drain()

        assert first.status_code == 200
        assert first.json() == {"token": request.token, "status": "done"}
        assert second.status_code == 409
        stored = await repository.find_by_token(request.token)
        assert stored.consent_version == "v3"
        assert len(events.published) == 1

    async def test_submit_expired(self, api_client, repository):
        request = repository.put(make_request(status=RequestStatus.DONE, expiry_date=PAST))
        response = await api_client.post("/api/intake/submit", json={"token": request.token})
        assert response.status_code == 410

    async def test_consent_flags_merge_with_stored_flags(self, api_client, repository):
        request = repository.put(make_request(consent_b=True))

        response = await api_client.post(
            "/api/intake/submit",
            json={"token": request.token, "consent": {"consentA": True}},
        )

        assert response.status_code == 200
        stored = await repository.find_by_token(request.token)
        assert stored.consent_a is True
        assert stored.consent_b is True

    async def test_unknown_consent_field_is_rejected(self, api_client, repository):
        request = repository.put(make_request())
        response = await api_client.post(
            "/api/intake/submit",
            json={"token": request.token, "consent": {"given": True, "ip": "1.2.3.4"}},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"
        assert repository.status_of(request.token) == RequestStatus.ACTIVE


class TestIntakeUpload:
    async def test_upload_documents(self, api_client, repository, file_store, container, crm):
        request = repository.put(make_request())

        response = await api_client.post(
            "/api/intake/upload",
            data={
                "token": request.token,
                "doc_keys": ["passport", "payslip"],
                "consent": json.dumps({"given": True}),
            },
            files=[
                ("files", ("passport.pdf", b"%PDF-1.7 a", "application/pdf")),
                ("files", ("payslip.pdf", b"%PDF-1.7 b", "application/pdf")),
            ],
        )
        await container.dispatcher.drain()

        assert response.status_code == 200
        assert response.json()["status"] == "done"
        assert len(file_store.files) == 2
        assert len(crm.attached) == 2
        stored = await repository.find_by_token(request.token)
        assert stored.consent_given is True

    async def test_doc_keys_must_match_files(self, api_client, repository):
        request = repository.put(make_request())

        response = await api_client.post(
            "/api/intake/upload",
            data={"token": request.token, "doc_keys": ["passport", "payslip"]},
            files=[("files", ("passport.pdf", b"%PDF", "application/pdf"))],
        )

        assert response.status_code == 400
        assert response.json()["detail"] == {"field": "doc_keys"}

    async def test_invalid_consent_json(self, api_client, repository):
        request = repository.put(make_request())

        response = await api_client.post(
            "/api/intake/upload",
            data={"token": request.token, "doc_keys": ["passport"], "consent": "{not json"},
            files=[("files", ("passport.pdf", b"%PDF", "application/pdf"))],
        )

        assert response.status_code == 400
        assert response.json()["detail"] == {"field": "consent"}

    async def test_storage_failure_is_bad_gateway(self, api_client, repository, file_store):
        file_store.fail_after = 0
        request = repository.put(make_request())

        response = await api_client.post(
            "/api/intake/upload",
            data={"token": request.token, "doc_keys": ["passport"]},
            files=[("files", ("passport.pdf", b"%PDF", "application/pdf"))],
        )

        assert response.status_code == 502
        assert response.json()["error"] == "downstream_failure"
        assert repository.status_of(request.token) == RequestStatus.ACTIVE


class TestRequests:
    async def test_issue_document_request(
        self, api_client, auth_headers, repository, container, notifier
    ):
        response = await api_client.post(
            "/api/requests",
            headers=auth_headers,
            json={
                "customer": {"id": "C777", "email": "joao@example.com", "language": "pt"},
                "documents": [{"key": "passport"}, {"key": "payslip", "quantity": 2}],
            },
        )
        await container.dispatcher.drain()

        assert response.status_code == 201
        body = response.json()
        assert body["kind"] == "document_request"
        assert body["customer_id"] == "C777"
        assert body["link"].endswith(f"token={body['token']}")
        assert repository.status_of(body["token"]) == RequestStatus.ACTIVE
        assert notifier.sent[0]["recipient_email"] == "joao@example.com"

    async def test_issue_mortgage_application(self, api_client, auth_headers, repository):
        response = await api_client.post(
            "/api/requests",
            headers=auth_headers,
            json={
                "kind": "mortgage_application",
                "customer": {"id": "C777"},
                "form": {"loanAmount": 180000},
            },
        )

        assert response.status_code == 201
        assert "mortgage-application" in response.json()["link"]
        assert response.json()["warnings"]

    async def test_issue_without_documents(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/requests", headers=auth_headers, json={"customer": {"id": "C777"}}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == {"field": "documents"}

    async def test_issue_with_invalid_email(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/requests",
            headers=auth_headers,
            json={"customer": {"id": "C777", "email": "not-an-email"}, "documents": []},
        )
        assert response.status_code == 400
        assert response.json()["detail"]["errors"]

    async def test_list_is_scoped_to_tenant(self, api_client, auth_headers, repository):
        mine = repository.put(make_request())
        repository.put(make_request(tenant_id=OTHER_TENANT_ID))

        response = await api_client.get(
            "/api/requests", headers=auth_headers, params={"customer_id": "C123"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["customer_id"] == "C123"
        assert [r["token"] for r in body["requests"]] == [mine.token]
        assert body["requests"][0]["rgpd_consent"] is None

    async def test_list_includes_rgpd_consent(self, api_client, auth_headers, repository):
        request = repository.put(
            make_request(
                consent_given=True,
                consent_version="v3",
                consent_timezone="Europe/Lisbon",
                consent_a=True,
                consent_b=True,
                consent_c=True,
                consent_d=True,
            )
        )

        response = await api_client.get(
            "/api/requests", headers=auth_headers, params={"customer_id": "C123"}
        )

        block = response.json()["requests"][0]["rgpd_consent"]
        assert response.json()["requests"][0]["token"] == request.token
        assert block["given"] is True
        assert block["version"] == "v3"
        assert block["timezone"] == "Europe/Lisbon"
        assert block["consents"] == {"A": True, "B": True, "C": True, "D": True}

    async def test_list_requires_customer_id(self, api_client, auth_headers):
        response = await api_client.get("/api/requests", headers=auth_headers)
        assert response.status_code == 400

    async def test_extend_expired_request(self, api_client, auth_headers, repository):
        request = repository.put(make_request(expiry_date=PAST))

        response = await api_client.patch(
            "/api/requests/status",
            headers=auth_headers,
            json={"token": request.token, "action": "extend"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "active"
        fetched = await api_client.get("/api/intake", params={"token": request.token})
        assert fetched.status_code == 200

    async def test_cancel_other_tenants_request(self, api_client, repository):
        request = repository.put(make_request())

        response = await api_client.patch(
            "/api/requests/status",
            headers={"X-API-Key": "tenant-key-2"},
            json={"token": request.token, "action": "cancel"},
        )

        assert response.status_code == 404
        assert repository.status_of(request.token) == RequestStatus.ACTIVE

    async def test_unknown_action(self, api_client, auth_headers, repository):
        request = repository.put(make_request())
        response = await api_client.patch(
            "/api/requests/status",
            headers=auth_headers,
            json={"token": request.token, "action": "archive"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == {"field": "action"}


class TestDocuments:
    async def test_list_in_language(self, api_client, auth_headers):
        response = await api_client.get(
            "/api/documents", headers=auth_headers, params={"language": "PT"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "language": "pt",
            "documents": [
                {"key": "passport", "value": "Passaporte"},
                {"key": "payslip", "value": "Recibo de vencimento"},
            ],
        }

    async def test_create_and_delete(self, api_client, auth_headers):
        created = await api_client.post(
            "/api/documents",
            headers=auth_headers,
            json={"key": "tax_return", "translations": {"en": "Tax return", "pt": "IRS"}},
        )
        assert created.status_code == 201
        assert created.json() == {"key": "tax_return", "value": "Tax return"}

        duplicate = await api_client.post(
            "/api/documents",
            headers=auth_headers,
            json={"key": "tax_return", "translations": {"en": "Tax return", "pt": "IRS"}},
        )
        assert duplicate.status_code == 409

        deleted = await api_client.delete("/api/documents/tax_return", headers=auth_headers)
        assert deleted.status_code == 204

        missing = await api_client.delete("/api/documents/tax_return", headers=auth_headers)
        assert missing.status_code == 404

    async def test_create_requires_translations(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/documents",
            headers=auth_headers,
            json={"key": "deed", "translations": {"en": "Deed"}},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == {"field": "translations"}


class TestNewsfeed:
    async def test_shows_issue_and_status_changes(self, api_client, auth_headers):
        issued = await api_client.post(
            "/api/requests",
            headers=auth_headers,
            json={"customer": {"id": "C555"}, "documents": [{"key": "passport"}]},
        )
        token = issued.json()["token"]
        await api_client.post("/api/intake/submit", json={"token": token})

        response = await api_client.get(
            "/api/newsfeed", headers=auth_headers, params={"customer_id": "C555"}
        )

        assert response.status_code == 200
        items = response.json()["items"]
        assert {item["operation"] for item in items} == {"INSERT", "EDIT"}
        edit = next(item for item in items if item["operation"] == "EDIT")
        assert edit["message_variables"]["OLD_STATUS"] == "ACTIVE"
        assert edit["message_variables"]["NEW_STATUS"] == "DONE"

    async def test_other_tenant_sees_nothing(self, api_client, auth_headers):
        await api_client.post(
            "/api/requests",
            headers=auth_headers,
            json={"customer": {"id": "C555"}, "documents": [{"key": "passport"}]},
        )
        response = await api_client.get("/api/newsfeed", headers={"X-API-Key": "tenant-key-2"})
        assert response.json()["items"] == []


class TestAdmin:
    async def test_scheduler_status(self, api_client, auth_headers):
        response = await api_client.get("/api/admin/scheduler", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["running"] is False
        task = body["tasks"][0]
        assert task["name"] == SWEEPER_TASK_NAME
        assert task["schedule"] == "0 0 * * *"
        assert task["timezone"] == "Europe/Lisbon"

    async def test_trigger_sweeper(self, api_client, auth_headers, repository):
        stale = repository.put(make_request(expiry_date=PAST))

        response = await api_client.post(
            f"/api/admin/scheduler/{SWEEPER_TASK_NAME}/trigger", headers=auth_headers
        )

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == SWEEPER_TASK_NAME
        assert body["result"]["expired_count"] == 1
        assert body["config"]["schedule"] == "0 0 * * *"
        assert repository.status_of(stale.token) == RequestStatus.EXPIRED

    async def test_trigger_failure_is_bad_gateway(self, api_client, auth_headers, repository):
        async def broken(now):
            msg = "database unavailable"
            raise ConnectionError(msg)

        repository.bulk_update_expired = broken
        response = await api_client.post(
            f"/api/admin/scheduler/{SWEEPER_TASK_NAME}/trigger", headers=auth_headers
        )
        assert response.status_code == 502

    async def test_trigger_unknown_task(self, api_client, auth_headers):
        response = await api_client.post(
            "/api/admin/scheduler/nope/trigger", headers=auth_headers
        )
        assert response.status_code == 404

    async def test_requires_key(self, api_client):
        response = await api_client.get("/api/admin/scheduler")
        assert response.status_code == 401


@pytest.mark.parametrize("path", ["/api/documents", "/api/newsfeed", "/api/admin/scheduler"])
async def test_tenant_endpoints_reject_anonymous(api_client, path):
    response = await api_client.get(path)
    assert response.status_code == 401
