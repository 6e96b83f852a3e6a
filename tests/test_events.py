"""Tests for lifecycle event publication over HTTP."""

import json
from datetime import UTC, datetime

import httpx
import pytest
from pydantic import SecretStr

from doclink.core.config import EventBusSettings
from doclink.db.models import RequestKind, RequestStatus
from doclink.services.events import (
    EventPublishError,
    HttpEventPublisher,
    build_submission_event,
)
from tests.factories import make_request


def make_publisher(handler, **settings) -> HttpEventPublisher:
    values = {"enabled": True, "base_url": "http://bus.test/"}
    values.update(settings)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpEventPublisher(EventBusSettings(**values), client=client)


def test_submission_event_leaves_out_tenant():
    request = make_request(
        status=RequestStatus.DONE,
        consent_given=True,
        consent_user_agent="Mozilla/5.0",
    )

    event = build_submission_event(request, {"documents": []})

    assert event["eventType"] == "document_request.submitted"
    assert event["requestId"] == request.token
    assert event["customerId"] == "C123"
    assert event["status"] == "done"
    assert event["applicationData"] == {"documents": []}
    assert event["consentGiven"] is True
    assert event["metadata"]["userAgent"] == "Mozilla/5.0"
    assert "tenant" not in json.dumps(event, default=str).lower()


def test_submission_event_carries_consent_snapshot():
    request = make_request(
        status=RequestStatus.DONE,
        consent_given=True,
        consent_version="v3",
        consent_given_at=datetime(2026, 10, 19, 9, 30, tzinfo=UTC),
        consent_timezone="Europe/Lisbon",
        consent_a=True,
        consent_c=False,
    )

    consent = build_submission_event(request, {})["consent"]

    assert consent["given"] is True
    assert consent["version"] == "v3"
    assert consent["given_at"] == "2026-10-19T09:30:00+00:00"
    assert consent["timezone"] == "Europe/Lisbon"
    assert consent["consent_a"] is True
    assert consent["consent_b"] is None
    assert consent["consent_c"] is False
    json.dumps(consent)


async def test_publishes_to_kind_topic():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"messageId": "msg-1"})

    publisher = make_publisher(handler, auth_token=SecretStr("bus-token"))
    request = make_request(kind=RequestKind.MORTGAGE_APPLICATION, status=RequestStatus.DONE)

    message_id = await publisher.publish_submission(request, {"loanAmount": 1})
    await publisher.close()

    assert message_id == "msg-1"
    sent = seen[0]
    assert str(sent.url) == "http://bus.test/topics/mortgage-application-events"
    assert sent.headers["Authorization"] == "Bearer bus-token"
    assert sent.headers["X-Event-Type"] == "mortgage_application.submitted"
    assert sent.headers["X-Event-Request-Id"] == request.token
    assert json.loads(sent.content)["applicationData"] == {"loanAmount": 1}


async def test_generates_message_id_when_bus_returns_none():
    publisher = make_publisher(lambda request: httpx.Response(204))
    message_id = await publisher.publish("document-upload-events", {"a": 1})
    assert len(message_id) == 32


async def test_error_status_raises():
    publisher = make_publisher(lambda request: httpx.Response(503))
    with pytest.raises(EventPublishError) as exc_info:
        await publisher.publish("document-upload-events", {"a": 1})
    assert exc_info.value.status_code == 503
    assert exc_info.value.topic == "document-upload-events"


async def test_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    publisher = make_publisher(handler)
    with pytest.raises(EventPublishError):
        await publisher.publish("document-upload-events", {"a": 1})


async def test_disabled_publisher_sends_nothing():
    seen = []
    publisher = make_publisher(lambda request: seen.append(request), enabled=False)

    assert await publisher.publish_submission(make_request(), {}) is None
    assert seen == []
