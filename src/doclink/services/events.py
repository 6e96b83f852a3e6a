"""Lifecycle event publication.

After a submission commits, a domain event is posted to the event bus topic
for the request kind. Delivery is best effort: the caller runs it through the
side-effect dispatcher, which logs failures.

Events are JSON documents posted to ``{base_url}/topics/{topic}``; routing
attributes travel in ``X-Event-*`` headers.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from doclink.db.models.base import RequestKind
from doclink.services.consent import consent_snapshot

if TYPE_CHECKING:
    from doclink.core.config import EventBusSettings
    from doclink.db.models import IntakeRequest

logger = logging.getLogger(__name__)

EVENT_SUBMITTED = {
    RequestKind.DOCUMENT_REQUEST: "document_request.submitted",
    RequestKind.MORTGAGE_APPLICATION: "mortgage_application.submitted",
}


class EventPublishError(Exception):
    """Raised when the event bus rejects or cannot receive an event.

    Attributes:
        topic: Topic the event was addressed to.
        status_code: HTTP status returned by the bus, if any.
    """

    def __init__(self, topic: str, message: str, status_code: int | None = None) -> None:
        self.topic = topic
        self.status_code = status_code
        super().__init__(message)


class EventPublisher(Protocol):
    """Publishes events to named topics."""

    async def publish(
        self,
        topic: str,
        payload: dict[str, Any],
        attributes: dict[str, str] | None = None,
    ) -> str: ...


def build_submission_event(request: IntakeRequest, submission: dict[str, Any]) -> dict[str, Any]:
    """Build the event describing a completed submission.

    The tenant id is not part of the event. ``consent`` carries every stored
    consent field; ``consentGiven`` repeats the general flag at the top level.
    """
    consent = consent_snapshot(request)
    if consent["given_at"] is not None:
        consent["given_at"] = consent["given_at"].isoformat()
    return {
        "eventType": EVENT_SUBMITTED[request.kind],
        "timestamp": datetime.now(UTC).isoformat(),
        "requestId": request.token,
        "customerId": request.customer_id,
        "status": request.status.value,
        "applicationData": submission,
        "consentGiven": request.consent_given,
        "consent": consent,
        "metadata": {
            "language": request.language,
            "formVersion": request.form_version,
            "userAgent": request.consent_user_agent,
            "browserLanguage": request.consent_browser_language,
        },
    }


class HttpEventPublisher:
    """Event bus client over HTTP."""

    def __init__(
        self,
        settings: EventBusSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = client

    def topic_for(self, kind: RequestKind) -> str:
        """Return the configured topic for a request kind."""
        if kind == RequestKind.MORTGAGE_APPLICATION:
            return self._settings.mortgage_application_topic
        return self._settings.document_request_topic

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client for event delivery."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=float(self._settings.timeout))
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def publish(
        self,
        topic: str,
        payload: dict[str, Any],
        attributes: dict[str, str] | None = None,
    ) -> str:
        """Post an event to ``topic``.

        Returns:
            Message id assigned by the bus, or a locally generated one if the
            bus does not return an id.

        Raises:
            EventPublishError: On transport errors or non-2xx responses.
        """
        client = await self._get_http_client()
        url = f"{self._settings.base_url.rstrip('/')}/topics/{topic}"
        headers = {"Content-Type": "application/json"}
        for name, value in (attributes or {}).items():
            headers[f"X-Event-{name}"] = value
        if self._settings.auth_token is not None:
            headers["Authorization"] = f"Bearer {self._settings.auth_token.get_secret_value()}"

        try:
            response = await client.post(
                url,
                content=json.dumps(payload, default=str),
                headers=headers,
            )
        except httpx.RequestError as e:
            msg = f"Event bus request failed: {e}"
            raise EventPublishError(topic, msg) from e

        if response.status_code < 200 or response.status_code >= 300:
            msg = f"Event bus returned status {response.status_code}"
            raise EventPublishError(topic, msg, status_code=response.status_code)

        message_id = None
        if response.content:
            try:
                message_id = response.json().get("messageId")
            except (ValueError, AttributeError):
                message_id = None
        message_id = message_id or uuid.uuid4().hex

        logger.info("Published event to topic %s with message ID: %s", topic, message_id)
        return message_id

    async def publish_submission(
        self,
        request: IntakeRequest,
        submission: dict[str, Any],
    ) -> str | None:
        """Publish the submission event for ``request`` if publishing is enabled."""
        if not self._settings.enabled:
            logger.debug("Event publishing disabled; skipping %s", request.token[:8])
            return None
        event = build_submission_event(request, submission)
        return await self.publish(
            self.topic_for(request.kind),
            event,
            attributes={
                "Type": event["eventType"],
                "Timestamp": event["timestamp"],
                "Request-Id": request.token,
            },
        )
