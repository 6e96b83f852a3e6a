"""CRM linkage for stored files.

Files stored for a document request are attached to the customer's CRM box
so the account manager sees them next to the deal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

if TYPE_CHECKING:
    from doclink.core.config import CRMSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FileLink:
    """A stored file to attach to a CRM box."""

    box_key: str
    file_id: str

    def to_dict(self) -> dict[str, str]:
        return {"boxKey": self.box_key, "fileId": self.file_id}


class CRMError(Exception):
    """Raised when the CRM rejects or cannot receive a request."""


class CRMClient(Protocol):
    async def attach_files(self, links: list[FileLink]) -> Any: ...


class HttpCRMClient:
    """CRM API client over HTTP."""

    def __init__(
        self,
        settings: CRMSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._http_client = client

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=float(self._settings.timeout))
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def attach_files(self, links: list[FileLink]) -> Any:
        """Attach stored files to their CRM boxes.

        Raises:
            ValueError: If ``links`` is empty.
            CRMError: On transport errors or non-2xx responses.
        """
        if not links:
            msg = "At least one file link is required"
            raise ValueError(msg)

        client = await self._get_http_client()
        url = f"{self._settings.base_url.rstrip('/')}/files"
        try:
            response = await client.post(
                url,
                json=[link.to_dict() for link in links],
                headers={"Authorization": self._settings.api_token.get_secret_value()},
            )
        except httpx.RequestError as e:
            msg = f"CRM request failed: {e}"
            raise CRMError(msg) from e

        if response.status_code < 200 or response.status_code >= 300:
            msg = f"CRM returned status {response.status_code}"
            raise CRMError(msg)

        logger.info("Attached %d files to CRM boxes", len(links))
        return response.json() if response.content else None
