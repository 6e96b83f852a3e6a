"""Tests for the CRM file linkage client."""

import json

import httpx
import pytest
from pydantic import SecretStr

from doclink.core.config import CRMSettings
from doclink.services.crm import CRMError, FileLink, HttpCRMClient


def make_client(handler) -> HttpCRMClient:
    settings = CRMSettings(
        enabled=True,
        base_url="https://crm.test/api/v2",
        api_token=SecretStr("crm-token"),
    )
    return HttpCRMClient(settings, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def test_attaches_files():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"attached": 2})

    client = make_client(handler)
    result = await client.attach_files(
        [FileLink("box-1", "customers/C1/a.pdf"), FileLink("box-1", "customers/C1/b.pdf")]
    )
    await client.close()

    assert result == {"attached": 2}
    assert str(seen[0].url) == "https://crm.test/api/v2/files"
    assert seen[0].headers["Authorization"] == "crm-token"
    assert json.loads(seen[0].content) == [
        {"boxKey": "box-1", "fileId": "customers/C1/a.pdf"},
        {"boxKey": "box-1", "fileId": "customers/C1/b.pdf"},
    ]


async def test_requires_links():
    client = make_client(lambda request: httpx.Response(200))
    with pytest.raises(ValueError, match="At least one file link"):
        await client.attach_files([])


async def test_error_status_raises():
    client = make_client(lambda request: httpx.Response(401))
    with pytest.raises(CRMError, match="401"):
        await client.attach_files([FileLink("box-1", "f")])


def test_enabled_follows_settings():
    assert not HttpCRMClient(CRMSettings()).enabled
