"""Tests for HTTPStaticFileContractProvider."""

import warnings

import httpx
import pytest
import respx

from skillrun_core import SkillNotFoundError, SkillRunError
from skillrun_http import HTTPStaticFileContractProvider

BASE = "https://skills.example.com"

SKILL_MD = """\
---
name: databases
description: Database design and query tuning.
operations:
  BACKUP:
    parameters:
      database: {type: string, required: true}
---
# Databases
"""


class TestGetDocument:
    @respx.mock
    async def test_get_document(self):
        respx.get(f"{BASE}/databases/SKILL.md").respond(text=SKILL_MD)
        async with HTTPStaticFileContractProvider(BASE) as provider:
            document = await provider.get_document("databases")
        assert document["name"] == "databases"
        assert "BACKUP" in document["operations"]

    @respx.mock
    async def test_trailing_slash_stripped(self):
        route = respx.get(f"{BASE}/databases/SKILL.md").respond(text=SKILL_MD)
        async with HTTPStaticFileContractProvider(BASE + "/") as provider:
            await provider.get_document("databases")
        assert route.called

    @respx.mock
    async def test_no_frontmatter(self):
        respx.get(f"{BASE}/bare/SKILL.md").respond(text="# Just body.")
        async with HTTPStaticFileContractProvider(BASE) as provider:
            assert await provider.get_document("bare") == {}

    @respx.mock
    async def test_missing_skill_raises(self):
        respx.get(f"{BASE}/nonexistent/SKILL.md").respond(status_code=404)
        async with HTTPStaticFileContractProvider(BASE) as provider:
            with pytest.raises(SkillNotFoundError):
                await provider.get_document("nonexistent")

    @respx.mock
    async def test_server_error_raises(self):
        respx.get(f"{BASE}/databases/SKILL.md").respond(status_code=503)
        async with HTTPStaticFileContractProvider(BASE) as provider:
            with pytest.raises(SkillRunError, match="HTTP 503 error"):
                await provider.get_document("databases")

    @respx.mock
    async def test_connection_error_raises(self):
        respx.get(f"{BASE}/databases/SKILL.md").mock(side_effect=httpx.ConnectError("refused"))
        async with HTTPStaticFileContractProvider(BASE) as provider:
            with pytest.raises(SkillRunError, match="HTTP request failed"):
                await provider.get_document("databases")

    @respx.mock
    async def test_oversized_response_raises(self):
        respx.get(f"{BASE}/databases/SKILL.md").respond(text=SKILL_MD)
        async with HTTPStaticFileContractProvider(BASE, max_response_bytes=10) as provider:
            with pytest.raises(SkillRunError, match="exceeds maximum size"):
                await provider.get_document("databases")

    @pytest.mark.parametrize("skill_id", ["../etc", "a/b", "", ".hidden"])
    async def test_invalid_skill_id_rejected(self, skill_id):
        async with HTTPStaticFileContractProvider(BASE) as provider:
            with pytest.raises(ValueError, match="Invalid skill_id"):
                await provider.get_document(skill_id)


class TestConfiguration:
    @respx.mock
    async def test_headers_and_params_sent(self):
        route = respx.get(f"{BASE}/databases/SKILL.md").respond(text=SKILL_MD)
        async with HTTPStaticFileContractProvider(
            BASE, headers={"Authorization": "Bearer tok"}, params={"sv": "2024"}
        ) as provider:
            await provider.get_document("databases")
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.url.params["sv"] == "2024"

    async def test_client_with_headers_rejected(self):
        async with httpx.AsyncClient() as client:
            with pytest.raises(ValueError, match="Cannot specify both"):
                HTTPStaticFileContractProvider(BASE, client=client, headers={"X": "1"})

    @respx.mock
    async def test_external_client_not_closed(self):
        respx.get(f"{BASE}/databases/SKILL.md").respond(text=SKILL_MD)
        async with httpx.AsyncClient() as client:
            provider = HTTPStaticFileContractProvider(BASE, client=client)
            await provider.get_document("databases")
            await provider.aclose()
            assert not client.is_closed

    async def test_plain_http_warns(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            provider = HTTPStaticFileContractProvider("http://skills.example.com")
        await provider.aclose()
        assert any(issubclass(w.category, UserWarning) for w in caught)

    def test_require_tls_rejects_plain_http(self):
        with pytest.raises(ValueError, match="require_tls"):
            HTTPStaticFileContractProvider("http://skills.example.com", require_tls=True)

    async def test_repr(self):
        provider = HTTPStaticFileContractProvider(BASE + "/")
        assert repr(provider) == f"HTTPStaticFileContractProvider({BASE!r})"
        await provider.aclose()
