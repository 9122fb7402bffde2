"""
Tests for docsync.transport modules.
"""

import asyncio
import json

import httpx
import pytest

from docsync.core.config import RemoteConfig
from docsync.core.errors import (
    AuthError,
    NotFoundError,
    ProtocolError,
    RequestAborted,
    ServerError,
    TransportError,
)
from docsync.transport.base import PendingRequest, Response
from docsync.transport.http import HttpxTransport


def make_transport(handler) -> HttpxTransport:
    client = httpx.AsyncClient(
        base_url="http://couch.test",
        transport=httpx.MockTransport(handler),
    )
    return HttpxTransport("http://couch.test", client=client)


class TestPendingRequest:
    """Tests for PendingRequest."""

    @pytest.mark.asyncio
    async def test_resolves(self) -> None:
        async def ok() -> Response:
            return Response(200, {"ok": True})

        request = PendingRequest(ok(), "GET", "/")
        response = await request
        assert response.data == {"ok": True}
        assert request.done() is True
        assert request.abort() is False

    @pytest.mark.asyncio
    async def test_abort_raises_request_aborted(self) -> None:
        async def forever() -> Response:
            await asyncio.sleep(3600)
            return Response(200)

        request = PendingRequest(forever(), "GET", "/_changes")
        assert request.abort() is True
        with pytest.raises(RequestAborted):
            await request
        assert request.aborted is True

    @pytest.mark.asyncio
    async def test_wait_does_not_raise(self) -> None:
        async def broken() -> Response:
            raise TransportError("down")

        request = PendingRequest(broken())
        await request.wait()
        assert request.done() is True
        with pytest.raises(TransportError):
            await request


class TestHttpxTransport:
    """Tests for HttpxTransport."""

    @pytest.mark.asyncio
    async def test_get_json(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/db/_changes"
            assert request.url.params["since"] == "0"
            return httpx.Response(200, json={"last_seq": 1, "results": []})

        transport = make_transport(handler)
        response = await transport.request("GET", "/db/_changes?include_docs=true&since=0")
        assert response.status_code == 200
        assert response.data["last_seq"] == 1
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json=[{"ok": True}])

        transport = make_transport(handler)
        await transport.request("POST", "/_bulk_docs", {"docs": [], "new_edits": False})
        assert seen == {"method": "POST", "body": {"docs": [], "new_edits": False}}
        await transport.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "error_type"),
        [(401, AuthError), (404, NotFoundError), (500, ServerError), (503, ServerError), (409, TransportError)],
    )
    async def test_status_mapping(self, status: int, error_type: type) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"error": "nope", "reason": "because"})

        transport = make_transport(handler)
        with pytest.raises(error_type) as exc_info:
            await transport.request("GET", "/db")
        assert exc_info.value.status_code == status
        assert "because" in str(exc_info.value)
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_network_error_has_no_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(handler)
        with pytest.raises(TransportError) as exc_info:
            await transport.request("GET", "/db")
        assert exc_info.value.status_code is None
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>proxy</html>")

        transport = make_transport(handler)
        with pytest.raises(ProtocolError):
            await transport.request("GET", "/db")
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_rejects_unknown_method(self) -> None:
        transport = make_transport(lambda request: httpx.Response(200, json={}))
        with pytest.raises(ValueError):
            transport.request("DELETE", "/db/doc")
        await transport.aclose()

    @pytest.mark.asyncio
    async def test_auth_header(self) -> None:
        transport = HttpxTransport.from_config(
            RemoteConfig(base_url="http://couch.test/", auth_token="secret")
        )
        client = transport._get_client()
        assert client.headers["Authorization"] == "Bearer secret"
        assert str(client.base_url).startswith("http://couch.test")
        await transport.aclose()
