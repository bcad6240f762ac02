"""Tests for the directory service client against a local aiohttp server."""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from rxgateway import (
    AuthError,
    DirectoryClient,
    ExhaustedError,
    GatewaySession,
    ProtocolError,
    TransportError,
)


async def resolve_with(handler, compress: bool = True, token: str = "bot-token"):
    app = web.Application()
    app.router.add_get("/api/v3/gateway/index", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        async with DirectoryClient(str(server.make_url("/api")), token) as client:
            return await client.resolve_endpoint(compress)
    finally:
        await server.close()


def test_resolve_endpoint():
    seen = {}

    async def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        seen["compress"] = request.query.get("compress")
        return web.json_response({"code": 0, "message": "", "data": {"url": "wss://gw.test/ws"}})

    endpoint = asyncio.run(resolve_with(handler, compress=False))

    assert endpoint.url == "wss://gw.test/ws"
    assert endpoint.token == "bot-token"
    assert seen == {"auth": "Bot bot-token", "compress": "0"}


@pytest.mark.parametrize("status", [401, 403])
def test_http_auth_failure(status):
    async def handler(request):
        return web.Response(status=status, text="nope")

    with pytest.raises(AuthError):
        asyncio.run(resolve_with(handler))


def test_envelope_auth_failure():
    async def handler(request):
        return web.json_response({"code": 40101, "message": "token invalid", "data": None})

    with pytest.raises(AuthError, match="40101"):
        asyncio.run(resolve_with(handler))


def test_server_error_is_transport():
    async def handler(request):
        return web.Response(status=502, text="bad gateway")

    with pytest.raises(TransportError):
        asyncio.run(resolve_with(handler))


@pytest.mark.parametrize(
    "body",
    [
        '{"code": 40000, "message": "bad request", "data": {}}',
        "<html>maintenance</html>",
        '["not", "an", "envelope"]',
        '{"code": 0, "message": "", "data": null}',
        '{"code": 0, "message": "", "data": {"url": ""}}',
    ],
)
def test_protocol_errors(body):
    async def handler(request):
        return web.Response(text=body, content_type="application/json")

    with pytest.raises(ProtocolError):
        asyncio.run(resolve_with(handler))


def test_invalid_utf8_body_is_protocol_error():
    async def handler(request):
        return web.Response(body=b"\xff\xfe\xfa", content_type="application/json")

    with pytest.raises(ProtocolError):
        asyncio.run(resolve_with(handler))


def test_invalid_utf8_body_is_retried_by_session(config, sink, sleep, logger_provider):
    attempts = []

    async def handler(request):
        attempts.append(request.query["compress"])
        return web.Response(body=b"\xff\xfe\xfa", content_type="application/json")

    async def main():
        app = web.Application()
        app.router.add_get("/api/v3/gateway/index", handler)
        server = TestServer(app)
        await server.start_server()
        try:
            async with DirectoryClient(str(server.make_url("/api")), "bot-token") as client:
                session = GatewaySession(
                    config, client, sleep=sleep, logger_provider=logger_provider
                )
                await session.connect(sink)
        finally:
            await server.close()

    with pytest.raises(ExhaustedError) as info:
        asyncio.run(main())

    assert isinstance(info.value.last_error, ProtocolError)
    assert len(attempts) == 4
    assert sleep.delays == [2.0, 4.0, 8.0]


def test_unreachable_directory():
    async def main():
        async with DirectoryClient("http://127.0.0.1:1/api", "bot-token", timeout=2.0) as client:
            await client.resolve_endpoint(True)

    with pytest.raises(TransportError):
        asyncio.run(main())


def test_repr_redacts_token():
    client = DirectoryClient("https://example.test/api/", "abcdefgh")
    assert "abcdefgh" not in repr(client)
    assert client.base_url == "https://example.test/api"
