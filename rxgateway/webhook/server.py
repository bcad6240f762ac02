"""aiohttp server exposing the webhook endpoint.

Routes:
    POST /<path>   challenge or event record
    GET  /health   liveness check

With decompression enabled, a body that starts with a zlib or gzip header is
inflated before parsing. aiohttp has already undone any HTTP
``Content-Encoding`` by then, so this only catches payload-level compression.

Responses: 200 with the echoed challenge or ``OK``; 400 for a body that
cannot be decompressed, decoded or classified; 401 for a challenge with
the wrong verify token; 500 when the sink fails.
"""

import asyncio
from typing import Any

from aiohttp import web
from aiohttp.web_protocol import RequestPayloadError
from opentelemetry._logs import LoggerProvider

from ..config import WebhookConfig
from ..gateway.framing import decompress, parse_text
from ..mechanism import AuthError, DecodeError
from ..telemetry import LogContext, OTelLogger, get_default_providers
from ..utils import get_full_error_info
from .handler import WebhookChallenge, WebhookHandler

ZLIB_HEADER = 0x78
GZIP_MAGIC = b"\x1f\x8b"


def is_compressed(body: bytes) -> bool:
    """Whether ``body`` starts like a zlib or gzip stream; JSON never does."""
    return body[:2] == GZIP_MAGIC or (len(body) >= 2 and body[0] == ZLIB_HEADER)


def decode_body(body: bytes, decompress_enabled: bool = True) -> Any:
    """Inflate (when compressed and enabled) and parse a request body.

    Raises:
        DecompressError: Compressed body is corrupt.
        MalformedFrameError: Invalid UTF-8 or JSON.
    """
    if decompress_enabled and is_compressed(body):
        body = decompress(body)
    return parse_text(body)


def _server_logger(logger_provider: LoggerProvider | None) -> OTelLogger:
    if logger_provider is None:
        _, logger_provider = get_default_providers("rxgateway")
    return OTelLogger(
        logger_provider.get_logger("rxgateway.WebhookServer"),
        source="WebhookServer",
        context=LogContext(service="rxgateway", component="webhook"),
    )


def create_webhook_app(
    config: WebhookConfig,
    handler: WebhookHandler,
    logger_provider: LoggerProvider | None = None,
) -> web.Application:
    """Build the aiohttp application serving ``config.route``."""
    log = _server_logger(logger_provider)

    async def handle_webhook(request: web.Request) -> web.Response:
        try:
            raw = await request.read()
        except RequestPayloadError as e:
            log.warning(f"Rejecting unreadable webhook body: {e}")
            return web.Response(status=400, text="Bad Request")
        try:
            body = decode_body(raw, config.decompress)
            record = handler.parse(body)
        except DecodeError as e:
            log.warning(f"Rejecting webhook body: {e}")
            return web.Response(status=400, text="Bad Request")

        if isinstance(record, WebhookChallenge):
            try:
                return web.Response(text=handler.handle_challenge(record))
            except AuthError:
                return web.Response(status=401, text="Challenge failed")

        try:
            await handler.handle_event(record)
        except Exception as e:
            log.error(f"Webhook event sn={record.sn} failed:\n{get_full_error_info(e)}")
            return web.Response(status=500, text="Event processing failed")
        return web.Response(text="OK")

    async def handle_health(request: web.Request) -> web.Response:
        return web.Response(text="OK")

    app = web.Application()
    app.router.add_post(config.route, handle_webhook)
    app.router.add_get("/health", handle_health)
    return app


async def run_webhook_server(
    config: WebhookConfig,
    handler: WebhookHandler,
    logger_provider: LoggerProvider | None = None,
) -> None:
    """Serve the webhook app until cancelled."""
    log = _server_logger(logger_provider)

    runner = web.AppRunner(create_webhook_app(config, handler, logger_provider))
    await runner.setup()
    try:
        site = web.TCPSite(runner, config.host, config.port)
        await site.start()
        log.info(f"Webhook server listening on http://{config.host}:{config.port}{config.route}")
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        log.info("Webhook server stopped.")
