import argparse
import asyncio

from rxgateway import (
    DirectoryClient,
    GatewayConfig,
    GatewayError,
    GatewaySession,
    RxDeliverySink,
    get_default_providers,
)


def build_parser(subparsers: argparse._SubParsersAction):
    parser = subparsers.add_parser("gateway", help="connect to the event gateway and print events.")
    parser.add_argument("--base-url", type=str, default=None, help="directory service base URL (overrides GATEWAY_BASE_URL)")
    parser.add_argument("--no-compress", action="store_true", help="ask for uncompressed frames")
    parser.add_argument("--no-resume", action="store_true", help="start a fresh session on every reconnect")
    parser.add_argument("--log-format", choices=["text", "json"], default="text")
    parser.set_defaults(func=task)


def _config(parsed_args: argparse.Namespace) -> GatewayConfig:
    overrides = {}
    if parsed_args.base_url:
        overrides["base_url"] = parsed_args.base_url
    if parsed_args.no_compress:
        overrides["compress"] = False
    if parsed_args.no_resume:
        overrides["resume"] = False
    return GatewayConfig.from_env(**overrides)


def task(parsed_args: argparse.Namespace):
    get_default_providers("rxgateway", fmt=parsed_args.log_format)
    config = _config(parsed_args)

    async def run_gateway():
        sink = RxDeliverySink()
        sink.hellos.subscribe(lambda hello: print(f"Connected, session {hello.session_id}"))
        sink.events.subscribe(
            on_next=lambda event: print(f"[{event.channel_type}:{event.target_id}] {event.author_id}: {event.content}"),
            on_error=lambda error: print(f"Error: {error}"),
            on_completed=lambda: print("Gateway stream completed"),
        )
        sink.reconnects.subscribe(lambda item: print(f"Server requested reconnect: {item[0]} - {item[1]}"))

        async with DirectoryClient(config.base_url, config.token) as directory:
            session = GatewaySession(config, directory)
            try:
                await session.connect(sink)
            except GatewayError as e:
                sink.fail(e)
                raise
            sink.complete()

    try:
        asyncio.run(run_gateway())
    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")
