import argparse
import asyncio

from rxgateway import (
    RxDeliverySink,
    WebhookConfig,
    WebhookHandler,
    get_default_providers,
    run_webhook_server,
)


def build_parser(subparsers: argparse._SubParsersAction):
    parser = subparsers.add_parser("webhook", help="start the webhook server and print events.")
    parser.add_argument("--host", type=str, default=None, help="listen address (overrides WEBHOOK_HOST)")
    parser.add_argument("--port", type=int, default=None, help="listen port (overrides WEBHOOK_PORT)")
    parser.add_argument("--path", type=str, default=None, help="route path (overrides WEBHOOK_PATH)")
    parser.add_argument("--log-format", choices=["text", "json"], default="text")
    parser.set_defaults(func=task)


def task(parsed_args: argparse.Namespace):
    get_default_providers("rxgateway", fmt=parsed_args.log_format)
    overrides = {
        key: value
        for key, value in (("host", parsed_args.host), ("port", parsed_args.port), ("path", parsed_args.path))
        if value is not None
    }
    config = WebhookConfig.from_env(**overrides)

    sink = RxDeliverySink("WebhookSink")
    sink.events.subscribe(
        lambda event: print(f"[{event.channel_type}:{event.target_id}] {event.author_id}: {event.content}")
    )
    handler = WebhookHandler(config.verify_token, sink, capacity=config.dedup_capacity)

    try:
        asyncio.run(run_webhook_server(config, handler))
    except KeyboardInterrupt:
        print("\nKeyboard Interrupt.")
