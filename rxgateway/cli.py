"""``rxgateway`` command line entry point."""

import argparse
import sys

from .mechanism import GatewayError
from .tasks import task_gateway, task_webhook

TASKS = (task_gateway, task_webhook)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rxgateway", description="Event gateway and webhook client.")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for module in TASKS:
        module.build_parser(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    parsed_args = build_parser().parse_args(argv)
    try:
        parsed_args.func(parsed_args)
    except GatewayError as e:
        print(f"rxgateway: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
