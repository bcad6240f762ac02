"""Utility helpers used across ``rxgateway`` modules."""

import inspect
import traceback
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


def get_short_error_info(e: BaseException) -> str:
    """
    Get a short error information from an exception.

    Args:
        e (BaseException): The exception to get the error information from.

    Returns:
        str: A short error information.
    """
    return f"{type(e).__name__}: {str(e)}"


# the function to get the full error information from an exception.
def get_full_error_info(e: BaseException) -> str:
    """
    Get the full error information from an exception.

    Args:
        e (BaseException): The exception to get the error information from.

    Returns:
        str: The full error information.
    """
    return "".join(traceback.format_exception(type(e), e, e.__traceback__))


async def maybe_await(value: T | Awaitable[T]) -> T:
    """Await ``value`` if it is awaitable, otherwise return it unchanged.

    Lets sinks provide either plain or ``async`` callbacks.
    """
    if inspect.isawaitable(value):
        return await value
    return value


def redact(secret: str, keep: int = 4) -> str:
    """Show only the first ``keep`` characters of a secret for logging."""
    if len(secret) <= keep:
        return "*" * len(secret)
    return secret[:keep] + "*" * (len(secret) - keep)


def as_int(value: Any, default: int = 0) -> int:
    """Coerce a JSON number to ``int``; anything else yields ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return default
