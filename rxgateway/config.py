"""Typed configuration for the gateway session and the webhook server.

Values come from keyword arguments or, via ``from_env()``, from the
environment:

    GATEWAY_TOKEN          bot token (required)
    GATEWAY_BASE_URL       directory service base URL
    GATEWAY_COMPRESS       "1"/"0", request zlib-compressed frames
    WEBHOOK_VERIFY_TOKEN   token expected in webhook challenges (required)
    WEBHOOK_HOST           listen address
    WEBHOOK_PORT           listen port
    WEBHOOK_PATH           route path, without leading slash
"""

import os
import random
from collections.abc import Mapping
from dataclasses import dataclass, field

from .mechanism import AuthError

DEFAULT_BASE_URL = "https://www.kookapp.cn/api"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RetryPolicy:
    """Configurable retry behavior for gateway reconnection.

    Attempts are counted from 1. With the defaults the delays before
    attempts 1, 2 and 3 are 2, 4 and 8 seconds, and a 4th consecutive
    failure is terminal.

    Attributes:
        max_retries: Maximum number of retries after consecutive failures.
            None means infinite retries.
        base_delay: Delay multiplier in seconds.
        backoff_factor: Base of the exponential backoff.
        max_delay: Upper bound on a single delay in seconds.
        jitter: Randomization factor (0.0-1.0) to spread reconnect storms.
    """

    max_retries: int | None = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 60.0
    jitter: float = 0.0

    def __post_init__(self):
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError(f"jitter must be within [0, 1], got {self.jitter}")

    def get_delay(self, attempt: int) -> float:
        """Calculate the delay before retry ``attempt`` (1-indexed).

        delay = min(base_delay * backoff_factor ^ attempt, max_delay) +/- jitter
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        delay = min(self.base_delay * (self.backoff_factor**attempt), self.max_delay)
        if not self.jitter:
            return delay
        jitter_range = delay * self.jitter
        return max(0.0, delay + random.uniform(-jitter_range, jitter_range))

    def exhausted(self, attempt: int) -> bool:
        """Whether ``attempt`` consecutive failures exceed the retry budget."""
        return self.max_retries is not None and attempt > self.max_retries


def _env_bool(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean flag, got {raw!r}")


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


def _env_required(environ: Mapping[str, str], key: str) -> str:
    value = environ.get(key, "")
    if not value:
        raise AuthError(f"{key} environment variable not set")
    return value


@dataclass(frozen=True)
class GatewayConfig:
    """Gateway session configuration.

    Attributes:
        token: Bot token for the directory service and the connection URL.
        base_url: Directory service base URL.
        compress: Ask for zlib-compressed binary frames.
        resume: Resume the previous session after a transport failure.
        hello_timeout: Seconds to wait for Hello after the transport opens.
        heartbeat_interval: Seconds between heartbeats.
        heartbeat_timeout: Seconds to wait for a heartbeat ack.
        max_buffered_events: Reorder buffer capacity before a forced reconnect.
        open_timeout: Seconds allowed for opening the transport.
        retry_policy: Reconnect backoff and budget.
    """

    token: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    compress: bool = True
    resume: bool = True
    hello_timeout: float = 6.0
    heartbeat_interval: float = 30.0
    heartbeat_timeout: float = 6.0
    max_buffered_events: int = 1024
    open_timeout: float = 10.0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self):
        if not self.token:
            raise AuthError("Gateway token must not be empty")
        for name in ("hello_timeout", "heartbeat_interval", "heartbeat_timeout", "open_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.max_buffered_events < 1:
            raise ValueError("max_buffered_events must be >= 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "GatewayConfig":
        env = os.environ if environ is None else environ
        values = {
            "token": _env_required(env, "GATEWAY_TOKEN"),
            "base_url": env.get("GATEWAY_BASE_URL") or DEFAULT_BASE_URL,
            "compress": _env_bool(env, "GATEWAY_COMPRESS", True),
        }
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class WebhookConfig:
    """Webhook server configuration.

    Attributes:
        verify_token: Token a challenge must carry to be answered.
        host: Listen address.
        port: Listen port.
        path: Route path, without leading slash.
        decompress: Inflate bodies that arrive zlib or gzip compressed.
        dedup_capacity: How many recent ``sn`` values are remembered.
    """

    verify_token: str = field(repr=False)
    host: str = "127.0.0.1"
    port: int = 3000
    path: str = "webhook"
    decompress: bool = True
    dedup_capacity: int = 1000

    def __post_init__(self):
        if not self.verify_token:
            raise AuthError("Webhook verify token must not be empty")
        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if self.dedup_capacity < 1:
            raise ValueError("dedup_capacity must be >= 1")

    @property
    def route(self) -> str:
        return "/" + self.path.strip("/")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "WebhookConfig":
        env = os.environ if environ is None else environ
        values = {
            "verify_token": _env_required(env, "WEBHOOK_VERIFY_TOKEN"),
            "host": env.get("WEBHOOK_HOST") or "127.0.0.1",
            "port": _env_int(env, "WEBHOOK_PORT", 3000),
            "path": env.get("WEBHOOK_PATH") or "webhook",
        }
        values.update(overrides)
        return cls(**values)
