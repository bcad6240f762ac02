"""OTel metrics for the gateway session.

Provides :class:`MetricsHelper`, a convenience wrapper around an OTel
``Meter``, and :class:`GatewayMetrics`, the fixed set of instruments a
:class:`~rxgateway.gateway.session.GatewaySession` records into.
"""

from opentelemetry.metrics import (
    Counter,
    Histogram,
    Meter,
    MeterProvider,
    NoOpMeterProvider,
)


class MetricsHelper:
    """Convenience wrapper around an OTel ``Meter``.

    Args:
        meter_provider: The provider to obtain a meter from.
        instrumentation_name: Identifies the instrumentation library.

    Example::

        helper = MetricsHelper(meter_provider, "rxgateway.session")
        delivered = helper.counter("gateway.events.delivered")
        delivered.add(1)
    """

    def __init__(self, meter_provider: MeterProvider, instrumentation_name: str):
        self._meter: Meter = meter_provider.get_meter(instrumentation_name)

    def counter(
        self,
        name: str,
        description: str = "",
        unit: str = "1",
    ) -> Counter:
        """Create (or retrieve) a monotonic counter instrument."""
        return self._meter.create_counter(name, description=description, unit=unit)

    def histogram(
        self,
        name: str,
        description: str = "",
        unit: str = "ms",
    ) -> Histogram:
        """Create (or retrieve) a histogram instrument."""
        return self._meter.create_histogram(name, description=description, unit=unit)


class GatewayMetrics:
    """Instruments recorded by the gateway session.

    Without a meter provider all instruments are no-ops.
    """

    def __init__(
        self,
        meter_provider: MeterProvider | None = None,
        instrumentation_name: str = "rxgateway.session",
    ):
        helper = MetricsHelper(
            meter_provider if meter_provider is not None else NoOpMeterProvider(),
            instrumentation_name,
        )
        self.events_delivered = helper.counter(
            "gateway.events.delivered",
            description="Events handed to the delivery sink in sequence order",
        )
        self.events_duplicate = helper.counter(
            "gateway.events.duplicate",
            description="Events dropped because their sequence was already delivered",
        )
        self.events_buffered = helper.counter(
            "gateway.events.buffered",
            description="Events held back waiting for a sequence gap to close",
        )
        self.frames_dropped = helper.counter(
            "gateway.frames.dropped",
            description="Inbound frames dropped as malformed",
        )
        self.reconnects = helper.counter(
            "gateway.reconnects",
            description="Connection attempts that failed and were retried",
        )
        self.heartbeat_timeouts = helper.counter(
            "gateway.heartbeat.timeouts",
            description="Heartbeats not acknowledged in time",
        )
        self.reconnect_delay = helper.histogram(
            "gateway.reconnect.delay",
            description="Backoff before the next connection attempt",
            unit="s",
        )
