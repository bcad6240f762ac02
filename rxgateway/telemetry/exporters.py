"""OTel log-record exporter for console output.

:class:`ConsoleLogRecordExporter` writes either human-readable lines or
JSON lines to stderr.
"""

import sys
from collections.abc import Sequence
from typing import Literal

from opentelemetry.sdk._logs._internal import ReadableLogRecord
from opentelemetry.sdk._logs.export import (
    LogRecordExporter,
    LogRecordExportResult,
)

from .logger import format_log_record, format_log_record_json

LOG_FORMAT = Literal["text", "json"]


class ConsoleLogRecordExporter(LogRecordExporter):
    """OTel LogRecordExporter that writes CLI-friendly output to stderr.

    Unlike OTel's ConsoleLogExporter which outputs verbose JSON,
    the default ``"text"`` format is one short line per record:

        2026-02-03T10:30:00Z [INFO] rxgateway GatewaySession : Handshake complete
    """

    def __init__(self, fmt: LOG_FORMAT = "text"):
        if fmt not in ("text", "json"):
            raise ValueError(f"Unsupported log format '{fmt}'.")
        self._formatter = format_log_record if fmt == "text" else format_log_record_json

    def export(self, batch: Sequence[ReadableLogRecord]) -> LogRecordExportResult:
        try:
            for readable_record in batch:
                sys.stderr.write(self._formatter(readable_record.log_record))
            sys.stderr.flush()
            return LogRecordExportResult.SUCCESS
        except Exception:
            return LogRecordExportResult.FAILURE

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        sys.stderr.flush()
        return True
