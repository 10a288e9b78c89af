"""Logger with console and file sinks on top of logfire."""

from __future__ import annotations

import contextlib
from abc import abstractmethod
from pathlib import Path
from typing import Any

from opentelemetry.proto.logs.v1 import logs_pb2
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from pydantic import Field, PrivateAttr, model_validator

from xcharvest.core.base import BaseConfig

_current_logger: Logger | None = None


class _LoggerProxy:
    """Forwards attribute access to the configured Logger.

    Before setup_logger() has run every logging call is a no-op, so
    library code can log unconditionally.
    """

    def __getattr__(self, name):
        if _current_logger is None:
            if name == "span":
                return lambda *args, **kwargs: contextlib.nullcontext()

            def _noop(*args, **kwargs):  # noqa: ARG001
                pass
            return _noop
        return getattr(_current_logger, name)

    def __enter__(self):
        if _current_logger is None:
            return self
        return _current_logger.__enter__()

    def __exit__(self, *args):
        if _current_logger is None:
            return False
        return _current_logger.__exit__(*args)


# Import this everywhere; it tracks whatever setup_logger() installed
logger = _LoggerProxy()


class LevelFilteringExporter(SpanExporter):
    """Drops spans below a minimum level before exporting."""

    # Level name -> OpenTelemetry severity number
    _level_thresholds = {
        'debug': logs_pb2.SEVERITY_NUMBER_DEBUG,
        'info': logs_pb2.SEVERITY_NUMBER_INFO,
        'warn': logs_pb2.SEVERITY_NUMBER_WARN,
        'error': logs_pb2.SEVERITY_NUMBER_ERROR,
        'fatal': logs_pb2.SEVERITY_NUMBER_FATAL,
    }

    def __init__(self, exporter: SpanExporter, min_level: str):
        self._exporter = exporter
        self._min_severity = self._level_thresholds.get(
            min_level.lower(), logs_pb2.SEVERITY_NUMBER_INFO
        )

    @classmethod
    def level_name(cls, level_num: int) -> str:
        """Map a severity number back to the closest level name."""
        for name in ('fatal', 'error', 'warn', 'info', 'debug'):
            if level_num >= cls._level_thresholds[name]:
                return name
        return 'debug'

    def export(self, spans: list[ReadableSpan]) -> SpanExportResult:
        kept = [
            span for span in spans
            if (span.attributes or {}).get(
                'logfire.level_num', logs_pb2.SEVERITY_NUMBER_INFO
            ) >= self._min_severity
        ]
        if kept:
            return self._exporter.export(kept)
        return SpanExportResult.SUCCESS

    def shutdown(self) -> None:
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._exporter.force_flush(timeout_millis)


class Sink(BaseConfig):
    """Base class for log output sinks."""

    enabled: bool = Field(default=True, description="Enable this sink")
    level: str | None = Field(
        default=None,
        description=(
            "Log level for this sink. If None, inherits from Logger.level. "
            "Valid: debug, info, warn, error, fatal"
        ),
    )

    _processor: Any = PrivateAttr(default=None)

    @abstractmethod
    def create_processor(self, log_root: Path, session_name: str):
        """Return an OpenTelemetry span processor, or None."""

    def close(self):
        if self._processor:
            with contextlib.suppress(Exception):
                self._processor.shutdown()


class ConsoleSink(Sink):
    """Console output, rendered by logfire itself."""

    verbose: bool = Field(
        default=False,
        description="Show span attributes on the console"
    )
    colors: str = Field(
        default="auto",
        description="Color mode: auto, always, never"
    )

    def create_processor(self, log_root: Path, session_name: str):
        return None


class FileSink(Sink):
    """Plain-text log file, one line per span."""

    enabled: bool = Field(
        default=False,
        description="Enable file logging"
    )
    path: str = Field(
        default="{log_root}/{session_name}/xcharvest.log",
        description="Log file path template"
    )
    format_template: str = Field(
        default="{timestamp:%Y-%m-%d %H:%M:%S} {level:<5} {message}",
        description="Line template; fields: timestamp, level, message",
    )

    _file: Any = PrivateAttr(default=None)

    def _format_span(self, span) -> str:
        from datetime import UTC, datetime

        attrs = span.attributes or {}
        line = self.format_template.format(
            timestamp=datetime.fromtimestamp(span.start_time / 1e9, tz=UTC),
            level=LevelFilteringExporter.level_name(
                attrs.get('logfire.level_num', logs_pb2.SEVERITY_NUMBER_INFO)
            ),
            message=attrs.get('logfire.msg', span.name),
        )

        # Structured kwargs passed to logger calls
        extras = {
            key: value for key, value in attrs.items()
            if not key.startswith(('logfire.', 'code.', 'otel.'))
        }
        if extras:
            rendered = ' '.join(
                f"{k}={v!r}" for k, v in sorted(extras.items())
            )
            line = f"{line} | {rendered}"
        return line + '\n'

    def create_processor(self, log_root: Path, session_name: str):
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
        )

        log_path = Path(
            self.path.format(log_root=log_root, session_name=session_name)
        )
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Line buffered so a crash keeps everything logged so far
        self._file = open(log_path, "a", buffering=1, encoding="utf-8")  # noqa: SIM115

        exporter = ConsoleSpanExporter(
            out=self._file, formatter=self._format_span
        )
        return BatchSpanProcessor(
            LevelFilteringExporter(exporter, self.level or "info")
        )

    def close(self):
        # Flush the processor before the file goes away
        super().close()
        if self._file and not self._file.closed:
            self._file.flush()
            self._file.close()


class Logger(BaseConfig):
    """Logger with composable output sinks.

    Closing the Logger closes its sinks through BaseCloseable.
    """

    level: str = Field(
        default="info",
        description=(
            "Default log level for all sinks. "
            "Valid: debug, info, warn, error, fatal"
        ),
    )
    console: ConsoleSink = Field(
        default_factory=ConsoleSink,
        description="Console output configuration"
    )
    file: FileSink = Field(
        default_factory=FileSink,
        description="File logging configuration"
    )

    @model_validator(mode='after')
    def _cascade_level_to_sinks(self) -> 'Logger':
        for sink in (self.console, self.file):
            if sink.level is None:
                sink.level = self.level
        return self

    def setup(self, log_root: Path, session_name: str):
        """Configure logfire with every enabled sink."""
        import logfire
        from logfire import ConsoleOptions

        processors = []
        for sink in (self.console, self.file):
            if sink.enabled:
                sink._processor = sink.create_processor(log_root, session_name)
                if sink._processor:
                    processors.append(sink._processor)

        console_config = (
            ConsoleOptions(
                min_log_level=self.console.level,
                verbose=self.console.verbose,
                colors=self.console.colors,
                include_timestamps=True,
            )
            if self.console.enabled
            else False
        )

        logfire.configure(
            service_name=f"xcharvest-{session_name}",
            send_to_logfire=False,
            console=console_config,
            additional_span_processors=processors or None,
        )

    def debug(self, msg: str, **kwargs):
        import logfire
        logfire.debug(msg, **kwargs)

    def info(self, msg: str, **kwargs):
        import logfire
        logfire.info(msg, **kwargs)

    def warn(self, msg: str, **kwargs):
        import logfire
        logfire.warn(msg, **kwargs)

    def warning(self, msg: str, **kwargs):
        """Alias for warn()."""
        import logfire
        logfire.warn(msg, **kwargs)

    def error(self, msg: str, **kwargs):
        import logfire
        logfire.error(msg, **kwargs)

    def span(self, msg: str, **kwargs):
        """Span context manager.

        Usage:
            with logger.span("readiness"):
                ...
        """
        import logfire
        return logfire.span(msg, **kwargs)


def setup_logger(
    log_root: Path,
    session_name: str,
    level: str = "info",
    console: ConsoleSink | None = None,
    file: FileSink | None = None,
) -> Logger:
    """Install the global logger.

    Called by Settings after configuration loads; tests call it
    directly.

    Returns:
        The installed Logger
    """
    global _current_logger

    if _current_logger is not None:
        _current_logger.close()

    _current_logger = Logger(
        level=level,
        console=console or ConsoleSink(),
        file=file or FileSink(),
    )
    _current_logger.setup(log_root, session_name)
    return _current_logger


__all__ = [
    "logger",
    "Logger",
    "ConsoleSink",
    "FileSink",
    "LevelFilteringExporter",
    "setup_logger",
]
