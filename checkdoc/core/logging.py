"""
Channel-Aware Structured Logging for checkdoc.

Every log line belongs to a channel, so a user can follow one stage of
a check without the noise of the others:

    PIPELINE  pass start/end and timing
    LOAD      rule set loading and includes
    PARSE     normalization and unit parsing
    EVALUATE  per-rule evaluation and failures
    SCORE     compliance scoring
    RENDER    report rendering
    SYSTEM    anything else

Levels: silent < info < verbose < debug. Warnings and errors are shown
at every level except silent.

Environment:
    CHECKDOC_LOG_LEVEL     silent/info/verbose/debug (default: info)
    CHECKDOC_LOG_FORMAT    console/json (default: console)
    CHECKDOC_LOG_CHANNELS  comma-separated channel filter (default: all)

Output goes to stderr; stdout carries only the report.
"""

import logging
import os
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Iterable, Optional, Union

import structlog


class LogLevel(IntEnum):
    SILENT = 0
    INFO = 1
    VERBOSE = 2
    DEBUG = 3

    @classmethod
    def from_string(cls, s: str) -> "LogLevel":
        """Parse a level name; stdlib names map onto the nearest level."""
        aliases = {"warning": cls.INFO, "error": cls.INFO}
        name = s.strip().lower()
        if name in aliases:
            return aliases[name]
        try:
            return cls[name.upper()]
        except KeyError:
            return cls.INFO


class LogChannel(str, Enum):
    PIPELINE = "PIPELINE"
    LOAD = "LOAD"
    PARSE = "PARSE"
    EVALUATE = "EVALUATE"
    SCORE = "SCORE"
    RENDER = "RENDER"
    SYSTEM = "SYSTEM"

    @classmethod
    def all(cls) -> list["LogChannel"]:
        return list(cls)

    @classmethod
    def from_string(cls, s: str) -> Optional["LogChannel"]:
        try:
            return cls(s.strip().upper())
        except ValueError:
            return None


@dataclass
class _LogState:
    level: LogLevel = LogLevel.INFO
    format: str = "console"
    channels: set = field(default_factory=lambda: set(LogChannel))
    configured: bool = False


_state = _LogState()

# Fields merged into every event of the current run (run id)
_run_context: ContextVar[dict] = ContextVar("checkdoc_run_context", default={})

# checkdoc levels onto stdlib levels; verbose and debug both go out as DEBUG
_STDLIB_LEVELS = {
    LogLevel.SILENT: logging.CRITICAL + 10,
    LogLevel.INFO: logging.INFO,
    LogLevel.VERBOSE: logging.DEBUG,
    LogLevel.DEBUG: logging.DEBUG,
}


def _parse_channels(channels: Iterable[Union[LogChannel, str]]) -> set:
    parsed = set()
    for ch in channels:
        channel = ch if isinstance(ch, LogChannel) else LogChannel.from_string(ch)
        if channel is not None:
            parsed.add(channel)
    return parsed


def _channels_from_env() -> set:
    raw = os.environ.get("CHECKDOC_LOG_CHANNELS", "")
    parsed = _parse_channels(c for c in raw.split(",") if c.strip())
    return parsed or set(LogChannel)


def _processors(format: str) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(
    level: Union[LogLevel, str, None] = None,
    format: Optional[str] = None,
    channels: Optional[list[Union[LogChannel, str]]] = None,
    force: bool = False,
) -> None:
    """
    Configure structlog and the stdlib root handler.

    Arguments left as None fall back to the CHECKDOC_LOG_* variables.
    Without ``force`` only the first call has any effect.
    """
    if _state.configured and not force:
        return

    if level is None:
        level = os.environ.get("CHECKDOC_LOG_LEVEL", "info")
    if isinstance(level, str):
        level = LogLevel.from_string(level)

    _state.level = level
    _state.format = format or os.environ.get("CHECKDOC_LOG_FORMAT", "console")
    _state.channels = _channels_from_env() if channels is None else _parse_channels(channels)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=_STDLIB_LEVELS[level],
        force=True,
    )
    structlog.configure(
        processors=_processors(_state.format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _state.configured = True


def get_current_config() -> dict:
    """Snapshot of the active configuration."""
    return {
        "level": _state.level.name,
        "format": _state.format,
        "channels": sorted(ch.value for ch in _state.channels),
    }


class ChannelLogger:
    """Logger for one channel. Events below the configured level are dropped."""

    def __init__(self, channel: LogChannel, name: Optional[str] = None, pass_name: Optional[str] = None):
        self.channel = channel
        self.name = name or f"checkdoc.{channel.value.lower()}"
        self.pass_name = pass_name
        self._logger = structlog.get_logger(self.name)

    def _emit(self, method: str, event: str, fields: dict) -> None:
        fields["channel"] = self.channel.value
        if self.pass_name:
            fields["pass"] = self.pass_name
        fields.update(_run_context.get())
        getattr(self._logger, method)(event, **fields)

    def _enabled(self, level: LogLevel) -> bool:
        return self.channel in _state.channels and _state.level >= level

    def info(self, event: str, **kwargs) -> None:
        if self._enabled(LogLevel.INFO):
            self._emit("info", event, kwargs)

    def verbose(self, event: str, **kwargs) -> None:
        if self._enabled(LogLevel.VERBOSE):
            self._emit("debug", event, dict(kwargs, verbosity="verbose"))

    def debug(self, event: str, **kwargs) -> None:
        if self._enabled(LogLevel.DEBUG):
            self._emit("debug", event, dict(kwargs, verbosity="debug"))

    # Problems ignore the channel filter
    def warning(self, event: str, **kwargs) -> None:
        if _state.level != LogLevel.SILENT:
            self._emit("warning", event, kwargs)

    def error(self, event: str, **kwargs) -> None:
        if _state.level != LogLevel.SILENT:
            self._emit("error", event, kwargs)


def get_logger(channel: Union[LogChannel, str] = LogChannel.SYSTEM) -> ChannelLogger:
    """Logger for a channel; unknown names land on SYSTEM."""
    configure_logging()
    if isinstance(channel, str) and not isinstance(channel, LogChannel):
        channel = LogChannel.from_string(channel) or LogChannel.SYSTEM
    return ChannelLogger(channel=channel)


# Pass-name prefix -> channel
_PASS_CHANNELS = {
    "p00": LogChannel.PARSE,
    "p10": LogChannel.PARSE,
    "p50": LogChannel.EVALUATE,
    "p60": LogChannel.SCORE,
    "p70": LogChannel.RENDER,
}


def get_pass_logger(pass_name: str, channel: Optional[LogChannel] = None) -> ChannelLogger:
    """Logger for a pipeline pass, on the channel its prefix maps to."""
    configure_logging()
    if channel is None:
        channel = _PASS_CHANNELS.get(pass_name[:3], LogChannel.PIPELINE)
    return ChannelLogger(channel=channel, name=f"checkdoc.{pass_name}", pass_name=pass_name)


def bind_run_context(**kwargs) -> None:
    _run_context.set({**_run_context.get(), **kwargs})


def clear_run_context() -> None:
    _run_context.set({})


class RunLogger:
    """Times the passes of one run and tags its events with the run id."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self._log = get_logger(LogChannel.PIPELINE)
        self._started = time.perf_counter()
        self._pass_started: dict[str, float] = {}
        bind_run_context(run_id=run_id)

    def _elapsed_ms(self, since: float) -> float:
        return round((time.perf_counter() - since) * 1000, 2)

    def pass_start(self, pass_name: str) -> None:
        self._pass_started[pass_name] = time.perf_counter()
        self._log.verbose("pass_started", pass_name=pass_name)

    def pass_end(self, pass_name: str, **metrics: Any) -> None:
        since = self._pass_started.get(pass_name, time.perf_counter())
        self._log.info("pass_completed", pass_name=pass_name, duration_ms=self._elapsed_ms(since), **metrics)

    def pass_error(self, pass_name: str, error: Exception) -> None:
        self._log.error(
            "pass_failed",
            pass_name=pass_name,
            error=str(error),
            error_type=type(error).__name__,
        )

    def run_complete(self, status: str, **metrics: Any) -> None:
        self._log.info(
            "check_complete",
            status=status,
            total_duration_ms=self._elapsed_ms(self._started),
            **metrics,
        )
        clear_run_context()
