from __future__ import annotations

import errno
import io
import os
import re
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TextIO, cast

import structlog
from structlog.types import Processor

BOT_URL_TOKEN_RE = re.compile(r"bot\d+:[A-Za-z0-9_-]+")
BARE_TOKEN_RE = re.compile(r"\b\d+:[A-Za-z0-9_-]{10,}\b")

_LEVELS: dict[str, int] = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "error": 40,
    "exception": 40,
    "critical": 50,
}

_log_file: TextIO | None = None


def _level_value(value: str | None, *, default: str = "info") -> int:
    if value:
        level = _LEVELS.get(value.strip().lower())
        if level is not None:
            return level
    return _LEVELS[default]


@dataclass(frozen=True, slots=True)
class LogOptions:
    level: int
    json: bool
    colors: bool
    file: str | None

    @classmethod
    def from_env(cls, *, debug: bool = False) -> LogOptions:
        env = os.environ
        level = _level_value("debug" if debug else env.get("CONVOFLOW_LOG_LEVEL"))
        fmt = env.get("CONVOFLOW_LOG_FORMAT", "console").strip().lower()
        color = env.get("CONVOFLOW_LOG_COLOR")
        if color is None:
            colors = sys.stdout.isatty()
        else:
            colors = color.strip().lower() in {"1", "true", "yes", "on"}
        return cls(
            level=level,
            json=fmt == "json",
            colors=colors,
            file=env.get("CONVOFLOW_LOG_FILE") or None,
        )


def redact_text(value: str) -> str:
    """Mask Bot API tokens, both inside request URLs and on their own."""
    value = BOT_URL_TOKEN_RE.sub("bot[REDACTED]", value)
    return BARE_TOKEN_RE.sub("[REDACTED_TOKEN]", value)


def redact(value: Any, _seen: frozenset[int] = frozenset()) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, (bytes, bytearray)):
        return redact_text(value.decode("utf-8", errors="replace"))
    if not isinstance(value, (Mapping, list, tuple)):
        return value
    if id(value) in _seen:
        return "<cycle>"
    seen = _seen | {id(value)}
    if isinstance(value, Mapping):
        return {key: redact(item, seen) for key, item in value.items()}
    items = [redact(item, seen) for item in value]
    return tuple(items) if isinstance(value, tuple) else items


def _redact_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    return redact(event_dict)


def _add_logger_name(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    name = event_dict.pop("logger_name", None)
    if "logger" not in event_dict and isinstance(name, str) and name:
        event_dict["logger"] = name
    return event_dict


_json_line = structlog.processors.JSONRenderer(default=str)


def _file_sink(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    if _log_file is None:
        return event_dict
    try:
        line = _json_line(logger, method_name, dict(event_dict))
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        _log_file.write(line + "\n")
        _log_file.flush()
    except (OSError, ValueError):
        pass
    return event_dict


def get_logger(name: str | None = None) -> Any:
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


@contextmanager
def bound_subject(subject_id: int) -> Iterator[None]:
    """Attach ``subject_id`` to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(subject_id=subject_id):
        yield


def _broken_pipe(exc: BaseException) -> bool:
    if isinstance(exc, (BrokenPipeError, ValueError)):
        return True
    return isinstance(exc, OSError) and exc.errno == errno.EPIPE


class SafeWriter(io.TextIOBase):
    """Stream wrapper that goes quiet once its target pipe is gone."""

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._dead = False

    def write(self, message: str) -> int:
        if self._dead:
            return 0
        try:
            return self._stream.write(message)
        except (OSError, ValueError) as exc:
            if not _broken_pipe(exc):
                raise
            self._give_up()
            return 0

    def flush(self) -> None:
        if self._dead:
            return
        try:
            self._stream.flush()
        except (OSError, ValueError) as exc:
            if not _broken_pipe(exc):
                raise
            self._give_up()

    def isatty(self) -> bool:
        isatty = getattr(self._stream, "isatty", None)
        return bool(isatty()) if callable(isatty) else False

    def _give_up(self) -> None:
        self._dead = True
        try:
            self._stream.close()
        except OSError:
            pass


def _open_log_file(path: str | None) -> TextIO | None:
    if not path:
        return None
    try:
        return open(path, "a", encoding="utf-8")
    except OSError:
        return None


def setup_logging(
    *, debug: bool = False, cache_logger_on_first_use: bool = True
) -> None:
    global _log_file

    options = LogOptions.from_env(debug=debug)
    if _log_file is not None:
        previous, _log_file = _log_file, None
        previous.close()
    _log_file = _open_log_file(options.file)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.add_log_level,
        _add_logger_name,
    ]
    renderer: Processor
    if options.json:
        processors.append(structlog.processors.format_exc_info)
        renderer = cast(Processor, structlog.processors.JSONRenderer(default=str))
    else:
        renderer = cast(
            Processor, structlog.dev.ConsoleRenderer(colors=options.colors)
        )
    processors.extend([_redact_processor, _file_sink, renderer])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(options.level),
        logger_factory=structlog.PrintLoggerFactory(
            file=cast(TextIO, SafeWriter(sys.stdout))
        ),
        cache_logger_on_first_use=cache_logger_on_first_use,
    )
