"""Structured logging and the error taxonomy for modbuild.

All records go to stderr; stdout is reserved for build reports and
write-suppressed compiler output. Set ``LOG_LEVEL`` to change verbosity and
``LOG_FORMAT=json`` for one JSON object per record.
"""
import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _level_from_env() -> int:
    return getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _json_from_env() -> bool:
    return os.environ.get("LOG_FORMAT", "").strip().lower() == "json"


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends context fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extra = getattr(record, "extra_fields", None)
        if extra:
            line += " " + " ".join(f"{k}={v}" for k, v in extra.items())
        return line


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info),
            }
        payload.update(getattr(record, "extra_fields", None) or {})
        return json.dumps(payload, default=str)


_root_configured = False
_loggers: Dict[str, logging.Logger] = {}


def _configure_package_root() -> None:
    """Attach one stderr handler to the ``modbuild`` logger tree."""
    global _root_configured
    if _root_configured:
        return
    root = logging.getLogger("modbuild")
    root.setLevel(_level_from_env())
    handler = logging.StreamHandler(sys.stderr)
    if _json_from_env():
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ContextFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
    _root_configured = True


def get_logger(name: str, json_format: bool = False) -> logging.Logger:
    """Return a logger, optionally with its own JSON handler.

    Loggers under ``modbuild.`` share the package handler; anything else
    propagates to whatever the host application configured.
    """
    _configure_package_root()
    key = f"{name}:{json_format}"
    if key in _loggers:
        return _loggers[key]

    logger = logging.getLogger(name)
    if name != "modbuild" and not name.startswith("modbuild."):
        logger.setLevel(_level_from_env())
    if json_format and not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False

    _loggers[key] = logger
    return logger


def set_level(level: int) -> None:
    """Override the package log level (the CLI's --debug flag)."""
    _configure_package_root()
    logging.getLogger("modbuild").setLevel(level)


class ContextLogger:
    """Logger wrapper that attaches fixed context fields to every record."""

    __slots__ = ("logger", "context")

    def __init__(self, logger: logging.Logger, **context):
        self.logger = logger
        self.context = context

    def _log(self, level: int, msg: str, exc_info: Any = None, **extra):
        if not self.logger.isEnabledFor(level):
            return
        record = self.logger.makeRecord(
            self.logger.name, level, "(unknown file)", 0, msg, (), exc_info,
        )
        record.extra_fields = {**self.context, **extra}
        self.logger.handle(record)

    def bind(self, **context) -> "ContextLogger":
        return ContextLogger(self.logger, **{**self.context, **context})

    def debug(self, msg: str, **extra):
        self._log(logging.DEBUG, msg, **extra)

    def info(self, msg: str, **extra):
        self._log(logging.INFO, msg, **extra)

    def warning(self, msg: str, **extra):
        self._log(logging.WARNING, msg, **extra)

    def error(self, msg: str, exc_info: Any = None, **extra):
        self._log(logging.ERROR, msg, exc_info=exc_info, **extra)

    def isEnabledFor(self, level: int) -> bool:
        return self.logger.isEnabledFor(level)


# ---------------------------------------------------------------------------
# Error taxonomy
# ---------------------------------------------------------------------------
class ModbuildError(Exception):
    """Base exception for all modbuild errors."""


class ConfigurationError(ModbuildError):
    """Invalid or incomplete build options; raised before any output mutation."""


class CompileError(ModbuildError):
    """The transform engine rejected its input."""

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic

    def __str__(self) -> str:
        base = super().__str__()
        if self.diagnostic:
            return f"{base}\n{self.diagnostic.strip()}"
        return base


class AssetIOError(ModbuildError):
    """Copying a non-source file into the output tree failed."""


class AuxiliaryStageError(ModbuildError):
    """A styles, binary or declaration stage failed."""


class UnresolvedSpecifierWarning(UserWarning):
    """A relative specifier in emitted output could not be resolved on disk."""

    def __init__(self, file: str, specifier: str):
        super().__init__(f"{file}: could not resolve {specifier!r}")
        self.file = file
        self.specifier = specifier


# ---------------------------------------------------------------------------
# Tolerant converters for environment values
# ---------------------------------------------------------------------------
def safe_int(value: Any, default: int, logger: Optional[logging.Logger] = None, context: str = "") -> int:
    """Convert to int, falling back to `default` (and warning) on bad input."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        if logger:
            logger.warning("Ignoring non-integer %s: %r", context or "value", value)
        return default


def safe_bool(value: Any, default: bool, logger: Optional[logging.Logger] = None, context: str = "") -> bool:
    """Convert 1/0, true/false, yes/no, on/off to bool; anything else is `default`."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE_VALUES:
        return True
    if s in _FALSE_VALUES:
        return False
    if logger:
        logger.warning("Ignoring non-boolean %s: %r", context or "value", value)
    return default


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable."""
    return safe_bool(os.environ.get(name), default, context=name)
