"""
Logging for the provider.

Every module asks for its logger through :func:`get_logger`; the first call
installs the root handlers exactly once. Console output goes through rich
(or a plain stream handler when highlighting is switched off in ``.env``),
and a size-rotated file under ``logs/`` can be enabled alongside it.

    >>> from nearweb3.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("eth_blockNumber --> http://localhost:3030")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FILE_OUTPUT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
)

DEFAULT_LOG_FILE = Path(__file__).resolve().parent.parent / "logs" / "nearweb3.log"

# Transport libraries that log each request at INFO
QUIET_LOGGERS = ("httpx", "httpx._client", "httpcore")

CONSOLE_THEME = Theme({
    "nearweb3.arrow": "bold yellow",
    "nearweb3.level_critical": "bold red reverse",
    "nearweb3.level_debug": "bold dim",
    "nearweb3.level_error": "bold red",
    "nearweb3.level_info": "bold green",
    "nearweb3.level_warning": "bold yellow",
    "nearweb3.logger_name": "magenta",
    "nearweb3.rpc_method": "bold white",
    "nearweb3.near_error": "bold red",
    "nearweb3.timestamp": "bold cyan",
    "nearweb3.url": "cyan",
})


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that never lets escape sequences reach the terminal.

    Account ids, contract results and node error messages are remote data;
    ANSI sequences, carriage returns and other control characters in them are
    dropped. Tabs and newlines survive.
    """

    _ESCAPES = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]")
    _CONTROLS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

    @classmethod
    def sanitize(cls, text: str) -> str:
        if not text:
            return text
        return cls._CONTROLS.sub("", cls._ESCAPES.sub("", text))

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class ProviderHighlighter(RegexHighlighter):
    """Colours RPC method names, level names, node URLs and request arrows."""

    base_style = "nearweb3."
    highlights = [
        r"(?P<timestamp>^(.*?)UTC)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<rpc_method>\b(eth|net|web3|near)_[A-Za-z]+\b)",
        r"(?P<arrow>-->|<--)",
        r"(?P<near_error>\b[A-Z][A-Za-z]+(Error|Exists|DoesNotExist)\b)",
        r"(?P<url>https?://\S+)",
    ]


def _build_formatter() -> TerminalSafeFormatter:
    fmt = LogManager.validate_log_format(LOG_FORMAT)
    datefmt = f"{LOG_DATE_FORMAT or LOG_DATE_FORMAT.default()} UTC"
    formatter = TerminalSafeFormatter(fmt=fmt, datefmt=datefmt)
    formatter.converter = time.gmtime
    return formatter


def _console_handler() -> logging.Handler:
    if not LOG_CONSOLE_HIGHLIGHTING:
        return logging.StreamHandler(sys.stderr)
    return RichHandler(
        console=Console(theme=CONSOLE_THEME, highlight=False, stderr=True),
        highlighter=ProviderHighlighter(),
        keywords=[],
        markup=False,
        rich_tracebacks=True,
        show_time=False,
        show_level=False,
        show_path=False,
    )


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=str(path),
        maxBytes=LOG_MAX_FILE_SIZE,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )


class LogManager:
    """Process-wide owner of the root logger's handlers."""

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._configured = False
                    cls._instance = instance
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Return ``log_format`` if it renders a sample record, else the default.

        Unknown record attributes only surface when a record is formatted.
        """
        fallback = str(LOG_FORMAT.default())
        if not log_format:
            return fallback
        sample = logging.LogRecord("nearweb3", logging.INFO, "", 0, "sample", (), None)
        try:
            logging.Formatter(fmt=str(log_format)).format(sample)
        except (KeyError, TypeError, ValueError) as e:
            sys.stderr.write(f"nearweb3.logger: bad LOG_FORMAT ({e}), using the default\n")
            return fallback
        return str(log_format)

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the root logger. Later calls are no-ops.

        ``log_level`` and ``file_output`` default to the ``.env`` settings;
        ``log_file`` defaults to ``logs/nearweb3.log`` beside the package.
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root = logging.getLogger()
            root.setLevel(level)
            root.handlers.clear()
            for name in QUIET_LOGGERS:
                logging.getLogger(name).setLevel(logging.WARNING)

            handlers = []
            if console_output:
                handlers.append(_console_handler())
            if LOG_FILE_OUTPUT if file_output is None else file_output:
                handlers.append(_file_handler(log_file or DEFAULT_LOG_FILE))

            formatter = _build_formatter()
            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)

            self._configured = True

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``, configuring logging on first use."""
    return LogManager().get_logger(name)
