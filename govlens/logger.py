"""
govlens Logging
===============

Process-wide logging for the service, the CLI and the library. Console output
goes through ``rich`` with governance-aware highlighting; a rotating file log
can be enabled with ``LOG_FILE_OUTPUT=true`` in ``.env``.

Usage:
    >>> from govlens.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Dashboard assembled")
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
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "govlens.log"

# Library loggers and the most verbose level they may emit at
QUIET_LIBRARIES = {
    "aiohttp": logging.WARNING,
    "httpcore": logging.WARNING,
    "httpx": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "web3": logging.WARNING,
    "uvicorn": logging.ERROR,
    "uvicorn.asgi": logging.ERROR,
    "uvicorn.error": logging.ERROR,
}

GOVLENS_THEME = Theme(
    {
        "govlens.address":        "cyan",
        "govlens.arrow":          "bold yellow",
        "govlens.block":          "bold blue",
        "govlens.level_critical": "bold red reverse",
        "govlens.level_debug":    "bold dim",
        "govlens.level_error":    "bold red",
        "govlens.level_info":     "bold green",
        "govlens.level_warning":  "bold yellow",
        "govlens.logger_name":    "magenta",
        "govlens.method":         "bold white",
        "govlens.state":          "bold magenta",
        "govlens.timestamp":      "bold cyan",
        "govlens.trx_hash":       "dim cyan",
        "govlens.url":            "cyan",
    }
)


class TerminalSafeFormatter(logging.Formatter):
    """
    Strips ANSI escapes and control characters from formatted records.

    Proposal descriptions are arbitrary on-chain text and end up in log lines.
    """

    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"      # CSI sequences
        r"|\x1b[@-Z\\-_]"               # two-byte escapes
        r"|[\x00-\x08\x0B-\x1F\x7F]"    # control chars except tab and newline
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        return cls._unsafe_re.sub("", text) if text else text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class GovLensLogHighlighter(RegexHighlighter):
    """Highlights addresses, hashes, blocks, RPC methods and proposal states."""

    base_style = "govlens."
    highlights = [
        r"(?P<arrow>(\-\->)|(<--))",
        r"(?P<trx_hash>\b0x[0-9a-fA-F]{64}\b)",
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<block>\bblock[s]? #?\d[\d,]*\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<method>\b(eth_[A-Za-z]+|gov_[A-Za-z]+|GET|POST)\b)",
        r"(?P<state>\b(pending|active|defeated|succeeded|queued|canceled|executed|expired)\b)",
        r"(?P<timestamp>^(.*?)UTC)",
        r"(?P<url>https?://\S+)",
    ]


class LogManager:
    """
    Singleton owning the root logger setup.

    ``configure`` runs once per process; later calls are no-ops.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._configured = False
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Attach the console handler and, when enabled, the rotating file handler.

        Args:
            log_level: Level name, defaults to ``LOG_LEVEL``.
            log_file: Defaults to ``logs/govlens.log`` next to the package.
            console_output: Log to stderr.
            file_output: Overrides ``LOG_FILE_OUTPUT``.
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root_logger = logging.getLogger()
            root_logger.setLevel(level)
            root_logger.handlers.clear()
            for name, lib_level in QUIET_LIBRARIES.items():
                logging.getLogger(name).setLevel(lib_level)

            formatter = TerminalSafeFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT + " UTC")
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler())
            if LOG_FILE_OUTPUT if file_output is None else file_output:
                handlers.append(self._file_handler(log_file or LOG_FILE_PATH))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root_logger.addHandler(handler)

            self._configured = True

    @staticmethod
    def _console_handler() -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            return logging.StreamHandler(sys.stderr)
        return RichHandler(
            console=Console(theme=GOVLENS_THEME, highlight=False, stderr=True),
            highlighter=GovLensLogHighlighter(),
            keywords=[],
            rich_tracebacks=True,
            omit_repeated_times=False,
            show_path=False,
            show_time=False,
            show_level=False,
            markup=False,
        )

    @staticmethod
    def _file_handler(path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module logger, configuring logging on first use."""
    return _manager.get_logger(name)


_manager.configure()
