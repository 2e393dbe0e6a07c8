"""
fundgov Logging
===============

Process-wide logging for the governor and its CLI. The root logger is set up
once, on import, with a `rich` console handler (or a plain stream handler
when highlighting is off) and an optional size-rotated log file. Level,
format and outputs come from the dotenv-backed settings in `constants.py`;
`set_log_level` adjusts the level afterwards (the CLI's ``--log-level`` and
the ``[logging]`` config section both go through it).

Usage:
    >>> from fundgov.logger import get_logger
    >>> log = get_logger(__name__)
    >>> log.info("Proposal #0 created by alice")
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


LOG_FILE_PATH = Path.cwd() / "logs" / "fundgov.log"

# "(name)x" in a %-style format, with or without the leading '%'
_FIELD_RE = r"\([A-Za-z_]\w*\)[A-Za-z]"
_DATE_FORMAT_RE = re.compile(r"^(?=.*%[A-Za-z])(?:%%|%[-_0^#]*[A-Za-z]|[0-9 \t:\-/.,TZ+])+$")

_THEME = Theme({
    "fundgov.address":        "cyan",
    "fundgov.amount":         "bold white",
    "fundgov.choice_abstain": "bold dim",
    "fundgov.choice_against": "bold red",
    "fundgov.choice_for":     "bold green",
    "fundgov.failed":         "bold red",
    "fundgov.level_critical": "bold red reverse",
    "fundgov.level_debug":    "bold dim",
    "fundgov.level_error":    "bold red",
    "fundgov.level_info":     "bold green",
    "fundgov.level_warning":  "bold yellow",
    "fundgov.logger_name":    "magenta",
    "fundgov.passed":         "bold green",
    "fundgov.proposal":       "bold yellow",
    "fundgov.timestamp":      "bold cyan",
})


def _level_number(level: Optional[str]) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def _fallback_notice(message: str):
    # Logging is not configured yet, so report on stderr directly
    stamp = time.strftime(str(LOG_DATE_FORMAT.default()))
    print(f"{stamp} - fundgov.logger - {message}", file=sys.stderr)


class LogManager:
    """
    Singleton owning the root logger configuration.

    ``configure`` is idempotent: the first call installs handlers, later
    calls return immediately.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    instance = super().__new__(cls)
                    instance._configured = False
                    cls._instance = instance
        return cls._instance

    # ── Format validation ─────────────────────────────────────────────

    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Return *log_format* if it renders a test record cleanly, else the
        default format.
        """
        default = str(LOG_FORMAT.default())
        if not log_format:
            return default

        candidate = str(log_format)
        try:
            for field in re.finditer(_FIELD_RE, candidate):
                if field.start() == 0 or candidate[field.start() - 1] != "%":
                    raise ValueError(f"field {field.group()} lacks '%'")

            sample_record = logging.LogRecord(
                "fundgov", logging.INFO, "", 0, "format check", (), None
            )
            rendered = logging.Formatter(fmt=candidate).format(sample_record)
            if re.search("%" + _FIELD_RE, rendered):
                raise ValueError("unrendered fields left in output")
        except (ValueError, KeyError, TypeError) as e:
            _fallback_notice(f"Bad LOG_FORMAT ({e}), using default")
            return default
        return candidate

    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """Return *date_format* if it is made of strftime directives, else the default."""
        default = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return default

        candidate = str(date_format)
        if _DATE_FORMAT_RE.match(candidate) is None:
            _fallback_notice("Bad LOG_DATE_FORMAT, using default")
            return default
        return candidate

    # ── Handlers ──────────────────────────────────────────────────────

    @staticmethod
    def _console_handler(formatter: logging.Formatter) -> logging.Handler:
        if not LOG_CONSOLE_HIGHLIGHTING:
            handler = logging.StreamHandler(sys.stderr)
        else:
            handler = RichHandler(
                console=Console(theme=_THEME, highlight=False, stderr=True),
                highlighter=FundGovLogHighlighter(),
                keywords=[],
                markup=False,
                rich_tracebacks=True,
                show_level=False,
                show_path=False,
                show_time=False,
                omit_repeated_times=False,
            )
        handler.setFormatter(formatter)
        return handler

    @staticmethod
    def _file_handler(formatter: logging.Formatter, path: Path) -> logging.Handler:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename=str(path),
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setFormatter(formatter)
        return handler

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install root handlers once.

        Args:
            log_level:      Level name; defaults to LOG_LEVEL from .env
            log_file:       Rotating log path; defaults to ./logs/fundgov.log
            console_output: Attach the stderr console handler
            file_output:    Attach the file handler; defaults to LOG_FILE_OUTPUT
        """
        with self._lock:
            if self._configured:
                return

            level = _level_number(log_level or LOG_LEVEL)
            # Timestamps are UTC so logical-time runs read the same on every host
            formatter = TerminalSafeFormatter(
                fmt=self.validate_log_format(LOG_FORMAT),
                datefmt=self.validate_date_format(LOG_DATE_FORMAT) + " UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                handlers.append(self._console_handler(formatter))
            if LOG_FILE_OUTPUT if file_output is None else file_output:
                handlers.append(self._file_handler(formatter, log_file or LOG_FILE_PATH))

            root = logging.getLogger()
            root.handlers.clear()
            root.setLevel(level)
            for handler in handlers:
                handler.setLevel(level)
                root.addHandler(handler)

            self._configured = True

    def set_level(self, log_level: str) -> None:
        """Apply *log_level* to the root logger and every handler on it."""
        level = _level_number(log_level)
        root = logging.getLogger()
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)

    def get_logger(self, name: str) -> logging.Logger:
        if not self._configured:
            self.configure()
        return logging.getLogger(name)

    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    Formatter that strips terminal escapes from the rendered record.

    Voter ids and proposal descriptions are caller-supplied, so a crafted
    value could otherwise repaint the console or forge log lines.
    """

    # CSI sequences, two-byte ESC sequences, CR, and C0/DEL except \t and \n
    _unsafe_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]|[\x00-\x08\x0B-\x1F\x7F]"
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        """Remove escape sequences and control characters other than tab and newline."""
        if not text:
            return text
        return cls._unsafe_re.sub("", text)

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class FundGovLogHighlighter(RegexHighlighter):
    """Colours proposal refs, vote choices, outcomes and amounts in console logs."""

    base_style = "fundgov."
    highlights = [
        r"(?P<timestamp>^.*?UTC)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<proposal>#\d+)",
        r"(?P<choice_for>\bFOR\b)",
        r"(?P<choice_against>\bAGAINST\b)",
        r"(?P<choice_abstain>\bABSTAIN\b)",
        r"(?P<passed>\bPASSED\b)",
        r"(?P<failed>\bFAILED\b)",
        r"(?P<amount>\b(?:weight|share|budget|remainder)=\d+\b)",
        r"(?P<address>\b0x[0-9A-Za-z]{6,}\b)",
    ]


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Logger for *name*, configuring the root logger on first use."""
    return _manager.get_logger(name)


def set_log_level(level: str) -> None:
    """Change the active log level (CLI ``--log-level``, ``[logging] level``)."""
    _manager.set_level(level)


_manager.configure()
