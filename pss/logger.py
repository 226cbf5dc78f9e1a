"""
PSS Logging System
==================

A unified, thread-safe logging utility for the PSS provider core. This module
integrates with the standard Python `logging` library and the `rich` library to
provide structured, safe, and visually distinct logging outputs.

Library modules only fetch loggers; handlers are installed when an application
calls `configure_logging` (the `pss` CLI does so on start-up).

Usage:
    >>> from pss.logger import configure_logging, get_logger
    >>> configure_logging(log_level="INFO")
    >>> logger = get_logger(__name__)
    >>> logger.info("Provider state loaded")
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


# Define log file location relative to the project root
PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "pss.log"


class LogManager:
    """
    Manages logging configuration via the Singleton pattern.

    This class ensures that the logging subsystem is initialized exactly once.
    It handles the setup of 'Rich' console and rotating file handlers for
    persistent storage.

    Attributes:
        _instance (LogManager): The singleton instance.
        _lock (threading.Lock): Thread lock for atomic initialization.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()


    def __new__(cls) -> "LogManager":
        """Creates or returns the existing singleton instance."""
        # Double-checked locking pattern for thread-safe singleton initialization
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance


    def __init__(self) -> None:
        """Initializes the LogManager instance."""
        if self._initialized:
            return
        self._configured = False
        self._initialized = True


    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Validates the syntax of a logging format string.

        Args:
            log_format (str): The logging format string (e.g., "%(asctime)s - %(message)s").

        Returns:
            str: The validated format string, or the default `LOG_FORMAT` if validation fails.
        """
        try:
            if not log_format:
                return str(LOG_FORMAT.default())

            log_format = str(log_format)

            # This regex looks for valid keys inside format specifiers
            format_specifier_pattern = r"\([a-zA-Z_][a-zA-Z0-9_]*\)[a-zA-Z]"
            paren_pattern = re.compile(format_specifier_pattern)

            # Ensure every match is preceded by a '%' char
            for match in paren_pattern.finditer(log_format):
                start_pos = match.start()
                if start_pos == 0 or log_format[start_pos - 1] != "%":
                    raise ValueError("Malformed format specifier.")

            # Test formatting against a dummy record to catch runtime errors
            formatter = logging.Formatter(fmt=log_format)
            record = logging.LogRecord(
                name="test", level=logging.INFO, pathname="", lineno=0,
                msg="test", args=(), exc_info=None,
            )
            formatted_output = formatter.format(record)

            if re.search(format_specifier_pattern, formatted_output):
                raise ValueError("Format specifiers not properly processed.")

            return log_format
        except (ValueError, KeyError, TypeError) as e:
            print(
                f"{time.strftime('%Y-%m-%d %H:%M:%S')} - pss.logger - Validation Error: {e}. Using default.",
                file=sys.stderr,
            )
            return str(LOG_FORMAT.default())


    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """
        Validates the syntax of a date format string against standard strftime directives.

        Args:
            date_format (str): The date format string (e.g., "%Y-%m-%d").

        Returns:
            str: The validated date format string, or default if validation fails.
        """
        if not date_format:
            return str(LOG_DATE_FORMAT.default())

        date_format = str(date_format)

        # Regex strictly matches valid strftime directives (e.g., %Y, %m, %d)
        # and standard separators to prevent injection of arbitrary text.
        date_format_pattern = re.compile(
            rf"^(?=.*%(?!%)(?:[EO])?(?:[-_0^#])*(?:[A-DF-HIM-NPR-VW-Za-hj-lm-npr-uw-z]))"
            rf"(?:%%|%(?:[EO])?(?:[-_0^#])*(?:[A-DF-HIM-NPR-VW-Za-hj-lm-npr-uw-z])|[0-9 \t:\-\/\.,TZ+])+$"
        )

        if not date_format_pattern.match(date_format):
            print(
                f"{time.strftime(str(LOG_DATE_FORMAT.default()))} - pss.logger - "
                f"Invalid date format. Using default.",
                file=sys.stderr,
            )
            return str(LOG_DATE_FORMAT.default())

        return date_format


    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
        force: bool = False,
    ) -> None:
        """
        Configures the root logger with console and file handlers.

        Args:
            log_level (Optional[str]): Logging level (DEBUG, INFO, etc.). Defaults to env var.
            log_file (Optional[Path]): Absolute path to log file. Defaults to `logs/pss.log`.
            console_output (bool): Enable console logging. Defaults to True.
            file_output (Optional[bool]): Enable rotating file logging. Defaults to env var.
            force (bool): Reconfigure even if logging was already set up.
        """
        with self._lock:
            if self._configured and not force:
                return

            level_str = log_level or LOG_LEVEL
            numeric_level = getattr(logging, str(level_str).upper(), logging.INFO)

            root_logger = logging.getLogger()
            root_logger.setLevel(numeric_level)
            root_logger.handlers.clear()

            log_format = self.validate_log_format(LOG_FORMAT)
            date_format = self.validate_date_format(LOG_DATE_FORMAT)

            # Uses UTC for consistency across different server timezones
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    pss_theme = Theme(
                        {
                            "pss.arrow":          "bold yellow",
                            "pss.chain_id":       "cyan",
                            "pss.error_kind":     "bold red",
                            "pss.level_critical": "bold red reverse",
                            "pss.level_debug":    "bold dim",
                            "pss.level_error":    "bold red",
                            "pss.level_info":     "bold green",
                            "pss.level_warning":  "bold yellow",
                            "pss.logger_name":    "magenta",
                            "pss.power":          "bold white",
                            "pss.tag":            "bold magenta",
                            "pss.timestamp":      "bold cyan",
                        }
                    )

                    console = Console(theme=pss_theme, highlight=False, stderr=True)

                    rich_handler = RichHandler(
                        console=console,
                        highlighter=PSSLogHighlighter(),
                        keywords=[],
                        rich_tracebacks=True,
                        omit_repeated_times=False,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    )
                    rich_handler.setLevel(numeric_level)
                    rich_handler.setFormatter(formatter)
                    root_logger.addHandler(rich_handler)
                else:
                    console_handler = logging.StreamHandler(sys.stderr)
                    console_handler.setLevel(numeric_level)
                    console_handler.setFormatter(formatter)
                    root_logger.addHandler(console_handler)

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)

            if file_output:
                log_file_path = log_file or LOG_FILE_PATH
                log_file_path.parent.mkdir(parents=True, exist_ok=True)

                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(log_file_path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )

                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)

            self._configured = True


    def get_logger(self, name: str) -> logging.Logger:
        """
        Retrieves the logger instance for a specific module.

        Handlers are only installed by `configure`, which applications call
        explicitly; importing a module that logs leaves the root logger alone.

        Args:
            name (str): The name of the logger (typically `__name__`).

        Returns:
            logging.Logger: A standard Python logger.
        """
        return logging.getLogger(name)


    @property
    def is_configured(self) -> bool:
        """Returns True if the logging system has been successfully configured."""
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    A formatter class that sanitizes log output.

    Validator addresses and chain ids arrive from transactions, so they are
    untrusted text. This formatter strips ANSI escape sequences and
    non-printable control characters before anything reaches a terminal.
    """

    # Matches ANSI CSI sequences (colors, cursor moves) and single ESC chars
    _ansi_escape_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
    )
    # Matches control chars (0x00-0x1F) excluding Tab and Newline
    _control_chars_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
    _carriage_return_re = re.compile(r"\r")


    @classmethod
    def sanitize(cls, text: str) -> str:
        """Removes potentially dangerous characters from the provided text."""
        if not text:
            return text
        text = cls._ansi_escape_re.sub("", text)
        text = cls._carriage_return_re.sub("", text)
        text = cls._control_chars_re.sub("", text)
        return text


    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class PSSLogHighlighter(RegexHighlighter):
    """Regex-based coloring for provider log lines."""

    base_style = "pss."
    highlights = [
        r"(?P<arrow>(\-\->)|(<--))",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<error_kind>\b(ValidatorInTopN|ValidatorNotOptedIn)\b)",
        r"consumer=(?P<chain_id>[\w.\-]+)",
        r"(?P<power>\bpower=\d+\b)",
        r"(?P<tag>\[.*?\])",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """
    Public accessor of the logging system.
    Delegates to the Singleton LogManager. Does not configure handlers; see
    `configure_logging`.

    Args:
        name (str): The name of the module requesting the logger.

    Returns:
        logging.Logger: The logger instance.
    """
    return _manager.get_logger(name)


def configure_logging(**kwargs) -> None:
    """Configure the logging system, e.g. from a loaded `LoggingConfig`."""
    _manager.configure(force=True, **kwargs)
