"""
Logging configuration
"""

import itertools
import logging
import re
import sys
from pathlib import Path
from typing import Optional


def setup_logging(level: str = 'INFO', log_file: str = None, log_format: str = None):
    """
    Setup logging configuration

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        log_format: Log message format (optional)
    """
    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(console_handler)

    # File handler (if specified)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        file_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(file_handler)

    logging.info("Logging configured successfully")


_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def safe_file_component(name: str) -> str:
    """Make a username usable as part of a file name"""
    cleaned = _UNSAFE_CHARS.sub('_', name).lstrip('.')
    return cleaned or '_'


class SessionLogFactory:
    """
    Creates per-session log sinks.

    Each sink is a dedicated logger that writes bare event lines
    ("Command: ...", "Session ended") to <log_dir>/<username>_<tag>.log.
    Sinks are standalone loggers: they are not added to the logging
    registry and do not propagate to the process-level handlers.
    """

    _ids = itertools.count(1)

    def __init__(self, log_dir: str = 'logs'):
        self.log_dir = Path(log_dir)
        self.logger = logging.getLogger(__name__)

    def path_for(self, username: str, session_tag: str) -> Path:
        return self.log_dir / f"{safe_file_component(username)}_{session_tag}.log"

    def open(self, username: str, session_tag: str) -> logging.Logger:
        """
        Open the append-only log for one authenticated session

        Args:
            username: Authenticated identity
            session_tag: Process identifier (plus connection number in thread mode)

        Returns:
            Logger bound to the session file
        """
        # Unregistered: the logging manager keeps no reference to it
        sink = logging.Logger(f"dirinspect.session.{next(self._ids)}")
        sink.setLevel(logging.INFO)
        sink.propagate = False

        log_path = self.path_for(username, session_tag)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_path)
        except OSError as e:
            # Session continues without a log file
            self.logger.error(f"Failed to open session log {log_path}: {e}")
            sink.addHandler(logging.NullHandler())
            return sink

        handler.setFormatter(logging.Formatter('%(message)s'))
        sink.addHandler(handler)
        return sink


def close_session_log(sink: Optional[logging.Logger]):
    """Detach and close every handler of a session sink"""
    if sink is None:
        return
    for handler in list(sink.handlers):
        sink.removeHandler(handler)
        handler.close()
