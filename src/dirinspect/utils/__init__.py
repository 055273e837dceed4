"""
Logging helpers shared by the server and the client
"""

from .logger import setup_logging, SessionLogFactory, close_session_log

__all__ = ["setup_logging", "SessionLogFactory", "close_session_log"]
