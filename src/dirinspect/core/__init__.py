"""
Core configuration and error types
"""

from .config import Config, ServerConfig, StorageConfig, TransferConfig, LoggingConfig, ClientConfig
from .errors import ErrorKind, OperationError

__all__ = [
    "Config",
    "ServerConfig",
    "StorageConfig",
    "TransferConfig",
    "LoggingConfig",
    "ClientConfig",
    "ErrorKind",
    "OperationError",
]
