"""
dirinspect

Authenticated remote directory traversal, content search and file
inspection over a line-oriented TCP protocol.
"""

__version__ = "0.1.0"

from .server.server import SessionServer
from .server.session import ClientSession
from .client.client import InspectClient
from .core.config import Config

__all__ = [
    "SessionServer",
    "ClientSession",
    "InspectClient",
    "Config",
]
