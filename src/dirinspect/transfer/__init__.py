"""
Raw file streaming
"""

from .file_streamer import FileStreamer

__all__ = ["FileStreamer"]
