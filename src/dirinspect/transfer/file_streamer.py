"""
File streaming implementation
Sends one file's raw bytes to the peer, terminated by the end marker
"""

import logging
from typing import Optional

from ..core.errors import ErrorKind, OperationError
from ..server.channel import SessionChannel
from ..server.protocol import CANNOT_OPEN_FILE, END_MARK


class FileStreamer:
    """
    Streams files chunk by chunk without buffering the whole file
    """

    CHUNK_SIZE = 4096

    def __init__(self, chunk_size: int = None):
        """Initialize file streamer"""
        self.chunk_size = chunk_size or self.CHUNK_SIZE
        self.logger = logging.getLogger(__name__)

    def inspect(self, file_path: str, channel: SessionChannel) -> Optional[OperationError]:
        """
        Send a file's content through the channel

        If the file cannot be opened the peer gets an error line and the
        end marker. A read or send failure after streaming has started
        aborts the transfer without sending the end marker.

        Args:
            file_path: Path to file to send
            channel: Connection to the peer

        Returns:
            None if successful, the error otherwise
        """
        try:
            f = open(file_path, 'rb')
        except OSError as e:
            channel.send_text(CANNOT_OPEN_FILE + END_MARK)
            error = OperationError.from_os_error(
                ErrorKind.OPEN_FAILED, f"Failed to open file: {file_path}", e
            )
            self.logger.error(f"Inspect failed: {error}")
            return error

        bytes_sent = 0
        with f:
            while True:
                try:
                    chunk = f.read(self.chunk_size)
                except OSError as e:
                    error = OperationError.from_os_error(
                        ErrorKind.READ_FAILED, f"Read failed for file: {file_path}", e
                    )
                    self.logger.error(f"Inspect failed after {bytes_sent} bytes: {error}")
                    return error
                if not chunk:
                    break
                if not channel.send_bytes(chunk):
                    error = OperationError(
                        ErrorKind.SEND_FAILED, f"Send failed while streaming file: {file_path}"
                    )
                    self.logger.error(f"Inspect failed after {bytes_sent} bytes: {error}")
                    return error
                bytes_sent += len(chunk)

        if not channel.send_text(END_MARK):
            error = OperationError(
                ErrorKind.SEND_FAILED, f"Failed to send end marker for file: {file_path}"
            )
            self.logger.error(f"Inspect failed: {error}")
            return error

        self.logger.info(f"Sent file {file_path} ({bytes_sent} bytes)")
        return None
