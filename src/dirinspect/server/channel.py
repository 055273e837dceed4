"""
Socket wrapper used by every peer-facing component
"""

import logging
import socket
from typing import Optional

from .protocol import BUFFER_SIZE, decode, encode


class SessionChannel:
    """
    Blocking byte channel to one connected peer.

    Send methods return False instead of raising when the peer is gone;
    receive returns None on end-of-stream or error.
    """

    def __init__(self, sock: socket.socket, buffer_size: int = BUFFER_SIZE):
        self.sock = sock
        self.buffer_size = buffer_size
        self.logger = logging.getLogger(__name__)

    def send_bytes(self, data: bytes) -> bool:
        try:
            self.sock.sendall(data)
            return True
        except OSError as e:
            self.logger.error(f"Error sending data: {e}")
            return False

    def send_text(self, text: str) -> bool:
        return self.send_bytes(encode(text))

    def receive(self) -> Optional[bytes]:
        """
        Read one inbound chunk

        Returns:
            Received bytes, or None if the peer closed or the read failed
        """
        try:
            data = self.sock.recv(self.buffer_size)
        except OSError as e:
            self.logger.error(f"Error receiving data: {e}")
            return None
        if not data:
            return None
        return data

    def receive_text(self) -> Optional[str]:
        data = self.receive()
        if data is None:
            return None
        return decode(data)

    def close(self):
        try:
            self.sock.close()
        except OSError as e:
            self.logger.debug(f"Error closing socket: {e}")
