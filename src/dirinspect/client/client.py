"""
Client implementation for inspection sessions
"""

import socket
import logging
from typing import List, Optional

from ..server.protocol import (
    ACCOUNT_CREATED,
    BUFFER_SIZE,
    END_MARK,
    LOGIN_OK,
    MATCHES_HEADER,
    decode,
    encode,
)

END_MARK_BYTES = END_MARK.encode()


class ProtocolError(Exception):
    """Raised when the server closes or misbehaves mid-exchange"""
    pass


class InspectClient:
    """
    Client for one authenticated session with an inspection server.

    Every framed response is read until the end marker, which may arrive
    split across several reads.
    """

    def __init__(self, server_host: str = '127.0.0.1', server_port: int = 9090,
                 buffer_size: int = BUFFER_SIZE, timeout: Optional[float] = None):
        """
        Initialize the client

        Args:
            server_host: Server host address
            server_port: Server port number
            buffer_size: Receive buffer size
            timeout: Socket timeout in seconds (None blocks)
        """
        self.server_host = server_host
        self.server_port = server_port
        self.buffer_size = buffer_size
        self.timeout = timeout
        self.sock: Optional[socket.socket] = None
        self._pending = b''
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_socket(cls, sock: socket.socket, buffer_size: int = BUFFER_SIZE) -> "InspectClient":
        """Wrap an already connected socket"""
        client = cls(buffer_size=buffer_size)
        client.sock = sock
        return client

    def connect(self):
        self.sock = socket.create_connection((self.server_host, self.server_port), self.timeout)
        self.logger.info(f"Connected to {self.server_host}:{self.server_port}")

    def close(self):
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    def __enter__(self):
        if self.sock is None:
            self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ==================== Handshake ====================

    def _recv_chunk(self) -> bytes:
        if self._pending:
            data, self._pending = self._pending, b''
            return data
        data = self.sock.recv(self.buffer_size)
        if not data:
            raise ProtocolError("Connection closed by server")
        return data

    def login(self, username: str, password: str) -> str:
        """
        Perform the username/password handshake

        Args:
            username: Account name
            password: Account password

        Returns:
            The server's verdict line, e.g. "Login successful\\n"
        """
        self._recv_chunk()  # "Username: "
        self.sock.sendall(encode(username))
        self._recv_chunk()  # "Password: "
        self.sock.sendall(encode(password))
        verdict = decode(self._recv_chunk())
        self.logger.info(f"Authentication result: {verdict.strip()}")
        return verdict

    @staticmethod
    def accepted(verdict: str) -> bool:
        return verdict in (LOGIN_OK, ACCOUNT_CREATED)

    # ==================== Commands ====================

    def send_raw(self, line: str):
        """Send one command line without waiting for a response"""
        self.sock.sendall(encode(line))

    def read_response(self) -> bytes:
        """
        Read until the end marker

        Returns:
            Response bytes without the end marker

        Raises:
            ProtocolError: If the server closes before the end marker
        """
        data = b''
        while True:
            pos = data.find(END_MARK_BYTES)
            if pos != -1:
                self._pending = data[pos + len(END_MARK_BYTES):]
                return data[:pos]
            if self._pending:
                chunk, self._pending = self._pending, b''
            else:
                chunk = self.sock.recv(self.buffer_size)
            if not chunk:
                raise ProtocolError("Connection closed before end of response")
            data += chunk

    def request(self, line: str) -> bytes:
        self.send_raw(line)
        return self.read_response()

    def traverse(self, path: str) -> str:
        return decode(self.request(f"TRAVERSE {path}"))

    def search(self, path: str, pattern: str) -> str:
        return decode(self.request(f"SEARCH {path} {pattern}"))

    def inspect(self, path: str) -> bytes:
        return self.request(f"INSPECT {path}")

    def exit(self):
        self.send_raw("EXIT")


def parse_total_files(response: str) -> Optional[int]:
    """Extract the count from a TRAVERSE response"""
    for line in reversed(response.splitlines()):
        if line.startswith("Total Files: "):
            return int(line[len("Total Files: "):])
    return None


def parse_matches(response: str) -> List[str]:
    """Extract matched paths from a SEARCH response"""
    _, header, tail = response.partition(MATCHES_HEADER)
    if not header:
        return []
    return [line for line in tail.split('\n') if line]


def parse_listed_files(response: str) -> List[str]:
    """Extract the "File: ..." announcements from a TRAVERSE or SEARCH response"""
    return [line[len("File: "):] for line in response.split('\n') if line.startswith("File: ")]
