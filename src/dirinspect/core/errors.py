"""
Error values returned by filesystem and network operations
"""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Category of a failed operation"""
    OPEN_FAILED = "open-failed"
    READ_FAILED = "read-failed"
    WRITE_FAILED = "write-failed"
    SEND_FAILED = "send-failed"
    RECEIVE_FAILED = "receive-failed"


@dataclass(frozen=True)
class OperationError:
    """
    A failure carried back to the caller by return value.

    Attributes:
        kind: What went wrong
        message: Peer-facing description (no trailing newline)
        cause: OS-level detail, if any
    """
    kind: ErrorKind
    message: str
    cause: str = ""

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} | Error: {self.cause}"
        return self.message

    @classmethod
    def from_os_error(cls, kind: ErrorKind, message: str, exc: OSError) -> "OperationError":
        return cls(kind, message, exc.strerror or str(exc))
