"""
Directory traversal
Streams discovered directories and files to the peer while collecting
regular file paths for later content scanning
"""

import logging
import os
import stat
from dataclasses import dataclass, field
from typing import IO, Callable, Iterator, List, Optional, Tuple

from ..core.errors import ErrorKind, OperationError

Announcer = Callable[[str], bool]

# (directory path, names not yet visited)
Frame = Tuple[str, Iterator[str]]


@dataclass
class TraversalResult:
    """Files found under one root, plus the errors of abandoned directories"""
    files: List[str] = field(default_factory=list)
    errors: List[OperationError] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.files)


class DirectoryTraverser:
    """
    Walks a directory tree depth-first in filesystem enumeration order.

    Pending directories are kept on an explicit stack, so tree depth is
    not limited by the interpreter's recursion limit. Each directory is
    listed up front and its handle closed before descending, so depth is
    not limited by open file descriptors either.

    Failures are contained per directory: a directory that cannot be
    opened, or whose output cannot be written, abandons only its own
    remaining entries. Symbolic links are followed and cycles are not
    detected.
    """

    def __init__(self, announce: Announcer, sink: Optional[IO[str]] = None):
        """
        Initialize the traverser

        Args:
            announce: Sends one text line to the peer, returns False on failure
            sink: Text file receiving one discovered path per line (optional)
        """
        self.announce = announce
        self.sink = sink
        self.logger = logging.getLogger(__name__)

    def traverse(self, path: str) -> TraversalResult:
        """
        List every regular file under a directory

        Args:
            path: Directory to walk

        Returns:
            TraversalResult for the whole tree
        """
        result = TraversalResult()
        stack: List[Frame] = []
        self._enter(path, stack, result)

        while stack:
            dir_path, names = stack[-1]
            name = next(names, None)
            if name is None:
                stack.pop()
                continue

            full_path = os.path.join(dir_path, name)
            try:
                st = os.stat(full_path)
            except OSError as e:
                self.logger.warning(f"Skipping {full_path}: {e}")
                continue

            if stat.S_ISDIR(st.st_mode):
                self._enter(full_path, stack, result)
            elif stat.S_ISREG(st.st_mode):
                result.files.append(full_path)

                if not self.announce(f"File: {full_path}\n"):
                    self.logger.warning(f"Failed announcing {full_path}")

                error = self._record(full_path)
                if error is not None:
                    self.logger.error(f"Traversal failed: {error}")
                    self.announce(f"ERROR: {error}\n")
                    result.errors.append(error)
                    stack.pop()

        return result

    def _enter(self, path: str, stack: List[Frame], result: TraversalResult):
        """List a directory and push it, or record why it was abandoned"""
        try:
            with os.scandir(path) as entries:
                names = [entry.name for entry in entries]
        except OSError as e:
            error = OperationError.from_os_error(
                ErrorKind.OPEN_FAILED, f"Cannot open directory: {path}", e
            )
            self.logger.error(f"Traversal failed: {error}")
            self.announce(f"ERROR: {error.message}\n")
            result.errors.append(error)
            return

        if not self.announce(f"Directory: {path}\n"):
            error = OperationError(
                ErrorKind.SEND_FAILED, f"Failed sending directory info for {path}"
            )
            self.logger.error(f"Traversal failed: {error}")
            result.errors.append(error)
            return

        stack.append((path, iter(names)))

    def _record(self, full_path: str) -> Optional[OperationError]:
        if self.sink is None:
            return None
        try:
            self.sink.write(full_path + "\n")
        except OSError as e:
            return OperationError.from_os_error(
                ErrorKind.WRITE_FAILED, "Failed writing to output file", e
            )
        return None
