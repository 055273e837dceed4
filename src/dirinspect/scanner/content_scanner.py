"""
Content scanner implementation
Searches the files named in a path list for an exact substring
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from ..core.errors import ErrorKind, OperationError
from ..server.protocol import encode
from ..traversal.path_list import PathList


@dataclass
class ScanResult:
    matches: List[str] = field(default_factory=list)
    error: Optional[OperationError] = None


class ContentScanner:
    """
    Substring search over whole file contents.

    Files are read fully into memory and compared as bytes, so the
    match is case-sensitive and works on binary content.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def scan(self, path_list: PathList, pattern: str) -> ScanResult:
        """
        Scan every path in a path list

        Args:
            path_list: Paths produced by a traversal
            pattern: Substring to look for

        Returns:
            ScanResult with matching paths in list order
        """
        try:
            handle = path_list.read()
        except OSError as e:
            error = OperationError.from_os_error(
                ErrorKind.OPEN_FAILED, f"Failed to open input file list: {path_list.path}", e
            )
            self.logger.error(f"Scan failed: {error}")
            return ScanResult(error=error)

        with handle:
            return self.scan_paths((line.rstrip('\n') for line in handle), pattern)

    def scan_paths(self, paths: Iterable[str], pattern: str) -> ScanResult:
        """
        Scan an iterable of paths

        An unopenable file is skipped. A read failure on an opened file
        stops the scan and returns the matches found so far.
        """
        needle = encode(pattern)
        result = ScanResult()

        for file_path in paths:
            if not file_path:
                continue
            try:
                f = open(file_path, 'rb')
            except OSError:
                continue

            with f:
                try:
                    content = f.read()
                except OSError as e:
                    result.error = OperationError.from_os_error(
                        ErrorKind.READ_FAILED, f"Read failed for file: {file_path}", e
                    )
                    self.logger.error(f"Scan failed: {result.error}")
                    return result

            if needle in content:
                result.matches.append(file_path)

        self.logger.debug(f"Scan for {pattern!r} matched {len(result.matches)} files")
        return result
