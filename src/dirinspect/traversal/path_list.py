"""
Transient list of discovered file paths, one per line
"""

import logging
import os
import tempfile
from typing import IO, Optional


class PathList:
    """
    Per-session path list file.

    Each session gets its own uniquely named file so that concurrent
    sessions never read each other's traversal output. The file is
    truncated at the start of every traversal and removed on cleanup().
    Only a line feed ends an entry, so a carriage return inside a file
    name stays part of the path.
    """

    def __init__(self, directory: Optional[str] = None, prefix: str = 'dirinspect-paths-'):
        if directory:
            os.makedirs(directory, exist_ok=True)
        fd, self.path = tempfile.mkstemp(prefix=prefix, suffix='.txt', dir=directory)
        os.close(fd)
        self.logger = logging.getLogger(__name__)

    def open_for_write(self) -> IO[str]:
        """Truncate the list and return a text handle for appending paths"""
        return open(self.path, 'w', encoding='utf-8', errors='surrogateescape', newline='\n')

    def read(self) -> IO[str]:
        return open(self.path, 'r', encoding='utf-8', errors='surrogateescape', newline='\n')

    def cleanup(self):
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove path list {self.path}: {e}")
