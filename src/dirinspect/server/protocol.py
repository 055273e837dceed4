"""
Wire protocol constants and command parsing
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

END_MARK = "<<END>>\n"
BUFFER_SIZE = 4096

# Strings are carried as UTF-8; undecodable bytes survive as surrogates
# so that non-UTF-8 paths round-trip through the filesystem calls.
ENCODING = 'utf-8'
ENCODING_ERRORS = 'surrogateescape'

USERNAME_PROMPT = "Username: "
PASSWORD_PROMPT = "Password: "
LOGIN_OK = "Login successful\n"
LOGIN_FAILED = "Incorrect password\n"
ACCOUNT_CREATED = "Account created\n"
INVALID_USERNAME = "Invalid username\n"

UNKNOWN_COMMAND = "ERROR: Unknown command\n"
NO_MATCHES = "\nNo matches found\n"
MATCHES_HEADER = "\nMatched Files:\n"
CANNOT_OPEN_FILE = "ERROR: Cannot open file\n"


def total_files_line(count: int) -> str:
    return f"\nTotal Files: {count}\n"


def encode(text: str) -> bytes:
    return text.encode(ENCODING, ENCODING_ERRORS)


def decode(data: bytes) -> str:
    return data.decode(ENCODING, ENCODING_ERRORS)


def strip_line_ending(text: str) -> str:
    """Remove trailing CR/LF characters only"""
    return text.rstrip('\r\n')


class Verb(Enum):
    TRAVERSE = "TRAVERSE"
    SEARCH = "SEARCH"
    INSPECT = "INSPECT"
    EXIT = "EXIT"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Command:
    """One parsed request line"""
    verb: Verb
    args: Tuple[str, ...] = ()
    raw: str = ""

    @property
    def malformed(self) -> bool:
        """SEARCH without a path/pattern separator"""
        return self.verb is Verb.SEARCH and len(self.args) < 2


def parse_command(line: str) -> Command:
    """
    Parse a command line into a verb and its arguments

    TRAVERSE and INSPECT take the whole remainder as a single path.
    SEARCH splits the remainder at its first space only: the pattern
    keeps any further spaces. A SEARCH with no separating space yields
    a single argument and is reported as malformed.

    Args:
        line: Command text with line ending already stripped

    Returns:
        Parsed Command
    """
    verb_text, _, rest = line.partition(' ')
    try:
        verb = Verb(verb_text)
    except ValueError:
        return Command(Verb.UNKNOWN, (line,), line)

    if verb is Verb.UNKNOWN:
        return Command(Verb.UNKNOWN, (line,), line)
    if verb is Verb.EXIT:
        return Command(verb, (), line)
    if verb is Verb.SEARCH:
        path, sep, pattern = rest.partition(' ')
        if not sep:
            return Command(verb, (rest,), line)
        return Command(verb, (path, pattern), line)
    return Command(verb, (rest,), line)
