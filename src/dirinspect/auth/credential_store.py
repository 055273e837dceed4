"""
Append-only credential ledger
Stores one username:salt:hash record per line
"""

import fcntl
import hashlib
import hmac
import logging
import secrets
import string
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

SALT_LENGTH = 16
SALT_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def hash_password(password: str, salt: str) -> str:
    """SHA-256 of password + salt as 64 lowercase hex characters"""
    return hashlib.sha256((password + salt).encode('utf-8', 'surrogateescape')).hexdigest()


def generate_salt(length: int = SALT_LENGTH) -> str:
    """Random alphanumeric salt drawn uniformly from [0-9A-Za-z]"""
    return ''.join(secrets.choice(SALT_ALPHABET) for _ in range(length))


def is_valid_username(username: str) -> bool:
    """Usernames must fit in one colon-delimited ledger field"""
    return bool(username) and not any(c in username for c in ':\r\n')


@dataclass(frozen=True)
class CredentialRecord:
    username: str
    salt: str
    hash: str

    def to_line(self) -> str:
        return f"{self.username}:{self.salt}:{self.hash}\n"

    @classmethod
    def from_line(cls, line: str) -> Optional["CredentialRecord"]:
        fields = line.rstrip('\r\n').split(':', 2)
        if len(fields) != 3:
            return None
        return cls(*fields)

    @classmethod
    def create(cls, username: str, password: str, salt: str = None) -> "CredentialRecord":
        salt = salt if salt is not None else generate_salt()
        return cls(username, salt, hash_password(password, salt))

    def verify(self, password: str) -> bool:
        return hmac.compare_digest(hash_password(password, self.salt), self.hash)


class CredentialStore:
    """
    Text ledger of credential records.

    Reads are plain linear scans where the first matching line wins.
    register() serializes lookup and append behind an exclusive flock on a
    sibling lock file, so concurrent sessions cannot both create the same
    username. append() is the raw unlocked write underneath it.
    """

    def __init__(self, file_path: str = 'data/users.txt'):
        self.file_path = Path(file_path)
        self.lock_path = self.file_path.with_name(self.file_path.name + '.lock')
        self.logger = logging.getLogger(__name__)

    def records(self) -> Iterator[CredentialRecord]:
        """Iterate over stored records; an unreadable store yields nothing"""
        try:
            with open(self.file_path, 'r', encoding='utf-8', errors='surrogateescape') as f:
                for line in f:
                    record = CredentialRecord.from_line(line)
                    if record is not None:
                        yield record
        except FileNotFoundError:
            return
        except OSError as e:
            self.logger.warning(f"Cannot open credential store {self.file_path}: {e}")
            return

    def find(self, username: str) -> Optional[CredentialRecord]:
        """
        Look up a username

        Args:
            username: Name to look for

        Returns:
            First matching record, or None
        """
        for record in self.records():
            if record.username == username:
                return record
        return None

    def append(self, record: CredentialRecord):
        """
        Append one record without any locking or duplicate check

        Raises:
            OSError: If the store cannot be opened for append
            ValueError: If the username cannot be stored
        """
        if not is_valid_username(record.username):
            raise ValueError(f"Invalid username: {record.username!r}")
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, 'a', encoding='utf-8', errors='surrogateescape') as f:
            f.write(record.to_line())

    @contextmanager
    def _locked(self):
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, 'a') as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def register(self, username: str, password: str) -> Tuple[CredentialRecord, bool]:
        """
        Create a record for a new username

        Lookup and append happen under one exclusive lock. If the name was
        registered in the meantime, the existing record is returned instead.

        Args:
            username: New username
            password: Plaintext password, hashed with a fresh salt

        Returns:
            (record, created) where created is False if the name already existed

        Raises:
            OSError: If the store or its lock cannot be written
            ValueError: If the username cannot be stored
        """
        with self._locked():
            existing = self.find(username)
            if existing is not None:
                self.logger.info(f"Username already registered: {username}")
                return existing, False
            record = CredentialRecord.create(username, password)
            self.append(record)
            self.logger.info(f"Registered new user: {username}")
            return record, True
