"""
Per-connection login and registration handshake
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional

from ..server.channel import SessionChannel
from ..server import protocol
from ..utils.logger import close_session_log
from .credential_store import CredentialStore, is_valid_username

SessionLogOpener = Callable[[str, str], logging.Logger]


@dataclass
class AuthResult:
    """Outcome of a successful handshake"""
    identity: str
    log_sink: logging.Logger
    created: bool = False


class Authenticator:
    """
    Verifies or provisions credentials for one connection.

    The exchange is unframed: prompts and verdicts carry no sentinel.
    """

    def __init__(self, store: CredentialStore, open_session_log: SessionLogOpener,
                 session_tag: str = None):
        """
        Initialize the authenticator

        Args:
            store: Credential ledger
            open_session_log: Callable (username, session_tag) -> logger
            session_tag: Identifier of the serving context, defaults to the pid
        """
        self.store = store
        self.open_session_log = open_session_log
        self.session_tag = session_tag or str(os.getpid())
        self.logger = logging.getLogger(__name__)

    def _prompt(self, channel: SessionChannel, prompt: str) -> Optional[str]:
        if not channel.send_text(prompt):
            return None
        reply = channel.receive_text()
        if reply is None:
            return None
        return protocol.strip_line_ending(reply)

    def authenticate(self, channel: SessionChannel) -> Optional[AuthResult]:
        """
        Run the handshake on a freshly accepted connection

        Args:
            channel: Connection to the peer

        Returns:
            AuthResult on success, None on failure (caller closes the connection)
        """
        username = self._prompt(channel, protocol.USERNAME_PROMPT)
        if username is None:
            self.logger.warning("Connection lost while reading username")
            return None

        password = self._prompt(channel, protocol.PASSWORD_PROMPT)
        if password is None:
            self.logger.warning(f"Connection lost while reading password for {username}")
            return None

        if not is_valid_username(username):
            self.logger.warning(f"Rejected invalid username {username!r}")
            channel.send_text(protocol.INVALID_USERNAME)
            return None

        record = self.store.find(username)
        created = False
        if record is None:
            try:
                record, created = self.store.register(username, password)
            except OSError as e:
                self.logger.error(f"Could not write credential store: {e}")
                return None

        if not created and not record.verify(password):
            self.logger.info(f"Incorrect password for {username}")
            channel.send_text(protocol.LOGIN_FAILED)
            return None

        sink = self.open_session_log(username, self.session_tag)
        if created:
            sink.info("New user registered securely")
            verdict = protocol.ACCOUNT_CREATED
        else:
            sink.info("User authenticated")
            verdict = protocol.LOGIN_OK

        if not channel.send_text(verdict):
            close_session_log(sink)
            return None

        self.logger.info(f"Authenticated {username} ({'new' if created else 'existing'} account)")
        return AuthResult(username, sink, created)
