"""
Per-connection session: authentication followed by the command loop
"""

import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional

from ..auth.authenticator import Authenticator
from ..auth.credential_store import CredentialStore
from ..core.errors import ErrorKind, OperationError
from ..scanner.content_scanner import ContentScanner
from ..transfer.file_streamer import FileStreamer
from ..traversal.path_list import PathList
from ..traversal.traverser import DirectoryTraverser, TraversalResult
from ..utils.logger import SessionLogFactory, close_session_log
from . import protocol
from .channel import SessionChannel
from .protocol import END_MARK, Command, Verb


class SessionState(Enum):
    AWAITING_COMMAND = "awaiting_command"
    TRAVERSING = "traversing"
    SEARCHING = "searching"
    INSPECTING = "inspecting"
    ENDED = "ended"


# ==================== Command Pattern ====================
# Each protocol verb is one command object; the response goes straight to
# the peer and execute() returns a summary for the process log.

def run_traversal(channel: SessionChannel, path_list: PathList, path: str) -> TraversalResult:
    """Truncate the path list and walk a tree into it"""
    try:
        sink = path_list.open_for_write()
    except OSError as e:
        error = OperationError.from_os_error(
            ErrorKind.WRITE_FAILED, f"Failed to open output file: {path_list.path}", e
        )
        channel.send_text(f"ERROR: {error.message}\n")
        return TraversalResult(errors=[error])

    with sink:
        return DirectoryTraverser(channel.send_text, sink).traverse(path)


class SessionCommand(ABC):
    """Base class for all session commands"""

    state = SessionState.AWAITING_COMMAND

    @abstractmethod
    def execute(self) -> Dict[str, Any]:
        """Execute the command and return a summary"""
        pass


class TraverseCommand(SessionCommand):
    """Command for listing every file under a directory"""

    state = SessionState.TRAVERSING

    def __init__(self, channel: SessionChannel, path_list: PathList, path: str):
        self.channel = channel
        self.path_list = path_list
        self.path = path

    def execute(self) -> Dict[str, Any]:
        result = run_traversal(self.channel, self.path_list, self.path)
        self.channel.send_text(protocol.total_files_line(result.file_count))
        self.channel.send_text(END_MARK)
        return {
            'status': 'error' if result.errors else 'success',
            'action': 'traverse',
            'path': self.path,
            'count': result.file_count,
            'errors': [str(e) for e in result.errors],
        }


class SearchCommand(SessionCommand):
    """Command for finding files whose content contains a pattern"""

    state = SessionState.SEARCHING

    def __init__(self, channel: SessionChannel, path_list: PathList,
                 scanner: ContentScanner, path: str, pattern: str):
        self.channel = channel
        self.path_list = path_list
        self.scanner = scanner
        self.path = path
        self.pattern = pattern

    def execute(self) -> Dict[str, Any]:
        traversal = run_traversal(self.channel, self.path_list, self.path)
        scan = self.scanner.scan(self.path_list, self.pattern)

        if not scan.matches:
            self.channel.send_text(protocol.NO_MATCHES)
        else:
            self.channel.send_text(protocol.MATCHES_HEADER)
            for file_path in scan.matches:
                self.channel.send_text(file_path + "\n")
        self.channel.send_text(END_MARK)

        errors = [str(e) for e in traversal.errors]
        if scan.error is not None:
            errors.append(str(scan.error))
        return {
            'status': 'error' if errors else 'success',
            'action': 'search',
            'path': self.path,
            'pattern': self.pattern,
            'scanned': traversal.file_count,
            'results': scan.matches,
            'count': len(scan.matches),
            'errors': errors,
        }


class InspectCommand(SessionCommand):
    """Command for streaming one file"""

    state = SessionState.INSPECTING

    def __init__(self, channel: SessionChannel, streamer: FileStreamer, path: str):
        self.channel = channel
        self.streamer = streamer
        self.path = path

    def execute(self) -> Dict[str, Any]:
        error = self.streamer.inspect(self.path, self.channel)
        if error is not None:
            return {'status': 'error', 'action': 'inspect', 'path': self.path, 'message': str(error)}
        return {'status': 'success', 'action': 'inspect', 'path': self.path}


class ExitCommand(SessionCommand):
    """Command for ending the session; nothing is sent back"""

    def execute(self) -> Dict[str, Any]:
        return {'status': 'success', 'action': 'exit'}


class UnknownCommand(SessionCommand):
    """Response for any unrecognised verb"""

    def __init__(self, channel: SessionChannel, line: str):
        self.channel = channel
        self.line = line

    def execute(self) -> Dict[str, Any]:
        self.channel.send_text(protocol.UNKNOWN_COMMAND)
        self.channel.send_text(END_MARK)
        return {'status': 'error', 'action': 'unknown', 'message': f"Unknown command: {self.line}"}


# ==================== Command Factory ====================

class CommandFactory:
    """Factory for creating commands from parsed request lines"""

    def __init__(self, channel: SessionChannel, path_list: PathList,
                 scanner: ContentScanner = None, streamer: FileStreamer = None):
        self.channel = channel
        self.path_list = path_list
        self.scanner = scanner or ContentScanner()
        self.streamer = streamer or FileStreamer()
        self.logger = logging.getLogger(__name__)

    def create_command(self, command: Command) -> Optional[SessionCommand]:
        """
        Create a command for a parsed request

        Args:
            command: Parsed request line

        Returns:
            Command instance, or None if the request is silently ignored
        """
        if command.verb is Verb.TRAVERSE:
            return TraverseCommand(self.channel, self.path_list, command.args[0])

        elif command.verb is Verb.SEARCH:
            if command.malformed:
                self.logger.debug(f"Ignoring SEARCH without pattern: {command.raw!r}")
                return None
            path, pattern = command.args
            return SearchCommand(self.channel, self.path_list, self.scanner, path, pattern)

        elif command.verb is Verb.INSPECT:
            return InspectCommand(self.channel, self.streamer, command.args[0])

        elif command.verb is Verb.EXIT:
            return ExitCommand()

        else:
            self.logger.warning(f"Unknown command: {command.raw!r}")
            return UnknownCommand(self.channel, command.raw)


# ==================== Session ====================

class ClientSession:
    """
    Lifetime of one connection: handshake, then one command at a time
    until EXIT, end-of-stream or a read error.
    """

    def __init__(self, channel: SessionChannel, store: CredentialStore,
                 log_factory: SessionLogFactory, session_tag: str = None,
                 path_list_dir: str = None, chunk_size: int = None):
        """
        Initialize the session

        Args:
            channel: Connection to the peer
            store: Credential ledger shared by all sessions
            log_factory: Opens the per-session log once the user is known
            session_tag: Identifier used in the session log name (defaults to pid)
            path_list_dir: Directory for the per-session path list
            chunk_size: INSPECT streaming chunk size
        """
        self.channel = channel
        self.store = store
        self.log_factory = log_factory
        self.session_tag = session_tag or str(os.getpid())
        self.path_list_dir = path_list_dir
        self.chunk_size = chunk_size
        self.identity: Optional[str] = None
        self.log_sink: Optional[logging.Logger] = None
        self.state = SessionState.AWAITING_COMMAND
        self.logger = logging.getLogger(__name__)

    def run(self):
        """Serve the connection to completion and close it"""
        path_list = None
        try:
            authenticator = Authenticator(self.store, self.log_factory.open, self.session_tag)
            auth = authenticator.authenticate(self.channel)
            if auth is None:
                self.state = SessionState.ENDED
                return

            self.identity = auth.identity
            self.log_sink = auth.log_sink

            path_list = PathList(self.path_list_dir)
            factory = CommandFactory(
                self.channel,
                path_list,
                ContentScanner(),
                FileStreamer(self.chunk_size),
            )
            self._command_loop(factory)

        except Exception as e:
            self.logger.error(f"Error in session for {self.identity or 'unauthenticated peer'}: {e}",
                              exc_info=True)
        finally:
            self.state = SessionState.ENDED
            if path_list is not None:
                path_list.cleanup()
            close_session_log(self.log_sink)
            self.channel.close()
            self.logger.info(f"Session closed: {self.identity or 'unauthenticated'}")

    def _command_loop(self, factory: CommandFactory):
        while self.state is not SessionState.ENDED:
            line = self.channel.receive_text()
            if line is None:
                self.logger.info(f"Peer disconnected: {self.identity}")
                break

            line = protocol.strip_line_ending(line)
            self.log_sink.info(f"Command: {line}")

            command = factory.create_command(protocol.parse_command(line))
            if command is None:
                continue

            if isinstance(command, ExitCommand):
                self.log_sink.info("Session ended")
                self.state = SessionState.ENDED
                break

            self.state = command.state
            try:
                summary = command.execute()
            finally:
                self.state = SessionState.AWAITING_COMMAND

            if summary.get('status') == 'success':
                self.logger.info(f"{summary['action']} completed for {self.identity}")
            else:
                self.logger.warning(f"{summary['action']} finished with errors for "
                                    f"{self.identity}: {summary.get('errors') or summary.get('message')}")
