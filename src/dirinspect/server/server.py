"""
Connection dispatcher for the inspection server
Accepts connections and runs each session in its own process or thread
"""

import itertools
import logging
import multiprocessing
import os
import signal
import socket
import threading
from typing import List, Optional, Tuple, Union

from ..auth.credential_store import CredentialStore
from ..core.config import Config
from ..utils.logger import SessionLogFactory
from .channel import SessionChannel
from .session import ClientSession

SessionWorker = Union[multiprocessing.Process, threading.Thread]


class SessionServer:
    """
    Accept loop that spawns one isolated session per connection.

    In "process" mode every session runs in a forked child, so a crash in
    one session cannot touch another's memory. "thread" mode runs sessions
    as threads of the server process instead.
    """

    ACCEPT_POLL_INTERVAL = 0.5

    def __init__(self, config: Config = None, store: CredentialStore = None,
                 log_factory: SessionLogFactory = None):
        """
        Initialize the server

        Args:
            config: Server configuration
            store: Credential ledger (built from config if omitted)
            log_factory: Per-session log factory (built from config if omitted)
        """
        self.config = config or Config()
        self.host = self.config.server.host
        self.port = self.config.server.port
        self.store = store or CredentialStore(self.config.storage.credentials_file)
        self.log_factory = log_factory or SessionLogFactory(self.config.storage.session_log_dir)
        self.socket: Optional[socket.socket] = None
        self.running = False
        self.ready = threading.Event()
        self._sessions: List[SessionWorker] = []
        self._connection_ids = itertools.count(1)
        self._mp_context = multiprocessing.get_context('fork')
        self.logger = logging.getLogger(__name__)

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when configured with port 0"""
        if self.socket is None:
            return self.host, self.port
        return self.socket.getsockname()[:2]

    @property
    def active_sessions(self) -> int:
        return sum(1 for worker in self._sessions if worker.is_alive())

    def _bind(self):
        try:
            self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.socket.bind((self.host, self.port))
            self.socket.listen(self.config.server.backlog)
            self.socket.settimeout(self.ACCEPT_POLL_INTERVAL)
        except OSError as e:
            self.logger.critical(f"Cannot listen on {self.host}:{self.port}: {e}")
            if self.socket is not None:
                self.socket.close()
                self.socket = None
            raise

    def start(self):
        """Start the server and serve connections until stop() is called"""
        self._bind()
        self.running = True
        host, port = self.address
        self.logger.info(f"Server started on {host}:{port} "
                         f"({self.config.server.concurrency} per connection)")
        self.ready.set()

        try:
            while self.running:
                try:
                    client_socket, address = self.socket.accept()
                except socket.timeout:
                    self._reap()
                    continue
                except OSError as e:
                    if self.running:
                        self.logger.error(f"Error accepting connection: {e}")
                        continue
                    break

                self.logger.info(f"Connection from {address}")
                client_socket.settimeout(self.config.server.receive_timeout)
                try:
                    self._spawn(client_socket, address)
                except OSError as e:
                    self.logger.error(f"Failed to start session for {address}: {e}")
                    client_socket.close()
                self._reap()
        finally:
            self.running = False
            self._close_listener()
            self._wait_for_sessions()
            self.ready.clear()
            self.logger.info("Server stopped")

    def _spawn(self, client_socket: socket.socket, address: tuple):
        if self.config.server.concurrency == 'process':
            worker = self._mp_context.Process(
                target=self._run_child,
                args=(client_socket, address),
                name=f"session-{address[0]}:{address[1]}",
            )
            worker.start()
            # The child owns the connection now
            client_socket.close()
        else:
            session_tag = f"{os.getpid()}-{next(self._connection_ids)}"
            worker = threading.Thread(
                target=self.handle_client,
                args=(client_socket, address, session_tag),
                name=f"session-{session_tag}",
                daemon=True,
            )
            worker.start()
        self._sessions.append(worker)

    def _run_child(self, client_socket: socket.socket, address: tuple):
        # Sessions run to completion; interrupts are for the dispatcher
        try:
            signal.signal(signal.SIGINT, signal.SIG_IGN)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
        except ValueError as e:
            self.logger.debug(f"Keeping inherited signal handlers: {e}")
        if self.socket is not None:
            self.socket.close()
        self.handle_client(client_socket, address, str(os.getpid()))

    def handle_client(self, client_socket: socket.socket, address: tuple, session_tag: str):
        """
        Handle individual client connections

        Args:
            client_socket: Client socket connection
            address: Client address tuple
            session_tag: Identifier used in the session log name
        """
        session = ClientSession(
            SessionChannel(client_socket, self.config.server.buffer_size),
            self.store,
            self.log_factory,
            session_tag=session_tag,
            path_list_dir=self.config.storage.path_list_dir,
            chunk_size=self.config.transfer.chunk_size,
        )
        session.run()
        self.logger.info(f"Connection closed: {address}")

    def _reap(self):
        """Join sessions that have already finished, without blocking"""
        still_running = []
        for worker in self._sessions:
            if worker.is_alive():
                still_running.append(worker)
            else:
                worker.join()
        self._sessions = still_running

    def _wait_for_sessions(self):
        if self._sessions:
            self.logger.info(f"Waiting for {len(self._sessions)} session(s) to finish")
        for worker in self._sessions:
            worker.join()
        self._sessions = []

    def _close_listener(self):
        if self.socket is None:
            return
        try:
            self.socket.close()
        except OSError as e:
            self.logger.debug(f"Error closing listener: {e}")
        self.socket = None

    def stop(self):
        """Stop accepting connections; running sessions are left to finish"""
        self.running = False
        listener = self.socket
        if listener is not None:
            try:
                listener.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                self.logger.debug(f"Listener shutdown: {e}")
        self.logger.info("Server stopping")

    def serve_forever(self):
        """Run start() with SIGINT/SIGTERM wired to stop(); handlers are restored on return"""
        def _handle_signal(signum, frame):
            self.stop()

        previous = {
            signum: signal.signal(signum, _handle_signal)
            for signum in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            self.start()
        finally:
            for signum, handler in previous.items():
                signal.signal(signum, handler)
