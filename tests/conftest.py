"""
Shared fixtures for the test suite
"""

import socket
import sys
import threading
import time
from pathlib import Path

import pytest

# Allow running the tests from a source checkout without installing
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from dirinspect.auth.credential_store import CredentialStore
from dirinspect.client.client import InspectClient
from dirinspect.server.channel import SessionChannel
from dirinspect.server.protocol import encode
from dirinspect.server.session import ClientSession
from dirinspect.utils.logger import SessionLogFactory


class RecordingChannel:
    """In-memory stand-in for SessionChannel"""

    def __init__(self, replies=(), fail_sends=False):
        self.replies = list(replies)
        self.fail_sends = fail_sends
        self.sent = []
        self.closed = False

    def send_bytes(self, data: bytes) -> bool:
        if self.fail_sends:
            return False
        self.sent.append(data)
        return True

    def send_text(self, text: str) -> bool:
        return self.send_bytes(encode(text))

    def receive(self):
        if not self.replies:
            return None
        return encode(self.replies.pop(0))

    def receive_text(self):
        if not self.replies:
            return None
        return self.replies.pop(0)

    def close(self):
        self.closed = True

    @property
    def output(self) -> bytes:
        return b''.join(self.sent)


class SessionHarness:
    """Runs one ClientSession on a socketpair and drives it with InspectClient"""

    def __init__(self, tmp_path: Path, store: CredentialStore):
        server_sock, client_sock = socket.socketpair()
        client_sock.settimeout(10)
        self.log_factory = SessionLogFactory(str(tmp_path / 'logs'))
        self.session = ClientSession(
            SessionChannel(server_sock),
            store,
            self.log_factory,
            session_tag='test',
            path_list_dir=str(tmp_path / 'lists'),
        )
        self.thread = threading.Thread(target=self.session.run, daemon=True)
        self.thread.start()
        self.client = InspectClient.from_socket(client_sock)

    def log_path(self, username: str) -> Path:
        return self.log_factory.path_for(username, 'test')

    def wait_for_log_line(self, username: str, line: str, timeout: float = 5.0):
        deadline = time.monotonic() + timeout
        path = self.log_path(username)
        while time.monotonic() < deadline:
            if path.exists() and line in path.read_text().splitlines():
                return
            time.sleep(0.01)
        raise AssertionError(f"{line!r} never appeared in {path}")

    def finish(self, timeout: float = 5.0):
        self.thread.join(timeout)
        assert not self.thread.is_alive()
        self.client.close()


@pytest.fixture
def recording_channel():
    return RecordingChannel


@pytest.fixture
def credential_store(tmp_path):
    return CredentialStore(str(tmp_path / 'data' / 'users.txt'))


@pytest.fixture
def start_session(tmp_path, credential_store):
    harnesses = []

    def _start():
        harness = SessionHarness(tmp_path, credential_store)
        harnesses.append(harness)
        return harness

    yield _start

    for harness in harnesses:
        harness.client.close()
        harness.thread.join(5)


@pytest.fixture
def file_tree(tmp_path):
    """
    tree/
      top.txt        "alpha beta"
      notes.md       "nothing here"
      sub/
        deep.txt     "beta gamma"
        deeper/
          data.bin   b"\\x00\\x01beta\\xff"
    """
    root = tmp_path / 'tree'
    (root / 'sub' / 'deeper').mkdir(parents=True)
    (root / 'top.txt').write_text("alpha beta")
    (root / 'notes.md').write_text("nothing here")
    (root / 'sub' / 'deep.txt').write_text("beta gamma")
    (root / 'sub' / 'deeper' / 'data.bin').write_bytes(b"\x00\x01beta\xff")
    return root


@pytest.fixture
def server_config(tmp_path):
    """Thread-mode config on an ephemeral loopback port with state under tmp_path"""
    from dirinspect.core.config import Config

    config = Config()
    config.server.host = '127.0.0.1'
    config.server.port = 0
    config.server.concurrency = 'thread'
    config.storage.credentials_file = str(tmp_path / 'data' / 'users.txt')
    config.storage.session_log_dir = str(tmp_path / 'logs')
    config.storage.path_list_dir = str(tmp_path / 'lists')
    return config


@pytest.fixture
def start_server(server_config):
    """Start a SessionServer on an ephemeral port in a background thread"""
    from dirinspect.server.server import SessionServer

    running = []

    def _start(concurrency='thread'):
        config = server_config.model_copy(deep=True)
        config.server.concurrency = concurrency

        server = SessionServer(config)
        thread = threading.Thread(target=server.start, daemon=True)
        thread.start()
        assert server.ready.wait(5)
        server.bound_address = server.address
        running.append((server, thread))
        return server, thread

    yield _start

    for server, thread in running:
        server.stop()
        thread.join(10)


DEEP_TREE_LEVELS = 1100


@pytest.fixture
def deep_tree(tmp_path):
    """
    deep/a/a/.../a/leaf.txt, deeper than the default recursion limit

    Built and removed one level at a time; shutil.rmtree would recurse.
    """
    root = tmp_path / 'deep'
    root.mkdir()
    levels = []
    current = root
    for _ in range(DEEP_TREE_LEVELS):
        current = current / 'a'
        current.mkdir()
        levels.append(current)
    leaf = current / 'leaf.txt'
    leaf.write_text("bottom needle")

    yield root, leaf, DEEP_TREE_LEVELS

    leaf.unlink()
    for level in reversed(levels):
        level.rmdir()
