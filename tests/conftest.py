import socketserver
import threading

import pytest

from clinic_finance.cache import LocalFallbackCache
from clinic_finance.remote import RemoteStore
from clinic_finance.web import TransactionRepository, create_server


@pytest.fixture
def store_server():
    """A live transaction store on an ephemeral port, seeded with demo data."""
    repository = TransactionRepository()
    server = create_server("127.0.0.1", 0, repository)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    server.api_url = f"http://{host}:{port}/api/transactions"
    server.repository = repository
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def remote_store(store_server):
    return RemoteStore(base_url=store_server.api_url)


@pytest.fixture
def dead_store():
    # Port 9 (discard) is closed on test machines; connections are refused.
    return RemoteStore(base_url="http://127.0.0.1:9/api/transactions")


@pytest.fixture
def cache(tmp_path):
    return LocalFallbackCache(tmp_path / "cache")


class _GarbageHandler(socketserver.BaseRequestHandler):
    def handle(self):
        self.request.recv(65536)
        self.request.sendall(b"garbage\r\n")


@pytest.fixture
def garbage_server():
    """A TCP listener that answers every request with a non-HTTP line."""
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), _GarbageHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    server.api_url = f"http://{host}:{port}/api/transactions"
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
