from __future__ import annotations

import json
import logging
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, List
from urllib.parse import unquote, urlparse

from clinic_finance.core.models import parse_transaction
from clinic_finance.utils import next_transaction_id

logger = logging.getLogger(__name__)

API_PATH = "/api/transactions"
ALLOWED_METHODS = "GET, POST, DELETE"

SEED_TRANSACTIONS = [
    {
        "id": "1",
        "date": "2024-03-01",
        "amount": 5000,
        "description": "Affitto mensile studio",
        "type": "EXPENSE",
        "category": "Affitto e Struttura",
    },
    {
        "id": "2",
        "date": "2024-03-05",
        "amount": 12500,
        "description": "Rimborso Assicurazioni Convenzionate",
        "type": "INCOME",
        "category": "Assicurazioni",
    },
]


class TransactionRepository:
    """In-memory record list shared by all request threads, newest first.

    Records are kept exactly as clients sent them plus the assigned id.
    """

    def __init__(self, records: List[dict] | None = None) -> None:
        self._records = [dict(r) for r in (SEED_TRANSACTIONS if records is None else records)]
        self._lock = threading.Lock()

    def list(self) -> List[dict]:
        with self._lock:
            return [dict(r) for r in self._records]

    def create(self, body: dict) -> dict:
        with self._lock:
            record = {**body, "id": next_transaction_id(str(r.get("id")) for r in self._records)}
            self._records = [record] + self._records
            return dict(record)

    def delete(self, tx_id: str) -> bool:
        with self._lock:
            remaining = [r for r in self._records if str(r.get("id")) != tx_id]
            removed = len(remaining) != len(self._records)
            self._records = remaining
            return removed


def _json_response(handler: BaseHTTPRequestHandler, payload: Any, status: int = 200) -> None:
    body = json.dumps(payload).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Cache-Control", "no-store")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def _empty_response(handler: BaseHTTPRequestHandler, status: int, headers: dict | None = None) -> None:
    handler.send_response(status)
    for key, value in (headers or {}).items():
        handler.send_header(key, value)
    handler.send_header("Content-Length", "0")
    handler.end_headers()


class TransactionStoreHandler(BaseHTTPRequestHandler):
    repository: TransactionRepository

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def _route(self) -> tuple[str, str | None] | None:
        """Return ``(collection_path, item_id)`` for store routes, ``None`` otherwise."""
        path = urlparse(self.path).path.rstrip("/")
        if path == API_PATH:
            return path, None
        prefix = API_PATH + "/"
        if path.startswith(prefix) and "/" not in path[len(prefix):]:
            return API_PATH, unquote(path[len(prefix):])
        return None

    def _not_found(self) -> None:
        if urlparse(self.path).path.startswith("/api/"):
            _json_response(self, {"error": "API route not found"}, status=404)
        else:
            _json_response(self, {"error": "not found"}, status=404)

    def _method_not_allowed(self) -> None:
        _empty_response(self, 405, {"Allow": ALLOWED_METHODS})

    def do_GET(self) -> None:
        route = self._route()
        if route is None:
            self._not_found()
            return
        if route[1] is not None:
            self._method_not_allowed()
            return
        _json_response(self, self.repository.list())

    def do_POST(self) -> None:
        route = self._route()
        if route is None:
            self._not_found()
            return
        if route[1] is not None:
            self._method_not_allowed()
            return
        length = int(self.headers.get("Content-Length") or 0)
        raw = self.rfile.read(length) if length else b""
        try:
            body = json.loads(raw.decode("utf-8") or "null")
        except (UnicodeDecodeError, json.JSONDecodeError):
            _json_response(self, {"error": "request body must be JSON"}, status=400)
            return
        if not isinstance(body, dict):
            _json_response(self, {"error": "request body must be a JSON object"}, status=400)
            return
        try:
            # The id is assigned below; validate everything else the clients rely on.
            parse_transaction({**body, "id": "new"})
        except ValueError as exc:
            _json_response(self, {"error": str(exc)}, status=400)
            return
        _json_response(self, self.repository.create(body), status=201)

    def do_DELETE(self) -> None:
        route = self._route()
        if route is None:
            self._not_found()
            return
        if route[1] is None:
            self._method_not_allowed()
            return
        self.repository.delete(route[1])
        _empty_response(self, 204)

    def do_PUT(self) -> None:
        if self._route() is None:
            self._not_found()
            return
        self._method_not_allowed()

    do_PATCH = do_PUT


def create_server(
    host: str = "0.0.0.0",
    port: int = 3000,
    repository: TransactionRepository | None = None,
) -> ThreadingHTTPServer:
    handler = type(
        "TransactionStoreHandler",
        (TransactionStoreHandler,),
        {"repository": repository or TransactionRepository()},
    )
    return ThreadingHTTPServer((host, port), handler)


def run_server(host: str = "0.0.0.0", port: int | None = None) -> None:
    port = port if port is not None else int(os.environ.get("PORT", 3000))
    logger.info("Starting store on port %s", port)
    logger.info("Database configured: %s", "yes" if os.environ.get("DATABASE_URL") else "no")
    server = create_server(host, port)
    logger.info("Transaction store ready at http://%s:%s%s", host, port, API_PATH)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down store.")
    finally:
        server.server_close()
