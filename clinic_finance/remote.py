# clinic_finance/remote.py
"""HTTP client for the remote transaction store.

The store exposes one REST resource (``/api/transactions``): list with GET,
create with POST, delete with ``DELETE /api/transactions/<id>``. No timeout is
set here; the transport default applies.
"""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional
from urllib.parse import quote

from clinic_finance.core.models import Transaction, parse_transaction, parse_transaction_list

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://127.0.0.1:3000/api/transactions"


class RemoteStoreError(RuntimeError):
    """A call to the remote store did not succeed."""


class StoreUnavailable(RemoteStoreError):
    """The store could not be reached or did not answer with a transaction list."""


@dataclass
class RemoteStore:
    base_url: str = DEFAULT_API_URL
    timeout: Optional[float] = None

    def _open(self, req: urllib.request.Request):
        if self.timeout is None:
            return urllib.request.urlopen(req)
        return urllib.request.urlopen(req, timeout=self.timeout)

    def list_transactions(self) -> List[Transaction]:
        req = urllib.request.Request(self.base_url, method="GET")
        req.add_header("Accept", "application/json")
        logger.debug("Store ▶ GET %s", self.base_url)
        try:
            with self._open(req) as resp:
                content_type = (resp.headers.get("Content-Type") or "").lower()
                if "application/json" not in content_type:
                    raise StoreUnavailable(f"Store answered with non-JSON content type {content_type!r}")
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            raise StoreUnavailable(f"Store answered {exc.code} {exc.reason}") from exc
        except (urllib.error.URLError, http.client.HTTPException, OSError, UnicodeDecodeError) as exc:
            raise StoreUnavailable(f"Store unreachable: {exc}") from exc

        try:
            return parse_transaction_list(json.loads(raw))
        except ValueError as exc:
            raise StoreUnavailable(f"Store returned an invalid transaction list: {exc}") from exc

    def create_transaction(self, payload: Mapping[str, Any]) -> Optional[Transaction]:
        """POST ``payload`` (a record without id); return the created record if parseable."""
        data = json.dumps(dict(payload)).encode("utf-8")
        req = urllib.request.Request(self.base_url, data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        logger.debug("Store ▶ POST %s – payload: %s", self.base_url, payload)
        raw = self._send(req)
        try:
            return parse_transaction(json.loads(raw))
        except ValueError:
            logger.debug("Store create response is not a transaction: %r", raw)
            return None

    def delete_transaction(self, tx_id: str) -> None:
        url = f"{self.base_url.rstrip('/')}/{quote(str(tx_id), safe='')}"
        req = urllib.request.Request(url, method="DELETE")
        logger.debug("Store ▶ DELETE %s", url)
        self._send(req)

    def _send(self, req: urllib.request.Request) -> str:
        try:
            with self._open(req) as resp:
                return resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as exc:
            raise RemoteStoreError(f"{req.get_method()} {req.full_url} failed: {exc.code} {exc.reason}") from exc
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            raise RemoteStoreError(f"{req.get_method()} {req.full_url} failed: {exc}") from exc
