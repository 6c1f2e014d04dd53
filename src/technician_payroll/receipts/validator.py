"""Receipt lookup against the external invoicing service.

Best effort only: marking an order paid never depends on this succeeding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import requests

from ..core.constants import DEFAULT_DOCUMENT_API_TIMEOUT
from ..core.exceptions import DocumentLookupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentLookup:
    exists: bool
    document: Optional[dict[str, Any]] = field(default=None)

    @property
    def url(self) -> Optional[str]:
        if not self.document:
            return None
        return self.document.get("url")


class DocumentValidator(Protocol):
    def lookup(self, receipt_number: str) -> DocumentLookup:
        raise NotImplementedError


class HttpDocumentValidator:
    """Looks receipts up by number on a Bsale-style documents endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        access_token: str,
        timeout: int = DEFAULT_DOCUMENT_API_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Any) -> Optional["HttpDocumentValidator"]:
        token = getattr(settings, "DOCUMENT_API_TOKEN", "")
        url = getattr(settings, "DOCUMENT_API_URL", "")
        if not token or not url:
            return None
        return cls(
            base_url=url,
            access_token=token,
            timeout=int(getattr(settings, "DOCUMENT_API_TIMEOUT", DEFAULT_DOCUMENT_API_TIMEOUT)),
        )

    def lookup(self, receipt_number: str) -> DocumentLookup:
        number = (receipt_number or "").strip()
        if not number:
            return DocumentLookup(exists=False)

        try:
            resp = self._session.get(
                f"{self._base_url}/v1/documents.json",
                params={"number": number},
                headers={"access_token": self._access_token, "Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise DocumentLookupError(f"Receipt service unreachable: {exc}") from exc

        if resp.status_code in (401, 403):
            raise DocumentLookupError("Receipt service rejected the access token")
        if not resp.ok:
            raise DocumentLookupError(f"Receipt service error {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise DocumentLookupError("Receipt service returned invalid JSON") from exc

        items = payload.get("items") if isinstance(payload, dict) else None
        if not items:
            return DocumentLookup(exists=False)
        doc = items[0]
        return DocumentLookup(
            exists=True,
            document={
                "id": doc.get("id"),
                "number": str(doc.get("number") or number),
                "url": doc.get("urlPdf") or doc.get("urlPublicView"),
                "total": doc.get("totalAmount") or doc.get("total"),
            },
        )
