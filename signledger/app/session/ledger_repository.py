"""
Current-ledger and device-token persistence on top of a key-value store.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

from pydantic import ValidationError

from signledger.app.schemas.ledger import DocumentLedger
from signledger.app.session.store import KeyValueStore

logger = logging.getLogger(__name__)


CURRENT_LEDGER_KEY = "signledger.current_ledger"
DEVICE_TOKEN_KEY = "signledger.device_token"


class LedgerRepository:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def save(self, ledger: DocumentLedger) -> None:
        self._store.set(CURRENT_LEDGER_KEY, ledger.to_json())

    def load(self) -> Optional[DocumentLedger]:
        """
        Return the stored ledger, or None when absent.

        A stored value that no longer validates is treated as absent and
        logged; the next save replaces it.
        """
        raw = self._store.get(CURRENT_LEDGER_KEY)
        if raw is None:
            return None
        try:
            return DocumentLedger.from_json(raw)
        except ValidationError as exc:
            logger.warning(
                "stored_ledger_invalid",
                extra={"error_count": exc.error_count()},
            )
            return None

    def clear(self) -> None:
        self._store.delete(CURRENT_LEDGER_KEY)

    def get_or_create_device_token(self) -> str:
        token = self._store.get(DEVICE_TOKEN_KEY)
        if not token:
            token = str(uuid4())
            self._store.set(DEVICE_TOKEN_KEY, token)
            logger.info("device_token_created")
        return token

    def get_device_token(self) -> Optional[str]:
        return self._store.get(DEVICE_TOKEN_KEY)
