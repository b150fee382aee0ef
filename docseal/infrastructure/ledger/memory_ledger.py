"""
Adapter: In-memory ledger for local development.

Every write is confirmed immediately; references look like the real
ones (`att_…`, `tok_…`) so the rest of the system cannot tell.
"""

import hashlib
import json
import logging
import uuid

from docseal.core.interfaces.ledger_client import ILedgerClient, LedgerReceipt

logger = logging.getLogger(__name__)


class InMemoryLedgerClient(ILedgerClient):
    """Adapter: ILedgerClient kept in a dict."""

    def __init__(self):
        self._holders: dict[str, str] = {}     # ref -> holder/owner
        self._records: dict[str, dict] = {}

    async def attest(self, schema_id: str, issuer: str, holder: str, payload: dict) -> LedgerReceipt:
        ref = f"att_{uuid.uuid4().hex[:24]}"
        self._store(ref, holder, {"schemaId": schema_id, "issuer": issuer, "data": payload})
        logger.info(f"[memory-ledger] attestation {ref} for {holder}")
        return LedgerReceipt(ref=ref, confirmed=True, transaction_id=self._tx_id(ref, payload))

    async def mint_token(self, metadata: dict, owner: str) -> LedgerReceipt:
        ref = f"tok_{uuid.uuid4().hex[:24]}"
        self._store(ref, owner, {"metadata": metadata})
        logger.info(f"[memory-ledger] token {ref} minted for {owner}")
        return LedgerReceipt(ref=ref, confirmed=True, transaction_id=self._tx_id(ref, metadata))

    async def verify_ownership(self, ref: str, owner: str) -> bool:
        return self._holders.get(ref) == owner

    def _store(self, ref: str, holder: str, record: dict) -> None:
        self._holders[ref] = holder
        self._records[ref] = record

    @staticmethod
    def _tx_id(ref: str, body: dict) -> str:
        raw = ref + json.dumps(body, sort_keys=True, default=str)
        return hashlib.sha256(raw.encode()).hexdigest()
