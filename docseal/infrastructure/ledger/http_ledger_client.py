"""
Adapter: HTTP Ledger Client

Talks to a ledger gateway service that holds the issuer keys and
submits transactions:

    POST {base}/attestations             → {"ref", "confirmed", "transactionId"}
    POST {base}/tokens                   → {"ref", "confirmed", "transactionId"}
    GET  {base}/ownership/{ref}?owner=…  → {"owned": bool}

Timeouts, connection failures, 429 and 5xx become TransientExternalError
(the issuance pipeline retries those). Other 4xx are raised as-is.
"""

import logging

import httpx

from docseal.core.errors import TransientExternalError
from docseal.core.interfaces.ledger_client import ILedgerClient, LedgerReceipt

logger = logging.getLogger(__name__)

SERVICE = "ledger"


class HttpLedgerClient(ILedgerClient):
    """Adapter: ILedgerClient over a JSON/HTTP gateway."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, api_key: str = ""):
        self.client = http_client
        self.base_url = base_url.rstrip("/")
        self._headers = {"Accept": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

    async def attest(self, schema_id: str, issuer: str, holder: str, payload: dict) -> LedgerReceipt:
        body = {"schemaId": schema_id, "issuer": issuer, "holder": holder, "data": payload}
        data = await self._request("POST", "/attestations", json=body)
        receipt = self._receipt(data)
        logger.info(f"Attestation {receipt.ref} written for {holder} (confirmed={receipt.confirmed})")
        return receipt

    async def mint_token(self, metadata: dict, owner: str) -> LedgerReceipt:
        data = await self._request("POST", "/tokens", json={"owner": owner, "metadata": metadata})
        receipt = self._receipt(data)
        logger.info(f"Token {receipt.ref} minted for {owner} (confirmed={receipt.confirmed})")
        return receipt

    async def verify_ownership(self, ref: str, owner: str) -> bool:
        data = await self._request("GET", f"/ownership/{ref}", params={"owner": owner})
        return bool(data.get("owned", False))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = await self.client.request(method, url, headers=self._headers, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientExternalError(SERVICE, f"Timeout calling {path}", url=url) from e
        except httpx.TransportError as e:
            raise TransientExternalError(SERVICE, f"Transport error calling {path}: {e}", url=url) from e

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientExternalError(
                SERVICE, f"{path} returned {resp.status_code}", url=url, status=resp.status_code
            )
        resp.raise_for_status()
        return resp.json()

    @staticmethod
    def _receipt(data: dict) -> LedgerReceipt:
        ref = data.get("ref") or data.get("id")
        if not ref:
            raise ValueError("Ledger response did not include a reference")
        return LedgerReceipt(
            ref=str(ref),
            confirmed=bool(data.get("confirmed", False)),
            transaction_id=str(data.get("transactionId") or ""),
            details={k: v for k, v in data.items() if k not in ("ref", "id", "confirmed", "transactionId")},
        )
