"""
Contract: Ledger Client

Writes immutable proofs to a distributed ledger: non-transferable
attestations for identity facts, transferable tokens for ownership
assets. A reference may exist before full network confirmation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class LedgerReceipt:
    """Result of a ledger write."""
    ref: str                      # attestation id / token mint address
    confirmed: bool               # False while the network has not finalized it
    transaction_id: str = ""
    details: dict = field(default_factory=dict)


class ILedgerClient(ABC):
    """
    Port: Ledger Client

    Ledger writes are NOT idempotent; callers must never re-submit a
    write that already returned a receipt.
    """

    @abstractmethod
    async def attest(self, schema_id: str, issuer: str, holder: str, payload: dict) -> LedgerReceipt:
        """
        Write a non-transferable, issuer-signed attestation.

        Args:
            schema_id: Attestation schema identifier.
            issuer: Issuer identity (signs the attestation).
            holder: Holder identity (document owner).
            payload: Attested facts.

        Returns:
            LedgerReceipt with the attestation reference.
        """
        ...

    @abstractmethod
    async def mint_token(self, metadata: dict, owner: str) -> LedgerReceipt:
        """
        Mint a transferable token representing an asset.

        Args:
            metadata: Token metadata (name, attributes, document hash).
            owner: Initial owner identity.

        Returns:
            LedgerReceipt with the token reference.
        """
        ...

    @abstractmethod
    async def verify_ownership(self, ref: str, owner: str) -> bool:
        """
        Check that `owner` holds the attestation/token `ref`.
        """
        ...
