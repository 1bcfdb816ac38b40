"""
certchain — Certificate & Ledger Primitives

The value types that flow between the ledger layer, the metadata store
and the certificate pipeline.

A MetadataRecord is deliberately a plain mapping: it is the exact JSON
object uploaded to content storage and indexed locally, so it must
round-trip through both without a schema getting in the way.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from certchain.primitives.common import CertBaseModel, to_hex, utc_now

MetadataRecord = dict[str, Any]


class Roles(CertBaseModel):
    """Signing identities for one pipeline run. Resolved once, then passed along."""

    admin: str
    issuer: str
    subject: str


class TransactionReceipt(CertBaseModel):
    """Confirmation data for a mined transaction."""

    transaction_hash: str
    block_number: int | None = None
    status: int = 1
    contract_address: str | None = None
    gas_used: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status != 0

    @classmethod
    def from_web3(cls, receipt: Any) -> TransactionReceipt:
        """Build from a web3 receipt (AttributeDict) or a raw JSON-RPC receipt dict."""
        def _int(value: Any) -> int | None:
            if value is None:
                return None
            if isinstance(value, str):
                return int(value, 16)
            return int(value)

        contract_address = receipt.get("contractAddress")
        status = _int(receipt.get("status"))
        return cls(
            transaction_hash=to_hex(receipt["transactionHash"]),
            block_number=_int(receipt.get("blockNumber")),
            status=1 if status is None else status,
            contract_address=str(contract_address) if contract_address else None,
            gas_used=_int(receipt.get("gasUsed")),
        )


class TransactionOutcome(CertBaseModel):
    """
    Result of a state-changing submission.

    Always carries the hash. `receipt` is present once the transaction has
    been confirmed; a hash-only outcome is still pending.
    """

    hash: str
    receipt: TransactionReceipt | None = None
    path: str = ""  # which submission strategy produced it

    @property
    def confirmed(self) -> bool:
        return self.receipt is not None


class OnChainRecord(CertBaseModel):
    """The certificate tuple as stored by the ledger contract."""

    issuer: str
    subject: str
    category: int
    content_hash: str

    @classmethod
    def from_values(cls, values: tuple[Any, ...]) -> OnChainRecord:
        issuer, subject, category, content_hash = values
        return cls(
            issuer=issuer,
            subject=subject,
            category=int(category),
            content_hash=to_hex(content_hash),
        )

    def as_display(self) -> dict[str, Any]:
        return {
            "issuer": self.issuer,
            "subject": self.subject,
            "category": self.category,
            "contentHash": self.content_hash,
        }


class DeploymentRecord(CertBaseModel):
    """Where the certificate contract lives. Written once by the deploy step."""

    address: str
    network: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class IssuanceResult(CertBaseModel):
    """Everything the caller needs to reference a freshly issued certificate."""

    tx_hash: str
    content_hash: str
    content_locator: str
    record_id: int | None
    category: int
    contract_address: str
    outcome: TransactionOutcome
    metadata: MetadataRecord


class VerificationResult(CertBaseModel):
    """
    A certificate read back from the ledger.

    `metadata` is None when the local index has no entry for the on-chain
    hash; the ledger record alone is then the degraded answer.
    """

    record_id: int
    record: OnChainRecord
    metadata: MetadataRecord | None = None

    @property
    def resolved(self) -> bool:
        return self.metadata is not None

    def display(self) -> dict[str, Any]:
        if self.metadata is not None:
            return self.metadata
        return self.record.as_display()
