"""
certchain — Certificate Pipeline

Issuance:
  1. Normalize the payload into a metadata record (ValidationError on
     missing fields, before anything touches the network)
  2. Upload the record → content locator
  3. keccak-256 over the locator → content hash
  4. Index hash → record locally
  5. issueCertificate(subject, contentHash, category) from the issuer
  6. Confirm, then read totalCertificates to report the id (total − 1)

Verification:
  1. Resolve the id (latest = total − 1 when not given)
  2. Read the on-chain record
  3. Look the content hash up in the local index
  4. Return the metadata, or the raw on-chain record if it is not indexed

Step 4 runs before the ledger write so a confirmed certificate always
has resolvable metadata. The price is an orphaned index entry when the
ledger write then fails; nothing reconciles the two stores.
Index reads and writes are blocking file I/O and run in a worker thread.

The reported id is derived, never stored: if another issuer lands a
certificate between our confirmation and the count read, the id we
report belongs to that other certificate.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from certchain.clients.ipfs import PinataUploader
from certchain.clients.ledger import create_web3
from certchain.primitives.certificate import (
    IssuanceResult,
    Roles,
    TransactionOutcome,
    VerificationResult,
)
from certchain.systems.certificates.errors import CertificateNotFound
from certchain.systems.certificates.metadata import (
    build_metadata_record,
    category_code,
    content_hash,
    subject_address,
)
from certchain.systems.certificates.store import JsonFileMetadataStore, MetadataStore
from certchain.systems.ledger.abi import AUTHORIZE_ISSUER, ISSUE_CERTIFICATE
from certchain.systems.ledger.accounts import AccountResolver
from certchain.systems.ledger.deployment import resolve_contract_address
from certchain.systems.ledger.reader import LedgerReader
from certchain.systems.ledger.submitter import TransactionSubmitter

if TYPE_CHECKING:
    from certchain.clients.ipfs import ContentUploader
    from certchain.config import CertChainConfig

logger = structlog.get_logger("certchain.certificates.pipeline")


class CertificatePipeline:
    """
    Orchestrates issuance and verification against one ledger node.

    Every call is an independent sequence of awaited steps; the pipeline
    holds no per-certificate state between calls.
    """

    def __init__(
        self,
        config: CertChainConfig,
        w3: Any,
        uploader: ContentUploader,
        store: MetadataStore,
        submitter: TransactionSubmitter | None = None,
        reader: LedgerReader | None = None,
        resolver: AccountResolver | None = None,
    ) -> None:
        self._config = config
        self._w3 = w3
        self._uploader = uploader
        self._store = store
        self._submitter = submitter or TransactionSubmitter(w3, config.ledger)
        self._reader = reader or LedgerReader(
            w3, prefer_contract_calls=config.ledger.prefer_contract_calls
        )
        self._resolver = resolver or AccountResolver(w3)

    @classmethod
    def from_config(cls, config: CertChainConfig) -> CertificatePipeline:
        """Wire the default collaborators: web3 over HTTP, Pinata, JSON index."""
        return cls(
            config=config,
            w3=create_web3(config.ledger),
            uploader=PinataUploader(config.upload),
            store=JsonFileMetadataStore(config.store.metadata_path),
        )

    @property
    def w3(self) -> Any:
        return self._w3

    @property
    def uploader(self) -> ContentUploader:
        return self._uploader

    def contract_address(self) -> str:
        return resolve_contract_address(self._config.ledger)

    async def resolve_roles(self, subject: str | None = None) -> Roles:
        return await self._resolver.resolve_roles(subject=subject)

    # ── Issuance ──────────────────────────────────────────────

    async def issue(
        self,
        payload: dict[str, Any],
        subject: str | None = None,
        roles: Roles | None = None,
    ) -> IssuanceResult:
        """
        Issue one certificate.

        Raises:
            ValidationError: missing/invalid payload fields (nothing submitted).
            NoAccountsAvailable: the node manages no accounts.
            ContractAddressUnavailable: no contract to issue against.
            UploadFailure: content storage rejected the metadata.
            SubmissionFailure: both transaction paths failed.
        """
        record = build_metadata_record(payload, self._config.certificates)
        category = category_code(payload, record, self._config.certificates)
        subject = subject or subject_address(payload)

        if roles is None:
            roles = await self._resolver.resolve_roles(subject=subject)
        elif subject is not None:
            roles = roles.model_copy(update={"subject": subject})
        contract = self.contract_address()

        locator = await self._uploader.upload(record)
        anchored_hash = content_hash(locator)

        if not await asyncio.to_thread(self._store.put, anchored_hash, record):
            logger.debug("metadata_not_written", content_hash=anchored_hash)

        outcome = await self._submitter.submit(
            roles.issuer,
            contract,
            ISSUE_CERTIFICATE,
            [roles.subject, anchored_hash, category],
        )
        outcome = await self._submitter.confirm(outcome)
        record_id = await self._issued_record_id(contract)

        logger.info(
            "certificate_issued",
            contract=contract,
            tx_hash=outcome.hash,
            record_id=record_id,
            content_hash=anchored_hash,
            locator=locator,
            subject=roles.subject,
            category=category,
        )

        return IssuanceResult(
            tx_hash=outcome.hash,
            content_hash=anchored_hash,
            content_locator=locator,
            record_id=record_id,
            category=category,
            contract_address=contract,
            outcome=outcome,
            metadata=record,
        )

    async def _issued_record_id(self, contract: str) -> int | None:
        try:
            total = await self._reader.total_certificates(contract)
        except Exception as e:
            logger.warning(
                "certificate_count_unavailable",
                contract=contract,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        return max(0, total - 1)

    async def authorize_issuer(
        self,
        issuer: str | None = None,
        roles: Roles | None = None,
    ) -> TransactionOutcome:
        """Have the admin identity authorize `issuer` (default: the issuer role)."""
        if roles is None:
            roles = await self._resolver.resolve_roles()
        contract = self.contract_address()
        target = issuer or roles.issuer

        outcome = await self._submitter.submit(roles.admin, contract, AUTHORIZE_ISSUER, [target])
        outcome = await self._submitter.confirm(outcome)
        logger.info("issuer_authorized", contract=contract, issuer=target, tx_hash=outcome.hash)
        return outcome

    # ── Verification ──────────────────────────────────────────

    async def latest_record_id(self, contract: str | None = None) -> int:
        total = await self._reader.total_certificates(contract or self.contract_address())
        if total == 0:
            raise CertificateNotFound("No certificates have been issued")
        return total - 1

    async def verify(self, record_id: int | None = None) -> VerificationResult:
        """
        Read a certificate back and resolve its metadata.

        Missing local metadata is not an error: the result then carries
        only the on-chain record.

        Raises:
            CertificateNotFound: the id is outside 0..total-1.
        """
        contract = self.contract_address()
        if record_id is None:
            record_id = await self.latest_record_id(contract)
        else:
            total = await self._reader.total_certificates(contract)
            if not 0 <= record_id < total:
                raise CertificateNotFound(
                    f"Certificate {record_id} does not exist ({total} issued)"
                )

        record = await self._reader.read_certificate(contract, record_id)
        metadata = await asyncio.to_thread(self._store.get, record.content_hash)
        if metadata is None:
            logger.warning(
                "certificate_metadata_missing",
                record_id=record_id,
                content_hash=record.content_hash,
            )

        logger.info("certificate_verified", record_id=record_id, resolved=metadata is not None)
        return VerificationResult(record_id=record_id, record=record, metadata=metadata)

    async def inspect_issuance(self, tx_hash: str) -> dict[str, Any] | None:
        """Decoded arguments of a past issueCertificate transaction."""
        return await self._reader.issued_arguments(tx_hash)
