"""
Use Case: Issue Document

Turns an APPROVED document into an issued one:

    0. claim        compare-and-set an issuance claim on the document
    1. classify     identity fact → attestation, ownership asset → token
    2. ledger       attest / mint; receipt audited, then persisted at once
    3. archive      AES-256-GCM envelope + provenance tags → locator
    4. persist      locator saved, lifecycle VERIFIED → ISSUED, claim cleared

Ledger writes are not idempotent. Only the run holding the claim may
reach step 2, a document that already holds a ledger reference never
reaches it again, and a receipt recorded in the audit trail but never
persisted is adopted instead of minting anew. External steps are
retried with exponential backoff on TransientExternalError (tenacity).
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docseal.core.entities.audit_entry import AuditAction
from docseal.core.entities.decision import DecisionState
from docseal.core.entities.document import AssetCategory, Document, LifecycleStatus
from docseal.core.entities.forensic_report import ForensicReport
from docseal.core.entities.permission import utcnow
from docseal.core.entities.submission_result import IssuanceResult, IssuanceStage
from docseal.core.errors import InvalidTransition, NotFoundError, StaleStateError, TransientExternalError, ValidationError
from docseal.core.interfaces.archive_store import IArchiveStore
from docseal.core.interfaces.document_cipher import IDocumentCipher
from docseal.core.interfaces.ledger_client import ILedgerClient, LedgerReceipt
from docseal.core.interfaces.repositories import IDocumentRepository
from docseal.core.services.audit_trail import AuditTrail
from docseal.core.services.fingerprint import ContentFingerprinter

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYSTEM_ACTOR = "system:issuance"
LEDGER_REF_WRITE_ATTEMPTS = 3
# A claim older than this belongs to a run that died
CLAIM_TTL = timedelta(minutes=10)
LEDGER_RECEIPT_ACTIONS = (AuditAction.LEDGER_ATTESTED, AuditAction.LEDGER_MINTED)


class IssuancePipeline:
    """
    Use Case: APPROVED document → ledger proof + archived encrypted copy.

    Dependency Injection: ledger, archive, cipher and repositories come
    through the constructor.
    """

    def __init__(
        self,
        documents: IDocumentRepository,
        ledger: ILedgerClient,
        archive: IArchiveStore,
        cipher: IDocumentCipher,
        audit: AuditTrail,
        schema_id: str = "schema_document_verification",
        issuer_id: str = "docseal-issuer",
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._documents = documents
        self._ledger = ledger
        self._archive = archive
        self._cipher = cipher
        self._audit = audit
        self._schema_id = schema_id
        self._issuer_id = issuer_id
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._clock = clock
        self._fingerprinter = ContentFingerprinter()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def issue(
        self,
        document: Document,
        report: ForensicReport | None = None,
        image_bytes: bytes | None = None,
        actor_id: str | None = None,
    ) -> IssuanceResult:
        """
        Run the issuance steps that are still missing for `document`.

        Without `image_bytes` the ledger step still runs and the archive
        step is left pending until the original file is supplied again.

        Raises:
            InvalidTransition: the document's decision is not APPROVED.
            ValidationError: `image_bytes` do not match the fingerprint.
            StaleStateError: another run is issuing this document.
        """
        if document.decision_state is not DecisionState.APPROVED:
            logger.error(f"Issuance requested for {document.id} in decision state {document.decision_state.value}")
            raise InvalidTransition(
                document.decision_state.value, LifecycleStatus.ISSUED.value, document_id=document.id
            )
        if image_bytes is not None and self._fingerprinter.fingerprint(image_bytes) != document.content_fingerprint:
            raise ValidationError("Uploaded bytes do not match the document fingerprint", document_id=document.id)

        actor = actor_id or SYSTEM_ACTOR
        result = IssuanceResult(document_id=document.id, document=document)

        if document.is_issued:
            logger.info(f"Document {document.id} already issued, nothing to do")
            return self._finish(result, document, issued=True)

        # ── 0. Claim ───────────────────────────────────────
        document = self._claim(document)
        if document.is_issued:
            logger.info(f"Document {document.id} was issued concurrently, nothing to do")
            return self._finish(result, document, issued=True)

        claim = document.issuance_claim
        try:
            return await self._run_steps(result, document, report, image_bytes, actor)
        finally:
            released = self._release(document.id, claim)
            if released is not None:
                result.document = released

    async def _run_steps(
        self,
        result: IssuanceResult,
        document: Document,
        report: ForensicReport | None,
        image_bytes: bytes | None,
        actor: str,
    ) -> IssuanceResult:
        # ── 1-2. Ledger ────────────────────────────────────
        if document.ledger_ref is None:
            receipt = self._recorded_receipt(document)
            if receipt is not None:
                logger.warning(
                    f"Document {document.id} has an unpersisted ledger receipt {receipt.ref}, adopting it"
                )
            else:
                result.stages_run.append(IssuanceStage.LEDGER.value)
                try:
                    receipt = await self._retrying(lambda: self._write_ledger(document, report))
                except Exception as e:
                    self._log_failure(IssuanceStage.LEDGER, document, e)
                    self._audit.record(
                        AuditAction.LEDGER_FAILED,
                        actor_id=actor,
                        document_id=document.id,
                        details={"error": str(e), "category": document.category.value},
                    )
                    return self._finish(result, document, failed=IssuanceStage.LEDGER, error=str(e))

                # receipt is audited before the row write
                self._audit.record(
                    AuditAction.LEDGER_ATTESTED
                    if document.category is AssetCategory.NON_TRANSFERABLE
                    else AuditAction.LEDGER_MINTED,
                    actor_id=actor,
                    document_id=document.id,
                    details={
                        "ref": receipt.ref,
                        "confirmed": receipt.confirmed,
                        "transaction_id": receipt.transaction_id,
                    },
                )

            try:
                document = self._persist_ledger_ref(document, receipt, actor)
            except Exception as e:
                logger.exception(f"Ledger ref {receipt.ref} for {document.id} recorded but not persisted: {e}")
                result = self._finish(result, document, failed=IssuanceStage.LEDGER, error=str(e))
                result.ledger_confirmed = receipt.confirmed
                if document.category is AssetCategory.NON_TRANSFERABLE:
                    result.attestation_ref = receipt.ref
                else:
                    result.token_ref = receipt.ref
                return result
        else:
            logger.info(f"Document {document.id} already holds ledger ref {document.ledger_ref}, skipping ledger")

        # ── 3. Archive ─────────────────────────────────────
        if image_bytes is None:
            logger.info(f"Archive step for {document.id} deferred until the original file is supplied")
            return self._finish(result, document, error="Original file required to archive")

        result.stages_run.append(IssuanceStage.ARCHIVE.value)
        try:
            locator = await self._retrying(lambda: self._write_archive(document, image_bytes))
        except Exception as e:
            self._log_failure(IssuanceStage.ARCHIVE, document, e)
            self._audit.record(
                AuditAction.ARCHIVE_FAILED,
                actor_id=actor,
                document_id=document.id,
                details={"error": str(e), "ledger_ref": document.ledger_ref},
            )
            return self._finish(result, document, failed=IssuanceStage.ARCHIVE, error=str(e))

        self._audit.record(
            AuditAction.ARCHIVE_STORED,
            actor_id=actor,
            document_id=document.id,
            details={"locator": locator, "encryption": self._cipher.algorithm},
        )

        # ── 4. Persist + ISSUED ────────────────────────────
        previous = document.lifecycle_status
        document = self._documents.update(replace(
            document,
            archive_locator=locator,
            lifecycle_status=LifecycleStatus.ISSUED,
            issuance_claim=None,
            issuance_claimed_at=None,
        ))
        self._audit.record(
            AuditAction.DOCUMENT_ISSUED,
            actor_id=actor,
            document_id=document.id,
            from_state=previous.value,
            to_state=LifecycleStatus.ISSUED.value,
            details={"ledger_ref": document.ledger_ref, "archive_locator": locator},
        )
        logger.info(f"Document {document.id} ISSUED (ledger={document.ledger_ref}, archive={locator[:16]})")
        return self._finish(result, document, issued=True)

    async def retry_issuance(
        self,
        document_id: str,
        image_bytes: bytes,
        requester_id: str | None = None,
    ) -> IssuanceResult:
        """Resume a partially issued document. Ledger is skipped when a reference exists."""
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        return await self.issue(document, image_bytes=image_bytes, actor_id=requester_id)

    async def verify_ownership(self, document_id: str, owner_id: str) -> bool:
        """Ask the ledger whether `owner_id` holds the document's attestation/token."""
        document = self._documents.get(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        if document.ledger_ref is None:
            raise ValidationError("Document has no ledger reference yet", document_id=document_id)
        return await self._retrying(lambda: self._ledger.verify_ownership(document.ledger_ref, owner_id))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _write_ledger(self, document: Document, report: ForensicReport | None) -> LedgerReceipt:
        score = report.overall_score if report is not None else document.overall_score
        if document.category is AssetCategory.NON_TRANSFERABLE:
            return await self._ledger.attest(
                schema_id=self._schema_id,
                issuer=self._issuer_id,
                holder=document.owner_id,
                payload={
                    "documentId": document.id,
                    "documentType": document.document_class.value,
                    "documentHash": document.content_fingerprint,
                    "verificationScore": score,
                    "verifiedAt": self._clock().isoformat(),
                },
            )
        return await self._ledger.mint_token(
            metadata={
                "name": document.title or document.document_class.value.replace("_", " ").title(),
                "documentId": document.id,
                "documentType": document.document_class.value,
                "documentHash": document.content_fingerprint,
                "attributes": [
                    {"trait_type": "Verification Score", "value": score},
                    {"trait_type": "Asset Category", "value": document.category.value},
                ],
            },
            owner=document.owner_id,
        )

    async def _write_archive(self, document: Document, image_bytes: bytes) -> str:
        encrypted = self._cipher.encrypt(image_bytes, associated_data=document.id)
        return await self._archive.put(encrypted, self.provenance_tags(document))

    def provenance_tags(self, document: Document) -> dict[str, str]:
        return {
            "Content-Type": "application/octet-stream",
            "Document-Type": document.document_class.value,
            "Document-ID": document.id,
            "Owner": document.owner_id,
            "Issued-At": self._clock().isoformat(),
            "Encryption": self._cipher.algorithm,
            "Content-Hash": document.content_fingerprint,
            "Ledger-Ref": document.ledger_ref or "",
        }

    def _persist_ledger_ref(self, document: Document, receipt: LedgerReceipt, actor: str) -> Document:
        """
        Save the ledger reference right away. A stale write is re-read and
        re-applied, but a reference already on the row is never replaced;
        our receipt is then audited as orphaned.
        """
        field_name = "attestation_ref" if document.category is AssetCategory.NON_TRANSFERABLE else "token_ref"
        current = document
        for attempt in range(1, LEDGER_REF_WRITE_ATTEMPTS + 1):
            if current.ledger_ref == receipt.ref:
                return current
            if current.ledger_ref is not None:
                logger.error(
                    f"Document {document.id} already holds ledger ref {current.ledger_ref}, "
                    f"receipt {receipt.ref} is orphaned"
                )
                self._audit.record(
                    AuditAction.LEDGER_RECEIPT_ORPHANED,
                    actor_id=actor,
                    document_id=document.id,
                    details={"ref": receipt.ref, "kept_ref": current.ledger_ref},
                )
                return current
            try:
                return self._documents.update(replace(
                    current,
                    **{field_name: receipt.ref},
                    ledger_confirmed=receipt.confirmed,
                ))
            except StaleStateError:
                if attempt == LEDGER_REF_WRITE_ATTEMPTS:
                    logger.error(
                        f"Could not persist ledger ref {receipt.ref} for {document.id} "
                        f"after {attempt} attempts"
                    )
                    raise
                current = self._reload(document.id)
                logger.warning(f"Stale write persisting ledger ref for {document.id}, retrying on v{current.version}")
        raise AssertionError("unreachable")

    def _claim(self, document: Document) -> Document:
        """
        Compare-and-set an issuance claim on the document.

        Raises:
            StaleStateError: another run holds a live claim.
        """
        current = document
        for _ in range(LEDGER_REF_WRITE_ATTEMPTS):
            if current.is_issued:
                return current
            now = self._clock()
            if current.issuance_claim is not None and (
                current.issuance_claimed_at is None or now - current.issuance_claimed_at < CLAIM_TTL
            ):
                logger.warning(f"Issuance of {document.id} already in progress, refusing a second run")
                raise StaleStateError("Issuance already in progress", document_id=document.id)
            if current.issuance_claim is not None:
                logger.warning(f"Taking over an expired issuance claim on {document.id}")
            try:
                return self._documents.update(replace(
                    current,
                    issuance_claim=str(uuid.uuid4()),
                    issuance_claimed_at=now,
                ))
            except StaleStateError:
                current = self._reload(document.id)
        raise StaleStateError("Could not claim document for issuance", document_id=document.id)

    def _release(self, document_id: str, claim: str | None) -> Document | None:
        """Clear our claim if it is still on the row. Returns the current document."""
        for _ in range(LEDGER_REF_WRITE_ATTEMPTS):
            current = self._documents.get(document_id)
            if current is None or current.issuance_claim != claim:
                return current
            try:
                return self._documents.update(replace(current, issuance_claim=None, issuance_claimed_at=None))
            except StaleStateError:
                continue
        logger.error(f"Could not release issuance claim on {document_id}, it lapses after {CLAIM_TTL}")
        return None

    def _recorded_receipt(self, document: Document) -> LedgerReceipt | None:
        """Latest ledger receipt in the audit trail, for a ref that never reached the row."""
        for entry in reversed(self._audit.history(document.id)):
            if entry.action in LEDGER_RECEIPT_ACTIONS and entry.details.get("ref"):
                return LedgerReceipt(
                    ref=entry.details["ref"],
                    confirmed=bool(entry.details.get("confirmed")),
                    transaction_id=entry.details.get("transaction_id") or "",
                )
        return None

    def _reload(self, document_id: str) -> Document:
        fresh = self._documents.get(document_id)
        if fresh is None:
            raise NotFoundError("Document", document_id)
        return fresh

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _retrying(self, call: Callable[[], Awaitable[T]]) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=30),
            retry=retry_if_exception_type(TransientExternalError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await call()
        raise AssertionError("unreachable")

    @staticmethod
    def _log_failure(stage: IssuanceStage, document: Document, error: Exception) -> None:
        if isinstance(error, TransientExternalError):
            logger.error(f"{stage.value} step for {document.id} failed after retries: {error}")
        else:
            logger.exception(f"{stage.value} step for {document.id} failed: {error}")

    @staticmethod
    def _finish(
        result: IssuanceResult,
        document: Document,
        issued: bool = False,
        failed: IssuanceStage | None = None,
        error: str | None = None,
    ) -> IssuanceResult:
        result.document = document
        result.issued = issued
        result.issuance_pending = not issued
        result.failed_stage = failed
        result.error = error
        result.attestation_ref = document.attestation_ref
        result.token_ref = document.token_ref
        result.ledger_confirmed = document.ledger_confirmed
        result.archive_locator = document.archive_locator
        return result
