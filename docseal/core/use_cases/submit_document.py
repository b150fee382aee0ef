"""
Use Case: Submit Document: full pipeline.

Orchestrates: Fingerprint → Dedupe → Forensic analysis (cached) →
Biometric check → Decision → Issuance (approved only).
Measures the latency of every stage.
"""

import logging
import time
import uuid
from dataclasses import replace

from docseal.core.entities.audit_entry import AuditAction
from docseal.core.entities.decision import DecisionState
from docseal.core.entities.document import Document, DocumentClass, LifecycleStatus, lifecycle_for
from docseal.core.entities.forensic_report import ForensicReport
from docseal.core.entities.submission_result import SubmissionResult
from docseal.core.errors import ValidationError
from docseal.core.interfaces.repositories import IDocumentRepository, IForensicReportRepository
from docseal.core.services.audit_trail import AuditTrail
from docseal.core.services.biometric import BiometricDeduplicator
from docseal.core.services.fingerprint import ContentFingerprinter
from docseal.core.services.forensic_cache import ForensicCache
from docseal.core.use_cases.collect_signals import RawSignalCollector
from docseal.core.use_cases.decide import DecisionEngine
from docseal.core.use_cases.issue_document import IssuancePipeline
from docseal.core.use_cases.score_compliance import ComplianceScorer

logger = logging.getLogger(__name__)


def _ms(t0: float) -> float:
    return round((time.perf_counter() - t0) * 1000, 2)


class SubmitDocumentUseCase:
    """
    Use Case: upload → pipeline → SubmissionResult.

    Dependency Injection: every collaborator comes through the constructor.
    Issuance is optional (None → approved documents stay VERIFIED).
    """

    PIPELINE_VERSION = "1.0.0"

    def __init__(
        self,
        documents: IDocumentRepository,
        reports: IForensicReportRepository,
        collector: RawSignalCollector,
        scorer: ComplianceScorer,
        cache: ForensicCache,
        decisions: DecisionEngine,
        biometrics: BiometricDeduplicator,
        audit: AuditTrail,
        issuance: IssuancePipeline | None = None,
        fingerprinter: ContentFingerprinter | None = None,
    ):
        self._documents = documents
        self._reports = reports
        self._collector = collector
        self._scorer = scorer
        self._cache = cache
        self._decisions = decisions
        self._biometrics = biometrics
        self._audit = audit
        self._issuance = issuance
        self._fingerprinter = fingerprinter or ContentFingerprinter()

    async def execute(
        self,
        image_bytes: bytes,
        owner_id: str,
        document_class: DocumentClass,
        title: str = "",
        mime_type: str = "image/jpeg",
        biometric: bool | None = None,
    ) -> SubmissionResult:
        """
        Run the complete pipeline for one upload.

        1. Fingerprint: SHA-256 of the bytes
        2. Dedupe: same owner + same bytes returns the existing document
        3. Analysis: ForensicCache (single-flight) → collect → score
        4. Biometric duplicate check
        5. Decision
        6. Issuance: only when APPROVED
        """
        if not image_bytes:
            raise ValidationError("Empty upload")
        if not owner_id:
            raise ValidationError("owner_id is required")

        stage_latencies: dict[str, float] = {}
        t_start = time.perf_counter()

        # ── 1. Fingerprint ─────────────────────────────────
        t0 = time.perf_counter()
        fingerprint = self._fingerprinter.fingerprint(image_bytes)
        stage_latencies["fingerprint_ms"] = _ms(t0)

        # ── 2. Dedupe ──────────────────────────────────────
        existing = self._documents.find_by_owner_and_fingerprint(owner_id, fingerprint)
        if existing is None:
            candidate = Document(
                id=str(uuid.uuid4()),
                owner_id=owner_id,
                content_fingerprint=fingerprint,
                document_class=document_class,
                title=title,
                mime_type=mime_type,
                byte_size=len(image_bytes),
            )
            document = self._documents.add(candidate)
            if document.id != candidate.id:
                existing = document   # concurrent identical upload won the insert
        if existing is not None:
            return self._deduplicated(existing, stage_latencies, t_start)

        self._audit.record(
            AuditAction.DOCUMENT_SUBMITTED,
            actor_id=owner_id,
            document_id=document.id,
            to_state=LifecycleStatus.PENDING.value,
            details={"fingerprint": fingerprint, "document_class": document_class.value, "byte_size": len(image_bytes)},
        )

        # ── 3. Analysis ────────────────────────────────────
        state = self._decisions.begin_analysis(document.decision_state, document_id=document.id)
        document = self._documents.update(replace(
            document, decision_state=state, lifecycle_status=LifecycleStatus.ANALYZING
        ))
        self._audit.record(
            AuditAction.ANALYSIS_STARTED,
            actor_id=owner_id,
            document_id=document.id,
            from_state=LifecycleStatus.PENDING.value,
            to_state=LifecycleStatus.ANALYZING.value,
        )

        t0 = time.perf_counter()
        analyzed = False

        async def compute() -> ForensicReport:
            nonlocal analyzed
            stored = self._reports.latest(fingerprint)
            if stored is not None:
                return stored
            analyzed = True
            signals = await self._collector.collect(image_bytes, document_class, biometric=biometric)
            stage_latencies.update({f"{k.lower()}_ms": v for k, v in signals.family_latencies.items()})
            return self._reports.save(self._scorer.score(signals, fingerprint))

        report, reused = await self._cache.get_or_compute(fingerprint, compute)
        stage_latencies["analysis_ms"] = _ms(t0)
        self._audit.record(
            AuditAction.ANALYSIS_COMPLETED,
            actor_id=owner_id,
            document_id=document.id,
            details={
                "overall_score": report.overall_score,
                "report_version": report.version,
                "cache_hit": reused,
                "fresh_analysis": analyzed,
                "partial_failures": list(report.partial_failures),
            },
        )

        # ── 4. Biometric check ─────────────────────────────
        t0 = time.perf_counter()
        biometric_hash, match = self._biometrics.find_match(owner_id, report)
        stage_latencies["biometric_check_ms"] = _ms(t0)

        # ── 5. Decision ────────────────────────────────────
        decision = self._decisions.decide(document.decision_state, report, match, document_id=document.id)
        lifecycle = lifecycle_for(decision.state)
        document = self._documents.update(replace(
            document,
            decision_state=decision.state,
            decision_reason=decision.reason,
            overall_score=report.overall_score,
            biometric_hash=biometric_hash,
            lifecycle_status=lifecycle,
        ))
        self._audit.record(
            AuditAction.DECISION_MADE,
            actor_id=owner_id,
            document_id=document.id,
            from_state=LifecycleStatus.ANALYZING.value,
            to_state=lifecycle.value,
            details={
                "decision": decision.state.value,
                "reason": decision.reason,
                "overall_score": report.overall_score,
                "recommended_action": report.recommended_action.value,
            },
        )
        if decision.forced_by_biometric_match:
            self._audit.record(
                AuditAction.BIOMETRIC_DUPLICATE_FLAGGED,
                actor_id=owner_id,
                document_id=document.id,
                details={
                    "other_owner_id": match.other_owner_id,
                    "other_document_id": match.other_document_id,
                    "confidence": match.confidence,
                },
            )
        logger.info(f"Document {document.id} decided {decision.state.value} (score {report.overall_score})")

        result = SubmissionResult(
            document=document,
            report=report,
            decision=decision,
            cache_hit=reused,
            pipeline_version=self.PIPELINE_VERSION,
        )

        # ── 6. Issuance ────────────────────────────────────
        if decision.state is DecisionState.APPROVED and self._issuance is not None:
            t0 = time.perf_counter()
            issuance = await self._issuance.issue(document, report, image_bytes=image_bytes, actor_id=owner_id)
            stage_latencies["issuance_ms"] = _ms(t0)
            result.issuance = issuance
            result.document = issuance.document or document

        result.stage_latencies = stage_latencies
        result.total_latency_ms = _ms(t_start)
        return result

    def _deduplicated(self, document: Document, stage_latencies: dict, t_start: float) -> SubmissionResult:
        logger.info(f"Owner {document.owner_id} re-uploaded {document.content_fingerprint[:12]}, returning {document.id}")
        self._audit.record(
            AuditAction.DOCUMENT_DEDUPLICATED,
            actor_id=document.owner_id,
            document_id=document.id,
            details={"fingerprint": document.content_fingerprint},
        )
        return SubmissionResult(
            document=document,
            report=self._reports.latest(document.content_fingerprint),
            deduplicated=True,
            pipeline_version=self.PIPELINE_VERSION,
            stage_latencies=stage_latencies,
            total_latency_ms=_ms(t_start),
        )
