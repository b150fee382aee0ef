"""
Entity: Submission Result

Consolidated result of the whole pipeline
(fingerprint + analysis + scoring + decision + issuance).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from docseal.core.entities.decision import Decision
from docseal.core.entities.document import Document
from docseal.core.entities.forensic_report import ForensicReport


class IssuanceStage(str, Enum):
    LEDGER = "LEDGER"
    ARCHIVE = "ARCHIVE"


@dataclass
class IssuanceResult:
    """Outcome of IssuancePipeline.issue / retry."""
    document_id: str
    document: Document | None = None       # state after the run
    forensic_complete: bool = True
    issued: bool = False
    issuance_pending: bool = False
    failed_stage: IssuanceStage | None = None
    error: str | None = None
    attestation_ref: str | None = None
    token_ref: str | None = None
    ledger_confirmed: bool = False
    archive_locator: str | None = None
    stages_run: list[str] = field(default_factory=list)


@dataclass
class SubmissionResult:
    """Result of one document submission."""
    document: Document
    report: ForensicReport | None = None
    decision: Decision | None = None
    issuance: IssuanceResult | None = None
    deduplicated: bool = False          # same owner re-uploaded the same bytes
    cache_hit: bool = False             # analysis reused from ForensicCache

    # Meta
    pipeline_version: str = ""
    total_latency_ms: float = 0.0
    stage_latencies: dict = field(default_factory=dict)  # {"analysis_ms": 812.4, ...}
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
