"""
Dependency wiring for the HTTP surface.

`build_container` picks the adapters from Settings (memory vs http
backends) and assembles the use cases once per process. Tests pass
their own adapters in.
"""

import logging
from dataclasses import dataclass, field

import httpx
from fastapi import Depends, Header, Request

from docseal.config.settings import Settings, get_settings
from docseal.core.errors import AuthorizationError, NotAuthenticated
from docseal.core.interfaces.analysis_capability import IAnalysisCapability
from docseal.core.interfaces.archive_store import IArchiveStore
from docseal.core.interfaces.cache_store import ICacheStore
from docseal.core.interfaces.ledger_client import ILedgerClient
from docseal.core.services.audit_trail import AuditTrail
from docseal.core.services.biometric import BiometricDeduplicator
from docseal.core.services.forensic_cache import ForensicCache
from docseal.core.use_cases.analyze_batch import AnalyzeBatchUseCase
from docseal.core.use_cases.collect_signals import RawSignalCollector
from docseal.core.use_cases.decide import DecisionEngine
from docseal.core.use_cases.issue_document import IssuancePipeline
from docseal.core.use_cases.manage_permissions import PermissionLedger
from docseal.core.use_cases.review_document import ReviewDocumentUseCase
from docseal.core.use_cases.score_compliance import ComplianceScorer, ScoringPolicy
from docseal.core.use_cases.submit_document import SubmitDocumentUseCase
from docseal.infrastructure.cache.memory_cache import InMemoryCacheStore
from docseal.infrastructure.db.database import Database
from docseal.infrastructure.db.repository import (
    SqlAuditRepository,
    SqlDocumentRepository,
    SqlForensicReportRepository,
    SqlPermissionRepository,
)
from docseal.infrastructure.storage.encryption import DocumentCipher

logger = logging.getLogger(__name__)

REVIEWER_ROLES = frozenset({"REVIEWER", "ADMIN"})


@dataclass
class Container:
    """Everything a request handler may need."""
    settings: Settings
    database: Database
    documents: SqlDocumentRepository
    reports: SqlForensicReportRepository
    permissions_repo: SqlPermissionRepository
    audit: AuditTrail
    forensic_cache: ForensicCache
    decisions: DecisionEngine
    submit: SubmitDocumentUseCase
    review: ReviewDocumentUseCase
    issuance: IssuancePipeline
    permissions: PermissionLedger
    batches: AnalyzeBatchUseCase
    http_clients: list[httpx.AsyncClient] = field(default_factory=list)

    async def aclose(self) -> None:
        for client in self.http_clients:
            await client.aclose()
        self.database.dispose()


def _analysis(settings: Settings) -> IAnalysisCapability:
    if not settings.gemini_api_key:
        raise ValueError("GEMINI_API_KEY is required to run document analysis")
    from docseal.infrastructure.analysis.gemini_analysis import GeminiAnalysisCapability
    return GeminiAnalysisCapability(api_key=settings.gemini_api_key, model_name=settings.gemini_model)


def _ledger(settings: Settings, clients: list[httpx.AsyncClient]) -> ILedgerClient:
    if settings.ledger_backend == "http":
        from docseal.infrastructure.ledger.http_ledger_client import HttpLedgerClient
        client = httpx.AsyncClient(timeout=settings.ledger_timeout_seconds)
        clients.append(client)
        return HttpLedgerClient(client, settings.ledger_url, api_key=settings.ledger_api_key)
    from docseal.infrastructure.ledger.memory_ledger import InMemoryLedgerClient
    logger.warning("Using the in-memory ledger; proofs are not persisted")
    return InMemoryLedgerClient()


def _archive(settings: Settings, clients: list[httpx.AsyncClient]) -> IArchiveStore:
    if settings.archive_backend == "http":
        from docseal.infrastructure.storage.http_archive_store import HttpArchiveStore
        client = httpx.AsyncClient(timeout=settings.archive_timeout_seconds)
        clients.append(client)
        return HttpArchiveStore(client, settings.archive_url)
    from docseal.infrastructure.storage.memory_archive_store import InMemoryArchiveStore
    logger.warning("Using the in-memory archive; archived copies are not persisted")
    return InMemoryArchiveStore()


def build_container(
    settings: Settings | None = None,
    database: Database | None = None,
    analysis: IAnalysisCapability | None = None,
    ledger: ILedgerClient | None = None,
    archive: IArchiveStore | None = None,
    cache_store: ICacheStore | None = None,
) -> Container:
    """Factory: build every use case with concrete adapters."""
    settings = settings or get_settings()
    clients: list[httpx.AsyncClient] = []

    database = database or Database(settings.database_url)
    database.init()

    documents = SqlDocumentRepository(database)
    reports = SqlForensicReportRepository(database)
    permissions_repo = SqlPermissionRepository(database)
    audit = AuditTrail(SqlAuditRepository(database))

    policy = ScoringPolicy.from_settings(settings)
    decisions = DecisionEngine(policy, biometric_match_threshold=settings.biometric_match_threshold)
    forensic_cache = ForensicCache(
        cache_store or InMemoryCacheStore(
            default_ttl=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        ),
        ttl_seconds=settings.cache_ttl_seconds,
    )

    issuance = IssuancePipeline(
        documents=documents,
        ledger=ledger or _ledger(settings, clients),
        archive=archive or _archive(settings, clients),
        cipher=DocumentCipher.from_hex(settings.archive_encryption_key),
        audit=audit,
        schema_id=settings.attestation_schema_id,
        issuer_id=settings.issuer_id,
        max_attempts=settings.retry_max_attempts,
        backoff_seconds=settings.retry_backoff_seconds,
    )
    submit = SubmitDocumentUseCase(
        documents=documents,
        reports=reports,
        collector=RawSignalCollector(analysis or _analysis(settings), timeout_seconds=settings.analysis_timeout_seconds),
        scorer=ComplianceScorer(policy),
        cache=forensic_cache,
        decisions=decisions,
        biometrics=BiometricDeduplicator(documents),
        audit=audit,
        issuance=issuance,
    )

    return Container(
        settings=settings,
        database=database,
        documents=documents,
        reports=reports,
        permissions_repo=permissions_repo,
        audit=audit,
        forensic_cache=forensic_cache,
        decisions=decisions,
        submit=submit,
        review=ReviewDocumentUseCase(documents, reports, decisions, audit, issuance=issuance),
        issuance=issuance,
        permissions=PermissionLedger(permissions_repo, documents, audit),
        batches=AnalyzeBatchUseCase(submit, max_size=settings.batch_max_size),
        http_clients=clients,
    )


# ── FastAPI dependencies ──

def get_container(request: Request) -> Container:
    return request.app.state.container


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str = "CITIZEN"


def current_user(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Principal:
    """Identity comes from a trusted gateway as X-User-Id / X-User-Role."""
    if not x_user_id:
        raise NotAuthenticated()
    return Principal(user_id=x_user_id, role=(x_user_role or "CITIZEN").upper())


def require_reviewer(user: Principal = Depends(current_user)) -> Principal:
    if user.role not in REVIEWER_ROLES:
        raise AuthorizationError("Reviewer role required", role=user.role)
    return user
