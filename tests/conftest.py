import pytest

from docseal.api.dependencies import build_container
from docseal.config.settings import Settings
from docseal.infrastructure.db.database import Database
from docseal.infrastructure.db.repository import (
    SqlAuditRepository,
    SqlDocumentRepository,
    SqlForensicReportRepository,
    SqlPermissionRepository,
)
from docseal.core.services.audit_trail import AuditTrail
from tests.fakes import FakeAnalysis, FlakyArchive, FlakyLedger


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        database_url="sqlite://",
        retry_backoff_seconds=0,
        analysis_timeout_seconds=1.0,
        archive_encryption_key="00" * 32,
    )


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def documents(database):
    return SqlDocumentRepository(database)


@pytest.fixture
def reports(database):
    return SqlForensicReportRepository(database)


@pytest.fixture
def permissions_repo(database):
    return SqlPermissionRepository(database)


@pytest.fixture
def audit(database):
    return AuditTrail(SqlAuditRepository(database))


@pytest.fixture
def analysis():
    return FakeAnalysis()


@pytest.fixture
def ledger():
    return FlakyLedger()


@pytest.fixture
def archive():
    return FlakyArchive()


@pytest.fixture
def container(settings, database, analysis, ledger, archive):
    return build_container(
        settings=settings,
        database=database,
        analysis=analysis,
        ledger=ledger,
        archive=archive,
    )
