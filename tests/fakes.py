"""
Test doubles for the external collaborators (analysis engine, ledger,
archive) plus small builders.
"""

import asyncio
import copy
from datetime import datetime, timedelta, timezone

from docseal.core.entities.forensic_report import (
    Findings,
    ForensicReport,
    RecommendedAction,
    TamperRisk,
)
from docseal.core.errors import TransientExternalError
from docseal.core.interfaces.analysis_capability import IAnalysisCapability, SignalFamily
from docseal.infrastructure.ledger.memory_ledger import InMemoryLedgerClient
from docseal.infrastructure.storage.memory_archive_store import InMemoryArchiveStore


def clean_payloads(face_confidence: float = 0.9) -> dict:
    """Payloads for a genuine portrait document: overall 93, APPROVE."""
    return {
        SignalFamily.TAMPER: {"tamperIndicators": []},
        SignalFamily.OCR: {"ocrZones": [{"text": "JOHN DOE", "confidence": 0.95, "region": "name"}]},
        SignalFamily.METADATA: {"metadata": {"documentQuality": "GOOD", "hasSecurityFeatures": True}},
        SignalFamily.BIOMETRIC: {
            "biometric": {
                "hasFaceImage": True,
                "faceConfidence": face_confidence,
                "faceQuality": "GOOD",
                "facialFeatures": {"eyeColor": "brown", "faceShape": "oval"},
            }
        },
    }


def tampered_payloads() -> dict:
    """One HIGH indicator, otherwise good: overall 83, REVIEW."""
    payloads = clean_payloads()
    payloads[SignalFamily.TAMPER] = {
        "tamperIndicators": [
            {"type": "FONT_INCONSISTENCY", "severity": "HIGH", "confidence": 0.8, "description": "Mixed fonts"}
        ]
    }
    payloads[SignalFamily.OCR] = {"ocrZones": [{"text": "JOHN DOE", "confidence": 0.9}]}
    return payloads


def forged_payloads() -> dict:
    """Heavily tampered and unreadable: REJECT."""
    return {
        SignalFamily.TAMPER: {
            "tamperIndicators": [
                {"type": "CLONE_STAMP", "severity": "CRITICAL", "confidence": 0.9},
                {"type": "FONT_INCONSISTENCY", "severity": "HIGH", "confidence": 0.8},
                {"type": "EDGE_ARTIFACT", "severity": "MEDIUM", "confidence": 0.7},
            ]
        },
        SignalFamily.OCR: {"ocrZones": [{"text": "J?HN", "confidence": 0.3}]},
        SignalFamily.METADATA: {"metadata": {"documentQuality": "POOR", "hasSecurityFeatures": False}},
        SignalFamily.BIOMETRIC: {"biometric": {"hasFaceImage": False}},
    }


class FakeAnalysis(IAnalysisCapability):
    """Scripted analysis engine. Records every call."""

    def __init__(self, payloads: dict | None = None, delays: dict | None = None, failures: dict | None = None):
        self.payloads = payloads or clean_payloads()
        self.delays = delays or {}
        self.failures = failures or {}
        self.calls: list[tuple[str, SignalFamily]] = []

    async def analyze(self, image_bytes: bytes, document_type: str, family: SignalFamily) -> dict:
        self.calls.append((document_type, family))
        if family in self.delays:
            await asyncio.sleep(self.delays[family])
        if family in self.failures:
            raise self.failures[family]
        return copy.deepcopy(self.payloads[family])

    def calls_for(self, family: SignalFamily) -> int:
        return sum(1 for _, f in self.calls if f is family)


class FlakyLedger(InMemoryLedgerClient):
    """In-memory ledger whose next `failures` writes raise TransientExternalError."""

    def __init__(self, failures: int = 0, delay: float = 0.0):
        super().__init__()
        self.failures = failures
        self.delay = delay
        self.writes = 0

    async def attest(self, schema_id, issuer, holder, payload):
        self._maybe_fail()
        if self.delay:
            await asyncio.sleep(self.delay)
        return await super().attest(schema_id, issuer, holder, payload)

    async def mint_token(self, metadata, owner):
        self._maybe_fail()
        if self.delay:
            await asyncio.sleep(self.delay)
        return await super().mint_token(metadata, owner)

    def _maybe_fail(self):
        self.writes += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransientExternalError("ledger", "node unavailable")


class FlakyArchive(InMemoryArchiveStore):
    """In-memory archive whose next `failures` puts raise TransientExternalError."""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures
        self.puts = 0

    async def put(self, encrypted_bytes, tags):
        self.puts += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransientExternalError("archive", "gateway timeout")
        return await super().put(encrypted_bytes, tags)


class FakeClock:
    """Settable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_report(
    overall_score: int,
    action: RecommendedAction,
    fingerprint: str = "f" * 64,
    tampering_detected: bool = False,
    biometric_signature: dict | None = None,
) -> ForensicReport:
    return ForensicReport(
        fingerprint=fingerprint,
        integrity_score=float(overall_score),
        authenticity_score=50.0 if tampering_detected else 95.0,
        metadata_score=90.0,
        ocr_score=90.0,
        biometric_score=85.0,
        security_score=90.0,
        overall_score=overall_score,
        tampering_detected=tampering_detected,
        tamper_risk=TamperRisk.HIGH if tampering_detected else TamperRisk.NONE,
        recommended_action=action,
        threshold_met=action is RecommendedAction.APPROVE,
        findings=Findings(weaknesses=("Low OCR confidence",) if overall_score < 70 else ()),
        biometric_signature=biometric_signature,
    )
