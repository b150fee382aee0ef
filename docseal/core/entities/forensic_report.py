"""
Entity: Forensic Report

One scoring result, keyed by content fingerprint (identical bytes
from different owners share a report). Immutable once written; a
re-analysis produces a new version.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum


class RecommendedAction(str, Enum):
    APPROVE = "APPROVE"
    REVIEW = "REVIEW"
    REJECT = "REJECT"


class TamperRisk(str, Enum):
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class Findings:
    """Human-readable summary of a report."""
    strengths: tuple[str, ...] = ()
    weaknesses: tuple[str, ...] = ()
    anomalies: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class ForensicReport:
    """Scored forensic analysis of one document version."""
    fingerprint: str
    integrity_score: float
    authenticity_score: float
    metadata_score: float
    ocr_score: float
    biometric_score: float
    security_score: float
    overall_score: int
    tampering_detected: bool
    tamper_risk: TamperRisk
    recommended_action: RecommendedAction
    threshold_met: bool = False
    approve_threshold: int = 85
    partial_failures: tuple[str, ...] = ()
    findings: Findings = field(default_factory=Findings)
    extracted_text: str = ""
    tamper_indicator_count: int = 0
    biometric_signature: dict | None = None   # face descriptor, used for dedup
    version: int = 1
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def sub_scores(self) -> dict[str, float]:
        return {
            "integrity": self.integrity_score,
            "authenticity": self.authenticity_score,
            "metadata": self.metadata_score,
            "ocr": self.ocr_score,
            "biometric": self.biometric_score,
            "security": self.security_score,
        }

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tamper_risk"] = self.tamper_risk.value
        data["recommended_action"] = self.recommended_action.value
        data["created_at"] = self.created_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ForensicReport":
        findings = data.get("findings") or {}
        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            fingerprint=data["fingerprint"],
            integrity_score=data["integrity_score"],
            authenticity_score=data["authenticity_score"],
            metadata_score=data["metadata_score"],
            ocr_score=data["ocr_score"],
            biometric_score=data["biometric_score"],
            security_score=data["security_score"],
            overall_score=data["overall_score"],
            tampering_detected=data["tampering_detected"],
            tamper_risk=TamperRisk(data["tamper_risk"]),
            recommended_action=RecommendedAction(data["recommended_action"]),
            threshold_met=data.get("threshold_met", False),
            approve_threshold=data.get("approve_threshold", 85),
            partial_failures=tuple(data.get("partial_failures") or ()),
            findings=Findings(**{k: tuple(v) for k, v in findings.items()}),
            extracted_text=data.get("extracted_text", ""),
            tamper_indicator_count=data.get("tamper_indicator_count", 0),
            biometric_signature=data.get("biometric_signature"),
            version=data.get("version", 1),
            created_at=created_at or datetime.now(timezone.utc),
        )
