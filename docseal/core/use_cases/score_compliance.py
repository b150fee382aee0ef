"""
Use Case: Compliance Scoring

Deterministic, I/O-free: RawSignals → ForensicReport.

Sub-scores (each in [0, 100]):
  integrity     = 100 - 10 × #tamper indicators, floored at 0
  authenticity  = 50 if any indicator severity ≥ MEDIUM else 95
  metadata      = 90 if document quality is GOOD else 70
  ocr           = mean zone confidence × 100 (0 without zones)
  biometric     = face confidence × 100 if a face was found, else 85
  security      = 90 if security features were found else 60

overall = round-half-up of the (by default equal-weight) mean.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from docseal.config.settings import Settings
from docseal.core.entities.forensic_report import (
    Findings,
    ForensicReport,
    RecommendedAction,
    TamperRisk,
)
from docseal.core.interfaces.analysis_capability import (
    BiometricSignal,
    MetadataSignal,
    RawSignals,
    Severity,
)

SUB_SCORES = ("integrity", "authenticity", "metadata", "ocr", "biometric", "security")

NEUTRAL_BIOMETRIC_SCORE = 85.0
TAMPER_PENALTY = 10


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class ScoringPolicy:
    """
    The approve/review cut points and the sub-score weights.
    Built once from Settings and shared by every caller.
    """
    approve_threshold: int = 85
    review_threshold: int = 70
    weights: dict[str, float] | None = None   # None → equal weighting

    def __post_init__(self):
        if not 0 <= self.review_threshold <= self.approve_threshold <= 100:
            raise ValueError(
                f"Thresholds must satisfy 0 <= review ({self.review_threshold}) "
                f"<= approve ({self.approve_threshold}) <= 100"
            )
        if self.weights is not None:
            unknown = set(self.weights) - set(SUB_SCORES)
            if unknown:
                raise ValueError(f"Unknown sub-score weights: {sorted(unknown)}")
            if any(w < 0 for w in self.weights.values()) or sum(self.weights.values()) <= 0:
                raise ValueError("Weights must be non-negative with a positive sum")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringPolicy":
        return cls(
            approve_threshold=settings.approve_threshold,
            review_threshold=settings.review_threshold,
            weights=settings.score_weights,
        )

    def recommend(self, overall_score: int) -> RecommendedAction:
        if overall_score >= self.approve_threshold:
            return RecommendedAction.APPROVE
        if overall_score >= self.review_threshold:
            return RecommendedAction.REVIEW
        return RecommendedAction.REJECT

    def combine(self, sub_scores: dict[str, float]) -> int:
        """Weighted mean of the six sub-scores, rounded half-up."""
        if self.weights is None:
            mean = sum(sub_scores[name] for name in SUB_SCORES) / len(SUB_SCORES)
        else:
            # sub-scores missing from an override weigh 0
            total = sum(self.weights.get(name, 0.0) for name in SUB_SCORES)
            mean = sum(sub_scores[name] * self.weights.get(name, 0.0) for name in SUB_SCORES) / total
        return max(0, min(100, round_half_up(mean)))


class ComplianceScorer:
    """Use Case: RawSignals → ForensicReport. Pure function of its input."""

    def __init__(self, policy: ScoringPolicy | None = None):
        self._policy = policy or ScoringPolicy()

    @property
    def policy(self) -> ScoringPolicy:
        return self._policy

    def score(self, signals: RawSignals, fingerprint: str) -> ForensicReport:
        indicators = signals.tamper or []
        zones = signals.ocr or []
        metadata = signals.metadata or MetadataSignal()
        biometric = signals.biometric or BiometricSignal()

        tampering_detected = any(i.severity.rank >= Severity.MEDIUM.rank for i in indicators)

        sub_scores = {
            "integrity": float(max(0, 100 - TAMPER_PENALTY * len(indicators))),
            "authenticity": 50.0 if tampering_detected else 95.0,
            "metadata": 90.0 if metadata.document_quality == "GOOD" else 70.0,
            "ocr": round(sum(z.confidence for z in zones) / len(zones) * 100, 2) if zones else 0.0,
            "biometric": (
                round(biometric.face_confidence * 100, 2)
                if biometric.has_face_image
                else NEUTRAL_BIOMETRIC_SCORE
            ),
            "security": 90.0 if metadata.has_security_features else 60.0,
        }

        overall = self._policy.combine(sub_scores)
        action = self._policy.recommend(overall)
        tamper_risk = self._tamper_risk(indicators)

        return ForensicReport(
            fingerprint=fingerprint,
            integrity_score=sub_scores["integrity"],
            authenticity_score=sub_scores["authenticity"],
            metadata_score=sub_scores["metadata"],
            ocr_score=sub_scores["ocr"],
            biometric_score=sub_scores["biometric"],
            security_score=sub_scores["security"],
            overall_score=overall,
            tampering_detected=tampering_detected,
            tamper_risk=tamper_risk,
            recommended_action=action,
            threshold_met=action is RecommendedAction.APPROVE,
            approve_threshold=self._policy.approve_threshold,
            partial_failures=tuple(signals.partial_failures),
            findings=self._findings(signals, overall, tampering_detected),
            extracted_text=" ".join(z.text for z in zones if z.text),
            tamper_indicator_count=len(indicators),
            biometric_signature=self._biometric_signature(biometric),
        )

    @staticmethod
    def _tamper_risk(indicators) -> TamperRisk:
        if not indicators:
            return TamperRisk.NONE
        worst = max(indicators, key=lambda i: i.severity.rank).severity
        return TamperRisk(worst.value)

    @staticmethod
    def _biometric_signature(biometric: BiometricSignal) -> dict | None:
        if not biometric.has_face_image:
            return None
        return {
            "has_face_image": True,
            "face_confidence": biometric.face_confidence,
            "face_quality": biometric.face_quality,
            "facial_features": dict(biometric.facial_features),
        }

    def _findings(self, signals: RawSignals, overall: int, tampering_detected: bool) -> Findings:
        metadata = signals.metadata or MetadataSignal()
        biometric = signals.biometric or BiometricSignal()
        zones = signals.ocr or []
        indicators = signals.tamper or []
        ocr_confidence = sum(z.confidence for z in zones) / len(zones) if zones else 0.0

        strengths = []
        if metadata.has_security_features:
            strengths.append("Security features detected")
        if biometric.has_face_image:
            strengths.append("Valid biometric data")

        weaknesses = []
        if tampering_detected:
            weaknesses.append("Tampering indicators detected")
        if ocr_confidence < 0.8:
            weaknesses.append("Low OCR confidence")
        for family in signals.partial_failures:
            weaknesses.append(f"{family} analysis unavailable")

        anomalies = [f"{i.type} ({i.severity.value}): {i.description}".rstrip(": ") for i in indicators]

        if overall < self._policy.approve_threshold:
            recommendations = ["Request manual verification"]
        else:
            recommendations = ["Document appears authentic"]

        return Findings(
            strengths=tuple(strengths),
            weaknesses=tuple(weaknesses),
            anomalies=tuple(anomalies),
            recommendations=tuple(recommendations),
        )
