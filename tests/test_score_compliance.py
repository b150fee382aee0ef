"""
Tests for ComplianceScorer and ScoringPolicy.
"""

import pytest

from docseal.core.entities.forensic_report import RecommendedAction, TamperRisk
from docseal.core.interfaces.analysis_capability import (
    BiometricSignal,
    MetadataSignal,
    OCRZone,
    RawSignals,
    Severity,
    TamperIndicator,
)
from docseal.core.use_cases.score_compliance import ComplianceScorer, ScoringPolicy, round_half_up

FINGERPRINT = "a" * 64


def _signals(indicators=(), ocr_confidence=0.9, quality="GOOD", face_confidence=0.9, security=True):
    return RawSignals(
        tamper=[TamperIndicator(type="T", severity=s) for s in indicators],
        ocr=[OCRZone(text="NAME", confidence=ocr_confidence)],
        metadata=MetadataSignal(document_quality=quality, has_security_features=security),
        biometric=BiometricSignal(has_face_image=True, face_confidence=face_confidence),
    )


class TestSubScores:

    def test_high_tamper_indicator_lands_in_review(self):
        """One HIGH indicator on an otherwise good document scores 83."""
        report = ComplianceScorer().score(_signals(indicators=[Severity.HIGH]), FINGERPRINT)

        assert report.integrity_score == 90
        assert report.authenticity_score == 50
        assert report.metadata_score == 90
        assert report.ocr_score == 90
        assert report.biometric_score == 90
        assert report.security_score == 90
        assert report.overall_score == 83
        assert report.recommended_action is RecommendedAction.REVIEW
        assert report.tampering_detected
        assert report.tamper_risk is TamperRisk.HIGH
        assert not report.threshold_met

    def test_low_severity_indicator_is_not_tampering(self):
        report = ComplianceScorer().score(_signals(indicators=[Severity.LOW]), FINGERPRINT)
        assert not report.tampering_detected
        assert report.authenticity_score == 95
        assert report.integrity_score == 90

    def test_integrity_floors_at_zero(self):
        report = ComplianceScorer().score(_signals(indicators=[Severity.LOW] * 12), FINGERPRINT)
        assert report.integrity_score == 0

    def test_missing_families_use_neutral_values(self):
        signals = RawSignals(partial_failures=["OCR", "BIOMETRIC"])
        report = ComplianceScorer().score(signals, FINGERPRINT)

        assert report.ocr_score == 0
        assert report.biometric_score == 85
        assert report.metadata_score == 70
        assert report.security_score == 60
        assert report.partial_failures == ("OCR", "BIOMETRIC")
        assert "OCR analysis unavailable" in report.findings.weaknesses

    def test_clean_document_is_approved(self):
        report = ComplianceScorer().score(_signals(ocr_confidence=0.95), FINGERPRINT)
        assert report.overall_score == 93
        assert report.recommended_action is RecommendedAction.APPROVE
        assert report.threshold_met
        assert report.biometric_signature["face_confidence"] == 0.9
        assert report.findings.recommendations == ("Document appears authentic",)

    def test_scoring_is_deterministic(self):
        scorer = ComplianceScorer()
        first = scorer.score(_signals(indicators=[Severity.MEDIUM]), FINGERPRINT)
        second = scorer.score(_signals(indicators=[Severity.MEDIUM]), FINGERPRINT)
        assert first.sub_scores == second.sub_scores
        assert first.overall_score == second.overall_score


class TestScoringPolicy:

    @pytest.mark.parametrize("score,action", [
        (100, RecommendedAction.APPROVE),
        (85, RecommendedAction.APPROVE),
        (84, RecommendedAction.REVIEW),
        (70, RecommendedAction.REVIEW),
        (69, RecommendedAction.REJECT),
        (0, RecommendedAction.REJECT),
    ])
    def test_threshold_boundaries(self, score, action):
        assert ScoringPolicy().recommend(score) is action

    def test_custom_thresholds(self):
        policy = ScoringPolicy(approve_threshold=90, review_threshold=50)
        assert policy.recommend(89) is RecommendedAction.REVIEW
        assert policy.recommend(50) is RecommendedAction.REVIEW
        assert policy.recommend(49) is RecommendedAction.REJECT

    def test_inverted_thresholds_rejected(self):
        with pytest.raises(ValueError):
            ScoringPolicy(approve_threshold=60, review_threshold=80)

    def test_unknown_weight_rejected(self):
        with pytest.raises(ValueError):
            ScoringPolicy(weights={"integrity": 1.0, "vibes": 2.0})

    def test_weight_override(self):
        """Sub-scores left out of an override weigh nothing."""
        policy = ScoringPolicy(weights={"integrity": 3.0, "authenticity": 1.0})
        report = ComplianceScorer(policy).score(_signals(indicators=[Severity.HIGH]), FINGERPRINT)
        # (90*3 + 50*1) / 4 = 80
        assert report.overall_score == 80

    def test_rounds_half_up(self):
        assert round_half_up(82.5) == 83
        assert round_half_up(83.5) == 84
        assert round_half_up(83.49) == 83
