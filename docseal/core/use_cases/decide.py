"""
Use Case: Decision Engine

State machine over DecisionState:

    PENDING ──► ANALYZING ──► APPROVED
                    │    └──► REJECTED
                    └───────► UNDER_REVIEW ──► APPROVED | REJECTED  (human reviewer)

Score drives ANALYZING → outcome, except that a biometric match
against a different owner at or above the match threshold forces
UNDER_REVIEW whatever the score.
"""

import logging

from docseal.core.entities.decision import (
    BiometricMatch,
    Decision,
    DecisionState,
    Remediation,
    ReviewAction,
)
from docseal.core.entities.forensic_report import ForensicReport, RecommendedAction
from docseal.core.errors import InvalidTransition, ValidationError
from docseal.core.use_cases.score_compliance import ScoringPolicy

logger = logging.getLogger(__name__)


TRANSITIONS: dict[DecisionState, frozenset[DecisionState]] = {
    DecisionState.PENDING: frozenset({DecisionState.ANALYZING}),
    DecisionState.ANALYZING: frozenset({
        DecisionState.APPROVED,
        DecisionState.UNDER_REVIEW,
        DecisionState.REJECTED,
    }),
    DecisionState.UNDER_REVIEW: frozenset({DecisionState.APPROVED, DecisionState.REJECTED}),
    DecisionState.APPROVED: frozenset(),
    DecisionState.REJECTED: frozenset(),
}

ACTION_TO_STATE = {
    RecommendedAction.APPROVE: DecisionState.APPROVED,
    RecommendedAction.REVIEW: DecisionState.UNDER_REVIEW,
    RecommendedAction.REJECT: DecisionState.REJECTED,
}


class DecisionEngine:
    """Use Case: ForensicReport (+ biometric check) → Decision."""

    def __init__(self, policy: ScoringPolicy | None = None, biometric_match_threshold: float = 0.95):
        self._policy = policy or ScoringPolicy()
        self._match_threshold = biometric_match_threshold

    def transition(self, current: DecisionState, requested: DecisionState, **context) -> DecisionState:
        """Validate one move; raises InvalidTransition on anything not in TRANSITIONS."""
        if requested not in TRANSITIONS[current]:
            logger.error(f"Illegal decision transition {current.value} -> {requested.value} {context}")
            raise InvalidTransition(current.value, requested.value, **context)
        return requested

    def begin_analysis(self, current: DecisionState, document_id: str | None = None) -> DecisionState:
        return self.transition(current, DecisionState.ANALYZING, document_id=document_id)

    def decide(
        self,
        current: DecisionState,
        report: ForensicReport,
        biometric_match: BiometricMatch | None = None,
        document_id: str | None = None,
    ) -> Decision:
        """
        ANALYZING → APPROVED | UNDER_REVIEW | REJECTED.

        Fraud precedence is checked first: a qualifying biometric match
        always yields UNDER_REVIEW.
        """
        if biometric_match is not None and biometric_match.confidence >= self._match_threshold:
            state = self.transition(current, DecisionState.UNDER_REVIEW, document_id=document_id)
            return Decision(
                state=state,
                reason=(
                    f"Biometric match with another owner's document "
                    f"({biometric_match.confidence:.0%} confidence); score {report.overall_score} overridden"
                ),
                forced_by_biometric_match=True,
            )

        state = self.transition(current, ACTION_TO_STATE[report.recommended_action], document_id=document_id)
        remediation = self.remediation(report) if state is DecisionState.REJECTED else None
        return Decision(state=state, reason=self._reason(report, state), remediation=remediation)

    def review(
        self,
        current: DecisionState,
        action: ReviewAction,
        reviewer_id: str,
        comments: str | None = None,
        report: ForensicReport | None = None,
        document_id: str | None = None,
    ) -> Decision:
        """UNDER_REVIEW → APPROVED | REJECTED by a human. Rejection requires comments."""
        if action is ReviewAction.REJECT and not (comments or "").strip():
            raise ValidationError("Comments are required when rejecting", document_id=document_id)

        requested = DecisionState.APPROVED if action is ReviewAction.APPROVE else DecisionState.REJECTED
        if current is not DecisionState.UNDER_REVIEW:
            # terminal states can only be overturned from UNDER_REVIEW
            logger.error(f"Review attempted on {current.value} document {document_id}")
            raise InvalidTransition(current.value, requested.value, document_id=document_id)
        state = self.transition(current, requested, document_id=document_id)

        remediation = None
        if state is DecisionState.REJECTED and report is not None:
            remediation = self.remediation(report, extra_reasons=(comments.strip(),))
        return Decision(
            state=state,
            reason=f"Manual review by {reviewer_id}: {action.value}",
            reviewer_id=reviewer_id,
            comments=comments,
            remediation=remediation,
        )

    def remediation(self, report: ForensicReport, extra_reasons: tuple[str, ...] = ()) -> Remediation:
        reasons = list(extra_reasons)
        if report.tampering_detected:
            reasons.append(f"Tampering detected (risk {report.tamper_risk.value})")
        reasons.extend(report.findings.weaknesses)
        if report.overall_score < self._policy.review_threshold:
            reasons.append(
                f"Compliance score {report.overall_score} is below the minimum of {self._policy.review_threshold}"
            )
        return Remediation(
            score=report.overall_score,
            minimum_score=self._policy.review_threshold,
            approval_score=self._policy.approve_threshold,
            tampering_detected=report.tampering_detected,
            reasons=tuple(dict.fromkeys(reasons)),
        )

    @staticmethod
    def _reason(report: ForensicReport, state: DecisionState) -> str:
        text = f"Compliance score {report.overall_score} → {state.value}"
        if report.partial_failures:
            text += f" (degraded: {', '.join(report.partial_failures)})"
        return text
