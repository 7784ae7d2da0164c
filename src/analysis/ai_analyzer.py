"""
AI Dispute Analyzer
Recommends an outcome for a dispute from its reason text and accumulated evidence
Rule-based; inference latency is simulated with a randomized delay
"""

import asyncio
import random
import time
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Optional, Tuple

import structlog

from src.models.dispute import (
    AIDisputeAnalysis,
    AIRecommendation,
    Dispute,
    EvidenceTally,
    EvidenceType,
    PartyRole,
)
from src.governance.policy_engine import PolicyEngine

logger = structlog.get_logger()


NOT_DELIVERED_REASONING = "No delivery proof found. GPS logs missing. Clear case for full refund."
QUALITY_REASONING = "Quality issues documented with photo evidence. Recommend 60% refund."
SELLER_PROOF_REASONING = "Strong seller evidence with delivery confirmation. Release funds to seller."
ESCALATE_REASONING = "Insufficient evidence or conflicting claims. Human moderator review required."


def tally_evidence(dispute: Dispute) -> EvidenceTally:
    """Count a dispute's evidence by type and by submitter"""
    return EvidenceTally(
        photos=len(dispute.evidence_of_type(EvidenceType.PHOTO)),
        videos=len(dispute.evidence_of_type(EvidenceType.VIDEO)),
        documents=len(dispute.evidence_of_type(EvidenceType.DOCUMENT)),
        gps_logs=len(dispute.evidence_of_type(EvidenceType.GPS_LOG)),
        text_descriptions=len(dispute.evidence_of_type(EvidenceType.TEXT)),
        seller_proof=len(dispute.evidence_from(PartyRole.SELLER)),
        buyer_proof=len(dispute.evidence_from(PartyRole.BUYER)),
        logistics_proof=len(dispute.evidence_from(PartyRole.LOGISTICS)),
    )


def evaluate(dispute: Dispute) -> Tuple[AIRecommendation, float, str]:
    """
    Apply the decision rules to a dispute, first match wins

    Returns:
        (recommendation, confidence_score, reasoning)
    """
    tally = tally_evidence(dispute)
    reason = dispute.reason.lower()

    if "not delivered" in reason and tally.gps_logs == 0:
        return AIRecommendation.FULL_REFUND, 0.95, NOT_DELIVERED_REASONING

    if "quality" in reason and tally.photos >= 2:
        return AIRecommendation.PARTIAL_REFUND, 0.82, QUALITY_REASONING

    if tally.seller_proof >= 2 and tally.gps_logs >= 1:
        return AIRecommendation.RELEASE_FUNDS, 0.88, SELLER_PROOF_REASONING

    return AIRecommendation.ESCALATE_HUMAN, 0.45, ESCALATE_REASONING


class DisputeAnalyzer:
    """
    Produces an AIDisputeAnalysis for a dispute
    The caller decides whether the confidence is high enough to act on
    """

    def __init__(
        self,
        policy_engine: Optional[PolicyEngine] = None,
        delay_range: Optional[Tuple[float, float]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize analyzer

        Args:
            policy_engine: PolicyEngine instance for delay bounds and model version
            delay_range: Override for the simulated latency, (min_seconds, max_seconds)
            sleep: Coroutine used to wait out the delay
        """
        self.policy_engine = policy_engine or PolicyEngine()
        self.delay_range = delay_range or self.policy_engine.get_analysis_delay_range()
        self.model_version = self.policy_engine.get_model_version()
        self._sleep = sleep

    def _pick_delay(self) -> float:
        low, high = self.delay_range
        return low if high <= low else random.uniform(low, high)

    async def analyze(self, dispute: Dispute) -> AIDisputeAnalysis:
        """
        Analyze a dispute

        Args:
            dispute: Dispute with its evidence

        Returns:
            AIDisputeAnalysis for the dispute
        """
        started = time.monotonic()
        await self._sleep(self._pick_delay())

        recommendation, confidence, reasoning = evaluate(dispute)
        processing_time_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "Dispute analysis produced",
            dispute_id=dispute.dispute_id,
            recommendation=recommendation.value,
            confidence=confidence,
            processing_time_ms=processing_time_ms,
        )

        return AIDisputeAnalysis(
            id=f"ai-{uuid.uuid4().hex}",
            dispute_id=dispute.dispute_id,
            ai_recommendation=recommendation,
            confidence_score=confidence,
            reasoning=reasoning,
            evidence_analyzed=tally_evidence(dispute),
            processing_time_ms=processing_time_ms,
            ai_model_version=self.model_version,
            created_at=datetime.now(),
        )
