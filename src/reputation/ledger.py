"""
Reputation Ledger
Bounded, auditable trust score per user
"""

from datetime import datetime
from typing import Optional

from src.models.dispute import PartyRole
from src.models.reputation import AccountStatus, ReputationChange, UserReputation
from src.governance.policy_engine import PolicyEngine


class ReputationLedger:
    """
    Applies score changes to reputation records
    Scores are clamped to the policy bounds and account status is always derived from the score
    """

    def __init__(self, policy_engine: Optional[PolicyEngine] = None):
        self.policy_engine = policy_engine or PolicyEngine()
        self.base_score = self.policy_engine.get_base_reputation()
        self.min_score, self.max_score = self.policy_engine.get_reputation_bounds()
        self.suspended_below, self.under_review_below = self.policy_engine.get_status_thresholds()

    def clamp(self, score: int) -> int:
        return max(self.min_score, min(self.max_score, score))

    def status_for(self, score: int) -> AccountStatus:
        """Account status for a score; banned is never derived"""
        if score < self.suspended_below:
            return AccountStatus.SUSPENDED
        if score < self.under_review_below:
            return AccountStatus.UNDER_REVIEW
        return AccountStatus.ACTIVE

    def apply_change(
        self,
        existing: Optional[UserReputation],
        user_id: str,
        user_type: PartyRole,
        change_type: str,
        change_value: int,
        reason: str,
        order_id: Optional[str] = None,
        dispute_id: Optional[str] = None
    ) -> UserReputation:
        """
        Apply one score change

        Args:
            existing: Current record, or None for a user seen for the first time
            user_id: User whose score changes
            user_type: Party role of the user (only used for new records)
            change_type: Kind of event, e.g. 'dispute_loss'
            change_value: Signed delta
            reason: Human-readable reason
            order_id: Related order, if any
            dispute_id: Related dispute; counts towards dispute_count when given

        Returns:
            New UserReputation record; existing is left untouched
        """
        now = datetime.now()
        change = ReputationChange(
            change_type=change_type,
            change_value=change_value,
            reason=reason,
            order_id=order_id,
            dispute_id=dispute_id,
            date=now,
        )

        if existing is None:
            score = self.clamp(self.base_score + change_value)
            return UserReputation(
                user_id=user_id,
                user_type=user_type,
                reputation_score=score,
                total_orders=1 if order_id else 0,
                dispute_count=1 if dispute_id else 0,
                successful_orders=0,
                account_status=self.status_for(score),
                review_reason=self._review_reason(score, reason),
                last_dispute_date=now if dispute_id else None,
                reputation_history=[change],
            )

        score = self.clamp(existing.reputation_score + change_value)
        return existing.model_copy(
            deep=True,
            update={
                "reputation_score": score,
                "dispute_count": existing.dispute_count + (1 if dispute_id else 0),
                "last_dispute_date": now if dispute_id else existing.last_dispute_date,
                "account_status": self.status_for(score),
                "review_reason": self._review_reason(score, reason),
                "reputation_history": [change] + [h.model_copy() for h in existing.reputation_history],
            },
        )

    def record_order(
        self,
        existing: Optional[UserReputation],
        user_id: str,
        user_type: PartyRole,
        successful: bool
    ) -> UserReputation:
        """Count a completed order against a user without touching the score"""
        if existing is None:
            existing = UserReputation(
                user_id=user_id,
                user_type=user_type,
                reputation_score=self.clamp(self.base_score),
                account_status=self.status_for(self.clamp(self.base_score)),
            )
        return existing.model_copy(
            deep=True,
            update={
                "total_orders": existing.total_orders + 1,
                "successful_orders": existing.successful_orders + (1 if successful else 0),
            },
        )

    def _review_reason(self, score: int, reason: str) -> Optional[str]:
        if self.status_for(score) == AccountStatus.ACTIVE:
            return None
        return reason
