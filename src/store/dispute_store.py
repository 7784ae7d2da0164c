"""
Dispute Store
Owns disputes, reputations and settlement records, and persists every mutation
through a key-value storage collaborator
"""

import asyncio
import json
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

from src.analysis.ai_analyzer import DisputeAnalyzer
from src.governance.policy_engine import PolicyEngine
from src.models.dispute import (
    AIDisputeAnalysis,
    AIRecommendation,
    Dispute,
    DisputePriority,
    DisputeStatus,
    Evidence,
    EvidenceSubmission,
    PartyRole,
    ResolutionType,
    ResolvedBy,
)
from src.models.reputation import UserReputation
from src.models.resolution import (
    DisputeResolution,
    DisputeStats,
    SettlementType,
    SettlementValidator,
)
from src.reputation.ledger import ReputationLedger
from src.storage.kv_storage import KeyValueStorage

logger = structlog.get_logger()


RECOMMENDATION_TO_RESOLUTION = {
    AIRecommendation.FULL_REFUND: ResolutionType.REFUND,
    AIRecommendation.PARTIAL_REFUND: ResolutionType.PARTIAL_REFUND,
    AIRecommendation.RELEASE_FUNDS: ResolutionType.RELEASE,
    AIRecommendation.ESCALATE_HUMAN: None,
}


class DisputeStore:
    """
    In-memory dispute, reputation and settlement collections backed by key-value storage

    Mutations are serialized through a single lock, so overlapping calls cannot
    overwrite each other's changes. Each mutation writes the whole affected
    collection back under its fixed key.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        policy_engine: Optional[PolicyEngine] = None,
        analyzer: Optional[DisputeAnalyzer] = None,
        ledger: Optional[ReputationLedger] = None
    ):
        """
        Initialize the store

        Args:
            storage: Key-value storage collaborator
            policy_engine: PolicyEngine instance (creates new if None)
            analyzer: Analyzer used by trigger_ai_analysis (creates new if None)
            ledger: Reputation ledger (creates new if None)
        """
        self.storage = storage
        self.policy_engine = policy_engine or PolicyEngine()
        self.analyzer = analyzer or DisputeAnalyzer(policy_engine=self.policy_engine)
        self.ledger = ledger or ReputationLedger(policy_engine=self.policy_engine)
        self.storage_keys = self.policy_engine.get_storage_keys()

        self._disputes: List[Dispute] = []
        self._reputations: List[UserReputation] = []
        self._resolutions: List[DisputeResolution] = []
        self._sequence = 0
        self._lock = asyncio.Lock()
        self.is_loaded = False

    # Loading and persistence

    async def load(self) -> None:
        """
        Hydrate all collections from storage
        Any failure leaves every collection empty; the id sequence is
        restored on its own so a bad collection cannot reissue old ids
        """
        keys = self.storage_keys
        dispute_data, reputation_data, resolution_data, sequence_data = await asyncio.gather(
            self.storage.get_item(keys["disputes"]),
            self.storage.get_item(keys["reputations"]),
            self.storage.get_item(keys["resolutions"]),
            self.storage.get_item(keys["sequence"]),
            return_exceptions=True,
        )

        try:
            for raw in (dispute_data, reputation_data, resolution_data):
                if isinstance(raw, Exception):
                    raise raw
            disputes = [Dispute.model_validate(d) for d in self._parse_list(dispute_data)]
            reputations = [UserReputation.model_validate(r) for r in self._parse_list(reputation_data)]
            resolutions = [DisputeResolution.model_validate(r) for r in self._parse_list(resolution_data)]
        except Exception as e:
            logger.error("Error loading dispute data", error=str(e))
            disputes, reputations, resolutions = [], [], []

        try:
            if isinstance(sequence_data, Exception):
                raise sequence_data
            stored_sequence = int(sequence_data) if sequence_data else 0
        except Exception as e:
            logger.error("Error loading dispute sequence", error=str(e))
            stored_sequence = 0

        async with self._lock:
            self._disputes = disputes
            self._reputations = reputations
            self._resolutions = resolutions
            self._sequence = max([stored_sequence] + [self._sequence_of(d) for d in disputes])
            self.is_loaded = True

        logger.info(
            "Dispute data loaded",
            disputes=len(disputes),
            reputations=len(reputations),
            resolutions=len(resolutions),
            sequence=self._sequence,
        )

    @staticmethod
    def _parse_list(raw: Optional[str]) -> List[Dict[str, Any]]:
        if not raw:
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError("Stored collection is not a JSON array")
        return data

    def _sequence_of(self, dispute: Dispute) -> int:
        return self.policy_engine.parse_dispute_sequence(dispute.dispute_id) or 0

    @staticmethod
    def _dump(items: List[Any]) -> str:
        return json.dumps([item.model_dump(mode="json") for item in items])

    async def _save_disputes(self) -> None:
        await self.storage.set_item(self.storage_keys["disputes"], self._dump(self._disputes))

    async def _save_reputations(self) -> None:
        await self.storage.set_item(self.storage_keys["reputations"], self._dump(self._reputations))

    async def _save_resolutions(self) -> None:
        await self.storage.set_item(self.storage_keys["resolutions"], self._dump(self._resolutions))

    async def _save_sequence(self) -> None:
        await self.storage.set_item(self.storage_keys["sequence"], str(self._sequence))

    def _find(self, dispute_id: str) -> Optional[Dispute]:
        for dispute in self._disputes:
            if dispute.dispute_id == dispute_id:
                return dispute
        return None

    # Dispute lifecycle

    async def create_dispute(
        self,
        order_id: str,
        raised_by: PartyRole,
        reason: str,
        priority: DisputePriority = DisputePriority.MEDIUM
    ) -> Dispute:
        """
        Open a new dispute for an order

        Args:
            order_id: Order under dispute
            raised_by: Party raising the dispute
            reason: Free-text description
            priority: Handling priority

        Returns:
            The new dispute, with status open
        """
        async with self._lock:
            self._sequence += 1
            now = datetime.now()
            dispute = Dispute(
                id=f"dispute-{uuid.uuid4().hex}",
                dispute_id=self.policy_engine.format_dispute_id(self._sequence),
                order_id=order_id,
                raised_by=raised_by,
                reason=reason,
                status=DisputeStatus.OPEN,
                priority=priority,
                evidence=[],
                created_at=now,
                updated_at=now,
            )
            self._disputes.insert(0, dispute)
            await self._save_sequence()
            await self._save_disputes()

        logger.info("Dispute created", dispute_id=dispute.dispute_id, order_id=order_id)
        return dispute.model_copy(deep=True)

    async def add_evidence(
        self,
        dispute_id: str,
        evidence: EvidenceSubmission
    ) -> Optional[Evidence]:
        """
        Append evidence to a dispute

        Returns:
            The stamped Evidence, or None if no dispute has this id
        """
        async with self._lock:
            dispute = self._find(dispute_id)
            if dispute is None:
                logger.debug("Evidence ignored for unknown dispute", dispute_id=dispute_id)
                return None

            stamped = Evidence(
                **evidence.model_dump(),
                id=f"evidence-{uuid.uuid4().hex}",
                dispute_id=dispute_id,
                created_at=datetime.now(),
            )
            dispute.evidence.append(stamped)
            dispute.touch()
            await self._save_disputes()

        logger.info(
            "Evidence added",
            dispute_id=dispute_id,
            evidence_type=stamped.evidence_type,
            submitted_by=stamped.submitted_by,
        )
        return stamped.model_copy(deep=True)

    async def trigger_ai_analysis(self, dispute_id: str) -> Optional[AIDisputeAnalysis]:
        """
        Run the analyzer on a dispute and act on its recommendation

        The ai_analyzing status is persisted before the analysis starts. A
        confident recommendation resolves the dispute; anything else, including
        an analyzer failure, leaves it under review.

        Returns:
            The analysis (the existing one if the dispute was already analysed),
            or None if the dispute is unknown, resolved, or the analyzer failed

        A moderator decision or escalation made while the analysis runs is
        kept; the result is then only attached to the dispute.
        """
        async with self._lock:
            dispute = self._find(dispute_id)
            if dispute is None:
                logger.debug("Analysis ignored for unknown dispute", dispute_id=dispute_id)
                return None
            if dispute.ai_analysis is not None:
                logger.info("Dispute already analysed", dispute_id=dispute_id)
                return dispute.ai_analysis
            if dispute.is_resolved:
                logger.warning("Resolved dispute is not analysed", dispute_id=dispute_id)
                return None

            dispute.status = DisputeStatus.AI_ANALYZING
            dispute.touch()
            await self._save_disputes()
            snapshot = dispute.model_copy(deep=True)

        logger.info("Dispute analysis started", dispute_id=dispute_id)

        try:
            analysis = await self.analyzer.analyze(snapshot)
        except Exception as e:
            logger.error("AI analysis failed", dispute_id=dispute_id, error=str(e))
            async with self._lock:
                dispute = self._find(dispute_id)
                if dispute is not None and dispute.status == DisputeStatus.AI_ANALYZING:
                    self._mark_under_review(dispute)
                    await self._save_disputes()
            return None

        threshold = self.policy_engine.get_auto_resolve_confidence()
        async with self._lock:
            dispute = self._find(dispute_id)
            if dispute is None:
                return analysis

            now = datetime.now()
            if dispute.ai_analysis is None:
                dispute.ai_analysis = analysis
            if dispute.status != DisputeStatus.AI_ANALYZING:
                logger.info(
                    "Dispute changed during analysis, status kept",
                    dispute_id=dispute_id,
                    status=dispute.status,
                )
                dispute.touch()
            elif analysis.confidence_score >= threshold:
                dispute.status = DisputeStatus.RESOLVED
                dispute.resolved_by = ResolvedBy.AI
                dispute.resolved_at = now
                dispute.resolution_type = RECOMMENDATION_TO_RESOLUTION[
                    AIRecommendation(analysis.ai_recommendation)
                ]
                dispute.resolution_details = analysis.reasoning
                dispute.updated_at = now
            else:
                self._mark_under_review(dispute)
            await self._save_disputes()
            status = dispute.status

        logger.info(
            "AI analysis completed",
            dispute_id=dispute_id,
            recommendation=analysis.ai_recommendation,
            confidence=analysis.confidence_score,
            status=status,
        )
        return analysis

    @staticmethod
    def _mark_under_review(dispute: Dispute) -> None:
        dispute.status = DisputeStatus.UNDER_REVIEW
        dispute.resolution_type = None
        dispute.resolution_details = None
        dispute.resolved_by = None
        dispute.resolved_at = None
        dispute.touch()

    async def resolve_dispute(
        self,
        dispute_id: str,
        resolution_type: ResolutionType,
        resolution_details: str,
        resolved_by: ResolvedBy = ResolvedBy.MODERATOR
    ) -> Optional[Dispute]:
        """
        Force a dispute to resolved, whatever its current status

        Returns:
            The updated dispute, or None if no dispute has this id
        """
        async with self._lock:
            dispute = self._find(dispute_id)
            if dispute is None:
                logger.debug("Resolution ignored for unknown dispute", dispute_id=dispute_id)
                return None

            now = datetime.now()
            dispute.status = DisputeStatus.RESOLVED
            dispute.resolution_type = ResolutionType(resolution_type)
            dispute.resolution_details = resolution_details
            dispute.resolved_by = ResolvedBy(resolved_by)
            dispute.resolved_at = now
            dispute.updated_at = now
            await self._save_disputes()

        logger.info(
            "Dispute resolved",
            dispute_id=dispute_id,
            resolution_type=dispute.resolution_type,
            resolved_by=dispute.resolved_by,
        )
        return dispute.model_copy(deep=True)

    async def assign_moderator(self, dispute_id: str, moderator_id: str) -> Optional[Dispute]:
        """Assign a moderator to a dispute; status is left unchanged"""
        async with self._lock:
            dispute = self._find(dispute_id)
            if dispute is None:
                logger.debug("Assignment ignored for unknown dispute", dispute_id=dispute_id)
                return None

            dispute.assigned_moderator = moderator_id
            dispute.moderator_assigned_at = datetime.now()
            dispute.touch()
            await self._save_disputes()

        logger.info("Moderator assigned", dispute_id=dispute_id, moderator_id=moderator_id)
        return dispute.model_copy(deep=True)

    async def escalate_dispute(self, dispute_id: str, reason: str) -> Optional[Dispute]:
        """
        Hand a dispute over to an admin

        Resolved disputes are not escalated.

        Returns:
            The dispute as it now stands, or None if no dispute has this id
        """
        async with self._lock:
            dispute = self._find(dispute_id)
            if dispute is None:
                logger.debug("Escalation ignored for unknown dispute", dispute_id=dispute_id)
                return None
            if dispute.is_resolved:
                logger.warning("Resolved dispute cannot be escalated", dispute_id=dispute_id)
                return dispute.model_copy(deep=True)

            dispute.status = DisputeStatus.ESCALATED
            dispute.escalation_reason = reason
            dispute.touch()
            await self._save_disputes()

        logger.info("Dispute escalated", dispute_id=dispute_id, reason=reason)
        return dispute.model_copy(deep=True)

    # Settlements

    async def record_settlement(
        self,
        dispute_id: str,
        resolution_type: SettlementType,
        reasoning: str,
        order_amount: Optional[float] = None,
        buyer_refund: Optional[float] = None,
        seller_release: Optional[float] = None,
        platform_fee: Optional[float] = None,
        logistics_fee: Optional[float] = None,
        validated_by: SettlementValidator = SettlementValidator.TRADEGUARD,
        transaction_ids: Optional[List[str]] = None
    ) -> DisputeResolution:
        """
        Record the financial settlement of a dispute

        Either pass order_amount to split it by policy, or pass the amounts explicitly,
        never both.

        Raises:
            ValueError: If the dispute is unknown, both order_amount and explicit
                amounts are given, or no amounts can be determined
        """
        explicit = (buyer_refund, seller_release, platform_fee, logistics_fee)
        if order_amount is not None and any(v is not None for v in explicit):
            raise ValueError("Pass either order_amount or explicit settlement amounts, not both")

        if order_amount is not None:
            buyer_refund, seller_release, platform_fee, logistics_fee = (
                self.policy_engine.get_settlement_split(resolution_type, order_amount)
            )
        elif buyer_refund is None and seller_release is None:
            raise ValueError("Either order_amount or explicit settlement amounts are required")

        async with self._lock:
            dispute = self._find(dispute_id)
            if dispute is None:
                raise ValueError(f"Dispute not found: {dispute_id}")

            resolution = DisputeResolution(
                dispute_id=dispute_id,
                order_id=dispute.order_id,
                resolution_type=resolution_type,
                buyer_refund=buyer_refund or 0.0,
                seller_release=seller_release or 0.0,
                platform_fee=platform_fee or 0.0,
                logistics_fee=logistics_fee or 0.0,
                reasoning=reasoning,
                validated_by=validated_by,
                transaction_ids=list(transaction_ids or []),
                completed_at=datetime.now(),
            )
            self._resolutions.insert(0, resolution)
            dispute.refund_amount = resolution.buyer_refund
            dispute.release_amount = resolution.seller_release
            dispute.touch()
            await self._save_resolutions()
            await self._save_disputes()

        logger.info(
            "Settlement recorded",
            dispute_id=dispute_id,
            resolution_type=resolution.resolution_type,
            buyer_refund=resolution.buyer_refund,
            seller_release=resolution.seller_release,
        )
        return resolution.model_copy(deep=True)

    # Reputation

    async def update_user_reputation(
        self,
        user_id: str,
        user_type: PartyRole,
        change_type: str,
        change_value: int,
        reason: str,
        order_id: Optional[str] = None,
        dispute_id: Optional[str] = None
    ) -> UserReputation:
        """
        Apply a score change to a user's reputation, creating the record if needed

        Returns:
            The updated reputation record
        """
        async with self._lock:
            index = self._reputation_index(user_id)
            existing = self._reputations[index] if index is not None else None
            updated = self.ledger.apply_change(
                existing,
                user_id=user_id,
                user_type=user_type,
                change_type=change_type,
                change_value=change_value,
                reason=reason,
                order_id=order_id,
                dispute_id=dispute_id,
            )
            self._store_reputation(index, updated)
            await self._save_reputations()

        logger.info(
            "Reputation updated",
            user_id=user_id,
            change_value=change_value,
            reputation_score=updated.reputation_score,
            account_status=updated.account_status,
        )
        return updated.model_copy(deep=True)

    async def record_order_outcome(
        self,
        user_id: str,
        user_type: PartyRole,
        successful: bool = True
    ) -> UserReputation:
        """Count a completed order for a user"""
        async with self._lock:
            index = self._reputation_index(user_id)
            existing = self._reputations[index] if index is not None else None
            updated = self.ledger.record_order(existing, user_id, user_type, successful)
            self._store_reputation(index, updated)
            await self._save_reputations()

        logger.info(
            "Order outcome recorded",
            user_id=user_id,
            successful=successful,
            total_orders=updated.total_orders,
        )
        return updated.model_copy(deep=True)

    def _reputation_index(self, user_id: str) -> Optional[int]:
        for index, reputation in enumerate(self._reputations):
            if reputation.user_id == user_id:
                return index
        return None

    def _store_reputation(self, index: Optional[int], reputation: UserReputation) -> None:
        if index is None:
            self._reputations.insert(0, reputation)
        else:
            self._reputations[index] = reputation

    # Queries

    @property
    def disputes(self) -> List[Dispute]:
        return [d.model_copy(deep=True) for d in self._disputes]

    @property
    def reputations(self) -> List[UserReputation]:
        return [r.model_copy(deep=True) for r in self._reputations]

    @property
    def resolutions(self) -> List[DisputeResolution]:
        return [r.model_copy(deep=True) for r in self._resolutions]

    def get_dispute(self, dispute_id: str) -> Optional[Dispute]:
        dispute = self._find(dispute_id)
        return dispute.model_copy(deep=True) if dispute else None

    def get_disputes_by_order(self, order_id: str) -> List[Dispute]:
        return [d.model_copy(deep=True) for d in self._disputes if d.order_id == order_id]

    def get_disputes_by_status(self, status: DisputeStatus) -> List[Dispute]:
        return [d.model_copy(deep=True) for d in self._disputes if d.status == status]

    def get_user_reputation(self, user_id: str) -> Optional[UserReputation]:
        index = self._reputation_index(user_id)
        return self._reputations[index].model_copy(deep=True) if index is not None else None

    def get_resolutions_for_dispute(self, dispute_id: str) -> List[DisputeResolution]:
        return [r.model_copy(deep=True) for r in self._resolutions if r.dispute_id == dispute_id]

    @property
    def dispute_stats(self) -> DisputeStats:
        """Counts by status and the fraction of all disputes resolved by the AI"""
        def count(status: DisputeStatus) -> int:
            return sum(1 for d in self._disputes if d.status == status)

        total = len(self._disputes)
        ai_resolved = sum(1 for d in self._disputes if d.resolved_by == ResolvedBy.AI)
        return DisputeStats(
            total=total,
            open=count(DisputeStatus.OPEN),
            analyzing=count(DisputeStatus.AI_ANALYZING),
            under_review=count(DisputeStatus.UNDER_REVIEW),
            escalated=count(DisputeStatus.ESCALATED),
            closed=count(DisputeStatus.CLOSED),
            resolved=count(DisputeStatus.RESOLVED),
            ai_resolved=ai_resolved,
            human_resolved=sum(1 for d in self._disputes if d.resolved_by == ResolvedBy.MODERATOR),
            ai_resolution_rate=(ai_resolved / total) if total > 0 else 0.0,
        )
