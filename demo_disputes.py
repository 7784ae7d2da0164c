"""
Demo script for the dispute resolution engine
Walks disputes through AI analysis, manual resolution, settlement and reputation updates
"""

import argparse
import asyncio

from src.analysis.ai_analyzer import DisputeAnalyzer
from src.governance.policy_engine import PolicyEngine
from src.models.dispute import (
    Dispute,
    EvidenceSubmission,
    EvidenceType,
    PartyRole,
    ResolutionType,
)
from src.models.resolution import SettlementType
from src.storage.kv_storage import InMemoryStorage, JsonFileStorage
from src.store.dispute_store import DisputeStore


def print_section(title: str):
    """Print formatted section header"""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def print_dispute(dispute: Dispute):
    """Print dispute details"""
    print(f"\n{dispute.dispute_id} (order {dispute.order_id})")
    print(f"  Raised by: {dispute.raised_by}")
    print(f"  Reason: {dispute.reason}")
    print(f"  Status: {dispute.status}")
    print(f"  Evidence items: {len(dispute.evidence)}")
    if dispute.ai_analysis:
        print(f"  AI Recommendation: {dispute.ai_analysis.ai_recommendation}")
        print(f"  AI Confidence: {dispute.ai_analysis.confidence_score:.2f}")
        print(f"  AI Reasoning: {dispute.ai_analysis.reasoning}")
    if dispute.resolved_at:
        print(f"  Resolution: {dispute.resolution_type} by {dispute.resolved_by}")


async def demo_not_delivered(store: DisputeStore):
    """Demo 1: Undelivered order resolved by the AI"""
    print_section("Demo 1: Order Not Delivered")

    dispute = await store.create_dispute("ORD-1001", PartyRole.BUYER, "Maize bags not delivered")
    await store.trigger_ai_analysis(dispute.dispute_id)
    print_dispute(store.get_dispute(dispute.dispute_id))


async def demo_quality_claim(store: DisputeStore):
    """Demo 2: Quality complaint backed by photos, then settled"""
    print_section("Demo 2: Quality Complaint")

    dispute = await store.create_dispute("ORD-1002", PartyRole.BUYER, "Poor quality tomatoes")
    for description in ("Bruised crate, top layer", "Bruised crate, bottom layer"):
        await store.add_evidence(
            dispute.dispute_id,
            EvidenceSubmission(
                submitted_by=PartyRole.BUYER,
                evidence_type=EvidenceType.PHOTO,
                file_url="https://cdn.example.com/evidence/crate.jpg",
                description=description,
            ),
        )
    await store.trigger_ai_analysis(dispute.dispute_id)
    print_dispute(store.get_dispute(dispute.dispute_id))

    settlement = await store.record_settlement(
        dispute.dispute_id,
        SettlementType.PARTIAL_REFUND,
        "Quality issues confirmed by photo evidence",
        order_amount=250000.0,
    )
    print("\nSettlement:")
    print(f"  Buyer refund: UGX {settlement.buyer_refund:,.2f}")
    print(f"  Seller release: UGX {settlement.seller_release:,.2f}")
    print(f"  Platform fee: UGX {settlement.platform_fee:,.2f}")


async def demo_moderator_review(store: DisputeStore):
    """Demo 3: Ambiguous claim sent to a moderator"""
    print_section("Demo 3: Moderator Review")

    dispute = await store.create_dispute("ORD-1003", PartyRole.SELLER, "Buyer refuses to pay balance")
    await store.add_evidence(
        dispute.dispute_id,
        EvidenceSubmission(
            submitted_by=PartyRole.SELLER,
            evidence_type=EvidenceType.TEXT,
            description="Chat log with buyer",
        ),
    )
    await store.trigger_ai_analysis(dispute.dispute_id)
    print_dispute(store.get_dispute(dispute.dispute_id))

    await store.assign_moderator(dispute.dispute_id, "moderator-kampala-01")
    await store.resolve_dispute(dispute.dispute_id, ResolutionType.RELEASE, "Delivery confirmed by phone")
    print_dispute(store.get_dispute(dispute.dispute_id))

    reputation = await store.update_user_reputation(
        "buyer-778", PartyRole.BUYER, "dispute_loss", -60, "Lost payment dispute",
        order_id="ORD-1003", dispute_id=dispute.dispute_id,
    )
    print(f"\nBuyer reputation: {reputation.reputation_score} ({reputation.account_status})")


async def run(storage_path: str = None, delay: float = 0.0):
    policy_engine = PolicyEngine()
    storage = JsonFileStorage(storage_path) if storage_path else InMemoryStorage()
    store = DisputeStore(
        storage=storage,
        policy_engine=policy_engine,
        analyzer=DisputeAnalyzer(policy_engine=policy_engine, delay_range=(delay, delay)),
    )
    await store.load()

    await demo_not_delivered(store)
    await demo_quality_claim(store)
    await demo_moderator_review(store)

    stats = store.dispute_stats
    print_section("Dispute Statistics")
    print(f"  Total: {stats.total}")
    print(f"  Resolved: {stats.resolved} (AI: {stats.ai_resolved}, moderator: {stats.human_resolved})")
    print(f"  Under review: {stats.under_review}")
    print(f"  AI resolution rate: {stats.ai_resolution_rate:.0%}")


def main():
    """Run all demos"""
    parser = argparse.ArgumentParser(description="Dispute resolution engine demo")
    parser.add_argument("--storage", help="JSON file to persist disputes in (default: in memory)")
    parser.add_argument("--delay", type=float, default=0.0, help="Simulated analysis latency in seconds")
    args = parser.parse_args()

    try:
        asyncio.run(run(args.storage, args.delay))
    except KeyboardInterrupt:
        print("\n\nDemo interrupted by user.")


if __name__ == "__main__":
    main()
