"""
Data models for the marketplace dispute resolution system
"""

from .dispute import (
    Dispute,
    DisputeStatus,
    DisputePriority,
    PartyRole,
    Evidence,
    EvidenceSubmission,
    EvidenceMetadata,
    EvidenceType,
    EvidenceTally,
    AIDisputeAnalysis,
    AIRecommendation,
    ResolutionType,
    ResolvedBy,
)
from .reputation import UserReputation, ReputationChange, AccountStatus
from .resolution import DisputeResolution, DisputeStats, SettlementType, SettlementValidator

__all__ = [
    "Dispute",
    "DisputeStatus",
    "DisputePriority",
    "PartyRole",
    "Evidence",
    "EvidenceSubmission",
    "EvidenceMetadata",
    "EvidenceType",
    "EvidenceTally",
    "AIDisputeAnalysis",
    "AIRecommendation",
    "ResolutionType",
    "ResolvedBy",
    "UserReputation",
    "ReputationChange",
    "AccountStatus",
    "DisputeResolution",
    "DisputeStats",
    "SettlementType",
    "SettlementValidator",
]
