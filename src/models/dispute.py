"""
Dispute data model
Represents a marketplace dispute raised against an order, with its evidence
and the AI analysis attached to it
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


class PartyRole(str, Enum):
    """Marketplace party that raises disputes, submits evidence or holds a reputation"""
    BUYER = "buyer"
    SELLER = "seller"
    LOGISTICS = "logistics"


class DisputeStatus(str, Enum):
    """Current status of the dispute"""
    OPEN = "open"  # Raised, awaiting analysis
    AI_ANALYZING = "ai_analyzing"  # Heuristic analysis in flight
    UNDER_REVIEW = "under_review"  # Waiting on a human moderator
    RESOLVED = "resolved"  # Final outcome recorded
    CLOSED = "closed"  # Not assigned by the store
    ESCALATED = "escalated"  # Handed over to an admin


class DisputePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class EvidenceType(str, Enum):
    """Kinds of evidence a party can attach"""
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"
    GPS_LOG = "gps_log"
    TEXT = "text"


class AIRecommendation(str, Enum):
    """Outcome suggested by the analysis heuristic"""
    FULL_REFUND = "full_refund"
    RELEASE_FUNDS = "release_funds"
    PARTIAL_REFUND = "partial_refund"
    ESCALATE_HUMAN = "escalate_human"


class ResolutionType(str, Enum):
    """Outcome recorded on a resolved dispute"""
    REFUND = "refund"
    RELEASE = "release"
    PARTIAL_REFUND = "partial_refund"
    NO_ACTION = "no_action"


class ResolvedBy(str, Enum):
    AI = "ai"
    MODERATOR = "moderator"
    ESCALATION = "escalation"


class GPSCoordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class EvidenceMetadata(BaseModel):
    """Optional capture details supplied with a piece of evidence"""
    gps_coords: Optional[GPSCoordinates] = None
    timestamp: Optional[str] = Field(None, description="Capture time reported by the device")
    file_size: Optional[int] = Field(None, ge=0, description="File size in bytes")
    mime_type: Optional[str] = None


class EvidenceSubmission(BaseModel):
    """Evidence as supplied by a party, before the store stamps it"""
    submitted_by: PartyRole
    evidence_type: EvidenceType
    file_url: Optional[str] = Field(None, description="Location of the uploaded file")
    description: str = Field(..., description="What the evidence shows")
    metadata: Optional[EvidenceMetadata] = None

    class Config:
        use_enum_values = True


class Evidence(EvidenceSubmission):
    """
    Evidence attached to a dispute
    Owned by its parent dispute, never stored on its own
    """
    id: str = Field(..., description="Unique evidence identifier")
    dispute_id: str = Field(..., description="Human-readable id of the owning dispute")
    created_at: datetime = Field(default_factory=datetime.now)


class EvidenceTally(BaseModel):
    """Evidence counts by type and by submitter, kept for audit"""
    photos: int = 0
    videos: int = 0
    documents: int = 0
    gps_logs: int = 0
    text_descriptions: int = 0
    seller_proof: int = 0
    buyer_proof: int = 0
    logistics_proof: int = 0


class AIDisputeAnalysis(BaseModel):
    """
    Result of the analysis heuristic for one dispute
    Created once, never modified afterwards
    """
    id: str = Field(..., description="Unique analysis identifier")
    dispute_id: str = Field(..., description="Human-readable id of the analysed dispute")
    ai_recommendation: AIRecommendation
    confidence_score: float = Field(..., ge=0, le=1)
    reasoning: str = Field(..., description="Explanation for the recommendation")
    evidence_analyzed: EvidenceTally = Field(default_factory=EvidenceTally)
    processing_time_ms: int = Field(..., ge=0)
    ai_model_version: str
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        use_enum_values = True
        frozen = True


class Dispute(BaseModel):
    """
    Complete dispute object
    resolved_at is set exactly when status is resolved
    """
    # Identification
    id: str = Field(..., description="Opaque local identifier")
    dispute_id: str = Field(..., description="Sequence id, e.g. BND-DISP-UG-2025-001")
    order_id: str = Field(..., description="Order under dispute")
    raised_by: PartyRole
    reason: str

    status: DisputeStatus = Field(default=DisputeStatus.OPEN)
    priority: DisputePriority = Field(default=DisputePriority.MEDIUM)

    # Assignment
    assigned_moderator: Optional[str] = None
    moderator_assigned_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None

    # Resolution
    resolution_type: Optional[ResolutionType] = None
    resolution_details: Optional[str] = None
    resolved_by: Optional[ResolvedBy] = None
    resolved_at: Optional[datetime] = None

    # Evidence and analysis
    evidence: List[Evidence] = Field(default_factory=list)
    ai_analysis: Optional[AIDisputeAnalysis] = None

    # Financial impact
    refund_amount: Optional[float] = Field(None, ge=0)
    release_amount: Optional[float] = Field(None, ge=0)

    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Config:
        use_enum_values = True

    @property
    def is_resolved(self) -> bool:
        return self.status == DisputeStatus.RESOLVED

    def evidence_of_type(self, evidence_type: EvidenceType) -> List[Evidence]:
        """Evidence items of one type, in submission order"""
        return [e for e in self.evidence if e.evidence_type == evidence_type]

    def evidence_from(self, role: PartyRole) -> List[Evidence]:
        """Evidence items submitted by one party, in submission order"""
        return [e for e in self.evidence if e.submitted_by == role]

    def touch(self) -> None:
        self.updated_at = datetime.now()
