"""
Reputation data models
Per-user trust score and its append-only change history
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field

from .dispute import PartyRole


class AccountStatus(str, Enum):
    """Account standing derived from the reputation score"""
    ACTIVE = "active"
    UNDER_REVIEW = "under_review"
    SUSPENDED = "suspended"
    BANNED = "banned"  # Never assigned by the ledger


class ReputationChange(BaseModel):
    """One score-changing event"""
    change_type: str = Field(..., description="Kind of event, e.g. 'dispute_loss'")
    change_value: int = Field(..., description="Signed delta applied to the score")
    reason: str
    order_id: Optional[str] = None
    dispute_id: Optional[str] = None
    date: datetime = Field(default_factory=datetime.now)


class UserReputation(BaseModel):
    """
    Reputation record for a single user
    Created on the first reputation-affecting event, never deleted
    """
    user_id: str
    user_type: PartyRole
    reputation_score: int = Field(default=100, ge=0, le=200)
    total_orders: int = Field(default=0, ge=0)
    dispute_count: int = Field(default=0, ge=0)
    successful_orders: int = Field(default=0, ge=0)
    account_status: AccountStatus = Field(default=AccountStatus.ACTIVE)
    review_reason: Optional[str] = None
    last_dispute_date: Optional[datetime] = None

    # Newest first
    reputation_history: List[ReputationChange] = Field(default_factory=list)

    class Config:
        use_enum_values = True
