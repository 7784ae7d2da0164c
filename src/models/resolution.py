"""
Settlement data models
Financial outcome of a resolved dispute and aggregate dispute statistics
"""

from datetime import datetime
from enum import Enum
from typing import List
from pydantic import BaseModel, Field


class SettlementType(str, Enum):
    """How the order funds were split"""
    FULL_REFUND = "full_refund"
    PARTIAL_REFUND = "partial_refund"
    RELEASE_FUNDS = "release_funds"
    SPLIT_SETTLEMENT = "split_settlement"


class SettlementValidator(str, Enum):
    """Payment rail that validated the settlement"""
    TRADEGUARD = "tradeguard"
    AGRIPAY = "agripay"


class DisputeResolution(BaseModel):
    """
    Settlement record for a dispute
    Amounts are in the order currency
    """
    dispute_id: str = Field(..., description="Human-readable id of the settled dispute")
    order_id: str
    resolution_type: SettlementType
    buyer_refund: float = Field(default=0.0, ge=0)
    seller_release: float = Field(default=0.0, ge=0)
    platform_fee: float = Field(default=0.0, ge=0)
    logistics_fee: float = Field(default=0.0, ge=0)
    reasoning: str
    validated_by: SettlementValidator = Field(default=SettlementValidator.TRADEGUARD)
    transaction_ids: List[str] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=datetime.now)

    class Config:
        use_enum_values = True

    @property
    def total_amount(self) -> float:
        return round(
            self.buyer_refund + self.seller_release + self.platform_fee + self.logistics_fee, 2
        )


class DisputeStats(BaseModel):
    """Counts by status and the share of disputes closed out by the AI"""
    total: int = 0
    open: int = 0
    analyzing: int = 0
    under_review: int = 0
    escalated: int = 0
    closed: int = 0
    resolved: int = 0
    ai_resolved: int = 0
    human_resolved: int = 0
    ai_resolution_rate: float = Field(default=0.0, ge=0, le=1)
