"""
Policy Engine
Loads dispute, analysis, reputation and settlement rules from YAML configuration
All thresholds are policy-driven, not hardcoded
"""

import os
import yaml
from typing import Dict, Any, Optional, Tuple
from pathlib import Path
from datetime import datetime
from dotenv import load_dotenv

from src.models.resolution import SettlementType

load_dotenv()


DEFAULT_STORAGE_KEYS = {
    "disputes": "banda_disputes",
    "reputations": "banda_reputation",
    "resolutions": "banda_resolutions",
    "sequence": "banda_dispute_sequence",
}


class PolicyEngine:
    """
    Policy engine for the dispute subsystem
    Missing keys fall back to the defaults the platform shipped with
    """

    def __init__(self, policy_config_path: Optional[str] = None):
        """
        Initialize policy engine with configuration file

        Args:
            policy_config_path: Path to dispute_policy.yaml
        """
        if policy_config_path is None:
            policy_config_path = (
                os.getenv("DISPUTE_POLICY_PATH")
                or str(Path(__file__).parent.parent.parent / "config" / "dispute_policy.yaml")
            )

        self.policy_config_path = policy_config_path
        self.policy_config: Dict[str, Any] = {}
        self.policy_version: str = "1.0.0"
        self.last_loaded: Optional[datetime] = None

        self._load_policies()

    def _load_policies(self) -> None:
        """Load policy configuration from YAML file"""
        try:
            with open(self.policy_config_path, 'r', encoding='utf-8') as f:
                self.policy_config = yaml.safe_load(f) or {}

            self.last_loaded = datetime.now()
            self.policy_version = str(self.policy_config.get('version', '1.0.0'))
        except FileNotFoundError as e:
            raise FileNotFoundError(f"Policy configuration file not found: {e}")
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing policy YAML: {e}")

    def reload_policies(self) -> None:
        """Reload policies from disk (useful when policies are updated)"""
        self._load_policies()

    def _section(self, name: str) -> Dict[str, Any]:
        return self.policy_config.get(name) or {}

    # Dispute identifiers

    def format_dispute_id(self, sequence: int, year: Optional[int] = None) -> str:
        """
        Build a human-readable dispute id, e.g. BND-DISP-UG-2025-001

        Args:
            sequence: Monotonic sequence number (1-based)
            year: Year component (default: current year)
        """
        rules = self._section('dispute_id')
        if year is None:
            year = datetime.now().year
        prefix = rules.get('prefix', 'BND-DISP')
        region = rules.get('region', 'UG')
        width = int(rules.get('sequence_width', 3))
        return f"{prefix}-{region}-{year}-{str(sequence).zfill(width)}"

    @staticmethod
    def parse_dispute_sequence(dispute_id: str) -> Optional[int]:
        """Sequence number encoded in a dispute id, or None if it has none"""
        tail = dispute_id.rsplit('-', 1)[-1]
        return int(tail) if tail.isdigit() else None

    # Analysis

    def get_auto_resolve_confidence(self) -> float:
        """Minimum confidence at which an AI recommendation resolves a dispute"""
        return float(self._section('analysis').get('auto_resolve_confidence', 0.80))

    def get_analysis_delay_range(self) -> Tuple[float, float]:
        """
        Get simulated inference latency bounds

        Returns:
            (min_seconds, max_seconds)
        """
        rules = self._section('analysis')
        min_delay = float(rules.get('min_delay_seconds', 2.0))
        max_delay = float(rules.get('max_delay_seconds', 5.0))
        return min_delay, max(min_delay, max_delay)

    def get_model_version(self) -> str:
        return str(self._section('analysis').get('model_version', 'banda-ai-v2.1'))

    # Reputation

    def get_base_reputation(self) -> int:
        return int(self._section('reputation').get('base_score', 100))

    def get_reputation_bounds(self) -> Tuple[int, int]:
        """
        Returns:
            (min_score, max_score)
        """
        rules = self._section('reputation')
        return int(rules.get('min_score', 0)), int(rules.get('max_score', 200))

    def get_status_thresholds(self) -> Tuple[int, int]:
        """
        Scores below the first value suspend the account, below the second put it under review

        Returns:
            (suspended_below, under_review_below)
        """
        rules = self._section('reputation')
        return int(rules.get('suspended_below', 20)), int(rules.get('under_review_below', 50))

    # Settlement

    def get_settlement_split(
        self,
        settlement_type: str,
        order_amount: float
    ) -> Tuple[float, float, float, float]:
        """
        Split an order amount between the parties for a settlement type

        Args:
            settlement_type: One of SettlementType values
            order_amount: Amount held for the order

        Returns:
            (buyer_refund, seller_release, platform_fee, logistics_fee)
        """
        if order_amount < 0:
            raise ValueError("Order amount must be non-negative")

        rules = self._section('settlement')
        platform_pct = float(rules.get('platform_fee_percentage', 0.0))
        logistics_pct = float(rules.get('logistics_fee_percentage', 0.0))
        partial_pct = float(rules.get('partial_refund_percentage', 60.0))

        if settlement_type == SettlementType.FULL_REFUND:
            return round(order_amount, 2), 0.0, 0.0, 0.0

        platform_fee = round(order_amount * platform_pct / 100.0, 2)
        logistics_fee = round(order_amount * logistics_pct / 100.0, 2)
        distributable = order_amount - platform_fee - logistics_fee

        if settlement_type == SettlementType.RELEASE_FUNDS:
            buyer_refund = 0.0
        elif settlement_type == SettlementType.PARTIAL_REFUND:
            buyer_refund = round(order_amount * partial_pct / 100.0, 2)
        elif settlement_type == SettlementType.SPLIT_SETTLEMENT:
            buyer_refund = round(distributable / 2.0, 2)
        else:
            raise ValueError(f"Unknown settlement type: {settlement_type}")

        seller_release = round(max(distributable - buyer_refund, 0.0), 2)
        return buyer_refund, seller_release, platform_fee, logistics_fee

    # Storage

    def get_storage_keys(self) -> Dict[str, str]:
        """Fixed storage keys, one per persisted collection plus the id sequence"""
        configured = self._section('storage').get('keys') or {}
        return {**DEFAULT_STORAGE_KEYS, **configured}

    # Policy Metadata

    def get_policy_version(self) -> str:
        """Get current policy version"""
        return self.policy_version

    def get_last_loaded_time(self) -> Optional[datetime]:
        """Get when policies were last loaded"""
        return self.last_loaded
