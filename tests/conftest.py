"""
Shared fixtures for the dispute engine tests
"""

import pytest
import pytest_asyncio

from src.analysis.ai_analyzer import DisputeAnalyzer
from src.governance.policy_engine import PolicyEngine
from src.storage.kv_storage import InMemoryStorage
from src.store.dispute_store import DisputeStore


@pytest.fixture
def policy_engine():
    """Create PolicyEngine instance from the shipped policy file"""
    return PolicyEngine()


@pytest.fixture
def instant_analyzer(policy_engine):
    """Analyzer without simulated latency"""
    return DisputeAnalyzer(policy_engine=policy_engine, delay_range=(0.0, 0.0))


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest_asyncio.fixture
async def store(storage, policy_engine, instant_analyzer):
    """Loaded DisputeStore over empty in-memory storage"""
    dispute_store = DisputeStore(
        storage=storage,
        policy_engine=policy_engine,
        analyzer=instant_analyzer,
    )
    await dispute_store.load()
    return dispute_store

