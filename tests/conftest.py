"""
Solclaimer Test Configuration
=============================
Shared fixtures and pytest markers for the test suite.
"""

import os
import sys
import tempfile

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Keep session logs and stats files out of the working tree
_SCRATCH = tempfile.mkdtemp(prefix="solclaimer-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_SCRATCH, "logs"))
os.environ.setdefault("DATA_DIR", os.path.join(_SCRATCH, "data"))
os.environ.setdefault("SILENT_MODE", "1")


# ============================================================================
# PYTEST MARKERS
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "network: marks tests that require network access"
    )
    config.addinivalue_line(
        "markers", "integration: marks integration tests"
    )


# ============================================================================
# SHARED FIXTURES
# ============================================================================

@pytest.fixture
def owner_keypair():
    from solders.keypair import Keypair

    return Keypair()


@pytest.fixture
def owner(owner_keypair):
    return owner_keypair.pubkey()


@pytest.fixture
def config():
    """Reclaimer config with zero-delay retry policies."""
    from solclaimer.modules.reclaimer.config import ReclaimerConfig

    return ReclaimerConfig.for_tests()


@pytest.fixture
def ledger(owner):
    from tests.mocks import MockLedger

    return MockLedger(owner, balance=1_000_000_000)


@pytest.fixture
def signer(ledger, owner_keypair):
    from tests.mocks import MockSigner

    return MockSigner(ledger, owner_keypair)


@pytest.fixture
def store():
    from tests.mocks import MemoryStatsStore

    return MemoryStatsStore()


@pytest.fixture
def engine(ledger, signer, store, config):
    from solclaimer.modules.reclaimer.engine import ReclamationEngine
    from solclaimer.modules.reclaimer.metadata import MetadataCache

    return ReclamationEngine(ledger, signer, store, config, metadata_cache=MetadataCache())
