"""
Unit Test Configuration
=======================
Fixtures for pure logic tests - NO NETWORK ALLOWED.

Unit tests run against the in-memory ledger and signer from tests/mocks.
HTTP goes through httpx.MockTransport or ASGITransport; SQLite and JSON
files live under tmp_path.
"""

import pytest


# ============================================================================
# AUTOUSE: ENFORCE NETWORK ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_unit_tests(monkeypatch):
    """
    Block real HTTP transports for unit tests.
    Any test that accidentally tries to reach an RPC node or gateway will fail.
    """
    def block_network(*args, **kwargs):
        raise RuntimeError(
            "Network I/O detected in unit test! "
            "Use MockLedger or an httpx.MockTransport instead."
        )

    monkeypatch.setattr("httpx.AsyncHTTPTransport.handle_async_request", block_network)
    monkeypatch.setattr("httpx.HTTPTransport.handle_request", block_network)


# ============================================================================
# SCENARIO FIXTURES
# ============================================================================


@pytest.fixture
def three_empty_accounts(ledger):
    """Three empty token accounts holding 2,000,000 / 1,500,000 / 500,000 lamports."""
    from solclaimer.modules.reclaimer.models import ProgramVariant

    return [
        ledger.add_token_account(ProgramVariant.TOKEN, lamports=2_000_000),
        ledger.add_token_account(ProgramVariant.TOKEN, lamports=1_500_000),
        ledger.add_token_account(ProgramVariant.TOKEN_2022, lamports=500_000),
    ]


@pytest.fixture
def make_accounts():
    """Factory for SubAccount lists without touching a ledger."""
    from solders.pubkey import Pubkey

    from solclaimer.modules.reclaimer.models import ProgramVariant, SubAccount

    def _make(n, lamports=2_039_280, variant=ProgramVariant.TOKEN):
        return [
            SubAccount(
                address=str(Pubkey.new_unique()),
                variant=variant,
                mint=str(Pubkey.new_unique()),
                lamports=lamports,
            )
            for _ in range(n)
        ]

    return _make
