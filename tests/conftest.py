"""
conftest.py - Shared pytest fixtures for cap-table ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Ledgers (empty, with an open Seed class, with a restricted class)
- A funded payment token with approvals for the standard investors
- Comparison utilities
"""

import pytest
from datetime import datetime
from typing import Dict, Any

from captable import (
    Ledger, InMemoryToken, WhitelistOracle,
)


OWNER = "founder"
INVESTORS = ("alice", "bob", "carol")
START = datetime(2025, 1, 1)

# Seed class parameters used throughout the suite
SEED_PRICE = 1_000_000
SEED_SHARES = 10_000


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fund(token: InMemoryToken, holder: str, amount: int) -> None:
    """Mint amount to holder and approve the ledger to pull all of it."""
    token.mint(holder, amount)
    token.approve(holder, token.balance_of(holder))


def make_ledger(**kwargs) -> Ledger:
    """Quiet test-mode ledger owned by OWNER."""
    params: Dict[str, Any] = dict(initial_time=START, verbose=False, test_mode=True)
    params.update(kwargs)
    return Ledger("test", OWNER, **params)


def token_state(token: InMemoryToken) -> dict:
    """Comparable snapshot of token balances and allowances."""
    return {
        'balances': {k: v for k, v in token.balances.items() if v},
        'allowances': {k: v for k, v in token.allowances.items() if v},
    }


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def usdc():
    """Payment token with every standard investor funded and approved."""
    token = InMemoryToken("USDC")
    for investor in INVESTORS:
        fund(token, investor, 10 ** 12)
    return token


@pytest.fixture
def empty_ledger():
    """Fresh ledger with no share classes."""
    return make_ledger()


@pytest.fixture
def seed_ledger():
    """Ledger with an open, unrestricted Seed class (id 0)."""
    ledger = make_ledger()
    ledger.create_share_class(OWNER, "Seed", SEED_PRICE, SEED_SHARES, False)
    return ledger


@pytest.fixture
def oracle():
    """Whitelist with alice and bob approved; carol is not."""
    return WhitelistOracle("0xoracle", ["alice", "bob"])


@pytest.fixture
def restricted_ledger(oracle):
    """Ledger with a restricted class (id 0) gated by the oracle fixture."""
    ledger = make_ledger(compliance_oracle=oracle)
    ledger.create_share_class(OWNER, "Series A", 1_000, 100_000, True)
    return ledger
