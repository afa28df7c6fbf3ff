#!/usr/bin/env python3
"""
demo.py - Walkthrough of the cap-table ledger

Steps:
  1. Create the ledger and a Seed share class
  2. Invest with a payment token (floor division, no refund of remainder)
  3. Transfer shares between holders
  4. Restrict a class behind a whitelist oracle
  5. Rejections leave the ledger unchanged
  6. Replay the transaction log and print the cap table

Run:
    python demo.py
    python demo.py --quiet   # only print the final cap table
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from captable import (
    Ledger, InMemoryToken, WhitelistOracle,
    LedgerError, format_cap_table, event_name,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the walkthrough. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    founder: str = "0xf0under"
    seed_price: int = 1_000_000          # 1 USDC at 6 decimals
    seed_shares: int = 10_000
    alice_payment: int = 500_000_000     # 500 USDC
    bob_payment: int = 2_500_000         # 2.5 USDC -> 2 shares, 0.5 retained


CONFIG = DemoConfig()


def main(verbose: bool = True) -> Ledger:
    cfg = CONFIG
    usdc = InMemoryToken("USDC")
    for investor in ("alice", "bob", "carol"):
        usdc.mint(investor, 1_000_000_000)
        usdc.approve(investor, 1_000_000_000)

    # 1. Ledger and share class
    ledger = Ledger("acme", owner=cfg.founder, initial_time=cfg.start_time, verbose=verbose)
    seed = ledger.create_share_class(cfg.founder, "Seed", cfg.seed_price, cfg.seed_shares)

    # 2. Investment
    ledger.advance_time(cfg.start_time + timedelta(days=1))
    ledger.invest("alice", seed, cfg.alice_payment, usdc)
    ledger.invest("bob", seed, cfg.bob_payment, usdc)

    # 3. Transfer
    ledger.transfer_shares("alice", "carol", seed, 100)

    # 4. Restricted class behind a whitelist
    oracle = WhitelistOracle("0x0rac1e", approved=["alice"])
    ledger.set_compliance_oracle(cfg.founder, oracle)
    series_a = ledger.create_share_class(cfg.founder, "Series A", 5_000_000, 1_000, restricted=True)
    ledger.invest("alice", series_a, 50_000_000, usdc)

    # 5. Rejections
    for attempt in (
        lambda: ledger.invest("bob", series_a, 50_000_000, usdc),       # not whitelisted
        lambda: ledger.transfer_shares("alice", "bob", series_a, 1),    # recipient not whitelisted
        lambda: ledger.create_share_class("alice", "Rogue", 1, 1),      # not the owner
    ):
        before = ledger.state_snapshot()
        try:
            attempt()
        except LedgerError:
            assert ledger.state_snapshot() == before

    # 6. Replay and report
    replayed = ledger.replay()
    assert replayed.state_snapshot() == ledger.state_snapshot()

    print()
    print(f"Events: {', '.join(event_name(e) for e in ledger.events)}")
    print(f"Founder USDC balance: {usdc.balance_of(cfg.founder)}")
    print(format_cap_table(ledger))
    return ledger


if __name__ == "__main__":
    main(verbose="--quiet" not in sys.argv)
