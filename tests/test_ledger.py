"""
test_ledger.py - Unit tests for ledger.py

Tests:
- Ledger creation and configuration
- Queries (share classes, balances, positions, holdings, events)
- Time management
- set_balance() test-mode guard
- Transaction log and verbose output
- clone(), replay() and state_at()
"""

import pytest
from datetime import datetime, timedelta

from captable import (
    Ledger, InMemoryToken, WhitelistOracle, AlwaysApproveOracle,
    Invested, ShareClassCreated, TransferShares,
    LedgerError, NotFoundError, ValidationError, NULL_ADDRESS,
)


class TestLedgerCreation:
    """Tests for Ledger initialization."""

    def test_create_ledger(self):
        ledger = Ledger("test", "founder", verbose=False)
        assert ledger.name == "test"
        assert ledger.owner == "founder"
        assert ledger.verbose is False
        assert ledger.share_class_count == 0

    def test_create_with_initial_time(self):
        t = datetime(2025, 1, 1, 9, 30)
        ledger = Ledger("test", "founder", initial_time=t, verbose=False)
        assert ledger.current_time == t

    def test_default_time(self):
        ledger = Ledger("test", "founder", verbose=False)
        assert ledger.current_time == datetime(1970, 1, 1)

    def test_default_oracle_approves_everyone(self):
        ledger = Ledger("test", "founder", verbose=False)
        assert isinstance(ledger.compliance_oracle, AlwaysApproveOracle)
        assert ledger.compliance_oracle_address == NULL_ADDRESS

    def test_initial_oracle(self):
        oracle = WhitelistOracle("0xabc")
        ledger = Ledger("test", "founder", compliance_oracle=oracle, verbose=False)
        assert ledger.compliance_oracle is oracle
        assert ledger.compliance_oracle_address == "0xabc"

    def test_null_owner_rejected(self):
        with pytest.raises(ValidationError):
            Ledger("test", NULL_ADDRESS, verbose=False)

    def test_empty_owner_rejected(self):
        with pytest.raises(ValidationError):
            Ledger("test", "", verbose=False)


class TestQueries:

    def test_get_share_class(self, seed_ledger):
        sc = seed_ledger.get_share_class(0)
        assert sc.name == "Seed"
        assert sc.price_per_share == 1_000_000
        assert sc.remaining_shares == 10_000

    @pytest.mark.parametrize("bad_id", [1, -1, 99, "0", None, True])
    def test_get_share_class_out_of_range(self, seed_ledger, bad_id):
        with pytest.raises(NotFoundError):
            seed_ledger.get_share_class(bad_id)

    def test_list_share_classes(self, seed_ledger):
        seed_ledger.create_share_class("founder", "Series A", 5, 5)
        assert [sc.name for sc in seed_ledger.list_share_classes()] == ["Seed", "Series A"]

    def test_balance_of_unknown_address_is_zero(self, seed_ledger):
        assert seed_ledger.balance_of("nobody", 0) == 0
        assert "nobody" not in seed_ledger.balances

    def test_positions_and_holdings(self, seed_ledger, usdc):
        seed_ledger.create_share_class("founder", "Series A", 10, 1_000)
        seed_ledger.invest("alice", 0, 3_000_000, usdc)
        seed_ledger.invest("alice", 1, 50, usdc)
        seed_ledger.invest("bob", 0, 1_000_000, usdc)

        assert seed_ledger.get_positions(0) == {"alice": 3, "bob": 1}
        assert seed_ledger.get_holdings("alice") == {0: 3, 1: 5}
        assert seed_ledger.total_held(0) == 4

    def test_positions_drop_zero_balances(self, seed_ledger, usdc):
        seed_ledger.invest("alice", 0, 2_000_000, usdc)
        seed_ledger.transfer_shares("alice", "bob", 0, 2)
        assert seed_ledger.get_positions(0) == {"bob": 2}
        assert seed_ledger.balance_of("alice", 0) == 0
        assert seed_ledger.get_holdings("alice") == {}

    def test_total_held_unknown_class(self, empty_ledger):
        with pytest.raises(NotFoundError):
            empty_ledger.total_held(0)

    def test_events_in_commit_order(self, seed_ledger, usdc):
        seed_ledger.invest("alice", 0, 1_000_000, usdc)
        seed_ledger.transfer_shares("alice", "bob", 0, 1)
        assert seed_ledger.events == [
            ShareClassCreated(0, "Seed", 1_000_000, 10_000, False),
            Invested("alice", 0, 1_000_000, 1),
            TransferShares("alice", "bob", 0, 1),
        ]

    def test_ledger_is_a_ledger_view(self, empty_ledger):
        from captable import LedgerView
        assert isinstance(empty_ledger, LedgerView)


class TestTimeManagement:

    def test_advance_time(self, empty_ledger):
        t = empty_ledger.current_time + timedelta(days=1)
        empty_ledger.advance_time(t)
        assert empty_ledger.current_time == t

    def test_cannot_go_backwards(self, empty_ledger):
        with pytest.raises(ValueError, match="backwards"):
            empty_ledger.advance_time(empty_ledger.current_time - timedelta(seconds=1))

    def test_transactions_stamped_with_ledger_time(self, empty_ledger):
        t = datetime(2025, 3, 1)
        empty_ledger.advance_time(t)
        empty_ledger.create_share_class("founder", "Seed", 1, 1)
        tx = empty_ledger.transaction_log[-1]
        assert tx.timestamp == t
        assert tx.execution_time == t


class TestSetBalance:

    def test_disabled_outside_test_mode(self):
        ledger = Ledger("prod", "founder", verbose=False)
        ledger.create_share_class("founder", "Seed", 1, 1)
        with pytest.raises(LedgerError, match="disabled in production mode"):
            ledger.set_balance("alice", 0, 10)

    def test_sets_balance_and_index(self, seed_ledger):
        seed_ledger.set_balance("alice", 0, 40)
        assert seed_ledger.balance_of("alice", 0) == 40
        assert seed_ledger.get_positions(0) == {"alice": 40}
        seed_ledger.set_balance("alice", 0, 0)
        assert seed_ledger.get_positions(0) == {}

    def test_requires_existing_class(self, empty_ledger):
        with pytest.raises(NotFoundError):
            empty_ledger.set_balance("alice", 0, 1)

    def test_not_logged(self, seed_ledger):
        before = len(seed_ledger.transaction_log)
        seed_ledger.set_balance("alice", 0, 5)
        assert len(seed_ledger.transaction_log) == before


class TestTransactionLog:

    def test_sequence_numbers_are_monotonic(self, seed_ledger, usdc):
        seed_ledger.invest("alice", 0, 1_000_000, usdc)
        seed_ledger.transfer_shares("alice", "bob", 0, 1)
        assert [tx.sequence_number for tx in seed_ledger.transaction_log] == [0, 1, 2]

    def test_exec_id_format(self, seed_ledger):
        tx = seed_ledger.transaction_log[0]
        assert tx.exec_id.startswith("exec:test:000000000000:")
        assert tx.ledger_name == "test"

    def test_caller_recorded(self, seed_ledger, usdc):
        seed_ledger.invest("bob", 0, 1_000_000, usdc)
        assert seed_ledger.transaction_log[-1].caller == "bob"

    def test_rejections_are_not_logged(self, seed_ledger):
        with pytest.raises(LedgerError):
            seed_ledger.transfer_shares("alice", "bob", 0, 1)
        assert len(seed_ledger.transaction_log) == 1


class TestVerboseOutput:

    def test_applied_prints_box(self, capsys):
        ledger = Ledger("loud", "founder", verbose=True)
        ledger.create_share_class("founder", "Seed", 1, 1)
        out = capsys.readouterr().out
        assert "Transaction: exec:loud:000000000000" in out
        assert "ShareClassCreated" in out
        assert "✓ APPLIED" in out

    def test_rejected_prints_reason(self, capsys):
        ledger = Ledger("loud", "founder", verbose=True)
        with pytest.raises(LedgerError):
            ledger.create_share_class("mallory", "Seed", 1, 1)
        out = capsys.readouterr().out
        assert "✗ REJECTED: AuthorizationError: mallory is not the owner" in out

    def test_quiet_prints_nothing(self, capsys, seed_ledger, usdc):
        seed_ledger.invest("alice", 0, 1_000_000, usdc)
        assert capsys.readouterr().out == ""


class TestClone:

    def test_clone_equal_state(self, seed_ledger, usdc):
        seed_ledger.invest("alice", 0, 5_000_000, usdc)
        cloned = seed_ledger.clone()
        assert cloned.state_snapshot() == seed_ledger.state_snapshot()
        assert cloned.transaction_log == seed_ledger.transaction_log

    def test_clone_is_independent(self, seed_ledger, usdc):
        seed_ledger.invest("alice", 0, 5_000_000, usdc)
        cloned = seed_ledger.clone()
        cloned.transfer_shares("alice", "bob", 0, 5)
        cloned.update_share_class("founder", 0, 1, 1, True)

        assert seed_ledger.balance_of("alice", 0) == 5
        assert seed_ledger.balance_of("bob", 0) == 0
        assert seed_ledger.get_positions(0) == {"alice": 5}
        assert seed_ledger.get_share_class(0).restricted is False
        assert len(seed_ledger.transaction_log) == 2

    def test_clone_preserves_set_balance(self, seed_ledger):
        seed_ledger.set_balance("alice", 0, 7)
        assert seed_ledger.clone().balance_of("alice", 0) == 7


class TestReplay:

    def _populate(self, ledger, token):
        ledger.advance_time(datetime(2025, 2, 1))
        ledger.invest("alice", 0, 3_000_000, token)
        ledger.create_share_class("founder", "Series A", 10, 100, True)
        ledger.invest("bob", 1, 200, token)
        ledger.advance_time(datetime(2025, 3, 1))
        ledger.transfer_shares("alice", "carol", 0, 1)
        ledger.update_share_class("founder", 0, 2_000_000, 50, False)
        ledger.set_compliance_oracle("founder", WhitelistOracle("0xabc", ["bob"]))
        ledger.transfer_ownership("founder", "board")

    def test_replay_reproduces_state(self, seed_ledger, usdc):
        self._populate(seed_ledger, usdc)
        replayed = seed_ledger.replay()
        assert replayed.state_snapshot() == seed_ledger.state_snapshot()
        assert replayed.events == seed_ledger.events
        assert replayed.owner == "board"

    def test_replay_does_not_pull_tokens_again(self, seed_ledger, usdc):
        self._populate(seed_ledger, usdc)
        before = dict(usdc.balances)
        seed_ledger.replay()
        assert usdc.balances == before

    def test_replay_keeps_execution_times(self, seed_ledger, usdc):
        self._populate(seed_ledger, usdc)
        replayed = seed_ledger.replay()
        assert [tx.execution_time for tx in replayed.transaction_log] == \
            [tx.execution_time for tx in seed_ledger.transaction_log]

    def test_partial_replay(self, seed_ledger, usdc):
        self._populate(seed_ledger, usdc)
        partial = seed_ledger.replay(upto=2)
        assert partial.share_class_count == 1
        assert partial.balance_of("alice", 0) == 3
        assert partial.owner == "founder"

    def test_state_at(self, seed_ledger, usdc):
        self._populate(seed_ledger, usdc)
        at_creation = seed_ledger.state_at(0)
        assert at_creation.get_share_class(0).remaining_shares == 10_000
        assert at_creation.balance_of("alice", 0) == 0

        after_transfer = seed_ledger.state_at(4)
        assert after_transfer.balance_of("carol", 0) == 1
        assert after_transfer.get_share_class(0).price_per_share == 1_000_000

    def test_state_at_out_of_range(self, seed_ledger):
        with pytest.raises(ValueError):
            seed_ledger.state_at(5)

    def test_replay_fails_on_set_balance_history(self, seed_ledger):
        seed_ledger.set_balance("alice", 0, 10)
        seed_ledger.transfer_shares("alice", "bob", 0, 10)
        with pytest.raises(LedgerError, match="Replay failed"):
            seed_ledger.replay()
