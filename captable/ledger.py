"""
ledger.py - Stateful Cap-Table Ledger

The Ledger class is the central state manager for the cap table.
It is the only module that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by pure functions
    - Runs each operation as one indivisible unit: compute, validate, settle, apply
    - Maintains share classes, holder balances, the owner and the compliance oracle
    - Tracks logical time and provides audit operations (clone, replay, state_at)
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .core import (
    # Types
    ShareClass, PendingTransaction, Transaction, Payment,
    ShareClassChange, OwnerChange, OracleChange, LedgerEvent,
    Positions, Holdings,
    # Constants
    ISSUANCE_WALLET,
    # Exceptions
    LedgerError, NotFoundError, ValidationError, InsufficientBalanceError,
    ExternalTransferFailure, StaleStateError,
    # Helpers
    is_null_address, require_address, require_uint,
)
from .compliance import ComplianceOracle, resolve_oracle
from .payment_token import TokenService
from .access import compute_ownership_transfer, compute_oracle_update
from .share_class import compute_create_share_class, compute_update_share_class
from .investment import compute_investment
from .transfer import compute_share_transfer


class Ledger:
    """
    Cap-table ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to the
    pure computations that access only read-only methods.

    Every public operation either commits completely or raises a LedgerError
    subclass with no state changed. Operations are applied in the order they
    are submitted; there is no internal scheduling or retry.

    Thread Safety:
        Not thread-safe. Serialize access externally.

    Example:
        usdc = InMemoryToken("USDC")
        ledger = Ledger("acme", owner="founder")
        seed = ledger.create_share_class("founder", "Seed", 1_000_000, 10_000)

        usdc.mint("alice", 500_000_000)
        usdc.approve("alice", 500_000_000)
        ledger.invest("alice", seed, 500_000_000, usdc)   # 500 shares
        ledger.transfer_shares("alice", "bob", seed, 200)
    """

    def __init__(
        self,
        name: str,
        owner: str,
        initial_time: Optional[datetime] = None,
        compliance_oracle: Optional[ComplianceOracle] = None,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            owner: Address holding the admin role and receiving investment proceeds
            initial_time: Starting logical time (default: 1970-01-01)
            compliance_oracle: Oracle for restricted classes (default: approve all)
            verbose: Print every applied and rejected operation (default: True)
            test_mode: Enable test mode to allow set_balance() calls (default: False)
        """
        require_address("owner", owner)
        if is_null_address(owner):
            raise ValidationError("owner cannot be the null address")

        self.name = name
        self.verbose = verbose
        self._test_mode = test_mode
        self._owner = owner
        self._oracle = resolve_oracle(compliance_oracle)
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.share_classes: List[ShareClass] = []
        self.balances: Dict[str, Dict[int, int]] = defaultdict(lambda: defaultdict(int))
        self.transaction_log: List[Transaction] = []
        self._next_sequence: int = 0
        # Inverted index mapping class id -> {address -> shares} for O(1) position lookups
        self._positions_by_class: Dict[int, Dict[str, int]] = defaultdict(dict)

        # Starting point for replay()
        self._genesis = (owner, self._oracle, self._current_time)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    @property
    def owner(self) -> str:
        """Address holding the admin role."""
        return self._owner

    @property
    def compliance_oracle(self) -> ComplianceOracle:
        """The configured oracle (AlwaysApproveOracle when the gate is disabled)."""
        return self._oracle

    @property
    def compliance_oracle_address(self) -> str:
        """Address of the configured oracle (NULL_ADDRESS when the gate is disabled)."""
        return self._oracle.address

    @property
    def share_class_count(self) -> int:
        """Number of share classes created so far."""
        return len(self.share_classes)

    def get_share_class(self, share_class_id: int) -> ShareClass:
        """
        Get a share class by id.

        Raises:
            NotFoundError: If the id is outside [0, share_class_count)
        """
        if isinstance(share_class_id, bool) or not isinstance(share_class_id, int) \
                or not 0 <= share_class_id < len(self.share_classes):
            raise NotFoundError(f"share class {share_class_id!r} does not exist")
        return self.share_classes[share_class_id]

    def list_share_classes(self) -> List[ShareClass]:
        """All share classes in id order."""
        return list(self.share_classes)

    def balance_of(self, address: str, share_class_id: int) -> int:
        """Shares of a class held by address (0 if never credited)."""
        if address not in self.balances:
            return 0
        return self.balances[address].get(share_class_id, 0)

    def get_positions(self, share_class_id: int) -> Positions:
        """
        Get all non-zero positions for a share class.

        Uses an inverted index for O(1) lookup performance.
        """
        return dict(self._positions_by_class.get(share_class_id, {}))

    def get_holdings(self, address: str) -> Holdings:
        """Non-zero balances held by address, keyed by share class id."""
        if address not in self.balances:
            return {}
        return {cid: qty for cid, qty in sorted(self.balances[address].items()) if qty}

    def total_held(self, share_class_id: int) -> int:
        """
        Sum of all holder balances for a class.

        Conserved by transfers. Not related to remaining_shares, which the
        owner may overwrite at any time.
        """
        self.get_share_class(share_class_id)
        return sum(self._positions_by_class.get(share_class_id, {}).values())

    @property
    def events(self) -> List[LedgerEvent]:
        """All emitted events in commit order."""
        return [event for tx in self.transaction_log for event in tx.events]

    def state_snapshot(self) -> Dict[str, Any]:
        """
        Comparable snapshot of all ledger state.

        Contains owner, oracle address, share classes and non-zero balances.
        Two ledgers with equal snapshots are indistinguishable to any query.
        """
        return {
            'owner': self._owner,
            'compliance_oracle': self._oracle.address,
            'share_classes': tuple(self.share_classes),
            'balances': {
                address: {cid: qty for cid, qty in sorted(bals.items()) if qty}
                for address, bals in sorted(self.balances.items())
                if any(bals.values())
            },
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # OPERATIONS (Mutating)
    # ========================================================================

    def create_share_class(
        self,
        caller: str,
        name: str,
        price_per_share: int,
        total_shares: int,
        restricted: bool = False,
    ) -> int:
        """
        Create a share class. Owner-only.

        Returns:
            The new share class id (sequential from 0)

        Raises:
            AuthorizationError: If caller is not the owner
        """
        tx = self._run(compute_create_share_class, caller, name,
                       price_per_share, total_shares, restricted)
        return tx.state_changes[0].new.id

    def update_share_class(
        self,
        caller: str,
        share_class_id: int,
        price_per_share: int,
        total_shares: int,
        restricted: bool,
    ) -> None:
        """
        Overwrite a class's price, remaining shares and restricted flag. Owner-only.

        Raises:
            AuthorizationError: If caller is not the owner
            NotFoundError: If the class does not exist
        """
        self._run(compute_update_share_class, caller, share_class_id,
                  price_per_share, total_shares, restricted)

    def invest(
        self,
        caller: str,
        share_class_id: int,
        payment_amount: int,
        payment_token: TokenService,
    ) -> int:
        """
        Pay payment_amount of payment_token to the owner and receive shares.

        Returns:
            Shares issued: payment_amount // price_per_share

        Raises:
            NotFoundError: If the class does not exist
            ValidationError: If the class is not open or payment_amount is not positive
            ComplianceRejectedError: If the class is restricted and caller is not whitelisted
            ExternalTransferFailure: If caller cannot cover payment_amount or
                the token pull fails
            InsufficientBalanceError: If the class has too few remaining shares
        """
        tx = self._run(compute_investment, caller, share_class_id, payment_amount,
                       payment_token, payment_token=payment_token)
        return tx.events[0].shares_issued

    def transfer_shares(
        self,
        caller: str,
        to: str,
        share_class_id: int,
        amount: int,
    ) -> None:
        """
        Move amount shares of a class from caller to `to`.

        Raises:
            NotFoundError: If the class does not exist
            ValidationError: If `to` is the null address or amount is not positive
            InsufficientBalanceError: If caller holds fewer than amount shares
            ComplianceRejectedError: If the class is restricted and either party
                is not whitelisted
        """
        self._run(compute_share_transfer, caller, to, share_class_id, amount)

    def set_compliance_oracle(self, caller: str, oracle: Optional[ComplianceOracle]) -> None:
        """
        Replace the compliance oracle. Owner-only.

        None or NULL_ADDRESS disables the gate (every address approved).
        """
        self._run(compute_oracle_update, caller, oracle)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """
        Hand the admin role to new_owner in one step. Owner-only.

        new_owner also becomes the payee of future investments.
        """
        self._run(compute_ownership_transfer, caller, new_owner)

    def set_balance(self, address: str, share_class_id: int, quantity: int) -> None:
        """
        Set a holder's balance directly.

        WARNING: Bypasses validation and the transaction log. Only available
        in test mode; balances set this way are not reproduced by replay().

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use invest() or transfer_shares() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        require_address("address", address)
        self.get_share_class(share_class_id)
        require_uint("quantity", quantity)
        self.balances[address][share_class_id] = quantity
        self._update_position_index(address, share_class_id, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION
    # ========================================================================

    def _run(
        self,
        compute: Callable[..., PendingTransaction],
        *args: Any,
        payment_token: Optional[TokenService] = None,
    ) -> Transaction:
        """
        Run one operation as an indivisible unit.

        1. compute: check preconditions against this view, build the intent
        2. validate: confirm the intent still matches current state
        3. settle: pull the payment token, if the intent carries a payment
        4. apply: mutate state and log the Transaction

        Steps 1-3 do not touch ledger state and step 4 cannot fail, so any
        error leaves the ledger unchanged.
        """
        try:
            pending = compute(self, *args)
            self._validate_pending(pending)
            if pending.payment is not None:
                self._settle_payment(pending.payment, payment_token)
        except LedgerError as e:
            if self.verbose:
                print(f"✗ REJECTED: {type(e).__name__}: {e}")
            raise
        return self._apply(pending)

    def _generate_exec_id(self, sequence: int) -> str:
        """
        Generate a unique execution ID.

        Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}
        """
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def _validate_pending(self, pending: PendingTransaction) -> None:
        """
        Validate a pending transaction against current state.

        Checks performed:
        1. Timestamp (a transaction must not be from the future)
        2. Each state change's old value matches current state
        3. Each move's source holds enough shares (issuance excepted)

        Raises:
            StaleStateError: If the intent was built against different state
            InsufficientBalanceError: If a move would overdraw its source
        """
        if pending.timestamp > self._current_time:
            raise StaleStateError("transaction timestamp is in the future")

        for sc in pending.state_changes:
            if isinstance(sc, ShareClassChange):
                if sc.old is None:
                    if sc.share_class_id != len(self.share_classes):
                        raise StaleStateError(
                            f"share class id {sc.share_class_id} already assigned")
                elif self.get_share_class(sc.share_class_id) != sc.old:
                    raise StaleStateError(f"share class {sc.share_class_id} changed")
            elif isinstance(sc, OwnerChange):
                if sc.old != self._owner:
                    raise StaleStateError("owner changed")
            elif isinstance(sc, OracleChange):
                if sc.old != self._oracle:
                    raise StaleStateError("compliance oracle changed")
            else:
                raise LedgerError(f"unknown state change {sc!r}")

        debits: Dict[tuple, int] = defaultdict(int)
        for move in pending.moves:
            if move.source != ISSUANCE_WALLET:
                debits[(move.source, move.share_class_id)] += move.quantity
        for (address, cid), qty in sorted(debits.items()):
            held = self.balance_of(address, cid)
            if held < qty:
                raise InsufficientBalanceError(
                    f"{address} holds {held} shares of class {cid}, needs {qty}")

    def _settle_payment(self, payment: Payment, token: Optional[TokenService]) -> None:
        """
        Pull the payment through the external token.

        Raises:
            ExternalTransferFailure: If no token is given, the token reports
                failure, or the token raises
        """
        if token is None:
            raise ExternalTransferFailure("no payment token given")
        try:
            ok = token.transfer_from(payment.payer, payment.payee, payment.amount)
        except Exception as e:
            raise ExternalTransferFailure(
                f"token transfer of {payment.amount} from {payment.payer} raised: {e}"
            ) from e
        if not ok:
            raise ExternalTransferFailure(
                f"token transfer of {payment.amount} from {payment.payer} "
                f"to {payment.payee} failed"
            )

    def _apply(self, pending: PendingTransaction) -> Transaction:
        """Apply a validated pending transaction and append it to the log."""
        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            caller=pending.caller,
            moves=pending.moves,
            state_changes=pending.state_changes,
            events=pending.events,
            timestamp=pending.timestamp,
            payment=pending.payment,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
        )

        for sc in tx.state_changes:
            if isinstance(sc, ShareClassChange):
                if sc.old is None:
                    self.share_classes.append(sc.new)
                else:
                    self.share_classes[sc.share_class_id] = sc.new
            elif isinstance(sc, OwnerChange):
                self._owner = sc.new
            elif isinstance(sc, OracleChange):
                self._oracle = sc.new

        self._execute_moves(tx.moves)

        # Audit trail is mandatory
        self.transaction_log.append(tx)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return tx

    def _execute_moves(self, moves) -> None:
        """
        Apply moves to holder balances and update the position index.

        Moves out of ISSUANCE_WALLET only credit the destination.
        """
        for move in moves:
            cid = move.share_class_id
            if move.source != ISSUANCE_WALLET:
                new_src = self.balances[move.source][cid] - move.quantity
                self.balances[move.source][cid] = new_src
                self._update_position_index(move.source, cid, new_src)
            new_dst = self.balances[move.dest][cid] + move.quantity
            self.balances[move.dest][cid] = new_dst
            self._update_position_index(move.dest, cid, new_dst)

    def _update_position_index(self, address: str, share_class_id: int, quantity: int) -> None:
        """Keep the inverted index in sync; zero balances are dropped from it."""
        if quantity:
            self._positions_by_class[share_class_id][address] = quantity
        else:
            self._positions_by_class[share_class_id].pop(address, None)

    def _print_tx_result(self, tx: Transaction, result: str, icon: str) -> None:
        """Print the transaction box with a result line in place of its closing line."""
        lines = repr(tx).split('\n')
        w = 88
        bar = "─" * w
        text = ' ' + icon + ' ' + result
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{text[:w].ljust(w)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # AUDIT OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a copy of this ledger with independent state.

        Share classes are immutable and shared. The compliance oracle is an
        external service and is shared by reference.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned._owner = self._owner
        cloned._oracle = self._oracle
        cloned._current_time = self._current_time
        cloned.share_classes = list(self.share_classes)
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence
        cloned._genesis = self._genesis

        cloned.balances = defaultdict(lambda: defaultdict(int))
        for address, bals in self.balances.items():
            cloned.balances[address] = defaultdict(int, bals)

        cloned._positions_by_class = defaultdict(dict)
        for cid, positions in self._positions_by_class.items():
            cloned._positions_by_class[cid] = dict(positions)

        return cloned

    def replay(self, upto: Optional[int] = None) -> Ledger:
        """
        Create a new ledger by replaying the transaction log.

        Transactions are re-validated and re-applied in order. Payments are not
        pulled again: they were settled when the transaction first executed.

        Note: balances set via set_balance() are NOT replayed because they are
        not part of the transaction log. Use clone() to preserve them.

        Args:
            upto: Number of leading transactions to replay (default: all)

        Returns:
            New Ledger instance with replayed state

        Raises:
            LedgerError: If a logged transaction no longer validates
        """
        owner, oracle, start = self._genesis
        new_ledger = Ledger(
            name=f"{self.name}_replayed",
            owner=owner,
            initial_time=start,
            compliance_oracle=oracle,
            verbose=self.verbose,
            test_mode=self._test_mode,
        )

        for tx in self.transaction_log[:upto]:
            if tx.execution_time > new_ledger._current_time:
                new_ledger.advance_time(tx.execution_time)
            pending = tx.to_pending()
            try:
                new_ledger._validate_pending(pending)
            except LedgerError as e:
                raise LedgerError(f"Replay failed at tx {tx.exec_id}: {e}") from e
            new_ledger._apply(pending)

        return new_ledger

    def state_at(self, sequence_number: int) -> Ledger:
        """Ledger as it stood right after the transaction with this sequence number."""
        if not 0 <= sequence_number < len(self.transaction_log):
            raise ValueError(f"No transaction with sequence number {sequence_number}")
        return self.replay(upto=sequence_number + 1)

    def __repr__(self) -> str:
        return (f"Ledger({self.name!r}, owner={self._owner}, "
                f"{len(self.share_classes)} share classes, {len(self.transaction_log)} txs)")
