"""
Core types and pure functions for the cap-table ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: ShareClass, Move, PendingTransaction, Transaction
3. Exceptions: LedgerError and the operation-specific error types
4. Events: records emitted for external observers and indexers
5. Validation helpers for addresses and unsigned integers

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

# The null identity. Never a valid recipient or owner.
NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

# Pseudo-wallet that newly issued shares are moved from.
# It holds no balance: supply for sale is tracked by ShareClass.remaining_shares.
ISSUANCE_WALLET = "issuance"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from holder address to shares held in a single share class.
Positions = Dict[str, int]

# Mapping from share class id to shares held by a single address.
Holdings = Dict[int, int]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class AuthorizationError(LedgerError):
    """Raised when a non-owner invokes an owner-only operation."""
    pass


class NotFoundError(LedgerError):
    """Raised when a share class id is outside the assigned range."""
    pass


class ValidationError(LedgerError):
    """Raised for non-positive amounts, null recipients, closed classes and malformed inputs."""
    pass


class InsufficientBalanceError(LedgerError):
    """Raised when a sender lacks shares or a class has too few remaining shares."""
    pass


class ComplianceRejectedError(LedgerError):
    """Raised when a required participant fails the whitelist check."""

    def __init__(self, message: str, address: Optional[str] = None):
        super().__init__(message)
        self.address = address


class ExternalTransferFailure(LedgerError):
    """Raised when the payment token pull reports failure."""
    pass


class StaleStateError(LedgerError):
    """Raised when a pending transaction was built against state that has since changed."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def require_uint(name: str, value: Any) -> int:
    """
    Validate that value is a non-negative int (bool is rejected).

    Raises:
        ValidationError: If value is not an int or is negative
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def require_address(name: str, value: Any) -> str:
    """Validate that value is a non-empty address string other than ISSUANCE_WALLET."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty address")
    if value == ISSUANCE_WALLET:
        raise ValidationError(f"{name} cannot be the reserved address {ISSUANCE_WALLET!r}")
    return value


def is_null_address(address: Optional[str]) -> bool:
    return address is None or address == NULL_ADDRESS


# ============================================================================
# SHARE CLASS
# ============================================================================

@dataclass(frozen=True, slots=True)
class ShareClass:
    """
    One issuable tranche of equity.

    Attributes:
        id: Sequential identifier assigned at creation (immutable).
        name: Display label (immutable).
        price_per_share: Price in payment-token smallest units (admin-mutable).
        remaining_shares: Shares still available for sale. Admin updates overwrite
            this value; it is not reconciled against historical issuance.
        restricted: When True, investment and transfer require compliance approval.
    """
    id: int
    name: str
    price_per_share: int
    remaining_shares: int
    restricted: bool = False

    def __post_init__(self):
        require_uint("id", self.id)
        require_uint("price_per_share", self.price_per_share)
        require_uint("remaining_shares", self.remaining_shares)
        if not isinstance(self.name, str):
            raise ValidationError(f"name must be a string, got {type(self.name).__name__}")
        if not isinstance(self.restricted, bool):
            raise ValidationError("restricted must be a bool")

    @property
    def is_open(self) -> bool:
        """A class with price zero is not open for investment."""
        return self.price_per_share > 0

    def __repr__(self) -> str:
        flag = ", restricted" if self.restricted else ""
        return (f"ShareClass(#{self.id} {self.name!r}: {self.price_per_share}/share, "
                f"{self.remaining_shares} remaining{flag})")


# ============================================================================
# MOVES AND STATE CHANGES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of shares between two addresses.

    Attributes:
        quantity: Number of shares (positive int).
        share_class_id: Share class being moved.
        source: Address debited (ISSUANCE_WALLET for new issuance).
        dest: Address credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: int
    share_class_id: int
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} of class {self.share_class_id}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class ShareClassChange:
    """Before/after snapshot of a share class. old is None for creation."""
    share_class_id: int
    old: Optional[ShareClass]
    new: ShareClass

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Fields that differ between old and new, as (old_value, new_value)."""
        if self.old is None:
            return {"created": (None, self.new)}
        changes = {}
        for name in ("price_per_share", "remaining_shares", "restricted"):
            old_val = getattr(self.old, name)
            new_val = getattr(self.new, name)
            if old_val != new_val:
                changes[name] = (old_val, new_val)
        return changes


@dataclass(frozen=True, slots=True)
class OwnerChange:
    old: str
    new: str

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        return {"owner": (self.old, self.new)}


@dataclass(frozen=True, slots=True)
class OracleChange:
    old: Any  # ComplianceOracle
    new: Any  # ComplianceOracle

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        return {"compliance_oracle": (self.old.address, self.new.address)}


StateChange = Union[ShareClassChange, OwnerChange, OracleChange]


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class ShareClassCreated:
    id: int
    name: str
    price: int
    total_shares: int
    restricted: bool


@dataclass(frozen=True, slots=True)
class ShareClassUpdated:
    id: int
    price: int
    total_shares: int
    restricted: bool


@dataclass(frozen=True, slots=True)
class Invested:
    investor: str
    id: int
    amount_paid: int
    shares_issued: int


@dataclass(frozen=True, slots=True)
class TransferShares:
    """Share transfer record. `sender` is the event's `from` field."""
    sender: str
    to: str
    id: int
    amount: int


@dataclass(frozen=True, slots=True)
class OwnershipTransferred:
    previous_owner: str
    new_owner: str


@dataclass(frozen=True, slots=True)
class ComplianceOracleUpdated:
    previous_oracle: str
    new_oracle: str


LedgerEvent = Union[
    ShareClassCreated, ShareClassUpdated, Invested, TransferShares,
    OwnershipTransferred, ComplianceOracleUpdated,
]


def event_name(event: LedgerEvent) -> str:
    """Canonical name of an event record, e.g. "Invested"."""
    return type(event).__name__


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    The pure computations in access, share_class, investment and transfer take a
    LedgerView and return a PendingTransaction; only the Ledger mutates state.
    The Ledger implements this protocol. For testing, FakeView provides a
    minimal standalone implementation.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    @property
    def owner(self) -> str:
        """Return the address holding the admin role."""
        ...

    @property
    def compliance_oracle(self) -> Any:
        """Return the configured ComplianceOracle."""
        ...

    @property
    def share_class_count(self) -> int:
        """Return the number of share classes created so far."""
        ...

    def get_share_class(self, share_class_id: int) -> ShareClass:
        """
        Return the share class with the given id.

        Raises NotFoundError if the id is outside [0, share_class_count).
        """
        ...

    def balance_of(self, address: str, share_class_id: int) -> int:
        """Return shares held by address in a class (0 if never credited)."""
        ...

    def get_positions(self, share_class_id: int) -> Positions:
        """Return all non-zero positions for a class."""
        ...


# ============================================================================
# TRANSACTIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Payment:
    """A token pull that must settle before the transaction is committed."""
    payer: str
    payee: str
    amount: int


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A proposed transaction before execution - represents INTENT.

    Produced by the pure computations after all preconditions have been
    checked against a LedgerView. The Ledger commits it atomically.

    Attributes:
        caller: Address that submitted the operation
        moves: Share transfers to apply
        state_changes: Share class, owner or oracle changes (with old and new values)
        events: Records to emit once committed
        timestamp: Logical time the intent was built at
        payment: Token pull to settle before commit, if any
    """
    caller: str
    moves: Tuple[Move, ...]
    state_changes: Tuple[StateChange, ...]
    events: Tuple[LedgerEvent, ...]
    timestamp: datetime
    payment: Optional[Payment] = None

    def __repr__(self) -> str:
        return (f"PendingTransaction({len(self.moves)} moves, "
                f"{len(self.state_changes)} changes, caller={self.caller})")


def build_transaction(
    view: LedgerView,
    caller: str,
    moves: Optional[List[Move]] = None,
    state_changes: Optional[List[StateChange]] = None,
    events: Optional[List[LedgerEvent]] = None,
    payment: Optional[Payment] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction stamped with the view's current time.

    This is the standard way the operation modules create transactions.
    """
    return PendingTransaction(
        caller=caller,
        moves=tuple(moves or ()),
        state_changes=tuple(state_changes or ()),
        events=tuple(events or ()),
        timestamp=view.current_time,
        payment=payment,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Attributes:
        caller: Address that submitted the operation
        moves: Share transfers applied
        state_changes: State changes applied (with old and new values)
        events: Records emitted
        timestamp: When the PendingTransaction was built
        payment: Token pull settled for this transaction, if any
        exec_id: Unique execution identifier (ledger + sequence + time)
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
        sequence_number: Monotonic sequence within the ledger
    """
    caller: str
    moves: Tuple[Move, ...]
    state_changes: Tuple[StateChange, ...]
    events: Tuple[LedgerEvent, ...]
    timestamp: datetime
    payment: Optional[Payment]
    exec_id: str
    ledger_name: str
    execution_time: datetime
    sequence_number: int

    def to_pending(self) -> PendingTransaction:
        """Strip execution metadata, e.g. for replay into another ledger."""
        return PendingTransaction(
            caller=self.caller,
            moves=self.moves,
            state_changes=self.state_changes,
            events=self.events,
            timestamp=self.timestamp,
            payment=self.payment,
        )

    def __repr__(self) -> str:
        w = 88
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   caller         : ' + self.caller)}│",
            f"│{pad('   execution_time : ' + str(self.execution_time))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   events         : ' + ', '.join(event_name(e) for e in self.events))}│",
        ]
        if self.payment is not None:
            p = self.payment
            lines.append(f"│{pad(f'   payment        : {p.amount} {p.payer} → {p.payee}')}│")
        if self.moves:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' Moves (' + str(len(self.moves)) + '):')}│")
            for i, move in enumerate(self.moves):
                move_str = f"   [{i}] {move.quantity} of class {move.share_class_id}: {move.source} → {move.dest}"
                lines.append(f"│{pad(move_str)}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            lines.append(f"│{pad(' State Changes (' + str(len(self.state_changes)) + '):')}│")
            for sc in self.state_changes:
                for field_name, (old_val, new_val) in sc.changed_fields().items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)
