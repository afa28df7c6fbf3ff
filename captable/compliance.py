"""
compliance.py - Compliance gate for restricted share classes

Provides the whitelist oracle the ledger consults before investment into,
or transfer of, a restricted share class.

Classes:
- ComplianceOracle: Protocol defining the oracle interface
- AlwaysApproveOracle: Approves every address (the default, gate disabled)
- WhitelistOracle: In-memory set of approved addresses

The ledger always delegates to the configured oracle. Disabling the gate
means installing AlwaysApproveOracle, not skipping the check.
"""

from typing import Iterable, Optional, Protocol, Set, runtime_checkable

from .core import (
    NULL_ADDRESS, LedgerView, ComplianceRejectedError, ValidationError, require_address,
)


@runtime_checkable
class ComplianceOracle(Protocol):
    """
    Protocol for compliance oracles.

    An oracle answers whitelist queries for addresses. Implementations expose
    the address they are deployed at so the ledger can report it.
    """
    address: str

    def is_whitelisted(self, address: str) -> bool:
        """Return True if address may participate in restricted share classes."""
        ...


class AlwaysApproveOracle:
    """
    Oracle that approves every address.

    Installed when no oracle is configured; reports the null address.
    """

    address = NULL_ADDRESS

    def is_whitelisted(self, address: str) -> bool:
        return True

    def __eq__(self, other):
        return isinstance(other, AlwaysApproveOracle)

    def __hash__(self):
        return hash(AlwaysApproveOracle)

    def __repr__(self):
        return "AlwaysApproveOracle()"


class WhitelistOracle:
    """
    Oracle backed by an explicit set of approved addresses.

    Example:
        oracle = WhitelistOracle("0xoracle", ["alice", "bob"])
        oracle.is_whitelisted("alice")   # True
        oracle.revoke("alice")
        oracle.is_whitelisted("alice")   # False
    """

    def __init__(self, address: str, approved: Optional[Iterable[str]] = None):
        self.address = require_address("oracle address", address)
        self.approved: Set[str] = set(approved or ())

    def is_whitelisted(self, address: str) -> bool:
        return address in self.approved

    def approve(self, address: str) -> None:
        """Add an address to the whitelist."""
        self.approved.add(address)

    def revoke(self, address: str) -> None:
        """Remove an address from the whitelist (no-op if absent)."""
        self.approved.discard(address)

    def __repr__(self):
        return f"WhitelistOracle({self.address}, {len(self.approved)} approved)"


def resolve_oracle(oracle) -> ComplianceOracle:
    """Map None or the null address to AlwaysApproveOracle; pass oracles through."""
    if oracle is None or oracle == NULL_ADDRESS:
        return AlwaysApproveOracle()
    if not isinstance(oracle, ComplianceOracle):
        raise ValidationError(f"{oracle!r} does not implement ComplianceOracle")
    return oracle


def check_compliance(view: LedgerView, *addresses: str) -> None:
    """
    Ask the view's oracle about each address, in order.

    Each address is an independent check; all must pass.

    Raises:
        ComplianceRejectedError: Naming the first address the oracle rejects
    """
    oracle = view.compliance_oracle
    for address in addresses:
        if not oracle.is_whitelisted(address):
            raise ComplianceRejectedError(
                f"{address} is not whitelisted by oracle {oracle.address}",
                address=address,
            )
