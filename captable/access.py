"""
access.py - Single-owner access control

The owner is an identity value compared on every privileged call. There is
exactly one owner at any time; ownership moves in one step and can never be
renounced. The owner also receives all investment proceeds.
"""

from __future__ import annotations

from .core import (
    LedgerView, PendingTransaction, OwnerChange, OracleChange,
    OwnershipTransferred, ComplianceOracleUpdated,
    AuthorizationError, ValidationError,
    build_transaction, is_null_address, require_address,
)
from .compliance import resolve_oracle


def require_owner(view: LedgerView, caller: str) -> None:
    """
    Raises:
        AuthorizationError: If caller does not hold the admin role
    """
    if caller != view.owner:
        raise AuthorizationError(f"{caller} is not the owner")


def compute_ownership_transfer(
    view: LedgerView,
    caller: str,
    new_owner: str,
) -> PendingTransaction:
    """Hand the admin role to new_owner. Owner-only; new_owner must not be null."""
    require_owner(view, caller)
    require_address("new_owner", new_owner)
    if is_null_address(new_owner):
        raise ValidationError("new owner is the null address")

    previous = view.owner
    return build_transaction(
        view, caller,
        state_changes=[OwnerChange(old=previous, new=new_owner)],
        events=[OwnershipTransferred(previous_owner=previous, new_owner=new_owner)],
    )


def compute_oracle_update(view: LedgerView, caller: str, oracle) -> PendingTransaction:
    """
    Replace the compliance oracle. Owner-only.

    None or the null address installs AlwaysApproveOracle, disabling the gate.
    """
    require_owner(view, caller)
    previous = view.compliance_oracle
    new = resolve_oracle(oracle)
    return build_transaction(
        view, caller,
        state_changes=[OracleChange(old=previous, new=new)],
        events=[ComplianceOracleUpdated(
            previous_oracle=previous.address,
            new_oracle=new.address,
        )],
    )
