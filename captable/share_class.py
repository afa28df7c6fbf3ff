"""
share_class.py - Share class registry

Share classes are created only by the owner, receive sequential ids from 0,
and are never deleted. Price, remaining shares and the restricted flag can be
overwritten any number of times; the name is fixed at creation.

Updates are authoritative: remaining_shares is set to the given value with no
reconciliation against shares already issued. A class may therefore show more
or fewer remaining shares than "total minus sold".
"""

from __future__ import annotations

from .core import (
    LedgerView, PendingTransaction, ShareClass, ShareClassChange,
    ShareClassCreated, ShareClassUpdated,
    NotFoundError, ValidationError,
    build_transaction, require_uint,
)
from .access import require_owner


def require_share_class(view: LedgerView, share_class_id: int) -> ShareClass:
    """
    Look up a share class, rejecting ids outside [0, share_class_count).

    Raises:
        NotFoundError: If the id was never assigned
    """
    if isinstance(share_class_id, bool) or not isinstance(share_class_id, int):
        raise NotFoundError(f"share class {share_class_id!r} does not exist")
    if not 0 <= share_class_id < view.share_class_count:
        raise NotFoundError(f"share class {share_class_id} does not exist")
    return view.get_share_class(share_class_id)


def compute_create_share_class(
    view: LedgerView,
    caller: str,
    name: str,
    price_per_share: int,
    total_shares: int,
    restricted: bool = False,
) -> PendingTransaction:
    """
    Register a new share class with the next sequential id. Owner-only.

    Zero price and zero shares are accepted; a zero-price class is simply not
    open for investment until its price is updated.
    """
    require_owner(view, caller)
    if not isinstance(name, str):
        raise ValidationError("name must be a string")
    require_uint("price_per_share", price_per_share)
    require_uint("total_shares", total_shares)

    share_class = ShareClass(
        id=view.share_class_count,
        name=name,
        price_per_share=price_per_share,
        remaining_shares=total_shares,
        restricted=restricted,
    )
    return build_transaction(
        view, caller,
        state_changes=[ShareClassChange(share_class.id, old=None, new=share_class)],
        events=[ShareClassCreated(
            id=share_class.id,
            name=name,
            price=price_per_share,
            total_shares=total_shares,
            restricted=share_class.restricted,
        )],
    )


def compute_update_share_class(
    view: LedgerView,
    caller: str,
    share_class_id: int,
    price_per_share: int,
    total_shares: int,
    restricted: bool,
) -> PendingTransaction:
    """
    Overwrite price, remaining shares and restricted flag. Owner-only.

    Current holder balances are not consulted.
    """
    require_owner(view, caller)
    old = require_share_class(view, share_class_id)
    require_uint("price_per_share", price_per_share)
    require_uint("total_shares", total_shares)

    new = ShareClass(
        id=old.id,
        name=old.name,
        price_per_share=price_per_share,
        remaining_shares=total_shares,
        restricted=restricted,
    )
    return build_transaction(
        view, caller,
        state_changes=[ShareClassChange(old.id, old=old, new=new)],
        events=[ShareClassUpdated(
            id=old.id,
            price=price_per_share,
            total_shares=total_shares,
            restricted=new.restricted,
        )],
    )
