"""
transfer.py - Share transfers between holders

A transfer debits the sender and credits the recipient by the same amount,
so the two parties' combined balance is unchanged. Restricted classes require
both parties to pass the compliance oracle, checked independently.
"""

from __future__ import annotations

from .core import (
    LedgerView, PendingTransaction, Move, TransferShares,
    ValidationError, InsufficientBalanceError,
    build_transaction, is_null_address, require_address,
)
from .compliance import check_compliance
from .share_class import require_share_class


def compute_share_transfer(
    view: LedgerView,
    sender: str,
    to: str,
    share_class_id: int,
    amount: int,
) -> PendingTransaction:
    """
    Build the pending transfer of amount shares from sender to `to`.

    Checks, in order: class exists, recipient is not null, amount is positive,
    sender holds enough shares, and for restricted classes that sender and
    recipient are both whitelisted.

    A transfer to oneself passes the same checks and leaves balances unchanged.
    """
    require_address("sender", sender)
    share_class = require_share_class(view, share_class_id)

    if is_null_address(to):
        raise ValidationError("cannot transfer to the null address")
    require_address("recipient", to)

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError(f"transfer amount must be a positive integer, got {amount!r}")

    balance = view.balance_of(sender, share_class.id)
    if balance < amount:
        raise InsufficientBalanceError(
            f"{sender} holds {balance} shares of class {share_class.id}, needs {amount}"
        )

    if share_class.restricted:
        check_compliance(view, sender)
        check_compliance(view, to)

    moves = []
    if sender != to:
        moves.append(Move(
            quantity=amount,
            share_class_id=share_class.id,
            source=sender,
            dest=to,
            contract_id=f"transfer_{share_class.id}",
        ))

    return build_transaction(
        view, sender,
        moves=moves,
        events=[TransferShares(sender=sender, to=to, id=share_class.id, amount=amount)],
    )
