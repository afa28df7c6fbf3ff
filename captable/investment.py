"""
investment.py - Share issuance on investment

=== PRICING MODEL ===

An investor pays `payment_amount` of the payment token and receives

    shares_issued = payment_amount // price_per_share

The remainder (payment_amount % price_per_share) is paid to the owner but
buys nothing and is not refunded. Paying less than one share's price is a
valid investment that issues zero shares.

=== ORDER OF CHECKS ===

First failure wins, nothing is mutated:
    1. share class exists                  NotFoundError
    2. class is open (price > 0)           ValidationError
    3. payment_amount > 0                  ValidationError
    4. restricted => caller whitelisted    ComplianceRejectedError
    5. payer balance and allowance cover   ExternalTransferFailure
       payment_amount
    6. shares_issued <= remaining_shares   InsufficientBalanceError

Check 5 only queries the token. The pull itself is attached to the pending
transaction as a Payment and settled by the Ledger after all of the above
have passed, so the pull is the last step that can fail.
"""

from __future__ import annotations
from typing import List, Optional

from .core import (
    LedgerView, PendingTransaction, Move, Payment, ShareClass, ShareClassChange,
    Invested, ISSUANCE_WALLET,
    ValidationError, InsufficientBalanceError,
    build_transaction, require_address,
)
from .compliance import check_compliance
from .share_class import require_share_class
from .payment_token import TokenService, check_funds


def compute_shares_issued(payment_amount: int, price_per_share: int) -> int:
    """
    Whole shares bought by payment_amount at price_per_share. Pure function.

    Raises:
        ValidationError: If price_per_share is zero (class not open)
    """
    if price_per_share <= 0:
        raise ValidationError("share class is not open for investment")
    return payment_amount // price_per_share


def compute_investment(
    view: LedgerView,
    investor: str,
    share_class_id: int,
    payment_amount: int,
    payment_token: Optional[TokenService] = None,
) -> PendingTransaction:
    """
    Build the pending issuance of shares to investor against payment_amount.

    Args:
        view: Read-only ledger access
        investor: Paying address, credited with the shares
        share_class_id: Class to invest in
        payment_amount: Token amount in smallest units
        payment_token: Token whose balance and allowance are checked before
            supply. None skips the check; settlement rejects a missing token.

    Returns:
        PendingTransaction with the issuance move, the remaining_shares
        decrement, the Invested event and a Payment from investor to owner
    """
    require_address("investor", investor)
    share_class = require_share_class(view, share_class_id)

    if not share_class.is_open:
        raise ValidationError(f"share class {share_class_id} is not open for investment")

    if isinstance(payment_amount, bool) or not isinstance(payment_amount, int) or payment_amount <= 0:
        raise ValidationError(f"payment amount must be a positive integer, got {payment_amount!r}")

    if share_class.restricted:
        check_compliance(view, investor)

    if payment_token is not None:
        check_funds(payment_token, investor, payment_amount)

    shares = compute_shares_issued(payment_amount, share_class.price_per_share)
    if shares > share_class.remaining_shares:
        raise InsufficientBalanceError(
            f"share class {share_class_id} has {share_class.remaining_shares} shares remaining, "
            f"investment requires {shares}"
        )

    updated = ShareClass(
        id=share_class.id,
        name=share_class.name,
        price_per_share=share_class.price_per_share,
        remaining_shares=share_class.remaining_shares - shares,
        restricted=share_class.restricted,
    )

    moves: List[Move] = []
    if shares > 0:
        moves.append(Move(
            quantity=shares,
            share_class_id=share_class.id,
            source=ISSUANCE_WALLET,
            dest=investor,
            contract_id=f"invest_{share_class.id}",
        ))

    return build_transaction(
        view, investor,
        moves=moves,
        state_changes=[ShareClassChange(share_class.id, old=share_class, new=updated)],
        events=[Invested(
            investor=investor,
            id=share_class.id,
            amount_paid=payment_amount,
            shares_issued=shares,
        )],
        payment=Payment(payer=investor, payee=view.owner, amount=payment_amount),
    )
