"""
summary.py - Read-only cap-table reports

Ownership is reported per share class as a fraction of the shares currently
held in that class. remaining_shares is shown alongside but never enters the
fraction, since the owner may set it independently of what has been issued.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from typing import List

from .core import LedgerView
from .share_class import require_share_class


# Ownership fractions are quantized to this many decimal places.
OWNERSHIP_DECIMAL_PLACES = 6


@dataclass(frozen=True, slots=True)
class Holding:
    """One holder's position in a share class."""
    address: str
    shares: int
    ownership: Decimal  # fraction of held shares, 0..1

    @property
    def percentage(self) -> Decimal:
        return self.ownership * 100


def compute_ownership(shares: int, total: int) -> Decimal:
    """Fraction shares/total rounded half-even; zero when nothing is held. Pure function."""
    if total <= 0:
        return Decimal("0")
    quantizer = Decimal(10) ** -OWNERSHIP_DECIMAL_PLACES
    return (Decimal(shares) / Decimal(total)).quantize(quantizer, rounding=ROUND_HALF_EVEN)


def cap_table(view: LedgerView, share_class_id: int) -> List[Holding]:
    """
    Holders of a share class, largest first (ties by address).

    Raises:
        NotFoundError: If the class does not exist
    """
    require_share_class(view, share_class_id)
    positions = view.get_positions(share_class_id)
    total = sum(positions.values())
    ordered = sorted(positions.items(), key=lambda kv: (-kv[1], kv[0]))
    return [
        Holding(address=address, shares=shares, ownership=compute_ownership(shares, total))
        for address, shares in ordered
    ]


def format_cap_table(view: LedgerView) -> str:
    """Printable table of every share class and its holders."""
    lines = []
    for cid in range(view.share_class_count):
        sc = view.get_share_class(cid)
        holdings = cap_table(view, cid)
        held = sum(h.shares for h in holdings)
        flag = " [restricted]" if sc.restricted else ""
        lines.append(f"#{sc.id} {sc.name}{flag}: price {sc.price_per_share}, "
                     f"held {held}, remaining {sc.remaining_shares}")
        for h in holdings:
            lines.append(f"    {h.address:<44} {h.shares:>14} {h.percentage:>10.4f}%")
    return "\n".join(lines)
