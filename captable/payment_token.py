"""
payment_token.py - Payment token the ledger pulls investment proceeds through

Classes:
- TokenService: Protocol for the external fungible token
- InMemoryToken: Balance/allowance token for simulations and tests

Functions:
- check_funds: Read-only check that a payer can cover an amount

Amounts are ints in the token's smallest unit.
"""

from typing import Dict, List, Protocol, Tuple, runtime_checkable

from .core import ExternalTransferFailure, require_address, require_uint


@runtime_checkable
class TokenService(Protocol):
    """
    Protocol for the external fungible token.

    transfer_from moves amount from payer to payee using an allowance the
    payer granted to the ledger. It returns False (or raises) on failure.
    balance_of and allowance are read-only queries.
    """

    def balance_of(self, holder: str) -> int:
        ...

    def allowance(self, holder: str) -> int:
        ...

    def transfer_from(self, payer: str, payee: str, amount: int) -> bool:
        ...


def check_funds(token: TokenService, payer: str, amount: int) -> None:
    """
    Confirm payer holds and has approved at least amount. Moves nothing.

    Raises:
        ExternalTransferFailure: If the balance or allowance is short, or
            the token raises while being queried
    """
    try:
        balance = token.balance_of(payer)
        allowed = token.allowance(payer)
    except Exception as e:
        raise ExternalTransferFailure(f"token query for {payer} raised: {e}") from e
    if balance < amount:
        raise ExternalTransferFailure(
            f"{payer} holds {balance} of the payment token, payment requires {amount}")
    if allowed < amount:
        raise ExternalTransferFailure(
            f"{payer} approved {allowed} of the payment token, payment requires {amount}")


class InMemoryToken:
    """
    Fungible token with balances and allowances.

    The ledger is modelled as a single spender: approve() grants it the right
    to pull up to the approved amount from the holder.

    Example:
        usdc = InMemoryToken("USDC")
        usdc.mint("alice", 1_000_000_000)
        usdc.approve("alice", 500_000_000)
        usdc.transfer_from("alice", "founder", 500_000_000)   # True
    """

    def __init__(self, symbol: str, decimals: int = 6):
        self.symbol = symbol
        self.decimals = decimals
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[str, int] = {}
        self.transfers: List[Tuple[str, str, int]] = []

    def balance_of(self, holder: str) -> int:
        return self.balances.get(holder, 0)

    def allowance(self, holder: str) -> int:
        return self.allowances.get(holder, 0)

    def total_supply(self) -> int:
        return sum(self.balances.values())

    def mint(self, holder: str, amount: int) -> None:
        require_address("holder", holder)
        require_uint("amount", amount)
        self.balances[holder] = self.balance_of(holder) + amount

    def approve(self, holder: str, amount: int) -> None:
        """Set (not add to) the amount the ledger may pull from holder."""
        require_address("holder", holder)
        self.allowances[holder] = require_uint("amount", amount)

    def transfer_from(self, payer: str, payee: str, amount: int) -> bool:
        """
        Pull amount from payer to payee, consuming allowance.

        Returns False without changing anything if the payer's balance or
        allowance is insufficient.
        """
        if amount < 0:
            return False
        if self.balance_of(payer) < amount or self.allowance(payer) < amount:
            return False
        self.balances[payer] = self.balance_of(payer) - amount
        self.balances[payee] = self.balance_of(payee) + amount
        self.allowances[payer] = self.allowance(payer) - amount
        self.transfers.append((payer, payee, amount))
        return True

    def __repr__(self):
        return f"InMemoryToken({self.symbol}, {len(self.balances)} holders)"
