"""Minimal fungible token ledger used for base, collateral and reward tokens."""

from typing import Callable, Dict, Optional

from comet_engine.core.errors import InsufficientBalance, NegativeNumber

TransferHook = Callable[["Token", str, str, int], None]


class Token:
    """
    Balance ledger for one token.

    ``transfer_hook`` runs after every balance move, which lets tests model
    tokens that call back into the market mid-transfer.
    """

    def __init__(self, address: str, symbol: str, decimals: int, transfer_hook: Optional[TransferHook] = None):
        self.address = address
        self.symbol = symbol
        self.decimals = decimals
        self.transfer_hook = transfer_hook
        self.balances: Dict[str, int] = {}

    @property
    def scale(self) -> int:
        return 10**self.decimals

    @property
    def total_supply(self) -> int:
        return sum(self.balances.values())

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def mint(self, to: str, amount: int) -> None:
        """Credit ``amount`` to ``to`` out of thin air (test and setup helper)."""
        if amount < 0:
            raise NegativeNumber()
        self.balances[to] = self.balance_of(to) + amount

    def transfer(self, src: str, dst: str, amount: int) -> None:
        if amount < 0:
            raise NegativeNumber()
        balance = self.balance_of(src)
        if balance < amount:
            raise InsufficientBalance(f"{self.symbol}: {src} holds {balance}, needs {amount}")
        self.balances[src] = balance - amount
        self.balances[dst] = self.balance_of(dst) + amount
        if self.transfer_hook is not None:
            self.transfer_hook(self, src, dst, amount)

    def snapshot(self) -> Dict[str, int]:
        return dict(self.balances)

    def restore(self, balances: Dict[str, int]) -> None:
        self.balances = dict(balances)

    def __repr__(self) -> str:
        return f"Token({self.symbol}, decimals={self.decimals})"
