"""Per-account ledger records."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict


class PrincipalKind(Enum):
    """Which aggregate an account's principal belongs to."""

    SUPPLY = "supply"
    BORROW = "borrow"


@dataclass(frozen=True)
class Principal:
    """
    Base-asset principal as a tagged value.

    Supply and borrow principal never mix: the tag says which market
    aggregate holds ``amount``. Zero is always tagged as supply.
    """

    kind: PrincipalKind
    amount: int

    @classmethod
    def from_signed(cls, value: int) -> "Principal":
        if value < 0:
            return cls(PrincipalKind.BORROW, -value)
        return cls(PrincipalKind.SUPPLY, value)

    @classmethod
    def zero(cls) -> "Principal":
        return cls(PrincipalKind.SUPPLY, 0)

    @property
    def signed(self) -> int:
        """External signed representation (negative for borrowers)."""
        if self.kind is PrincipalKind.BORROW:
            return -self.amount
        return self.amount

    @property
    def is_borrow(self) -> bool:
        return self.kind is PrincipalKind.BORROW and self.amount > 0


@dataclass
class AccountState:
    """
    Ledger record for one address.

    Created lazily on first interaction and never removed.
    """

    principal: Principal = field(default_factory=Principal.zero)
    base_tracking_index: int = 0
    base_tracking_accrued: int = 0
    assets_in: int = 0  # bit i set while collateral asset i has a non-zero balance
    collateral: Dict[str, int] = field(default_factory=dict)

    @property
    def signed_principal(self) -> int:
        return self.principal.signed

    def collateral_balance(self, asset: str) -> int:
        return self.collateral.get(asset, 0)

    def has_asset(self, index: int) -> bool:
        return bool(self.assets_in & (1 << index))

    def to_dict(self) -> dict:
        """Convert to plain JSON-friendly dict."""
        return {
            "principal": self.principal.signed,
            "base_tracking_index": self.base_tracking_index,
            "base_tracking_accrued": self.base_tracking_accrued,
            "assets_in": self.assets_in,
            "collateral": dict(self.collateral),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AccountState":
        return cls(
            principal=Principal.from_signed(int(data.get("principal", 0))),
            base_tracking_index=int(data.get("base_tracking_index", 0)),
            base_tracking_accrued=int(data.get("base_tracking_accrued", 0)),
            assets_in=int(data.get("assets_in", 0)),
            collateral={k: int(v) for k, v in data.get("collateral", {}).items()},
        )


@dataclass
class LiquidatorPoints:
    """Audit counters for an absorber. Not used by solvency checks."""

    num_absorbs: int = 0
    num_absorbed: int = 0
    approx_spend: int = 0

    def to_dict(self) -> dict:
        return {
            "num_absorbs": self.num_absorbs,
            "num_absorbed": self.num_absorbed,
            "approx_spend": self.approx_spend,
        }
