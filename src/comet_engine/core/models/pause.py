"""Circuit-breaker flags."""

from dataclasses import asdict, dataclass, fields


@dataclass
class PauseFlags:
    """
    The closed set of pause flags.

    Global flags gate whole operation families. Extended flags narrow a
    family down to lenders, borrowers or collateral. The ``*_assets`` fields
    are bitsets indexed by collateral asset position.
    """

    # Global
    supply_paused: bool = False
    transfer_paused: bool = False
    withdraw_paused: bool = False
    absorb_paused: bool = False
    buy_paused: bool = False

    # Extended: withdraw
    lenders_withdraw_paused: bool = False
    borrowers_withdraw_paused: bool = False
    collateral_withdraw_paused: bool = False
    collateral_asset_withdraw_paused: int = 0

    # Extended: supply
    collateral_supply_paused: bool = False
    base_supply_paused: bool = False
    collateral_asset_supply_paused: int = 0

    # Extended: transfer
    lenders_transfer_paused: bool = False
    borrowers_transfer_paused: bool = False
    collateral_transfer_paused: bool = False
    collateral_asset_transfer_paused: int = 0

    def asset_flag(self, name: str, index: int) -> bool:
        return bool(getattr(self, name) & (1 << index))

    def set_asset_flag(self, name: str, index: int, paused: bool) -> None:
        bits = getattr(self, name)
        if paused:
            bits |= 1 << index
        else:
            bits &= ~(1 << index)
        setattr(self, name, bits)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "PauseFlags":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})
