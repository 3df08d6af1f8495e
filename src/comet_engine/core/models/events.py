"""Event records emitted by market operations."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional, Type


@dataclass(frozen=True)
class Event:
    """Base class for all emitted events."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event"] = self.name
        return data


# Base asset

@dataclass(frozen=True)
class Supply(Event):
    src: str
    dst: str
    amount: int


@dataclass(frozen=True)
class Withdraw(Event):
    src: str
    to: str
    amount: int


@dataclass(frozen=True)
class Transfer(Event):
    """Balance-token style transfer; mints and burns use the zero address."""

    src: str
    dst: str
    amount: int


# Collateral

@dataclass(frozen=True)
class SupplyCollateral(Event):
    src: str
    dst: str
    asset: str
    amount: int


@dataclass(frozen=True)
class WithdrawCollateral(Event):
    src: str
    to: str
    asset: str
    amount: int


@dataclass(frozen=True)
class TransferCollateral(Event):
    src: str
    dst: str
    asset: str
    amount: int


# Liquidation

@dataclass(frozen=True)
class AbsorbDebt(Event):
    absorber: str
    borrower: str
    base_paid_out: int
    usd_value: int


@dataclass(frozen=True)
class AbsorbCollateral(Event):
    absorber: str
    borrower: str
    asset: str
    collateral_absorbed: int
    usd_value: int


@dataclass(frozen=True)
class BuyCollateral(Event):
    buyer: str
    asset: str
    base_amount: int
    collateral_amount: int


@dataclass(frozen=True)
class WithdrawReserves(Event):
    to: str
    amount: int


# Pause matrix

@dataclass(frozen=True)
class PauseAction(Event):
    supply_paused: bool
    transfer_paused: bool
    withdraw_paused: bool
    absorb_paused: bool
    buy_paused: bool


@dataclass(frozen=True)
class FlagPauseAction(Event):
    paused: bool


@dataclass(frozen=True)
class AssetPauseAction(Event):
    asset_index: int
    paused: bool


class LendersWithdrawPauseAction(FlagPauseAction):
    pass


class BorrowersWithdrawPauseAction(FlagPauseAction):
    pass


class CollateralWithdrawPauseAction(FlagPauseAction):
    pass


class CollateralAssetWithdrawPauseAction(AssetPauseAction):
    pass


class CollateralSupplyPauseAction(FlagPauseAction):
    pass


class BaseSupplyPauseAction(FlagPauseAction):
    pass


class CollateralAssetSupplyPauseAction(AssetPauseAction):
    pass


class LendersTransferPauseAction(FlagPauseAction):
    pass


class BorrowersTransferPauseAction(FlagPauseAction):
    pass


class CollateralTransferPauseAction(FlagPauseAction):
    pass


class CollateralAssetTransferPauseAction(AssetPauseAction):
    pass


@dataclass(frozen=True)
class CollateralDeactivated(Event):
    asset_index: int


@dataclass(frozen=True)
class CollateralActivated(Event):
    asset_index: int


# Rewards / governance

@dataclass(frozen=True)
class RewardClaimed(Event):
    src: str
    recipient: str
    token: str
    amount: int


@dataclass(frozen=True)
class MarketUpgraded(Event):
    factory: Optional[str]
    num_assets: int


class EventLog:
    """Append-only, ordered event log for one market."""

    def __init__(self):
        self._events: List[Event] = []

    def emit(self, event: Event) -> None:
        self._events.append(event)

    def of_type(self, event_type: Type[Event]) -> List[Event]:
        return [e for e in self._events if isinstance(e, event_type)]

    def named(self, name: str) -> List[Event]:
        return [e for e in self._events if e.name == name]

    def since(self, position: int) -> List[Event]:
        """Events emitted after ``position`` (a previous ``len(log)``)."""
        return self._events[position:]

    def truncate(self, position: int) -> None:
        del self._events[position:]

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __getitem__(self, i):
        return self._events[i]


def _all_event_types(cls: Type[Event]) -> Dict[str, Type[Event]]:
    found = {}
    for sub in cls.__subclasses__():
        found[sub.__name__] = sub
        found.update(_all_event_types(sub))
    return found


def event_from_dict(data: Dict[str, Any]) -> Event:
    """Rebuild an event from :meth:`Event.to_dict` output."""
    payload = dict(data)
    name = payload.pop("event")
    event_type = _all_event_types(Event).get(name)
    if event_type is None:
        raise ValueError(f"Unknown event type: {name}")
    return event_type(**payload)
