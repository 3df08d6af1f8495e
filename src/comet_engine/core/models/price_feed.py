"""Price feed collaborators.

The engine treats a feed's latest answer as ground truth; staleness checks
belong to the feed itself.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from comet_engine.core.constants import PRICE_FEED_DECIMALS
from comet_engine.core.errors import BadPrice


@dataclass(frozen=True)
class RoundData:
    """Answer of a single oracle round."""

    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


class PriceFeed(ABC):
    """Abstract USD price feed."""

    decimals: int = PRICE_FEED_DECIMALS

    @abstractmethod
    def latest_round_data(self) -> RoundData:
        """Return the most recent round."""
        pass

    def latest_price(self) -> int:
        """Latest answer, rejecting non-positive prices."""
        answer = self.latest_round_data().answer
        if answer <= 0:
            raise BadPrice(f"Feed answered {answer}")
        return answer


class StaticPriceFeed(PriceFeed):
    """In-memory feed whose answer is set explicitly."""

    def __init__(self, answer: int, decimals: int = PRICE_FEED_DECIMALS):
        self.decimals = decimals
        self._answer = answer
        self._round_id = 1
        self._updated_at = 0

    @classmethod
    def from_usd(cls, usd: Union[str, int, Decimal], decimals: int = PRICE_FEED_DECIMALS) -> "StaticPriceFeed":
        """Create a feed from a human-readable USD price."""
        return cls(int(Decimal(str(usd)) * 10**decimals), decimals)

    def set_price(self, answer: int, updated_at: int = 0) -> None:
        self._answer = answer
        self._round_id += 1
        self._updated_at = updated_at

    def set_usd(self, usd: Union[str, int, Decimal], updated_at: int = 0) -> None:
        self.set_price(int(Decimal(str(usd)) * 10**self.decimals), updated_at)

    def latest_round_data(self) -> RoundData:
        return RoundData(
            round_id=self._round_id,
            answer=self._answer,
            started_at=self._updated_at,
            updated_at=self._updated_at,
            answered_in_round=self._round_id,
        )
