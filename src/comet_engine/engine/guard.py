"""Re-entrancy lock and all-or-nothing execution for market operations."""

import copy
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

from comet_engine.core.errors import ReentrantCallBlocked

if TYPE_CHECKING:
    from comet_engine.engine.market import MoneyMarket

logger = logging.getLogger(__name__)


class OperationGuard:
    """
    Scoped lock spanning one top-level market operation.

    Entering while the lock is held raises :class:`ReentrantCallBlocked`.
    On entry the market state, config, token balances and event log length
    are captured; if any exception leaves the block they are restored,
    so a failed operation leaves no trace. The lock is released on every
    exit path.
    """

    def __init__(self, market: "MoneyMarket"):
        self.market = market
        self._active = None

    @property
    def locked(self) -> bool:
        return self._active is not None

    @contextmanager
    def operation(self, name: str) -> Iterator[None]:
        if self._active is not None:
            logger.warning(f"Blocked re-entrant {name} during {self._active}")
            raise ReentrantCallBlocked(f"{name} called during {self._active}")

        market = self.market
        self._active = name
        state = copy.deepcopy(market.state)
        config = market.config
        balances = {address: token.snapshot() for address, token in market.tokens.items()}
        event_count = len(market.events)
        try:
            yield
        except Exception:
            market.state = state
            market.set_config(config)
            for address, token in market.tokens.items():
                token.restore(balances.get(address, {}))
            market.events.truncate(event_count)
            raise
        finally:
            self._active = None
