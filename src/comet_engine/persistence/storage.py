"""JSON snapshots of market state."""

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from comet_engine.core.models.clock import Clock
from comet_engine.core.models.events import event_from_dict
from comet_engine.core.models.market import MarketConfig, MarketState
from comet_engine.core.models.price_feed import StaticPriceFeed
from comet_engine.core.models.token import Token
from comet_engine.engine.market import MoneyMarket

logger = logging.getLogger(__name__)


class SnapshotStorage:
    """
    Persistent storage for market snapshots.

    One human-readable JSON file per snapshot:
        storage_dir/
            snapshots/
                {snapshot_id}.json
    """

    def __init__(self, storage_dir: Optional[Path] = None):
        """
        Initialize storage.

        Args:
            storage_dir: Base directory for storage (default: settings.snapshot_dir)
        """
        if storage_dir is None:
            from comet_engine.config import get_settings

            storage_dir = get_settings().snapshot_dir

        self.storage_dir = Path(storage_dir)
        self.snapshots_dir = self.storage_dir / "snapshots"
        self.snapshots_dir.mkdir(parents=True, exist_ok=True)

    def save_snapshot(self, market: MoneyMarket, name: str = "market", snapshot_id: Optional[str] = None) -> str:
        """
        Save the full state of a market.

        Args:
            market: Market to capture
            name: Label stored with the snapshot and used for generated IDs
            snapshot_id: Optional custom ID (default: auto-generated)

        Returns:
            Snapshot ID
        """
        if snapshot_id is None:
            snapshot_id = self._generate_snapshot_id(name)

        data = self.market_to_dict(market)
        data["_id"] = snapshot_id
        data["_name"] = name
        data["_saved_at"] = datetime.now(timezone.utc).isoformat()

        with open(self.snapshots_dir / f"{snapshot_id}.json", "w") as f:
            json.dump(data, f, indent=2)

        logger.info(f"Saved snapshot: {snapshot_id}")
        return snapshot_id

    def load_snapshot(self, snapshot_id: str) -> Optional[Dict[str, Any]]:
        """Raw snapshot data, or None if not found."""
        file_path = self.snapshots_dir / f"{snapshot_id}.json"

        if not file_path.exists():
            logger.warning(f"Snapshot not found: {snapshot_id}")
            return None

        with open(file_path, "r") as f:
            return json.load(f)

    def restore_market(self, snapshot_id: str, clock: Clock) -> Optional[MoneyMarket]:
        """Rebuild a live market from a snapshot, or None if not found."""
        data = self.load_snapshot(snapshot_id)
        if data is None:
            return None
        return self.market_from_dict(data, clock)

    def list_snapshots(self) -> List[Dict[str, Any]]:
        """
        List all saved snapshots.

        Returns:
            Summaries (id, name, saved_at, accounts, events), newest first
        """
        snapshots = []

        for file_path in self.snapshots_dir.glob("*.json"):
            with open(file_path, "r") as f:
                data = json.load(f)

            snapshots.append({
                "id": data.get("_id", file_path.stem),
                "name": data.get("_name"),
                "saved_at": data.get("_saved_at", ""),
                "accounts": len(data.get("state", {}).get("accounts", {})),
                "events": len(data.get("events", [])),
            })

        snapshots.sort(key=lambda x: x.get("saved_at", ""), reverse=True)
        return snapshots

    def delete_snapshot(self, snapshot_id: str) -> bool:
        """
        Delete a snapshot.

        Returns:
            True if deleted, False if not found
        """
        file_path = self.snapshots_dir / f"{snapshot_id}.json"

        if file_path.exists():
            file_path.unlink()
            logger.info(f"Deleted snapshot: {snapshot_id}")
            return True

        return False

    # Serialization

    @staticmethod
    def market_to_dict(market: MoneyMarket) -> Dict[str, Any]:
        return {
            "address": market.address,
            "split_policy": market.split_policy,
            "config": market.config.model_dump(mode="json"),
            "state": market.state.to_dict(),
            "tokens": {
                address: {
                    "symbol": token.symbol,
                    "decimals": token.decimals,
                    "balances": token.snapshot(),
                }
                for address, token in market.tokens.items()
            },
            "feeds": {
                key: {"answer": feed.latest_round_data().answer, "decimals": feed.decimals}
                for key, feed in market.feeds.items()
            },
            "events": market.events.to_list(),
        }

    @staticmethod
    def market_from_dict(data: Dict[str, Any], clock: Clock) -> MoneyMarket:
        """Rebuild a market. Feeds come back as static feeds at their saved answers."""
        tokens = []
        for address, token_data in data["tokens"].items():
            token = Token(address, token_data["symbol"], token_data["decimals"])
            token.restore({k: int(v) for k, v in token_data["balances"].items()})
            tokens.append(token)

        feeds = {
            key: StaticPriceFeed(int(feed["answer"]), int(feed["decimals"]))
            for key, feed in data["feeds"].items()
        }
        market = MoneyMarket(
            MarketConfig.model_validate(data["config"]),
            tokens,
            feeds,
            clock,
            address=data.get("address", "market"),
            split_policy=data.get("split_policy"),
        )
        market.state = MarketState.from_dict(data["state"])
        for event_data in data.get("events", []):
            market.events.emit(event_from_dict(event_data))
        return market

    def _generate_snapshot_id(self, name: str) -> str:
        """Generate a unique snapshot ID from a label."""
        safe_name = re.sub(r"[^a-z0-9]+", "_", name.lower())[:20].strip("_")
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        return f"{safe_name}_{timestamp}"
