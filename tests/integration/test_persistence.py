"""Snapshot storage round trips."""

import json

import pytest

from comet_engine.core.models import ManualClock
from comet_engine.demo import build_demo_market
from comet_engine.persistence import SnapshotStorage

USDC = 10**6
WETH = 10**18


@pytest.fixture
def storage(tmp_path) -> SnapshotStorage:
    return SnapshotStorage(tmp_path)


@pytest.fixture
def populated(settings):
    market = build_demo_market(settings, ManualClock())
    market.tokens["USDC"].mint("lender", 100_000 * USDC)
    market.supply("lender", "USDC", 100_000 * USDC)
    market.tokens["WETH"].mint("bob", WETH)
    market.supply("bob", "WETH", WETH)
    market.withdraw("bob", "USDC", 1_000 * USDC)
    market.gate.pause_lenders_transfer("governor", True)
    market.allow("bob", "manager", True)
    return market


class TestSnapshotStorage:
    """Tests for saving, listing and restoring markets."""

    def test_round_trip(self, storage, populated):
        snapshot_id = storage.save_snapshot(populated, name="Demo Market")

        restored = storage.restore_market(snapshot_id, ManualClock())

        assert restored.state.to_dict() == populated.state.to_dict()
        assert restored.config == populated.config
        assert restored.events.to_list() == populated.events.to_list()
        assert restored.tokens["USDC"].snapshot() == populated.tokens["USDC"].snapshot()
        assert restored.get_price("WETH") == populated.get_price("WETH")
        assert restored.borrow_balance_of("bob") == 1_000 * USDC
        assert restored.has_permission("bob", "manager")

    def test_restored_market_is_live(self, storage, populated):
        snapshot_id = storage.save_snapshot(populated)
        restored = storage.restore_market(snapshot_id, ManualClock())

        restored.withdraw("bob", "USDC", 100 * USDC)

        assert restored.borrow_balance_of("bob") == 1_100 * USDC
        assert populated.borrow_balance_of("bob") == 1_000 * USDC

    def test_file_is_json(self, storage, populated, tmp_path):
        snapshot_id = storage.save_snapshot(populated, snapshot_id="fixed")

        with open(tmp_path / "snapshots" / "fixed.json") as f:
            data = json.load(f)
        assert snapshot_id == "fixed"
        assert data["_id"] == "fixed"
        assert data["state"]["accounts"]["bob"]["principal"] == -1_000 * USDC

    def test_list_and_delete(self, storage, populated):
        first = storage.save_snapshot(populated, name="first")
        storage.save_snapshot(populated, name="second")

        listed = storage.list_snapshots()
        assert len(listed) == 2
        assert {s["name"] for s in listed} == {"first", "second"}
        assert listed[0]["accounts"] == len(populated.state.accounts)

        assert storage.delete_snapshot(first) is True
        assert storage.delete_snapshot(first) is False
        assert len(storage.list_snapshots()) == 1

    def test_missing(self, storage):
        assert storage.load_snapshot("missing") is None
        assert storage.restore_market("missing", ManualClock()) is None

    def test_generated_ids(self, storage):
        snapshot_id = storage._generate_snapshot_id("USDC Market #1")
        assert snapshot_id.startswith("usdc_market_1_")
