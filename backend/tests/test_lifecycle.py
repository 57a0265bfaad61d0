"""Tests for the alpha lifecycle manager"""
import pytest
from unittest.mock import MagicMock

from engine.history_store import HistoryStore
from engine.legends import LEGENDS
from engine.lifecycle import (
    HOUR,
    DAY,
    LifecycleConfig,
    LifecycleManager,
    cooling_label,
    momentum_score,
)
from engine.models import AlphaState
from fakes import FakeGateway, make_token

T0 = 1_700_000_000


def _manager():
    return LifecycleManager(HistoryStore(), clock=lambda: T0)


def _addresses(views):
    return [v.token.address for v in views]


class TestCoolingLabel:
    def test_labels(self):
        assert cooling_label(1800) == "Cooled <1h ago"
        assert cooling_label(3 * HOUR + 59) == "Cooled 3h ago"
        assert cooling_label(50 * HOUR) == "Cooled 2d ago"


class TestMomentumScore:
    def test_maxed_out(self):
        token = make_token("X", price_change_24h=500, volume_24h=100_000_000, created_at=T0)
        assert momentum_score(token, T0) == 100

    def test_unknown_age_is_neutral(self):
        token = make_token("X", price_change_24h=0, volume_24h=0)
        assert momentum_score(token, T0) == 10.0


class TestIngest:
    def test_peak_is_monotonic(self):
        lm = _manager()
        for i, mcap in enumerate([100_000, 300_000, 50_000]):
            lm.ingest([make_token("X", address="X", market_cap=mcap)], T0 + i)
        record = lm.store.get("X")
        assert record.peak_market_cap == 300_000
        assert record.mcap_at_first_seen == 100_000
        assert record.first_seen == T0
        assert record.last_seen == T0 + 2

    def test_prunes_after_retention(self):
        lm = _manager()
        lm.ingest([make_token("OLD", address="OLD")], T0)
        lm.ingest([make_token("NEW", address="NEW")], T0 + 31 * DAY)
        assert lm.store.get("OLD") is None
        assert len(lm.store) == 1

    def test_persist_failure_does_not_raise(self):
        store = HistoryStore()
        store.persist = MagicMock(side_effect=OSError("disk full"))
        lm = LifecycleManager(store)
        lm.ingest([make_token("X")], T0)
        assert len(store) == 1
        store.persist.assert_called_once()


class TestClassify:
    def test_live_and_cooling_by_price_action(self):
        lm = _manager()
        up = make_token("UP", address="UP", price_change_24h=40)
        down = make_token("DOWN", address="DOWN", price_change_24h=-10)
        flat = make_token("FLAT", address="FLAT", price_change_24h=0)
        lm.ingest([up, down, flat], T0)
        snap = lm.classify(T0)
        assert _addresses(snap.live) == ["UP"]
        assert _addresses(snap.cooling) == ["DOWN"]
        assert snap.cooling[0].label == "-10.0% 24h"
        assert lm.store.get("FLAT").last_state is None

    def test_live_sorted_by_momentum(self):
        lm = _manager()
        lm.ingest([
            make_token("MILD", address="MILD", price_change_24h=5),
            make_token("HOT", address="HOT", price_change_24h=300),
        ], T0)
        assert _addresses(lm.classify(T0).live) == ["HOT", "MILD"]

    def test_dumped_despite_positive_change(self):
        lm = _manager()
        lm.ingest([make_token("RUG", address="RUG", market_cap=800_000, price_change_24h=50)], T0)
        lm.ingest([make_token("RUG", address="RUG", market_cap=7_000, price_change_24h=1164,
                              volume_24h=20_000)], T0 + 60)
        snap = lm.classify(T0 + 60)
        assert _addresses(snap.dumped) == ["RUG"]
        assert snap.live == []
        assert snap.dumped[0].label == "-99% from peak"
        assert lm.store.get("RUG").last_state == AlphaState.DUMPED

    def test_small_peak_never_dumps(self):
        lm = _manager()
        lm.ingest([make_token("TINY", address="TINY", market_cap=40_000)], T0)
        lm.ingest([make_token("TINY", address="TINY", market_cap=1_000)], T0 + 60)
        assert lm.classify(T0 + 60).dumped == []

    def test_recovery_passes_through_cooling(self):
        lm = _manager()
        lm.ingest([make_token("RUG", address="RUG", market_cap=800_000)], T0)
        lm.ingest([make_token("RUG", address="RUG", market_cap=7_000)], T0 + 60)
        lm.classify(T0 + 60)

        lm.ingest([make_token("RUG", address="RUG", market_cap=400_000, price_change_24h=50)], T0 + 120)
        snap = lm.classify(T0 + 120)
        assert _addresses(snap.cooling) == ["RUG"]
        assert snap.cooling[0].label == "Recovering from dump"

        assert _addresses(lm.classify(T0 + 180).live) == ["RUG"]

    def test_stale_token_cools(self):
        lm = _manager()
        lm.ingest([make_token("GONE", address="GONE", price_change_24h=80)], T0)
        lm.ingest([make_token("NEW", address="NEW")], T0 + 3 * HOUR)
        snap = lm.classify(T0 + 3 * HOUR)
        assert _addresses(snap.cooling) == ["GONE"]
        assert snap.cooling[0].label == "Cooled 3h ago"
        assert _addresses(snap.live) == ["NEW"]

    def test_recently_absent_keeps_price_action(self):
        lm = _manager()
        lm.ingest([make_token("AWAY", address="AWAY", price_change_24h=80)], T0)
        lm.ingest([make_token("NEW", address="NEW")], T0 + HOUR)
        assert "AWAY" in _addresses(lm.classify(T0 + HOUR).live)

    def test_positioning(self):
        lm = _manager()
        created = T0 - 24 * HOUR
        lm.ingest([
            make_token("DIP", address="DIP", market_cap=200_000, created_at=created),
            make_token("SHALLOW", address="SHALLOW", market_cap=200_000, created_at=created),
        ], T0)
        lm.ingest([
            make_token("DIP", address="DIP", market_cap=100_000, price_change_24h=-20,
                       volume_24h=10_000, liquidity=5_000, created_at=created),
            make_token("SHALLOW", address="SHALLOW", market_cap=160_000, price_change_24h=-5,
                       volume_24h=10_000, liquidity=5_000, created_at=created),
        ], T0 + 60)
        snap = lm.classify(T0 + 60)
        assert _addresses(snap.positioning) == ["DIP"]
        view = snap.positioning[0]
        assert view.state == AlphaState.POSITIONING
        assert view.drawdown_pct == 50
        assert view.label == "-50% from peak"
        assert "DIP" in _addresses(snap.cooling)

    def test_too_young_for_positioning(self):
        lm = _manager()
        lm.ingest([make_token("NEWDIP", address="NEWDIP", market_cap=200_000)], T0)
        lm.ingest([make_token("NEWDIP", address="NEWDIP", market_cap=100_000, volume_24h=10_000)], T0 + HOUR)
        assert lm.classify(T0 + HOUR).positioning == []

    def test_legends_always_present(self):
        snap = _manager().classify(T0)
        assert [v.token.symbol for v in snap.legends] == [t.symbol for t in LEGENDS]
        assert all(v.state == AlphaState.LEGEND for v in snap.legends)

    def test_snapshot_to_dict(self):
        lm = _manager()
        lm.ingest([make_token("UP", address="UP", price_change_24h=40)], T0)
        data = lm.classify(T0).to_dict()
        assert data["live"][0]["state"] == "LIVE"
        assert data["updated_at"] == T0


class TestRecordParent:
    def test_rising_parent_goes_live(self):
        lm = _manager()
        parent = make_token("PIPPIN", address="PIPPIN", price_change_24h=5)
        lm.record_parent(parent, make_token("DIPPIN"), T0)
        snap = lm.classify(T0)
        assert _addresses(snap.live) == ["PIPPIN"]
        assert snap.live[0].cooling_reason == "Parent of $DIPPIN"

    def test_falling_parent_cools_with_reason(self):
        lm = _manager()
        parent = make_token("PIPPIN", address="PIPPIN", price_change_24h=-8)
        lm.record_parent(parent, make_token("DIPPIN"), T0)
        snap = lm.classify(T0)
        assert snap.cooling[0].label == "Parent of $DIPPIN"


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_ingests_live_feed(self):
        lm = _manager()
        gateway = FakeGateway(feed=[make_token("UP", address="UP", price_change_24h=40)])
        snap = await lm.refresh(gateway)
        assert _addresses(snap.live) == ["UP"]
        assert lm.feed_addresses == {"UP"}


class TestConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("LIFECYCLE_DUMP_RATIO", "0.2")
        monkeypatch.setenv("LIFECYCLE_RETENTION_DAYS", "7")
        monkeypatch.setenv("LIFECYCLE_STALE_AFTER_HOURS", "oops")
        cfg = LifecycleConfig.from_env()
        assert cfg.dump_ratio == 0.2
        assert cfg.retention_seconds == 7 * DAY
        assert cfg.stale_after_seconds == 2 * HOUR

    def test_custom_dump_ratio(self):
        lm = LifecycleManager(HistoryStore(), LifecycleConfig(dump_ratio=0.6))
        lm.ingest([make_token("X", address="X", market_cap=100_000)], T0)
        lm.ingest([make_token("X", address="X", market_cap=50_000)], T0 + 1)
        assert _addresses(lm.classify(T0 + 1).dumped) == ["X"]
