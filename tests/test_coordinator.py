"""Tests for the coordinator and the timer/listener wiring, with HA mocked."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from conftest import FakeStore, ms, stub_homeassistant

stub_homeassistant()

from homeassistant.core import Context

import smart_ev_charging as integration
from smart_ev_charging import coordinator as coordinator_module
from smart_ev_charging import storage
from smart_ev_charging.charger import SwitchCharger
from smart_ev_charging.const import (
    CONF_BATTERY_SENSOR,
    CONF_CHARGER_SWITCH,
    CONF_ENABLE_LOW_PRICE_CHARGING,
    CONF_LOW_PRICE_BLOCKS_COUNT,
)
from smart_ev_charging.coordinator import SmartEVChargingCoordinator
from smart_ev_charging.engine.charging_control import ChargingController
from smart_ev_charging.engine.const import BLOCK_DURATION_MS, MILLISECONDS_PER_DAY
from smart_ev_charging.engine.models import PriceEntry
from smart_ev_charging.engine.sources import PriceSourceFetchError
from smart_ev_charging.engine.time_utils import from_ms
from smart_ev_charging.storage import SmartEVChargingStore

MIDNIGHT = ms(2026, 3, 10)
NOW_DT = datetime(2026, 3, 10, 0, 7, tzinfo=timezone.utc)
NOW = ms(2026, 3, 10, 0, 7)


def _entries(start: int, prices: list) -> list[PriceEntry]:
    return [
        PriceEntry(date=from_ms(start + i * BLOCK_DURATION_MS).isoformat(), price=price)
        for i, price in enumerate(prices)
    ]


class FakePriceSource:
    name = "fake"

    def __init__(self, entries=None, error=None):
        self.entries = entries or []
        self.error = error

    async def fetch(self):
        if self.error:
            raise self.error
        return self.entries


def _make_entry(options=None):
    entry = MagicMock()
    entry.entry_id = "entry1"
    entry.title = "EV"
    entry.data = {
        CONF_CHARGER_SWITCH: "switch.ev_charger",
        CONF_BATTERY_SENSOR: "sensor.ev_battery",
    }
    entry.options = options or {}
    return entry


def _make_hass(battery_state="80"):
    hass = MagicMock()
    hass.states.get.return_value = MagicMock(state=battery_state)
    return hass


@pytest.fixture
def fixed_now(monkeypatch):
    dt_util = MagicMock()
    dt_util.utcnow.return_value = NOW_DT
    monkeypatch.setattr(coordinator_module, "dt_util", dt_util)
    monkeypatch.setattr(integration, "dt_util", dt_util)
    return dt_util


@pytest_asyncio.fixture
async def store(monkeypatch):
    monkeypatch.setattr(storage, "Store", FakeStore)
    store = SmartEVChargingStore(object(), "entry1")
    await store.async_load()
    return store


def _make_coordinator(store, source, hass=None, options=None, controller=None):
    charger = MagicMock()
    charger.async_turn_on = AsyncMock()
    charger.async_turn_off = AsyncMock()
    controller = controller or ChargingController(charger, store.async_set_charging_state)
    coordinator = SmartEVChargingCoordinator(
        hass or _make_hass(), _make_entry(options), store, controller, source
    )
    return coordinator, charger


class TestUpdatePrices:
    @pytest.mark.asyncio
    async def test_merges_and_saves(self, store, fixed_now):
        source = FakePriceSource(_entries(MIDNIGHT, [0.1, 0.2, 0.3, 0.4]))
        coordinator, _ = _make_coordinator(store, source)

        assert await coordinator.async_update_prices()
        assert len(store.price_cache) == 4
        assert len(store._store.saves) == 1
        assert coordinator.last_price_error is None
        assert coordinator.last_price_update == NOW

    @pytest.mark.asyncio
    async def test_failed_fetch_leaves_cache_untouched(self, store, fixed_now):
        source = FakePriceSource(_entries(MIDNIGHT, [0.1, 0.2]))
        coordinator, _ = _make_coordinator(store, source)
        await coordinator.async_update_prices()
        snapshot = dict(store.price_cache)

        source.error = PriceSourceFetchError("SMARD API timed out after 30s")
        assert not await coordinator.async_update_prices()

        assert store.price_cache == snapshot
        assert len(store._store.saves) == 1
        assert "timed out" in coordinator.last_price_error

    @pytest.mark.asyncio
    async def test_malformed_payload_is_discarded(self, store, fixed_now):
        entries = _entries(MIDNIGHT, [0.1]) + [PriceEntry(date="garbage", price=0.2)]
        coordinator, _ = _make_coordinator(store, FakePriceSource(entries))

        assert not await coordinator.async_update_prices()
        assert store.price_cache == {}
        assert store._store.saves == []
        assert coordinator.last_price_error


class TestPrune:
    @pytest.mark.asyncio
    async def test_drops_expired_blocks(self, store, fixed_now):
        old = _entries(MIDNIGHT - 8 * MILLISECONDS_PER_DAY, [0.1, 0.2])
        source = FakePriceSource(old + _entries(MIDNIGHT, [0.3]))
        coordinator, _ = _make_coordinator(store, source)
        await coordinator.async_update_prices()

        assert await coordinator.async_prune_cache() == 2
        assert list(store.price_cache) == [MIDNIGHT]
        assert len(store._store.saves) == 2

    @pytest.mark.asyncio
    async def test_nothing_to_prune_skips_save(self, store, fixed_now):
        coordinator, _ = _make_coordinator(store, FakePriceSource(_entries(MIDNIGHT, [0.3])))
        await coordinator.async_update_prices()

        assert await coordinator.async_prune_cache() == 0
        assert len(store._store.saves) == 1


class TestControlCycle:
    @pytest.mark.asyncio
    async def test_turns_on_in_cheapest_block(self, store, fixed_now):
        source = FakePriceSource(_entries(MIDNIGHT, [0.1, 0.3, 0.4]))
        coordinator, charger = _make_coordinator(
            store,
            source,
            options={CONF_ENABLE_LOW_PRICE_CHARGING: True, CONF_LOW_PRICE_BLOCKS_COUNT: 1},
        )
        await coordinator.async_update_prices()

        data = await coordinator._async_update_data()

        charger.async_turn_on.assert_awaited_once()
        assert data["decision"] == "turnOn"
        assert data["in_cheapest_block"]
        assert data["current_price"] == 0.1
        assert data["battery_level"] == 80.0
        assert len(data["cheapest_window"]) == 1
        assert data["low_price_enabled"]
        assert store.control_state.low_price_enabled

    @pytest.mark.asyncio
    async def test_empty_cache_no_change(self, store, fixed_now):
        coordinator, charger = _make_coordinator(store, FakePriceSource())
        data = await coordinator._async_update_data()

        assert data["decision"] == "noChange"
        assert data["next_charging_times"] == "Unknown"
        assert data["current_price"] is None
        charger.async_turn_on.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_controller_error_raises_update_failed(self, store, fixed_now):
        controller = MagicMock()
        controller.async_evaluate = AsyncMock(side_effect=RuntimeError("boom"))
        coordinator, _ = _make_coordinator(store, FakePriceSource(), controller=controller)

        with pytest.raises(coordinator_module.UpdateFailed):
            await coordinator._async_update_data()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("state", "expected"),
        [("42.5", 42.5), ("unavailable", None), ("unknown", None), ("n/a", None)],
    )
    async def test_battery_level(self, store, state, expected):
        coordinator, _ = _make_coordinator(store, FakePriceSource(), hass=_make_hass(state))
        assert coordinator.battery_level == expected


def _state(value, context=None):
    return MagicMock(state=value, context=context)


class TestEventListeners:
    @pytest.fixture
    def wiring(self, monkeypatch, fixed_now):
        call_later = MagicMock(return_value=MagicMock())
        track_state = MagicMock(return_value=MagicMock())
        monkeypatch.setattr(integration, "async_call_later", call_later)
        monkeypatch.setattr(integration, "async_track_time_change", MagicMock())
        monkeypatch.setattr(integration, "async_track_state_change_event", track_state)

        tasks = []
        hass = MagicMock()
        hass.async_create_task.side_effect = tasks.append
        hass.services.async_call = AsyncMock()

        entry = _make_entry()
        coordinator = MagicMock()
        coordinator.async_update_prices = AsyncMock(return_value=False)
        coordinator.async_request_refresh = AsyncMock()
        coordinator.controller.async_on_manual_action = AsyncMock()
        charger = SwitchCharger(hass, "switch.ev_charger")

        integration._register_event_listeners(hass, entry, coordinator, charger)
        yield {
            "hass": hass,
            "entry": entry,
            "coordinator": coordinator,
            "charger": charger,
            "tasks": tasks,
            "call_later": call_later,
            "state_listener": track_state.call_args.args[2],
        }
        for task in tasks:
            task.close()

    @pytest.mark.asyncio
    async def test_failed_price_update_still_runs_control(self, wiring):
        await wiring["tasks"][0]

        wiring["coordinator"].async_update_prices.assert_awaited_once()
        wiring["coordinator"].async_request_refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_price_error_still_runs_control(self, wiring):
        wiring["coordinator"].async_update_prices.side_effect = RuntimeError("boom")
        await wiring["tasks"][0]
        wiring["coordinator"].async_request_refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_price_timer_aligned_and_rearmed(self, wiring):
        call_later = wiring["call_later"]
        delay = call_later.call_args.args[1]
        assert delay.total_seconds() == 8 * 60  # 00:07 -> 00:15

        on_tick = call_later.call_args.args[2]
        await on_tick(None)
        assert call_later.call_count == 2

    @pytest.mark.asyncio
    async def test_unload_stops_rearming(self, wiring):
        call_later = wiring["call_later"]
        on_tick = call_later.call_args.args[2]
        for call in wiring["entry"].async_on_unload.call_args_list:
            call.args[0]()

        call_later.return_value.assert_called_once()
        await on_tick(None)
        assert call_later.call_count == 1

    @pytest.mark.asyncio
    async def test_foreign_toggle_is_manual_action(self, wiring):
        event = MagicMock(
            data={"new_state": _state("off", Context()), "old_state": _state("on")}
        )
        await wiring["state_listener"](event)

        wiring["coordinator"].controller.async_on_manual_action.assert_awaited_once_with(
            False, NOW
        )
        wiring["coordinator"].async_request_refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_own_service_call_is_ignored(self, wiring):
        await wiring["charger"].async_turn_on()
        own = wiring["hass"].services.async_call.call_args.kwargs["context"]

        for context in (own, Context(parent_id=own.id)):
            event = MagicMock(
                data={"new_state": _state("on", context), "old_state": _state("off")}
            )
            await wiring["state_listener"](event)

        wiring["coordinator"].controller.async_on_manual_action.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("old", "new"), [("unavailable", "on"), ("off", "unknown"), ("on", "on")]
    )
    async def test_non_transitions_ignored(self, wiring, old, new):
        event = MagicMock(data={"new_state": _state(new, Context()), "old_state": _state(old)})
        await wiring["state_listener"](event)
        wiring["coordinator"].controller.async_on_manual_action.assert_not_awaited()
