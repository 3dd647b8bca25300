"""Tests for autopreset/learning.py: the learn / slot press state machine."""

import pytest
from conftest import preset

from autopreset.callbacks import CallbackRegistry
from autopreset.learning import DISABLED, SlotOutcome, normalize_groups, parse_device_ids, parse_flag
from autopreset.models import AutoButton, Preset


def _load_presets(store, *raws):
    store.presets = [Preset.from_api(r) for r in raws]


# ---------------------------------------------------------------------------
# Option parsing
# ---------------------------------------------------------------------------

def test_parse_device_ids_forms():
    assert parse_device_ids([1, 2]) == [1, 2]
    assert parse_device_ids(["3", " 4 "]) == [3, 4]
    assert parse_device_ids("5, 6,") == [5, 6]
    assert parse_device_ids("x, 7") == [7]
    assert parse_device_ids(None) == []
    assert parse_device_ids(8) == [8]


def test_all_selector_collapses_to_wildcard():
    assert normalize_groups(["All"]) == []
    assert normalize_groups(["Keys", "All"]) == []
    assert normalize_groups(None) == []
    assert normalize_groups(["Keys"]) == ["Keys"]


# ---------------------------------------------------------------------------
# Learn button
# ---------------------------------------------------------------------------

def test_learn_press_starts_and_stops(coordinator, banks):
    assert coordinator.mode == DISABLED
    assert coordinator.press_learn("learnA", [1, 2], ["All"], True) == "learnA"
    assert coordinator.is_learning("learnA")
    bank = banks.get_bank("learnA")
    assert bank.buttons == [] and bank.devices == [1, 2] and bank.instrument_groups == []
    assert bank.display_device_name is True

    assert coordinator.press_learn("learnA", [1, 2]) == DISABLED
    assert not coordinator.is_learning()


def test_learn_press_without_devices_is_ignored(coordinator, banks):
    assert coordinator.press_learn("learnA", [], ["All"]) == DISABLED
    assert coordinator.press_learn("learnA", "") == DISABLED
    assert banks.get_bank("learnA") is None


def test_restart_learning_clears_previous_buttons(coordinator, banks):
    coordinator.press_learn("learnA", [1])
    banks.register_button("learnA", AutoButton("1/1"))
    coordinator.press_learn("learnA", [1])
    coordinator.press_learn("learnA", [2], ["Keys"])
    bank = banks.get_bank("learnA")
    assert bank.buttons == []
    assert bank.devices == [2]
    assert bank.instrument_groups == ["Keys"]


def test_other_bank_rejected_while_learning(coordinator, banks):
    coordinator.press_learn("learnA", [1])
    banks.register_button("learnA", AutoButton("1/1"))

    assert coordinator.press_learn("learnB", [2]) == "learnA"
    assert coordinator.learning_bank == "learnA"
    assert banks.get_bank("learnB") is None
    assert [b.id for b in banks.buttons_of("learnA")] == ["1/1"]


def test_clear_all_resets_mode_and_banks(coordinator, banks):
    coordinator.press_learn("learnA", [1])
    banks.register_button("learnA", AutoButton("1/1"))
    coordinator.clear_all()
    assert coordinator.mode == DISABLED
    assert banks.load() == {}

    coordinator.clear_all()
    assert coordinator.mode == DISABLED


def test_change_notifications(banks, store, backend, classifier):
    from autopreset.learning import LearningCoordinator

    seen = []
    coord = LearningCoordinator(banks, store, backend, classifier, on_change=lambda *n: seen.append(n))
    coord.press_learn("learnA", [1])
    coord.press_learn("learnA", [1])
    coord.clear_all()
    assert seen == [("learn_mode", "auto_preset")] * 3


# ---------------------------------------------------------------------------
# Slot buttons
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_scenario_learn_then_play(coordinator, banks, store, backend):
    coordinator.press_learn("learnA", [1, 2], [])
    assert coordinator.mode == "learnA"
    assert banks.get_bank("learnA").buttons == []

    assert await coordinator.press_slot("1/1") == SlotOutcome.LEARNED
    assert [b.id for b in banks.buttons_of("learnA")] == ["1/1"]

    coordinator.press_learn("learnA", [1, 2], [])
    assert coordinator.mode == DISABLED

    _load_presets(store, preset(10, 1), preset(11, 2))
    assert await coordinator.press_slot("1/1") == SlotOutcome.PLAYED
    assert backend.actions() == [("play", 10, False)]


@pytest.mark.asyncio
async def test_repress_of_learned_button_is_noop(coordinator, banks, kv):
    coordinator.press_learn("learnA", [1])
    await coordinator.press_slot("1/1")
    await coordinator.press_slot("1/2")
    snapshot = kv.get("autoConfiguredMap")

    assert await coordinator.press_slot("1/1") == SlotOutcome.ALREADY_LEARNED
    assert kv.get("autoConfiguredMap") == snapshot


@pytest.mark.asyncio
async def test_learning_steals_button_from_other_bank(coordinator, banks):
    coordinator.press_learn("learnA", [1])
    await coordinator.press_slot("1/1")
    coordinator.press_learn("learnA", [1])

    coordinator.press_learn("learnB", [2])
    assert await coordinator.press_slot("1/1") == SlotOutcome.LEARNED
    assert banks.locate(AutoButton("1/1")) == (0, "learnB")
    assert banks.buttons_of("learnA") == []


@pytest.mark.asyncio
async def test_unbound_button_reports_unassigned(coordinator, backend):
    assert await coordinator.press_slot("7/7") == SlotOutcome.UNASSIGNED
    assert backend.actions() == []


@pytest.mark.asyncio
async def test_index_beyond_matching_presets_is_unassigned(coordinator, store, backend):
    coordinator.press_learn("learnA", [1])
    await coordinator.press_slot("1/1")
    await coordinator.press_slot("1/2")
    coordinator.press_learn("learnA", [1])

    _load_presets(store, preset(10, 1), preset(20, 9))
    assert await coordinator.press_slot("1/2") == SlotOutcome.UNASSIGNED
    assert backend.actions() == []


@pytest.mark.asyncio
async def test_hold_overwrites_bound_preset(coordinator, store, backend):
    coordinator.press_learn("learnA", [1])
    await coordinator.press_slot("1/1")
    coordinator.press_learn("learnA", [1])
    _load_presets(store, preset(10, 1))

    assert await coordinator.press_slot("1/1", hold=True) == SlotOutcome.OVERWRITTEN
    assert backend.actions() == [("overwrite", 10)]


@pytest.mark.asyncio
async def test_hold_while_learning_does_nothing(coordinator, banks, backend):
    coordinator.press_learn("learnA", [1])
    assert await coordinator.press_slot("1/1", hold=True) == SlotOutcome.IGNORED
    assert banks.buttons_of("learnA") == []
    assert backend.actions() == []


@pytest.mark.asyncio
async def test_backend_failure_is_reported_not_raised(coordinator, store, backend):
    coordinator.press_learn("learnA", [1])
    await coordinator.press_slot("1/1")
    coordinator.press_learn("learnA", [1])
    _load_presets(store, preset(10, 1))
    backend.fail.add("play_preset")

    assert await coordinator.press_slot("1/1") == SlotOutcome.FAILED


def test_parse_flag_reads_text_values():
    assert parse_flag("false") is False
    assert parse_flag(" False ") is False
    assert parse_flag("") is False
    assert parse_flag("true") is True
    assert parse_flag("1") is True
    assert parse_flag(True) is True
    assert parse_flag(None) is False


def test_learn_callback_keeps_text_false_display_flag(coordinator, banks, backend):
    registry = CallbackRegistry(coordinator, backend)
    registry.get("learn_auto_buttons")("learnA", {"deviceIds": "1, 2", "displayName": "false"})
    bank = banks.get_bank("learnA")
    assert bank.devices == [1, 2]
    assert bank.display_device_name is False


@pytest.mark.asyncio
async def test_play_preset_callback_reads_text_force_flag(coordinator, backend):
    registry = CallbackRegistry(coordinator, backend)
    await registry.get("play_preset")("btn", {"preset": "7", "force": "false"})
    await registry.get("play_preset")("btn", {"preset": 8, "force": "true"})
    assert backend.actions() == [("play", 7, False), ("play", 8, True)]
