"""Tests for autopreset/input_mapper.py: edge dispatch of note and CC events."""

import asyncio

import pytest

from autopreset.devices import DeviceEvent
from autopreset.input_mapper import InputMapper, control_id


class Callbacks:
    def __init__(self):
        self.fired = []

    def get(self, action):
        if action == "missing":
            return None

        async def cb(cid, options):
            self.fired.append((action, cid, options))
        return cb


def _rules(*pairs):
    return [{"device": "apc40", "control": ["note", 10, 0], "action": a, "edge": e} for a, e in pairs]


def _note(value):
    return DeviceEvent("apc40", ("note", 10, 0), value)


def test_control_id():
    assert control_id("apc40", ("note", 53, 0)) == "apc40/note/53/0"
    assert control_id("apc40", "fader") == "apc40/fader"


@pytest.mark.asyncio
async def test_tap_fires_on_quick_release():
    cbs = Callbacks()
    mapper = InputMapper(cbs, _rules(("play", "tap"), ("overwrite", "hold")), hold_seconds=0.2)
    await mapper.handle_event(_note(127))
    assert cbs.fired == []
    await mapper.handle_event(_note(0))
    assert [f[0] for f in cbs.fired] == ["play"]
    assert cbs.fired[0][1] == "apc40/note/10/0"

    await asyncio.sleep(0.3)
    assert [f[0] for f in cbs.fired] == ["play"]


@pytest.mark.asyncio
async def test_hold_fires_once_and_suppresses_tap():
    cbs = Callbacks()
    mapper = InputMapper(cbs, _rules(("play", "tap"), ("overwrite", "hold")), hold_seconds=0.05)
    await mapper.handle_event(_note(127))
    await asyncio.sleep(0.15)
    assert [f[0] for f in cbs.fired] == ["overwrite"]
    await mapper.handle_event(_note(0))
    assert [f[0] for f in cbs.fired] == ["overwrite"]


@pytest.mark.asyncio
async def test_press_and_release_edges():
    cbs = Callbacks()
    mapper = InputMapper(cbs, [
        {"device": "apc40", "control": ["note", 10, 0], "action": "down"},
        {"device": "apc40", "control": ["note", 10, 0], "action": "up", "edge": "release"},
    ])
    await mapper.handle_event(_note(100))
    await mapper.handle_event(_note(0))
    assert [f[0] for f in cbs.fired] == ["down", "up"]


@pytest.mark.asyncio
async def test_rule_id_and_options_are_passed():
    cbs = Callbacks()
    mapper = InputMapper(cbs, [{"device": "apc40", "control": ["note", 10, 0], "action": "learn",
                                "id": "learnA", "options": {"deviceIds": [1]}}])
    await mapper.handle_event(_note(127))
    assert cbs.fired == [("learn", "learnA", {"deviceIds": [1]})]


@pytest.mark.asyncio
async def test_cc_fires_every_change_with_value():
    cbs = Callbacks()
    mapper = InputMapper(cbs, [{"device": "apc40", "control": ["cc", 48], "action": "fader"}])
    await mapper.handle_event(DeviceEvent("apc40", ("cc", 48, 3), 64))
    await mapper.handle_event(DeviceEvent("apc40", ("cc", 48, 0), 0))
    assert [f[2]["value"] for f in cbs.fired] == [64, 0]


@pytest.mark.asyncio
async def test_other_devices_and_channels_do_not_match():
    cbs = Callbacks()
    mapper = InputMapper(cbs, _rules(("play", "press")))
    await mapper.handle_event(DeviceEvent("launchpad", ("note", 10, 0), 127))
    await mapper.handle_event(DeviceEvent("apc40", ("note", 10, 1), 127))
    await mapper.handle_event(DeviceEvent("apc40", ("note", 11, 0), 127))
    assert cbs.fired == []


@pytest.mark.asyncio
async def test_missing_action_and_failing_callback_are_contained():
    fired = []

    class Registry:
        def get(self, action):
            if action == "boom":
                def cb(cid, options):
                    raise RuntimeError("boom")
                return cb
            if action == "ok":
                return lambda cid, options: fired.append(cid)
            return None

    mapper = InputMapper(Registry(), _rules(("missing", "press"), ("boom", "press"), ("ok", "press")))
    await mapper.handle_event(_note(127))
    assert fired == ["apc40/note/10/0"]
