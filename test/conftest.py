"""Shared fixtures: an in-memory backend double and the core objects wired to it."""

import pytest

from autopreset.backend import BackendError
from autopreset.bank_store import BankStore
from autopreset.classification import InstrumentClassifier
from autopreset.learning import LearningCoordinator
from autopreset.persistence import MemoryStore
from autopreset.store import RemoteStateStore


def video_device(device_id, name=None, director="DIRECTOR_HEAD_TRACKING", switcher_input=None, state="RUNNING"):
    feedback = {"INPUT_VIDEO": {"state": "RUNNING"}}
    if director:
        feedback[director] = {"state": state}
    return {"id": device_id, "name": name or f"Cam {device_id}", "switcherInput": switcher_input,
            "components": {}, "feedback": feedback}


def preset(preset_id, *device_ids, instrument=None, name=None):
    return {
        "id": preset_id,
        "name": name or f"Preset {preset_id}",
        "metadata": {"instrument": instrument} if instrument else {},
        "commands": [{"deviceId": d} for d in device_ids],
        "previewBase64": "AAAA",
    }


class FakeBackend:
    """Serves canned payloads and records preset actions."""

    def __init__(self):
        self.devices = []
        self.presets = []
        self.faces = []
        self.live_inputs = []
        self.active = {}
        self.autocut = False
        self.speaker_override = None
        self.fail = set()
        self.calls = []

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise BackendError(f"{name} unavailable")

    def load_devices(self):
        self._check("load_devices")
        return list(self.devices)

    def list_presets(self):
        self._check("list_presets")
        return [{k: v for k, v in p.items() if k != "previewBase64"} if isinstance(p, dict) else p
                for p in self.presets]

    def list_faces(self):
        self._check("list_faces")
        return list(self.faces)

    def get_live_inputs(self):
        self._check("get_live_inputs")
        return list(self.live_inputs)

    def load_active_preset_map(self):
        self._check("load_active_preset_map")
        return dict(self.active)

    def is_autocut_running(self):
        self._check("is_autocut_running")
        return self.autocut

    def load_override_dominant_speaker(self):
        self._check("load_override_dominant_speaker")
        return self.speaker_override

    def play_preset(self, preset_id, force=False):
        self._check("play_preset")
        self.calls.append(("play", preset_id, force))

    def overwrite_preset(self, preset_id):
        self._check("overwrite_preset")
        self.calls.append(("overwrite", preset_id))

    def gui_stream_url(self):
        return "http://127.0.0.1:8500/api/stream/gui"

    def actions(self):
        return [c for c in self.calls if isinstance(c, tuple)]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def banks(kv):
    return BankStore(kv)


@pytest.fixture
def classifier():
    return InstrumentClassifier()


@pytest.fixture
def store(backend):
    return RemoteStateStore(backend)


@pytest.fixture
def coordinator(banks, store, backend, classifier):
    return LearningCoordinator(banks, store, backend, classifier)
