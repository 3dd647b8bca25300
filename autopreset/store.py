import asyncio
import logging
from typing import Dict, List, Optional

from .models import ActivePreset, Device, Face, Preset, video_device_fingerprint

logger = logging.getLogger(__name__)


class RemoteStateStore:
    """
    Latest known snapshot of the server state.

    - Each load_*() fetches through the backend (in a worker thread) and
      replaces its slot wholesale; nothing is patched field by field.
    - Reloads of the same slot are serialized, so when two overlap the one
      requested last is also the one applied last.
    - A failed fetch raises and leaves the previous snapshot in place.
    """

    def __init__(self, backend):
        self.backend = backend
        self.devices: List[Device] = []
        self.presets: List[Preset] = []
        self.faces: List[Face] = []
        self.live_inputs: List[str] = []
        self.active_preset_map: Dict[str, ActivePreset] = {}
        self.autocut_running: bool = False
        self.dominant_speaker_override: Optional[int] = None
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, slot: str) -> asyncio.Lock:
        lock = self._locks.get(slot)
        if lock is None:
            lock = self._locks[slot] = asyncio.Lock()
        return lock

    async def _fetch(self, slot: str, fn):
        async with self._lock(slot):
            return await asyncio.to_thread(fn)

    # -------------------- loads --------------------

    async def load_devices(self) -> bool:
        """Reload devices; True when the video device fingerprint changed."""
        async with self._lock("devices"):
            raw = await asyncio.to_thread(self.backend.load_devices)
            devices = [d for d in (Device.from_api(r) for r in raw or []) if d is not None]
            new_sig = video_device_fingerprint(devices)
            old_sig = video_device_fingerprint(self.devices)
            logger.debug("[store] video devices new=%s old=%s", new_sig, old_sig)
            self.devices = devices
        return new_sig != old_sig

    async def load_presets(self) -> None:
        raw = await self._fetch("presets", self.backend.list_presets)
        self.presets = [p for p in (Preset.from_api(r) for r in raw or []) if p is not None]
        logger.debug("[store] %d presets", len(self.presets))

    async def load_faces(self) -> None:
        raw = await self._fetch("faces", self.backend.list_faces)
        self.faces = [f for f in (Face.from_api(r) for r in raw or []) if f is not None]

    async def load_live_inputs(self) -> None:
        self.live_inputs = list(await self._fetch("live_inputs", self.backend.get_live_inputs))

    async def load_active_preset_map(self) -> None:
        raw = await self._fetch("active_presets", self.backend.load_active_preset_map)
        self.active_preset_map = {str(k): ActivePreset.from_api(v) for k, v in (raw or {}).items()}

    async def load_autocut_running(self) -> None:
        self.autocut_running = bool(await self._fetch("autocut", self.backend.is_autocut_running))

    async def load_override_dominant_speaker(self) -> None:
        value = await self._fetch("speaker_override", self.backend.load_override_dominant_speaker)
        self.dominant_speaker_override = int(value) if value is not None else None

    # -------------------- queries --------------------

    def get_device_by_id(self, device_id: int) -> Optional[Device]:
        for d in self.devices:
            if d.id == device_id:
                return d
        return None

    def get_face_by_id(self, face_id: Optional[int]) -> Optional[Face]:
        for f in self.faces:
            if f.id == face_id:
                return f
        return None

    def get_video_devices(self) -> List[Device]:
        return [d for d in self.devices if d.input_type == "VIDEO"]

    def get_audio_devices(self) -> List[Device]:
        return [d for d in self.devices if d.input_type == "AUDIO"]

    def is_preset_active(self, preset_id: int) -> bool:
        return any(a.id == preset_id for a in self.active_preset_map.values())

    def is_input_live(self, switcher_input: Optional[str]) -> bool:
        return switcher_input is not None and switcher_input in self.live_inputs
