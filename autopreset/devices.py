# autopreset/devices.py

import asyncio
import logging
from typing import Any, Dict, List

import mido

logger = logging.getLogger(__name__)


class DeviceEvent:
    """
    Normalized input event used by InputMapper.
    device: str  e.g. "apc40", "launchpad", "streamdeck"
    control: Any e.g. ("note", 53, 0), ("cc", 48, 0)
    value: int (velocity / cc value; 0 = release for notes)
    """
    def __init__(self, device: str, control, value):
        self.device = device
        self.control = control
        self.value = value

    def __repr__(self):
        return f"DeviceEvent({self.device!r}, {self.control!r}, {self.value!r})"


class BaseInputDevice:
    """
    Base class for devices that push DeviceEvent objects into a queue.
    """
    def __init__(self, event_queue: asyncio.Queue, device_name: str):
        self.event_queue = event_queue
        self.device_name = device_name

    async def push_event(self, control, value):
        await self.event_queue.put(DeviceEvent(self.device_name, control, value))


class MidiInputDevice(BaseInputDevice):
    def __init__(self, event_queue, device_name: str, port_match: str):
        super().__init__(event_queue, device_name)
        self.port_match = port_match

    def _find_port(self):
        for name in mido.get_input_names():
            if self.port_match.lower() in name.lower():
                return name
        return None

    @staticmethod
    def to_control(msg):
        """mido message -> (control, value), or None for messages we don't map."""
        if msg.type == "note_on":
            return ("note", msg.note, msg.channel), msg.velocity
        if msg.type == "note_off":
            return ("note", msg.note, msg.channel), 0
        if msg.type == "control_change":
            return ("cc", msg.control, msg.channel), msg.value
        return None

    async def run(self):
        logger.debug("[%s] Available MIDI IN ports: %s", self.device_name, mido.get_input_names())

        port_name = self._find_port()
        if not port_name:
            logger.warning("[%s] No matching MIDI input found for '%s'", self.device_name, self.port_match)
            return

        loop = asyncio.get_running_loop()

        def _cb(msg):
            mapped = self.to_control(msg)
            if mapped is None:
                return
            try:
                asyncio.run_coroutine_threadsafe(self.push_event(*mapped), loop).result()
            except Exception as e:
                logger.exception("[%s] MIDI callback error: %s", self.device_name, e)

        inport = mido.open_input(port_name, callback=_cb)
        logger.info("[%s] Listening on MIDI input: %s", self.device_name, port_name)
        try:
            while True:
                await asyncio.sleep(1.0)  # keep task alive
        finally:
            inport.close()


def build_input_devices(event_queue: asyncio.Queue, devices_cfg: Dict[str, Any]) -> List[MidiInputDevice]:
    out: List[MidiInputDevice] = []
    for name, dev_cfg in (devices_cfg or {}).items():
        dev_cfg = dev_cfg or {}
        if not dev_cfg.get("enabled", True):
            continue
        if dev_cfg.get("kind", "midi") != "midi":
            logger.warning("[devices] %s: unsupported kind %r", name, dev_cfg.get("kind"))
            continue
        out.append(MidiInputDevice(event_queue, name, dev_cfg.get("in_match") or name))
    return out
