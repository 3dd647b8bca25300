# autopreset/midi_bus.py
import logging
from typing import Dict, Iterable, Optional, Sequence

import mido

logger = logging.getLogger(__name__)

# APC40-style pad velocities; override per device with `palette:` in config.yml
DEFAULT_PALETTE: Dict[str, int] = {
    "off": 0,
    "green": 1,
    "green blink": 2,
    "red": 3,
    "red blink": 4,
    "yellow": 5,
    "yellow blink": 6,
    "blue": 45,
    "dim": 117,
}


class MidiBus:
    """
    MIDI OUT helper used to paint button LEDs.

    Usage:
        bus = MidiBus(port_match="APC40", device_name="apc40")
        bus.all_notes_off(channels=[0])        # clear LEDs on startup
        bus.set_color(53, "green", channel=0)  # palette name -> velocity

    On APC/Launchpad, turning an LED off is `note_on` with velocity 0.
    """

    def __init__(self, port_match: str, device_name: str, palette: Optional[Dict[str, int]] = None,
                 open_port: bool = True):
        self.port_match = port_match or ""
        self.device_name = device_name
        self.palette: Dict[str, int] = dict(DEFAULT_PALETTE)
        self.palette.update(palette or {})
        self.port_name: Optional[str] = None
        self.outport: Optional[mido.ports.BaseOutput] = None

        if not open_port:
            return
        try:
            self.port_name = self._find_port(self.port_match)
            if self.port_name:
                self.outport = mido.open_output(self.port_name)
                logger.info("[midi:%s] Opened OUT: %s", self.device_name, self.port_name)
            else:
                logger.warning("[midi:%s] No matching MIDI OUT for '%s'. Outputs seen: %s",
                               self.device_name, self.port_match, mido.get_output_names())
        except Exception as e:
            logger.exception("[midi:%s] Failed to open MIDI OUT: %s", self.device_name, e)

    # -------------------- Port discovery --------------------

    @staticmethod
    def _find_port(match: str) -> Optional[str]:
        """Return the first output port name containing `match` (case-insensitive)."""
        if not match:
            return None
        wanted = match.lower()
        for name in mido.get_output_names():
            if wanted in name.lower():
                return name
        return None

    # -------------------- Low-level send --------------------

    def _send(self, msg: mido.Message) -> None:
        if not self.outport:
            logger.debug("[midi:%s] drop (no outport): %s", self.device_name, msg)
            return
        try:
            self.outport.send(msg)
        except Exception as e:
            logger.exception("[midi:%s] send failed: %s (%s)", self.device_name, msg, e)

    # -------------------- Helpers --------------------

    def note_on(self, note: int, velocity: int = 127, channel: int = 0) -> None:
        self._send(mido.Message("note_on", note=int(note), velocity=int(velocity), channel=int(channel)))

    def velocity_for(self, color: str) -> int:
        if color not in self.palette:
            logger.debug("[midi:%s] unknown color %r, using off", self.device_name, color)
        return self.palette.get(color, 0)

    def set_color(self, note: int, color: str, channel: int = 0) -> None:
        self.note_on(note, self.velocity_for(color), channel=channel)

    def all_notes_off(self, channels: Optional[Iterable[int]] = None, notes: Optional[Iterable[int]] = None) -> None:
        """Force note_on velocity=0 for each note in each channel (default: everything)."""
        if not self.outport:
            logger.warning("[midi:%s] all_notes_off skipped: no outport", self.device_name)
            return

        ch_iter: Sequence[int] = list(channels) if channels is not None else range(16)
        note_iter: Sequence[int] = list(notes) if notes is not None else range(128)
        for ch in ch_iter:
            for n in note_iter:
                self._send(mido.Message("note_on", note=int(n), velocity=0, channel=int(ch)))
        logger.info("[midi:%s] all_notes_off sent across %d channel(s)", self.device_name, len(ch_iter))

    # -------------------- Teardown --------------------

    def close(self) -> None:
        if self.outport:
            try:
                self.outport.close()
                logger.info("[midi:%s] Closed OUT: %s", self.device_name, self.port_name)
            except Exception:
                logger.exception("[midi:%s] error while closing outport", self.device_name)
            finally:
                self.outport = None
