# autopreset/feedback.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .input_mapper import control_id
from .models import AutoButton, DIRECTOR, Preset
from .preset_order import resolve_order

logger = logging.getLogger(__name__)

ALL_FEEDBACKS = (
    "learn_mode", "auto_preset", "active_preset", "live_device", "auto_cut",
    "speaker_override", "shot_size", "tracking_mode", "enabled_director", "director_status",
)


@dataclass(frozen=True)
class ButtonStyle:
    color: str = "off"      # palette name used for the LED
    text: str = ""
    bgcolor: int = 0x000000

    def signature(self) -> str:
        return f"{self.color}|{self.bgcolor:06x}|{self.text}"


OFF = ButtonStyle()


class FeedbackReflector:
    """
    Computes the style of every bound button and paints it on the MIDI
    surfaces.

    learn_mode (learn buttons):
      • BLUE    while this bank is learning      "Learning Save? (presets/buttons)"
      • YELLOW  fewer buttons learned than presets match
      • GREEN   otherwise                        "Learn Presets (presets/buttons)"

    auto_preset (slot buttons), while some bank is learning:
      • GREEN   learned for the learning bank    "#index"
      • YELLOW  learned for another bank         "Overwrite?"
      • RED     not learned yet                  "Learning"
    and in live mode:
      • RED     bound preset is active (DIM if also live on the switcher)
      • group colour otherwise (DIM text when live)
      • OFF     unbound / no preset at this position
    """

    def __init__(self, coordinator, store, bank_store, classifier, buses: Optional[Dict[str, object]] = None,
                 hz: float = 2.0):
        self.coordinator = coordinator
        self.store = store
        self.bank_store = bank_store
        self.classifier = classifier
        self.buses = buses or {}
        self.hz = max(0.1, float(hz))
        self.bindings: List[dict] = []
        self.device_names: Dict[int, str] = {}
        self.device_inputs: Dict[int, str] = {}
        self._last_sig: Dict[str, str] = {}

    # -------------------- definitions --------------------

    def set_bindings(self, bindings: List[dict]) -> None:
        self.bindings = [b for b in bindings or [] if b.get("feedback")]
        self._last_sig.clear()

    def update_device_tables(self) -> None:
        videos = self.store.get_video_devices()
        self.device_names = {d.id: d.name for d in videos}
        self.device_inputs = {d.id: d.switcher_input for d in videos if d.switcher_input is not None}
        logger.debug("[feedback] %d video devices", len(videos))

    # -------------------- helpers --------------------

    def device_label(self, preset: Preset) -> str:
        names: List[str] = []
        for c in preset.commands:
            name = self.device_names.get(c.device_id, "Unknown")
            if name not in names:
                names.append(name)
        return ", ".join(names) or "Unknown"

    def is_device_live(self, device_id: int) -> bool:
        return self.store.is_input_live(self.device_inputs.get(device_id))

    def is_preset_live(self, preset: Preset) -> bool:
        return any(c.device_id is not None and self.is_device_live(c.device_id) for c in preset.commands)

    # -------------------- styles --------------------

    def learn_mode_style(self, bank_id: str) -> ButtonStyle:
        learned = len(self.bank_store.buttons_of(bank_id))
        matching = len(resolve_order(self.bank_store.get_bank(bank_id), self.store.presets, self.classifier))
        counts = f"({matching}/{learned})"
        if self.coordinator.is_learning(bank_id):
            return ButtonStyle("blue", f"Learning Save? {counts}", 0x012BFC)
        if learned < matching:
            return ButtonStyle("yellow", f"Learn Presets {counts}", 0xE6D700)
        return ButtonStyle("green", f"Learn Presets {counts}", 0x002800)

    def auto_preset_style(self, button_id: str) -> ButtonStyle:
        button = AutoButton(button_id)
        index, bank_id = self.bank_store.locate(button)
        learning = self.coordinator.learning_bank

        if learning is not None:
            if index < 0:
                return ButtonStyle("red", "Learning", 0xFF0000)
            if bank_id == learning:
                return ButtonStyle("green", f"#{index}", 0x00FF00)
            return ButtonStyle("yellow", "Overwrite?", 0xFFFF00)

        preset = self.coordinator.bound_preset(button) if index >= 0 else None
        if preset is None:
            return OFF
        label = preset.name
        if self.bank_store.is_display_device_name(button):
            label += f"\n({self.device_label(preset)})"
        live = self.is_preset_live(preset)
        if self.store.is_preset_active(preset.id):
            return ButtonStyle("dim" if live else "red", label, 0x640000 if live else 0xFF0000)
        bg = self.classifier.color_for(preset.instrument)
        return ButtonStyle("dim" if live else "green", label, bg)

    def _style(self, rule: dict) -> ButtonStyle:
        kind = rule["feedback"]
        opts = rule.get("options") or {}
        cid = rule.get("id") or control_id(rule.get("device"), tuple(rule.get("control") or ()))
        if kind == "learn_mode":
            return self.learn_mode_style(cid)
        if kind == "auto_preset":
            return self.auto_preset_style(cid)
        if kind == "active_preset":
            return ButtonStyle("red", "Active") if self.store.is_preset_active(int(opts.get("preset", -1))) else OFF
        if kind == "live_device":
            return ButtonStyle("red", "Live") if self.is_device_live(int(opts.get("deviceId", -1))) else OFF
        if kind == "auto_cut":
            return ButtonStyle("green", "AutoCut") if self.store.autocut_running else OFF
        if kind == "speaker_override":
            override = self.store.dominant_speaker_override
            return ButtonStyle("yellow", "Override") if override is not None and override == int(opts.get("deviceId", -1)) else OFF
        device = self.store.get_device_by_id(int(opts.get("deviceId", -1)))
        if device is None:
            return OFF
        if kind == "enabled_director":
            return ButtonStyle("green", "Director") if device.is_component_enabled(DIRECTOR) else OFF
        if kind == "director_status":
            state = device.component_state(DIRECTOR)
            if state is None or state == "OFF":
                return OFF
            return ButtonStyle("green" if state == "RUNNING" else "red", state)
        if kind == "shot_size":
            current = device.head_tracking.target_shot_size if device.head_tracking else None
            return ButtonStyle("green", current) if current and current == opts.get("shotSize") else OFF
        if kind == "tracking_mode":
            tracker = device.person_tracker
            current = tracker.tracking_mode if tracker else None
            if not current or current != opts.get("mode"):
                return OFF
            face = self.store.get_face_by_id(tracker.target_face_id)
            return ButtonStyle("green", f"{current}\n{face.name}" if face and face.name else current)
        logger.debug("[feedback] unknown feedback %r", kind)
        return OFF

    # -------------------- rendering --------------------

    def check_feedbacks(self, *names: str) -> None:
        wanted = set(names) if names else set(ALL_FEEDBACKS)
        for rule in self.bindings:
            if rule["feedback"] in wanted:
                self._render(rule, force=True)

    def _render(self, rule: dict, force: bool = False) -> Optional[ButtonStyle]:
        try:
            style = self._style(rule)
        except Exception:
            logger.exception("[feedback] failed to compute %s for %s", rule.get("feedback"), rule.get("control"))
            return None
        key = f"{rule.get('device')}|{rule.get('control')}"
        sig = style.signature()
        if not force and self._last_sig.get(key) == sig:
            return style
        self._last_sig[key] = sig
        bus = self.buses.get(rule.get("device"))
        control = rule.get("control") or []
        if bus is not None and len(control) >= 2 and control[0] == "note":
            ch = int(control[2]) if len(control) >= 3 else 0
            bus.set_color(int(control[1]), style.color, channel=ch)
        return style

    async def run(self):
        interval = 1.0 / self.hz
        logger.info("[feedback] reflector running at %.1f Hz", self.hz)
        while True:
            try:
                for rule in self.bindings:
                    self._render(rule)
            except Exception:
                logger.exception("[feedback] tick failure")
            await asyncio.sleep(interval)
