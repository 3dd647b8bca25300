# autopreset/input_mapper.py
import asyncio
import inspect
import logging
from typing import Any, Dict, List, Optional, Tuple

from .devices import DeviceEvent

logger = logging.getLogger(__name__)


def control_id(device: str, control: Any) -> str:
    """Default stable button identity, e.g. "apc40/note/53/0"."""
    if isinstance(control, (list, tuple)):
        return "/".join([device] + [str(c) for c in control])
    return f"{device}/{control}"


class InputMapper:
    """
    Map normalized DeviceEvent -> callbacks.

    Bindings (examples):
      - device: "apc40"
        control: ["note", 82, 0]
        action: "learn_auto_buttons"
        edge: "press"
        options: { deviceIds: [1, 2], instrumentGroups: ["All"], displayName: false }

      - device: "apc40"
        control: ["note", 32, 0]
        action: "play_auto_preset"
        edge: "tap"

      - device: "apc40"
        control: ["note", 32, 0]
        action: "overwrite_auto_preset"
        edge: "hold"

    Edges:
      • press   – fires on note-on
      • release – fires on note-off
      • tap     – fires on release, unless the button was held long enough for "hold"
      • hold    – fires once the button has been down for `hold_seconds`
    CC controls ignore edges and fire on every change.

    Callbacks are called as cb(control_id, options); `control_id` is the
    rule's "id" if present, otherwise derived from device + control.
    """

    def __init__(self, callbacks, bindings: List[dict], hold_seconds: float = 0.75):
        self.callbacks = callbacks
        self.bindings = bindings or []
        self.hold_seconds = float(hold_seconds)
        self._hold_timers: Dict[Tuple[str, Any], asyncio.TimerHandle] = {}
        self._held: set = set()
        self._tasks: set = set()

    def set_bindings(self, bindings: List[dict]) -> None:
        self.bindings = bindings or []
        logger.debug("[mapper] %d bindings active", len(self.bindings))

    # ---------- matching helpers ----------

    def _match_control(self, control: Any, pattern: Any) -> bool:
        if isinstance(pattern, str):
            return control == pattern

        if isinstance(pattern, (list, tuple)) and isinstance(control, (list, tuple)):
            pc = tuple(pattern)
            cc = tuple(control)
            if len(pc) >= 2 and len(cc) >= 2 and pc[0] == cc[0] and pc[1] == cc[1]:
                if len(pc) >= 3:
                    return len(cc) >= 3 and pc[2] == cc[2]
                return True
        return False

    def _rules_for(self, ev: DeviceEvent, edge: Optional[str]) -> List[dict]:
        out = []
        for rule in self.bindings:
            if rule.get("device") != ev.device:
                continue
            if not self._match_control(ev.control, rule.get("control")):
                continue
            if edge is not None and rule.get("edge", "press") != edge:
                continue
            out.append(rule)
        return out

    @staticmethod
    def _is_note(control: Any) -> bool:
        return isinstance(control, tuple) and len(control) >= 1 and control[0] == "note"

    # ---------- dispatch ----------

    async def _fire(self, rule: dict, ev: DeviceEvent):
        action = rule.get("action")
        cb = self.callbacks.get(action)
        if not cb:
            logger.warning("[mapper] action '%s' not found for %s", action, ev.control)
            return
        cid = rule.get("id") or control_id(ev.device, ev.control)
        options = dict(rule.get("options") or {})
        if not self._is_note(ev.control):
            options.setdefault("value", ev.value)
        try:
            res = cb(cid, options)
            if inspect.isawaitable(res):
                await res
        except TypeError as te:
            logger.exception("[mapper] bad callback signature for action '%s': %s", action, te)
        except Exception:
            logger.exception("[mapper] error running action '%s'", action)

    async def _fire_all(self, ev: DeviceEvent, edge: Optional[str]):
        for rule in self._rules_for(ev, edge):
            await self._fire(rule, ev)

    def _on_hold(self, key, ev: DeviceEvent):
        self._hold_timers.pop(key, None)
        self._held.add(key)
        logger.debug("[mapper] hold %s %s", ev.device, ev.control)
        task = asyncio.get_running_loop().create_task(self._fire_all(ev, "hold"))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ---------- main entry ----------

    async def handle_event(self, ev: DeviceEvent):
        if not self._is_note(ev.control):
            await self._fire_all(ev, None)
            return

        key = (ev.device, ev.control)
        if ev.value:
            self._held.discard(key)
            if self._rules_for(ev, "hold"):
                old = self._hold_timers.pop(key, None)
                if old:
                    old.cancel()
                self._hold_timers[key] = asyncio.get_running_loop().call_later(
                    self.hold_seconds, self._on_hold, key, ev)
            await self._fire_all(ev, "press")
            return

        timer = self._hold_timers.pop(key, None)
        if timer:
            timer.cancel()
        was_held = key in self._held
        self._held.discard(key)
        await self._fire_all(ev, "release")
        if not was_held:
            await self._fire_all(ev, "tap")
