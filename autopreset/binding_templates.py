# autopreset/binding_templates.py
import copy
from typing import Any, Dict, Iterable, List


def _human_to_mido_channel(human_ch: int) -> int:
    """Convert human channel 1..16 to mido 0..15. Clamp for safety."""
    return max(0, min(15, int(human_ch) - 1))


def _grid_notes(block: Dict[str, Any]) -> Iterable[int]:
    """Notes of a slot grid: explicit `notes` list, or inclusive `range: [first, last]`."""
    if block.get("notes"):
        return [int(n) for n in block["notes"]]
    rng = block.get("range") or []
    if len(rng) == 2:
        first, last = int(rng[0]), int(rng[1])
        step = 1 if last >= first else -1
        return list(range(first, last + step, step))
    return []


def expand_templates(cfg: Dict[str, Any]) -> List[dict]:
    """
    Expand config templates into concrete InputMapper bindings.
    - templates.learn_buttons: [ { device, control, options, id? } ]
        -> learn_auto_buttons on press, learn_mode LED feedback
    - templates.slot_grids: [ { device, channel (1..16), notes | range } ]
        -> per note: play_auto_preset on tap, overwrite_auto_preset on hold,
           auto_preset LED feedback
    - templates.global: binding dicts added as-is
    - bindings: static bindings appended last (user overrides)

    Returns a flat list of binding dicts.
    """
    out: List[dict] = []

    templates = cfg.get("templates", {}) or {}

    for block in templates.get("learn_buttons", []) or []:
        if not block.get("device") or not block.get("control"):
            continue
        rule = {
            "device": block["device"],
            "control": list(block["control"]),
            "action": "learn_auto_buttons",
            "edge": "press",
            "feedback": "learn_mode",
            "options": copy.deepcopy(block.get("options") or {}),
        }
        if block.get("id"):
            rule["id"] = str(block["id"])
        out.append(rule)

    for block in templates.get("slot_grids", []) or []:
        dev_key = block.get("device")
        if not dev_key:
            continue
        ch = _human_to_mido_channel(block.get("channel", 1))
        for note in _grid_notes(block):
            control = ["note", note, ch]
            out.append({"device": dev_key, "control": control, "action": "play_auto_preset",
                        "edge": "tap", "feedback": "auto_preset"})
            out.append({"device": dev_key, "control": list(control), "action": "overwrite_auto_preset",
                        "edge": "hold"})

    for rule in templates.get("global", []) or []:
        out.append(copy.deepcopy(rule))

    out.extend(copy.deepcopy(cfg.get("bindings", []) or []))
    return out
