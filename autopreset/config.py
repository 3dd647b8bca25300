# autopreset/config.py
import logging
import os
from typing import Any, Dict

import yaml

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

DEFAULT_CONFIG = """
server:
  host: "127.0.0.1"
  port: 8500
  username: ""
  password: ""
  timeout: 2.0

state_file: "autopreset-state.json"
log_level: "INFO"

reflect_hz: 2.0
hold_seconds: 0.75

# MIDI surfaces; `in_match` / `out_match` are case-insensitive port name fragments
devices:
  apc40:
    kind: "midi"
    in_match: "APC40"
    out_match: "APC40"
    reset_leds_on_start: true

templates:
  # each learn button owns one bank; options are used when learning starts
  learn_buttons:
    - device: apc40
      control: ["note", 82, 0]
      options:
        deviceIds: [1, 2]
        instrumentGroups: ["All"]
        displayName: false
    - device: apc40
      control: ["note", 83, 0]
      options:
        deviceIds: [3]
        instrumentGroups: ["Speech"]
        displayName: true

  # pads that can be learned into any bank (channel is 1..16)
  slot_grids:
    - device: apc40
      channel: 1
      range: [0, 39]

  global:
    - device: apc40
      control: ["note", 98, 0]
      action: clear_all_auto_buttons
      edge: hold

# static bindings appended after templates
bindings: []

# optional: replace the instrument group table
# instrument_groups:
#   Speech: ["speaker", "pulpit"]
#   Keys: ["piano", "organ"]
"""


def load_yaml(path: str, default_text: str = None) -> dict:
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    if default_text is not None:
        return yaml.safe_load(default_text) or {}
    return {}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge dicts; lists and scalars in `override` replace those in `base`."""
    out = dict(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: str = "config.yml") -> dict:
    return deep_merge(load_yaml(None, DEFAULT_CONFIG), load_yaml(path))


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format=LOG_FORMAT)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
