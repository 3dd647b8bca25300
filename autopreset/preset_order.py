from functools import cmp_to_key
from typing import List, Optional, Sequence, Set

from .models import Bank, Preset


def device_ids_from_preset(preset: Preset) -> Set[int]:
    """Device ids referenced by the preset's commands (commands without a device are ignored)."""
    return {c.device_id for c in preset.commands if c.device_id is not None}


def matches(bank: Bank, preset: Preset, classifier) -> bool:
    if not device_ids_from_preset(preset) & set(bank.devices):
        return False
    if not bank.instrument_groups:
        return True
    return classifier.group_of(preset) in bank.instrument_groups


def resolve_order(bank: Optional[Bank], presets: Sequence[Preset], classifier) -> List[Preset]:
    """
    Presets the bank can bind to, in binding order.

    Recomputed on every call from the current snapshot; sorted() is stable so
    presets the comparator considers equal keep their snapshot order.
    """
    if bank is None:
        return []
    matching = [p for p in presets if matches(bank, p, classifier)]
    return sorted(matching, key=cmp_to_key(classifier.compare))


def preset_for_button(bank_store, button, presets: Sequence[Preset], classifier) -> Optional[Preset]:
    """Preset currently at the button's binding index, or None if unbound / out of range."""
    index, bank_id = bank_store.locate(button)
    if index < 0:
        return None
    ordered = resolve_order(bank_store.get_bank(bank_id), presets, classifier)
    if index >= len(ordered):
        return None
    return ordered[index]
