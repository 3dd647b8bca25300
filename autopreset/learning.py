import asyncio
import logging
from enum import Enum
from typing import Callable, Iterable, List, Optional, Union

from .backend import BackendError
from .models import AutoButton
from .preset_order import preset_for_button

logger = logging.getLogger(__name__)

DISABLED = "disabled"
ALL_GROUPS = "All"


class SlotOutcome(Enum):
    LEARNED = "learned"
    ALREADY_LEARNED = "already_learned"
    PLAYED = "played"
    OVERWRITTEN = "overwritten"
    UNASSIGNED = "unassigned"
    IGNORED = "ignored"
    FAILED = "failed"


def parse_device_ids(value: Union[str, Iterable, None]) -> List[int]:
    """Accept [1, 2], ["1", "2"] or the text-input form "1, 2"."""
    if value is None:
        return []
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return [int(value)]
    items = value.split(",") if isinstance(value, str) else list(value)
    out: List[int] = []
    for item in items:
        text = str(item).strip()
        if not text:
            continue
        try:
            out.append(int(text))
        except ValueError:
            logger.warning("[learn] ignoring non-numeric device id %r", item)
    return out


def parse_flag(value) -> bool:
    """Option flags may arrive as booleans or as text such as "false" / "true"."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def normalize_groups(groups: Union[str, Iterable, None]) -> List[str]:
    """The "All" selector (or nothing selected) collapses to the empty wildcard."""
    if not groups:
        return []
    if isinstance(groups, str):
        groups = [groups]
    groups = [str(g) for g in groups]
    if ALL_GROUPS in groups:
        return []
    return groups


class LearningCoordinator:
    """
    Single-flight learning state machine.

    State is either DISABLED or the id of the one bank being learned. Learn
    button presses toggle learning for their bank; slot presses either
    register the slot into the learning bank or act on the preset currently
    bound to it.
    """

    def __init__(self, bank_store, store, backend, classifier,
                 on_change: Optional[Callable[..., None]] = None):
        self.bank_store = bank_store
        self.store = store
        self.backend = backend
        self.classifier = classifier
        self.on_change = on_change
        self._mode: str = DISABLED

    # -------------------- state --------------------

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def learning_bank(self) -> Optional[str]:
        return None if self._mode == DISABLED else self._mode

    def is_learning(self, bank_id: Optional[str] = None) -> bool:
        if bank_id is None:
            return self._mode != DISABLED
        return self._mode == bank_id

    def _changed(self):
        if self.on_change:
            self.on_change("learn_mode", "auto_preset")

    # -------------------- learn button --------------------

    def press_learn(self, bank_id: str, devices=None, instrument_groups=None,
                    display_device_name: bool = False) -> str:
        """Toggle learning for `bank_id`; returns the resulting mode."""
        if self._mode == bank_id:
            logger.info("[learn] stopping learning for %s (%d buttons)",
                        bank_id, len(self.bank_store.buttons_of(bank_id)))
            self._mode = DISABLED
            self._changed()
            return self._mode

        if self._mode != DISABLED:
            logger.warning("[learn] %s ignored: bank %s is still learning", bank_id, self._mode)
            return self._mode

        device_ids = parse_device_ids(devices)
        if not device_ids:
            logger.warning("[learn] no devices selected for %s", bank_id)
            return self._mode

        groups = normalize_groups(instrument_groups)
        logger.info("[learn] learning auto preset buttons for %s devices=%s groups=%s",
                    bank_id, device_ids, groups or ALL_GROUPS)
        self._mode = bank_id
        self.bank_store.clear_bank(bank_id)
        self.bank_store.set_criteria(bank_id, device_ids, groups, parse_flag(display_device_name))
        self._changed()
        return self._mode

    def clear_all(self) -> None:
        self.bank_store.clear_all()
        self._mode = DISABLED
        self._changed()

    # -------------------- slot buttons --------------------

    def bound_preset(self, button: AutoButton):
        return preset_for_button(self.bank_store, button, self.store.presets, self.classifier)

    async def press_slot(self, button_id: str, hold: bool = False) -> SlotOutcome:
        """
        Press (or long-press when `hold`) on an auto preset button.

        Learning: a press registers the button into the learning bank, a
        hold does nothing. Otherwise: a press plays the bound preset and a
        hold overwrites it with the current camera position.
        """
        button = AutoButton(str(button_id))
        index, bank_id = self.bank_store.locate(button)

        if self._mode != DISABLED:
            if hold:
                return SlotOutcome.IGNORED
            if index >= 0 and bank_id == self._mode:
                return SlotOutcome.ALREADY_LEARNED
            self.bank_store.register_button(self._mode, button)
            self._changed()
            return SlotOutcome.LEARNED

        preset = self.bound_preset(button)
        if preset is None:
            logger.warning("[learn] no preset assigned to button %s (index %d)", button.id, index)
            return SlotOutcome.UNASSIGNED

        try:
            if hold:
                logger.info("[learn] overwriting auto preset %s (%s) from %s", preset.id, preset.name, button.id)
                await asyncio.to_thread(self.backend.overwrite_preset, preset.id)
                outcome = SlotOutcome.OVERWRITTEN
            else:
                logger.info("[learn] playing auto preset %s (%s) from %s", preset.id, preset.name, button.id)
                await asyncio.to_thread(self.backend.play_preset, preset.id, False)
                outcome = SlotOutcome.PLAYED
        except BackendError as e:
            logger.error("[learn] preset action for %s failed: %s", button.id, e)
            return SlotOutcome.FAILED
        self._changed()
        return outcome
