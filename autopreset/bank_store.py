import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .models import AutoButton, Bank

logger = logging.getLogger(__name__)

BANK_MAP_KEY = "autoConfiguredMap"

BankMap = Dict[str, Bank]


class BankStore:
    """
    Persisted bank/button configuration.

    The whole map under "autoConfiguredMap" is the unit of persistence: every
    mutation reads the full map, applies one transformation and writes the
    full map back before returning.

    Invariant: a button id appears in the button list of at most one bank.
    """

    def __init__(self, kv):
        self.kv = kv

    # -------------------- transaction --------------------

    def load(self) -> BankMap:
        raw = self.kv.get(BANK_MAP_KEY, {})
        if not isinstance(raw, dict):
            logger.warning("[banks] persisted bank map is not a mapping (%s); treating as empty", type(raw).__name__)
            return {}
        banks: BankMap = {}
        for bank_id, value in raw.items():
            try:
                banks[str(bank_id)] = Bank.from_dict(value)
            except (TypeError, ValueError, AttributeError, KeyError) as e:
                logger.warning("[banks] dropping unreadable bank %r: %s", bank_id, e)
        return banks

    def _save(self, banks: BankMap) -> None:
        self.kv.set(BANK_MAP_KEY, {k: b.to_dict() for k, b in banks.items()})

    def transact(self, change: Callable[[BankMap], None]) -> BankMap:
        banks = self.load()
        change(banks)
        self._save(banks)
        return banks

    # -------------------- mutations --------------------

    def set_criteria(
        self,
        bank_id: str,
        devices: Iterable[int],
        instrument_groups: Iterable[str],
        display_device_name: bool,
    ) -> None:
        devices = [int(d) for d in devices]
        instrument_groups = [str(g) for g in instrument_groups]

        def change(banks: BankMap):
            current = banks.get(bank_id) or Bank()
            banks[bank_id] = Bank(
                buttons=list(current.buttons),
                devices=list(devices),
                instrument_groups=list(instrument_groups),
                display_device_name=bool(display_device_name),
            )

        self.transact(change)
        logger.debug("[banks] criteria for %s -> devices=%s groups=%s display=%s",
                     bank_id, devices, instrument_groups, display_device_name)

    def clear_bank(self, bank_id: str) -> None:
        def change(banks: BankMap):
            banks[bank_id] = Bank()

        self.transact(change)
        logger.debug("[banks] cleared %s", bank_id)

    def clear_all(self) -> None:
        self._save({})
        logger.info("[banks] all banks cleared")

    def register_button(self, bank_id: str, button: AutoButton) -> None:
        """Move `button` to the end of `bank_id`, unbinding it everywhere else first."""
        def change(banks: BankMap):
            for bank in banks.values():
                bank.buttons = [b for b in bank.buttons if b.id != button.id]
            banks.setdefault(bank_id, Bank()).buttons.append(button)

        self.transact(change)
        logger.debug("[banks] added auto preset button %s to %s", button.id, bank_id)

    # -------------------- queries --------------------

    def get_bank(self, bank_id: str) -> Optional[Bank]:
        return self.load().get(bank_id)

    def buttons_of(self, bank_id: str) -> List[AutoButton]:
        bank = self.get_bank(bank_id)
        return list(bank.buttons) if bank else []

    def locate(self, button: AutoButton) -> Tuple[int, str]:
        """(index in owning bank, bank id), or (-1, "") when unbound."""
        for bank_id, bank in self.load().items():
            for index, b in enumerate(bank.buttons):
                if b.id == button.id:
                    return index, bank_id
        return -1, ""

    def is_display_device_name(self, button: AutoButton) -> bool:
        index, bank_id = self.locate(button)
        if index < 0:
            return False
        bank = self.get_bank(bank_id)
        return bool(bank and bank.display_device_name)
