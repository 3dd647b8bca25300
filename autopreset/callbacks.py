# autopreset/callbacks.py
import asyncio
import logging

from .backend import BackendError
from .learning import parse_flag

logger = logging.getLogger(__name__)


class CallbackRegistry:
    def __init__(self, coordinator, backend):
        """
        coordinator: LearningCoordinator (bank learning + auto preset resolution)
        backend: MiruBackend (direct preset actions)
        """
        self.coordinator = coordinator
        self.backend = backend

        self.callbacks = {
            # Auto preset learning
            "learn_auto_buttons": self.learn_auto_buttons,
            "play_auto_preset": self.play_auto_preset,
            "overwrite_auto_preset": self.overwrite_auto_preset,
            "clear_all_auto_buttons": self.clear_all_auto_buttons,

            # Fixed presets
            "play_preset": self.play_preset,
            "overwrite_preset": self.overwrite_preset,
        }

    def get(self, action_name):
        return self.callbacks.get(action_name)

    # -------------------------------------------------
    # Auto preset learning
    # -------------------------------------------------
    def learn_auto_buttons(self, control_id: str, options: dict):
        """
        1. Press to start learning with the configured devices / instrument groups.
        2. Press the auto preset buttons in the order they should be filled.
        3. Press again to finish.
        """
        self.coordinator.press_learn(
            control_id,
            devices=options.get("deviceIds"),
            instrument_groups=options.get("instrumentGroups"),
            display_device_name=parse_flag(options.get("displayName", False)),
        )

    async def play_auto_preset(self, control_id: str, options: dict):
        return await self.coordinator.press_slot(control_id, hold=False)

    async def overwrite_auto_preset(self, control_id: str, options: dict):
        return await self.coordinator.press_slot(control_id, hold=True)

    def clear_all_auto_buttons(self, control_id: str, options: dict):
        """Debugging aid: drop every learned bank and stop learning."""
        logger.info("[callbacks] clearing all auto preset buttons (%s)", control_id)
        self.coordinator.clear_all()

    # -------------------------------------------------
    # Fixed presets
    # -------------------------------------------------
    async def play_preset(self, control_id: str, options: dict):
        preset_id = int(options["preset"])
        logger.info("[callbacks] playing preset %s", preset_id)
        try:
            await asyncio.to_thread(self.backend.play_preset, preset_id, parse_flag(options.get("force", False)))
        except BackendError as e:
            logger.error("[callbacks] play preset %s failed: %s", preset_id, e)

    async def overwrite_preset(self, control_id: str, options: dict):
        preset_id = int(options["preset"])
        logger.info("[callbacks] overwriting preset %s", preset_id)
        try:
            await asyncio.to_thread(self.backend.overwrite_preset, preset_id)
        except BackendError as e:
            logger.error("[callbacks] overwrite preset %s failed: %s", preset_id, e)
