# run.py

import asyncio
import logging
import sys

from autopreset.backend import BackendError, MiruBackend
from autopreset.bank_store import BankStore
from autopreset.binding_templates import expand_templates
from autopreset.callbacks import CallbackRegistry
from autopreset.classification import InstrumentClassifier
from autopreset.config import load_config, setup_logging
from autopreset.devices import build_input_devices
from autopreset.feedback import FeedbackReflector
from autopreset.input_mapper import InputMapper
from autopreset.learning import LearningCoordinator
from autopreset.midi_bus import MidiBus
from autopreset.persistence import JsonFileStore
from autopreset.store import RemoteStateStore
from autopreset.sync import GuiEventStream, SyncDriver

logger = logging.getLogger("autopreset")


class App:
    def __init__(self, cfg: dict, backend=None, kv=None, open_midi: bool = True):
        self.cfg = cfg

        srv = cfg.get("server", {}) or {}
        self.backend = backend or MiruBackend(
            srv.get("host", "127.0.0.1"), int(srv.get("port", 8500)),
            username=srv.get("username", ""), password=srv.get("password", ""),
            timeout=float(srv.get("timeout", 2.0)),
        )
        self.kv = kv if kv is not None else JsonFileStore(cfg.get("state_file", "autopreset-state.json"))

        # Server snapshot + persisted banks
        self.classifier = InstrumentClassifier(cfg.get("instrument_groups"))
        self.store = RemoteStateStore(self.backend)
        self.banks = BankStore(self.kv)

        # MIDI LED buses, one per surface
        self.buses = {}
        if open_midi:
            for name, dev_cfg in (cfg.get("devices", {}) or {}).items():
                dev_cfg = dev_cfg or {}
                if dev_cfg.get("enabled", True):
                    self.buses[name] = MidiBus(dev_cfg.get("out_match") or name, name, dev_cfg.get("palette"))

        # Learning + feedback
        self.coordinator = LearningCoordinator(self.banks, self.store, self.backend, self.classifier)
        self.reflector = FeedbackReflector(
            self.coordinator, self.store, self.banks, self.classifier,
            buses=self.buses, hz=cfg.get("reflect_hz", 2.0),
        )
        self.coordinator.on_change = self.reflector.check_feedbacks

        # Callbacks and InputMapper
        self.callbacks = CallbackRegistry(self.coordinator, self.backend)
        self.mapper = InputMapper(self.callbacks, [], hold_seconds=cfg.get("hold_seconds", 0.75))

        # Server push -> reloads
        self.sync = SyncDriver(self.store, self.update_configuration, self.reflector.check_feedbacks)
        self.events = None

        # Devices -> events
        self.event_queue: asyncio.Queue = asyncio.Queue()
        self.devices = build_input_devices(self.event_queue, cfg.get("devices", {})) if open_midi else []

        self.rebuild_definitions()

    def rebuild_definitions(self):
        """Recompute everything derived from the device list and the binding config."""
        self.reflector.update_device_tables()
        bindings = expand_templates(self.cfg)
        logger.debug("Expanded %d bindings", len(bindings))
        self.mapper.set_bindings(bindings)
        self.reflector.set_bindings(bindings)

    async def update_configuration(self):
        """Full reload of the server snapshot, then rebuild definitions and recheck all feedbacks."""
        loads = {
            "devices": self.store.load_devices(),
            "presets": self.store.load_presets(),
            "faces": self.store.load_faces(),
            "live inputs": self.store.load_live_inputs(),
            "active presets": self.store.load_active_preset_map(),
            "autocut": self.store.load_autocut_running(),
            "speaker override": self.store.load_override_dominant_speaker(),
        }
        results = await asyncio.gather(*loads.values(), return_exceptions=True)
        for name, res in zip(loads, results):
            if isinstance(res, BackendError):
                logger.error("Error loading %s - %s", name, res)
            elif isinstance(res, Exception):
                logger.error("Error loading %s", name, exc_info=res)
        self.rebuild_definitions()
        self.reflector.check_feedbacks()
        logger.info("Configuration updated: %d devices, %d presets", len(self.store.devices), len(self.store.presets))

    async def _pump_events(self):
        while True:
            ev = await self.event_queue.get()
            logger.debug("[EVENT] device=%s control=%s value=%s", ev.device, ev.control, ev.value)
            await self.mapper.handle_event(ev)

    async def _run_devices(self):
        for d in self.devices:
            logger.debug("Starting device task: %s", d.device_name)
        await asyncio.gather(*(d.run() for d in self.devices))

    async def run(self):
        loop = asyncio.get_running_loop()

        await self.update_configuration()

        for name, bus in self.buses.items():
            if (self.cfg["devices"].get(name) or {}).get("reset_leds_on_start", True):
                bus.all_notes_off()
        self.reflector.check_feedbacks()

        self.events = GuiEventStream(self.backend.gui_stream_url(), self.sync.handle)
        self.events.start(loop)

        tasks = [
            asyncio.create_task(self._pump_events()),
            asyncio.create_task(self._run_devices()),
            asyncio.create_task(self.reflector.run()),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            self.events.stop()
            for bus in self.buses.values():
                bus.close()


def main():
    cfg_path = sys.argv[1] if len(sys.argv) > 1 else "config.yml"
    cfg = load_config(cfg_path)
    setup_logging(cfg.get("log_level", "INFO"))
    logger.info("Booting auto preset bridge (config=%s)", cfg_path)

    app = App(cfg)
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Shutting down (KeyboardInterrupt)")
    except Exception as e:
        logger.exception("Fatal error: %s", e)


if __name__ == "__main__":
    main()
