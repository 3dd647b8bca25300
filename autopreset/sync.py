import asyncio
import json
import logging
import threading
from typing import Awaitable, Callable, Dict, Iterable, Iterator, Optional, Set, Tuple

import requests

from .backend import BackendError

logger = logging.getLogger(__name__)

RECONFIGURE = "reconfigure"
DIRECTOR_FEEDBACKS = ("shot_size", "tracking_mode", "enabled_director", "director_status")

# tag -> (store reload, feedbacks to recheck afterwards)
TAG_TABLE: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "DEVICES_UPDATED": (RECONFIGURE, ()),
    "PERSONS_UPDATED": (RECONFIGURE, ()),
    "PROJECT_UPDATED": (RECONFIGURE, ()),
    "COMPONENTS_UPDATED": ("load_devices", DIRECTOR_FEEDBACKS),
    "ACTIVE_PRESET_UPDATED": ("load_active_preset_map", ("active_preset", "auto_preset")),
    "SWITCHER_STATE_UPDATED": ("load_live_inputs", ("live_device",)),
    "AUTO_CUT_UPDATED": ("load_autocut_running", ("auto_cut",)),
    "AUTO_CUT_SPEAKER_OVERRIDE_UPDATED": ("load_override_dominant_speaker", ("speaker_override",)),
}


class SyncDriver:
    """
    Turns server change notifications into store reloads plus feedback
    rechecks. handle() never waits for the reload; the recheck runs once
    the reload has finished (or its failure has been logged).
    """

    def __init__(
        self,
        store,
        update_configuration: Callable[[], Awaitable[None]],
        check_feedbacks: Callable[..., None],
    ):
        self.store = store
        self.update_configuration = update_configuration
        self.check_feedbacks = check_feedbacks
        self._tasks: Set[asyncio.Task] = set()

    def handle(self, tag: str) -> Optional[asyncio.Task]:
        entry = TAG_TABLE.get(tag)
        if entry is None:
            logger.debug("[sync] ignoring update %s", tag)
            return None
        logger.debug("[sync] %s", tag)
        task = asyncio.get_running_loop().create_task(self._run(tag, *entry))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, tag: str, reload: str, feedbacks: Tuple[str, ...]) -> None:
        try:
            if reload == RECONFIGURE:
                await self.update_configuration()
                return
            result = await getattr(self.store, reload)()
            if reload == "load_devices" and result:
                logger.debug("[sync] video devices changed, rebuilding definitions")
                await self.update_configuration()
        except BackendError as e:
            logger.error("[sync] %s: %s failed - %s", tag, reload, e)
            return
        except Exception:
            logger.exception("[sync] %s: %s failed", tag, reload)
            return
        if feedbacks:
            self.check_feedbacks(*feedbacks)

    async def drain(self) -> None:
        """Wait for every reload started so far."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield the data payload of each server-sent event (multi-line data joined by \\n)."""
    buf = []
    for line in lines:
        if line is None:
            continue
        line = line.rstrip("\r")
        if line == "":
            if buf:
                yield "\n".join(buf)
                buf = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            buf.append(value[1:] if value.startswith(" ") else value)
    if buf:
        yield "\n".join(buf)


def tag_of(payload: str) -> Optional[str]:
    try:
        data = json.loads(payload)
    except ValueError:
        logger.warning("[sync] unreadable event payload: %r", payload)
        return None
    if not isinstance(data, dict):
        return None
    return data.get("type")


class GuiEventStream:
    """
    Server-sent event reader for /api/stream/gui.

    Reads on a daemon thread (requests streaming is blocking) and hands every
    event tag to `on_tag` on the asyncio loop, one at a time, in arrival
    order. Reconnects after `retry_seconds` when the stream drops.
    """

    def __init__(self, url: str, on_tag: Callable[[str], None], session: Optional[requests.Session] = None,
                 retry_seconds: float = 3.0):
        self.url = url
        self.on_tag = on_tag
        self.session = session or requests.Session()
        self.retry_seconds = retry_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._thread = threading.Thread(target=self._reader, name="gui-event-stream", daemon=True)
        self._thread.start()
        logger.info("[sync] listening for updates on %s", self.url)

    def stop(self) -> None:
        self._stop.set()

    def _reader(self) -> None:
        while not self._stop.is_set():
            try:
                with self.session.get(self.url, stream=True, timeout=(5.0, None),
                                      headers={"Accept": "text/event-stream"}) as resp:
                    resp.raise_for_status()
                    for payload in iter_sse_data(resp.iter_lines(decode_unicode=True)):
                        if self._stop.is_set():
                            return
                        tag = tag_of(payload)
                        if tag:
                            self._loop.call_soon_threadsafe(self.on_tag, tag)
            except requests.RequestException as e:
                logger.warning("[sync] event stream error: %s; retrying in %.1fs", e, self.retry_seconds)
            self._stop.wait(self.retry_seconds)
