import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)


class BackendError(RuntimeError):
    pass


def normalize_host(host: str) -> str:
    host = (host or "").strip()
    return "127.0.0.1" if host == "localhost" else host


class MiruBackend:
    """
    Blocking HTTP client for the camera server REST API.

    Fetches return the decoded JSON (or a derived value); actions return
    nothing. Any transport error or non-2xx response raises BackendError.
    """

    def __init__(self, host: str, port: int, username: str = "", password: str = "", timeout: float = 2.0):
        self.base_url = f"http://{normalize_host(host)}:{int(port)}"
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        if username and password:
            self.session.auth = (username, password)
        logger.debug("[backend] base url %s", self.base_url)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = self.base_url + path
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise BackendError(f"{method} {url} failed: {e}") from e
        if not resp.ok:
            raise BackendError(f"{method} {url} returned {resp.status_code} {resp.reason}")
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    def _get(self, path: str, **kwargs) -> Any:
        return self._request("GET", path, **kwargs)

    def _post(self, path: str, **kwargs) -> Any:
        return self._request("POST", path, **kwargs)

    # -------------------- snapshot fetches --------------------

    def load_devices(self) -> List[Dict]:
        return self._get("/api/devices") or []

    def list_presets(self) -> List[Dict]:
        project = self._get("/api/projects/active") or {}
        presets = project.get("presets") or []
        # preview images are large and never needed here
        return [{k: v for k, v in p.items() if k != "previewBase64"} for p in presets]

    def list_faces(self) -> List[Dict]:
        return self._get("/api/faces/persistent") or []

    def get_live_inputs(self) -> List[str]:
        data = self._get("/api/switcher") or {}
        if data.get("connectionStatus") != "CONNECTED":
            logger.warning("[backend] switcher not connected")
            return []
        return [str(p) for p in data.get("programs") or []]

    def load_active_preset_map(self) -> Dict[str, Dict]:
        return self._get("/api/projects/active/presets/active") or {}

    def is_autocut_running(self) -> bool:
        data = self._get("/api/autocut") or {}
        return bool(data.get("running", False))

    def load_override_dominant_speaker(self) -> Optional[int]:
        data = self._get("/api/autocut/overrideDominantSpeaker") or {}
        return data.get("id")

    # -------------------- preset actions --------------------

    def play_preset(self, preset_id: int, force: bool = False) -> None:
        self._post(f"/api/projects/active/presets/{int(preset_id)}/play",
                   params={"force": "true" if force else "false"})

    def overwrite_preset(self, preset_id: int) -> None:
        self._post(f"/api/projects/active/presets/{int(preset_id)}/overwrite")

    def gui_stream_url(self) -> str:
        return self.base_url + "/api/stream/gui"
