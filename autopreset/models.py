import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Component id prefixes used in a device's feedback map, e.g. "INPUT_VIDEO",
# "DIRECTOR_HEAD_TRACKING", "CONTROLLER_VISCA"
INPUT = "INPUT"
CONTROLLER = "CONTROLLER"
DIRECTOR = "DIRECTOR"


@dataclass
class ComponentFeedback:
    state: Optional[str] = None   # RUNNING | OFF | ERROR | ...

    @classmethod
    def from_api(cls, raw: Optional[dict]) -> "ComponentFeedback":
        raw = raw or {}
        return cls(state=raw.get("state"))


@dataclass
class HeadTrackingSettings:
    target_shot_size: Optional[str] = None   # WIDE | MEDIUM | CLOSE_UP


@dataclass
class PersonTrackerSettings:
    tracking_mode: Optional[str] = None      # SINGLE | ALL | MANUAL
    target_face_id: Optional[int] = None


@dataclass
class Device:
    id: int
    name: str = "Unknown"
    switcher_input: Optional[str] = None
    head_tracking: Optional[HeadTrackingSettings] = None
    person_tracker: Optional[PersonTrackerSettings] = None
    feedback: Dict[str, ComponentFeedback] = field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: dict) -> Optional["Device"]:
        if not isinstance(raw, dict) or raw.get("id") is None:
            logger.warning("[models] skipping device without id: %r", raw)
            return None
        try:
            components = raw.get("components") or {}
            if not isinstance(components, dict):
                components = {}
            htd = components.get("headTrackingDirector")
            tracker = components.get("personTracker")
            feedback = raw.get("feedback") or {}
            if not isinstance(feedback, dict):
                feedback = {}
            return cls(
                id=int(raw["id"]),
                name=raw.get("name") or "Unknown",
                switcher_input=raw.get("switcherInput"),
                head_tracking=HeadTrackingSettings(htd.get("targetShotSize")) if isinstance(htd, dict) else None,
                person_tracker=PersonTrackerSettings(
                    tracker.get("trackingMode"), tracker.get("targetFaceId")
                ) if isinstance(tracker, dict) else None,
                feedback={str(k): ComponentFeedback.from_api(v) for k, v in feedback.items()},
            )
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("[models] skipping malformed device %r: %s", raw.get("id"), e)
            return None

    def component_of_type(self, kind: str) -> Optional[str]:
        """First component id in the feedback map starting with INPUT/CONTROLLER/DIRECTOR."""
        for component in self.feedback:
            if component.startswith(kind):
                return component
        return None

    def is_component_enabled(self, kind: str) -> bool:
        component = self.component_of_type(kind)
        if component is None:
            return False
        return self.feedback[component].state != "OFF"

    def component_state(self, kind: str) -> Optional[str]:
        component = self.component_of_type(kind)
        return self.feedback[component].state if component else None

    @property
    def input_type(self) -> Optional[str]:
        component = self.component_of_type(INPUT)
        if component is None:
            return None
        return "AUDIO" if component == "INPUT_AUDIO" else "VIDEO"

    @property
    def director_type(self) -> Optional[str]:
        component = self.component_of_type(DIRECTOR)
        if component is None:
            return None
        if component in ("DIRECTOR_HEAD_TRACKING", "DIRECTOR_LECTURE"):
            return component
        return "DIRECTOR_AUTO_MOVE"


def video_device_fingerprint(devices: List[Device]) -> List[str]:
    """Sorted id/type/director signature of the video-capable devices."""
    return sorted(
        f"{d.id}|type:{d.input_type}|director:{d.director_type}"
        for d in devices
        if d.input_type == "VIDEO"
    )


@dataclass
class PresetCommand:
    device_id: Optional[int] = None


@dataclass
class Preset:
    id: int
    name: str = "Unknown"
    instrument: Optional[str] = None
    commands: List[PresetCommand] = field(default_factory=list)

    @classmethod
    def from_api(cls, raw: dict) -> Optional["Preset"]:
        if not isinstance(raw, dict) or raw.get("id") is None:
            logger.warning("[models] skipping preset without id: %r", raw)
            return None
        try:
            commands = []
            for c in raw.get("commands") or []:
                if not isinstance(c, dict):
                    continue
                dev = c.get("deviceId")
                commands.append(PresetCommand(int(dev) if dev is not None else None))
            metadata = raw.get("metadata")
            if not isinstance(metadata, dict):
                metadata = {}
            return cls(
                id=int(raw["id"]),
                name=raw.get("name") or "Unknown",
                instrument=metadata.get("instrument"),
                commands=commands,
            )
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("[models] skipping malformed preset %r: %s", raw.get("id"), e)
            return None


@dataclass
class ActivePreset:
    id: Optional[int] = None

    @classmethod
    def from_api(cls, raw: Any) -> "ActivePreset":
        if isinstance(raw, dict) and raw.get("id") is not None:
            try:
                return cls(int(raw["id"]))
            except (TypeError, ValueError):
                logger.warning("[models] unreadable active preset id: %r", raw.get("id"))
        return cls()


@dataclass
class Face:
    id: int
    name: str = ""

    @classmethod
    def from_api(cls, raw: Any) -> Optional["Face"]:
        if not isinstance(raw, dict) or raw.get("id") is None:
            logger.warning("[models] skipping face without id: %r", raw)
            return None
        try:
            return cls(int(raw["id"]), str(raw.get("name") or ""))
        except (TypeError, ValueError):
            logger.warning("[models] skipping malformed face %r", raw.get("id"))
            return None


# -------------------- Persisted bank model --------------------

@dataclass(frozen=True)
class AutoButton:
    """Stable identity of a physical control location, e.g. "apc40/note/53/0"."""
    id: str


@dataclass
class Bank:
    """
    Buttons learned for one learn button, in learned order, plus the
    preset filter they resolve through.

    NOTE: binding is positional. Button i resolves to whatever preset sits at
    position i of the filtered/sorted list, so the preset behind a button can
    change when the remote preset list changes shape.
    """
    buttons: List[AutoButton] = field(default_factory=list)
    devices: List[int] = field(default_factory=list)
    instrument_groups: List[str] = field(default_factory=list)  # empty = any group
    display_device_name: bool = False

    def to_dict(self) -> dict:
        return {
            "buttons": [{"id": b.id} for b in self.buttons],
            "devices": list(self.devices),
            "instrumentGroups": list(self.instrument_groups),
            "displayDeviceName": bool(self.display_device_name),
        }

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "Bank":
        raw = raw or {}
        return cls(
            buttons=[AutoButton(str(b["id"])) for b in raw.get("buttons") or [] if isinstance(b, dict) and "id" in b],
            devices=[int(d) for d in raw.get("devices") or []],
            instrument_groups=[str(g) for g in raw.get("instrumentGroups") or []],
            display_device_name=bool(raw.get("displayDeviceName", False)),
        )
