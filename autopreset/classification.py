"""Instrument -> group classification, group ordering and group colours.

The table maps an instrument group to the instrument names (lowercase) it
contains. Group order is the table order; anything unknown lands in
"Other", which always sorts last.
"""

from typing import Dict, List, Optional, Tuple

from .models import Preset

UNKNOWN_INSTRUMENT = "Unknown"
OTHER_GROUP = "Other"

DEFAULT_INSTRUMENT_GROUPS: Dict[str, List[str]] = {
    "Speech": ["speaker", "moderator", "pulpit", "lectern", "podium"],
    "Vocals": ["vocals", "lead vocals", "backing vocals", "choir", "singer"],
    "Keys": ["piano", "keys", "keyboard", "organ", "synth"],
    "Strings": ["guitar", "electric guitar", "acoustic guitar", "bass", "violin", "viola", "cello", "double bass", "harp"],
    "Winds": ["flute", "clarinet", "oboe", "bassoon", "saxophone", "trumpet", "trombone", "horn", "tuba"],
    "Drums": ["drums", "percussion", "cajon", "timpani"],
    "Overview": ["stage", "total", "overview", "audience"],
}

# RGB as 0xRRGGBB, the same notation the button styles use
DEFAULT_GROUP_COLORS: Dict[str, int] = {
    "Speech": 0x2B4C7E,
    "Vocals": 0x7A1F5C,
    "Keys": 0x1F5C7A,
    "Strings": 0x7A4A1F,
    "Winds": 0x3C6E1F,
    "Drums": 0x6E1F1F,
    "Overview": 0x404040,
    OTHER_GROUP: 0x000000,
}


class InstrumentClassifier:
    def __init__(self, groups: Optional[Dict[str, List[str]]] = None, colors: Optional[Dict[str, int]] = None):
        self.groups = dict(groups or DEFAULT_INSTRUMENT_GROUPS)
        self.colors = dict(DEFAULT_GROUP_COLORS)
        self.colors.update(colors or {})
        self._order = {name: i for i, name in enumerate(self.groups)}
        self._lookup = {
            instrument.strip().lower(): group
            for group, instruments in self.groups.items()
            for instrument in instruments
        }

    def classify(self, instrument: Optional[str]) -> str:
        return self._lookup.get((instrument or UNKNOWN_INSTRUMENT).strip().lower(), OTHER_GROUP)

    def group_of(self, preset: Preset) -> str:
        return self.classify(preset.instrument)

    def color_for(self, instrument: Optional[str]) -> int:
        return self.colors.get(self.classify(instrument), 0x000000)

    def sort_key(self, preset: Preset) -> Tuple[int, str, int]:
        group = self.group_of(preset)
        rank = self._order.get(group, len(self._order))
        return rank, (preset.instrument or UNKNOWN_INSTRUMENT).lower(), preset.id

    def compare(self, a: Preset, b: Preset) -> int:
        ka, kb = self.sort_key(a), self.sort_key(b)
        return (ka > kb) - (ka < kb)
