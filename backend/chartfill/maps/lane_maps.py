# Drum lane conventions. Lane ids are the chart's raw note types:
# 0 kick, 1 red, 2 yellow, 3 blue, 4 orange/green (4-lane), 5 green (5-lane).
from chartfill.models.fill import DrumVoice, LaneMap

CLONE_HERO = LaneMap(
    name="clone_hero",
    voices={
        0: DrumVoice.kick,
        1: DrumVoice.snare,
        2: DrumVoice.hat,
        3: DrumVoice.tom,
        4: DrumVoice.cymbal,
        5: DrumVoice.tom,
    },
)

ROCK_BAND_4 = LaneMap(
    name="rock_band_4",
    voices={
        0: DrumVoice.kick,
        1: DrumVoice.snare,
        2: DrumVoice.tom,
        3: DrumVoice.tom,
        4: DrumVoice.cymbal,
        5: DrumVoice.hat,
    },
)

# Pro drums: pads are toms unless the note carries a cymbal marker
PRO_DRUMS = LaneMap(
    name="pro_drums",
    voices={
        0: DrumVoice.kick,
        1: DrumVoice.snare,
        2: DrumVoice.tom,
        3: DrumVoice.tom,
        4: DrumVoice.tom,
        5: DrumVoice.tom,
    },
    cymbal_voices={
        2: DrumVoice.hat,
        3: DrumVoice.cymbal,
        4: DrumVoice.cymbal,
    },
)

LANE_MAPS = {m.name: m for m in (CLONE_HERO, ROCK_BAND_4, PRO_DRUMS)}


def get_lane_map(name: str) -> LaneMap:
    """Look up a built-in lane map by name (case-insensitive)."""
    lane_map = LANE_MAPS.get(name.strip().lower())
    if lane_map is None:
        raise KeyError(f"Unknown lane map '{name}', expected one of {sorted(LANE_MAPS)}")
    return lane_map
