from collections import Counter

import pytest

from chartfill.maps.lane_maps import CLONE_HERO, PRO_DRUMS, ROCK_BAND_4, get_lane_map
from chartfill.models.chart import NoteEvent, NoteFlag
from chartfill.models.fill import DrumVoice
from chartfill.services.voice_mapper import (
    count_notes_by_voice,
    group_notes_by_voice,
    map_note_to_voice,
    voice_for_note,
    voice_ratios,
)


def _note(note_type: int, flags: int = NoteFlag.none, tick: int = 0) -> NoteEvent:
    return NoteEvent(tick=tick, ms_time=0.0, length=0, ms_length=0.0, type=note_type, flags=flags)


@pytest.mark.parametrize(
    "lane_map, lane, voice",
    [
        (CLONE_HERO, 2, DrumVoice.hat),
        (CLONE_HERO, 5, DrumVoice.tom),
        (ROCK_BAND_4, 2, DrumVoice.tom),
        (ROCK_BAND_4, 5, DrumVoice.hat),
        (PRO_DRUMS, 4, DrumVoice.tom),
    ],
)
def test_lane_lookup(lane_map, lane: int, voice: DrumVoice) -> None:
    assert map_note_to_voice(lane, lane_map) == voice


def test_unmapped_lane_is_unknown() -> None:
    assert map_note_to_voice(9, CLONE_HERO) == DrumVoice.unknown


def test_cymbal_flag_switches_pro_drums_voice() -> None:
    assert voice_for_note(_note(3), PRO_DRUMS) == DrumVoice.tom
    assert voice_for_note(_note(3, NoteFlag.cymbal), PRO_DRUMS) == DrumVoice.cymbal
    assert voice_for_note(_note(2, NoteFlag.cymbal), PRO_DRUMS) == DrumVoice.hat
    # Maps without cymbal voices ignore the flag
    assert voice_for_note(_note(3, NoteFlag.cymbal), CLONE_HERO) == DrumVoice.tom


def test_grouping_and_counting() -> None:
    notes = [_note(0), _note(2, tick=96), _note(2, tick=192), _note(9, tick=288)]
    groups = group_notes_by_voice(notes, CLONE_HERO)
    assert [n.tick for n in groups[DrumVoice.hat]] == [96, 192]
    assert groups[DrumVoice.snare] == []

    counts = count_notes_by_voice(notes, CLONE_HERO)
    assert counts[DrumVoice.unknown] == 1
    assert counts[DrumVoice.kick] == 1


def test_ratios_ignore_unknown_voices() -> None:
    ratios = voice_ratios(Counter({DrumVoice.kick: 1, DrumVoice.hat: 3, DrumVoice.unknown: 4}))
    assert ratios[DrumVoice.hat] == 0.75
    assert ratios[DrumVoice.kick] == 0.25
    assert sum(ratios.values()) == pytest.approx(1.0)


def test_ratios_of_empty_window() -> None:
    assert set(voice_ratios(Counter()).values()) == {0.0}


def test_get_lane_map() -> None:
    assert get_lane_map(" Rock_Band_4 ") is ROCK_BAND_4
    with pytest.raises(KeyError):
        get_lane_map("guitar_hero")
