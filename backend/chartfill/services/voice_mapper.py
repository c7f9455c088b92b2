from collections import Counter

from chartfill.models.chart import NoteEvent, NoteFlag
from chartfill.models.fill import DrumVoice, LaneMap

CLASSIFIED_VOICES = (DrumVoice.kick, DrumVoice.snare, DrumVoice.hat, DrumVoice.tom, DrumVoice.cymbal)


def map_note_to_voice(note_type: int, lane_map: LaneMap) -> DrumVoice:
    """Plain lane lookup; lanes the map doesn't know are `unknown`."""
    return lane_map.voices.get(note_type, DrumVoice.unknown)


def voice_for_note(note: NoteEvent, lane_map: LaneMap) -> DrumVoice:
    """Lane lookup that honors the note's cymbal marker."""
    if note.flags & NoteFlag.cymbal and note.type in lane_map.cymbal_voices:
        return lane_map.cymbal_voices[note.type]
    return map_note_to_voice(note.type, lane_map)


def group_notes_by_voice(notes: list[NoteEvent], lane_map: LaneMap) -> dict[DrumVoice, list[NoteEvent]]:
    groups: dict[DrumVoice, list[NoteEvent]] = {voice: [] for voice in DrumVoice}
    for note in notes:
        groups[voice_for_note(note, lane_map)].append(note)
    return groups


def count_notes_by_voice(notes: list[NoteEvent], lane_map: LaneMap) -> Counter:
    return Counter(voice_for_note(note, lane_map) for note in notes)


def voice_ratios(counts: Counter) -> dict[DrumVoice, float]:
    """Share of each voice among notes that classified as a known voice."""
    classified = sum(counts[voice] for voice in CLASSIFIED_VOICES)
    if classified == 0:
        return {voice: 0.0 for voice in CLASSIFIED_VOICES}
    return {voice: counts[voice] / classified for voice in CLASSIFIED_VOICES}
