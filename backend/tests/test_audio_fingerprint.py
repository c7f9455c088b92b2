"""Tests for stem selection, the worker pool and audio fingerprinting."""

import io
import threading

import numpy as np
import pytest
import soundfile as sf

from chartfill.models.scan import ChartFile, FolderIssueType
from chartfill.services.audio_fingerprint import (
    HASH_COUNT,
    choose_audio_filter,
    combine_stems,
    fingerprint_hashes,
    get_audio_fingerprint,
    select_audio_stems,
)
from chartfill.services.worker_pool import WorkerPool

SAMPLE_RATE = 22050


def _wav(name: str, seconds: float = 1.0, freq: float = 440.0) -> ChartFile:
    t = np.arange(int(SAMPLE_RATE * seconds)) / SAMPLE_RATE
    signal = 0.5 * np.sin(2 * np.pi * freq * t) + 0.2 * np.sin(2 * np.pi * freq * 2.5 * t)
    buffer = io.BytesIO()
    sf.write(buffer, signal.astype(np.float32), SAMPLE_RATE, format="WAV")
    return ChartFile(name=name, data=buffer.getvalue())


@pytest.fixture
def pool():
    with WorkerPool(max_workers=2) as worker_pool:
        yield worker_pool


def test_stem_selection() -> None:
    files = [
        ChartFile(name=name, data=b"")
        for name in ("song.ogg", "drums_1.ogg", "preview.ogg", "guitar.mp3", "guitar.ogg", "backing.ogg", "album.png")
    ]
    stems, issues = select_audio_stems(files)
    assert [s.name for s in stems] == ["drums_1.ogg", "guitar.mp3", "song.ogg"]
    assert [i.folder_issue for i in issues] == [FolderIssueType.invalid_audio, FolderIssueType.multiple_audio]


def test_folder_without_audio(pool) -> None:
    result = get_audio_fingerprint([ChartFile(name="preview.ogg", data=b"")], pool)
    assert result.audio_hash == []
    assert result.audio_length is None
    assert result.errors == ["This chart doesn't have an audio file."]


def test_audio_filter_choice() -> None:
    assert choose_audio_filter([30.0], 100.0) == "merge"
    assert choose_audio_filter([200.0, 150.0], 100.0) == "merge"
    assert choose_audio_filter([200.0, 50.0], 100.0) == "mix"
    assert choose_audio_filter([200.0] * 5, 100.0) == "mix"


def test_combine_stems_merge_truncates_and_mix_pads() -> None:
    short, long = np.ones(4), np.full(6, 3.0)
    np.testing.assert_array_equal(combine_stems([short, long], "merge"), np.full(4, 2.0))
    mixed = combine_stems([short, long], "mix")
    assert mixed.shape == (6,)
    np.testing.assert_array_equal(mixed[4:], [1.5, 1.5])


def test_empty_signal_still_has_a_signature() -> None:
    signature = fingerprint_hashes([])
    assert len(signature) == HASH_COUNT
    assert signature == fingerprint_hashes([])


def test_fingerprint_is_deterministic(pool) -> None:
    files = [_wav("song.wav"), _wav("drums.wav", freq=220.0)]
    first = get_audio_fingerprint(files, pool, sample_rate=SAMPLE_RATE)
    second = get_audio_fingerprint(list(reversed(files)), pool, sample_rate=SAMPLE_RATE)

    assert first.errors == []
    assert len(first.audio_hash) == HASH_COUNT
    assert all(isinstance(v, int) for v in first.audio_hash)
    assert first.audio_length == 1
    assert first.audio_hash == second.audio_hash


def test_unreadable_stem_reports_errors(pool) -> None:
    files = [_wav("song.wav"), ChartFile(name="guitar.ogg", data=b"not audio")]
    result = get_audio_fingerprint(files, pool)
    assert result.audio_hash == []
    assert result.audio_length is None
    assert len(result.errors) == 1
    assert "guitar.ogg" in result.errors[0]


def test_failing_job_does_not_affect_siblings(pool) -> None:
    def invert(x: int) -> float:
        return 1 / x

    results = pool.run_all(invert, [1, 0, 4])
    assert [r.ok for r in results] == [True, False, True]
    assert results[2].value == 0.25
    assert "division" in results[1].error


def test_pool_must_be_started() -> None:
    pool = WorkerPool(max_workers=1)
    with pytest.raises(RuntimeError):
        pool.submit_job(print)
    with pytest.raises(ValueError):
        WorkerPool(max_workers=0)


def test_stop_cancels_pending_jobs() -> None:
    started, release = threading.Event(), threading.Event()

    def block() -> bool:
        started.set()
        return release.wait(5)

    pool = WorkerPool(max_workers=1).start()
    blocking = pool.submit_job(block)
    pending = pool.submit_job(print, "never runs")
    assert started.wait(5)

    pool.stop()
    release.set()

    assert pending.cancelled()
    assert blocking.result().ok
    assert not pool.running
