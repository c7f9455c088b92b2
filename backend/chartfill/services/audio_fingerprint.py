"""Audio fingerprint of a song folder's stems.

Each stem's duration is probed, the stems are combined into one mono signal,
spectral peak pairs (landmarks) are hashed, and the hash set is reduced to a
fixed-length SuperMinHash signature. Two folders with the same audio produce
the same signature, so it can be used to match charts of the same song.
"""

import io
import logging
from pathlib import PurePath

import librosa
import numpy as np
import soundfile as sf

from chartfill.config import settings
from chartfill.models.scan import AudioFingerprintResult, ChartFile, FolderIssue, FolderIssueType
from chartfill.services.worker_pool import WorkerPool

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {".ogg", ".mp3", ".wav", ".opus"}
STEM_NAMES = {
    "song", "guitar", "bass", "rhythm", "keys", "vocals", "vocals_1", "vocals_2",
    "drums", "drums_1", "drums_2", "drums_3", "drums_4", "crowd", "preview",
}
# Not part of the song mix
EXCLUDED_STEMS = {"preview", "crowd"}

HASH_SIZE = 32  # bits per hash
HASH_COUNT = 9  # values per signature
MAX_STEMS = 4  # more stems than this are always mixed
MAX_HASH_VALUE = 2147483647  # largest signed 32-bit int
EMPTY_SIGNAL_HASHES = (400, 200)

# Landmark extraction
N_FFT = 512
HOP_LENGTH = 256
MIN_PEAK_DB = -60.0  # relative to the loudest bin
PEAKS_PER_FRAME = 5
TARGET_ZONE_FRAMES = 32
FAN_OUT = 3


def select_audio_stems(files: list[ChartFile]) -> tuple[list[ChartFile], list[FolderIssue]]:
    """Return the stems that make up the song mix, plus folder issues."""
    issues: list[FolderIssue] = []
    stems: list[ChartFile] = []
    seen: set[str] = set()

    for file in sorted(files, key=lambda f: f.name):
        path = PurePath(file.name)
        if path.suffix.lower() not in AUDIO_EXTENSIONS:
            continue
        stem = path.stem.lower()
        if stem not in STEM_NAMES:
            issues.append(FolderIssue(
                folder_issue=FolderIssueType.invalid_audio,
                description=f'"{file.name}" is not a valid audio stem name.',
            ))
            continue
        if stem in seen:
            issues.append(FolderIssue(
                folder_issue=FolderIssueType.multiple_audio,
                description=f'This chart has more than one "{stem}" audio file.',
            ))
            continue
        seen.add(stem)
        if stem not in EXCLUDED_STEMS:
            stems.append(file)

    if not stems:
        issues.append(FolderIssue(
            folder_issue=FolderIssueType.no_audio,
            description="This chart doesn't have an audio file.",
        ))
    return stems, issues


def probe_duration(file: ChartFile) -> float:
    """Stem length in seconds."""
    try:
        return float(sf.info(io.BytesIO(file.data)).duration)
    except RuntimeError as e:
        raise ValueError(f"Failed to read audio duration of {file.name}: {e}") from e


def choose_audio_filter(lengths: list[float], stream_duration: float) -> str:
    """"mix" when stems are short or numerous, otherwise "merge"."""
    if len(lengths) > MAX_STEMS:
        return "mix"
    if len(lengths) > 1 and min(lengths) < stream_duration:
        return "mix"
    return "merge"


def load_stem(file: ChartFile, sample_rate: int, stream_duration: float) -> np.ndarray:
    signal, _ = librosa.load(io.BytesIO(file.data), sr=sample_rate, mono=True, duration=stream_duration)
    return signal


def combine_stems(signals: list[np.ndarray], audio_filter: str) -> np.ndarray:
    """Average stems into one signal.

    "merge" truncates to the shortest stem, "mix" pads to the longest.
    """
    if not signals:
        return np.zeros(0, dtype=np.float32)
    if audio_filter == "mix" or len(signals) > MAX_STEMS:
        length = max(len(s) for s in signals)
        stacked = np.stack([np.pad(s, (0, length - len(s))) for s in signals])
    else:
        length = min(len(s) for s in signals)
        stacked = np.stack([s[:length] for s in signals])
    return stacked.mean(axis=0)


def landmark_hashes(signal: np.ndarray) -> list[int]:
    """Hash pairs of nearby spectral peaks as (f1, f2, dt)."""
    if signal.size < N_FFT:
        return []
    spectrum = np.abs(librosa.stft(signal, n_fft=N_FFT, hop_length=HOP_LENGTH))
    db = librosa.amplitude_to_db(spectrum, ref=np.max)

    peaks: list[tuple[int, int]] = []
    for frame in range(db.shape[1]):
        column = db[:, frame]
        inner = column[1:-1]
        is_peak = (inner > column[:-2]) & (inner >= column[2:]) & (inner > MIN_PEAK_DB)
        bins = np.nonzero(is_peak)[0] + 1
        if bins.size == 0:
            continue
        strongest = bins[np.argsort(column[bins])[::-1][:PEAKS_PER_FRAME]]
        peaks.extend((frame, int(f)) for f in sorted(strongest))

    hashes: list[int] = []
    for i, (t1, f1) in enumerate(peaks):
        paired = 0
        for t2, f2 in peaks[i + 1 :]:
            dt = t2 - t1
            if dt == 0:
                continue
            if dt > TARGET_ZONE_FRAMES:
                break
            hashes.append((f1 << 15) | (f2 << 6) | dt)
            paired += 1
            if paired >= FAN_OUT:
                break
    return hashes


class SuperMinHash:
    """SuperMinHash signature (Ertl, 2017) seeded per input value."""

    def __init__(self, out_len: int):
        if out_len < 1:
            raise ValueError("out_len has to be >= 1")
        self.out_len = out_len
        self.h = [float(2**53 - 1)] * out_len
        self.p = list(range(out_len))
        self.q = [-1] * out_len
        self.b = [0] * out_len
        self.b[-1] = out_len
        self.i = 0
        self.a = out_len - 1

    def push(self, d: int) -> None:
        rng = np.random.default_rng(d)
        j = 0
        while j < self.a:
            r = rng.random()
            k = int(rng.integers(j, self.out_len))
            if self.q[j] != self.i:
                self.q[j] = self.i
                self.p[j] = j
            if self.q[k] != self.i:
                self.q[k] = self.i
                self.p[k] = k
            self.p[j], self.p[k] = self.p[k], self.p[j]

            rj = r + j
            pj = self.p[j]
            if rj < self.h[pj]:
                jc = min(int(self.h[pj]), self.out_len - 1)
                self.h[pj] = rj
                if j < jc:
                    self.b[jc] -= 1
                    self.b[j] += 1
                    while self.b[self.a] == 0:
                        self.a -= 1
            j += 1
        self.i += 1

    def signature(self) -> list[int]:
        return [min(round(h * HASH_SIZE**2), MAX_HASH_VALUE) for h in self.h]


def fingerprint_hashes(hashes: list[int]) -> list[int]:
    sig = SuperMinHash(HASH_COUNT)
    for value in hashes or EMPTY_SIGNAL_HASHES:
        sig.push(value)
    return sig.signature()


def calculate_fingerprint(
    stems: list[ChartFile], audio_filter: str, stream_duration: float, sample_rate: int
) -> list[int]:
    signals = [load_stem(stem, sample_rate, stream_duration) for stem in stems]
    combined = combine_stems(signals, audio_filter)
    return fingerprint_hashes(landmark_hashes(combined))


def get_audio_fingerprint(
    files: list[ChartFile],
    pool: WorkerPool,
    stream_duration: float | None = None,
    sample_rate: int | None = None,
) -> AudioFingerprintResult:
    """Fingerprint a song folder's audio on `pool`.

    Probe failures are collected, not raised: any failed stem gives an empty
    hash and no length, with every stem's error listed.
    """
    stream_duration = stream_duration or settings.stream_duration
    sample_rate = sample_rate or settings.fingerprint_sample_rate

    stems, issues = select_audio_stems(files)
    if not stems:
        return AudioFingerprintResult(errors=[issue.description for issue in issues])

    probes = pool.run_all(probe_duration, stems)
    errors = [result.error for result in probes if not result.ok]
    if errors:
        logger.warning(f"Audio probe failed for {len(errors)} of {len(stems)} stems")
        return AudioFingerprintResult(errors=errors)

    lengths = [result.value for result in probes]
    audio_length = round(max(lengths))
    audio_filter = choose_audio_filter(lengths, stream_duration)

    job = pool.submit_job(calculate_fingerprint, stems, audio_filter, stream_duration, sample_rate).result()
    if not job.ok:
        logger.warning(f"Audio fingerprint failed: {job.error}")
        return AudioFingerprintResult(audio_length=audio_length, errors=[job.error])

    logger.info(f"Fingerprinted {len(stems)} stems ({audio_filter}), {audio_length}s")
    return AudioFingerprintResult(audio_hash=job.value, audio_length=audio_length)
