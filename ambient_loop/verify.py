from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import soundfile as sf

from ambient_loop.generators.ambient import (
    PCM16_FULL_SCALE,
    WAV_HEADER_BYTES,
    linear_to_db,
)

EDGE_WINDOW_SEC = 0.005
EDGE_TOLERANCE = 0.02
SEAM_TOLERANCE = 0.02

_HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"


@dataclass(frozen=True)
class WavHeader:
    riff_size: int
    fmt_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


@dataclass(frozen=True)
class LoopVerificationResult:
    path: Path
    duration_sec: float
    sample_rate: int
    frame_count: int
    rms_dbfs: float
    peak_dbfs: float
    peak_counts: int
    expected_peak_counts: float
    head_level: float
    tail_level: float
    seam_jump: float
    problems: tuple[str, ...]

    @property
    def passed(self) -> bool:
        return not self.problems


def read_wav_header(path: Path) -> WavHeader:
    with path.open("rb") as handle:
        raw = handle.read(WAV_HEADER_BYTES)
    if len(raw) < WAV_HEADER_BYTES:
        raise ValueError(f"{path} is shorter than a {WAV_HEADER_BYTES}-byte WAV header")
    (
        riff_tag,
        riff_size,
        wave_tag,
        fmt_tag,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_tag,
        data_size,
    ) = struct.unpack(_HEADER_FORMAT, raw)
    if riff_tag != b"RIFF" or wave_tag != b"WAVE":
        raise ValueError(f"{path} is not a RIFF/WAVE file")
    if fmt_tag != b"fmt " or data_tag != b"data":
        raise ValueError(f"{path} does not use the canonical 44-byte WAV layout")
    return WavHeader(
        riff_size=riff_size,
        fmt_size=fmt_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )


def verify_wav(path: Path, peak_target: float = 0.85) -> LoopVerificationResult:
    problems: list[str] = []
    header = read_wav_header(path)
    if header.fmt_size != 16 or header.audio_format != 1:
        problems.append("fmt chunk is not plain 16-byte PCM")
    if header.bits_per_sample != 16:
        problems.append(f"expected 16-bit samples, found {header.bits_per_sample}")
    if header.riff_size != header.data_size + WAV_HEADER_BYTES - 8:
        problems.append("RIFF size does not match data chunk size")
    if header.byte_rate != header.sample_rate * header.block_align:
        problems.append("byte rate does not match sample rate and block alignment")

    with sf.SoundFile(str(path), mode="r") as wav_file:
        sample_rate = wav_file.samplerate
        total_frames = wav_file.frames
        if wav_file.channels != 2:
            raise ValueError("verify requires stereo WAV input")

        sum_squares = 0.0
        sample_count = 0
        peak_counts = 0
        for block in wav_file.blocks(
            blocksize=262_144, dtype="int16", always_2d=True, fill_value=None
        ):
            wide = block.astype(np.int32)
            sum_squares += float(np.sum(wide * wide, dtype=np.float64))
            sample_count += wide.size
            peak_counts = max(peak_counts, int(np.max(np.abs(wide))))

        edge_frames = max(1, min(total_frames, int(round(EDGE_WINDOW_SEC * sample_rate))))
        wav_file.seek(0)
        head = wav_file.read(edge_frames, dtype="float64", always_2d=True)
        wav_file.seek(total_frames - edge_frames)
        tail = wav_file.read(edge_frames, dtype="float64", always_2d=True)

    if header.data_size != total_frames * header.block_align:
        problems.append("data chunk size does not match the decoded frame count")

    rms_linear = float(np.sqrt(sum_squares / max(sample_count, 1))) / PCM16_FULL_SCALE
    head_level = float(np.max(np.abs(head))) if head.size else 0.0
    tail_level = float(np.max(np.abs(tail))) if tail.size else 0.0
    seam_jump = float(np.max(np.abs(tail[-1] - head[0]))) if head.size else 0.0

    expected_peak_counts = peak_target * PCM16_FULL_SCALE
    if abs(peak_counts - expected_peak_counts) > 1.0:
        problems.append(
            f"peak {peak_counts} is not within one step of {expected_peak_counts:.2f}"
        )
    if head_level > EDGE_TOLERANCE:
        problems.append(f"loop head is not faded in (level {head_level:.4f})")
    if tail_level > EDGE_TOLERANCE:
        problems.append(f"loop tail is not faded out (level {tail_level:.4f})")
    if seam_jump > SEAM_TOLERANCE:
        problems.append(f"audible seam jump {seam_jump:.4f} between end and start")

    return LoopVerificationResult(
        path=path,
        duration_sec=float(total_frames / sample_rate),
        sample_rate=sample_rate,
        frame_count=total_frames,
        rms_dbfs=linear_to_db(rms_linear),
        peak_dbfs=linear_to_db(peak_counts / PCM16_FULL_SCALE),
        peak_counts=peak_counts,
        expected_peak_counts=expected_peak_counts,
        head_level=head_level,
        tail_level=tail_level,
        seam_jump=seam_jump,
        problems=tuple(problems),
    )
