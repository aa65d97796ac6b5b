from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import numpy as np
import soundfile as sf

from ambient_loop.presets import SynthesisParams, validate_params

from .filters import SharedStateSmoother, StereoOnePole
from .layers import (
    NoiseSource,
    UniformNoise,
    draw_stereo_noise,
    drone_layer,
    frame_times,
    gust_layer,
    lfo_envelope,
    pad_layer,
)

DEFAULT_OUTPUT_PATH = Path("frontend/public/calm_loop.wav")
WAV_HEADER_BYTES = 44
PCM16_FULL_SCALE = 32767
PEAK_FLOOR = 1e-9

TEXTURE_MIX = 0.6
DRONE_RIGHT_GAIN = 0.98
GUST_RIGHT_GAIN = 0.2


@dataclass(frozen=True)
class RenderResult:
    output_path: Path
    duration_sec: float
    sample_count: int
    byte_size: int
    source_peak: float
    gain: float
    rms_dbfs: float
    peak_dbfs: float


def render_loop_to_wav(
    params: SynthesisParams,
    output_path: Path,
    log: Callable[[str], None] = print,
    noise: NoiseSource | None = None,
    seed: int | None = None,
    chunk_size: int = 1_048_576,
) -> RenderResult:
    validate_params(params)
    noise_source = noise if noise is not None else UniformNoise.create(seed)
    log(
        f"generating {params.duration_sec}s ambient loop "
        f"({params.sample_rate} Hz stereo, {params.frame_count} frames)"
    )

    buffer = synthesize(params, noise=noise_source, chunk_size=chunk_size, log=log)

    fade_samples = params.fade_samples
    log(f"loop seam: linear fades of {fade_samples} samples at both ends")
    apply_loop_fades(buffer, fade_samples)

    source_peak, gain = normalize_peak(buffer, params.peak_target)
    log(
        f"normalization: source peak {linear_to_db(source_peak):.2f} dBFS, "
        f"gain {gain:.6f}, target peak {params.peak_target:.2f}"
    )

    pcm = quantize_pcm16(buffer)
    byte_size = write_pcm16_wav(pcm, sample_rate=params.sample_rate, output_path=output_path)

    np.clip(buffer, -1.0, 1.0, out=buffer)
    rms_dbfs = linear_to_db(float(np.sqrt(np.mean(buffer * buffer))))
    peak_dbfs = linear_to_db(float(np.max(np.abs(buffer))))
    log(
        f"done: samples {params.frame_count}, size {byte_size} bytes, "
        f"RMS {rms_dbfs:.2f} dBFS, peak {peak_dbfs:.2f} dBFS, output {output_path}"
    )
    return RenderResult(
        output_path=output_path,
        duration_sec=float(params.frame_count / params.sample_rate),
        sample_count=params.frame_count,
        byte_size=byte_size,
        source_peak=source_peak,
        gain=gain,
        rms_dbfs=rms_dbfs,
        peak_dbfs=peak_dbfs,
    )


def synthesize(
    params: SynthesisParams,
    noise: NoiseSource,
    chunk_size: int = 1_048_576,
    log: Callable[[str], None] | None = None,
) -> np.ndarray:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    total_samples = params.frame_count
    buffer = np.empty((total_samples, 2), dtype=np.float64)

    noise_lowpass = StereoOnePole.lowpass(params.noise_coeff)
    noise_highpass = StereoOnePole.highpass(params.highpass_coeff)
    smoother = SharedStateSmoother.create(params.smoothing_coeff)

    for start in range(0, total_samples, chunk_size):
        length = min(chunk_size, total_samples - start)
        t = frame_times(start_sample=start, length=length, sample_rate=params.sample_rate)

        envelope = lfo_envelope(t, params)
        pad = pad_layer(t, params, envelope)
        drone = drone_layer(t, params)
        gust = gust_layer(t)

        raw_noise = draw_stereo_noise(noise, length, params.noise_gain)
        texture = noise_highpass.process(noise_lowpass.process(raw_noise))

        mixed = np.column_stack(
            (
                pad + drone + TEXTURE_MIX * texture[:, 0] + gust,
                pad + DRONE_RIGHT_GAIN * drone + TEXTURE_MIX * texture[:, 1]
                - GUST_RIGHT_GAIN * gust,
            )
        )
        buffer[start : start + length] = smoother.process(mixed)

        if log is not None:
            log(f"synthesized {start + length}/{total_samples} frames")

    return buffer


def apply_loop_fades(buffer: np.ndarray, fade_samples: int) -> None:
    total_samples = buffer.shape[0]
    fade_samples = min(total_samples, fade_samples)
    if fade_samples <= 0:
        return
    fade_in = np.arange(fade_samples, dtype=np.float64) / fade_samples
    buffer[:fade_samples] *= fade_in[:, None]
    buffer[total_samples - fade_samples :] *= (1.0 - fade_in)[:, None]


def normalize_peak(buffer: np.ndarray, target: float) -> tuple[float, float]:
    peak = float(np.max(np.abs(buffer))) if buffer.size else 0.0
    if peak < PEAK_FLOOR:
        peak = 1.0
    gain = target / peak
    buffer *= gain
    return peak, gain


def quantize_pcm16(buffer: np.ndarray) -> np.ndarray:
    clipped = np.clip(buffer, -1.0, 1.0)
    return np.rint(clipped * PCM16_FULL_SCALE).astype(np.int16)


def write_pcm16_wav(pcm: np.ndarray, sample_rate: int, output_path: Path) -> int:
    """Write interleaved int16 frames, replacing ``output_path`` only on success."""
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.stem}-", suffix=".tmp", dir=output_path.parent
    )
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        with sf.SoundFile(
            str(tmp_path),
            mode="w",
            samplerate=sample_rate,
            channels=pcm.shape[1],
            subtype="PCM_16",
            format="WAV",
        ) as wav_file:
            wav_file.write(pcm)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, output_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return output_path.stat().st_size


def linear_to_db(value: float) -> float:
    return float(20.0 * np.log10(max(value, 1e-18)))
