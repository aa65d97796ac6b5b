from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from ambient_loop.presets import SynthesisParams

TWO_PI = float(2.0 * np.pi)

LFO_CENTER = 0.6
LFO_DEPTH = 0.4
LFO_PHASE_MOD_RATE = 0.001

PAD_WEIGHTS = (0.9, 0.7, 0.2)
PAD_OVERTONE_RATIO = 2.0
PAD_GAIN = 0.4

GUST_PARTIALS: tuple[tuple[float, float], ...] = ((0.01, 0.3), (0.005, 0.2))
GUST_GAIN = 0.15

# Returns ``count`` values in [-1, 1]; consumed interleaved left/right per frame.
NoiseSource = Callable[[int], np.ndarray]


@dataclass
class UniformNoise:
    rng: np.random.Generator

    @classmethod
    def create(cls, seed: int | None = None) -> "UniformNoise":
        return cls(rng=np.random.default_rng(seed))

    def __call__(self, count: int) -> np.ndarray:
        return self.rng.uniform(-1.0, 1.0, size=count)


def frame_times(start_sample: int, length: int, sample_rate: int) -> np.ndarray:
    indices = np.arange(start_sample, start_sample + length, dtype=np.float64)
    return indices / sample_rate


def lfo_envelope(t: np.ndarray, params: SynthesisParams) -> np.ndarray:
    """Slow breathing envelope in [0.2, 1.0], phase-modulated by ``sin(0.001 t)``."""
    phase = TWO_PI * params.lfo_hz * t + np.sin(t * LFO_PHASE_MOD_RATE)
    return LFO_CENTER + LFO_DEPTH * np.sin(phase)


def pad_layer(t: np.ndarray, params: SynthesisParams, envelope: np.ndarray) -> np.ndarray:
    base_weight, detune_weight, overtone_weight = PAD_WEIGHTS
    pad = (
        np.sin(TWO_PI * params.pad_hz * t) * base_weight
        + np.sin(TWO_PI * params.pad_hz * params.pad_detune_ratio * t) * detune_weight
        + np.sin(TWO_PI * params.pad_hz * PAD_OVERTONE_RATIO * t) * overtone_weight
    )
    return pad * PAD_GAIN * envelope


def drone_layer(t: np.ndarray, params: SynthesisParams) -> np.ndarray:
    return np.sin(TWO_PI * params.drone_hz * t) * params.drone_gain


def gust_layer(t: np.ndarray) -> np.ndarray:
    gust = np.zeros_like(t)
    for frequency_hz, weight in GUST_PARTIALS:
        gust += np.sin(TWO_PI * frequency_hz * t) * weight
    return gust * GUST_GAIN


def draw_stereo_noise(noise: NoiseSource, length: int, gain: float) -> np.ndarray:
    values = np.asarray(noise(length * 2), dtype=np.float64)
    if values.shape != (length * 2,):
        raise ValueError(
            f"noise source returned shape {values.shape}, expected ({length * 2},)"
        )
    return values.reshape(length, 2) * gain
