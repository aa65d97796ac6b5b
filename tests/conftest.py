"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from ambient_loop.presets import SynthesisParams


class SequenceNoise:
    """Deterministic stand-in for the uniform noise source.

    Values depend only on how many have been drawn so far, so the output
    does not change with the render chunk size.
    """

    def __init__(self) -> None:
        self.position = 0

    def __call__(self, count: int) -> np.ndarray:
        indices = np.arange(self.position, self.position + count, dtype=np.float64)
        self.position += count
        return np.sin(indices * 1.618033) * np.cos(indices * 0.377)


@pytest.fixture
def small_params() -> SynthesisParams:
    """One second at 8 kHz with the default fade (longer than the buffer)."""
    return SynthesisParams(sample_rate=8000, duration_sec=1)


@pytest.fixture
def loop_params() -> SynthesisParams:
    """Four seconds at 8 kHz with one-second fades."""
    return SynthesisParams(sample_rate=8000, duration_sec=4, fade_sec=1.0)


@pytest.fixture
def sequence_noise() -> SequenceNoise:
    return SequenceNoise()


@pytest.fixture
def make_sequence_noise():
    return SequenceNoise
