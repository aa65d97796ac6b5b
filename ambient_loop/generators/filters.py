from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy import signal


def one_pole_coefficients(coeff: float) -> tuple[np.ndarray, np.ndarray]:
    """Transfer function of ``y[n] = coeff * y[n-1] + (1 - coeff) * x[n]``."""
    b = np.array([1.0 - coeff], dtype=np.float64)
    a = np.array([1.0, -coeff], dtype=np.float64)
    return b, a


@dataclass
class OnePoleLowpass:
    coeff: float
    b: np.ndarray
    a: np.ndarray
    zi: np.ndarray

    @classmethod
    def create(cls, coeff: float, initial: float = 0.0) -> "OnePoleLowpass":
        b, a = one_pole_coefficients(coeff)
        # lfilter keeps coeff * y[n-1] as its single delay element.
        zi = np.array([coeff * initial], dtype=np.float64)
        return cls(coeff=coeff, b=b, a=a, zi=zi)

    def process(self, block: np.ndarray) -> np.ndarray:
        if block.size == 0:
            return np.zeros(0, dtype=np.float64)
        filtered, self.zi = signal.lfilter(self.b, self.a, block, zi=self.zi)
        return filtered.astype(np.float64, copy=False)


@dataclass
class OnePoleHighpass:
    """High-pass approximation ``x - lowpass(x)`` with its own low-pass state."""

    lowpass: OnePoleLowpass

    @classmethod
    def create(cls, coeff: float) -> "OnePoleHighpass":
        return cls(lowpass=OnePoleLowpass.create(coeff))

    def process(self, block: np.ndarray) -> np.ndarray:
        return block - self.lowpass.process(block)


@dataclass
class StereoOnePole:
    left: OnePoleLowpass | OnePoleHighpass
    right: OnePoleLowpass | OnePoleHighpass

    @classmethod
    def lowpass(cls, coeff: float) -> "StereoOnePole":
        return cls(left=OnePoleLowpass.create(coeff), right=OnePoleLowpass.create(coeff))

    @classmethod
    def highpass(cls, coeff: float) -> "StereoOnePole":
        return cls(left=OnePoleHighpass.create(coeff), right=OnePoleHighpass.create(coeff))

    def process(self, stereo_block: np.ndarray) -> np.ndarray:
        left = self.left.process(stereo_block[:, 0])
        right = self.right.process(stereo_block[:, 1])
        return np.column_stack((left, right)).astype(np.float64, copy=False)


@dataclass
class SharedStateSmoother:
    """One-pole smoothing of both channels towards a shared state.

    Per frame: ``L' = a*g + (1-a)*L``, ``R' = a*g + (1-a)*R`` and then
    ``g = (L' + R') / 2``. The state sequence is itself a one-pole low-pass
    of the mid signal, so a block is filtered in one ``lfilter`` call.
    """

    mid: OnePoleLowpass
    state: float = 0.0

    @classmethod
    def create(cls, coeff: float, initial: float = 0.0) -> "SharedStateSmoother":
        return cls(mid=OnePoleLowpass.create(coeff, initial=initial), state=initial)

    def process(self, stereo_block: np.ndarray) -> np.ndarray:
        length = stereo_block.shape[0]
        if length == 0:
            return np.zeros((0, 2), dtype=np.float64)
        coeff = self.mid.coeff
        mid = 0.5 * (stereo_block[:, 0] + stereo_block[:, 1])
        running = self.mid.process(mid)

        previous = np.empty(length, dtype=np.float64)
        previous[0] = self.state
        previous[1:] = running[:-1]
        self.state = float(running[-1])

        return coeff * previous[:, None] + (1.0 - coeff) * stereo_block
