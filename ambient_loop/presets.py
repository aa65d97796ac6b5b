from __future__ import annotations

import math
from dataclasses import dataclass, fields

SAMPLE_RATE = 44_100


PRESETS: dict[str, dict[str, object]] = {
    "calm_loop": {
        "duration_sec": 180,
        "sample_rate": SAMPLE_RATE,
        "pad_hz": 55.0,
        "drone_hz": 40.0,
        "fade_sec": 8.0,
        "peak_target": 0.85,
    },
    "calm_loop_preview": {
        "duration_sec": 30,
        "sample_rate": SAMPLE_RATE,
        "pad_hz": 55.0,
        "drone_hz": 40.0,
        "fade_sec": 4.0,
        "peak_target": 0.85,
    },
}

PRESET_OUTPUT_FILENAMES: dict[str, str] = {
    "calm_loop": "calm_loop.wav",
    "calm_loop_preview": "calm_loop_preview.wav",
}


@dataclass(frozen=True)
class SynthesisParams:
    preset_id: str = "custom"
    sample_rate: int = SAMPLE_RATE
    duration_sec: int = 180
    channels: int = 2
    pad_hz: float = 55.0
    pad_detune_ratio: float = 1.005
    drone_hz: float = 40.0
    drone_gain: float = 0.06
    lfo_hz: float = 0.03
    noise_gain: float = 0.3
    noise_coeff: float = 0.995
    highpass_coeff: float = 0.999
    smoothing_coeff: float = 0.999
    fade_sec: float = 8.0
    peak_target: float = 0.85

    @property
    def frame_count(self) -> int:
        return self.sample_rate * self.duration_sec

    @property
    def fade_samples(self) -> int:
        return min(self.frame_count, int(math.floor(self.sample_rate * self.fade_sec)))

    @property
    def data_size(self) -> int:
        return self.frame_count * self.channels * 2


_FLOAT_FIELDS = {
    "pad_hz",
    "pad_detune_ratio",
    "drone_hz",
    "drone_gain",
    "lfo_hz",
    "noise_gain",
    "noise_coeff",
    "highpass_coeff",
    "smoothing_coeff",
    "fade_sec",
    "peak_target",
}
_INT_FIELDS = {"sample_rate", "duration_sec", "channels"}


def parse_synthesis_params(preset_id: str, payload: dict[str, object]) -> SynthesisParams:
    known = {field.name for field in fields(SynthesisParams)} - {"preset_id"}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise ValueError(f"unknown synthesis parameters: {', '.join(unknown)}")

    values: dict[str, object] = {}
    for key, raw in payload.items():
        if raw is None:
            continue
        try:
            if key in _INT_FIELDS:
                values[key] = int(raw)  # type: ignore[arg-type]
            elif key in _FLOAT_FIELDS:
                values[key] = float(raw)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key} must be numeric, got {raw!r}") from exc

    params = SynthesisParams(preset_id=preset_id, **values)  # type: ignore[arg-type]
    validate_params(params)
    return params


def get_preset_params(
    preset_id: str, overrides: dict[str, object] | None = None
) -> SynthesisParams:
    if preset_id not in PRESETS:
        raise KeyError(f"Unknown preset: {preset_id}")
    payload = dict(PRESETS[preset_id])
    if overrides:
        payload.update(overrides)
    return parse_synthesis_params(preset_id=preset_id, payload=payload)


def validate_params(params: SynthesisParams) -> None:
    if params.sample_rate <= 0:
        raise ValueError("sample_rate must be positive")
    if params.duration_sec <= 0:
        raise ValueError("duration_sec must be positive")
    if params.channels != 2:
        raise ValueError(f"only stereo output is supported, got channels={params.channels}")
    if params.fade_sec < 0:
        raise ValueError("fade_sec must be non-negative")
    if not 0.0 < params.peak_target <= 1.0:
        raise ValueError("peak_target must be in (0, 1]")
    nyquist = params.sample_rate * 0.5
    for name in ("pad_hz", "drone_hz"):
        value = getattr(params, name)
        if value <= 0 or value >= nyquist:
            raise ValueError(f"{name} must be between 0 and {nyquist:.1f} Hz, got {value}")
    if params.pad_hz * 2.0 >= nyquist:
        raise ValueError("pad overtone exceeds the Nyquist frequency")
    for name in ("noise_coeff", "highpass_coeff", "smoothing_coeff"):
        value = getattr(params, name)
        if not 0.0 <= value < 1.0:
            raise ValueError(f"{name} must be in [0, 1), got {value}")
