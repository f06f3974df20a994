"""
Configuration for Blackbird
Holds every codec tunable and persists user overrides as JSON
Cross-platform storage location using platformdirs
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, fields, replace as dc_replace
from typing import Dict, Any, Optional

from platformdirs import user_config_dir

logger = logging.getLogger(__name__)

STRATEGY_NAMES = ('secondary', 'ultrasonic', 'phase', 'none')
WAVESHAPE_NAMES = ('sine', 'harmonic', 'saw_blend')


@dataclass
class CodecConfig:
    """
    Immutable-by-convention parameter set for one encode/decode configuration.

    Defaults reproduce the reference voice-to-birdsong pipeline at 44.1 kHz:
    the voice fundamental band around 220.5 Hz is brought to baseband, its
    pitch contour is raised by scale_factor * harmonic_multiplier into the
    chirp register, and the original voice rides along on a side channel.
    """

    sample_rate: int = 44100

    # Pitch mapping
    scale_factor: float = 24000.0
    harmonic_multiplier: float = 6.0
    shift_hz: float = 220.5

    # Offline filter bank
    hilbert_length: int = 129
    lowpass_length: int = 1025
    baseband_cutoff_hz: float = 140.0
    contour_cutoff_hz: float = 70.0

    # Carrier synthesis
    waveshape: str = 'sine'
    saw_blend: float = 0.5
    output_peak: float = 0.9

    # DSP inversion (decode fallback)
    median_window: int = 5
    decode_waveshape: str = 'sine'
    voice_cutoff_hz: float = 4000.0
    voice_smoothing_length: int = 257
    silence_threshold: float = 1e-6

    # Embedding selection
    strategy: str = 'secondary'

    # Secondary channel
    secondary_level_db: float = -60.0
    secondary_threshold: float = 1e-9

    # Ultrasonic carrier
    ultrasonic_carrier_hz: float = 19000.0
    ultrasonic_amplitude: float = 0.05
    ultrasonic_band_hz: float = 3000.0
    ultrasonic_threshold: float = 1e-5

    # Phase channel: carrier phase below the tracking cutoff, pilot line in
    # the gap, voice band above
    phase_modulation_index: float = 0.5
    phase_tracking_cutoff_hz: float = 40.0
    phase_pilot_hz: float = 60.0
    phase_pilot_level: float = 0.2
    phase_pilot_ratio: float = 8.0
    phase_voice_low_hz: float = 100.0
    phase_voice_high_hz: float = 4000.0
    phase_magnitude_floor: float = 0.05

    # Streaming
    stream_block_size: int = 4096
    stream_hilbert_length: int = 65
    stream_lowpass_length: int = 257
    stream_gain: float = 3.0

    def __post_init__(self):
        self.validate()

    @property
    def nyquist(self) -> float:
        return self.sample_rate / 2.0

    def validate(self):
        """Raise ValueError if any parameter would produce a broken pipeline"""
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")

        # FIR kernels need a centre tap and at least one tap either side
        for name in ('hilbert_length', 'lowpass_length', 'voice_smoothing_length',
                     'stream_hilbert_length', 'stream_lowpass_length'):
            value = getattr(self, name)
            if value < 3 or value % 2 == 0:
                raise ValueError(f"{name} must be an odd integer >= 3, got {value}")
        if self.median_window < 1 or self.median_window % 2 == 0:
            raise ValueError(f"median_window must be a positive odd integer, got {self.median_window}")

        for name in ('baseband_cutoff_hz', 'contour_cutoff_hz', 'voice_cutoff_hz',
                     'ultrasonic_band_hz', 'phase_tracking_cutoff_hz'):
            value = getattr(self, name)
            if not 0.0 < value < self.nyquist:
                raise ValueError(f"{name} must lie in (0, {self.nyquist}) Hz, got {value}")

        if not 0.0 <= self.shift_hz < self.nyquist:
            raise ValueError(f"shift_hz must lie in [0, {self.nyquist}) Hz, got {self.shift_hz}")
        if self.scale_factor <= 0 or self.harmonic_multiplier <= 0:
            raise ValueError("scale_factor and harmonic_multiplier must be positive")
        if not 0.0 < self.output_peak <= 1.0:
            raise ValueError(f"output_peak must lie in (0, 1], got {self.output_peak}")
        if not 0.0 <= self.saw_blend <= 1.0:
            raise ValueError(f"saw_blend must lie in [0, 1], got {self.saw_blend}")

        if self.strategy not in STRATEGY_NAMES:
            raise ValueError(f"Unknown strategy '{self.strategy}'. Expected one of {STRATEGY_NAMES}")
        for name in ('waveshape', 'decode_waveshape'):
            if getattr(self, name) not in WAVESHAPE_NAMES:
                raise ValueError(f"Unknown {name} '{getattr(self, name)}'. Expected one of {WAVESHAPE_NAMES}")

        if self.ultrasonic_carrier_hz + self.ultrasonic_band_hz >= self.nyquist:
            raise ValueError(
                f"Ultrasonic carrier {self.ultrasonic_carrier_hz} Hz plus band "
                f"{self.ultrasonic_band_hz} Hz exceeds Nyquist ({self.nyquist} Hz)")
        if self.ultrasonic_carrier_hz - self.ultrasonic_band_hz <= 0:
            raise ValueError("ultrasonic_carrier_hz must exceed ultrasonic_band_hz")
        if self.phase_modulation_index <= 0:
            raise ValueError("phase_modulation_index must be positive")
        if not (0.0 < self.phase_tracking_cutoff_hz < self.phase_pilot_hz
                < self.phase_voice_low_hz < self.phase_voice_high_hz < self.nyquist):
            raise ValueError(
                "Phase channel bands must satisfy tracking cutoff < pilot < voice low edge "
                f"< voice high edge < Nyquist, got {self.phase_tracking_cutoff_hz}, "
                f"{self.phase_pilot_hz}, {self.phase_voice_low_hz}, {self.phase_voice_high_hz} Hz")
        if self.phase_pilot_level <= 0 or self.phase_pilot_ratio <= 1.0:
            raise ValueError("phase_pilot_level must be positive and phase_pilot_ratio above 1")
        if not 0.0 < self.phase_magnitude_floor < 1.0:
            raise ValueError("phase_magnitude_floor must lie in (0, 1)")
        if self.stream_block_size <= 0:
            raise ValueError(f"stream_block_size must be positive, got {self.stream_block_size}")

    def replace(self, **changes) -> 'CodecConfig':
        """Return a validated copy with the given fields changed"""
        return dc_replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CodecConfig':
        """Build a config from a (possibly partial) dict, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.debug("Ignoring unknown config keys: %s", unknown)
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_json_file(cls, path: str) -> 'CodecConfig':
        with open(path, 'r', encoding='utf-8') as f:
            return cls.from_dict(json.load(f))


class ConfigStore:
    """
    Persists CodecConfig overrides in a JSON file in the platform-appropriate
    configuration directory. Stored values are merged over the defaults, so a
    file written by an older version still loads.
    """

    APP_NAME = "Blackbird"
    APP_AUTHOR = "Blackbird"
    CONFIG_FILENAME = "codec.json"

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = config_dir or user_config_dir(self.APP_NAME, self.APP_AUTHOR)
        self.config_path = os.path.join(self.config_dir, self.CONFIG_FILENAME)

    def load(self) -> CodecConfig:
        """Load the stored config, falling back to defaults if it is missing or invalid"""
        if not os.path.exists(self.config_path):
            return CodecConfig()
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                stored = json.load(f)
            merged = CodecConfig().to_dict()
            merged.update(stored)
            return CodecConfig.from_dict(merged)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Error loading config from %s: %s; using defaults", self.config_path, e)
            return CodecConfig()

    def save(self, config: CodecConfig):
        os.makedirs(self.config_dir, exist_ok=True)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2)
        logger.debug("Saved config to %s", self.config_path)

    def update(self, **changes) -> CodecConfig:
        """Apply changes to the stored config and save the result"""
        config = self.load().replace(**changes)
        self.save(config)
        return config

    def reset(self) -> CodecConfig:
        """Reset the stored config to defaults"""
        config = CodecConfig()
        self.save(config)
        return config
