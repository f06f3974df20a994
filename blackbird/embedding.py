"""
Embedding Strategies for Blackbird

Each strategy hides the original voice alongside the synthesized carrier so
decode can return the voice itself instead of a lossy reconstruction:

- secondary:  voice at -60 dBFS on a second audio channel
- ultrasonic: voice DSB-SC modulated onto a 19 kHz tone in the mono carrier
- phase:      voice and a pilot line added to the instantaneous phase of the carrier
- none:       no side channel; decode falls back to DSP inversion

On decode the strategies are tried in DETECTION_ORDER, each behind its own
gate, and the first one that finds a payload wins.
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Type

from scipy.fft import dct, idct

from .analytic import analytic_signal, hz_to_angular
from .config import CodecConfig
from .convolution import convolve
from .demodulator import am_demodulate, unwrap_phase
from .filter import cached_hilbert, cached_lowpass, dct_band, dct_bin
from .normalize import peak_normalize, remove_dc, limit_peak, mean_square
from .pipeline import invert_carrier

logger = logging.getLogger(__name__)


def _mono(samples: np.ndarray) -> np.ndarray:
    """First channel of a mono or stereo array"""
    samples = np.asarray(samples, dtype=np.float64)
    return samples[:, 0] if samples.ndim == 2 else samples


def _check_lengths(carrier: np.ndarray, voice: np.ndarray):
    if len(carrier) != len(voice):
        raise ValueError(f"Carrier and voice lengths differ: {len(carrier)} vs {len(voice)}")


class EmbeddingStrategy(ABC):
    """
    Capability interface for hiding a voice signal in a carrier.

    encode() returns the transmitted samples, shape (n,) or (n, 2).
    try_decode() returns the recovered voice, or None if this strategy's
    payload is not present in the input.
    """

    name = "base"

    def __init__(self, config: CodecConfig = None):
        self.config = config or CodecConfig()

    @property
    def output_channels(self) -> int:
        return 1

    @abstractmethod
    def encode(self, carrier: np.ndarray, voice: np.ndarray) -> np.ndarray:
        """Combine the carrier with the hidden voice"""

    @abstractmethod
    def try_decode(self, samples: np.ndarray) -> Optional[np.ndarray]:
        """Recover the voice if this strategy's energy gate passes"""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class SecondaryChannelEmbedding(EmbeddingStrategy):
    """Carrier on channel 1, voice on channel 2 at secondary_level_db below full scale"""

    name = "secondary"

    @property
    def output_channels(self) -> int:
        return 2

    @property
    def gain(self) -> float:
        return 10.0 ** (self.config.secondary_level_db / 20.0)

    def encode(self, carrier: np.ndarray, voice: np.ndarray) -> np.ndarray:
        _check_lengths(carrier, voice)
        # Normalized first so the hidden level does not depend on how loud the voice is
        hidden = peak_normalize(voice, 1.0) * self.gain
        return np.column_stack([np.asarray(carrier, dtype=np.float64), hidden])

    def try_decode(self, samples: np.ndarray) -> Optional[np.ndarray]:
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 2 or samples.shape[1] < 2 or samples.shape[0] == 0:
            return None

        hidden = samples[:, 1]
        # Gate on the first second only
        window = min(len(hidden), self.config.sample_rate)
        energy = mean_square(hidden[:window])
        if energy <= self.config.secondary_threshold:
            logger.debug("Secondary channel energy %.3g below threshold", energy)
            return None
        return peak_normalize(hidden, self.config.output_peak)


class UltrasonicEmbedding(EmbeddingStrategy):
    """Voice amplitude-modulated (suppressed carrier) onto an inaudible tone"""

    name = "ultrasonic"

    def __init__(self, config: CodecConfig = None):
        super().__init__(config)
        cfg = self.config
        self.omega = hz_to_angular(cfg.ultrasonic_carrier_hz, cfg.sample_rate)
        self.band_lpf = cached_lowpass(cfg.ultrasonic_band_hz, cfg.lowpass_length, cfg.sample_rate)
        # Zero padding turns a carrier cut off at the buffer edge into broadband
        # splatter, so the gate only looks past the band filter's half-length
        self.settle = cfg.lowpass_length // 2

    def _tones(self, length: int) -> Tuple[np.ndarray, np.ndarray]:
        phase = self.omega * np.arange(length, dtype=np.float64)
        return np.cos(phase), np.sin(phase)

    def encode(self, carrier: np.ndarray, voice: np.ndarray) -> np.ndarray:
        _check_lengths(carrier, voice)
        band = convolve(peak_normalize(voice, 1.0), self.band_lpf)
        tone_i, _ = self._tones(len(band))
        mixed = np.asarray(carrier, dtype=np.float64) + self.config.ultrasonic_amplitude * band * tone_i
        return limit_peak(mixed, 1.0)

    def demodulate(self, samples: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Coherent I/Q demodulation of the tone, lowpassed to the voice band"""
        x = _mono(samples)
        tone_i, tone_q = self._tones(len(x))
        i_part = convolve(2.0 * x * tone_i, self.band_lpf)
        q_part = convolve(2.0 * x * tone_q, self.band_lpf)
        return i_part, q_part

    def try_decode(self, samples: np.ndarray) -> Optional[np.ndarray]:
        if len(samples) == 0:
            return None
        i_part, q_part = self.demodulate(samples)
        envelope = am_demodulate(i_part, q_part)
        if len(envelope) > 2 * self.settle:
            envelope = envelope[self.settle:-self.settle]
        energy = mean_square(envelope)
        if energy <= self.config.ultrasonic_threshold:
            logger.debug("Ultrasonic band energy %.3g below threshold", energy)
            return None
        return peak_normalize(remove_dc(i_part), self.config.output_peak)


@dataclass(frozen=True)
class PhaseLayout:
    """DCT-II bin plan of the phase channel for one buffer length"""
    track: int        # bins below this carry the carrier phase
    pilot: int
    voice_low: int    # bins voice_low .. voice_high - 1 carry the voice
    voice_high: int


class PhaseChannelEmbedding(EmbeddingStrategy):
    """
    Voice carried as a phase modulation of the carrier's analytic signal.

    The transmitted carrier phase is projected onto a smooth subspace (DCT
    bins below phase_tracking_cutoff_hz plus a linear and quadratic trend)
    and the payload onto its orthogonal complement. Decode repeats the same
    projection, so the carrier phase estimate cancels exactly however fast
    the pitch moves. A pilot line at phase_pilot_hz sits in the gap between
    the two bands; natural pitch movement leaves no isolated line there, which
    is what the detection gate looks for.

    Where the carrier is nearly silent its phase is meaningless, so encode
    bridges those stretches with interpolated pitch and holds the magnitude
    at phase_magnitude_floor of the peak.
    """

    name = "phase"

    def __init__(self, config: CodecConfig = None):
        super().__init__(config)
        cfg = self.config
        self.hilbert = cached_hilbert(cfg.lowpass_length)
        # Samples at each end where the Hilbert kernel runs off the buffer
        self.settle = 2 * (cfg.lowpass_length // 2)

    def layout(self, length: int) -> Optional[PhaseLayout]:
        """Bin plan for a buffer length, or None if the bands cannot be resolved"""
        cfg = self.config
        sr = cfg.sample_rate
        track = int(np.ceil(dct_bin(cfg.phase_tracking_cutoff_hz, length, sr)))
        pilot = int(round(dct_bin(cfg.phase_pilot_hz, length, sr)))
        voice_low = int(np.ceil(dct_bin(cfg.phase_voice_low_hz, length, sr)))
        voice_high = min(int(dct_bin(cfg.phase_voice_high_hz, length, sr)) + 1, length)
        if pilot < track + 2 or voice_low < pilot + 2 or voice_high <= voice_low:
            return None
        return PhaseLayout(track, pilot, voice_low, voice_high)

    @staticmethod
    def _trend_basis(length: int, track: int) -> np.ndarray:
        """Orthonormal linear and quadratic trends with their low bins removed"""
        t = np.linspace(-0.5, 0.5, length)
        trends = np.column_stack([dct_band(t, track, length), dct_band(t * t, track, length)])
        basis, _ = np.linalg.qr(trends)
        return basis

    def split_phase(self, phase: np.ndarray, layout: PhaseLayout) -> Tuple[np.ndarray, np.ndarray]:
        """
        Split an unwrapped phase into carrier phase and residual.

        The residual is orthogonal to the low bins and both trends; the
        carrier phase is everything else, so split_phase(carrier)[1] is zero.
        """
        high = dct_band(phase, layout.track, len(phase))
        basis = self._trend_basis(len(phase), layout.track)
        residual = high - basis @ (basis.T @ high)
        return phase - residual, residual

    def pilot(self, length: int, layout: PhaseLayout) -> np.ndarray:
        """Pilot line: exactly one DCT-II basis vector"""
        n = np.arange(length, dtype=np.float64)
        return self.config.phase_pilot_level * np.cos(np.pi * layout.pilot * (2.0 * n + 1.0) / (2.0 * length))

    @staticmethod
    def _bridge_weak(phase: np.ndarray, strong: np.ndarray) -> np.ndarray:
        """Replace phase steps across weak stretches by interpolated ones"""
        steps = np.diff(phase)
        reliable = strong[1:] & strong[:-1]
        if reliable.all() or not reliable.any():
            return phase
        index = np.arange(len(steps))
        steps = np.interp(index, index[reliable], steps[reliable])
        return phase[0] + np.concatenate(([0.0], np.cumsum(steps)))

    def encode(self, carrier: np.ndarray, voice: np.ndarray) -> np.ndarray:
        _check_lengths(carrier, voice)
        carrier = np.array(carrier, dtype=np.float64)
        length = len(carrier)
        if length == 0:
            return carrier
        layout = self.layout(length)
        if layout is None:
            logger.warning("%d samples is too short for the phase channel, sending the carrier only", length)
            return carrier

        i_part, q_part = analytic_signal(carrier, self.hilbert)
        magnitude = am_demodulate(i_part, q_part)
        floor = self.config.phase_magnitude_floor * np.max(magnitude)
        if floor == 0.0:
            return carrier

        phase = self._bridge_weak(unwrap_phase(i_part, q_part), magnitude > floor)
        carrier_phase, _ = self.split_phase(phase, layout)

        band = dct_band(peak_normalize(voice, 1.0), layout.voice_low, layout.voice_high)
        payload = peak_normalize(band, 1.0) + self.pilot(length, layout)
        basis = self._trend_basis(length, layout.track)
        payload -= basis @ (basis.T @ payload)

        modulated = carrier_phase + self.config.phase_modulation_index * payload
        return limit_peak(np.maximum(magnitude, floor) * np.cos(modulated), 1.0)

    def pilot_present(self, coeffs: np.ndarray, layout: PhaseLayout) -> bool:
        """Gate: a pilot line at full level standing clear of the gap bins around it"""
        cfg = self.config
        level = abs(coeffs[layout.pilot])
        expected = cfg.phase_pilot_level * np.sqrt(len(coeffs) / 2.0)
        gap = np.concatenate((coeffs[layout.track:layout.pilot - 1], coeffs[layout.pilot + 2:layout.voice_low]))
        background = float(np.median(np.abs(gap)))
        if level < 0.5 * expected or level < cfg.phase_pilot_ratio * background:
            logger.debug("Phase pilot %.3g not found (expected %.3g, background %.3g)",
                         level, expected, background)
            return False
        return True

    def try_decode(self, samples: np.ndarray) -> Optional[np.ndarray]:
        x = _mono(samples)
        if len(x) <= 2 * self.settle:
            return None
        layout = self.layout(len(x))
        if layout is None:
            return None

        i_part, q_part = analytic_signal(x, self.hilbert)
        if not np.any(am_demodulate(i_part, q_part) > 0.0):
            return None

        _, residual = self.split_phase(unwrap_phase(i_part, q_part), layout)
        coeffs = dct(residual / self.config.phase_modulation_index, type=2, norm='ortho')
        if not self.pilot_present(coeffs, layout):
            return None

        # Voice band only: drops the pilot and anything the trends left behind
        coeffs[:layout.voice_low] = 0.0
        coeffs[layout.voice_high:] = 0.0
        voice = idct(coeffs, type=2, norm='ortho')
        voice[:self.settle] = 0.0
        voice[-self.settle:] = 0.0
        return peak_normalize(voice, self.config.output_peak)


class NoEmbedding(EmbeddingStrategy):
    """Carrier only; decode reconstructs the voice by DSP inversion"""

    name = "none"

    def encode(self, carrier: np.ndarray, voice: np.ndarray) -> np.ndarray:
        _check_lengths(carrier, voice)
        return np.array(carrier, dtype=np.float64)

    def try_decode(self, samples: np.ndarray) -> Optional[np.ndarray]:
        x = _mono(samples)
        if len(x) == 0:
            return None
        voice = invert_carrier(x, self.config, normalize=False)
        if mean_square(voice) < self.config.silence_threshold:
            return None
        return peak_normalize(voice, self.config.output_peak)


STRATEGIES: Dict[str, Type[EmbeddingStrategy]] = {
    SecondaryChannelEmbedding.name: SecondaryChannelEmbedding,
    UltrasonicEmbedding.name: UltrasonicEmbedding,
    PhaseChannelEmbedding.name: PhaseChannelEmbedding,
    NoEmbedding.name: NoEmbedding,
}

# Most specific first; NoEmbedding is the fallback, not a detector
DETECTION_ORDER = (
    SecondaryChannelEmbedding.name,
    UltrasonicEmbedding.name,
    PhaseChannelEmbedding.name,
)


def create_strategy(name: str, config: CodecConfig = None) -> EmbeddingStrategy:
    """Instantiate a strategy by name"""
    try:
        strategy_class = STRATEGIES[name]
    except KeyError:
        raise ValueError(f"Unknown embedding strategy '{name}'. Expected one of {tuple(STRATEGIES)}") from None
    return strategy_class(config)


def detect_and_decode(samples: np.ndarray, config: CodecConfig = None) -> Tuple[str, Optional[np.ndarray]]:
    """
    Try each side channel in DETECTION_ORDER, then DSP inversion.

    Returns:
        (strategy name, recovered voice) - voice is None only when even the
        DSP inversion yields near-silence
    """
    config = config or CodecConfig()
    for name in DETECTION_ORDER:
        voice = create_strategy(name, config).try_decode(samples)
        if voice is not None:
            logger.debug("Detected %s side channel", name)
            return name, voice
    logger.debug("No side channel detected, falling back to DSP inversion")
    return NoEmbedding.name, NoEmbedding(config).try_decode(samples)
