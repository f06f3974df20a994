"""
Phase-Accumulator Synthesizer for Blackbird
Regenerates a waveform from a frequency contour and an amplitude envelope
"""

import numpy as np
from enum import Enum
from numba import jit

TWO_PI = 2.0 * np.pi


class Waveshape(Enum):
    SINE = 0
    HARMONIC = 1    # Sine with attenuated 2nd and 3rd harmonics
    SAW_BLEND = 2   # Sine/sawtooth mix for a buzzier, more voice-like timbre

    @classmethod
    def from_name(cls, name: str) -> 'Waveshape':
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown waveshape '{name}'") from None


# Harmonic profile: 1 + 0.5 + 0.25, normalized back to unity peak bound
HARMONIC_2 = 0.5
HARMONIC_3 = 0.25
HARMONIC_NORM = 1.0 / (1.0 + HARMONIC_2 + HARMONIC_3)


@jit(nopython=True, cache=True)
def _render_block(contour, envelope, out, phase, step, harmonic, shape, blend):
    """
    Per-sample phase accumulation shared by offline and streaming rendering.

    phase is never wrapped here; only the argument of the periodic waveshape
    is reduced, so the accumulated phase keeps its exact derivative.
    """
    for n in range(contour.shape[0]):
        phase += contour[n] * step
        theta = phase * harmonic
        if shape == 0:
            value = np.sin(theta)
        elif shape == 1:
            value = (np.sin(theta) + HARMONIC_2 * np.sin(2.0 * theta)
                     + HARMONIC_3 * np.sin(3.0 * theta)) * HARMONIC_NORM
        else:
            saw = (theta % TWO_PI) / np.pi - 1.0
            value = (1.0 - blend) * np.sin(theta) + blend * saw
        out[n] = value * envelope[n]
    return phase


class PhaseAccumulatorSynth:
    """
    Oscillator driven by a per-sample frequency contour.

    Per sample: phase += contour[n] * 2 pi / sr * scale_factor, and the output
    is waveshape(phase * harmonic_multiplier) * envelope[n]. For encoding,
    a large scale_factor lifts a voice pitch contour into the chirp register;
    inverted() builds the matching decoder.
    """

    def __init__(self, sample_rate: int = 44100, scale_factor: float = 24000.0,
                 harmonic_multiplier: float = 6.0, waveshape: Waveshape = Waveshape.SINE,
                 saw_blend: float = 0.5):
        self.sr = sample_rate
        self.scale_factor = float(scale_factor)
        self.harmonic_multiplier = float(harmonic_multiplier)
        self.waveshape = waveshape
        self.saw_blend = float(saw_blend)

        # Running phase for block rendering (float64, unbounded)
        self.phase = 0.0

    @property
    def step(self) -> float:
        """Phase increment per unit of contour"""
        return TWO_PI / self.sr * self.scale_factor

    @property
    def output_gain(self) -> float:
        """Ratio of output angular frequency to contour value"""
        return self.step * self.harmonic_multiplier

    def reset(self):
        """Reset running phase to zero"""
        self.phase = 0.0

    def set_waveshape(self, waveshape: Waveshape):
        self.waveshape = waveshape

    def render(self, contour: np.ndarray, envelope: np.ndarray) -> np.ndarray:
        """
        Synthesize a whole buffer starting from phase 0.

        Args:
            contour: Frequency contour (radians per sample)
            envelope: Linear amplitude envelope, same length

        Returns:
            float64 samples
        """
        contour = np.ascontiguousarray(contour, dtype=np.float64)
        envelope = np.ascontiguousarray(envelope, dtype=np.float64)
        if contour.shape != envelope.shape:
            raise ValueError(f"Contour and envelope lengths differ: {contour.shape} vs {envelope.shape}")
        out = np.empty_like(contour)
        _render_block(contour, envelope, out, 0.0, self.step, self.harmonic_multiplier,
                      self.waveshape.value, self.saw_blend)
        return out

    def render_block(self, contour: np.ndarray, envelope: np.ndarray, out: np.ndarray) -> np.ndarray:
        """Synthesize into out, continuing from the running phase"""
        n = contour.shape[0]
        self.phase = _render_block(contour, envelope, out[:n], self.phase, self.step,
                                   self.harmonic_multiplier, self.waveshape.value, self.saw_blend)
        return out[:n]

    def contour_from_carrier(self, carrier_fm: np.ndarray) -> np.ndarray:
        """Map an FM contour demodulated from this synth's output back to its input contour"""
        return np.asarray(carrier_fm, dtype=np.float64) / self.output_gain

    def inverted(self, waveshape: Waveshape = Waveshape.SINE) -> 'PhaseAccumulatorSynth':
        """
        Decoder-direction synthesizer.

        Its scale factor is sr^2 / ((2 pi)^2 * scale_factor * harmonic_multiplier)
        with harmonic multiplier 1, so feeding it the FM contour demodulated
        from this synth's output reproduces the original pitch.
        """
        inverse_scale = self.sr ** 2 / (TWO_PI ** 2 * self.scale_factor * self.harmonic_multiplier)
        return PhaseAccumulatorSynth(self.sr, inverse_scale, 1.0, waveshape, self.saw_blend)
