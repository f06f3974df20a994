"""
Signal Pipelines for Blackbird

Encode: voice -> analytic -> baseband shift -> lowpass -> shift back ->
        FM/AM contours -> phase-accumulator carrier -> peak normalize
Decode (DSP inversion): birdsong -> analytic -> FM (median denoised) / AM ->
        inverse-scaled synth -> smoothing lowpass -> peak normalize
"""

import logging
import numpy as np
from dataclasses import dataclass

from .analytic import analytic_signal, frequency_shift, hz_to_angular
from .config import CodecConfig
from .convolution import convolve
from .demodulator import fm_demodulate, am_demodulate, median_denoise
from .filter import cached_hilbert, cached_lowpass
from .normalize import peak_normalize, mean_square
from .synthesizer import PhaseAccumulatorSynth, Waveshape

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Contours:
    """Per-sample pitch contour (radians/sample) and amplitude envelope"""
    fm: np.ndarray
    am: np.ndarray

    def __len__(self) -> int:
        return len(self.fm)


def build_synth(config: CodecConfig) -> PhaseAccumulatorSynth:
    """Encoder synthesizer for a configuration"""
    return PhaseAccumulatorSynth(
        sample_rate=config.sample_rate,
        scale_factor=config.scale_factor,
        harmonic_multiplier=config.harmonic_multiplier,
        waveshape=Waveshape.from_name(config.waveshape),
        saw_blend=config.saw_blend,
    )


def analyze_voice(voice: np.ndarray, config: CodecConfig) -> Contours:
    """
    Extract the pitch contour and envelope of the voice fundamental band.

    The band centred on config.shift_hz is brought to 0 Hz, lowpassed at
    baseband_cutoff_hz and shifted back, so the FM contour keeps absolute
    pitch while everything outside shift_hz +/- baseband_cutoff_hz is
    rejected. Both contours are then smoothed at contour_cutoff_hz.
    """
    sr = config.sample_rate
    hilbert = cached_hilbert(config.hilbert_length)
    baseband_lpf = cached_lowpass(config.baseband_cutoff_hz, config.lowpass_length, sr)
    contour_lpf = cached_lowpass(config.contour_cutoff_hz, config.lowpass_length, sr)
    omega = hz_to_angular(config.shift_hz, sr)

    i_part, q_part = analytic_signal(voice, hilbert)

    base_i, base_q = frequency_shift(i_part, q_part, omega)
    filt_i = convolve(base_i, baseband_lpf)
    filt_q = convolve(base_q, baseband_lpf)

    fm_i, fm_q = frequency_shift(filt_i, filt_q, -omega)

    fm = convolve(fm_demodulate(fm_i, fm_q), contour_lpf)
    am = convolve(am_demodulate(filt_i, filt_q), contour_lpf)
    return Contours(fm, am)


def synthesize_carrier(contours: Contours, config: CodecConfig) -> np.ndarray:
    """Render the birdsong carrier from voice contours, normalized to output_peak"""
    carrier = build_synth(config).render(contours.fm, contours.am)
    return peak_normalize(carrier, config.output_peak)


def encode_carrier(voice: np.ndarray, config: CodecConfig) -> np.ndarray:
    """Voice samples to normalized birdsong carrier (no side channel)"""
    voice = np.asarray(voice, dtype=np.float64)
    if voice.size == 0:
        return np.zeros(0, dtype=np.float64)
    return synthesize_carrier(analyze_voice(voice, config), config)


def carrier_contours(samples: np.ndarray, config: CodecConfig) -> Contours:
    """FM (median denoised) and AM contours of a received carrier"""
    sr = config.sample_rate
    hilbert = cached_hilbert(config.hilbert_length)
    contour_lpf = cached_lowpass(config.contour_cutoff_hz, config.lowpass_length, sr)

    i_part, q_part = analytic_signal(samples, hilbert)
    fm = median_denoise(fm_demodulate(i_part, q_part), config.median_window)
    fm = convolve(fm, contour_lpf)
    am = convolve(am_demodulate(i_part, q_part), contour_lpf)
    return Contours(fm, am)


def invert_carrier(samples: np.ndarray, config: CodecConfig, normalize: bool = True) -> np.ndarray:
    """
    Best-effort voice reconstruction from the carrier alone.

    Recovers the pitch contour and envelope of the voice fundamental band,
    not the voice waveform itself, so the result is intelligible at best and
    never bit-faithful.

    Args:
        samples: Mono birdsong samples
        config: Codec configuration used for encoding
        normalize: Peak-normalize the result to output_peak

    Returns:
        Reconstructed voice samples (same length)
    """
    samples = np.asarray(samples, dtype=np.float64)
    if samples.size == 0:
        return np.zeros(0, dtype=np.float64)

    contours = carrier_contours(samples, config)
    decoder = build_synth(config).inverted(Waveshape.from_name(config.decode_waveshape))
    voice = decoder.render(contours.fm, contours.am)

    smoothing = cached_lowpass(config.voice_cutoff_hz, config.voice_smoothing_length, config.sample_rate)
    voice = convolve(voice, smoothing)
    logger.debug("DSP inversion of %d samples, mean square %.3g", len(voice), mean_square(voice))
    if normalize:
        voice = peak_normalize(voice, config.output_peak)
    return voice
