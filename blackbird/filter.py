"""
FIR Filter Design for Blackbird
Implements the Hilbert phase shifter, windowed-sinc lowpass/bandpass kernels
and an exact DCT band projection
"""

import numpy as np
from enum import Enum
from functools import lru_cache
from scipy.fft import dct, idct


class WindowType(Enum):
    HAMMING = 0
    BLACKMAN = 1


def _validate_length(length: int):
    if length < 3:
        raise ValueError(f"Kernel length must be at least 3, got {length}")
    if length % 2 == 0:
        raise ValueError(f"Kernel length must be odd, got {length}")


def _validate_cutoff(cutoff_hz: float, sample_rate: int):
    if sample_rate <= 0:
        raise ValueError(f"Sample rate must be positive, got {sample_rate}")
    if cutoff_hz <= 0:
        raise ValueError(f"Cutoff must be positive, got {cutoff_hz} Hz")
    if cutoff_hz >= sample_rate / 2.0:
        raise ValueError(f"Cutoff {cutoff_hz} Hz must be below Nyquist ({sample_rate / 2.0} Hz)")


def window(window_type: WindowType, length: int) -> np.ndarray:
    """Symmetric window of the given odd length"""
    i = np.arange(length, dtype=np.float64)
    x = 2.0 * np.pi * i / (length - 1)
    if window_type == WindowType.HAMMING:
        return 0.54 - 0.46 * np.cos(x)
    # Blackman: ~-74 dB stopband for the sinc kernels
    return 0.42 - 0.5 * np.cos(x) + 0.08 * np.cos(2.0 * x)


def tap_offsets(length: int) -> np.ndarray:
    """Tap index relative to the kernel centre: n = i - length // 2"""
    return np.arange(length) - length // 2


def hilbert_kernel(length: int = 129) -> np.ndarray:
    """
    Hamming-windowed Hilbert transformer (broadband 90 degree phase shift).

    Taps are 2 / (pi * n) at odd offsets n from the centre and exactly zero at
    the centre and at even offsets.

    Args:
        length: Odd number of taps (>= 3)

    Returns:
        float64 kernel array
    """
    _validate_length(length)
    n = tap_offsets(length)
    kernel = np.zeros(length, dtype=np.float64)
    odd = (n % 2) != 0
    kernel[odd] = 2.0 / (np.pi * n[odd])
    kernel *= window(WindowType.HAMMING, length)
    return kernel


def sinc_lowpass(cutoff_hz: float, length: int, sample_rate: int = 44100) -> np.ndarray:
    """
    Blackman-windowed sinc lowpass with unity DC gain.

    Args:
        cutoff_hz: Cutoff frequency in Hz (0 < cutoff < Nyquist)
        length: Odd number of taps (>= 3)
        sample_rate: Sample rate in Hz

    Returns:
        float64 kernel array whose taps sum to 1
    """
    _validate_length(length)
    _validate_cutoff(cutoff_hz, sample_rate)

    fc = cutoff_hz / sample_rate
    n = tap_offsets(length).astype(np.float64)
    kernel = np.empty(length, dtype=np.float64)
    centre = length // 2
    kernel[centre] = 2.0 * np.pi * fc
    nz = n != 0
    kernel[nz] = np.sin(2.0 * np.pi * fc * n[nz]) / n[nz]
    kernel *= window(WindowType.BLACKMAN, length)

    total = np.sum(kernel)
    if total == 0:
        raise ValueError(f"Degenerate lowpass design for cutoff {cutoff_hz} Hz, length {length}")
    return kernel / total


def sinc_bandpass(low_hz: float, high_hz: float, length: int, sample_rate: int = 44100) -> np.ndarray:
    """Bandpass as the difference of two unity-gain lowpass kernels (zero DC gain)"""
    if low_hz >= high_hz:
        raise ValueError(f"Bandpass low edge {low_hz} Hz must be below high edge {high_hz} Hz")
    return sinc_lowpass(high_hz, length, sample_rate) - sinc_lowpass(low_hz, length, sample_rate)


# ==============================================================================
# Kernel cache
# ==============================================================================
# Kernels are pure functions of their parameters, so one read-only copy per
# configuration is shared by every encode/decode call and every thread.

@lru_cache(maxsize=64)
def cached_hilbert(length: int) -> np.ndarray:
    kernel = hilbert_kernel(length)
    kernel.setflags(write=False)
    return kernel


@lru_cache(maxsize=64)
def cached_lowpass(cutoff_hz: float, length: int, sample_rate: int) -> np.ndarray:
    kernel = sinc_lowpass(cutoff_hz, length, sample_rate)
    kernel.setflags(write=False)
    return kernel


# ==============================================================================
# Transform-domain band projection
# ==============================================================================
# DCT-II bin k of an n-sample buffer sits at k * sample_rate / (2 * n) Hz. The
# even extension behind the DCT keeps the buffer ends continuous, so a smooth
# signal stays compact in the low bins.

def dct_bin(freq_hz: float, length: int, sample_rate: int = 44100) -> float:
    """Fractional DCT-II bin of a frequency for a buffer of the given length"""
    return 2.0 * length * freq_hz / sample_rate


def dct_band(signal: np.ndarray, low_bin: int, high_bin: int) -> np.ndarray:
    """
    Orthogonal projection onto DCT-II bins low_bin .. high_bin - 1.

    Exact and idempotent, unlike the FIR kernels above: a signal that already
    lies in the band comes back unchanged.
    """
    coeffs = dct(np.asarray(signal, dtype=np.float64), type=2, norm='ortho')
    coeffs[:low_bin] = 0.0
    coeffs[high_bin:] = 0.0
    return idct(coeffs, type=2, norm='ortho')
