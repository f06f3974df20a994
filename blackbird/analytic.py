"""
Analytic Signal and Frequency Shifting for Blackbird

The quadrature branch is the Hilbert kernel applied with convolve(), i.e. by
correlation, so a positive-frequency tone cos(wn) maps to (cos(wn), -sin(wn))
and rotates clockwise in the I/Q plane. The demodulator's cross product is
oriented to read that rotation as a positive frequency, and moving a band at
+f down to baseband means multiplying by exp(+j * 2 pi f / sr * n).
"""

import numpy as np
from typing import Optional, Tuple

from .convolution import convolve
from .filter import cached_hilbert


def analytic_signal(signal: np.ndarray, kernel: Optional[np.ndarray] = None,
                    length: int = 129) -> Tuple[np.ndarray, np.ndarray]:
    """
    Quadrature representation of a real signal.

    Args:
        signal: 1D real samples
        kernel: Precomputed Hilbert kernel (defaults to cached_hilbert(length))
        length: Hilbert kernel length used when kernel is None

    Returns:
        (I, Q) where I is a copy of the signal and Q its Hilbert-filtered branch
    """
    if kernel is None:
        kernel = cached_hilbert(length)
    i_part = np.array(signal, dtype=np.float64)
    q_part = convolve(i_part, kernel)
    return i_part, q_part


def frequency_shift(i_part: np.ndarray, q_part: np.ndarray, angular_freq: float,
                    start_index: int = 0) -> Tuple[np.ndarray, np.ndarray]:
    """
    Complex-multiply an I/Q signal by exp(j * angular_freq * n).

    The phase is computed from the absolute sample index n = start_index + i
    rather than accumulated, so a block processed on its own with the right
    start_index matches the same samples shifted as part of a whole buffer.
    The inverse shift is the same call with -angular_freq.

    Args:
        i_part, q_part: Equal-length I/Q arrays
        angular_freq: Rotation in radians per sample
        start_index: Absolute index of the first sample

    Returns:
        (I', Q') shifted arrays
    """
    n = start_index + np.arange(len(i_part), dtype=np.float64)
    phase = angular_freq * n
    cos_p = np.cos(phase)
    sin_p = np.sin(phase)
    shifted_i = i_part * cos_p - q_part * sin_p
    shifted_q = i_part * sin_p + q_part * cos_p
    return shifted_i, shifted_q


def hz_to_angular(freq_hz: float, sample_rate: int) -> float:
    """Frequency in Hz to radians per sample"""
    return 2.0 * np.pi * freq_hz / sample_rate
