"""
FM/AM Demodulator for Blackbird
Extracts instantaneous frequency and amplitude contours from I/Q signals
"""

import numpy as np
from scipy.ndimage import median_filter


def fm_demodulate(i_part: np.ndarray, q_part: np.ndarray) -> np.ndarray:
    """
    Instantaneous frequency in radians per sample.

    Uses the angle between consecutive complex samples,
    atan2(I[n] Q[n-1] - Q[n] I[n-1], I[n] I[n-1] + Q[n] Q[n-1]),
    which never needs the absolute phase and so never wraps. There is no
    backward difference for the first sample; it copies the second.

    Returns:
        Contour of the same length as the input, values in (-pi, pi]
    """
    i_part = np.asarray(i_part, dtype=np.float64)
    q_part = np.asarray(q_part, dtype=np.float64)
    length = len(i_part)
    freq = np.zeros(length, dtype=np.float64)
    if length < 2:
        return freq

    cross = i_part[1:] * q_part[:-1] - q_part[1:] * i_part[:-1]
    dot = i_part[1:] * i_part[:-1] + q_part[1:] * q_part[:-1]
    # numpy defines atan2(0, 0) as 0, which covers silent stretches
    freq[1:] = np.arctan2(cross, dot)
    freq[0] = freq[1]
    return freq


def am_demodulate(i_part: np.ndarray, q_part: np.ndarray) -> np.ndarray:
    """Instantaneous amplitude sqrt(I^2 + Q^2)"""
    return np.hypot(np.asarray(i_part, dtype=np.float64), np.asarray(q_part, dtype=np.float64))


def median_denoise(contour: np.ndarray, window: int = 5) -> np.ndarray:
    """
    Sliding median over an odd window, clamped at the buffer edges.

    Removes isolated spikes from FM estimates (phase glitches where the
    amplitude passes near zero) before lowpass smoothing.
    """
    if window < 1 or window % 2 == 0:
        raise ValueError(f"Median window must be a positive odd integer, got {window}")
    contour = np.asarray(contour, dtype=np.float64)
    if contour.size == 0:
        return contour.copy()
    # mode='nearest' replicates the edge sample, i.e. clamps the window index
    return median_filter(contour, size=window, mode='nearest')


def unwrap_phase(i_part: np.ndarray, q_part: np.ndarray) -> np.ndarray:
    """
    Continuous instantaneous phase.

    raw[n] = atan2(Q[n], I[n]); each step raw[n] - raw[n-1] is wrapped into
    (-pi, pi] and integrated.
    """
    raw = np.arctan2(np.asarray(q_part, dtype=np.float64), np.asarray(i_part, dtype=np.float64))
    if raw.size == 0:
        return raw
    return np.unwrap(raw)


def instantaneous_frequency_hz(contour: np.ndarray, sample_rate: int) -> np.ndarray:
    """Convert a radians-per-sample contour to Hz"""
    return np.asarray(contour, dtype=np.float64) * sample_rate / (2.0 * np.pi)
