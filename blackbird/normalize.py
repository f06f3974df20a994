"""
Level utilities for Blackbird
Peak normalization, DC removal and clipping guards
"""

import numpy as np

DEFAULT_PEAK = 0.9


def peak(samples: np.ndarray) -> float:
    samples = np.asarray(samples)
    if samples.size == 0:
        return 0.0
    return float(np.max(np.abs(samples)))


def peak_normalize(samples: np.ndarray, target: float = DEFAULT_PEAK) -> np.ndarray:
    """
    Scale so the absolute peak equals target.

    All-zero input and input already at the target peak come back unchanged
    (as a copy).
    """
    samples = np.array(samples, dtype=np.float64)
    max_abs = peak(samples)
    if max_abs == 0.0 or abs(max_abs - target) <= 1e-12 * target:
        return samples
    return samples * (target / max_abs)


def remove_dc(samples: np.ndarray) -> np.ndarray:
    """Subtract the mean"""
    samples = np.array(samples, dtype=np.float64)
    if samples.size == 0:
        return samples
    return samples - np.mean(samples)


def limit_peak(samples: np.ndarray, ceiling: float = 1.0) -> np.ndarray:
    """Rescale (not clip) only if the peak exceeds ceiling"""
    samples = np.array(samples, dtype=np.float64)
    max_abs = peak(samples)
    if max_abs > ceiling:
        samples *= ceiling / max_abs
    return samples


def hard_clip(samples: np.ndarray, out: np.ndarray = None, limit: float = 1.0) -> np.ndarray:
    """Clip to [-limit, limit]; writes into out when given (no allocation)"""
    return np.clip(samples, -limit, limit, out=out)


def mean_square(samples: np.ndarray) -> float:
    samples = np.asarray(samples)
    if samples.size == 0:
        return 0.0
    return float(np.mean(np.square(samples)))


def normalized_correlation(a: np.ndarray, b: np.ndarray) -> float:
    """Zero-lag normalized cross-correlation of two equal-length signals"""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denom = np.sqrt(np.sum(a * a) * np.sum(b * b))
    if denom == 0.0:
        return 0.0
    return float(np.sum(a * b) / denom)
