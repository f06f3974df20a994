"""
Sample Buffer for Blackbird
Floating-point audio samples tagged with a sample rate and channel count
"""

import numpy as np
from dataclasses import dataclass
from typing import Sequence


@dataclass
class SampleBuffer:
    """
    Audio samples in [-1, 1] at a known sample rate.

    Mono buffers hold a 1D array of shape (n,), stereo buffers a 2D array of
    shape (n, 2). Pipeline stages never modify a buffer in place; they build
    a new one.
    """

    samples: np.ndarray
    sample_rate: int = 44100

    def __post_init__(self):
        self.samples = np.asarray(self.samples, dtype=np.float64)
        if self.samples.ndim == 2 and self.samples.shape[1] == 1:
            self.samples = self.samples[:, 0]
        if self.samples.ndim not in (1, 2):
            raise ValueError(f"Samples must be 1D or 2D, got {self.samples.ndim} dimensions")
        if self.samples.ndim == 2 and self.samples.shape[1] != 2:
            raise ValueError(f"Only mono and stereo buffers are supported, got {self.samples.shape[1]} channels")
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")

    @property
    def channels(self) -> int:
        return 1 if self.samples.ndim == 1 else self.samples.shape[1]

    @property
    def duration(self) -> float:
        """Length in seconds"""
        return len(self) / self.sample_rate

    def __len__(self) -> int:
        return self.samples.shape[0]

    def is_empty(self) -> bool:
        return len(self) == 0

    def channel(self, index: int) -> np.ndarray:
        """Copy of one channel as a 1D array"""
        if index < 0 or index >= self.channels:
            raise IndexError(f"Channel {index} out of range for {self.channels}-channel buffer")
        if self.channels == 1:
            return self.samples.copy()
        return self.samples[:, index].copy()

    def peak(self) -> float:
        if self.is_empty():
            return 0.0
        return float(np.max(np.abs(self.samples)))

    @classmethod
    def empty(cls, sample_rate: int = 44100, channels: int = 1) -> 'SampleBuffer':
        shape = (0,) if channels == 1 else (0, channels)
        return cls(np.zeros(shape, dtype=np.float64), sample_rate)

    @classmethod
    def from_channels(cls, channels: Sequence[np.ndarray], sample_rate: int = 44100) -> 'SampleBuffer':
        """Build a buffer from per-channel 1D arrays of equal length"""
        if len(channels) == 1:
            return cls(np.asarray(channels[0], dtype=np.float64), sample_rate)
        lengths = {len(ch) for ch in channels}
        if len(lengths) != 1:
            raise ValueError(f"Channels must have equal length, got {sorted(lengths)}")
        return cls(np.column_stack([np.asarray(ch, dtype=np.float64) for ch in channels]), sample_rate)
