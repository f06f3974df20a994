"""
Convolution Engine for Blackbird
Offline zero-padded FIR convolution and causal ring-buffer FIR for streaming

The streaming stages run inside the audio callback, so their per-sample loops
are JIT-compiled with Numba and operate only on arrays allocated at stream
start.
"""

import numpy as np
from numba import jit
from scipy.signal import correlate


def convolve(signal: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """
    Centre-aligned FIR filtering of a whole buffer.

    out[i] = sum_j signal[i - mid + j] * kernel[j], with mid = len(kernel) // 2
    and samples outside the buffer treated as zero, so output i lines up with
    input i.

    Args:
        signal: 1D input samples
        kernel: Odd-length FIR kernel

    Returns:
        float64 array of the same length as signal
    """
    signal = np.asarray(signal, dtype=np.float64)
    if signal.size == 0:
        return np.zeros(0, dtype=np.float64)
    return correlate(signal, np.asarray(kernel, dtype=np.float64), mode='same')


def _ring_capacity(min_size: int) -> int:
    """Smallest power of two >= min_size"""
    capacity = 1
    while capacity < min_size:
        capacity <<= 1
    return capacity


@jit(nopython=True, cache=True)
def _fir_block(block, out, history, kernel, pos):
    """Push block into the ring and write one filtered sample per input sample"""
    capacity = history.shape[0]
    taps = kernel.shape[0]
    for n in range(block.shape[0]):
        history[pos] = block[n]
        start = pos - taps + 1 + capacity
        acc = 0.0
        for j in range(taps):
            acc += history[(start + j) % capacity] * kernel[j]
        out[n] = acc
        pos = (pos + 1) % capacity
    return pos


@jit(nopython=True, cache=True)
def _delay_block(block, out, history, delay, pos):
    """Push block into the ring and read it back delay samples later"""
    capacity = history.shape[0]
    for n in range(block.shape[0]):
        history[pos] = block[n]
        out[n] = history[(pos - delay + capacity) % capacity]
        pos = (pos + 1) % capacity
    return pos


class RingBufferFIR:
    """
    Causal streaming FIR filter on a preallocated circular history.

    Uses the same taps as convolve(); the output at stream time t equals the
    offline output for input index t - latency, where latency = len(kernel) // 2.
    """

    def __init__(self, kernel: np.ndarray, block_size: int = 4096):
        self.kernel = np.ascontiguousarray(kernel, dtype=np.float64)
        self.block_size = block_size
        self.latency = len(self.kernel) // 2
        self.history = np.zeros(_ring_capacity(len(self.kernel) + block_size), dtype=np.float64)
        self._pos = 0

    def reset(self):
        self.history[:] = 0.0
        self._pos = 0

    def process_into(self, block: np.ndarray, out: np.ndarray):
        """Filter block into out[:len(block)] without allocating"""
        self._pos = _fir_block(block, out, self.history, self.kernel, self._pos)

    def process(self, block: np.ndarray) -> np.ndarray:
        """Convenience wrapper that allocates its output"""
        block = np.ascontiguousarray(block, dtype=np.float64)
        out = np.empty_like(block)
        self.process_into(block, out)
        return out


class RingBufferDelay:
    """Fixed integer delay on a preallocated circular history"""

    def __init__(self, delay: int, block_size: int = 4096):
        if delay < 0:
            raise ValueError(f"Delay must be non-negative, got {delay}")
        self.delay = delay
        self.latency = delay
        self.history = np.zeros(_ring_capacity(delay + block_size + 1), dtype=np.float64)
        self._pos = 0

    def reset(self):
        self.history[:] = 0.0
        self._pos = 0

    def process_into(self, block: np.ndarray, out: np.ndarray):
        self._pos = _delay_block(block, out, self.history, self.delay, self._pos)

    def process(self, block: np.ndarray) -> np.ndarray:
        block = np.ascontiguousarray(block, dtype=np.float64)
        out = np.empty_like(block)
        self.process_into(block, out)
        return out
