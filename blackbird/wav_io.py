"""
WAV I/O for Blackbird
16-bit PCM read/write between WAV files and SampleBuffer
"""

import logging
import wave
import numpy as np

from .buffer import SampleBuffer

logger = logging.getLogger(__name__)


def save_wav(buffer: SampleBuffer, filename: str):
    """
    Save a buffer as 16-bit PCM WAV (mono or interleaved stereo).

    Samples are clipped to [-1, 1]; negative values scale by 32768 and
    positive values by 32767 so both full-scale ends are reachable.
    """
    samples = np.clip(buffer.samples, -1.0, 1.0)
    scaled = np.where(samples < 0, samples * 32768.0, samples * 32767.0)
    int_samples = np.round(scaled).astype('<i2')
    with wave.open(filename, 'w') as wf:
        wf.setnchannels(buffer.channels)
        wf.setsampwidth(2)
        wf.setframerate(buffer.sample_rate)
        # C-order (n, 2) is already interleaved L R L R
        wf.writeframes(int_samples.tobytes())
    logger.debug("Wrote %d frames x %d channels to %s", len(buffer), buffer.channels, filename)


def load_wav(filename: str) -> SampleBuffer:
    """Load a 16-bit PCM WAV file (mono or stereo) as float64 samples"""
    with wave.open(filename, 'r') as wf:
        rate = wf.getframerate()
        nchannels = wf.getnchannels()
        sampwidth = wf.getsampwidth()
        frames = wf.readframes(wf.getnframes())

    if sampwidth != 2:
        raise ValueError(f"Unsupported sample width {sampwidth * 8} bits in {filename}; expected 16-bit PCM")
    if nchannels not in (1, 2):
        raise ValueError(f"Unsupported channel count {nchannels} in {filename}")

    samples = np.frombuffer(frames, dtype='<i2').astype(np.float64) / 32768.0
    if nchannels == 2:
        samples = samples.reshape(-1, 2)
    logger.debug("Read %d frames x %d channels at %d Hz from %s", len(samples), nchannels, rate, filename)
    return SampleBuffer(samples, rate)
