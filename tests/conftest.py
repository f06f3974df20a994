"""
Shared fixtures for the Blackbird test suite

All signals are synthetic, so no audio files or hardware are needed.
"""

import os
import sys

import numpy as np
import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from blackbird.config import CodecConfig
from blackbird.convolution import convolve
from blackbird.filter import sinc_bandpass
from blackbird.normalize import peak_normalize


SAMPLE_RATE = 44100


def make_tone(freq_hz, amplitude=0.5, n_samples=SAMPLE_RATE, sample_rate=SAMPLE_RATE, phase=0.0):
    n = np.arange(n_samples, dtype=np.float64)
    return amplitude * np.sin(2.0 * np.pi * freq_hz * n / sample_rate + phase)


def make_sweep(start_hz=200.0, end_hz=800.0, amplitude=0.8, n_samples=SAMPLE_RATE, sample_rate=SAMPLE_RATE):
    """Linear chirp from start_hz to end_hz"""
    t = np.arange(n_samples, dtype=np.float64) / sample_rate
    duration = n_samples / sample_rate
    phase = 2.0 * np.pi * (start_hz * t + 0.5 * (end_hz - start_hz) / duration * t * t)
    return amplitude * np.sin(phase)


def make_vibrato(centre_hz=250.0, depth_hz=20.0, rate_hz=5.0, amplitude=0.8, n_samples=SAMPLE_RATE,
                 sample_rate=SAMPLE_RATE):
    """Tone whose pitch swings centre_hz +/- depth_hz at rate_hz"""
    t = np.arange(n_samples, dtype=np.float64) / sample_rate
    phase = 2.0 * np.pi * centre_hz * t + (depth_hz / rate_hz) * (1.0 - np.cos(2.0 * np.pi * rate_hz * t))
    return amplitude * np.sin(phase)


def make_noise_burst(low_hz=200.0, high_hz=1000.0, amplitude=0.8, n_samples=SAMPLE_RATE,
                     sample_rate=SAMPLE_RATE, seed=1234):
    """Seeded band-limited noise with 20 ms raised-cosine fades"""
    rng = np.random.default_rng(seed)
    noise = convolve(rng.standard_normal(n_samples), sinc_bandpass(low_hz, high_hz, 1025, sample_rate))
    fade = min(int(0.02 * sample_rate), n_samples // 2)
    ramp = 0.5 - 0.5 * np.cos(np.pi * np.arange(fade) / fade)
    noise[:fade] *= ramp
    noise[n_samples - fade:] *= ramp[::-1]
    return peak_normalize(noise, amplitude)


VOICE_MAKERS = {
    'sweep': make_sweep,
    'vibrato': make_vibrato,
    'noise': make_noise_burst,
}


def peak_frequency(samples, sample_rate=SAMPLE_RATE):
    """Frequency of the largest FFT bin (Hann windowed)"""
    spectrum = np.abs(np.fft.rfft(samples * np.hanning(len(samples))))
    freqs = np.fft.rfftfreq(len(samples), 1.0 / sample_rate)
    return freqs[np.argmax(spectrum)]


@pytest.fixture
def config():
    return CodecConfig()


@pytest.fixture
def sweep():
    """1 second 200 -> 800 Hz voice-like sweep"""
    return make_sweep()


@pytest.fixture
def tone_250():
    """1 second 250 Hz tone inside the voice fundamental band"""
    return make_tone(250.0, amplitude=0.8)


@pytest.fixture
def plain_carrier():
    """Constant 5 kHz carrier at the encoder output peak"""
    return make_tone(5000.0, amplitude=0.9)


@pytest.fixture(params=sorted(VOICE_MAKERS))
def voice(request):
    """Pitch-varying voices: chirp, vibrato and band-limited noise burst"""
    return VOICE_MAKERS[request.param]()
