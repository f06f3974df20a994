"""
Filter design tests

Run with: pytest tests/test_filter.py -v
"""

import numpy as np
import sys
import os
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from blackbird.filter import (
    WindowType, window, tap_offsets, hilbert_kernel, sinc_lowpass, sinc_bandpass,
    cached_hilbert, cached_lowpass, dct_bin, dct_band,
)

SAMPLE_RATE = 44100


def frequency_response(kernel, freq_hz, sample_rate=SAMPLE_RATE):
    """Magnitude of the kernel's DTFT at freq_hz"""
    n = tap_offsets(len(kernel))
    omega = 2.0 * np.pi * freq_hz / sample_rate
    return abs(np.sum(kernel * np.exp(-1j * omega * n)))


class TestHilbertKernel:
    """Test the Hilbert phase shifter"""

    def test_even_offsets_are_zero(self):
        """Centre tap and every even offset should be exactly zero"""
        kernel = hilbert_kernel(129)
        even = tap_offsets(129) % 2 == 0
        assert np.all(kernel[even] == 0.0)
        assert np.all(kernel[~even] != 0.0)

    def test_antisymmetric(self):
        """Taps should be odd-symmetric around the centre"""
        kernel = hilbert_kernel(65)
        np.testing.assert_allclose(kernel, -kernel[::-1], atol=1e-12)

    def test_first_tap_value(self):
        """Offset +1 tap should be 2/pi times the window value"""
        kernel = hilbert_kernel(129)
        expected = 2.0 / np.pi * window(WindowType.HAMMING, 129)[65]
        assert abs(kernel[65] - expected) < 1e-12

    def test_passband_gain(self):
        """Mid-band magnitude response should be close to 1"""
        kernel = hilbert_kernel(129)
        for freq in (3000.0, 5000.0, 11025.0):
            assert abs(frequency_response(kernel, freq) - 1.0) < 0.01, f"Gain at {freq} Hz"

    @pytest.mark.parametrize("length", [2, 64, 1, 0])
    def test_invalid_length(self, length):
        """Even or too-short lengths should be rejected"""
        with pytest.raises(ValueError):
            hilbert_kernel(length)


class TestSincLowpass:
    """Test windowed-sinc lowpass design"""

    def test_unity_dc_gain(self):
        """Taps should sum to 1"""
        for cutoff, length in ((140.0, 1025), (70.0, 257), (4000.0, 257)):
            kernel = sinc_lowpass(cutoff, length, SAMPLE_RATE)
            assert abs(np.sum(kernel) - 1.0) < 1e-6

    def test_symmetric(self):
        """Lowpass kernels should be linear phase (even-symmetric)"""
        kernel = sinc_lowpass(140.0, 1025, SAMPLE_RATE)
        np.testing.assert_allclose(kernel, kernel[::-1], atol=1e-15)

    def test_stopband_attenuation(self):
        """Well past the transition band the response should be below -60 dB"""
        kernel = sinc_lowpass(140.0, 1025, SAMPLE_RATE)
        for freq in (600.0, 1000.0, 5000.0):
            assert frequency_response(kernel, freq) < 1e-3, f"Leakage at {freq} Hz"

    def test_passband(self):
        """Well inside the passband the gain should be close to 1"""
        kernel = sinc_lowpass(4000.0, 257, SAMPLE_RATE)
        assert abs(frequency_response(kernel, 500.0) - 1.0) < 0.01

    def test_invalid_cutoff(self):
        """Cutoffs at or beyond Nyquist, or non-positive, should be rejected"""
        with pytest.raises(ValueError):
            sinc_lowpass(22050.0, 129, SAMPLE_RATE)
        with pytest.raises(ValueError):
            sinc_lowpass(0.0, 129, SAMPLE_RATE)
        with pytest.raises(ValueError):
            sinc_lowpass(-10.0, 129, SAMPLE_RATE)

    def test_invalid_length(self):
        """Even lengths should be rejected"""
        with pytest.raises(ValueError):
            sinc_lowpass(140.0, 1024, SAMPLE_RATE)


class TestSincBandpass:
    """Test bandpass as a lowpass difference"""

    def test_zero_dc_gain(self):
        """Bandpass taps should sum to 0"""
        kernel = sinc_bandpass(300.0, 3000.0, 513, SAMPLE_RATE)
        assert abs(np.sum(kernel)) < 1e-9

    def test_passes_band_centre(self):
        kernel = sinc_bandpass(300.0, 3000.0, 513, SAMPLE_RATE)
        assert abs(frequency_response(kernel, 1500.0) - 1.0) < 0.01

    def test_inverted_edges(self):
        with pytest.raises(ValueError):
            sinc_bandpass(3000.0, 300.0, 513, SAMPLE_RATE)


class TestKernelCache:
    """Test shared read-only kernels"""

    def test_same_object(self):
        """Repeated requests should return the cached array"""
        assert cached_hilbert(129) is cached_hilbert(129)
        assert cached_lowpass(140.0, 1025, SAMPLE_RATE) is cached_lowpass(140.0, 1025, SAMPLE_RATE)

    def test_read_only(self):
        """Cached kernels must not be writable"""
        kernel = cached_lowpass(70.0, 1025, SAMPLE_RATE)
        assert not kernel.flags.writeable
        with pytest.raises(ValueError):
            kernel[0] = 1.0

    def test_matches_design(self):
        np.testing.assert_array_equal(cached_hilbert(65), hilbert_kernel(65))


class TestDctBand:
    """Test the exact transform-domain band projection"""

    def test_bin_position(self):
        assert dct_bin(100.0, SAMPLE_RATE, SAMPLE_RATE) == 200.0
        assert dct_bin(40.0, 8192, SAMPLE_RATE) == pytest.approx(14.86, abs=0.01)

    def test_idempotent(self):
        rng = np.random.default_rng(7)
        signal = rng.standard_normal(4096)
        once = dct_band(signal, 50, 900)
        np.testing.assert_allclose(dct_band(once, 50, 900), once, atol=1e-12)

    def test_complementary_bands_sum_to_signal(self):
        rng = np.random.default_rng(8)
        signal = rng.standard_normal(3000)
        parts = dct_band(signal, 0, 120) + dct_band(signal, 120, 3000)
        np.testing.assert_allclose(parts, signal, atol=1e-12)

    def test_removes_out_of_band_tone(self):
        """A 1 kHz tone is outside a 100-400 Hz band (checked away from the ends)"""
        n = np.arange(SAMPLE_RATE)
        low = np.sin(2.0 * np.pi * 250.0 * n / SAMPLE_RATE)
        high = np.sin(2.0 * np.pi * 1000.0 * n / SAMPLE_RATE)
        kept = dct_band(low + high, 200, 800)
        assert np.max(np.abs(kept - low)[2000:-2000]) < 0.05


if __name__ == '__main__':
    exit(pytest.main([__file__, '-v']))
