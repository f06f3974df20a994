"""
Phase-accumulator synthesizer tests

Run with: pytest tests/test_synthesizer.py -v
"""

import numpy as np
import sys
import os
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from blackbird.synthesizer import PhaseAccumulatorSynth, Waveshape
from blackbird.analytic import analytic_signal
from blackbird.demodulator import fm_demodulate

SAMPLE_RATE = 44100


def contour_for(freq_hz):
    """Per-sample pitch contour value for a voice frequency"""
    return 2.0 * np.pi * freq_hz / SAMPLE_RATE


class TestWaveshape:
    """Test waveshape selection"""

    def test_from_name(self):
        assert Waveshape.from_name('sine') is Waveshape.SINE
        assert Waveshape.from_name('harmonic') is Waveshape.HARMONIC
        assert Waveshape.from_name('saw_blend') is Waveshape.SAW_BLEND

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            Waveshape.from_name('square')


class TestRender:
    """Test whole-buffer rendering"""

    def test_output_frequency(self):
        """A 300 Hz contour should come out at 300 * output_gain Hz (about 6.15 kHz)"""
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 24000.0, 6.0)
        n = 8192
        out = synth.render(np.full(n, contour_for(300.0)), np.ones(n))

        i_part, q_part = analytic_signal(out)
        measured = np.mean(fm_demodulate(i_part, q_part)[300:-300]) * SAMPLE_RATE / (2.0 * np.pi)
        expected = 300.0 * synth.output_gain
        assert 6100.0 < expected < 6200.0
        assert abs(measured - expected) < 0.01 * expected, f"Measured {measured:.1f} Hz"

    def test_inverse_law(self):
        """Demodulated carrier mapped back through the synth should match the input contour"""
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 24000.0, 6.0)
        contour = contour_for(300.0)
        out = synth.render(np.full(8192, contour), np.ones(8192))
        i_part, q_part = analytic_signal(out)
        recovered = synth.contour_from_carrier(fm_demodulate(i_part, q_part))[300:-300]
        assert abs(np.mean(recovered) - contour) < 0.01 * contour

    def test_envelope_scales_output(self):
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 1.0, 1.0)
        contour = np.full(2000, contour_for(1000.0))
        full = synth.render(contour, np.ones(2000))
        half = synth.render(contour, np.full(2000, 0.5))
        np.testing.assert_allclose(half, 0.5 * full, atol=1e-12)

    def test_zero_envelope_is_silent(self):
        synth = PhaseAccumulatorSynth()
        out = synth.render(np.full(100, 0.05), np.zeros(100))
        assert np.all(out == 0.0)

    @pytest.mark.parametrize("shape", list(Waveshape))
    def test_peak_bounded(self, shape):
        """Every waveshape stays within the envelope"""
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 1.0, 1.0, waveshape=shape)
        out = synth.render(np.full(4410, contour_for(441.0)), np.ones(4410))
        assert np.max(np.abs(out)) <= 1.0 + 1e-9

    def test_length_mismatch(self):
        synth = PhaseAccumulatorSynth()
        with pytest.raises(ValueError):
            synth.render(np.zeros(10), np.zeros(11))


class TestBlockRender:
    """Test streaming rendering with carried phase"""

    def test_blocks_match_whole_buffer(self):
        """Rendering in uneven blocks should equal one whole-buffer render"""
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 24000.0, 6.0)
        rng = np.random.default_rng(6)
        contour = contour_for(200.0) + 0.002 * rng.standard_normal(5000)
        envelope = np.abs(rng.standard_normal(5000))
        whole = synth.render(contour, envelope)

        synth.reset()
        out = np.zeros(5000)
        for start, stop in ((0, 1), (1, 700), (700, 3001), (3001, 5000)):
            synth.render_block(contour[start:stop], envelope[start:stop], out[start:stop])
        np.testing.assert_allclose(out, whole, atol=1e-12)

    def test_phase_is_carried(self):
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 1.0, 1.0)
        out = np.zeros(100)
        synth.render_block(np.full(100, 0.1), np.ones(100), out)
        assert abs(synth.phase - 100 * 0.1 * synth.step) < 1e-9
        synth.reset()
        assert synth.phase == 0.0

    def test_phase_not_wrapped(self):
        """Accumulated phase keeps growing past 2 pi"""
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 24000.0, 6.0)
        out = np.zeros(4410)
        synth.render_block(np.full(4410, contour_for(300.0)), np.ones(4410), out)
        assert synth.phase > 2.0 * np.pi * 10


class TestInversion:
    """Test the decoder-direction synthesizer"""

    def test_inverse_gain(self):
        """Encoder and inverted synth output gains multiply to 1"""
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 24000.0, 6.0)
        inverse = synth.inverted()
        assert inverse.harmonic_multiplier == 1.0
        assert abs(synth.output_gain * inverse.output_gain - 1.0) < 1e-12

    def test_inverse_recovers_pitch(self):
        """Feeding a carrier contour to the inverted synth reproduces the voice pitch"""
        synth = PhaseAccumulatorSynth(SAMPLE_RATE, 24000.0, 6.0)
        carrier_contour = np.full(SAMPLE_RATE, contour_for(250.0) * synth.output_gain)
        voice = synth.inverted().render(carrier_contour, np.ones(SAMPLE_RATE))
        spectrum = np.abs(np.fft.rfft(voice))
        freqs = np.fft.rfftfreq(len(voice), 1.0 / SAMPLE_RATE)
        assert abs(freqs[np.argmax(spectrum)] - 250.0) < 2.0

    def test_set_waveshape(self):
        synth = PhaseAccumulatorSynth()
        synth.set_waveshape(Waveshape.HARMONIC)
        assert synth.waveshape is Waveshape.HARMONIC
        assert synth.inverted(Waveshape.SAW_BLEND).waveshape is Waveshape.SAW_BLEND


if __name__ == '__main__':
    exit(pytest.main([__file__, '-v']))
