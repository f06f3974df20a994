"""
Streaming Encoder for Blackbird
Block-by-block voice-to-birdsong conversion for live audio callbacks

Runs the same stages as pipeline.analyze_voice, but causally: every FIR stage
is a RingBufferFIR and the in-phase branch goes through a matching delay
line, so the output trails the input by a fixed latency. All ring buffers and
scratch arrays are allocated in __init__; process() only writes into them.
"""

import math
import numpy as np
from numba import jit

from .analytic import hz_to_angular
from .config import CodecConfig
from .convolution import RingBufferFIR, RingBufferDelay
from .filter import cached_hilbert, cached_lowpass
from .normalize import hard_clip
from .pipeline import build_synth


@jit(nopython=True, cache=True)
def _rotate_block(i_in, q_in, i_out, q_out, omega, start):
    """Multiply by exp(j * omega * n) for absolute sample indices n = start + k"""
    for k in range(i_in.shape[0]):
        phase = omega * (start + k)
        c = math.cos(phase)
        s = math.sin(phase)
        i_out[k] = i_in[k] * c - q_in[k] * s
        q_out[k] = i_in[k] * s + q_in[k] * c


@jit(nopython=True, cache=True)
def _fm_block(i_in, q_in, out, state):
    """Cross/dot-product FM demodulation; state holds the previous (I, Q)"""
    prev_i = state[0]
    prev_q = state[1]
    for k in range(i_in.shape[0]):
        cross = i_in[k] * prev_q - q_in[k] * prev_i
        dot = i_in[k] * prev_i + q_in[k] * prev_q
        out[k] = math.atan2(cross, dot)
        prev_i = i_in[k]
        prev_q = q_in[k]
    state[0] = prev_i
    state[1] = prev_q


class StreamingAnalyzer:
    """
    Causal FM/AM contour extraction.

    Contour sample k of a process() call corresponds to input index
    (samples processed before the call) + k - latency.
    """

    def __init__(self, config: CodecConfig = None):
        self.config = config or CodecConfig()
        cfg = self.config
        sr = cfg.sample_rate
        block = cfg.stream_block_size
        self.block_size = block

        hilbert = cached_hilbert(cfg.stream_hilbert_length)
        baseband = cached_lowpass(cfg.baseband_cutoff_hz, cfg.stream_lowpass_length, sr)
        contour = cached_lowpass(cfg.contour_cutoff_hz, cfg.stream_lowpass_length, sr)

        self.hilbert = RingBufferFIR(hilbert, block)
        self.in_phase_delay = RingBufferDelay(self.hilbert.latency, block)
        self.baseband_i = RingBufferFIR(baseband, block)
        self.baseband_q = RingBufferFIR(baseband, block)
        self.contour_fm = RingBufferFIR(contour, block)
        self.contour_am = RingBufferFIR(contour, block)

        self.omega = hz_to_angular(cfg.shift_hz, sr)
        self.latency = self.hilbert.latency + self.baseband_i.latency + self.contour_fm.latency

        # Scratch arena
        self._input = np.zeros(block, dtype=np.float64)
        self._i = np.zeros(block, dtype=np.float64)
        self._q = np.zeros(block, dtype=np.float64)
        self._shift_i = np.zeros(block, dtype=np.float64)
        self._shift_q = np.zeros(block, dtype=np.float64)
        self._filt_i = np.zeros(block, dtype=np.float64)
        self._filt_q = np.zeros(block, dtype=np.float64)
        self._back_i = np.zeros(block, dtype=np.float64)
        self._back_q = np.zeros(block, dtype=np.float64)
        self._fm_raw = np.zeros(block, dtype=np.float64)
        self._am_raw = np.zeros(block, dtype=np.float64)
        self.fm = np.zeros(block, dtype=np.float64)
        self.am = np.zeros(block, dtype=np.float64)
        self._fm_state = np.zeros(2, dtype=np.float64)

        self._count = 0

    def reset(self):
        for stage in (self.hilbert, self.in_phase_delay, self.baseband_i, self.baseband_q,
                      self.contour_fm, self.contour_am):
            stage.reset()
        self._fm_state[:] = 0.0
        self._count = 0

    def process(self, block: np.ndarray):
        """
        Analyze up to block_size input samples.

        Returns:
            (fm, am) views into internal scratch, valid until the next call
        """
        n = len(block)
        if n > self.block_size:
            raise ValueError(f"Block of {n} samples exceeds stream block size {self.block_size}")

        x = self._input[:n]
        x[:] = block
        i_part, q_part = self._i[:n], self._q[:n]
        self.hilbert.process_into(x, q_part)
        self.in_phase_delay.process_into(x, i_part)

        # Index of the sample leaving the Hilbert stage
        index = self._count - self.hilbert.latency
        _rotate_block(i_part, q_part, self._shift_i[:n], self._shift_q[:n], self.omega, index)

        filt_i, filt_q = self._filt_i[:n], self._filt_q[:n]
        self.baseband_i.process_into(self._shift_i[:n], filt_i)
        self.baseband_q.process_into(self._shift_q[:n], filt_q)

        index -= self.baseband_i.latency
        back_i, back_q = self._back_i[:n], self._back_q[:n]
        _rotate_block(filt_i, filt_q, back_i, back_q, -self.omega, index)

        _fm_block(back_i, back_q, self._fm_raw[:n], self._fm_state)
        np.hypot(filt_i, filt_q, out=self._am_raw[:n])

        fm, am = self.fm[:n], self.am[:n]
        self.contour_fm.process_into(self._fm_raw[:n], fm)
        self.contour_am.process_into(self._am_raw[:n], am)

        self._count += n
        return fm, am


class StreamingEncoder:
    """
    Live voice-to-birdsong encoder.

    There is no global peak to normalize against in a stream, so the carrier
    is scaled by config.stream_gain and hard-clipped to [-1, 1]. No side
    channel is embedded.
    """

    def __init__(self, config: CodecConfig = None):
        self.config = config or CodecConfig()
        self.analyzer = StreamingAnalyzer(self.config)
        self.synth = build_synth(self.config)
        self.block_size = self.analyzer.block_size
        self.latency = self.analyzer.latency
        self._output = np.zeros(self.block_size, dtype=np.float64)

    def reset(self):
        self.analyzer.reset()
        self.synth.reset()

    def _process_block(self, block: np.ndarray, out: np.ndarray):
        fm, am = self.analyzer.process(block)
        self.synth.render_block(fm, am, out)
        out *= self.config.stream_gain
        hard_clip(out, out=out)

    def process(self, block: np.ndarray, out: np.ndarray = None) -> np.ndarray:
        """
        Encode one block of voice samples.

        Without out, blocks up to block_size are written to an internal buffer
        and a view is returned; longer blocks are split into sub-blocks and get
        a freshly allocated output.
        """
        n = len(block)
        if out is None:
            out = self._output[:n] if n <= self.block_size else np.empty(n, dtype=np.float64)
        for start in range(0, n, self.block_size):
            stop = min(start + self.block_size, n)
            self._process_block(block[start:stop], out[start:stop])
        return out[:n]
