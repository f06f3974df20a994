"""
Birdsong Codec for Blackbird
Encodes speech into a birdsong-like carrier and recovers it again

  Encode: voice -> contours -> carrier -> normalize -> strategy.encode(carrier, voice)
  Decode: input -> detected side channel, else DSP inversion of the carrier
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional

from .buffer import SampleBuffer
from .config import CodecConfig
from .embedding import create_strategy, detect_and_decode, NoEmbedding
from .pipeline import analyze_voice, synthesize_carrier

logger = logging.getLogger(__name__)


@dataclass
class DecodeResult:
    """Outcome of a decode call"""
    voice: SampleBuffer
    strategy: str = NoEmbedding.name
    recovered: bool = True
    error: Optional[str] = None


class BirdsongCodec:
    """
    Voice-to-birdsong encoder/decoder for one configuration.

    Holds no per-call state, so one instance can serve concurrent calls on
    independent buffers.
    """

    def __init__(self, config: CodecConfig = None):
        self.config = config or CodecConfig()

    def _check_rate(self, buffer: SampleBuffer):
        if buffer.sample_rate != self.config.sample_rate:
            logger.warning("Buffer sample rate %d Hz differs from configured %d Hz; "
                           "filter cutoffs will be off by %.2fx",
                           buffer.sample_rate, self.config.sample_rate,
                           buffer.sample_rate / self.config.sample_rate)

    def encode(self, voice: SampleBuffer, strategy: Optional[str] = None) -> SampleBuffer:
        """
        Disguise a voice recording as birdsong.

        Args:
            voice: Mono or stereo voice buffer (stereo uses channel 1)
            strategy: Embedding strategy name, defaults to config.strategy

        Returns:
            Mono or stereo buffer depending on the strategy
        """
        if voice.is_empty():
            return SampleBuffer.empty(voice.sample_rate, voice.channels)
        self._check_rate(voice)

        embedder = create_strategy(strategy or self.config.strategy, self.config)
        samples = voice.channel(0)

        contours = analyze_voice(samples, self.config)
        carrier = synthesize_carrier(contours, self.config)
        output = embedder.encode(carrier, samples)

        logger.debug("Encoded %d samples with %s embedding", len(samples), embedder.name)
        return SampleBuffer(output, voice.sample_rate)

    def decode(self, birdsong: SampleBuffer) -> DecodeResult:
        """
        Recover the voice from an encoded buffer.

        Never raises for undetectable input: when neither a side channel nor
        the DSP inversion yields anything, the result has recovered=False, a
        silent voice buffer and an error message.
        """
        if birdsong.is_empty():
            return DecodeResult(SampleBuffer.empty(birdsong.sample_rate, birdsong.channels),
                                recovered=False, error="Empty input buffer")
        self._check_rate(birdsong)

        name, voice = detect_and_decode(birdsong.samples, self.config)
        if voice is None:
            logger.warning("No recoverable voice in %d samples", len(birdsong))
            silence = np.zeros(len(birdsong), dtype=np.float64)
            return DecodeResult(SampleBuffer(silence, birdsong.sample_rate), strategy=name,
                                recovered=False, error="No recoverable voice detected")

        logger.debug("Decoded %d samples via %s", len(voice), name)
        return DecodeResult(SampleBuffer(voice, birdsong.sample_rate), strategy=name)

    def carrier(self, voice: SampleBuffer) -> SampleBuffer:
        """Birdsong carrier alone, without any side channel"""
        return self.encode(voice, strategy=NoEmbedding.name)
