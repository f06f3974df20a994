"""
Blackbird - voice-to-birdsong disguise codec
"""

from .buffer import SampleBuffer
from .config import CodecConfig, ConfigStore
from .codec import BirdsongCodec, DecodeResult
from .embedding import (
    EmbeddingStrategy, SecondaryChannelEmbedding, UltrasonicEmbedding,
    PhaseChannelEmbedding, NoEmbedding, create_strategy, detect_and_decode,
)
from .streaming import StreamingAnalyzer, StreamingEncoder
from .wav_io import load_wav, save_wav

__version__ = "1.0.0"

__all__ = [
    'SampleBuffer', 'CodecConfig', 'ConfigStore',
    'BirdsongCodec', 'DecodeResult',
    'EmbeddingStrategy', 'SecondaryChannelEmbedding', 'UltrasonicEmbedding',
    'PhaseChannelEmbedding', 'NoEmbedding', 'create_strategy', 'detect_and_decode',
    'StreamingAnalyzer', 'StreamingEncoder',
    'load_wav', 'save_wav',
]
