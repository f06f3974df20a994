"""
Live Mode for Blackbird
Microphone-to-speaker birdsong encoding through sounddevice

sounddevice needs the PortAudio shared library, so it is imported only when a
live stream is actually opened.
"""

import logging
import numpy as np

from .config import CodecConfig
from .streaming import StreamingEncoder

logger = logging.getLogger(__name__)


class LiveEncoder:
    """Duplex audio stream running a StreamingEncoder in its callback"""

    def __init__(self, config: CodecConfig = None, device=None):
        self.config = config or CodecConfig()
        self.device = device
        self.encoder = StreamingEncoder(self.config)
        self.stream = None
        self.callback_count = 0
        self.status_count = 0

    def _audio_callback(self, indata, outdata, frames, time_info, status):
        """Encode one input block straight into the output buffer"""
        self.callback_count += 1
        if status:
            self.status_count += 1
            if self.status_count <= 5:
                logger.warning("Stream status on callback #%d: %s", self.callback_count, status)

        block = self.encoder.process(indata[:frames, 0])
        outdata[:frames, 0] = block

    def start(self):
        import sounddevice as sd

        self.encoder.reset()
        self.stream = sd.Stream(
            device=self.device,
            samplerate=self.config.sample_rate,
            blocksize=self.config.stream_block_size,
            channels=1,
            dtype=np.float32,
            callback=self._audio_callback,
        )
        self.stream.start()
        logger.info("Live stream started at %d Hz, block %d, latency %d samples",
                    self.config.sample_rate, self.config.stream_block_size, self.encoder.latency)

    def stop(self):
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None
            logger.info("Live stream stopped after %d callbacks", self.callback_count)

    def __enter__(self) -> 'LiveEncoder':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


def run_live(config: CodecConfig = None, seconds: float = None, device=None):
    """
    Run live encoding for a fixed time, or until interrupted with Ctrl+C.
    """
    import sounddevice as sd

    with LiveEncoder(config, device) as live:
        try:
            if seconds is not None:
                sd.sleep(int(seconds * 1000))
            else:
                while True:
                    sd.sleep(1000)
        except KeyboardInterrupt:
            logger.info("Interrupted")
    return live
