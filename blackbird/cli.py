"""
Command line for Blackbird

  blackbird encode voice.wav birdsong.wav [--strategy phase]
  blackbird decode birdsong.wav voice.wav
  blackbird live [--seconds 10] [--device 3]
  blackbird config [--reset]
"""

import argparse
import json
import logging
import sys

from .codec import BirdsongCodec
from .config import CodecConfig, ConfigStore, STRATEGY_NAMES
from .wav_io import load_wav, save_wav

logger = logging.getLogger(__name__)


def _load_config(args) -> CodecConfig:
    if args.config:
        return CodecConfig.from_json_file(args.config)
    return ConfigStore().load()


def cmd_encode(args) -> int:
    config = _load_config(args)
    voice = load_wav(args.input)
    codec = BirdsongCodec(config)
    birdsong = codec.encode(voice, strategy=args.strategy)
    save_wav(birdsong, args.output)
    print(f"Encoded {voice.duration:.2f} s with '{args.strategy or config.strategy}' embedding -> {args.output}")
    return 0


def cmd_decode(args) -> int:
    config = _load_config(args)
    birdsong = load_wav(args.input)
    result = BirdsongCodec(config).decode(birdsong)
    save_wav(result.voice, args.output)
    if not result.recovered:
        print(f"Warning: {result.error}; wrote silence to {args.output}")
        return 1
    print(f"Decoded {birdsong.duration:.2f} s via '{result.strategy}' -> {args.output}")
    return 0


def cmd_live(args) -> int:
    from .live import run_live

    config = _load_config(args)
    device = args.device
    if device is not None and device.isdigit():
        device = int(device)
    print("Live birdsong encoding, press Ctrl+C to stop")
    live = run_live(config, seconds=args.seconds, device=device)
    print(f"Processed {live.callback_count} blocks")
    return 0


def cmd_config(args) -> int:
    store = ConfigStore()
    config = store.reset() if args.reset else _load_config(args)
    print(f"Config file: {store.config_path}")
    print(json.dumps(config.to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blackbird", description="Disguise speech as birdsong and recover it")
    parser.add_argument("--config", default="", help="Path to a JSON codec config (default: stored user config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    encode = sub.add_parser("encode", help="Encode a voice WAV into birdsong")
    encode.add_argument("input", help="Voice WAV path")
    encode.add_argument("output", help="Birdsong WAV path")
    encode.add_argument("--strategy", choices=STRATEGY_NAMES, default=None,
                        help="Embedding strategy (default: from config)")
    encode.set_defaults(func=cmd_encode)

    decode = sub.add_parser("decode", help="Recover the voice from a birdsong WAV")
    decode.add_argument("input", help="Birdsong WAV path")
    decode.add_argument("output", help="Voice WAV path")
    decode.set_defaults(func=cmd_decode)

    live = sub.add_parser("live", help="Encode the microphone to the speakers in real time")
    live.add_argument("--seconds", type=float, default=None, help="Stop after this many seconds")
    live.add_argument("--device", default=None, help="sounddevice device index or name")
    live.set_defaults(func=cmd_live)

    config = sub.add_parser("config", help="Show or reset the stored configuration")
    config.add_argument("--reset", action="store_true", help="Reset the stored configuration to defaults")
    config.set_defaults(func=cmd_config)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")
    try:
        return args.func(args)
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 2


if __name__ == '__main__':
    sys.exit(main())
