"""
Live pitch monitor.

Captures the default microphone with sounddevice, runs the detector inside
the audio callback and prints the newest note from the main thread.

Usage:
    python scripts/listen_live.py [--seconds 30] [--fft-size 4096] [--device N]
"""

import argparse
import logging
import time

import numpy as np

from monopitch import LatestEstimate, StreamingPitchDetector
from monopitch.constants import CONFIDENCE_FLOOR, SAMPLE_RATE

logger = logging.getLogger("listen_live")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the detected note from the microphone")
    parser.add_argument("--seconds", type=float, default=30.0, help="How long to listen")
    parser.add_argument("--fft-size", type=int, default=4096, help="Analysis window (power of two)")
    parser.add_argument("--block-size", type=int, default=512, help="Samples per audio callback")
    parser.add_argument("--device", type=int, default=None, help="Input device index")
    parser.add_argument("--min-confidence", type=float, default=CONFIDENCE_FLOOR)
    parser.add_argument("--verbose", action="store_true", help="Log every frame")
    return parser.parse_args()


def listen(args: argparse.Namespace) -> None:
    import sounddevice as sd

    latest = LatestEstimate(confidence_floor=args.min_confidence)

    with StreamingPitchDetector(SAMPLE_RATE, fft_size=args.fft_size, latest=latest) as detector:

        def callback(indata: np.ndarray, frames: int, time_info, status) -> None:
            if status:
                logger.warning("Audio status: %s", status)
            # Results reach the main thread via `latest`
            detector.push_samples(indata[:, 0])

        stream = sd.InputStream(
            samplerate=SAMPLE_RATE,
            blocksize=args.block_size,
            channels=1,
            dtype="float32",
            device=args.device,
            callback=callback,
        )

        print(f"Listening for {args.seconds:.0f}s at {SAMPLE_RATE} Hz (Ctrl+C to stop)...")
        deadline = time.monotonic() + args.seconds
        with stream:
            try:
                while time.monotonic() < deadline:
                    estimate = latest.take()
                    if estimate is not None:
                        marker = " (held)" if estimate.held else ""
                        print(
                            f"{estimate.note:<2}{estimate.octave}  {estimate.frequency:7.2f} Hz  "
                            f"{estimate.cents:+5.1f}c  conf {estimate.confidence:.2f}{marker}"
                        )
                    time.sleep(0.05)
            except KeyboardInterrupt:
                print()

        logger.info("Dropped %d of %d published estimates", latest.dropped, latest.published)


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    listen(args)
