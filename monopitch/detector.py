"""
Streaming pitch detector.

Audio arrives in chunks of whatever size the capture device delivers. The
detector collects them into a sliding window of ``fft_size`` samples and
analyzes it every ``hop_size`` samples, so the update rate depends only on
the hop, not on the chunk size.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

import numpy as np

from .config import DetectorConfig, build_config, validate_sample_rate
from .constants import SAMPLE_RATE
from .estimator import DetectionState, PitchEstimate, PitchEstimator
from .handoff import LatestEstimate
from .spectrum import SpectralAnalyzer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SampleChunk:
    """Block of mono samples captured at ``sample_rate``."""

    samples: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))
    sample_rate: float = SAMPLE_RATE

    def __post_init__(self):
        samples = np.array(self.samples, dtype=np.float32).reshape(-1)
        samples.setflags(write=False)
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def duration(self) -> float:
        return len(self.samples) / self.sample_rate


class StreamingPitchDetector:
    """
    Sliding-window pitch detector for a continuous mono stream.

    Owns one SpectralAnalyzer, one PitchEstimator and their DetectionState.
    The analyzer is acquired here and released by :meth:`close`; use the
    detector as a context manager so capture shutdown releases it.

    Example:
        with StreamingPitchDetector(44100) as detector:
            for estimate in detector.push(chunk):
                if estimate.valid:
                    print(estimate.note, estimate.frequency)
    """

    def __init__(
        self,
        sample_rate: float = SAMPLE_RATE,
        config: DetectorConfig | None = None,
        on_estimate: Callable[[PitchEstimate], None] | None = None,
        latest: LatestEstimate | None = None,
        **overrides,
    ):
        """
        Initialize detector.

        Args:
            sample_rate: Sample rate of the stream in Hz (fixed for the
                detector's lifetime)
            config: Detector configuration (defaults if omitted)
            on_estimate: Called with every valid estimate
            latest: Slot to publish valid estimates to for another thread
            **overrides: Individual DetectorConfig fields to override

        Raises:
            ConfigError: If the sample rate or any parameter is invalid
        """
        self.sample_rate = validate_sample_rate(sample_rate)
        self.config = build_config(config, **overrides)
        self.fft_size = self.config.fft_size
        self.hop_size = self.config.hop_size
        self.on_estimate = on_estimate
        self.latest = latest

        self._estimator = PitchEstimator(self.sample_rate, self.config)
        self.state: DetectionState = self._estimator.new_state()
        self._analyzer: SpectralAnalyzer | None = SpectralAnalyzer(self.fft_size)

        # Analysis window; never holds more than fft_size + chunk - 1 samples
        # once a push has drained it
        self._buffer = np.zeros(0, dtype=np.float64)
        self._frame_start = 0  # Stream index of _buffer[0]

        logger.info(
            "Pitch detector ready: %.0f Hz, fft=%d, hop=%d (%.1f updates/s, %.2f Hz/bin)",
            self.sample_rate,
            self.fft_size,
            self.hop_size,
            self.sample_rate / self.hop_size,
            self.config.bin_width(self.sample_rate),
        )

    @property
    def estimator(self) -> PitchEstimator:
        return self._estimator

    @property
    def buffered(self) -> int:
        """Samples currently waiting in the analysis window."""
        return len(self._buffer)

    @property
    def stream_time(self) -> float:
        """Seconds of audio received so far."""
        return (self._frame_start + len(self._buffer)) / self.sample_rate

    @property
    def closed(self) -> bool:
        return self._analyzer is None

    def push(self, chunk: SampleChunk) -> Iterator[PitchEstimate]:
        """
        Add a chunk and return one estimate per completed analysis.

        Every analysis the chunk makes possible runs before push returns, so
        on_estimate and the latest slot fire even if the returned iterator is
        never consumed. Rejected frames appear as estimates with valid=False.

        Raises:
            ValueError: If the chunk's sample rate differs from the detector's
            RuntimeError: If the detector is closed
        """
        if self._analyzer is None:
            raise RuntimeError("Pitch detector is closed")
        if chunk.sample_rate != self.sample_rate:
            raise ValueError(
                f"Chunk sample rate {chunk.sample_rate} Hz does not match detector "
                f"({self.sample_rate} Hz); create a new detector for a new rate"
            )
        if len(chunk):
            self._buffer = np.concatenate((self._buffer, chunk.samples))
        return iter(self._drain())

    def push_samples(self, samples: np.ndarray, sample_rate: float | None = None) -> Iterator[PitchEstimate]:
        """Like :meth:`push` for a bare sample array."""
        rate = self.sample_rate if sample_rate is None else sample_rate
        return self.push(SampleChunk(samples, rate))

    def process(self, samples: np.ndarray) -> list[PitchEstimate]:
        """Push ``samples`` and return every resulting estimate."""
        return list(self.push_samples(samples))

    def _drain(self) -> list[PitchEstimate]:
        estimates = []
        while self._analyzer is not None and len(self._buffer) >= self.fft_size:
            frame = self._buffer[: self.fft_size]
            timestamp = (self._frame_start + self.fft_size) / self.sample_rate

            spectrum = self._analyzer.analyze(frame)
            estimate = self._estimator.estimate(spectrum, frame, self.state, timestamp)

            self._buffer = self._buffer[self.hop_size :]
            self._frame_start += self.hop_size

            if estimate.valid:
                if self.on_estimate is not None:
                    self.on_estimate(estimate)
                if self.latest is not None:
                    self.latest.publish(estimate)
            estimates.append(estimate)
        return estimates

    def reset(self):
        """Drop buffered audio and all detection state."""
        self._buffer = np.zeros(0, dtype=np.float64)
        self._frame_start = 0
        self.state.reset()
        if self.latest is not None:
            self.latest.clear()

    def close(self):
        """Release the spectral analyzer. Safe to call more than once."""
        if self._analyzer is not None:
            self._analyzer.close()
            self._analyzer = None
            logger.info("Pitch detector closed after %.2f s of audio", self.stream_time)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
