"""
Monophonic pitch estimation from a magnitude spectrum.

The estimator turns one analyzed frame into a :class:`PitchEstimate`. Each
stage may reject the frame; rejections are ordinary results carrying a
:class:`Rejection` reason, never exceptions. State that must survive between
frames (smoothing history, accepted note, pending note change) lives in a
:class:`DetectionState` owned by the caller.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

import numpy as np

from .config import DetectorConfig, build_config, validate_sample_rate
from .constants import EPSILON, NOTE_NAMES, OCTAVE
from .notes import NoteInfo, frequency_to_note
from .smoother import FrequencySmoother

logger = logging.getLogger(__name__)


class Rejection(Enum):
    """Why a frame produced no estimate."""

    SILENCE = "silence"  # RMS at or below the noise threshold
    EMPTY_BAND = "empty_band"  # Search band has no bins at this sample rate
    BOUNDARY_PEAK = "boundary_peak"  # Peak at the first or last spectrum bin
    OUT_OF_RANGE = "out_of_range"  # Refined frequency outside the valid range
    LOW_SNR = "low_snr"  # No dominant peak


class PitchCandidate(NamedTuple):
    """Spectral peak chosen for one frame."""
    bin_index: int
    refined_bin: float
    magnitude: float


@dataclass(frozen=True)
class PitchEstimate:
    """Result of analyzing one frame."""

    valid: bool = False
    frequency: float = 0.0  # Smoothed frequency in Hz
    note: str = ""  # Pitch class, e.g. "A" or "C#"
    confidence: float = 0.0  # 0.0 to 1.0
    octave: int = 0
    cents: float = 0.0  # Deviation of frequency from the reported note
    held: bool = False  # True when a note change is being held back
    timestamp: float = 0.0  # Stream time of the frame's last sample, seconds
    rejection: Rejection | None = None

    @classmethod
    def rejected(cls, reason: Rejection, timestamp: float = 0.0) -> "PitchEstimate":
        return cls(valid=False, rejection=reason, timestamp=timestamp)


class DetectionState:
    """
    Per-detector state carried across frames.

    Holds the smoothing history and the note-hold bookkeeping. A new note
    first becomes *pending*; it replaces the accepted note only after it has
    persisted for the hold duration.
    """

    def __init__(self, history_size: int, smoothing_alpha: float):
        self.smoother = FrequencySmoother(history_size, smoothing_alpha)
        self.accepted_note: NoteInfo | None = None
        self.last_accepted_note_timestamp: float | None = None
        self.pending_note: str | None = None
        self.pending_since: float | None = None

    @property
    def frequency_history(self) -> tuple[float, ...]:
        return self.smoother.history

    @property
    def last_smoothed_frequency(self) -> float | None:
        return self.smoother.last_smoothed

    @property
    def last_accepted_note(self) -> str | None:
        return self.accepted_note.name if self.accepted_note is not None else None

    def hold_note(self, note: NoteInfo, timestamp: float, hold_duration: float) -> tuple[NoteInfo, bool]:
        """
        Apply the note-hold debounce to a freshly mapped note.

        Returns:
            Tuple of (note to report, whether the change was held back)
        """
        accepted = self.accepted_note
        if accepted is None or note.name == accepted.name:
            if accepted is None:
                self.last_accepted_note_timestamp = timestamp
            self.accepted_note = note
            self.pending_note = None
            self.pending_since = None
            return note, False

        if self.pending_note != note.name:
            self.pending_note = note.name
            self.pending_since = timestamp

        if timestamp - self.pending_since >= hold_duration:
            self.accepted_note = note
            self.last_accepted_note_timestamp = timestamp
            self.pending_note = None
            self.pending_since = None
            return note, False

        return accepted, True

    def clear_pending(self):
        """Forget a note change in progress; it must start over."""
        self.pending_note = None
        self.pending_since = None

    def clear_smoothing(self):
        self.smoother.clear()

    def reset(self):
        """Return to the state right after construction."""
        self.smoother.clear()
        self.accepted_note = None
        self.last_accepted_note_timestamp = None
        self.pending_note = None
        self.pending_since = None


def snr_to_confidence(snr: float) -> float:
    """Map a peak-to-average ratio to a confidence in [0, 1]."""
    return min(1.0, max(0.0, (snr - 1.0) / 9.0))


class PitchEstimator:
    """
    Pitch estimator for single-voice input.

    Pipeline per frame: noise gate, band-limited peak search, parabolic
    interpolation, range check, SNR gate, median/exponential smoothing, note
    mapping and note-hold debounce. The SNR gate runs before smoothing, so
    rejected frames leave the history and the accepted note untouched; they
    do cancel a pending note change, which must then start over.
    """

    def __init__(self, sample_rate: float, config: DetectorConfig | None = None, **overrides):
        """
        Initialize estimator.

        Args:
            sample_rate: Sample rate of the analyzed frames in Hz
            config: Detector configuration (defaults if omitted)
            **overrides: Individual DetectorConfig fields to override

        Raises:
            ConfigError: If the sample rate or any parameter is invalid
        """
        self.sample_rate = validate_sample_rate(sample_rate)
        self.config = build_config(config, **overrides)
        self.fft_size = self.config.fft_size
        self.num_bins = self.fft_size // 2
        self._band = self._compute_search_band()

        if self._band is None:
            logger.warning(
                "Search band %.1f-%.1f Hz has no bins at %.0f Hz / %d points; every frame will be rejected",
                self.config.min_frequency,
                self.config.max_frequency,
                self.sample_rate,
                self.fft_size,
            )

    def new_state(self) -> DetectionState:
        return DetectionState(self.config.history_size, self.config.smoothing_alpha)

    @property
    def search_band(self) -> tuple[int, int] | None:
        """Inclusive (low, high) bin range of the peak search, None if empty."""
        return self._band

    def _compute_search_band(self) -> tuple[int, int] | None:
        scale = self.fft_size / self.sample_rate
        low = max(0, math.ceil(self.config.min_frequency * scale))
        high = min(self.num_bins - 1, math.floor(self.config.max_frequency * scale))
        if low > high:
            return None
        return low, high

    def estimate(
        self,
        spectrum: np.ndarray,
        frame: np.ndarray,
        state: DetectionState,
        timestamp: float = 0.0,
    ) -> PitchEstimate:
        """
        Estimate the pitch of one frame.

        Args:
            spectrum: fft_size // 2 magnitudes of the frame
            frame: Raw (unwindowed) samples the spectrum was computed from
            state: Detection state carried across frames
            timestamp: Stream time of the frame in seconds, used for note hold

        Returns:
            PitchEstimate, with valid=False and a rejection reason if no pitch
        """
        cfg = self.config

        frame = np.asarray(frame, dtype=np.float64)
        rms = float(np.sqrt(np.mean(frame**2))) if frame.size else 0.0
        if rms <= cfg.noise_threshold:
            if cfg.reset_on_silence:
                state.clear_smoothing()
            return self._reject(state, Rejection.SILENCE, timestamp)

        spectrum = np.asarray(spectrum, dtype=np.float64)
        if len(spectrum) != self.num_bins:
            raise ValueError(f"Expected {self.num_bins} spectrum bins, got {len(spectrum)}")

        if self._band is None:
            return self._reject(state, Rejection.EMPTY_BAND, timestamp)

        low, high = self._band
        band_mags = spectrum[low : high + 1]
        peak_idx = low + int(np.argmax(band_mags))

        # Interpolation needs a neighbor on each side
        if peak_idx <= 0 or peak_idx >= self.num_bins - 1:
            return self._reject(state, Rejection.BOUNDARY_PEAK, timestamp)

        candidate = self._interpolate(spectrum, peak_idx)
        frequency = candidate.refined_bin * self.sample_rate / self.fft_size

        if not cfg.valid_min_frequency < frequency < cfg.valid_max_frequency:
            return self._reject(state, Rejection.OUT_OF_RANGE, timestamp)

        snr = self._signal_to_noise(candidate.magnitude, band_mags)
        if snr < cfg.snr_floor:
            return self._reject(state, Rejection.LOW_SNR, timestamp)

        smoothed = state.smoother.add(frequency)
        mapped = frequency_to_note(smoothed, cfg.reference)
        reported, held = state.hold_note(mapped, timestamp, cfg.note_hold_duration)

        if held:
            confidence = cfg.held_confidence
            reported_half_steps = reported.octave * OCTAVE + NOTE_NAMES.index(reported.name)
            cents = 100.0 * (mapped.half_steps - reported_half_steps)
        else:
            confidence = snr_to_confidence(snr)
            cents = mapped.cents

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "t=%.3f raw=%.2f Hz smoothed=%.2f Hz note=%s%s snr=%.1f held=%s",
                timestamp,
                frequency,
                smoothed,
                reported.name,
                reported.octave,
                snr,
                held,
            )

        return PitchEstimate(
            valid=True,
            frequency=smoothed,
            note=reported.name,
            confidence=confidence,
            octave=reported.octave,
            cents=cents,
            held=held,
            timestamp=timestamp,
        )

    def _reject(self, state: DetectionState, reason: Rejection, timestamp: float) -> PitchEstimate:
        # A pending note must persist over consecutive frames
        state.clear_pending()
        return PitchEstimate.rejected(reason, timestamp)

    def _interpolate(self, spectrum: np.ndarray, peak_idx: int) -> PitchCandidate:
        """Parabolic interpolation of the peak through its two neighbors."""
        y1, y2, y3 = spectrum[peak_idx - 1], spectrum[peak_idx], spectrum[peak_idx + 1]
        denom = y1 - 2 * y2 + y3
        refined = float(peak_idx)
        if abs(denom) > np.finfo(np.float64).eps:
            # A peak on the band edge need not be a local maximum; keep the
            # offset within one bin so it cannot run away
            offset = 0.5 * (y1 - y3) / denom
            refined += max(-1.0, min(1.0, float(offset)))
        return PitchCandidate(bin_index=peak_idx, refined_bin=refined, magnitude=float(y2))

    def _signal_to_noise(self, peak_magnitude: float, band_mags: np.ndarray) -> float:
        """Peak magnitude over the mean magnitude of the searched band."""
        average = float(np.mean(band_mags))
        if average <= EPSILON:
            return 0.0
        return peak_magnitude / average
