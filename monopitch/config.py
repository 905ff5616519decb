"""
Detector configuration.

All tunables of the pitch detection pipeline live in :class:`DetectorConfig`.
Invalid values are rejected when the config is built, so a detector either
starts with a usable configuration or not at all.
"""

import dataclasses
import logging
from dataclasses import dataclass

from .constants import (
    A4_REFERENCE,
    CONFIDENCE_FLOOR,
    FFT_SIZE,
    HELD_CONFIDENCE,
    HISTORY_SIZE,
    HOP_DIVISOR,
    MAX_FREQUENCY,
    MIN_FREQUENCY,
    NOISE_THRESHOLD,
    NOTE_HOLD_DURATION,
    SMOOTHING_ALPHA,
    SNR_FLOOR,
    VALID_MAX_FREQUENCY,
    VALID_MIN_FREQUENCY,
)

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised for construction parameters the detector cannot run with."""


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def validate_sample_rate(sample_rate: float) -> float:
    """Return ``sample_rate`` as float, raising ConfigError if not positive."""
    try:
        rate = float(sample_rate)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Sample rate must be a number, got {sample_rate!r}") from exc
    if not rate > 0:
        raise ConfigError(f"Sample rate must be positive, got {sample_rate}")
    return rate


@dataclass(frozen=True)
class DetectorConfig:
    """
    Tunable parameters of the detector.

    Attributes:
        fft_size: Analysis window length in samples (power of two)
        hop_size: Samples the window advances between analyses
            (defaults to fft_size // 4)
        history_size: Number of recent frequencies kept for the median
        smoothing_alpha: Weight of the new median in the exponential blend
            (higher = more responsive, lower = steadier)
        noise_threshold: Frames with RMS at or below this are silence
        min_frequency: Lower edge of the peak search band in Hz
        max_frequency: Upper edge of the peak search band in Hz
        valid_min_frequency: Refined frequencies must be above this
        valid_max_frequency: Refined frequencies must be below this
        note_hold_duration: Seconds a new note must persist before it
            replaces the current one
        held_confidence: Confidence reported while a note change is held back
        snr_floor: Minimum peak-to-average magnitude ratio for a detection
        confidence_floor: Minimum confidence consumers should act on
        reference: Frequency of A4 in Hz
        reset_on_silence: Clear the smoothing history when the noise gate closes
    """

    fft_size: int = FFT_SIZE
    hop_size: int | None = None
    history_size: int = HISTORY_SIZE
    smoothing_alpha: float = SMOOTHING_ALPHA
    noise_threshold: float = NOISE_THRESHOLD
    min_frequency: float = MIN_FREQUENCY
    max_frequency: float = MAX_FREQUENCY
    valid_min_frequency: float = VALID_MIN_FREQUENCY
    valid_max_frequency: float = VALID_MAX_FREQUENCY
    note_hold_duration: float = NOTE_HOLD_DURATION
    held_confidence: float = HELD_CONFIDENCE
    snr_floor: float = SNR_FLOOR
    confidence_floor: float = CONFIDENCE_FLOOR
    reference: float = A4_REFERENCE
    reset_on_silence: bool = False

    def __post_init__(self):
        if not isinstance(self.fft_size, int) or not is_power_of_two(self.fft_size):
            raise ConfigError(f"fft_size must be a power of two, got {self.fft_size!r}")
        if self.fft_size < 4:
            raise ConfigError(f"fft_size must be at least 4, got {self.fft_size}")

        if self.hop_size is None:
            # Frozen dataclass: fill the derived default in place
            object.__setattr__(self, "hop_size", self.fft_size // HOP_DIVISOR)
        if not 1 <= self.hop_size <= self.fft_size:
            raise ConfigError(
                f"hop_size must be between 1 and fft_size ({self.fft_size}), got {self.hop_size}"
            )

        if self.history_size < 1:
            raise ConfigError(f"history_size must be >= 1, got {self.history_size}")
        if not 0.0 < self.smoothing_alpha <= 1.0:
            raise ConfigError(f"smoothing_alpha must be in (0, 1], got {self.smoothing_alpha}")
        if self.noise_threshold < 0.0:
            raise ConfigError(f"noise_threshold must be >= 0, got {self.noise_threshold}")

        if not 0.0 <= self.min_frequency < self.max_frequency:
            raise ConfigError(
                f"Search band is empty or inverted: {self.min_frequency}-{self.max_frequency} Hz"
            )
        if not 0.0 <= self.valid_min_frequency < self.valid_max_frequency:
            raise ConfigError(
                "Valid frequency range is empty or inverted: "
                f"{self.valid_min_frequency}-{self.valid_max_frequency} Hz"
            )

        if self.note_hold_duration < 0.0:
            raise ConfigError(f"note_hold_duration must be >= 0, got {self.note_hold_duration}")
        if not 0.0 <= self.held_confidence <= 1.0:
            raise ConfigError(f"held_confidence must be in [0, 1], got {self.held_confidence}")
        if not 0.0 <= self.confidence_floor <= 1.0:
            raise ConfigError(f"confidence_floor must be in [0, 1], got {self.confidence_floor}")
        if self.snr_floor < 0.0:
            raise ConfigError(f"snr_floor must be >= 0, got {self.snr_floor}")
        if not self.reference > 0.0:
            raise ConfigError(f"reference must be positive, got {self.reference}")

    def replace(self, **changes) -> "DetectorConfig":
        """Return a copy with ``changes`` applied (validated again)."""
        if "fft_size" in changes and "hop_size" not in changes:
            # Re-derive the hop for the new window unless given explicitly
            changes["hop_size"] = None
        return dataclasses.replace(self, **changes)

    def bin_width(self, sample_rate: float) -> float:
        """Width of one FFT bin in Hz at ``sample_rate``."""
        return sample_rate / self.fft_size


def build_config(config: DetectorConfig | None = None, **overrides) -> DetectorConfig:
    """Combine an optional base config with keyword overrides."""
    base = config if config is not None else DetectorConfig()
    if overrides:
        base = base.replace(**overrides)
        logger.debug("Detector config overrides: %s", overrides)
    return base
