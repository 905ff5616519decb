"""
monopitch - real-time monophonic pitch detection with note mapping and debounce
"""

from .config import ConfigError, DetectorConfig
from .constants import A4_REFERENCE, FFT_SIZE, NOTE_NAMES, SAMPLE_RATE
from .detector import SampleChunk, StreamingPitchDetector
from .estimator import DetectionState, PitchCandidate, PitchEstimate, PitchEstimator, Rejection
from .handoff import LatestEstimate
from .notes import NoteInfo, frequency_to_note, note_frequency
from .smoother import FrequencySmoother
from .spectrum import SpectralAnalyzer

__version__ = "0.1.0"
__all__ = [
    "StreamingPitchDetector",
    "SampleChunk",
    "SpectralAnalyzer",
    "PitchEstimator",
    "PitchEstimate",
    "PitchCandidate",
    "DetectionState",
    "Rejection",
    "FrequencySmoother",
    "LatestEstimate",
    "DetectorConfig",
    "ConfigError",
    "NoteInfo",
    "frequency_to_note",
    "note_frequency",
    "SAMPLE_RATE",
    "FFT_SIZE",
    "A4_REFERENCE",
    "NOTE_NAMES",
]
