"""
Shared constants for the pitch detection pipeline.
"""

# Audio defaults
SAMPLE_RATE = 44100
FFT_SIZE = 4096
HOP_DIVISOR = 4  # hop = fft_size // HOP_DIVISOR

# Tuning reference
A4_REFERENCE = 440.0
OCTAVE = 12
# C0 sits 4.75 octaves (57 semitones) below A4
C0_OFFSET_OCTAVES = -4.75

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Peak search band (Hz), where fundamentals of interest live
MIN_FREQUENCY = 80.0
MAX_FREQUENCY = 2000.0

# Accepted range for refined frequencies (Hz, exclusive)
VALID_MIN_FREQUENCY = 20.0
VALID_MAX_FREQUENCY = 4000.0

# Estimator defaults
HISTORY_SIZE = 5
SMOOTHING_ALPHA = 0.5
NOISE_THRESHOLD = 0.005  # RMS
NOTE_HOLD_DURATION = 0.15  # seconds
HELD_CONFIDENCE = 0.8
SNR_FLOOR = 5.0
CONFIDENCE_FLOOR = 0.3

# Guard for divisions on magnitudes
EPSILON = 1e-12
