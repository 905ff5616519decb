"""
Tests for StreamingPitchDetector using synthetic signals.

These tests stream sine waves at known frequencies through the detector in
device-sized chunks and check the frequencies, note names and confidence
it reports.
"""

import numpy as np
import pytest
from scipy.signal import chirp

from monopitch import SAMPLE_RATE
from monopitch.config import ConfigError, DetectorConfig
from monopitch.detector import SampleChunk, StreamingPitchDetector
from monopitch.estimator import Rejection
from monopitch.handoff import LatestEstimate
from monopitch.notes import boundary_frequency


def generate_sine_wave(
    frequency: float,
    duration_samples: int,
    sample_rate: int = SAMPLE_RATE,
    amplitude: float = 0.5,
) -> np.ndarray:
    """Generate a sine wave at the given frequency."""
    t = np.arange(duration_samples) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t)).astype(np.float32)


def stream(detector: StreamingPitchDetector, signal: np.ndarray, chunk_size: int = 512) -> list:
    """Push signal in chunks and return every estimate."""
    results = []
    for start in range(0, len(signal), chunk_size):
        results.extend(detector.push_samples(signal[start : start + chunk_size]))
    return results


def last_valid(results: list):
    for r in reversed(results):
        if r.valid:
            return r
    return None


class TestDetectorBasic:
    """Basic pitch detection with pure sine waves."""

    def setup_method(self):
        """Create a fresh detector for each test."""
        self.detector = StreamingPitchDetector(SAMPLE_RATE, noise_threshold=0.002)

    def teardown_method(self):
        self.detector.close()

    def test_a4_440hz(self):
        """440 Hz, amplitude 0.5 -> A within 2 Hz, confident."""
        results = stream(self.detector, generate_sine_wave(440.0, SAMPLE_RATE * 2))
        result = last_valid(results)

        assert result is not None, "Should detect A4"
        assert result.note == "A", f"Expected A, got {result.note}"
        assert result.octave == 4
        assert abs(result.frequency - 440.0) < 2.0, f"Frequency {result.frequency} too far from 440"
        assert result.confidence > 0.3

    def test_a3_220hz(self):
        result = last_valid(stream(self.detector, generate_sine_wave(220.0, SAMPLE_RATE)))
        assert result is not None
        assert result.note == "A"
        assert result.octave == 3
        assert abs(result.frequency - 220.0) < 2.0

    def test_e4_329hz(self):
        result = last_valid(stream(self.detector, generate_sine_wave(329.63, SAMPLE_RATE)))
        assert result is not None
        assert result.note == "E"
        assert result.octave == 4

    def test_c4_middle_c(self):
        result = last_valid(stream(self.detector, generate_sine_wave(261.63, SAMPLE_RATE)))
        assert result is not None
        assert result.note == "C"
        assert result.octave == 4

    def test_every_frame_valid_for_steady_tone(self):
        results = stream(self.detector, generate_sine_wave(523.25, SAMPLE_RATE))
        assert results
        assert all(r.valid for r in results)
        assert {r.note for r in results} == {"C"}

    def test_octaves_share_note(self):
        """The same pitch class is reported an octave apart."""
        notes = []
        for freq in (220.0, 440.0, 880.0):
            with StreamingPitchDetector(SAMPLE_RATE) as detector:
                notes.append(last_valid(stream(detector, generate_sine_wave(freq, SAMPLE_RATE))).note)
        assert notes == ["A", "A", "A"]


class TestDetectorRejection:
    """Silence and noise never produce a note."""

    def setup_method(self):
        self.detector = StreamingPitchDetector(SAMPLE_RATE, noise_threshold=0.002)

    def teardown_method(self):
        self.detector.close()

    def test_all_zero_samples(self):
        results = stream(self.detector, np.zeros(SAMPLE_RATE, dtype=np.float32))
        assert len(results) > 0
        assert all(not r.valid for r in results)
        assert all(r.rejection is Rejection.SILENCE for r in results)

    def test_sub_threshold_input(self):
        results = stream(self.detector, generate_sine_wave(440.0, SAMPLE_RATE, amplitude=0.001))
        assert all(not r.valid for r in results)

    def test_white_noise(self):
        rng = np.random.default_rng(42)
        noise = rng.normal(0.0, 0.1, SAMPLE_RATE).astype(np.float32)
        results = stream(self.detector, noise)
        assert len(results) > 0
        assert all(r.rejection is Rejection.LOW_SNR for r in results)


class TestSlidingWindow:
    """Window accumulation and hop advancement."""

    def setup_method(self):
        self.detector = StreamingPitchDetector(SAMPLE_RATE)
        self.tone = generate_sine_wave(440.0, SAMPLE_RATE)

    def teardown_method(self):
        self.detector.close()

    def test_defaults(self):
        assert self.detector.fft_size == 4096
        assert self.detector.hop_size == 1024

    def test_no_analysis_until_window_full(self):
        assert self.detector.process(self.tone[:4095]) == []
        assert self.detector.buffered == 4095
        assert len(self.detector.process(self.tone[4095:4096])) == 1
        assert self.detector.buffered == 4096 - 1024

    def test_one_estimate_per_hop(self):
        assert len(self.detector.process(self.tone[:4096])) == 1
        assert len(self.detector.process(self.tone[4096:5120])) == 1
        assert len(self.detector.process(self.tone[5120:6143])) == 0
        assert len(self.detector.process(self.tone[6143:6144])) == 1

    def test_chunk_crossing_several_hops(self):
        assert len(self.detector.process(self.tone[: 4096 + 3 * 1024])) == 4
        assert self.detector.buffered == 4096 - 1024

    def test_empty_chunk_is_noop(self):
        self.detector.process(self.tone[:1000])
        assert self.detector.process(np.zeros(0, dtype=np.float32)) == []
        assert self.detector.buffered == 1000

    def test_timestamps(self):
        results = self.detector.process(self.tone[: 4096 + 1024])
        assert results[0].timestamp == pytest.approx(4096 / SAMPLE_RATE)
        assert results[1].timestamp == pytest.approx(5120 / SAMPLE_RATE)
        assert self.detector.stream_time == pytest.approx(5120 / SAMPLE_RATE)

    def test_chunk_size_independent(self):
        """Results depend on the hop, not on how audio is chunked."""
        small = stream(self.detector, self.tone, chunk_size=256)
        with StreamingPitchDetector(SAMPLE_RATE) as other:
            large = stream(other, self.tone, chunk_size=3000)
        assert len(small) == len(large)
        for a, b in zip(small, large):
            assert a.frequency == pytest.approx(b.frequency)
            assert a.note == b.note

    def test_push_analyzes_before_returning(self):
        """Analysis runs inside push, whether or not the result is consumed."""
        results = self.detector.push(SampleChunk(self.tone[:4096], SAMPLE_RATE))
        assert self.detector.buffered == 3072
        assert len(list(results)) == 1

    def test_callback_without_iterating(self):
        """Callers relying on on_estimate alone still get estimates, and the window stays bounded."""
        received = []
        chunk_size = 512
        with StreamingPitchDetector(SAMPLE_RATE, on_estimate=received.append) as detector:
            for start in range(0, len(self.tone), chunk_size):
                detector.push_samples(self.tone[start : start + chunk_size])
                assert detector.buffered < detector.fft_size + chunk_size
        assert len(received) > 30
        assert all(r.note == "A" for r in received)

    def test_reset(self):
        self.detector.process(self.tone)
        self.detector.reset()
        assert self.detector.buffered == 0
        assert self.detector.stream_time == 0.0
        assert self.detector.state.last_accepted_note is None


class TestSmoothingAndDebounce:
    """Temporal behaviour over a stream."""

    def test_constant_tone_converges(self):
        with StreamingPitchDetector(SAMPLE_RATE, history_size=5) as detector:
            results = stream(detector, generate_sine_wave(392.0, SAMPLE_RATE * 2))
        freqs = [r.frequency for r in results if r.valid]
        assert len(freqs) > 10
        assert abs(freqs[-1] - 392.0) < 2.0
        assert abs(freqs[-1] - freqs[-2]) < 0.5

    def test_sweep_changes_note_once(self):
        """A slow G# -> A sweep switches note exactly once, past the boundary."""
        duration = 2.0
        t = np.arange(int(SAMPLE_RATE * duration)) / SAMPLE_RATE
        sweep = (0.5 * chirp(t, f0=415.0, t1=duration, f1=440.0, method="linear")).astype(np.float32)

        with StreamingPitchDetector(SAMPLE_RATE, noise_threshold=0.002) as detector:
            results = [r for r in stream(detector, sweep) if r.valid]

        notes = [r.note for r in results]
        collapsed = [n for i, n in enumerate(notes) if i == 0 or n != notes[i - 1]]
        assert collapsed == ["G#", "A"]

        # Held back for the hold duration, so the switch lands just past 427.47 Hz
        first_a = next(r for r in results if r.note == "A")
        assert boundary_frequency("G#", 4) < first_a.frequency < 433.0

    def test_sweep_across_two_boundaries(self):
        """G# -> A -> A# changes note once per boundary, each after its boundary."""
        duration = 4.0
        t = np.arange(int(SAMPLE_RATE * duration)) / SAMPLE_RATE
        sweep = (0.5 * chirp(t, f0=415.0, t1=duration, f1=466.0, method="linear")).astype(np.float32)

        with StreamingPitchDetector(SAMPLE_RATE, noise_threshold=0.002) as detector:
            results = [r for r in stream(detector, sweep) if r.valid]

        notes = [r.note for r in results]
        collapsed = [n for i, n in enumerate(notes) if i == 0 or n != notes[i - 1]]
        assert collapsed == ["G#", "A", "A#"]

        first_a = next(r for r in results if r.note == "A")
        first_a_sharp = next(r for r in results if r.note == "A#")
        assert first_a.frequency > boundary_frequency("G#", 4)
        assert first_a_sharp.frequency > boundary_frequency("A", 4)

    def test_transient_held(self):
        """A short burst of another note inside a held note is suppressed."""
        a4 = generate_sine_wave(440.0, SAMPLE_RATE)
        burst = generate_sine_wave(523.25, 1024)
        signal = np.concatenate([a4, burst, a4])

        with StreamingPitchDetector(SAMPLE_RATE) as detector:
            results = [r for r in stream(detector, signal) if r.valid]

        assert {r.note for r in results} == {"A"}


class TestDetectorLifecycle:
    """Construction, outputs and teardown."""

    def test_invalid_sample_rate(self):
        with pytest.raises(ConfigError):
            StreamingPitchDetector(0)

    def test_invalid_fft_size(self):
        with pytest.raises(ConfigError):
            StreamingPitchDetector(SAMPLE_RATE, fft_size=3000)

    def test_config_object(self):
        config = DetectorConfig(fft_size=2048)
        with StreamingPitchDetector(SAMPLE_RATE, config) as detector:
            assert detector.hop_size == 512
            results = stream(detector, generate_sine_wave(440.0, SAMPLE_RATE))
        assert last_valid(results).note == "A"

    def test_sample_rate_mismatch(self):
        with StreamingPitchDetector(SAMPLE_RATE) as detector:
            with pytest.raises(ValueError):
                detector.push_samples(np.zeros(128), sample_rate=48000)

    def test_close(self):
        detector = StreamingPitchDetector(SAMPLE_RATE)
        detector.close()
        detector.close()
        assert detector.closed
        with pytest.raises(RuntimeError):
            detector.process(np.zeros(4096))

    def test_context_manager_closes(self):
        with StreamingPitchDetector(SAMPLE_RATE) as detector:
            pass
        assert detector.closed

    def test_callback(self):
        received = []
        with StreamingPitchDetector(SAMPLE_RATE, on_estimate=received.append) as detector:
            results = stream(detector, generate_sine_wave(440.0, SAMPLE_RATE))
        assert len(received) == sum(r.valid for r in results)
        assert all(r.valid for r in received)

    def test_latest_slot(self):
        latest = LatestEstimate()
        with StreamingPitchDetector(SAMPLE_RATE, latest=latest) as detector:
            results = stream(detector, generate_sine_wave(440.0, SAMPLE_RATE))
        newest = latest.take()
        assert newest is results[-1]
        assert latest.take() is None
        assert latest.dropped == latest.published - 1

    def test_sample_chunk_immutable(self):
        chunk = SampleChunk([0.1, 0.2, 0.3], SAMPLE_RATE)
        assert len(chunk) == 3
        assert chunk.duration == pytest.approx(3 / SAMPLE_RATE)
        with pytest.raises(ValueError):
            chunk.samples[0] = 1.0
