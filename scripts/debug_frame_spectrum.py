"""
Debug script: visualize what the detector sees at each frame.

Plots the magnitude spectrum of successive analysis frames with the search
band, the detected frequency and the reported note, so threshold and band
settings can be checked by eye.

Usage:
    python scripts/debug_frame_spectrum.py                 # synthetic G#->A sweep
    python scripts/debug_frame_spectrum.py recording.npy   # mono float samples at 44.1 kHz
"""

import sys

import matplotlib
import numpy as np

matplotlib.use('Agg')
import matplotlib.pyplot as plt
from scipy.signal import chirp

from monopitch.constants import SAMPLE_RATE
from monopitch.detector import StreamingPitchDetector
from monopitch.spectrum import SpectralAnalyzer


def synthetic_sweep(duration: float = 2.0) -> np.ndarray:
    """G#4 -> A4 sweep with a little noise."""
    t = np.arange(int(SAMPLE_RATE * duration)) / SAMPLE_RATE
    rng = np.random.default_rng(0)
    return 0.5 * chirp(t, f0=415.0, t1=duration, f1=466.0) + rng.normal(0, 0.01, len(t))


def plot_frame_spectrum(audio, output_prefix, num_frames=10, stride=4):
    """Save one spectrum plot for every ``stride``-th frame."""
    detector = StreamingPitchDetector(SAMPLE_RATE)
    fft_size = detector.fft_size
    hop_size = detector.hop_size
    band = detector.estimator.search_band
    freqs = np.arange(fft_size // 2) * SAMPLE_RATE / fft_size

    with detector, SpectralAnalyzer(fft_size) as analyzer:
        saved = 0
        frame_num = 0
        start = 0
        while saved < num_frames and start + fft_size <= len(audio):
            frame = audio[start:start + fft_size]
            # Feed only the samples that are new to the detector's window
            new_samples = frame if start == 0 else frame[-hop_size:]
            estimates = detector.process(new_samples)
            start += hop_size
            frame_num += 1
            if frame_num % stride or not estimates:
                continue

            estimate = estimates[-1]
            mags = analyzer.analyze(frame)

            fig, ax = plt.subplots(figsize=(12, 5))
            ax.semilogy(freqs[1:], mags[1:] + 1e-9, 'b-', linewidth=0.5, alpha=0.8)

            if band is not None:
                ax.axvspan(freqs[band[0]], freqs[band[1]], color='green', alpha=0.08, label='Search band')
            if estimate.valid:
                ax.axvline(estimate.frequency, color='red', linewidth=1.5,
                           label=f'{estimate.note}{estimate.octave} {estimate.frequency:.1f} Hz')
                title = f'Frame {frame_num} - {estimate.note} (conf {estimate.confidence:.2f}'
                title += ', held)' if estimate.held else ')'
            else:
                title = f'Frame {frame_num} - no estimate ({estimate.rejection.value})'

            ax.set_xlim(0, 2500)
            ax.set_title(title)
            ax.set_xlabel('Frequency (Hz)')
            ax.set_ylabel('Magnitude (log)')
            ax.legend(loc='upper right')
            ax.grid(True, alpha=0.3)

            plt.tight_layout()
            filename = f'{output_prefix}_frame_{frame_num:03d}.png'
            plt.savefig(filename, dpi=100)
            plt.close()
            print(f'Saved: {filename}')
            saved += 1


if __name__ == '__main__':
    if len(sys.argv) > 1:
        audio = np.load(sys.argv[1]).astype(np.float64).reshape(-1)
    else:
        audio = synthetic_sweep()
    plot_frame_spectrum(audio, 'debug_spectrum', num_frames=10, stride=8)
    print('Done!')
