"""
Windowed magnitude spectrum.

The analyzer owns everything the transform needs (window coefficients and a
scratch buffer) for its whole lifetime. They are allocated once in the
constructor and released by :meth:`SpectralAnalyzer.close`, so the per-frame
path does not allocate beyond the FFT output itself.
"""

import logging

import numpy as np
from scipy import fft as sp_fft
from scipy.signal import get_window

from .config import ConfigError, is_power_of_two
from .constants import FFT_SIZE

logger = logging.getLogger(__name__)


class SpectralAnalyzer:
    """
    Hann-windowed real FFT of a fixed-size frame.

    Produces ``fft_size // 2`` magnitudes; bin k is ``k * sample_rate / fft_size`` Hz.
    Use as a context manager, or call :meth:`close` when done.
    """

    def __init__(self, fft_size: int = FFT_SIZE):
        """
        Initialize analyzer.

        Args:
            fft_size: Frame length in samples, a power of two

        Raises:
            ConfigError: If fft_size is not a power of two of at least 4
        """
        if not isinstance(fft_size, int) or not is_power_of_two(fft_size) or fft_size < 4:
            raise ConfigError(f"fft_size must be a power of two >= 4, got {fft_size!r}")

        self.fft_size = fft_size
        self.num_bins = fft_size // 2

        # Symmetric Hann: 0.5 - 0.5 * cos(2*pi*i / (N - 1))
        self._window: np.ndarray | None = get_window("hann", fft_size, fftbins=False)
        self._scratch: np.ndarray | None = np.zeros(fft_size, dtype=np.float64)
        logger.debug("SpectralAnalyzer: allocated %d-point transform", fft_size)

    @property
    def closed(self) -> bool:
        return self._window is None

    @property
    def window(self) -> np.ndarray:
        if self._window is None:
            raise RuntimeError("SpectralAnalyzer is closed")
        return self._window

    def analyze(self, frame: np.ndarray) -> np.ndarray:
        """
        Compute the magnitude spectrum of one frame.

        Frames shorter than fft_size are zero-padded on the right.

        Args:
            frame: Real samples, at most fft_size long

        Returns:
            Array of fft_size // 2 non-negative magnitudes
        """
        if self._window is None or self._scratch is None:
            raise RuntimeError("SpectralAnalyzer is closed")

        frame = np.asarray(frame, dtype=np.float64).reshape(-1)
        n = len(frame)
        if n > self.fft_size:
            raise ValueError(f"Frame of {n} samples exceeds fft_size {self.fft_size}")

        scratch = self._scratch
        np.multiply(frame, self._window[:n], out=scratch[:n])
        if n < self.fft_size:
            scratch[n:] = 0.0

        # scratch is rewritten every call, so the FFT may clobber it
        spectrum = sp_fft.rfft(scratch, overwrite_x=True)
        return np.abs(spectrum[: self.num_bins])

    def bin_frequency(self, index: float, sample_rate: float) -> float:
        """Frequency in Hz of a (possibly fractional) bin index."""
        return index * sample_rate / self.fft_size

    def frequency_bin(self, frequency: float, sample_rate: float) -> float:
        """Fractional bin index for a frequency in Hz."""
        return frequency * self.fft_size / sample_rate

    def close(self):
        """Release the transform buffers. Safe to call more than once."""
        if self._window is not None:
            logger.debug("SpectralAnalyzer: released %d-point transform", self.fft_size)
        self._window = None
        self._scratch = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
