"""
Spectrum extraction, bar binning and display-order rearrangement.

Everything here is stateless: per-frame memory (sensitivity, bar dynamics)
lives in the callers.
"""

import numpy as np

from .config import VisualizerConfig
from .errors import ConfigurationError

# Scaled magnitudes below this are forced to zero
NOISE_GATE = 0.01


def hann_window(n: int) -> np.ndarray:
    """Hann window w[i] = 0.5 * (1 - cos(2*pi*i / (n - 1)))."""
    if n == 1:
        return np.ones(1)
    i = np.arange(n, dtype=np.float64)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * i / (n - 1)))


def extract_spectrum(window: np.ndarray) -> np.ndarray:
    """
    Apply a Hann window and compute the full discrete Fourier transform.

    Args:
        window: Real-valued samples

    Returns:
        len(window) complex coefficients
    """
    samples = np.asarray(window, dtype=np.float64)
    return np.fft.fft(samples * hann_window(len(samples)))


class SpectrumExtractor:
    """Windowed FFT for a fixed analysis size, with the window precomputed."""

    def __init__(self, config: VisualizerConfig):
        self.fft_size = config.fft_size
        self._window = hann_window(config.fft_size)

    def extract(self, samples: np.ndarray) -> np.ndarray:
        chunk = np.asarray(samples, dtype=np.float64)
        if len(chunk) < self.fft_size:
            # Short chunks (snapshot at the end of a file) are zero-padded
            padded = np.zeros(self.fft_size)
            padded[: len(chunk)] = chunk
            chunk = padded
        elif len(chunk) > self.fft_size:
            chunk = chunk[: self.fft_size]
        return np.fft.fft(chunk * self._window)


def bar_magnitudes(coeffs: np.ndarray, num_bars: int) -> np.ndarray:
    """
    Average FFT magnitude per bar.

    Only the first 3/4 of the positive-frequency half is used. It is split
    into num_bars equal integer-width bins; leftover bins are discarded.
    """
    half = len(coeffs) // 2
    usable = half * 3 // 4
    width = usable // num_bars
    if width == 0:
        raise ConfigurationError(
            f"{len(coeffs)} coefficients leave {usable} usable bins, fewer than {num_bars} bars"
        )
    magnitudes = np.abs(np.asarray(coeffs)[: width * num_bars])
    return magnitudes.reshape(num_bars, width).mean(axis=1)


def normalize_magnitudes(
    magnitudes: np.ndarray, sensitivity: float, base_scale: float
) -> np.ndarray:
    """Noise gate then log10(1 + 9x) compression of scaled magnitudes."""
    scaled = np.asarray(magnitudes, dtype=np.float64) * base_scale * sensitivity
    heights = np.zeros_like(scaled)
    audible = scaled >= NOISE_GATE
    heights[audible] = np.log10(1.0 + scaled[audible] * 9.0)
    # Not clipped: overshoot above 1.0 is what drives the sensitivity loop
    return heights


def bin_spectrum(
    coeffs: np.ndarray, sensitivity: float, base_scale: float, num_bars: int
) -> np.ndarray:
    """
    Reduce FFT coefficients to normalized bar heights.

    Args:
        coeffs: Complex FFT coefficients of one analysis window
        sensitivity: Gain from the sensitivity controller (previous frame)
        base_scale: Calibrated scale from the audio profile
        num_bars: Number of bars to produce

    Returns:
        num_bars heights, nominally in [0, 1]
    """
    return normalize_magnitudes(bar_magnitudes(coeffs, num_bars), sensitivity, base_scale)


def rearrange_center_out(heights: np.ndarray) -> np.ndarray:
    """
    Mirror bars around the center so low frequencies sit in the middle.

    For i in [0, N/2): out[N/2 - 1 - i] = out[N/2 + i] = heights[i].
    """
    heights = np.asarray(heights)
    n = len(heights)
    if n % 2:
        raise ConfigurationError(f"center-out layout needs an even bar count, got {n}")
    center = n // 2
    first_half = heights[:center]
    result = np.empty_like(heights)
    result[:center] = first_half[::-1]
    result[center:] = first_half
    return result
