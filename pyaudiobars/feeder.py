"""
Sliding analysis window over a sample stream.
"""

import logging

import numpy as np

from .config import VisualizerConfig
from .source import SampleSource

logger = logging.getLogger(__name__)


class SlidingWindowFeeder:
    """
    Turn a sample stream into overlapping fixed-size analysis windows.

    The window is always exactly fft_size samples. Each frame it shifts left
    by hop samples and the new samples are appended at the end. Short reads
    from the source are retried; only a read that returns nothing at the
    start of a frame ends the stream. Any shortfall is zero-padded.

    Example:
        feeder = SlidingWindowFeeder(source, config)
        window = feeder.fill()
        more = True
        while more:
            process(window)
            window, more = feeder.advance(window)
    """

    def __init__(self, source: SampleSource, config: VisualizerConfig):
        self.source = source
        self.fft_size = config.fft_size
        self.hop = config.hop
        self.samples_read = 0
        self.exhausted = False

    def _read_up_to(self, n: int) -> np.ndarray:
        """Read until n samples are collected or the source returns nothing."""
        chunks = []
        remaining = n
        while remaining > 0:
            chunk = np.asarray(self.source.read(remaining), dtype=np.float64)
            if len(chunk) == 0:
                self.exhausted = True
                break
            chunk = chunk[:remaining]
            chunks.append(chunk)
            remaining -= len(chunk)
        if not chunks:
            return np.zeros(0)
        data = np.concatenate(chunks)
        self.samples_read += len(data)
        return data

    def fill(self) -> np.ndarray:
        """Build the first window. Missing samples are zero."""
        window = np.zeros(self.fft_size)
        data = self._read_up_to(self.fft_size)
        window[: len(data)] = data
        return window

    def advance(self, window: np.ndarray):
        """
        Slide the window forward by one hop.

        Args:
            window: The current window (left unmodified)

        Returns:
            (new_window, more). more is False when the source had no new
            samples at all; new_window is then the input shifted with zeros.
        """
        data = self._read_up_to(self.hop)
        more = len(data) > 0
        if not more:
            logger.debug(f"Sample stream ended after {self.samples_read} samples")

        incoming = np.zeros(self.hop)
        incoming[: len(data)] = data
        # Works for hop >= fft_size too: only the newest fft_size samples survive
        return np.concatenate((np.asarray(window, dtype=np.float64), incoming))[
            -self.fft_size :
        ], more
