"""
Second pass: stream frames through binning, auto-gain and bar dynamics.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import numpy as np

from .config import DEFAULT_BASE_SCALE, VisualizerConfig
from .dynamics import BarDynamicsEngine, SensitivityController
from .feeder import SlidingWindowFeeder
from .profiler import AudioProfile, AudioProfiler, ProgressCallback
from .source import SampleSource
from .spectrum import SpectrumExtractor, bin_spectrum, rearrange_center_out

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    """One rendered frame of bar heights."""

    index: int
    heights: np.ndarray  # center-out order, pixel units
    sensitivity: float  # gain after this frame's update, used by the next frame


class BarVisualizer:
    """
    Turn analysis windows into display-ready bar heights.

    Holds the only mutable per-session state (sensitivity and bar dynamics),
    so frames must be processed one at a time and in order. Two visualizers
    given the same config, profile and samples produce identical output.

    Example:
        profile = AudioProfiler(config).analyze(WavSampleSource(path))
        visualizer = BarVisualizer(config, profile)
        with WavSampleSource(path) as source:
            for frame in visualizer.frames(source):
                renderer.draw(frame.heights)
    """

    def __init__(self, config: VisualizerConfig, profile: Optional[AudioProfile] = None):
        self.config = config
        self.profile = profile
        self.base_scale = profile.optimal_base_scale if profile else DEFAULT_BASE_SCALE
        self.extractor = SpectrumExtractor(config)
        self.sensitivity = SensitivityController(config)
        self.dynamics = BarDynamicsEngine(config)
        self._frame_index = 0

    def process_window(self, window: np.ndarray) -> FrameResult:
        """Run one analysis window through the full per-frame chain."""
        coeffs = self.extractor.extract(window)
        normalized = bin_spectrum(
            coeffs, self.sensitivity.gain, self.base_scale, self.config.num_bars
        )
        normalized = self.sensitivity.update(normalized)
        heights = self.dynamics.step(normalized * self.config.available_extent)
        result = FrameResult(
            index=self._frame_index,
            heights=rearrange_center_out(heights),
            sensitivity=self.sensitivity.gain,
        )
        self._frame_index += 1
        return result

    def frames(self, source: SampleSource) -> Iterator[FrameResult]:
        """
        Stream frames from source.

        With a profile exactly profile.num_frames frames are produced, the
        last ones over zero padding once the audio runs out. Without one the
        stream stops when the source runs dry. SourceReadError from the
        source ends the stream by propagating to the caller.
        """
        limit = self.profile.num_frames if self.profile else None
        feeder = SlidingWindowFeeder(source, self.config)
        window = feeder.fill()
        if feeder.samples_read == 0:
            return
        produced = 0
        while limit is None or produced < limit:
            yield self.process_window(window)
            produced += 1
            window, more = feeder.advance(window)
            # With a profile the tail frames slide over zeros, as in profiling
            if limit is None and not more:
                break
        logger.debug(f"Rendered {produced} frames from {feeder.samples_read} samples")

    def reset(self):
        """Start a new session: fresh gain and zeroed bar state."""
        self.sensitivity.reset()
        self.dynamics.reset()
        self._frame_index = 0


def snapshot(
    samples,
    at_time: float,
    config: VisualizerConfig,
    base_scale: float = DEFAULT_BASE_SCALE,
) -> np.ndarray:
    """
    Bar heights for a single moment, without any smoothing history.

    Args:
        samples: Whole recording, mono
        at_time: Timestamp in seconds
        config: Pipeline configuration
        base_scale: Normalization scale, usually a profile's optimal_base_scale

    Returns:
        Center-out heights in pixel units

    Raises:
        ValueError: If at_time is beyond the end of the samples
    """
    samples = np.asarray(samples, dtype=np.float64)
    frame = int(at_time * config.frame_rate)
    start = frame * config.hop
    if at_time < 0 or start >= len(samples):
        raise ValueError(f"timestamp {at_time:.2f}s is beyond audio duration")
    chunk = samples[start : start + config.fft_size]

    coeffs = SpectrumExtractor(config).extract(chunk)
    heights = bin_spectrum(coeffs, 1.0, base_scale, config.num_bars)
    heights = np.minimum(heights, 1.0) * config.available_extent
    return rearrange_center_out(heights)


def render(
    open_source: Callable[[], SampleSource],
    config: VisualizerConfig,
    progress_callback: Optional[ProgressCallback] = None,
) -> Iterator[FrameResult]:
    """
    Two-pass rendering: profile the whole recording, then stream it.

    Args:
        open_source: Returns a fresh source positioned at the start. It is
            called once per pass.
        config: Pipeline configuration
        progress_callback: Forwarded to the profiler

    Raises:
        AnalysisError: If profiling fails; no frames are produced then
    """
    profile = AudioProfiler(config, progress_callback=progress_callback).analyze(open_source())
    visualizer = BarVisualizer(config, profile)
    return visualizer.frames(open_source())
