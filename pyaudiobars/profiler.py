"""
First pass: scan the whole recording and calibrate normalization.

The profiler walks the source with the same sliding window and binning as
playback, but only to collect statistics. Nothing it computes feeds back
into rendering state except the resulting AudioProfile.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np

from .config import DEFAULT_BASE_SCALE, VisualizerConfig
from .errors import AnalysisError, SourceReadError
from .feeder import SlidingWindowFeeder
from .source import SampleSource
from .spectrum import SpectrumExtractor, bar_magnitudes

logger = logging.getLogger(__name__)

# (frame, total_frames, running_rms, running_peak, bar_heights, elapsed_seconds)
ProgressCallback = Callable[[int, Optional[int], float, float, np.ndarray, float], None]


@dataclass(frozen=True)
class FrameAnalysis:
    """Statistics for one analysis window."""

    peak_magnitude: float  # Highest per-bar average FFT magnitude
    rms_level: float  # RMS of the window's samples
    bar_magnitudes: np.ndarray = field(repr=False)


@dataclass(frozen=True)
class AudioProfile:
    """Global calibration for one recording. Read-only once produced."""

    sample_rate: int
    duration: float  # seconds
    num_frames: int
    global_peak: float  # peak absolute sample amplitude
    global_rms: float  # RMS over all samples
    dynamic_range_db: float  # 20*log10(peak/rms), 0 for silence
    peak_magnitude: float  # loudest per-bar FFT magnitude seen
    optimal_base_scale: float
    frames: List[FrameAnalysis] = field(default_factory=list, repr=False)


def calibrate_base_scale(peak_magnitude: float, target_level: float) -> float:
    """
    Pick the base scale that maps peak_magnitude to target_level.

    Binning maps a scaled magnitude x to log10(1 + 9x), so the loudest bar
    lands at target_level when x = (10**target_level - 1) / 9 at
    sensitivity 1.0. Headroom above target_level is left to the auto-gain.
    """
    if peak_magnitude <= 0:
        return DEFAULT_BASE_SCALE
    return (10.0**target_level - 1.0) / 9.0 / peak_magnitude


class _Stats:
    """Running amplitude statistics over every sample read."""

    def __init__(self):
        self.count = 0
        self.sum_squares = 0.0
        self.peak = 0.0

    def add(self, samples: np.ndarray):
        if len(samples) == 0:
            return
        self.count += len(samples)
        self.sum_squares += float(np.dot(samples, samples))
        self.peak = max(self.peak, float(np.max(np.abs(samples))))

    @property
    def rms(self) -> float:
        return math.sqrt(self.sum_squares / self.count) if self.count else 0.0


class _CountingSource:
    """Pass-through source that feeds every chunk into _Stats."""

    def __init__(self, source: SampleSource, stats: _Stats):
        self._source = source
        self._stats = stats
        self.sample_rate = source.sample_rate

    @property
    def num_samples(self):
        return self._source.num_samples

    def read(self, n: int) -> np.ndarray:
        chunk = np.asarray(self._source.read(n), dtype=np.float64)
        self._stats.add(chunk)
        return chunk


class AudioProfiler:
    """
    Analyze a whole recording before rendering.

    Example:
        profiler = AudioProfiler(config, progress_callback=print_progress)
        profile = profiler.analyze(WavSampleSource("episode.wav"))
        visualizer = BarVisualizer(config, profile)
    """

    def __init__(
        self,
        config: VisualizerConfig,
        progress_callback: Optional[ProgressCallback] = None,
        progress_interval: int = 3,
        keep_frames: bool = True,
    ):
        """
        Args:
            config: Pipeline configuration
            progress_callback: Called every progress_interval frames and on
                the last frame
            progress_interval: Frames between progress callbacks
            keep_frames: Store per-frame FrameAnalysis in the profile
        """
        self.config = config
        self.progress_callback = progress_callback
        self.progress_interval = max(1, progress_interval)
        self.keep_frames = keep_frames
        self._extractor = SpectrumExtractor(config)

    def analyze(self, source: SampleSource) -> AudioProfile:
        """
        Scan source to the end and build its AudioProfile.

        Raises:
            AnalysisError: If the source is empty or fails mid-read
        """
        config = self.config
        hop = config.hop
        if source.sample_rate != config.sample_rate:
            logger.warning(
                f"Source rate {source.sample_rate} Hz differs from configured "
                f"{config.sample_rate} Hz; hop stays at {hop} samples"
            )

        total = source.num_samples
        expected_frames = total // hop if total is not None else None

        stats = _Stats()
        feeder = SlidingWindowFeeder(_CountingSource(source, stats), config)
        frames: List[FrameAnalysis] = []
        peaks: List[float] = []
        start = time.monotonic()
        logger.info(f"Profiling audio: {expected_frames or 'unknown'} frames, hop={hop}")

        try:
            window = feeder.fill()
            if feeder.samples_read == 0:
                raise AnalysisError("audio source yielded no samples")

            frame = 0
            reported = 0
            analysis = None
            # Past the end of the audio the window keeps sliding over zeros
            # until every frame of the recording has been analyzed
            while not self._finished(frame, expected_frames, feeder, stats):
                if frame > 0:
                    window, _ = feeder.advance(window)
                    if self._finished(frame, expected_frames, feeder, stats):
                        break
                analysis = self._analyze_window(window)
                peaks.append(analysis.peak_magnitude)
                if self.keep_frames:
                    frames.append(analysis)
                frame += 1

                if (frame - 1) % self.progress_interval == 0 or frame == expected_frames:
                    self._report(frame, expected_frames, analysis, start)
                    reported = frame

            if analysis is not None and reported < frame:
                self._report(frame, expected_frames, analysis, start)

            # Samples past the last frame still count towards peak and RMS
            while len(feeder.source.read(hop)):
                pass
        except SourceReadError as e:
            raise AnalysisError(f"audio source failed during profiling: {e}") from e

        num_frames = stats.count // hop
        # Frames past num_frames only exist for streams of unknown length
        frames = frames[:num_frames]
        peak_magnitude = max(peaks[:num_frames], default=0.0)

        if stats.rms > 0:
            dynamic_range_db = 20.0 * math.log10(stats.peak / stats.rms)
        else:
            dynamic_range_db = 0.0

        if peak_magnitude <= 0:
            logger.warning(
                f"Audio appears silent; falling back to base scale {DEFAULT_BASE_SCALE}"
            )
        base_scale = calibrate_base_scale(peak_magnitude, config.target_level)

        profile = AudioProfile(
            sample_rate=source.sample_rate,
            duration=stats.count / source.sample_rate,
            num_frames=num_frames,
            global_peak=stats.peak,
            global_rms=stats.rms,
            dynamic_range_db=dynamic_range_db,
            peak_magnitude=peak_magnitude,
            optimal_base_scale=base_scale,
            frames=frames,
        )
        logger.info(
            f"Profile complete in {time.monotonic() - start:.2f}s: "
            f"frames={num_frames}, peak={profile.global_peak:.4f}, "
            f"rms={profile.global_rms:.4f}, range={dynamic_range_db:.1f} dB, "
            f"scale={base_scale:.6f}"
        )
        return profile

    def _finished(self, frame, expected_frames, feeder, stats) -> bool:
        if expected_frames is not None:
            return frame >= expected_frames
        # Unknown length: the frame count is only final once the stream ends
        return feeder.exhausted and frame >= stats.count // self.config.hop

    def _report(self, frame, expected_frames, analysis, start):
        if self.progress_callback is None:
            return
        self.progress_callback(
            frame,
            expected_frames,
            analysis.rms_level,
            analysis.peak_magnitude,
            analysis.bar_magnitudes.copy(),
            time.monotonic() - start,
        )

    def _analyze_window(self, window: np.ndarray) -> FrameAnalysis:
        coeffs = self._extractor.extract(window)
        magnitudes = bar_magnitudes(coeffs, self.config.num_bars)
        rms = math.sqrt(float(np.dot(window, window)) / len(window))
        return FrameAnalysis(
            peak_magnitude=float(magnitudes.max()),
            rms_level=rms,
            bar_magnitudes=magnitudes,
        )
