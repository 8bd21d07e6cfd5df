"""
pyaudiobars - Audio-reactive spectrum bars for offline video rendering

This module turns a PCM stream into smoothed, per-frame bar heights:
- Pass 1: AudioProfiler scans the recording and calibrates normalization
- Pass 2: BarVisualizer streams sliding FFT windows through binning,
  auto-gain and gravity smoothing
- SharedAudioBuffer lets analysis and an encoder read one decoded stream
  at their own pace
"""

from .buffer import SharedAudioBuffer
from .config import DEFAULT_BASE_SCALE, VisualizerConfig
from .dynamics import BarDynamicsEngine, BarState, SensitivityController, soft_knee
from .errors import (
    AnalysisError,
    AudioBarsError,
    BufferClosedError,
    ConfigurationError,
    SourceReadError,
)
from .feeder import SlidingWindowFeeder
from .pipeline import BarVisualizer, FrameResult, render, snapshot
from .profiler import AudioProfile, AudioProfiler, FrameAnalysis
from .source import (
    ArraySampleSource,
    BufferedSource,
    ProducerThread,
    SampleSource,
    WavSampleSource,
    start_producer,
)
from .spectrum import (
    SpectrumExtractor,
    bar_magnitudes,
    bin_spectrum,
    extract_spectrum,
    hann_window,
    rearrange_center_out,
)

__version__ = "0.1.0"
__all__ = [
    "AnalysisError",
    "ArraySampleSource",
    "AudioBarsError",
    "AudioProfile",
    "AudioProfiler",
    "BarDynamicsEngine",
    "BarState",
    "BarVisualizer",
    "BufferClosedError",
    "BufferedSource",
    "ConfigurationError",
    "DEFAULT_BASE_SCALE",
    "FrameAnalysis",
    "FrameResult",
    "ProducerThread",
    "SampleSource",
    "SensitivityController",
    "SharedAudioBuffer",
    "SlidingWindowFeeder",
    "SourceReadError",
    "SpectrumExtractor",
    "VisualizerConfig",
    "WavSampleSource",
    "bar_magnitudes",
    "bin_spectrum",
    "extract_spectrum",
    "hann_window",
    "rearrange_center_out",
    "render",
    "snapshot",
    "soft_knee",
    "start_producer",
]
