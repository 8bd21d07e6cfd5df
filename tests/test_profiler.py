"""
Tests for the calibration pass
"""

import math

import numpy as np
import pytest


def _sine_source(freq=220.0, amplitude=0.5, seconds=1.0, sample_rate=44100, **kwargs):
    from pyaudiobars import ArraySampleSource

    t = np.arange(int(sample_rate * seconds)) / sample_rate
    return ArraySampleSource(amplitude * np.sin(2 * np.pi * freq * t), sample_rate, **kwargs)


def test_profile_of_sine():
    """Test global statistics for a steady sine"""
    from pyaudiobars import AudioProfiler, VisualizerConfig

    profile = AudioProfiler(VisualizerConfig()).analyze(_sine_source())

    assert profile.sample_rate == 44100
    assert profile.duration == pytest.approx(1.0)
    assert profile.num_frames == 44100 // 1470
    assert len(profile.frames) == profile.num_frames
    assert profile.global_peak == pytest.approx(0.5, rel=1e-3)
    assert profile.global_rms == pytest.approx(0.5 / math.sqrt(2), rel=1e-3)
    assert profile.dynamic_range_db == pytest.approx(20 * math.log10(math.sqrt(2)), abs=0.01)


def test_base_scale_hits_target_level():
    """Test that the loudest frame bins to target_level at sensitivity 1.0"""
    from pyaudiobars import AudioProfiler, VisualizerConfig
    from pyaudiobars.spectrum import normalize_magnitudes

    config = VisualizerConfig()
    profile = AudioProfiler(config).analyze(_sine_source())

    assert profile.peak_magnitude == max(f.peak_magnitude for f in profile.frames)
    loudest = max(profile.frames, key=lambda f: f.peak_magnitude)
    heights = normalize_magnitudes(loudest.bar_magnitudes, 1.0, profile.optimal_base_scale)
    assert heights.max() == pytest.approx(config.target_level)
    assert heights.max() < 1.0


def test_silent_audio_falls_back_to_default_scale():
    """Test the fallback scale for a silent recording"""
    from pyaudiobars import DEFAULT_BASE_SCALE, ArraySampleSource, AudioProfiler, VisualizerConfig

    profile = AudioProfiler(VisualizerConfig()).analyze(ArraySampleSource(np.zeros(44100), 44100))

    assert profile.optimal_base_scale == DEFAULT_BASE_SCALE
    assert profile.global_peak == 0.0
    assert profile.global_rms == 0.0
    assert profile.dynamic_range_db == 0.0


def test_empty_source_fails():
    """Test that a source with no samples cannot be profiled"""
    from pyaudiobars import AnalysisError, ArraySampleSource, AudioProfiler, VisualizerConfig

    with pytest.raises(AnalysisError, match="no samples"):
        AudioProfiler(VisualizerConfig()).analyze(ArraySampleSource([], 44100))


def test_read_failure_becomes_analysis_error():
    """Test that a mid-scan source failure aborts profiling"""
    from pyaudiobars import AnalysisError, AudioProfiler, SourceReadError, VisualizerConfig

    class FlakySource:
        sample_rate = 44100
        num_samples = 44100

        def __init__(self):
            self.reads = 0

        def read(self, n):
            self.reads += 1
            if self.reads > 3:
                raise SourceReadError("read error")
            return np.zeros(n)

    with pytest.raises(AnalysisError) as excinfo:
        AudioProfiler(VisualizerConfig()).analyze(FlakySource())
    assert isinstance(excinfo.value.__cause__, SourceReadError)


def test_progress_callback():
    """Test progress reporting cadence and arguments"""
    from pyaudiobars import AudioProfiler, VisualizerConfig

    calls = []

    def on_progress(frame, total, rms, peak, bars, elapsed):
        calls.append((frame, total, rms, peak, bars, elapsed))

    AudioProfiler(VisualizerConfig(), progress_callback=on_progress).analyze(_sine_source())

    frames = [c[0] for c in calls]
    assert frames[0] == 1
    assert frames[-1] == 30
    assert frames[:3] == [1, 4, 7]
    assert all(c[1] == 30 for c in calls)
    frame, total, rms, peak, bars, elapsed = calls[-1]
    assert rms > 0 and peak > 0
    assert bars.shape == (64,)
    assert elapsed >= 0.0


def test_window_longer_than_two_hops():
    """Test that every frame is analyzed when the window spans several hops"""
    from pyaudiobars import AudioProfiler, VisualizerConfig

    calls = []

    def on_progress(frame, total, rms, peak, bars, elapsed):
        calls.append((frame, total))

    config = VisualizerConfig(frame_rate=60)
    profile = AudioProfiler(config, progress_callback=on_progress).analyze(_sine_source())

    assert config.fft_size > 2 * config.hop
    assert profile.num_frames == 44100 // 735
    assert len(profile.frames) == profile.num_frames
    assert calls[-1] == (60, 60)
    # Tail windows run past the end of the audio and are partly zero
    assert profile.frames[-1].rms_level < profile.frames[0].rms_level


def test_short_reads_do_not_change_profile():
    """Test that a source delivering short reads profiles identically"""
    from pyaudiobars import AudioProfiler, VisualizerConfig

    config = VisualizerConfig()
    full = AudioProfiler(config).analyze(_sine_source())
    chunked = AudioProfiler(config).analyze(_sine_source(max_read=97))

    assert chunked.num_frames == full.num_frames
    assert chunked.optimal_base_scale == full.optimal_base_scale
    assert chunked.global_rms == pytest.approx(full.global_rms)


def test_stream_of_unknown_length():
    """Test profiling a live buffer whose length is not known in advance"""
    from pyaudiobars import (
        ArraySampleSource,
        AudioProfiler,
        BufferedSource,
        SharedAudioBuffer,
        VisualizerConfig,
        start_producer,
    )

    samples = np.random.default_rng(5).standard_normal(30000) * 0.1
    buf = SharedAudioBuffer()
    producer = start_producer(ArraySampleSource(samples, 44100), buf, chunk_size=1000)

    reported = []
    profiler = AudioProfiler(
        VisualizerConfig(), progress_callback=lambda frame, total, *rest: reported.append(frame)
    )
    profile = profiler.analyze(BufferedSource(buf, 44100))
    producer.join(timeout=5)

    expected = AudioProfiler(VisualizerConfig()).analyze(ArraySampleSource(samples, 44100))
    assert profile.num_frames == 30000 // 1470
    assert len(profile.frames) == profile.num_frames
    assert reported[-1] == profile.num_frames
    assert profile.global_peak == expected.global_peak
    assert profile.peak_magnitude == pytest.approx(expected.peak_magnitude)


def test_profiling_leaves_render_state_fresh():
    """Test that a visualizer built after profiling starts from defaults"""
    from pyaudiobars import AudioProfiler, BarVisualizer, VisualizerConfig

    config = VisualizerConfig()
    profile = AudioProfiler(config).analyze(_sine_source(amplitude=1.0))
    visualizer = BarVisualizer(config, profile)

    assert visualizer.sensitivity.gain == 1.0
    assert np.all(visualizer.dynamics.state.integral_memory == 0.0)
    assert visualizer.base_scale == profile.optimal_base_scale


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
