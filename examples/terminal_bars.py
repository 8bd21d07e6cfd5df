#!/usr/bin/env python3
"""
Example: Play back a WAV file's spectrum bars in the terminal

Runs the calibration pass over the whole file, then streams it frame by
frame and draws the center-out bars as ASCII columns at the video frame
rate.

Usage:
    python examples/terminal_bars.py input.wav
"""

import logging
import sys
import time

from pyaudiobars import (
    AudioProfiler,
    BarVisualizer,
    SourceReadError,
    VisualizerConfig,
    WavSampleSource,
)

ROWS = 16


def draw(heights, extent):
    """Render one frame of bars as rows of block characters"""
    lines = []
    for row in range(ROWS, 0, -1):
        threshold = extent * row / ROWS
        lines.append("".join("█" if h >= threshold else " " for h in heights))
    return "\n".join(lines)


def print_progress(frame, total, rms, peak, bars, elapsed):
    total_str = total if total is not None else "?"
    print(f"\rAnalyzing frame {frame}/{total_str}  rms={rms:.3f}", end="", file=sys.stderr)


def main():
    if len(sys.argv) != 2:
        print(__doc__, file=sys.stderr)
        sys.exit(2)
    path = sys.argv[1]
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        with WavSampleSource(path) as source:
            # Keep hop and duration in step with the file's real rate
            config = VisualizerConfig(sample_rate=source.sample_rate)
            profile = AudioProfiler(config, progress_callback=print_progress).analyze(source)
        print(file=sys.stderr)

        visualizer = BarVisualizer(config, profile)
        frame_time = 1.0 / config.frame_rate
        print("\033[2J\033[?25l", end="")  # Clear screen and hide cursor
        with WavSampleSource(path) as source:
            for frame in visualizer.frames(source):
                started = time.monotonic()
                print("\033[H", end="")
                print(draw(frame.heights, config.available_extent))
                print(f"\nframe {frame.index + 1}/{profile.num_frames}  "
                      f"sensitivity {frame.sensitivity:.3f}")
                time.sleep(max(0.0, frame_time - (time.monotonic() - started)))

    except KeyboardInterrupt:
        print("\nStopped")
    except SourceReadError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        print("\033[?25h", end="")  # Show cursor


if __name__ == "__main__":
    main()
