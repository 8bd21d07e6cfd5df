#!/usr/bin/env python3
"""
Example: Stream a WAV file's PCM to stdout while analyzing it

One producer thread decodes the file into a SharedAudioBuffer. The main
thread computes bar frames from the analysis cursor while a second thread
passes the untouched samples to stdout as float32 (what an encoder would
receive).

Usage:
    python raw_stdout.py input.wav > output.f32
    python raw_stdout.py input.wav | ffplay -f f32le -ar 44100 -ac 1 -
"""

import sys
import threading

import numpy as np

from pyaudiobars import (
    BarVisualizer,
    BufferClosedError,
    BufferedSource,
    SharedAudioBuffer,
    VisualizerConfig,
    WavSampleSource,
    start_producer,
)


def pass_through(buffer, chunk_size):
    """Copy consumer reads to stdout until the buffer is drained"""
    while True:
        try:
            chunk = buffer.read_for_consumer(chunk_size)
        except BufferClosedError:
            return
        sys.stdout.buffer.write(chunk.astype(np.float32).tobytes())
        buffer.compact()


def main():
    source = WavSampleSource(sys.argv[1])
    config = VisualizerConfig(sample_rate=source.sample_rate)
    buffer = SharedAudioBuffer(initial_capacity=source.sample_rate * 10)

    # Log to stderr (stdout is for raw audio data)
    print(f"Streaming {sys.argv[1]} at {source.sample_rate} Hz", file=sys.stderr)

    producer = start_producer(source, buffer)
    writer = threading.Thread(target=pass_through, args=(buffer, 1024), daemon=True)
    writer.start()

    visualizer = BarVisualizer(config)
    frames = 0
    for frame in visualizer.frames(BufferedSource(buffer, source.sample_rate)):
        frames += 1
        if frames % config.frame_rate == 0:
            print(f"frame {frames}: loudest bar {frame.heights.max():.1f}px", file=sys.stderr)

    producer.join()
    writer.join()
    source.close()
    if producer.error is not None:
        print(f"Error: {producer.error}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
