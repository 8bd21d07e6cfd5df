"""
Tests for SharedAudioBuffer
"""

import threading
import time

import numpy as np
import pytest


def test_basic_write_read():
    """Test that the two cursors advance independently"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer(1024)
    buf.write([0.1, 0.2, 0.3, 0.4, 0.5])
    assert buf.available_for_analysis() == 5
    assert buf.available_for_consumer() == 5

    samples = buf.read_for_analysis(3)
    assert samples.tolist() == [0.1, 0.2, 0.3]
    assert buf.available_for_analysis() == 2
    assert buf.available_for_consumer() == 5


def test_read_for_analysis_returns_what_is_available():
    """Test partial and empty non-blocking analysis reads"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer()
    assert len(buf.read_for_analysis(10)) == 0

    buf.write([1.0, 2.0])
    assert buf.read_for_analysis(10).tolist() == [1.0, 2.0]
    assert len(buf.read_for_analysis(10)) == 0


def test_cursors_and_compaction():
    """Test cursor positions and compaction after uneven reads"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.write(np.arange(1.0, 101.0))

    assert buf.read_for_analysis(30).tolist() == list(np.arange(1.0, 31.0))
    assert buf.read_for_consumer(70).tolist() == list(np.arange(1.0, 71.0))
    assert buf.available_for_analysis() == 70
    assert buf.available_for_consumer() == 30

    buf.compact()
    assert buf.total_samples() == max(0, 100 - min(30, 70))
    assert buf.available_for_analysis() == 70
    assert buf.available_for_consumer() == 30

    # Nothing unread is lost by compaction
    assert buf.read_for_analysis(5).tolist() == [31.0, 32.0, 33.0, 34.0, 35.0]
    assert buf.read_for_consumer(3).tolist() == [71.0, 72.0, 73.0]


def test_compact_without_reads_is_noop():
    """Test that compaction keeps everything when one cursor has not moved"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.write([1.0, 2.0, 3.0])
    buf.read_for_analysis(3)
    buf.compact()

    assert buf.total_samples() == 3
    assert buf.read_for_consumer(3).tolist() == [1.0, 2.0, 3.0]


def test_consumer_blocks_until_write():
    """Test that a blocking read waits for the producer and keeps order"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer()
    expected = [float(i) for i in range(1, 11)]
    writer = threading.Timer(0.05, buf.write, args=(expected,))

    start = time.monotonic()
    writer.start()
    samples = buf.read_for_consumer(10)
    elapsed = time.monotonic() - start
    writer.join()

    assert samples.tolist() == expected
    assert elapsed >= 0.04


def test_close_unblocks_with_partial_remainder():
    """Test that close() releases a blocked reader with what is left"""
    from pyaudiobars import BufferClosedError, SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.write([1.0, 2.0])
    closer = threading.Timer(0.05, buf.close)

    start = time.monotonic()
    closer.start()
    samples = buf.read_for_consumer(10)
    elapsed = time.monotonic() - start
    closer.join()

    assert samples.tolist() == [1.0, 2.0]
    assert elapsed >= 0.04

    with pytest.raises(BufferClosedError):
        buf.read_for_consumer(1)
    with pytest.raises(BufferClosedError):
        buf.read_for_consumer_nowait(1)


def test_zero_length_reads_after_drain():
    """Test that a closed, drained buffer rejects reads of any size"""
    from pyaudiobars import BufferClosedError, SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.write([1.0])
    assert len(buf.read_for_consumer(0)) == 0
    buf.close()
    assert buf.read_for_consumer(1).tolist() == [1.0]

    with pytest.raises(BufferClosedError):
        buf.read_for_consumer(0)
    with pytest.raises(BufferClosedError):
        buf.read_for_consumer_nowait(0)


def test_wait_for_analysis():
    """Test waiting on the analysis cursor"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer()
    assert buf.wait_for_analysis(timeout=0.01) is False

    threading.Timer(0.05, buf.write, args=([1.0],)).start()
    assert buf.wait_for_analysis(timeout=5) is True
    buf.read_for_analysis(1)

    threading.Timer(0.05, buf.close).start()
    assert buf.wait_for_analysis(timeout=5) is True


def test_analysis_read_after_close():
    """Test that the analysis cursor drains before reporting closure"""
    from pyaudiobars import BufferClosedError, SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.write([1.0, 2.0, 3.0])
    buf.close()

    assert buf.read_for_analysis(2).tolist() == [1.0, 2.0]
    assert buf.read_for_analysis(2).tolist() == [3.0]
    with pytest.raises(BufferClosedError):
        buf.read_for_analysis(2)


def test_nowait_consumer_read():
    """Test the non-blocking consumer read"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.write([1.0, 2.0, 3.0])

    assert len(buf.read_for_consumer_nowait(5)) == 0
    assert buf.available_for_consumer() == 3
    assert buf.read_for_consumer_nowait(2).tolist() == [1.0, 2.0]

    buf.close()
    assert buf.read_for_consumer_nowait(5).tolist() == [3.0]


def test_write_after_close_fails():
    """Test that the closed flag is final until reset"""
    from pyaudiobars import BufferClosedError, SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.close()
    buf.close()
    assert buf.closed is True

    with pytest.raises(BufferClosedError, match="closed"):
        buf.write([1.0])


def test_reset_reopens():
    """Test reuse of a buffer across recordings"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer()
    buf.write([1.0, 2.0])
    buf.read_for_analysis(1)
    buf.close()
    buf.reset()

    assert buf.closed is False
    assert buf.total_samples() == 0
    assert buf.available_for_analysis() == 0
    buf.write([5.0])
    assert buf.read_for_consumer(1).tolist() == [5.0]


def test_grows_past_initial_capacity():
    """Test that the log expands as samples arrive"""
    from pyaudiobars import SharedAudioBuffer

    buf = SharedAudioBuffer(initial_capacity=8)
    for i in range(10):
        buf.write(np.full(5, float(i)))

    assert buf.total_samples() == 50
    data = buf.read_for_consumer(50)
    assert data.tolist() == [float(i) for i in range(10) for _ in range(5)]


def test_concurrent_producer_and_consumers():
    """Test one producer and two consumers running at different cadences"""
    from pyaudiobars import BufferClosedError, SharedAudioBuffer

    buf = SharedAudioBuffer(initial_capacity=64)
    total = 20000
    source = np.arange(total, dtype=np.float64)
    analysis_out = []
    consumer_out = []

    def produce():
        for start in range(0, total, 257):
            buf.write(source[start : start + 257])
        buf.close()

    def analyze():
        while True:
            try:
                chunk = buf.read_for_analysis(1470)
            except BufferClosedError:
                return
            if len(chunk) == 0:
                time.sleep(0.0005)
            analysis_out.append(chunk)

    def consume():
        while True:
            try:
                consumer_out.append(buf.read_for_consumer(1024))
            except BufferClosedError:
                return
            buf.compact()

    threads = [threading.Thread(target=f) for f in (produce, analyze, consume)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
        assert not t.is_alive()

    assert np.array_equal(np.concatenate(analysis_out), source)
    assert np.array_equal(np.concatenate(consumer_out), source)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
