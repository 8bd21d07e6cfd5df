"""
Thread-safe sample log shared by one producer and two consumers.
"""

import logging
import threading
from typing import Optional

import numpy as np

from .errors import BufferClosedError

logger = logging.getLogger(__name__)

# ~23 seconds at 44.1kHz
DEFAULT_CAPACITY = 1024 * 1024


class SharedAudioBuffer:
    """
    Append-only sample log with two independent read cursors.

    A single producer (the decoder) appends with write(). Spectrum analysis
    reads through read_for_analysis(), which never blocks. A downstream
    consumer such as an audio encoder reads through read_for_consumer(),
    which blocks until enough samples exist or the buffer is closed. Each
    cursor only moves forward, so every reader sees every sample exactly
    once and in order.

    One condition variable guards the log and both cursors.

    The producer must call close() when it is done. A consumer blocked in
    read_for_consumer() waits indefinitely otherwise; there is no timeout.

    Example:
        buffer = SharedAudioBuffer()
        # producer thread
        buffer.write(samples)
        buffer.close()
        # consumer thread
        while True:
            try:
                chunk = buffer.read_for_consumer(1024)
            except BufferClosedError:
                break
    """

    def __init__(self, initial_capacity: int = DEFAULT_CAPACITY):
        """
        Args:
            initial_capacity: Expected total samples. The log grows past it
                as needed.
        """
        if initial_capacity <= 0:
            initial_capacity = DEFAULT_CAPACITY
        self._cond = threading.Condition(threading.Lock())
        self._samples = np.zeros(initial_capacity, dtype=np.float64)
        self._length = 0
        self._analysis_pos = 0
        self._consumer_pos = 0
        self._closed = False

    def _ensure_capacity(self, needed: int):
        capacity = len(self._samples)
        if needed <= capacity:
            return
        while capacity < needed:
            capacity *= 2
        grown = np.zeros(capacity, dtype=np.float64)
        grown[: self._length] = self._samples[: self._length]
        self._samples = grown

    def _take(self, pos: int, count: int) -> np.ndarray:
        return self._samples[pos : pos + count].copy()

    def write(self, samples) -> None:
        """
        Append samples and wake blocked consumers.

        Raises:
            BufferClosedError: If close() was already called
        """
        data = np.asarray(samples, dtype=np.float64).ravel()
        with self._cond:
            if self._closed:
                raise BufferClosedError("cannot write to a closed buffer")
            end = self._length + len(data)
            self._ensure_capacity(end)
            self._samples[self._length : end] = data
            self._length = end
            self._cond.notify_all()

    def read_for_analysis(self, num_samples: int) -> np.ndarray:
        """
        Read up to num_samples from the analysis cursor without blocking.

        Returns:
            The next unread samples, possibly fewer than requested. Empty if
            nothing is available yet.

        Raises:
            BufferClosedError: Once the buffer is closed and fully drained
                for this cursor
        """
        with self._cond:
            available = self._length - self._analysis_pos
            if available <= 0:
                if self._closed:
                    raise BufferClosedError("buffer is closed")
                return np.zeros(0)
            count = min(num_samples, available)
            result = self._take(self._analysis_pos, count)
            self._analysis_pos += count
            return result

    def _read_consumer_locked(self, num_samples: int, available: int) -> np.ndarray:
        count = min(num_samples, available)
        result = self._take(self._consumer_pos, count)
        self._consumer_pos += count
        return result

    def read_for_consumer(self, num_samples: int) -> np.ndarray:
        """
        Read exactly num_samples from the consumer cursor, blocking as needed.

        If the buffer is closed before enough samples arrive, the partial
        remainder is returned instead.

        Raises:
            BufferClosedError: If the buffer is closed and nothing is left
        """
        with self._cond:
            while True:
                available = self._length - self._consumer_pos
                if self._closed and available <= 0:
                    raise BufferClosedError("buffer is closed")
                if available >= num_samples or self._closed:
                    return self._read_consumer_locked(num_samples, available)
                self._cond.wait()

    def read_for_consumer_nowait(self, num_samples: int) -> np.ndarray:
        """
        Non-blocking variant of read_for_consumer().

        Returns an empty array when fewer than num_samples are available and
        the buffer is still open.
        """
        with self._cond:
            available = self._length - self._consumer_pos
            if self._closed and available <= 0:
                raise BufferClosedError("buffer is closed")
            if available >= num_samples or self._closed:
                return self._read_consumer_locked(num_samples, available)
            return np.zeros(0)

    def wait_for_analysis(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the analysis cursor has unread samples or the buffer closes.

        Returns:
            True if samples are available or the buffer is closed, False on
            timeout
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: self._length > self._analysis_pos or self._closed, timeout
            )

    def available_for_analysis(self) -> int:
        with self._cond:
            return self._length - self._analysis_pos

    def available_for_consumer(self) -> int:
        with self._cond:
            return self._length - self._consumer_pos

    def total_samples(self) -> int:
        """Number of samples currently held, including consumed ones not yet compacted."""
        with self._cond:
            return self._length

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def close(self):
        """Mark the end of the stream and wake every blocked reader. Safe to call twice."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def compact(self):
        """Drop samples already read by both cursors and shift the cursors down."""
        with self._cond:
            consumed = min(self._analysis_pos, self._consumer_pos)
            if consumed == 0:
                return
            remaining = self._length - consumed
            self._samples[:remaining] = self._samples[consumed : self._length]
            self._length = remaining
            self._analysis_pos -= consumed
            self._consumer_pos -= consumed
            logger.debug(f"Compacted {consumed} samples, {remaining} remain")

    def reset(self):
        """Empty the log, rewind both cursors and reopen for a new stream."""
        with self._cond:
            self._length = 0
            self._analysis_pos = 0
            self._consumer_pos = 0
            self._closed = False
