"""
Sample sources: where PCM comes from.

A source hands out float64 mono samples in order. read(n) returns at most n
samples and returns an empty array only at true end of stream; returning
fewer than requested is normal and callers must keep reading.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Protocol, Union

import numpy as np
from scipy.io import wavfile

from .buffer import SharedAudioBuffer
from .errors import BufferClosedError, SourceReadError

logger = logging.getLogger(__name__)


class SampleSource(Protocol):
    """Sequential reader of mono float64 PCM at a fixed sample rate."""

    sample_rate: int

    @property
    def num_samples(self) -> Optional[int]:
        """Total length if known up front, None for live streams."""
        ...

    def read(self, n: int) -> np.ndarray:
        ...


class ArraySampleSource:
    """
    Source over samples already in memory.

    Args:
        samples: Mono samples
        sample_rate: Sample rate in Hz
        max_read: Cap on samples returned per read(), to emulate a source
            that delivers short reads
    """

    def __init__(self, samples, sample_rate: int, max_read: Optional[int] = None):
        self._samples = np.asarray(samples, dtype=np.float64).ravel()
        self.sample_rate = sample_rate
        self.max_read = max_read
        self.position = 0

    @property
    def num_samples(self) -> Optional[int]:
        return len(self._samples)

    def read(self, n: int) -> np.ndarray:
        if self.max_read is not None:
            n = min(n, self.max_read)
        chunk = self._samples[self.position : self.position + n]
        self.position += len(chunk)
        return chunk.copy()

    def rewind(self):
        self.position = 0


def _to_float(data: np.ndarray) -> np.ndarray:
    """Convert PCM of any wavfile dtype to float64 in [-1, 1]."""
    if data.dtype.kind == "f":
        return data.astype(np.float64)
    if data.dtype == np.uint8:
        # 8-bit WAV is unsigned with a 128 offset
        return (data.astype(np.float64) - 128.0) / 127.0
    max_val = float(np.iinfo(data.dtype).max)
    return data.astype(np.float64) / max_val


class WavSampleSource:
    """
    Stream a WAV file without loading it into memory.

    The file is memory-mapped; each read() converts only the requested
    slice. Multichannel audio is downmixed to mono by averaging.

    Example:
        with WavSampleSource("episode.wav") as source:
            profile = AudioProfiler(config).analyze(source)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        try:
            self.sample_rate, self._data = wavfile.read(self.path, mmap=True)
        except (OSError, ValueError) as e:
            raise SourceReadError(f"failed to open WAV {self.path}: {e}") from e
        self.channels = 1 if self._data.ndim == 1 else self._data.shape[1]
        self.position = 0
        logger.info(
            f"Opened {self.path.name}: {self.sample_rate} Hz, "
            f"channels={self.channels}, samples={len(self._data)}"
        )

    @property
    def num_samples(self) -> Optional[int]:
        return len(self._data)

    @property
    def duration(self) -> float:
        return len(self._data) / self.sample_rate

    def read(self, n: int) -> np.ndarray:
        if self._data is None:
            raise SourceReadError(f"{self.path} is closed")
        try:
            frames = np.array(self._data[self.position : self.position + n])
        except (OSError, ValueError) as e:
            raise SourceReadError(f"failed to read {self.path} at {self.position}: {e}") from e
        self.position += len(frames)
        samples = _to_float(frames)
        if samples.ndim == 2:
            samples = samples.mean(axis=1)
        return samples

    def close(self):
        # Dropping the reference releases the memory map
        self._data = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class BufferedSource:
    """
    Read the analysis cursor of a SharedAudioBuffer as a SampleSource.

    read() waits on the buffer's condition variable while the buffer is
    open but has nothing new, and returns an empty array once the buffer is
    closed and drained.
    """

    def __init__(
        self,
        buffer: SharedAudioBuffer,
        sample_rate: int,
        wait_timeout: Optional[float] = 1.0,
        num_samples: Optional[int] = None,
    ):
        self.buffer = buffer
        self.sample_rate = sample_rate
        self.wait_timeout = wait_timeout
        self._num_samples = num_samples

    @property
    def num_samples(self) -> Optional[int]:
        return self._num_samples

    def read(self, n: int) -> np.ndarray:
        while True:
            try:
                chunk = self.buffer.read_for_analysis(n)
            except BufferClosedError:
                return np.zeros(0)
            if len(chunk):
                return chunk
            self.buffer.wait_for_analysis(self.wait_timeout)


class ProducerThread(threading.Thread):
    """
    Copy a source into a SharedAudioBuffer on a background thread.

    The buffer is always closed when the thread finishes, so consumers are
    never left blocked. A source failure is kept in .error and logged.
    """

    def __init__(self, source: SampleSource, buffer: SharedAudioBuffer, chunk_size: int = 4096):
        super().__init__(name="pyaudiobars-producer", daemon=True)
        self.source = source
        self.buffer = buffer
        self.chunk_size = chunk_size
        self.error: Optional[Exception] = None
        self.samples_written = 0

    def run(self):
        logger.debug("Producer started")
        try:
            while True:
                chunk = self.source.read(self.chunk_size)
                if len(chunk) == 0:
                    break
                self.buffer.write(chunk)
                self.samples_written += len(chunk)
        except SourceReadError as e:
            logger.error(f"Producer stopped: {e}")
            self.error = e
        except BufferClosedError:
            logger.debug("Buffer closed under the producer")
        except Exception as e:
            logger.exception(f"Producer failed: {e}")
            self.error = e
        finally:
            self.buffer.close()
            logger.debug(f"Producer finished after {self.samples_written} samples")


def start_producer(
    source: SampleSource, buffer: SharedAudioBuffer, chunk_size: int = 4096
) -> ProducerThread:
    """Start a ProducerThread feeding buffer from source and return it."""
    thread = ProducerThread(source, buffer, chunk_size)
    thread.start()
    return thread
