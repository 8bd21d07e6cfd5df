"""
Exception types raised by pyaudiobars.
"""


class AudioBarsError(Exception):
    """Base class for all pyaudiobars errors."""


class ConfigurationError(AudioBarsError):
    """Invalid configuration. Raised when the configuration is built, never per frame."""


class SourceReadError(AudioBarsError):
    """A sample source failed mid-stream. Sources are not assumed resumable."""


class AnalysisError(AudioBarsError):
    """The profiling pass could not complete; no partial profile is usable."""


class BufferClosedError(AudioBarsError):
    """Raised when writing to, or draining, a closed SharedAudioBuffer.

    This is the normal end-of-data signal, not a failure.
    """
