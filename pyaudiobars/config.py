"""
Static configuration shared by every stage of the bar pipeline.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ConfigurationError

# Base scale used without a profile, or when the profiled audio was silent
DEFAULT_BASE_SCALE = 0.0075


class VisualizerConfig(BaseModel):
    """
    Immutable configuration for analysis, binning and bar dynamics.

    The defaults reproduce a 1280x720 render at 30 FPS with 64 bars.
    Invalid combinations raise ConfigurationError when the model is built.
    """

    model_config = ConfigDict(frozen=True)

    # Audio
    sample_rate: int = Field(default=44100, description="PCM sample rate in Hz")
    fft_size: int = Field(default=2048, description="Analysis window length in samples")

    # Video
    frame_rate: int = Field(default=30, description="Output frames per second")
    height: int = Field(default=720, description="Output frame height in pixels")
    center_gap: int = Field(default=100, description="Gap between the two bar halves in pixels")

    # Bars
    num_bars: int = Field(default=64, description="Number of bars, must be even")
    max_bar_height: float = Field(default=0.50, description="Fraction of available extent")

    # Smoothing
    noise_reduction: float = Field(default=0.77, description="Integral smoothing coefficient")
    fall_accel: float = Field(default=0.028, description="Gravity acceleration per frame")

    # Calibration
    target_level: float = Field(
        default=0.9, description="Normalized level the loudest frame is calibrated to"
    )

    @model_validator(mode="after")
    def check_ranges(self) -> "VisualizerConfig":
        if self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.frame_rate <= 0:
            raise ConfigurationError(f"frame_rate must be positive, got {self.frame_rate}")
        if self.fft_size <= 0:
            raise ConfigurationError(f"fft_size must be positive, got {self.fft_size}")
        if self.num_bars <= 0 or self.num_bars % 2:
            raise ConfigurationError(f"num_bars must be a positive even number, got {self.num_bars}")
        if self.hop == 0:
            raise ConfigurationError(
                f"frame_rate {self.frame_rate} exceeds sample_rate {self.sample_rate}"
            )
        if self.bin_width == 0:
            raise ConfigurationError(
                f"fft_size {self.fft_size} leaves {self.usable_bins} usable bins, "
                f"fewer than num_bars {self.num_bars}"
            )
        if not 0.0 < self.noise_reduction <= 1.0:
            raise ConfigurationError(
                f"noise_reduction must be in (0, 1], got {self.noise_reduction}"
            )
        if not 0.0 < self.max_bar_height <= 1.0:
            raise ConfigurationError(f"max_bar_height must be in (0, 1], got {self.max_bar_height}")
        if not 0.0 < self.target_level < 1.0:
            raise ConfigurationError(f"target_level must be in (0, 1), got {self.target_level}")
        if self.fall_accel <= 0:
            raise ConfigurationError(f"fall_accel must be positive, got {self.fall_accel}")
        if self.available_extent <= 0:
            raise ConfigurationError(
                f"center_gap {self.center_gap} leaves no room for bars at height {self.height}"
            )
        return self

    @property
    def hop(self) -> int:
        """New samples consumed per output frame."""
        return self.sample_rate // self.frame_rate

    @property
    def usable_bins(self) -> int:
        """FFT bins that feed the bars: first 3/4 of the positive spectrum."""
        return (self.fft_size // 2) * 3 // 4

    @property
    def bin_width(self) -> int:
        return self.usable_bins // self.num_bars

    @property
    def available_extent(self) -> float:
        """Pixel extent a single bar may grow to."""
        return (self.height / 2 - self.center_gap / 2) * self.max_bar_height

    @property
    def gravity_mod(self) -> float:
        # 1.54 and the 2.5 exponent are fixed tuning constants of the fall curve
        return max(1.0, (60.0 / self.frame_rate) ** 2.5 * 1.54 / self.noise_reduction)
