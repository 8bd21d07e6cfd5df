"""
Frame-to-frame state: the auto-gain loop and per-bar gravity smoothing.
"""

from dataclasses import dataclass

import numpy as np

from .config import VisualizerConfig

MIN_GAIN = 0.05
MAX_GAIN = 2.0
GAIN_DECAY = 0.985  # applied on any overshoot
GAIN_RECOVERY = 1.002  # applied when every bar stayed under the ceiling


def soft_knee(values: np.ndarray, ceiling: float) -> np.ndarray:
    """
    Compress values above ceiling with ceiling + o * exp(-o / ceiling).

    Compressed values approach but never pass ceiling + ceiling/e, so bars
    bend instead of clipping flat.
    """
    values = np.array(values, dtype=np.float64)
    over = values > ceiling
    overshoot = values[over] - ceiling
    values[over] = ceiling + overshoot * np.exp(-overshoot / ceiling)
    return values


class SensitivityController:
    """
    Scalar auto-gain feedback loop.

    The gain returned after update() is meant for the *next* frame's
    binning. The one-frame lag keeps the loop slow and stable.
    """

    def __init__(self, config: VisualizerConfig):
        self.num_bars = config.num_bars
        self.gain = 1.0

    def update(self, heights: np.ndarray) -> np.ndarray:
        """
        Compress overshooting bars and adjust the gain.

        Args:
            heights: Normalized bar heights from binning

        Returns:
            Heights with soft-knee compression applied above 1.0
        """
        heights = np.asarray(heights, dtype=np.float64)
        overshoot = bool(np.any(heights > 1.0))
        if overshoot:
            heights = soft_knee(heights, 1.0)
            self.gain *= GAIN_DECAY
        else:
            self.gain *= GAIN_RECOVERY
        self.gain = min(MAX_GAIN, max(MIN_GAIN, self.gain))
        return heights

    def reset(self):
        self.gain = 1.0


@dataclass
class BarState:
    """Per-bar smoothing memory. Index i of each array belongs to bar i only."""

    prev_height: np.ndarray
    peak_height: np.ndarray
    fall_velocity: np.ndarray
    integral_memory: np.ndarray

    @classmethod
    def zeros(cls, num_bars: int) -> "BarState":
        return cls(
            prev_height=np.zeros(num_bars),
            peak_height=np.zeros(num_bars),
            fall_velocity=np.zeros(num_bars),
            integral_memory=np.zeros(num_bars),
        )

    def copy(self) -> "BarState":
        return BarState(
            prev_height=self.prev_height.copy(),
            peak_height=self.peak_height.copy(),
            fall_velocity=self.fall_velocity.copy(),
            integral_memory=self.integral_memory.copy(),
        )


class BarDynamicsEngine:
    """
    Gravity fall, peak hold and integral smoothing for every bar.

    Rising bars jump straight to the measured height and become the new
    peak. Falling bars drop from their peak along a quadratic curve
    (velocity grows by fall_accel each frame). The result is then low-pass
    filtered through the integral memory and soft-kneed at the available
    pixel extent.
    """

    def __init__(self, config: VisualizerConfig):
        self.num_bars = config.num_bars
        self.noise_reduction = config.noise_reduction
        self.fall_accel = config.fall_accel
        self.gravity_mod = config.gravity_mod
        self.extent = config.available_extent
        self._state = BarState.zeros(config.num_bars)

    @property
    def state(self) -> BarState:
        """Snapshot of the current bar state."""
        return self._state.copy()

    def step(self, heights: np.ndarray) -> np.ndarray:
        """
        Advance every bar by one frame.

        Args:
            heights: Measured heights in pixel units (normalized * extent)

        Returns:
            Displayed heights in pixel units
        """
        s = self._state
        h = np.array(heights, dtype=np.float64)
        if h.shape != (self.num_bars,):
            raise ValueError(f"expected {self.num_bars} bar heights, got shape {h.shape}")

        falling = h < s.prev_height
        rising = ~falling

        fall = s.fall_velocity[falling]
        h[falling] = np.maximum(
            s.peak_height[falling] * (1.0 - fall * fall * self.gravity_mod), 0.0
        )
        s.fall_velocity[falling] = fall + self.fall_accel

        s.peak_height[rising] = h[rising]
        s.fall_velocity[rising] = 0.0

        h = s.integral_memory * self.noise_reduction + h
        s.integral_memory[:] = h

        h = soft_knee(h, self.extent)
        s.prev_height[:] = h
        return h.copy()

    def reset(self):
        self._state = BarState.zeros(self.num_bars)
