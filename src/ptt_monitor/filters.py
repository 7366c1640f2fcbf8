# Filters module for ECG/PPG signal conditioning
import logging
import math

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


class BaselineEMA:
    """EMA baseline tracker used to remove drift from a sample stream."""
    def __init__(self, alpha=0.995):
        if not 0.0 < alpha < 1.0:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        self.alpha = alpha
        self.baseline = None
        self._b = np.array([1.0 - alpha])
        self._a = np.array([1.0, -alpha])
        self._zi = None
        logger.debug(f"Baseline EMA configured (alpha={alpha:.5f})")

    @classmethod
    def from_time_constant(cls, tau_s, sample_rate):
        """Build a filter whose baseline follows the input with time constant tau_s"""
        return cls(alpha=math.exp(-1.0 / (tau_s * sample_rate)))

    def process_block(self, values):
        """Return (filtered, baseline) arrays for a block of consecutive samples"""
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return values.copy(), values.copy()

        if self._zi is None:
            # First sample seeds the baseline
            self._zi = np.array([self.alpha * values[0]])

        baseline, self._zi = signal.lfilter(self._b, self._a, values, zi=self._zi)
        self.baseline = float(baseline[-1])
        return values - baseline, baseline

    def reset(self):
        self.baseline = None
        self._zi = None


class StreamingLowPass:
    """Butterworth low-pass filter that keeps its state between blocks"""
    def __init__(self, sample_rate=200, cutoff_freq=40.0, order=2):
        self.sample_rate = sample_rate
        self.order = order

        # Keep the cutoff below Nyquist when the stream rate is low
        nyquist = sample_rate / 2
        self.cutoff_freq = min(cutoff_freq, 0.9 * nyquist)
        normalized_cutoff = self.cutoff_freq / nyquist
        self.b, self.a = signal.butter(order, normalized_cutoff, btype='low')

        self._zi_unit = signal.lfilter_zi(self.b, self.a)
        self.zi = None

        logger.debug(f"Low-pass configured (cutoff={self.cutoff_freq:.1f}Hz, order={order}, fs={sample_rate}Hz)")

    def process_block(self, values):
        """Filter a block of consecutive samples"""
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return values.copy()

        if self.zi is None:
            # Start in steady state at the first sample to avoid a step transient
            self.zi = self._zi_unit * values[0]

        filtered, self.zi = signal.lfilter(self.b, self.a, values, zi=self.zi)
        return filtered

    def reset(self):
        """Reset filter state"""
        self.zi = None
