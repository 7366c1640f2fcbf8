"""
Streaming peak detection for ECG R-peaks and PPG upstroke onsets.

Both detectors follow the same pattern: a feature signal is computed for each
block of raw samples, an adaptive threshold is derived from the recent
feature statistics, and a refractory period (from the maximum physiological
heart rate) suppresses double triggers. Fiducial points are located on the
raw signal history so filter delay does not bias the timestamps.
"""

from typing import List, Optional

import numpy as np

from .config import (
    ADAPT_INTERVAL_S,
    ADAPT_WINDOW_S,
    ECG_BASELINE_TAU_S,
    ECG_LOOKBACK_MS,
    ECG_LOWPASS_HZ,
    ECG_MAX_SEARCH_MS,
    ECG_SAMPLE_RATE,
    ECG_THRESHOLD_FRACTION,
    ECG_THRESHOLD_K,
    MIN_THRESHOLD_SPREAD,
    PPG_LOWPASS_HZ,
    PPG_MAX_RISE_MS,
    PPG_ONSET_LOOKBACK_MS,
    PPG_SAMPLE_RATE,
    PPG_THRESHOLD_FRACTION,
    PPG_THRESHOLD_K,
    RAW_HISTORY_S,
    REFRACTORY_MS,
)
from .data_types import Peak
from .filters import BaselineEMA, StreamingLowPass
from .ring_buffer import RingBuffer


class AdaptiveThresholdDetector:
    """
    Threshold-crossing detector with an adaptive threshold

    The threshold is mean + max(k * std, fraction * (max - mean)) of the
    feature over the last ADAPT_WINDOW_S seconds. Detection stays disabled
    until the first window has filled.
    """

    threshold_k = 2.0
    threshold_fraction = 0.5

    def __init__(self, sample_rate: int, refractory_ms: int = REFRACTORY_MS):
        self.sample_rate = sample_rate
        self.refractory_ms = refractory_ms
        self.adaptive = True
        self.threshold: Optional[float] = None

        self.raw_history = RingBuffer(max(2, int(RAW_HISTORY_S * sample_rate)))
        self.feature_history = RingBuffer(max(2, int(ADAPT_WINDOW_S * sample_rate)))
        self._adapt_interval = max(1, int(ADAPT_INTERVAL_S * sample_rate))
        self._since_adapt = 0
        self._prev_feature: Optional[float] = None
        self._last_peak_ts: Optional[int] = None

    def _ms_to_samples(self, ms: float) -> int:
        return max(1, int(round(ms * self.sample_rate / 1000.0)))

    def _features(self, values: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _step(self, raw: float, feature: float, ts: int) -> Optional[Peak]:
        raise NotImplementedError

    def _reset_state(self):
        pass

    def process(self, values, timestamps) -> List[Peak]:
        """
        Run the detector over a block of consecutive samples.

        Args:
            values: Raw sample values.
            timestamps: Sample timestamps in ms.

        Returns:
            Peaks completed within this block, oldest first.
        """
        values = np.asarray(values, dtype=np.float64)
        if values.size == 0:
            return []

        features = self._features(values)
        peaks = []
        for raw, feature, ts in zip(values, features, timestamps):
            ts = int(ts)
            feature = float(feature)
            self.raw_history.append(raw, ts)
            self.feature_history.append(feature, ts)
            self._since_adapt += 1

            window_full = len(self.feature_history) == self.feature_history.capacity
            if window_full and self._since_adapt >= self._adapt_interval:
                if self.threshold is None or self.adaptive:
                    self.adapt_threshold()

            if self.threshold is not None:
                peak = self._step(float(raw), feature, ts)
                if peak is not None:
                    self._last_peak_ts = peak.timestamp
                    peaks.append(peak)

            self._prev_feature = feature

        return peaks

    def adapt_threshold(self) -> bool:
        """Recompute the threshold from the recent feature window"""
        self._since_adapt = 0
        features, _ = self.feature_history.snapshot()
        if features.size < 2:
            return False

        mean = float(np.mean(features))
        spread = max(
            self.threshold_k * float(np.std(features)),
            self.threshold_fraction * (float(np.max(features)) - mean),
        )
        if not spread > MIN_THRESHOLD_SPREAD:
            # Flat input: keep whatever threshold we had
            return False

        self.threshold = mean + spread
        return True

    def _crossed(self, feature: float) -> bool:
        return self._prev_feature is not None and self._prev_feature <= self.threshold < feature

    def _refractory_elapsed(self, ts: int) -> bool:
        return self._last_peak_ts is None or ts - self._last_peak_ts >= self.refractory_ms

    def reset(self, keep_threshold: bool = False):
        """
        Clear signal history and detection state.

        Args:
            keep_threshold: Keep the current threshold (used after a buffer
                overrun, where only continuity is lost).
        """
        self.raw_history.clear()
        self.feature_history.clear()
        self._since_adapt = 0
        self._prev_feature = None
        self._last_peak_ts = None
        if not keep_threshold:
            self.threshold = None
        self._reset_state()


class EcgPeakDetector(AdaptiveThresholdDetector):
    """R-peak detector: baseline-removed, low-passed ECG against an adaptive threshold"""

    threshold_k = ECG_THRESHOLD_K
    threshold_fraction = ECG_THRESHOLD_FRACTION

    def __init__(self, sample_rate: int = ECG_SAMPLE_RATE, refractory_ms: int = REFRACTORY_MS):
        super().__init__(sample_rate, refractory_ms)
        self.baseline_filter = BaselineEMA.from_time_constant(ECG_BASELINE_TAU_S, sample_rate)
        self.lowpass = StreamingLowPass(sample_rate, ECG_LOWPASS_HZ)
        self._lookback = self._ms_to_samples(ECG_LOOKBACK_MS)
        self._max_search = self._ms_to_samples(ECG_MAX_SEARCH_MS)
        self._armed_samples: Optional[int] = None

    def _features(self, values):
        detrended, _ = self.baseline_filter.process_block(values)
        return self.lowpass.process_block(detrended)

    def _step(self, raw, feature, ts):
        if self._armed_samples is None:
            if self._crossed(feature) and self._refractory_elapsed(ts):
                self._armed_samples = 0
            return None

        self._armed_samples += 1
        if feature >= self.threshold and self._armed_samples < self._max_search:
            return None

        # QRS over: the R-peak is the raw maximum of the armed span plus look-back
        span = self._armed_samples + self._lookback + 1
        self._armed_samples = None
        raw_values, raw_ts = self.raw_history.snapshot(span)
        features, _ = self.feature_history.snapshot(span)
        i = int(np.argmax(raw_values))
        return Peak(timestamp=int(raw_ts[i]), value=float(np.max(features)))

    def _reset_state(self):
        self.baseline_filter.reset()
        self.lowpass.reset()
        self._armed_samples = None


class PpgOnsetDetector(AdaptiveThresholdDetector):
    """
    Systolic upstroke onset (foot) detector for PPG

    The feature is the slope of the low-passed IR signal. An upward slope
    crossing marks an upstroke; the foot is the raw minimum within the
    look-back window before it. The peak is emitted once the upstroke ends,
    stamped with the foot time and carrying the pulse amplitude.
    """

    threshold_k = PPG_THRESHOLD_K
    threshold_fraction = PPG_THRESHOLD_FRACTION

    def __init__(self, sample_rate: int = PPG_SAMPLE_RATE, refractory_ms: int = REFRACTORY_MS):
        super().__init__(sample_rate, refractory_ms)
        self.lowpass = StreamingLowPass(sample_rate, PPG_LOWPASS_HZ)
        self._lookback = self._ms_to_samples(PPG_ONSET_LOOKBACK_MS)
        self._max_rise = self._ms_to_samples(PPG_MAX_RISE_MS)
        self._last_smoothed: Optional[float] = None
        self._foot = None  # (timestamp, value)
        self._systolic = 0.0
        self._rise_samples = 0

    def _features(self, values):
        smoothed = self.lowpass.process_block(values)
        previous = smoothed[0] if self._last_smoothed is None else self._last_smoothed
        self._last_smoothed = float(smoothed[-1])
        return np.diff(smoothed, prepend=previous)

    def _step(self, raw, feature, ts):
        if self._foot is None:
            if self._crossed(feature) and self._refractory_elapsed(ts):
                raw_values, raw_ts = self.raw_history.snapshot(self._lookback + 1)
                i = int(np.argmin(raw_values))
                foot_ts = int(raw_ts[i])
                if self._last_peak_ts is not None and foot_ts <= self._last_peak_ts:
                    return None
                self._foot = (foot_ts, float(raw_values[i]))
                self._systolic = float(np.max(raw_values[i:]))
                self._rise_samples = 0
            return None

        self._rise_samples += 1
        self._systolic = max(self._systolic, raw)
        if feature > 0 and self._rise_samples < self._max_rise:
            return None

        foot_ts, foot_value = self._foot
        self._foot = None
        return Peak(timestamp=foot_ts, value=self._systolic - foot_value)

    def _reset_state(self):
        self.lowpass.reset()
        self._last_smoothed = None
        self._foot = None
        self._systolic = 0.0
        self._rise_samples = 0
