"""
Time-domain heart rate variability from R-R intervals (ms, chronological).

All functions return 0 / False when there are too few intervals; callers
treat a zero as "not available".
"""
import numpy as np

from .config import RHYTHM_CV_THRESHOLD, RHYTHM_INTERVALS, RHYTHM_MIN_INTERVALS


def rmssd(rr_intervals) -> float:
    """Root mean square of successive RR differences"""
    rr = np.asarray(rr_intervals, dtype=np.float64)
    if rr.size < 2:
        return 0.0
    return float(np.sqrt(np.mean(np.diff(rr) ** 2)))


def sdnn(rr_intervals) -> float:
    """Standard deviation of RR intervals (sample std, ddof=1)"""
    rr = np.asarray(rr_intervals, dtype=np.float64)
    if rr.size < 2:
        return 0.0
    return float(np.std(rr, ddof=1))


def pnn50(rr_intervals) -> float:
    """Percentage of successive differences larger than 50 ms"""
    rr = np.asarray(rr_intervals, dtype=np.float64)
    if rr.size < 2:
        return 0.0
    return float(100.0 * np.mean(np.abs(np.diff(rr)) > 50.0))


def mean_heart_rate(rr_intervals) -> float:
    """Mean heart rate in BPM"""
    rr = np.asarray(rr_intervals, dtype=np.float64)
    if rr.size == 0:
        return 0.0
    mean_rr = float(np.mean(rr))
    return 60000.0 / mean_rr if mean_rr > 0 else 0.0


def rhythm_is_regular(rr_intervals) -> bool:
    # CV of the most recent intervals against a fixed threshold
    rr = np.asarray(rr_intervals, dtype=np.float64)[-RHYTHM_INTERVALS:]
    if rr.size < RHYTHM_MIN_INTERVALS:
        return False
    mean_rr = float(np.mean(rr))
    if mean_rr <= 0:
        return False
    return float(np.std(rr)) / mean_rr <= RHYTHM_CV_THRESHOLD
