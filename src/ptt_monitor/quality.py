"""
Signal quality metrics for the ECG/PPG pair.

The combined score (0-100) weighs peak amplitude consistency, the fraction
of R-peaks that found a PPG onset, and how much of each channel sits on the
ADC rails. The ECG/PPG correlation is reported separately.
"""

import numpy as np

from .config import (
    AMPLITUDE_CV_LIMIT,
    AMPLITUDE_PEAKS,
    CORRELATION_MAX_LAG_MS,
    CORRELATION_MIN_SPAN_MS,
    ENVELOPE_MS,
    REJECTED_PENALTY,
    SATURATION_MARGIN,
    SATURATION_TOLERANCE,
)

AMPLITUDE_WEIGHT = 0.3
MATCH_WEIGHT = 0.4
SATURATION_WEIGHT = 0.3


def amplitude_consistency(amplitudes) -> float:
    """1 - CV / AMPLITUDE_CV_LIMIT over the recent peak amplitudes, in [0, 1]"""
    a = np.asarray(amplitudes, dtype=np.float64)[-AMPLITUDE_PEAKS:]
    if a.size < 3:
        return 0.0
    mean = float(np.mean(a))
    if mean <= 0:
        return 0.0
    cv = float(np.std(a)) / mean
    return float(np.clip(1.0 - cv / AMPLITUDE_CV_LIMIT, 0.0, 1.0))


def saturation_score(values, value_range, sample_rate) -> float:
    """
    Score how much of a channel is clipped at the ADC rails.

    Args:
        values: Recent raw samples.
        value_range: (low, high) accepted ADC range.
        sample_rate: Channel rate in Hz; less than one second of data scores 0.

    Returns:
        1.0 with no clipping, falling to 0.0 at SATURATION_TOLERANCE clipped.
    """
    v = np.asarray(values, dtype=np.float64)
    if v.size == 0 or v.size < sample_rate:
        return 0.0
    low, high = value_range
    margin = SATURATION_MARGIN * (high - low)
    clipped = float(np.mean((v <= low + margin) | (v >= high - margin)))
    return float(np.clip(1.0 - clipped / SATURATION_TOLERANCE, 0.0, 1.0))


def rejection_factor(accepted, rejected) -> float:
    """Multiplier that penalizes out-of-range samples"""
    total = accepted + rejected
    if total == 0:
        return 1.0
    return 1.0 - min(1.0, REJECTED_PENALTY * rejected / total)


def signal_quality_score(amplitude, match_fraction, saturation) -> float:
    score = 100.0 * (AMPLITUDE_WEIGHT * amplitude
                     + MATCH_WEIGHT * match_fraction
                     + SATURATION_WEIGHT * saturation)
    return float(np.clip(score, 0.0, 100.0))


def _moving_average(values, window):
    if window <= 1:
        return values
    return np.convolve(values, np.ones(window) / window, mode='same')


def derivative_correlation(ecg_values, ecg_timestamps, ppg_values, ppg_timestamps,
                           ecg_rate, ppg_rate) -> int:
    """
    Beat-level correlation between the ECG and PPG channels.

    The ECG QRS energy envelope (squared derivative, ENVELOPE_MS moving
    average) is compared with the positive PPG derivative on a common grid at
    the PPG rate. The PPG is allowed to lag by up to CORRELATION_MAX_LAG_MS and
    the best Pearson coefficient is returned scaled to -100..100. Less than
    CORRELATION_MIN_SPAN_MS of overlapping data returns 0.
    """
    ecg = np.asarray(ecg_values, dtype=np.float64)
    ppg = np.asarray(ppg_values, dtype=np.float64)
    if ecg.size < 3 or ppg.size < 3:
        return 0

    ecg_ts = np.asarray(ecg_timestamps, dtype=np.float64)
    ppg_ts = np.asarray(ppg_timestamps, dtype=np.float64)
    start = max(ecg_ts[0], ppg_ts[0])
    end = min(ecg_ts[-1], ppg_ts[-1])
    if end - start < CORRELATION_MIN_SPAN_MS:
        return 0

    window = max(1, int(round(ENVELOPE_MS * ecg_rate / 1000.0)))
    envelope = _moving_average(np.diff(ecg, prepend=ecg[0]) ** 2, window)
    upstroke = np.clip(np.diff(ppg, prepend=ppg[0]), 0.0, None)

    step = 1000.0 / ppg_rate
    grid = np.arange(start, end, step)
    ecg_grid = np.interp(grid, ecg_ts, envelope)
    ppg_grid = np.interp(grid, ppg_ts, upstroke)

    max_lag = min(int(round(CORRELATION_MAX_LAG_MS / step)), grid.size - 3)
    best = None
    for lag in range(0, max_lag + 1):
        a = ecg_grid[:grid.size - lag]
        b = ppg_grid[lag:]
        if np.std(a) == 0 or np.std(b) == 0:
            continue
        r = float(np.corrcoef(a, b)[0, 1])
        if best is None or r > best:
            best = r

    if best is None or not np.isfinite(best):
        return 0
    return int(round(np.clip(best, -1.0, 1.0) * 100))
