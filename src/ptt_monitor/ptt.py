"""
Beat matching between ECG R-peaks and PPG onsets, PTT history and PWV.
"""
from collections import deque
from typing import List, Optional

import numpy as np

from .config import (
    MATCH_GRACE_MS,
    MATCH_HISTORY_SIZE,
    PATH_LENGTH_RATIO,
    PEAK_RING_SIZE,
    PPG_PEAK_LATENCY_MS,
    PTT_AVERAGE_BEATS,
    PTT_MAX_MS,
    PTT_MIN_MS,
    PTT_RING_SIZE,
)
from .data_types import BeatMatch, Peak
from .ring_buffer import RingBuffer


def pulse_wave_velocity(ptt_ms: float, height_cm: float) -> float:
    """PWV in m/s over a heart-to-finger path of PATH_LENGTH_RATIO * height"""
    if ptt_ms <= 0:
        return 0.0
    path_m = PATH_LENGTH_RATIO * height_cm / 100.0
    return path_m / (ptt_ms / 1000.0)


class BeatMatcher:
    """
    Pairs each ECG R-peak with the PPG onset of the same beat.

    An R-peak is matched to the earliest unused onset within
    [R + PTT_MIN_MS, R + PTT_MAX_MS]. A peak without a match is resolved as
    unmatched once PPG data has advanced PPG_PEAK_LATENCY_MS past its window,
    or, when the PPG stream is absent, once ECG data is MATCH_GRACE_MS past it.
    """

    def __init__(self):
        self.ptt_history = RingBuffer(PTT_RING_SIZE)  # value=ptt, ts=R-peak time
        self.outcomes = RingBuffer(MATCH_HISTORY_SIZE)  # 1.0 matched, 0.0 unmatched
        self._pending = deque(maxlen=PEAK_RING_SIZE)
        self._onsets = deque(maxlen=PEAK_RING_SIZE)

    def match(self, ecg_peaks: List[Peak], ppg_peaks: List[Peak],
              ecg_latest_ts: Optional[int], ppg_latest_ts: Optional[int]) -> List[BeatMatch]:
        """
        Feed newly detected peaks and resolve whatever can be resolved.

        Args:
            ecg_peaks: New R-peaks, oldest first.
            ppg_peaks: New PPG onsets, oldest first.
            ecg_latest_ts: Timestamp of the newest ECG sample seen.
            ppg_latest_ts: Timestamp of the newest PPG sample seen.

        Returns:
            Beats matched during this call.
        """
        self._pending.extend(p.timestamp for p in ecg_peaks)
        self._onsets.extend(p.timestamp for p in ppg_peaks)

        matches = []
        while self._pending:
            ecg_ts = self._pending[0]
            low = ecg_ts + PTT_MIN_MS
            high = ecg_ts + PTT_MAX_MS

            # Pending peaks are chronological, so onsets before this window
            # cannot belong to any later peak either
            while self._onsets and self._onsets[0] < low:
                self._onsets.popleft()

            if self._onsets and self._onsets[0] <= high:
                onset_ts = self._onsets.popleft()
                self._pending.popleft()
                beat = BeatMatch(ecg_ts, onset_ts, float(onset_ts - ecg_ts))
                self.ptt_history.append(beat.ptt, ecg_ts)
                self.outcomes.append(1.0, ecg_ts)
                matches.append(beat)
                continue

            ppg_passed = ppg_latest_ts is not None and ppg_latest_ts >= high + PPG_PEAK_LATENCY_MS
            ppg_absent = ppg_latest_ts is None or ppg_latest_ts < high
            ecg_passed = ecg_latest_ts is not None and ecg_latest_ts - MATCH_GRACE_MS >= high
            if ppg_passed or (ppg_absent and ecg_passed):
                self._pending.popleft()
                self.outcomes.append(0.0, ecg_ts)
                continue

            # Onset may still arrive
            break

        return matches

    def rolling_ptt(self, beats: int = PTT_AVERAGE_BEATS) -> Optional[float]:
        """Mean PTT of the last `beats` matched beats, None before the first match"""
        values, _ = self.ptt_history.snapshot(beats)
        if values.size == 0:
            return None
        return float(np.mean(values))

    def matched_in_window(self, since_ts: int) -> int:
        """Number of matched beats whose R-peak is at or after since_ts"""
        _, timestamps = self.ptt_history.snapshot()
        return int(np.count_nonzero(timestamps >= since_ts))

    def match_fraction(self) -> float:
        """Fraction of recently resolved R-peaks that found a PPG onset"""
        outcomes, _ = self.outcomes.snapshot()
        if outcomes.size == 0:
            return 0.0
        return float(np.mean(outcomes))

    @property
    def matched_total(self) -> int:
        return self.ptt_history.total

    def reset(self):
        self.ptt_history.clear()
        self.outcomes.clear()
        self._pending.clear()
        self._onsets.clear()
