"""
Synthetic ECG and PPG recordings with a known pulse transit time.

Used by the self-test and by the test suite. Beat times fall on a 10 ms grid
so that R-peaks and PPG feet land exactly on samples at the default rates.
"""
from typing import NamedTuple

import numpy as np

from .config import ECG_SAMPLE_RATE, PPG_SAMPLE_RATE

FIRST_BEAT_MS = 500

# ECG waveform (ADC counts)
ECG_BASELINE = 2048.0
R_AMPLITUDE = 1000.0
R_WIDTH_MS = 8.0
S_AMPLITUDE = -150.0
S_OFFSET_MS = 25.0
T_AMPLITUDE = 250.0
T_OFFSET_MS = 250.0
T_WIDTH_MS = 40.0
ECG_NOISE = 5.0
ECG_WANDER = 30.0  # 0.25 Hz baseline wander

# PPG waveform (ADC counts)
PPG_BASELINE = 50000.0
PULSE_AMPLITUDE = 5000.0
RISE_MS = 120.0
DECAY_MS = 300.0
PPG_NOISE = 2.0
RED_RATIO = 0.6


class SyntheticRecording(NamedTuple):
    ecg: np.ndarray
    ecg_timestamps: np.ndarray
    ppg_ir: np.ndarray
    ppg_red: np.ndarray
    ppg_timestamps: np.ndarray
    r_peak_times: np.ndarray
    onset_times: np.ndarray


def _timestamps(duration_ms, sample_rate):
    n = int(duration_ms * sample_rate / 1000)
    return np.round(np.arange(n) * 1000.0 / sample_rate).astype(np.int64)


def _gaussian(t, center, width):
    return np.exp(-0.5 * ((t - center) / width) ** 2)


def synthesize_recording(duration_s=30.0, rr_ms=860, ptt_ms=180,
                         ecg_rate=ECG_SAMPLE_RATE, ppg_rate=PPG_SAMPLE_RATE,
                         noise=True, seed=0) -> SyntheticRecording:
    """
    Generate a recording with a regular rhythm.

    Args:
        duration_s: Length of the recording.
        rr_ms: Beat-to-beat interval (860 ms is about 70 BPM).
        ptt_ms: Delay from each R-peak to the foot of its PPG pulse.
        ecg_rate: ECG sample rate in Hz.
        ppg_rate: PPG sample rate in Hz.
        noise: Add white noise and ECG baseline wander.
        seed: Seed for the noise generator.
    """
    rng = np.random.default_rng(seed)
    duration_ms = duration_s * 1000.0

    r_peaks = np.arange(FIRST_BEAT_MS, duration_ms, rr_ms).astype(np.int64)
    onsets = r_peaks + int(ptt_ms)

    # ECG: R and S spikes plus a T wave per beat
    ecg_ts = _timestamps(duration_ms, ecg_rate)
    ecg = np.full(ecg_ts.size, ECG_BASELINE)
    for r in r_peaks:
        ecg += R_AMPLITUDE * _gaussian(ecg_ts, r, R_WIDTH_MS)
        ecg += S_AMPLITUDE * _gaussian(ecg_ts, r + S_OFFSET_MS, R_WIDTH_MS * 0.75)
        ecg += T_AMPLITUDE * _gaussian(ecg_ts, r + T_OFFSET_MS, T_WIDTH_MS)

    # PPG: half-cosine upstroke from the foot, exponential run-off afterwards
    ppg_ts = _timestamps(duration_ms, ppg_rate)
    pulse = np.zeros(ppg_ts.size)
    for foot in onsets:
        t = (ppg_ts - foot).astype(np.float64)
        rising = (t >= 0) & (t < RISE_MS)
        pulse[rising] += PULSE_AMPLITUDE * 0.5 * (1.0 - np.cos(np.pi * t[rising] / RISE_MS))
        falling = t >= RISE_MS
        pulse[falling] += PULSE_AMPLITUDE * np.exp(-(t[falling] - RISE_MS) / DECAY_MS)

    if noise:
        ecg += rng.normal(0.0, ECG_NOISE, ecg.size)
        ecg += ECG_WANDER * np.sin(2 * np.pi * 0.25 * ecg_ts / 1000.0)
        ir = PPG_BASELINE + pulse + rng.normal(0.0, PPG_NOISE, pulse.size)
        red = RED_RATIO * (PPG_BASELINE + pulse) + rng.normal(0.0, PPG_NOISE, pulse.size)
    else:
        ir = PPG_BASELINE + pulse
        red = RED_RATIO * ir

    return SyntheticRecording(
        ecg=ecg,
        ecg_timestamps=ecg_ts,
        ppg_ir=ir,
        ppg_red=red,
        ppg_timestamps=ppg_ts,
        r_peak_times=r_peaks,
        onset_times=onsets,
    )
