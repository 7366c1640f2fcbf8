from enum import Enum
from typing import NamedTuple

from .config import DEFAULT_AGE, DEFAULT_HEIGHT_CM, DEFAULT_IS_MALE


class Peak(NamedTuple):
    """Detected fiducial point of a waveform"""
    timestamp: int  # ms
    value: float


class BeatMatch(NamedTuple):
    """ECG R-peak paired with the PPG onset of the same heartbeat"""
    ecg_timestamp: int  # ms
    ppg_timestamp: int  # ms
    ptt: float  # ms


class CalibrationPoint(NamedTuple):
    """Reference cuff reading paired with the PTT measured at the time"""
    ptt: float  # ms
    systolic: float  # mmHg
    diastolic: float  # mmHg
    timestamp: int  # ms


class CalibrationCoefficients(NamedTuple):
    """Linear PTT -> BP mapping: bp = slope * ptt + intercept"""
    systolic_slope: float
    systolic_intercept: float
    diastolic_slope: float
    diastolic_intercept: float


class CalibrationMode(Enum):
    DEFAULT = "default"
    PERSONALIZED = "personalized"


class CalibrationStatus(NamedTuple):
    mode: CalibrationMode
    points: int


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    COLLECTING = "collecting"
    ACTIVE = "active"
    DEGRADED = "degraded"


class UserProfile(NamedTuple):
    """Personal parameters used by compensation and path-length formulas"""
    age: int = DEFAULT_AGE
    height_cm: float = DEFAULT_HEIGHT_CM
    is_male: bool = DEFAULT_IS_MALE


class QualityReport(NamedTuple):
    signal_quality: float  # 0-100
    correlation: int  # -100..100
    rhythm_regular: bool
    matched_beats: int
    match_fraction: float


class SampleStats(NamedTuple):
    """Ingestion counters for one channel"""
    accepted: int
    rejected: int
    overruns: int


class BloodPressureData(NamedTuple):
    """Result of one calculate_blood_pressure() call.

    When valid_reading is False the numeric fields hold the previous
    known-good reading, or zero when there has been none.
    """
    systolic: float = 0.0  # mmHg
    diastolic: float = 0.0  # mmHg
    mean_arterial_pressure: float = 0.0  # mmHg
    pulse_transit_time: float = 0.0  # ms
    pulse_wave_velocity: float = 0.0  # m/s
    heart_rate_variability: float = 0.0  # RMSSD, ms
    valid_reading: bool = False
    needs_calibration: bool = True
    timestamp: int = 0  # ms
    signal_quality: float = 0.0  # 0-100
    correlation_coeff: int = 0  # -100..100
    rhythm_regular: bool = False
