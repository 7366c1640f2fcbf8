"""PTT Blood Pressure Monitor Package

Estimates blood pressure from an ECG and a PPG stream using pulse transit
time: adaptive R-peak and PPG onset detection, beat matching, calibration
against reference cuff readings, signal quality and HRV assessment.
"""

__version__ = "0.1.0"

from .config import *
from .data_types import BloodPressureData, EngineState, UserProfile
from .monitor import BloodPressureMonitor
from .measurement_service import MeasurementService
from .serial_readers import SerialSampleReader
from .data_recorder import DataRecorder

__all__ = [
    "BloodPressureData",
    "EngineState",
    "UserProfile",
    "BloodPressureMonitor",
    "MeasurementService",
    "SerialSampleReader",
    "DataRecorder",
]
