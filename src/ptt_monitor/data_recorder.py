import csv
import logging
import os
from datetime import datetime

from .config import RECORDINGS_DIR
from .data_types import BloodPressureData

logger = logging.getLogger(__name__)

CSV_HEADER = [
    'Timestamp_ms',
    'Systolic_mmHg',
    'Diastolic_mmHg',
    'MAP_mmHg',
    'PTT_ms',
    'PWV_m_s',
    'HRV_RMSSD_ms',
    'Valid',
    'Needs_Calibration',
    'Signal_Quality',
    'Correlation',
    'Rhythm_Regular',
]


def init_csv(directory=RECORDINGS_DIR):
    """Create a new timestamped CSV file with the header row"""
    os.makedirs(directory, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    csv_filename = os.path.join(directory, f"bp_data_{timestamp}.csv")

    csv_file = open(csv_filename, 'w', newline='')
    csv_writer = csv.writer(csv_file, delimiter=';')
    csv_writer.writerow(CSV_HEADER)
    csv_file.flush()

    print(f"CSV file created: {csv_filename}")
    return csv_filename, csv_file, csv_writer


def format_row(data: BloodPressureData):
    return [
        data.timestamp,
        f"{data.systolic:.1f}",
        f"{data.diastolic:.1f}",
        f"{data.mean_arterial_pressure:.1f}",
        f"{data.pulse_transit_time:.1f}",
        f"{data.pulse_wave_velocity:.2f}",
        f"{data.heart_rate_variability:.1f}",
        int(data.valid_reading),
        int(data.needs_calibration),
        f"{data.signal_quality:.1f}",
        data.correlation_coeff,
        int(data.rhythm_regular),
    ]


class DataRecorder:
    def __init__(self, directory=RECORDINGS_DIR):
        self.directory = directory
        self.csv_filename = None
        self.csv_file = None
        self.csv_writer = None
        self.is_recording = False  # Start recording OFF by default
        self.rows_written = 0

    def start_recording(self):
        """Start or resume recording"""
        if not self.csv_file:
            self.csv_filename, self.csv_file, self.csv_writer = init_csv(self.directory)
        self.is_recording = True

    def stop_recording(self):
        """Stop recording"""
        self.is_recording = False

    def write_row(self, data: BloodPressureData):
        """Write a row if recording is active"""
        if self.is_recording and self.csv_writer and self.csv_file:
            self.csv_writer.writerow(format_row(data))
            self.csv_file.flush()
            self.rows_written += 1

    def close(self):
        """Close the CSV file"""
        if self.csv_file:
            self.csv_file.close()
            self.csv_file = None
            self.csv_writer = None
            self.is_recording = False
            print(f"CSV file saved: {self.csv_filename} ({self.rows_written} rows)")
