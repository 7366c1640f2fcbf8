import logging
import threading
import time
from typing import NamedTuple, Optional, Union

import serial

from .config import BAUD_RATE

logger = logging.getLogger(__name__)


class EcgSample(NamedTuple):
    value: float
    timestamp: int  # ms


class PpgSample(NamedTuple):
    ir: float
    red: float
    timestamp: int  # ms


def parse_sample_line(line: str) -> Optional[Union[EcgSample, PpgSample]]:
    """
    Parse one text line from the sensor board.

    Formats:
        E,<value>,<timestamp_ms>
        P,<ir>,<red>,<timestamp_ms>

    Returns:
        EcgSample or PpgSample, or None for anything else.
    """
    parts = line.strip().split(',')
    try:
        if parts[0] == 'E' and len(parts) == 3:
            return EcgSample(float(parts[1]), int(parts[2]))
        if parts[0] == 'P' and len(parts) == 4:
            return PpgSample(float(parts[1]), float(parts[2]), int(parts[3]))
    except ValueError:
        return None
    return None


class SerialSampleReader:
    """Reads ECG/PPG sample lines from a serial port and feeds the monitor"""

    def __init__(self, port, baud_rate=BAUD_RATE, max_connection_attempts=5):
        self.port = port
        self.baud_rate = baud_rate
        self.max_connection_attempts = max_connection_attempts
        self.connection_attempts = 0
        self.ser = None
        self.running = False
        self.thread = None
        self.monitor = None

        self.ecg_samples = 0
        self.ppg_samples = 0
        self.invalid_lines = 0

    def connect(self):
        if self.connection_attempts >= self.max_connection_attempts:
            return False

        for attempt in range(self.max_connection_attempts - self.connection_attempts):
            try:
                if self.ser:
                    self.ser.close()
                print(f"[SERIAL] Connecting to {self.port}... (attempt {self.connection_attempts + attempt + 1})")
                self.ser = serial.Serial(self.port, self.baud_rate, timeout=0.1)
                time.sleep(2)

                self.ser.reset_input_buffer()
                self.ser.reset_output_buffer()

                print(f"[SERIAL] Connected on {self.port}")
                self.connection_attempts = 0  # Reset on success
                return True
            except serial.SerialException as e:
                logger.warning(f"Connection attempt {self.connection_attempts + attempt + 1} failed: {e}")
                time.sleep(1)

        self.connection_attempts = self.max_connection_attempts
        logger.error(f"Giving up on {self.port} after {self.max_connection_attempts} attempts")
        return False

    def handle_line(self, line: str) -> bool:
        """Parse a line and push the sample into the monitor"""
        sample = parse_sample_line(line)
        if sample is None:
            self.invalid_lines += 1
            return False

        if isinstance(sample, EcgSample):
            self.ecg_samples += 1
            if self.monitor:
                self.monitor.add_ecg_sample(sample.value, sample.timestamp)
        else:
            self.ppg_samples += 1
            if self.monitor:
                self.monitor.add_ppg_sample(sample.ir, sample.red, sample.timestamp)
        return True

    def read_data(self):
        logger.info("Starting ECG/PPG sample reader")
        last_log_time = time.time()

        while self.running:
            try:
                if not self.ser or not self.ser.is_open:
                    if self.connection_attempts >= self.max_connection_attempts:
                        time.sleep(1)  # Just wait, don't try to reconnect
                        continue
                    if not self.connect():
                        time.sleep(1)
                        continue

                if self.ser.in_waiting > 0:
                    line = self.ser.readline().decode('utf-8', errors='ignore')
                    if line:
                        self.handle_line(line)
                else:
                    time.sleep(0.001)

                # Periodic logging every 10 seconds
                current_time = time.time()
                if current_time - last_log_time > 10:
                    logger.info(f"Serial stats - ECG samples: {self.ecg_samples}, "
                                f"PPG samples: {self.ppg_samples}, Invalid lines: {self.invalid_lines}")
                    last_log_time = current_time

            except serial.SerialException as e:
                logger.error(f"Serial read error: {e}")
                if self.ser:
                    self.ser.close()
                time.sleep(1)
            except Exception as e:
                logger.error(f"Sample reader error: {e}", exc_info=True)
                time.sleep(0.01)

    def start(self, monitor):
        self.monitor = monitor
        self.running = True
        self.thread = threading.Thread(target=self.read_data, daemon=True)
        self.thread.start()

    def stop(self):
        self.running = False
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=1.0)
        if self.ser:
            self.ser.close()
        self.ecg_samples = 0
        self.ppg_samples = 0
        self.invalid_lines = 0
