import logging
import queue
import threading
import time
from typing import Callable, Optional

from .config import MEASUREMENT_INTERVAL_S, RESULT_QUEUE_SIZE
from .data_types import BloodPressureData

logger = logging.getLogger(__name__)


class MeasurementService:
    """Periodically runs the blood pressure calculation in its own thread"""

    def __init__(self, monitor, interval_s=MEASUREMENT_INTERVAL_S,
                 on_result: Optional[Callable[[BloodPressureData], None]] = None):
        self.monitor = monitor
        self.interval_s = interval_s
        self.on_result = on_result
        self.running = False
        self.thread = None

        self.output_queue = queue.Queue(maxsize=RESULT_QUEUE_SIZE)
        self.measurements = 0
        self.valid_measurements = 0

    def start(self):
        """Start the measurement loop"""
        if not self.running:
            self.running = True
            self.thread = threading.Thread(target=self._measurement_loop, daemon=True)
            self.thread.start()
            logger.info(f"Measurement service started (every {self.interval_s:.1f}s)")

    def stop(self):
        """Stop the measurement loop"""
        self.running = False
        if self.thread:
            self.thread.join(timeout=max(1.0, self.interval_s))
        self.output_queue = queue.Queue(maxsize=RESULT_QUEUE_SIZE)
        logger.info("Measurement service stopped")

    def get_result(self, timeout: float = 0.1) -> Optional[BloodPressureData]:
        """Get next measurement from queue"""
        try:
            return self.output_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def measure_once(self) -> BloodPressureData:
        """Run one calculation and publish the result"""
        result = self.monitor.calculate_blood_pressure()
        self.measurements += 1
        if result.valid_reading:
            self.valid_measurements += 1

        # Non-blocking: drop oldest if full to keep latest data
        try:
            self.output_queue.put_nowait(result)
        except queue.Full:
            try:
                self.output_queue.get_nowait()
                self.output_queue.put_nowait(result)
            except queue.Empty:
                pass

        if self.on_result:
            self.on_result(result)
        return result

    def _measurement_loop(self):
        next_run = time.monotonic() + self.interval_s
        while self.running:
            try:
                remaining = next_run - time.monotonic()
                if remaining > 0:
                    time.sleep(min(remaining, 0.1))
                    continue
                next_run += self.interval_s
                self.measure_once()
            except Exception as e:
                logger.error(f"Measurement error: {e}", exc_info=True)
                time.sleep(0.01)
