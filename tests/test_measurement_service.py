"""Tests for the periodic measurement service."""

import time

from ptt_monitor.data_types import BloodPressureData
from ptt_monitor.measurement_service import MeasurementService


class StubMonitor:
    def __init__(self, valid=False):
        self.calls = 0
        self.valid = valid

    def calculate_blood_pressure(self):
        self.calls += 1
        return BloodPressureData(valid_reading=self.valid, timestamp=self.calls)


class TestMeasurementService:
    def test_measure_once_publishes(self):
        received = []
        service = MeasurementService(StubMonitor(valid=True), on_result=received.append)
        result = service.measure_once()

        assert received == [result]
        assert service.get_result(timeout=0.01) == result
        assert service.measurements == 1
        assert service.valid_measurements == 1

    def test_queue_drops_oldest_when_full(self):
        service = MeasurementService(StubMonitor())
        capacity = service.output_queue.maxsize
        for _ in range(capacity + 5):
            service.measure_once()

        first = service.get_result(timeout=0.01)
        assert first.timestamp == 6
        assert service.output_queue.qsize() == capacity - 1

    def test_empty_queue(self):
        service = MeasurementService(StubMonitor())
        assert service.get_result(timeout=0.01) is None

    def test_thread_runs_periodically(self):
        monitor = StubMonitor()
        service = MeasurementService(monitor, interval_s=0.05)
        service.start()
        time.sleep(0.4)
        service.stop()

        assert monitor.calls >= 2
        assert not service.running

    def test_callback_errors_do_not_stop_loop(self):
        monitor = StubMonitor()

        def failing(_):
            raise RuntimeError("sink failed")

        service = MeasurementService(monitor, interval_s=0.05, on_result=failing)
        service.start()
        time.sleep(0.4)
        service.stop()
        assert monitor.calls >= 2
