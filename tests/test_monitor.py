"""Tests for the blood pressure monitor engine."""

import math
import re

import numpy as np
import pytest
from ptt_monitor.data_types import CalibrationMode, EngineState
from ptt_monitor.monitor import BloodPressureMonitor
from ptt_monitor.synthetic import synthesize_recording


class Feeder:
    """Pushes a synthetic recording into a monitor in time order"""

    def __init__(self, monitor, recording, ecg=True, ppg=True):
        self.monitor = monitor
        self.recording = recording
        self.ecg = ecg
        self.ppg = ppg
        self._i = 0
        self._j = 0

    def until(self, t_ms):
        rec = self.recording
        while self._i < rec.ecg.size and rec.ecg_timestamps[self._i] < t_ms:
            if self.ecg:
                self.monitor.add_ecg_sample(rec.ecg[self._i], int(rec.ecg_timestamps[self._i]))
            self._i += 1
        while self._j < rec.ppg_ir.size and rec.ppg_timestamps[self._j] < t_ms:
            if self.ppg:
                self.monitor.add_ppg_sample(rec.ppg_ir[self._j], rec.ppg_red[self._j],
                                            int(rec.ppg_timestamps[self._j]))
            self._j += 1


def run(monitor, feeder, start_s, end_s):
    """Feed one second at a time, calculating after each; return the last result"""
    result = None
    for second in range(start_s + 1, end_s + 1):
        feeder.until(second * 1000)
        result = monitor.calculate_blood_pressure()
    return result


def numeric_fields(result):
    return [result.systolic, result.diastolic, result.mean_arterial_pressure,
            result.pulse_transit_time, result.pulse_wave_velocity, result.heart_rate_variability,
            result.signal_quality]


@pytest.fixture
def monitor():
    m = BloodPressureMonitor()
    assert m.begin()
    return m


@pytest.fixture
def warmed(monitor):
    """Monitor that has seen 30 s of clean synthetic data"""
    recording = synthesize_recording(duration_s=45.0, seed=7)
    feeder = Feeder(monitor, recording)
    result = run(monitor, feeder, 0, 30)
    return monitor, feeder, result


class TestLifecycle:
    """Test cases for begin / reset / self-test."""

    def test_samples_before_begin_are_dropped(self):
        m = BloodPressureMonitor()
        assert not m.add_ecg_sample(2048.0, 0)
        assert not m.add_ppg_sample(50000.0, 30000.0, 0)
        assert m.get_state() == EngineState.UNINITIALIZED
        assert m.calculate_blood_pressure().valid_reading is False

    def test_self_test(self, monitor):
        assert monitor.self_test()

    def test_state_before_data(self, monitor):
        assert monitor.get_state() == EngineState.UNINITIALIZED

    def test_state_collecting_during_warm_up(self, monitor):
        feeder = Feeder(monitor, synthesize_recording(duration_s=3.0))
        feeder.until(1500)
        assert monitor.get_state() == EngineState.COLLECTING

    def test_reset_keeps_calibration(self, warmed):
        monitor, _, _ = warmed
        assert monitor.add_calibration_point(128.0, 83.0)
        assert monitor.add_calibration_point(126.0, 82.0)
        coefficients = monitor.coefficients
        assert monitor.calibration_status.mode == CalibrationMode.PERSONALIZED

        monitor.reset()

        assert monitor.coefficients == coefficients
        assert monitor.calibration_count == 2
        assert monitor.get_state() == EngineState.UNINITIALIZED
        assert len(monitor.ecg_buffer) == 0
        assert monitor.ecg_peaks.total == 0

        result = monitor.calculate_blood_pressure()
        assert not result.valid_reading
        assert numeric_fields(result) == [0.0] * 7


class TestBloodPressure:
    """End-to-end behaviour on synthetic recordings."""

    def test_ptt_converges(self, warmed):
        """At about 70 BPM with a 180 ms PTT the reported PTT settles within 10 ms."""
        monitor, _, result = warmed
        assert result.valid_reading
        assert result.pulse_transit_time == pytest.approx(180.0, abs=10.0)
        assert result.systolic > result.diastolic
        assert result.needs_calibration
        assert result.signal_quality >= 60
        assert result.correlation_coeff >= 30
        assert result.rhythm_regular
        assert result.timestamp >= 29000

    def test_derived_fields(self, warmed):
        _, _, result = warmed
        expected_map = result.diastolic + (result.systolic - result.diastolic) / 3
        assert result.mean_arterial_pressure == pytest.approx(expected_map)
        expected_pwv = 0.4 * 1.70 / (result.pulse_transit_time / 1000.0)
        assert result.pulse_wave_velocity == pytest.approx(expected_pwv)

    def test_ecg_only_is_invalid(self, monitor):
        recording = synthesize_recording(duration_s=30.0, seed=2)
        feeder = Feeder(monitor, recording, ppg=False)
        result = run(monitor, feeder, 0, 30)

        assert not result.valid_reading
        assert result.signal_quality < 60
        assert all(math.isfinite(v) for v in numeric_fields(result))
        assert result.systolic == 0.0
        assert result.pulse_transit_time == 0.0
        assert monitor.get_state() == EngineState.COLLECTING

    def test_invalid_reading_repeats_last_good_values(self, warmed):
        monitor, feeder, good = warmed
        feeder.ppg = False
        for second in range(31, 43):
            feeder.until(second * 1000)
            result = monitor.calculate_blood_pressure()
            if result.valid_reading:
                good = result

        assert not result.valid_reading
        assert result.systolic == good.systolic
        assert result.diastolic == good.diastolic
        assert result.pulse_transit_time == good.pulse_transit_time
        assert result.timestamp > good.timestamp

    def test_ecg_loss_invalidates_reading(self, warmed):
        """Once the ECG has been silent for more than 2 s, PPG alone cannot keep a reading valid."""
        monitor, feeder, good = warmed
        feeder.ecg = False
        for second in range(31, 43):
            feeder.until(second * 1000)
            result = monitor.calculate_blood_pressure()
            if second < 33:
                if result.valid_reading:
                    good = result
            else:
                assert not result.valid_reading, second
                assert result.correlation_coeff == 0
                assert result.systolic == good.systolic
                assert result.timestamp == second * 1000 - 10

        assert monitor.assess_quality().matched_beats == 0
        assert monitor.get_state() == EngineState.COLLECTING

    def test_calibrated_estimate(self, warmed):
        monitor, feeder, _ = warmed
        assert monitor.add_calibration_point(128.0, 83.0)
        assert monitor.add_calibration_point(126.0, 81.0)
        result = run(monitor, feeder, 30, 32)
        assert result.valid_reading
        assert not result.needs_calibration
        assert result.systolic == pytest.approx(127.0, abs=2.0)
        assert result.diastolic == pytest.approx(82.0, abs=2.0)

    def test_ready_for_measurement(self, warmed):
        monitor, _, _ = warmed
        assert monitor.is_ready_for_measurement()
        assert monitor.get_state() == EngineState.ACTIVE

    def test_overrun_is_counted_and_survived(self, monitor):
        recording = synthesize_recording(duration_s=40.0, seed=4)
        feeder = Feeder(monitor, recording)
        feeder.until(15000)  # more than the 10 s buffers hold
        monitor.calculate_blood_pressure()
        stats = monitor.get_sample_stats()
        assert stats['ecg'].overruns > 0
        assert stats['ppg'].overruns > 0

        result = run(monitor, feeder, 15, 40)
        assert result.valid_reading
        assert result.pulse_transit_time == pytest.approx(180.0, abs=10.0)

    def test_rejected_samples_are_counted(self, monitor):
        assert not monitor.add_ecg_sample(float('nan'), 0)
        assert not monitor.add_ecg_sample(5000.0, 5)
        assert not monitor.add_ppg_sample(50000.0, -1.0, 0)
        assert not monitor.add_ppg_sample(300000.0, 1000.0, 0)
        stats = monitor.get_sample_stats()
        assert stats['ecg'].rejected == 2
        assert stats['ppg'].rejected == 2
        assert stats['ecg'].accepted == 0


class TestCalibration:
    def test_needs_ptt(self, monitor):
        assert not monitor.add_calibration_point(120.0, 80.0)
        assert monitor.calibration_count == 0

    def test_auto_calibration_refused_when_personalized(self, warmed):
        monitor, _, _ = warmed
        assert monitor.perform_auto_calibration()
        monitor.add_calibration_point(128.0, 83.0)
        monitor.add_calibration_point(126.0, 81.0)
        assert not monitor.perform_auto_calibration()

    def test_clear_calibration(self, warmed):
        monitor, _, _ = warmed
        default = monitor.coefficients
        monitor.add_calibration_point(128.0, 83.0)
        monitor.add_calibration_point(126.0, 81.0)
        monitor.clear_calibration()
        assert monitor.calibration_count == 0
        assert monitor.calibration_status.mode == CalibrationMode.DEFAULT
        assert monitor.coefficients == default


class TestDerivedMetrics:
    """Derived metrics degrade to population values without data."""

    def test_without_data(self, monitor):
        stiffness = monitor.estimate_arterial_stiffness()
        # PWV 3.4 m/s at the population PTT for 170 cm
        assert stiffness == pytest.approx(1060 * 3.4 ** 2 / 1000)

        cardiac_output = monitor.calculate_cardiac_output()
        assert math.isfinite(cardiac_output)
        assert 2.0 < cardiac_output < 8.0

        assert re.fullmatch(r"(Excellent|Good|Fair|Poor) \(\d+/100\)", monitor.get_vascular_health_index())

    def test_before_begin(self):
        m = BloodPressureMonitor()
        assert math.isfinite(m.estimate_arterial_stiffness())
        assert math.isfinite(m.calculate_cardiac_output())
        assert m.get_vascular_health_index().endswith("/100)")

    def test_with_data(self, warmed):
        monitor, _, _ = warmed
        metrics = monitor.get_hrv_metrics()
        assert metrics['heart_rate'] == pytest.approx(60000 / 860, rel=0.01)
        assert monitor.estimate_arterial_stiffness() > 0
        # Diastolic just above 80 at the population model puts this in Stage 1
        assert monitor.get_vascular_health_index() in ("Good (80/100)", "Fair (60/100)")


class TestConfiguration:
    def test_sample_rates(self, monitor):
        assert not monitor.set_sample_rates(5, 100)
        assert not monitor.set_sample_rates(200, 5000)
        assert monitor.set_sample_rates(250, 50)
        assert monitor.ecg_buffer.capacity == 2500
        assert monitor.ppg_buffer.capacity == 500

    def test_sample_rates_keep_calibration(self, warmed):
        monitor, _, _ = warmed
        monitor.add_calibration_point(128.0, 83.0)
        assert monitor.set_sample_rates(200, 100)
        assert monitor.calibration_count == 1
        assert monitor.get_state() == EngineState.UNINITIALIZED

    def test_personal_parameters(self, monitor):
        assert not monitor.set_personal_parameters(0, 170.0, True)
        assert not monitor.set_personal_parameters(30, 300.0, True)

        before = monitor.coefficients
        assert monitor.set_personal_parameters(60, 180.0, False)
        assert monitor.profile.height_cm == 180.0
        assert monitor.coefficients.systolic_intercept == pytest.approx(200.0 * 1.15)
        assert monitor.coefficients != before

    def test_adaptive_mode(self, monitor):
        assert monitor.set_adaptive_mode(False)
        assert monitor.ecg_detector.adaptive is False
        assert monitor.ppg_detector.adaptive is False

    def test_thresholds(self, warmed):
        monitor, _, _ = warmed
        assert monitor.ecg_threshold > 0
        assert monitor.ppg_threshold > 0
        monitor.adapt_thresholds()
        assert monitor.ecg_threshold > 0


class TestDiagnostics:
    def test_system_status(self, warmed):
        monitor, _, _ = warmed
        status = monitor.get_system_status()
        assert re.fullmatch(
            r"BP Monitor: Ready \| ECG Peaks: \d+ \| PPG Peaks: \d+ \| Quality: \d+% \| Cal Points: 0/5",
            status)

    def test_diagnostics_dump(self, warmed, capsys):
        monitor, _, _ = warmed
        text = monitor.get_diagnostics()
        assert "State: active" in text
        assert "Calibration Points: 0/5" in text
        monitor.print_diagnostics()
        assert "Blood Pressure Monitor Diagnostics" in capsys.readouterr().out

    def test_quality_report(self, warmed):
        monitor, _, _ = warmed
        report = monitor.assess_quality()
        assert report.matched_beats >= 3
        assert report.match_fraction >= 0.9
        assert monitor.assess_signal_quality() == pytest.approx(report.signal_quality)
        assert monitor.check_rhythm_regularity()
        assert np.isfinite(monitor.calculate_correlation())
