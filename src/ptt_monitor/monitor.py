"""
Blood pressure monitor engine.

Samples are written by a producer (serial reader or driver callback) into
fixed-capacity ring buffers. Everything else runs in the consumer: each
calculation first runs the peak detectors over the samples written since the
previous one, matches R-peaks to PPG onsets, then assesses quality and maps
the rolling PTT to blood pressure through the active calibration.
"""
import logging
from typing import Dict, Optional, Tuple

import numpy as np

from .bp_analysis import (
    calculate_mean_arterial_pressure,
    calculate_pulse_pressure,
    interpret_bp_reading,
)
from .calibration import CalibrationEngine
from .config import (
    AGE_RANGE,
    BLOOD_DENSITY,
    BUFFER_SECONDS,
    DIASTOLIC_VALID_RANGE,
    ECG_SAMPLE_RATE,
    ECG_VALUE_RANGE,
    HEIGHT_RANGE_CM,
    HRV_GOOD_THRESHOLD,
    HRV_MODERATE_THRESHOLD,
    MATCH_WINDOW_MS,
    MAX_CALIBRATION_POINTS,
    MAX_SAMPLE_RATE,
    MIN_CORRELATION,
    MIN_MATCHED_BEATS,
    MIN_SAMPLE_RATE,
    MIN_SIGNAL_QUALITY,
    PEAK_RING_SIZE,
    POPULATION_HEART_RATE,
    POPULATION_PTT_MS,
    PPG_SAMPLE_RATE,
    PPG_VALUE_RANGE,
    PTT_MAX_MS,
    PTT_MIN_MS,
    PWV_GOOD_THRESHOLD,
    PWV_MODERATE_THRESHOLD,
    RR_AMPLITUDE_HISTORY,
    RR_AMPLITUDE_RANGE,
    RR_MAX_MS,
    RR_MIN_MS,
    RR_RING_SIZE,
    STALE_CHANNEL_MS,
    STROKE_VOLUME_CONSTANT,
    SYSTOLIC_VALID_RANGE,
)
from .data_types import (
    BloodPressureData,
    CalibrationCoefficients,
    CalibrationStatus,
    EngineState,
    Peak,
    QualityReport,
    SampleStats,
    UserProfile,
)
from .hrv import mean_heart_rate, pnn50, rhythm_is_regular, rmssd, sdnn
from .peak_detection import EcgPeakDetector, PpgOnsetDetector
from .ptt import BeatMatcher, pulse_wave_velocity
from .quality import (
    amplitude_consistency,
    derivative_correlation,
    rejection_factor,
    saturation_score,
    signal_quality_score,
)
from .ring_buffer import RingBuffer, SampleBuffer
from .synthetic import synthesize_recording

logger = logging.getLogger(__name__)

# Vascular health index penalties
CATEGORY_PENALTY = {
    "Normal": 0,
    "Elevated": 10,
    "Stage 1 Hypertension": 20,
    "Stage 2 Hypertension": 35,
    "Hypertensive Crisis": 50,
}
HEALTH_LABELS = ((85, "Excellent"), (70, "Good"), (50, "Fair"), (0, "Poor"))


class BloodPressureMonitor:
    """PTT based blood pressure estimation from an ECG and a PPG stream"""

    def __init__(self, ecg_rate: int = ECG_SAMPLE_RATE, ppg_rate: int = PPG_SAMPLE_RATE,
                 profile: UserProfile = UserProfile()):
        self.ecg_rate = ecg_rate
        self.ppg_rate = ppg_rate
        self.profile = profile
        self.adaptive = True
        self.initialized = False

        self.calibration = CalibrationEngine(profile)

        # Allocated by begin()
        self.ecg_buffer: Optional[SampleBuffer] = None
        self.ppg_buffer: Optional[SampleBuffer] = None
        self.ecg_detector: Optional[EcgPeakDetector] = None
        self.ppg_detector: Optional[PpgOnsetDetector] = None
        self.ecg_peaks: Optional[RingBuffer] = None
        self.ppg_peaks: Optional[RingBuffer] = None
        self.rr_intervals: Optional[RingBuffer] = None
        self.matcher: Optional[BeatMatcher] = None
        self._r_amplitudes: Optional[RingBuffer] = None

        self._red_rejected = 0
        self._last_good: Optional[BloodPressureData] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin(self) -> bool:
        """Allocate buffers, install the population calibration and self-test"""
        self._allocate()
        self.initialized = True
        self.perform_auto_calibration()

        if not self.self_test():
            logger.error("Blood pressure monitor self-test failed")
            return False

        logger.info(f"Blood pressure monitor initialized (ECG {self.ecg_rate}Hz, PPG {self.ppg_rate}Hz)")
        if self.calibration.needs_calibration:
            logger.info("Calibration with reference BP measurements is needed")
        return True

    def _allocate(self):
        self.ecg_buffer = SampleBuffer(int(BUFFER_SECONDS * self.ecg_rate), ECG_VALUE_RANGE)
        self.ppg_buffer = SampleBuffer(int(BUFFER_SECONDS * self.ppg_rate), PPG_VALUE_RANGE)
        self.ecg_detector = EcgPeakDetector(self.ecg_rate)
        self.ppg_detector = PpgOnsetDetector(self.ppg_rate)
        self.ecg_detector.adaptive = self.adaptive
        self.ppg_detector.adaptive = self.adaptive
        self.ecg_peaks = RingBuffer(PEAK_RING_SIZE)
        self.ppg_peaks = RingBuffer(PEAK_RING_SIZE)
        self.rr_intervals = RingBuffer(RR_RING_SIZE)
        self._r_amplitudes = RingBuffer(RR_AMPLITUDE_HISTORY)
        self.matcher = BeatMatcher()
        self._reset_consumer_state()

    def _reset_consumer_state(self):
        self._ecg_seq = 0
        self._ppg_seq = 0
        self._ecg_overruns = 0
        self._ppg_overruns = 0
        self._red_rejected = 0
        self._ecg_latest_ts: Optional[int] = None
        self._ppg_latest_ts: Optional[int] = None
        self._last_r: Optional[Peak] = None
        self._last_r_ok = False
        self._last_good = None

    def reset(self):
        """Clear all signal state; calibration is kept"""
        if not self.initialized:
            return
        self.ecg_buffer.clear()
        self.ppg_buffer.clear()
        self.ecg_detector.reset()
        self.ppg_detector.reset()
        self.ecg_peaks.clear()
        self.ppg_peaks.clear()
        self.rr_intervals.clear()
        self._r_amplitudes.clear()
        self.matcher.reset()
        self._reset_consumer_state()
        logger.info("Blood pressure monitor reset")

    # ------------------------------------------------------------------
    # Sample ingestion (producer side, never logs or raises)
    # ------------------------------------------------------------------

    def add_ecg_sample(self, value: float, timestamp: int) -> bool:
        if self.ecg_buffer is None:
            return False
        return self.ecg_buffer.write(value, timestamp)

    def add_ppg_sample(self, ir: float, red: float, timestamp: int) -> bool:
        """Store a PPG sample; IR drives detection, red is range-checked only"""
        if self.ppg_buffer is None:
            return False
        low, high = PPG_VALUE_RANGE
        if not low <= red <= high:
            self._red_rejected += 1
            return False
        return self.ppg_buffer.write(ir, timestamp)

    # ------------------------------------------------------------------
    # Consumer-side processing
    # ------------------------------------------------------------------

    def _process_pending(self):
        """Run the detectors over samples written since the previous call"""
        if not self.initialized:
            return

        values, timestamps, self._ecg_seq, lost = self.ecg_buffer.since(self._ecg_seq)
        if lost:
            self._ecg_overruns += lost
            logger.warning(f"ECG buffer overrun: {lost} samples lost before processing")
            self.ecg_detector.reset(keep_threshold=True)
            self._last_r = None
        new_ecg = self.ecg_detector.process(values, timestamps)
        if timestamps.size:
            self._ecg_latest_ts = int(timestamps[-1])
        for peak in new_ecg:
            self._record_r_peak(peak)

        values, timestamps, self._ppg_seq, lost = self.ppg_buffer.since(self._ppg_seq)
        if lost:
            self._ppg_overruns += lost
            logger.warning(f"PPG buffer overrun: {lost} samples lost before processing")
            self.ppg_detector.reset(keep_threshold=True)
        new_ppg = self.ppg_detector.process(values, timestamps)
        if timestamps.size:
            self._ppg_latest_ts = int(timestamps[-1])
        for peak in new_ppg:
            self.ppg_peaks.append(peak.value, peak.timestamp)

        self.matcher.match(new_ecg, new_ppg, self._ecg_latest_ts, self._ppg_latest_ts)

    def _record_r_peak(self, peak: Peak):
        self.ecg_peaks.append(peak.value, peak.timestamp)

        # An RR interval counts only when both flanking peaks look like real R waves
        amplitudes, _ = self._r_amplitudes.snapshot()
        amplitude_ok = True
        if amplitudes.size:
            median = float(np.median(amplitudes))
            low, high = RR_AMPLITUDE_RANGE
            amplitude_ok = low * median <= peak.value <= high * median

        if self._last_r is not None and self._last_r_ok and amplitude_ok:
            rr = peak.timestamp - self._last_r.timestamp
            if RR_MIN_MS <= rr <= RR_MAX_MS:
                self.rr_intervals.append(rr, peak.timestamp)

        self._r_amplitudes.append(peak.value, peak.timestamp)
        self._last_r = peak
        self._last_r_ok = amplitude_ok

    def _latest_timestamp(self) -> int:
        stamps = [ts for ts in (self._ecg_latest_ts, self._ppg_latest_ts) if ts is not None]
        return max(stamps) if stamps else 0

    def _stale_channels(self) -> Tuple[bool, bool]:
        """(ecg, ppg) flags: no data yet, or trailing the other channel too far"""
        newest = self._latest_timestamp()
        return tuple(ts is None or newest - ts > STALE_CHANNEL_MS
                     for ts in (self._ecg_latest_ts, self._ppg_latest_ts))

    def _rr_values(self) -> np.ndarray:
        if self.rr_intervals is None:
            return np.zeros(0)
        values, _ = self.rr_intervals.snapshot()
        return values

    # ------------------------------------------------------------------
    # Quality
    # ------------------------------------------------------------------

    def assess_quality(self) -> QualityReport:
        """Process pending samples and compute a fresh quality report"""
        if not self.initialized:
            return QualityReport(0.0, 0, False, 0, 0.0)
        self._process_pending()

        ecg_stale, ppg_stale = self._stale_channels()
        ecg_amplitudes, _ = self.ecg_peaks.snapshot()
        ppg_amplitudes, _ = self.ppg_peaks.snapshot()
        ecg_values, ecg_ts = self.ecg_buffer.snapshot()
        ppg_values, ppg_ts = self.ppg_buffer.snapshot()

        # A lost channel contributes nothing
        ecg_amplitude = 0.0 if ecg_stale else amplitude_consistency(ecg_amplitudes)
        ppg_amplitude = 0.0 if ppg_stale else amplitude_consistency(ppg_amplitudes)
        amplitude = (ecg_amplitude + ppg_amplitude) / 2
        ecg_saturation = 0.0 if ecg_stale else saturation_score(ecg_values, ECG_VALUE_RANGE, self.ecg_rate)
        ppg_saturation = 0.0 if ppg_stale else saturation_score(ppg_values, PPG_VALUE_RANGE, self.ppg_rate)
        saturation = (ecg_saturation + ppg_saturation) / 2
        accepted = self.ecg_buffer.total + self.ppg_buffer.total
        rejected = self.ecg_buffer.rejected + self.ppg_buffer.rejected + self._red_rejected
        saturation *= rejection_factor(accepted, rejected)

        match_fraction = self.matcher.match_fraction()
        score = signal_quality_score(amplitude, match_fraction, saturation)
        correlation = 0
        if not (ecg_stale or ppg_stale):
            correlation = derivative_correlation(ecg_values, ecg_ts, ppg_values, ppg_ts,
                                                 self.ecg_rate, self.ppg_rate)
        matched = self.matcher.matched_in_window(self._latest_timestamp() - MATCH_WINDOW_MS)

        return QualityReport(
            signal_quality=score,
            correlation=correlation,
            rhythm_regular=rhythm_is_regular(self._rr_values()),
            matched_beats=matched,
            match_fraction=match_fraction,
        )

    def assess_signal_quality(self) -> float:
        return self.assess_quality().signal_quality

    def calculate_correlation(self) -> int:
        return self.assess_quality().correlation

    def check_rhythm_regularity(self) -> bool:
        return rhythm_is_regular(self._rr_values())

    def is_ready_for_measurement(self) -> bool:
        report = self.assess_quality()
        return report.matched_beats >= MIN_MATCHED_BEATS and report.signal_quality >= MIN_SIGNAL_QUALITY

    def get_state(self) -> EngineState:
        if not self.initialized or (len(self.ecg_buffer) == 0 and len(self.ppg_buffer) == 0):
            return EngineState.UNINITIALIZED
        report = self.assess_quality()
        if report.matched_beats < MIN_MATCHED_BEATS:
            return EngineState.COLLECTING
        if report.signal_quality >= MIN_SIGNAL_QUALITY and report.correlation >= MIN_CORRELATION:
            return EngineState.ACTIVE
        return EngineState.DEGRADED

    # ------------------------------------------------------------------
    # Blood pressure
    # ------------------------------------------------------------------

    def calculate_blood_pressure(self) -> BloodPressureData:
        """
        Produce a blood pressure estimate from the data received so far.

        When the reading is not valid, the numeric fields repeat the last
        valid reading (zeros if there was none) while the quality fields and
        timestamp are always current.
        """
        if not self.initialized:
            return BloodPressureData()

        report = self.assess_quality()
        timestamp = self._latest_timestamp()
        ptt = self.matcher.rolling_ptt()

        if ptt is not None and PTT_MIN_MS <= ptt <= PTT_MAX_MS and not any(self._stale_channels()):
            systolic, diastolic = self.calibration.estimate(ptt)
            sys_low, sys_high = SYSTOLIC_VALID_RANGE
            dia_low, dia_high = DIASTOLIC_VALID_RANGE
            valid = (report.signal_quality >= MIN_SIGNAL_QUALITY
                     and report.correlation >= MIN_CORRELATION
                     and report.matched_beats >= MIN_MATCHED_BEATS
                     and sys_low < systolic < sys_high
                     and dia_low < diastolic < dia_high
                     and systolic > diastolic)
            if valid:
                result = BloodPressureData(
                    systolic=systolic,
                    diastolic=diastolic,
                    mean_arterial_pressure=calculate_mean_arterial_pressure(systolic, diastolic),
                    pulse_transit_time=ptt,
                    pulse_wave_velocity=pulse_wave_velocity(ptt, self.profile.height_cm),
                    heart_rate_variability=rmssd(self._rr_values()),
                    valid_reading=True,
                    needs_calibration=self.calibration.needs_calibration,
                    timestamp=timestamp,
                    signal_quality=report.signal_quality,
                    correlation_coeff=report.correlation,
                    rhythm_regular=report.rhythm_regular,
                )
                self._last_good = result
                return result

        previous = self._last_good if self._last_good is not None else BloodPressureData()
        return previous._replace(
            valid_reading=False,
            needs_calibration=self.calibration.needs_calibration,
            timestamp=timestamp,
            signal_quality=report.signal_quality,
            correlation_coeff=report.correlation,
            rhythm_regular=report.rhythm_regular,
        )

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def add_calibration_point(self, systolic: float, diastolic: float) -> bool:
        """Pair a reference cuff reading with the current rolling PTT"""
        if not self.initialized:
            logger.warning("Cannot calibrate: monitor not initialized")
            return False
        self._process_pending()
        ptt = self.matcher.rolling_ptt()
        if ptt is None:
            logger.warning("Cannot calibrate: no PTT available")
            return False
        return self.calibration.add_point(ptt, systolic, diastolic, self._latest_timestamp())

    def update_calibration(self) -> bool:
        return self.calibration.update()

    def perform_auto_calibration(self) -> bool:
        """Install the population model for the current profile unless personalized"""
        return self.calibration.apply_population_defaults(self.profile)

    def clear_calibration(self):
        self.calibration.clear()
        self.perform_auto_calibration()

    @property
    def calibration_count(self) -> int:
        return self.calibration.count

    @property
    def calibration_status(self) -> CalibrationStatus:
        return self.calibration.status

    @property
    def coefficients(self) -> CalibrationCoefficients:
        return self.calibration.coefficients

    # ------------------------------------------------------------------
    # Derived metrics
    # ------------------------------------------------------------------

    def _current_ptt(self) -> float:
        # Measured rolling PTT, or the population PTT when there is none
        ptt = self.matcher.rolling_ptt() if self.initialized else None
        if ptt is None or not PTT_MIN_MS <= ptt <= PTT_MAX_MS:
            return POPULATION_PTT_MS
        return ptt

    def estimate_arterial_stiffness(self) -> float:
        """Elastic modulus proxy rho * PWV^2 in kPa (Moens-Korteweg)"""
        pwv = pulse_wave_velocity(self._current_ptt(), self.profile.height_cm)
        return BLOOD_DENSITY * pwv ** 2 / 1000.0

    def calculate_cardiac_output(self) -> float:
        """Cardiac output in L/min from the Liljestrand-Zander stroke volume"""
        systolic, diastolic = self.calibration.estimate(self._current_ptt())
        heart_rate = mean_heart_rate(self._rr_values()) or POPULATION_HEART_RATE
        if systolic + diastolic <= 0:
            return 0.0
        pulse_pressure = max(0.0, calculate_pulse_pressure(systolic, diastolic))
        stroke_volume = STROKE_VOLUME_CONSTANT * pulse_pressure / (systolic + diastolic)
        return stroke_volume * heart_rate / 1000.0

    def get_vascular_health_index(self) -> str:
        ptt = self._current_ptt()
        systolic, diastolic = self.calibration.estimate(ptt)
        pwv = pulse_wave_velocity(ptt, self.profile.height_cm)
        hrv = rmssd(self._rr_values())

        score = 100 - CATEGORY_PENALTY[interpret_bp_reading(systolic, diastolic)]
        if pwv > PWV_MODERATE_THRESHOLD:
            score -= 30
        elif pwv > PWV_GOOD_THRESHOLD:
            score -= 15
        # Zero HRV means not available
        if 0 < hrv < HRV_MODERATE_THRESHOLD:
            score -= 20
        elif HRV_MODERATE_THRESHOLD <= hrv < HRV_GOOD_THRESHOLD:
            score -= 10
        score = max(0, score)

        label = next(name for floor, name in HEALTH_LABELS if score >= floor)
        return f"{label} ({score}/100)"

    def get_hrv_metrics(self) -> Dict[str, float]:
        rr = self._rr_values()
        return {
            'rmssd': rmssd(rr),
            'sdnn': sdnn(rr),
            'pnn50': pnn50(rr),
            'heart_rate': mean_heart_rate(rr),
        }

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_adaptive_mode(self, enabled: bool) -> bool:
        self.adaptive = bool(enabled)
        if self.initialized:
            self.ecg_detector.adaptive = self.adaptive
            self.ppg_detector.adaptive = self.adaptive
        logger.info(f"Adaptive thresholds {'enabled' if self.adaptive else 'disabled'}")
        return True

    def set_sample_rates(self, ecg_rate: int, ppg_rate: int) -> bool:
        """Change channel rates; when running this reallocates and resets (calibration kept)"""
        for name, rate in (("ECG", ecg_rate), ("PPG", ppg_rate)):
            if not MIN_SAMPLE_RATE <= rate <= MAX_SAMPLE_RATE:
                logger.warning(f"Invalid {name} sample rate {rate}Hz "
                               f"(allowed {MIN_SAMPLE_RATE}-{MAX_SAMPLE_RATE}Hz)")
                return False

        self.ecg_rate = int(ecg_rate)
        self.ppg_rate = int(ppg_rate)
        if self.initialized:
            self._allocate()
        logger.info(f"Sample rates set: ECG {self.ecg_rate}Hz, PPG {self.ppg_rate}Hz")
        return True

    def set_personal_parameters(self, age: int, height_cm: float, is_male: bool) -> bool:
        age_low, age_high = AGE_RANGE
        height_low, height_high = HEIGHT_RANGE_CM
        if not age_low <= age <= age_high:
            logger.warning(f"Invalid age {age} (allowed {age_low}-{age_high})")
            return False
        if not height_low <= height_cm <= height_high:
            logger.warning(f"Invalid height {height_cm}cm (allowed {height_low}-{height_high}cm)")
            return False

        self.profile = UserProfile(age=int(age), height_cm=float(height_cm), is_male=bool(is_male))
        logger.info(f"Personal parameters updated: Age={age}, Height={height_cm:.1f}cm, "
                    f"Gender={'Male' if is_male else 'Female'}")
        self.perform_auto_calibration()
        return True

    def adapt_thresholds(self):
        """Recompute both detector thresholds from their recent feature windows"""
        if not self.initialized:
            return
        self.ecg_detector.adapt_threshold()
        self.ppg_detector.adapt_threshold()

    @property
    def ecg_threshold(self) -> float:
        if self.ecg_detector is None or self.ecg_detector.threshold is None:
            return 0.0
        return self.ecg_detector.threshold

    @property
    def ppg_threshold(self) -> float:
        if self.ppg_detector is None or self.ppg_detector.threshold is None:
            return 0.0
        return self.ppg_detector.threshold

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_sample_stats(self) -> Dict[str, SampleStats]:
        if not self.initialized:
            return {'ecg': SampleStats(0, 0, 0), 'ppg': SampleStats(0, 0, 0)}
        return {
            'ecg': SampleStats(self.ecg_buffer.total, self.ecg_buffer.rejected, self._ecg_overruns),
            'ppg': SampleStats(self.ppg_buffer.total,
                               self.ppg_buffer.rejected + self._red_rejected,
                               self._ppg_overruns),
        }

    def _peak_counts(self) -> Tuple[int, int]:
        if not self.initialized:
            return 0, 0
        return self.ecg_peaks.total, self.ppg_peaks.total

    def get_system_status(self) -> str:
        report = self.assess_quality()
        ready = (report.matched_beats >= MIN_MATCHED_BEATS
                 and report.signal_quality >= MIN_SIGNAL_QUALITY)
        ecg_peaks, ppg_peaks = self._peak_counts()
        return (f"BP Monitor: {'Ready' if ready else 'Not Ready'}"
                f" | ECG Peaks: {ecg_peaks}"
                f" | PPG Peaks: {ppg_peaks}"
                f" | Quality: {int(report.signal_quality)}%"
                f" | Cal Points: {self.calibration_count}/{MAX_CALIBRATION_POINTS}")

    def get_diagnostics(self) -> str:
        report = self.assess_quality()
        ecg_peaks, ppg_peaks = self._peak_counts()
        stats = self.get_sample_stats()
        c = self.coefficients
        hrv = self.get_hrv_metrics()

        lines = [
            "=== Blood Pressure Monitor Diagnostics ===",
            f"State: {self.get_state().value}",
            f"ECG Peaks: {ecg_peaks}, PPG Peaks: {ppg_peaks}",
            f"Matched Beats: {report.matched_beats} (match fraction {report.match_fraction:.2f})",
            f"Signal Quality: {report.signal_quality:.1f}%",
            f"Correlation: {report.correlation}",
            f"Rhythm: {'regular' if report.rhythm_regular else 'irregular'}",
            f"HRV: RMSSD={hrv['rmssd']:.1f}ms, SDNN={hrv['sdnn']:.1f}ms, "
            f"pNN50={hrv['pnn50']:.1f}%, HR={hrv['heart_rate']:.0f}BPM",
            f"Calibration Points: {self.calibration_count}/{MAX_CALIBRATION_POINTS} "
            f"({self.calibration_status.mode.value})",
            f"Calibration: Sys={c.systolic_slope:.3f}*PTT+{c.systolic_intercept:.1f}, "
            f"Dia={c.diastolic_slope:.3f}*PTT+{c.diastolic_intercept:.1f}",
            f"Current Thresholds: ECG={self.ecg_threshold:.1f}, PPG={self.ppg_threshold:.1f}",
        ]
        for channel, s in stats.items():
            lines.append(f"{channel.upper()} samples: accepted={s.accepted}, "
                         f"rejected={s.rejected}, overruns={s.overruns}")
        lines.append("==========================================")
        return "\n".join(lines)

    def print_diagnostics(self):
        print(self.get_diagnostics())

    def self_test(self) -> bool:
        """
        Exercise ring buffers, range rejection, both detectors and beat
        matching on a synthetic recording. Engine state is not touched.
        """
        try:
            ring = RingBuffer(4)
            for i in range(6):
                ring.append(float(i), i)
            values, timestamps = ring.snapshot()
            if values.tolist() != [2.0, 3.0, 4.0, 5.0] or timestamps.tolist() != [2, 3, 4, 5]:
                logger.error("Self-test: ring buffer wrap-around failed")
                return False

            buffer = SampleBuffer(4, ECG_VALUE_RANGE)
            low, high = ECG_VALUE_RANGE
            if buffer.write(float('nan'), 0) or buffer.write(high + 1, 0) or not buffer.write(low, 0):
                logger.error("Self-test: sample range check failed")
                return False
            if buffer.rejected != 2 or len(buffer) != 1:
                logger.error("Self-test: rejected sample accounting failed")
                return False

            recording = synthesize_recording(duration_s=10.0, ecg_rate=self.ecg_rate,
                                             ppg_rate=self.ppg_rate)
            ecg_peaks = EcgPeakDetector(self.ecg_rate).process(recording.ecg, recording.ecg_timestamps)
            ppg_peaks = PpgOnsetDetector(self.ppg_rate).process(recording.ppg_ir, recording.ppg_timestamps)
            matcher = BeatMatcher()
            beats = matcher.match(ecg_peaks, ppg_peaks,
                                  int(recording.ecg_timestamps[-1]), int(recording.ppg_timestamps[-1]))
            if len(beats) < MIN_MATCHED_BEATS:
                logger.error(f"Self-test: only {len(beats)} beats matched "
                             f"({len(ecg_peaks)} R-peaks, {len(ppg_peaks)} onsets)")
                return False

            ptt = matcher.rolling_ptt()
            if abs(ptt - 180.0) > 20.0:
                logger.error(f"Self-test: PTT {ptt:.1f}ms, expected 180ms")
                return False
        except Exception:
            logger.error("Self-test raised an exception", exc_info=True)
            return False

        logger.debug("Self-test passed")
        return True
