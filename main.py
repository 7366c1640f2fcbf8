import logging
import time

from ptt_monitor.config import BAUD_RATE, ECG_SAMPLE_RATE, MEASUREMENT_INTERVAL_S, PPG_SAMPLE_RATE, SERIAL_PORT
from ptt_monitor.bp_analysis import interpret_bp_reading
from ptt_monitor.data_recorder import DataRecorder
from ptt_monitor.measurement_service import MeasurementService
from ptt_monitor.monitor import BloodPressureMonitor
from ptt_monitor.serial_readers import SerialSampleReader

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


def main():
    print("=" * 70)
    print("PTT BLOOD PRESSURE MONITOR")
    print("=" * 70)
    print(f"Sensor board: {SERIAL_PORT}")
    print(f"Baud Rate:    {BAUD_RATE}")
    print(f"ECG / PPG:    {ECG_SAMPLE_RATE} Hz / {PPG_SAMPLE_RATE} Hz")
    print(f"Interval:     {MEASUREMENT_INTERVAL_S:.0f} s")
    print("=" * 70)
    print()

    monitor = BloodPressureMonitor()
    if not monitor.begin():
        print("Self-test failed - exiting")
        return

    recorder = DataRecorder()
    reader = SerialSampleReader(SERIAL_PORT, BAUD_RATE)

    def report(result):
        recorder.write_row(result)
        if result.valid_reading:
            category = interpret_bp_reading(result.systolic, result.diastolic)
            print(f"BP {result.systolic:.0f}/{result.diastolic:.0f} mmHg (MAP {result.mean_arterial_pressure:.0f}) "
                  f"| PTT {result.pulse_transit_time:.0f} ms | PWV {result.pulse_wave_velocity:.1f} m/s "
                  f"| Q {result.signal_quality:.0f}% | {category}"
                  f"{' | uncalibrated' if result.needs_calibration else ''}")
        else:
            print(monitor.get_system_status())
        # Callback runs in the measurement thread, the only engine consumer
        if service.measurements % 6 == 0:
            monitor.print_diagnostics()

    service = MeasurementService(monitor, on_result=report)

    try:
        reader.start(monitor)
        recorder.start_recording()
        service.start()

        print("Services started. Press Ctrl+C to stop.\n")
        while True:
            time.sleep(1)

    except KeyboardInterrupt:
        print("\nKeyboard interrupt - shutting down...")
    finally:
        print("\nStopping services...")
        service.stop()
        reader.stop()
        recorder.close()
        print("Application closed")


if __name__ == "__main__":
    main()
