"""Tests for the serial sample reader."""

from ptt_monitor.serial_readers import EcgSample, PpgSample, SerialSampleReader, parse_sample_line


class RecordingMonitor:
    """Stands in for the monitor and records what it is fed"""

    def __init__(self):
        self.ecg = []
        self.ppg = []

    def add_ecg_sample(self, value, timestamp):
        self.ecg.append((value, timestamp))
        return True

    def add_ppg_sample(self, ir, red, timestamp):
        self.ppg.append((ir, red, timestamp))
        return True


class TestParseSampleLine:
    def test_ecg_line(self):
        assert parse_sample_line("E,2048,1005\r\n") == EcgSample(2048.0, 1005)

    def test_ppg_line(self):
        assert parse_sample_line("P,51234,30120,1010\n") == PpgSample(51234.0, 30120.0, 1010)

    def test_invalid_lines(self):
        assert parse_sample_line("") is None
        assert parse_sample_line("E,abc,1") is None
        assert parse_sample_line("E,1,2,3") is None
        assert parse_sample_line("P,1,2") is None
        assert parse_sample_line("X,1,2") is None


class TestSerialSampleReader:
    def test_handle_line_feeds_monitor(self):
        reader = SerialSampleReader("COM_TEST")
        monitor = RecordingMonitor()
        reader.monitor = monitor

        assert reader.handle_line("E,2048,0")
        assert reader.handle_line("P,50000,30000,0")
        assert not reader.handle_line("garbage")

        assert monitor.ecg == [(2048.0, 0)]
        assert monitor.ppg == [(50000.0, 30000.0, 0)]
        assert (reader.ecg_samples, reader.ppg_samples, reader.invalid_lines) == (1, 1, 1)

    def test_connect_gives_up_after_attempts_exhausted(self):
        reader = SerialSampleReader("COM_TEST", max_connection_attempts=2)
        reader.connection_attempts = 2
        assert not reader.connect()
