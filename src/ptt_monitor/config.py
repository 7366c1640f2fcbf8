# Configuration file for the PTT Blood Pressure Monitor

# Serial port configuration
SERIAL_PORT = "COM8"
BAUD_RATE = 115200

# Sampling configuration
ECG_SAMPLE_RATE = 200  # Hz
PPG_SAMPLE_RATE = 100  # Hz
MIN_SAMPLE_RATE = 10
MAX_SAMPLE_RATE = 2000
BUFFER_SECONDS = 10  # Seconds of raw samples held per channel

# Accepted sample ranges (ADC counts)
ECG_VALUE_RANGE = (0.0, 4095.0)  # 12-bit ADC (AD8232 front end)
PPG_VALUE_RANGE = (0.0, 262143.0)  # 18-bit ADC (MAX30102)
SATURATION_MARGIN = 0.005  # Fraction of range treated as rail
SATURATION_TOLERANCE = 0.05  # Clipped fraction that zeroes the score
REJECTED_PENALTY = 10.0

# Ring capacities
PEAK_RING_SIZE = 20
RR_RING_SIZE = 50
PTT_RING_SIZE = 20
MATCH_HISTORY_SIZE = 20

# Peak detection
MAX_HEART_RATE_BPM = 250
REFRACTORY_MS = int(60000 / MAX_HEART_RATE_BPM)  # 240 ms
ADAPT_WINDOW_S = 2.0
ADAPT_INTERVAL_S = 1.0
RAW_HISTORY_S = 1.0
MIN_THRESHOLD_SPREAD = 1e-6  # Below this the feature is treated as flat

ECG_BASELINE_TAU_S = 1.5
ECG_LOWPASS_HZ = 40.0
ECG_THRESHOLD_K = 2.0
ECG_THRESHOLD_FRACTION = 0.5
ECG_LOOKBACK_MS = 50
ECG_MAX_SEARCH_MS = 150

PPG_LOWPASS_HZ = 8.0
PPG_THRESHOLD_K = 1.5
PPG_THRESHOLD_FRACTION = 0.3
PPG_ONSET_LOOKBACK_MS = 250
PPG_MAX_RISE_MS = 400

# R-R intervals
RR_MIN_MS = 300
RR_MAX_MS = 2000
RR_AMPLITUDE_RANGE = (0.5, 2.0)  # Relative to the recent median R amplitude
RR_AMPLITUDE_HISTORY = 8

# Pulse transit time
PTT_MIN_MS = 50
PTT_MAX_MS = 400
PPG_PEAK_LATENCY_MS = 500
MATCH_GRACE_MS = 1000
PTT_AVERAGE_BEATS = 8
PATH_LENGTH_RATIO = 0.4  # Heart-to-finger path as a fraction of height

# Calibration
MAX_CALIBRATION_POINTS = 5
MIN_CALIBRATION_POINTS = 2
MIN_PTT_SPREAD_MS = 2.0
SYSTOLIC_SLOPE = -0.45
SYSTOLIC_INTERCEPT = 200.0
DIASTOLIC_SLOPE = -0.25
DIASTOLIC_INTERCEPT = 125.0
REFERENCE_SYSTOLIC_RANGE = (80.0, 250.0)
REFERENCE_DIASTOLIC_RANGE = (40.0, 150.0)

# User profile defaults and limits
DEFAULT_AGE = 30
DEFAULT_HEIGHT_CM = 170.0
DEFAULT_IS_MALE = True
AGE_RANGE = (1, 120)
HEIGHT_RANGE_CM = (50.0, 250.0)

# Quality assessment
MIN_SIGNAL_QUALITY = 60.0
MIN_CORRELATION = 30
MIN_MATCHED_BEATS = 3
MATCH_WINDOW_MS = 10000
STALE_CHANNEL_MS = 2000  # A channel this far behind the other counts as lost
AMPLITUDE_CV_LIMIT = 0.5
AMPLITUDE_PEAKS = 10
RHYTHM_CV_THRESHOLD = 0.15
RHYTHM_MIN_INTERVALS = 5
RHYTHM_INTERVALS = 10
CORRELATION_MIN_SPAN_MS = 2000
CORRELATION_MAX_LAG_MS = 500
ENVELOPE_MS = 80

# Plausible output ranges (mmHg)
SYSTOLIC_VALID_RANGE = (70.0, 250.0)
DIASTOLIC_VALID_RANGE = (40.0, 150.0)

# Derived metrics
POPULATION_PTT_MS = 200.0
POPULATION_HEART_RATE = 70.0
BLOOD_DENSITY = 1060.0  # kg/m^3
STROKE_VOLUME_CONSTANT = 350.0  # ml, Liljestrand-Zander
PWV_GOOD_THRESHOLD = 7.0
PWV_MODERATE_THRESHOLD = 10.0
HRV_GOOD_THRESHOLD = 50.0
HRV_MODERATE_THRESHOLD = 30.0

# Measurement service
MEASUREMENT_INTERVAL_S = 5.0
RESULT_QUEUE_SIZE = 100

# Recording
RECORDINGS_DIR = "recordings"
