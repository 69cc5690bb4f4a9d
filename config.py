import os

# Project root directory (used for resource paths)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')  # Overridden by debug=True
LOG_OUTPUTS = os.getenv('LOG_OUTPUTS', 'stdout')  # Comma list: stdout, stderr, file, rotating
LOG_FILE_PATH = os.getenv('LOG_FILE_PATH', f'{PROJECT_ROOT}/logs/voicegate.log')
DEBUG_LOG_OUTPUTS = os.getenv('DEBUG_LOG_OUTPUTS', LOG_OUTPUTS)
DEBUG_LOG_FILE_PATH = os.getenv('DEBUG_LOG_FILE_PATH', LOG_FILE_PATH)
LOG_MAX_BYTES = int(os.getenv('LOG_MAX_BYTES', str(5 * 1024 * 1024)))  # 'rotating' output only
LOG_BACKUP_COUNT = int(os.getenv('LOG_BACKUP_COUNT', '3'))

# Adaptive VAD settings (noise-floor tracking on RMS levels in [0, 1])
# Tune these for your environment (use scripts/calibrate_vad.py on a recording)
VAD_ADAPTIVE_ENABLED = os.getenv('VAD_ADAPTIVE_ENABLED', 'true').lower() == 'true'
VAD_SNR_FACTOR = float(os.getenv('VAD_SNR_FACTOR', '2.5'))  # threshold = noise_floor * factor
VAD_HISTORY_SIZE = int(os.getenv('VAD_HISTORY_SIZE', '100'))  # 100 samples = ~5s at 50ms
VAD_HYSTERESIS = float(os.getenv('VAD_HYSTERESIS', '0.015'))  # Dead zone half-width around threshold
VAD_CALIBRATION_MS = int(os.getenv('VAD_CALIBRATION_MS', '2000'))  # Stay silent this long at session start
VAD_NOISE_PERCENTILE = float(os.getenv('VAD_NOISE_PERCENTILE', '0.1'))  # Low percentile of history = noise
VAD_MIN_THRESHOLD = float(os.getenv('VAD_MIN_THRESHOLD', '0.04'))
VAD_MAX_THRESHOLD = float(os.getenv('VAD_MAX_THRESHOLD', '0.25'))
VAD_NOISE_DECAY = float(os.getenv('VAD_NOISE_DECAY', '0.95'))  # Higher = noise floor rises slower

# Frame-level detector (debounce on top of the speech decision)
VAD_PRESET = os.getenv('VAD_PRESET', 'default')  # default, noisy, quiet, bargein

# Pause classification (milliseconds)
PAUSE_BREATH_MAX_MS = int(os.getenv('PAUSE_BREATH_MAX_MS', '500'))
PAUSE_THOUGHT_MAX_MS = int(os.getenv('PAUSE_THOUGHT_MAX_MS', '1200'))
PAUSE_SENTENCE_END_MAX_MS = int(os.getenv('PAUSE_SENTENCE_END_MAX_MS', '2500'))

# Transcription validation
TRANSCRIPT_LANGUAGE = os.getenv('TRANSCRIPT_LANGUAGE', 'es')  # Expected STT language: 'es' or 'en'
TRANSCRIPT_PROCESS_CONFIDENCE = 0.7  # >= this: forward transcript to the LLM
TRANSCRIPT_REPEAT_CONFIDENCE = 0.3   # >= this (and below process): ask the user to repeat

# Event bus
EVENT_BUS_MAX_QUEUE = int(os.getenv('EVENT_BUS_MAX_QUEUE', '1000'))
EVENT_BUS_DROP_POLICY = os.getenv('EVENT_BUS_DROP_POLICY', 'drop_new')  # drop_new, drop_oldest
EVENT_BUS_ENFORCE_WHITELIST = os.getenv('EVENT_BUS_ENFORCE_WHITELIST', 'true').lower() == 'true'
EVENT_BUS_LOSSY_WATERMARK = float(os.getenv('EVENT_BUS_LOSSY_WATERMARK', '0.8'))  # Queue fill at which volume/threshold telemetry is shed
