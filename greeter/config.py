import os

# Model
DETECTION_MODEL_NAME = os.getenv("DETECTION_MODEL_NAME", "buffalo_l")
_det = int(os.getenv("DET_SIZE", "640"))
DET_SIZE = (_det, _det)

# Reference images
KNOWN_LABELS = [s.strip() for s in os.getenv("KNOWN_LABELS", "badhusha,abhishek").split(",") if s.strip()]
IMAGES_PER_LABEL = int(os.getenv("IMAGES_PER_LABEL", "2"))
LABELED_IMAGES_DIR = os.getenv("LABELED_IMAGES_DIR", "labeled_images")
LABELED_IMAGES_URL = os.getenv("LABELED_IMAGES_URL", "")  # when set, images are fetched over HTTP
HTTP_TIMEOUT_S = float(os.getenv("HTTP_TIMEOUT_S", "15"))

# Matching / notification
MATCH_THRESHOLD = float(os.getenv("MATCH_THRESHOLD", "0.6"))
NOTIFICATION_COOLDOWN_MS = int(os.getenv("NOTIFICATION_COOLDOWN_MS", "60000"))
UNKNOWN_LABEL = "unknown"

# Keys are compared lower-cased
SPECIAL_GREETINGS = {
    "badhusha": "Hi sir, how are you?",
    "abhishek": "Hi Abhi, how are you? How can I help you today?",
}
GENERIC_GREETING = "Hello {identity}, welcome!"

# Notification sinks: speech, redis, log
NOTIFY_SINKS = [s.strip() for s in os.getenv("NOTIFY_SINKS", "speech").split(",") if s.strip()]

TTS_VOLUME = float(os.getenv("TTS_VOLUME", "1.0"))
TTS_RATE = float(os.getenv("TTS_RATE", "1.0"))
TTS_PITCH = float(os.getenv("TTS_PITCH", "1.0"))
TTS_LANGUAGE = os.getenv("TTS_LANGUAGE", "en-US")
TTS_BASE_WPM = int(os.getenv("TTS_BASE_WPM", "175"))  # pyttsx3 words/minute at rate 1.0

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB = int(os.getenv("REDIS_DB", "0"))
REDIS_MAX_RETRIES = int(os.getenv("REDIS_MAX_RETRIES", "5"))
GREETING_STREAM = os.getenv("GREETING_STREAM", "greetings")

# Capture / display
CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", "0"))
DISPLAY_WIDTH = int(os.getenv("DISPLAY_WIDTH", "640"))
DISPLAY_HEIGHT = int(os.getenv("DISPLAY_HEIGHT", "480"))
WINDOW_TITLE = os.getenv("WINDOW_TITLE", "Face Recognition")
SHOW_WINDOW = os.getenv("SHOW_WINDOW", "1") == "1"
SHOW_FPS = os.getenv("SHOW_FPS", "1") == "1"
SHOW_DEMOGRAPHICS = os.getenv("SHOW_DEMOGRAPHICS", "1") == "1"
FPS_ALPHA = 0.12  # EMA smoothing factor for FPS
FPS_MAX_DT_CLAMP = 0.50  # clamp dt spikes in seconds
FPS_DECIMALS = 1

# Drawing (BGR)
COLOR_KNOWN = (0, 200, 0)
COLOR_UNKNOWN = (50, 180, 255)
COLOR_LANDMARK = (255, 200, 0)
TEXT_COLOR = (255, 255, 255)
TEXT_BG = (30, 30, 30)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
