# capture_constants.py

# --- Debugging Flags ---
DEBUG_DETECTION = False  # Log every per-frame detector failure at INFO instead of DEBUG

# --- Camera Configuration ---
# Preferred stream for the front-facing camera. These are hints: OpenCV drivers
# are free to pick the closest mode they support.
CAMERA_INDEX = 0
CAMERA_FACING_MODE = "user"
CAMERA_PREFERRED_WIDTH = 1280
CAMERA_PREFERRED_HEIGHT = 720

# Consecutive failed reads before the stream is considered lost (~1s at 30fps)
MAX_CONSECUTIVE_READ_FAILURES = 30

# --- Scheduling ---
# One rendering frame. The viewport tracker coalesces to this and the
# detection loop reschedules itself at this cadence.
FRAME_INTERVAL_S = 1.0 / 60.0

# --- Viewport ---
# Size assumed for the capture frame before the first observation arrives (3:4)
DEFAULT_VIEWPORT_WIDTH = 540
DEFAULT_VIEWPORT_HEIGHT = 720

# --- Guide Circle ---
GUIDE_DIAMETER_RATIO = 0.6   # Fraction of the shorter viewport side
GUIDE_MIN_DIAMETER = 180.0   # px
GUIDE_MAX_DIAMETER = 420.0   # px

# Overlay stroke is 4% of the radius, kept between these bounds (px)
GUIDE_STROKE_RATIO = 0.04
GUIDE_MIN_STROKE = 3
GUIDE_MAX_STROKE = 6
GUIDE_MASK_ALPHA = 0.45  # Darkening applied outside the circle

# Guide colors (BGR)
COLOR_NONE = (68, 68, 239)       # red-500
COLOR_READY = (94, 197, 34)      # green-500
COLOR_CAPTURED = (21, 204, 250)  # yellow-400

# --- Face Detector ---
DETECTOR_MODEL_SELECTION = 0      # 0: short range (selfie distance), 1: full range
DETECTOR_MIN_CONFIDENCE = 0.5

# --- Still Capture ---
CAPTURE_MIME_TYPE = "image/jpeg"
JPEG_QUALITY = 90  # 0-100

# --- UI Text ---
DEFAULT_TITLE = "Capture Your Photo"
MSG_LOADING = "Loading face model…"
MSG_READY = "Face centered — ready to capture"
MSG_CAPTURED = "Preview captured photo"
MSG_ALIGN = "Center your face inside the circle"
CAMERA_ERROR_FALLBACK = "Unable to access camera"

# --- Desktop Window ---
WINDOW_NAME = "Face Capture"
MESSAGE_BAR_HEIGHT = 110  # px below the capture frame
