"""Central configuration for task authoring and batch execution.

All tunable parameters are defined here with descriptive names. Per-step
defaults feed the option models in ``tasks.options``; detector tuning feeds
the backends in ``detection.backends``.
"""

# =============================================================================
# PROCESSING ORDER
# =============================================================================

# Processors that always execute first, in this order, regardless of how the
# task was authored. Anything else runs afterwards in authored order.
PROCESSING_ORDER = ("resize", "crop", "optimize", "rename")

# Processors whose output can be produced per image without side outputs
NON_BATCHABLE_PROCESSORS = frozenset({"favicon", "template"})

# Task export format version
TASK_FORMAT_VERSION = "1.0"

# =============================================================================
# LIMITS
# =============================================================================

MAX_DIMENSION = 10000
MIN_DIMENSION = 10

# Resize dimensions outside this range are allowed but flagged
RECOMMENDED_MAX_DIMENSION = 4000

MIN_CROP_SIZE = 50
MAX_CROP_SIZE = 10000

MAX_FILENAME_LENGTH = 255

# Batches larger than this trigger an advisory warning
MAX_BATCH_SIZE = 50

# Aspect ratios outside [1/MAX, MAX] are considered extreme
MAX_ASPECT_RATIO = 10.0

# =============================================================================
# RESIZE DEFAULTS
# =============================================================================

DEFAULT_RESIZE_DIMENSION = 1024
DEFAULT_RESIZE_MODE = "longest"
DEFAULT_RESIZE_ALGORITHM = "lanczos3"
RESIZE_ALGORITHMS = ("lanczos3", "bilinear", "nearest", "bicubic")

# Resize warnings: factors beyond these produce advisory issues
EXTREME_UPSCALE_FACTOR = 3.0
EXTREME_DOWNSCALE_FACTOR = 10.0
ASPECT_CHANGE_TOLERANCE = 0.1

# =============================================================================
# CROP DEFAULTS
# =============================================================================

DEFAULT_CROP_WIDTH = 500
DEFAULT_CROP_HEIGHT = 500
DEFAULT_CROP_MODE = "smart"

# Percentage (0-100); merged detector confidence below this falls back to center
DEFAULT_CONFIDENCE_THRESHOLD = 70

DEFAULT_OBJECTS_TO_DETECT = ("person", "face", "car", "dog", "cat")

# AI crop aspect ratios beyond these are flagged as extreme
AI_CROP_MAX_ASPECT = 3.0
AI_CROP_MIN_ASPECT = 0.33

# =============================================================================
# REGION DETECTION
# =============================================================================

# Confidence reported whenever the detector falls back to the image center
FALLBACK_CONFIDENCE = 0.5

# Haar cascade parameters for face detection
FACE_CASCADE = "haarcascade_frontalface_default.xml"
FACE_DETECTION_SCALE_FACTOR = 1.1
FACE_DETECTION_MIN_NEIGHBORS = 5
FACE_DETECTION_MIN_SIZE = (30, 30)

# Haar level weights are mapped to [0, 1] with a logistic centered here
FACE_WEIGHT_MIDPOINT = 1.0
FACE_WEIGHT_SLOPE = 1.5

# HOG people detector parameters
OBJECT_HOG_WIN_STRIDE = (8, 8)
OBJECT_HOG_SCALE = 1.05
OBJECT_WEIGHT_MIDPOINT = 0.5
OBJECT_WEIGHT_SLOPE = 3.0

# HOG is slow on large frames; analyse at this max side
OBJECT_MAX_SIDE = 800
# Overlapping person boxes above this IoU are merged
OBJECT_NMS_IOU = 0.5

# Object labels served by the HOG people detector
PERSON_LABELS = frozenset({"person", "people", "human"})

# Saliency: images are analysed at this max side to bound cost
SALIENCY_MAX_SIDE = 512
# Keep at most this many salient regions
SALIENCY_MAX_REGIONS = 3
# Regions smaller than this fraction of the image are ignored
SALIENCY_MIN_AREA_RATIO = 0.005

# Entropy: image is split into a GRID x GRID tile grid
ENTROPY_GRID = 4
ENTROPY_MAX_SIDE = 512
# Tiles within this fraction of the best tile's entropy also contribute
ENTROPY_TOP_FRACTION = 0.9

# =============================================================================
# OPTIMIZE DEFAULTS
# =============================================================================

DEFAULT_QUALITY = 85
DEFAULT_OPTIMIZE_FORMAT = "auto"
OPTIMIZE_FORMATS = ("auto", "webp", "avif", "jpg", "png", "ico", "svg", "original")
BROWSER_SUPPORT_VALUES = ("modern", "legacy", "all")
DEFAULT_BROWSER_SUPPORT = ("modern", "legacy")
COMPRESSION_MODES = ("adaptive", "aggressive", "balanced")
DEFAULT_COMPRESSION_MODE = "adaptive"
DEFAULT_ICO_SIZES = (16, 32, 48, 64, 128, 256)

# AVIF quality above this gives little visual gain for a large size cost
AVIF_MAX_QUALITY = 63

# Aggressive compression lowers quality by this much, never below the floor
AGGRESSIVE_QUALITY_DROP = 20
AGGRESSIVE_QUALITY_FLOOR = 40

# Adaptive compression lowers quality for images above this many megapixels
ADAPTIVE_LARGE_MEGAPIXELS = 2.0
ADAPTIVE_QUALITY_DROP = 10
ADAPTIVE_QUALITY_FLOOR = 60

# Images above this many megapixels prefer AVIF when modern browsers are targeted
AVIF_PREFERRED_MEGAPIXELS = 1.0

# Expected output size relative to input, per format
SAVINGS_FACTORS = {
    "webp": 0.7,
    "avif": 0.6,
    "jpg": 0.8,
    "png": 0.9,
    "svg": 0.3,
    "ico": 0.95,
}

# =============================================================================
# RENAME DEFAULTS
# =============================================================================

DEFAULT_RENAME_PATTERN = "{name}-{dimensions}"
FALLBACK_RENAME_PATTERN = "{name}-{index}"
DEFAULT_RENAME_SEPARATOR = "-"

# A rename pattern needs at least one of these to keep outputs distinct
UNIQUENESS_PLACEHOLDERS = (
    "{name}",
    "{index}",
    "{timestamp}",
    "{width}",
    "{height}",
    "{dimensions}",
)

# =============================================================================
# FAVICON DEFAULTS
# =============================================================================

DEFAULT_FAVICON_SIZES = (16, 32, 48, 64, 128, 180, 192, 256, 512)
DEFAULT_FAVICON_FORMATS = ("png", "ico")
FAVICON_FORMATS = ("png", "ico", "svg")
MIN_FAVICON_SIZE = 16
MAX_FAVICON_SIZE = 512
# Sizes bundled into favicon.ico
FAVICON_ICO_SIZES = (16, 32, 48)
APPLE_TOUCH_SIZE = 180
ANDROID_SIZES = (192, 512)
DEFAULT_FAVICON_BACKGROUND = "#ffffff"

# =============================================================================
# COST MODEL
# =============================================================================

# Baseline per-image processing time in milliseconds for each processor
BASE_STEP_TIMES_MS = {
    "resize": 100,
    "crop": 150,
    "optimize": 200,
    "rename": 10,
    "template": 300,
    "favicon": 500,
}
AI_CROP_COST_MULTIPLIER = 3.0
AGGRESSIVE_OPTIMIZE_COST_MULTIPLIER = 1.5
CONTENT_ANALYSIS_COST_MULTIPLIER = 1.2

# =============================================================================
# BATCH EXECUTION
# =============================================================================

DEFAULT_GROUP_SIZE = 4
MAX_GROUP_SIZE = 32
