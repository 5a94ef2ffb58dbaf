# config.py
import sys
import subprocess

SUBPROCESS_CREATION_FLAGS = subprocess.CREATE_NO_WINDOW if sys.platform.startswith('win') else 0

def get_version():
    try:
        git_process = subprocess.run(
            ["git", "describe", "--tags", "--always"],
            capture_output=True,
            text=True,
            check=True,
            creationflags=SUBPROCESS_CREATION_FLAGS
        )
        version = git_process.stdout.strip().lstrip('v')
        return version
    except (subprocess.CalledProcessError, FileNotFoundError):
        return '1.0.0'

APP_NAME = "SequenceStitch"
APP_VERSION = get_version()
PROJECT_FILE_EXTENSION = ".seqstitch"
PROJECT_FILE_VERSION = 1

# Output container -> (file extension, software codec, hardware codec or None)
FORMAT_MAP = {
    "MP4": {"extension": "mp4", "codec": "libx264", "hardware_codec": "h264_videotoolbox"},
    "MOV": {"extension": "mov", "codec": "libx264", "hardware_codec": "h264_videotoolbox"},
    "WebM": {"extension": "webm", "codec": "libvpx-vp9", "hardware_codec": None},
}
FASTSTART_FORMATS = ("MP4", "MOV")
SOFTWARE_CODEC_PROFILE = "main"
OUTPUT_PIXEL_FORMAT = "yuv420p"

QUALITY_PRESETS = {
    "Low": {"crf": 28, "preset": "faster"},
    "Medium": {"crf": 23, "preset": "medium"},
    "High": {"crf": 18, "preset": "slow"},
    "Lossless": {"crf": 0, "preset": "veryslow"},
}

FPS_OPTIONS = [24, 30, 60]

# None means "keep the source size"
RESOLUTION_FILTERS = {
    "Original": None,
    "2x": "scale=iw*2:ih*2",
    "4x": "scale=iw*4:ih*4",
    "720p": "scale=-2:720",
    "1080p": "scale=-2:1080",
    "4K": "scale=-2:2160",
}
EVEN_DIMENSIONS_FILTER = "scale=trunc(iw/2)*2:trunc(ih/2)*2"

NORMALIZATION_RESOLUTIONS = {
    "Original": None,
    "720p": (1280, 720),
    "1080p": (1920, 1080),
    "4K": (3840, 2160),
    "Square 1080": (1080, 1080),
}
NORMALIZE_CODEC = "libx264"
NORMALIZE_PRESET = "ultrafast"
NORMALIZE_CRF = 18
NORMALIZE_PAD_COLOR = "black"

STACKING_MODES = {
    "None": None,
    "Horizontal": "hstack",
    "Vertical": "vstack",
}

DEFAULT_FRAME_DURATION = 2.0
TIME_LAPSE_DURATION_RANGE = (1, 300)
DEFAULT_TIME_LAPSE_DURATION = 10.0

PROGRESS_SAMPLE_INTERVAL_MS = 100
PROGRESS_MIN_ESTIMATE_S = 2.0
PROGRESS_SECONDS_PER_FRAME_SOFTWARE = 0.15
PROGRESS_SECONDS_PER_FRAME_HARDWARE = 0.05
PROGRESS_CEILING = 0.99

EXTRACT_SAMPLING_FPS = 10
EXTRACT_DEDUP_FILTER = "mpdecimate"
EXTRACT_FILENAME_PATTERN = "frame_%05d.png"
EXTRACT_IMAGE_EXTENSION = ".png"
MAX_IMPORT_VIDEO_BYTES = 500 * 1024 * 1024

DIAGNOSTIC_MARKERS = ("Error", "Invalid", "failed")
DIAGNOSTIC_MAX_LINES = 3

SUPPORTED_IMAGE_FORMATS = ('.png', '.jpg', '.jpeg', '.heic', '.tiff', '.gif')
SUPPORTED_DOCUMENT_FORMATS = ('.pdf',)
SUPPORTED_FORMATS = SUPPORTED_IMAGE_FORMATS + SUPPORTED_DOCUMENT_FORMATS
SUPPORTED_VIDEO_FORMATS = ('.mp4', '.mov', '.m4v', '.avi', '.mkv', '.webm')

PDF_RENDER_DPI = 300
THUMBNAIL_MAX_SIZE = 200

WELL_KNOWN_FFMPEG_DIRS = [
    '/opt/homebrew/bin',
    '/usr/local/bin',
    '/usr/bin',
    '/opt/local/bin',
]

TEMP_DIR_PREFIX = f"{APP_NAME}_"
IMPORT_TEMP_DIR_PREFIX = "Import_"
RENDER_TEMP_DIR_PREFIX = "Pages_"
ENCODER_TEST_RESOLUTION = "320x240"
ENCODER_TEST_FRAMERATE = "30"
ENCODER_TEST_DURATION_S = 1
ENCODER_TEST_TIMEOUT_S = 15
FFPROBE_TIMEOUT_S = 15
CANCEL_WAIT_MS = 5000

LOG_STATE_TRANSITIONS = False
