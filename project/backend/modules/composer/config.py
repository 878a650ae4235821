"""
Composer configuration.

FFmpeg output parameters and text overlay layout constants.
"""

# Re-encode settings (only used when an overlay forces a re-encode)
FFMPEG_PRESET = "medium"
FFMPEG_CRF = 21
OUTPUT_VIDEO_CODEC = "libx264"

# Audio mux settings
OUTPUT_AUDIO_CODEC = "aac"
OUTPUT_AUDIO_BITRATE = "192k"
MUSIC_VOLUME_UNDER_NARRATION = 0.3

# Overlay layout
OVERLAY_BASE_FONT_SIZE = 36.0
OVERLAY_FONT_SIZE_LONG = 32.0   # text over 360 characters
OVERLAY_FONT_SIZE_XLONG = 28.0  # text over 440 characters
OVERLAY_LONG_TEXT_CHARS = 360
OVERLAY_XLONG_TEXT_CHARS = 440
OVERLAY_MIN_FONT_SIZE = 18.0
OVERLAY_REFERENCE_HEIGHT = 1080.0
OVERLAY_MAX_LINES = 6
OVERLAY_WIDTH_FRACTION = 0.8
OVERLAY_CHAR_WIDTH_RATIO = 0.6
OVERLAY_MIN_CHARS_PER_LINE = 20
OVERLAY_SHORT_TEXT_CHARS = 60
OVERLAY_DEFAULT_START_FRACTION = 0.8

# First existing font wins; ffmpeg's built-in font otherwise
FONT_FALLBACKS = (
    "/usr/share/fonts/ttf-dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/ttf-dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation2/LiberationSans-Bold.ttf",
)
