"""Fixed limits and markers shared across the interview service."""

# Provider
MAX_TOKENS = 8192
MAX_RETRIES = 2
DEFAULT_CHAT_MODEL = "anthropic/claude-sonnet-4"
DEFAULT_TTS_MODEL = "gpt-4o-mini-tts"
DEFAULT_TTS_VOICE = "nova"

# Timeouts (seconds)
PDF_PROCESSING_TIMEOUT = 60.0
FILE_PROCESSING_TIMEOUT = 30.0
SAVE_DEBOUNCE_SECONDS = 1.0

# Interview
MIN_QUESTIONS_BEFORE_SPEC = 3
SPEC_COMPLETE_MARKER = "[SPEC_COMPLETE]"

# Attachments
MAX_FILE_SIZE = 5 * 1024 * 1024
MAX_TEXT_CONTENT_SIZE = 200 * 1024
MAX_IMAGE_DIMENSION = 1500
IMAGE_QUALITY = 85
MIN_PDF_TEXT_LENGTH = 50
TRUNCATION_MARKER = "\n\n[... document truncated: content exceeded the size limit ...]"

# Storage
STORAGE_PATH_SEGMENT = "/storage/blobs/"
INLINE_IMAGE_PREFIX = "data:image/"

# TTS
TTS_MAX_CHARS = 200
