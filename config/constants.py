"""
Centralized constants for the translation orchestrator.
All magic numbers used by the job pipeline live here.
"""

# ===========================================
# BATCH / FAN-OUT
# ===========================================
BATCH_SIZE = 3                        # children started together per batch
BATCH_DELAY_SECONDS = 2.0             # pause between batches
PROVIDER_MAX_CONCURRENCY = 3          # concurrent provider calls across jobs
RATE_LIMIT_BACKOFF_SECONDS = 5.0      # default pause after a 429
RATE_LIMIT_MAX_BACKOFF_SECONDS = 60.0

# ===========================================
# DOCUMENT API
# ===========================================
DOCUMENT_POLL_INTERVAL = 5.0          # seconds between status polls
DOCUMENT_TIMEOUT_SECONDS = 300.0      # 60 polls x 5s
SEGMENT_BATCH_SIZE = 10               # texts per translate_segments sub-batch
HTTP_TIMEOUT_SECONDS = 60.0

DEEPL_FREE_URL = "https://api-free.deepl.com/v2"
DEEPL_PRO_URL = "https://api.deepl.com/v2"

# DeepL upload limits (bytes)
PRO_DOCUMENT_LIMIT = 30 * 1024 * 1024
PRO_OTHER_LIMIT = 5 * 1024 * 1024
FREE_DOCUMENT_LIMIT = 10 * 1024 * 1024
FREE_OTHER_LIMIT = 1 * 1024 * 1024
OFFICE_EXTENSIONS = ('.pdf', '.docx', '.pptx', '.xlsx')

# ===========================================
# CORRECTION MEMORY
# ===========================================
OVERRIDE_CONFIDENCE_THRESHOLD = 0.7   # exact override bypasses the provider
CONFIDENCE_USAGE_DIVISOR = 3          # usage_count / 3, capped at 1.0
MIN_TERM_FREQUENCY = 1
MEMORY_LOCK_STRIPES = 64              # striped write locks per memory store

# ===========================================
# QUALITY
# ===========================================
QUALITY_MAX_SCORE = 100
GLOSSARY_WARNING_PENALTY = 10
NUMBER_WARNING_PENALTY = 15

# ===========================================
# FILE HANDLING
# ===========================================
MAX_FILE_SIZE_MB = 50
SEGMENTABLE_EXTENSIONS = ('.txt', '.md', '.srt')
SUPPORTED_EXTENSIONS = [
    '.txt', '.md', '.srt', '.docx', '.pdf',
    '.pptx', '.xlsx', '.html', '.htm'
]

# ===========================================
# API / SERVER
# ===========================================
API_RATE_LIMIT = "60/minute"
REVIEW_BASE_URL = "http://localhost:8000"

# ===========================================
# LOGGING
# ===========================================
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'logs/orchestrator.log'
LOG_MAX_SIZE_MB = 10
LOG_BACKUP_COUNT = 5
