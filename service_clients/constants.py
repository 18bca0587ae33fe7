"""
Shared constants for ML service clients.
"""

# Service identifiers (also used as JWT audience)
AUDIO_INTELLIGENCE = "audio-intelligence"
CAREPLAN_RECOMMENDER = "careplan-recommender"
RAG_EMBEDDINGS = "rag-embeddings"
PDF_PARSER = "pdf-parser"

ALL_SERVICES: tuple[str, ...] = (
    AUDIO_INTELLIGENCE,
    CAREPLAN_RECOMMENDER,
    RAG_EMBEDDINGS,
    PDF_PARSER,
)

# Headers
HEADER_AUTHORIZATION = "Authorization"
HEADER_REQUEST_ID = "X-Request-ID"
HEADER_CORRELATION_ID = "X-Correlation-ID"

# Timeouts (seconds)
DEFAULT_TIMEOUT = 30.0
HEALTH_CHECK_TIMEOUT = 5.0
BATCH_EXTRACTION_TIMEOUT = 120.0
BATCH_EMBEDDING_TIMEOUT = 60.0
CATALOG_EMBEDDING_TIMEOUT = 120.0
PDF_PREVIEW_TIMEOUT = 15.0

# Payload limits
MAX_JSON_BODY_BYTES = 5 * 1024 * 1024
MAX_TRANSCRIPT_BYTES = 100 * 1024
MAX_BATCH_TRANSCRIPTS = 100
MAX_PDF_BYTES = 10 * 1024 * 1024
MAX_PDF_URI_ACTIONS = 50

EMBEDDING_DIMENSION = 768

# Cache
PHI_CACHE_MAX_TTL_SECONDS = 300

HEALTH_PATH = "/health"
