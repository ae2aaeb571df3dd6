"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Server defaults
DEFAULT_PORT = 4000
DEFAULT_FRONTEND_URL = "http://localhost:5173"

# Request handling
DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024  # 10 MB

# Rate limiting
RATE_LIMIT_WINDOW_SECONDS = 15 * 60
PRODUCTION_RATE_LIMIT = 200
DEVELOPMENT_RATE_LIMIT = 100

# Logging
HTTP_LOG_LEVEL = "HTTP"
HTTP_LOG_LEVEL_NO = 15  # between DEBUG (10) and INFO (20)

# Security and redaction
REDACTED = "[REDACTED]"
