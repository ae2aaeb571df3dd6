"""API-related constants."""

# HTTP Status Codes
HTTP_400_BAD_REQUEST = 400
HTTP_500_INTERNAL_SERVER_ERROR = 500

# Routes
HEALTH_CHECK_PATH = "/api/health"

# Error messages returned to clients
GENERIC_ERROR_MESSAGE = "Internal Server Error"
RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
PAYLOAD_TOO_LARGE_MESSAGE = "Request body too large"
SERVICE_UNAVAILABLE_MESSAGE = "Service unavailable"

# CORS policy
CORS_ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOWED_HEADERS = ["Content-Type", "Authorization", "Cookie"]

# Security
DEFAULT_HSTS_MAX_AGE = 31536000  # 1 year in seconds
DEFAULT_CONTENT_SECURITY_POLICY = (
    "default-src 'self'; base-uri 'self'; font-src 'self' https: data:; "
    "form-action 'self'; frame-ancestors 'self'; img-src 'self' data:; "
    "object-src 'none'; script-src 'self'; script-src-attr 'none'; "
    "style-src 'self' https: 'unsafe-inline'; upgrade-insecure-requests"
)
