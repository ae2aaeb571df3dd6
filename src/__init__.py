"""Chess App backend - HTTP service foundation.

Architecture Overview:
- **API Layer**: FastAPI application, middleware pipeline and error handling
- **Core Layer**: Configuration, logging, error taxonomy and request context
- **Infrastructure Layer**: HTTP server lifecycle and graceful shutdown

Every request passes through the same pipeline: security headers, CORS,
rate limiting, body size limits and request auditing, with a single
terminal error handler producing ``{"success": false, "error": ...}`` bodies.
"""
