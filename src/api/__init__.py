"""HTTP API layer built on FastAPI.

Key components:
- **main**: Application factory composing the middleware pipeline
- **middleware**: Cross-cutting concerns for all requests
  - Response lifecycle tracking and request audit logging
  - Terminal error classification with consistent responses
  - Security headers, rate limiting and body size limits
- **schemas**: Pydantic models for the error response body
- **utils**: orjson responses and request metadata helpers
"""
