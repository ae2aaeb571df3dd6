"""FastAPI middleware package for cross-cutting request/response concerns.

- **SecurityHeadersMiddleware**: Adds security headers (HSTS, X-Frame-Options, CSP)
- **SlowAPIMiddleware** (via ``rate_limit``): Per-client request ceilings
- **BodySizeLimitMiddleware**: Rejects oversized request bodies with 413
- **ResponseLifecycleMiddleware**: One-shot response completion events
- **RequestLoggingMiddleware** / **ErrorOnlyRequestLoggingMiddleware**:
  Request audit records
- **error_handler**: Terminal error classification with consistent responses

Middleware are executed in a specific order to ensure proper request processing:
1. Security headers (first to process, last to respond)
2. CORS
3. Rate limiting
4. Body size limit
5. Response lifecycle (completion registration point)
6. Request audit
7. Error handling (catches and formats all exceptions)
"""
