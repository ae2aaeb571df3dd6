"""Infrastructure layer for process-level concerns.

- **server**: uvicorn server with startup banner and graceful shutdown
"""
