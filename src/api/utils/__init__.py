"""Utility modules for API-specific functionality.

- **responses**: orjson-backed JSON response class
- **request_info**: Client address, user agent and request context helpers
"""
