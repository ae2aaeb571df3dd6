"""Pydantic models for API request and response payloads.

- **errors**: The client-facing error response body
"""
