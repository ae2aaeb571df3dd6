"""Core package for shared application functionality.

- **config**: Immutable settings resolved once from the environment
- **constants**: Shared numeric and naming constants
- **context**: Per-request metadata used by audit and error logs
- **exceptions**: Error taxonomy and the error descriptor model
- **error_context**: Sensitive data sanitization for safe logging
- **logging**: Loguru sinks and the injectable ``AppLogger``
- **types**: Type aliases for better code clarity
"""
