"""
Core app - Shared abstractions and utilities.

This app provides:
- The error taxonomy raised by services (exceptions)
- A TTL cache for reference data with an injectable clock (cache)
"""
