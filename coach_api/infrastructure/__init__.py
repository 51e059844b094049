"""
Infrastructure layer - storage backends.

Each subdirectory wraps a storage backend:
- memory: In-process storage for local development and tests

These wrappers translate between storage and our domain models.
"""
